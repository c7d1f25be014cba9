from clipkeep.models.clipboarditem import (
    ClipboardItem,
    FilePayload,
    ImagePayload,
    ItemKind,
    LinkPayload,
    TextPayload,
)
from clipkeep.models.pinboard import Pinboard, ShareStatus
from clipkeep.models.rule import Rule, RuleAction, builtin_rules
from clipkeep.models.settings import HistoryRetention, UserSettings

__all__ = [
    'ClipboardItem',
    'FilePayload',
    'ImagePayload',
    'ItemKind',
    'LinkPayload',
    'TextPayload',
    'Pinboard',
    'ShareStatus',
    'Rule',
    'RuleAction',
    'builtin_rules',
    'HistoryRetention',
    'UserSettings',
]
