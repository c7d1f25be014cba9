from clipkeep.clipboard.base import Pasteboard
from clipkeep.clipboard.factory import get_pasteboard
from clipkeep.clipboard.memory import MemoryPasteboard

__all__ = ['Pasteboard', 'MemoryPasteboard', 'get_pasteboard']
