import re
from datetime import datetime
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Pattern

from pydantic import BaseModel, ConfigDict, Field, field_validator
from ulid import ULID

from clipkeep.exceptions import InvalidRulePatternError
from clipkeep.models.timestamps import LocalDateTime


class RuleAction(str, Enum):
    IGNORE = "ignore"
    CLEAR = "clear"
    MASK = "mask"

    @property
    def display_name(self) -> str:
        return {
            RuleAction.IGNORE: "Don't Save",
            RuleAction.CLEAR: "Clear After Delay",
            RuleAction.MASK: "Mask Content",
        }[self]

    @property
    def description(self) -> str:
        return {
            RuleAction.IGNORE: "The copied content will not be saved to history",
            RuleAction.CLEAR: "The clipboard will be cleared after a short delay",
            RuleAction.MASK: "The content will be saved but displayed as masked",
        }[self]


@lru_cache(maxsize=256)
def compile_pattern(pattern: str) -> Pattern[str]:
    return re.compile(pattern, re.IGNORECASE)


def ensure_valid_pattern(pattern: str) -> str:
    try:
        compile_pattern(pattern)
    except re.error as exc:
        raise InvalidRulePatternError(pattern, str(exc)) from exc
    return pattern


class Rule(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    ruleId: str = Field(
        default_factory=lambda: f"r_{ULID.from_datetime(datetime.now())}")
    name: str
    pattern: str
    action: RuleAction = RuleAction.IGNORE
    isEnabled: bool = True
    isBuiltIn: bool = False
    description: Optional[str] = None
    createdDate: LocalDateTime = Field(default_factory=datetime.now)
    modifiedDate: LocalDateTime = Field(default_factory=datetime.now)

    @field_validator("pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        return ensure_valid_pattern(value)

    @property
    def compiled(self) -> Pattern[str]:
        return compile_pattern(self.pattern)

    def matches(self, content: str) -> bool:
        if not self.isEnabled:
            return False
        return self.compiled.search(content) is not None

    def toggle(self, now: Optional[datetime] = None) -> None:
        self.isEnabled = not self.isEnabled
        self.modifiedDate = now or datetime.now()

    def update_pattern(self, pattern: str, now: Optional[datetime] = None) -> None:
        self.pattern = pattern
        self.modifiedDate = now or datetime.now()

    def update_action(self, action: RuleAction, now: Optional[datetime] = None) -> None:
        self.action = action
        self.modifiedDate = now or datetime.now()

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Rule":
        return cls.model_validate(record)


def builtin_rules() -> List[Rule]:
    """Fresh instances of the rules shipped with the app."""
    return [
        Rule(
            name="Passwords",
            pattern=r"(?i)(password|passwort|senha|contraseña)[\s:=]+.+",
            action=RuleAction.IGNORE,
            isBuiltIn=True,
            description="Detects text that appears to contain passwords",
        ),
        Rule(
            name="Credit Cards",
            pattern=r"\b(?:\d{4}[\s-]?){3}\d{4}\b",
            action=RuleAction.IGNORE,
            isBuiltIn=True,
            description="Detects credit card number patterns",
        ),
        Rule(
            name="One-Time Codes",
            pattern=r"\b\d{4,8}\b",
            action=RuleAction.CLEAR,
            isEnabled=False,  # too aggressive to enable by default
            isBuiltIn=True,
            description="Detects numeric verification codes",
        ),
        Rule(
            name="API Keys",
            pattern=r"(?i)(api[_-]?key|apikey|secret[_-]?key)[\s:=]+[a-zA-Z0-9_-]+",
            action=RuleAction.IGNORE,
            isBuiltIn=True,
            description="Detects API keys and secrets",
        ),
        Rule(
            name="Email Addresses",
            pattern=r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}",
            action=RuleAction.MASK,
            isEnabled=False,
            isBuiltIn=True,
            description="Detects email addresses",
        ),
        Rule(
            name="Social Security Numbers",
            pattern=r"\b\d{3}-\d{2}-\d{4}\b",
            action=RuleAction.IGNORE,
            isBuiltIn=True,
            description="Detects US Social Security Number patterns",
        ),
        Rule(
            name="Bearer Tokens",
            pattern=r"(?i)bearer\s+[a-zA-Z0-9._-]+",
            action=RuleAction.IGNORE,
            isBuiltIn=True,
            description="Detects Bearer authentication tokens",
        ),
        Rule(
            name="Private Keys",
            pattern=r"(?i)-----BEGIN\s+(RSA\s+)?PRIVATE\s+KEY-----",
            action=RuleAction.IGNORE,
            isBuiltIn=True,
            description="Detects private key headers",
        ),
    ]
