import hashlib
import logging
import re
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from clipkeep.models.rule import RuleAction
from clipkeep.services.events import StoreEvent, Topic
from clipkeep.services.rule_store import RuleStore

logger = logging.getLogger(__name__)

MASK_PLACEHOLDER = "••••••••"
DEFAULT_CACHE_SIZE = 500

_PASSWORD_HINTS = [
    re.compile(r"(?i)password[\s:=]+"),
    re.compile(r"(?i)passwort[\s:=]+"),
    re.compile(r"(?i)contraseña[\s:=]+"),
    re.compile(r"(?i)senha[\s:=]+"),
]
_CREDIT_CARD_HINT = re.compile(r"\b(?:\d{4}[\s-]?){3}\d{4}\b")
_API_KEY_HINTS = [
    re.compile(r"(?i)api[_-]?key[\s:=]+"),
    re.compile(r"(?i)secret[_-]?key[\s:=]+"),
    re.compile(r"(?i)access[_-]?token[\s:=]+"),
    re.compile(r"(?i)bearer\s+"),
]


@dataclass(frozen=True)
class SensitivityVerdict:
    matched: bool
    action: Optional[RuleAction] = None

    @property
    def should_ignore(self) -> bool:
        return self.matched and self.action in (RuleAction.IGNORE, RuleAction.CLEAR)

    @property
    def should_clear(self) -> bool:
        return self.matched and self.action is RuleAction.CLEAR

    @property
    def should_mask(self) -> bool:
        return self.matched and self.action is RuleAction.MASK


NO_MATCH = SensitivityVerdict(matched=False)


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class SecurityAnalysis:
    is_sensitive: bool
    warnings: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    matched_action: Optional[RuleAction] = None

    @property
    def risk_level(self) -> RiskLevel:
        if self.matched_action in (RuleAction.IGNORE, RuleAction.CLEAR):
            return RiskLevel.HIGH
        if self.matched_action is RuleAction.MASK or self.is_sensitive:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class SensitivityClassifier:
    """Classifies text against the rule store with a bounded verdict cache."""

    def __init__(self, rule_store: RuleStore, max_cache_size: int = DEFAULT_CACHE_SIZE) -> None:
        if max_cache_size < 2:
            raise ValueError("max_cache_size must be at least 2")
        self.rule_store = rule_store
        self.max_cache_size = max_cache_size
        self._cache: Dict[str, SensitivityVerdict] = {}
        self._generation = 0
        self._lock = threading.Lock()
        self._unsubscribe = rule_store.events.subscribe(
            self._on_rules_changed, topics=[Topic.RULES])

    def _on_rules_changed(self, event: StoreEvent) -> None:
        logger.debug(f"Rules {event.action}, dropping cached verdicts")
        self.clear_cache()

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()
            self._generation += 1

    def classify(self, content: str) -> SensitivityVerdict:
        key = content_hash(content)
        with self._lock:
            cached = self._cache.get(key)
            generation = self._generation
        if cached is not None:
            return cached

        matched, action = self.rule_store.check(content)
        verdict = SensitivityVerdict(matched=True, action=action) if matched else NO_MATCH

        with self._lock:
            if generation != self._generation:
                # rules changed while we were matching
                return verdict
            if len(self._cache) >= self.max_cache_size:
                # dicts keep insertion order: drop the older half
                for stale in list(self._cache)[: self.max_cache_size // 2]:
                    del self._cache[stale]
            self._cache[key] = verdict
        return verdict

    def should_ignore(self, content: str) -> bool:
        return self.classify(content).should_ignore

    def should_clear(self, content: str) -> bool:
        return self.classify(content).should_clear

    def should_mask(self, content: str) -> bool:
        return self.classify(content).should_mask

    def action_for(self, content: str) -> Optional[RuleAction]:
        verdict = self.classify(content)
        return verdict.action if verdict.matched else None

    def mask_content(self, content: str) -> str:
        """Redact every span matched by any enabled mask rule."""
        masked = content
        for rule in self.rule_store.enabled_rules:
            if rule.action is not RuleAction.MASK:
                continue
            masked = rule.compiled.sub(MASK_PLACEHOLDER, masked)
        return masked

    def analyze_content(self, content: str) -> SecurityAnalysis:
        warnings: List[str] = []
        suggestions: List[str] = []

        if any(p.search(content) for p in _PASSWORD_HINTS):
            warnings.append("Content appears to contain a password")
            suggestions.append("Consider enabling the 'Passwords' rule to auto-ignore")

        if _CREDIT_CARD_HINT.search(content):
            warnings.append("Content appears to contain a credit card number")
            suggestions.append("Consider enabling the 'Credit Cards' rule to auto-ignore")

        if any(p.search(content) for p in _API_KEY_HINTS):
            warnings.append("Content appears to contain an API key or token")
            suggestions.append("Consider enabling the 'API Keys' rule to auto-ignore")

        return SecurityAnalysis(
            is_sensitive=bool(warnings),
            warnings=warnings,
            suggestions=suggestions,
            matched_action=self.action_for(content),
        )

    def close(self) -> None:
        self._unsubscribe()
