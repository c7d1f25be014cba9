import logging
import threading
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from clipkeep.database.kv_store import (
    KeyValueStore,
    StorageKeys,
    load_collection,
    save_collection,
)
from clipkeep.exceptions import NotFoundError
from clipkeep.models.rule import Rule, RuleAction, builtin_rules, ensure_valid_pattern
from clipkeep.services.events import EventBus, Topic

logger = logging.getLogger(__name__)


class RuleStore:
    """Ordered list of content rules, persisted as a whole on every change."""

    def __init__(
        self,
        store: KeyValueStore,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._store = store
        self.events = events or EventBus()
        self._clock = clock
        self._lock = threading.RLock()
        self._rules = self._load()

    def _load(self) -> List[Rule]:
        if self._store.get(StorageKeys.RULES) is None:
            return builtin_rules()
        rules = load_collection(self._store, StorageKeys.RULES, Rule.from_record)
        if not rules:
            logger.info("No stored rules could be read, starting from built-ins")
            return builtin_rules()
        return rules

    def _save(self, action: str, ids: Tuple[str, ...] = ()) -> None:
        save_collection(self._store, StorageKeys.RULES,
                        (rule.to_record() for rule in self._rules))
        self.events.emit(Topic.RULES, action, ids)

    def _index(self, rule_id: str) -> Optional[int]:
        for index, rule in enumerate(self._rules):
            if rule.ruleId == rule_id:
                return index
        return None

    # -- reads -------------------------------------------------------------

    @property
    def rules(self) -> List[Rule]:
        with self._lock:
            return [rule.model_copy(deep=True) for rule in self._rules]

    @property
    def enabled_rules(self) -> List[Rule]:
        return [rule for rule in self.rules if rule.isEnabled]

    @property
    def custom_rules(self) -> List[Rule]:
        return [rule for rule in self.rules if not rule.isBuiltIn]

    def get(self, rule_id: str) -> Optional[Rule]:
        with self._lock:
            index = self._index(rule_id)
            return None if index is None else self._rules[index].model_copy(deep=True)

    def check(self, content: str) -> Tuple[bool, Optional[RuleAction]]:
        """First enabled rule that matches wins; order is significant."""
        with self._lock:
            for rule in self._rules:
                if rule.matches(content):
                    return True, rule.action
        return False, None

    # -- mutations ---------------------------------------------------------

    def create(self, name: str, pattern: str, action: RuleAction = RuleAction.IGNORE,
               description: Optional[str] = None, enabled: bool = True) -> Rule:
        ensure_valid_pattern(pattern)
        now = self._clock()
        rule = Rule(name=name, pattern=pattern, action=action, isEnabled=enabled,
                    description=description, createdDate=now, modifiedDate=now)
        return self.add(rule)

    def add(self, rule: Rule) -> Rule:
        ensure_valid_pattern(rule.pattern)
        with self._lock:
            if self._index(rule.ruleId) is not None:
                raise ValueError(f"Rule {rule.ruleId} already exists")
            self._rules.append(rule.model_copy(deep=True))
            self._save("added", (rule.ruleId,))
        logger.info(f"Added rule {rule.name!r}")
        return rule

    def remove(self, rule_id: str) -> bool:
        with self._lock:
            index = self._index(rule_id)
            if index is None:
                return False
            removed = self._rules.pop(index)
            self._save("removed", (rule_id,))
        logger.info(f"Removed rule {removed.name!r}")
        return True

    def update(self, rule: Rule) -> bool:
        ensure_valid_pattern(rule.pattern)
        with self._lock:
            index = self._index(rule.ruleId)
            if index is None:
                return False
            updated = rule.model_copy(deep=True)
            updated.modifiedDate = self._clock()
            self._rules[index] = updated
            self._save("updated", (rule.ruleId,))
        return True

    def edit(self, rule_id: str, *, name: Optional[str] = None,
             pattern: Optional[str] = None, action: Optional[RuleAction] = None,
             description: Optional[str] = None) -> Rule:
        if pattern is not None:
            ensure_valid_pattern(pattern)
        with self._lock:
            index = self._index(rule_id)
            if index is None:
                raise NotFoundError(rule_id)
            rule = self._rules[index].model_copy(deep=True)
            if name is not None:
                rule.name = name
            if pattern is not None:
                rule.pattern = pattern
            if action is not None:
                rule.action = action
            if description is not None:
                rule.description = description
            rule.modifiedDate = self._clock()
            self._rules[index] = rule
            self._save("updated", (rule_id,))
            return rule.model_copy(deep=True)

    def toggle(self, rule_id: str) -> Optional[Rule]:
        with self._lock:
            index = self._index(rule_id)
            if index is None:
                return None
            self._rules[index].toggle(self._clock())
            self._save("toggled", (rule_id,))
            return self._rules[index].model_copy(deep=True)

    def move(self, rule_id: str, new_index: int) -> bool:
        with self._lock:
            index = self._index(rule_id)
            if index is None:
                return False
            rule = self._rules.pop(index)
            new_index = max(0, min(new_index, len(self._rules)))
            self._rules.insert(new_index, rule)
            self._save("moved", (rule_id,))
        return True

    def reset_to_builtins(self) -> List[Rule]:
        """Restore the shipped rules; custom rules survive after them."""
        with self._lock:
            custom = [rule for rule in self._rules if not rule.isBuiltIn]
            self._rules = builtin_rules() + custom
            self._save("reset", tuple(rule.ruleId for rule in self._rules))
        logger.info(f"Rules reset to built-ins ({len(custom)} custom kept)")
        return self.rules
