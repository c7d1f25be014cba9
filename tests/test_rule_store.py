import json

import pytest

from clipkeep.database.kv_store import MemoryKeyValueStore, StorageKeys
from clipkeep.exceptions import InvalidRulePatternError, NotFoundError
from clipkeep.models.rule import Rule, RuleAction
from clipkeep.services.events import Topic
from clipkeep.services.rule_store import RuleStore


def _rule_named(store, name):
    return next(rule for rule in store.rules if rule.name == name)


def test_fresh_store_starts_with_builtins(rule_store):
    assert len(rule_store.rules) == 8
    assert rule_store.custom_rules == []
    assert len(rule_store.enabled_rules) == 6


def test_check_uses_first_matching_rule():
    a = Rule(name="A", pattern="secret", action=RuleAction.IGNORE)
    b = Rule(name="B", pattern="secret", action=RuleAction.MASK)
    kv = MemoryKeyValueStore({StorageKeys.RULES: json.dumps([a.to_record(), b.to_record()])})
    store = RuleStore(kv)

    assert store.check("my secret") == (True, RuleAction.IGNORE)
    assert store.check("nothing here") == (False, None)

    store.move(b.ruleId, 0)
    assert store.check("my secret") == (True, RuleAction.MASK)


def test_create_persists_and_notifies(kv, rule_store, events):
    seen = []
    events.subscribe(seen.append, topics=[Topic.RULES])

    rule = rule_store.create("Project codes", r"PRJ-\d+", action=RuleAction.MASK)

    assert rule_store.get(rule.ruleId).pattern == r"PRJ-\d+"
    assert [e.action for e in seen] == ["added"]
    reloaded = RuleStore(kv)
    assert [r.name for r in reloaded.custom_rules] == ["Project codes"]


def test_invalid_pattern_leaves_store_unchanged(kv, rule_store):
    before = rule_store.rules
    with pytest.raises(InvalidRulePatternError):
        rule_store.create("broken", "([a-z")
    assert rule_store.rules == before
    assert kv.get(StorageKeys.RULES) is None


def test_edit_updates_fields_and_modified_date(rule_store, clock):
    rule = rule_store.create("Tickets", r"TICKET-\d+")
    clock.advance(minutes=5)

    edited = rule_store.edit(rule.ruleId, pattern=r"TKT-\d+", action=RuleAction.CLEAR)

    assert edited.pattern == r"TKT-\d+"
    assert edited.action is RuleAction.CLEAR
    assert edited.modifiedDate == clock()
    assert rule_store.check("TKT-42") == (True, RuleAction.CLEAR)


def test_edit_rejects_bad_pattern_and_unknown_rule(rule_store):
    rule = rule_store.create("Tickets", r"TICKET-\d+")
    with pytest.raises(InvalidRulePatternError):
        rule_store.edit(rule.ruleId, pattern="(")
    assert rule_store.get(rule.ruleId).pattern == r"TICKET-\d+"

    with pytest.raises(NotFoundError):
        rule_store.edit("r_missing", name="x")


def test_update_and_remove(rule_store):
    rule = rule_store.create("Temp", "temp")
    changed = rule.model_copy(update={"name": "Temporary"})

    assert rule_store.update(changed) is True
    assert rule_store.get(rule.ruleId).name == "Temporary"
    assert rule_store.update(Rule(name="ghost", pattern="x")) is False

    assert rule_store.remove(rule.ruleId) is True
    assert rule_store.remove(rule.ruleId) is False
    assert rule_store.get(rule.ruleId) is None


def test_duplicate_add_is_rejected(rule_store):
    rule = rule_store.create("Once", "once")
    with pytest.raises(ValueError):
        rule_store.add(rule)


def test_toggle(rule_store):
    codes = _rule_named(rule_store, "One-Time Codes")
    toggled = rule_store.toggle(codes.ruleId)
    assert toggled.isEnabled is True
    assert rule_store.check("your code is 123456") == (True, RuleAction.CLEAR)
    assert rule_store.toggle("r_missing") is None


def test_reset_restores_builtins_and_keeps_custom_rules(rule_store):
    passwords = _rule_named(rule_store, "Passwords")
    rule_store.toggle(passwords.ruleId)
    rule_store.remove(_rule_named(rule_store, "Social Security Numbers").ruleId)
    custom = rule_store.create("Mine", "mine")

    rules = rule_store.reset_to_builtins()

    assert len(rules) == 9
    assert rules[-1].ruleId == custom.ruleId
    assert _rule_named(rule_store, "Passwords").isEnabled is True
    assert any(rule.name == "Social Security Numbers" for rule in rules)


def test_unreadable_rules_fall_back_to_builtins():
    kv = MemoryKeyValueStore({StorageKeys.RULES: "garbage"})
    assert len(RuleStore(kv).rules) == 8


def test_returned_rules_are_snapshots(rule_store):
    snapshot = rule_store.rules
    snapshot[0].name = "changed"
    assert rule_store.rules[0].name == "Passwords"
