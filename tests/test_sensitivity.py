import pytest

from clipkeep.models.rule import RuleAction
from clipkeep.services.sensitivity import (
    MASK_PLACEHOLDER,
    NO_MATCH,
    RiskLevel,
    SensitivityClassifier,
    SensitivityVerdict,
)


def _enable(rule_store, name):
    rule = next(rule for rule in rule_store.rules if rule.name == name)
    if not rule.isEnabled:
        rule_store.toggle(rule.ruleId)


def test_verdict_predicates():
    assert SensitivityVerdict(True, RuleAction.IGNORE).should_ignore
    clear = SensitivityVerdict(True, RuleAction.CLEAR)
    assert clear.should_ignore and clear.should_clear and not clear.should_mask
    mask = SensitivityVerdict(True, RuleAction.MASK)
    assert mask.should_mask and not mask.should_ignore
    assert not (NO_MATCH.should_ignore or NO_MATCH.should_clear or NO_MATCH.should_mask)


def test_password_is_ignored(classifier):
    verdict = classifier.classify("password: hunter2")
    assert verdict.matched is True
    assert verdict.action is RuleAction.IGNORE
    assert classifier.should_ignore("password: hunter2")
    assert classifier.action_for("password: hunter2") is RuleAction.IGNORE


def test_plain_text_is_not_sensitive(classifier):
    assert classifier.classify("grocery list: eggs, milk") == NO_MATCH
    assert classifier.action_for("grocery list") is None


def test_verdicts_are_cached_until_rules_change(classifier, rule_store):
    classifier.classify("meeting at noon")
    classifier.classify("meeting at noon")
    assert classifier.cache_size == 1

    rule_store.create("Meetings", "meeting")
    assert classifier.cache_size == 0
    assert classifier.should_ignore("meeting at noon")


def test_cache_is_bounded(rule_store):
    classifier = SensitivityClassifier(rule_store, max_cache_size=4)
    for index in range(25):
        classifier.classify(f"note {index}")
        assert classifier.cache_size <= 4
    classifier.close()


def test_cache_size_must_allow_eviction(rule_store):
    with pytest.raises(ValueError):
        SensitivityClassifier(rule_store, max_cache_size=1)


def test_closed_classifier_stops_listening(rule_store):
    classifier = SensitivityClassifier(rule_store)
    classifier.classify("hello")
    classifier.close()
    rule_store.create("Hello", "hello")
    assert classifier.cache_size == 1


def test_mask_replaces_every_span_of_every_mask_rule(classifier, rule_store):
    _enable(rule_store, "Email Addresses")
    rule_store.create("Phone", r"\+\d{2} \d{3} \d{4}", action=RuleAction.MASK)

    masked = classifier.mask_content("mail a@b.com or c@d.org, call +44 123 4567")

    assert masked == f"mail {MASK_PLACEHOLDER} or {MASK_PLACEHOLDER}, call {MASK_PLACEHOLDER}"


def test_mask_is_identity_without_mask_match(classifier, rule_store):
    _enable(rule_store, "Email Addresses")
    text = "nothing sensitive here"
    assert classifier.mask_content(text) == text


def test_mask_ignores_disabled_rules(classifier):
    assert classifier.mask_content("a@b.com") == "a@b.com"


def test_analyze_content(classifier):
    analysis = classifier.analyze_content("password: hunter2")
    assert analysis.is_sensitive
    assert analysis.warnings == ["Content appears to contain a password"]
    assert analysis.matched_action is RuleAction.IGNORE
    assert analysis.risk_level is RiskLevel.HIGH

    benign = classifier.analyze_content("see you tomorrow")
    assert not benign.is_sensitive
    assert benign.risk_level is RiskLevel.LOW
