"""
Unit tests for the rule registry.

Tests rule CRUD, filtering, templates and how the collection is persisted.
"""

from unittest.mock import patch

import pytest

from disciplinetx.core.schemas import RuleCategory
from disciplinetx.core.store import USER_RULES
from disciplinetx.rules.registry import RuleRegistry
from disciplinetx.rules.templates import RULE_TEMPLATES, find_template


@pytest.fixture
def registry(buffer, clock):
    return RuleRegistry(buffer, clock)


class TestAddRule:
    """Test rule creation."""

    def test_add_rule(self, registry, clock):
        result = registry.add("Always use stop losses", ["Risk", " stop-loss "], RuleCategory.RISK)

        assert result.ok
        rule = result.value
        assert rule.text == "Always use stop losses"
        assert rule.tags == frozenset({"risk", "stop-loss"})
        assert rule.category == RuleCategory.RISK
        assert rule.active is True
        assert rule.violations == 0
        assert rule.created_at == clock()

    def test_ids_are_unique(self, registry):
        ids = {registry.add(f"Rule {i}").value.id for i in range(20)}

        assert len(ids) == 20

    def test_empty_text_rejected(self, registry):
        result = registry.add("   ")

        assert not result
        assert registry.rules == []

    @pytest.mark.parametrize("text,tags,category", [
        ("Stop loss", [], "not-a-category"),
        ("Stop loss", None, RuleCategory.RISK),
        ("Stop loss", 5, RuleCategory.RISK),
        ("Stop loss", "risk", RuleCategory.RISK),
        ("Stop loss", ["risk", 7], RuleCategory.RISK),
        (42, [], RuleCategory.RISK),
    ])
    def test_invalid_input_rejected(self, registry, store, text, tags, category):
        result = registry.add(text, tags, category)

        assert not result
        assert result.reason
        assert registry.rules == []
        assert store.get(USER_RULES) is None

    def test_unknown_category_rejected_via_engine(self, engine):
        result = engine.add_rule("Stop loss", [], "not-a-category")

        assert not result
        assert "Unknown category" in result.reason
        assert engine.rules.rules == []

    def test_add_persists_collection(self, registry, store):
        registry.add("Rule one")
        registry.add("Rule two")

        stored = store.get(USER_RULES)
        assert [r["text"] for r in stored] == ["Rule one", "Rule two"]

    def test_each_mutation_is_one_write(self, registry, store):
        with patch.object(store, "set_many", wraps=store.set_many) as spy:
            rule_id = registry.add("Rule one").value.id
            registry.edit(rule_id, "Rule one, edited")
            registry.toggle_active(rule_id)
            registry.delete(rule_id)

        assert spy.call_count == 4
        assert all(set(call[0][0]) == {USER_RULES} for call in spy.call_args_list)


class TestEditRule:
    """Test rule updates."""

    @pytest.fixture
    def rule_id(self, registry):
        return registry.add("Trade the plan", ["plan"], RuleCategory.DISCIPLINE).value.id

    def test_edit_text(self, registry, clock, rule_id):
        clock.advance(minutes=5)

        result = registry.edit(rule_id, "Trade the plan, always")

        assert result.ok
        rule = registry.get(rule_id)
        assert rule.text == "Trade the plan, always"
        assert rule.updated_at == clock()
        assert rule.created_at < rule.updated_at

    def test_edit_empty_text_rejected(self, registry, rule_id):
        assert not registry.edit(rule_id, "")
        assert registry.get(rule_id).text == "Trade the plan"

    def test_update_meta(self, registry, rule_id):
        result = registry.update_meta(rule_id, {"tags": ["Routine"], "category": "psychology"})

        assert result.ok
        rule = registry.get(rule_id)
        assert rule.tags == frozenset({"routine"})
        assert rule.category == RuleCategory.PSYCHOLOGY

    def test_update_meta_rejects_unknown_field(self, registry, rule_id):
        result = registry.update_meta(rule_id, {"violations": 0})

        assert not result
        assert "violations" in result.reason

    def test_update_meta_rejects_bad_values(self, registry, rule_id):
        assert not registry.update_meta(rule_id, {"category": "astrology"})
        assert not registry.update_meta(rule_id, {"tags": "plan"})
        assert not registry.update_meta(rule_id, {"active": "yes"})
        assert not registry.update_meta(rule_id, {"text": 5})
        assert not registry.update_meta(rule_id, {"text": None})
        assert not registry.update_meta(rule_id, {"tags": None})
        assert not registry.update_meta(rule_id, {"tags": 3})
        assert not registry.update_meta(rule_id, {"tags": ["plan", None]})
        rule = registry.get(rule_id)
        assert rule.category == RuleCategory.DISCIPLINE
        assert rule.text == "Trade the plan"
        assert rule.tags == frozenset({"plan"})

    def test_toggle_active(self, registry, rule_id):
        registry.toggle_active(rule_id)
        assert registry.get(rule_id).active is False
        assert registry.active_count() == 0

        registry.toggle_active(rule_id)
        assert registry.get(rule_id).active is True

    def test_unknown_rule_rejected(self, registry):
        assert not registry.edit("missing", "text")
        assert not registry.toggle_active("missing")
        assert not registry.delete("missing")


class TestDeleteRule:
    """Test rule deletion."""

    def test_delete_leaves_activity_untouched(self, engine):
        rule_id = engine.add_rule("No FOMO").value.id
        engine.record_violation(rule_id)

        result = engine.delete_rule(rule_id)

        assert result.ok
        assert engine.rules.get(rule_id) is None
        assert engine.daily.entries()[0].payload["ruleId"] == rule_id

    def test_violating_deleted_rule_rejected(self, engine):
        rule_id = engine.add_rule("No FOMO").value.id
        engine.delete_rule(rule_id)

        assert not engine.record_violation(rule_id)


class TestQueries:
    """Test filtering and stats."""

    @pytest.fixture
    def populated(self, registry):
        registry.add("Stop loss on every trade", ["risk", "stop-loss"], RuleCategory.RISK)
        registry.add("Risk 2% max", ["risk"], RuleCategory.RISK)
        registry.add("Journal every trade", ["journal"], RuleCategory.DISCIPLINE)
        return registry

    def test_list_by_category(self, populated):
        rules = populated.list(category=RuleCategory.RISK)

        assert [r.text for r in rules] == ["Stop loss on every trade", "Risk 2% max"]

    def test_list_by_tag(self, populated):
        rules = populated.list(tags=["STOP-LOSS", "journal"])

        assert [r.text for r in rules] == ["Stop loss on every trade", "Journal every trade"]

    def test_list_all(self, populated):
        assert len(populated.list()) == 3

    def test_category_stats(self, populated):
        stats = populated.category_stats()

        assert stats["risk"]["count"] == 2
        assert stats["discipline"]["active"] == 1
        assert stats["psychology"]["count"] == 0


class TestTemplates:
    """Test rule templates."""

    def test_add_from_template(self, registry):
        template = RULE_TEMPLATES[RuleCategory.RISK][1]

        result = registry.add_from_template(template, RuleCategory.RISK)

        rule = result.value
        assert rule.text == template.text
        assert rule.category == RuleCategory.RISK
        assert "risk" in rule.tags
        assert set(template.tags) <= rule.tags

    def test_find_template_out_of_range(self):
        with pytest.raises(IndexError):
            find_template(RuleCategory.RISK, 99)

    def test_custom_category_has_no_templates(self):
        assert RULE_TEMPLATES.get(RuleCategory.CUSTOM, []) == []


class TestLoading:
    """Test reading rules back from the store."""

    def test_load_round_trip(self, registry, buffer, clock):
        rule_id = registry.add("Trade the plan", ["plan"]).value.id

        other = RuleRegistry(buffer, clock)
        other.load()

        assert other.get(rule_id) == registry.get(rule_id)

    def test_malformed_rules_keep_current(self, registry, store, buffer, clock):
        registry.add("Trade the plan")
        store.set(USER_RULES, [{"id": "a", "text": 42}])

        registry.load()

        assert [r.text for r in registry.rules] == ["Trade the plan"]
