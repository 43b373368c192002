"""
Rule registry.

Named trading rules with violation counters. Every mutation persists the
whole rule collection in one write. Violation counters are owned by the
progress ledger, which changes them through apply_violation /
apply_compliance as part of its own write.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from disciplinetx.core.schemas import (
    MutationResult,
    Rule,
    RuleCategory,
    rules_from_list,
)
from disciplinetx.core.store import USER_RULES, WriteBuffer, read_entity
from disciplinetx.rules.templates import CATEGORY_NAMES, TemplateRule

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"text", "tags", "category", "active"}


def _normalize_tags(tags: Iterable[str]) -> frozenset:
    """
    Lowercase and strip tags, dropping blanks.

    Raises:
        ValueError: If tags is not a list of strings
    """
    if tags is None or isinstance(tags, (str, bytes)):
        raise ValueError("Tags must be a list")
    try:
        items = list(tags)
    except TypeError as e:
        raise ValueError("Tags must be a list") from e

    if not all(isinstance(t, str) for t in items):
        raise ValueError("Tags must be strings")
    return frozenset(t.strip().lower() for t in items if t.strip())


class RuleRegistry:
    """User-defined rules, kept in insertion order."""

    def __init__(self, buffer: WriteBuffer, clock: Callable[[], datetime]):
        self.buffer = buffer
        self.clock = clock
        self._rules: List[Rule] = []

    # Loading

    def load(self) -> None:
        """Re-read the rule collection; malformed data keeps the current rules."""
        self._rules = read_entity(self.buffer.store, USER_RULES, rules_from_list, self._rules)
        logger.debug(f"Loaded {len(self._rules)} rules")

    def clear(self) -> None:
        self._rules = []

    # Queries

    @property
    def rules(self) -> List[Rule]:
        return list(self._rules)

    def get(self, rule_id: str) -> Optional[Rule]:
        for rule in self._rules:
            if rule.id == rule_id:
                return rule
        return None

    def list(
        self,
        category: Optional[RuleCategory] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> List[Rule]:
        """
        Filter rules.

        A rule matches when its category equals `category` (if given) and it
        carries at least one of `tags` (if given).
        """
        wanted = _normalize_tags(tags or [])
        return [
            r for r in self._rules
            if (category is None or r.category == category)
            and (not wanted or r.tags & wanted)
        ]

    def active_count(self) -> int:
        return sum(1 for r in self._rules if r.active)

    def total_violations(self) -> int:
        return sum(r.violations for r in self._rules)

    def category_stats(self) -> Dict[str, Dict[str, int]]:
        """Per-category rule count, active count and violations."""
        stats = {
            category.value: {"count": 0, "active": 0, "violations": 0}
            for category in CATEGORY_NAMES
        }
        for rule in self._rules:
            entry = stats[rule.category.value]
            entry["count"] += 1
            entry["violations"] += rule.violations
            if rule.active:
                entry["active"] += 1
        return stats

    # Mutations

    def add(
        self,
        text: str,
        tags: Iterable[str] = (),
        category: RuleCategory = RuleCategory.CUSTOM,
    ) -> MutationResult:
        """Create a rule. Returns the new Rule as result value."""
        if text is not None and not isinstance(text, str):
            return MutationResult.rejected("Rule text must be a string")
        text = (text or "").strip()
        if not text:
            return MutationResult.rejected("Rule text is empty")
        try:
            category = RuleCategory(category)
        except ValueError:
            return MutationResult.rejected(f"Unknown category: {category}")
        try:
            tags = _normalize_tags(tags)
        except ValueError as e:
            return MutationResult.rejected(str(e))

        now = self.clock()
        rule = Rule(
            id=uuid.uuid4().hex[:12],
            text=text,
            tags=tags,
            category=category,
            created_at=now,
            updated_at=now,
        )
        self._rules.append(rule)
        self._persist()

        logger.info(f"Added rule {rule.id}: {rule.text}")
        return MutationResult.success(rule)

    def add_from_template(self, template: TemplateRule, category: RuleCategory) -> MutationResult:
        """Create a rule from a template; the category is added as a tag."""
        return self.add(template.text, list(template.tags) + [category.value], category)

    def edit(self, rule_id: str, text: str) -> MutationResult:
        return self.update_meta(rule_id, {"text": text})

    def update_meta(self, rule_id: str, partial: Dict[str, Any]) -> MutationResult:
        """
        Update editable fields (text, tags, category, active).

        Unknown or invalid fields reject the whole update.
        """
        index = self._index(rule_id)
        if index is None:
            return MutationResult.rejected(f"Unknown rule: {rule_id}")

        unknown = set(partial) - EDITABLE_FIELDS
        if unknown:
            return MutationResult.rejected(f"Fields not editable: {sorted(unknown)}")

        changes: Dict[str, Any] = {}
        if "text" in partial:
            if not isinstance(partial["text"], str):
                return MutationResult.rejected("Rule text must be a string")
            text = partial["text"].strip()
            if not text:
                return MutationResult.rejected("Rule text is empty")
            changes["text"] = text
        if "tags" in partial:
            try:
                changes["tags"] = _normalize_tags(partial["tags"])
            except ValueError as e:
                return MutationResult.rejected(str(e))
        if "category" in partial:
            try:
                changes["category"] = RuleCategory(partial["category"])
            except ValueError:
                return MutationResult.rejected(f"Unknown category: {partial['category']}")
        if "active" in partial:
            if not isinstance(partial["active"], bool):
                return MutationResult.rejected("Active must be a boolean")
            changes["active"] = partial["active"]

        rule = replace(self._rules[index], updated_at=self.clock(), **changes)
        self._rules[index] = rule
        self._persist()

        logger.info(f"Updated rule {rule_id}: {sorted(changes)}")
        return MutationResult.success(rule)

    def toggle_active(self, rule_id: str) -> MutationResult:
        rule = self.get(rule_id)
        if rule is None:
            return MutationResult.rejected(f"Unknown rule: {rule_id}")
        return self.update_meta(rule_id, {"active": not rule.active})

    def delete(self, rule_id: str) -> MutationResult:
        """
        Remove a rule.

        Activity entries that reference it are left as they are.
        """
        index = self._index(rule_id)
        if index is None:
            return MutationResult.rejected(f"Unknown rule: {rule_id}")

        rule = self._rules.pop(index)
        self._persist()

        logger.info(f"Deleted rule {rule_id}")
        return MutationResult.success(rule)

    # Ledger-owned counters. These change memory only and return the
    # payload the caller must include in its write.

    def apply_violation(self, rule_id: str, at: datetime) -> Dict[str, Any]:
        index = self._index(rule_id)
        rule = self._rules[index]
        self._rules[index] = replace(rule, violations=rule.violations + 1, last_violation_at=at)
        return self.snapshot()

    def apply_compliance(self, rule_id: str) -> Dict[str, Any]:
        index = self._index(rule_id)
        rule = self._rules[index]
        violations = max(0, rule.violations - 1)
        self._rules[index] = replace(
            rule,
            violations=violations,
            last_violation_at=rule.last_violation_at if violations > 0 else None,
        )
        return self.snapshot()

    def snapshot(self) -> Dict[str, Any]:
        return {USER_RULES: [r.to_dict() for r in self._rules]}

    def _index(self, rule_id: str) -> Optional[int]:
        for i, rule in enumerate(self._rules):
            if rule.id == rule_id:
                return i
        return None

    def _persist(self) -> None:
        self.buffer.write(self.snapshot())
