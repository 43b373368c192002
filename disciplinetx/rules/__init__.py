"""
Trading rules for DisciplineTX.

User-defined rules with violation counters, plus built-in templates.
"""

from disciplinetx.rules.registry import RuleRegistry
from disciplinetx.rules.templates import RULE_TEMPLATES, TemplateRule

__all__ = ["RuleRegistry", "RULE_TEMPLATES", "TemplateRule"]
