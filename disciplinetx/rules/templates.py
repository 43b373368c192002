"""
Built-in rule templates, grouped by category.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from disciplinetx.core.schemas import RuleCategory


@dataclass(frozen=True)
class TemplateRule:
    text: str
    tags: Tuple[str, ...]
    description: str = ""


CATEGORY_NAMES: Dict[RuleCategory, str] = {
    RuleCategory.PSYCHOLOGY: "Psychology & Emotional",
    RuleCategory.RISK: "Risk Management",
    RuleCategory.ENTRY_EXIT: "Entry & Exit",
    RuleCategory.ANALYSIS: "Technical Analysis",
    RuleCategory.DISCIPLINE: "Discipline & Routine",
    RuleCategory.MONEY: "Money Management",
    RuleCategory.CUSTOM: "Custom",
}

RULE_TEMPLATES: Dict[RuleCategory, List[TemplateRule]] = {
    RuleCategory.PSYCHOLOGY: [
        TemplateRule("Never engage in revenge trading after a loss", ("emotional", "discipline", "recovery")),
        TemplateRule("Avoid FOMO - only trade when your setup criteria are met", ("emotional", "patience", "setup")),
        TemplateRule("Accept losses gracefully and move on", ("emotional", "acceptance", "mindset")),
        TemplateRule("Take breaks after significant wins or losses", ("emotional", "rest")),
    ],
    RuleCategory.RISK: [
        TemplateRule("Never risk more than 2% of capital per trade", ("risk", "position-size")),
        TemplateRule("Always use stop losses on every trade", ("risk", "stop-loss")),
        TemplateRule("Maintain favorable risk-reward ratios (minimum 1:2)", ("risk", "reward")),
        TemplateRule("Limit daily loss to 5% of capital", ("risk", "daily-limit")),
    ],
    RuleCategory.ENTRY_EXIT: [
        TemplateRule("Only enter trades that match your predefined setup", ("entry", "setup")),
        TemplateRule("Exit immediately when stop loss is hit", ("exit", "stop-loss")),
        TemplateRule("Scale out of positions gradually", ("exit", "scale-out")),
    ],
    RuleCategory.ANALYSIS: [
        TemplateRule("Trade in the direction of the trend", ("trend",)),
        TemplateRule("Confirm signals across multiple timeframes", ("timeframes", "confirmation")),
        TemplateRule("Volume must confirm price movement", ("volume", "confirmation")),
    ],
    RuleCategory.DISCIPLINE: [
        TemplateRule("Follow your trading plan without exception", ("plan",)),
        TemplateRule("Track every trade in your journal", ("journal",)),
        TemplateRule("Review your performance weekly", ("review",)),
        TemplateRule("No trading when emotionally compromised", ("emotional", "plan")),
    ],
    RuleCategory.MONEY: [
        TemplateRule("Never risk money you can't afford to lose", ("capital",)),
        TemplateRule("Withdraw profits regularly", ("profits",)),
        TemplateRule("Don't chase unrealistic returns", ("expectations",)),
    ],
}


def find_template(category: RuleCategory, index: int) -> TemplateRule:
    """
    Look up a template by category and position.

    Raises:
        IndexError: If the category has no template at that position
    """
    templates = RULE_TEMPLATES.get(category, [])
    if not 0 <= index < len(templates):
        raise IndexError(f"No template #{index} in {category.value}")
    return templates[index]
