"""
Progress ledger and daily activity for DisciplineTX.
"""

from disciplinetx.ledger.daily import DailyActivityAggregator
from disciplinetx.ledger.progress import ProgressLedger

__all__ = ["DailyActivityAggregator", "ProgressLedger"]
