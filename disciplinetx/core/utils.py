"""
Utility functions for DisciplineTX.
"""

from datetime import datetime, timedelta


def format_countdown(remaining: timedelta) -> str:
    """
    Convert a remaining duration to a short countdown.

    Examples:
        29 days 5 hours -> "29d 5h"
        3 hours 10 minutes -> "0d 3h"
        negative -> "0d 0h"
    """
    total_hours = max(0, int(remaining.total_seconds() // 3600))
    days, hours = divmod(total_hours, 24)
    return f"{days}d {hours}h"


def time_ago(timestamp: datetime, now: datetime) -> str:
    """
    Convert a past timestamp to human-readable age.

    Examples:
        30 seconds -> "just now"
        5 minutes -> "5 min ago"
        2 hours -> "2 hours ago"
        1 day -> "1 day ago"
    """
    minutes = int((now - timestamp).total_seconds() // 60)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} min ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"

    days = hours // 24
    return f"{days} day{'s' if days > 1 else ''} ago"


def format_completions(completions: float) -> str:
    """
    Display completions without hiding fractional progress.

    Whole values print as integers, fractional ones with two decimals.
    """
    if abs(completions - round(completions)) < 1e-9:
        return f"{round(completions)}"
    return f"{completions:.2f}"


def format_signed_pct(value: float) -> str:
    return f"+{value:.1f}%" if value >= 0 else f"{value:.1f}%"
