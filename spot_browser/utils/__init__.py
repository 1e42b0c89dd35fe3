"""
Utility functions for spot-browser.

    - humanize_time: milliseconds -> "H:MM:SS" / "M:SS"
    - format_totals: status line shown when a container finished loading

Usage:
    from spot_browser.utils import humanize_time, format_totals
"""


def humanize_time(duration_ms: int) -> str:
    """
    Format a duration for display.

    Args:
        duration_ms: Duration in milliseconds.

    Returns:
        "H:MM:SS" when at least one hour, "M:SS" otherwise.

    Example:
        >>> humanize_time(210000)
        '3:30'
        >>> humanize_time(3723000)
        '1:02:03'
    """
    total_seconds = max(0, duration_ms) // 1000
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02}:{seconds:02}"
    return f"{minutes}:{seconds:02}"


def format_totals(items: int, duration_ms: int, duration_exact: bool) -> str:
    """
    Completion status line.

    The duration is shown only when known; a trailing "+" marks it as a
    lower bound (some items had no exact duration).
    """
    text = f"Total items: {items}"
    if duration_ms > 0 or duration_exact:
        suffix = "" if duration_exact else "+"
        text += f", total duration: {humanize_time(duration_ms)}{suffix}"
    return text
