"""Number and currency formatting utilities for BESS finance output."""

import math


def format_currency(value: float, decimals: int = 1, prefix: str = "£") -> str:
    """Format a £m value as a currency string.

    Args:
        value: Value in £ millions.
        decimals: Number of decimal places.
        prefix: Currency symbol prefix.

    Returns:
        Formatted string (e.g., "£12.3m"), or "N/A" when not finite.
    """
    if not math.isfinite(value):
        return "N/A"
    sign = "-" if value < 0 else ""
    return f"{sign}{prefix}{abs(value):,.{decimals}f}m"


def format_percent(value: float, decimals: int = 1) -> str:
    """Format a whole-number percent (e.g., 12.3 for 12.3%).

    Args:
        value: Percentage value.
        decimals: Number of decimal places.

    Returns:
        Formatted percentage string (e.g., "12.3%").
    """
    if not math.isfinite(value):
        return "N/A"
    return f"{value:,.{decimals}f}%"


def format_multiple(value: float, decimals: int = 2) -> str:
    """Format a ratio such as DSCR or MOIC (e.g., "1.45x")."""
    if math.isnan(value):
        return "N/A"
    if math.isinf(value):
        return "∞" if value > 0 else "-∞"
    return f"{value:,.{decimals}f}x"


def format_number(value: float, decimals: int = 1) -> str:
    """Format a number with comma separators.

    Args:
        value: The numeric value to format.
        decimals: Number of decimal places.

    Returns:
        Formatted number string (e.g., "1,234.5").
    """
    return f"{value:,.{decimals}f}"


def format_payback(years: int) -> str:
    """Format a payback year index; 0 means never reached."""
    if years <= 0:
        return "Not reached"
    return f"{years} years" if years != 1 else "1 year"
