"""
Formatting utilities.
"""

from typing import Optional


def format_currency(amount: Optional[float], currency: str = "USD") -> str:
    """
    Format an amount as currency, rounded to whole units.

    Args:
        amount: The amount in whole units (e.g., dollars, not cents).
        currency: Currency code (default USD).

    Returns:
        Formatted currency string, or an em dash when the amount is unknown.
    """
    if amount is None:
        return "—"
    symbols = {
        "GBP": "£",
        "USD": "$",
        "EUR": "€",
    }
    symbol = symbols.get(currency, currency + " ")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(round(amount)):,}"


def format_percent(value: Optional[float], decimals: int = 1) -> str:
    """
    Format a number as a percentage.

    Args:
        value: The percentage value.
        decimals: Number of decimal places.

    Returns:
        Formatted percentage string.
    """
    if value is None:
        return "—"
    return f"{value:.{decimals}f}%"


def format_ratio(value: Optional[float]) -> str:
    """Format a coverage ratio such as DSCR, e.g. ``1.35x``."""
    if value is None:
        return "—"
    return f"{value:.2f}x"


def format_years(value: Optional[float]) -> str:
    """Format a lease term in years."""
    if value is None:
        return "—"
    return f"{value:.2f} yrs"
