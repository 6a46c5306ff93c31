"""Formatting helpers for estimate output.

Produces the strings the estimator widget shows on its results card,
e.g. '$852.50' and '2,000 sq ft'.
"""

from __future__ import annotations


def format_currency(amount: float) -> str:
    """Format a dollar amount with cents and comma separators."""
    return f"${amount:,.2f}"


def format_square_feet(square_feet: float) -> str:
    """Format an area as '1,234 sq ft'."""
    return f"{square_feet:,.0f} sq ft"


def format_linear_feet(linear_feet: float) -> str:
    return f"{linear_feet:,.0f} linear ft"
