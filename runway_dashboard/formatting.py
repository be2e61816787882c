"""Formatting utilities for currency and runway display."""

from __future__ import annotations

import math
from typing import Dict, Union

from .money import cents_to_major

RUNWAY_DISPLAY_CAP_MONTHS = 24


def escape_dollar_for_markdown(text: str) -> str:
    """Escape dollar signs so Streamlit markdown does not treat them as LaTeX.

    Example:
        >>> escape_dollar_for_markdown("$1,234.56")
        '\\\\$1,234.56'
    """
    return text.replace("$", "\\$")


def format_currency(cents: Union[float, int], include_sign: bool = True) -> str:
    """Format an amount held in cents.

    Example:
        >>> format_currency(123456)
        '$1,234.56'
        >>> format_currency(-123456, include_sign=False)
        '-1,234.56'
    """
    amount = cents_to_major(cents)
    formatted = f"{abs(amount):,.2f}"
    prefix = "-" if amount < 0 else ""
    return f"{prefix}${formatted}" if include_sign else f"{prefix}{formatted}"


def format_runway(months: float) -> Dict[str, str]:
    """Short runway label: ``∞`` when unbounded, ``24+`` past the chart horizon.

    Example:
        >>> format_runway(float('inf'))
        {'value': '∞', 'label': 'Unlimited'}
        >>> format_runway(4.7)
        {'value': '4', 'label': 'months'}
    """
    if not math.isfinite(months):
        return {'value': '∞', 'label': 'Unlimited'}
    if months >= RUNWAY_DISPLAY_CAP_MONTHS:
        return {'value': f'{RUNWAY_DISPLAY_CAP_MONTHS}+', 'label': 'months'}
    whole = math.floor(months)
    return {'value': str(whole), 'label': 'month' if whole == 1 else 'months'}
