"""Best-effort extraction of the amount paid from free-text sale remarks.

Sales record the up-front payment inside the remarks text (for example
``"Paid: ₹1,500 cash"``). This module is the only place that knows the
convention, so a structured amount field can replace it later.
"""
from __future__ import annotations
from typing import Optional
import re

PAID_PATTERN = re.compile(r'Paid\s*:?.*?₹?\s*([0-9][0-9,]*(?:\.[0-9]+)?)', re.IGNORECASE)


def parse_paid_amount(remarks: Optional[str]) -> float:
    """Return the first ``Paid`` amount found in ``remarks`` or 0.0."""
    if not remarks:
        return 0.0
    match = PAID_PATTERN.search(str(remarks))
    if not match:
        return 0.0
    try:
        return float(match.group(1).replace(',', ''))
    except ValueError:
        return 0.0


def clamp_paid(total: float, paid: float) -> float:
    """Paid never reports below zero or above the total."""
    if paid < 0:
        return 0.0
    if paid > total:
        return total
    return paid


__all__ = ['PAID_PATTERN', 'parse_paid_amount', 'clamp_paid']
