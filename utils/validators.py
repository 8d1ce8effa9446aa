"""Shared input validation utilities.

Stored values read back from older schema revisions pass through these
helpers before they feed derived totals, so a malformed date or a NaN price
is reported instead of silently poisoning a valuation.
"""

import math
import re
import logging

logger = logging.getLogger("wealth_tracker.validators")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_price(value) -> float | None:
    """Validate a price value: finite, non-negative. Returns None for missing."""
    if value is None:
        return None
    try:
        v = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(v) or v < 0:
        return None
    return v


def validate_date(raw: str) -> str:
    """Validate an ISO-format date string (YYYY-MM-DD). Raises ValueError."""
    if not isinstance(raw, str):
        raise ValueError(f"Date must be a string, got {type(raw).__name__}")
    cleaned = raw.strip()[:10]
    if not _DATE_RE.match(cleaned):
        raise ValueError(f"Invalid date '{raw}': expected YYYY-MM-DD")
    return cleaned


def validate_amount(value) -> float:
    """Validate a holding amount: non-negative, finite. Raises ValueError."""
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Amount must be numeric, got {value!r}") from exc
    if not math.isfinite(v) or v < 0:
        raise ValueError(f"Amount must be non-negative and finite, got {v}")
    return v
