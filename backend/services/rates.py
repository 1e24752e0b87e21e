"""
Per-submission payment calculation.

A submission's payment_amount is computed when it is created and whenever an
admin edits its view count or clip category:

  amount = min(PAYMENT_CAP, round2(views / 1,000 × rate_per_thousand(category)))

Rates per 1,000 views (from config, overridable per call):
  category_a → RATE_PER_THOUSAND_CATEGORY_A
  category_b → RATE_PER_THOUSAND_CATEGORY_B
  no category → $0

Amounts already stored on submissions are NOT recomputed when the rate table
changes; reconciliation derives a unit rate from the stored amount instead.
"""

import logging
from typing import Optional

import config
from models.schemas import ClipCategory

logger = logging.getLogger(__name__)

VIEWS_PER_RATE_UNIT = 1_000


class InvalidViewCountError(ValueError):
    """Raised when a view count input is not a non-negative whole number."""


def default_rate_table() -> dict[ClipCategory, float]:
    """Build the rate table from current config values."""
    return {
        ClipCategory.CATEGORY_A: config.RATE_PER_THOUSAND_CATEGORY_A,
        ClipCategory.CATEGORY_B: config.RATE_PER_THOUSAND_CATEGORY_B,
    }


def rate_per_thousand(
    category: Optional[ClipCategory],
    rates: Optional[dict[ClipCategory, float]] = None,
) -> float:
    if category is None:
        return 0.0
    if rates is None:
        rates = default_rate_table()
    return rates.get(category, 0.0)


def calculate_payment_amount(
    views: int,
    category: Optional[ClipCategory],
    rates: Optional[dict[ClipCategory, float]] = None,
    cap: Optional[float] = None,
) -> float:
    """
    Convert a view count + clip category into a dollar amount.

    Never fails: negative views clamp to 0 and the result clamps to the cap.

    Args:
        views:    Current view count of the submission
        category: Clip category (None → no rate, $0)
        rates:    Optional rate table override {category: $ per 1,000 views}
        cap:      Optional maximum amount per submission (defaults to config)

    Returns:
        Amount rounded to 2 decimals, capped
    """
    if cap is None:
        cap = config.PAYMENT_CAP

    views = max(0, views)
    raw = views / VIEWS_PER_RATE_UNIT * rate_per_thousand(category, rates)
    amount = min(cap, round(raw, 2))

    if amount < raw:
        logger.debug(f"Payment capped: ${raw:,.2f} → ${amount:,.2f} ({views:,} views)")

    return amount


def parse_view_count(value) -> int:
    """
    Validate a raw view count input (admin form / API payload).

    Accepts ints and numeric strings ("1500", " 2,000 "). Rejects booleans,
    fractions, negative numbers and anything non-numeric.
    """
    if isinstance(value, bool):
        raise InvalidViewCountError(f"Invalid view count: {value!r}")

    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise InvalidViewCountError(f"View count must be a whole number: {value!r}")
        parsed = int(value)
    elif isinstance(value, str):
        cleaned = value.strip().replace(",", "")
        if not cleaned.isdigit():
            raise InvalidViewCountError(f"View count must be numeric: {value!r}")
        parsed = int(cleaned)
    else:
        raise InvalidViewCountError(f"Invalid view count: {value!r}")

    if parsed < 0:
        raise InvalidViewCountError(f"View count cannot be negative: {parsed}")

    return parsed
