"""
Money and calendar helpers shared by the wallet and payment domains.

Amounts are Decimals with two places; gateways report minor units (paise).
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Tuple

from fleet_wallet.app.core.exceptions import InvalidAmountError

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
MINOR_UNITS_PER_MAJOR = Decimal(100)


def to_decimal(value: Any) -> Decimal:
    """
    Convert a numeric value to a 2-place Decimal. None counts as zero.

    Raises:
        InvalidAmountError: value is not a finite number
    """
    if value is None:
        return ZERO
    try:
        amount = Decimal(str(value))  # str() first so floats keep their printed value
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(value, message="Amount is not a number")
    if not amount.is_finite():
        raise InvalidAmountError(value, message="Amount is not a number")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def minor_to_major(value: Any) -> Decimal:
    """150000 (paise) -> Decimal('1500.00')."""
    return to_decimal(Decimal(str(value)) / MINOR_UNITS_PER_MAJOR)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def vendor_timezone(utc_offset_minutes: int) -> timezone:
    return timezone(timedelta(minutes=utc_offset_minutes))


def local_today(utc_offset_minutes: int) -> date:
    """Today's calendar date at the vendor's fixed UTC offset."""
    return utc_now().astimezone(vendor_timezone(utc_offset_minutes)).date()


def local_day_window(local_date: date, utc_offset_minutes: int) -> Tuple[datetime, datetime]:
    """
    UTC instants bounding a vendor-local calendar day, both inclusive.

    Example (IST, +330): 2025-01-15 ->
        (2025-01-14 18:30:00 UTC, 2025-01-15 18:29:59.999999 UTC)
    """
    start_local = datetime.combine(local_date, time.min, tzinfo=vendor_timezone(utc_offset_minutes))
    start = start_local.astimezone(timezone.utc)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    return start, end
