"""Per-business booking policy with safe defaults"""

import math
from typing import Any, Mapping, Optional

from booking_gateway.domain.models import BookingPolicy, PaymentType

DEFAULT_BOOKING_POLICY = BookingPolicy()


def normalize_public_payment_type(value: Any) -> PaymentType:
    """Anything other than DOWNPAYMENT falls back to FULL"""
    return PaymentType.DOWNPAYMENT if value in ("DOWNPAYMENT", PaymentType.DOWNPAYMENT) else PaymentType.FULL


def _whole_number(value: Any, minimum: int, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return max(minimum, math.floor(value))


def _flag(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def normalize_booking_policy(policy: Optional[Mapping[str, Any]]) -> BookingPolicy:
    """
    Build a BookingPolicy from possibly incomplete stored settings.

    Numbers are floored and clamped to their minimum (horizon 1 day, lead 0,
    interval 5 minutes, strict window 0). Missing or non-finite values use
    the defaults.
    """
    if not policy:
        return BookingPolicy()

    defaults = DEFAULT_BOOKING_POLICY
    return BookingPolicy(
        booking_horizon_days=_whole_number(policy.get("booking_horizon_days"), 1, defaults.booking_horizon_days),
        min_lead_minutes=_whole_number(policy.get("min_lead_minutes"), 0, defaults.min_lead_minutes),
        slot_interval_minutes=_whole_number(policy.get("slot_interval_minutes"), 5, defaults.slot_interval_minutes),
        same_day_attendance_strict_minutes=_whole_number(
            policy.get("same_day_attendance_strict_minutes"), 0, defaults.same_day_attendance_strict_minutes
        ),
        allow_public_full_payment=_flag(policy.get("allow_public_full_payment"), defaults.allow_public_full_payment),
        allow_public_downpayment=_flag(policy.get("allow_public_downpayment"), defaults.allow_public_downpayment),
        default_public_payment_type=normalize_public_payment_type(policy.get("default_public_payment_type")),
        booking_v2_enabled=_flag(policy.get("booking_v2_enabled"), defaults.booking_v2_enabled),
    )
