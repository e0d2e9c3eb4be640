"""Booking money math - totals in integer cents and sale event discount selection"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from booking_gateway.domain.exceptions import InvalidAmountError, InvalidPaymentOptionError
from booking_gateway.domain.models import (
    DiscountResult,
    DiscountType,
    PackageScope,
    PaymentMethod,
    PaymentType,
    SaleEvent,
    ServiceScope,
)

Amount = Union[int, float, Decimal]

# Convenience fee per payment method, as a fraction of the amount charged
CONVENIENCE_FEE_RATES = {
    PaymentMethod.CASH: Decimal("0"),
    PaymentMethod.QRPH: Decimal("0.015"),
}

DOWNPAYMENT_RATE = Decimal("0.5")


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(amount: Amount) -> int:
    """Convert a money amount to integer cents, rounding half away from zero"""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if not value.is_finite():
        raise InvalidAmountError(f"Amount must be a finite number, got {amount!r}")
    return _round_half_up(value * 100)


def from_cents(cents: int) -> float:
    return cents / 100


def round_money(amount: Amount) -> float:
    """Round a money amount to the nearest cent"""
    return from_cents(to_cents(amount))


def parse_payment_method(value: Union[str, PaymentMethod]) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError as e:
        raise InvalidPaymentOptionError(f"Unsupported payment method: {value!r}") from e


def parse_payment_type(value: Union[str, PaymentType]) -> PaymentType:
    try:
        return PaymentType(value)
    except ValueError as e:
        raise InvalidPaymentOptionError(f"Unsupported payment type: {value!r}") from e


def calculate_booking_total(
    subtotal: Amount,
    voucher_discount: Amount = 0,
    payment_method: Union[str, PaymentMethod] = PaymentMethod.CASH,
    payment_type: Union[str, PaymentType] = PaymentType.FULL,
) -> float:
    """
    Compute the amount the customer pays for a booking.

    Every quantity is converted to cents once, so the only rounding
    happens at the downpayment split and at the convenience fee.

    Order of operations:
    1. Subtract the voucher (never below zero)
    2. Take 50% for DOWNPAYMENT
    3. Add the payment method's convenience fee (QRPH: 1.5%)

    Example:
        19.99 via QRPH, FULL → 1999 cents + round(29.985) = 2029 → 20.29
    """
    method = parse_payment_method(payment_method)
    payment = parse_payment_type(payment_type)

    subtotal_cents = to_cents(subtotal)
    voucher_cents = to_cents(voucher_discount)

    after_discount_cents = max(0, subtotal_cents - voucher_cents)

    if payment == PaymentType.DOWNPAYMENT:
        amount_cents = _round_half_up(Decimal(after_discount_cents) * DOWNPAYMENT_RATE)
    else:
        amount_cents = after_discount_cents

    fee_rate = CONVENIENCE_FEE_RATES[method]
    if fee_rate:
        amount_cents += _round_half_up(Decimal(amount_cents) * fee_rate)

    return from_cents(amount_cents)


def discount_amount(event: SaleEvent, price: float) -> float:
    """Currency value of a sale event against a price (unclamped)"""
    if event.discount_type == DiscountType.PERCENTAGE:
        return (price * event.discount_value) / 100
    return event.discount_value


def select_best_discount(
    events: Sequence[SaleEvent], price: float, clamp_before_rank: bool = False
) -> Optional[Tuple[SaleEvent, float]]:
    """
    Pick the event with the largest currency discount.

    Percentage and fixed events compete on the resulting amount. Ties keep
    the first event in input order. The winning discount is clamped to
    the price. With clamp_before_rank, amounts are capped at the price
    before ranking, so every event covering the full price ties and the
    first one wins.
    """
    if not events:
        return None

    def amount(event: SaleEvent) -> float:
        value = discount_amount(event, price)
        return min(value, price) if clamp_before_rank else value

    best = max(events, key=amount)
    return best, min(discount_amount(best, price), price)


def events_for_service(events: Iterable[SaleEvent], service_id: int) -> List[SaleEvent]:
    return [e for e in events if isinstance(e.scope, ServiceScope) and service_id in e.scope.service_ids]


def events_for_package(events: Iterable[SaleEvent], package_id: int) -> List[SaleEvent]:
    return [e for e in events if isinstance(e.scope, PackageScope) and package_id in e.scope.package_ids]


def get_applicable_discount(
    service_id: int,
    package_id: Optional[int],
    price: float,
    sale_events: Sequence[SaleEvent],
) -> Optional[DiscountResult]:
    """
    Best sale event discount for one line item, or None when nothing applies.

    Items inside a package only match package-scoped events; standalone
    items only match service-scoped events. A zero discount is reported
    as None rather than as a result.
    """
    if not sale_events:
        return None

    if package_id:
        candidates = events_for_package(sale_events, package_id)
    else:
        candidates = events_for_service(sale_events, service_id)

    selected = select_best_discount(candidates, price)
    if selected is None:
        return None

    event, discount = selected
    if discount > 0:
        return DiscountResult(final_price=price - discount, discount=discount, reason=event.title)
    return None
