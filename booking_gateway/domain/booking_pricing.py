"""Canonical booking pricing built from catalog data, never from client-sent prices"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple, Union

from booking_gateway.domain.exceptions import InvalidSelectionError, VoucherError
from booking_gateway.domain.models import (
    AppliedVoucher,
    BookingPricingSnapshot,
    BookingServiceInput,
    CanonicalBookingService,
    CommissionBasis,
    PaymentMethod,
    PaymentType,
    PricingCatalog,
)
from booking_gateway.domain.pricing import (
    calculate_booking_total,
    events_for_package,
    events_for_service,
    parse_payment_type,
    round_money,
    select_best_discount,
)

DEFAULT_SERVICE_DURATION_MINUTES = 30


def normalize_voucher_code(code: str) -> str:
    return code.strip().upper()


def _normalize_selection(services: List[BookingServiceInput]) -> List[BookingServiceInput]:
    normalized = []
    for service in services:
        try:
            quantity = int(service.quantity or 1)
        except (TypeError, ValueError):
            quantity = 1
        normalized.append(
            BookingServiceInput(
                id=int(service.id),
                quantity=max(1, quantity),
                duration=service.duration,
                package_id=int(service.package_id) if service.package_id is not None else None,
                claimed_by_current_employee=service.claimed_by_current_employee,
            )
        )
    return normalized


def _package_ratios(catalog: PricingCatalog, package_ids: List[int]) -> Dict[int, Tuple[float, Optional[str]]]:
    """Share of each package's price left after its best package-level discount"""
    ratios: Dict[int, Tuple[float, Optional[str]]] = {}
    for package_id in package_ids:
        package = catalog.packages.get(package_id)
        if package is None:
            raise InvalidSelectionError("Selected package is invalid")

        best = select_best_discount(
            events_for_package(catalog.sale_events, package_id), package.price, clamp_before_rank=True
        )
        if best is None or package.price <= 0:
            ratios[package_id] = (1.0, None)
            continue

        event, discount = best
        discounted_price = max(0.0, package.price - discount)
        ratios[package_id] = (discounted_price / package.price, event.title)
    return ratios


def _apply_voucher(catalog: PricingCatalog, code: str, subtotal: float, now: datetime) -> Tuple[float, AppliedVoucher]:
    voucher = catalog.voucher
    if voucher is None or voucher.code != normalize_voucher_code(code):
        raise VoucherError("Voucher code not found")
    if voucher.business_id != catalog.business.id:
        raise VoucherError("Voucher is not valid for this business")
    if not voucher.is_active or voucher.used_by_id:
        raise VoucherError("Voucher is no longer available")
    if now > voucher.expires_at:
        raise VoucherError("Voucher has expired")
    if subtotal < voucher.minimum_amount:
        raise VoucherError(f"Minimum spend of {voucher.minimum_amount} required to use this voucher")

    if voucher.type == "PERCENTAGE":
        discount = round_money((subtotal * voucher.value) / 100)
    else:
        discount = round_money(voucher.value)
    return min(discount, subtotal), AppliedVoucher(id=voucher.id, code=voucher.code)


def build_booking_pricing_snapshot(
    catalog: PricingCatalog,
    scheduled_at: datetime,
    services: List[BookingServiceInput],
    payment_method: Union[str, PaymentMethod],
    payment_type: Union[str, PaymentType],
    now: datetime,
    voucher_code: Optional[str] = None,
) -> BookingPricingSnapshot:
    """
    Price a booking from the business catalog.

    Package discounts are computed once per package and spread across its
    items proportionally to their package item price. Standalone services
    use their own best sale event. The voucher applies to the subtotal,
    then calculate_booking_total derives the amount to pay.
    """
    selection = _normalize_selection(services)
    if not selection:
        raise InvalidSelectionError("At least one service is required")

    service_ids = set(s.id for s in selection)
    package_ids = sorted(set(s.package_id for s in selection if s.package_id is not None))

    if any(service_id not in catalog.services for service_id in service_ids):
        raise InvalidSelectionError("One or more selected services are invalid")
    if any(package_id not in catalog.packages for package_id in package_ids):
        raise InvalidSelectionError("One or more selected packages are invalid")

    ratios = _package_ratios(catalog, package_ids)
    use_original_price = catalog.business.commission_calculation_basis == CommissionBasis.ORIGINAL_PRICE

    canonical: List[CanonicalBookingService] = []
    for selected in selection:
        record = catalog.services[selected.id]
        duration = record.duration or selected.duration or DEFAULT_SERVICE_DURATION_MINUTES

        if selected.package_id is not None:
            item_price = catalog.package_item_prices.get((selected.package_id, selected.id))
            if item_price is None:
                raise InvalidSelectionError("Selected package service is invalid")

            ratio, reason = ratios[selected.package_id]
            original_price = round_money(item_price)
            price = round_money(original_price * ratio)
            discount = round_money(original_price - price)
            discount_reason = reason if discount > 0 else None
        else:
            original_price = round_money(record.price)
            best = select_best_discount(
                events_for_service(catalog.sale_events, record.id), original_price, clamp_before_rank=True
            )
            discount = round_money(best[1]) if best else 0.0
            price = round_money(max(0.0, original_price - discount))
            discount_reason = best[0].title if best else None

        canonical.append(
            CanonicalBookingService(
                id=record.id,
                name=record.name,
                quantity=selected.quantity,
                duration=duration,
                price=price,
                original_price=original_price,
                discount=discount,
                discount_reason=discount_reason,
                commission_base=round_money(original_price if use_original_price else price),
                package_id=selected.package_id,
                claimed_by_current_employee=selected.claimed_by_current_employee,
            )
        )

    subtotal = round_money(sum(s.price * s.quantity for s in canonical))

    voucher_discount = 0.0
    applied_voucher = None
    if voucher_code:
        voucher_discount, applied_voucher = _apply_voucher(catalog, voucher_code, subtotal, now)

    payment = parse_payment_type(payment_type)
    grand_total = round_money(max(0.0, subtotal - voucher_discount))
    downpayment_amount = round_money(grand_total * 0.5) if payment == PaymentType.DOWNPAYMENT else None
    amount_to_pay = calculate_booking_total(subtotal, voucher_discount, payment_method, payment)

    total_duration = sum(s.duration * s.quantity for s in canonical)

    return BookingPricingSnapshot(
        business=catalog.business,
        services=canonical,
        subtotal=subtotal,
        voucher_discount=voucher_discount,
        grand_total=grand_total,
        downpayment_amount=downpayment_amount,
        amount_to_pay=amount_to_pay,
        total_duration=total_duration,
        estimated_end=scheduled_at + timedelta(minutes=total_duration),
        voucher=applied_voucher,
    )
