"""Unit tests for booking totals and sale event discount selection"""

import pytest
from booking_gateway.domain.exceptions import InvalidAmountError, InvalidPaymentOptionError
from booking_gateway.domain.models import DiscountType, PackageScope, SaleEvent, ServiceScope
from booking_gateway.domain.pricing import (
    calculate_booking_total,
    get_applicable_discount,
    round_money,
    select_best_discount,
    to_cents,
)


def flat(title: str, value: float, service_ids=(), package_ids=()) -> SaleEvent:
    scope = PackageScope(frozenset(package_ids)) if package_ids else ServiceScope(frozenset(service_ids))
    return SaleEvent(title=title, discount_type=DiscountType.FIXED_AMOUNT, discount_value=value, scope=scope)


def percent(title: str, value: float, service_ids=(), package_ids=()) -> SaleEvent:
    scope = PackageScope(frozenset(package_ids)) if package_ids else ServiceScope(frozenset(service_ids))
    return SaleEvent(title=title, discount_type=DiscountType.PERCENTAGE, discount_value=value, scope=scope)


@pytest.mark.parametrize("subtotal", [0, 0.01, 1, 19.99, 100, 1234.56, 99999.99])
def test_cash_full_returns_subtotal(subtotal):
    """Cash, full payment and no voucher charges exactly the subtotal"""
    assert calculate_booking_total(subtotal, 0, "CASH", "FULL") == subtotal


def test_downpayment_is_half():
    assert calculate_booking_total(100, 0, "CASH", "DOWNPAYMENT") == 50


def test_qrph_adds_convenience_fee():
    assert calculate_booking_total(100, 0, "QRPH", "FULL") == 101.5


def test_qrph_fee_rounds_to_cent():
    """1999 cents + round(29.985) = 2029 cents"""
    assert calculate_booking_total(19.99, 0, "QRPH", "FULL") == 20.29


def test_voucher_larger_than_subtotal_clamps_to_zero():
    assert calculate_booking_total(50, 100, "CASH", "FULL") == 0


def test_voucher_applied_before_fee():
    assert calculate_booking_total(100, 20, "QRPH", "FULL") == 81.2


def test_qrph_downpayment_fee_on_half():
    """Fee is charged on the downpayment, not on the full total"""
    assert calculate_booking_total(100, 0, "QRPH", "DOWNPAYMENT") == 50.75


def test_downpayment_rounds_half_up():
    """999.5 cents rounds to 1000, then 15 cents fee"""
    assert calculate_booking_total(19.99, 0, "QRPH", "DOWNPAYMENT") == 10.15


def test_defaults_to_cash_full():
    assert calculate_booking_total(250.5) == 250.5


@pytest.mark.parametrize("method", ["CASH", "QRPH"])
@pytest.mark.parametrize("payment_type", ["FULL", "DOWNPAYMENT"])
@pytest.mark.parametrize("subtotal,voucher", [(0.01, 0), (33.33, 1.11), (10, 25), (777.77, 0.5), (0.05, 0)])
def test_total_never_negative_and_cent_exact(method, payment_type, subtotal, voucher):
    amount = calculate_booking_total(subtotal, voucher, method, payment_type)
    assert amount >= 0
    assert round(amount, 2) == amount


def test_non_finite_amount_rejected():
    with pytest.raises(InvalidAmountError):
        calculate_booking_total(float("nan"), 0, "CASH", "FULL")

    with pytest.raises(InvalidAmountError):
        calculate_booking_total(100, float("inf"), "CASH", "FULL")


def test_unknown_payment_option_rejected():
    with pytest.raises(InvalidPaymentOptionError):
        calculate_booking_total(100, 0, "GCASH", "FULL")

    with pytest.raises(InvalidPaymentOptionError):
        calculate_booking_total(100, 0, "CASH", "INSTALLMENT")


def test_to_cents_rounds_half_away_from_zero():
    assert to_cents(0.125) == 13
    assert to_cents(1.005) == 101
    assert round_money(2.675) == 2.68


def test_discount_none_when_no_scope_matches():
    events = [flat("Other Service", 50, service_ids=[2]), flat("Package Only", 50, package_ids=[10])]
    assert get_applicable_discount(1, None, 100, events) is None


def test_discount_none_without_events():
    assert get_applicable_discount(1, None, 100, []) is None


def test_larger_currency_discount_wins():
    """Flat 15 beats 10% of 100"""
    events = [percent("Ten Percent", 10, service_ids=[1]), flat("Fifteen Off", 15, service_ids=[1])]

    result = get_applicable_discount(1, None, 100, events)

    assert result is not None
    assert result.final_price == 85
    assert result.discount == 15
    assert result.reason == "Fifteen Off"


def test_percentage_can_beat_flat_on_large_price():
    events = [flat("Fifteen Off", 15, service_ids=[1]), percent("Ten Percent", 10, service_ids=[1])]

    result = get_applicable_discount(1, None, 1000, events)

    assert result.reason == "Ten Percent"
    assert result.final_price == 900


def test_discount_clamped_to_price():
    result = get_applicable_discount(1, None, 100, [flat("Huge", 500, service_ids=[1])])

    assert result.final_price == 0
    assert result.discount == 100


def test_tie_keeps_first_event():
    events = [flat("First", 20, service_ids=[1]), percent("Second", 20, service_ids=[1])]

    result = get_applicable_discount(1, None, 100, events)

    assert result.reason == "First"


def test_zero_discount_returns_none():
    assert get_applicable_discount(1, None, 100, [flat("Nothing", 0, service_ids=[1])]) is None


def test_zero_price_returns_none():
    assert get_applicable_discount(1, None, 0, [percent("Half", 50, service_ids=[1])]) is None


def test_package_items_only_match_package_events():
    events = [flat("Service Sale", 50, service_ids=[1]), flat("Package Sale", 30, package_ids=[10])]

    result = get_applicable_discount(1, 10, 100, events)

    assert result.reason == "Package Sale"
    assert result.final_price == 70

    assert get_applicable_discount(1, 11, 100, events) is None


def test_select_best_discount_returns_clamped_amount():
    event, amount = select_best_discount([percent("Over", 150, service_ids=[1])], 80)
    assert event.title == "Over"
    assert amount == 80


def test_select_best_discount_clamp_before_rank_keeps_first():
    """Once both events cover the full price they tie, and the first listed wins"""
    events = [flat("A", 100, service_ids=[1]), flat("B", 500, service_ids=[1])]

    event, amount = select_best_discount(events, 100, clamp_before_rank=True)
    assert event.title == "A"
    assert amount == 100

    event, amount = select_best_discount(events, 100)
    assert event.title == "B"
    assert amount == 100
