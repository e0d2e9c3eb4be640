"""Pricing endpoints - booking totals, discount selection and catalog quotes"""

import time
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from booking_gateway.api.dependencies import get_now, get_request_id
from booking_gateway.api.v1.schemas import (
    BookingTotalRequest,
    BookingTotalResponse,
    DiscountRequest,
    DiscountResponse,
    DiscountResultSchema,
    QuoteRequest,
    QuoteResponse,
    QuotedServiceSchema,
)
from booking_gateway.domain.booking_pricing import build_booking_pricing_snapshot
from booking_gateway.domain.exceptions import InvalidSelectionError, VoucherError
from booking_gateway.domain.models import BookingServiceInput
from booking_gateway.domain.pricing import calculate_booking_total, get_applicable_discount
from booking_gateway.infrastructure.database.repositories import BusinessRepository, CatalogRepository
from booking_gateway.infrastructure.database.session import get_db
from booking_gateway.infrastructure.observability.logging import log_quote
from booking_gateway.infrastructure.observability.metrics import record_quote

router = APIRouter()


@router.post("/pricing/total", response_model=BookingTotalResponse)
def booking_total(request_body: BookingTotalRequest):
    """Amount to charge for a subtotal, voucher, payment method and payment type"""
    amount = calculate_booking_total(
        request_body.subtotal,
        request_body.voucher_discount,
        request_body.payment_method,
        request_body.payment_type,
    )
    record_quote(request_body.payment_method.value, request_body.payment_type.value, amount)
    return BookingTotalResponse(amount=amount)


@router.post("/pricing/discount", response_model=DiscountResponse)
def applicable_discount(request_body: DiscountRequest):
    """Best sale event discount for one line item"""
    result = get_applicable_discount(
        request_body.service_id,
        request_body.package_id,
        request_body.price,
        [event.to_domain() for event in request_body.sale_events],
    )
    if result is None:
        return DiscountResponse(discount=None)
    return DiscountResponse(
        discount=DiscountResultSchema(final_price=result.final_price, discount=result.discount, reason=result.reason)
    )


@router.post("/businesses/{business_slug}/quote", response_model=QuoteResponse)
def quote_booking(
    business_slug: str,
    request_body: QuoteRequest,
    request: Request,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """
    Price a booking from the stored catalog.

    Client-sent prices are never used: services, packages, sale events and
    the voucher are read from the database in one session.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    business = BusinessRepository(db).get_by_slug(business_slug)
    if business is None:
        raise HTTPException(status_code=404, detail="Business not found")

    services = [
        BookingServiceInput(id=s.id, quantity=s.quantity, duration=s.duration, package_id=s.package_id)
        for s in request_body.services
    ]

    try:
        catalog = CatalogRepository(db).load_pricing_catalog(
            business,
            service_ids=[s.id for s in services],
            package_ids=[s.package_id for s in services if s.package_id is not None],
            now=now,
            voucher_code=request_body.voucher_code,
        )
        snapshot = build_booking_pricing_snapshot(
            catalog,
            scheduled_at=request_body.scheduled_at,
            services=services,
            payment_method=request_body.payment_method,
            payment_type=request_body.payment_type,
            now=now,
            voucher_code=request_body.voucher_code,
        )

    except (InvalidSelectionError, VoucherError) as e:
        logging.warning(f"Quote rejected: {e}", extra={"request_id": request_id, "business_slug": business_slug})
        raise HTTPException(status_code=422, detail=str(e))

    duration_ms = (time.time() - start_time) * 1000
    record_quote(request_body.payment_method.value, request_body.payment_type.value, snapshot.amount_to_pay)
    log_quote(
        request_id,
        business_slug,
        request_body.payment_method.value,
        request_body.payment_type.value,
        snapshot.amount_to_pay,
        duration_ms,
    )

    return QuoteResponse(
        business_slug=snapshot.business.slug,
        services=[
            QuotedServiceSchema(
                id=s.id,
                name=s.name,
                quantity=s.quantity,
                duration=s.duration,
                package_id=s.package_id,
                price=s.price,
                original_price=s.original_price,
                discount=s.discount,
                discount_reason=s.discount_reason,
                commission_base=s.commission_base,
            )
            for s in snapshot.services
        ],
        subtotal=snapshot.subtotal,
        voucher_discount=snapshot.voucher_discount,
        voucher_code=snapshot.voucher.code if snapshot.voucher else None,
        grand_total=snapshot.grand_total,
        downpayment_amount=snapshot.downpayment_amount,
        amount_to_pay=snapshot.amount_to_pay,
        total_duration=snapshot.total_duration,
        estimated_end=snapshot.estimated_end,
    )
