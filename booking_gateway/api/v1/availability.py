"""Availability endpoints - slot listing and booking validation"""

import logging
from datetime import datetime, timedelta
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from booking_gateway.api.dependencies import get_now, get_request_id
from booking_gateway.api.v1.schemas import (
    AvailabilityErrorResponse,
    SlotsRequest,
    SlotsResponse,
    TimeSlotSchema,
    ValidateBookingRequest,
    ValidateBookingResponse,
)
from booking_gateway.domain.availability import compute_slots, validate_booking_or_raise
from booking_gateway.domain.exceptions import BookingAvailabilityError
from booking_gateway.domain.models import SelectedService, TimeSlot
from booking_gateway.infrastructure.database.repositories import BusinessRepository, ScheduleRepository, to_policy
from booking_gateway.infrastructure.database.session import get_db
from booking_gateway.utils.date_utils import ONE_DAY, at_ph, start_of_day_ph

router = APIRouter()


def to_slot_schemas(slots: List[TimeSlot]) -> List[TimeSlotSchema]:
    return [
        TimeSlotSchema(
            start_time=slot.start_time,
            end_time=slot.end_time,
            available=slot.available,
            available_employee_count=slot.available_employee_count,
            available_owner_count=slot.available_owner_count,
            source=slot.source,
            confidence=slot.confidence,
        )
        for slot in slots
    ]


@router.post("/businesses/{business_slug}/slots", response_model=SlotsResponse)
def list_slots(
    business_slug: str,
    request_body: SlotsRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Bookable start times for the selected services on one Philippine calendar day"""
    business = BusinessRepository(db).get_by_slug(business_slug)
    if business is None:
        raise HTTPException(status_code=404, detail="Business not found")

    day_start = at_ph(request_body.day)
    services = [SelectedService(id=s.id, quantity=s.quantity) for s in request_body.services]

    snapshot = ScheduleRepository(db).load_availability_snapshot(
        business,
        range_start=day_start,
        range_end=day_start + ONE_DAY,
        now=now,
        service_ids=[s.id for s in services],
    )
    slots = compute_slots(snapshot, day_start, services, now)

    return SlotsResponse(day=request_body.day, slots=to_slot_schemas(slots))


@router.post(
    "/businesses/{business_slug}/bookings/validate",
    response_model=ValidateBookingResponse,
    responses={409: {"model": AvailabilityErrorResponse}},
)
def validate_booking(
    business_slug: str,
    request_body: ValidateBookingRequest,
    request: Request,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """
    Check that a requested booking still fits policy and capacity.

    Returns 409 with a machine-readable code and alternative slots when it
    does not.
    """
    request_id = get_request_id(request)

    business = BusinessRepository(db).get_by_slug(business_slug)
    if business is None:
        raise HTTPException(status_code=404, detail="Business not found")

    policy = to_policy(business)
    services = [SelectedService(id=s.id, quantity=s.quantity) for s in request_body.services]
    horizon_end = start_of_day_ph(now) + timedelta(days=policy.booking_horizon_days)

    snapshot = ScheduleRepository(db).load_availability_snapshot(
        business,
        range_start=start_of_day_ph(request_body.scheduled_at),
        range_end=horizon_end,
        now=now,
        service_ids=[s.id for s in services],
    )

    try:
        validate_booking_or_raise(
            snapshot,
            scheduled_at=request_body.scheduled_at,
            services=services,
            payment_type=request_body.payment_type,
            is_public_booking=request_body.is_public_booking,
            now=now,
            is_walk_in=request_body.is_walk_in,
        )

    except BookingAvailabilityError as e:
        logging.info(
            f"Booking rejected: {e.code}",
            extra={"request_id": request_id, "business_slug": business_slug, "code": e.code},
        )
        body = AvailabilityErrorResponse(code=e.code, message=e.message, alternatives=to_slot_schemas(e.alternatives))
        return JSONResponse(status_code=409, content=body.model_dump(mode="json"))

    return ValidateBookingResponse(valid=True)
