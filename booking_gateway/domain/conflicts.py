"""Booking conflict detection - re-validate future bookings against current staffing"""

from collections import Counter
from datetime import datetime
from typing import AbstractSet, Sequence

from booking_gateway.domain.availability import compute_slots
from booking_gateway.domain.models import (
    AvailabilitySnapshot,
    ConflictSignal,
    ConflictTrigger,
    FutureBooking,
    ScanResult,
    SelectedService,
)
from booking_gateway.utils.date_utils import format_ph

CONFLICT_EVENT_TYPE = "BOOKING_STAFFING_CONFLICT_DETECTED"
CONFLICT_REASON = "Future booking no longer matches currently available staffing/capacity."


def booking_still_fits(snapshot: AvailabilitySnapshot, booking: FutureBooking, now: datetime) -> bool:
    """True when a slot still starts exactly at the booking's scheduled time"""
    quantities = Counter(booking.service_ids)
    services = [SelectedService(id=service_id, quantity=qty) for service_id, qty in quantities.items()]

    slots = compute_slots(
        snapshot,
        booking.scheduled_at,
        services,
        now,
        enforce_lead_time=False,
        exclude_booking_id=booking.id,
    )
    return any(slot.start_time == booking.scheduled_at for slot in slots)


def scan_future_bookings(
    snapshot: AvailabilitySnapshot,
    bookings: Sequence[FutureBooking],
    already_signaled: AbstractSet[int],
    trigger: ConflictTrigger,
    now: datetime,
) -> ScanResult:
    """
    Find bookings whose time slot is no longer available.

    Detection only: the caller decides how to persist or act on the
    signals. A booking is signalled at most once per scan, and never when
    it is in `already_signaled`. Bookings without a time or without active
    services are skipped.
    """
    signaled = set(already_signaled)
    signals = []

    for booking in bookings:
        if booking.id in signaled:
            continue
        if booking.scheduled_at is None or not booking.service_ids:
            continue
        if booking_still_fits(snapshot, booking, now):
            continue

        signals.append(
            ConflictSignal(
                booking_id=booking.id,
                scheduled_at=booking.scheduled_at,
                customer_name=booking.customer_name,
                trigger=trigger,
                reason=CONFLICT_REASON,
                detected_at=now,
            )
        )
        signaled.add(booking.id)

    return ScanResult(scanned=len(bookings), signals=signals)


def signal_payload(signal: ConflictSignal) -> dict:
    """JSON body stored on the outbox message"""
    return {
        "bookingId": signal.booking_id,
        "scheduledAt": signal.scheduled_at.isoformat(),
        "scheduledLabel": format_ph(signal.scheduled_at, "PPP p"),
        "customerName": signal.customer_name,
        "trigger": signal.trigger.value,
        "reason": signal.reason,
        "detectedAt": signal.detected_at.isoformat(),
    }
