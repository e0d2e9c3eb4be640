"""PUT /v1/businesses/{slug}/business-hours - replace hours and revalidate bookings"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from booking_gateway.api.dependencies import get_conflict_webhook_client, get_now, get_request_id
from booking_gateway.api.v1.conflicts import schedule_signal_delivery, to_scan_response
from booking_gateway.api.v1.schemas import (
    BusinessHoursSchema,
    BusinessHoursUpdateRequest,
    BusinessHoursUpdateResponse,
)
from booking_gateway.domain.models import BusinessHours, ConflictTrigger
from booking_gateway.infrastructure.clients.conflict_webhook import ConflictWebhookClient
from booking_gateway.infrastructure.database.repositories import BusinessRepository
from booking_gateway.infrastructure.database.session import get_db
from booking_gateway.services.conflict_detection import detect_and_emit_future_booking_conflicts
from booking_gateway.utils.date_utils import day_of_week, start_of_day_ph

router = APIRouter()


def _hours_by_day(hours: List[BusinessHours]) -> Dict[int, Set[Tuple]]:
    grouped: Dict[int, Set[Tuple]] = {}
    for h in hours:
        grouped.setdefault(h.day_of_week, set()).add(
            (h.category.lower(), h.open_time, h.close_time, h.is_closed)
        )
    return grouped


def changed_days(previous: List[BusinessHours], current: List[BusinessHours]) -> List[int]:
    """Weekdays (0 = Sunday) whose hours differ between the two schedules"""
    before = _hours_by_day(previous)
    after = _hours_by_day(current)
    return sorted(day for day in set(before) | set(after) if before.get(day) != after.get(day))


def next_occurrence(days: List[int], now: datetime) -> Optional[datetime]:
    """Start of the nearest day (today included) falling on one of `days`"""
    today_start = start_of_day_ph(now)
    for offset in range(7):
        candidate = today_start + timedelta(days=offset)
        if day_of_week(candidate.date()) in days:
            return candidate
    return None


@router.put("/businesses/{business_slug}/business-hours", response_model=BusinessHoursUpdateResponse)
def update_business_hours(
    business_slug: str,
    request_body: BusinessHoursUpdateRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    webhook_client: ConflictWebhookClient = Depends(get_conflict_webhook_client),
):
    """
    Replace a business's opening hours.

    Future bookings are then revalidated from the earliest upcoming day
    whose hours changed; conflicts are recorded, not auto-cancelled.
    """
    request_id = get_request_id(request)

    business_repo = BusinessRepository(db)
    business = business_repo.get_by_slug(business_slug)
    if business is None:
        raise HTTPException(status_code=404, detail="Business not found")

    new_hours = [
        BusinessHours(
            day_of_week=h.day_of_week,
            category=h.category,
            open_time=h.open_time,
            close_time=h.close_time,
            is_closed=h.is_closed,
        )
        for h in request_body.hours
    ]

    try:
        previous = business_repo.replace_business_hours(business, new_hours)
        days = changed_days(previous, new_hours)

        scan = None
        changed_date = next_occurrence(days, now) if days else None
        if changed_date is not None:
            scan = detect_and_emit_future_booking_conflicts(
                db,
                trigger=ConflictTrigger.BUSINESS_HOURS_UPDATED,
                now=now,
                business_id=business.id,
                changed_date=changed_date,
            )

        db.commit()

    except Exception as e:
        db.rollback()
        logging.error(f"Business hours update failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if scan is not None:
        schedule_signal_delivery(background_tasks, webhook_client, scan)

    return BusinessHoursUpdateResponse(
        hours=[BusinessHoursSchema(**vars(h)) for h in new_hours],
        changed_days=days,
        conflict_scan=to_scan_response(scan) if scan is not None else None,
    )
