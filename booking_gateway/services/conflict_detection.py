"""Revalidate future bookings and record conflict signals in the outbox"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from booking_gateway.config import settings
from booking_gateway.domain.conflicts import scan_future_bookings, signal_payload
from booking_gateway.domain.exceptions import BusinessNotFoundError
from booking_gateway.domain.models import ConflictTrigger, ScanResult
from booking_gateway.infrastructure.database.repositories import (
    BusinessRepository,
    OutboxRepository,
    ScheduleRepository,
    to_policy,
)
from booking_gateway.infrastructure.observability.logging import log_conflict_scan
from booking_gateway.infrastructure.observability.metrics import record_conflict_scan
from booking_gateway.utils.date_utils import start_of_day_ph


@dataclass
class BusinessScan:
    business_id: str
    business_slug: str
    result: ScanResult

    @property
    def payloads(self) -> List[dict]:
        return [signal_payload(signal) for signal in self.result.signals]


@dataclass
class SweepResult:
    scans: List[BusinessScan] = field(default_factory=list)

    @property
    def total_scanned(self) -> int:
        return sum(scan.result.scanned for scan in self.scans)

    @property
    def total_conflicts(self) -> int:
        return sum(scan.result.conflicts for scan in self.scans)


def detect_and_emit_future_booking_conflicts(
    db: Session,
    trigger: ConflictTrigger,
    now: datetime,
    business_id: Optional[str] = None,
    business_slug: Optional[str] = None,
    changed_date: Optional[datetime] = None,
    max_bookings_to_scan: Optional[int] = None,
) -> BusinessScan:
    """
    Re-validate accepted bookings from `changed_date` (or now) to the horizon.

    Flow:
    1. Resolve business and policy
    2. Load accepted bookings in the window, earliest first
    3. Skip bookings already signalled today
    4. Scan against a snapshot of hours, staffing and booked capacity
    5. Add one outbox message per new conflict (caller commits)

    Raises:
        BusinessNotFoundError: no business matches the id or slug
    """
    started = time.time()

    business_repo = BusinessRepository(db)
    business = business_repo.find(business_id=business_id, business_slug=business_slug)
    if business is None:
        raise BusinessNotFoundError("Business not found")

    policy = to_policy(business)
    today_start = start_of_day_ph(now)
    horizon_end = today_start + timedelta(days=policy.booking_horizon_days)
    start_at = max(start_of_day_ph(changed_date), now) if changed_date else now
    limit = max_bookings_to_scan if max_bookings_to_scan is not None else settings.conflict_scan_max_bookings

    schedule_repo = ScheduleRepository(db)
    bookings = schedule_repo.list_future_accepted_bookings(business.id, start_at, horizon_end, limit)
    if not bookings:
        return BusinessScan(business_id=business.id, business_slug=business.slug, result=ScanResult(scanned=0))

    outbox_repo = OutboxRepository(db)
    already_signaled = outbox_repo.signaled_booking_ids(business.id, since=today_start)
    snapshot = schedule_repo.load_availability_snapshot(
        business,
        range_start=start_of_day_ph(start_at),
        range_end=horizon_end,
        now=now,
    )

    result = scan_future_bookings(snapshot, bookings, already_signaled, trigger, now)
    for signal in result.signals:
        outbox_repo.create_conflict_message(business.id, signal)

    log_conflict_scan(business.id, business.slug, trigger.value, result.scanned, result.conflicts)
    record_conflict_scan(trigger.value, result.scanned, result.conflicts, time.time() - started)

    return BusinessScan(business_id=business.id, business_slug=business.slug, result=result)


def sweep_booking_conflicts(db: Session, now: datetime, batch_size: Optional[int] = None) -> SweepResult:
    """Scheduled revalidation across v2-enabled businesses"""
    limit = batch_size if batch_size is not None else settings.conflict_sweep_batch_size
    sweep = SweepResult()

    for business in BusinessRepository(db).list_for_conflict_sweep(limit):
        sweep.scans.append(
            detect_and_emit_future_booking_conflicts(
                db,
                trigger=ConflictTrigger.MANUAL_REVALIDATION,
                now=now,
                business_id=business.id,
            )
        )

    return sweep
