"""Slot availability from business hours, staffing, attendance and existing bookings"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple, Union

from booking_gateway.domain.booking_pricing import DEFAULT_SERVICE_DURATION_MINUTES
from booking_gateway.domain.exceptions import BookingAvailabilityError
from booking_gateway.domain.models import (
    AttendanceWindow,
    AvailabilitySnapshot,
    BookedSegment,
    BusinessHours,
    PaymentType,
    Provider,
    SelectedService,
    SlotConfidence,
    SlotSource,
    TimeSlot,
)
from booking_gateway.domain.pricing import parse_payment_type
from booking_gateway.utils.date_utils import (
    ONE_DAY,
    at_ph,
    day_bounds_ph,
    day_of_week,
    horizon_day_diff,
    start_of_day_ph,
    to_ph,
)

GENERAL_CATEGORY = "general"

Window = Tuple[datetime, datetime]


@dataclass
class _HoursMeta:
    windows: List[Window]
    window_minutes: float


@dataclass
class _ServiceUnit:
    id: int
    category: str
    duration: int
    hours: _HoursMeta


@dataclass
class _Capacity:
    employees: int
    owners: int

    @property
    def total(self) -> int:
        return self.employees + self.owners


def normalize_slot_interval(value) -> int:
    try:
        return max(5, int(value))
    except (TypeError, ValueError, OverflowError):
        return 30


def build_hours_windows(hours: BusinessHours, day: date) -> List[Window]:
    """
    Open windows for one day of business hours.

    open == close means open around the clock; open after close is an
    overnight schedule split at midnight.
    """
    if hours.is_closed:
        return []

    day_start = at_ph(day)
    day_end = day_start + ONE_DAY
    if hours.open_time == hours.close_time:
        return [(day_start, day_end)]

    open_at = at_ph(day, hours.open_time)
    close_at = at_ph(day, hours.close_time)
    if open_at < close_at:
        return [(open_at, close_at)]
    return [(open_at, day_end), (day_start, close_at)]


class _HoursResolver:
    """Per-category hours for one day, falling back to the general category"""

    def __init__(self, business_hours: Sequence[BusinessHours], day: date):
        self.business_hours = business_hours
        self.day = day
        self.weekday = day_of_week(day)
        self._cache: Dict[str, _HoursMeta] = {}

    def _find(self, category: str) -> Optional[BusinessHours]:
        for hours in self.business_hours:
            if hours.day_of_week == self.weekday and hours.category.lower() == category:
                return hours
        return None

    def __call__(self, category: str) -> _HoursMeta:
        key = category.lower()
        if key in self._cache:
            return self._cache[key]

        hours = self._find(key) or self._find(GENERAL_CATEGORY)
        if hours is None:
            meta = _HoursMeta(windows=[], window_minutes=0)
        else:
            windows = build_hours_windows(hours, self.day)
            minutes = sum((end - start).total_seconds() / 60 for start, end in windows)
            meta = _HoursMeta(windows=windows, window_minutes=minutes)
        self._cache[key] = meta
        return meta


def _qualifies(provider: Provider, category: str) -> bool:
    return not provider.specialties or any(s.lower() == category for s in provider.specialties)


def _is_clocked_in(windows: Optional[List[AttendanceWindow]], start: datetime, end: datetime) -> bool:
    if not windows:
        return False
    return any(w.time_in <= start and (w.time_out is None or w.time_out >= end) for w in windows)


def _is_within_windows(start: datetime, end: datetime, windows: List[Window]) -> bool:
    return any(start >= w_start and end <= w_end for w_start, w_end in windows)


def _apply_unassigned_load(employees: int, owners: int, unassigned: int) -> _Capacity:
    """Unassigned bookings occupy employees first, then owners"""
    employees = max(0, employees)
    owners = max(0, owners)
    remaining = max(0, unassigned)

    taken = min(remaining, employees)
    employees -= taken
    remaining -= taken
    if remaining > 0:
        owners = max(0, owners - remaining)

    return _Capacity(employees=employees, owners=owners)


def _segment_capacity(
    category: str,
    start: datetime,
    end: datetime,
    segments: Sequence[BookedSegment],
    employee_ids: List[int],
    owner_ids: List[int],
) -> _Capacity:
    if not employee_ids and not owner_ids:
        return _Capacity(employees=0, owners=0)

    eligible_employees = set(employee_ids)
    eligible_owners = set(owner_ids)
    busy_employees = set()
    busy_owners = set()
    unassigned = 0
    category = category.lower()

    for segment in segments:
        if segment.category.lower() != category:
            continue
        if not (start < segment.end and end > segment.start):
            continue

        if segment.served_by_employee_id and segment.served_by_employee_id in eligible_employees:
            busy_employees.add(segment.served_by_employee_id)
            continue
        if segment.served_by_owner_id and segment.served_by_owner_id in eligible_owners:
            busy_owners.add(segment.served_by_owner_id)
            continue
        unassigned += 1

    return _apply_unassigned_load(
        len(employee_ids) - len(busy_employees),
        len(owner_ids) - len(busy_owners),
        unassigned,
    )


def _expand_services(
    snapshot: AvailabilitySnapshot, services: Sequence[SelectedService], hours_for: _HoursResolver
) -> List[_ServiceUnit]:
    units = []
    for selected in services:
        record = snapshot.services.get(selected.id)
        if record is None:
            continue
        try:
            quantity = max(1, int(selected.quantity or 1))
        except (TypeError, ValueError):
            quantity = 1
        duration = record.duration or DEFAULT_SERVICE_DURATION_MINUTES
        for _ in range(quantity):
            units.append(_ServiceUnit(id=record.id, category=record.category, duration=duration, hours=hours_for(record.category)))
    return units


def compute_slots(
    snapshot: AvailabilitySnapshot,
    target_date: datetime,
    services: Sequence[SelectedService],
    now: datetime,
    slot_interval_minutes: Optional[int] = None,
    enforce_lead_time: bool = True,
    exclude_booking_id: Optional[int] = None,
) -> List[TimeSlot]:
    """
    List bookable start times for the selected services on one day.

    Services are laid back to back starting at each candidate slot, the
    most constrained one (fewest open minutes, then longest) first. Each
    must sit inside its category's opening hours and have a free qualified
    provider.

    Capacity source:
    - Future days: staff roster (TENTATIVE)
    - Today, inside the strict attendance window: clocked-in staff only
    - Today, later: clocked-in staff, falling back to roster (TENTATIVE)
    """
    if not services:
        return []

    policy = snapshot.policy
    day_diff = horizon_day_diff(target_date, now)
    if day_diff < 0 or day_diff >= policy.booking_horizon_days:
        return []
    if not policy.booking_v2_enabled and day_diff > 0:
        return []

    day, day_start, day_end = day_bounds_ph(target_date)
    now_local = to_ph(now)
    is_today = day == now_local.date()
    strict_cutoff = now_local + timedelta(minutes=max(0, policy.same_day_attendance_strict_minutes))
    interval = timedelta(
        minutes=normalize_slot_interval(
            slot_interval_minutes if slot_interval_minutes is not None else policy.slot_interval_minutes
        )
    )
    attendance = snapshot.attendance if is_today else {}

    hours_for = _HoursResolver(snapshot.business_hours, day)
    units = _expand_services(snapshot, services, hours_for)
    if not units:
        return []
    if any(unit.hours.window_minutes <= 0 for unit in units):
        return []

    units.sort(key=lambda u: (u.hours.window_minutes, -u.duration, u.id))

    segments = [
        s for s in snapshot.booked_segments
        if exclude_booking_id is None or s.booking_id != exclude_booking_id
    ]

    providers_by_category: Dict[str, Tuple[List[int], List[int]]] = {}

    def qualified_providers(category: str) -> Tuple[List[int], List[int]]:
        key = category.lower()
        if key not in providers_by_category:
            providers_by_category[key] = (
                [e.id for e in snapshot.employees if _qualifies(e, key)],
                [o.id for o in snapshot.owners if _qualifies(o, key)],
            )
        return providers_by_category[key]

    earliest_window_start = min(start for unit in units for start, _ in unit.hours.windows)
    latest_window_end = max(end for unit in units for _, end in unit.hours.windows)

    min_lead_start = now_local + timedelta(minutes=policy.min_lead_minutes) if enforce_lead_time else None
    slot_start = max(day_start, earliest_window_start)
    slot_end_limit = min(day_end, latest_window_end)
    slots: List[TimeSlot] = []

    while slot_start < slot_end_limit:
        if min_lead_start is not None and slot_start < min_lead_start:
            slot_start += interval
            continue

        cursor = slot_start
        employee_count: Optional[int] = None
        owner_count: Optional[int] = None
        fits = True
        in_strict_window = is_today and slot_start < strict_cutoff
        used_roster = not is_today

        for unit in units:
            unit_end = cursor + timedelta(minutes=unit.duration)
            if not _is_within_windows(cursor, unit_end, unit.hours.windows):
                fits = False
                break

            roster_employees, roster_owners = qualified_providers(unit.category)
            clocked_in = [
                employee_id for employee_id in roster_employees
                if _is_clocked_in(attendance.get(employee_id), cursor, unit_end)
            ]

            attendance_capacity = _segment_capacity(unit.category, cursor, unit_end, segments, clocked_in, roster_owners)
            roster_capacity = _segment_capacity(unit.category, cursor, unit_end, segments, roster_employees, roster_owners)

            chosen = None
            if not is_today:
                chosen = roster_capacity if roster_capacity.total > 0 else None
            elif in_strict_window:
                chosen = attendance_capacity if attendance_capacity.total > 0 else None
            elif attendance_capacity.total > 0:
                chosen = attendance_capacity
            elif roster_capacity.total > 0:
                chosen = roster_capacity
                used_roster = True

            if chosen is None:
                fits = False
                break

            employee_count = chosen.employees if employee_count is None else min(employee_count, chosen.employees)
            owner_count = chosen.owners if owner_count is None else min(owner_count, chosen.owners)
            cursor = unit_end

        if fits:
            slots.append(
                TimeSlot(
                    start_time=slot_start,
                    end_time=cursor,
                    available=True,
                    available_employee_count=max(0, employee_count or 0),
                    available_owner_count=max(0, owner_count or 0),
                    source=SlotSource.ROSTER if used_roster else SlotSource.ATTENDANCE,
                    confidence=SlotConfidence.TENTATIVE if used_roster else SlotConfidence.CONFIRMED,
                )
            )

        slot_start += interval

    return slots


def list_alternative_slots(
    snapshot: AvailabilitySnapshot,
    scheduled_at: datetime,
    services: Sequence[SelectedService],
    now: datetime,
    limit: int = 6,
) -> List[TimeSlot]:
    """Next available slots after the requested time, up to the booking horizon"""
    start_diff = max(0, horizon_day_diff(scheduled_at, now))
    today_start = start_of_day_ph(now)
    collected: List[TimeSlot] = []

    for day_offset in range(start_diff, snapshot.policy.booking_horizon_days):
        target_day = today_start + timedelta(days=day_offset)
        day_slots = compute_slots(snapshot, target_day, services, now)

        if day_offset == start_diff:
            day_slots = [slot for slot in day_slots if slot.start_time > scheduled_at]

        collected.extend(day_slots)
        if len(collected) >= limit:
            break

    return collected[:limit]


def validate_booking_or_raise(
    snapshot: AvailabilitySnapshot,
    scheduled_at: datetime,
    services: Sequence[SelectedService],
    payment_type: Union[str, PaymentType],
    is_public_booking: bool,
    now: datetime,
    is_walk_in: bool = False,
) -> None:
    """
    Check a requested booking against policy and live capacity.

    Raises:
        BookingAvailabilityError: with a machine-readable code; capacity
            failures carry alternative slots
    """
    policy = snapshot.policy
    payment = parse_payment_type(payment_type)

    if is_public_booking:
        if (payment == PaymentType.FULL and not policy.allow_public_full_payment) or (
            payment == PaymentType.DOWNPAYMENT and not policy.allow_public_downpayment
        ):
            raise BookingAvailabilityError(
                "PAYMENT_TYPE_NOT_ALLOWED",
                "Selected payment type is not available for this booking.",
            )

    if is_walk_in:
        return

    day_diff = horizon_day_diff(scheduled_at, now)
    if day_diff < 0 or day_diff >= policy.booking_horizon_days:
        raise BookingAvailabilityError("DATE_OUTSIDE_HORIZON", "Selected date is outside the booking window.")

    if scheduled_at < now + timedelta(minutes=policy.min_lead_minutes):
        raise BookingAvailabilityError(
            "LEAD_TIME_VIOLATION",
            "Selected time is too soon. Please choose a later slot.",
        )

    day_slots = compute_slots(snapshot, scheduled_at, services, now, slot_interval_minutes=policy.slot_interval_minutes)

    if not day_slots:
        raise BookingAvailabilityError(
            "NO_CAPACITY_FOR_SELECTED_SERVICES",
            "No capacity is available for the selected services.",
            list_alternative_slots(snapshot, scheduled_at, services, now),
        )

    if not any(slot.start_time == scheduled_at for slot in day_slots):
        raise BookingAvailabilityError(
            "SLOT_JUST_TAKEN",
            "The selected slot is no longer available.",
            list_alternative_slots(snapshot, scheduled_at, services, now),
        )
