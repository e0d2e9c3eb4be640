"""Unit tests for slot computation and booking validation"""

import pytest
from datetime import date, datetime, timedelta
from booking_gateway.domain.availability import (
    build_hours_windows,
    compute_slots,
    list_alternative_slots,
    validate_booking_or_raise,
)
from booking_gateway.domain.booking_pricing import DEFAULT_SERVICE_DURATION_MINUTES
from booking_gateway.domain.exceptions import BookingAvailabilityError
from booking_gateway.domain.models import (
    AttendanceWindow,
    AvailabilitySnapshot,
    BookedSegment,
    BookingPolicy,
    BusinessHours,
    CatalogService,
    Provider,
    SelectedService,
    SlotConfidence,
    SlotSource,
)
from booking_gateway.utils.date_utils import PH_TZ, at_ph

# Thursday
NOW = datetime(2026, 2, 12, 9, 0, tzinfo=PH_TZ)
TODAY = date(2026, 2, 12)
TOMORROW = date(2026, 2, 13)

HAIRCUT = SelectedService(id=1)


def make_snapshot(**overrides) -> AvailabilitySnapshot:
    """One employee, open 09:00-12:00 every day, haircut 60 min and manicure 30 min"""
    values = dict(
        business_id="biz-1",
        policy=BookingPolicy(),
        business_hours=[BusinessHours(day_of_week=day, category="GENERAL", open_time="09:00", close_time="12:00") for day in range(7)],
        employees=[Provider(id=1)],
        owners=[],
        services={
            1: CatalogService(id=1, name="Haircut", price=500, duration=60, category="hair"),
            2: CatalogService(id=2, name="Manicure", price=300, duration=30, category="nails"),
        },
    )
    values.update(overrides)
    return AvailabilitySnapshot(**values)


def starts(slots):
    return [slot.start_time.strftime("%H:%M") for slot in slots]


def test_missing_duration_uses_booking_default():
    """Services without a duration take the same default length as in pricing"""
    consult = CatalogService(id=3, name="Consult", price=0, duration=None, category="hair")
    slots = compute_slots(make_snapshot(services={3: consult}), at_ph(TOMORROW), [SelectedService(id=3)], NOW)

    assert DEFAULT_SERVICE_DURATION_MINUTES == 30
    assert starts(slots) == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]
    assert slots[0].end_time == at_ph(TOMORROW, "09:30")


def test_hours_windows_regular_day():
    hours = BusinessHours(day_of_week=5, category="GENERAL", open_time="09:00", close_time="18:00")
    assert build_hours_windows(hours, TOMORROW) == [(at_ph(TOMORROW, "09:00"), at_ph(TOMORROW, "18:00"))]


def test_hours_windows_open_equals_close_is_full_day():
    hours = BusinessHours(day_of_week=5, category="GENERAL", open_time="00:00", close_time="00:00")
    assert build_hours_windows(hours, TOMORROW) == [(at_ph(TOMORROW), at_ph(TOMORROW + timedelta(days=1)))]


def test_hours_windows_overnight_split_at_midnight():
    hours = BusinessHours(day_of_week=5, category="GENERAL", open_time="22:00", close_time="02:00")

    assert build_hours_windows(hours, TOMORROW) == [
        (at_ph(TOMORROW, "22:00"), at_ph(TOMORROW + timedelta(days=1))),
        (at_ph(TOMORROW), at_ph(TOMORROW, "02:00")),
    ]


def test_hours_windows_closed_day():
    hours = BusinessHours(day_of_week=5, category="GENERAL", open_time="09:00", close_time="18:00", is_closed=True)
    assert build_hours_windows(hours, TOMORROW) == []


def test_future_day_uses_roster():
    slots = compute_slots(make_snapshot(), at_ph(TOMORROW), [HAIRCUT], NOW)

    assert starts(slots) == ["09:00", "09:30", "10:00", "10:30", "11:00"]
    assert all(slot.source == SlotSource.ROSTER for slot in slots)
    assert all(slot.confidence == SlotConfidence.TENTATIVE for slot in slots)
    assert slots[0].end_time == at_ph(TOMORROW, "10:00")
    assert slots[0].available_employee_count == 1


def test_empty_selection_has_no_slots():
    assert compute_slots(make_snapshot(), at_ph(TOMORROW), [], NOW) == []


def test_unknown_services_have_no_slots():
    assert compute_slots(make_snapshot(), at_ph(TOMORROW), [SelectedService(id=99)], NOW) == []


def test_horizon_limits_days():
    snapshot = make_snapshot()

    assert compute_slots(snapshot, at_ph(TODAY + timedelta(days=13)), [HAIRCUT], NOW)
    assert compute_slots(snapshot, at_ph(TODAY + timedelta(days=14)), [HAIRCUT], NOW) == []
    assert compute_slots(snapshot, at_ph(TODAY - timedelta(days=1)), [HAIRCUT], NOW) == []


def test_v2_disabled_only_lists_today():
    snapshot = make_snapshot(
        policy=BookingPolicy(booking_v2_enabled=False),
        attendance={1: [AttendanceWindow(time_in=at_ph(TODAY, "08:00"))]},
    )

    assert compute_slots(snapshot, at_ph(TOMORROW), [HAIRCUT], NOW) == []
    assert compute_slots(snapshot, at_ph(TODAY), [HAIRCUT], NOW)


def test_today_strict_window_requires_attendance():
    """Nobody clocked in: slots before 11:00 vanish, later ones fall back to roster"""
    slots = compute_slots(make_snapshot(), at_ph(TODAY), [HAIRCUT], NOW)

    assert starts(slots) == ["11:00"]
    assert slots[0].source == SlotSource.ROSTER
    assert slots[0].confidence == SlotConfidence.TENTATIVE


def test_today_with_attendance_is_confirmed():
    snapshot = make_snapshot(attendance={1: [AttendanceWindow(time_in=at_ph(TODAY, "08:00"))]})

    slots = compute_slots(snapshot, at_ph(TODAY), [HAIRCUT], NOW)

    # 09:00 is inside the 30 minute lead time
    assert starts(slots) == ["09:30", "10:00", "10:30", "11:00"]
    assert all(slot.source == SlotSource.ATTENDANCE for slot in slots)
    assert all(slot.confidence == SlotConfidence.CONFIRMED for slot in slots)


def test_attendance_must_cover_the_whole_service():
    snapshot = make_snapshot(
        attendance={1: [AttendanceWindow(time_in=at_ph(TODAY, "08:00"), time_out=at_ph(TODAY, "10:30"))]}
    )

    slots = compute_slots(snapshot, at_ph(TODAY), [HAIRCUT], NOW)

    assert starts(slots) == ["09:30", "11:00"]
    assert slots[0].source == SlotSource.ATTENDANCE
    assert slots[1].source == SlotSource.ROSTER


def test_owners_count_without_attendance():
    snapshot = make_snapshot(employees=[], owners=[Provider(id=5)])

    slots = compute_slots(snapshot, at_ph(TODAY), [HAIRCUT], NOW)

    assert starts(slots) == ["09:30", "10:00", "10:30", "11:00"]
    assert slots[0].available_owner_count == 1
    assert slots[0].available_employee_count == 0


def test_lead_time_can_be_ignored():
    snapshot = make_snapshot(attendance={1: [AttendanceWindow(time_in=at_ph(TODAY, "08:00"))]})

    slots = compute_slots(snapshot, at_ph(TODAY), [HAIRCUT], NOW, enforce_lead_time=False)

    assert starts(slots)[0] == "09:00"


def test_booked_segment_consumes_capacity():
    segment = BookedSegment(start=at_ph(TOMORROW, "10:00"), end=at_ph(TOMORROW, "11:00"), category="hair", booking_id=7)
    snapshot = make_snapshot(booked_segments=[segment])

    assert starts(compute_slots(snapshot, at_ph(TOMORROW), [HAIRCUT], NOW)) == ["09:00", "11:00"]
    assert len(compute_slots(snapshot, at_ph(TOMORROW), [HAIRCUT], NOW, exclude_booking_id=7)) == 5


def test_segments_in_other_categories_do_not_block():
    segment = BookedSegment(start=at_ph(TOMORROW, "10:00"), end=at_ph(TOMORROW, "11:00"), category="nails")
    snapshot = make_snapshot(booked_segments=[segment])

    assert len(compute_slots(snapshot, at_ph(TOMORROW), [HAIRCUT], NOW)) == 5


def test_assigned_segment_only_blocks_that_provider():
    segment = BookedSegment(
        start=at_ph(TOMORROW, "10:00"),
        end=at_ph(TOMORROW, "11:00"),
        category="hair",
        served_by_employee_id=1,
    )
    snapshot = make_snapshot(employees=[Provider(id=1), Provider(id=2)], booked_segments=[segment])

    slots = compute_slots(snapshot, at_ph(TOMORROW), [HAIRCUT], NOW)

    assert len(slots) == 5
    assert [slot.available_employee_count for slot in slots] == [2, 1, 1, 1, 2]


def test_specialties_filter_providers():
    snapshot = make_snapshot(employees=[Provider(id=1, specialties=["Nails"])])

    assert compute_slots(snapshot, at_ph(TOMORROW), [HAIRCUT], NOW) == []
    assert compute_slots(snapshot, at_ph(TOMORROW), [SelectedService(id=2)], NOW)


def test_category_hours_fall_back_to_general():
    hours = [BusinessHours(day_of_week=5, category="GENERAL", open_time="09:00", close_time="12:00")]
    hours.append(BusinessHours(day_of_week=5, category="NAILS", open_time="10:00", close_time="11:00"))
    snapshot = make_snapshot(business_hours=hours)

    assert starts(compute_slots(snapshot, at_ph(TOMORROW), [SelectedService(id=2)], NOW)) == ["10:00", "10:30"]
    assert len(compute_slots(snapshot, at_ph(TOMORROW), [HAIRCUT], NOW)) == 5


def test_most_constrained_service_goes_first():
    """Manicure only fits 10:00-11:00, so the haircut follows it"""
    hours = [BusinessHours(day_of_week=5, category="GENERAL", open_time="09:00", close_time="12:00")]
    hours.append(BusinessHours(day_of_week=5, category="NAILS", open_time="10:00", close_time="11:00"))
    snapshot = make_snapshot(business_hours=hours)

    slots = compute_slots(snapshot, at_ph(TOMORROW), [HAIRCUT, SelectedService(id=2)], NOW)

    assert starts(slots) == ["10:00", "10:30"]
    assert slots[0].end_time == at_ph(TOMORROW, "11:30")
    assert slots[1].end_time == at_ph(TOMORROW, "12:00")


def test_quantity_expands_back_to_back():
    slots = compute_slots(make_snapshot(), at_ph(TOMORROW), [SelectedService(id=1, quantity=2)], NOW)

    assert starts(slots) == ["09:00", "09:30", "10:00"]
    assert slots[0].end_time == at_ph(TOMORROW, "11:00")


def test_closed_day_has_no_slots():
    hours = [BusinessHours(day_of_week=5, category="GENERAL", open_time="09:00", close_time="12:00", is_closed=True)]
    assert compute_slots(make_snapshot(business_hours=hours), at_ph(TOMORROW), [HAIRCUT], NOW) == []


def test_custom_slot_interval():
    slots = compute_slots(make_snapshot(), at_ph(TOMORROW), [HAIRCUT], NOW, slot_interval_minutes=60)
    assert starts(slots) == ["09:00", "10:00", "11:00"]


def test_alternatives_start_after_requested_time():
    alternatives = list_alternative_slots(make_snapshot(), at_ph(TOMORROW, "10:00"), [HAIRCUT], NOW, limit=4)

    assert [slot.start_time for slot in alternatives] == [
        at_ph(TOMORROW, "10:30"),
        at_ph(TOMORROW, "11:00"),
        at_ph(TOMORROW + timedelta(days=1), "09:00"),
        at_ph(TOMORROW + timedelta(days=1), "09:30"),
    ]


def test_validate_accepts_open_slot():
    validate_booking_or_raise(make_snapshot(), at_ph(TOMORROW, "09:00"), [HAIRCUT], "FULL", True, NOW)


def test_validate_rejects_disallowed_public_payment_type():
    snapshot = make_snapshot(policy=BookingPolicy(allow_public_downpayment=False))

    with pytest.raises(BookingAvailabilityError) as exc_info:
        validate_booking_or_raise(snapshot, at_ph(TOMORROW, "09:00"), [HAIRCUT], "DOWNPAYMENT", True, NOW)
    assert exc_info.value.code == "PAYMENT_TYPE_NOT_ALLOWED"

    # Staff bookings are not bound by public payment options
    validate_booking_or_raise(snapshot, at_ph(TOMORROW, "09:00"), [HAIRCUT], "DOWNPAYMENT", False, NOW)


def test_validate_rejects_dates_outside_horizon():
    with pytest.raises(BookingAvailabilityError) as exc_info:
        validate_booking_or_raise(make_snapshot(), at_ph(TODAY + timedelta(days=20), "09:00"), [HAIRCUT], "FULL", True, NOW)
    assert exc_info.value.code == "DATE_OUTSIDE_HORIZON"


def test_validate_rejects_short_lead_time():
    with pytest.raises(BookingAvailabilityError) as exc_info:
        validate_booking_or_raise(make_snapshot(), NOW + timedelta(minutes=10), [HAIRCUT], "FULL", True, NOW)
    assert exc_info.value.code == "LEAD_TIME_VIOLATION"


def test_validate_reports_taken_slot_with_alternatives():
    segment = BookedSegment(start=at_ph(TOMORROW, "10:00"), end=at_ph(TOMORROW, "11:00"), category="hair")

    with pytest.raises(BookingAvailabilityError) as exc_info:
        validate_booking_or_raise(
            make_snapshot(booked_segments=[segment]), at_ph(TOMORROW, "10:00"), [HAIRCUT], "FULL", True, NOW
        )

    error = exc_info.value
    assert error.code == "SLOT_JUST_TAKEN"
    assert len(error.alternatives) == 6
    assert error.alternatives[0].start_time == at_ph(TOMORROW, "11:00")


def test_validate_reports_missing_capacity():
    with pytest.raises(BookingAvailabilityError) as exc_info:
        validate_booking_or_raise(make_snapshot(employees=[]), at_ph(TOMORROW, "09:00"), [HAIRCUT], "FULL", True, NOW)

    assert exc_info.value.code == "NO_CAPACITY_FOR_SELECTED_SERVICES"
    assert exc_info.value.alternatives == []


def test_walk_in_skips_schedule_checks():
    validate_booking_or_raise(
        make_snapshot(employees=[]), NOW - timedelta(hours=1), [HAIRCUT], "FULL", True, NOW, is_walk_in=True
    )
