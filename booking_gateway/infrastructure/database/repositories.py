"""Data access layer - loads consistent domain snapshots and records outbox signals"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Union

from sqlalchemy.orm import Session, selectinload

from booking_gateway.domain.booking_pricing import normalize_voucher_code
from booking_gateway.domain.conflicts import CONFLICT_EVENT_TYPE, signal_payload
from booking_gateway.domain.models import (
    AttendanceWindow,
    AvailabilitySnapshot,
    BookedSegment,
    BookingPolicy,
    BusinessHours,
    BusinessInfo,
    CatalogPackage,
    CatalogService,
    CommissionBasis,
    ConflictSignal,
    DiscountType,
    FutureBooking,
    PackageScope,
    PricingCatalog,
    Provider,
    SaleEvent,
    ServiceScope,
    Voucher,
)
from booking_gateway.domain.policy import normalize_booking_policy
from booking_gateway.infrastructure.database.models import (
    AvailedService,
    Booking,
    Business,
    BusinessHoursRow,
    Employee,
    EmployeeAttendance,
    OutboxMessage,
    Owner,
    PackageItem,
    SaleEvent as SaleEventRow,
    Service,
    ServicePackage,
    Voucher as VoucherRow,
)
from booking_gateway.utils.date_utils import day_bounds_ph

ATTENDANCE_ACTIVE_STATUSES = ("PRESENT", "LATE")


def to_business_info(business: Business) -> BusinessInfo:
    basis = (
        CommissionBasis.ORIGINAL_PRICE
        if business.commission_calculation_basis == CommissionBasis.ORIGINAL_PRICE.value
        else CommissionBasis.DISCOUNTED_PRICE
    )
    return BusinessInfo(id=business.id, slug=business.slug, name=business.name, commission_calculation_basis=basis)


def to_policy(business: Business) -> BookingPolicy:
    return normalize_booking_policy(
        {
            "booking_horizon_days": business.booking_horizon_days,
            "min_lead_minutes": business.booking_min_lead_minutes,
            "slot_interval_minutes": business.booking_slot_interval_minutes,
            "same_day_attendance_strict_minutes": business.same_day_attendance_strict_minutes,
            "allow_public_full_payment": business.public_allow_full_payment,
            "allow_public_downpayment": business.public_allow_downpayment,
            "default_public_payment_type": business.public_default_payment_type,
            "booking_v2_enabled": business.booking_v2_enabled,
        }
    )


def to_sale_events(row: SaleEventRow) -> List[SaleEvent]:
    """
    Map a stored sale event to domain events, one per scope it lists.

    A row naming both services and packages becomes two events sharing the
    title and value, so standalone services and packages each keep their discount.
    """
    discount_type = DiscountType.PERCENTAGE if row.discount_type == "PERCENTAGE" else DiscountType.FIXED_AMOUNT
    scopes: List[Union[ServiceScope, PackageScope]] = []
    if row.applicable_services or not row.applicable_packages:
        scopes.append(ServiceScope(service_ids=frozenset(s.id for s in row.applicable_services)))
    if row.applicable_packages:
        scopes.append(PackageScope(package_ids=frozenset(p.id for p in row.applicable_packages)))

    return [
        SaleEvent(
            id=row.id,
            title=row.title,
            discount_type=discount_type,
            discount_value=row.discount_value,
            scope=scope,
        )
        for scope in scopes
    ]


def to_catalog_service(row: Service) -> CatalogService:
    return CatalogService(id=row.id, name=row.name, price=row.price, duration=row.duration, category=row.category)


class BusinessRepository:
    """Repository for businesses and their schedule settings"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_slug(self, slug: str) -> Optional[Business]:
        return self.db.query(Business).filter(Business.slug == slug).first()

    def get_by_id(self, business_id: str) -> Optional[Business]:
        return self.db.query(Business).filter(Business.id == business_id).first()

    def find(self, business_id: Optional[str] = None, business_slug: Optional[str] = None) -> Optional[Business]:
        if business_id:
            return self.get_by_id(business_id)
        if business_slug:
            return self.get_by_slug(business_slug)
        return None

    def list_for_conflict_sweep(self, limit: int) -> List[Business]:
        """Businesses on the v2 booking flow, oldest first"""
        return (
            self.db.query(Business)
            .filter(Business.booking_v2_enabled.is_(True))
            .order_by(Business.created_at.asc())
            .limit(limit)
            .all()
        )

    def replace_business_hours(self, business: Business, hours: Iterable[BusinessHours]) -> List[BusinessHours]:
        """Swap the business's hours for `hours`; returns the previous hours"""
        previous = [
            BusinessHours(
                day_of_week=row.day_of_week,
                category=row.category,
                open_time=row.open_time,
                close_time=row.close_time,
                is_closed=row.is_closed,
            )
            for row in business.business_hours
        ]

        business.business_hours.clear()
        self.db.flush()
        for entry in hours:
            business.business_hours.append(
                BusinessHoursRow(
                    day_of_week=entry.day_of_week,
                    category=entry.category,
                    open_time=entry.open_time,
                    close_time=entry.close_time,
                    is_closed=entry.is_closed,
                )
            )
        self.db.flush()
        return previous


class CatalogRepository:
    """Repository for services, packages, sale events and vouchers"""

    def __init__(self, db: Session):
        self.db = db

    def active_sale_events(self, business_id: str, now: datetime) -> List[SaleEvent]:
        rows = (
            self.db.query(SaleEventRow)
            .options(selectinload(SaleEventRow.applicable_services), selectinload(SaleEventRow.applicable_packages))
            .filter(
                SaleEventRow.business_id == business_id,
                SaleEventRow.start_date <= now,
                SaleEventRow.end_date >= now,
            )
            .order_by(SaleEventRow.id.asc())
            .all()
        )
        return [event for row in rows for event in to_sale_events(row)]

    def find_voucher(self, code: str) -> Optional[Voucher]:
        row = self.db.query(VoucherRow).filter(VoucherRow.code == normalize_voucher_code(code)).first()
        if row is None:
            return None
        return Voucher(
            id=row.id,
            code=row.code,
            business_id=row.business_id,
            type=row.type,
            value=row.value,
            minimum_amount=row.minimum_amount,
            is_active=row.is_active,
            used_by_id=row.used_by_id,
            expires_at=row.expires_at,
        )

    def load_pricing_catalog(
        self,
        business: Business,
        service_ids: Iterable[int],
        package_ids: Iterable[int],
        now: datetime,
        voucher_code: Optional[str] = None,
    ) -> PricingCatalog:
        """Read prices, packages, active sale events and the voucher in one session"""
        service_ids = list(set(service_ids))
        package_ids = list(set(package_ids))

        services = (
            self.db.query(Service)
            .filter(Service.business_id == business.id, Service.id.in_(service_ids))
            .all()
        )

        packages: List[ServicePackage] = []
        package_items: List[PackageItem] = []
        if package_ids:
            packages = (
                self.db.query(ServicePackage)
                .filter(ServicePackage.business_id == business.id, ServicePackage.id.in_(package_ids))
                .all()
            )
            package_items = (
                self.db.query(PackageItem)
                .join(ServicePackage, PackageItem.package_id == ServicePackage.id)
                .filter(
                    PackageItem.package_id.in_(package_ids),
                    PackageItem.service_id.in_(service_ids),
                    ServicePackage.business_id == business.id,
                )
                .all()
            )

        return PricingCatalog(
            business=to_business_info(business),
            services={row.id: to_catalog_service(row) for row in services},
            packages={row.id: CatalogPackage(id=row.id, price=row.price) for row in packages},
            package_item_prices={(item.package_id, item.service_id): item.custom_price for item in package_items},
            sale_events=self.active_sale_events(business.id, now),
            voucher=self.find_voucher(voucher_code) if voucher_code else None,
        )


class ScheduleRepository:
    """Repository for hours, staffing, attendance and booked capacity"""

    def __init__(self, db: Session):
        self.db = db

    def _attendance_for_day(self, business_id: str, now: datetime) -> Dict[int, List[AttendanceWindow]]:
        _, day_start, day_end = day_bounds_ph(now)
        records = (
            self.db.query(EmployeeAttendance)
            .join(Employee, EmployeeAttendance.employee_id == Employee.id)
            .filter(
                Employee.business_id == business_id,
                EmployeeAttendance.date >= day_start,
                EmployeeAttendance.date <= day_end,
                EmployeeAttendance.status.in_(ATTENDANCE_ACTIVE_STATUSES),
                EmployeeAttendance.time_in.isnot(None),
            )
            .all()
        )

        windows: Dict[int, List[AttendanceWindow]] = {}
        for record in records:
            windows.setdefault(record.employee_id, []).append(
                AttendanceWindow(time_in=record.time_in, time_out=record.time_out)
            )
        return windows

    def _booked_segments(self, business_id: str, range_start: datetime, range_end: datetime) -> List[BookedSegment]:
        bookings = (
            self.db.query(Booking)
            .options(selectinload(Booking.availed_services).selectinload(AvailedService.service))
            .filter(
                Booking.business_id == business_id,
                Booking.scheduled_at >= range_start,
                Booking.scheduled_at <= range_end,
                Booking.status != "CANCELLED",
            )
            .all()
        )

        segments = []
        for booking in bookings:
            for availed in booking.availed_services:
                if availed.status == "CANCELLED":
                    continue
                start = availed.scheduled_at or booking.scheduled_at
                end = availed.estimated_end or booking.estimated_end
                if start is None or end is None:
                    continue
                segments.append(
                    BookedSegment(
                        start=start,
                        end=end,
                        category=availed.service.category.lower(),
                        served_by_employee_id=availed.served_by_id,
                        served_by_owner_id=availed.served_by_owner_id,
                        booking_id=booking.id,
                    )
                )
        return segments

    def load_availability_snapshot(
        self,
        business: Business,
        range_start: datetime,
        range_end: datetime,
        now: datetime,
        service_ids: Optional[Iterable[int]] = None,
    ) -> AvailabilitySnapshot:
        """
        Everything slot computation needs for bookings in [range_start, range_end].

        Attendance is only loaded for today since other days use the roster.
        """
        service_query = self.db.query(Service).filter(Service.business_id == business.id)
        if service_ids is not None:
            service_query = service_query.filter(Service.id.in_(list(set(service_ids))))

        employees = self.db.query(Employee).filter(Employee.business_id == business.id).all()
        owners = self.db.query(Owner).filter(Owner.business_id == business.id).all()

        return AvailabilitySnapshot(
            business_id=business.id,
            policy=to_policy(business),
            business_hours=[
                BusinessHours(
                    day_of_week=row.day_of_week,
                    category=row.category,
                    open_time=row.open_time,
                    close_time=row.close_time,
                    is_closed=row.is_closed,
                )
                for row in business.business_hours
            ],
            employees=[Provider(id=e.id, specialties=list(e.specialties or [])) for e in employees],
            owners=[Provider(id=o.id, specialties=list(o.specialties or [])) for o in owners],
            services={row.id: to_catalog_service(row) for row in service_query.all()},
            booked_segments=self._booked_segments(business.id, range_start, range_end),
            attendance=self._attendance_for_day(business.id, now),
        )

    def list_future_accepted_bookings(
        self, business_id: str, start_at: datetime, end_before: datetime, limit: int
    ) -> List[FutureBooking]:
        bookings = (
            self.db.query(Booking)
            .options(selectinload(Booking.availed_services))
            .filter(
                Booking.business_id == business_id,
                Booking.status == "ACCEPTED",
                Booking.scheduled_at >= start_at,
                Booking.scheduled_at < end_before,
            )
            .order_by(Booking.scheduled_at.asc())
            .limit(max(1, limit))
            .all()
        )
        return [
            FutureBooking(
                id=booking.id,
                scheduled_at=booking.scheduled_at,
                customer_name=booking.customer_name,
                service_ids=[a.service_id for a in booking.availed_services if a.status != "CANCELLED"],
            )
            for booking in bookings
        ]


class OutboxRepository:
    """Repository for outbox messages"""

    def __init__(self, db: Session):
        self.db = db

    def signaled_booking_ids(self, business_id: str, since: datetime) -> Set[int]:
        """Bookings that already have a conflict message created since `since`"""
        rows = (
            self.db.query(OutboxMessage.aggregate_id)
            .filter(
                OutboxMessage.business_id == business_id,
                OutboxMessage.event_type == CONFLICT_EVENT_TYPE,
                OutboxMessage.created_at >= since,
            )
            .all()
        )
        return {int(row.aggregate_id) for row in rows}

    def create_conflict_message(self, business_id: str, signal: ConflictSignal) -> OutboxMessage:
        message = OutboxMessage(
            event_type=CONFLICT_EVENT_TYPE,
            aggregate_type="Booking",
            aggregate_id=str(signal.booking_id),
            business_id=business_id,
            payload=signal_payload(signal),
            created_at=signal.detected_at,
        )
        self.db.add(message)
        self.db.flush()
        return message
