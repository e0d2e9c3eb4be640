"""SQLAlchemy ORM models for businesses, catalog, staffing, bookings and the outbox"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetimes stored as UTC; naive values read back as UTC"""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


sale_event_services = Table(
    "sale_event_service",
    Base.metadata,
    Column("sale_event_id", Integer, ForeignKey("sale_event.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Integer, ForeignKey("service.id", ondelete="CASCADE"), primary_key=True),
)

sale_event_packages = Table(
    "sale_event_package",
    Base.metadata,
    Column("sale_event_id", Integer, ForeignKey("sale_event.id", ondelete="CASCADE"), primary_key=True),
    Column("package_id", Integer, ForeignKey("service_package.id", ondelete="CASCADE"), primary_key=True),
)


class Business(Base):
    """Tenant with its booking policy columns"""

    __tablename__ = "business"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    slug = Column(String(120), nullable=False, unique=True, index=True)
    name = Column(Text, nullable=False)
    commission_calculation_basis = Column(Text, nullable=False, default="DISCOUNTED_PRICE")
    booking_horizon_days = Column(Integer, nullable=False, default=14)
    booking_min_lead_minutes = Column(Integer, nullable=False, default=30)
    booking_slot_interval_minutes = Column(Integer, nullable=False, default=30)
    same_day_attendance_strict_minutes = Column(Integer, nullable=False, default=120)
    public_allow_full_payment = Column(Boolean, nullable=False, default=True)
    public_allow_downpayment = Column(Boolean, nullable=False, default=True)
    public_default_payment_type = Column(Text, nullable=False, default="FULL")
    booking_v2_enabled = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    business_hours = relationship("BusinessHoursRow", back_populates="business", cascade="all, delete-orphan")
    employees = relationship("Employee", back_populates="business")
    owners = relationship("Owner", back_populates="business")


class BusinessHoursRow(Base):
    """Opening hours for one weekday (0 = Sunday) and service category"""

    __tablename__ = "business_hours"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    category = Column(Text, nullable=False, default="GENERAL")
    open_time = Column(String(5), nullable=False)
    close_time = Column(String(5), nullable=False)
    is_closed = Column(Boolean, nullable=False, default=False)

    business = relationship("Business", back_populates="business_hours")


class Service(Base):
    __tablename__ = "service"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False, default="GENERAL")
    price = Column(Float, nullable=False)
    duration = Column(Integer, nullable=True)


class ServicePackage(Base):
    __tablename__ = "service_package"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    price = Column(Float, nullable=False)

    items = relationship("PackageItem", back_populates="package", cascade="all, delete-orphan")


class PackageItem(Base):
    """Service inside a package with its share of the package price"""

    __tablename__ = "package_item"

    package_id = Column(Integer, ForeignKey("service_package.id", ondelete="CASCADE"), primary_key=True)
    service_id = Column(Integer, ForeignKey("service.id", ondelete="CASCADE"), primary_key=True)
    custom_price = Column(Float, nullable=False)

    package = relationship("ServicePackage", back_populates="items")


class SaleEvent(Base):
    __tablename__ = "sale_event"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    discount_type = Column(Text, nullable=False)  # PERCENTAGE | FIXED_AMOUNT | FLAT
    discount_value = Column(Float, nullable=False)
    start_date = Column(UTCDateTime, nullable=False)
    end_date = Column(UTCDateTime, nullable=False)

    applicable_services = relationship("Service", secondary=sale_event_services)
    applicable_packages = relationship("ServicePackage", secondary=sale_event_packages)


class Voucher(Base):
    __tablename__ = "voucher"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    code = Column(String(64), nullable=False, unique=True)
    type = Column(Text, nullable=False, default="FLAT")  # PERCENTAGE | FLAT
    value = Column(Float, nullable=False)
    minimum_amount = Column(Float, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    used_by_id = Column(Integer, nullable=True)
    expires_at = Column(UTCDateTime, nullable=False)


class Employee(Base):
    __tablename__ = "employee"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    specialties = Column(JSON, nullable=False, default=list)

    business = relationship("Business", back_populates="employees")


class Owner(Base):
    __tablename__ = "owner"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    specialties = Column(JSON, nullable=False, default=list)

    business = relationship("Business", back_populates="owners")


class EmployeeAttendance(Base):
    __tablename__ = "employee_attendance"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(UTCDateTime, nullable=False)
    status = Column(Text, nullable=False)  # PRESENT | LATE | ABSENT | ON_LEAVE
    time_in = Column(UTCDateTime, nullable=True)
    time_out = Column(UTCDateTime, nullable=True)

    employee = relationship("Employee")


class Booking(Base):
    __tablename__ = "booking"

    id = Column(Integer, primary_key=True, autoincrement=True)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_name = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="ACCEPTED")
    scheduled_at = Column(UTCDateTime, nullable=True, index=True)
    estimated_end = Column(UTCDateTime, nullable=True)

    availed_services = relationship("AvailedService", back_populates="booking", cascade="all, delete-orphan")


class AvailedService(Base):
    """One service line of a booking, possibly assigned to a provider"""

    __tablename__ = "availed_service"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("booking.id", ondelete="CASCADE"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("service.id"), nullable=False)
    status = Column(Text, nullable=False, default="PENDING")
    scheduled_at = Column(UTCDateTime, nullable=True)
    estimated_end = Column(UTCDateTime, nullable=True)
    served_by_id = Column(Integer, ForeignKey("employee.id"), nullable=True)
    served_by_owner_id = Column(Integer, ForeignKey("owner.id"), nullable=True)

    booking = relationship("Booking", back_populates="availed_services")
    service = relationship("Service")


class OutboxMessage(Base):
    """Domain event waiting for delivery"""

    __tablename__ = "outbox_message"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    event_type = Column(Text, nullable=False, index=True)
    aggregate_type = Column(Text, nullable=False)
    aggregate_id = Column(Text, nullable=False)
    business_id = Column(String(36), ForeignKey("business.id", ondelete="CASCADE"), nullable=True, index=True)
    payload = Column(JSON, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
