"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timedelta
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from booking_gateway.api.dependencies import get_now
from booking_gateway.api.main import create_app
from booking_gateway.infrastructure.database.models import (
    AvailedService,
    Base,
    Booking,
    Business,
    BusinessHoursRow,
    Employee,
    PackageItem,
    SaleEvent,
    Service,
    ServicePackage,
    Voucher,
)
from booking_gateway.infrastructure.database.session import get_db
from booking_gateway.utils.date_utils import PH_TZ, at_ph


# Thursday, 09:00 Philippine time
FIXED_NOW = datetime(2026, 2, 12, 9, 0, tzinfo=PH_TZ)

# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and a pinned clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: FIXED_NOW
    return TestClient(app)


@pytest.fixture
def salon(db: Session) -> dict:
    """
    One business open 09:00-12:00 every day with a single employee.

    Catalog: Haircut (500, 60 min) with a 10% sale, Manicure (300, 30 min),
    and a 1000 package of both (700/300) with a flat 200 package sale.
    """
    business = Business(slug="glow-studio", name="Glow Studio")
    db.add(business)
    db.flush()

    for day in range(7):
        business.business_hours.append(
            BusinessHoursRow(day_of_week=day, category="GENERAL", open_time="09:00", close_time="12:00")
        )

    employee = Employee(business_id=business.id, name="Ana", specialties=[])
    haircut = Service(business_id=business.id, name="Haircut", category="HAIR", price=500, duration=60)
    manicure = Service(business_id=business.id, name="Manicure", category="NAILS", price=300, duration=30)
    db.add_all([employee, haircut, manicure])
    db.flush()

    package = ServicePackage(business_id=business.id, name="Pamper Set", price=1000)
    package.items.append(PackageItem(service_id=haircut.id, custom_price=700))
    package.items.append(PackageItem(service_id=manicure.id, custom_price=300))
    db.add(package)
    db.flush()

    db.add_all(
        [
            SaleEvent(
                business_id=business.id,
                title="Hair Month",
                discount_type="PERCENTAGE",
                discount_value=10,
                start_date=FIXED_NOW - timedelta(days=1),
                end_date=FIXED_NOW + timedelta(days=30),
                applicable_services=[haircut],
            ),
            SaleEvent(
                business_id=business.id,
                title="Pamper Promo",
                discount_type="FIXED_AMOUNT",
                discount_value=200,
                start_date=FIXED_NOW - timedelta(days=1),
                end_date=FIXED_NOW + timedelta(days=30),
                applicable_packages=[package],
            ),
            SaleEvent(
                business_id=business.id,
                title="Expired Sale",
                discount_type="FIXED_AMOUNT",
                discount_value=400,
                start_date=FIXED_NOW - timedelta(days=30),
                end_date=FIXED_NOW - timedelta(days=1),
                applicable_services=[haircut],
            ),
            Voucher(
                business_id=business.id,
                code="WELCOME10",
                type="PERCENTAGE",
                value=10,
                minimum_amount=0,
                expires_at=FIXED_NOW + timedelta(days=30),
            ),
        ]
    )
    db.commit()

    return {
        "business": business,
        "employee": employee,
        "haircut": haircut,
        "manicure": manicure,
        "package": package,
    }


@pytest.fixture
def book(db: Session, salon: dict):
    """Factory adding an accepted booking for the salon"""

    def _book(
        day: date,
        hhmm: str,
        services: list,
        customer_name: str = "Bea",
        served_by_id=None,
    ) -> Booking:
        scheduled_at = at_ph(day, hhmm)
        total_minutes = sum(service.duration for service in services)
        booking = Booking(
            business_id=salon["business"].id,
            customer_name=customer_name,
            status="ACCEPTED",
            scheduled_at=scheduled_at,
            estimated_end=scheduled_at + timedelta(minutes=total_minutes),
        )
        cursor = scheduled_at
        for service in services:
            end = cursor + timedelta(minutes=service.duration)
            booking.availed_services.append(
                AvailedService(
                    service_id=service.id,
                    status="PENDING",
                    scheduled_at=cursor,
                    estimated_end=end,
                    served_by_id=served_by_id,
                )
            )
            cursor = end
        db.add(booking)
        db.commit()
        return booking

    return _book
