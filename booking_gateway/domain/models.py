"""Domain models - pure Python dataclasses representing booking entities"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Union


class PaymentMethod(str, Enum):
    CASH = "CASH"
    QRPH = "QRPH"


class PaymentType(str, Enum):
    FULL = "FULL"
    DOWNPAYMENT = "DOWNPAYMENT"


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class CommissionBasis(str, Enum):
    ORIGINAL_PRICE = "ORIGINAL_PRICE"
    DISCOUNTED_PRICE = "DISCOUNTED_PRICE"


class SlotSource(str, Enum):
    ATTENDANCE = "ATTENDANCE"
    ROSTER = "ROSTER"


class SlotConfidence(str, Enum):
    CONFIRMED = "CONFIRMED"
    TENTATIVE = "TENTATIVE"


class ConflictTrigger(str, Enum):
    BUSINESS_HOURS_UPDATED = "BUSINESS_HOURS_UPDATED"
    ATTENDANCE_UPDATED = "ATTENDANCE_UPDATED"
    EMPLOYEE_SPECIALTIES_UPDATED = "EMPLOYEE_SPECIALTIES_UPDATED"
    OWNER_SPECIALTIES_UPDATED = "OWNER_SPECIALTIES_UPDATED"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    MANUAL_REVALIDATION = "MANUAL_REVALIDATION"


# Sale events


@dataclass(frozen=True)
class ServiceScope:
    """Sale event applies to standalone services"""

    service_ids: FrozenSet[int]


@dataclass(frozen=True)
class PackageScope:
    """Sale event applies to whole packages"""

    package_ids: FrozenSet[int]


SaleEventScope = Union[ServiceScope, PackageScope]


@dataclass(frozen=True)
class SaleEvent:
    """Promotional discount rule, already filtered to the active window by the caller"""

    title: str
    discount_type: DiscountType
    discount_value: float
    scope: SaleEventScope
    id: Optional[int] = None


@dataclass(frozen=True)
class DiscountResult:
    """Best discount for one line item"""

    final_price: float
    discount: float
    reason: str


# Booking pricing


@dataclass
class BookingServiceInput:
    """Line item as submitted by the booking flow; prices are never trusted"""

    id: int
    quantity: int = 1
    duration: Optional[int] = None
    package_id: Optional[int] = None
    claimed_by_current_employee: Optional[bool] = None


@dataclass
class CatalogService:
    id: int
    name: str
    price: float
    duration: Optional[int]
    category: str = "general"


@dataclass
class CatalogPackage:
    id: int
    price: float


@dataclass
class Voucher:
    id: int
    code: str
    business_id: str
    type: str  # "PERCENTAGE" or "FLAT"
    value: float
    minimum_amount: float
    is_active: bool
    used_by_id: Optional[int]
    expires_at: datetime


@dataclass
class BusinessInfo:
    id: str
    slug: str
    name: str
    commission_calculation_basis: CommissionBasis = CommissionBasis.DISCOUNTED_PRICE


@dataclass
class PricingCatalog:
    """Consistent read of everything needed to price one booking"""

    business: BusinessInfo
    services: Dict[int, CatalogService]
    packages: Dict[int, CatalogPackage]
    package_item_prices: Dict[tuple, float]  # (package_id, service_id) -> custom price
    sale_events: List[SaleEvent]
    voucher: Optional[Voucher] = None


@dataclass
class CanonicalBookingService:
    id: int
    name: str
    quantity: int
    duration: int
    price: float
    original_price: float
    discount: float
    discount_reason: Optional[str]
    commission_base: float
    package_id: Optional[int] = None
    claimed_by_current_employee: Optional[bool] = None


@dataclass
class AppliedVoucher:
    id: int
    code: str


@dataclass
class BookingPricingSnapshot:
    business: BusinessInfo
    services: List[CanonicalBookingService]
    subtotal: float
    voucher_discount: float
    grand_total: float
    downpayment_amount: Optional[float]
    amount_to_pay: float
    total_duration: int
    estimated_end: datetime
    voucher: Optional[AppliedVoucher]


# Scheduling


@dataclass
class BookingPolicy:
    booking_horizon_days: int = 14
    min_lead_minutes: int = 30
    slot_interval_minutes: int = 30
    same_day_attendance_strict_minutes: int = 120
    allow_public_full_payment: bool = True
    allow_public_downpayment: bool = True
    default_public_payment_type: PaymentType = PaymentType.FULL
    booking_v2_enabled: bool = True


@dataclass
class BusinessHours:
    day_of_week: int  # 0 = Sunday
    category: str
    open_time: str  # "HH:MM"
    close_time: str
    is_closed: bool = False


@dataclass
class Provider:
    """Employee or owner who can serve bookings"""

    id: int
    specialties: List[str] = field(default_factory=list)


@dataclass
class AttendanceWindow:
    time_in: datetime
    time_out: Optional[datetime] = None


@dataclass
class BookedSegment:
    """One availed service occupying a provider slot"""

    start: datetime
    end: datetime
    category: str
    served_by_employee_id: Optional[int] = None
    served_by_owner_id: Optional[int] = None
    booking_id: Optional[int] = None


@dataclass
class SelectedService:
    id: int
    quantity: int = 1


@dataclass
class AvailabilitySnapshot:
    """Read-only view of one business's schedule, staffing and bookings"""

    business_id: str
    policy: BookingPolicy
    business_hours: List[BusinessHours]
    employees: List[Provider]
    owners: List[Provider]
    services: Dict[int, CatalogService]
    booked_segments: List[BookedSegment] = field(default_factory=list)
    attendance: Dict[int, List[AttendanceWindow]] = field(default_factory=dict)


@dataclass
class TimeSlot:
    start_time: datetime
    end_time: datetime
    available: bool
    available_employee_count: int
    available_owner_count: int
    source: SlotSource
    confidence: SlotConfidence


# Conflict detection


@dataclass
class FutureBooking:
    id: int
    scheduled_at: Optional[datetime]
    customer_name: Optional[str]
    service_ids: List[int]  # one entry per active availed service


@dataclass
class ConflictSignal:
    booking_id: int
    scheduled_at: datetime
    customer_name: Optional[str]
    trigger: ConflictTrigger
    reason: str
    detected_at: datetime


@dataclass
class ScanResult:
    scanned: int
    signals: List[ConflictSignal] = field(default_factory=list)

    @property
    def conflicts(self) -> int:
        return len(self.signals)
