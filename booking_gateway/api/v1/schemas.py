"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import AwareDatetime, BaseModel, Field, model_validator

from booking_gateway.domain.models import (
    ConflictTrigger,
    DiscountType,
    PackageScope,
    PaymentMethod,
    PaymentType,
    SaleEvent,
    ServiceScope,
    SlotConfidence,
    SlotSource,
)

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# Pricing


class BookingTotalRequest(BaseModel):
    """Request body for POST /v1/pricing/total"""

    subtotal: float = Field(..., ge=0, allow_inf_nan=False, description="Sum of discounted line prices")
    voucher_discount: float = Field(0, ge=0, allow_inf_nan=False)
    payment_method: PaymentMethod
    payment_type: PaymentType


class BookingTotalResponse(BaseModel):
    amount: float


class SaleEventSchema(BaseModel):
    """Active sale event; exactly one of the scope lists may be filled"""

    title: str = Field(..., min_length=1)
    discount_type: Literal["PERCENTAGE", "FIXED_AMOUNT", "FLAT"]
    discount_value: float = Field(..., allow_inf_nan=False)
    applicable_service_ids: List[int] = Field(default_factory=list)
    applicable_package_ids: List[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_single_scope(self) -> "SaleEventSchema":
        if self.applicable_service_ids and self.applicable_package_ids:
            raise ValueError("A sale event applies to services or to packages, not both")
        return self

    def to_domain(self) -> SaleEvent:
        if self.applicable_package_ids:
            scope = PackageScope(package_ids=frozenset(self.applicable_package_ids))
        else:
            scope = ServiceScope(service_ids=frozenset(self.applicable_service_ids))
        discount_type = DiscountType.PERCENTAGE if self.discount_type == "PERCENTAGE" else DiscountType.FIXED_AMOUNT
        return SaleEvent(title=self.title, discount_type=discount_type, discount_value=self.discount_value, scope=scope)


class DiscountRequest(BaseModel):
    """Request body for POST /v1/pricing/discount"""

    service_id: int
    package_id: Optional[int] = None
    price: float = Field(..., ge=0, allow_inf_nan=False)
    sale_events: List[SaleEventSchema] = Field(default_factory=list)


class DiscountResultSchema(BaseModel):
    final_price: float
    discount: float
    reason: str


class DiscountResponse(BaseModel):
    discount: Optional[DiscountResultSchema] = None


class BookingServiceSchema(BaseModel):
    id: int
    quantity: int = 1
    duration: Optional[int] = None
    package_id: Optional[int] = None


class QuoteRequest(BaseModel):
    """Request body for POST /v1/businesses/{slug}/quote"""

    scheduled_at: AwareDatetime
    services: List[BookingServiceSchema] = Field(..., min_length=1)
    payment_method: PaymentMethod
    payment_type: PaymentType
    voucher_code: Optional[str] = None


class QuotedServiceSchema(BaseModel):
    id: int
    name: str
    quantity: int
    duration: int
    package_id: Optional[int] = None
    price: float
    original_price: float
    discount: float
    discount_reason: Optional[str] = None
    commission_base: float


class QuoteResponse(BaseModel):
    business_slug: str
    services: List[QuotedServiceSchema]
    subtotal: float
    voucher_discount: float
    voucher_code: Optional[str] = None
    grand_total: float
    downpayment_amount: Optional[float] = None
    amount_to_pay: float
    total_duration: int
    estimated_end: datetime


# Availability


class SelectedServiceSchema(BaseModel):
    id: int
    quantity: int = 1


class SlotsRequest(BaseModel):
    """Request body for POST /v1/businesses/{slug}/slots"""

    day: date
    services: List[SelectedServiceSchema] = Field(..., min_length=1)


class TimeSlotSchema(BaseModel):
    start_time: datetime
    end_time: datetime
    available: bool
    available_employee_count: int
    available_owner_count: int
    source: SlotSource
    confidence: SlotConfidence


class SlotsResponse(BaseModel):
    day: date
    slots: List[TimeSlotSchema]


class ValidateBookingRequest(BaseModel):
    """Request body for POST /v1/businesses/{slug}/bookings/validate"""

    scheduled_at: AwareDatetime
    services: List[SelectedServiceSchema] = Field(..., min_length=1)
    payment_type: PaymentType
    is_public_booking: bool = True
    is_walk_in: bool = False


class ValidateBookingResponse(BaseModel):
    valid: bool = True


class AvailabilityErrorResponse(BaseModel):
    code: str
    message: str
    alternatives: List[TimeSlotSchema] = Field(default_factory=list)


# Business hours and conflicts


class BusinessHoursSchema(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday")
    category: str = "GENERAL"
    open_time: str = Field(..., pattern=HHMM_PATTERN)
    close_time: str = Field(..., pattern=HHMM_PATTERN)
    is_closed: bool = False


class BusinessHoursUpdateRequest(BaseModel):
    hours: List[BusinessHoursSchema]


class ConflictScanResponse(BaseModel):
    business_id: str
    business_slug: str
    scanned: int
    conflicts: int


class BusinessHoursUpdateResponse(BaseModel):
    hours: List[BusinessHoursSchema]
    changed_days: List[int]
    conflict_scan: Optional[ConflictScanResponse] = None


class RevalidateRequest(BaseModel):
    trigger: ConflictTrigger = ConflictTrigger.MANUAL_REVALIDATION
    changed_date: Optional[date] = None


class CronSweepResponse(BaseModel):
    success: bool
    businesses: int
    total_scanned: int
    total_conflicts: int
    per_business: List[ConflictScanResponse]
    processed_at: datetime
