"""Domain-specific exceptions"""

from typing import List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidAmountError(DomainException):
    """Money amount is not a finite number"""

    pass


class InvalidPaymentOptionError(DomainException):
    """Payment method or payment type is not one of the supported variants"""

    pass


class BusinessNotFoundError(DomainException):
    """No business matches the given id or slug"""

    pass


class InvalidSelectionError(DomainException):
    """Selected services or packages do not belong to the business catalog"""

    pass


class VoucherError(DomainException):
    """Voucher cannot be redeemed for this booking"""

    pass


class BookingAvailabilityError(DomainException):
    """Requested booking does not fit the business schedule.

    `code` is one of DATE_OUTSIDE_HORIZON, LEAD_TIME_VIOLATION, SLOT_JUST_TAKEN,
    PAYMENT_TYPE_NOT_ALLOWED, NO_CAPACITY_FOR_SELECTED_SERVICES.
    """

    def __init__(self, code: str, message: str, alternatives: Optional[List] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.alternatives = alternatives or []
