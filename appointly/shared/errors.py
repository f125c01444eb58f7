"""Domain errors raised by the service layer.

Each error is an HTTPException so routers can let it propagate unchanged; the
detail carries a stable machine-readable ``code`` next to the human message.
"""

from fastapi import HTTPException


class BookingError(HTTPException):
    status_code = 400
    code = "bad_request"

    def __init__(self, message: str, code: str = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(
            status_code=type(self).status_code, detail={"code": self.code, "message": message}
        )


class ValidationFailed(BookingError):
    status_code = 400
    code = "validation_error"


class NotFound(BookingError):
    status_code = 404
    code = "not_found"


class Conflict(BookingError):
    status_code = 409
    code = "conflict"


class SlotConflict(Conflict):
    code = "slot_conflict"


class PackageAlreadyAssigned(Conflict):
    code = "package_already_assigned"


class InsufficientCredit(Conflict):
    code = "insufficient_credit"


class PackageInactive(Conflict):
    code = "package_inactive"


class InvalidStatusTransition(Conflict):
    code = "invalid_status_transition"


class CustomerBlacklisted(BookingError):
    status_code = 403
    code = "customer_blacklisted"


class PaymentNotCaptured(BookingError):
    status_code = 402
    code = "payment_not_captured"
