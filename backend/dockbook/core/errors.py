"""
Domain errors raised by the slot/booking services.

Each error carries one message per violated rule plus a machine code; the API
layer turns them into ``{"success": False, "errors": [...], "code": ...}``.
Storage failures are not wrapped here: they surface as ``SQLAlchemyError``.
"""


class DockbookError(Exception):
    """Base class for every domain error."""

    code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, *messages: str):
        self.errors = [m for m in messages if m] or [self.__class__.__name__]
        super().__init__("; ".join(self.errors))

    def to_result(self) -> dict:
        return {"success": False, "errors": list(self.errors), "code": self.code}


class ValidationError(DockbookError):
    """Malformed or missing input."""

    code = "VALIDATION_ERROR"
    status_code = 422


class ConflictError(DockbookError):
    """Slot time range overlaps an existing slot in the same warehouse/date."""

    code = "SLOT_CONFLICT"
    status_code = 409


class SlotUnavailableError(DockbookError):
    """Booking attempted against a full, blocked or missing slot."""

    code = "SLOT_UNAVAILABLE"
    status_code = 409


class NotFoundError(DockbookError):
    code = "NOT_FOUND"
    status_code = 404


class InvalidTransitionError(DockbookError):
    """Booking status precondition violated."""

    code = "INVALID_TRANSITION"
    status_code = 400


class HasDependentsError(DockbookError):
    """Deletion blocked by non-cancelled bookings."""

    code = "HAS_DEPENDENTS"
    status_code = 409


class AuthorizationError(DockbookError):
    code = "FORBIDDEN"
    status_code = 403
