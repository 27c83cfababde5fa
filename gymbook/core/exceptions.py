"""
Custom application exceptions
"""

from datetime import datetime
from typing import Optional, Dict, Any

from gymbook.core.messages import get_error_message


class GymBookException(Exception):
    """Base exception for business-rule violations returned to the caller"""

    code = "INTERNAL_ERROR"
    status_code = 400

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code or self.code
        self.status_code = status_code or self.status_code
        self.details = details or {}
        self.message = message or get_error_message(self.code, "en", self.details)
        super().__init__(self.message)


class NotFoundError(GymBookException):
    """Resource not found errors"""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: Any = None):
        details = {"resource": resource}
        if identifier is not None:
            details["id"] = str(identifier)
        super().__init__(details=details)


class ForbiddenError(GymBookException):
    """Actor lacks rights over the entity"""

    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: Optional[str] = None):
        super().__init__(message=message)


class InvalidStateError(GymBookException):
    """Operation not valid for the entity's current status"""

    code = "INVALID_STATE"

    def __init__(self, resource: str, status: Any):
        status = getattr(status, "value", status)
        super().__init__(details={"resource": resource, "status": status})


class PastScheduleError(GymBookException):
    code = "PAST_SCHEDULE"

    def __init__(self, start_time: datetime):
        super().__init__(details={"start_time": start_time.isoformat()})


class TooLateError(GymBookException):
    """Cancellation window violated"""

    code = "CANCELLATION_TOO_LATE"

    def __init__(self, window_hours: float, hours_until_class: float):
        super().__init__(details={
            "window_hours": window_hours,
            "hours_until_class": round(hours_until_class, 1),
        })


class ScheduleFullError(GymBookException):
    code = "SCHEDULE_FULL"
    status_code = 409

    def __init__(self, capacity: int):
        super().__init__(details={
            "capacity": capacity,
            "available_spots": 0,
            "waiting_list_available": True,
        })


class DuplicateBookingError(GymBookException):
    code = "DUPLICATE_BOOKING"
    status_code = 409

    def __init__(self, booking_id: Any = None):
        details = {"booking_id": str(booking_id)} if booking_id else {}
        super().__init__(details=details)


class AlreadyWaitingError(GymBookException):
    code = "ALREADY_WAITING"
    status_code = 409

    def __init__(self, position: int, entry_id: Any = None):
        details = {"position": position}
        if entry_id:
            details["entry_id"] = str(entry_id)
        super().__init__(details=details)


class ClassNotFullError(GymBookException):
    code = "CLASS_NOT_FULL"

    def __init__(self, available_spots: int):
        super().__init__(details={"available_spots": available_spots})


class NotNotifiedError(GymBookException):
    code = "NOT_NOTIFIED"

    def __init__(self, position: int):
        super().__init__(details={"position": position})


class NotificationExpiredError(GymBookException):
    code = "NOTIFICATION_EXPIRED"
    status_code = 410

    def __init__(self, expires_at: datetime):
        super().__init__(details={"expired_at": expires_at.isoformat()})


class BookingConflictError(GymBookException):
    """Overlapping confirmed booking for the same user"""

    code = "BOOKING_CONFLICT"
    status_code = 409

    def __init__(self, booking_id: Any, class_name: str, start_time: datetime, end_time: datetime):
        super().__init__(details={
            "booking_id": str(booking_id),
            "class_name": class_name,
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
        })


class AlreadyRatedError(GymBookException):
    code = "ALREADY_RATED"
    status_code = 409

    def __init__(self, rating: int):
        super().__init__(details={"rating": rating})


class FutureClassError(GymBookException):
    code = "FUTURE_CLASS"

    def __init__(self, start_time: datetime):
        super().__init__(details={"start_time": start_time.isoformat()})


class AlreadyCancelledError(GymBookException):
    code = "ALREADY_CANCELLED"

    def __init__(self, schedule_id: Any):
        super().__init__(details={"schedule_id": str(schedule_id)})


class ScheduleHasBookingsError(GymBookException):
    code = "SCHEDULE_HAS_BOOKINGS"
    status_code = 409

    def __init__(self, booking_count: int):
        super().__init__(details={"booking_count": booking_count})


class ValidationError(GymBookException):
    """Validation errors"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message=message, details=details)


class LockAcquisitionError(GymBookException):
    """Failed to acquire the schedule lock in time; safe to retry"""

    code = "LOCK_FAILED"
    status_code = 409

    def __init__(self, resource: str):
        super().__init__(details={"resource": resource, "retry_after": 1})


class InvariantViolation(RuntimeError):
    """
    A ledger or queue invariant was broken. This is a defect, never a user
    error: the surrounding transaction must abort.
    """
