"""Order lifecycle error taxonomy."""

from __future__ import annotations

from enum import Enum
from typing import Any


class OrderErrorKind(str, Enum):
    INVALID_DATE = "InvalidDate"
    PAST_DATE = "PastDate"
    WINDOW_EXCEEDED = "WindowExceeded"
    DUPLICATE_ORDER = "DuplicateOrder"
    HOLIDAY_BLOCKED = "HolidayBlocked"
    SHIFT_NOT_FOUND = "ShiftNotFound"
    SHIFT_INACTIVE = "ShiftInactive"
    CUTOFF_PASSED = "CutoffPassed"
    CAPACITY_EXCEEDED = "CapacityExceeded"
    CANTEEN_UNAVAILABLE = "CanteenUnavailable"
    ORDER_NOT_FOUND = "OrderNotFound"
    FORBIDDEN = "Forbidden"
    NOT_CANCELLABLE = "NotCancellable"
    CANCEL_CUTOFF_PASSED = "CancelCutoffPassed"
    CHECKIN_TOO_EARLY = "CheckinTooEarly"
    CHECKIN_TOO_LATE = "CheckinTooLate"
    ALREADY_CHECKED_IN = "AlreadyCheckedIn"
    ALREADY_CANCELLED = "AlreadyCancelled"
    WRONG_CANTEEN = "WrongCanteen"
    USER_BLACKLISTED = "UserBlacklisted"
    USER_NOT_FOUND = "UserNotFound"
    INVALID_REQUEST = "InvalidRequest"
    RATE_LIMITED = "RateLimited"


HTTP_STATUS_BY_KIND: dict[OrderErrorKind, int] = {
    OrderErrorKind.INVALID_DATE: 400,
    OrderErrorKind.PAST_DATE: 400,
    OrderErrorKind.WINDOW_EXCEEDED: 400,
    OrderErrorKind.DUPLICATE_ORDER: 409,
    OrderErrorKind.HOLIDAY_BLOCKED: 400,
    OrderErrorKind.SHIFT_NOT_FOUND: 404,
    OrderErrorKind.SHIFT_INACTIVE: 400,
    OrderErrorKind.CUTOFF_PASSED: 403,
    OrderErrorKind.CAPACITY_EXCEEDED: 400,
    OrderErrorKind.CANTEEN_UNAVAILABLE: 400,
    OrderErrorKind.ORDER_NOT_FOUND: 404,
    OrderErrorKind.FORBIDDEN: 403,
    OrderErrorKind.NOT_CANCELLABLE: 409,
    OrderErrorKind.CANCEL_CUTOFF_PASSED: 400,
    OrderErrorKind.CHECKIN_TOO_EARLY: 400,
    OrderErrorKind.CHECKIN_TOO_LATE: 400,
    OrderErrorKind.ALREADY_CHECKED_IN: 409,
    OrderErrorKind.ALREADY_CANCELLED: 409,
    OrderErrorKind.WRONG_CANTEEN: 403,
    OrderErrorKind.USER_BLACKLISTED: 403,
    OrderErrorKind.USER_NOT_FOUND: 404,
    OrderErrorKind.INVALID_REQUEST: 400,
    OrderErrorKind.RATE_LIMITED: 429,
}


class OrderError(Exception):
    """Raised by the order services; carries exactly one failure kind.

    ``details`` holds boundary values (cutoff instant, holiday name, ...) that
    the API copies into the error payload.
    """

    def __init__(self, kind: OrderErrorKind, message: str, **details: Any) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND.get(self.kind, 400)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind.value, "message": self.message}
        for key, value in self.details.items():
            payload[key] = value.isoformat() if hasattr(value, "isoformat") else value
        return payload
