"""
Exceptions raised by the tracking engine and its position sources.
"""

from enum import IntEnum
from typing import Optional


class TrackerError(Exception):
    """Base class for tracker errors."""


class SessionStateError(TrackerError):
    """A lifecycle call was made from a state that does not allow it."""


class SessionNotFoundError(TrackerError):
    """No session is registered under the requested id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class PositionErrorCode(IntEnum):
    """Position source failure codes (same numbering as the W3C Geolocation API)."""

    UNKNOWN = 0
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3


_ERROR_MESSAGES = {
    PositionErrorCode.PERMISSION_DENIED: "Location access denied. Please enable GPS permissions.",
    PositionErrorCode.POSITION_UNAVAILABLE: "GPS position unavailable. Please check your GPS settings.",
    PositionErrorCode.TIMEOUT: "GPS request timed out. Please try again.",
    PositionErrorCode.UNKNOWN: "Unknown GPS error occurred.",
}


class PositionSourceError(TrackerError):
    """
    Fatal condition reported by the position source.

    Moves a tracking session into the Failed state.
    """

    def __init__(
        self,
        code: PositionErrorCode = PositionErrorCode.UNKNOWN,
        detail: Optional[str] = None,
    ):
        self.code = PositionErrorCode(code)
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """User-facing message, as shown by the tracking dashboard."""
        text = f"GPS tracking error: {_ERROR_MESSAGES[self.code]}"
        if self.detail:
            text = f"{text} ({self.detail})"
        return text
