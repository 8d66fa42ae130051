"""Classification of provider error statuses for logging."""

from enum import Enum


class ProviderErrorKind(Enum):
    """Well-known completion API error statuses and what they mean."""

    INVALID_FORMAT = (400, "invalid request body format")
    AUTHENTICATION = (401, "authentication failed, check the API key")
    INSUFFICIENT_BALANCE = (402, "insufficient account balance")
    INVALID_PARAMETERS = (422, "invalid request parameters")
    RATE_LIMIT = (429, "rate limit reached")
    SERVER_ERROR = (500, "provider server error")
    SERVER_OVERLOADED = (503, "provider server overloaded")
    UNKNOWN = (None, "unknown error")

    def __init__(self, status: int | None, description: str):
        self.status = status
        self.description = description

    @classmethod
    def from_status(cls, status: int | None) -> "ProviderErrorKind":
        """Map an HTTP status to its kind; anything unlisted is UNKNOWN."""
        for kind in cls:
            if kind.status is not None and kind.status == status:
                return kind
        return cls.UNKNOWN
