from __future__ import annotations


class DispatchError(Exception):
    """Base class for domain errors raised by the salon services."""


class Unauthorized(DispatchError):
    pass


class NotFound(DispatchError):
    pass


class ValidationFailure(DispatchError):
    pass


class DataAccessFailure(DispatchError):
    pass


class TransportFailure(DispatchError):
    """Raised by the dispatcher for a single recipient and caught by its send loop."""

    def __init__(self, phone: str, reason: str):
        super().__init__(f"SMS to {phone} failed: {reason}")
        self.phone = phone
        self.reason = reason


class TokenExpired(DispatchError):
    pass


class TokenAlreadyUsed(DispatchError):
    pass
