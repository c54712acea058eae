"""Error types raised by the EmotiHome core."""

from __future__ import annotations


class EmotiHomeError(Exception):
    """Base class for all core errors."""


class CaptureUnavailable(EmotiHomeError):
    """The camera could not be opened or read."""


class ClassificationError(EmotiHomeError):
    """The emotion analysis call failed (network, timeout, bad response)."""


class AuthenticationError(ClassificationError):
    """The bearer credential is missing or was rejected by the service.

    Subclasses ClassificationError so the session treats it as a failed
    sample, while callers can still catch it to prompt a new login.
    """


class PersistenceError(EmotiHomeError):
    """A read or write against the persistent store failed."""


class NotFound(EmotiHomeError):
    """The record does not exist or is not owned by the caller."""


class InvalidState(EmotiHomeError):
    """The operation is not allowed in the current session state."""


class RuleValidationError(EmotiHomeError, ValueError):
    """A rule field is missing or outside its allowed values."""
