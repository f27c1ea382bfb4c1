"""Exception types surfaced to the UI as notices."""

from __future__ import annotations


class OrderingError(Exception):
    """Base class for recoverable ordering errors."""


class ValidationError(OrderingError):
    """A checkout precondition does not hold."""


class PersistenceError(OrderingError):
    """The document store rejected or failed a write."""


class IdentityError(OrderingError):
    """An identity provider call failed."""


class BootstrapError(OrderingError):
    """No session could be established at startup."""


class ConfigError(OrderingError):
    """Configuration is missing or malformed."""
