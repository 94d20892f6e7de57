"""Error kinds surfaced by the gate core. None of them are retried internally."""

from __future__ import annotations


class GateError(Exception):
    """Base class for gate failures."""


class AuthorizationError(GateError):
    """The blocking capability has not been authorized."""


class PersistenceError(GateError):
    """A key-value store read or write failed."""


class SchedulingError(GateError):
    """The OS scheduling capability rejected a window registration."""
