"""Failure taxonomy for the gamification engine."""

from __future__ import annotations


class GamificationError(Exception):
    """Base class for engine failures."""


class ValidationFailure(GamificationError, ValueError):
    """Activity metadata is missing or malformed. Degrades to zero points."""


class NotFoundFailure(GamificationError, LookupError):
    """A reward or user record addressed by id does not exist."""


class PersistenceFailure(GamificationError):
    """Storage I/O failed; nothing from the attempted write was committed."""


class ConcurrencyConflict(GamificationError):
    """Concurrent writers kept colliding on the same user aggregate."""


class CriteriaMisconfiguration(GamificationError, ValueError):
    """A reward references a metric type the evaluator cannot measure."""
