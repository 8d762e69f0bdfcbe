# groupmatch/domain/errors.py


class MatchingError(Exception):
    """Base class for errors raised by the matching engine."""


class ValidationError(MatchingError, ValueError):
    """Malformed input or a business rule violation. Never partially applied."""


class NotFoundError(MatchingError, LookupError):
    """Unknown user or group, or a group the user is not eligible for."""


class ConcurrencyConflict(MatchingError):
    """A profile write kept losing the version compare-and-swap."""


class StaleReferenceError(MatchingError):
    """A recompute job refers to a group that no longer exists."""


class DispatcherClosedError(MatchingError):
    """The recompute dispatcher is shutting down and rejects new work."""
