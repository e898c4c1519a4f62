"""
Exception hierarchy for the compression pipeline.

Only pattern loading and feedback persistence failures ever escape the core;
miss logging and usage updates are best-effort and are logged instead.
"""


class PithyError(Exception):
    """Base class for all compression system errors."""

    retryable = False


class ValidationError(PithyError):
    """Input rejected before the pipeline runs (empty, oversized or non-text)."""


class PersistenceError(PithyError):
    """The pattern store could not complete an operation."""

    retryable = True


class PatternLoadError(PithyError):
    """Rule sets could not be loaded; the compression call is aborted."""

    retryable = True

    def __init__(self, message: str = "Pattern store temporarily unavailable", priority: int = None):
        super().__init__(message)
        self.priority = priority


class FeedbackPersistenceError(PithyError):
    """A feedback event or its confidence updates could not be written."""

    retryable = True


class PatternNotFoundError(PithyError):
    """No pattern exists for the given id or text."""


class DuplicatePatternError(PithyError):
    """A pattern for the given original text already exists."""
