"""
Exception types for NestedTune.

Setup errors (search space, budget) are raised immediately. Evaluation errors
are raised per configuration and recovered by the tuning instance. Leakage
errors are always fatal.
"""


class NestedTuneError(Exception):
    """Base class for all NestedTune errors."""


class InvalidSearchSpace(NestedTuneError, ValueError):
    """Raised when a search space has duplicate names or an empty range."""


class OutOfRangeError(NestedTuneError, ValueError):
    """Raised when a configuration violates its search space."""


class EvaluationError(NestedTuneError):
    """
    Raised when every resampling fold failed for a configuration.

    Attributes:
        config: The configuration that could not be scored
        errors: Error messages collected per fold
    """

    def __init__(self, message, config=None, errors=None):
        super().__init__(message)
        self.config = config
        self.errors = list(errors or [])


class BudgetMisconfigured(NestedTuneError, ValueError):
    """Raised when a terminator is configured with an unusable budget."""


class LeakageError(NestedTuneError):
    """Raised when outer test rows were seen by an inner tuning loop."""
