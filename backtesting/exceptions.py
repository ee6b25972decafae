"""Exception hierarchy for rolling-origin backtesting.

Every error raised by the harness derives from ``BacktestError``. Errors that
happen while a fold is being evaluated are annotated with the fold index and
the timestamp ranges of its training and test windows, so a failed run always
points at the offending fold.
"""

from typing import Any, Optional, Tuple


class BacktestError(Exception):
    """Base exception for backtesting operations."""

    def __init__(self, message: str, *,
                 fold_index: Optional[int] = None,
                 train_range: Optional[Tuple[Any, Any]] = None,
                 test_range: Optional[Tuple[Any, Any]] = None):
        super().__init__(message)
        self.message = message
        self.fold_index = fold_index
        self.train_range = train_range
        self.test_range = test_range

    def with_fold(self, fold_index: int,
                  train_range: Optional[Tuple[Any, Any]] = None,
                  test_range: Optional[Tuple[Any, Any]] = None) -> "BacktestError":
        """Attach fold context to this error and return it unchanged otherwise."""
        self.fold_index = fold_index
        self.train_range = train_range
        self.test_range = test_range
        return self

    def __str__(self) -> str:
        if self.fold_index is None:
            return self.message

        context = [f"fold {self.fold_index}"]
        if self.train_range is not None:
            context.append(f"train {format_timestamp(self.train_range[0])}..{format_timestamp(self.train_range[1])}")
        if self.test_range is not None:
            context.append(f"test {format_timestamp(self.test_range[0])}..{format_timestamp(self.test_range[1])}")
        return f"{self.message} ({', '.join(context)})"


class InsufficientDataError(BacktestError):
    """The series is too short for the configured window and horizon."""


class CovariateAlignmentError(BacktestError):
    """A timestamp required by a fold has no covariate row."""

    def __init__(self, message: str, timestamp: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timestamp = timestamp


class ModelFitError(BacktestError):
    """The forecast model failed to fit its training window."""


class ModelPredictError(BacktestError):
    """The forecast model failed to produce a valid forecast."""


class SeriesValidationError(BacktestError, ValueError):
    """The target series violates the time series invariants."""


def format_timestamp(value: Any) -> str:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
