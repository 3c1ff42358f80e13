"""Exceptions raised by the classification pipeline."""

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""


class UnknownCategory(PipelineError, KeyError):
    """A label was not registered in the label space."""

    def __init__(self, label: Any):
        self.label = label
        super().__init__(label)

    def __str__(self) -> str:
        return f"Unknown category: {self.label!r}"


class InvalidProportions(PipelineError, ValueError):
    """Split proportions are negative, mis-sized, or do not sum to 1.0."""


class DegenerateFeature(PipelineError, ValueError):
    """One or more feature columns have (near) zero standard deviation."""

    def __init__(self, columns, message: Optional[str] = None):
        self.columns = list(columns)
        if message is None:
            message = f"Zero-variance feature column(s): {self.columns}"
        super().__init__(message)


class LengthMismatch(PipelineError, ValueError):
    """Two sequences that must be aligned have different lengths."""


class ShapeMismatch(PipelineError, ValueError):
    """Incompatible tensor or layer widths."""


class DivergedTraining(PipelineError, ArithmeticError):
    """Training produced a non-finite loss.

    Attributes:
        epoch: The 1-based epoch at which the loss became non-finite.
        loss: The offending loss value.
        run: The partial ``TrainingRun`` recorded up to (not including) ``epoch``.
    """

    def __init__(self, epoch: int, loss: float, run: Any = None):
        self.epoch = epoch
        self.loss = loss
        self.run = run
        super().__init__(f"Training diverged at epoch {epoch} (loss={loss})")
