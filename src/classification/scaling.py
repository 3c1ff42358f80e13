"""Feature standardization with statistics fitted on training rows only."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import torch

from .errors import DegenerateFeature, ShapeMismatch

log = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class FeatureStats:
    """Per-feature mean and population standard deviation.

    ``std`` is already safe to divide by: columns listed in ``degenerate`` had
    their zero deviation replaced with 1.0.
    """

    mean: torch.Tensor
    std: torch.Tensor
    feature_names: Optional[Tuple[str, ...]] = None
    degenerate: Tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Own private copies so later edits to the source tensors cannot leak in.
        object.__setattr__(self, "mean", self.mean.detach().clone())
        object.__setattr__(self, "std", self.std.detach().clone())
        if self.mean.shape != self.std.shape or self.mean.dim() != 1:
            raise ShapeMismatch(
                f"mean and std must be 1-D and equal-sized, got "
                f"{tuple(self.mean.shape)} and {tuple(self.std.shape)}"
            )

    @property
    def num_features(self) -> int:
        return self.mean.shape[0]


class StandardScaler:
    """Compute ``(x - mean) / std`` column-wise.

    Standard deviation is the population one (divide by ``n``), in both
    ``fit`` and anything derived from it.

    Args:
        on_degenerate: ``"raise"`` to fail with :class:`DegenerateFeature`
            when a column's std is at or below ``tolerance``; ``"unit"`` to
            substitute 1.0 and log a warning.
        tolerance: Threshold under which a std counts as zero.
    """

    POLICIES = ("raise", "unit")

    def __init__(self, on_degenerate: str = "raise", tolerance: float = 1e-12):
        if on_degenerate not in self.POLICIES:
            raise ValueError(
                f"on_degenerate must be one of {self.POLICIES}, got {on_degenerate!r}"
            )
        self.on_degenerate = on_degenerate
        self.tolerance = float(tolerance)

    def fit(
        self,
        matrix: torch.Tensor,
        feature_names: Optional[Sequence[str]] = None,
    ) -> FeatureStats:
        matrix = torch.as_tensor(matrix)
        if matrix.dim() != 2:
            raise ShapeMismatch(f"Expected a 2-D matrix, got shape {tuple(matrix.shape)}")
        if matrix.shape[0] == 0:
            raise ValueError("Cannot fit scaling statistics on an empty matrix.")
        if feature_names is not None and len(feature_names) != matrix.shape[1]:
            raise ShapeMismatch(
                f"{len(feature_names)} feature names for {matrix.shape[1]} columns"
            )

        if not matrix.is_floating_point():
            matrix = matrix.to(torch.float64)
        mean = matrix.mean(dim=0)
        std = matrix.std(dim=0, correction=0)

        degenerate: List[int] = [
            i for i, value in enumerate(std.tolist()) if not value > self.tolerance
        ]
        if degenerate:
            labels = [feature_names[i] for i in degenerate] if feature_names else degenerate
            if self.on_degenerate == "raise":
                raise DegenerateFeature(labels)
            log.warning("Substituting std=1.0 for zero-variance feature(s): %s", labels)
            std = std.clone()
            std[degenerate] = 1.0

        return FeatureStats(
            mean=mean,
            std=std,
            feature_names=tuple(feature_names) if feature_names is not None else None,
            degenerate=tuple(degenerate),
        )

    def apply(self, matrix: torch.Tensor, stats: FeatureStats) -> torch.Tensor:
        matrix = torch.as_tensor(matrix)
        if matrix.dim() != 2 or matrix.shape[1] != stats.num_features:
            raise ShapeMismatch(
                f"Expected a matrix with {stats.num_features} columns, "
                f"got shape {tuple(matrix.shape)}"
            )
        if not matrix.is_floating_point():
            matrix = matrix.to(stats.mean.dtype)
        mean = stats.mean.to(matrix.dtype)
        std = stats.std.to(matrix.dtype)
        return (matrix - mean) / std

    def fit_apply(
        self,
        matrix: torch.Tensor,
        feature_names: Optional[Sequence[str]] = None,
    ) -> Tuple[torch.Tensor, FeatureStats]:
        stats = self.fit(matrix, feature_names=feature_names)
        return self.apply(matrix, stats), stats
