"""Seeded train/test partitioning of record indices."""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

import torch

from common.utils import make_generator

from .errors import InvalidProportions

log = logging.getLogger(__name__)

PROPORTION_TOLERANCE = 1e-6


@dataclass(frozen=True)
class SplitAssignment:
    """Group id per record index, plus the group names the ids refer to."""

    groups: Tuple[int, ...]
    names: Tuple[str, ...] = ("train", "test")

    def __len__(self) -> int:
        return len(self.groups)

    def group_of(self, index: int) -> str:
        return self.names[self.groups[index]]

    def indices(self, name: str) -> List[int]:
        try:
            group_id = self.names.index(name)
        except ValueError:
            raise KeyError(f"Unknown split group {name!r}; expected one of {self.names}") from None
        return [i for i, g in enumerate(self.groups) if g == group_id]

    @property
    def train_indices(self) -> List[int]:
        return self.indices("train")

    @property
    def test_indices(self) -> List[int]:
        return self.indices("test")

    def sizes(self) -> Dict[str, int]:
        return {name: self.groups.count(i) for i, name in enumerate(self.names)}


def _validate_proportions(proportions: Sequence[float], names: Sequence[str]) -> List[float]:
    values = [float(p) for p in proportions]
    if len(values) != len(names):
        raise InvalidProportions(
            f"Got {len(values)} proportions for {len(names)} groups {tuple(names)}"
        )
    if any(not math.isfinite(p) or p < 0.0 for p in values):
        raise InvalidProportions(f"Proportions must be finite and non-negative: {values}")
    total = sum(values)
    if abs(total - 1.0) > PROPORTION_TOLERANCE:
        raise InvalidProportions(f"Proportions must sum to 1.0, got {total} from {values}")
    return values


def split(
    num_records: int,
    seed: int,
    proportions: Sequence[float] = (0.8, 0.2),
    names: Sequence[str] = ("train", "test"),
) -> SplitAssignment:
    """Assign each record index to one group.

    Every record gets an independent uniform draw from a generator seeded with
    ``seed``; the draw's position among the cumulative proportions picks the
    group. The result depends only on the arguments, so equal inputs give equal
    assignments. Because draws are independent (no stratification, no quota),
    the observed group sizes only approximate ``proportions``; with 150
    records and (0.8, 0.2) the test group typically holds 20-40 records.

    Raises:
        InvalidProportions: If proportions are negative, do not match ``names``
            in count, or do not sum to 1.0 (within 1e-6).
        ValueError: If ``num_records`` is negative.
    """
    if num_records < 0:
        raise ValueError(f"num_records must be non-negative, got {num_records}")
    if seed is None:
        raise ValueError("split requires an explicit integer seed")
    if len(set(names)) != len(names):
        raise ValueError(f"Split group names must be unique: {tuple(names)}")
    values = _validate_proportions(proportions, names)

    generator = make_generator(seed)
    draws = torch.rand(num_records, generator=generator, dtype=torch.float64)

    bounds = torch.cumsum(torch.tensor(values, dtype=torch.float64), dim=0)
    groups = torch.bucketize(draws, bounds, right=True)
    # Draws beyond a total slightly below 1.0 fall into the last group.
    groups = groups.clamp(max=len(values) - 1)

    assignment = SplitAssignment(groups=tuple(int(g) for g in groups), names=tuple(names))
    log.debug("Split %d records with seed %s: %s", num_records, seed, assignment.sizes())
    return assignment
