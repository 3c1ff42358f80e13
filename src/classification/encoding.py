"""Label encoding between categorical values and one-hot matrices."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, List, Sequence, Tuple

import torch

from .errors import ShapeMismatch, UnknownCategory

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class LabelSpace:
    """Ordered, immutable set of class labels.

    The position of a label in ``classes`` is its one-hot column and its
    output unit in the network. Build it once from the full label column and
    reuse it for every subset.
    """

    classes: Tuple[Hashable, ...]

    def __post_init__(self):
        if len(set(self.classes)) != len(self.classes):
            raise ValueError(f"LabelSpace classes must be unique: {self.classes}")
        object.__setattr__(
            self, "_lookup", {label: i for i, label in enumerate(self.classes)}
        )

    def __len__(self) -> int:
        return len(self.classes)

    def __iter__(self):
        return iter(self.classes)

    def __getitem__(self, idx: int) -> Hashable:
        return self.classes[idx]

    def __contains__(self, label: Any) -> bool:
        return label in self._lookup

    def index(self, label: Any) -> int:
        try:
            return self._lookup[label]
        except (KeyError, TypeError):
            raise UnknownCategory(label) from None

    def display_names(self) -> List[str]:
        """One distinct string per class, in column order.

        Uses ``str(label)``; when two labels print the same (``1`` and
        ``"1"``), every name falls back to ``repr(label)``.
        """
        names = [str(label) for label in self.classes]
        if len(set(names)) != len(names):
            names = [repr(label) for label in self.classes]
        return names


class LabelEncoder:
    """Fit a :class:`LabelSpace` and translate labels to/from one-hot rows.

    Args:
        order: ``"first_seen"`` keeps categories in the order they first
            appear; ``"sorted"`` sorts them.
    """

    ORDERS = ("first_seen", "sorted")

    def __init__(self, order: str = "first_seen"):
        if order not in self.ORDERS:
            raise ValueError(f"order must be one of {self.ORDERS}, got {order!r}")
        self.order = order

    def fit(self, labels: Iterable[Hashable]) -> LabelSpace:
        seen: Dict[Hashable, None] = {}
        for label in labels:
            seen.setdefault(label, None)
        classes = list(seen)
        if self.order == "sorted":
            classes = sorted(classes)
        if not classes:
            raise ValueError("Cannot fit a LabelSpace on an empty label sequence.")
        log.debug("Registered %d categories: %s", len(classes), classes)
        return LabelSpace(tuple(classes))

    def encode(
        self,
        labels: Sequence[Hashable],
        space: LabelSpace,
        dtype: torch.dtype = torch.float64,
    ) -> torch.Tensor:
        indices = torch.tensor([space.index(label) for label in labels], dtype=torch.long)
        one_hot = torch.zeros((len(indices), len(space)), dtype=dtype)
        if len(indices):
            one_hot[torch.arange(len(indices)), indices] = 1.0
        return one_hot

    def decode(self, probability_row: torch.Tensor, space: LabelSpace) -> Hashable:
        row = torch.as_tensor(probability_row)
        if row.dim() != 1 or row.shape[0] != len(space):
            raise ShapeMismatch(
                f"Expected a row of width {len(space)}, got shape {tuple(row.shape)}"
            )
        # argmax returns the first maximal index, so ties go to the lowest column.
        return space[int(torch.argmax(row))]

    def decode_batch(self, probabilities: torch.Tensor, space: LabelSpace) -> List[Hashable]:
        probabilities = torch.as_tensor(probabilities)
        if probabilities.dim() != 2:
            raise ShapeMismatch(
                f"Expected a 2-D probability matrix, got shape {tuple(probabilities.shape)}"
            )
        return [self.decode(row, space) for row in probabilities]
