import logging
from typing import Hashable, List, Sequence

import torch

from .encoding import LabelEncoder, LabelSpace
from .errors import LengthMismatch
from .models.network import Network

log = logging.getLogger(__name__)


@torch.no_grad()
def predict(network: Network, features: torch.Tensor) -> torch.Tensor:
    """Class probabilities for each row; the network is only read."""
    return network.predict(features)


def predict_labels(
    network: Network,
    features: torch.Tensor,
    space: LabelSpace,
) -> List[Hashable]:
    """Most probable label per row, lowest column index on ties."""
    return LabelEncoder().decode_batch(predict(network, features), space)


def accuracy(predicted: Sequence[Hashable], true: Sequence[Hashable]) -> float:
    """Fraction of positions where ``predicted`` equals ``true``.

    Raises:
        LengthMismatch: If the sequences differ in length.
        ValueError: If both are empty.
    """
    predicted = list(predicted)
    true = list(true)
    if len(predicted) != len(true):
        raise LengthMismatch(
            f"Got {len(predicted)} predictions for {len(true)} ground-truth labels"
        )
    if not true:
        raise ValueError("Accuracy is undefined for empty sequences.")

    matches = sum(1 for p, t in zip(predicted, true) if p == t)
    log.debug("Accuracy: %d/%d matching labels", matches, len(true))
    return matches / len(true)
