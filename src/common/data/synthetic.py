"""Synthetic, well-separated tabular datasets for smoke runs and tests."""

import logging
from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.datasets import make_blobs

from .dataset import TabularDataset

log = logging.getLogger(__name__)


def make_blob_dataset(
    num_samples: int = 150,
    num_features: int = 4,
    num_classes: int = 3,
    cluster_std: float = 1.0,
    separation: float = 6.0,
    seed: int = 0,
    label_names: Optional[Sequence[str]] = None,
    label_column: str = "label",
) -> TabularDataset:
    """Gaussian blobs, one per class, shaped like the iris table by default.

    Class ``k`` is centred at ``separation`` along feature axis
    ``k % num_features`` (plus a further offset when classes outnumber
    features), so any two centres are at least ``separation`` apart.
    """
    if num_classes < 2:
        raise ValueError(f"num_classes must be at least 2, got {num_classes}")
    if label_names is not None and len(label_names) != num_classes:
        raise ValueError(f"{len(label_names)} label names for {num_classes} classes")

    centers = np.zeros((num_classes, num_features))
    for k in range(num_classes):
        centers[k, k % num_features] = separation * (1 + k // num_features)

    x, y = make_blobs(
        n_samples=num_samples,
        n_features=num_features,
        centers=centers,
        cluster_std=cluster_std,
        shuffle=True,
        random_state=seed,
    )

    names = list(label_names) if label_names is not None else [f"class_{k}" for k in range(num_classes)]
    frame = pd.DataFrame(x, columns=[f"feature_{i}" for i in range(num_features)])
    frame[label_column] = [names[k] for k in y]

    log.debug("Generated %d synthetic records across %d classes.", num_samples, num_classes)
    return TabularDataset(frame, label_column, source=f"make_blob_dataset(seed={seed})")
