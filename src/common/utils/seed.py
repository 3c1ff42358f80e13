"""Reproducibility helpers shared across pipelines."""

import random
from typing import Optional

import numpy as np
import torch


def set_seed(seed: int) -> None:
    """Seed Python, NumPy, and PyTorch RNGs."""
    random.seed(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)


def make_generator(seed: Optional[int]) -> Optional[torch.Generator]:
    """Return a private torch generator seeded with ``seed``, or ``None``.

    Passing the generator to torch sampling calls keeps a component's draws
    independent of how much of the global RNG stream was consumed elsewhere.
    """
    if seed is None:
        return None
    return torch.Generator().manual_seed(int(seed))
