"""Utility helpers shared across task pipelines."""

from .seed import make_generator, set_seed

__all__ = ["make_generator", "set_seed"]
