"""Shared training utilities used across task-specific pipelines."""

from .wandb_logging import (
    build_epoch_payload,
    finalize_wandb_run,
    init_wandb_run,
    log_wandb_metrics,
    make_epoch_logger,
)

__all__ = [
    "init_wandb_run",
    "build_epoch_payload",
    "log_wandb_metrics",
    "make_epoch_logger",
    "finalize_wandb_run",
]
