"""Utility helpers for integrating Weights & Biases logging into training runs."""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, Optional, Tuple

from omegaconf import DictConfig, OmegaConf

log = logging.getLogger(__name__)


def init_wandb_run(
    cfg: DictConfig,
    run_dir: Optional[str],
    num_parameters: Optional[int],
    train_dataset_size: Optional[int],
    test_dataset_size: Optional[int],
) -> Optional[Tuple[Any, Any]]:
    """Initialize a W&B run if requested by the configuration."""

    logger_name = OmegaConf.select(cfg, "logging.logger_name", default=None)
    if not logger_name or str(logger_name).lower() != "wandb":
        return None

    try:
        import wandb  # type: ignore
    except ImportError as exc:  # pragma: no cover - triggered when wandb missing
        log.warning("W&B logging requested but wandb is not installed: %s", exc)
        return None

    wandb_kwargs: Dict[str, Any] = {}
    for kwarg, conf_key in [
        ("project", "logging.project_name"),
        ("entity", "logging.entity"),
        ("group", "logging.group"),
        ("job_type", "logging.job_type"),
        ("name", "logging.run_name"),
        ("mode", "logging.mode"),
    ]:
        value = OmegaConf.select(cfg, conf_key, default=None)
        if value:
            wandb_kwargs[kwarg] = value

    tags = OmegaConf.select(cfg, "logging.tags", default=None)
    if tags:
        wandb_kwargs["tags"] = [str(tag) for tag in tags]

    try:
        config_payload = OmegaConf.to_container(cfg, resolve=True)
    except Exception as exc:
        log.debug("Falling back to non-resolved config for W&B init: %s", exc)
        config_payload = OmegaConf.to_container(cfg, resolve=False)

    if run_dir:
        wandb_kwargs["dir"] = str(run_dir)

    try:
        wandb_run = wandb.init(config=config_payload, **wandb_kwargs)
    except Exception as exc:
        log.warning("Failed to initialize W&B run: %s", exc)
        return None

    if wandb_run is None:
        log.warning("wandb.init returned None; proceeding without W&B logging.")
        return None

    dataset_info: Dict[str, Any] = {}
    if num_parameters is not None:
        dataset_info["model/num_parameters"] = int(num_parameters)
    if train_dataset_size is not None:
        dataset_info["dataset/train_samples"] = int(train_dataset_size)
    if test_dataset_size is not None:
        dataset_info["dataset/test_samples"] = int(test_dataset_size)
    if dataset_info:
        try:
            wandb.config.update(dataset_info, allow_val_change=True)
        except Exception as exc:
            log.debug("Failed to push dataset stats to W&B config: %s", exc)

    try:
        wandb.define_metric("epoch")
        wandb.define_metric("train/*", step_metric="epoch")
    except Exception as exc:
        log.debug("Unable to register W&B metric definitions: %s", exc)

    run_identifier = getattr(wandb_run, "name", None) or getattr(wandb_run, "id", "unknown")
    log.info("W&B logging enabled for run: %s", run_identifier)

    return wandb, wandb_run


def build_epoch_payload(epoch: int, train_loss: float, train_accuracy: float) -> Dict[str, Any]:
    """Flatten one training epoch into a W&B-friendly dictionary."""

    return {
        "epoch": int(epoch),
        "train/loss": float(train_loss),
        "train/accuracy": float(train_accuracy),
    }


def log_wandb_metrics(wandb_module: Any, payload: Dict[str, Any], step: int) -> None:
    """Safely log metrics to W&B, shielding the caller from logging errors."""

    if not payload:
        return

    try:
        wandb_module.log(payload, step=step)
    except Exception as exc:
        log.warning("Failed to log metrics to W&B: %s", exc)


def make_epoch_logger(wandb_module: Any) -> Callable[[Any], None]:
    """Return a trainer callback that forwards each epoch record to W&B."""

    def _log_epoch(record: Any) -> None:
        payload = build_epoch_payload(record.epoch, record.loss, record.accuracy)
        log_wandb_metrics(wandb_module, payload, step=record.epoch)

    return _log_epoch


def finalize_wandb_run(
    wandb_module: Optional[Any],
    wandb_run: Optional[Any],
    test_accuracy: float,
    failed: bool,
) -> None:
    """Finalize the W&B run, updating summary metrics if available."""

    if not wandb_module or not wandb_run:
        return

    try:
        if not math.isnan(test_accuracy):
            wandb_run.summary["test_accuracy"] = float(test_accuracy)
        wandb_run.summary["failed"] = bool(failed)
    except Exception as exc:
        log.debug("Failed to update W&B summary: %s", exc)

    try:
        wandb_module.finish(exit_code=1 if failed else 0)
    except Exception as exc:
        log.warning("Failed to finalize W&B run: %s", exc)
