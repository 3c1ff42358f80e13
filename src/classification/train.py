import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Optional, Sequence

import hydra
import torch
from hydra.core.hydra_config import HydraConfig
from omegaconf import DictConfig, OmegaConf

from common.data import TabularDataset, make_blob_dataset
from common.train import finalize_wandb_run, init_wandb_run, make_epoch_logger
from common.utils import set_seed

from .encoding import LabelEncoder, LabelSpace
from .evaluate import accuracy, predict
from .loops import evaluate_epoch
from .models.network import Network
from .scaling import FeatureStats, StandardScaler
from .splitting import SplitAssignment, split
from .trainer import Trainer, TrainingRun

log = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything one pipeline run produced, for external reporting."""

    label_space: LabelSpace
    split: SplitAssignment
    stats: FeatureStats
    network: Network
    run: TrainingRun
    test_probabilities: torch.Tensor
    test_accuracy: float
    test_loss: float = float("nan")
    metrics: Dict[str, Any] = field(default_factory=dict)


def load_dataset(cfg: DictConfig) -> TabularDataset:
    """Load the configured CSV, or synthetic blobs when ``data.path`` is unset."""
    label_column = OmegaConf.select(cfg, "data.label_column", default="label")
    data_path = OmegaConf.select(cfg, "data.path", default=None)

    if data_path:
        feature_columns = OmegaConf.select(cfg, "data.feature_columns", default=None)
        log.info(f"Loading dataset from: {data_path}")
        return TabularDataset.from_csv(
            str(data_path),
            label_column=label_column,
            feature_columns=list(feature_columns) if feature_columns else None,
        )

    synthetic = OmegaConf.select(cfg, "data.synthetic", default=None) or {}
    log.info("No data.path configured; generating synthetic blob dataset.")
    return make_blob_dataset(
        num_samples=int(synthetic.get("num_samples", 150)),
        num_features=int(synthetic.get("num_features", 4)),
        num_classes=int(synthetic.get("num_classes", 3)),
        cluster_std=float(synthetic.get("cluster_std", 1.0)),
        separation=float(synthetic.get("separation", 6.0)),
        seed=int(synthetic.get("seed", 0)),
        label_column=label_column,
    )


def _hydra_output_dir() -> Optional[str]:
    """Hydra's run directory, or ``None`` outside a Hydra application."""
    try:
        return HydraConfig.get().runtime.output_dir
    except ValueError:
        return None


def _rows(matrix: torch.Tensor, indices: Sequence[int]) -> torch.Tensor:
    return matrix.index_select(0, torch.tensor(list(indices), dtype=torch.long))


def run_pipeline(cfg: DictConfig) -> PipelineResult:
    """
    Main training and evaluation function.

    This function orchestrates the entire pipeline:
    1. Seeds the global RNGs.
    2. Loads the dataset and fits the label space on all labels.
    3. Splits records into train/test groups with the split seed.
    4. Fits scaling statistics on the train rows and applies them to both groups.
    5. Instantiates the network from the model config.
    6. Trains it with full-batch Adam.
    7. Predicts on the test rows and computes accuracy.

    Args:
        cfg: The Hydra configuration object.

    Returns:
        A :class:`PipelineResult`.
    """
    log.info("Starting classification pipeline...")
    try:
        cfg_repr = OmegaConf.to_yaml(cfg)
    except Exception as exc:
        log.warning("Could not render full config to YAML (skipping detailed dump): %s", exc)
        cfg_repr = str(cfg)
    log.debug(f"Full configuration:\n{cfg_repr}")

    # --- 1. Reproducibility ---
    init_seed = OmegaConf.select(cfg, "utils.seed", default=None)
    if init_seed is not None:
        set_seed(init_seed)
        log.info(f"Using seed: {init_seed}")

    # --- 2. Data & labels ---
    dataset = load_dataset(cfg)
    encoder = LabelEncoder(order=OmegaConf.select(cfg, "data.label_order", default="first_seen"))
    label_space = encoder.fit(dataset.labels)
    targets = encoder.encode(dataset.labels, label_space)
    log.info(f"Resolved {len(label_space)} classes: {list(label_space)}")

    # --- 3. Split ---
    proportions = list(OmegaConf.select(cfg, "split.proportions", default=[0.8, 0.2]))
    assignment = split(len(dataset), int(cfg.split.seed), proportions)
    train_idx, test_idx = assignment.train_indices, assignment.test_indices
    log.info(f"Split sizes (seed={cfg.split.seed}): {assignment.sizes()}")
    if not train_idx:
        raise ValueError("The split produced an empty training subset.")

    # --- 4. Scale (statistics from train rows only) ---
    scaler = StandardScaler(
        on_degenerate=OmegaConf.select(cfg, "scaling.on_degenerate", default="raise"),
        tolerance=float(OmegaConf.select(cfg, "scaling.tolerance", default=1e-12)),
    )
    stats = scaler.fit(_rows(dataset.features, train_idx), feature_names=dataset.feature_names)
    x_train = scaler.apply(_rows(dataset.features, train_idx), stats)
    x_test = scaler.apply(_rows(dataset.features, test_idx), stats)
    y_train = _rows(targets, train_idx)
    y_test = _rows(targets, test_idx)

    # --- 5. Model ---
    network = hydra.utils.instantiate(
        cfg.model,
        in_features=dataset.num_features,
        num_classes=len(label_space),
        seed=init_seed,
        _convert_="all",
    )
    log.info(f"Instantiated network:\n{network!r}")

    wandb_module: Optional[Any] = None
    wandb_run: Optional[Any] = None
    callbacks = []
    wandb_handle = init_wandb_run(
        cfg=cfg,
        run_dir=_hydra_output_dir(),
        num_parameters=sum(p.numel() for p in network.parameters()),
        train_dataset_size=len(train_idx),
        test_dataset_size=len(test_idx),
    )
    if wandb_handle:
        wandb_module, wandb_run = wandb_handle
        callbacks.append(make_epoch_logger(wandb_module))

    test_accuracy = float("nan")
    failed = True
    try:
        # --- 6. Train ---
        trainer = Trainer(
            epochs=cfg.training.epochs,
            learning_rate=cfg.training.learning_rate,
            betas=tuple(OmegaConf.select(cfg, "training.betas", default=[0.9, 0.999])),
            eps=float(OmegaConf.select(cfg, "training.eps", default=1e-8)),
            progress=bool(OmegaConf.select(cfg, "training.progress", default=False)),
            log_every=int(OmegaConf.select(cfg, "training.log_every", default=100)),
            callbacks=callbacks,
        )
        run = trainer.fit(network, x_train, y_train)

        # --- 7. Evaluate ---
        test_probabilities = predict(network, x_test)
        test_loss = float("nan")
        metrics: Dict[str, Any] = {}
        if test_idx:
            test_labels: List[Hashable] = [dataset.labels[i] for i in test_idx]
            predicted = encoder.decode_batch(test_probabilities, label_space)
            test_accuracy = accuracy(predicted, test_labels)
            test_loss, metrics = evaluate_epoch(
                network, x_test, y_test, label_names=label_space.display_names()
            )
            log.info(f"Test Loss: {test_loss:.4f} | Test Accuracy: {test_accuracy:.4f}")
        else:
            log.warning("The split produced an empty test subset; accuracy is undefined.")

        failed = False
        return PipelineResult(
            label_space=label_space,
            split=assignment,
            stats=stats,
            network=network,
            run=run,
            test_probabilities=test_probabilities,
            test_accuracy=test_accuracy,
            test_loss=test_loss,
            metrics=metrics,
        )
    finally:
        finalize_wandb_run(wandb_module, wandb_run, test_accuracy, failed)


@hydra.main(version_base=None, config_path="../../configs", config_name="config.yaml")
def main(cfg: DictConfig) -> Optional[float]:
    """
    Hydra entry point.

    Loads the configuration and passes it to :func:`run_pipeline`.

    Args:
        cfg: The Hydra configuration object automatically populated.

    Returns:
        Held-out accuracy, so sweepers can read it.
    """
    try:
        result = run_pipeline(cfg)
        if not math.isnan(result.test_accuracy):
            return result.test_accuracy
        return None
    except Exception as e:
        log.exception(f"An error occurred during the pipeline run: {e}")
        raise


if __name__ == "__main__":
    main()
