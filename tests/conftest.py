"""Shared pytest fixtures for the test suite."""

from pathlib import Path

import hydra
import numpy as np
import pandas as pd
import pytest
import torch
from omegaconf import DictConfig
from hydra.core.global_hydra import GlobalHydra

MOCK_NUM_FEATURES = 4
MOCK_SAMPLES_PER_CLASS = 20
MOCK_EPOCHS = 50


@pytest.fixture(scope="function")
def separable_data():
    """Two clusters far apart along every axis, with one-hot targets."""
    num_per_class = 40
    generator = torch.Generator().manual_seed(0)
    neg = torch.randn((num_per_class, 2), generator=generator, dtype=torch.float64) * 0.5 - 3.0
    pos = torch.randn((num_per_class, 2), generator=generator, dtype=torch.float64) * 0.5 + 3.0
    features = torch.cat([neg, pos], dim=0)
    targets = torch.zeros((2 * num_per_class, 2), dtype=torch.float64)
    targets[:num_per_class, 0] = 1.0
    targets[num_per_class:, 1] = 1.0
    return features, targets


@pytest.fixture(scope="function")
def mock_csv_path(tmp_path: Path) -> Path:
    """Writes a small, well-separated 3-class table to CSV."""
    rng = np.random.default_rng(1234)

    frames = []
    for k, name in enumerate(["setosa", "versicolor", "virginica"]):
        center = np.zeros(MOCK_NUM_FEATURES)
        center[k] = 6.0
        values = rng.normal(loc=center, scale=0.5, size=(MOCK_SAMPLES_PER_CLASS, MOCK_NUM_FEATURES))
        frame = pd.DataFrame(values, columns=[f"f{i}" for i in range(MOCK_NUM_FEATURES)])
        frame["species"] = name
        frames.append(frame)

    table = pd.concat(frames, ignore_index=True).sample(frac=1.0, random_state=7)
    csv_path = tmp_path / "iris_like.csv"
    table.to_csv(csv_path, index=False)
    return csv_path


@pytest.fixture(scope="function")
def mock_cfg(mock_csv_path: Path) -> DictConfig:
    """Loads the Hydra configuration with overrides for fast runtime."""

    config_dir = Path(__file__).resolve().parent.parent / "configs"

    GlobalHydra.instance().clear()

    with hydra.initialize_config_dir(config_dir=str(config_dir), job_name="test", version_base=None):
        cfg = hydra.compose(
            config_name="config.yaml",
            overrides=[
                "hydra/job_logging=default",
                "hydra/hydra_logging=default",
                f"data.path={mock_csv_path.as_posix()}",
                "data.label_column=species",
                f"training.epochs={MOCK_EPOCHS}",
                "training.learning_rate=0.05",
                "split.seed=42",
                "utils.seed=7",
                "model=mlp",
                "model.hidden_units=[4]",
                "logging.logger_name=null",
            ],
        )

    return cfg


@pytest.fixture(scope="function")
def default_cfg() -> DictConfig:
    """Loads the shipped Hydra configuration without any task overrides."""

    config_dir = Path(__file__).resolve().parent.parent / "configs"

    GlobalHydra.instance().clear()

    with hydra.initialize_config_dir(config_dir=str(config_dir), job_name="test", version_base=None):
        cfg = hydra.compose(
            config_name="config.yaml",
            overrides=[
                "hydra/job_logging=default",
                "hydra/hydra_logging=default",
            ],
        )

    return cfg
