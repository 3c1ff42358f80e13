"""Integration tests that exercise the full pipeline."""

import math

import pandas as pd
import pytest
import torch
from omegaconf import DictConfig

from classification.train import load_dataset, run_pipeline


def test_pipeline_on_csv(mock_cfg: DictConfig) -> None:
    """Runs the pipeline end-to-end on a CSV table and inspects outputs."""
    result = run_pipeline(mock_cfg)

    assert result.label_space.classes[0] in {"setosa", "versicolor", "virginica"}
    assert len(result.label_space) == 3
    assert len(result.run) == mock_cfg.training.epochs
    assert 0.0 <= result.test_accuracy <= 1.0

    num_test = len(result.split.test_indices)
    assert result.test_probabilities.shape == (num_test, 3)
    assert torch.allclose(
        result.test_probabilities.sum(dim=1), torch.ones(num_test, dtype=torch.float64), atol=1e-6
    )
    assert set(result.metrics["per_class"]) == {"setosa", "versicolor", "virginica"}


def test_scaling_statistics_come_from_training_rows_only(mock_cfg: DictConfig) -> None:
    result = run_pipeline(mock_cfg)
    dataset = load_dataset(mock_cfg)

    train_rows = dataset.features[result.split.train_indices]
    all_rows = dataset.features

    assert torch.allclose(result.stats.mean, train_rows.mean(dim=0))
    assert torch.allclose(result.stats.std, train_rows.std(dim=0, correction=0))
    assert not torch.allclose(result.stats.mean, all_rows.mean(dim=0))


def test_pipeline_is_reproducible(mock_cfg: DictConfig) -> None:
    first = run_pipeline(mock_cfg)
    second = run_pipeline(mock_cfg)

    assert first.split == second.split
    assert first.run.losses == second.run.losses
    assert torch.equal(first.test_probabilities, second.test_probabilities)


def test_iris_like_synthetic_scenario(default_cfg: DictConfig) -> None:
    """Shipped defaults: 150 x 4 blobs, 3 classes, split seed 42, (0.8, 0.2), 2 hidden units, 500 epochs."""
    assert default_cfg.data.path is None
    assert default_cfg.data.synthetic.num_samples == 150
    assert default_cfg.data.synthetic.num_features == 4
    assert default_cfg.data.synthetic.num_classes == 3
    assert default_cfg.split.seed == 42
    assert list(default_cfg.split.proportions) == [0.8, 0.2]
    assert default_cfg.model.hidden_units is None
    assert default_cfg.training.epochs == 500
    assert default_cfg.training.learning_rate == 0.001

    result = run_pipeline(default_cfg)

    assert result.network.layers[0].out_features == 2
    sizes = result.split.sizes()
    assert sizes["train"] + sizes["test"] == 150
    assert sizes["test"] > 0
    assert result.test_accuracy > 0.8
    assert result.run.final_loss < result.run.losses[0]

    frame = result.run.to_frame()
    assert isinstance(frame, pd.DataFrame) and len(frame) == 500


@pytest.mark.parametrize("init_seed", [1, 2, 3, 7])
def test_iris_like_scenario_other_init_seeds(default_cfg: DictConfig, init_seed: int) -> None:
    default_cfg.utils.seed = init_seed

    result = run_pipeline(default_cfg)

    assert result.test_accuracy > 0.8


def test_empty_test_split_reports_nan(mock_cfg: DictConfig) -> None:
    mock_cfg.split.proportions = [1.0, 0.0]
    mock_cfg.training.epochs = 2

    result = run_pipeline(mock_cfg)

    assert math.isnan(result.test_accuracy)
    assert result.test_probabilities.shape == (0, 3)
