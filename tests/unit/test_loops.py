"""Unit tests for classification.loops utilities."""

import math

import pytest
import torch

from classification import loops
from classification.encoding import LabelSpace
from classification.errors import DivergedTraining, LengthMismatch
from classification.models import build_network
from classification.optim import Adam


def test_compute_metrics_accuracy_and_per_class():
    probabilities = torch.tensor([[0.9, 0.1], [0.2, 0.8], [0.6, 0.4], [0.3, 0.7]])
    targets = torch.tensor([[1.0, 0.0], [0.0, 1.0], [0.0, 1.0], [0.0, 1.0]])

    metrics = loops.compute_metrics(probabilities, targets, label_names=["neg", "pos"])

    assert metrics["accuracy"] == pytest.approx(0.75)
    per_class = metrics["per_class"]
    assert set(per_class) == {"neg", "pos"}
    assert per_class["pos"]["support"] == 3
    assert per_class["pos"]["precision"] == pytest.approx(1.0)
    assert per_class["pos"]["recall"] == pytest.approx(2 / 3)
    assert all(set(stats) == {"precision", "recall", "f1", "support"} for stats in per_class.values())


def test_compute_metrics_pads_missing_label_names():
    probabilities = torch.eye(3)

    metrics = loops.compute_metrics(probabilities, torch.eye(3), label_names=["a"])

    assert list(metrics["per_class"]) == ["a", "class_1", "class_2"]
    assert metrics["accuracy"] == 1.0


def test_compute_metrics_without_names_and_mismatch():
    metrics = loops.compute_metrics(torch.eye(2), torch.eye(2))

    assert "per_class" not in metrics
    with pytest.raises(LengthMismatch):
        loops.compute_metrics(torch.eye(2), torch.eye(3)[:, :2])


def test_train_epoch_updates_parameters_and_reports_pre_update_loss(separable_data):
    features, targets = separable_data
    network = build_network(2, 2, hidden_units=[3], seed=0)
    optimizer = Adam(network.parameters(), lr=0.01)
    _, probabilities = network.forward(features)
    expected_loss = network.loss(probabilities, targets)
    before = [p.clone() for p in network.parameters()]

    loss, accuracy = loops.train_epoch(network, features, targets, optimizer, epoch=1)

    assert loss == pytest.approx(expected_loss)
    assert 0.0 <= accuracy <= 1.0
    assert any(not torch.equal(a, b) for a, b in zip(before, network.parameters()))


def test_train_epoch_raises_on_non_finite_loss(separable_data):
    features, targets = separable_data
    network = build_network(2, 2, hidden_units=[3], seed=0)
    network.layers[0].weight[0, 0] = float("nan")
    optimizer = Adam(network.parameters())
    before = [p.clone() for p in network.parameters()]

    with pytest.raises(DivergedTraining) as excinfo:
        loops.train_epoch(network, features, targets, optimizer, epoch=7)

    assert excinfo.value.epoch == 7
    assert math.isnan(excinfo.value.loss)
    assert optimizer.step_count == 0
    assert all(torch.allclose(a, b, equal_nan=True) for a, b in zip(before, network.parameters()))


def test_evaluate_epoch_leaves_network_untouched(separable_data):
    features, targets = separable_data
    network = build_network(2, 2, hidden_units=[3], seed=0)
    before = [p.clone() for p in network.parameters()]

    loss, metrics = loops.evaluate_epoch(network, features, targets, label_names=["a", "b"])

    assert math.isfinite(loss)
    assert "per_class" in metrics
    assert all(torch.equal(a, b) for a, b in zip(before, network.parameters()))


def test_evaluate_epoch_on_empty_matrix():
    network = build_network(2, 2, hidden_units=[], seed=0)

    loss, metrics = loops.evaluate_epoch(
        network, torch.zeros((0, 2), dtype=torch.float64), torch.zeros((0, 2), dtype=torch.float64)
    )

    assert math.isnan(loss)
    assert math.isnan(metrics["accuracy"])


def test_compute_metrics_rejects_names_that_print_alike():
    probabilities = torch.eye(2)

    with pytest.raises(ValueError, match="distinct"):
        loops.compute_metrics(probabilities, torch.eye(2), label_names=[1, "1"])
    with pytest.raises(ValueError, match="distinct"):
        loops.compute_metrics(torch.eye(3), torch.eye(3), label_names=["class_1"])


def test_compute_metrics_keeps_classes_with_display_names_apart():
    space = LabelSpace((1, "1"))
    targets = torch.tensor([[1.0, 0.0], [0.0, 1.0], [0.0, 1.0]])
    probabilities = torch.tensor([[0.9, 0.1], [0.2, 0.8], [0.6, 0.4]])

    metrics = loops.compute_metrics(probabilities, targets, label_names=space.display_names())

    per_class = metrics["per_class"]
    assert list(per_class) == ["1", "'1'"]
    assert per_class["1"]["support"] == 1
    assert per_class["'1'"]["support"] == 2
