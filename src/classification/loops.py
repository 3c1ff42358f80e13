"""Full-batch training and evaluation passes for classification networks."""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple, Union

import torch
from sklearn.metrics import precision_recall_fscore_support

from .errors import DivergedTraining, LengthMismatch
from .models.network import Network
from .optim import Adam

log = logging.getLogger(__name__)


def compute_metrics(
	probabilities: torch.Tensor,
	targets: torch.Tensor,
	label_names: Optional[List[str]] = None,
) -> Dict[str, Any]:
	"""Compute accuracy and optional per-class precision/recall/f1 for softmax output.

	Args:
		probabilities: Row-stochastic model output (N, C).
		targets: One-hot ground truth (N, C).
		label_names: Optional list of class names of length C. If provided, a
			`per_class` mapping will be included in the returned metrics.
			Names that coincide after ``str()`` raise ``ValueError``.
	"""
	if probabilities.shape[0] != targets.shape[0]:
		raise LengthMismatch(
			f"{probabilities.shape[0]} prediction rows for {targets.shape[0]} target rows"
		)
	if probabilities.shape[0] == 0:
		return {"accuracy": float("nan")}

	# argmax keeps the first maximal column, so ties resolve to the lowest index.
	pred_idx = torch.argmax(probabilities, dim=1)
	true_idx = torch.argmax(targets, dim=1)
	accuracy = float((pred_idx == true_idx).to(torch.float64).mean())

	out: Dict[str, Any] = {"accuracy": accuracy}

	# If the caller requested per-class metrics, compute precision/recall/f1.
	if label_names is not None:
		num_classes = probabilities.shape[1]
		resolved_names = [str(name) for name in label_names][:num_classes]
		for idx in range(len(resolved_names), num_classes):
			resolved_names.append(f"class_{idx}")
		if len(set(resolved_names)) != num_classes:
			raise ValueError(
				f"Per-class metric names must be distinct, got {resolved_names}"
			)

		precision, recall, f1, support = precision_recall_fscore_support(
			true_idx.numpy(),
			pred_idx.numpy(),
			labels=list(range(num_classes)),
			average=None,
			zero_division=0,
		)

		per_class: Dict[str, Dict[str, Union[float, int]]] = {}
		for i in range(num_classes):
			per_class[resolved_names[i]] = {
				"precision": float(precision[i]),
				"recall": float(recall[i]),
				"f1": float(f1[i]),
				"support": int(support[i]),
			}
		out["per_class"] = per_class

	return out


def train_epoch(
	network: Network,
	features: torch.Tensor,
	targets: torch.Tensor,
	optimizer: Adam,
	epoch: int = 0,
) -> Tuple[float, float]:
	"""Run one full-batch pass and return ``(loss, accuracy)`` before the update.

	Raises:
		DivergedTraining: If the loss is NaN or infinite. Parameters are left
			untouched in that case.
	"""
	activations, probabilities = network.forward(features)
	loss = network.loss(probabilities, targets)
	if not math.isfinite(loss):
		raise DivergedTraining(epoch=epoch, loss=loss)

	accuracy = compute_metrics(probabilities, targets)["accuracy"]

	grads = network.backward(activations, targets)
	optimizer.step([g for layer_grads in grads for g in layer_grads])

	return loss, accuracy


@torch.no_grad()
def evaluate_epoch(
	network: Network,
	features: torch.Tensor,
	targets: torch.Tensor,
	label_names: Optional[List[str]] = None,
) -> Tuple[float, Dict[str, Any]]:
	"""Evaluate a network on a held-out matrix without touching its parameters."""

	if features.shape[0] == 0:
		log.warning("Evaluation requested on an empty matrix; returning NaN metrics.")
		return float("nan"), {"accuracy": float("nan")}

	probabilities = network.predict(features)
	loss = network.loss(probabilities, targets)
	metrics = compute_metrics(probabilities, targets, label_names=label_names)
	return loss, metrics
