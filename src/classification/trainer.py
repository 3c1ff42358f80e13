"""Epoch driver that fits a :class:`Network` with full-batch Adam."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

import pandas as pd
import torch
from tqdm.auto import tqdm

from .errors import DivergedTraining, LengthMismatch
from .loops import train_epoch
from .models.network import Network
from .optim import Adam

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EpochRecord:
    epoch: int
    loss: float
    accuracy: float


@dataclass
class TrainingRun:
    """Per-epoch training loss and accuracy, for plotting or printing.

    ``network`` is the same object that was passed to :meth:`Trainer.fit`,
    which the trainer updated in place.
    """

    network: Network
    epochs: List[EpochRecord] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.epochs)

    @property
    def losses(self) -> List[float]:
        return [record.loss for record in self.epochs]

    @property
    def accuracies(self) -> List[float]:
        return [record.accuracy for record in self.epochs]

    @property
    def final_loss(self) -> float:
        return self.epochs[-1].loss if self.epochs else float("nan")

    @property
    def final_accuracy(self) -> float:
        return self.epochs[-1].accuracy if self.epochs else float("nan")

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            {"epoch": [r.epoch for r in self.epochs], "loss": self.losses, "accuracy": self.accuracies}
        )


EpochCallback = Callable[[EpochRecord], None]


class Trainer:
    """
    Runs a fixed number of full-batch epochs over the training matrix.

    Each epoch does a forward pass, computes the cross-entropy, backpropagates,
    and takes one Adam step. There is no early stopping, retry or rollback: a
    non-finite loss aborts the run with :class:`DivergedTraining`.

    Args:
        epochs: Default number of epochs for :meth:`fit`.
        learning_rate: Default Adam step size.
        betas: Adam moment decay rates.
        eps: Adam denominator epsilon.
        progress: Show a tqdm progress bar over epochs.
        log_every: Log an INFO line every this many epochs (0 disables).
        callbacks: Called with each :class:`EpochRecord` as it is recorded.
    """

    def __init__(
        self,
        epochs: int = 500,
        learning_rate: float = 0.001,
        betas: Tuple[float, float] = (0.9, 0.999),
        eps: float = 1e-8,
        progress: bool = False,
        log_every: int = 100,
        callbacks: Sequence[EpochCallback] = (),
    ):
        self.epochs = int(epochs)
        self.learning_rate = float(learning_rate)
        self.betas = (float(betas[0]), float(betas[1]))
        self.eps = float(eps)
        self.progress = bool(progress)
        self.log_every = int(log_every)
        self.callbacks = list(callbacks)

    def fit(
        self,
        network: Network,
        features: torch.Tensor,
        targets: torch.Tensor,
        epochs: Optional[int] = None,
        learning_rate: Optional[float] = None,
    ) -> TrainingRun:
        """
        Trains ``network`` in place and returns the recorded run.

        Args:
            network: The network to update. The caller keeps ownership.
            features: Scaled training matrix (N, in_features).
            targets: One-hot training targets (N, num_classes).
            epochs: Overrides the trainer's default epoch count.
            learning_rate: Overrides the trainer's default learning rate.

        Returns:
            A :class:`TrainingRun` with one record per completed epoch.

        Raises:
            LengthMismatch: If features and targets have different row counts.
            DivergedTraining: If any epoch yields a NaN/Inf loss. The partial
                run is attached as ``exc.run``.
        """
        epochs = self.epochs if epochs is None else int(epochs)
        lr = self.learning_rate if learning_rate is None else float(learning_rate)
        if epochs < 0:
            raise ValueError(f"epochs must be non-negative, got {epochs}")
        if features.shape[0] != targets.shape[0]:
            raise LengthMismatch(
                f"{features.shape[0]} feature rows for {targets.shape[0]} target rows"
            )
        if features.shape[0] == 0:
            raise ValueError("Cannot train on an empty feature matrix.")

        optimizer = Adam(network.parameters(), lr=lr, betas=self.betas, eps=self.eps)
        run = TrainingRun(network=network)

        log.info(
            "Starting training for %d epochs on %d rows (lr=%g).",
            epochs,
            features.shape[0],
            lr,
        )

        epoch_iter = tqdm(
            range(1, epochs + 1), desc="Train", unit="epoch", disable=not self.progress
        )
        for epoch in epoch_iter:
            try:
                loss, accuracy = train_epoch(network, features, targets, optimizer, epoch=epoch)
            except DivergedTraining as exc:
                exc.run = run
                log.error("Training diverged at epoch %d (loss=%s).", epoch, exc.loss)
                raise

            record = EpochRecord(epoch=epoch, loss=loss, accuracy=accuracy)
            run.epochs.append(record)

            epoch_iter.set_postfix(train_loss=f"{loss:.4f}", train_acc=f"{accuracy:.3f}")
            log.debug("Epoch %d/%d | Loss: %.6f | Acc: %.4f", epoch, epochs, loss, accuracy)
            if self.log_every and epoch % self.log_every == 0:
                log.info(
                    "Epoch %d/%d | Train Loss: %.4f | Train Acc: %.4f",
                    epoch,
                    epochs,
                    loss,
                    accuracy,
                )

            for callback in self.callbacks:
                callback(record)

        log.info(
            "Training complete. Final loss: %.4f | Final accuracy: %.4f",
            run.final_loss,
            run.final_accuracy,
        )
        return run
