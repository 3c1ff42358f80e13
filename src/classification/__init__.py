"""Task-specific pipeline for tabular classification experiments."""

from . import evaluate, train
from .encoding import LabelEncoder, LabelSpace
from .errors import (
    DegenerateFeature,
    DivergedTraining,
    InvalidProportions,
    LengthMismatch,
    PipelineError,
    ShapeMismatch,
    UnknownCategory,
)
from .models import DenseLayer, Network, build_network
from .optim import Adam
from .scaling import FeatureStats, StandardScaler
from .splitting import SplitAssignment, split
from .trainer import EpochRecord, Trainer, TrainingRun
from common.data.dataset import TabularDataset

__all__ = [
    "evaluate",
    "train",
    "TabularDataset",
    "LabelEncoder",
    "LabelSpace",
    "split",
    "SplitAssignment",
    "StandardScaler",
    "FeatureStats",
    "DenseLayer",
    "Network",
    "build_network",
    "Adam",
    "Trainer",
    "TrainingRun",
    "EpochRecord",
    "PipelineError",
    "UnknownCategory",
    "InvalidProportions",
    "DegenerateFeature",
    "LengthMismatch",
    "ShapeMismatch",
    "DivergedTraining",
]
