# src/common/data/dataset.py

import logging
import os
from typing import Any, Dict, Hashable, List, Optional, Sequence

import pandas as pd
import torch
from torch.utils.data import Dataset

# Initialize a logger for this module
log = logging.getLogger(__name__)


class TabularDataset(Dataset):
    """PyTorch dataset over a table of numeric features and one label column.

    Input:
        A CSV file or an in-memory ``pandas.DataFrame`` with named numeric
        feature columns and a categorical label column.

    Output:
        Samples as dictionaries with a ``features`` tensor and the raw
        ``label`` value. The whole feature matrix is also exposed as
        ``features`` for full-batch pipelines.

    Logic:
        1. Read the table (CSV path) or take the given frame.
        2. Validate the schema: label column present, feature columns present
           and numeric, no missing feature values.
        3. Convert features to a float64 tensor once, keep labels as a list in
           record order.
    """

    def __init__(
        self,
        frame: pd.DataFrame,
        label_column: str,
        feature_columns: Optional[Sequence[str]] = None,
        source: Optional[str] = None,
    ):
        """Validate the schema and materialize the feature matrix.

        Args:
            frame: Table holding features and labels, one row per record.
            label_column: Name of the categorical label column.
            feature_columns: Ordered feature column names. When ``None``, every
                column except ``label_column`` is used, in table order.
            source: Optional description of where the frame came from, used in
                log messages.

        Raises:
            ValueError: If a configured column is missing, a feature column is
                not numeric, or a feature value is missing.
        """
        super().__init__()

        self.source = source or "<frame>"
        self.label_column = label_column
        if feature_columns is None:
            feature_columns = [c for c in frame.columns if c != label_column]
        self.feature_names: List[str] = [str(c) for c in feature_columns]

        self._validate_columns(frame)

        self.frame = frame.reset_index(drop=True)
        values = self.frame[self.feature_names].to_numpy(dtype="float64")
        self.features = torch.tensor(values, dtype=torch.float64)
        self.labels: List[Hashable] = self.frame[label_column].tolist()

        log.info(
            "Loaded %d records with %d features from %s.",
            len(self.labels),
            len(self.feature_names),
            self.source,
        )

    @classmethod
    def from_csv(
        cls,
        path: str,
        label_column: str,
        feature_columns: Optional[Sequence[str]] = None,
    ) -> "TabularDataset":
        """Read ``path`` with pandas and build a dataset from it.

        Raises:
            FileNotFoundError: If ``path`` does not exist.
        """
        if not os.path.exists(path):
            log.error(f"Dataset file not found at: {path}")
            raise FileNotFoundError(f"Dataset file not found: {path}")

        try:
            frame = pd.read_csv(path)
        except Exception as e:
            log.error(f"Failed to load dataset CSV: {e}")
            raise

        return cls(frame, label_column, feature_columns=feature_columns, source=path)

    def _validate_columns(self, frame: pd.DataFrame) -> None:
        """Validate the table schema against the configured columns.

        Raises:
            ValueError: If any configured column is absent or unusable.
        """
        columns = set(frame.columns)

        if self.label_column not in columns:
            raise ValueError(f"Label column '{self.label_column}' not found in table.")

        if not self.feature_names:
            raise ValueError("No feature columns configured or found in table.")

        for col in self.feature_names:
            if col not in columns:
                raise ValueError(f"Feature column '{col}' not found in table.")
            if col == self.label_column:
                raise ValueError(f"Column '{col}' cannot be both a feature and the label.")
            if not pd.api.types.is_numeric_dtype(frame[col]):
                raise ValueError(f"Feature column '{col}' is not numeric ({frame[col].dtype}).")
            if frame[col].isna().any():
                raise ValueError(f"Feature column '{col}' contains missing values.")

        if frame[self.label_column].isna().any():
            raise ValueError(f"Label column '{self.label_column}' contains missing values.")

        log.debug("Table columns validated successfully.")

    def __len__(self) -> int:
        return len(self.labels)

    def __getitem__(self, idx: int) -> Dict[str, Any]:
        return {"features": self.features[idx], "label": self.labels[idx]}

    @property
    def num_features(self) -> int:
        return len(self.feature_names)

    def subset(self, indices: Sequence[int]) -> "TabularDataset":
        """Return a new dataset holding only the rows at ``indices``, in order."""
        rows = self.frame.iloc[list(indices)]
        return TabularDataset(
            rows,
            self.label_column,
            feature_columns=self.feature_names,
            source=f"{self.source}[subset of {len(rows)}]",
        )
