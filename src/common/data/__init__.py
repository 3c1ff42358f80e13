"""
Data Package Initialization.

Table loading and synthetic datasets shared by the task pipelines.
"""

from .dataset import TabularDataset
from .synthetic import make_blob_dataset

__all__ = ["TabularDataset", "make_blob_dataset"]
