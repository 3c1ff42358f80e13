"""Task-agnostic helpers shared by the pipelines."""
