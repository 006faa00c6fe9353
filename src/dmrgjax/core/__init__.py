"""Core storage helpers and shared numerical constants."""

from dmrgjax.core.storage import DiskTensorStore, TensorStore, move_to_disk

# Shared epsilon constant used across algorithms to prevent division by zero
# when normalizing vectors.
EPS = 1e-15

__all__ = [
    "TensorStore",
    "DiskTensorStore",
    "move_to_disk",
    "EPS",
]
