"""Dense linear algebra: truncated factorizations and the Lanczos solver."""

from dmrgjax.linalg.decompositions import (
    lq_right,
    qr_left,
    truncate_spectrum,
    truncated_eigh,
    truncated_svd,
)
from dmrgjax.linalg.lanczos import EigenResult, lanczos_ground_state

__all__ = [
    "truncate_spectrum",
    "truncated_svd",
    "truncated_eigh",
    "qr_left",
    "lq_right",
    "EigenResult",
    "lanczos_ground_state",
]
