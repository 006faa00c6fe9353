"""Matrix product states, operators and their contraction kernels."""

from dmrgjax.networks.mpo import MPO, build_mpo_heisenberg, build_mpo_ising
from dmrgjax.networks.mps import MPS, Direction, TruncationResult

__all__ = [
    "MPS",
    "MPO",
    "Direction",
    "TruncationResult",
    "build_mpo_heisenberg",
    "build_mpo_ising",
]
