"""dmrgjax: two-site DMRG on dense Matrix Product States, built on JAX.

.. note::
    Importing ``dmrgjax`` enables JAX 64-bit mode (``jax_enable_x64``).
    All tensors and algorithms default to ``float64``.

Quick start::

    from dmrgjax import MPS, Sweeps, build_mpo_heisenberg, dmrg

    H = build_mpo_heisenberg(20)
    psi = MPS.random(20, bond_dim=8)
    sweeps = Sweeps(5, max_dim=[10, 20, 50], cutoff=1e-10, noise=[1e-6, 0.0])
    energy = dmrg(psi, H, sweeps, options={"Quiet": True})
"""

import jax

jax.config.update("jax_enable_x64", True)

from dmrgjax.algorithms import (
    DMRGObserver,
    DMRGOptions,
    LocalMPO,
    LocalMPOProjected,
    LocalMPOSum,
    LocalOp,
    LocalOperator,
    Observer,
    SweepParams,
    Sweeps,
    dmrg,
    dmrg_excited,
    dmrg_sum,
    dmrg_worker,
    sweep_bonds,
    sweepnext,
)
from dmrgjax.core import DiskTensorStore, TensorStore
from dmrgjax.errors import (
    ConfigurationError,
    ConvergenceWarning,
    DMRGError,
    NumericalInstabilityError,
)
from dmrgjax.networks import (
    MPO,
    MPS,
    Direction,
    TruncationResult,
    build_mpo_heisenberg,
    build_mpo_ising,
)

__version__ = "0.1.0"

__all__ = [
    # Driver
    "dmrg",
    "dmrg_sum",
    "dmrg_excited",
    "dmrg_worker",
    # Configuration
    "DMRGOptions",
    "Sweeps",
    "SweepParams",
    "sweepnext",
    "sweep_bonds",
    # Effective operators
    "LocalOperator",
    "LocalOp",
    "LocalMPO",
    "LocalMPOSum",
    "LocalMPOProjected",
    # Observers
    "Observer",
    "DMRGObserver",
    # States and operators
    "MPS",
    "MPO",
    "Direction",
    "TruncationResult",
    "build_mpo_heisenberg",
    "build_mpo_ising",
    # Storage
    "TensorStore",
    "DiskTensorStore",
    # Errors
    "DMRGError",
    "ConfigurationError",
    "NumericalInstabilityError",
    "ConvergenceWarning",
]
