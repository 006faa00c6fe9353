"""DMRG sweep engine: schedules, options, effective operators, observers."""

from dmrgjax.algorithms.dmrg import dmrg, dmrg_excited, dmrg_sum, dmrg_worker
from dmrgjax.algorithms.local_ops import (
    LocalMPO,
    LocalMPOProjected,
    LocalMPOSum,
    LocalOp,
    LocalOperator,
)
from dmrgjax.algorithms.observer import DMRGObserver, Observer
from dmrgjax.algorithms.options import DMRGOptions
from dmrgjax.algorithms.sweeps import SweepParams, Sweeps, sweep_bonds, sweepnext

__all__ = [
    "dmrg",
    "dmrg_sum",
    "dmrg_excited",
    "dmrg_worker",
    "LocalOperator",
    "LocalOp",
    "LocalMPO",
    "LocalMPOSum",
    "LocalMPOProjected",
    "Observer",
    "DMRGObserver",
    "DMRGOptions",
    "Sweeps",
    "SweepParams",
    "sweepnext",
    "sweep_bonds",
]
