"""Convergence observers.

The driver reports every optimised bond to ``observer.measure(options)`` and
asks ``observer.is_done(options)`` after every full sweep.  The observer
only ever sees :class:`~dmrgjax.algorithms.options.DMRGOptions` snapshots;
anything else it wants to know (bond dimensions, spectra) it reads from the
state it was built with.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Protocol, runtime_checkable

from dmrgjax.algorithms.options import DMRGOptions
from dmrgjax.errors import ConvergenceWarning
from dmrgjax.networks.mps import MPS

logger = logging.getLogger(__name__)


@runtime_checkable
class Observer(Protocol):
    """Callback interface of the DMRG driver."""

    def measure(self, options: DMRGOptions) -> None: ...

    def is_done(self, options: DMRGOptions) -> bool: ...


class DMRGObserver:
    """Default observer: records progress and decides when to stop.

    A run stops when ``energy_errgoal`` is set and the sweep energy changed
    by less than it since the previous sweep, or when a file named
    ``stop_file`` appears in the working directory.  The stop file is
    removed once it has been honoured.

    Args:
        psi:            The state being optimised.
        energy_errgoal: Energy convergence threshold; ``None`` disables it.
        stop_file:      Name of the stop file; ``None`` disables it.

    Attributes:
        bond_energies:      ``(sweep, half_sweep, bond, energy)`` per bond.
        truncation_errors:  Truncation error per measured bond.
        kept_dims:          Kept dimension per measured bond.
        sweep_energies:     Energy at the end of each completed sweep.
        warnings:           Every solver warning seen.
    """

    def __init__(
        self,
        psi: MPS,
        energy_errgoal: float | None = None,
        stop_file: str | Path | None = "STOP_DMRG",
    ) -> None:
        self.psi = psi
        self.energy_errgoal = energy_errgoal
        self.stop_file = None if stop_file is None else Path(stop_file)
        self.bond_energies: list[tuple[int, int, int, float]] = []
        self.truncation_errors: list[float] = []
        self.kept_dims: list[int] = []
        self.sweep_energies: list[float] = []
        self.warnings: list[ConvergenceWarning] = []
        self._sweep_max_trunc = 0.0

    @property
    def energy(self) -> float:
        """Most recent bond energy (``nan`` before the first bond)."""
        return self.bond_energies[-1][3] if self.bond_energies else math.nan

    def measure(self, options: DMRGOptions) -> None:
        """Record the bond just optimised."""
        b = options.at_bond
        self.bond_energies.append(
            (options.sweep, options.half_sweep, b, float(options.energy))
        )
        self.warnings.extend(options.warnings)

        result = self.psi.truncation_result(b)
        if result is not None:
            self.truncation_errors.append(result.truncation_error)
            self.kept_dims.append(result.kept_dim)
            self._sweep_max_trunc = max(self._sweep_max_trunc, result.truncation_error)

        if options.half_sweep == 2 and b == 0:
            self._end_of_sweep(options)

    def _end_of_sweep(self, options: DMRGOptions) -> None:
        energy = float(options.energy)
        self.sweep_energies.append(energy)
        if not options.quiet:
            center_bond = max(0, len(self.psi) // 2 - 1)
            result = self.psi.truncation_result(center_bond)
            entropy = result.entropy() if result is not None else 0.0
            logger.info(
                "After sweep %d energy=%.12f max truncation error=%.1E "
                "max bond dim=%d S(%d,%d)=%.6f",
                options.sweep,
                energy,
                self._sweep_max_trunc,
                self.psi.max_bond_dim(),
                center_bond,
                center_bond + 1,
                entropy,
            )
        self._sweep_max_trunc = 0.0

    def is_done(self, options: DMRGOptions) -> bool:
        """True if the energy goal is met or a stop file was found."""
        if self.stop_file is not None and self.stop_file.exists():
            logger.info("File %s found, stopping sweeps", self.stop_file)
            self.stop_file.unlink(missing_ok=True)
            return True

        goal = self.energy_errgoal
        if goal is None:
            goal = options.energy_errgoal
        if goal is not None and len(self.sweep_energies) >= 2:
            change = abs(self.sweep_energies[-1] - self.sweep_energies[-2])
            if change < goal:
                if not options.quiet:
                    logger.info(
                        "Energy error goal met (change %.1E < %.1E), stopping sweeps",
                        change,
                        goal,
                    )
                return True
        return False
