"""Exception and warning types raised by the DMRG engine.

Structural problems (bad schedules, bad options, mismatched chains) are
reported before any sweep starts with :class:`ConfigurationError`.  A
non-finite energy aborts the run with :class:`NumericalInstabilityError`.
Local solver trouble is non-fatal and travels with the progress snapshot as a
:class:`ConvergenceWarning`.
"""

from __future__ import annotations


class DMRGError(Exception):
    """Base class for all errors raised by dmrgjax."""


class ConfigurationError(DMRGError, ValueError):
    """Malformed schedule, options, or operator/state combination."""


class NumericalInstabilityError(DMRGError, FloatingPointError):
    """The local energy became non-finite during a sweep.

    Attributes:
        sweep:  1-based sweep number in which the failure happened.
        bond:   Bond index (joins sites ``bond`` and ``bond + 1``).
        energy: The offending energy value.
    """

    def __init__(self, sweep: int, bond: int, energy: float) -> None:
        super().__init__(
            f"non-finite energy {energy!r} at sweep {sweep}, "
            f"bond ({bond},{bond + 1})"
        )
        self.sweep = sweep
        self.bond = bond
        self.energy = energy


class ConvergenceWarning(UserWarning):
    """The local eigensolver stopped at its iteration cap.

    Attributes:
        n_iter:   Number of Krylov steps taken.
        residual: Residual norm of the returned Ritz vector.
    """

    def __init__(self, message: str, n_iter: int = 0, residual: float = 0.0) -> None:
        super().__init__(message)
        self.n_iter = n_iter
        self.residual = residual
