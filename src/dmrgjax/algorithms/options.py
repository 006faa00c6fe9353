"""Immutable configuration / progress snapshot passed through a DMRG run.

:class:`DMRGOptions` plays two roles.  Callers use it to configure a run
(``quiet``, ``write_m``, ``energy_errgoal`` ...), and the driver extends it
per sweep and per bond with the current sweep parameters, position and
energy before handing it to the observer.  Extending never mutates: every
``add`` returns a new value, so an observer holding an older snapshot keeps
seeing what it saw.

Mappings using the classic option names (``"Quiet"``, ``"Maxm"``,
``"WriteM"`` ...) are accepted through :meth:`DMRGOptions.from_mapping`.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from dmrgjax.errors import ConfigurationError, ConvergenceWarning

# Classic option key -> field name.
OPTION_KEYS: dict[str, str] = {
    "Quiet": "quiet",
    "DebugLevel": "debug_level",
    "Sweep": "sweep",
    "HalfSweep": "half_sweep",
    "AtBond": "at_bond",
    "Cutoff": "cutoff",
    "Minm": "min_dim",
    "Maxm": "max_dim",
    "Noise": "noise",
    "MaxIter": "max_iter",
    "Energy": "energy",
    "DoNormalize": "do_normalize",
    "WriteM": "write_m",
    "WriteDir": "write_dir",
    "Weight": "weight",
    "ErrGoal": "error_goal",
    "EnergyErrgoal": "energy_errgoal",
}


@dataclass(frozen=True)
class DMRGOptions:
    """Configuration and per-bond progress of a DMRG run.

    Attributes:
        quiet:          Suppress per-bond and per-sweep progress logging.
        debug_level:    Verbosity; ``None`` resolves to 0 when quiet, else 1.
        sweep:          Current 1-based sweep number.
        half_sweep:     Current half-sweep (1 left to right, 2 right to left).
        at_bond:        Current bond (joins sites ``at_bond`` and ``at_bond + 1``).
        cutoff:         Truncation cutoff of the current sweep.
        min_dim:        Minimum bond dimension of the current sweep.
        max_dim:        Maximum bond dimension of the current sweep.
        noise:          Noise amplitude of the current sweep.
        max_iter:       Eigensolver Krylov cap of the current sweep.
        energy:         Energy of the last optimised bond.
        do_normalize:   Normalize the state once after the last sweep.
        write_m:        Switch to disk offload once ``max_dim >= write_m``.
        write_dir:      Parent directory of the disk-offload scratch space.
        weight:         Penalty weight for excited-state searches.
        error_goal:     Residual tolerance of the local eigensolver.
        energy_errgoal: Sweep-to-sweep energy change that stops the default
                        observer.
        warnings:       Solver warnings raised at the current bond.
    """

    quiet: bool = False
    debug_level: int | None = None
    sweep: int = 0
    half_sweep: int = 0
    at_bond: int = 0
    cutoff: float = 0.0
    min_dim: int = 1
    max_dim: int = 0
    noise: float = 0.0
    max_iter: int = 0
    energy: float = float("nan")
    do_normalize: bool = True
    write_m: int | None = None
    write_dir: str = "./"
    weight: float | None = None
    error_goal: float = 1e-10
    energy_errgoal: float | None = None
    warnings: tuple[ConvergenceWarning, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.debug_level is None:
            object.__setattr__(self, "debug_level", 0 if self.quiet else 1)

    def add(self, **changes: Any) -> DMRGOptions:
        """Return a copy with ``changes`` applied (field names or classic keys)."""
        return dataclasses.replace(self, **_normalize_keys(changes))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None = None) -> DMRGOptions:
        """Build options from a mapping of field names or classic keys.

        Raises:
            ConfigurationError: On a key that is neither.
        """
        return cls(**_normalize_keys(dict(mapping or {})))

    @classmethod
    def coerce(cls, options: DMRGOptions | Mapping[str, Any] | None) -> DMRGOptions:
        """Accept an options value, a mapping, or ``None``."""
        if isinstance(options, DMRGOptions):
            return options
        return cls.from_mapping(options)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a field by name or classic key."""
        name = OPTION_KEYS.get(key, key)
        return getattr(self, name, default)


_FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(DMRGOptions))


def _normalize_keys(changes: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in changes.items():
        name = OPTION_KEYS.get(key, key)
        if name not in _FIELD_NAMES:
            raise ConfigurationError(f"unknown DMRG option {key!r}")
        out[name] = value
    return out
