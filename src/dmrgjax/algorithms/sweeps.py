"""Sweep schedules and the zig-zag bond traversal.

A schedule is an immutable sequence of :class:`SweepParams`, one per sweep.
Each parameter can be given as a scalar (same value every sweep) or as a
list whose last entry is repeated for the remaining sweeps::

    Sweeps(5, max_dim=[10, 20, 100, 200], cutoff=1e-10, noise=[1e-6, 1e-8, 0.0])

Bond traversal within a sweep::

    half-sweep 1:  (0,1) (1,1) ... (N-2,1)
    half-sweep 2:  (N-2,2) ... (1,2) (0,2)
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, overload

from dmrgjax.errors import ConfigurationError


@dataclass(frozen=True)
class SweepParams:
    """Parameters of a single sweep.

    Attributes:
        cutoff:   Relative discarded-weight tolerance of the bond truncation.
        min_dim:  Minimum number of states kept per bond.
        max_dim:  Maximum number of states kept per bond.
        noise:    Density-matrix perturbation amplitude.
        max_iter: Krylov dimension cap of the local eigensolver.
    """

    cutoff: float = 1e-10
    min_dim: int = 1
    max_dim: int = 100
    noise: float = 0.0
    max_iter: int = 30


def _expand(name: str, value: Any, nsweep: int) -> list[Any]:
    if isinstance(value, (list, tuple)):
        if len(value) == 0:
            raise ConfigurationError(f"{name} schedule must not be empty")
        values = list(value[:nsweep])
        values.extend([value[-1]] * (nsweep - len(values)))
        return values
    return [value] * nsweep


def _validate(sw: int, p: SweepParams) -> None:
    if p.max_dim < 1:
        raise ConfigurationError(f"sweep {sw}: max_dim must be >= 1, got {p.max_dim}")
    if p.min_dim < 1:
        raise ConfigurationError(f"sweep {sw}: min_dim must be >= 1, got {p.min_dim}")
    if p.min_dim > p.max_dim:
        raise ConfigurationError(
            f"sweep {sw}: min_dim ({p.min_dim}) exceeds max_dim ({p.max_dim})"
        )
    if p.cutoff < 0:
        raise ConfigurationError(f"sweep {sw}: cutoff must be >= 0, got {p.cutoff}")
    if p.noise < 0:
        raise ConfigurationError(f"sweep {sw}: noise must be >= 0, got {p.noise}")
    if p.max_iter < 1:
        raise ConfigurationError(
            f"sweep {sw}: max_iter must be >= 1, got {p.max_iter}"
        )


class Sweeps(Sequence[SweepParams]):
    """Immutable DMRG sweep schedule.

    Sweeps are numbered from 1, as they are reported in progress output;
    ``schedule.cutoff(sw)`` and friends take that 1-based number, while
    indexing with ``schedule[i]`` is an ordinary 0-based sequence lookup.

    Args:
        nsweep:   Number of sweeps.
        max_dim:  Scalar or per-sweep list.
        min_dim:  Scalar or per-sweep list.
        cutoff:   Scalar or per-sweep list.
        noise:    Scalar or per-sweep list.
        max_iter: Scalar or per-sweep list.

    Raises:
        ConfigurationError: On a negative sweep count or an invalid entry.
    """

    def __init__(
        self,
        nsweep: int,
        max_dim: int | Sequence[int] = 100,
        min_dim: int | Sequence[int] = 1,
        cutoff: float | Sequence[float] = 1e-10,
        noise: float | Sequence[float] = 0.0,
        max_iter: int | Sequence[int] = 30,
    ) -> None:
        if nsweep < 0:
            raise ConfigurationError(f"number of sweeps must be >= 0, got {nsweep}")
        columns = {
            "max_dim": _expand("max_dim", max_dim, nsweep),
            "min_dim": _expand("min_dim", min_dim, nsweep),
            "cutoff": _expand("cutoff", cutoff, nsweep),
            "noise": _expand("noise", noise, nsweep),
            "max_iter": _expand("max_iter", max_iter, nsweep),
        }
        entries = []
        for i in range(nsweep):
            p = SweepParams(
                cutoff=float(columns["cutoff"][i]),
                min_dim=int(columns["min_dim"][i]),
                max_dim=int(columns["max_dim"][i]),
                noise=float(columns["noise"][i]),
                max_iter=int(columns["max_iter"][i]),
            )
            _validate(i + 1, p)
            entries.append(p)
        self._entries: tuple[SweepParams, ...] = tuple(entries)

    @classmethod
    def from_table(cls, rows: Iterable[Mapping[str, Any] | SweepParams]) -> Sweeps:
        """Build a schedule from one row per sweep.

        Rows may be :class:`SweepParams` or mappings with any subset of its
        field names; missing fields take the :class:`SweepParams` defaults.
        """
        params = []
        for row in rows:
            if isinstance(row, SweepParams):
                params.append(row)
                continue
            unknown = set(row) - set(SweepParams.__dataclass_fields__)
            if unknown:
                raise ConfigurationError(
                    f"unknown sweep table column(s): {sorted(unknown)}"
                )
            params.append(SweepParams(**row))
        if not params:
            return cls(0)
        return cls(
            len(params),
            max_dim=[p.max_dim for p in params],
            min_dim=[p.min_dim for p in params],
            cutoff=[p.cutoff for p in params],
            noise=[p.noise for p in params],
            max_iter=[p.max_iter for p in params],
        )

    @property
    def nsweep(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @overload
    def __getitem__(self, i: int) -> SweepParams: ...

    @overload
    def __getitem__(self, i: slice) -> Sequence[SweepParams]: ...

    def __getitem__(self, i):
        return self._entries[i]

    def params(self, sw: int) -> SweepParams:
        """Parameters of 1-based sweep ``sw``."""
        if not 1 <= sw <= len(self._entries):
            raise IndexError(f"sweep {sw} out of range 1..{len(self._entries)}")
        return self._entries[sw - 1]

    def cutoff(self, sw: int) -> float:
        return self.params(sw).cutoff

    def min_dim(self, sw: int) -> int:
        return self.params(sw).min_dim

    def max_dim(self, sw: int) -> int:
        return self.params(sw).max_dim

    def noise(self, sw: int) -> float:
        return self.params(sw).noise

    def max_iter(self, sw: int) -> int:
        return self.params(sw).max_iter

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sweeps):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self) -> int:
        return hash(self._entries)

    def __repr__(self) -> str:
        lines = [f"Sweeps(nsweep={self.nsweep})"]
        for sw, p in enumerate(self._entries, start=1):
            lines.append(
                f"  {sw}: max_dim={p.max_dim} min_dim={p.min_dim} "
                f"cutoff={p.cutoff:.1E} noise={p.noise:.1E} max_iter={p.max_iter}"
            )
        return "\n".join(lines)


def sweepnext(b: int, half_sweep: int, n_sites: int) -> tuple[int, int]:
    """Advance the ``(bond, half_sweep)`` cursor by one step.

    Bonds are 0-based (bond ``b`` joins sites ``b`` and ``b + 1``) and
    half-sweeps are 1 (left to right) or 2 (right to left).  The traversal
    is finished when the returned half-sweep is 3.
    """
    inc = 1 if half_sweep == 1 else -1
    b += inc
    if b == (n_sites - 1 if half_sweep == 1 else -1):
        b -= inc
        half_sweep += 1
    return b, half_sweep


def sweep_bonds(n_sites: int) -> Iterator[tuple[int, int]]:
    """Yield ``(bond, half_sweep)`` for one full sweep of ``n_sites`` sites.

    Produces exactly ``2 * (n_sites - 1)`` pairs; nothing for fewer than two
    sites.
    """
    if n_sites < 2:
        return
    b, half_sweep = 0, 1
    while half_sweep != 3:
        yield b, half_sweep
        b, half_sweep = sweepnext(b, half_sweep, n_sites)
