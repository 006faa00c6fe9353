"""Two-site Density Matrix Renormalization Group (DMRG) driver.

DMRG finds the ground state (or a low-lying excited state) of a 1D quantum
Hamiltonian given as a Matrix Product Operator, by sweeping a two-site
variational update back and forth over a Matrix Product State.

Architecture decisions:

- The sweep loop is a plain Python loop: bond dimensions change after every
  truncation, so there is nothing static to compile across bonds.
- The two-site matvec is ``@jax.jit`` compiled (see
  ``networks.environments.apply_two_site``); the Lanczos iteration around it
  runs eagerly.
- The state is updated in place.  The return value is the energy of the
  last optimised bond; everything else is reported to the observer.

Per sweep ``sw``::

    options <- options + schedule(sw)
    maybe switch to disk offload
    for (b, half_sweep) in (0,1) .. (N-2,1), (N-2,2) .. (0,2):
        local_op.position(b, psi)
        theta = psi[b] * psi[b+1]
        energy, theta = eigensolve(local_op, theta)
        psi.svd_bond(b, theta, direction(half_sweep), local_op, ...)
        observer.measure(options + (b, half_sweep, energy, warnings))
    if observer.is_done(options): stop
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any, Union

import jax

from dmrgjax.algorithms.local_ops import (
    LocalMPO,
    LocalMPOProjected,
    LocalMPOSum,
    LocalOp,
)
from dmrgjax.algorithms.observer import DMRGObserver, Observer
from dmrgjax.algorithms.options import DMRGOptions
from dmrgjax.algorithms.sweeps import Sweeps, sweep_bonds
from dmrgjax.errors import (
    ConfigurationError,
    ConvergenceWarning,
    NumericalInstabilityError,
)
from dmrgjax.linalg.lanczos import lanczos_ground_state
from dmrgjax.networks.environments import merge_sites
from dmrgjax.networks.mpo import MPO
from dmrgjax.networks.mps import MPS, Direction

logger = logging.getLogger(__name__)

OptionsLike = Union[DMRGOptions, Mapping[str, Any], None]


def dmrg(
    psi: MPS,
    H: MPO,
    sweeps: Sweeps,
    observer: Observer | None = None,
    *,
    left_boundary: jax.Array | None = None,
    right_boundary: jax.Array | None = None,
    options: OptionsLike = None,
) -> float:
    """Optimise ``psi`` towards the ground state of ``H``.

    Args:
        psi:            Initial state, updated in place.
        H:              Hamiltonian MPO.
        sweeps:         Sweep schedule.
        observer:       Progress observer; a :class:`DMRGObserver` is built
                        when omitted.
        left_boundary:  Environment left of site 0 for open sub-segments.
        right_boundary: Environment right of site N-1 for open sub-segments.
        options:        :class:`DMRGOptions` or a mapping of option keys.

    Returns:
        Energy of the last optimised bond (``nan`` for an empty schedule).
    """
    _check_lengths(psi, [H])
    local_op = LocalMPO(H, left_boundary, right_boundary)
    return dmrg_worker(psi, local_op, sweeps, observer, options)


def dmrg_sum(
    psi: MPS,
    Hs: Sequence[MPO],
    sweeps: Sweeps,
    observer: Observer | None = None,
    *,
    options: OptionsLike = None,
) -> float:
    """Like :func:`dmrg` for ``H = sum(Hs)``, never forming the sum explicitly."""
    _check_lengths(psi, Hs)
    local_op = LocalMPOSum(Hs)
    return dmrg_worker(psi, local_op, sweeps, observer, options)


def dmrg_excited(
    psi: MPS,
    H: MPO,
    references: Sequence[MPS],
    sweeps: Sweeps,
    observer: Observer | None = None,
    *,
    weight: float | None = None,
    options: OptionsLike = None,
) -> float:
    """Target the lowest state of ``H`` orthogonal to ``references``.

    Minimises ``H + weight * sum_i |ref_i><ref_i|``.  ``weight`` should
    exceed the gap to the wanted state; it may also be given as the
    ``weight`` option, the keyword wins.

    Raises:
        ConfigurationError: If no positive weight is given or a reference
            length does not match.
    """
    opts = DMRGOptions.coerce(options)
    if weight is None:
        weight = opts.weight
    if weight is None or not weight > 0:
        raise ConfigurationError(f"excited-state search needs a weight > 0, got {weight!r}")
    _check_lengths(psi, [H])
    local_op = LocalMPOProjected(H, references, weight)
    return dmrg_worker(psi, local_op, sweeps, observer, opts.add(weight=float(weight)))


def dmrg_worker(
    psi: MPS,
    local_op: LocalOp,
    sweeps: Sweeps,
    observer: Observer | None = None,
    options: OptionsLike = None,
) -> float:
    """Run the sweep engine with an already built effective operator.

    Args:
        psi:      State, updated in place.
        local_op: Effective operator.
        sweeps:   Sweep schedule.
        observer: Progress observer; defaults to :class:`DMRGObserver`.
        options:  :class:`DMRGOptions` or a mapping of option keys.

    Returns:
        Energy of the last optimised bond (``nan`` for an empty schedule).

    Raises:
        ConfigurationError: On a length mismatch or a chain too short to
            sweep, before any sweep starts.
        NumericalInstabilityError: If a bond energy is not finite.
    """
    opts = DMRGOptions.coerce(options)
    N = len(psi)
    if local_op.length != N:
        raise ConfigurationError(
            f"operator has {local_op.length} sites, state has {N} sites"
        )
    if sweeps.nsweep > 0 and N < 2:
        raise ConfigurationError(f"two-site DMRG needs at least 2 sites, got {N}")
    if observer is None:
        observer = DMRGObserver(psi, energy_errgoal=opts.energy_errgoal)

    psi.canonicalize(0)
    energy = math.nan
    if sweeps.nsweep > 0:
        # Environments cached by an earlier run may describe another state.
        local_op.reset(psi)
        local_op.position(0, psi)

    for sw in range(1, sweeps.nsweep + 1):
        params = sweeps.params(sw)
        opts = opts.add(
            sweep=sw,
            cutoff=params.cutoff,
            min_dim=params.min_dim,
            max_dim=params.max_dim,
            noise=params.noise,
            max_iter=params.max_iter,
        )

        if (
            not (psi.disk_backed and local_op.disk_backed)
            and opts.write_m is not None
            and params.max_dim >= opts.write_m
        ):
            if not psi.disk_backed:
                psi.enable_disk_backing(True, opts.write_dir)
            if not local_op.disk_backed:
                local_op.enable_disk_backing(True, opts.write_dir)
            if not opts.quiet:
                logger.info(
                    "Tensors of MPS and environments will be written to disk "
                    "under %s",
                    opts.write_dir,
                )

        for b, half_sweep in sweep_bonds(N):
            if not opts.quiet:
                logger.info("Sweep=%d, HS=%d, Bond=(%d,%d)", sw, half_sweep, b, b + 1)

            local_op.position(b, psi)
            theta = merge_sites(psi[b], psi[b + 1])
            energy, theta, solver_warnings = _eigensolve(local_op, theta, opts)
            if not math.isfinite(energy):
                raise NumericalInstabilityError(sw, b, energy)

            result = psi.svd_bond(
                b,
                theta,
                Direction(half_sweep),
                local_op,
                cutoff=params.cutoff,
                min_dim=params.min_dim,
                max_dim=params.max_dim,
                noise=params.noise,
            )

            if not opts.quiet:
                logger.info(
                    "    Truncated to Cutoff=%.1E, Min_m=%d, Max_m=%d",
                    params.cutoff,
                    params.min_dim,
                    params.max_dim,
                )
                logger.info(
                    "    Trunc. err=%.1E, States kept=%d",
                    result.truncation_error,
                    result.kept_dim,
                )

            opts = opts.add(
                at_bond=b,
                half_sweep=half_sweep,
                energy=energy,
                warnings=solver_warnings,
            )
            observer.measure(opts)

        if observer.is_done(opts):
            break

    if opts.do_normalize and sweeps.nsweep > 0:
        psi.normalize()

    return energy


def _eigensolve(
    local_op: LocalOp,
    theta: jax.Array,
    opts: DMRGOptions,
) -> tuple[float, jax.Array, tuple[ConvergenceWarning, ...]]:
    """Lowest eigenpair of the effective operator, started from ``theta``."""
    shape = theta.shape
    size = local_op.size

    def matvec(v: jax.Array) -> jax.Array:
        return local_op.apply(v.reshape(shape)).ravel()

    res = lanczos_ground_state(
        matvec, theta.ravel(), max_iter=opts.max_iter, tol=opts.error_goal
    )
    if opts.debug_level is not None and opts.debug_level > 1:
        logger.debug(
            "    Lanczos: size=%d iterations=%d residual=%.1E energy=%.12f",
            size,
            res.n_iter,
            res.residual,
            res.eigenvalue,
        )

    found: tuple[ConvergenceWarning, ...] = ()
    # Krylov spaces filling the whole local space are exact regardless of
    # the residual bound.
    if not res.converged and res.n_iter < size:
        warning = ConvergenceWarning(
            f"Lanczos stopped after {res.n_iter} iterations with residual "
            f"{res.residual:.1E} (goal {opts.error_goal:.1E}) at sweep "
            f"{opts.sweep}",
            n_iter=res.n_iter,
            residual=res.residual,
        )
        logger.warning("%s", warning)
        found = (warning,)
    return res.eigenvalue, res.eigenvector.reshape(shape), found


def _check_lengths(psi: MPS, Hs: Sequence[MPO]) -> None:
    for H in Hs:
        if len(H) != len(psi):
            raise ConfigurationError(
                f"MPO has {len(H)} sites, MPS has {len(psi)} sites"
            )
