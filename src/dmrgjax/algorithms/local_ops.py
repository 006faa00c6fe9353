"""Effective two-site operators ("local operators") for DMRG.

A local operator is the projection of the Hamiltonian onto the two-site
subspace of the current bond.  It keeps left and right environments cached
and only recomputes the ones that went stale::

    L(k): sites 0 .. k-1 contracted      valid for k <= left_lim
    R(k): sites k+1 .. N-1 contracted    valid for k >= right_lim

``position(b, psi)`` brings ``L(b)`` and ``R(b+1)`` up to date and then
narrows the limits to ``b`` and ``b + 1``, because the caller is about to
overwrite sites ``b`` and ``b + 1``.  Moving right absorbs the freshly
updated left-canonical site, moving left the freshly updated right-canonical
site.

The cache follows one state object and rebuilds itself when a different one
is positioned.  A state changed behind the operator's back (another run, a
manual edit) needs an explicit ``reset(psi)``.

Three variants share the :class:`LocalOperator` protocol:

* :class:`LocalMPO`           one MPO, with optional boundary environments
* :class:`LocalMPOSum`        a list of MPOs, summed lazily
* :class:`LocalMPOProjected`  one MPO plus ``w * sum_i |ref_i><ref_i|``
"""

from __future__ import annotations

import weakref
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Protocol, Union, runtime_checkable

import jax
import jax.numpy as jnp

from dmrgjax.core.storage import TensorStore, move_to_disk
from dmrgjax.errors import ConfigurationError
from dmrgjax.networks.environments import (
    apply_two_site,
    left_noise_block,
    merge_sites,
    project_reference,
    right_noise_block,
    trivial_env,
    trivial_overlap_env,
    update_left_env,
    update_left_overlap,
    update_right_env,
    update_right_overlap,
)
from dmrgjax.networks.mpo import MPO
from dmrgjax.networks.mps import MPS, Direction


@runtime_checkable
class LocalOperator(Protocol):
    """Operations the DMRG driver needs from an effective operator."""

    @property
    def length(self) -> int: ...

    @property
    def size(self) -> int: ...

    @property
    def disk_backed(self) -> bool: ...

    def reset(self, psi: MPS) -> None: ...

    def position(self, b: int, psi: MPS) -> None: ...

    def apply(self, theta: jax.Array) -> jax.Array: ...

    def noise_term(self, theta: jax.Array, direction: Direction) -> jax.Array: ...

    def enable_disk_backing(
        self, enabled: bool = True, write_dir: str | Path = "./"
    ) -> None: ...


class _EnvironmentCache:
    """Left/right environment cache with ITensor-style validity limits.

    Args:
        length:     Number of sites.
        left_step:  ``(env, k, psi) -> env`` absorbing site ``k`` from the left.
        right_step: ``(env, k, psi) -> env`` absorbing site ``k`` from the right.
        left_edge:  ``psi -> L(0)``.
        right_edge: ``psi -> R(N-1)``.
        tag:        Key prefix inside the store.
    """

    def __init__(
        self,
        length: int,
        left_step: Callable[[jax.Array, int, MPS], jax.Array],
        right_step: Callable[[jax.Array, int, MPS], jax.Array],
        left_edge: Callable[[MPS], jax.Array],
        right_edge: Callable[[MPS], jax.Array],
        tag: str = "",
    ) -> None:
        self.length = length
        self._left_step = left_step
        self._right_step = right_step
        self._left_edge = left_edge
        self._right_edge = right_edge
        self._tag = tag
        self._store: Any = TensorStore()
        self._psi: weakref.ReferenceType[MPS] | None = None
        self.left_lim = 0
        self.right_lim = length - 1
        self.b: int | None = None

    def _key(self, side: str, k: int) -> tuple[str, int]:
        return (side + self._tag, k)

    def left(self, k: int) -> jax.Array:
        return self._store[self._key("L", k)]

    def right(self, k: int) -> jax.Array:
        return self._store[self._key("R", k)]

    def reset(self, psi: MPS) -> None:
        """Drop every cached environment and start over from the edges of ``psi``."""
        for key in list(self._store):
            del self._store[key]
        self._store[self._key("L", 0)] = self._left_edge(psi)
        self._store[self._key("R", self.length - 1)] = self._right_edge(psi)
        self.left_lim = 0
        self.right_lim = self.length - 1
        self._psi = weakref.ref(psi)

    def position(self, b: int, psi: MPS) -> None:
        if not 0 <= b < self.length - 1:
            raise IndexError(f"bond {b} out of range for length {self.length}")
        if self._psi is None or self._psi() is not psi:
            self.reset(psi)

        if self.left_lim > b:
            self.left_lim = b
        while self.left_lim < b:
            k = self.left_lim
            self._store[self._key("L", k + 1)] = self._left_step(self.left(k), k, psi)
            self.left_lim += 1

        if self.right_lim < b + 1:
            self.right_lim = b + 1
        while self.right_lim > b + 1:
            k = self.right_lim
            self._store[self._key("R", k - 1)] = self._right_step(self.right(k), k, psi)
            self.right_lim -= 1
        self.b = b

    @property
    def disk_backed(self) -> bool:
        return self._store.disk_backed

    def enable_disk_backing(self, enabled: bool, write_dir: str | Path) -> None:
        if enabled and not self.disk_backed:
            self._store = move_to_disk(self._store, write_dir)
        elif not enabled and self.disk_backed:
            raise ValueError("disk backing cannot be turned off once enabled")


def _require_position(b: int | None) -> int:
    if b is None:
        raise RuntimeError("local operator used before position() was called")
    return b


class LocalMPO:
    """Effective two-site Hamiltonian built from a single MPO.

    Args:
        H:              The MPO.
        left_boundary:  Environment to the left of site 0, shape
                        ``(chi, w, chi)``; trivial when ``None``.
        right_boundary: Environment to the right of site N-1; trivial when
                        ``None``.

    Raises:
        ConfigurationError: If a boundary tensor does not fit the MPO.
    """

    def __init__(
        self,
        H: MPO,
        left_boundary: jax.Array | None = None,
        right_boundary: jax.Array | None = None,
    ) -> None:
        self.H = H
        self.left_boundary = None if left_boundary is None else jnp.asarray(left_boundary)
        self.right_boundary = None if right_boundary is None else jnp.asarray(right_boundary)
        if self.left_boundary is not None and (
            self.left_boundary.ndim != 3 or self.left_boundary.shape[1] != H[0].shape[0]
        ):
            raise ConfigurationError(
                f"left boundary of shape {self.left_boundary.shape} does not fit "
                f"MPO left bond {H[0].shape[0]}"
            )
        if self.right_boundary is not None and (
            self.right_boundary.ndim != 3
            or self.right_boundary.shape[1] != H[-1].shape[3]
        ):
            raise ConfigurationError(
                f"right boundary of shape {self.right_boundary.shape} does not fit "
                f"MPO right bond {H[-1].shape[3]}"
            )
        self._envs = _EnvironmentCache(
            len(H),
            left_step=lambda L, k, psi: update_left_env(L, psi[k], self.H[k]),
            right_step=lambda R, k, psi: update_right_env(R, psi[k], self.H[k]),
            left_edge=self._left_edge,
            right_edge=self._right_edge,
        )

    def _left_edge(self, psi: MPS) -> jax.Array:
        if self.left_boundary is not None:
            if self.left_boundary.shape[0] != psi[0].shape[0]:
                raise ConfigurationError(
                    f"left boundary of shape {self.left_boundary.shape} does not "
                    f"fit MPS left bond {psi[0].shape[0]}"
                )
            return self.left_boundary
        return trivial_env(jnp.result_type(psi.dtype, self.H.dtype))

    def _right_edge(self, psi: MPS) -> jax.Array:
        if self.right_boundary is not None:
            if self.right_boundary.shape[0] != psi[-1].shape[2]:
                raise ConfigurationError(
                    f"right boundary of shape {self.right_boundary.shape} does not "
                    f"fit MPS right bond {psi[-1].shape[2]}"
                )
            return self.right_boundary
        return trivial_env(jnp.result_type(psi.dtype, self.H.dtype))

    @property
    def length(self) -> int:
        return len(self.H)

    @property
    def left_lim(self) -> int:
        return self._envs.left_lim

    @property
    def right_lim(self) -> int:
        return self._envs.right_lim

    def reset(self, psi: MPS) -> None:
        """Forget all environments, e.g. after ``psi`` was changed elsewhere."""
        self._envs.reset(psi)

    def position(self, b: int, psi: MPS) -> None:
        """Make the environments of bond ``b`` current for ``psi``."""
        self._envs.position(b, psi)

    def _operands(self) -> tuple[jax.Array, jax.Array, jax.Array, jax.Array]:
        b = _require_position(self._envs.b)
        return self._envs.left(b), self.H[b], self.H[b + 1], self._envs.right(b + 1)

    def apply(self, theta: jax.Array) -> jax.Array:
        """``H_eff @ theta`` for a two-site tensor ``theta``."""
        L, W1, W2, R = self._operands()
        return apply_two_site(theta, L, W1, W2, R)

    def expectation(self, theta: jax.Array) -> float:
        """Rayleigh quotient ``<theta|H_eff|theta> / <theta|theta>``."""
        return float(
            (jnp.vdot(theta, self.apply(theta)) / jnp.vdot(theta, theta)).real
        )

    def noise_term(self, theta: jax.Array, direction: Direction) -> jax.Array:
        """Density-matrix perturbation for the block made canonical next."""
        L, W1, W2, R = self._operands()
        if Direction(direction) is Direction.FROM_LEFT:
            return left_noise_block(theta, L, W1)
        return right_noise_block(theta, W2, R)

    @property
    def size(self) -> int:
        """Dimension of the two-site problem at the current bond."""
        L, W1, W2, R = self._operands()
        return int(L.shape[2] * W1.shape[2] * W2.shape[2] * R.shape[2])

    @property
    def disk_backed(self) -> bool:
        return self._envs.disk_backed

    def enable_disk_backing(self, enabled: bool = True, write_dir: str | Path = "./") -> None:
        self._envs.enable_disk_backing(enabled, write_dir)


class LocalMPOSum:
    """Sum of several effective operators, applied term by term.

    Raises:
        ConfigurationError: If the list is empty or the MPO lengths differ.
    """

    def __init__(self, Hs: Sequence[MPO]) -> None:
        if len(Hs) == 0:
            raise ConfigurationError("need at least one MPO to sum")
        lengths = {len(H) for H in Hs}
        if len(lengths) != 1:
            raise ConfigurationError(f"MPOs in a sum must share one length, got {sorted(lengths)}")
        self.terms = [LocalMPO(H) for H in Hs]

    @property
    def length(self) -> int:
        return self.terms[0].length

    def reset(self, psi: MPS) -> None:
        for term in self.terms:
            term.reset(psi)

    def position(self, b: int, psi: MPS) -> None:
        for term in self.terms:
            term.position(b, psi)

    def apply(self, theta: jax.Array) -> jax.Array:
        result = self.terms[0].apply(theta)
        for term in self.terms[1:]:
            result = result + term.apply(theta)
        return result

    def expectation(self, theta: jax.Array) -> float:
        return float(
            (jnp.vdot(theta, self.apply(theta)) / jnp.vdot(theta, theta)).real
        )

    def noise_term(self, theta: jax.Array, direction: Direction) -> jax.Array:
        result = self.terms[0].noise_term(theta, direction)
        for term in self.terms[1:]:
            result = result + term.noise_term(theta, direction)
        return result

    @property
    def size(self) -> int:
        return self.terms[0].size

    @property
    def disk_backed(self) -> bool:
        return all(term.disk_backed for term in self.terms)

    def enable_disk_backing(self, enabled: bool = True, write_dir: str | Path = "./") -> None:
        for term in self.terms:
            term.enable_disk_backing(enabled, write_dir)


class LocalMPOProjected:
    """Effective operator of ``H + weight * sum_i |ref_i><ref_i|``.

    Minimising it pushes the state out of the span of the references, which
    is how excited states are targeted.

    Args:
        H:          The MPO.
        references: States to project out.
        weight:     Penalty weight, must be positive.

    Raises:
        ConfigurationError: If ``weight <= 0`` or a reference length differs
            from the MPO length.
    """

    def __init__(self, H: MPO, references: Sequence[MPS], weight: float) -> None:
        if weight is None or not weight > 0:
            raise ConfigurationError(f"weight must be > 0, got {weight!r}")
        for i, ref in enumerate(references):
            if len(ref) != len(H):
                raise ConfigurationError(
                    f"reference {i} has {len(ref)} sites, MPO has {len(H)}"
                )
        self.weight = float(weight)
        self.references = list(references)
        self.lop = LocalMPO(H)
        self._overlaps = [self._overlap_cache(i, ref) for i, ref in enumerate(self.references)]

    def _overlap_cache(self, i: int, ref: MPS) -> _EnvironmentCache:
        def edge(psi: MPS) -> jax.Array:
            return trivial_overlap_env(jnp.result_type(psi.dtype, ref.dtype))

        return _EnvironmentCache(
            len(ref),
            left_step=lambda E, k, psi: update_left_overlap(E, ref[k], psi[k]),
            right_step=lambda E, k, psi: update_right_overlap(E, ref[k], psi[k]),
            left_edge=edge,
            right_edge=edge,
            tag=f"ref{i}",
        )

    @property
    def length(self) -> int:
        return self.lop.length

    def reset(self, psi: MPS) -> None:
        self.lop.reset(psi)
        for cache in self._overlaps:
            cache.reset(psi)

    def position(self, b: int, psi: MPS) -> None:
        self.lop.position(b, psi)
        for cache in self._overlaps:
            cache.position(b, psi)

    def _projected_references(self) -> list[jax.Array]:
        vectors = []
        for ref, cache in zip(self.references, self._overlaps):
            b = _require_position(cache.b)
            ref_theta = merge_sites(ref[b], ref[b + 1])
            vectors.append(project_reference(cache.left(b), ref_theta, cache.right(b + 1)))
        return vectors

    def apply(self, theta: jax.Array) -> jax.Array:
        result = self.lop.apply(theta)
        for v in self._projected_references():
            result = result + self.weight * v * jnp.vdot(v, theta)
        return result

    def expectation(self, theta: jax.Array) -> float:
        return float(
            (jnp.vdot(theta, self.apply(theta)) / jnp.vdot(theta, theta)).real
        )

    def noise_term(self, theta: jax.Array, direction: Direction) -> jax.Array:
        return self.lop.noise_term(theta, direction)

    @property
    def size(self) -> int:
        return self.lop.size

    @property
    def disk_backed(self) -> bool:
        return self.lop.disk_backed

    def enable_disk_backing(self, enabled: bool = True, write_dir: str | Path = "./") -> None:
        self.lop.enable_disk_backing(enabled, write_dir)
        for cache in self._overlaps:
            cache.enable_disk_backing(enabled, write_dir)


LocalOp = Union[LocalMPO, LocalMPOSum, LocalMPOProjected]
