"""Matrix Product State with an orthogonality center.

Site tensors are always rank 3, ``A[i]`` of shape ``(chi_left, d, chi_right)``.
The outermost bonds have dimension 1 for an ordinary open chain; a chain that
is a sub-segment of a larger system may carry larger boundary bonds.

Canonical form bookkeeping::

    center = c   ->   A[0..c-1] left-canonical,  A[c+1..N-1] right-canonical
    center = None ->  nothing is known about the gauge

``svd_bond`` is the entry point used by the DMRG driver to split an optimised
two-site tensor back into two sites.  It writes the truncation record of the
bond into ``truncation_result(b)`` and moves the center to ``b + 1`` or ``b``
depending on the sweep direction.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import IntEnum
from pathlib import Path
from typing import Any, NamedTuple, Protocol

import jax
import jax.numpy as jnp
import numpy as np

from dmrgjax.core import EPS
from dmrgjax.core.storage import TensorStore, move_to_disk
from dmrgjax.linalg.decompositions import (
    lq_right,
    qr_left,
    truncated_eigh,
    truncated_svd,
)
from dmrgjax.networks.environments import trivial_overlap_env, update_left_overlap


class Direction(IntEnum):
    """Direction in which a half-sweep grows the canonical region.

    FROM_LEFT (1):  forward half-sweep; the left site of the bond becomes
                    left-canonical and the center moves to ``b + 1``.
    FROM_RIGHT (2): backward half-sweep; the right site becomes
                    right-canonical and the center moves to ``b``.

    The values coincide with the 1-based half-sweep number.
    """

    FROM_LEFT = 1
    FROM_RIGHT = 2


class TruncationResult(NamedTuple):
    """Record of one bond factorization.

    Attributes:
        singular_values:  Kept singular values, descending.
        truncation_error: Discarded weight relative to the total weight.
        kept_dim:         Number of kept singular values.
    """

    singular_values: jax.Array
    truncation_error: float
    kept_dim: int

    def entropy(self) -> float:
        """Von Neumann entanglement entropy of the kept spectrum."""
        p = np.asarray(self.singular_values, dtype=np.float64) ** 2
        total = p.sum()
        if total <= 0.0:
            return 0.0
        p = p[p > 0] / total
        return float(-np.sum(p * np.log(p)))


class NoiseSource(Protocol):
    """Anything able to produce a density-matrix perturbation for a bond."""

    def noise_term(self, theta: jax.Array, direction: Direction) -> jax.Array: ...


class MPS:
    """Finite Matrix Product State.

    Args:
        tensors: Site tensors, each of shape ``(chi_left, d, chi_right)``.
        center:  Known orthogonality center, or ``None``.

    Raises:
        ValueError: If a tensor is not rank 3 or neighbouring bonds disagree.
    """

    def __init__(
        self,
        tensors: Sequence[jax.Array],
        center: int | None = None,
    ) -> None:
        if len(tensors) == 0:
            raise ValueError("an MPS needs at least one site")
        arrays = [jnp.asarray(t) for t in tensors]
        for i, a in enumerate(arrays):
            if a.ndim != 3:
                raise ValueError(
                    f"site {i} has {a.ndim} dims, expected 3 (chi_l, d, chi_r)"
                )
        for i in range(len(arrays) - 1):
            if arrays[i].shape[2] != arrays[i + 1].shape[0]:
                raise ValueError(
                    f"bond ({i},{i + 1}) mismatch: {arrays[i].shape[2]} != "
                    f"{arrays[i + 1].shape[0]}"
                )
        self._length = len(arrays)
        self._store: Any = TensorStore()
        for i, a in enumerate(arrays):
            self._store[i] = a
        self.center = center
        self._spectra: dict[int, TruncationResult] = {}

    # ------------------------------------------------------------------ #
    # Construction                                                        #
    # ------------------------------------------------------------------ #

    @classmethod
    def random(
        cls,
        length: int,
        physical_dim: int = 2,
        bond_dim: int = 4,
        dtype: Any = jnp.float64,
        seed: int = 0,
    ) -> MPS:
        """Random MPS with bond dimensions capped by the Hilbert-space size.

        Args:
            length:       Number of sites.
            physical_dim: Physical dimension per site.
            bond_dim:     Largest virtual bond dimension.
            dtype:        Data type of the site tensors.
            seed:         Random seed.
        """
        bonds = [1]
        for i in range(1, length):
            cap = min(physical_dim**i, physical_dim ** (length - i))
            bonds.append(int(min(bond_dim, cap)))
        bonds.append(1)

        tensors = []
        for i in range(length):
            key = jax.random.PRNGKey(seed + i)
            shape = (bonds[i], physical_dim, bonds[i + 1])
            data = jax.random.normal(key, shape, dtype=dtype)
            tensors.append(data / jnp.linalg.norm(data))
        return cls(tensors)

    @classmethod
    def product_state(
        cls,
        states: Sequence[int],
        physical_dim: int = 2,
        dtype: Any = jnp.float64,
    ) -> MPS:
        """Product state with site ``i`` in basis state ``states[i]``.

        The result is trivially canonical; its center is set to 0.
        """
        tensors = []
        for s in states:
            if not 0 <= s < physical_dim:
                raise ValueError(f"basis state {s} out of range for d={physical_dim}")
            tensors.append(jnp.zeros((1, physical_dim, 1), dtype=dtype).at[0, s, 0].set(1.0))
        return cls(tensors, center=0)

    @classmethod
    def from_dense(
        cls,
        vector: jax.Array,
        physical_dims: Sequence[int],
        max_dim: int | None = None,
        cutoff: float = 0.0,
    ) -> MPS:
        """Decompose a full state vector into an MPS by successive SVDs.

        The returned MPS has its center on the last site.
        """
        vector = jnp.asarray(vector)
        if vector.size != int(np.prod(physical_dims)):
            raise ValueError(
                f"vector of size {vector.size} does not match physical dims "
                f"{tuple(physical_dims)}"
            )
        tensors = []
        rest = vector.reshape(1, -1)
        chi = 1
        for d in physical_dims[:-1]:
            M = rest.reshape(chi * d, -1)
            U, s, Vh, _ = truncated_svd(M, cutoff=cutoff, max_dim=max_dim)
            k = s.shape[0]
            tensors.append(U.reshape(chi, d, k))
            rest = s[:, None] * Vh
            chi = k
        tensors.append(rest.reshape(chi, physical_dims[-1], 1))
        return cls(tensors, center=len(tensors) - 1)

    def copy(self) -> MPS:
        """Shallow copy (site arrays are immutable and shared)."""
        other = MPS([self[i] for i in range(self._length)], center=self.center)
        other._spectra = dict(self._spectra)
        return other

    # ------------------------------------------------------------------ #
    # Access                                                              #
    # ------------------------------------------------------------------ #

    @property
    def length(self) -> int:
        return self._length

    def __len__(self) -> int:
        return self._length

    def site_tensor(self, i: int) -> jax.Array:
        """Return the site tensor at ``i``."""
        if i < 0:
            i += self._length
        if not 0 <= i < self._length:
            raise IndexError(f"site {i} out of range for length {self._length}")
        return self._store[i]

    __getitem__ = site_tensor

    def _set_site(self, i: int, tensor: jax.Array) -> None:
        self._store[i] = tensor

    @property
    def dtype(self) -> Any:
        return self[0].dtype

    @property
    def physical_dims(self) -> tuple[int, ...]:
        return tuple(int(self[i].shape[1]) for i in range(self._length))

    def bond_dims(self) -> list[int]:
        """Dimensions of the internal bonds ``(i, i+1)``."""
        return [int(self[i].shape[2]) for i in range(self._length - 1)]

    def max_bond_dim(self) -> int:
        dims = self.bond_dims()
        return max(dims) if dims else 1

    @property
    def disk_backed(self) -> bool:
        return self._store.disk_backed

    def enable_disk_backing(self, enabled: bool = True, write_dir: str | Path = "./") -> None:
        """Move the site tensors to an on-disk store.

        This is a one-way switch: once enabled it cannot be turned off.

        Raises:
            ValueError: If asked to disable an active disk store.
        """
        if enabled and not self.disk_backed:
            self._store = move_to_disk(self._store, write_dir)
        elif not enabled and self.disk_backed:
            raise ValueError("disk backing cannot be turned off once enabled")

    # ------------------------------------------------------------------ #
    # Canonical form                                                      #
    # ------------------------------------------------------------------ #

    def _left_orthogonalize(self, i: int) -> None:
        A = self[i]
        chi_l, d, chi_r = A.shape
        Q, R = qr_left(A.reshape(chi_l * d, chi_r))
        k = Q.shape[1]
        self._set_site(i, Q.reshape(chi_l, d, k))
        self._set_site(i + 1, jnp.einsum("ab,bpc->apc", R, self[i + 1]))

    def _right_orthogonalize(self, i: int) -> None:
        B = self[i]
        chi_l, d, chi_r = B.shape
        Lmat, Q = lq_right(B.reshape(chi_l, d * chi_r))
        k = Q.shape[0]
        self._set_site(i, Q.reshape(k, d, chi_r))
        self._set_site(i - 1, jnp.einsum("xpa,ab->xpb", self[i - 1], Lmat))

    def canonicalize(self, site: int) -> MPS:
        """Bring the orthogonality center to ``site`` by QR sweeps.

        Returns:
            ``self`` for chaining.
        """
        if site < 0:
            site += self._length
        if not 0 <= site < self._length:
            raise IndexError(f"site {site} out of range for length {self._length}")

        if self.center is None:
            for i in range(site):
                self._left_orthogonalize(i)
            for i in range(self._length - 1, site, -1):
                self._right_orthogonalize(i)
        else:
            while self.center < site:
                self._left_orthogonalize(self.center)
                self.center += 1
            while self.center > site:
                self._right_orthogonalize(self.center)
                self.center -= 1
        self.center = site
        return self

    position = canonicalize

    # ------------------------------------------------------------------ #
    # Bond factorization                                                  #
    # ------------------------------------------------------------------ #

    def svd_bond(
        self,
        b: int,
        theta: jax.Array,
        direction: Direction,
        local_op: NoiseSource | None = None,
        *,
        cutoff: float = 0.0,
        min_dim: int = 1,
        max_dim: int | None = None,
        noise: float = 0.0,
    ) -> TruncationResult:
        """Split a two-site tensor into sites ``b`` and ``b + 1``.

        Without noise this is a truncated SVD.  With ``noise > 0`` and an
        operator able to supply a perturbation, the reduced density matrix of
        the block being made canonical is perturbed before diagonalization,
        which lets the bond pick up states the current wavefunction has no
        weight on.

        Args:
            b:         Bond index (sites ``b`` and ``b + 1``).
            theta:     Two-site tensor of shape ``(chi_l, d_b, d_b1, chi_r)``.
            direction: ``FROM_LEFT`` puts the center on ``b + 1``,
                       ``FROM_RIGHT`` on ``b``.
            local_op:  Source of the noise term; ignored when ``noise == 0``.
            cutoff:    Relative discarded-weight tolerance.
            min_dim:   Minimum kept dimension (wins over ``cutoff``).
            max_dim:   Maximum kept dimension.
            noise:     Amplitude of the density-matrix perturbation.

        Returns:
            The :class:`TruncationResult` stored for bond ``b``.
        """
        if not 0 <= b < self._length - 1:
            raise IndexError(f"bond {b} out of range for length {self._length}")
        chi_l, d1, d2, chi_r = theta.shape
        if chi_l != self[b].shape[0] or chi_r != self[b + 1].shape[2]:
            raise ValueError(
                f"theta shape {theta.shape} does not fit bond ({b},{b + 1}) with "
                f"outer bonds ({self[b].shape[0]}, {self[b + 1].shape[2]})"
            )

        M = theta.reshape(chi_l * d1, d2 * chi_r)
        direction = Direction(direction)

        if noise > 0.0 and local_op is not None:
            perturbation = local_op.noise_term(theta, direction)
            trace = float(jnp.trace(perturbation).real)
            if direction is Direction.FROM_LEFT:
                rho = M @ jnp.conj(M.T)
            else:
                rho = jnp.conj(M.T) @ M
            if trace > EPS:
                rho = rho + (noise / trace) * perturbation
            U, weights, trunc_err = truncated_eigh(rho, cutoff, min_dim, max_dim)
            s = jnp.sqrt(weights)
            if direction is Direction.FROM_LEFT:
                left = U
                right = jnp.conj(U.T) @ M
            else:
                left = M @ U
                right = jnp.conj(U.T)
        else:
            U, s, Vh, trunc_err = truncated_svd(M, cutoff, min_dim, max_dim)
            if direction is Direction.FROM_LEFT:
                left = U
                right = s[:, None] * Vh
            else:
                left = U * s[None, :]
                right = Vh

        k = left.shape[1]
        self._set_site(b, left.reshape(chi_l, d1, k))
        self._set_site(b + 1, right.reshape(k, d2, chi_r))
        self.center = b + 1 if direction is Direction.FROM_LEFT else b

        result = TruncationResult(
            singular_values=s,
            truncation_error=float(trunc_err),
            kept_dim=int(k),
        )
        self._spectra[b] = result
        return result

    def truncation_result(self, b: int) -> TruncationResult | None:
        """Most recent truncation record of bond ``b``, or ``None``."""
        return self._spectra.get(b)

    @property
    def truncation_results(self) -> dict[int, TruncationResult]:
        return dict(self._spectra)

    # ------------------------------------------------------------------ #
    # Norms and overlaps                                                  #
    # ------------------------------------------------------------------ #

    def overlap(self, other: MPS) -> complex | float:
        """``<self|other>`` (the bra is conjugated).

        Boundary bonds of sub-segments are traced over, so both states must
        share their outer bond dimensions.
        """
        if len(other) != self._length:
            raise ValueError(
                f"length mismatch: {self._length} vs {len(other)} sites"
            )
        chi = self[0].shape[0]
        if chi != other[0].shape[0] or self[-1].shape[2] != other[-1].shape[2]:
            raise ValueError("states have different boundary bond dimensions")
        dtype = jnp.result_type(self.dtype, other.dtype)
        E = trivial_overlap_env(dtype) if chi == 1 else jnp.eye(chi, dtype=dtype)
        for i in range(self._length):
            E = update_left_overlap(E, self[i], other[i])
        value = complex(jnp.trace(E))
        return value.real if jnp.isrealobj(E) else value

    def norm(self) -> float:
        return math.sqrt(abs(self.overlap(self)))

    def normalize(self) -> float:
        """Scale the state to unit norm.

        The scale goes into the center tensor (site 0 when the center is
        unknown), so the canonical form is untouched.

        Returns:
            The norm before normalization.
        """
        n = self.norm()
        if n < EPS:
            raise ValueError("cannot normalize a state with zero norm")
        site = self.center if self.center is not None else 0
        self._set_site(site, self[site] / n)
        return n

    def to_dense(self) -> jax.Array:
        """Contract the chain into a full state vector (small systems only).

        Returns a flat vector for ordinary open chains; for sub-segments the
        boundary bonds are kept as the first and last axes.
        """
        v = self[0]
        for i in range(1, self._length):
            v = jnp.tensordot(v, self[i], axes=([-1], [0]))
        chi_first, chi_last = v.shape[0], v.shape[-1]
        if chi_first == 1 and chi_last == 1:
            return v.reshape(-1)
        return v.reshape(chi_first, -1, chi_last)

    def __repr__(self) -> str:
        return (
            f"MPS(length={self._length}, bond_dims={self.bond_dims()}, "
            f"center={self.center}, dtype={self.dtype})"
        )
