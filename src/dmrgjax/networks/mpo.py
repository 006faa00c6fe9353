"""Matrix Product Operators and model Hamiltonians.

MPO site tensors have shape ``(w_left, d_out, d_in, w_right)``.  The model
builders use the lower-triangular finite-state-machine form::

    W = [[I,    0,   ...,  0],
         [O_1,  0,   ...,  0],
         ...
         [h_i,  c_1 P_1, ..., I]]

with the left boundary the last row of ``W`` and the right boundary its
first column.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import jax
import jax.numpy as jnp

from dmrgjax.networks.environments import trivial_env, update_left_env
from dmrgjax.networks.mps import MPS


class MPO:
    """Finite Matrix Product Operator.

    Args:
        tensors: Site tensors, each of shape ``(w_left, d_out, d_in, w_right)``.

    Raises:
        ValueError: If a tensor is not rank 4, or neighbouring MPO bonds
            disagree.
    """

    def __init__(self, tensors: Sequence[jax.Array]) -> None:
        if len(tensors) == 0:
            raise ValueError("an MPO needs at least one site")
        arrays = tuple(jnp.asarray(t) for t in tensors)
        for i, W in enumerate(arrays):
            if W.ndim != 4:
                raise ValueError(
                    f"site {i} has {W.ndim} dims, expected 4 (w_l, d_out, d_in, w_r)"
                )
        for i in range(len(arrays) - 1):
            if arrays[i].shape[3] != arrays[i + 1].shape[0]:
                raise ValueError(
                    f"MPO bond ({i},{i + 1}) mismatch: {arrays[i].shape[3]} != "
                    f"{arrays[i + 1].shape[0]}"
                )
        self._tensors = arrays

    @property
    def length(self) -> int:
        return len(self._tensors)

    def __len__(self) -> int:
        return len(self._tensors)

    def __getitem__(self, i: int) -> jax.Array:
        return self._tensors[i]

    @property
    def dtype(self) -> Any:
        return self._tensors[0].dtype

    @property
    def physical_dims(self) -> tuple[int, ...]:
        return tuple(int(W.shape[2]) for W in self._tensors)

    def bond_dims(self) -> list[int]:
        return [int(W.shape[3]) for W in self._tensors[:-1]]

    def to_matrix(self) -> jax.Array:
        """Contract the MPO into a dense ``(D, D)`` matrix.

        Only sensible for small chains.  Requires trivial outer MPO bonds.
        """
        first, last = self._tensors[0], self._tensors[-1]
        if first.shape[0] != 1 or last.shape[3] != 1:
            raise ValueError("to_matrix needs an MPO with trivial outer bonds")
        T = first[0]  # (s, p, w)
        for W in self._tensors[1:]:
            T = jnp.einsum("spw,wtqv->stpqv", T, W)
            S, d_out, P, d_in, v = T.shape
            T = T.reshape(S * d_out, P * d_in, v)
        return T[:, :, 0]

    def expectation(self, psi: MPS) -> float | complex:
        """``<psi|H|psi>`` by sweeping a left environment across the chain."""
        if len(psi) != self.length:
            raise ValueError(
                f"length mismatch: MPO has {self.length} sites, MPS has {len(psi)}"
            )
        L = trivial_env(jnp.result_type(psi.dtype, self.dtype))
        for i in range(self.length):
            L = update_left_env(L, psi[i], self._tensors[i])
        value = L[0, 0, 0]
        return float(value.real) if jnp.isrealobj(value) else complex(value)

    def __repr__(self) -> str:
        return f"MPO(length={self.length}, bond_dims={self.bond_dims()})"


def _chain_from_bulk(W: jax.Array, L: int) -> MPO:
    """Cut a bulk tensor into an open chain of length ``L``."""
    D_w = W.shape[0]
    if L == 1:
        return MPO([W[D_w - 1 : D_w, :, :, 0:1]])
    tensors = [W[D_w - 1 : D_w, :, :, :]]
    tensors.extend(W for _ in range(L - 2))
    tensors.append(W[:, :, :, 0:1])
    return MPO(tensors)


def build_mpo_heisenberg(
    L: int,
    Jz: float = 1.0,
    Jxy: float = 1.0,
    hz: float = 0.0,
    dtype: Any = jnp.float64,
) -> MPO:
    """Build the MPO for the spin-1/2 XXZ Heisenberg chain.

    H = Jz * sum_i Sz_i Sz_{i+1} + Jxy/2 * sum_i (S+_i S-_{i+1} + S-_i S+_{i+1})
        + hz * sum_i Sz_i

    Args:
        L:      Chain length (number of sites).
        Jz:     Ising coupling strength.
        Jxy:    XY coupling strength.
        hz:     Longitudinal magnetic field.
        dtype:  JAX dtype for MPO tensors.

    Returns:
        :class:`MPO` with bond dimension 5.
    """
    d = 2
    Sp = jnp.array([[0, 1], [0, 0]], dtype=dtype)  # S+ = |up><down|
    Sm = jnp.array([[0, 0], [1, 0]], dtype=dtype)  # S- = |down><up|
    Sz = 0.5 * jnp.array([[1, 0], [0, -1]], dtype=dtype)
    I2 = jnp.eye(d, dtype=dtype)

    D_w = 5
    W = jnp.zeros((D_w, d, d, D_w), dtype=dtype)
    W = W.at[0, :, :, 0].set(I2)
    W = W.at[1, :, :, 0].set(Sp)
    W = W.at[2, :, :, 0].set(Sm)
    W = W.at[3, :, :, 0].set(Sz)
    W = W.at[4, :, :, 0].set(hz * Sz)
    W = W.at[4, :, :, 1].set((Jxy / 2) * Sm)
    W = W.at[4, :, :, 2].set((Jxy / 2) * Sp)
    W = W.at[4, :, :, 3].set(Jz * Sz)
    W = W.at[4, :, :, 4].set(I2)
    return _chain_from_bulk(W, L)


def build_mpo_ising(
    L: int,
    J: float = 1.0,
    h: float = 1.0,
    dtype: Any = jnp.float64,
) -> MPO:
    """Build the MPO for the transverse-field Ising chain.

    H = -J * sum_i Z_i Z_{i+1} - h * sum_i X_i   (Pauli matrices)

    Returns:
        :class:`MPO` with bond dimension 3.
    """
    d = 2
    X = jnp.array([[0, 1], [1, 0]], dtype=dtype)
    Z = jnp.array([[1, 0], [0, -1]], dtype=dtype)
    I2 = jnp.eye(d, dtype=dtype)

    W = jnp.zeros((3, d, d, 3), dtype=dtype)
    W = W.at[0, :, :, 0].set(I2)
    W = W.at[1, :, :, 0].set(Z)
    W = W.at[2, :, :, 0].set(-h * X)
    W = W.at[2, :, :, 1].set(-J * Z)
    W = W.at[2, :, :, 2].set(I2)
    return _chain_from_bulk(W, L)
