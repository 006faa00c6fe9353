"""Shared fixtures for the dmrgjax test suite."""

import jax
import numpy as np
import pytest

from dmrgjax import MPS, build_mpo_heisenberg

# ------------------------------------------------------------------ #
# Random key fixture                                                   #
# ------------------------------------------------------------------ #


@pytest.fixture
def rng():
    return jax.random.PRNGKey(42)


# ------------------------------------------------------------------ #
# Exact-diagonalization helpers                                        #
# ------------------------------------------------------------------ #


def _kron_chain(ops: list) -> np.ndarray:
    result = ops[0]
    for op in ops[1:]:
        result = np.kron(result, op)
    return result


def _build_heisenberg_matrix(
    L: int, Jz: float = 1.0, Jxy: float = 1.0, hz: float = 0.0
) -> np.ndarray:
    """Build the L-site XXZ Hamiltonian matrix (OBC) using Kronecker products.

    H = Jz * sum_i Sz_i Sz_{i+1} + Jxy/2 * sum_i (S+_i S-_{i+1} + S-_i S+_{i+1})
        + hz * sum_i Sz_i
    """
    Sz = np.array([[0.5, 0.0], [0.0, -0.5]])
    Sp = np.array([[0.0, 1.0], [0.0, 0.0]])
    Sm = np.array([[0.0, 0.0], [1.0, 0.0]])
    I2 = np.eye(2)

    dim = 2**L
    H = np.zeros((dim, dim))
    for i in range(L - 1):
        for a, b, c in [(Sz, Sz, Jz), (Sp, Sm, Jxy / 2), (Sm, Sp, Jxy / 2)]:
            ops = [I2] * L
            ops[i] = a
            ops[i + 1] = b
            H += c * _kron_chain(ops)
    for i in range(L):
        ops = [I2] * L
        ops[i] = Sz
        H += hz * _kron_chain(ops)
    return H


def _build_ising_matrix(L: int, J: float = 1.0, h: float = 1.0) -> np.ndarray:
    """H = -J sum Z_i Z_{i+1} - h sum X_i with Pauli matrices (OBC)."""
    X = np.array([[0.0, 1.0], [1.0, 0.0]])
    Z = np.array([[1.0, 0.0], [0.0, -1.0]])
    I2 = np.eye(2)

    dim = 2**L
    H = np.zeros((dim, dim))
    for i in range(L - 1):
        ops = [I2] * L
        ops[i] = Z
        ops[i + 1] = Z
        H -= J * _kron_chain(ops)
    for i in range(L):
        ops = [I2] * L
        ops[i] = X
        H -= h * _kron_chain(ops)
    return H


@pytest.fixture
def heisenberg_matrix():
    return _build_heisenberg_matrix


@pytest.fixture
def ising_matrix():
    return _build_ising_matrix


# ------------------------------------------------------------------ #
# Chain fixtures                                                       #
# ------------------------------------------------------------------ #


@pytest.fixture
def heisenberg4():
    return build_mpo_heisenberg(4)


@pytest.fixture
def random_mps4():
    return MPS.random(4, physical_dim=2, bond_dim=4, seed=7)


@pytest.fixture
def quiet():
    return {"Quiet": True}
