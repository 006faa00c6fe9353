"""Contraction kernels for MPS/MPO environments and two-site operators.

Index conventions (all tensors are raw ``jax.Array``)::

    MPS site            A[x, p, y]         (left bond, physical, right bond)
    MPO site            W[w, s, p, v]      (left bond, out/bra, in/ket, right bond)
    left environment    L[a, w, x]         (bra bond, MPO bond, ket bond)
    right environment   R[c, n, y]         (bra bond, MPO bond, ket bond)
    two-site tensor     theta[x, p, q, y]
    overlap environment E[r, y]            (reference bond, state bond)

Environment updates go through ``opt_einsum`` with cached contraction
expressions (the shapes repeat sweep after sweep); the two-site matvec is
``@jax.jit`` compiled because the eigensolver calls it many times per bond.
"""

from __future__ import annotations

import functools
from typing import Any

import jax
import jax.numpy as jnp
import opt_einsum


@functools.lru_cache(maxsize=512)
def _expression(subscripts: str, *shapes: tuple[int, ...]) -> Any:
    return opt_einsum.contract_expression(subscripts, *shapes, optimize="auto")


def _contract(subscripts: str, *arrays: jax.Array) -> jax.Array:
    """Contract ``arrays`` with a cached opt_einsum path, executed by JAX."""
    expr = _expression(subscripts, *(tuple(a.shape) for a in arrays))
    return expr(*arrays, backend="jax")


# ------------------------------------------------------------------ #
# Boundaries                                                          #
# ------------------------------------------------------------------ #


def trivial_env(dtype: Any = jnp.float64) -> jax.Array:
    """Trivial ``(1, 1, 1)`` boundary environment."""
    return jnp.ones((1, 1, 1), dtype=dtype)


def trivial_overlap_env(dtype: Any = jnp.float64) -> jax.Array:
    """Trivial ``(1, 1)`` boundary for state-state overlaps."""
    return jnp.ones((1, 1), dtype=dtype)


# ------------------------------------------------------------------ #
# MPO environments                                                    #
# ------------------------------------------------------------------ #


def update_left_env(L: jax.Array, A: jax.Array, W: jax.Array) -> jax.Array:
    """Absorb one site into a left environment.

    new_L[b, v, y] = L[a, w, x] * conj(A)[a, s, b] * W[w, s, p, v] * A[x, p, y]
    """
    return _contract("awx,asb,wspv,xpy->bvy", L, jnp.conj(A), W, A)


def update_right_env(R: jax.Array, B: jax.Array, W: jax.Array) -> jax.Array:
    """Absorb one site into a right environment.

    new_R[a, w, x] = conj(B)[a, s, b] * W[w, s, p, v] * B[x, p, y] * R[b, v, y]
    """
    return _contract("asb,wspv,xpy,bvy->awx", jnp.conj(B), W, B, R)


def merge_sites(A: jax.Array, B: jax.Array) -> jax.Array:
    """Contract two neighbouring site tensors over their shared bond."""
    return jnp.einsum("xpy,yqz->xpqz", A, B)


def _apply_two_site(
    theta: jax.Array,
    L: jax.Array,
    W1: jax.Array,
    W2: jax.Array,
    R: jax.Array,
) -> jax.Array:
    """Apply ``L * W1 * W2 * R`` to a two-site tensor.

    result[a, s, t, c] = L[a, w, x] W1[w, s, p, m] W2[m, t, q, n] R[c, n, y] theta[x, p, q, y]
    """
    return jnp.einsum(
        "awx,wspm,mtqn,cny,xpqy->astc",
        L,
        W1,
        W2,
        R,
        theta,
        optimize="optimal",
    )


apply_two_site = jax.jit(_apply_two_site)


# ------------------------------------------------------------------ #
# Density-matrix perturbation (noise term)                            #
# ------------------------------------------------------------------ #


def left_noise_block(theta: jax.Array, L: jax.Array, W1: jax.Array) -> jax.Array:
    """Left-block density-matrix correction from a partially applied operator.

    The MPO bond between the two sites is left open and summed over after
    squaring, so every operator channel contributes to the left block's
    reduced density matrix.  Oriented like ``M M^dagger`` for the bond
    matrix ``M``.  Returns a matrix of shape ``(chi_l * d, chi_l * d)``.
    """
    X = _contract("awx,wspm,xpqy->asmqy", L, W1, theta)
    rho = jnp.einsum("asmqy,bumqy->asbu", X, jnp.conj(X))
    chi, d = rho.shape[0], rho.shape[1]
    return rho.reshape(chi * d, chi * d)


def right_noise_block(theta: jax.Array, W2: jax.Array, R: jax.Array) -> jax.Array:
    """Right-block counterpart of :func:`left_noise_block`.

    Oriented like ``M^dagger M`` for the bond matrix ``M``.  Returns a
    matrix of shape ``(d * chi_r, d * chi_r)``.
    """
    Y = _contract("mtqn,cny,xpqy->xpmtc", W2, R, theta)
    rho = jnp.einsum("xpmtc,xpmud->tcud", jnp.conj(Y), Y)
    d, chi = rho.shape[0], rho.shape[1]
    return rho.reshape(d * chi, d * chi)


# ------------------------------------------------------------------ #
# State-state overlaps                                                #
# ------------------------------------------------------------------ #


def update_left_overlap(E: jax.Array, ref: jax.Array, A: jax.Array) -> jax.Array:
    """Absorb one site into a left ``<ref|psi>`` environment."""
    return _contract("xy,xsa,ysb->ab", E, jnp.conj(ref), A)


def update_right_overlap(E: jax.Array, ref: jax.Array, B: jax.Array) -> jax.Array:
    """Absorb one site into a right ``<ref|psi>`` environment."""
    return _contract("asx,bsy,xy->ab", jnp.conj(ref), B, E)


def project_reference(
    E_left: jax.Array,
    ref_theta: jax.Array,
    E_right: jax.Array,
) -> jax.Array:
    """Express a reference state in the local two-site basis of ``psi``.

    Returns ``v`` such that ``<ref|psi> = vdot(v, theta)`` for the current
    two-site tensor ``theta`` of ``psi``.
    """
    return _contract(
        "xy,xstz,zw->ystw", jnp.conj(E_left), ref_theta, jnp.conj(E_right)
    )
