"""Lanczos eigensolver for the lowest eigenpair of a Hermitian operator.

The operator is given only through its action ``matvec(v)`` on flat vectors,
which is how the DMRG effective Hamiltonians are exposed.  The Krylov basis
is fully re-orthogonalized at every step; local DMRG problems are small
enough that the extra cost is negligible, and it keeps ghost eigenvalues out
of the Ritz spectrum.

The starting vector is the first Krylov vector, so the lowest Ritz value is
never above the Rayleigh quotient of the starting vector.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np

from dmrgjax.core import EPS


class EigenResult(NamedTuple):
    """Result of a Lanczos solve.

    Attributes:
        eigenvalue:  Lowest Ritz value.
        eigenvector: Normalized Ritz vector (same shape as the start vector).
        n_iter:      Number of Krylov vectors used.
        residual:    Norm of ``H x - eigenvalue * x`` for the Ritz vector.
        converged:   True if ``residual`` dropped below the tolerance.
    """

    eigenvalue: float
    eigenvector: jax.Array
    n_iter: int
    residual: float
    converged: bool


def lanczos_ground_state(
    matvec: Callable[[jax.Array], jax.Array],
    initial_vector: jax.Array,
    max_iter: int = 50,
    tol: float = 1e-10,
) -> EigenResult:
    """Find the lowest eigenpair with the Lanczos algorithm.

    Args:
        matvec:         Function applying the Hermitian operator to a flat vector.
        initial_vector: Starting vector (normalized internally).
        max_iter:       Maximum Krylov dimension.
        tol:            Convergence tolerance on the Ritz residual.

    Returns:
        :class:`EigenResult` for the lowest Ritz pair.
    """
    v0 = initial_vector.ravel()
    norm0 = float(jnp.linalg.norm(v0))
    if norm0 < EPS:
        v0 = jax.random.normal(jax.random.PRNGKey(0), v0.shape).astype(v0.dtype)
        norm0 = float(jnp.linalg.norm(v0))
    v = v0 / norm0

    basis = [v]
    alphas: list[float] = []
    betas: list[float] = []

    eigenvalue = 0.0
    coefs = np.ones(1)
    residual = float("inf")
    converged = False

    for step in range(max(1, max_iter)):
        w = matvec(basis[-1])
        alpha = float(jnp.vdot(basis[-1], w).real)
        if not np.isfinite(alpha):
            # Caller decides what a non-finite energy means.
            return EigenResult(
                eigenvalue=alpha,
                eigenvector=basis[-1].reshape(initial_vector.shape),
                n_iter=len(alphas) + 1,
                residual=float("nan"),
                converged=False,
            )
        alphas.append(alpha)

        w = w - alpha * basis[-1]
        if step > 0:
            w = w - betas[-1] * basis[-2]
        # Full re-orthogonalization against the whole Krylov basis
        B = jnp.stack(basis, axis=0)
        for _ in range(2):
            w = w - jnp.tensordot(jnp.conj(B) @ w, B, axes=1)
        beta = float(jnp.linalg.norm(w))

        T = np.diag(alphas)
        if betas:
            off = np.asarray(betas)
            T = T + np.diag(off, k=1) + np.diag(off, k=-1)
        ritz_vals, ritz_vecs = np.linalg.eigh(T)
        eigenvalue = float(ritz_vals[0])
        coefs = ritz_vecs[:, 0]
        residual = beta * abs(float(coefs[-1]))

        if residual < tol or beta < EPS:
            converged = True
            break
        if step + 1 < max_iter:
            betas.append(beta)
            basis.append(w / beta)

    n = len(alphas)
    stacked = jnp.stack(basis[:n], axis=0)
    eigenvector = jnp.tensordot(jnp.asarray(coefs, dtype=stacked.dtype), stacked, axes=1)
    eigenvector = eigenvector / (jnp.linalg.norm(eigenvector) + EPS)

    return EigenResult(
        eigenvalue=eigenvalue,
        eigenvector=eigenvector.reshape(initial_vector.shape),
        n_iter=n,
        residual=residual,
        converged=converged,
    )
