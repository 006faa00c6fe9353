"""Matrix factorizations used to split and re-canonicalize MPS bonds.

All routines work on plain 2-D ``jax.Array`` matrices.  Reshaping site and
bond tensors into matrices is the caller's job (see ``networks.mps``).

Truncation convention::

    weights w_i = s_i**2  (or density-matrix eigenvalues), sorted descending
    truncation error     = sum(discarded w_i) / sum(all w_i)

``truncate_spectrum`` drops the smallest weights while the accumulated
truncation error stays within ``cutoff``, then caps the kept dimension at
``max_dim``.  The ``min_dim`` floor is applied last, so when the two
constraints disagree the floor wins and the reported error is the true one,
which may exceed ``cutoff``.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
import numpy as np


def truncate_spectrum(
    weights: np.ndarray,
    cutoff: float = 0.0,
    min_dim: int = 1,
    max_dim: int | None = None,
) -> tuple[int, float]:
    """Choose how many leading weights to keep.

    Args:
        weights: 1-D non-negative weights sorted in descending order.
        cutoff:  Largest allowed relative discarded weight.
        min_dim: Keep at least this many (bounded by ``len(weights)``).
        max_dim: Keep at most this many; ``None`` means no cap.

    Returns:
        ``(n_keep, truncation_error)``.
    """
    w = np.clip(np.asarray(weights, dtype=np.float64), 0.0, None)
    n_total = len(w)
    if n_total == 0:
        return 0, 0.0

    total = float(np.sum(w))
    if total <= 0.0:
        return max(1, min(min_dim, n_total)), 0.0

    n_keep = n_total
    discarded = 0.0
    while n_keep > 1 and (discarded + w[n_keep - 1]) / total <= cutoff:
        discarded += float(w[n_keep - 1])
        n_keep -= 1

    if max_dim is not None:
        n_keep = min(n_keep, max_dim)
    n_keep = max(n_keep, min(min_dim, n_total), 1)

    trunc_err = float(np.sum(w[n_keep:])) / total
    return n_keep, trunc_err


def truncated_svd(
    matrix: jax.Array,
    cutoff: float = 0.0,
    min_dim: int = 1,
    max_dim: int | None = None,
) -> tuple[jax.Array, jax.Array, jax.Array, float]:
    """SVD of a matrix followed by truncation.

    Args:
        matrix:  2-D array of shape ``(m, n)``.
        cutoff:  Relative discarded-weight tolerance.
        min_dim: Minimum number of singular values kept.
        max_dim: Maximum number of singular values kept.

    Returns:
        ``(U, s, Vh, truncation_error)`` with ``U`` of shape ``(m, k)``,
        ``s`` of shape ``(k,)`` (descending) and ``Vh`` of shape ``(k, n)``.
    """
    U, s, Vh = jnp.linalg.svd(matrix, full_matrices=False)
    s_np = np.asarray(s)
    n_keep, trunc_err = truncate_spectrum(s_np**2, cutoff, min_dim, max_dim)
    return U[:, :n_keep], s[:n_keep], Vh[:n_keep, :], trunc_err


def truncated_eigh(
    rho: jax.Array,
    cutoff: float = 0.0,
    min_dim: int = 1,
    max_dim: int | None = None,
) -> tuple[jax.Array, jax.Array, float]:
    """Diagonalize a Hermitian density matrix and keep its dominant eigenvectors.

    Args:
        rho:     Hermitian positive semi-definite matrix, shape ``(m, m)``.
        cutoff:  Relative discarded-weight tolerance.
        min_dim: Minimum number of eigenvectors kept.
        max_dim: Maximum number of eigenvectors kept.

    Returns:
        ``(U, weights, truncation_error)`` with ``U`` of shape ``(m, k)``
        holding the kept eigenvectors as columns and ``weights`` the
        corresponding eigenvalues in descending order.
    """
    rho = 0.5 * (rho + jnp.conj(rho.T))
    eigvals, eigvecs = jnp.linalg.eigh(rho)
    # eigh sorts ascending
    eigvals = eigvals[::-1]
    eigvecs = eigvecs[:, ::-1]
    n_keep, trunc_err = truncate_spectrum(np.asarray(eigvals), cutoff, min_dim, max_dim)
    return eigvecs[:, :n_keep], jnp.clip(eigvals[:n_keep], 0.0, None), trunc_err


def qr_left(matrix: jax.Array) -> tuple[jax.Array, jax.Array]:
    """Thin QR decomposition ``matrix = Q @ R`` with isometric ``Q``."""
    Q, R = jnp.linalg.qr(matrix)
    return Q, R


def lq_right(matrix: jax.Array) -> tuple[jax.Array, jax.Array]:
    """Thin LQ decomposition ``matrix = L @ Q`` with co-isometric ``Q``.

    Computed from the QR decomposition of the transpose.
    """
    Q, R = jnp.linalg.qr(matrix.T)
    return R.T, Q.T
