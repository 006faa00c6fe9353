"""Tests for the Lanczos ground-state solver."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from dmrgjax.linalg.lanczos import EigenResult, lanczos_ground_state


def _random_symmetric(n: int, seed: int) -> jnp.ndarray:
    A = jax.random.normal(jax.random.PRNGKey(seed), (n, n))
    return 0.5 * (A + A.T)


class TestLanczosGroundState:
    def test_matches_eigh(self):
        H = _random_symmetric(12, 0)
        v0 = jax.random.normal(jax.random.PRNGKey(1), (12,))
        res = lanczos_ground_state(lambda v: H @ v, v0, max_iter=12, tol=1e-12)
        exact = float(np.linalg.eigvalsh(np.asarray(H))[0])
        assert isinstance(res, EigenResult)
        assert res.eigenvalue == pytest.approx(exact, abs=1e-10)
        assert res.converged

    def test_eigenvector_is_normalized_eigenvector(self):
        H = _random_symmetric(10, 2)
        v0 = jnp.ones(10)
        res = lanczos_ground_state(lambda v: H @ v, v0, max_iter=10, tol=1e-12)
        x = res.eigenvector
        assert float(jnp.linalg.norm(x)) == pytest.approx(1.0, abs=1e-12)
        np.testing.assert_allclose(H @ x, res.eigenvalue * x, atol=1e-8)

    def test_preserves_shape(self):
        H = _random_symmetric(8, 3)
        v0 = jnp.ones((2, 2, 2))

        def matvec(v):
            return (H @ v.ravel()).reshape(v.shape)

        res = lanczos_ground_state(matvec, v0, max_iter=8)
        assert res.eigenvector.shape == (2, 2, 2)

    def test_never_above_rayleigh_quotient(self):
        H = _random_symmetric(30, 4)
        v0 = jax.random.normal(jax.random.PRNGKey(5), (30,))
        rq = float(v0 @ H @ v0 / (v0 @ v0))
        for k in [1, 2, 5]:
            res = lanczos_ground_state(lambda v: H @ v, v0, max_iter=k)
            assert res.eigenvalue <= rq + 1e-12

    def test_reports_non_convergence(self):
        H = _random_symmetric(40, 6)
        v0 = jax.random.normal(jax.random.PRNGKey(7), (40,))
        res = lanczos_ground_state(lambda v: H @ v, v0, max_iter=3, tol=1e-14)
        assert not res.converged
        assert res.n_iter == 3
        assert res.residual > 1e-14

    def test_exact_eigenvector_start_breaks_down(self):
        H = jnp.diag(jnp.array([-2.0, 1.0, 3.0]))
        v0 = jnp.array([1.0, 0.0, 0.0])
        res = lanczos_ground_state(lambda v: H @ v, v0, max_iter=10)
        assert res.converged
        assert res.n_iter == 1
        assert res.eigenvalue == pytest.approx(-2.0)

    def test_zero_start_vector(self):
        H = _random_symmetric(6, 8)
        res = lanczos_ground_state(lambda v: H @ v, jnp.zeros(6), max_iter=6, tol=1e-12)
        exact = float(np.linalg.eigvalsh(np.asarray(H))[0])
        assert res.eigenvalue == pytest.approx(exact, abs=1e-10)

    def test_non_finite_operator(self):
        res = lanczos_ground_state(lambda v: v * jnp.nan, jnp.ones(4), max_iter=4)
        assert not np.isfinite(res.eigenvalue)
        assert not res.converged
