"""Tests for truncated factorizations."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from hypothesis.extra import numpy as hnp

from dmrgjax.linalg.decompositions import (
    lq_right,
    qr_left,
    truncate_spectrum,
    truncated_eigh,
    truncated_svd,
)


class TestTruncateSpectrum:
    def test_no_truncation_with_zero_cutoff(self):
        n, err = truncate_spectrum(np.array([0.5, 0.3, 0.2]), cutoff=0.0)
        assert n == 3
        assert err == 0.0

    def test_exact_zeros_dropped_at_zero_cutoff(self):
        n, err = truncate_spectrum(np.array([0.7, 0.3, 0.0, 0.0]), cutoff=0.0)
        assert n == 2
        assert err == 0.0

    def test_cutoff_drops_small_weights(self):
        w = np.array([0.9, 0.09, 0.009, 0.001])
        n, err = truncate_spectrum(w, cutoff=0.005)
        assert n == 3
        assert err == pytest.approx(0.001)

    def test_cutoff_is_cumulative(self):
        w = np.array([0.9, 0.06, 0.02, 0.02])
        n, err = truncate_spectrum(w, cutoff=0.03)
        # dropping both 0.02 would discard 0.04 > 0.03
        assert n == 3
        assert err == pytest.approx(0.02)

    def test_max_dim_caps(self):
        w = np.array([0.4, 0.3, 0.2, 0.1])
        n, err = truncate_spectrum(w, cutoff=0.0, max_dim=2)
        assert n == 2
        assert err == pytest.approx(0.3)

    def test_min_dim_wins_over_cutoff(self):
        w = np.array([1.0, 1e-12, 1e-13, 1e-14])
        n, err = truncate_spectrum(w, cutoff=1e-6, min_dim=3)
        assert n == 3
        assert err == pytest.approx(1e-14 / np.sum(w))

    def test_min_dim_bounded_by_available(self):
        n, _ = truncate_spectrum(np.array([1.0, 0.0]), cutoff=0.1, min_dim=10)
        assert n == 2

    def test_keeps_at_least_one(self):
        n, _ = truncate_spectrum(np.array([1.0, 0.5]), cutoff=10.0)
        assert n == 1

    def test_all_zero_weights(self):
        n, err = truncate_spectrum(np.zeros(4), min_dim=2)
        assert n == 2
        assert err == 0.0

    def test_relative_error(self):
        w = 10.0 * np.array([0.5, 0.5])
        n, err = truncate_spectrum(w, max_dim=1)
        assert n == 1
        assert err == pytest.approx(0.5)


class TestTruncatedSVD:
    def test_full_rank_reconstruction(self):
        key = jax.random.PRNGKey(0)
        M = jax.random.normal(key, (6, 4))
        U, s, Vh, err = truncated_svd(M)
        np.testing.assert_allclose(U @ jnp.diag(s) @ Vh, M, atol=1e-12)
        assert err == pytest.approx(0.0, abs=1e-14)

    def test_low_rank_is_exact(self):
        key1, key2 = jax.random.split(jax.random.PRNGKey(1))
        M = jax.random.normal(key1, (8, 2)) @ jax.random.normal(key2, (2, 8))
        U, s, Vh, err = truncated_svd(M, cutoff=1e-14, max_dim=4)
        assert s.shape == (2,)
        np.testing.assert_allclose(U @ jnp.diag(s) @ Vh, M, atol=1e-10)
        assert err < 1e-20

    def test_descending(self):
        M = jax.random.normal(jax.random.PRNGKey(2), (5, 5))
        _, s, _, _ = truncated_svd(M, max_dim=3)
        assert np.all(np.diff(np.asarray(s)) <= 0)
        assert s.shape == (3,)


class TestTruncatedEigh:
    def test_matches_svd_weights(self):
        M = jax.random.normal(jax.random.PRNGKey(3), (6, 5))
        rho = M @ M.T
        U, w, err = truncated_eigh(rho, max_dim=3)
        _, s, _, err_svd = truncated_svd(M, max_dim=3)
        np.testing.assert_allclose(w, s**2, rtol=1e-10)
        assert err == pytest.approx(err_svd, rel=1e-8)
        np.testing.assert_allclose(U.T @ U, np.eye(3), atol=1e-12)

    def test_descending_and_non_negative(self):
        M = jax.random.normal(jax.random.PRNGKey(4), (4, 2))
        _, w, _ = truncated_eigh(M @ M.T, min_dim=4)
        assert np.all(np.asarray(w) >= 0)
        assert np.all(np.diff(np.asarray(w)) <= 1e-14)


class TestQR:
    def test_qr_left_isometry(self):
        M = jax.random.normal(jax.random.PRNGKey(5), (6, 3))
        Q, R = qr_left(M)
        np.testing.assert_allclose(Q.T @ Q, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(Q @ R, M, atol=1e-12)

    def test_lq_right_co_isometry(self):
        M = jax.random.normal(jax.random.PRNGKey(6), (3, 6))
        L, Q = lq_right(M)
        np.testing.assert_allclose(Q @ Q.T, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(L @ Q, M, atol=1e-12)


class TestTruncateSpectrumProperties:
    @given(
        hnp.arrays(
            np.float64,
            st.integers(1, 12),
            elements=st.floats(0.0, 1.0, allow_nan=False),
        ),
        st.floats(0.0, 0.5),
        st.integers(1, 12),
        st.integers(1, 12),
    )
    @settings(max_examples=100)
    def test_bounds(self, weights, cutoff, min_dim, max_dim):
        """Property: the kept dimension honours max_dim, then the min_dim floor."""
        w = np.sort(weights)[::-1]
        n, err = truncate_spectrum(w, cutoff, min_dim, max_dim)
        assert 1 <= n <= len(w)
        assert n >= min(min_dim, len(w))
        if min_dim <= max_dim:
            assert n <= max_dim
        assert 0.0 <= err <= 1.0 + 1e-12
        if w.sum() > 0 and n < len(w) and n > min(min_dim, len(w)) and n < max_dim:
            # the floor did not bind, so the cutoff was respected
            assert err <= cutoff + 1e-12
