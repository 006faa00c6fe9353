"""Tests for MPOs and the model builders."""

import jax.numpy as jnp
import numpy as np
import pytest

from dmrgjax.networks.mpo import MPO, build_mpo_heisenberg, build_mpo_ising
from dmrgjax.networks.mps import MPS


class TestBuildMPOHeisenberg:
    def test_creates_correct_site_count(self):
        for L in [2, 4, 6]:
            mpo = build_mpo_heisenberg(L)
            assert len(mpo) == L, f"Expected {L} sites for L={L}"

    def test_bond_dims(self):
        mpo = build_mpo_heisenberg(5)
        assert mpo.bond_dims() == [5, 5, 5, 5]
        assert mpo[0].shape == (1, 2, 2, 5)
        assert mpo[-1].shape == (5, 2, 2, 1)

    def test_physical_dimension_is_2(self):
        assert build_mpo_heisenberg(4).physical_dims == (2, 2, 2, 2)

    def test_l1_chain(self):
        mpo = build_mpo_heisenberg(1, hz=0.5)
        assert len(mpo) == 1
        np.testing.assert_allclose(mpo.to_matrix(), 0.5 * np.diag([0.5, -0.5]))

    @pytest.mark.parametrize("Jz,Jxy,hz", [(1.0, 1.0, 0.0), (0.5, 1.0, 0.3), (1.0, 0.0, 0.0)])
    def test_matches_exact_matrix(self, heisenberg_matrix, Jz, Jxy, hz):
        mpo = build_mpo_heisenberg(4, Jz=Jz, Jxy=Jxy, hz=hz)
        np.testing.assert_allclose(
            mpo.to_matrix(), heisenberg_matrix(4, Jz=Jz, Jxy=Jxy, hz=hz), atol=1e-12
        )

    def test_repr(self):
        assert "MPO" in repr(build_mpo_heisenberg(4))


class TestBuildMPOIsing:
    def test_bond_dims(self):
        assert build_mpo_ising(4).bond_dims() == [3, 3, 3]

    @pytest.mark.parametrize("J,h", [(1.0, 1.0), (1.0, 0.5), (0.0, 2.0)])
    def test_matches_exact_matrix(self, ising_matrix, J, h):
        mpo = build_mpo_ising(5, J=J, h=h)
        np.testing.assert_allclose(mpo.to_matrix(), ising_matrix(5, J=J, h=h), atol=1e-12)


class TestMPOValidation:
    def test_rejects_wrong_rank(self):
        with pytest.raises(ValueError, match="expected 4"):
            MPO([jnp.ones((1, 2, 2))])

    def test_rejects_bond_mismatch(self):
        with pytest.raises(ValueError, match="mismatch"):
            MPO([jnp.ones((1, 2, 2, 3)), jnp.ones((2, 2, 2, 1))])

    def test_to_matrix_needs_trivial_outer_bonds(self):
        with pytest.raises(ValueError):
            MPO([jnp.ones((2, 2, 2, 1))]).to_matrix()


class TestMPOExpectation:
    def test_neel_state(self):
        mpo = build_mpo_heisenberg(4)
        neel = MPS.product_state([0, 1, 0, 1])
        assert mpo.expectation(neel) == pytest.approx(-0.75)

    def test_matches_dense(self, heisenberg_matrix):
        mpo = build_mpo_heisenberg(5, Jz=0.7)
        psi = MPS.random(5, bond_dim=4, seed=3)
        v = np.asarray(psi.to_dense())
        expected = float(v @ heisenberg_matrix(5, Jz=0.7) @ v)
        assert mpo.expectation(psi) == pytest.approx(expected, rel=1e-10)

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            build_mpo_heisenberg(3).expectation(MPS.random(4))
