"""Tests for sweep schedules and the bond traversal."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from dmrgjax.algorithms.sweeps import SweepParams, Sweeps, sweep_bonds, sweepnext
from dmrgjax.errors import ConfigurationError


class TestSweepsSchedule:
    def test_scalar_parameters_repeat(self):
        sweeps = Sweeps(3, max_dim=20, cutoff=1e-8)
        assert len(sweeps) == 3
        for sw in range(1, 4):
            assert sweeps.max_dim(sw) == 20
            assert sweeps.cutoff(sw) == 1e-8

    def test_list_last_value_repeats(self):
        sweeps = Sweeps(5, max_dim=[10, 20, 40], noise=[1e-6, 0.0])
        assert [sweeps.max_dim(sw) for sw in range(1, 6)] == [10, 20, 40, 40, 40]
        assert [sweeps.noise(sw) for sw in range(1, 6)] == [1e-6, 0.0, 0.0, 0.0, 0.0]

    def test_longer_list_is_cut(self):
        sweeps = Sweeps(2, max_dim=[10, 20, 40, 80])
        assert [p.max_dim for p in sweeps] == [10, 20]

    def test_zero_sweeps(self):
        sweeps = Sweeps(0)
        assert sweeps.nsweep == 0
        assert list(sweeps) == []

    def test_params_are_one_based(self):
        sweeps = Sweeps(2, max_dim=[5, 7])
        assert sweeps.params(1).max_dim == 5
        assert sweeps[0].max_dim == 5
        with pytest.raises(IndexError):
            sweeps.params(0)
        with pytest.raises(IndexError):
            sweeps.params(3)

    def test_from_table(self):
        sweeps = Sweeps.from_table(
            [
                {"max_dim": 10, "noise": 1e-5},
                {"max_dim": 20},
                SweepParams(max_dim=30, max_iter=4),
            ]
        )
        assert sweeps.nsweep == 3
        assert sweeps.max_dim(3) == 30
        assert sweeps.max_iter(3) == 4
        assert sweeps.noise(1) == 1e-5
        assert sweeps.noise(2) == SweepParams().noise

    def test_from_table_unknown_column(self):
        with pytest.raises(ConfigurationError):
            Sweeps.from_table([{"maxm": 10}])

    def test_equality(self):
        assert Sweeps(2, max_dim=10) == Sweeps(2, max_dim=[10])
        assert Sweeps(2, max_dim=10) != Sweeps(2, max_dim=11)

    def test_repr_lists_sweeps(self):
        r = repr(Sweeps(2, max_dim=[10, 20]))
        assert "nsweep=2" in r
        assert "max_dim=20" in r


class TestSweepsValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_dim": 0},
            {"min_dim": 0},
            {"min_dim": 5, "max_dim": 4},
            {"cutoff": -1e-8},
            {"noise": -1.0},
            {"max_iter": 0},
            {"max_dim": []},
        ],
    )
    def test_invalid_entry(self, kwargs):
        with pytest.raises(ConfigurationError):
            Sweeps(2, **kwargs)

    def test_negative_nsweep(self):
        with pytest.raises(ConfigurationError):
            Sweeps(-1)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            Sweeps(1, max_dim=0)


class TestSweepnext:
    def test_forward_step(self):
        assert sweepnext(0, 1, 4) == (1, 1)

    def test_turn_at_right_end(self):
        assert sweepnext(2, 1, 4) == (2, 2)

    def test_backward_step(self):
        assert sweepnext(2, 2, 4) == (1, 2)

    def test_finish_at_left_end(self):
        assert sweepnext(0, 2, 4) == (0, 3)


class TestSweepBonds:
    def test_order_for_four_sites(self):
        assert list(sweep_bonds(4)) == [
            (0, 1),
            (1, 1),
            (2, 1),
            (2, 2),
            (1, 2),
            (0, 2),
        ]

    @pytest.mark.parametrize("n", [2, 3, 5, 8])
    def test_visit_count(self, n):
        pairs = list(sweep_bonds(n))
        assert len(pairs) == 2 * (n - 1)
        assert pairs[0] == (0, 1)
        assert pairs[n - 2] == (n - 2, 1)
        assert pairs[n - 1] == (n - 2, 2)
        assert pairs[-1] == (0, 2)

    def test_fresh_generator_each_call(self):
        gen = sweep_bonds(3)
        assert len(list(gen)) == 4
        assert list(gen) == []
        assert len(list(sweep_bonds(3))) == 4

    def test_single_site_yields_nothing(self):
        assert list(sweep_bonds(1)) == []


class TestSweepBondsProperties:
    @given(st.integers(min_value=2, max_value=40))
    @settings(max_examples=50)
    def test_each_bond_visited_once_per_direction(self, n):
        """Property: every bond appears once going right and once going left."""
        pairs = list(sweep_bonds(n))
        forward = [b for b, hs in pairs if hs == 1]
        backward = [b for b, hs in pairs if hs == 2]
        assert forward == list(range(n - 1))
        assert backward == list(range(n - 2, -1, -1))

    @given(
        st.integers(min_value=2, max_value=20).flatmap(
            lambda n: st.tuples(st.just(n), st.integers(0, n - 2), st.sampled_from([1, 2]))
        )
    )
    @settings(max_examples=100)
    def test_sweepnext_moves_one_bond_or_turns(self, args):
        """Property: the cursor moves by one bond or flips half-sweep in place."""
        n, b, hs = args
        nb, nhs = sweepnext(b, hs, n)
        if nhs == hs:
            assert abs(nb - b) == 1
            assert 0 <= nb <= n - 2
        else:
            assert nb == b
            assert nhs == hs + 1
