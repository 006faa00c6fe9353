"""Tests for DMRGOptions."""

import dataclasses

import pytest

from dmrgjax.algorithms.options import DMRGOptions
from dmrgjax.errors import ConfigurationError, ConvergenceWarning


class TestDMRGOptionsDefaults:
    def test_default_values(self):
        opts = DMRGOptions()
        assert opts.quiet is False
        assert opts.debug_level == 1
        assert opts.do_normalize is True
        assert opts.write_m is None
        assert opts.write_dir == "./"
        assert opts.error_goal == 1e-10
        assert opts.warnings == ()

    def test_quiet_lowers_debug_level(self):
        assert DMRGOptions(quiet=True).debug_level == 0

    def test_explicit_debug_level_wins(self):
        assert DMRGOptions(quiet=True, debug_level=3).debug_level == 3

    def test_frozen(self):
        opts = DMRGOptions()
        with pytest.raises(dataclasses.FrozenInstanceError):
            opts.quiet = True


class TestDMRGOptionsAdd:
    def test_add_returns_new_value(self):
        opts = DMRGOptions()
        extended = opts.add(sweep=3, energy=-1.5)
        assert extended.sweep == 3
        assert extended.energy == -1.5
        assert opts.sweep == 0

    def test_add_accepts_classic_keys(self):
        opts = DMRGOptions().add(Maxm=40, HalfSweep=2)
        assert opts.max_dim == 40
        assert opts.half_sweep == 2

    def test_add_unknown_key(self):
        with pytest.raises(ConfigurationError):
            DMRGOptions().add(Bogus=1)

    def test_warnings_travel(self):
        w = ConvergenceWarning("slow", n_iter=3, residual=1e-3)
        opts = DMRGOptions().add(warnings=(w,))
        assert opts.warnings[0].n_iter == 3


class TestDMRGOptionsFromMapping:
    def test_classic_keys(self):
        opts = DMRGOptions.from_mapping(
            {"Quiet": True, "WriteM": 100, "WriteDir": "/tmp", "EnergyErrgoal": 1e-6}
        )
        assert opts.quiet is True
        assert opts.debug_level == 0
        assert opts.write_m == 100
        assert opts.write_dir == "/tmp"
        assert opts.energy_errgoal == 1e-6

    def test_field_names(self):
        opts = DMRGOptions.from_mapping({"do_normalize": False})
        assert opts.do_normalize is False

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            DMRGOptions.from_mapping({"Maxdim": 10})

    def test_none(self):
        assert DMRGOptions.from_mapping(None) == DMRGOptions()

    def test_coerce(self):
        opts = DMRGOptions(quiet=True)
        assert DMRGOptions.coerce(opts) is opts
        assert DMRGOptions.coerce({"Quiet": True}).quiet is True
        assert DMRGOptions.coerce(None) == DMRGOptions()

    def test_get_by_classic_key(self):
        opts = DMRGOptions(cutoff=1e-9)
        assert opts.get("Cutoff") == 1e-9
        assert opts.get("cutoff") == 1e-9
        assert opts.get("Nothing", 5) == 5
