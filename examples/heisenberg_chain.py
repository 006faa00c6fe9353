#!/usr/bin/env python3
"""Ground and first excited state of the Heisenberg chain via two-site DMRG.

The spin-1/2 antiferromagnetic Heisenberg Hamiltonian on an open chain is

    H = J * sum_i (Sz_i Sz_{i+1} + 0.5 * (S+_i S-_{i+1} + S-_i S+_{i+1}))

The ground state is found first; the first excited state is then targeted by
minimising ``H + w |E0><E0|`` with a penalty weight ``w`` larger than the gap.
For short chains the energies are compared with exact diagonalisation.

Usage::

    python examples/heisenberg_chain.py
"""

from __future__ import annotations

import logging
import time

import numpy as np

from dmrgjax import MPS, DMRGObserver, Sweeps, build_mpo_heisenberg, dmrg, dmrg_excited

# ---------------------------------------------------------------------------
# Exact diagonalisation reference (small systems only)
# ---------------------------------------------------------------------------


def heisenberg_exact(L: int, J: float = 1.0, k: int = 2) -> np.ndarray:
    """Lowest ``k`` eigenvalues of the open Heisenberg chain.

    Only feasible for ``L <= ~12`` sites.
    """
    Sz = np.array([[0.5, 0.0], [0.0, -0.5]])
    Sp = np.array([[0.0, 1.0], [0.0, 0.0]])
    Sm = np.array([[0.0, 0.0], [1.0, 0.0]])
    I2 = np.eye(2)

    def kron_chain(ops: list[np.ndarray]) -> np.ndarray:
        result = ops[0]
        for op in ops[1:]:
            result = np.kron(result, op)
        return result

    H = np.zeros((2**L, 2**L))
    for i in range(L - 1):
        for op_i, op_j, coeff in [(Sz, Sz, J), (Sp, Sm, J / 2), (Sm, Sp, J / 2)]:
            ops = [I2] * L
            ops[i] = op_i
            ops[i + 1] = op_j
            H += coeff * kron_chain(ops)
    return np.linalg.eigvalsh(H)[:k]


# ---------------------------------------------------------------------------
# Run DMRG on a chain
# ---------------------------------------------------------------------------


def run_chain(L: int, max_dim: int = 64, nsweep: int = 8, ed_check: bool = False):
    """Run ground- and excited-state DMRG on an ``L``-site chain and print results."""
    print(f"\n{'='*60}")
    print(f"  Heisenberg chain  L={L}  max_dim={max_dim}  sweeps={nsweep}")
    print(f"{'='*60}")

    H = build_mpo_heisenberg(L)
    sweeps = Sweeps(
        nsweep,
        max_dim=[10, 20, max_dim],
        cutoff=1e-10,
        noise=[1e-6, 1e-8, 0.0],
        max_iter=30,
    )
    print(sweeps)

    psi0 = MPS.random(L, bond_dim=8, seed=42)
    obs = DMRGObserver(psi0, energy_errgoal=1e-10)
    t0 = time.perf_counter()
    e0 = dmrg(psi0, H, sweeps, obs, options={"Quiet": True})
    print(f"\n  Ground state:   E0 = {e0:.10f}  ({time.perf_counter() - t0:.1f}s)")
    print(f"  Sweep energies: {[f'{e:.8f}' for e in obs.sweep_energies]}")
    print(f"  Bond dims:      {psi0.bond_dims()}")

    psi1 = MPS.random(L, bond_dim=8, seed=7)
    t0 = time.perf_counter()
    e1 = dmrg_excited(psi1, H, [psi0], sweeps, weight=20.0, options={"Quiet": True})
    print(f"  Excited state:  E1 = {e1:.10f}  ({time.perf_counter() - t0:.1f}s)")
    print(f"  Gap:            {e1 - e0:.10f}")
    print(f"  |<E0|E1>|:      {abs(psi0.overlap(psi1)):.2e}")

    if ed_check:
        exact = heisenberg_exact(L)
        print(f"\n  ED energies:    {exact[0]:.10f}  {exact[1]:.10f}")
        print(f"  |E0 - exact| = {abs(e0 - exact[0]):.2e}")
        print(f"  |E1 - exact| = {abs(e1 - exact[1]):.2e}")


def main():
    logging.basicConfig(level=logging.WARNING, format="%(name)s: %(message)s")
    print("Heisenberg chain: ground and first excited state via two-site DMRG")
    run_chain(L=10, max_dim=32, ed_check=True)
    run_chain(L=40, max_dim=64)


if __name__ == "__main__":
    main()
