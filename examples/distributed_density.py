# ruff: noqa: T201, D100, D103
# Run with, e.g., ``mpirun -n 2 python distributed_density.py``
import logging

import numpy as np

from scfmix import ArrayAdapter, Broyden2Mixer, MPICommunicator

logging.basicConfig(level=logging.INFO)

comm = MPICommunicator()

# Density of a 1D harmonic trap with a local repulsion on a grid that is
# split over the ranks
n_grid = 128
n_electrons = 4.0
U = 1.5
grid = np.array_split(np.linspace(-6, 6, n_grid), comm.size)[comm.rank]
v_ext = 0.5 * grid**2


def evaluator(x):
    rho, occ = x
    v = v_ext + U * rho
    w = np.exp(-v)
    rho_out = n_electrons * w / comm.allreduce(np.sum(w))
    # Occupations of a two-level impurity coupled to the average potential.
    # They are the same on every rank.
    v_avg = comm.allreduce(np.sum(v * rho)) / n_electrons
    occ_out = np.diag(1.0 / (1.0 + np.exp(np.array([v_avg - 1.0, v_avg + 1.0]))))
    return rho_out, occ_out + 0.1 * occ


# The density is distributed, the occupations are replicated on every rank
# so they must not be summed over the ranks
adapters = [ArrayAdapter(), ArrayAdapter(local=True)]
mixer = Broyden2Mixer(adapters, max_history=6, beta=0.5, comm=comm)

rho0 = np.full(grid.size, n_electrons / n_grid)
occ0 = np.diag([0.5, 0.5])
res = mixer.solve(evaluator, (rho0, occ0), tol=1e-10, maxiter=200)

if comm.rank == 0:
    print(f"converged: {res.success} after {res.nit} iterations, rmse: {res.fun}")
    print("occupations:", np.diag(res.x[1]))
