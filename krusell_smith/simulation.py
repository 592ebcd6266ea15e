"""
Monte Carlo simulation of the cross-section of households given the policy function.
"""

import logging
import time

import numpy as np
from numba import njit, prange
from interpolation import interp

from .household import Z_SIZE, stack_by_shock
from .shocks import check_shocks
from .solution import validate_solution

log = logging.getLogger(__name__)


@njit(parallel=True)
def simulate_MonteCarlo(z_shocks, eps_shocks, k_population, kopt_s, k_grid, K_grid):
    """
    Simulates the capital holdings of the population along the shock panel.

    *Input
        - z_shocks: aggregate state index over time
        - eps_shocks: employment index of every household over time
        - k_population: initial capital holdings
        - kopt_s: policy function ordered (s, k, K)
        - k_grid, K_grid: individual and aggregate capital grids

    *Output
        - K_ts: aggregate capital over time (mean of individual capital)
        - k_population: capital holdings after the last period
    """

    T = len(z_shocks)
    N = len(k_population)

    k_min, k_max = k_grid[0], k_grid[-1]
    K_min, K_max = K_grid[0], K_grid[-1]

    K_ts = np.empty(T)
    k_population = k_population.copy()

    for t in range(T):

        # i. aggregate capital, clamped to the K grid for the policy lookup
        K_ts[t] = np.mean(k_population)
        K = min(max(K_ts[t], K_min), K_max)

        # ii. individual decisions
        k_new = np.empty(N)
        for i in prange(N):
            s_i = z_shocks[t] + Z_SIZE*eps_shocks[t, i]
            kp = interp(k_grid, K_grid, kopt_s[s_i], k_population[i], K)
            k_new[i] = min(max(kp, k_min), k_max)

        k_population = k_new

    return K_ts, k_population


def simulate_aggregate_path(params, solution, shocks, k_init = None):
    """
    Aggregate capital path implied by the policy function.

    *Input
        - params: ModelParameters
        - solution: Solution holding the policy function
        - shocks: ShockPanel
        - k_init: initial capital holdings, default every household at the mean of the K grid

    *Output
        - K_ts: aggregate capital, shape (T,)
        - k_population: final cross-section of capital holdings
    """

    validate_solution(params, solution)
    check_shocks(shocks, params)

    if k_init is None:
        k_population = np.full(shocks.population, np.mean(params.K_grid))
    else:
        k_population = np.asarray(k_init, dtype=np.float64)
        if k_population.shape != (shocks.population,):
            raise ValueError(f"k_init has shape {k_population.shape}, expected ({shocks.population},).")

    t0 = time.time()

    K_ts, k_population = simulate_MonteCarlo(np.ascontiguousarray(shocks.z_shocks, dtype=np.int64),
                                             np.ascontiguousarray(shocks.eps_shocks, dtype=np.int64),
                                             k_population, stack_by_shock(solution.k_opt),
                                             params.k_grid, params.K_grid)

    log.debug(f"Simulation time elapsed: {time.time()-t0:.2f} seconds")

    return K_ts, k_population
