"""
Krusell and Smith (1998) economy solved by value function iteration.

Households face an aggregate productivity shock (good/bad) and an idiosyncratic
employment shock. They forecast aggregate capital with a log-linear law of motion
(ALM) whose coefficients depend on the aggregate regime. The equilibrium ALM is found
by iterating on:

1) solve the household problem given the ALM (value function iteration with continuous
   choice and bilinear interpolation, optionally with Howard improvement steps, or
   time iteration on the Euler equation)
2) simulate a panel of households under the policy function
3) regress log K' on log K in each regime
4) update the ALM coefficients with dampening

KrusellSmith().solve_model() runs everything. The pure functions in solver, household,
simulation and alm can also be called directly with the ModelParameters built here.
"""

import logging
import time
from typing import NamedTuple

import numpy as np

from .errors import ConfigurationError
from .markov import TransitionMatrices, create_transition_matrix

log = logging.getLogger(__name__)


class ModelParameters(NamedTuple):
    # preferences
    theta: float
    beta: float
    # technology
    alpha: float
    delta: float
    mu: float
    l_bar: float
    # labor market
    ug: float
    ub: float
    # individual capital grid
    k_min: float
    k_max: float
    k_size: int
    k_grid: np.ndarray
    # aggregate capital grid
    K_min: float
    K_max: float
    K_size: int
    K_grid: np.ndarray
    # shocks
    z_grid: np.ndarray
    eps_grid: np.ndarray
    s_grid: np.ndarray
    transmat: TransitionMatrices

    @property
    def z_size(self):
        return len(self.z_grid)

    @property
    def eps_size(self):
        return len(self.eps_grid)

    @property
    def s_size(self):
        return len(self.s_grid)

    @property
    def shape(self):
        """Shape of the policy and value arrays: (k, K, s)."""
        return (self.k_size, self.K_size, self.s_size)

    def shock_state(self, z_i, eps_i):
        """Shock-state index for aggregate index z_i and employment index eps_i."""
        return z_i + self.z_size*eps_i


def make_grid(min_val, max_val, num, degree):
    """
    Makes a power grid of degree `degree` between min_val and max_val.

    A degree above one puts more points close to min_val, where the value function
    has the most curvature. degree = 1 is a uniform grid. Equivalent to
    min_val + (max_val - min_val)*np.linspace(0, 1, num)**degree with exact endpoints.
    """

    if num < 2:
        raise ConfigurationError(f"A grid needs at least two points, got {num}.")

    if not min_val < max_val:
        raise ConfigurationError(f"Grid lower bound {min_val} must be below upper bound {max_val}.")

    if degree <= 0:
        raise ConfigurationError(f"Grid degree must be positive, got {degree}.")

    grd = np.zeros(num)
    scale = max_val - min_val
    grd[0] = min_val
    grd[num-1] = max_val
    for i in range(1, num-1):
        grd[i] = min_val + scale*((i)/(num - 1)) ** degree

    return grd


def make_shock_grid(z_grid, eps_grid):
    """
    Cartesian product of the aggregate and idiosyncratic shock grids, aggregate shock
    varying fastest: rows are (z_g, eps_e), (z_b, eps_e), (z_g, eps_u), (z_b, eps_u).
    """

    return np.array([[z, eps] for eps in eps_grid for z in z_grid])




#############
# I. Model  #
############

class KrusellSmith:

    """
    Class object of the model. KrusellSmith().solve_model() runs everything.
    """

    ############
    # 1. setup #
    ############

    def __init__(self, beta = 0.99,              # discount factor
                       alpha = 0.36,             # capital share
                       delta = 0.025,            # depreciation rate
                       theta = 1,                # crra coefficient, log utility if 1
                       k_min = 0.0001, k_max = 1000, k_size = 100,   # individual capital grid
                       degree = 7,               # curvature of the individual capital grid
                       K_min = 30, K_max = 50, K_size = 4,           # aggregate capital grid
                       z_min = 0.99, z_max = 1.01,                   # aggregate productivity
                       eps_min = 0.0, eps_max = 1.0,                 # employment status
                       ug = 0.04, ub = 0.1,      # unemployment rate in good/bad state
                       zg_ave_dur = 8, zb_ave_dur = 8,               # average duration of good/bad state
                       ug_ave_dur = 1.5, ub_ave_dur = 2.5,           # average unemployment duration in good/bad state
                       puu_rel_gb2bb = 1.25, puu_rel_bg2gg = 0.75,   # relative prob. of staying unemployed across regimes
                       mu = 0.0,                 # unemployment benefit as a share of the wage
                       method = 'vfi',           # household solution method. Options: 'vfi', 'euler'
                       howard_n_iter = 0,        # Howard policy evaluation rounds after every vfi sweep
                       tol_ump = 1e-8, max_iter_ump = 100,           # household problem convergence
                       tol_B = 1e-8, max_iter_B = 20,                # ALM convergence
                       update_B = 0.3,           # dampening of the ALM coefficient update
                       T = 1100,                 # number of simulated periods
                       population = 10000,       # number of simulated households
                       T_discard = 100,          # burn-in periods dropped before the regression
                       seed = None,              # seed of the shock panel
                       plott = 0                 # select 1 to make plots
                       ):

        # parameters subject to changes
        self.beta, self.alpha, self.delta, self.theta, self.mu = beta, alpha, delta, theta, mu
        self.k_min, self.k_max, self.k_size, self.degree = k_min, k_max, k_size, degree
        self.K_min, self.K_max, self.K_size = K_min, K_max, K_size
        self.z_min, self.z_max, self.eps_min, self.eps_max = z_min, z_max, eps_min, eps_max
        self.ug, self.ub = ug, ub
        self.zg_ave_dur, self.zb_ave_dur, self.ug_ave_dur, self.ub_ave_dur = zg_ave_dur, zb_ave_dur, ug_ave_dur, ub_ave_dur
        self.puu_rel_gb2bb, self.puu_rel_bg2gg = puu_rel_gb2bb, puu_rel_bg2gg
        self.method, self.howard_n_iter = method, howard_n_iter
        self.tol_ump, self.max_iter_ump, self.tol_B, self.max_iter_B = tol_ump, max_iter_ump, tol_B, max_iter_B
        self.update_B, self.T, self.population, self.T_discard = update_B, T, population, T_discard
        self.seed, self.plott = seed, plott

        self.setup_parameters()
        self.setup_grid()
        self.setup_markov()

        # pack parameters for the solver
        self.params = ModelParameters(self.theta, self.beta, self.alpha, self.delta, self.mu, self.l_bar,
                                      self.ug, self.ub,
                                      self.k_min, self.k_max, self.k_size, self.k_grid,
                                      self.K_min, self.K_max, self.K_size, self.K_grid,
                                      self.z_grid, self.eps_grid, self.s_grid, self.transmat)

        self.solution = None
        self.shocks = None
        self.result = None



    def setup_parameters(self):

        # a. model parameters
        if not 0 < self.beta < 1:
            raise ConfigurationError(f"Discount factor must lie in (0,1), got {self.beta}.")

        if not 0 < self.alpha < 1:
            raise ConfigurationError(f"Capital share must lie in (0,1), got {self.alpha}.")

        if not 0 <= self.delta <= 1:
            raise ConfigurationError(f"Depreciation rate must lie in [0,1], got {self.delta}.")

        if self.theta <= 0:
            raise ConfigurationError(f"CRRA coefficient must be positive, got {self.theta}.")

        if self.mu < 0:
            raise ConfigurationError(f"Unemployment benefit must be non-negative, got {self.mu}.")

        # time endowment normalizes labor supply to one in the bad state
        self.l_bar = 1/(1 - self.ub)

        # b. solution options
        if self.method != 'vfi' and self.method != 'euler':
            raise ConfigurationError("Household solution method incorrectly entered: Choose 'vfi' or 'euler'.")

        if self.howard_n_iter < 0:
            raise ConfigurationError("Number of Howard iterations must be non-negative.")

        if not 0 < self.update_B <= 1:
            raise ConfigurationError(f"ALM dampening parameter must lie in (0,1], got {self.update_B}.")

        if not 0 <= self.T_discard < self.T - 1:
            raise ConfigurationError(f"Burn-in ({self.T_discard}) must be shorter than the simulation ({self.T}).")

        if self.population < 1:
            raise ConfigurationError("Population must be at least one household.")

        if self.plott != 1 and self.plott != 0:
            raise ConfigurationError("Plot option incorrectly entered: Choose either 1 or 0.")



    def setup_grid(self):

        # a. individual capital grid
        self.k_grid = make_grid(self.k_min, self.k_max, self.k_size, self.degree)

        # b. aggregate capital grid
        if not self.K_min < self.K_max or self.K_size < 2:
            raise ConfigurationError("Aggregate capital grid needs K_min < K_max and at least two points.")
        self.K_grid = np.linspace(self.K_min, self.K_max, self.K_size)

        # c. shock grids, good state and employed first
        self.z_grid = np.linspace(self.z_max, self.z_min, 2)
        self.eps_grid = np.linspace(self.eps_max, self.eps_min, 2)
        self.s_grid = make_shock_grid(self.z_grid, self.eps_grid)



    def setup_markov(self):

        self.transmat = create_transition_matrix(self.ug, self.ub,
                                                 self.zg_ave_dur, self.zb_ave_dur,
                                                 self.ug_ave_dur, self.ub_ave_dur,
                                                 self.puu_rel_gb2bb, self.puu_rel_bg2gg)




    ######################
    # 2. Main Function   #
    ######################

    def solve_model(self, previous = None, shocks = None):
        """
        Finds the equilibrium law of motion.

        *Input
            - previous : optional Solution to warm start from (value, policy and ALM)
            - shocks : optional ShockPanel. Drawn with self.seed if not given.

        *Output
            - ALMResult (also stored in self.result)
        """

        from .shocks import generate_shocks
        from .solution import initial_solution, warm_start
        from .solver import find_ALM_coefficients

        t0 = time.time()    # start the clock

        # a. shocks, held fixed over the whole calibration
        if shocks is None:
            shocks = generate_shocks(self.params, T=self.T, population=self.population, seed=self.seed)
        self.shocks = shocks

        t1 = time.time()
        log.info(f"Shock generation time elapsed: {t1-t0:.2f} seconds")

        # b. initial guess
        if previous is None:
            solution = initial_solution(self.params)
        else:
            solution = warm_start(self.params, previous)

        # c. fixed point in the ALM coefficients
        self.result = find_ALM_coefficients(self.params, solution, shocks,
                                            method=self.method,
                                            tol_ump=self.tol_ump, max_iter_ump=self.max_iter_ump,
                                            howard_n_iter=self.howard_n_iter,
                                            tol_B=self.tol_B, max_iter_B=self.max_iter_B,
                                            update_B=self.update_B, T_discard=self.T_discard)
        self.solution = self.result.solution

        t2 = time.time()
        log.info('Total iteration time elapsed: ' + str(time.strftime("%M:%S", time.gmtime(t2-t1))))

        # d. plot
        if self.plott:
            from .plotting import plot_ALM, plot_policy, plot_wealth_distribution
            from .simulation import simulate_aggregate_path
            import matplotlib.pyplot as plt

            plot_ALM(shocks.z_shocks, self.result.K_ts, self.solution.B, T_discard=self.T_discard)
            plt.show()

            plot_policy(self.params, self.solution, K=np.mean(self.result.K_ts[self.T_discard:]))
            plt.show()

            _, k_population = simulate_aggregate_path(self.params, self.solution, shocks)
            plot_wealth_distribution(k_population)
            plt.show()

        # e. print results
        self.print_summary()

        return self.result



    def print_summary(self):
        """
        Prints the ALM coefficients, fit and accuracy of the last solve.
        """

        from tabulate import tabulate
        from .alm import den_haan_error

        if self.result is None:
            raise RuntimeError("Nothing to summarize: call solve_model() first.")

        B, R2 = self.solution.B, self.solution.R2
        max_err, mean_err = den_haan_error(self.shocks.z_shocks, self.result.K_ts, B, T_discard=self.T_discard)

        print("\n-----------------------------------------")
        print("Krusell-Smith Approximate Aggregation")
        print("-----------------------------------------")
        print(tabulate([['good', B[0], B[1], R2[0]],
                        ['bad', B[2], B[3], R2[1]]],
                       headers=['regime', 'intercept', 'slope', 'R2'], floatfmt='.6f'))
        print(f"\nALM iterations = {self.result.iterations}, converged = {self.result.converged}")
        print(f"Den Haan error: max = {max_err:.4f}%, mean = {mean_err:.4f}%")
