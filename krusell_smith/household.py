"""
Household problem of the Krusell-Smith economy for a given law of motion.

The state is (k, K, s), with k individual capital, K aggregate capital and s the
shock-state (aggregate productivity, employment). Households forecast
K' = exp(b0 + b1 log K) with coefficients depending on the aggregate regime.

Two solution methods:

1) Value function iteration. At every grid point the right hand side of the Bellman
   equation is maximized over a continuous k' with Brent's method, next period value
   is obtained by bilinear interpolation over (k', K'). Optionally every sweep is
   followed by Howard policy evaluation rounds that keep the policy fixed.
2) Time iteration on the Euler equation with linear interpolation of next period
   policy, followed by policy evaluation to recover the value function.

Every sweep reads only the previous iterate and writes fresh arrays, so the loops
over grid points run in parallel with prange.
"""

import logging
import time
from typing import List, NamedTuple

import numpy as np
from numba import njit, prange
from quantecon.optimize import brent_max
from interpolation import interp

from .errors import ConfigurationError
from .solution import Solution, validate_solution
from .utility import marginal_utility, utility

log = logging.getLogger(__name__)

Z_SIZE = 2   # number of aggregate states


class HouseholdResult(NamedTuple):
    solution: Solution
    iterations: int
    converged: bool
    dif: float
    difs: List[float]   # sup-norm change of every iteration




#########################
# 1. Helper Functions  #
########################

@njit
def interest_rate(alpha, z, K, L):
    return alpha*z*K**(alpha - 1)*L**(1 - alpha)


@njit
def wage(alpha, z, K, L):
    return (1 - alpha)*z*K**alpha*L**(-alpha)


@njit
def labor(z_i, l_bar, ug, ub):
    """Aggregate labor input in aggregate state z_i."""

    if z_i == 0:
        return l_bar*(1 - ug)
    else:
        return l_bar*(1 - ub)


@njit
def compute_Kp_L(K, z_i, B, l_bar, ug, ub, K_min, K_max):
    """
    Next period aggregate capital implied by the ALM (restricted to the aggregate
    capital grid) and current aggregate labor.
    """

    if z_i == 0:
        Kp = np.exp(B[0] + B[1]*np.log(K))
    else:
        Kp = np.exp(B[2] + B[3]*np.log(K))

    Kp = min(max(Kp, K_min), K_max)

    return Kp, labor(z_i, l_bar, ug, ub)


@njit
def cash_on_hand(k, K, L, z, eps, alpha, delta, l_bar, mu):
    """
    Resources available for consumption and saving: capital income, undepreciated
    capital and labor income (or the unemployment benefit mu*w).
    """

    return (interest_rate(alpha, z, K, L) + 1 - delta)*k + wage(alpha, z, K, L)*(eps*l_bar + mu*(1 - eps))


@njit
def policy_bounds(c_pos, k_min, k_max):
    """
    Feasible range of k'. Consumption must stay positive, so k' cannot exceed cash on
    hand. Only when cash on hand does not even cover k_min is the lower bound zero.
    """

    kp_ub = min(c_pos, k_max)

    if kp_ub > k_min:
        kp_lb = k_min
    else:
        kp_lb = 0.0

    return kp_lb, kp_ub


@njit
def unravel(idx, K_size, s_size):
    """Grid indices (k_i, K_i, s_i) of a flat index over the (k, K, s) array."""

    k_i = idx // (K_size*s_size)
    rem = idx - k_i*K_size*s_size
    K_i = rem // s_size
    s_i = rem - K_i*s_size

    return k_i, K_i, s_i


def stack_by_shock(arr):
    """
    Reorders a (k, K, s) array to (s, k, K) so that every shock-state slice is a
    contiguous 2d array for the interpolation routines.
    """

    return np.ascontiguousarray(np.moveaxis(arr, 2, 0))


def pack_params(params, xtol = 1e-8):
    """
    Packs the model parameters for the jitted functions.
    """

    return (float(params.beta), float(params.theta), float(params.alpha), float(params.delta),
            float(params.mu), float(params.l_bar), float(params.ug), float(params.ub),
            np.asarray(params.k_grid, dtype=np.float64), np.asarray(params.K_grid, dtype=np.float64),
            np.asarray(params.s_grid, dtype=np.float64), np.asarray(params.transmat.P, dtype=np.float64),
            float(xtol))




#######################
# 2. Bellman Equation #
#######################

@njit
def expected_value(kp, Kp, s_i, V_s, P, k_grid, K_grid):
    """
    E[V(k', K', s') | s], with V(., ., s') bilinearly interpolated on the (k, K) grid.
    """

    expec = 0.0
    for s_n_i in range(P.shape[1]):
        expec += P[s_i, s_n_i]*interp(k_grid, K_grid, V_s[s_n_i], kp, Kp)

    return expec


@njit
def rhs_bellman(kp, params_rhs):
    """
    Right hand side of the Bellman equation for a candidate k'.

    *Input
        - kp : next period individual capital
        - params_rhs : cash on hand, K', shock-state and value function at the grid point
    """

    c_pos, Kp, s_i, V_s, P, k_grid, K_grid, beta, theta = params_rhs

    c = c_pos - kp

    return utility(c, theta) + beta*expected_value(kp, Kp, s_i, V_s, P, k_grid, K_grid)


@njit(parallel=True)
def bellman_sweep(V_s, B, params_hh):
    """
    One value function iteration step over the whole state space.

    *Input
        - V_s: value function of the previous iteration, ordered (s, k, K)
        - B: ALM coefficients
        - params_hh: packed model parameters

    *Output
        - value_new: updated value function, ordered (k, K, s)
        - k_opt_new: maximizing k'
    """

    beta, theta, alpha, delta, mu, l_bar, ug, ub, k_grid, K_grid, s_grid, P, xtol = params_hh

    k_size, K_size, s_size = len(k_grid), len(K_grid), s_grid.shape[0]
    k_min, k_max = k_grid[0], k_grid[-1]
    K_min, K_max = K_grid[0], K_grid[-1]

    value_new = np.empty((k_size, K_size, s_size))
    k_opt_new = np.empty((k_size, K_size, s_size))

    for idx in prange(k_size*K_size*s_size):

        # i. state
        k_i, K_i, s_i = unravel(idx, K_size, s_size)
        k, K = k_grid[k_i], K_grid[K_i]
        z, eps = s_grid[s_i, 0], s_grid[s_i, 1]

        # ii. forecast and budget
        Kp, L = compute_Kp_L(K, s_i % Z_SIZE, B, l_bar, ug, ub, K_min, K_max)
        c_pos = cash_on_hand(k, K, L, z, eps, alpha, delta, l_bar, mu)
        kp_lb, kp_ub = policy_bounds(c_pos, k_min, k_max)

        # iii. maximize the RHS of the Bellman equation
        params_rhs = (c_pos, Kp, s_i, V_s, P, k_grid, K_grid, beta, theta)
        kp_star, v_star, _ = brent_max(rhs_bellman, kp_lb, kp_ub, args=(params_rhs,), xtol=xtol)

        k_opt_new[k_i, K_i, s_i] = kp_star
        value_new[k_i, K_i, s_i] = v_star

    return value_new, k_opt_new


@njit(parallel=True)
def howard_sweep(k_opt, V_s, B, params_hh):
    """
    Evaluates the RHS of the Bellman equation at a fixed policy (no maximization).

    *Input
        - k_opt: policy function, ordered (k, K, s)
        - V_s: current value function, ordered (s, k, K)
        - B: ALM coefficients
        - params_hh: packed model parameters

    *Output
        - value_new: value of following k_opt for one more period, ordered (k, K, s)
    """

    beta, theta, alpha, delta, mu, l_bar, ug, ub, k_grid, K_grid, s_grid, P, xtol = params_hh

    k_size, K_size, s_size = len(k_grid), len(K_grid), s_grid.shape[0]
    K_min, K_max = K_grid[0], K_grid[-1]

    value_new = np.empty((k_size, K_size, s_size))

    for idx in prange(k_size*K_size*s_size):
        k_i, K_i, s_i = unravel(idx, K_size, s_size)
        k, K = k_grid[k_i], K_grid[K_i]
        z, eps = s_grid[s_i, 0], s_grid[s_i, 1]

        Kp, L = compute_Kp_L(K, s_i % Z_SIZE, B, l_bar, ug, ub, K_min, K_max)
        c_pos = cash_on_hand(k, K, L, z, eps, alpha, delta, l_bar, mu)

        params_rhs = (c_pos, Kp, s_i, V_s, P, k_grid, K_grid, beta, theta)
        value_new[k_i, K_i, s_i] = rhs_bellman(k_opt[k_i, K_i, s_i], params_rhs)

    return value_new




#####################
# 3. Euler Equation #
#####################

@njit
def expected_marginal_utility(kp, Kp, s_i, kopt_s, params_hh):
    """
    E[u'(c') (1 - delta + r') | s] where next period saving is interpolated from the
    current policy function.
    """

    beta, theta, alpha, delta, mu, l_bar, ug, ub, k_grid, K_grid, s_grid, P, xtol = params_hh

    expec = 0.0
    for s_n_i in range(P.shape[1]):
        zp, epsp = s_grid[s_n_i, 0], s_grid[s_n_i, 1]
        Lp = labor(s_n_i % Z_SIZE, l_bar, ug, ub)
        rn = interest_rate(alpha, zp, Kp, Lp)

        kpp = interp(k_grid, K_grid, kopt_s[s_n_i], kp, Kp)
        cp = cash_on_hand(kp, Kp, Lp, zp, epsp, alpha, delta, l_bar, mu) - kpp

        expec += P[s_i, s_n_i]*marginal_utility(cp, theta)*(1 - delta + rn)

    return expec


@njit(parallel=True)
def euler_sweep(k_opt, B, params_hh):
    """
    One step of time iteration: consumption from the inverted Euler equation given
    next period policy, k' from the budget constraint (restricted to the feasible range).
    """

    beta, theta, alpha, delta, mu, l_bar, ug, ub, k_grid, K_grid, s_grid, P, xtol = params_hh

    k_size, K_size, s_size = len(k_grid), len(K_grid), s_grid.shape[0]
    k_min, k_max = k_grid[0], k_grid[-1]
    K_min, K_max = K_grid[0], K_grid[-1]

    kopt_s = np.empty((s_size, k_size, K_size))
    for s_i in range(s_size):
        kopt_s[s_i] = k_opt[:, :, s_i]

    k_opt_new = np.empty((k_size, K_size, s_size))

    for idx in prange(k_size*K_size*s_size):
        k_i, K_i, s_i = unravel(idx, K_size, s_size)
        k, K = k_grid[k_i], K_grid[K_i]
        z, eps = s_grid[s_i, 0], s_grid[s_i, 1]

        Kp, L = compute_Kp_L(K, s_i % Z_SIZE, B, l_bar, ug, ub, K_min, K_max)
        c_pos = cash_on_hand(k, K, L, z, eps, alpha, delta, l_bar, mu)

        expec = expected_marginal_utility(k_opt[k_i, K_i, s_i], Kp, s_i, kopt_s, params_hh)
        cn = (beta*expec)**(-1/theta)

        kp_lb, kp_ub = policy_bounds(c_pos, k_min, k_max)
        k_opt_new[k_i, K_i, s_i] = min(max(c_pos - cn, kp_lb), kp_ub)

    return k_opt_new




#######################
# 4. Solution Methods #
#######################

def solve_household(params, solution, method = 'vfi', tol = 1e-8, max_iter = 100, howard_n_iter = 0,
                    update_k = 0.7, print_skip = 10, xtol = 1e-8):
    """
    Solves the household problem for the ALM coefficients stored in the solution,
    starting from its value (vfi) or policy (euler) function.

    *Input
        - params: ModelParameters
        - solution: Solution used as initial guess, carries the ALM coefficients B
        - method: 'vfi' or 'euler'
        - tol: tolerance on the sup-norm change of the value (vfi) or policy (euler) function
        - max_iter: maximum number of iterations
        - howard_n_iter: policy evaluation rounds after every vfi sweep
        - update_k: dampening of the policy update in the euler method
        - print_skip: log progress every print_skip iterations
        - xtol: tolerance of the scalar maximization

    *Output
        - HouseholdResult. Hitting max_iter is not an error: the last iterate is returned
          with converged = False.
    """

    validate_solution(params, solution)

    if max_iter < 1:
        raise ConfigurationError(f"max_iter must be at least one, got {max_iter}.")

    if howard_n_iter < 0:
        raise ConfigurationError(f"howard_n_iter must be non-negative, got {howard_n_iter}.")

    params_hh = pack_params(params, xtol)

    t0 = time.time()

    if method == 'vfi':
        result = solve_vfi(params_hh, solution, tol, max_iter, howard_n_iter, print_skip)
        name = "Value function"

    elif method == 'euler':
        if not 0 < update_k <= 1:
            raise ConfigurationError(f"update_k must lie in (0,1], got {update_k}.")
        result = solve_euler(params_hh, solution, tol, max_iter, update_k, print_skip)
        name = "Policy function"

    else:
        raise ConfigurationError("Household solution method incorrectly entered: Choose 'vfi' or 'euler'.")

    if result.converged:
        log.info(f"{name} convergence in {result.iterations} iterations.")
    else:
        log.warning(f"No {name.lower()} convergence: reached {max_iter} iterations, dif = {result.dif:.3e}.")

    log.debug(f"Household problem time elapsed: {time.time()-t0:.2f} seconds")

    return result


def solve_vfi(params_hh, solution, tol, max_iter, howard_n_iter = 0, print_skip = 10):
    """
    Value function iteration, optionally with Howard improvement steps.
    """

    B = np.asarray(solution.B, dtype=np.float64)
    value = np.array(solution.value, dtype=np.float64)
    k_opt = np.array(solution.k_opt, dtype=np.float64)

    difs = []
    converged = False

    for it in range(1, max_iter + 1):
        value_old = value

        # i. maximization step
        value, k_opt = bellman_sweep(stack_by_shock(value_old), B, params_hh)

        # ii. policy evaluation steps
        for _ in range(howard_n_iter):
            value = howard_sweep(k_opt, stack_by_shock(value), B, params_hh)

        # iii. sup norm
        dif = np.abs(value - value_old).max()
        difs.append(dif)

        if it % print_skip == 0:
            log.info(f"VFI iteration {it}: dif = {dif:.3e}")

        if dif < tol:
            converged = True
            break

    return HouseholdResult(solution._replace(k_opt=k_opt, value=value), it, converged, dif, difs)


def solve_euler(params_hh, solution, tol, max_iter, update_k = 0.7, print_skip = 10, patience = 25,
                min_update_k = 0.05):
    """
    Time iteration on the Euler equation, then policy evaluation for the value function.

    Close to the borrowing constraint the damped iteration can settle into a cycle in
    which points switch between the constrained and the unconstrained solution. The
    step update_k is halved (down to min_update_k) whenever the policy change has not
    reached a new low for `patience` iterations.
    """

    B = np.asarray(solution.B, dtype=np.float64)
    k_opt = np.array(solution.k_opt, dtype=np.float64)

    difs = []
    converged = False
    best, stall = np.inf, 0

    for it in range(1, max_iter + 1):
        k_opt_new = euler_sweep(k_opt, B, params_hh)

        dif = np.abs(k_opt_new - k_opt).max()
        difs.append(dif)

        k_opt = update_k*k_opt_new + (1 - update_k)*k_opt

        if it % print_skip == 0:
            log.info(f"Euler iteration {it}: dif = {dif:.3e}")

        if dif < tol:
            converged = True
            break

        # i. shrink the step if the change stalls
        if dif < best:
            best, stall = dif, 0
        else:
            stall += 1

        if stall >= patience and update_k > min_update_k:
            update_k = max(update_k/2, min_update_k)
            best, stall = dif, 0
            log.debug(f"Euler iteration {it}: no progress, dampening reduced to {update_k:.3f}")

    value, _, _ = evaluate_policy(params_hh, k_opt, solution.value, B, tol, max_iter)

    return HouseholdResult(solution._replace(k_opt=k_opt, value=value), it, converged, dif, difs)


def evaluate_policy(params_hh, k_opt, value, B, tol, max_iter):
    """
    Value of following the policy k_opt forever, by repeated Howard sweeps.

    *Output
        - value
        - number of sweeps
        - sup-norm change of the last sweep
    """

    value = np.array(value, dtype=np.float64)
    dif = np.inf

    for it in range(1, max_iter + 1):
        value_new = howard_sweep(k_opt, stack_by_shock(value), B, params_hh)
        dif = np.abs(value_new - value).max()
        value = value_new

        if dif < tol:
            break

    log.debug(f"Policy evaluation: {it} sweeps, dif = {dif:.3e}")

    return value, it, dif
