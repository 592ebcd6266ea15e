"""
Fixed point in the coefficients of the aggregate law of motion.

The outer loop is a small state machine:

    SOLVING -> SIMULATING -> ESTIMATING -> UPDATING -> SOLVING ...
                                                    -> CONVERGED
                                                    -> MAX_ITER_REACHED

Each phase takes the current CalibrationState and returns the next one. The Solution
travels with the state and is only replaced, never mutated.
"""

import logging
import time
from enum import Enum
from typing import NamedTuple, Optional

import numpy as np

from .alm import regress_ALM
from .errors import ConfigurationError
from .household import solve_household
from .shocks import check_shocks
from .simulation import simulate_aggregate_path
from .solution import Solution, validate_solution

log = logging.getLogger(__name__)


class Phase(Enum):
    SOLVING = 'solving'
    SIMULATING = 'simulating'
    ESTIMATING = 'estimating'
    UPDATING = 'updating'
    CONVERGED = 'converged'
    MAX_ITER_REACHED = 'max_iter_reached'


TERMINAL = (Phase.CONVERGED, Phase.MAX_ITER_REACHED)


class ALMResult(NamedTuple):
    K_ts: np.ndarray      # simulated aggregate capital of the last iteration
    solution: Solution    # household solution and (updated) ALM coefficients
    iterations: int
    converged: bool
    dif_B: float
    history: list         # (B, R2, dif_B) after every update
    phases: list          # sequence of visited phases


class CalibrationState(NamedTuple):
    phase: Phase
    solution: Solution
    iteration: int = 0
    K_ts: Optional[np.ndarray] = None
    B_new: Optional[np.ndarray] = None
    R2_new: Optional[np.ndarray] = None
    dif_B: float = np.inf




#################
# 1. Phases     #
#################

def solve_phase(state, params, shocks, options):
    iteration = state.iteration + 1
    log.info(f" --- Iteration over ALM coefficient: {iteration} ---")

    hh = solve_household(params, state.solution,
                         method=options['method'],
                         tol=options['tol_ump'],
                         max_iter=options['max_iter_ump'],
                         howard_n_iter=options['howard_n_iter'])

    return state._replace(phase=Phase.SIMULATING, solution=hh.solution, iteration=iteration)


def simulate_phase(state, params, shocks, options):
    K_ts, _ = simulate_aggregate_path(params, state.solution, shocks, k_init=options['k_init'])

    return state._replace(phase=Phase.ESTIMATING, K_ts=K_ts)


def estimate_phase(state, params, shocks, options):
    B_new, R2_new = regress_ALM(shocks.z_shocks, state.K_ts, T_discard=options['T_discard'])
    dif_B = np.max(np.abs(B_new - state.solution.B))

    return state._replace(phase=Phase.UPDATING, B_new=B_new, R2_new=R2_new, dif_B=dif_B)


def update_phase(state, params, shocks, options):
    """
    Dampened update of the ALM coefficients, then decides whether to stop.
    The coefficients are updated on the last iteration as well.
    """

    update_B = options['update_B']
    B = update_B*state.B_new + (1 - update_B)*state.solution.B
    solution = state.solution._replace(B=B, R2=state.R2_new)

    log.info(f"Difference in ALM coefficients: {state.dif_B:.3e}")
    log.debug(f"B = {np.round(B, 6)}, R2 = {np.round(state.R2_new, 6)}")

    if state.dif_B < options['tol_B']:
        phase = Phase.CONVERGED
    elif state.iteration >= options['max_iter_B']:
        phase = Phase.MAX_ITER_REACHED
    else:
        phase = Phase.SOLVING

    return state._replace(phase=phase, solution=solution)


TRANSITIONS = {Phase.SOLVING: solve_phase,
               Phase.SIMULATING: simulate_phase,
               Phase.ESTIMATING: estimate_phase,
               Phase.UPDATING: update_phase}




#####################
# 2. Main Function  #
#####################

def find_ALM_coefficients(params, solution, shocks, method = 'vfi', tol_ump = 1e-8, max_iter_ump = 100,
                          howard_n_iter = 0, tol_B = 1e-8, max_iter_B = 20, update_B = 0.3,
                          T_discard = 100, k_init = None):
    """
    Iterates household problem, simulation and ALM regression until the ALM
    coefficients stop changing.

    *Input
        - params: ModelParameters
        - solution: initial Solution (value/policy guess and ALM coefficients)
        - shocks: ShockPanel, reused in every iteration
        - method: household solution method, 'vfi' or 'euler'
        - tol_ump, max_iter_ump: convergence of the household problem
        - howard_n_iter: Howard policy evaluation rounds per vfi sweep
        - tol_B, max_iter_B: convergence of the ALM coefficients
        - update_B: weight on the newly estimated coefficients
        - T_discard: burn-in periods dropped before the regression
        - k_init: initial cross-section of capital, default the mean of the K grid

    *Output
        - ALMResult
    """

    if not 0 < update_B <= 1:
        raise ConfigurationError(f"ALM dampening parameter must lie in (0,1], got {update_B}.")

    if max_iter_B < 1:
        raise ConfigurationError(f"max_iter_B must be at least one, got {max_iter_B}.")

    if method != 'vfi' and method != 'euler':
        raise ConfigurationError("Household solution method incorrectly entered: Choose 'vfi' or 'euler'.")

    validate_solution(params, solution)
    check_shocks(shocks, params)

    solution = solution._replace(B=np.asarray(solution.B, dtype=np.float64),
                                 R2=np.asarray(solution.R2, dtype=np.float64))

    options = dict(method=method, tol_ump=tol_ump, max_iter_ump=max_iter_ump, howard_n_iter=howard_n_iter,
                   tol_B=tol_B, max_iter_B=max_iter_B, update_B=update_B, T_discard=T_discard, k_init=k_init)

    t0 = time.time()

    state = CalibrationState(Phase.SOLVING, solution)
    phases = [state.phase]
    history = []

    while state.phase not in TERMINAL:
        state = TRANSITIONS[state.phase](state, params, shocks, options)
        phases.append(state.phase)

        if state.phase in TERMINAL or state.phase is Phase.SOLVING:
            history.append((state.solution.B, state.solution.R2, state.dif_B))

    converged = state.phase is Phase.CONVERGED

    if converged:
        log.info(f"ALM coefficients converged in {state.iteration} iterations.")
    else:
        log.warning(f"ALM coefficients did not converge in {max_iter_B} iterations, dif_B = {state.dif_B:.3e}.")

    log.info(f"ALM iteration time elapsed: {time.time()-t0:.2f} seconds")

    return ALMResult(state.K_ts, state.solution, state.iteration, converged, state.dif_B, history, phases)
