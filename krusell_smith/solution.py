"""
Solution of the household problem together with the law of motion it was solved for.

A Solution is an immutable value: every solver phase receives one and hands back a
new one (built with Solution._replace), so the outer loop never mutates shared state.
"""

import logging
from typing import NamedTuple

import numpy as np

from .errors import ShapeMismatchError
from .utility import utility

log = logging.getLogger(__name__)


class Solution(NamedTuple):
    k_opt: np.ndarray   # next period capital policy k'(k, K, s)
    value: np.ndarray   # value function V(k, K, s)
    B: np.ndarray       # ALM coefficients [b0_good, b1_good, b0_bad, b1_bad]
    R2: np.ndarray      # fit of the ALM regression [good, bad]


def initial_solution(params):
    """
    Initial guess: save 90% of current capital, value of consuming the rest forever.

    *Input
        - params: ModelParameters

    *Output
        - Solution with B = [0,1,0,1] (K' = K) and R2 = [0,0]
    """

    k_size, K_size, s_size = params.shape

    k_opt = 0.9*np.repeat(params.k_grid, K_size*s_size).reshape(k_size, K_size, s_size)
    k_opt = np.clip(k_opt, params.k_min, params.k_max)
    value = utility(0.1/0.9*k_opt, float(params.theta))/(1 - params.beta)

    B = np.array([0.0, 1.0, 0.0, 1.0])
    R2 = np.zeros(2)

    return Solution(k_opt, value, B, R2)


def validate_solution(params, solution):
    """
    Raises ShapeMismatchError if the solution was computed on different grids.
    """

    if solution.k_opt.shape != params.shape or solution.value.shape != params.shape:
        raise ShapeMismatchError(
            f"Solution arrays have shapes {solution.k_opt.shape} (policy) and {solution.value.shape} (value), "
            f"but the grids imply {params.shape}.")

    if np.size(solution.B) != 4:
        raise ShapeMismatchError(f"Expected 4 ALM coefficients, got {np.size(solution.B)}.")

    if np.size(solution.R2) != 2:
        raise ShapeMismatchError(f"Expected 2 R2 values, got {np.size(solution.R2)}.")


def warm_start(params, previous, load_value = True, load_B = True):
    """
    Initial guess that reuses parts of a previous solution.

    *Input
        - params: ModelParameters
        - previous: Solution from an earlier run (possibly loaded from disk)
        - load_value: reuse the policy and value arrays
        - load_B: reuse the ALM coefficients

    *Output
        - Solution
    """

    validate_solution(params, previous)
    solution = initial_solution(params)

    if load_value:
        solution = solution._replace(k_opt=np.array(previous.k_opt, dtype=float),
                                     value=np.array(previous.value, dtype=float))

    if load_B:
        solution = solution._replace(B=np.array(previous.B, dtype=float),
                                     R2=np.array(previous.R2, dtype=float))

    return solution


def save_solution(path, solution):
    np.savez(path, k_opt=solution.k_opt, value=solution.value, B=solution.B, R2=solution.R2)
    log.debug(f"Solution saved to {path}")


def load_solution(path, params = None):
    """
    Loads a solution written by save_solution. If params is given the arrays are
    checked against its grids.
    """

    with np.load(path) as data:
        solution = Solution(data['k_opt'], data['value'], data['B'], data['R2'])

    if params is not None:
        validate_solution(params, solution)

    return solution
