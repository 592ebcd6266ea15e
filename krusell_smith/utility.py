"""
Period utility. Works on scalars inside the jitted sweeps and on whole arrays for
the initial guess.
"""

import numpy as np
from numba import njit


@njit
def utility(c, theta):
    """
    CRRA utility function.

    *Input
        - c : Consumption
        - theta: Risk aversion coefficient

    *Output
        - Utility value
    """

    eps = 1e-10

    if theta == 1:
        return np.log(np.fmax(c, eps))
    else:
        return (np.fmax(c, eps) ** (1 - theta) - 1) / (1 - theta)


@njit
def marginal_utility(c, theta):
    eps = 1e-10

    return np.fmax(c, eps) ** (-theta)
