"""
Exceptions raised by the Krusell-Smith solver.

Non-convergence of the household problem or of the ALM iteration is not an
exception: the solvers log a warning and hand back their best estimate with
converged=False.
"""


class KrusellSmithError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(KrusellSmithError, ValueError):
    """An option passed to the model is outside its admissible range."""


class InvalidTransitionError(KrusellSmithError, ValueError):
    """A transition probability lies outside [0,1] or a row does not sum to one."""


class ShapeMismatchError(KrusellSmithError):
    """A (loaded or previous) solution does not match the current grids."""


class InvalidShockError(KrusellSmithError):
    """A shock realization does not correspond to any grid entry."""


class RegressionDegeneracyError(KrusellSmithError):
    """Too few observations in an aggregate regime to estimate the ALM."""
