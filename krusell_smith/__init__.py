from .errors import (KrusellSmithError, ConfigurationError, InvalidTransitionError,
                     ShapeMismatchError, InvalidShockError, RegressionDegeneracyError)
from .markov import TransitionMatrices, create_transition_matrix
from .model import KrusellSmith, ModelParameters, make_grid
from .solution import Solution, initial_solution, warm_start, save_solution, load_solution
from .shocks import ShockPanel, generate_shocks
from .household import HouseholdResult, solve_household
from .simulation import simulate_aggregate_path
from .alm import regress_ALM, alm_implied_path, den_haan_error
from .solver import ALMResult, Phase, find_ALM_coefficients
