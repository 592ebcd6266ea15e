"""
Aggregate and idiosyncratic shock histories for the simulation step.

The panel is drawn once per calibration and reused in every iteration over the ALM
coefficients; drawing new shocks each iteration would keep the coefficients from
settling down.
"""

import logging
from typing import NamedTuple

import numpy as np
import quantecon as qe
from scipy.stats import rv_discrete

from .errors import ConfigurationError, InvalidShockError

log = logging.getLogger(__name__)


class ShockPanel(NamedTuple):
    z_shocks: np.ndarray     # aggregate state index over time, shape (T,)
    eps_shocks: np.ndarray   # employment status index, shape (T, population)

    @property
    def T(self):
        return len(self.z_shocks)

    @property
    def population(self):
        return self.eps_shocks.shape[1]


def generate_shocks(params, T = 1100, population = 10000, seed = None, z_init = 0):
    """
    Draws the aggregate shock path and, conditional on it, the employment status of
    every household.

    In the first period each household is unemployed with the unemployment rate of the
    realized aggregate state. Afterwards each household transits according to the
    employment matrix conditional on the realized aggregate transition. Draws are
    independent across households, so the cross-sectional unemployment rate matches
    u_g / u_b only on average.

    *Input
        - params: ModelParameters
        - T: number of periods
        - population: number of households
        - seed: seed for both the aggregate and the idiosyncratic draws
        - z_init: aggregate state in the first period (None draws it at random)

    *Output
        - ShockPanel
    """

    if T < 2:
        raise ConfigurationError(f"Need at least two periods of shocks, got T={T}.")

    if population < 1:
        raise ConfigurationError(f"Need at least one household, got population={population}.")

    transmat = params.transmat

    # a. aggregate shocks
    mc = qe.MarkovChain(transmat.Pz)
    z_shocks = mc.simulate_indices(T, init=z_init, random_state=seed).astype(np.int64)
    check_aggregate_shocks(z_shocks, params.z_size)

    # b. idiosyncratic shocks in the first period
    rng = np.random.default_rng(seed)
    eps_shocks = np.empty((T, population), dtype=np.int64)

    u_rate = params.ug if z_shocks[0] == 0 else params.ub
    random_eps = rv_discrete(values=(np.arange(2), (1 - u_rate, u_rate)), seed=rng)
    eps_shocks[0, :] = random_eps.rvs(size=population)

    # c. idiosyncratic shocks from the second period on
    draws = rng.uniform(size=(T - 1, population))

    for t in range(1, T):
        Peps = transmat.Peps(z_shocks[t-1], z_shocks[t])
        eps_shocks[t, :] = draw_eps_shock(eps_shocks[t-1, :], draws[t-1, :], Peps)

    log.debug(f"Drew shocks for {population} households over {T} periods, "
              f"{np.mean(z_shocks == 0)*100:.1f}% of periods in the good state.")

    return ShockPanel(z_shocks, eps_shocks)


def draw_eps_shock(eps_prev, draw, Peps):
    """
    Next period employment status given the current status and uniform draws.
    A household becomes (or stays) employed when its draw is below Prob(e' = employed | e).
    """

    prob_employed = Peps[eps_prev, 0]

    return np.where(draw < prob_employed, 0, 1)


def check_aggregate_shocks(z_shocks, z_size = 2):
    z_shocks = np.asarray(z_shocks)
    bad = (z_shocks < 0) | (z_shocks >= z_size)

    if np.any(bad):
        t = int(np.argmax(bad))
        raise InvalidShockError(
            f"Aggregate shock index {z_shocks[t]} at period {t} does not match any of the {z_size} grid entries.")


def check_shocks(shocks, params):
    """
    Raises InvalidShockError if the panel contains indices outside the shock grids.
    """

    check_aggregate_shocks(shocks.z_shocks, params.z_size)

    if shocks.eps_shocks.ndim != 2 or shocks.eps_shocks.shape[0] != len(shocks.z_shocks):
        raise InvalidShockError(
            f"Idiosyncratic shocks of shape {shocks.eps_shocks.shape} do not match {len(shocks.z_shocks)} periods.")

    if np.any((shocks.eps_shocks < 0) | (shocks.eps_shocks >= params.eps_size)):
        raise InvalidShockError("Idiosyncratic shock index does not match any employment grid entry.")


def unemployment_rate(shocks):
    """Realized cross-sectional unemployment rate in every period."""

    return np.mean(shocks.eps_shocks == 1, axis=1)
