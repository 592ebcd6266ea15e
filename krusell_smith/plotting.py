"""
Figures of the solved model. Every function draws a new figure and returns it.
"""

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from interpolation import interp

from .alm import alm_implied_path
from .household import stack_by_shock

sns.set(style='whitegrid')


def plot_ALM(z_shocks, K_ts, B, T_discard = 100):
    """
    Simulated aggregate capital against the path implied by the ALM alone.
    """

    z_shocks = np.asarray(z_shocks)[T_discard:]
    K_ts = np.asarray(K_ts)[T_discard:]
    K_alm = alm_implied_path(z_shocks, K_ts[0], B)

    fig = plt.figure()
    plt.plot(K_ts, label='Simulated')
    plt.plot(K_alm, linestyle='--', label='Approximate aggregation (ALM)')
    plt.title('Aggregate Capital')
    plt.xlabel('Period')
    plt.ylabel('K')
    plt.legend()

    return fig


def plot_policy(params, solution, K):
    """
    Savings policy k'(k, K, s) of every shock-state at aggregate capital K.
    """

    kopt_s = stack_by_shock(solution.k_opt)
    labels = ['good, employed', 'bad, employed', 'good, unemployed', 'bad, unemployed']

    fig = plt.figure()
    for s_i in range(params.s_size):
        kp = np.array([interp(params.k_grid, params.K_grid, kopt_s[s_i], k, float(K)) for k in params.k_grid])
        plt.plot(params.k_grid, kp, label=labels[s_i])
    plt.plot([params.k_min, params.k_max], [params.k_min, params.k_max], linestyle=':', label='45 degree line')
    plt.title(f'Savings Policy Function (K = {K:.2f})')
    plt.xlabel('Capital')
    plt.legend()

    return fig


def plot_wealth_distribution(k_population):
    """
    Cross-sectional distribution of capital at the end of the simulation.
    """

    fig = plt.figure()
    sns.histplot(k_population, bins=100, stat='density')
    plt.xlabel('Capital')
    plt.title('Wealth Distribution')

    return fig
