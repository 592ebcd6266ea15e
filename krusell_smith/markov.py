"""
Transition matrices of the Krusell-Smith economy.

The aggregate shock z follows a two state Markov chain (good, bad). Conditional on
the aggregate transition z -> z', the employment status eps follows a two state
chain (employed, unemployed) whose probabilities are pinned down by the average
durations of each regime and of unemployment spells, and by the requirement that
the unemployment rate is u_g in good times and u_b in bad times.

Ordering convention used throughout the package:
    aggregate index    0 = good, 1 = bad
    employment index   0 = employed, 1 = unemployed
    shock-state index  s = z + 2*eps, i.e. (g,e), (b,e), (g,u), (b,u)
"""

from typing import NamedTuple

import numpy as np

from .errors import InvalidTransitionError


class TransitionMatrices(NamedTuple):
    P: np.ndarray        # 4x4 joint matrix over shock-states
    Pz: np.ndarray       # 2x2 aggregate matrix
    Peps_gg: np.ndarray  # 2x2 employment matrices conditional on z -> z'
    Peps_bb: np.ndarray
    Peps_gb: np.ndarray
    Peps_bg: np.ndarray

    def Peps(self, z_i, z_n_i):
        """Employment transition matrix conditional on the aggregate move z_i -> z_n_i."""
        return ((self.Peps_gg, self.Peps_gb), (self.Peps_bg, self.Peps_bb))[z_i][z_n_i]


def create_transition_matrix(ug, ub, zg_ave_dur, zb_ave_dur, ug_ave_dur, ub_ave_dur,
                             puu_rel_gb2bb, puu_rel_bg2gg):
    """
    Builds the joint, aggregate and conditional employment transition matrices.

    *Input
        - ug, ub : unemployment rate in the good and bad aggregate state
        - zg_ave_dur, zb_ave_dur : average duration of the good and bad state
        - ug_ave_dur, ub_ave_dur : average unemployment duration in the good and bad state
        - puu_rel_gb2bb : prob. of staying unemployed when g -> b relative to b -> b
        - puu_rel_bg2gg : prob. of staying unemployed when b -> g relative to g -> g

    *Output
        - TransitionMatrices
    """

    if not (0 < ug < 1 and 0 < ub < 1):
        raise InvalidTransitionError(f"Unemployment rates must lie in (0,1), got ug={ug}, ub={ub}.")

    for name, dur in (('zg_ave_dur', zg_ave_dur), ('zb_ave_dur', zb_ave_dur),
                      ('ug_ave_dur', ug_ave_dur), ('ub_ave_dur', ub_ave_dur)):
        if dur < 1:
            raise InvalidTransitionError(f"Average duration {name} must be at least one period, got {dur}.")

    # a. aggregate transitions
    pgg = 1 - 1/zg_ave_dur     # stay in good state
    pbb = 1 - 1/zb_ave_dur     # stay in bad state
    pgb = 1 - pgg
    pbg = 1 - pbb

    # b. unemployed -> unemployed conditional on the aggregate transition
    p00_gg = 1 - 1/ug_ave_dur
    p00_bb = 1 - 1/ub_ave_dur
    p00_gb = puu_rel_gb2bb*p00_bb
    p00_bg = puu_rel_bg2gg*p00_gg

    # c. unemployed -> employed
    p01_gg = 1 - p00_gg
    p01_bb = 1 - p00_bb
    p01_gb = 1 - p00_gb
    p01_bg = 1 - p00_bg

    # d. employed -> unemployed, consistent with the unemployment rate of the new regime
    p10_gg = (ug - ug*p00_gg)/(1 - ug)
    p10_bb = (ub - ub*p00_bb)/(1 - ub)
    p10_gb = (ub - ug*p00_gb)/(1 - ug)
    p10_bg = (ug - ub*p00_bg)/(1 - ub)

    # e. employed -> employed
    p11_gg = 1 - p10_gg
    p11_bb = 1 - p10_bb
    p11_gb = 1 - p10_gb
    p11_bg = 1 - p10_bg

    #            (g,e)          (b,e)          (g,u)          (b,u)
    P = np.array([[pgg*p11_gg,   pgb*p11_gb,    pgg*p10_gg,    pgb*p10_gb],
                  [pbg*p11_bg,   pbb*p11_bb,    pbg*p10_bg,    pbb*p10_bb],
                  [pgg*p01_gg,   pgb*p01_gb,    pgg*p00_gg,    pgb*p00_gb],
                  [pbg*p01_bg,   pbb*p01_bb,    pbg*p00_bg,    pbb*p00_bb]])

    Pz = np.array([[pgg, pgb],
                   [pbg, pbb]])

    Peps_gg = np.array([[p11_gg, p10_gg],
                        [p01_gg, p00_gg]])
    Peps_bb = np.array([[p11_bb, p10_bb],
                        [p01_bb, p00_bb]])
    Peps_gb = np.array([[p11_gb, p10_gb],
                        [p01_gb, p00_gb]])
    Peps_bg = np.array([[p11_bg, p10_bg],
                        [p01_bg, p00_bg]])

    transmat = TransitionMatrices(P, Pz, Peps_gg, Peps_bb, Peps_gb, Peps_bg)
    check_stochastic(transmat)

    return transmat


def check_stochastic(transmat, tol=1e-9):
    """
    Raises InvalidTransitionError unless every matrix is row-stochastic with entries in [0,1].
    """

    for name, mat in zip(transmat._fields, transmat):
        if np.any(mat < -tol) or np.any(mat > 1 + tol):
            raise InvalidTransitionError(
                f"Transition matrix {name} has probabilities outside [0,1]:\n{mat}")

        if not np.allclose(mat.sum(axis=1), 1.0, atol=tol, rtol=0):
            raise InvalidTransitionError(f"Transition matrix {name}: rows do not sum to 1.")
