"""
Estimation of the aggregate law of motion from a simulated capital path.

    log K_{t+1} = b0_z + b1_z log K_t ,  z in {good, bad}

is fitted by OLS separately on the periods spent in each aggregate state.
"""

import logging

import numpy as np
import numpy.linalg as la

from .errors import ConfigurationError, RegressionDegeneracyError

log = logging.getLogger(__name__)

REGIMES = ('good', 'bad')


def regress_ALM(z_shocks, K_ts, T_discard = 100):
    """
    Regresses log K_{t+1} on a constant and log K_t, split by the aggregate state in t.
    The first T_discard periods are dropped as burn-in.

    *Input
        - z_shocks: aggregate state index over time, shape (T,)
        - K_ts: aggregate capital over time, shape (T,)
        - T_discard: burn-in periods

    *Output
        - B_new: [b0_good, b1_good, b0_bad, b1_bad]
        - R2: coefficient of determination [good, bad]
    """

    z_shocks = np.asarray(z_shocks)
    K_ts = np.asarray(K_ts, dtype=np.float64)

    T = len(K_ts)

    if len(z_shocks) != T:
        raise ConfigurationError(f"Shock path of length {len(z_shocks)} does not match capital path of length {T}.")

    if not 0 <= T_discard < T - 1:
        raise ConfigurationError(f"T_discard={T_discard} leaves no observations in a path of length {T}.")

    if np.any(K_ts <= 0):
        raise ConfigurationError("Aggregate capital must be strictly positive to take logs.")

    z = z_shocks[T_discard:T-1]
    x = np.log(K_ts[T_discard:T-1])
    y = np.log(K_ts[T_discard+1:T])

    B_new = np.empty(4)
    R2 = np.empty(2)

    for z_i, regime in enumerate(REGIMES):
        mask = z == z_i
        n = int(mask.sum())

        if n < 2:
            raise RegressionDegeneracyError(
                f"Only {n} observation(s) in the {regime} state after burn-in, cannot estimate the ALM.")

        coef, r2 = ols(x[mask], y[mask], regime)

        B_new[2*z_i:2*z_i+2] = coef
        R2[z_i] = r2

    return B_new, R2


def ols(x, y, regime = ''):
    """
    OLS of y on a constant and x.

    *Output
        - coef: [intercept, slope]
        - R2
    """

    X = np.column_stack((np.ones(len(x)), x))
    coef, _, rank, _ = la.lstsq(X, y, rcond=None)

    if rank < 2:
        log.warning(f"ALM regression in the {regime} state is rank deficient, "
                    f"using the minimum norm solution.")

    resid = y - X @ coef
    ss_res = np.sum(resid**2)
    ss_tot = np.sum((y - np.mean(y))**2)

    if np.ptp(y) > 0:
        r2 = 1 - ss_res/ss_tot
    elif np.allclose(resid, 0, atol=1e-10):
        r2 = 1.0
    else:
        log.warning(f"No variation of log K in the {regime} state, R2 undefined.")
        r2 = np.nan

    return coef, r2


def alm_implied_path(z_shocks, K0, B):
    """
    Aggregate capital path generated by the ALM alone, starting from K0.
    """

    z_shocks = np.asarray(z_shocks)
    K_alm = np.empty(len(z_shocks))
    K_alm[0] = K0

    for t in range(len(z_shocks) - 1):
        z_i = z_shocks[t]
        K_alm[t+1] = np.exp(B[2*z_i] + B[2*z_i+1]*np.log(K_alm[t]))

    return K_alm


def den_haan_error(z_shocks, K_ts, B, T_discard = 100):
    """
    Accuracy of the ALM as in den Haan (2010): the ALM is iterated forward from the
    simulated capital after burn-in, without ever being reset to the simulated path.

    *Output
        - maximum and mean absolute percentage deviation of the two paths
    """

    z_shocks = np.asarray(z_shocks)[T_discard:]
    K_ts = np.asarray(K_ts)[T_discard:]

    K_alm = alm_implied_path(z_shocks, K_ts[0], B)
    err = 100*np.abs(np.log(K_alm) - np.log(K_ts))

    return err.max(), err.mean()
