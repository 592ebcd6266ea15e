import unittest

import numpy as np

from krusell_smith.alm import alm_implied_path, den_haan_error, regress_ALM
from krusell_smith.errors import ConfigurationError, RegressionDegeneracyError


B_TRUE = np.array([0.12, 0.96, 0.08, 0.97])


def regime_blocks(T, length = 5):
    """Aggregate path alternating between good and bad in blocks."""
    return (np.arange(T) // length) % 2


class RegressionTests(unittest.TestCase):

    def setUp(self):
        self.z_shocks = regime_blocks(300)
        self.K_ts = alm_implied_path(self.z_shocks, 20.0, B_TRUE)

    def test_recovers_coefficients(self):
        B_new, R2 = regress_ALM(self.z_shocks, self.K_ts, T_discard=10)
        np.testing.assert_allclose(B_new, B_TRUE, atol=1e-8)
        np.testing.assert_allclose(R2, 1.0, atol=1e-10)

    def test_burn_in_is_dropped(self):
        # a disturbed start does not affect the estimate once discarded
        K_ts = self.K_ts.copy()
        K_ts[:20] = 45.0
        B_new, _ = regress_ALM(self.z_shocks, K_ts, T_discard=20)
        np.testing.assert_allclose(B_new, B_TRUE, atol=1e-8)

    def test_noisy_fit(self):
        rng = np.random.default_rng(0)
        K_ts = self.K_ts*np.exp(0.001*rng.standard_normal(len(self.K_ts)))
        B_new, R2 = regress_ALM(self.z_shocks, K_ts, T_discard=10)
        self.assertTrue(np.all(R2 < 1))
        self.assertTrue(np.all(R2 > 0))
        self.assertEqual(B_new.shape, (4,))

    def test_single_regime_raises(self):
        z_shocks = np.zeros(100, dtype=int)
        with self.assertRaises(RegressionDegeneracyError):
            regress_ALM(z_shocks, np.full(100, 40.0), T_discard=10)

    def test_constant_path(self):
        # no variation in log K and a perfect fit: R2 is one
        with self.assertLogs('krusell_smith.alm', level='WARNING'):
            B_new, R2 = regress_ALM(self.z_shocks, np.full(300, 40.0), T_discard=10)
        np.testing.assert_allclose(R2, 1.0)
        for z_i in range(2):
            self.assertAlmostEqual(B_new[2*z_i] + B_new[2*z_i+1]*np.log(40.0), np.log(40.0))

    def test_invalid_input(self):
        with self.assertRaises(ConfigurationError):
            regress_ALM(self.z_shocks[:-1], self.K_ts)
        with self.assertRaises(ConfigurationError):
            regress_ALM(self.z_shocks, self.K_ts, T_discard=299)
        with self.assertRaises(ConfigurationError):
            regress_ALM(self.z_shocks, -self.K_ts, T_discard=10)


class AccuracyTests(unittest.TestCase):

    def test_implied_path(self):
        z_shocks = np.array([0, 1, 1, 0])
        K = alm_implied_path(z_shocks, 40.0, B_TRUE)
        self.assertEqual(K[0], 40.0)
        self.assertAlmostEqual(K[1], np.exp(0.12 + 0.96*np.log(40.0)))
        self.assertAlmostEqual(K[2], np.exp(0.08 + 0.97*np.log(K[1])))

    def test_den_haan_error(self):
        z_shocks = regime_blocks(200)
        K_ts = alm_implied_path(z_shocks, 30.0, B_TRUE)
        max_err, mean_err = den_haan_error(z_shocks, K_ts, B_TRUE, T_discard=50)
        self.assertAlmostEqual(max_err, 0.0, places=8)
        self.assertAlmostEqual(mean_err, 0.0, places=8)

        max_err, mean_err = den_haan_error(z_shocks, K_ts*1.01, B_TRUE, T_discard=50)
        self.assertGreater(max_err, 0.5)
        self.assertLessEqual(mean_err, max_err)
