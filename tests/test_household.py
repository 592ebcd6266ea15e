import unittest

import numpy as np

from krusell_smith.errors import ConfigurationError, ShapeMismatchError
from krusell_smith.household import (bellman_sweep, cash_on_hand, compute_Kp_L, interest_rate, pack_params,
                                     solve_household, solve_vfi, stack_by_shock, utility, wage)
from krusell_smith.model import KrusellSmith
from krusell_smith.solution import initial_solution


def cash_on_hand_grid(params, B):
    """Cash on hand at every (k, K, s) grid point."""

    c_pos = np.empty(params.shape)
    for k_i, k in enumerate(params.k_grid):
        for K_i, K in enumerate(params.K_grid):
            for s_i in range(params.s_size):
                z, eps = params.s_grid[s_i]
                _, L = compute_Kp_L(K, s_i % 2, B, params.l_bar, params.ug, params.ub,
                                    float(params.K_min), float(params.K_max))
                c_pos[k_i, K_i, s_i] = cash_on_hand(k, K, L, z, eps, params.alpha, params.delta,
                                                    params.l_bar, params.mu)
    return c_pos


class HelperTests(unittest.TestCase):

    def test_utility(self):
        self.assertAlmostEqual(utility(np.e, 1.0), 1.0)
        self.assertAlmostEqual(utility(1.0, 2.0), 0.0)
        self.assertAlmostEqual(utility(2.0, 2.0), 0.5)
        # consumption is floored at a small positive number
        self.assertTrue(np.isfinite(utility(0.0, 1.0)))
        self.assertTrue(np.isfinite(utility(-1.0, 2.0)))

    def test_factor_prices(self):
        alpha, z, K, L = 0.36, 1.01, 40.0, 1.0
        r = interest_rate(alpha, z, K, L)
        w = wage(alpha, z, K, L)
        # factor payments exhaust output
        self.assertAlmostEqual(r*K + w*L, z*K**alpha*L**(1 - alpha))

    def test_cash_on_hand(self):
        alpha, delta, l_bar, mu = 0.36, 0.025, 1/0.9, 0.15
        r = interest_rate(alpha, 0.99, 40.0, 1.0)
        w = wage(alpha, 0.99, 40.0, 1.0)
        self.assertAlmostEqual(cash_on_hand(10.0, 40.0, 1.0, 0.99, 1.0, alpha, delta, l_bar, mu),
                               (r + 1 - delta)*10.0 + w*l_bar)
        self.assertAlmostEqual(cash_on_hand(10.0, 40.0, 1.0, 0.99, 0.0, alpha, delta, l_bar, mu),
                               (r + 1 - delta)*10.0 + w*mu)

    def test_Kp_restricted_to_grid(self):
        B = np.array([10.0, 0.0, -10.0, 0.0])
        Kp_g, L_g = compute_Kp_L(40.0, 0, B, 1/0.9, 0.04, 0.1, 30.0, 50.0)
        Kp_b, L_b = compute_Kp_L(40.0, 1, B, 1/0.9, 0.04, 0.1, 30.0, 50.0)
        self.assertEqual(Kp_g, 50.0)
        self.assertEqual(Kp_b, 30.0)
        self.assertAlmostEqual(L_g, 0.96/0.9)
        self.assertAlmostEqual(L_b, 1.0)

    def test_Kp_law_of_motion(self):
        B = np.array([0.1, 0.97, 0.09, 0.975])
        Kp, _ = compute_Kp_L(40.0, 1, B, 1/0.9, 0.04, 0.1, 30.0, 50.0)
        self.assertAlmostEqual(Kp, np.exp(0.09 + 0.975*np.log(40.0)))

    def test_stack_by_shock(self):
        arr = np.arange(24.0).reshape(2, 3, 4)
        stacked = stack_by_shock(arr)
        self.assertEqual(stacked.shape, (4, 2, 3))
        self.assertTrue(stacked.flags['C_CONTIGUOUS'])
        np.testing.assert_array_equal(stacked[2], arr[:, :, 2])


class ValueFunctionIterationTests(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.params = KrusellSmith(beta=0.95, k_size=8, k_max=200, K_size=3).params
        cls.guess = initial_solution(cls.params)
        cls.result = solve_household(cls.params, cls.guess, tol=1e-6, max_iter=2000)
        cls.c_pos = cash_on_hand_grid(cls.params, cls.guess.B)

    def test_converged(self):
        self.assertTrue(self.result.converged)
        self.assertLess(self.result.dif, 1e-6)
        self.assertEqual(len(self.result.difs), self.result.iterations)
        self.assertEqual(self.result.solution.value.shape, self.params.shape)
        np.testing.assert_array_equal(self.result.solution.B, self.guess.B)

    def test_contraction(self):
        difs = np.array(self.result.difs)
        self.assertTrue(np.all(difs[1:] <= difs[:-1] + 1e-6))

    def test_idempotent_at_fixed_point(self):
        params_hh = pack_params(self.params)
        solution = self.result.solution
        value, _ = bellman_sweep(stack_by_shock(solution.value), solution.B, params_hh)
        self.assertLess(np.abs(value - solution.value).max(), 1e-6)

    def test_policy_feasible(self):
        k_opt = self.result.solution.k_opt
        self.assertTrue(np.all(k_opt >= self.params.k_min - 1e-12))
        self.assertTrue(np.all(k_opt <= self.params.k_max + 1e-12))
        self.assertTrue(np.all(self.c_pos - k_opt > 0))

    def test_borrowing_constraint_worst_state(self):
        # bad state, unemployed, smallest capital holding
        s_i = self.params.shock_state(1, 1)
        for K_i in range(self.params.K_size):
            c = self.c_pos[0, K_i, s_i] - self.result.solution.k_opt[0, K_i, s_i]
            self.assertGreater(c, 0)

    def test_value_increasing_in_capital(self):
        value = self.result.solution.value
        self.assertTrue(np.all(np.diff(value, axis=0) > 0))

    def test_employment_is_valuable(self):
        value = self.result.solution.value
        self.assertTrue(np.all(value[:, :, 0] > value[:, :, 2]))
        self.assertTrue(np.all(value[:, :, 1] > value[:, :, 3]))

    def test_howard_improvement(self):
        howard = solve_household(self.params, self.guess, tol=1e-6, max_iter=2000, howard_n_iter=5)
        self.assertTrue(howard.converged)
        self.assertLess(howard.iterations, self.result.iterations)
        np.testing.assert_allclose(howard.solution.value, self.result.solution.value, atol=1e-3)

    def test_warm_start_converges_immediately(self):
        again = solve_household(self.params, self.result.solution, tol=1e-6, max_iter=10)
        self.assertTrue(again.converged)
        self.assertEqual(again.iterations, 1)


class EulerMethodTests(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.params = KrusellSmith(beta=0.95, k_size=8, k_max=200, K_size=3).params
        cls.guess = initial_solution(cls.params)
        cls.result = solve_household(cls.params, cls.guess, method='euler', tol=1e-6, max_iter=1000)
        cls.c_pos = cash_on_hand_grid(cls.params, cls.guess.B)

    def test_converged(self):
        self.assertTrue(self.result.converged)
        self.assertLess(self.result.dif, 1e-6)

    def test_policy_feasible(self):
        k_opt = self.result.solution.k_opt
        self.assertTrue(np.all(k_opt >= self.params.k_min - 1e-12))
        self.assertTrue(np.all(self.c_pos - k_opt > 0))

    def test_value_finite(self):
        self.assertTrue(np.all(np.isfinite(self.result.solution.value)))
        self.assertEqual(len(self.result.difs), self.result.iterations)


class EulerFineGridTests(unittest.TestCase):
    # many points sit at the borrowing constraint on this grid

    @classmethod
    def setUpClass(cls):
        cls.params = KrusellSmith(beta=0.95, k_size=30, k_max=200, K_size=3).params
        cls.guess = initial_solution(cls.params)
        cls.euler = solve_household(cls.params, cls.guess, method='euler', tol=1e-6, max_iter=3000)
        cls.vfi = solve_household(cls.params, cls.guess, tol=1e-6, max_iter=2000)

    def test_converged_with_default_dampening(self):
        self.assertTrue(self.euler.converged)
        self.assertLess(self.euler.dif, 1e-6)
        self.assertLess(self.euler.iterations, 3000)

    def test_agrees_with_value_function_iteration(self):
        self.assertTrue(self.vfi.converged)
        # the lowest grid points are dominated by the constraint and the Brent tolerance
        mask = self.params.k_grid >= 1.0
        np.testing.assert_allclose(self.euler.solution.k_opt[mask], self.vfi.solution.k_opt[mask],
                                   rtol=0.1, atol=0.25)

    def test_stalled_iteration_is_dampened(self):
        with self.assertLogs('krusell_smith.household', level='DEBUG') as logs:
            solve_household(self.params, self.guess, method='euler', tol=1e-6, max_iter=3000)
        self.assertTrue(any('dampening reduced' in line for line in logs.output))


class SolveHouseholdValidationTests(unittest.TestCase):

    def setUp(self):
        self.params = KrusellSmith(beta=0.95, k_size=6, k_max=200, K_size=2).params
        self.guess = initial_solution(self.params)

    def test_invalid_method(self):
        with self.assertRaises(ConfigurationError):
            solve_household(self.params, self.guess, method='egm')

    def test_invalid_iterations(self):
        with self.assertRaises(ConfigurationError):
            solve_household(self.params, self.guess, max_iter=0)
        with self.assertRaises(ConfigurationError):
            solve_household(self.params, self.guess, howard_n_iter=-1)
        with self.assertRaises(ConfigurationError):
            solve_household(self.params, self.guess, method='euler', update_k=0.0)

    def test_shape_mismatch(self):
        other = initial_solution(KrusellSmith(k_size=7, K_size=2).params)
        with self.assertRaises(ShapeMismatchError):
            solve_household(self.params, other)

    def test_no_convergence_is_not_an_error(self):
        with self.assertLogs('krusell_smith.household', level='WARNING'):
            result = solve_household(self.params, self.guess, tol=1e-12, max_iter=2)
        self.assertFalse(result.converged)
        self.assertEqual(result.iterations, 2)
        self.assertGreater(result.dif, 1e-12)

    def test_solve_vfi_keeps_guess_intact(self):
        value = self.guess.value.copy()
        solve_vfi(pack_params(self.params), self.guess, tol=1e-6, max_iter=3)
        np.testing.assert_array_equal(self.guess.value, value)
