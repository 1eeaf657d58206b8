import unittest
import warnings
import numpy as np
import scentree as s
from scentree import gas


class TestAnnealing(unittest.TestCase):

    def test_schedule_end_points(self):
        tol = 1e-12
        ng = s.NeuralGas(lambda0=10, lambdaf=0.01, eps0=0.5, epsf=0.05, j_max=100)
        self.assertAlmostEqual(0.5, ng.epsilon(0), delta=tol)
        self.assertAlmostEqual(0.05, ng.epsilon(100), delta=tol)
        self.assertAlmostEqual(10, ng.neighbourhood(0), delta=tol)
        self.assertAlmostEqual(0.01, ng.neighbourhood(100), delta=tol)
        self.assertAlmostEqual(0.5 * 0.1 ** 0.5, ng.epsilon(50), delta=tol)

    def test_schedule_decays(self):
        ng = s.NeuralGas(j_max=1000)
        eps = [ng.epsilon(j) for j in range(1, 1001)]
        lam = [ng.neighbourhood(j) for j in range(1, 1001)]
        self.assertTrue(all(a > b for a, b in zip(eps, eps[1:])))
        self.assertTrue(all(a > b for a, b in zip(lam, lam[1:])))

    def test_config_failure(self):
        for kwargs in ({"j_max": 0}, {"j_max": -5}, {"j_max": 1.5}, {"j_max": True},
                       {"eps0": 0}, {"epsf": -0.1}, {"lambda0": np.nan}, {"lambdaf": np.inf},
                       {"eps0": "fast"}):
            with self.assertRaises(s.ConfigError):
                _ = s.NeuralGas(**kwargs)

    def test_inverted_schedule_warns(self):
        with self.assertWarns(s.AnnealingWarning):
            _ = s.NeuralGas(eps0=0.01, epsf=0.5)
        with self.assertWarns(s.AnnealingWarning):
            _ = s.NeuralGas(lambda0=0.01, lambdaf=10)

    def test_default_schedule_does_not_warn(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            _ = s.NeuralGas()


class TestHelpers(unittest.TestCase):
    __grouping = s.NodalPartition([[1, 1, 1, 1], [2, 2, 5, 5], [3, 4, 6, 7]])

    def test_rank_ties_lowest_index_first(self):
        ranks = gas.rank_scenarios([0.3, 0.1, 0.3, 0.2])
        self.assertTrue(np.array_equal([3, 1, 4, 2], ranks))
        self.assertTrue(np.array_equal([1, 2, 3], gas.rank_scenarios([1., 1., 1.])))

    def test_realizations_shape(self):
        self.assertEqual((3, 5, 1), gas.realizations(np.zeros((3, 5))).shape)
        self.assertEqual((3, 5, 2), gas.realizations(np.zeros((3, 5, 2)), num_stages=3).shape)

    def test_realizations_failure(self):
        bad = np.ones((3, 4))
        bad[1, 2] = np.nan
        for data in (bad, np.zeros((3, 0)), np.zeros(3), np.zeros((3, 2, 2, 2)), [["a", "b"], ["c", "d"]]):
            with self.assertRaises(s.DataError):
                _ = gas.realizations(data)
        with self.assertRaises(s.DataError):
            _ = gas.realizations(np.zeros((2, 5)), num_stages=3)

    def test_initial_values_deterministic(self):
        data = np.random.default_rng(1).normal(size=(3, 10))
        first = gas.initial_values(data, TestHelpers.__grouping, np.random.default_rng(42))
        second = gas.initial_values(data, TestHelpers.__grouping, np.random.default_rng(42))
        self.assertTrue(np.array_equal(first, second))

    def test_initial_values_are_node_means(self):
        tol = 1e-12
        data = np.random.default_rng(2).normal(size=(3, 10))
        values = gas.initial_values(data, TestHelpers.__grouping, np.random.default_rng(7))
        picks = np.random.default_rng(7).choice(10, size=4, replace=False)
        self.assertAlmostEqual(np.mean(data[0, picks]), values[0, 0], delta=tol)
        self.assertAlmostEqual(np.mean(data[1, picks[:2]]), values[1, 0], delta=tol)
        self.assertAlmostEqual(np.mean(data[1, picks[2:]]), values[4, 0], delta=tol)
        self.assertAlmostEqual(data[2, picks[3]], values[6, 0], delta=tol)

    def test_initial_values_with_replacement(self):
        data = np.random.default_rng(3).normal(size=(3, 2))
        with self.assertWarns(RuntimeWarning):
            values = gas.initial_values(data, TestHelpers.__grouping, np.random.default_rng(0))
        self.assertEqual((7, 1), values.shape)

    def test_assign_probabilities(self):
        values = np.array([[0.], [-5.], [-8.], [-2.], [5.], [2.], [8.]])
        data = np.array([[0.1, 0.0, -0.1, 0.2, 0.0],
                         [-5., -4.9, 5.1, 4.8, 5.0],
                         [-7.9, -2.2, 8.1, 1.9, 7.7]])
        probs, counts = gas.assign_probabilities(data, TestHelpers.__grouping, values)
        self.assertTrue(np.array_equal([1, 1, 1, 2], counts))
        self.assertTrue(np.allclose([0.2, 0.2, 0.2, 0.4], probs))
        self.assertAlmostEqual(1.0, np.sum(probs), delta=1e-12)

    def test_assign_probabilities_ties(self):
        grouping = s.NodalPartition([[1, 1, 1], [2, 2, 2]])
        probs, counts = gas.assign_probabilities(np.zeros((2, 6)), grouping, np.array([[0.], [1.]]))
        self.assertTrue(np.array_equal([6, 0, 0], counts))
        self.assertTrue(np.array_equal([1., 0., 0.], probs))

    def test_assign_probabilities_many_scenarios(self):
        grouping = s.NodalPartition(s.nodal_partition([4, 4, 4]))
        rng = np.random.default_rng(13)
        values = rng.integers(-2, 3, size=(grouping.num_nodes, 1)).astype(float)
        data = rng.integers(-3, 4, size=(4, 1000)).astype(float)
        probs, counts = gas.assign_probabilities(data, grouping, values)
        paths = gas.scenario_paths(grouping, values)[:, :, 0]
        expected = np.zeros(64, dtype=np.int64)
        for k in range(1000):
            dist = [np.sum((data[:, k] - paths[:, col]) ** 2) for col in range(64)]
            expected[int(np.argmin(dist))] += 1
        self.assertTrue(np.array_equal(expected, counts))
        self.assertEqual(64, probs.size)
        self.assertAlmostEqual(1.0, np.sum(probs), delta=1e-12)

    def test_assign_probabilities_twin_scenarios(self):
        grouping = s.NodalPartition([[1, 1, 1, 1], [2, 2, 5, 5], [3, 4, 6, 7]])
        values = np.array([[0.], [1.], [2.], [2.], [-1.], [-2.], [-2.]])
        data = np.array([[0., 0., 0.], [1., -1., 0.9], [2., -2., 2.1]])
        _, counts = gas.assign_probabilities(data, grouping, values)
        self.assertTrue(np.array_equal([2, 0, 1, 0], counts))

    def test_assign_probabilities_non_finite_values(self):
        grouping = s.NodalPartition([[1, 1, 1, 1], [2, 2, 5, 5], [3, 4, 6, 7]])
        for bad in (np.inf, np.nan):
            values = np.zeros((7, 1))
            values[6, 0] = bad
            with self.assertRaises(s.FittingError) as ctx:
                _ = gas.assign_probabilities(np.zeros((3, 5)), grouping, values)
            self.assertIn("realization 0", str(ctx.exception))
            self.assertIn("scenario 3", str(ctx.exception))

    def test_node_means(self):
        paths = np.arange(12, dtype=float).reshape(3, 4, 1)
        means = gas.node_means(TestHelpers.__grouping, paths)
        self.assertTrue(np.allclose([1.5, 4.5, 8, 9, 6.5, 10, 11], means[:, 0]))


class TestNeuralGasFit(unittest.TestCase):
    __grouping = s.NodalPartition([[1, 1, 1, 1], [2, 2, 5, 5], [3, 4, 6, 7]])

    def test_single_iteration(self):
        tol = 1e-12
        grouping = TestNeuralGasFit.__grouping
        data = np.random.default_rng(5).normal(size=(3, 8))
        start = np.arange(7, dtype=float).reshape(-1, 1) / 10
        ng = s.NeuralGas(j_max=1)
        fitted = ng.fit(data, grouping, start, np.random.default_rng(11))
        k = np.random.default_rng(11).integers(8)
        x = data[:, k]
        paths = start[grouping.node_index][:, :, 0]
        dist = np.sqrt(np.sum((paths - x.reshape(-1, 1)) ** 2, axis=0))
        rank = np.argsort(np.argsort(dist, kind="stable"), kind="stable") + 1
        h = np.exp(-rank / ng.neighbourhood(1))
        for node in range(1, 8):
            old = start[node - 1, 0]
            target = x[grouping.stage_of_node(node)]
            expected = old + ng.epsilon(1) * np.mean(h[grouping.members_of_node(node)]) * (target - old)
            self.assertAlmostEqual(expected, fitted[node - 1, 0], delta=tol)

    def test_start_not_modified(self):
        data = np.random.default_rng(6).normal(size=(3, 8))
        start = np.zeros((7, 1))
        _ = s.NeuralGas(j_max=10).fit(data, TestNeuralGasFit.__grouping, start, np.random.default_rng(0))
        self.assertTrue(np.array_equal(np.zeros((7, 1)), start))

    def test_callback(self):
        data = np.random.default_rng(7).normal(size=(3, 8))
        calls = []
        _ = s.NeuralGas(j_max=50).fit(data, TestNeuralGasFit.__grouping, np.zeros((7, 1)),
                                      np.random.default_rng(0),
                                      callback=lambda j, v: calls.append((j, v.shape)), checkpoint=10)
        self.assertEqual([(10, (7, 1)), (20, (7, 1)), (30, (7, 1)), (40, (7, 1)), (50, (7, 1))], calls)

    def test_callback_cancel(self):
        data = np.random.default_rng(8).normal(size=(3, 8))
        with self.assertRaises(s.FittingError) as ctx:
            _ = s.NeuralGas(j_max=50).fit(data, TestNeuralGasFit.__grouping, np.zeros((7, 1)),
                                          np.random.default_rng(0),
                                          callback=lambda j, v: j < 20, checkpoint=10)
        self.assertIn("iteration 20", str(ctx.exception))

    def test_checkpoint_failure(self):
        data = np.random.default_rng(9).normal(size=(3, 8))
        with self.assertRaises(s.ConfigError):
            _ = s.NeuralGas(j_max=5).fit(data, TestNeuralGasFit.__grouping, np.zeros((7, 1)),
                                         np.random.default_rng(0), checkpoint=0)

    def test_non_finite_values_abort(self):
        data = np.random.default_rng(10).normal(size=(3, 8))
        start = np.zeros((7, 1))
        start[3, 0] = np.nan
        with self.assertRaises(s.FittingError) as ctx:
            _ = s.NeuralGas(j_max=5).fit(data, TestNeuralGasFit.__grouping, start, np.random.default_rng(0))
        self.assertIn("iteration 1", str(ctx.exception))


if __name__ == '__main__':
    unittest.main()
