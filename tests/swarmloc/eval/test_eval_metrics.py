"""
Unit tests for evaluation metrics (swarmloc/eval/metrics.py).
"""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from swarmloc.eval.metrics import (
    compute_error_stats,
    compute_position_errors,
    compute_rmse,
    summarize_result,
)
from swarmloc.swarm.scheduler import SimulationResult


class TestPositionErrors(unittest.TestCase):
    def test_difference(self):
        truth = np.array([[0.0, 0.0, 0.0], [1.0, 1.0, 1.0]])
        est = np.array([[0.1, 0.0, 0.0], [1.0, 0.8, 1.0]])
        assert_allclose(compute_position_errors(truth, est), [[0.1, 0.0, 0.0], [0.0, -0.2, 0.0]])

    def test_shape_mismatch(self):
        with self.assertRaises(ValueError):
            compute_position_errors(np.zeros((3, 3)), np.zeros((2, 3)))


class TestRmse(unittest.TestCase):
    def test_position_rmse(self):
        errors = np.array([[3.0, 4.0, 0.0], [0.0, 0.0, 0.0]])
        self.assertAlmostEqual(compute_rmse(errors), np.sqrt(12.5))

    def test_per_axis_rmse(self):
        errors = np.array([[1.0, 2.0, 0.0], [-1.0, 2.0, 0.0]])
        assert_allclose(compute_rmse(errors, axis=0), [1.0, 2.0, 0.0])

    def test_skips_nan(self):
        errors = np.array([1.0, np.nan, 1.0])
        self.assertAlmostEqual(compute_rmse(errors), 1.0)

    def test_all_nan(self):
        self.assertTrue(np.isnan(compute_rmse(np.array([np.nan, np.nan]))))


class TestErrorStats(unittest.TestCase):
    def test_magnitudes(self):
        stats = compute_error_stats(np.array([1.0, 2.0, 3.0, 4.0]))

        self.assertAlmostEqual(stats["mean"], 2.5)
        self.assertAlmostEqual(stats["median"], 2.5)
        self.assertAlmostEqual(stats["max"], 4.0)
        self.assertAlmostEqual(stats["rmse"], np.sqrt(7.5))
        self.assertEqual(stats["valid"], 4)

    def test_vectors(self):
        stats = compute_error_stats(np.array([[3.0, 4.0, 0.0], [0.0, 0.0, 1.0]]))
        self.assertAlmostEqual(stats["max"], 5.0)
        self.assertAlmostEqual(stats["mean"], 3.0)

    def test_nan_samples_ignored(self):
        stats = compute_error_stats(np.array([1.0, np.nan, 3.0]))
        self.assertEqual(stats["valid"], 2)
        self.assertAlmostEqual(stats["mean"], 2.0)

    def test_no_valid_samples(self):
        stats = compute_error_stats(np.array([np.nan]))
        self.assertEqual(stats["valid"], 0)
        self.assertTrue(np.isnan(stats["mean"]))


class TestSummarizeResult(unittest.TestCase):
    def test_summary(self):
        result = SimulationResult(names=["a"], dt=0.1, steps_completed=4)
        result.errors["a"] = np.array([5.0, 1.0, 1.0, 1.0, 1.0])
        result.resampled["a"] = np.array([False, True, False, True, True])

        summary = summarize_result(result, skip_steps=1)

        self.assertAlmostEqual(summary["a"]["mean"], 1.0)
        self.assertEqual(summary["a"]["valid"], 4)
        self.assertAlmostEqual(summary["a"]["resample_rate"], 0.75)


if __name__ == "__main__":
    unittest.main()
