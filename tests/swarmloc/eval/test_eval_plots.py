"""
Smoke tests for run plots (swarmloc/eval/plots.py).
"""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pytest

from swarmloc.eval.plots import (
    plot_ess,
    plot_estimation_error,
    plot_trajectory_3d,
    save_figure,
)
from swarmloc.swarm.scheduler import SimulationResult


@pytest.fixture
def result():
    steps = 4
    res = SimulationResult(names=["a", "b"], dt=0.5, steps_completed=steps)
    for k, name in enumerate(res.names):
        truth = np.column_stack([np.arange(steps + 1.0), np.full(steps + 1, k), np.zeros(steps + 1)])
        res.true_positions[name] = truth
        res.estimates[name] = truth + 0.1
        res.errors[name] = np.full(steps + 1, np.sqrt(0.03))
        res.ess[name] = np.array([100.0, 20.0, 90.0, 40.0, 95.0])
        res.n_particles[name] = np.full(steps + 1, 100)
        res.resampled[name] = np.array([False, True, False, True, False])
        res.diverged_at[name] = None
    # Divergence of b: NaN estimates from step 3
    res.estimates["b"][3:] = np.nan
    res.errors["b"][3:] = np.nan
    res.diverged_at["b"] = 3
    return res


def test_figures(result, tmp_path):
    figures = {
        "trajectories": plot_trajectory_3d(result, anchors=np.eye(3)),
        "errors": plot_estimation_error(result),
        "ess": plot_ess(result, tau=0.5),
    }

    for name, fig in figures.items():
        paths = save_figure(fig, tmp_path / "figs", name, formats=("png", "svg"))
        assert [p.suffix for p in paths] == [".png", ".svg"]
        assert all(p.exists() for p in paths)
        plt.close(fig)
