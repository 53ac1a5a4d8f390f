"""
Evaluation and Visualization Module.

Modules:
    metrics: Error metrics (RMSE, error statistics, run summaries)
    plots: Trajectory, error and ESS figures
"""

from .metrics import (
    compute_error_stats,
    compute_position_errors,
    compute_rmse,
    summarize_result,
)
from .plots import (
    plot_ess,
    plot_estimation_error,
    plot_trajectory_3d,
    save_figure,
)

__all__ = [
    # Metrics
    "compute_position_errors",
    "compute_rmse",
    "compute_error_stats",
    "summarize_result",
    # Plots
    "plot_trajectory_3d",
    "plot_estimation_error",
    "plot_ess",
    "save_figure",
]
