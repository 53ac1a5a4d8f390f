"""
Plots for swarm localization runs.

All functions return matplotlib Figure objects for flexible display/saving.
"""

from pathlib import Path
from typing import List, Optional, Tuple, Union

import matplotlib.pyplot as plt
import numpy as np

COLORS = ["blue", "red", "green", "orange", "purple", "brown"]


def plot_trajectory_3d(
    result,
    anchors: Optional[np.ndarray] = None,
    title: str = "Swarm Trajectories",
) -> plt.Figure:
    """
    Plot true and estimated 3D trajectories of every element.

    Args:
        result: SimulationResult
        anchors: Anchor positions, shape (M, 3) (optional)
        title: Plot title

    Returns:
        fig: Matplotlib figure
    """
    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection="3d")

    for i, name in enumerate(result.names):
        color = COLORS[i % len(COLORS)]
        truth = result.true_positions[name]
        est = result.estimates[name]
        ax.plot(truth[:, 0], truth[:, 1], truth[:, 2], "-", color=color,
                linewidth=2, label=f"{name} truth")
        ax.plot(est[:, 0], est[:, 1], est[:, 2], "--", color=color,
                linewidth=1.2, alpha=0.7, label=f"{name} estimate")
        ax.scatter(*truth[0], color=color, marker="o", s=40)

    if anchors is not None and len(anchors):
        anchors = np.asarray(anchors, dtype=float)
        ax.scatter(anchors[:, 0], anchors[:, 1], anchors[:, 2],
                   marker="s", color="black", s=60, label="Anchors")

    ax.set_xlabel("X (m)")
    ax.set_ylabel("Y (m)")
    ax.set_zlabel("Z (m)")
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=9)

    plt.tight_layout()
    return fig


def plot_estimation_error(result, title: str = "Estimation Error vs Time") -> plt.Figure:
    """Plot ||truth - estimate|| over time for every element."""
    fig, ax = plt.subplots(figsize=(10, 5))
    t = result.times

    for i, name in enumerate(result.names):
        ax.plot(t, result.errors[name], color=COLORS[i % len(COLORS)],
                linewidth=1.5, label=name)
        diverged = result.diverged_at.get(name)
        if diverged is not None:
            ax.axvline(diverged * result.dt, color=COLORS[i % len(COLORS)],
                       linestyle=":", label=f"{name} diverged")

    ax.set_xlabel("Time (s)", fontsize=12)
    ax.set_ylabel("Error (m)", fontsize=12)
    ax.set_yscale("log")
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def plot_ess(result, tau: Optional[float] = None, title: str = "Effective Sample Size") -> plt.Figure:
    """
    Plot ESS / N after normalization, marking resampling steps.

    Args:
        result: SimulationResult
        tau: Resampling threshold to draw as a horizontal line (optional)
        title: Plot title
    """
    fig, ax = plt.subplots(figsize=(10, 5))
    t = result.times

    for i, name in enumerate(result.names):
        color = COLORS[i % len(COLORS)]
        ratio = result.ess[name] / np.maximum(result.n_particles[name], 1)
        ax.plot(t, ratio, color=color, linewidth=1.2, label=name)
        mask = result.resampled[name]
        ax.plot(t[mask], ratio[mask], "v", color=color, markersize=5)

    if tau is not None:
        ax.axhline(tau, color="black", linestyle="--", label=f"tau = {tau}")

    ax.set_xlabel("Time (s)", fontsize=12)
    ax.set_ylabel("ESS / N", fontsize=12)
    ax.set_ylim(0.0, 1.05)
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.legend(fontsize=10)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def save_figure(
    fig: plt.Figure,
    out_dir: Union[str, Path],
    name: str,
    formats: Tuple[str, ...] = ("png",),
) -> List[Path]:
    """
    Save figure in one or more formats.

    Args:
        fig: Matplotlib figure to save
        out_dir: Output directory
        name: Base filename (without extension)
        formats: Tuple of format extensions

    Returns:
        paths: List of saved file paths
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = []
    for fmt in formats:
        filepath = out_dir / f"{name}.{fmt}"
        fig.savefig(filepath, dpi=150, bbox_inches="tight")
        paths.append(filepath)

    return paths
