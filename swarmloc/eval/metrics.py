"""
Evaluation metrics for swarm localization runs.

Error metrics ignore samples where an estimate is invalid (NaN), which is how
a diverged element's estimate is recorded.
"""

from typing import Dict, Optional, Union

import numpy as np


def compute_position_errors(truth: np.ndarray, estimated: np.ndarray) -> np.ndarray:
    """
    Compute position error vectors (estimate minus truth).

    Args:
        truth: True positions, shape (N, 3)
        estimated: Estimated positions, shape (N, 3)

    Returns:
        errors: Error vectors, shape (N, 3)

    Raises:
        ValueError: If inputs have incompatible shapes
    """
    truth = np.asarray(truth, dtype=float)
    estimated = np.asarray(estimated, dtype=float)

    if truth.shape != estimated.shape:
        raise ValueError(
            f"Shape mismatch: truth {truth.shape} vs estimated {estimated.shape}"
        )

    return estimated - truth


def compute_rmse(errors: np.ndarray, axis: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Root mean square of error vectors, skipping NaN samples.

    Args:
        errors: Error vectors, shape (N, 3), or error magnitudes, shape (N,)
        axis: None for the 3D position RMSE (sqrt of mean squared norm),
              0 for per-axis RMSE

    Returns:
        rmse: RMSE value(s); NaN if no valid sample exists
    """
    errors = np.asarray(errors, dtype=float)

    if axis is None:
        if errors.ndim > 1:
            squared = np.sum(errors**2, axis=1)
        else:
            squared = errors**2
        valid = squared[np.isfinite(squared)]
        return float(np.sqrt(np.mean(valid))) if valid.size else float("nan")

    with np.errstate(invalid="ignore"):
        return np.sqrt(np.nanmean(errors**2, axis=axis))


def compute_error_stats(errors: np.ndarray) -> Dict[str, float]:
    """
    Summary statistics of error magnitudes.

    Args:
        errors: Error vectors, shape (N, 3), or magnitudes, shape (N,)

    Returns:
        stats: Dictionary with keys 'mean', 'median', 'std', 'rmse', 'p90',
               'max' and 'valid' (number of finite samples)
    """
    errors = np.asarray(errors, dtype=float)

    if errors.ndim > 1:
        magnitudes = np.linalg.norm(errors, axis=1)
    else:
        magnitudes = np.abs(errors)
    magnitudes = magnitudes[np.isfinite(magnitudes)]

    if magnitudes.size == 0:
        nan = float("nan")
        return {"mean": nan, "median": nan, "std": nan, "rmse": nan,
                "p90": nan, "max": nan, "valid": 0}

    return {
        "mean": float(np.mean(magnitudes)),
        "median": float(np.median(magnitudes)),
        "std": float(np.std(magnitudes)),
        "rmse": float(np.sqrt(np.mean(magnitudes**2))),
        "p90": float(np.percentile(magnitudes, 90)),
        "max": float(np.max(magnitudes)),
        "valid": int(magnitudes.size),
    }


def summarize_result(result, skip_steps: int = 0) -> Dict[str, Dict[str, float]]:
    """
    Error statistics per element of a SimulationResult.

    Args:
        result: SimulationResult from CooperativeLocalizer.run
        skip_steps: Leading samples to ignore (filter convergence)

    Returns:
        {element name: compute_error_stats(...) plus 'resample_rate'}
    """
    summary = {}
    for name in result.names:
        stats = compute_error_stats(result.errors[name][skip_steps:])
        resampled = result.resampled[name][1:]
        stats["resample_rate"] = float(np.mean(resampled)) if resampled.size else 0.0
        summary[name] = stats
    return summary
