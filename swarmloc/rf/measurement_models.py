"""
Ranging measurement models for cooperative localization.

A range observation between two physical points is the Euclidean distance
corrupted by additive zero-mean Gaussian noise:

    d̃ = ||p_a - p_b|| + ω,    ω ~ N(0, σ²)

When two independent noise sources contribute (an element's own ranging
noise and the noise of the anchor or peer it ranges to), their variances add:

    σ = sqrt(σ_a² + σ_b²)

The same σ is used to synthesize an observation and to evaluate its
likelihood, so the filter's noise model matches the generative one.
"""

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from swarmloc.errors import ConstructionError


def combined_std(*stds: float) -> float:
    """
    Combine independent Gaussian noise sources.

    Args:
        *stds: Standard deviations of the contributing sources.

    Returns:
        sqrt(sum of variances).

    Raises:
        ConstructionError: If no value is given or any value is not positive.

    Example:
        >>> combined_std(3.0, 4.0)
        5.0
    """
    if not stds:
        raise ConstructionError("combined_std needs at least one standard deviation")
    values = np.asarray(stds, dtype=float)
    if np.any(~np.isfinite(values)) or np.any(values <= 0):
        raise ConstructionError(
            f"Noise standard deviations must be positive, got {values.tolist()}"
        )
    return float(np.sqrt(np.sum(values**2)))


def true_range(a_position: np.ndarray, b_position: np.ndarray) -> float:
    """Noise-free Euclidean distance between two points."""
    a_position = np.asarray(a_position, dtype=float)
    b_position = np.asarray(b_position, dtype=float)
    return float(np.linalg.norm(a_position - b_position))


def range_measurement(
    a_position: np.ndarray,
    b_position: np.ndarray,
    std: float,
    rng: Optional[np.random.Generator] = None,
) -> float:
    """
    Simulate a noisy range observation.

    Args:
        a_position: First point [x, y, z] in meters.
        b_position: Second point [x, y, z] in meters.
        std: Noise standard deviation in meters (use combined_std for
             multiple sources).
        rng: Random generator (defaults to a fresh one).

    Returns:
        ||a - b|| + N(0, std²) in meters.

    Example:
        >>> anchor = np.array([0.0, 0.0, 0.0])
        >>> agent = np.array([3.0, 4.0, 0.0])
        >>> d = range_measurement(anchor, agent, 0.1, np.random.default_rng(1))
        >>> abs(d - 5.0) < 1.0
        True
    """
    if rng is None:
        rng = np.random.default_rng()
    return true_range(a_position, b_position) + float(rng.normal(0.0, std))


def predicted_ranges(positions: np.ndarray, reference: np.ndarray) -> np.ndarray:
    """
    Distances from each of many hypothesized positions to one reference.

    Args:
        positions: Hypothesized positions, shape (N, 3).
        reference: Reference point, shape (3,).

    Returns:
        Ranges, shape (N,).
    """
    positions = np.asarray(positions, dtype=float)
    reference = np.asarray(reference, dtype=float)
    return np.linalg.norm(positions - reference, axis=1)


def range_log_likelihood(
    observed: float,
    predicted: Union[float, np.ndarray],
    std: float,
) -> Union[float, np.ndarray]:
    """
    Unnormalized Gaussian log-likelihood of an observed range.

        log p(z | d) = -½ (z - d)² / σ²

    The normalizing constant is dropped since it cancels when particle
    weights are normalized.
    """
    err = observed - np.asarray(predicted, dtype=float)
    return -0.5 * err**2 / std**2


def range_likelihood(
    observed: float,
    predicted: Union[float, np.ndarray],
    std: float,
) -> Union[float, np.ndarray]:
    """
    Unnormalized Gaussian likelihood exp(-½ (z - d)² / σ²).

    Args:
        observed: Observed range z in meters.
        predicted: Hypothesized distance(s) d in meters.
        std: Noise standard deviation σ in meters.

    Returns:
        Likelihood value(s) in [0, 1]; 1 when the residual is zero.
    """
    return np.exp(range_log_likelihood(observed, predicted, std))


@dataclass(frozen=True)
class RangeObservation:
    """
    One range observation to a known (or believed) reference position.

    Attributes:
        range: Observed range in meters.
        reference: Reference position [x, y, z] the range was measured to.
                   An anchor's true position, or a peer's estimated position.
        std: Standard deviation used for the likelihood (meters).
        source: Identifier of the reference (anchor index or peer name).
    """

    range: float
    reference: np.ndarray
    std: float
    source: str = ""

    def __post_init__(self) -> None:
        reference = np.asarray(self.reference, dtype=float)
        if reference.shape != (3,):
            raise ConstructionError(
                f"Reference must be a 3D point, got shape {reference.shape}"
            )
        object.__setattr__(self, "reference", reference)

        if not np.isfinite(self.std) or self.std <= 0:
            raise ConstructionError(f"Observation std must be positive, got {self.std}")
