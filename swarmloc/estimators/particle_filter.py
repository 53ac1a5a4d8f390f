"""
Particle filter for range-based 3D position estimation.

Represents one swarm element's belief over its own position with a weighted
particle population and implements the SIR cycle:

    1. INITIALIZE: draw N positions from an enclosure, weights 1/N
    2. PREDICT:    x_k^(i) = f(x_{k-1}^(i), v_measured, dt) + process noise
    3. WEIGHT:     log w_k^(i) += -½ (z - ||x_k^(i) - r||)² / σ²,
                   once per observation (anchor or peer)
    4. NORMALIZE:  log w_k^(i) -= logsumexp_j(log w_k^(j))
    5. RESAMPLE:   systematic resampling when N_eff / N < tau
    6. ESTIMATE:   x̂ = Σ w^(i) x^(i)

Weights are accumulated in log space, so a batch of tight observations
ranks the particles correctly even where every linear product would
underflow to 0.0. The filter is degenerate only when the log weight sum is
-inf or NaN.

Every per-particle phase is a vectorized array operation over the whole
population; no particle reads another particle's updated value.
"""

from enum import Enum
from typing import Optional, Tuple

import numpy as np
from scipy.special import logsumexp

from swarmloc.errors import ConstructionError, DegenerateFilterError
from swarmloc.estimators.base import PositionEstimator
from swarmloc.rf.measurement_models import (
    RangeObservation,
    predicted_ranges,
    range_log_likelihood,
)


class ResamplingScheme(Enum):
    """Resampling variants.

    Attributes:
        SYSTEMATIC: Standard systematic resampling. Particles selected by
            several draw points are duplicated, so the population size is
            preserved.
        SYSTEMATIC_UNIQUE: Systematic draw points, but every selected index
            is kept once. The population shrinks whenever the weights are
            concentrated.
    """

    SYSTEMATIC = "systematic"
    SYSTEMATIC_UNIQUE = "systematic_unique"


def systematic_resample(
    weights: np.ndarray,
    rng: Optional[np.random.Generator] = None,
    unique: bool = False,
) -> np.ndarray:
    """
    Select particle indices by systematic resampling.

    One offset u0 ~ U[0, 1/N) is drawn and the N draw points u0 + j/N are
    matched against the cumulative weight curve. Each draw point selects the
    first particle whose cumulative weight exceeds it, so zero-weight
    particles are never selected. The last cumulative entry is forced to 1.0
    to absorb floating point drift.

    Args:
        weights: Normalized weights, shape (N,).
        rng: Random generator for the offset.
        unique: Keep each selected index once (population may shrink).

    Returns:
        Selected indices, shape (N,) or (M,) with M <= N when unique.

    Example:
        >>> systematic_resample(np.array([0.0, 1.0, 0.0]), np.random.default_rng(0))
        array([1, 1, 1])
    """
    if rng is None:
        rng = np.random.default_rng()

    weights = np.asarray(weights, dtype=float)
    n = weights.shape[0]

    cumsum = np.cumsum(weights)
    cumsum[-1] = 1.0

    u0 = rng.uniform(0.0, 1.0 / n)
    draw_points = u0 + np.arange(n) / n

    indices = np.searchsorted(cumsum, draw_points, side="right")
    np.minimum(indices, n - 1, out=indices)

    if unique:
        indices = np.unique(indices)
    return indices


class ParticleFilter(PositionEstimator):
    """
    Particle filter over one swarm element's 3D position.

    Attributes:
        particles: Particle positions, shape (n_particles, 3)
        log_weights: Natural log of the particle weights, shape (n_particles,)
        weights: Linear weights exp(log_weights), shape (n_particles,)
        tau: Resampling threshold; resample when N_eff / N < tau
        nominal_n_particles: Population size requested at construction
        scheme: Resampling variant
        state: Posterior mean after the last estimate()
        covariance: Posterior covariance after the last estimate()
    """

    def __init__(
        self,
        enclosure,
        n_particles: int,
        tau: float = 0.5,
        rng: Optional[np.random.Generator] = None,
        scheme: ResamplingScheme = ResamplingScheme.SYSTEMATIC,
    ):
        """
        Initialize particles uniformly over an enclosure.

        Args:
            enclosure: Region with sample_many(n, rng) (BoundingBox, Sphere).
            n_particles: Number of particles N.
            tau: Effective sample size ratio threshold in (0, 1].
            rng: Random generator used by all stochastic operations unless
                a call overrides it.
            scheme: Resampling variant.

        Raises:
            ConstructionError: If n_particles < 1 or tau is outside (0, 1].
        """
        super().__init__(dim=3)

        if int(n_particles) != n_particles or n_particles < 1:
            raise ConstructionError(f"n_particles must be an integer >= 1, got {n_particles}")
        if not (0.0 < tau <= 1.0):
            raise ConstructionError(f"tau must be in (0, 1], got {tau}")

        self.rng = rng if rng is not None else np.random.default_rng()
        self.tau = float(tau)
        self.scheme = ResamplingScheme(scheme)
        self.nominal_n_particles = int(n_particles)

        self.particles = np.asarray(
            enclosure.sample_many(self.nominal_n_particles, self.rng), dtype=float
        )
        self.log_weights = np.full(self.nominal_n_particles, -np.log(self.nominal_n_particles))

        self.estimate()

    @property
    def n_particles(self) -> int:
        """Current population size."""
        return self.particles.shape[0]

    @property
    def weights(self) -> np.ndarray:
        """Linear weights, recomputed from log_weights on every access."""
        return np.exp(self.log_weights)

    @weights.setter
    def weights(self, weights: np.ndarray) -> None:
        # Zero weights become -inf
        with np.errstate(divide="ignore"):
            self.log_weights = np.log(np.asarray(weights, dtype=float))

    def _log_weight_sum(self) -> float:
        total = float(logsumexp(self.log_weights))
        if not np.isfinite(total):
            raise DegenerateFilterError(float(np.exp(total)))
        return total

    def predict(
        self,
        dt: float,
        measured_velocity: np.ndarray,
        motion_model,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        """
        Propagate every particle through the motion model.

        All particles share the measured velocity as control input and each
        receives an independent process noise draw.

        Args:
            dt: Time step in seconds.
            measured_velocity: Noisy velocity measurement, shape (3,).
            motion_model: Object with predict_many(dt, positions, velocity, rng).
            rng: Optional override of the filter's generator.
        """
        rng = rng if rng is not None else self.rng
        self.particles = motion_model.predict_many(
            dt, self.particles, np.asarray(measured_velocity, dtype=float), rng
        )

    def update_weight(
        self, observed_range: float, reference_position: np.ndarray, sigma: float
    ) -> None:
        """
        Add the log-likelihood of one range observation to every log weight.

        Weights are left unnormalized so several observations can be
        accumulated before a single normalize().

        Args:
            observed_range: Observed range z in meters.
            reference_position: Point the range was measured to, shape (3,).
            sigma: Noise standard deviation in meters.
        """
        if not sigma > 0:
            raise ValueError(f"sigma must be positive, got {sigma}")
        ranges = predicted_ranges(self.particles, reference_position)
        self.log_weights = self.log_weights + range_log_likelihood(observed_range, ranges, sigma)

    def update(self, observation: RangeObservation) -> None:
        """Apply one RangeObservation (see update_weight)."""
        self.update_weight(observation.range, observation.reference, observation.std)

    def normalize(self) -> None:
        """
        Scale weights to sum to one.

        Raises:
            DegenerateFilterError: If the log weight sum is -inf (every
                weight is exactly zero) or not finite.
        """
        self.log_weights = self.log_weights - self._log_weight_sum()

    def effective_sample_size(self) -> float:
        """
        Compute effective sample size.

        N_eff = 1 / Σ(wᵢ²)

        Returns:
            Effective sample size (assumes normalized weights).
        """
        return 1.0 / np.sum(self.weights**2)

    def needs_resample(self) -> bool:
        """True when N_eff / N is strictly below tau."""
        return self.effective_sample_size() / self.n_particles < self.tau

    def resample(self, rng: Optional[np.random.Generator] = None) -> bool:
        """
        Resample if the effective sample size gate demands it.

        Selected particles are copied into the new generation and all
        weights are reset to uniform.

        Args:
            rng: Optional override of the filter's generator.

        Returns:
            True if the population was resampled, False if it was retained.
        """
        if not self.needs_resample():
            return False

        rng = rng if rng is not None else self.rng
        indices = systematic_resample(
            self.weights, rng, unique=self.scheme is ResamplingScheme.SYSTEMATIC_UNIQUE
        )
        self.particles = self.particles[indices].copy()
        self.log_weights = np.full(self.n_particles, -np.log(self.n_particles))
        return True

    def posterior_mean(self) -> np.ndarray:
        """
        Weighted mean of particle positions.

        Raises:
            DegenerateFilterError: If the weights cannot be normalized.
        """
        w = np.exp(self.log_weights - self._log_weight_sum())
        # x̂ = Σ wᵢ xᵢ
        return w @ self.particles

    def posterior_covariance(self) -> np.ndarray:
        """Weighted covariance P = Σ wᵢ (xᵢ - x̂)(xᵢ - x̂)ᵀ."""
        mean = self.posterior_mean()
        w = np.exp(self.log_weights - self._log_weight_sum())
        diff = self.particles - mean
        return (w[:, np.newaxis] * diff).T @ diff

    def estimate(self) -> np.ndarray:
        """
        Recompute and store the posterior mean and covariance.

        Returns:
            Posterior mean, shape (3,).
        """
        self.state = self.posterior_mean()
        self.covariance = self.posterior_covariance()
        return self.state.copy()

    def get_particles(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get current particles and weights.

        Returns:
            Tuple of (particles, weights).
                - particles: (n_particles, 3)
                - weights: (n_particles,)
        """
        return self.particles.copy(), self.weights
