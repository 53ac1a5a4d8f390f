"""
Base class for position estimators.

This module defines the common interface shared by the estimators that
track a single swarm element's position.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np

from swarmloc.rf.measurement_models import RangeObservation


class PositionEstimator(ABC):
    """Abstract base class for 3D position estimators."""

    def __init__(self, dim: int = 3):
        """
        Initialize position estimator.

        Args:
            dim: Dimension of the position vector.
        """
        self.dim = dim
        self.state: Optional[np.ndarray] = None
        self.covariance: Optional[np.ndarray] = None

    @abstractmethod
    def predict(self, dt: float, measured_velocity: np.ndarray, motion_model) -> None:
        """
        Perform prediction step (time update).

        Args:
            dt: Time step in seconds.
            measured_velocity: Control velocity used for propagation.
            motion_model: Model providing the process noise.
        """
        pass

    @abstractmethod
    def update(self, observation: RangeObservation) -> None:
        """
        Fold one range observation into the belief.

        Args:
            observation: Range to a reference position.
        """
        pass

    def get_estimate(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get current position estimate and covariance.

        Returns:
            Tuple of (position, covariance_matrix).
        """
        if self.state is None or self.covariance is None:
            raise RuntimeError("Estimator has no estimate yet. Call estimate() first.")
        return self.state.copy(), self.covariance.copy()
