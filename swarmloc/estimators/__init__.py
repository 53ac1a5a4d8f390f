"""
Position estimators for swarm elements.

Available estimators:
    - Particle Filter (PF) with systematic resampling
"""

from swarmloc.estimators.base import PositionEstimator
from swarmloc.estimators.particle_filter import (
    ParticleFilter,
    ResamplingScheme,
    systematic_resample,
)

__all__ = [
    "PositionEstimator",
    "ParticleFilter",
    "ResamplingScheme",
    "systematic_resample",
]
