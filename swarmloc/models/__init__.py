"""
Motion models and sampling regions.

This module provides the kinematic models that drive both the ground truth
of each swarm element and the propagation of its particles, together with
the enclosures used to seed particle populations.
"""

from .enclosures import (
    BoundingBox,
    Enclosure,
    Sphere,
)

from .motion_models import (
    ConstantVelocity3D,
    MotionModel,
    WhiteNoiseAcceleration,
)

__all__ = [
    # Enclosures
    'Enclosure',
    'BoundingBox',
    'Sphere',

    # Motion models
    'MotionModel',
    'WhiteNoiseAcceleration',
    'ConstantVelocity3D',
]
