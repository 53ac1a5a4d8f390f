"""
Ranging measurement models.

Synthesizes noisy range observations between points and evaluates the
Gaussian likelihood of an observed range given a hypothesized distance.
"""

from swarmloc.rf.measurement_models import (
    RangeObservation,
    combined_std,
    predicted_ranges,
    range_likelihood,
    range_log_likelihood,
    range_measurement,
    true_range,
)

__all__ = [
    "RangeObservation",
    "combined_std",
    "predicted_ranges",
    "range_likelihood",
    "range_log_likelihood",
    "range_measurement",
    "true_range",
]
