"""
Visualization command stream.

Immutable commands describing each completed timestep, and the sinks that
forward them to an external viewer.
"""

from swarmloc.viz.commands import (
    LogLineSegment,
    LogPoints,
    LogScalar,
    SetFrame,
    snapshot_commands,
    weight_radii,
)
from swarmloc.viz.sinks import QueuedSink, RecordingSink, VisualizationSink

__all__ = [
    "SetFrame",
    "LogPoints",
    "LogLineSegment",
    "LogScalar",
    "snapshot_commands",
    "weight_radii",
    "VisualizationSink",
    "RecordingSink",
    "QueuedSink",
]
