"""Cooperative particle-filter localization for swarms.

This package contains the components of the localization engine:
- models: Motion models and particle seeding regions
- rf: Ranging measurement and likelihood models
- estimators: Particle filter
- swarm: Swarm elements, anchors, the cooperative loop and scenarios
- viz: Visualization command stream and sinks
- eval: Metrics and plots
"""

__version__ = "0.1.0"
