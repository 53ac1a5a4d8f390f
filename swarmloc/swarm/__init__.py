"""
Swarm elements, the cooperative localization loop and scenario building.
"""

from swarmloc.swarm.swarm_element import Anchor, SwarmElement
from swarmloc.swarm.scheduler import CooperativeLocalizer, SimulationResult, stop_on_interrupt
from swarmloc.swarm.scenario import (
    AnchorConfig,
    ElementConfig,
    EnclosureConfig,
    ScenarioConfig,
    build_element,
    build_localizer,
    load_scenario,
    save_scenario,
)

__all__ = [
    "Anchor",
    "SwarmElement",
    "CooperativeLocalizer",
    "SimulationResult",
    "stop_on_interrupt",
    "AnchorConfig",
    "ElementConfig",
    "EnclosureConfig",
    "ScenarioConfig",
    "build_element",
    "build_localizer",
    "load_scenario",
    "save_scenario",
]
