"""
Scenario configuration for cooperative localization runs.

A scenario lists the anchors, the swarm elements (initial state, motion
noise, radio noise, particle filter settings) and the run length. Every
config class validates itself on construction so an invalid scenario fails
before the first timestep.

Scenarios round-trip through plain dictionaries and JSON files:

    >>> config = ScenarioConfig.default()
    >>> ScenarioConfig.from_dict(config.to_dict()).n_steps == config.n_steps
    True
"""

import json
import warnings
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from swarmloc.errors import ConstructionError
from swarmloc.estimators.particle_filter import ParticleFilter, ResamplingScheme
from swarmloc.models.enclosures import BoundingBox, Sphere
from swarmloc.models.motion_models import WhiteNoiseAcceleration
from swarmloc.swarm.scheduler import CooperativeLocalizer
from swarmloc.swarm.swarm_element import Anchor, SwarmElement

Vector = Tuple[float, float, float]


def _vector(value: Any, name: str) -> Vector:
    array = np.asarray(value, dtype=float)
    if array.shape != (3,) or not np.all(np.isfinite(array)):
        raise ConstructionError(f"{name} must be three finite numbers, got {value!r}")
    return tuple(float(v) for v in array)


def _positive(value: float, name: str) -> float:
    if not isinstance(value, (int, float)) or not np.isfinite(value) or value <= 0:
        raise ConstructionError(f"{name} must be a positive number, got {value!r}")
    return float(value)


@dataclass(frozen=True)
class EnclosureConfig:
    """
    Region used to seed a particle filter.

    Attributes:
        kind: 'box' or 'sphere'.
        min_corner, max_corner: Box corners (kind='box').
        radius, center: Ball radius and center (kind='sphere').
    """

    kind: str = "box"
    min_corner: Vector = (0.0, 0.0, 0.0)
    max_corner: Vector = (1.0, 1.0, 1.0)
    radius: float = 1.0
    center: Vector = (0.0, 0.0, 0.0)

    def __post_init__(self) -> None:
        if self.kind not in ("box", "sphere"):
            raise ConstructionError(f"Unknown enclosure kind: {self.kind!r}")
        object.__setattr__(self, "min_corner", _vector(self.min_corner, "min_corner"))
        object.__setattr__(self, "max_corner", _vector(self.max_corner, "max_corner"))
        object.__setattr__(self, "center", _vector(self.center, "center"))
        # Build once so bad bounds fail here rather than at filter creation
        self.build()

    def build(self):
        if self.kind == "box":
            return BoundingBox(self.min_corner, self.max_corner)
        return Sphere(self.radius, self.center)


@dataclass(frozen=True)
class AnchorConfig:
    position: Vector
    ranging_noise_std: float = 0.1
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", _vector(self.position, "anchor position"))
        object.__setattr__(
            self,
            "ranging_noise_std",
            _positive(self.ranging_noise_std, "anchor ranging_noise_std"),
        )


@dataclass(frozen=True)
class ElementConfig:
    """
    One swarm element.

    Attributes:
        name: Unique label.
        position, velocity: Initial true state.
        mean_accel, sigma_accel: White-noise acceleration parameters.
        n_particles: Particle count.
        tau: ESS ratio threshold in (0, 1].
        enclosure: Particle seeding region.
        transmission_noise_std: Noise peers see when ranging to this element.
        ranging_noise_std: Noise of this element's own ranging.
        velocity_noise_std: Noise of the velocity measurement used for
            particle prediction (may be zero).
        resampling: 'systematic' or 'systematic_unique'.
    """

    name: str
    position: Vector = (0.0, 0.0, 0.0)
    velocity: Vector = (0.0, 0.0, 0.0)
    mean_accel: Vector = (0.0, 0.0, 0.0)
    sigma_accel: Vector = (0.0, 0.0, 0.0)
    n_particles: int = 1000
    tau: float = 0.5
    enclosure: EnclosureConfig = field(default_factory=EnclosureConfig)
    transmission_noise_std: float = 0.1
    ranging_noise_std: float = 0.1
    velocity_noise_std: float = 0.0
    resampling: str = ResamplingScheme.SYSTEMATIC.value

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ConstructionError(f"Element name must be a non-empty string, got {self.name!r}")
        for attr in ("position", "velocity", "mean_accel", "sigma_accel"):
            object.__setattr__(self, attr, _vector(getattr(self, attr), attr))
        if min(self.sigma_accel) < 0:
            raise ConstructionError(f"sigma_accel must be non-negative, got {self.sigma_accel}")

        if not isinstance(self.n_particles, int) or self.n_particles < 1:
            raise ConstructionError(f"n_particles must be an integer >= 1, got {self.n_particles!r}")
        if not (0.0 < self.tau <= 1.0):
            raise ConstructionError(f"tau must be in (0, 1], got {self.tau}")
        if self.tau > 0.9:
            warnings.warn(
                f"{self.name}: tau={self.tau} resamples almost every step, "
                "which adds resampling noise.",
                UserWarning,
            )

        if isinstance(self.enclosure, dict):
            object.__setattr__(self, "enclosure", EnclosureConfig(**self.enclosure))
        _positive(self.transmission_noise_std, "transmission_noise_std")
        _positive(self.ranging_noise_std, "ranging_noise_std")
        if self.velocity_noise_std < 0:
            raise ConstructionError(
                f"velocity_noise_std must be non-negative, got {self.velocity_noise_std}"
            )
        try:
            ResamplingScheme(self.resampling)
        except ValueError:
            raise ConstructionError(f"Unknown resampling scheme: {self.resampling!r}") from None


@dataclass(frozen=True)
class ScenarioConfig:
    """
    Complete scenario.

    Attributes:
        elements: Swarm elements (at least one, unique names).
        anchors: Anchors (at least one).
        n_steps: Number of timesteps.
        dt: Time step in seconds.
        seed: Seed of the run's random generator (None for entropy).
        cooperative: Fuse peer-to-peer ranges.
    """

    elements: List[ElementConfig]
    anchors: List[AnchorConfig]
    n_steps: int = 100
    dt: float = 0.1
    seed: Optional[int] = None
    cooperative: bool = True

    def __post_init__(self) -> None:
        elements = [e if isinstance(e, ElementConfig) else _element_from_dict(e) for e in self.elements]
        anchors = [a if isinstance(a, AnchorConfig) else AnchorConfig(**a) for a in self.anchors]
        object.__setattr__(self, "elements", elements)
        object.__setattr__(self, "anchors", anchors)

        if not elements:
            raise ConstructionError("expected at least one swarm element")
        if not anchors:
            raise ConstructionError("expected at least one anchor")
        names = [e.name for e in elements]
        if len(set(names)) != len(names):
            raise ConstructionError(f"Element names must be unique, got {names}")
        if not isinstance(self.n_steps, int) or self.n_steps < 0:
            raise ConstructionError(f"n_steps must be a non-negative integer, got {self.n_steps!r}")
        _positive(self.dt, "dt")

    @classmethod
    def default(cls) -> "ScenarioConfig":
        """One moving element and four anchors (three coplanar plus one above the plane)."""
        return cls(
            elements=[
                ElementConfig(
                    name="agent_0",
                    position=(100.0, 20.0, 5.0),
                    velocity=(10.0, 0.0, 0.0),
                    mean_accel=(0.0, 0.0, 0.0),
                    sigma_accel=(1.0, 1.0, 1.0),
                    n_particles=10000,
                    tau=0.5,
                    enclosure=EnclosureConfig(kind="sphere", radius=50.0, center=(80.0, 20.0, 5.0)),
                    transmission_noise_std=0.1,
                    ranging_noise_std=0.8,
                    velocity_noise_std=0.1,
                )
            ],
            anchors=[
                AnchorConfig(position=(0.0, 0.0, 0.0), ranging_noise_std=0.4, name="anchor_0"),
                AnchorConfig(position=(0.0, 50.0, 0.0), ranging_noise_std=0.4, name="anchor_1"),
                AnchorConfig(position=(50.0, 0.0, 0.0), ranging_noise_std=0.4, name="anchor_2"),
                AnchorConfig(position=(0.0, 0.0, 30.0), ranging_noise_std=0.4, name="anchor_3"),
            ],
            n_steps=200,
            dt=0.1,
            seed=42,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScenarioConfig":
        try:
            return cls(**data)
        except TypeError as exc:
            raise ConstructionError(f"Invalid scenario: {exc}") from exc

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _element_from_dict(data: Dict[str, Any]) -> ElementConfig:
    try:
        return ElementConfig(**data)
    except TypeError as exc:
        raise ConstructionError(f"Invalid element config: {exc}") from exc


def load_scenario(path: Union[str, Path]) -> ScenarioConfig:
    """Load a scenario from a JSON file."""
    with open(path, "r") as f:
        data = json.load(f)
    return ScenarioConfig.from_dict(data)


def save_scenario(config: ScenarioConfig, path: Union[str, Path]) -> Path:
    """Write a scenario as JSON, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
    return path


def build_element(config: ElementConfig, rng: np.random.Generator) -> SwarmElement:
    motion_model = WhiteNoiseAcceleration(
        config.position, config.velocity, config.mean_accel, config.sigma_accel
    )
    particle_filter = ParticleFilter(
        config.enclosure.build(),
        config.n_particles,
        config.tau,
        rng=rng,
        scheme=ResamplingScheme(config.resampling),
    )
    return SwarmElement(
        config.name,
        motion_model,
        particle_filter,
        transmission_noise_std=config.transmission_noise_std,
        ranging_noise_std=config.ranging_noise_std,
        velocity_noise_std=config.velocity_noise_std,
    )


def build_localizer(
    config: ScenarioConfig,
    rng: Optional[np.random.Generator] = None,
    sink=None,
) -> CooperativeLocalizer:
    """
    Build a ready-to-run localizer from a scenario.

    Args:
        config: Validated scenario.
        rng: Random generator; defaults to one seeded with ``config.seed``.
        sink: Optional visualization sink.
    """
    if rng is None:
        rng = np.random.default_rng(config.seed)

    anchors = [
        Anchor(a.position, a.ranging_noise_std, name=a.name or f"anchor_{i}")
        for i, a in enumerate(config.anchors)
    ]
    elements = [build_element(e, rng) for e in config.elements]
    return CooperativeLocalizer(
        elements, anchors, rng=rng, sink=sink, cooperative=config.cooperative
    )
