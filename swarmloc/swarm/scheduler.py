"""
Cooperative localization loop.

Each timestep runs these phases, in order, over every swarm element:

    1. MOVE:      advance the ground truth motion model by dt
    2. PEERS:     for every ordered pair (i, j), i ≠ j, range from i's truth to
                  j's truth and weight i's particles against j's *estimated*
                  position (snapshot taken before any weight of this step
                  changes)
    3. ANCHORS:   range to every anchor and weight against its known position
    4. NORMALIZE: normalize every filter
    5. ESTIMATE:  recompute every posterior mean
    6. EMIT:      hand read-only snapshot commands to the visualization sink
    7. RESAMPLE + PREDICT: resample (ESS gate) and propagate particles with the
                  element's measured velocity

A filter whose weights collapse during normalization marks its element as
diverged: its estimate becomes NaN, it stops being used as a cooperative
reference and its filter is frozen. The other elements carry on.
"""

import logging
import signal
import threading
import warnings
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from swarmloc.errors import ConstructionError, DegenerateFilterError
from swarmloc.swarm.swarm_element import Anchor, SwarmElement
from swarmloc.viz.commands import snapshot_commands

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """
    Per-element history of a run.

    Index 0 of every array holds the state before the first timestep; index
    k holds the state after timestep k.

    Attributes:
        names: Element names in scheduling order.
        dt: Time step in seconds.
        true_positions: {name: (K+1, 3)} ground truth.
        estimates: {name: (K+1, 3)} posterior means (NaN once diverged).
        errors: {name: (K+1,)} ||truth - estimate||.
        ess: {name: (K+1,)} effective sample size after normalization.
        ess_after_resample: {name: (K+1,)} effective sample size after the
            resampling gate.
        resampled: {name: (K+1,)} whether the filter resampled that step.
        n_particles: {name: (K+1,)} population size after resampling.
        diverged_at: {name: step index or None}.
        steps_completed: Number of completed timesteps K.
        cancelled: True if the run was stopped by its stop event.
    """

    names: List[str]
    dt: float
    true_positions: Dict[str, np.ndarray] = field(default_factory=dict)
    estimates: Dict[str, np.ndarray] = field(default_factory=dict)
    errors: Dict[str, np.ndarray] = field(default_factory=dict)
    ess: Dict[str, np.ndarray] = field(default_factory=dict)
    ess_after_resample: Dict[str, np.ndarray] = field(default_factory=dict)
    resampled: Dict[str, np.ndarray] = field(default_factory=dict)
    n_particles: Dict[str, np.ndarray] = field(default_factory=dict)
    diverged_at: Dict[str, Optional[int]] = field(default_factory=dict)
    steps_completed: int = 0
    cancelled: bool = False

    @property
    def times(self) -> np.ndarray:
        return self.dt * np.arange(self.steps_completed + 1)

    def final_errors(self) -> Dict[str, float]:
        return {name: float(err[-1]) for name, err in self.errors.items()}


class _History:
    """Row accumulator turned into a SimulationResult at the end of a run."""

    def __init__(self, names: Sequence[str]):
        self.names = list(names)
        self.rows: Dict[str, Dict[str, list]] = {
            name: {
                "true": [],
                "est": [],
                "err": [],
                "ess": [],
                "ess_after": [],
                "resampled": [],
                "n": [],
            }
            for name in self.names
        }

    def record(
        self,
        element: SwarmElement,
        ess: float,
        ess_after: float,
        resampled: bool,
    ) -> None:
        row = self.rows[element.name]
        row["true"].append(element.true_position)
        row["est"].append(element.est_position.copy())
        row["err"].append(element.estimation_error())
        row["ess"].append(ess)
        row["ess_after"].append(ess_after)
        row["resampled"].append(resampled)
        row["n"].append(element.n_particles)

    def to_result(
        self,
        dt: float,
        steps: int,
        cancelled: bool,
        diverged_at: Dict[str, Optional[int]],
    ) -> SimulationResult:
        result = SimulationResult(
            names=self.names, dt=dt, steps_completed=steps, cancelled=cancelled
        )
        for name, row in self.rows.items():
            result.true_positions[name] = np.array(row["true"])
            result.estimates[name] = np.array(row["est"])
            result.errors[name] = np.array(row["err"])
            result.ess[name] = np.array(row["ess"])
            result.ess_after_resample[name] = np.array(row["ess_after"])
            result.resampled[name] = np.array(row["resampled"], dtype=bool)
            result.n_particles[name] = np.array(row["n"], dtype=int)
        result.diverged_at = dict(diverged_at)
        return result


class CooperativeLocalizer:
    """
    Drives the per-timestep localization loop for a swarm.

    Attributes:
        elements: Swarm elements, each owning its motion model and filter.
        anchors: Fixed anchors, shared read-only.
        rng: Random generator for truth motion, observations and filters.
        sink: Optional visualization sink; detached on first failure.
        cooperative: Whether peer-to-peer ranges are fused.
        frame: Number of completed timesteps.
    """

    def __init__(
        self,
        elements: Sequence[SwarmElement],
        anchors: Sequence[Anchor],
        rng: Optional[np.random.Generator] = None,
        sink=None,
        cooperative: bool = True,
    ):
        """
        Raises:
            ConstructionError: On an empty element or anchor list, or
                duplicate element names.
        """
        if not elements:
            raise ConstructionError("expected at least one swarm element")
        if not anchors:
            raise ConstructionError("expected at least one anchor")

        names = [e.name for e in elements]
        if len(set(names)) != len(names):
            raise ConstructionError(f"Swarm element names must be unique, got {names}")

        if len(anchors) < 3:
            warnings.warn(
                f"Only {len(anchors)} anchor(s): a 3D position is not observable "
                "from anchors alone.",
                UserWarning,
            )

        self.elements = list(elements)
        self.anchors = list(anchors)
        self.rng = rng if rng is not None else np.random.default_rng()
        self.sink = sink
        self.cooperative = cooperative
        self.frame = 0

        self._diverged_at: Dict[str, Optional[int]] = {name: None for name in names}
        self._history = _History(names)
        for element in self.elements:
            ess = element.effective_sample_size()
            self._history.record(element, ess, ess, False)

    def active_elements(self) -> List[SwarmElement]:
        """Elements whose filter has not diverged."""
        return [e for e in self.elements if not e.diverged]

    def _diverge(self, element: SwarmElement, error: DegenerateFilterError) -> None:
        element.mark_diverged(error)
        element.est_position = np.full(3, np.nan)
        self._diverged_at[element.name] = self.frame + 1
        logger.warning(
            "Particle filter of %s diverged at step %d: %s",
            element.name,
            self.frame + 1,
            element.divergence,
        )
        if not self.active_elements():
            logger.warning("Every swarm element has diverged")

    def _emit(self) -> None:
        if self.sink is None:
            return
        commands = snapshot_commands(self.frame, self.active_elements(), self.anchors)
        try:
            for command in commands:
                self.sink.send(command)
        except Exception as exc:
            logger.warning(
                "Visualization sink failed, continuing without visualization: %s", exc
            )
            self.sink = None

    def step(self, dt: float) -> None:
        """Run one complete timestep (phases 1-7)."""
        rng = self.rng
        active = self.active_elements()

        # 1. Ground truth
        for element in self.elements:
            element.move(dt, rng)

        # 2. Peer ranges against a consistent snapshot of the estimates
        if self.cooperative and len(active) > 1:
            snapshot = {e.name: e.est_position.copy() for e in active}
            for element in active:
                for peer in active:
                    if peer is element:
                        continue
                    observed, std = element.range_to_peer(peer, rng)
                    element.particle_filter.update_weight(observed, snapshot[peer.name], std)

        # 3. Anchor ranges
        for element in active:
            for anchor in self.anchors:
                observed, std = element.range_to_anchor(anchor, rng)
                element.particle_filter.update_weight(observed, anchor.position, std)

        # 4. Normalize
        for element in active:
            try:
                element.particle_filter.normalize()
            except DegenerateFilterError as exc:
                self._diverge(element, exc)
        active = [e for e in active if not e.diverged]

        # 5. Estimates
        for element in active:
            element.update_estimate()

        # 6. Snapshot for the viewer
        self._emit()

        # 7. Resample and predict
        stats = {}
        for element in active:
            pf = element.particle_filter
            ess = pf.effective_sample_size()
            resampled = pf.resample(rng)
            stats[element.name] = (ess, pf.effective_sample_size(), resampled)
            pf.predict(dt, element.measured_velocity(rng), element.motion_model, rng)

        self.frame += 1

        for element in self.elements:
            ess, ess_after, resampled = stats.get(element.name, (np.nan, np.nan, False))
            self._history.record(element, ess, ess_after, resampled)

        logger.debug(
            "step %d: errors %s",
            self.frame,
            {e.name: round(e.estimation_error(), 4) for e in active},
        )

    def run(
        self,
        n_steps: int,
        dt: float,
        stop_event: Optional[threading.Event] = None,
        progress: bool = False,
    ) -> SimulationResult:
        """
        Run ``n_steps`` timesteps.

        Cancellation is honoured between timesteps only, so no filter is ever
        left partially updated.

        Args:
            n_steps: Number of timesteps.
            dt: Time step in seconds (>= 0).
            stop_event: Optional event; when set, the run stops before the
                next timestep.
            progress: Show a tqdm progress bar.

        Returns:
            History of every timestep completed so far (including earlier
            calls to run or step on this localizer).
        """
        if n_steps < 0:
            raise ValueError(f"n_steps must be non-negative, got {n_steps}")
        if not np.isfinite(dt) or dt < 0:
            raise ValueError(f"dt must be a non-negative number, got {dt}")

        logger.info(
            "Running %d steps (dt=%.3f s) for %d element(s) and %d anchor(s)",
            n_steps,
            dt,
            len(self.elements),
            len(self.anchors),
        )

        cancelled = False
        steps = range(n_steps)
        if progress:
            steps = tqdm(steps, desc="Cooperative localization", unit="step")
        for _ in steps:
            if stop_event is not None and stop_event.is_set():
                cancelled = True
                logger.info("Run cancelled after %d steps", self.frame)
                break
            self.step(dt)

        return self._history.to_result(dt, self.frame, cancelled, self._diverged_at)

    def close(self) -> None:
        """Close the visualization sink, if any."""
        if self.sink is not None:
            self.sink.close()


@contextmanager
def stop_on_interrupt(stop_event: threading.Event):
    """
    Turn SIGINT into a request to stop between timesteps.

    While the context is active, Ctrl-C sets ``stop_event`` instead of
    raising KeyboardInterrupt in the middle of a step. The previous handler
    is restored on exit. Must be entered from the main thread.

    Example:
        >>> stop = threading.Event()
        >>> with stop_on_interrupt(stop):
        ...     result = localizer.run(600, 0.1, stop_event=stop)
    """

    def handler(signum, frame):
        logger.warning("Interrupt received, stopping after the current timestep")
        stop_event.set()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield stop_event
    finally:
        signal.signal(signal.SIGINT, previous)
