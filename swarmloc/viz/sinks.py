"""
Visualization sinks.

A sink receives the immutable commands built by ``snapshot_commands``. The
localizer treats every sink as fire-and-forget: a failing sink is logged and
detached, the estimation loop keeps running.

Sinks:
    RecordingSink: keeps every command in memory
    QueuedSink: forwards commands to a consumer callable on a worker thread
        through a bounded queue
"""

import logging
import queue
import threading
from typing import Callable, List, Optional, Protocol, runtime_checkable

from swarmloc.errors import VisualizationSinkError

logger = logging.getLogger(__name__)

_STOP = object()


@runtime_checkable
class VisualizationSink(Protocol):
    """Receiver of visualization commands."""

    def send(self, command: object) -> None:
        ...

    def close(self) -> None:
        ...


class RecordingSink:
    """Stores commands in order of arrival."""

    def __init__(self):
        self.commands: List[object] = []
        self.closed = False

    def send(self, command: object) -> None:
        if self.closed:
            raise VisualizationSinkError("RecordingSink is closed")
        self.commands.append(command)

    def close(self) -> None:
        self.closed = True

    def of_type(self, command_type: type) -> List[object]:
        """Commands that are instances of ``command_type``."""
        return [c for c in self.commands if isinstance(c, command_type)]

    def paths(self) -> List[str]:
        """Distinct entity paths in first-seen order."""
        seen = {}
        for c in self.commands:
            path = getattr(c, "path", None)
            if path is not None:
                seen.setdefault(path, None)
        return list(seen)


class QueuedSink:
    """
    Bounded-queue sink drained by a background thread.

    ``send`` blocks while the queue is full (backpressure on the producer).
    If the consumer raises, the failure is logged once, the sink is marked
    unavailable and every later command is dropped.

    Example:
        >>> received = []
        >>> sink = QueuedSink(received.append, maxsize=10)
        >>> sink.send("cmd")
        >>> sink.close()
        >>> received
        ['cmd']
    """

    def __init__(
        self,
        consumer: Callable[[object], None],
        maxsize: int = 100,
        name: str = "visualization-sink",
    ):
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")

        self._consumer = consumer
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._closed = False
        self.error: Optional[VisualizationSinkError] = None
        self.dropped = 0

        self._thread = threading.Thread(target=self._drain, name=name, daemon=True)
        self._thread.start()

    @property
    def available(self) -> bool:
        return self.error is None and not self._closed

    def _drain(self) -> None:
        while True:
            command = self._queue.get()
            try:
                if command is _STOP:
                    return
                if self.error is not None:
                    self.dropped += 1
                    continue
                try:
                    self._consumer(command)
                except Exception as exc:
                    self.error = VisualizationSinkError(
                        f"Visualization consumer failed on {type(command).__name__}: {exc}"
                    )
                    self.error.__cause__ = exc
                    logger.warning(
                        "Visualization sink unavailable, dropping further commands: %s",
                        exc,
                    )
            finally:
                self._queue.task_done()

    def send(self, command: object) -> None:
        """
        Enqueue one command.

        Raises:
            VisualizationSinkError: If the sink was closed.
        """
        if self._closed:
            raise VisualizationSinkError("QueuedSink is closed")
        if self.error is not None:
            self.dropped += 1
            return
        self._queue.put(command)

    def flush(self) -> None:
        """Block until every queued command has been handled."""
        self._queue.join()

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """
        Drain the queue and stop the worker thread.

        Waits at most ``timeout`` seconds to enqueue the stop marker and the
        same again for the worker to finish. A worker stuck in its consumer
        is abandoned with a warning; it is a daemon thread.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put(_STOP, timeout=timeout)
        except queue.Full:
            logger.warning(
                "Visualization queue still full after %s s, abandoning worker", timeout
            )
            return
        self._thread.join(timeout)
        if self._thread.is_alive():
            logger.warning("Visualization worker did not stop within %s s", timeout)
