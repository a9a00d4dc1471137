"""Background fit loop exposed as an iterable event stream."""

from __future__ import annotations

import logging
import queue
import threading
from typing import TYPE_CHECKING, Iterator, List, Optional, Sequence

from ..core.types import TERMINAL_EVENTS, Array, FitEvent, FitFailed, FitParams

if TYPE_CHECKING:  # pragma: no cover
    from .network import Network

logger = logging.getLogger(__name__)


class FitStream:
    """Events of one :meth:`Network.fit` run.

    The training loop runs on a worker thread and pushes events into an
    unbounded queue, so it never waits for the consumer.  Iterating yields
    the events in order and stops after the terminal
    :class:`~scratchnet.core.types.FitCompleted` or
    :class:`~scratchnet.core.types.FitFailed`.  :meth:`cancel` is honoured at
    the next epoch boundary.
    """

    def __init__(
        self,
        network: "Network",
        inputs: Sequence[Array],
        outputs: Sequence[Array],
        params: FitParams,
    ) -> None:
        self.network = network
        self.params = params
        self.error: Optional[BaseException] = None
        self._events: "queue.Queue[FitEvent]" = queue.Queue()
        self._stop = threading.Event()
        self._finished = False
        self._thread = threading.Thread(
            target=self._run, args=(inputs, outputs), name="scratchnet-fit", daemon=True
        )
        self._thread.start()

    def _run(self, inputs: Sequence[Array], outputs: Sequence[Array]) -> None:
        try:
            terminal = self.network.train(
                inputs,
                outputs,
                self.params,
                emit=self._events.put,
                should_stop=self._stop.is_set,
            )
        except Exception as exc:  # surfaced to the consumer as FitFailed
            logger.exception("Training failed")
            self.error = exc
            terminal = FitFailed(error=exc)
        self._events.put(terminal)

    def __iter__(self) -> Iterator[FitEvent]:
        while not self._finished:
            event = self._events.get()
            if isinstance(event, TERMINAL_EVENTS):
                self._finished = True
            yield event

    def cancel(self) -> None:
        """Ask the loop to stop before its next epoch."""

        self._stop.set()

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def collect(self) -> List[FitEvent]:
        """Drain the stream and return every event including the terminal one."""

        return list(self)


__all__ = ["FitStream"]
