import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Literal

from tv_wol.domain.events import ConnectionEvent
from tv_wol.ports.tv_control import TvControlError, TvControlPort

logger = logging.getLogger(__name__)

ControlErrorPolicy = Literal["fatal", "warn"]


class ConnectionAggregator:
    """Single owner of the live connection count.

    Lifecycle events from every connection funnel through one queue and are
    handled strictly one at a time, so the 0 -> 1 and 1 -> 0 edges can be
    detected without a lock around the counter.
    """

    def __init__(
        self,
        tv: TvControlPort,
        events: asyncio.Queue[ConnectionEvent] | None = None,
        control_error_policy: ControlErrorPolicy = "fatal",
    ) -> None:
        self._tv = tv
        self._events = events if events is not None else asyncio.Queue()
        self._control_error_policy = control_error_policy
        self._connections = 0

    @property
    def connections(self) -> int:
        return self._connections

    @property
    def events(self) -> asyncio.Queue[ConnectionEvent]:
        return self._events

    async def run(self) -> None:
        logger.info("Aggregator started (control errors: %s)", self._control_error_policy)
        while True:
            event = await self._events.get()
            try:
                await self.handle(event)
            finally:
                self._events.task_done()

    async def handle(self, event: ConnectionEvent) -> None:
        if event == ConnectionEvent.CONNECTED:
            self._connections += 1
            logger.info("Connections: %d (+1)", self._connections)
            if self._connections == 1:
                await self._invoke("on", self._tv.power_on)
        elif event == ConnectionEvent.DISCONNECTED:
            if self._connections == 0:
                logger.warning("Disconnect without a matching connect, ignoring")
                return
            self._connections -= 1
            logger.info("Connections: %d (-1)", self._connections)
            if self._connections == 0:
                await self._invoke("off", self._tv.power_off)

    async def _invoke(self, label: str, command: Callable[[], Awaitable[None]]) -> None:
        logger.info("TV: turning %s", label)
        try:
            await command()
        except TvControlError as exc:
            if self._control_error_policy == "fatal":
                logger.error("TV: unable to turn %s: %s", label, exc)
                raise
            logger.warning("TV: unable to turn %s, continuing: %s", label, exc)
