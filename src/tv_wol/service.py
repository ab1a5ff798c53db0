import asyncio
import logging

from tv_wol.adapters.tcp_listener import ConnectionListener
from tv_wol.domain.aggregator import ConnectionAggregator
from tv_wol.ports.advertiser import Advertisement, AdvertiserPort

logger = logging.getLogger(__name__)


class TvWolService:
    """Binds the listener, advertises it, and feeds connection events to the aggregator.

    ``run()`` returns once ``stop()`` is called. Bind, registration, and fatal
    TV control errors propagate after the advertisement and the listening
    socket have been released.
    """

    def __init__(
        self,
        listener: ConnectionListener,
        aggregator: ConnectionAggregator,
        advertiser: AdvertiserPort,
    ) -> None:
        self._listener = listener
        self._aggregator = aggregator
        self._advertiser = advertiser
        self._advertisement: Advertisement | None = None
        self._tasks: list[asyncio.Task] = []
        self._ready = asyncio.Event()
        self._stop_requested = asyncio.Event()

    @property
    def address(self) -> tuple[str, int]:
        return self._listener.address

    @property
    def connections(self) -> int:
        return self._aggregator.connections

    async def wait_ready(self) -> None:
        await self._ready.wait()

    async def run(self) -> None:
        await self._listener.start()
        try:
            self._advertisement = await self._advertiser.advertise(self._listener.address)
            try:
                self._tasks = [
                    asyncio.create_task(self._aggregator.run()),
                    asyncio.create_task(self._listener.serve_forever()),
                    asyncio.create_task(self._stop_requested.wait()),
                ]
                self._ready.set()
                done, _ = await asyncio.wait(self._tasks, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if not task.cancelled() and task.exception():
                        raise task.exception()
            finally:
                await self._cancel_tasks()
                await self._advertisement.close()
                self._advertisement = None
        finally:
            await self._listener.stop()
            logger.info("Service stopped")

    def stop(self) -> None:
        self._stop_requested.set()

    async def _cancel_tasks(self) -> None:
        for task in self._tasks:
            task.cancel()
        # serve_forever() waits for open clients once cancelled
        self._listener.close_connections()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
