import logging

logger = logging.getLogger(__name__)


class NullTvControl:
    """Stands in for the TV when no CEC adapter is usable."""

    async def power_on(self) -> None:
        logger.info("(mocked) Turning on TV")

    async def power_off(self) -> None:
        logger.info("(mocked) Turning off TV")
