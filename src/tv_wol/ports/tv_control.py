from typing import Protocol


class TvControlError(Exception):
    pass


class TvControlPort(Protocol):
    async def power_on(self) -> None: ...
    async def power_off(self) -> None: ...
