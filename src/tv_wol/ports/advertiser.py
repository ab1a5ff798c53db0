from typing import Protocol


class RegistrationError(Exception):
    pass


class Advertisement(Protocol):
    async def close(self) -> None: ...


class AdvertiserPort(Protocol):
    async def advertise(self, address: tuple[str, int]) -> Advertisement: ...
