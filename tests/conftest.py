import asyncio
import os
import stat
from pathlib import Path

import pytest

from tv_wol.domain.events import ConnectionEvent
from tv_wol.ports.advertiser import RegistrationError
from tv_wol.ports.tv_control import TvControlError


class FakeTvControl:
    def __init__(self, fail_on: set[str] | None = None, delay: float = 0.0) -> None:
        self._fail_on = fail_on or set()
        self._delay = delay
        self.calls: list[str] = []

    async def power_on(self) -> None:
        await self._record("on")

    async def power_off(self) -> None:
        await self._record("off")

    async def _record(self, action: str) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)
        self.calls.append(action)
        if action in self._fail_on:
            raise TvControlError(f"power {action} failed")


class FakeAdvertisement:
    def __init__(self, address: tuple[str, int]) -> None:
        self.address = address
        self.closed = False

    async def close(self) -> None:
        self.closed = True


class FakeAdvertiser:
    def __init__(self, fail: bool = False) -> None:
        self._fail = fail
        self.advertisements: list[FakeAdvertisement] = []

    async def advertise(self, address: tuple[str, int]) -> FakeAdvertisement:
        if self._fail:
            raise RegistrationError("mDNS unavailable")
        advertisement = FakeAdvertisement(address)
        self.advertisements.append(advertisement)
        return advertisement


async def wait_for_events(
    queue: asyncio.Queue[ConnectionEvent],
    count: int,
    timeout: float = 2.0,
) -> list[ConnectionEvent]:
    events = []
    for _ in range(count):
        events.append(await asyncio.wait_for(queue.get(), timeout=timeout))
    return events


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.01)


def write_fake_cec_client(
    directory: Path,
    adapters: list[str] | None = None,
    list_exit_code: int = 0,
    command_exit_code: int = 0,
    command_delay: float = 0.0,
) -> Path:
    """Write a stand-in for cec-client that logs argv and stdin to commands.log."""
    adapters = adapters if adapters is not None else ["RPI"]
    listing_path = directory / "adapters.txt"
    listing_path.write_text(
        f"Found devices: {len(adapters)}\n\n"
        + "".join(
            f"device:              {i + 1}\ncom port:            {port}\nvendor id:           2708\n\n"
            for i, port in enumerate(adapters)
        )
    )
    log_path = directory / "commands.log"
    script = directory / "cec-client"
    script.write_text("\n".join([
        "#!/bin/sh",
        'if [ "$1" = "-l" ]; then',
        f'    cat "{listing_path}"',
        f"    exit {list_exit_code}",
        "fi",
        "input=$(cat)",
        f'echo "$* | $input" >> "{log_path}"',
        f"exec sleep {command_delay}" if command_delay else "",
        f"exit {command_exit_code}",
        "",
    ]))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


def read_cec_commands(script: Path) -> list[str]:
    log_path = script.parent / "commands.log"
    if not log_path.exists():
        return []
    return log_path.read_text().splitlines()


@pytest.fixture
def fake_tv():
    return FakeTvControl()


@pytest.fixture
def fake_advertiser():
    return FakeAdvertiser()


@pytest.fixture
def clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("TV_WOL_"):
            monkeypatch.delenv(key)
