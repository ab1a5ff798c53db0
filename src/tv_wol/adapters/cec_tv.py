"""
HDMI-CEC TV control through cec-client (cec-utils).

Every command runs a short-lived ``cec-client -s`` so the adapter is only
held while a command is in flight. cec-client registers as a recording
device, which keeps the TV from switching its input to us.
"""

import asyncio
import logging
import shutil

from tv_wol.ports.tv_control import TvControlError

logger = logging.getLogger(__name__)

CEC_DEBUG_LEVEL = "1"
CEC_DEVICE_TYPE = "r"


class CecError(Exception):
    pass


class CecClientNotFoundError(CecError):
    pass


class AdapterScanError(CecError):
    pass


class NoAdapterFoundError(CecError):
    pass


class AdapterOpenError(CecError):
    pass


class CecTvControl:
    def __init__(
        self,
        cec_client: str = "cec-client",
        device_address: str = "0",
        adapter: str = "",
        timeout_seconds: float = 10.0,
    ) -> None:
        self._cec_client = cec_client
        self._device_address = device_address
        self._adapter = adapter
        self._timeout_seconds = timeout_seconds
        self._executable: str | None = None

    @property
    def adapter(self) -> str:
        return self._adapter

    async def initialize(self) -> None:
        self._executable = shutil.which(self._cec_client)
        if not self._executable:
            raise CecClientNotFoundError(f"{self._cec_client} not found")

        adapters = await self.find_adapters()
        if not self._adapter:
            if not adapters:
                raise NoAdapterFoundError("No CEC adapter found")
            self._adapter = adapters[0]
        logger.info("Connecting to CEC adapter %s", self._adapter)

        try:
            await self._send("is")
        except TvControlError as exc:
            raise AdapterOpenError(f"Unable to open {self._adapter}: {exc}") from exc

    async def find_adapters(self) -> list[str]:
        try:
            returncode, stdout = await self._run([self._require_executable(), "-l"], b"")
        except (OSError, asyncio.TimeoutError) as exc:
            raise AdapterScanError(f"Adapter scan failed: {exc}") from exc
        if returncode != 0:
            raise AdapterScanError(f"Adapter scan exited with code {returncode}")
        return parse_adapter_list(stdout.decode(errors="replace"))

    async def power_on(self) -> None:
        await self._send(f"on {self._device_address}")
        logger.info("CEC: TV turned ON")

    async def power_off(self) -> None:
        await self._send(f"standby {self._device_address}")
        logger.info("CEC: TV turned OFF")

    async def _send(self, command: str) -> None:
        cmd = [self._require_executable(), "-s", "-d", CEC_DEBUG_LEVEL, "-t", CEC_DEVICE_TYPE]
        if self._adapter:
            cmd.append(self._adapter)
        logger.debug("CEC command %r via %s", command, cmd)
        try:
            returncode, _ = await self._run(cmd, f"{command}\n".encode())
        except asyncio.TimeoutError as exc:
            raise TvControlError(f"cec-client timed out sending {command!r}") from exc
        except OSError as exc:
            raise TvControlError(f"Failed to run cec-client: {exc}") from exc
        if returncode != 0:
            raise TvControlError(f"cec-client exited with code {returncode} sending {command!r}")

    async def _run(self, cmd: list[str], stdin_data: bytes) -> tuple[int, bytes]:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(stdin_data),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            raise
        if process.returncode:
            logger.debug("cec-client stderr: %s", stderr.decode(errors="replace").strip())
        return process.returncode, stdout

    def _require_executable(self) -> str:
        if not self._executable:
            self._executable = shutil.which(self._cec_client) or self._cec_client
        return self._executable


def parse_adapter_list(output: str) -> list[str]:
    adapters = []
    for line in output.splitlines():
        key, sep, value = line.partition(":")
        if sep and key.strip().lower() == "com port" and value.strip():
            adapters.append(value.strip())
    return adapters
