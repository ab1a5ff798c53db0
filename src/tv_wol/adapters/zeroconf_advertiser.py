import logging
import socket

from zeroconf import Error as ZeroconfError
from zeroconf import ServiceInfo
from zeroconf.asyncio import AsyncZeroconf

from tv_wol.ports.advertiser import RegistrationError

logger = logging.getLogger(__name__)

WILDCARD_HOSTS = {"", "0.0.0.0", "::"}


class ZeroconfAdvertisement:
    def __init__(self, zeroconf: AsyncZeroconf, service_info: ServiceInfo) -> None:
        self._zeroconf: AsyncZeroconf | None = zeroconf
        self._service_info = service_info

    @property
    def service_info(self) -> ServiceInfo:
        return self._service_info

    @property
    def active(self) -> bool:
        return self._zeroconf is not None

    async def close(self) -> None:
        if self._zeroconf is None:
            return
        zeroconf, self._zeroconf = self._zeroconf, None
        try:
            await zeroconf.async_unregister_service(self._service_info)
            logger.info("Stopped advertising %s", self._service_info.name)
        finally:
            await zeroconf.async_close()

    async def __aenter__(self) -> "ZeroconfAdvertisement":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class ZeroconfAdvertiser:
    def __init__(
        self,
        service_name: str = "TV-WoL",
        service_type: str = "_tv-wol._tcp.local.",
    ) -> None:
        self._service_name = service_name
        self._service_type = service_type

    async def advertise(self, address: tuple[str, int]) -> ZeroconfAdvertisement:
        host, port = address
        if host in WILDCARD_HOSTS:
            host = get_lan_address()
        hostname = socket.gethostname().split(".")[0]

        service_info = ServiceInfo(
            type_=self._service_type,
            name=f"{self._service_name}.{self._service_type}",
            port=port,
            parsed_addresses=[host],
            properties={},
            server=f"{hostname}.local.",
        )

        zeroconf = AsyncZeroconf()
        try:
            await zeroconf.async_register_service(service_info)
        except (ZeroconfError, OSError) as exc:
            await zeroconf.async_close()
            raise RegistrationError(f"Unable to advertise {service_info.name}: {exc}") from exc

        logger.info("Advertising %s at %s:%d", service_info.name, host, port)
        return ZeroconfAdvertisement(zeroconf, service_info)


def get_lan_address() -> str:
    # UDP connect sends nothing; it only selects the outbound interface.
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        sock.close()
