import asyncio
import logging

from tv_wol.config import TvWolConfig
from tv_wol.adapters.cec_tv import CecError, CecTvControl
from tv_wol.adapters.null_tv import NullTvControl
from tv_wol.adapters.tcp_listener import ConnectionListener
from tv_wol.domain.aggregator import ConnectionAggregator
from tv_wol.domain.events import ConnectionEvent
from tv_wol.ports.advertiser import AdvertiserPort
from tv_wol.ports.tv_control import TvControlPort
from tv_wol.service import TvWolService

logger = logging.getLogger(__name__)


async def create_tv_control(config: TvWolConfig) -> TvControlPort:
    if config.tv_backend == "null":
        logger.info("Using no-op TV control (backend=null)")
        return NullTvControl()

    cec = CecTvControl(
        cec_client=config.cec_client_path,
        device_address=config.cec_device_address,
        adapter=config.cec_adapter,
        timeout_seconds=config.cec_timeout_seconds,
    )
    try:
        await cec.initialize()
    except CecError as exc:
        logger.warning("Unable to connect to CEC (%s), switching to no-op TV control", exc)
        return NullTvControl()
    return cec


def create_advertiser(config: TvWolConfig) -> AdvertiserPort:
    from tv_wol.adapters.zeroconf_advertiser import ZeroconfAdvertiser

    return ZeroconfAdvertiser(
        service_name=config.service_name,
        service_type=config.service_type,
    )


async def create_service(
    config: TvWolConfig,
    advertiser: AdvertiserPort | None = None,
) -> TvWolService:
    tv = await create_tv_control(config)
    events: asyncio.Queue[ConnectionEvent] = asyncio.Queue()

    listener = ConnectionListener(
        events,
        host=config.host,
        port=config.port,
        idle_timeout_seconds=config.idle_timeout_seconds,
    )
    aggregator = ConnectionAggregator(
        tv,
        events,
        control_error_policy=config.control_error_policy,
    )

    return TvWolService(
        listener=listener,
        aggregator=aggregator,
        advertiser=advertiser or create_advertiser(config),
    )
