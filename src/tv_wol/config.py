from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class TvWolConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TV_WOL_")

    host: str = "0.0.0.0"
    port: int = 0

    service_name: str = "TV-WoL"
    service_type: str = "_tv-wol._tcp.local."

    tv_backend: Literal["cec", "null"] = "cec"
    cec_client_path: str = "cec-client"
    cec_adapter: str = ""
    cec_device_address: str = "0"
    cec_timeout_seconds: float = 10.0

    control_error_policy: Literal["fatal", "warn"] = "fatal"

    # 0 keeps silent connections open for as long as the peer holds them.
    idle_timeout_seconds: float = 0.0
