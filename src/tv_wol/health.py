import logging
import shutil
import socket
import subprocess
from dataclasses import dataclass

from tv_wol.adapters.cec_tv import parse_adapter_list
from tv_wol.config import TvWolConfig

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    name: str
    passed: bool
    detail: str


def run_startup_checks(config: TvWolConfig) -> list[HealthCheckResult]:
    results = [
        _check_cec_client(config),
        _check_cec_adapter(config),
        _check_listen_address(config),
    ]

    passed = sum(1 for r in results if r.passed)

    logger.info("Health check: %d/%d passed", passed, len(results))
    for result in results:
        level = logging.INFO if result.passed else logging.WARNING
        symbol = "OK" if result.passed else "FAIL"
        logger.log(level, "  [%s] %s: %s", symbol, result.name, result.detail)

    return results


def has_critical_failures(results: list[HealthCheckResult]) -> bool:
    # CEC problems only degrade to the no-op backend.
    critical_checks = {"listen_address"}
    return any(not r.passed and r.name in critical_checks for r in results)


def _check_cec_client(config: TvWolConfig) -> HealthCheckResult:
    name = "cec_client"
    if config.tv_backend == "null":
        return HealthCheckResult(name=name, passed=True, detail="Skipped (backend=null)")
    path = shutil.which(config.cec_client_path)
    if not path:
        return HealthCheckResult(
            name=name,
            passed=False,
            detail=f"'{config.cec_client_path}' not found (install cec-utils)",
        )
    return HealthCheckResult(name=name, passed=True, detail=path)


def _check_cec_adapter(config: TvWolConfig) -> HealthCheckResult:
    name = "cec_adapter"
    if config.tv_backend == "null":
        return HealthCheckResult(name=name, passed=True, detail="Skipped (backend=null)")
    path = shutil.which(config.cec_client_path)
    if not path:
        return HealthCheckResult(name=name, passed=False, detail="cec-client unavailable")
    try:
        result = subprocess.run(
            [path, "-l"],
            capture_output=True,
            text=True,
            timeout=config.cec_timeout_seconds,
        )
    except subprocess.TimeoutExpired:
        return HealthCheckResult(name=name, passed=False, detail="Adapter scan timed out")
    except OSError as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc))

    if result.returncode != 0:
        return HealthCheckResult(
            name=name,
            passed=False,
            detail=f"Adapter scan exited with code {result.returncode}",
        )
    adapters = parse_adapter_list(result.stdout)
    if not adapters:
        return HealthCheckResult(name=name, passed=False, detail="No CEC adapter found")
    if config.cec_adapter and config.cec_adapter not in adapters:
        return HealthCheckResult(
            name=name,
            passed=False,
            detail=f"Configured adapter '{config.cec_adapter}' not in {', '.join(adapters)}",
        )
    return HealthCheckResult(name=name, passed=True, detail=f"Found {', '.join(adapters)}")


def _check_listen_address(config: TvWolConfig) -> HealthCheckResult:
    name = "listen_address"
    try:
        family, type_, proto, _, sockaddr = socket.getaddrinfo(
            config.host, config.port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
        )[0]
        with socket.socket(family, type_, proto) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            host, port = sock.getsockname()[:2]
    except OSError as exc:
        return HealthCheckResult(
            name=name,
            passed=False,
            detail=f"Cannot bind {config.host}:{config.port}: {exc}",
        )
    return HealthCheckResult(name=name, passed=True, detail=f"Bindable ({host}:{port})")
