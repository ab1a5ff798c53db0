import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from tv_wol.config import TvWolConfig
from tv_wol.log_format import ColoredFormatter

ENV_FILE_PATH = Path.home() / ".config" / "tv-wol" / "env"


def _load_env_file(path: Path = ENV_FILE_PATH) -> None:
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key not in os.environ:
                os.environ[key] = value


def _configure_logging(verbose: bool) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(ColoredFormatter(datefmt="%H:%M:%S"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        handlers=[handler],
    )
    if verbose:
        logging.getLogger("zeroconf").setLevel(logging.INFO)
        logging.getLogger("asyncio").setLevel(logging.INFO)


def main() -> None:
    _load_env_file()
    parser = argparse.ArgumentParser(
        description="Turn the TV on while clients are connected, off when the last one leaves",
    )
    parser.add_argument("--port", type=int, help="Listening port (default: OS-assigned)")
    parser.add_argument("--backend", choices=["cec", "null"], help="TV control backend")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("check", help="Run startup diagnostics and exit")

    args = parser.parse_args()
    _configure_logging(args.verbose)

    config = TvWolConfig()
    if args.port is not None:
        config.port = args.port
    if args.backend:
        config.tv_backend = args.backend

    if args.command == "check":
        sys.exit(_run_check(config))

    sys.exit(asyncio.run(_run_daemon(config)))


def _run_check(config: TvWolConfig) -> int:
    from tv_wol.health import run_startup_checks, has_critical_failures

    results = run_startup_checks(config)
    return 1 if has_critical_failures(results) else 0


async def _run_daemon(config: TvWolConfig) -> int:
    from tv_wol.adapters.tcp_listener import BindError
    from tv_wol.factory import create_service
    from tv_wol.ports.advertiser import RegistrationError
    from tv_wol.ports.tv_control import TvControlError

    service = await create_service(config)

    shutdown_triggered = False

    def handle_signal() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            logging.warning("Forced exit")
            sys.exit(1)
        shutdown_triggered = True
        logging.info("Shutting down...")
        service.stop()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    try:
        await service.run()
    except BindError as exc:
        logging.error("Unable to start listener: %s", exc)
        return 1
    except RegistrationError as exc:
        logging.error("Unable to advertise service: %s", exc)
        return 1
    except TvControlError as exc:
        logging.error("TV control failed, exiting: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    main()
