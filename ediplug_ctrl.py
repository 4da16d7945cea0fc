import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass

from dotenv import load_dotenv
from prometheus_client import CollectorRegistry

# Load configuration from single .env file
load_dotenv("ediplug-ctrl.env")

from ediplug.transport import DEFAULT_TIMEOUT
from server import create_app, serve, split_listen
from sinks.prometheus import FleetGauges
from sources.base import PlugAddress
from sources.fleet import bootstrap_fleet

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@dataclass(frozen=True)
class Settings:
    """Startup configuration, immutable once loaded"""
    plug_ips: tuple[str, ...]
    password: str
    poll_interval: int
    listen: str
    timeout: float

    def addresses(self) -> list[PlugAddress]:
        return [PlugAddress(host=ip, password=self.password) for ip in self.plug_ips]


def split_ips(values) -> tuple[str, ...]:
    """Flatten repeated and comma separated IP lists, dropping blanks"""
    ips = []
    for value in values:
        ips.extend(ip.strip() for ip in value.split(","))
    return tuple(ip for ip in ips if ip)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="EdiPlug Control")
    parser.add_argument(
        "--ip",
        action="append",
        default=[],
        help="IPs of plugs to monitor / control (repeatable, comma separated; env: EDIPLUG_IPS)"
    )
    parser.add_argument(
        "--password",
        type=str,
        default=os.getenv("EDIPLUG_PASSWORD", "1234"),
        help="Password of the plugs (default: 1234)"
    )
    parser.add_argument(
        "--poll",
        type=int,
        default=os.getenv("EDIPLUG_POLL_INTERVAL", "10"),
        help="Poll every N seconds (default: 10)"
    )
    parser.add_argument(
        "--listen",
        type=str,
        default=os.getenv("EDIPLUG_LISTEN", ":3000"),
        help="Address to listen on for HTTP interface (default: :3000)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=os.getenv("EDIPLUG_TIMEOUT", str(DEFAULT_TIMEOUT)),
        help="HTTP timeout per plug request in seconds (default: 5.0)"
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version and exit"
    )
    return parser


def load_settings(argv=None) -> Settings:
    """Parse flags and environment with hard fail on misconfiguration"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"EdiPlug Control {VERSION}")
        sys.exit(0)

    plug_ips = split_ips(args.ip or [os.getenv("EDIPLUG_IPS", "")])
    if not plug_ips:
        logger.error("No plug IPs configured (use --ip or EDIPLUG_IPS in ediplug-ctrl.env)")
        parser.print_usage()
        sys.exit(1)

    if args.poll < 1:
        logger.error(f"Poll interval must be at least 1 second, got {args.poll}")
        sys.exit(1)

    try:
        split_listen(args.listen)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    return Settings(
        plug_ips=plug_ips,
        password=args.password,
        poll_interval=args.poll,
        listen=args.listen,
        timeout=args.timeout,
    )


async def main(settings: Settings):
    registry = CollectorRegistry()
    gauges = FleetGauges(registry)

    # Bootstrap: fetch system information of every plug
    fleet = await bootstrap_fleet(settings.addresses(), gauges, settings.timeout)
    if not len(fleet):
        logger.error("None of the configured plugs answered, giving up")
        sys.exit(1)

    app = create_app(fleet, registry)

    # Run poller and HTTP interface in parallel
    try:
        async with asyncio.TaskGroup() as tg:
            tg.create_task(fleet.run(settings.poll_interval))
            tg.create_task(serve(app, settings.listen))
    finally:
        await fleet.close()


def run():
    settings = load_settings()
    try:
        asyncio.run(main(settings))
    except KeyboardInterrupt:
        logger.info("Script stopped by user.")


if __name__ == "__main__":
    run()
