"""HTTP surface - Prometheus scrape endpoint and plug switch endpoint"""
import asyncio
import logging

from aiohttp import web
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from ediplug.errors import EdiPlugError, InvalidState, PlugNotFound
from sources.fleet import Fleet

logger = logging.getLogger(__name__)

FLEET_KEY = web.AppKey("fleet", Fleet)
REGISTRY_KEY = web.AppKey("registry", CollectorRegistry)


async def handle_metrics(request: web.Request) -> web.Response:
    """Expose the gauges in Prometheus text format"""
    registry = request.app[REGISTRY_KEY]
    return web.Response(
        body=generate_latest(registry),
        headers={"Content-Type": CONTENT_TYPE_LATEST},
    )


async def handle_switch(request: web.Request) -> web.Response:
    """
    Switch a plug on or off.

    Path: /switch/{system}/{state} where system is the device-reported
    name and state is "on" or "off".

    Responds 404 for unknown plugs, 406 for unknown states, 500 when the
    plug could not be switched and 200 "OK" otherwise.
    """
    fleet = request.app[FLEET_KEY]
    system = request.match_info["system"]
    state = request.match_info["state"]

    try:
        await fleet.switch(system, state)
    except PlugNotFound:
        logger.warning(f"Control: Switch request for unknown plug '{system}'")
        return web.Response(status=404, text="Plug not found.")
    except InvalidState:
        logger.warning(f"Control: Switch request for '{system}' with invalid state '{state}'")
        return web.Response(status=406, text="Status not possible.")
    except EdiPlugError as e:
        logger.error(f"Control: Switching '{system}' {state} failed: {e}")
        return web.Response(status=500, text=f"An error occurred while setting state: {e}")

    return web.Response(text="OK")


def create_app(fleet: Fleet, registry: CollectorRegistry) -> web.Application:
    app = web.Application()
    app[FLEET_KEY] = fleet
    app[REGISTRY_KEY] = registry
    app.router.add_get("/metrics", handle_metrics)
    app.router.add_route("*", "/switch/{system}/{state}", handle_switch)
    return app


def split_listen(listen: str) -> tuple[str, int]:
    """
    Split a "host:port" listen address.

    An empty host (":3000") listens on all interfaces.
    """
    host, _, port = listen.rpartition(":")
    if not port.isdigit():
        raise ValueError(f"Invalid listen address: {listen!r}")
    return host.strip("[]") or "0.0.0.0", int(port)


async def serve(app: web.Application, listen: str) -> None:
    """Serve app on listen until cancelled"""
    host, port = split_listen(listen)
    runner = web.AppRunner(app)
    await runner.setup()
    try:
        site = web.TCPSite(runner, host, port)
        await site.start()
        logger.info(f"HTTP: Listening on {host}:{port}")
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()
        logger.info("HTTP: Server stopped")
