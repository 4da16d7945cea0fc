"""Plug fleet - bootstrap, periodic polling and on-demand switching"""
import asyncio
import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from ediplug.commands import STATE_OFF, STATE_ON
from ediplug.errors import InvalidState, PlugNotFound, RetriesExhausted
from sinks.prometheus import FleetGauges, PlugMetrics
from sources.base import PlugAddress, PlugSource
from sources.edimax import EdimaxPlugSource

logger = logging.getLogger(__name__)

# State tokens accepted on the control surface
STATE_TOKENS = {
    "on": STATE_ON,
    "off": STATE_OFF,
}


@dataclass(frozen=True)
class Plug:
    """A bootstrapped plug together with its gauge handles"""
    name: str
    source: PlugSource
    metrics: PlugMetrics


class Fleet:
    """
    The plugs being monitored, keyed by their device-reported name.

    The table is built once at bootstrap and never changes afterwards.
    """

    def __init__(self, plugs: Iterable[Plug]):
        table = {}
        for plug in plugs:
            if plug.name in table:
                raise ValueError(f"Duplicate plug name {plug.name!r}")
            table[plug.name] = plug
        self.plugs: Mapping[str, Plug] = MappingProxyType(table)

    def __len__(self):
        return len(self.plugs)

    def get(self, name: str) -> Plug:
        try:
            return self.plugs[name]
        except KeyError:
            raise PlugNotFound(f"Plug not found: {name!r}") from None

    async def poll_plug(self, plug: Plug) -> None:
        """
        Poll one plug: energy first, then relay state.

        Errors are logged and end the plug's cycle; they never propagate,
        so one misbehaving plug cannot cancel the poll of the others.
        """
        try:
            reading = await plug.source.read_energy()
        except RetriesExhausted as e:
            logger.error(f"Fleet: Unable to fetch metrics for plug '{plug.name}': {e}")
            return
        except Exception as e:
            logger.error(f"Fleet: Error polling metrics for plug '{plug.name}': {e!r}")
            return

        plug.metrics.push_energy(reading)

        try:
            state = await plug.source.read_state()
        except RetriesExhausted as e:
            logger.error(f"Fleet: Unable to fetch activation status for plug '{plug.name}': {e}")
            return
        except Exception as e:
            logger.error(f"Fleet: Error polling activation status for plug '{plug.name}': {e!r}")
            return

        plug.metrics.push_state(state)

    async def poll_cycle(self) -> None:
        """Poll every plug concurrently and return once all are done."""
        async with asyncio.TaskGroup() as tg:
            for plug in self.plugs.values():
                tg.create_task(self.poll_plug(plug))

    async def run(self, interval: float) -> None:
        """
        Periodic trigger: run a poll cycle every interval seconds.

        A cycle that overruns the interval delays the next one instead
        of overlapping it.
        """
        logger.info(f"Fleet: Polling {len(self)} plugs every {interval}s")
        while True:
            started = time.monotonic()
            await self.poll_cycle()
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, interval - elapsed))

    async def switch(self, name: str, token: str) -> None:
        """
        Switch a plug by name.

        Args:
            name: Device-reported system name
            token: "on" or "off"

        Raises:
            PlugNotFound: Unknown plug name (no network call made)
            InvalidState: Unknown state token (no network call made)
            RetriesExhausted: The plug did not answer in time
            SemanticFailure: The plug did not acknowledge
        """
        plug = self.get(name)

        desired_state = STATE_TOKENS.get(token)
        if desired_state is None:
            raise InvalidState(f"State not possible: {token!r}")

        logger.info(f"Fleet: Switching '{name}' {desired_state}")
        await plug.source.switch(desired_state)

    async def close(self) -> None:
        for plug in self.plugs.values():
            await plug.source.close()


async def bootstrap_fleet(
    addresses: Iterable[PlugAddress],
    gauges: FleetGauges,
    timeout: float
) -> Fleet:
    """
    Connect to every configured plug and build the fleet.

    Plugs that do not answer their system information query are logged
    and left out, as are plugs reporting a name already taken.
    """
    plugs = []
    names = set()
    for address in addresses:
        source = EdimaxPlugSource(address, timeout=timeout)
        try:
            identity = await source.connect()
        except RetriesExhausted as e:
            logger.error(
                f"Fleet: Unable to fetch system information for plug '{address.host}', "
                f"not fetching data: {e}"
            )
            await source.close()
            continue

        if identity.system_name in names:
            logger.warning(
                f"Fleet: Plug '{address.host}' reports the name '{identity.system_name}' "
                f"which is already in use, skipping it"
            )
            await source.close()
            continue

        names.add(identity.system_name)
        plugs.append(Plug(
            name=identity.system_name,
            source=source,
            metrics=gauges.for_plug(identity),
        ))

    return Fleet(plugs)
