"""Edimax smart plug ingress module - polls and switches a plug via XML over HTTP"""
import asyncio
import logging

import httpx

from ediplug.commands import QueryEnergy, QueryState, QuerySystemInfo, SetState
from ediplug.errors import SemanticFailure
from ediplug.retry import DEFAULT_BACKOFF, BackoffPolicy, with_retry
from ediplug.transport import DEFAULT_TIMEOUT, execute
from sources.base import EnergyReading, PlugAddress, PlugIdentity

logger = logging.getLogger(__name__)


class EdimaxPlugSource:
    """
    One Edimax smart plug.

    Every exchange runs through the retry policy. Exchanges with the
    same plug are serialized by a lock: the plug has no request
    correlation and handles one request at a time, so a poll and a
    switch command must never overlap.
    """

    def __init__(
        self,
        address: PlugAddress,
        timeout: float = DEFAULT_TIMEOUT,
        backoff: BackoffPolicy = DEFAULT_BACKOFF
    ):
        """
        Initialize plug source.

        Args:
            address: IP address and password of the plug
            timeout: HTTP request timeout in seconds (default: 5.0)
            backoff: Retry policy for every exchange
        """
        self.address = address
        self.timeout = timeout
        self.backoff = backoff
        self.client = None
        self.identity = None
        self._lock = asyncio.Lock()

    async def __aenter__(self):
        """Context manager entry: bootstrap the plug"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: close the HTTP client"""
        await self.close()

    @property
    def host(self) -> str:
        return self.address.host

    async def _exchange(self, command):
        """Run one command against the plug under retry, holding the plug lock."""
        async with self._lock:
            await with_retry(
                lambda: execute(command, self.address, self.client),
                self.backoff,
                description=f"{self.host} {command.kind}",
            )
        return command

    async def connect(self) -> PlugIdentity:
        """
        Phase 1: Bootstrap.
        Creates the persistent client and fetches the plug's system info.

        Raises:
            RetriesExhausted: The plug did not answer within the retry budget
        """
        if self.client is None:
            # The plug serves one connection at a time
            self.client = httpx.AsyncClient(
                timeout=self.timeout,
                limits=httpx.Limits(max_connections=1, max_keepalive_connections=1)
            )

        logger.info(f"EdiPlug {self.host}: Fetching system information")
        info = await self._exchange(QuerySystemInfo())

        self.identity = PlugIdentity(
            system_name=info.system_name,
            mac_address=info.mac_address,
            firmware_version=info.firmware_version,
            model=info.model,
        )
        logger.info(
            f"EdiPlug {self.host}: Found '{info.system_name}' "
            f"({info.model}, firmware {info.firmware_version}, MAC {info.mac_address}, "
            f"device time {info.device_time})"
        )
        return self.identity

    async def read_energy(self) -> EnergyReading:
        energy = await self._exchange(QueryEnergy())
        return EnergyReading(
            now_current=energy.now_current,
            now_power=energy.now_power,
            daily_energy=energy.daily_energy,
            weekly_energy=energy.weekly_energy,
            monthly_energy=energy.monthly_energy,
            last_toggle_time=energy.last_toggle_time,
        )

    async def read_state(self) -> str:
        state = await self._exchange(QueryState())
        return state.current_state

    async def switch(self, desired_state: str) -> None:
        """
        Switch the relay.

        Args:
            desired_state: "ON" or "OFF"

        Raises:
            ValueError: desired_state is not "ON" or "OFF"
            RetriesExhausted: The plug did not answer within the retry budget
            SemanticFailure: The plug answered but did not acknowledge
        """
        command = await self._exchange(SetState(desired_state))
        if not command.success:
            raise SemanticFailure(
                f"{self.host} did not acknowledge switching {desired_state}"
            )
        logger.info(f"EdiPlug {self.host}: Switched {desired_state}")

    async def close(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.debug(f"EdiPlug {self.host}: Client closed")
