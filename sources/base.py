"""Base definitions for plug sources - data contracts and protocols"""
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class PlugAddress:
    """
    Where a plug lives and how to authenticate against it.

    The control port is fixed by the protocol, so the host is the
    plug's identity on the network.
    """
    host: str
    password: str


@dataclass(frozen=True)
class PlugIdentity:
    """
    What a plug reports about itself at bootstrap.

    system_name is the user-assigned display name and doubles as the
    identifier on the control surface.
    """
    system_name: str
    mac_address: str
    firmware_version: str
    model: str

    def labels(self) -> dict[str, str]:
        """Stable label set for this plug's telemetry"""
        return {
            "system_name": self.system_name,
            "mac_address": self.mac_address,
            "firmware_version": self.firmware_version,
            "model": self.model,
        }


@dataclass
class EnergyReading:
    """
    Uniform power/energy measurement of one plug.

    Attributes:
        now_current: Current in Ampere
        now_power: Power in Watt
        daily_energy: kWh used within the last day
        weekly_energy: kWh used within the last week
        monthly_energy: kWh used within the last month
        last_toggle_time: Device local time of the last relay switch
    """
    now_current: float
    now_power: float
    daily_energy: float
    weekly_energy: float
    monthly_energy: float
    last_toggle_time: datetime | None = None


class PlugSource(Protocol):
    """
    Protocol for controllable plugs.

    Uses Protocol for duck typing - implementations don't need to inherit,
    just implement the methods with matching signatures.
    """

    async def connect(self) -> PlugIdentity:
        """
        Bootstrap the plug: open the client and fetch its identity.

        Should raise if the plug cannot be reached.
        """
        ...

    async def read_energy(self) -> EnergyReading:
        """Fetch current power and energy counters."""
        ...

    async def read_state(self) -> str:
        """Fetch the raw relay state string ("ON"/"OFF" when healthy)."""
        ...

    async def switch(self, desired_state: str) -> None:
        """Switch the relay to "ON" or "OFF"."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
