"""Prometheus egress module - exposes plug telemetry as gauges"""
import logging
from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Gauge

from ediplug.commands import STATE_OFF, STATE_ON
from sources.base import EnergyReading, PlugIdentity

logger = logging.getLogger(__name__)

NAMESPACE = "ediplug"
LABELS = ("system_name", "mac_address", "firmware_version", "model")


class FleetGauges:
    """
    The gauge families of the exporter, registered on one registry.

    Create once at startup; per-plug handles come from for_plug().
    """

    def __init__(self, registry: CollectorRegistry):
        def gauge(name, documentation):
            return Gauge(
                name,
                documentation,
                labelnames=LABELS,
                namespace=NAMESPACE,
                registry=registry,
            )

        self.activated = gauge("activated", "0 if switched off, 1 if switched on")
        self.now_current = gauge("now_current", "Current in Ampere fetched last iteration")
        self.now_power = gauge("now_power", "Power in Watt fetched last iteration")
        self.daily_energy = gauge("daily_energy", "Energy used within last day, measured in kWh")
        self.weekly_energy = gauge("weekly_energy", "Energy used within last week, measured in kWh")
        self.monthly_energy = gauge("monthly_energy", "Energy used within last month, measured in kWh")

    def for_plug(self, identity: PlugIdentity) -> "PlugMetrics":
        labels = identity.labels()
        return PlugMetrics(
            name=identity.system_name,
            activated=self.activated.labels(**labels),
            now_current=self.now_current.labels(**labels),
            now_power=self.now_power.labels(**labels),
            daily_energy=self.daily_energy.labels(**labels),
            weekly_energy=self.weekly_energy.labels(**labels),
            monthly_energy=self.monthly_energy.labels(**labels),
        )


@dataclass(frozen=True)
class PlugMetrics:
    """Gauge handles of a single plug"""
    name: str
    activated: Gauge
    now_current: Gauge
    now_power: Gauge
    daily_energy: Gauge
    weekly_energy: Gauge
    monthly_energy: Gauge

    def push_energy(self, reading: EnergyReading) -> None:
        self.now_current.set(reading.now_current)
        self.now_power.set(reading.now_power)
        self.daily_energy.set(reading.daily_energy)
        self.weekly_energy.set(reading.weekly_energy)
        self.monthly_energy.set(reading.monthly_energy)

    def push_state(self, state: str) -> bool:
        """
        Record the relay state.

        Returns False and leaves the gauge untouched for anything other
        than "ON" or "OFF".
        """
        if state == STATE_ON:
            self.activated.set(1)
        elif state == STATE_OFF:
            self.activated.set(0)
        else:
            logger.warning(f"Prometheus: Got unexpected activation status for plug '{self.name}': {state}")
            return False
        return True
