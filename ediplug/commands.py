"""
EdiPlug command set.

Each command knows how to render its request document and how to fill
its result fields from a response document. A command is single-use:
construct a fresh one per exchange. parse() either fills every result
field or raises and leaves the command untouched.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, Optional, Union

from ediplug.envelope import (
    COMMAND_GET,
    COMMAND_SETUP,
    ROOT_ID,
    decode,
    encode,
    parse_number,
    parse_timestamp,
)

STATE_ON = "ON"
STATE_OFF = "OFF"
STATES = (STATE_ON, STATE_OFF)

# Bare token the device answers to a successful setup
ACKNOWLEDGEMENT_OK = "OK"

FIELD_POWER_STATE = "Device.System.Power.State"

BLOCK_NOW_POWER = "NOW_POWER"
FIELD_LAST_TOGGLE_TIME = "Device.System.Power.LastToggleTime"
FIELD_NOW_CURRENT = "Device.System.Power.NowCurrent"
FIELD_NOW_POWER = "Device.System.Power.NowPower"
FIELD_DAILY_ENERGY = "Device.System.Power.NowEnergy.Day"
FIELD_WEEKLY_ENERGY = "Device.System.Power.NowEnergy.Week"
FIELD_MONTHLY_ENERGY = "Device.System.Power.NowEnergy.Month"

BLOCK_SYSTEM_INFO = "SYSTEM_INFO"
FIELD_MODEL = "Run.Model"
FIELD_FIRMWARE_VERSION = "Run.FW.Version"
FIELD_MAC_ADDRESS = "Run.LAN.Client.MAC.Address"
FIELD_SYSTEM_NAME = "Device.System.Name"
FIELD_SYSTEM_TIME = "Device.System.Time"


@dataclass
class QueryState:
    """Reads the relay state. current_state holds the raw device string."""
    kind: ClassVar[str] = "state"

    current_state: Optional[str] = None

    def render(self) -> bytes:
        return encode(ROOT_ID, COMMAND_GET, {FIELD_POWER_STATE: ""})

    def parse(self, body: bytes) -> None:
        envelope = decode(body)
        self.current_state = (envelope.text(FIELD_POWER_STATE) or "").strip()


@dataclass
class SetState:
    """
    Switches the relay.

    desired_state must be "ON" or "OFF". success is True only when the
    device acknowledged with the OK token; any other answer is a valid
    reply that the caller has to inspect.
    """
    kind: ClassVar[str] = "set_state"

    desired_state: str
    success: Optional[bool] = None

    def __post_init__(self):
        if self.desired_state not in STATES:
            raise ValueError(
                f"desired_state must be one of {STATES}, got {self.desired_state!r}"
            )

    def render(self) -> bytes:
        return encode(ROOT_ID, COMMAND_SETUP, {FIELD_POWER_STATE: self.desired_state})

    def parse(self, body: bytes) -> None:
        # Devices sometimes acknowledge with nothing at all
        if not body.strip():
            self.success = False
            return

        envelope = decode(body)
        token = envelope.text() or ""
        self.success = token.strip() == ACKNOWLEDGEMENT_OK


@dataclass
class QueryEnergy:
    """
    Reads power telemetry.

    Attributes:
        last_toggle_time: When the relay last switched (device local time)
        now_current: Instantaneous current in Ampere
        now_power: Instantaneous power in Watt
        daily_energy: Energy used within the last day, kWh
        weekly_energy: Energy used within the last week, kWh
        monthly_energy: Energy used within the last month, kWh
    """
    kind: ClassVar[str] = "energy"

    last_toggle_time: Optional[datetime] = None
    now_current: float = 0.0
    now_power: float = 0.0
    daily_energy: float = 0.0
    weekly_energy: float = 0.0
    monthly_energy: float = 0.0

    def render(self) -> bytes:
        return encode(ROOT_ID, COMMAND_GET, {
            BLOCK_NOW_POWER: {
                FIELD_LAST_TOGGLE_TIME: "",
                FIELD_NOW_CURRENT: "",
                FIELD_NOW_POWER: "",
                FIELD_DAILY_ENERGY: "",
                FIELD_WEEKLY_ENERGY: "",
                FIELD_MONTHLY_ENERGY: "",
            }
        })

    def parse(self, body: bytes) -> None:
        envelope = decode(body)

        def number(field):
            return parse_number(envelope.text(BLOCK_NOW_POWER, field), field)

        last_toggle_time = parse_timestamp(
            envelope.text(BLOCK_NOW_POWER, FIELD_LAST_TOGGLE_TIME),
            FIELD_LAST_TOGGLE_TIME,
        )
        now_current = number(FIELD_NOW_CURRENT)
        now_power = number(FIELD_NOW_POWER)
        daily_energy = number(FIELD_DAILY_ENERGY)
        weekly_energy = number(FIELD_WEEKLY_ENERGY)
        monthly_energy = number(FIELD_MONTHLY_ENERGY)

        self.last_toggle_time = last_toggle_time
        self.now_current = now_current
        self.now_power = now_power
        self.daily_energy = daily_energy
        self.weekly_energy = weekly_energy
        self.monthly_energy = monthly_energy


@dataclass
class QuerySystemInfo:
    """Reads model, firmware, MAC address, display name and device clock."""
    kind: ClassVar[str] = "system_info"

    model: Optional[str] = None
    firmware_version: Optional[str] = None
    mac_address: Optional[str] = None
    system_name: Optional[str] = None
    device_time: Optional[datetime] = None

    def render(self) -> bytes:
        return encode(ROOT_ID, COMMAND_GET, {
            BLOCK_SYSTEM_INFO: {
                FIELD_MODEL: "",
                FIELD_FIRMWARE_VERSION: "",
                FIELD_MAC_ADDRESS: "",
                FIELD_SYSTEM_NAME: "",
            },
            FIELD_SYSTEM_TIME: "",
        })

    def parse(self, body: bytes) -> None:
        envelope = decode(body)

        device_time = parse_timestamp(envelope.text(FIELD_SYSTEM_TIME), FIELD_SYSTEM_TIME)

        self.device_time = device_time
        self.model = envelope.text(BLOCK_SYSTEM_INFO, FIELD_MODEL) or ""
        self.firmware_version = envelope.text(BLOCK_SYSTEM_INFO, FIELD_FIRMWARE_VERSION) or ""
        self.mac_address = envelope.text(BLOCK_SYSTEM_INFO, FIELD_MAC_ADDRESS) or ""
        self.system_name = envelope.text(BLOCK_SYSTEM_INFO, FIELD_SYSTEM_NAME) or ""


# Closed set of commands the transport accepts
Command = Union[QueryState, SetState, QueryEnergy, QuerySystemInfo]
COMMAND_TYPES = (QueryState, SetState, QueryEnergy, QuerySystemInfo)
