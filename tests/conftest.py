import pytest
from pytest_socket import disable_socket

from sources.base import PlugAddress


def pytest_runtest_setup():
    """
    Runs before every test.
    We disable network access. Every attempt to connect
    (HTTP, DNS, etc) will immediately raise a SocketBlockedError.
    """
    disable_socket(allow_unix_socket=True)


# Responses as captured from an SP2101W
STATE_RESPONSE = (
    b'<?xml version="1.0" encoding="UTF8"?>'
    b'<SMARTPLUG id="edimax"><CMD id="get">'
    b'<Device.System.Power.State>ON</Device.System.Power.State>'
    b'</CMD></SMARTPLUG>\r\n'
)

SETUP_OK_RESPONSE = (
    b'<?xml version="1.0" encoding="UTF8"?>'
    b'<SMARTPLUG id="edimax"><CMD id="setup">OK</CMD></SMARTPLUG>\r\n'
)

ENERGY_RESPONSE = (
    b'<?xml version="1.0" encoding="UTF8"?>'
    b'<SMARTPLUG id="edimax"><CMD id="get"><NOW_POWER>'
    b'<Device.System.Power.LastToggleTime>20240315184501</Device.System.Power.LastToggleTime>'
    b'<Device.System.Power.NowCurrent>0.2910</Device.System.Power.NowCurrent>'
    b'<Device.System.Power.NowPower>53.65</Device.System.Power.NowPower>'
    b'<Device.System.Power.NowEnergy.Day>0.412</Device.System.Power.NowEnergy.Day>'
    b'<Device.System.Power.NowEnergy.Week>2.870</Device.System.Power.NowEnergy.Week>'
    b'<Device.System.Power.NowEnergy.Month>11.203</Device.System.Power.NowEnergy.Month>'
    b'</NOW_POWER></CMD></SMARTPLUG>\r\n'
)

SYSTEM_INFO_RESPONSE = (
    b'<?xml version="1.0" encoding="UTF8"?>'
    b'<SMARTPLUG id="edimax"><CMD id="get"><SYSTEM_INFO>'
    b'<Run.Model>SP2101W</Run.Model>'
    b'<Run.FW.Version>1.04</Run.FW.Version>'
    b'<Run.LAN.Client.MAC.Address>801F02AABBCC</Run.LAN.Client.MAC.Address>'
    b'<Device.System.Name>Kitchen</Device.System.Name>'
    b'</SYSTEM_INFO>'
    b'<Device.System.Time>20240316090000</Device.System.Time>'
    b'</CMD></SMARTPLUG>\r\n'
)


@pytest.fixture
def address():
    return PlugAddress(host="192.168.2.50", password="1234")


class FakeClock:
    """Monotonic clock that only advances when the retry loop sleeps"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, delay):
        self.sleeps.append(delay)
        self.now += delay


@pytest.fixture
def fake_clock():
    return FakeClock()
