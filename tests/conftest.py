"""
HeartSync - Shared test fixtures
================================
Fakes for the outbound channels, the Bluetooth central and the serial port,
plus a manually advanced clock so timer behaviour is deterministic.
"""

from datetime import datetime, timedelta, timezone

import pytest
import serial

from heartsync.coordinator import CentralClock, ExperienceConfig, SessionOrchestrator

DEVICE_UUIDS = [
    '5C1B9C4A-0001-4E59-9F3B-1D2A00000001',
    '5C1B9C4A-0002-4E59-9F3B-1D2A00000002',
    '5C1B9C4A-0003-4E59-9F3B-1D2A00000003',
]


class ManualClock(CentralClock):
    """CentralClock whose time only moves when advance() is called"""

    def __init__(self, start=None):
        super().__init__()
        self._now = start if start else datetime(2026, 1, 1, tzinfo=timezone.utc)

    def now(self):
        return self._now

    def advance(self, seconds):
        self._now += timedelta(seconds=seconds)


class FakeChannel:
    """Outbound channel recording every payload"""

    def __init__(self, accept=True):
        self.accept = accept
        self.sent = []
        self.closed = False

    def send(self, data):
        self.sent.append(bytes(data))
        return self.accept

    def close(self):
        self.closed = True


class RaisingChannel:
    """Outbound channel that breaks its send() contract"""

    def __init__(self):
        self.calls = 0

    def send(self, data):
        self.calls += 1
        raise RuntimeError("channel exploded")


class FakeBluetooth:
    """Bluetooth central recording connect / cancel requests"""

    def __init__(self, fail_connect=False):
        self.fail_connect = fail_connect
        self.connects = []
        self.cancels = []

    def connect(self, target_identifier, session_id):
        self.connects.append((target_identifier, session_id))
        if self.fail_connect:
            raise OSError("adapter powered off")

    def cancel_connection(self, target_identifier):
        self.cancels.append(target_identifier)


class FakeSerial:
    """Minimal stand-in for serial.Serial"""

    def __init__(self, port, baudrate, **kwargs):
        self.port = port
        self.baudrate = baudrate
        self.kwargs = kwargs
        self.is_open = True
        self.written = []
        self.fail_writes = False

    def write(self, data):
        if self.fail_writes:
            raise serial.SerialException("device reports readiness to read but returned no data")
        self.written.append(data)
        return len(data)

    def close(self):
        self.is_open = False


class PortInfo:
    def __init__(self, device):
        self.device = device


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def osc():
    return FakeChannel()


@pytest.fixture
def actuator():
    return FakeChannel()


@pytest.fixture
def bluetooth():
    return FakeBluetooth()


@pytest.fixture
def orchestrator(osc, actuator, bluetooth, clock):
    return SessionOrchestrator(
        DEVICE_UUIDS,
        osc_transport=osc,
        actuator=actuator,
        bluetooth=bluetooth,
        clock=clock,
        config=ExperienceConfig(duration=180.0),
    )


def connect_everyone(orchestrator):
    """Drive every session through connect() and the 'connected' event"""
    orchestrator.connect_all()
    for session in orchestrator.sessions:
        orchestrator.handle_connected(session.session_id)


def hr_packet(bpm):
    """Heart Rate Measurement notification with an 8-bit value"""
    return bytes([0x00, bpm])
