"""
Heart Rate Sensor Module for HeartSync
BLE heart-rate monitors (Heart Rate Service 0x180D)

Architecture:
- Decoder: Pure parsing of measurement, body location and manufacturer payloads
- Session: Per-sensor connection state machine and outbound dedup bookkeeping

Session lifecycle:
- disconnected -> connecting on connect()
- connecting -> connected / disconnected on collaborator lifecycle events
- connected -> disconnected on disconnect event or explicit disconnect()
"""

from .config import HeartRateConfig, NO_VALUE_SENT
from .decoder import (
    BodyLocation,
    HeartRateMeasurement,
    decode_body_location,
    decode_heart_rate,
    decode_manufacturer_name,
    decode_measurement,
)
from .session import ConnectionState, DeviceSession, SessionSnapshot

__all__ = [
    'HeartRateConfig',
    'NO_VALUE_SENT',
    'BodyLocation',
    'HeartRateMeasurement',
    'decode_body_location',
    'decode_heart_rate',
    'decode_manufacturer_name',
    'decode_measurement',
    'ConnectionState',
    'DeviceSession',
    'SessionSnapshot',
]

__version__ = '1.0.0'
