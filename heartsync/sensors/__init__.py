"""
HeartSync Sensors
Biometric sensor sessions feeding the synchronization experience

Available Sensors:
- Heart Rate: BLE heart-rate monitors (chest straps, ESP32 sensors)

All sensors support:
- Explicit connection state machine driven by an external Bluetooth collaborator
- Pure payload decoding, testable without hardware
- Typed change events instead of observable properties
"""

from .heart_rate import ConnectionState, DeviceSession, HeartRateConfig

__all__ = [
    # Heart Rate
    'ConnectionState',
    'DeviceSession',
    'HeartRateConfig',
]

__version__ = '1.0.0'
