"""
HeartSync
Group heart-rate synchronization over BLE sensors, OSC and actuator outputs

Packages:
- sensors: per-device session state machines and payload decoders
- coordinator: roster, experience state machine, sync scoring
- output: OSC wire encoding, UDP transport, actuator channels
"""

from .coordinator import ExperienceConfig, ExperienceState, SessionOrchestrator, sync_score
from .errors import HeartSyncError, InvalidTransition, MalformedPayload, NotConnected, TransportUnavailable
from .log import configure_logging
from .output import OutputConfig, SerialActuatorChannel, UdpTransport
from .pipeline import HeartSyncPipeline
from .sensors import ConnectionState, DeviceSession, HeartRateConfig

__all__ = [
    'HeartSyncPipeline',
    'SessionOrchestrator',
    'ExperienceConfig',
    'ExperienceState',
    'sync_score',
    'DeviceSession',
    'ConnectionState',
    'HeartRateConfig',
    'OutputConfig',
    'UdpTransport',
    'SerialActuatorChannel',
    'configure_logging',
    'HeartSyncError',
    'MalformedPayload',
    'NotConnected',
    'TransportUnavailable',
    'InvalidTransition',
]

__version__ = '1.0.0'
