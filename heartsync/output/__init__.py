"""
HeartSync Output
Outbound delivery of heart rates and sync scores

Channels:
- OSC over UDP: /player/{id}/bpm, /wek/bpm group bundle, /sync/score
- Actuator: comma-separated text over serial or a UDP bridge

Every channel exposes send(bytes) -> bool and never raises on delivery
failure; handles heal themselves in the background.
"""

from .actuator import SerialActuatorChannel
from .config import OutputConfig
from .encoder import (
    decode_message,
    encode_actuator_payload,
    encode_group_message,
    encode_message,
    encode_player_message,
)
from .transport import HandleState, UdpTransport

__all__ = [
    'SerialActuatorChannel',
    'OutputConfig',
    'decode_message',
    'encode_actuator_payload',
    'encode_group_message',
    'encode_message',
    'encode_player_message',
    'HandleState',
    'UdpTransport',
]

__version__ = '1.0.0'
