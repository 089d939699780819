"""
Output Configuration
OSC destination, message addresses and actuator channel settings
"""

from dataclasses import dataclass
from typing import Optional

from heartsync.utils.runtime import (
    coerce_float_env,
    coerce_int_env,
    coerce_str_env,
    read_env,
)


@dataclass
class OutputConfig:
    """
    Configuration for the outbound OSC transport and the actuator channel.

    The actuator channel is optional: set actuator_serial_port for a serial
    device, or actuator_host/actuator_port for a UDP bridge (e.g. an ESP32).
    Leaving both unset disables the secondary channel.
    """

    # OSC destination
    osc_host: str = '127.0.0.1'
    osc_port: int = 8000

    # OSC addresses
    player_address_template: str = '/player/{id}/bpm'
    group_address: str = '/wek/bpm'
    score_address: str = '/sync/score'

    # Reconnect
    reconnect_interval: float = 1.0  # Seconds between handle recreation attempts

    # Actuator channel (serial)
    actuator_serial_port: Optional[str] = None
    actuator_baudrate: int = 9600
    actuator_reconnect_interval: float = 2.0

    # Actuator channel (UDP bridge)
    actuator_host: Optional[str] = None
    actuator_port: Optional[int] = None

    @property
    def has_actuator(self) -> bool:
        return bool(self.actuator_serial_port) or bool(self.actuator_host and self.actuator_port)

    def player_address(self, session_id: int) -> str:
        """OSC address for one session's heart rate"""
        return self.player_address_template.format(id=session_id)

    @classmethod
    def from_env(cls) -> 'OutputConfig':
        """
        Build a configuration from HEARTSYNC_* environment overrides.

        Recognised variables: HEARTSYNC_OSC_HOST, HEARTSYNC_OSC_PORT,
        HEARTSYNC_RECONNECT_INTERVAL_S, HEARTSYNC_ACTUATOR_SERIAL_PORT,
        HEARTSYNC_ACTUATOR_BAUDRATE, HEARTSYNC_ACTUATOR_HOST,
        HEARTSYNC_ACTUATOR_PORT.

        Returns:
            OutputConfig
        """
        defaults = cls()
        osc_host, _ = coerce_str_env(read_env('OSC_HOST'), defaults.osc_host)
        osc_port, _ = coerce_int_env(read_env('OSC_PORT'), defaults.osc_port, maximum=65535)
        reconnect, _ = coerce_float_env(
            read_env('RECONNECT_INTERVAL_S'), defaults.reconnect_interval, minimum=0.05
        )
        serial_port, _ = coerce_str_env(read_env('ACTUATOR_SERIAL_PORT'), None)
        baudrate, _ = coerce_int_env(read_env('ACTUATOR_BAUDRATE'), defaults.actuator_baudrate)
        actuator_host, _ = coerce_str_env(read_env('ACTUATOR_HOST'), None)
        actuator_port, overridden = coerce_int_env(read_env('ACTUATOR_PORT'), 0, maximum=65535)

        return cls(
            osc_host=osc_host,
            osc_port=osc_port,
            reconnect_interval=reconnect,
            actuator_serial_port=serial_port,
            actuator_baudrate=baudrate,
            actuator_host=actuator_host,
            actuator_port=actuator_port if overridden else None,
        )
