"""
Serial Actuator Channel
Text-protocol delivery of heart rates to a serial haptics / lighting device

Payloads are produced by encode_actuator_payload() ("72" or "72,68,75");
this channel owns the framing and terminates every payload with a newline.
"""

import logging
import threading
from typing import Callable, Iterable, Optional

import serial
import serial.tools.list_ports

from heartsync.errors import NotConnected

logger = logging.getLogger(__name__)

LINE_TERMINATOR = b'\n'


class SerialActuatorChannel:
    """
    Newline-framed serial link to an actuator device

    Responsibilities:
    - Open the named serial port and write payloads to it
    - Drop payloads while the port is closed
    - Watch for the port to reappear after removal and reopen it

    Exposes the same send(bytes) -> bool contract as UdpTransport.
    """

    def __init__(
        self,
        port: str,
        baudrate: int = 9600,
        reconnect_interval: float = 2.0,
        serial_factory: Optional[Callable[..., serial.Serial]] = None,
        list_ports: Optional[Callable[[], Iterable]] = None,
        name: str = 'actuator',
    ):
        """
        Initialize the channel and try to open the port

        Args:
            port: Serial device path or name (e.g. /dev/ttyUSB0, COM3)
            baudrate: Line speed
            reconnect_interval: Seconds between port availability checks
            serial_factory: Callable opening a serial port (injectable for tests)
            list_ports: Callable listing available ports (injectable for tests)
            name: Label used in log messages
        """
        self.port = port
        self.baudrate = baudrate
        self.reconnect_interval = reconnect_interval
        self.name = name
        self._serial_factory = serial_factory if serial_factory else serial.Serial
        self._list_ports = list_ports if list_ports else serial.tools.list_ports.comports

        self._lock = threading.Lock()
        self._serial: Optional[serial.Serial] = None
        self._closed = False

        self._stop_event = threading.Event()
        self._reconnect_lock = threading.Lock()
        self._reconnect_thread: Optional[threading.Thread] = None

        self.sent_count = 0
        self.dropped_count = 0

        with self._lock:
            opened = self._open_port()

        if not opened:
            self._start_auto_reconnect()

    @property
    def is_ready(self) -> bool:
        port = self._serial
        return port is not None and port.is_open

    def send(self, data: bytes) -> bool:
        """
        Write one payload followed by a newline

        Args:
            data: Payload bytes without framing

        Returns:
            True if the payload was written
        """
        try:
            with self._lock:
                if self._serial is None or not self._serial.is_open:
                    self.dropped_count += 1
                    raise NotConnected(f"{self.name} port {self.port} not open")
                try:
                    self._serial.write(bytes(data) + LINE_TERMINATOR)
                except (serial.SerialException, OSError) as e:
                    logger.error(f"✗ {self.name} write to {self.port} failed: {e}")
                    self._close_port()
                    self.dropped_count += 1
                    raise NotConnected(str(e)) from e
                self.sent_count += 1
                logger.debug(f"Sent to {self.name}: {bytes(data)!r}")
                return True
        except NotConnected as e:
            logger.warning(f"Dropped actuator payload: {e}")
            if not self._closed:
                self._start_auto_reconnect()
            return False

    def close(self):
        """Close the port and stop watching for it"""
        self._closed = True
        self._stop_event.set()
        with self._lock:
            self._close_port()

        thread = self._reconnect_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self.reconnect_interval + 1)

        logger.info(f"✓ {self.name} channel closed ({self.sent_count} sent, {self.dropped_count} dropped)")

    def get_status(self) -> dict:
        """
        Return the current channel state.

        Returns:
            Dict with port, open state and counters.
        """
        return {
            'name': self.name,
            'port': self.port,
            'baudrate': self.baudrate,
            'is_open': self.is_ready,
            'sent': self.sent_count,
            'dropped': self.dropped_count,
        }

    # ------------------------------------------------------------------
    # Port management (caller holds the lock)
    # ------------------------------------------------------------------

    def _open_port(self) -> bool:
        try:
            self._serial = self._serial_factory(self.port, self.baudrate, timeout=0, write_timeout=1)
        except (serial.SerialException, OSError) as e:
            logger.error(f"✗ Could not open {self.name} port {self.port}: {e}")
            self._serial = None
            return False

        logger.info(f"✓ {self.name} connected on {self.port} @ {self.baudrate} baud")
        return True

    def _close_port(self):
        if self._serial is None:
            return
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as e:
            logger.debug(f"Error closing {self.port}: {e}")
        self._serial = None

    # ------------------------------------------------------------------
    # Auto reconnect
    # ------------------------------------------------------------------

    def _port_available(self) -> bool:
        try:
            return any(info.device == self.port for info in self._list_ports())
        except (serial.SerialException, OSError) as e:
            logger.debug(f"Port enumeration failed: {e}")
            return False

    def _start_auto_reconnect(self):
        with self._reconnect_lock:
            if self._stop_event.is_set():
                return
            if self._reconnect_thread and self._reconnect_thread.is_alive():
                return

            self._reconnect_thread = threading.Thread(
                target=self._reconnect_loop,
                name=f"{self.name}-Reconnect-Thread",
                daemon=True,
            )
            self._reconnect_thread.start()

    def _reconnect_loop(self):
        logger.info(f"Watching for {self.name} port {self.port}...")

        while not self._stop_event.wait(self.reconnect_interval):
            if self.is_ready:
                break
            if not self._port_available():
                continue

            logger.info(f"Reconnecting to {self.port}...")
            with self._lock:
                if self._closed or self._open_port():
                    break

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - cleanup"""
        self.close()

    def __repr__(self):
        status = "open" if self.is_ready else "closed"
        return f"<SerialActuatorChannel(port={self.port}, status={status})>"
