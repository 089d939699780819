"""
UDP Outbound Transport
Best-effort delivery of pre-encoded messages to a fixed (host, port)

Sends issued while the handle is down are dropped, not queued: the
stream is latest-value-wins, so stale readings have no value.
"""

import logging
import socket
import threading
from enum import Enum
from typing import Callable, Optional

from heartsync.errors import TransportUnavailable

logger = logging.getLogger(__name__)


class HandleState(Enum):
    READY = 'ready'
    FAILED = 'failed'
    CLOSED = 'closed'


class UdpTransport:
    """
    Single long-lived UDP handle shared by every session

    Responsibilities:
    - Serialise access to the socket (one send in flight at a time)
    - Drop sends while the handle is unavailable
    - Recreate the handle autonomously after a failure, retrying forever
    - Tear down and recreate the handle on reconfigure()
    """

    def __init__(
        self,
        host: str = '127.0.0.1',
        port: int = 8000,
        reconnect_interval: float = 1.0,
        socket_factory: Optional[Callable[..., socket.socket]] = None,
        name: str = 'osc',
    ):
        """
        Initialize the transport and open its handle

        Args:
            host: Destination host
            port: Destination port
            reconnect_interval: Seconds between handle recreation attempts
            socket_factory: Callable returning a socket (injectable for tests)
            name: Label used in log messages
        """
        self.host = host
        self.port = port
        self.reconnect_interval = reconnect_interval
        self.name = name
        self._socket_factory = socket_factory if socket_factory else socket.socket

        self._lock = threading.Lock()
        self._sock: Optional[socket.socket] = None
        self._state = HandleState.FAILED

        self._stop_event = threading.Event()
        self._reconnect_lock = threading.Lock()
        self._reconnect_thread: Optional[threading.Thread] = None

        self.sent_count = 0
        self.dropped_count = 0

        with self._lock:
            self._open_handle()

        if self._state is not HandleState.READY:
            self._schedule_reconnect()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._state is HandleState.READY

    @property
    def state(self) -> HandleState:
        return self._state

    def send(self, data: bytes) -> bool:
        """
        Send one pre-encoded message

        Args:
            data: Encoded bytes

        Returns:
            True if the datagram was handed to the socket
        """
        try:
            with self._lock:
                if self._state is not HandleState.READY or self._sock is None:
                    self.dropped_count += 1
                    raise TransportUnavailable(
                        f"{self.name} transport to {self.host}:{self.port} is {self._state.value}"
                    )
                try:
                    self._sock.send(data)
                except ConnectionRefusedError:
                    # ICMP port unreachable from an earlier datagram; the handle is still usable
                    self.dropped_count += 1
                    logger.debug(f"No listener on {self.host}:{self.port}, dropped {len(data)} bytes")
                    return False
                except OSError as e:
                    logger.error(f"✗ {self.name} send to {self.host}:{self.port} failed: {e}")
                    self._close_handle(HandleState.FAILED)
                    self.dropped_count += 1
                    raise TransportUnavailable(str(e)) from e
                self.sent_count += 1
                return True
        except TransportUnavailable as e:
            logger.warning(f"Dropped {len(data)} bytes: {e}")
            if self._state is HandleState.FAILED:
                self._schedule_reconnect()
            return False

    def reconfigure(self, host: str, port: int):
        """
        Point the transport at a new destination

        Args:
            host: New destination host
            port: New destination port
        """
        with self._lock:
            if self._state is HandleState.CLOSED:
                logger.warning(f"{self.name} transport closed, reconfigure ignored")
                return
            self._close_handle(HandleState.FAILED)
            self.host = host
            self.port = port
            self._open_handle()

        logger.info(f"{self.name} transport destination changed to {host}:{port}")
        if self._state is not HandleState.READY:
            self._schedule_reconnect()

    def close(self):
        """Close the handle and stop any reconnect attempts"""
        self._stop_event.set()
        with self._lock:
            self._close_handle(HandleState.CLOSED)

        thread = self._reconnect_thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self.reconnect_interval + 1)

        logger.info(f"✓ {self.name} transport closed ({self.sent_count} sent, {self.dropped_count} dropped)")

    def get_status(self) -> dict:
        """
        Return the current transport state.

        Returns:
            Dict with destination, handle state and counters.
        """
        return {
            'name': self.name,
            'destination': f"{self.host}:{self.port}",
            'state': self._state.value,
            'sent': self.sent_count,
            'dropped': self.dropped_count,
        }

    # ------------------------------------------------------------------
    # Handle management (caller holds the lock)
    # ------------------------------------------------------------------

    def _open_handle(self) -> bool:
        sock = None
        try:
            sock = self._socket_factory(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setblocking(False)
            sock.connect((self.host, self.port))
        except OSError as e:
            logger.error(f"✗ {self.name} handle to {self.host}:{self.port} failed: {e}")
            if sock is not None:
                sock.close()
            self._state = HandleState.FAILED
            return False

        self._sock = sock
        self._state = HandleState.READY
        logger.info(f"✓ {self.name} transport ready ({self.host}:{self.port})")
        return True

    def _close_handle(self, new_state: HandleState):
        if self._sock is not None:
            try:
                self._sock.close()
            except OSError as e:
                logger.debug(f"Error closing {self.name} socket: {e}")
            self._sock = None
        self._state = new_state

    # ------------------------------------------------------------------
    # Reconnect
    # ------------------------------------------------------------------

    def _schedule_reconnect(self):
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
        logger.info(f"{self.name} transport reconnect loop started")

        while not self._stop_event.wait(self.reconnect_interval):
            with self._lock:
                if self._state is HandleState.READY:
                    break
                if self._state is HandleState.CLOSED:
                    break
                if self._open_handle():
                    break

        logger.info(f"{self.name} transport reconnect loop stopped")

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - cleanup"""
        self.close()

    def __repr__(self):
        return f"<UdpTransport(name={self.name}, dest={self.host}:{self.port}, state={self._state.value})>"
