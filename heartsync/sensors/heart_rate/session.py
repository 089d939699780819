"""
Heart Rate Device Session
Per-sensor connection state machine, last known reading and send bookkeeping
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from heartsync.errors import MalformedPayload, NotConnected
from heartsync.events import (
    ConnectionStateChanged,
    DeviceMetadataChanged,
    GroupMembershipChanged,
    HeartRateChanged,
    Listener,
    OutboundReading,
)

from .config import HeartRateConfig, NO_VALUE_SENT
from .decoder import (
    BodyLocation,
    HeartRateMeasurement,
    UNKNOWN_MANUFACTURER,
    decode_body_location,
    decode_manufacturer_name,
    decode_measurement,
)

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = 'disconnected'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'


@dataclass(frozen=True)
class SessionSnapshot:
    """Immutable view of a session, safe to hand across threads"""

    session_id: int
    target_identifier: str
    connection_state: ConnectionState
    last_heart_rate: int
    has_joined_group: bool
    last_sent_value: int
    body_location: BodyLocation
    manufacturer: str


class DeviceSession:
    """
    One physical heart-rate sensor

    Responsibilities:
    - Track connection state (disconnected -> connecting -> connected)
    - Hold the last known bpm and group membership
    - Deduplicate outbound sends per heartbeat cycle
    - Emit change events only when a value actually changes

    All mutation is serialised by a per-session lock. Listeners are
    invoked after the lock has been released.
    """

    def __init__(
        self,
        session_id: int,
        target_identifier: str,
        config: Optional[HeartRateConfig] = None,
    ):
        """
        Initialize a device session

        Args:
            session_id: Small positive integer, unique in the roster
            target_identifier: Opaque identifier of the physical sensor (UUID)
            config: HeartRateConfig. Defaults to HeartRateConfig.for_session().
        """
        if session_id < 1:
            raise ValueError(f"Session id must be positive, got {session_id}")

        self.session_id = session_id
        self.target_identifier = str(target_identifier)
        self.config = config if config else HeartRateConfig.for_session()

        self._lock = threading.Lock()
        self._listeners: List[Listener] = []

        self._connection_state = ConnectionState.DISCONNECTED
        self._last_heart_rate = 0
        self._has_joined_group = False
        self._last_sent_value = NO_VALUE_SENT

        self._body_location = BodyLocation.NOT_AVAILABLE
        self._manufacturer = UNKNOWN_MANUFACTURER
        self._last_measurement: Optional[HeartRateMeasurement] = None

        logger.debug(f"Device session {session_id} created for {self.target_identifier}")

    # ------------------------------------------------------------------
    # Read-only properties
    # ------------------------------------------------------------------

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection_state

    @property
    def is_connected(self) -> bool:
        return self._connection_state is ConnectionState.CONNECTED

    @property
    def last_heart_rate(self) -> int:
        return self._last_heart_rate

    @property
    def has_joined_group(self) -> bool:
        return self._has_joined_group

    @property
    def last_sent_value(self) -> int:
        return self._last_sent_value

    @property
    def body_location(self) -> BodyLocation:
        return self._body_location

    @property
    def manufacturer(self) -> str:
        return self._manufacturer

    @property
    def last_measurement(self) -> Optional[HeartRateMeasurement]:
        return self._last_measurement

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener):
        """Register a callable receiving this session's change events"""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        """Unregister a previously added listener (no-op if unknown)"""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, events: list):
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception as e:
                    logger.error(
                        f"Session {self.session_id} listener failed on {type(event).__name__}: {e}",
                        exc_info=True,
                    )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> bool:
        """
        Begin connecting to the target sensor

        Returns:
            True if the session moved to CONNECTING
        """
        with self._lock:
            if self._connection_state is not ConnectionState.DISCONNECTED:
                logger.debug(
                    f"Session {self.session_id} connect ignored in state "
                    f"{self._connection_state.value}"
                )
                return False
            events = [self._set_connection_state(ConnectionState.CONNECTING)]

        logger.info(f"Session {self.session_id} connecting to {self.target_identifier}")
        self._emit(events)
        return True

    def mark_connected(self) -> bool:
        """
        External 'connected' lifecycle event

        Starts a fresh session: reading, group membership and dedup
        bookkeeping are all reset.

        Returns:
            True if the session moved to CONNECTED
        """
        with self._lock:
            if self._connection_state is not ConnectionState.CONNECTING:
                logger.warning(
                    f"Session {self.session_id} ignored 'connected' event while "
                    f"{self._connection_state.value}"
                )
                return False
            events = [self._set_connection_state(ConnectionState.CONNECTED)]
            events.extend(self._clear_reading())
            self._last_sent_value = NO_VALUE_SENT

        logger.info(f"✓ Session {self.session_id} connected")
        self._emit(events)
        return True

    def mark_connect_failed(self) -> bool:
        """
        External 'failed to connect' lifecycle event

        Returns:
            True if the session returned to DISCONNECTED
        """
        with self._lock:
            if self._connection_state is not ConnectionState.CONNECTING:
                logger.debug(
                    f"Session {self.session_id} ignored 'failed' event while "
                    f"{self._connection_state.value}"
                )
                return False
            events = [self._set_connection_state(ConnectionState.DISCONNECTED)]

        logger.warning(f"✗ Session {self.session_id} failed to connect to {self.target_identifier}")
        self._emit(events)
        return True

    def mark_disconnected(self) -> bool:
        """
        External 'disconnected' lifecycle event

        A disconnect while still connecting counts as a failed connection.

        Returns:
            True if the connection state changed
        """
        with self._lock:
            if self._connection_state is ConnectionState.DISCONNECTED:
                return False
            events = self._drop_connection()

        logger.warning(f"Session {self.session_id} disconnected")
        self._emit(events)
        return True

    def disconnect(self) -> bool:
        """
        Explicitly disconnect the session

        Idempotent and safe from any state. The state flips immediately;
        teardown of the external connection is not awaited.

        Returns:
            True if the connection state changed
        """
        with self._lock:
            changed = self._connection_state is not ConnectionState.DISCONNECTED
            events = self._drop_connection()

        if changed:
            logger.info(f"Session {self.session_id} disconnected by request")
        self._emit(events)
        return changed

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def on_notification(self, bpm: int) -> bool:
        """
        Record a decoded heart rate

        Args:
            bpm: Decoded heart rate

        Returns:
            True if last_heart_rate changed
        """
        try:
            with self._lock:
                if self._connection_state is not ConnectionState.CONNECTED:
                    raise NotConnected(
                        f"Session {self.session_id} received {bpm} bpm while "
                        f"{self._connection_state.value}"
                    )
                if bpm == self._last_heart_rate:
                    return False
                previous = self._last_heart_rate
                self._last_heart_rate = bpm
        except NotConnected as e:
            logger.warning(str(e))
            return False

        self._emit([HeartRateChanged(self.session_id, previous, bpm)])
        return True

    def on_raw_notification(self, data: bytes) -> bool:
        """
        Decode a raw Heart Rate Measurement notification and record it

        Malformed payloads are logged and skipped without any state change.

        Args:
            data: Raw notification bytes

        Returns:
            True if last_heart_rate changed
        """
        try:
            measurement = decode_measurement(data)
        except MalformedPayload as e:
            logger.warning(f"Session {self.session_id} dropped notification: {e}")
            return False

        with self._lock:
            if self._connection_state is ConnectionState.CONNECTED:
                self._last_measurement = measurement

        return self.on_notification(measurement.bpm)

    def update_body_location(self, data: Optional[bytes]) -> BodyLocation:
        """Decode and store the Body Sensor Location characteristic"""
        location = decode_body_location(data)
        with self._lock:
            changed = location is not self._body_location
            self._body_location = location

        if changed:
            logger.info(f"Session {self.session_id} body location: {location.value}")
            self._emit([DeviceMetadataChanged(self.session_id, 'body_location', location)])
        return location

    def update_manufacturer(self, data: Optional[bytes]) -> str:
        """Decode and store the Manufacturer Name String characteristic"""
        name = decode_manufacturer_name(data)
        with self._lock:
            changed = name != self._manufacturer
            self._manufacturer = name

        if changed:
            logger.info(f"Session {self.session_id} manufacturer: {name}")
            self._emit([DeviceMetadataChanged(self.session_id, 'manufacturer', name)])
        return name

    def join_group(self) -> bool:
        """
        Opt into group synchronization

        Only meaningful while connected; silently ignored otherwise.

        Returns:
            True if has_joined_group changed
        """
        with self._lock:
            if self._connection_state is not ConnectionState.CONNECTED:
                logger.debug(
                    f"Session {self.session_id} join ignored while "
                    f"{self._connection_state.value}"
                )
                return False
            if self._has_joined_group:
                return False
            self._has_joined_group = True

        logger.info(f"Session {self.session_id} joined the group")
        self._emit([GroupMembershipChanged(self.session_id, True)])
        return True

    def cycle_elapsed(self) -> Optional[OutboundReading]:
        """
        One heartbeat worth of real time has passed

        Decides whether the current reading goes downstream. Nothing is sent
        unless the session has joined the group, the reading changed since
        the last send, and it lies inside the plausible band.

        Returns:
            OutboundReading to deliver to every outbound channel, or None
        """
        with self._lock:
            bpm = self._last_heart_rate
            if not self._has_joined_group:
                return None
            if bpm == self._last_sent_value:
                return None
            if not self.config.is_plausible(bpm):
                return None
            self._last_sent_value = bpm

        return OutboundReading(self.session_id, bpm)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def snapshot(self) -> SessionSnapshot:
        """Return an immutable copy of the current session state"""
        with self._lock:
            return SessionSnapshot(
                session_id=self.session_id,
                target_identifier=self.target_identifier,
                connection_state=self._connection_state,
                last_heart_rate=self._last_heart_rate,
                has_joined_group=self._has_joined_group,
                last_sent_value=self._last_sent_value,
                body_location=self._body_location,
                manufacturer=self._manufacturer,
            )

    def get_status(self) -> dict:
        """
        Return the current session state.

        Returns:
            Dict with id, target, connection state, reading and metadata.
        """
        snap = self.snapshot()
        return {
            'session_id': snap.session_id,
            'target_identifier': snap.target_identifier,
            'connection_state': snap.connection_state.value,
            'heart_rate': snap.last_heart_rate,
            'joined_group': snap.has_joined_group,
            'last_sent': snap.last_sent_value,
            'body_location': snap.body_location.value,
            'manufacturer': snap.manufacturer,
        }

    # ------------------------------------------------------------------
    # Internal (caller holds the lock)
    # ------------------------------------------------------------------

    def _set_connection_state(self, state: ConnectionState) -> ConnectionStateChanged:
        previous = self._connection_state
        self._connection_state = state
        return ConnectionStateChanged(self.session_id, previous, state)

    def _clear_reading(self) -> list:
        events = []
        if self._last_heart_rate != 0:
            events.append(HeartRateChanged(self.session_id, self._last_heart_rate, 0))
            self._last_heart_rate = 0
        if self._has_joined_group:
            events.append(GroupMembershipChanged(self.session_id, False))
            self._has_joined_group = False
        self._last_measurement = None
        return events

    def _drop_connection(self) -> list:
        events = []
        if self._connection_state is not ConnectionState.DISCONNECTED:
            events.append(self._set_connection_state(ConnectionState.DISCONNECTED))
        events.extend(self._clear_reading())
        return events

    def __repr__(self):
        return (
            f"<DeviceSession(id={self.session_id}, state={self._connection_state.value}, "
            f"bpm={self._last_heart_rate})>"
        )
