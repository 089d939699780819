"""
Session Orchestrator
Owns the sensor roster and the top-level experience state machine

Experience states:
    setup -> ready      every session connected
    ready -> playing    start()
    playing <-> paused  pause() / resume()
    any -> finished     end(), or the configured duration elapsed
    any -> setup        reset(), or a sensor dropped while ready/playing
"""

import functools
import logging
import threading
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from heartsync.errors import InvalidTransition
from heartsync.events import (
    ConnectionStateChanged,
    ExperienceStateChanged,
    Listener,
    OutboundReading,
    SyncScoreChanged,
)
from heartsync.output.config import OutputConfig
from heartsync.output.encoder import (
    encode_actuator_payload,
    encode_group_message,
    encode_message,
    encode_player_message,
)
from heartsync.sensors.heart_rate import DeviceSession, HeartRateConfig

from .clock import CentralClock
from .config import ExperienceConfig
from .scoring import sync_score

logger = logging.getLogger(__name__)

MIN_SESSIONS = 2


class ExperienceState(Enum):
    SETUP = 'setup'
    READY = 'ready'
    PLAYING = 'playing'
    PAUSED = 'paused'
    FINISHED = 'finished'


def _ignores_invalid_transition(method):
    """Turn InvalidTransition into a silent no-op returning False"""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except InvalidTransition as e:
            logger.debug(str(e))
            return False

    return wrapper


class SessionOrchestrator:
    """
    Coordinates N heart-rate sessions through one shared experience

    Responsibilities:
    - Own the fixed roster of DeviceSessions (ids 1..N)
    - Route Bluetooth collaborator events to sessions by session id
    - Re-evaluate readiness whenever a session's connection changes
    - Gate outbound data on the experience state
    - Score synchronization and enforce the session duration on tick()
    - Deliver readings to the OSC transport and the actuator channel

    Outbound channels are any objects exposing send(bytes) -> bool. The
    optional Bluetooth central exposes connect(target_identifier, session_id)
    and cancel_connection(target_identifier).

    Listeners run synchronously on the calling thread and must not block.
    """

    def __init__(
        self,
        target_identifiers: Sequence[str],
        osc_transport: Any,
        actuator: Optional[Any] = None,
        bluetooth: Optional[Any] = None,
        clock: Optional[CentralClock] = None,
        config: Optional[ExperienceConfig] = None,
        output_config: Optional[OutputConfig] = None,
        heart_rate_config: Optional[HeartRateConfig] = None,
    ):
        """
        Initialize the orchestrator

        Args:
            target_identifiers: One device identifier per session, in roster order
            osc_transport: OSC outbound channel (e.g. UdpTransport)
            actuator: Optional secondary channel for the text protocol
            bluetooth: Optional Bluetooth central collaborator
            clock: Shared CentralClock. A new one is created if omitted.
            config: ExperienceConfig. Defaults to ExperienceConfig.for_session().
            output_config: OutputConfig providing OSC addresses
            heart_rate_config: HeartRateConfig shared by every session
        """
        targets = list(target_identifiers)
        if len(targets) < MIN_SESSIONS:
            raise ValueError(f"At least {MIN_SESSIONS} sensors are required, got {len(targets)}")

        self.config = config if config else ExperienceConfig.for_session()
        self.output_config = output_config if output_config else OutputConfig()
        self.heart_rate_config = heart_rate_config if heart_rate_config else HeartRateConfig.for_session()
        self.clock = clock if clock else CentralClock()

        self.osc_transport = osc_transport
        self.actuator = actuator
        self.bluetooth = bluetooth

        self._lock = threading.RLock()
        self._listeners: List[Listener] = []

        self._state = ExperienceState.SETUP
        self._started_at: Optional[datetime] = None
        self._sync_score = 0.0

        self._sessions: Dict[int, DeviceSession] = {}
        for session_id, target in enumerate(targets, start=1):
            session = DeviceSession(session_id, target, self.heart_rate_config)
            session.add_listener(self._on_session_event)
            self._sessions[session_id] = session

        logger.info(f"Session Orchestrator initialized with {len(self._sessions)} sensors")

    # ------------------------------------------------------------------
    # Roster and state
    # ------------------------------------------------------------------

    @property
    def sessions(self) -> Tuple[DeviceSession, ...]:
        return tuple(self._sessions.values())

    def session(self, session_id: int) -> DeviceSession:
        """
        Look up a session by id

        Raises:
            KeyError: Unknown session id
        """
        return self._sessions[session_id]

    def session_for_target(self, target_identifier: str) -> Optional[DeviceSession]:
        """Find the session addressing a given physical sensor"""
        for session in self._sessions.values():
            if session.target_identifier == str(target_identifier):
                return session
        return None

    @property
    def state(self) -> ExperienceState:
        return self._state

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def sync_score(self) -> float:
        return self._sync_score

    def readings(self) -> List[int]:
        """Snapshot of every session's last heart rate, in roster order"""
        return [session.snapshot().last_heart_rate for session in self._sessions.values()]

    def elapsed_seconds(self) -> float:
        """Seconds since start(), or 0 when no experience has started"""
        started_at = self._started_at
        if started_at is None:
            return 0.0
        return self.clock.seconds_since(started_at)

    def time_remaining(self) -> float:
        """Seconds left on the countdown (full duration before start)"""
        return max(0.0, self.config.duration - self.elapsed_seconds())

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: Listener):
        """Register a callable receiving orchestrator and session events"""
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener):
        """Unregister a previously added listener (no-op if unknown)"""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event):
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Listener failed on {type(event).__name__}: {e}", exc_info=True)

    def _on_session_event(self, event):
        self._emit(event)
        if isinstance(event, ConnectionStateChanged):
            self._evaluate_readiness()

    # ------------------------------------------------------------------
    # Bluetooth collaborator - outbound requests
    # ------------------------------------------------------------------

    def connect(self, session_id: int) -> bool:
        """
        Start connecting one session to its sensor

        Args:
            session_id: Session to connect

        Returns:
            True if the session moved to connecting
        """
        session = self._lookup(session_id)
        if session is None or not session.connect():
            return False

        if self.bluetooth is not None:
            try:
                self.bluetooth.connect(session.target_identifier, session.session_id)
            except Exception as e:
                logger.error(f"✗ Bluetooth connect for session {session_id} failed: {e}", exc_info=True)
                session.mark_connect_failed()
                return False
        return True

    def connect_all(self) -> int:
        """
        Start connecting every disconnected session

        Returns:
            Number of sessions that moved to connecting
        """
        logger.info(f"Connecting {len(self._sessions)} sensors...")
        return sum(1 for session_id in self._sessions if self.connect(session_id))

    def disconnect(self, session_id: int) -> bool:
        """
        Disconnect one session immediately

        The session flips to disconnected before the collaborator is asked
        to tear down the link; teardown is not awaited.

        Returns:
            True if the session's connection state changed
        """
        session = self._lookup(session_id)
        if session is None:
            return False
        return self._disconnect_session(session)

    def _disconnect_session(self, session: DeviceSession) -> bool:
        changed = session.disconnect()
        if self.bluetooth is not None:
            try:
                self.bluetooth.cancel_connection(session.target_identifier)
            except Exception as e:
                logger.error(
                    f"✗ Bluetooth teardown for session {session.session_id} failed: {e}",
                    exc_info=True,
                )
        return changed

    # ------------------------------------------------------------------
    # Bluetooth collaborator - inbound events
    # ------------------------------------------------------------------

    def handle_connected(self, session_id: int) -> bool:
        """Collaborator reports the sensor connected"""
        session = self._lookup(session_id)
        return session.mark_connected() if session else False

    def handle_connect_failed(self, session_id: int) -> bool:
        """Collaborator reports the connection attempt failed"""
        session = self._lookup(session_id)
        return session.mark_connect_failed() if session else False

    def handle_disconnected(self, session_id: int) -> bool:
        """Collaborator reports the sensor disconnected"""
        session = self._lookup(session_id)
        return session.mark_disconnected() if session else False

    def handle_notification(self, session_id: int, data: bytes) -> bool:
        """Collaborator delivers a raw Heart Rate Measurement notification"""
        session = self._lookup(session_id)
        return session.on_raw_notification(data) if session else False

    def handle_body_location(self, session_id: int, data: Optional[bytes]):
        """Collaborator delivers the Body Sensor Location value"""
        session = self._lookup(session_id)
        return session.update_body_location(data) if session else None

    def handle_manufacturer_name(self, session_id: int, data: Optional[bytes]):
        """Collaborator delivers the Manufacturer Name String value"""
        session = self._lookup(session_id)
        return session.update_manufacturer(data) if session else None

    def _lookup(self, session_id: int) -> Optional[DeviceSession]:
        session = self._sessions.get(session_id)
        if session is None:
            logger.warning(f"Event for unknown session {session_id} ignored")
        return session

    # ------------------------------------------------------------------
    # Experience state machine
    # ------------------------------------------------------------------

    @_ignores_invalid_transition
    def start(self) -> bool:
        """
        Start the experience (ready -> playing)

        Records the start time and joins every session to the group.

        Returns:
            True if the experience started
        """
        with self._lock:
            self._require('start', ExperienceState.READY)
            self._started_at = self.clock.now()
            for session in self._sessions.values():
                session.join_group()
            self._set_state(ExperienceState.PLAYING)

        logger.info(f"✓ Experience started ({self.config.duration:.0f}s)")
        return True

    @_ignores_invalid_transition
    def pause(self) -> bool:
        """Pause the experience (playing -> paused)"""
        with self._lock:
            self._require('pause', ExperienceState.PLAYING)
            self._set_state(ExperienceState.PAUSED)
        return True

    @_ignores_invalid_transition
    def resume(self) -> bool:
        """
        Resume the experience (paused -> playing)

        A sensor lost while paused cannot rejoin a running experience, so
        resuming with any session disconnected falls back to setup instead.

        Returns:
            True if the experience is playing again
        """
        with self._lock:
            self._require('resume', ExperienceState.PAUSED)
            if not all(session.is_connected for session in self._sessions.values()):
                logger.warning("Sensor missing on resume, returning to setup")
                self._set_state(ExperienceState.SETUP)
                return False
            self._set_state(ExperienceState.PLAYING)
        return True

    def end(self) -> bool:
        """
        Finish the experience from any state

        Returns:
            True if the state changed
        """
        with self._lock:
            changed = self._set_state(ExperienceState.FINISHED)

        if changed:
            logger.info(f"✓ Experience finished (sync score {self._sync_score:.0f}%)")
        return changed

    def reset(self):
        """
        Return to setup: disconnect every session, clear the timer and score
        """
        with self._lock:
            logger.info("Resetting experience...")
            for session in self._sessions.values():
                self._disconnect_session(session)
            self._started_at = None
            self._update_score(0.0)
            self._set_state(ExperienceState.SETUP)

        logger.info("✓ Experience reset")

    def _require(self, operation: str, *allowed: ExperienceState):
        if self._state not in allowed:
            raise InvalidTransition(operation, self._state.value)

    def _set_state(self, new_state: ExperienceState) -> bool:
        with self._lock:
            previous = self._state
            if previous is new_state:
                return False
            self._state = new_state

        logger.info(f"Experience state: {previous.value} -> {new_state.value}")
        self._emit(ExperienceStateChanged(previous, new_state, self.clock.now()))
        return True

    def _evaluate_readiness(self):
        with self._lock:
            all_connected = all(session.is_connected for session in self._sessions.values())

            if all_connected and self._state is ExperienceState.SETUP:
                logger.info("✓ All sensors connected")
                self._set_state(ExperienceState.READY)
            elif not all_connected and self._state in (ExperienceState.READY, ExperienceState.PLAYING):
                logger.warning("Sensor dropped out, returning to setup")
                self._set_state(ExperienceState.SETUP)

    # ------------------------------------------------------------------
    # Data flow
    # ------------------------------------------------------------------

    def cycle_elapsed(self, session_id: int) -> bool:
        """
        One heartbeat cycle passed for a session

        Readings only flow while the experience is playing.

        Args:
            session_id: Session whose cycle elapsed

        Returns:
            True if a reading was sent downstream
        """
        session = self._lookup(session_id)
        if session is None:
            return False

        with self._lock:
            if self._state is not ExperienceState.PLAYING:
                return False
            reading = session.cycle_elapsed()

        if reading is None:
            return False

        self._deliver_reading(reading)
        return True

    def tick(self):
        """
        Periodic evaluation (about once per second)

        While playing: re-score synchronization, broadcast the score and the
        group bundle, and finish once the configured duration has elapsed.
        """
        with self._lock:
            if self._state is not ExperienceState.PLAYING:
                return
            score = sync_score(self.readings())
            self._update_score(score)
            expired = self.elapsed_seconds() >= self.config.duration

        self._send(
            self.osc_transport,
            encode_message(self.output_config.score_address, int(round(score))),
            'osc',
        )
        self.broadcast_group()

        if expired:
            logger.info("Experience duration elapsed")
            self.end()

    def broadcast_group(self) -> bool:
        """
        Send every joined session's reading as one group bundle

        Returns:
            True if a bundle was produced
        """
        values = []
        for session in self._sessions.values():
            snap = session.snapshot()
            if snap.has_joined_group and self.heart_rate_config.is_plausible(snap.last_heart_rate):
                values.append(snap.last_heart_rate)

        if not values:
            return False

        self._send(
            self.osc_transport,
            encode_group_message(values, self.output_config.group_address),
            'osc',
        )
        if self.actuator is not None:
            self._send(self.actuator, encode_actuator_payload(values), 'actuator')
        return True

    def _deliver_reading(self, reading: OutboundReading):
        # Each channel is independent: a failure in one never blocks the other
        self._send(
            self.osc_transport,
            encode_player_message(
                reading.session_id, reading.bpm, self.output_config.player_address_template
            ),
            'osc',
        )
        if self.actuator is not None:
            self._send(self.actuator, encode_actuator_payload([reading.bpm]), 'actuator')

    def _send(self, channel: Any, data: bytes, label: str) -> bool:
        try:
            return bool(channel.send(data))
        except Exception as e:
            logger.error(f"✗ {label} channel raised while sending: {e}", exc_info=True)
            return False

    def _update_score(self, score: float):
        previous = self._sync_score
        if previous == score:
            return
        self._sync_score = score
        self._emit(SyncScoreChanged(previous, score))

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> dict:
        """
        Get overall orchestrator status

        Returns:
            dict: Experience state, timer, score and per-session status
        """
        started_at = self._started_at
        return {
            'state': self._state.value,
            'started_at': started_at.isoformat() if started_at else None,
            'elapsed_seconds': self.elapsed_seconds(),
            'time_remaining': self.time_remaining(),
            'sync_score': self._sync_score,
            'sessions': {s.session_id: s.get_status() for s in self._sessions.values()},
        }

    def __repr__(self):
        return f"<SessionOrchestrator(state={self._state.value}, sessions={len(self._sessions)})>"
