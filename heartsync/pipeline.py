"""
HeartSync - Pipeline
====================
Central module that owns the full lifecycle of a synchronization installation.

Usage in a host application:
    pipeline = HeartSyncPipeline(device_uuids, bluetooth=central)
    pipeline.start()
    pipeline.orchestrator.connect_all()
    # ... Bluetooth callbacks feed pipeline.orchestrator.handle_* ...
    pipeline.orchestrator.start()
    # ...
    pipeline.stop()

Owned components:
    - CentralClock       : shared time reference for the experience timer
    - UdpTransport       : OSC output (default 127.0.0.1:8000)
    - Actuator channel   : optional serial device or UDP bridge
    - SessionOrchestrator: roster, experience state machine, scoring

Cadence:
    A background thread fires each session's heartbeat cycle once per
    60 / bpm seconds and calls the orchestrator tick once per tick_interval.
"""

import logging
import threading
from typing import Any, Dict, Optional, Sequence

from heartsync.coordinator.clock import CentralClock
from heartsync.coordinator.config import ExperienceConfig
from heartsync.coordinator.orchestrator import SessionOrchestrator
from heartsync.output.actuator import SerialActuatorChannel
from heartsync.output.config import OutputConfig
from heartsync.output.transport import UdpTransport
from heartsync.sensors.heart_rate import HeartRateConfig

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.02  # Seconds between scheduling passes


class HeartSyncPipeline:
    """
    Owns the transports, the orchestrator and the cycle cadence.

    Responsibilities:
      - Build the OSC transport and optional actuator channel from OutputConfig
      - Build the SessionOrchestrator for the given device roster
      - Drive per-session heartbeat cycles and the periodic tick
      - Provide a clean start() / stop() interface for the host application
    """

    def __init__(
        self,
        target_identifiers: Sequence[str],
        bluetooth: Optional[Any] = None,
        clock: Optional[CentralClock] = None,
        config: Optional[ExperienceConfig] = None,
        output_config: Optional[OutputConfig] = None,
        heart_rate_config: Optional[HeartRateConfig] = None,
        osc_transport: Optional[Any] = None,
        actuator: Optional[Any] = None,
    ):
        """
        Args:
            target_identifiers : One sensor identifier per player, in order
            bluetooth          : Bluetooth central collaborator (optional)
            clock              : Shared CentralClock (created if omitted)
            config             : ExperienceConfig (duration, tick interval)
            output_config      : OutputConfig (OSC destination, actuator)
            heart_rate_config  : HeartRateConfig (bpm band, idle cadence)
            osc_transport      : Pre-built OSC channel, overrides output_config
            actuator           : Pre-built actuator channel, overrides output_config
        """
        self.clock = clock if clock else CentralClock()
        self.config = config if config else ExperienceConfig.for_session()
        self.output_config = output_config if output_config else OutputConfig()
        self.heart_rate_config = heart_rate_config if heart_rate_config else HeartRateConfig.for_session()

        self.osc_transport = osc_transport if osc_transport is not None else UdpTransport(
            host=self.output_config.osc_host,
            port=self.output_config.osc_port,
            reconnect_interval=self.output_config.reconnect_interval,
            name='osc',
        )
        self.actuator = actuator if actuator is not None else self._build_actuator()

        self.orchestrator = SessionOrchestrator(
            target_identifiers,
            osc_transport=self.osc_transport,
            actuator=self.actuator,
            bluetooth=bluetooth,
            clock=self.clock,
            config=self.config,
            output_config=self.output_config,
            heart_rate_config=self.heart_rate_config,
        )

        # Scheduling state (monotonic seconds)
        self._next_cycle: Dict[int, float] = {}
        self._next_tick: Optional[float] = None

        # Thread management
        self.is_running = False
        self.cadence_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()

        logger.info(f"HeartSyncPipeline created for {len(self.orchestrator.sessions)} sensors")

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def start(self):
        """
        Start the cadence thread.
        """
        if self.is_running:
            logger.warning("HeartSync pipeline already running")
            return

        logger.info("=" * 55)
        logger.info("  HeartSync Pipeline — starting")
        logger.info("=" * 55)

        self.stop_event.clear()
        self._next_cycle.clear()
        self._next_tick = None
        self.is_running = True

        self.cadence_thread = threading.Thread(
            target=self._cadence_loop,
            name="HeartSync-Cadence-Thread",
            daemon=True,
        )
        self.cadence_thread.start()

        logger.info(f"✓ Pipeline ready, OSC {self.output_config.osc_host}:{self.output_config.osc_port}")

    def stop(self):
        """
        Stop the cadence thread and close every outbound channel.
        """
        logger.info("Stopping HeartSync pipeline...")

        self.stop_event.set()
        if self.cadence_thread and self.cadence_thread.is_alive():
            self.cadence_thread.join(timeout=5)
        self.is_running = False

        for channel in (self.osc_transport, self.actuator):
            if channel is None or not hasattr(channel, 'close'):
                continue
            try:
                channel.close()
            except Exception as e:
                logger.error(f"✗ Error closing {channel!r}: {e}", exc_info=True)

        logger.info("✓ HeartSync pipeline stopped")

    def run_once(self, now: float) -> int:
        """
        Perform one scheduling pass

        Fires every session cycle that is due and the orchestrator tick
        when its interval has elapsed. The first pass only schedules.

        Args:
            now: Current monotonic time in seconds

        Returns:
            Number of readings sent downstream during this pass
        """
        sent = 0

        for session in self.orchestrator.sessions:
            due = self._next_cycle.get(session.session_id)
            if due is None:
                self._next_cycle[session.session_id] = now + self._cycle_interval(session)
                continue
            if now < due:
                continue

            if self.orchestrator.cycle_elapsed(session.session_id):
                sent += 1
            self._next_cycle[session.session_id] = self._advance(due, now, self._cycle_interval(session))

        if self._next_tick is None:
            self._next_tick = now + self.config.tick_interval
        elif now >= self._next_tick:
            self.orchestrator.tick()
            self._next_tick = self._advance(self._next_tick, now, self.config.tick_interval)

        return sent

    def get_status(self) -> dict:
        """
        Return a summary of pipeline state for logging / UI display.
        """
        return {
            'is_running': self.is_running,
            'osc': self._channel_status(self.osc_transport),
            'actuator': self._channel_status(self.actuator),
            'orchestrator': self.orchestrator.get_status(),
        }

    # -----------------------------------------------------------------------
    # Private helpers
    # -----------------------------------------------------------------------

    def _build_actuator(self):
        cfg = self.output_config
        if cfg.actuator_serial_port:
            return SerialActuatorChannel(
                port=cfg.actuator_serial_port,
                baudrate=cfg.actuator_baudrate,
                reconnect_interval=cfg.actuator_reconnect_interval,
            )
        if cfg.actuator_host and cfg.actuator_port:
            return UdpTransport(
                host=cfg.actuator_host,
                port=cfg.actuator_port,
                reconnect_interval=cfg.reconnect_interval,
                name='actuator',
            )
        logger.info("No actuator channel configured")
        return None

    def _cycle_interval(self, session) -> float:
        return self.heart_rate_config.cycle_interval(session.last_heart_rate)

    @staticmethod
    def _advance(due: float, now: float, interval: float) -> float:
        # Keep a steady cadence but never replay a backlog of missed cycles
        next_due = due + interval
        if next_due <= now:
            next_due = now + interval
        return next_due

    @staticmethod
    def _channel_status(channel) -> Optional[dict]:
        if channel is None:
            return None
        if hasattr(channel, 'get_status'):
            return channel.get_status()
        return {'channel': repr(channel)}

    def _cadence_loop(self):
        """
        Cadence loop, runs in a background thread.
        """
        logger.info("HeartSync cadence loop started")

        while not self.stop_event.wait(POLL_INTERVAL):
            try:
                self.run_once(self.clock.monotonic())
            except Exception as e:
                logger.error(f"Error in cadence loop: {e}", exc_info=True)

        logger.info("HeartSync cadence loop stopped")

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - cleanup"""
        self.stop()

    def __repr__(self):
        status = "running" if self.is_running else "stopped"
        return f"<HeartSyncPipeline(status={status}, sensors={len(self.orchestrator.sessions)})>"
