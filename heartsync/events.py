"""
HeartSync Change Events
Typed notifications emitted by sessions and the orchestrator

Each event is emitted only when the underlying value actually changed.
Consumers subscribe with a plain callable taking one event.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class ConnectionStateChanged:
    session_id: int
    previous: Any
    current: Any


@dataclass(frozen=True)
class HeartRateChanged:
    session_id: int
    previous: int
    current: int


@dataclass(frozen=True)
class GroupMembershipChanged:
    session_id: int
    joined: bool


@dataclass(frozen=True)
class DeviceMetadataChanged:
    session_id: int
    field: str
    value: Any


@dataclass(frozen=True)
class ExperienceStateChanged:
    previous: Any
    current: Any
    at: Optional[datetime] = None


@dataclass(frozen=True)
class SyncScoreChanged:
    previous: float
    current: float


@dataclass(frozen=True)
class OutboundReading:
    """A single (session id, bpm) send request produced by a heartbeat cycle"""

    session_id: int
    bpm: int


Listener = Callable[[Any], None]
