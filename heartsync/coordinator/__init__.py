"""
HeartSync Coordinator
Manages the sensor roster, the experience state machine and group scoring
"""

from .clock import CentralClock
from .config import ExperienceConfig
from .orchestrator import ExperienceState, SessionOrchestrator
from .scoring import MAX_POSSIBLE_RANGE, sync_score

__all__ = [
    'CentralClock',
    'ExperienceConfig',
    'ExperienceState',
    'SessionOrchestrator',
    'MAX_POSSIBLE_RANGE',
    'sync_score',
]

__version__ = '1.0.0'
