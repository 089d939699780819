"""
Experience Configuration
Session duration and timer cadence
"""

from dataclasses import dataclass

from heartsync.utils.runtime import coerce_float_env, read_env


@dataclass
class ExperienceConfig:
    """
    Configuration parameters for one group synchronization experience.

    Controls how long a playing session lasts and how often the
    orchestrator re-scores and checks the timer.
    """

    # Timing
    duration: float = 180.0  # Seconds of play before the experience finishes
    tick_interval: float = 1.0  # Seconds between score / timer evaluations

    @classmethod
    def for_session(cls) -> 'ExperienceConfig':
        """
        Create the configuration for a live installation.

        Returns:
            ExperienceConfig with a three minute session.
        """
        return cls()

    @classmethod
    def for_demo(cls) -> 'ExperienceConfig':
        """
        Create a short configuration for rehearsals and demos.

        Returns:
            ExperienceConfig with a 30 second session.
        """
        return cls(duration=30.0)

    @classmethod
    def from_env(cls) -> 'ExperienceConfig':
        """
        Build a configuration from HEARTSYNC_* environment overrides.

        Recognised variables: HEARTSYNC_DURATION_S, HEARTSYNC_TICK_INTERVAL_S.
        Invalid values fall back to defaults.

        Returns:
            ExperienceConfig
        """
        defaults = cls()
        duration, _ = coerce_float_env(read_env('DURATION_S'), defaults.duration, minimum=1.0)
        tick_interval, _ = coerce_float_env(
            read_env('TICK_INTERVAL_S'), defaults.tick_interval, minimum=0.05
        )
        return cls(duration=duration, tick_interval=tick_interval)
