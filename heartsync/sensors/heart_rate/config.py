"""
Heart Rate Sensor Configuration
BLE heart-rate monitor parameters and GATT identifiers
"""

from dataclasses import dataclass

# GATT identifiers (16-bit assigned numbers)
HEART_RATE_SERVICE_UUID = '180D'
HEART_RATE_MEASUREMENT_UUID = '2A37'
BODY_SENSOR_LOCATION_UUID = '2A38'
DEVICE_INFO_SERVICE_UUID = '180A'
MANUFACTURER_NAME_UUID = '2A29'
ACTUATOR_CHARACTERISTIC_UUID = '2A39'

# Sentinel stored in last_sent_value before anything has been transmitted
NO_VALUE_SENT = -1


@dataclass
class HeartRateConfig:
    """
    Configuration parameters for a BLE heart-rate monitor session.

    Controls the plausible physiological band for outbound readings and
    the cycle cadence used while a sensor has not reported yet.
    """

    # Plausible physiological band (both bounds exclusive)
    min_plausible_bpm: int = 0
    max_plausible_bpm: int = 240

    # Cycle cadence
    idle_cycle_interval: float = 1.0  # Seconds between cycles with no reading

    def is_plausible(self, bpm: int) -> bool:
        """
        Check whether a reading may be transmitted downstream.

        Args:
            bpm: Heart rate in beats per minute

        Returns:
            True if min_plausible_bpm < bpm < max_plausible_bpm
        """
        return self.min_plausible_bpm < bpm < self.max_plausible_bpm

    def cycle_interval(self, bpm: int) -> float:
        """
        Seconds of real time that make up one heartbeat cycle.

        Args:
            bpm: Current heart rate (0 when silent)

        Returns:
            60 / bpm for plausible readings, idle_cycle_interval otherwise
        """
        if not self.is_plausible(bpm):
            return self.idle_cycle_interval
        return 60.0 / bpm

    @classmethod
    def for_session(cls) -> 'HeartRateConfig':
        """
        Create the default configuration for a live session.

        Returns:
            HeartRateConfig with the standard (0, 240) bpm band.
        """
        return cls()
