"""
Heart Rate Notification Decoder
Pure parsing of BLE Heart Rate Service characteristic payloads

Handles:
- Heart Rate Measurement (0x2A37): bpm, sensor contact, energy, RR intervals
- Body Sensor Location (0x2A38)
- Manufacturer Name String (0x2A29)
"""

import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from heartsync.errors import MalformedPayload

# Measurement flag bits
FLAG_UINT16_BPM = 0x01
FLAG_CONTACT_SUPPORTED = 0x04
FLAG_CONTACT_DETECTED = 0x02
FLAG_ENERGY_PRESENT = 0x08
FLAG_RR_PRESENT = 0x10

RR_RESOLUTION = 1024.0  # RR intervals are transmitted in 1/1024 s

UNKNOWN_MANUFACTURER = 'Unknown'


class BodyLocation(Enum):
    NOT_AVAILABLE = 'not_available'
    CHEST = 'chest'
    UNDEFINED = 'undefined'


@dataclass(frozen=True)
class HeartRateMeasurement:
    """
    One decoded Heart Rate Measurement notification.

    sensor_contact is None when the sensor does not report contact status.
    """

    bpm: int
    sensor_contact: Optional[bool] = None
    energy_expended: Optional[int] = None
    rr_intervals: Tuple[float, ...] = field(default_factory=tuple)


def decode_measurement(data: bytes) -> HeartRateMeasurement:
    """
    Decode a full Heart Rate Measurement payload

    Byte 0 is the flags byte. Bit 0 selects the bpm width: clear means an
    8-bit value in byte 1, set means a little-endian uint16 in bytes 1-2.
    Optional fields that are truncated are dropped rather than failing.

    Args:
        data: Raw notification bytes

    Returns:
        HeartRateMeasurement

    Raises:
        MalformedPayload: Buffer too short for the flags byte or the bpm value
    """
    if not data:
        raise MalformedPayload("Empty heart rate notification")

    flags = data[0]
    if flags & FLAG_UINT16_BPM:
        if len(data) < 3:
            raise MalformedPayload(f"16-bit heart rate needs 3 bytes, got {len(data)}")
        bpm = data[1] | (data[2] << 8)
        offset = 3
    else:
        if len(data) < 2:
            raise MalformedPayload(f"8-bit heart rate needs 2 bytes, got {len(data)}")
        bpm = data[1]
        offset = 2

    sensor_contact = None
    if flags & FLAG_CONTACT_SUPPORTED:
        sensor_contact = bool(flags & FLAG_CONTACT_DETECTED)

    energy_expended = None
    if flags & FLAG_ENERGY_PRESENT and offset + 2 <= len(data):
        energy_expended = struct.unpack_from('<H', data, offset)[0]
        offset += 2
    elif flags & FLAG_ENERGY_PRESENT:
        # Truncated energy field; RR data cannot follow either
        offset = len(data)

    rr_intervals = []
    if flags & FLAG_RR_PRESENT:
        while offset + 2 <= len(data):
            rr = struct.unpack_from('<H', data, offset)[0]
            rr_intervals.append(rr / RR_RESOLUTION)
            offset += 2

    return HeartRateMeasurement(
        bpm=bpm,
        sensor_contact=sensor_contact,
        energy_expended=energy_expended,
        rr_intervals=tuple(rr_intervals),
    )


def decode_heart_rate(data: bytes) -> int:
    """
    Decode only the bpm value of a Heart Rate Measurement payload

    Args:
        data: Raw notification bytes

    Returns:
        Heart rate as an unsigned 16-bit integer

    Raises:
        MalformedPayload: Buffer too short for the selected width
    """
    return decode_measurement(data).bpm


def decode_body_location(data: Optional[bytes]) -> BodyLocation:
    """Map a Body Sensor Location value: 1 is chest, anything else undefined"""
    if not data:
        return BodyLocation.NOT_AVAILABLE
    if data[0] == 1:
        return BodyLocation.CHEST
    return BodyLocation.UNDEFINED


def decode_manufacturer_name(data: Optional[bytes]) -> str:
    """Decode a Manufacturer Name String, falling back to 'Unknown'"""
    if not data:
        return UNKNOWN_MANUFACTURER
    try:
        name = bytes(data).decode('utf-8')
    except UnicodeDecodeError:
        return UNKNOWN_MANUFACTURER
    return name or UNKNOWN_MANUFACTURER
