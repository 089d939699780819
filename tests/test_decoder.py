"""
Heart Rate Decoder Tests
========================
Measurement, body location and manufacturer payload parsing.
"""

import pytest

from heartsync.errors import MalformedPayload
from heartsync.sensors.heart_rate import (
    BodyLocation,
    decode_body_location,
    decode_heart_rate,
    decode_manufacturer_name,
    decode_measurement,
)


class TestHeartRateValue:

    @pytest.mark.parametrize("bpm", [0, 1, 72, 128, 255])
    def test_eight_bit_value_is_byte_one(self, bpm):
        assert decode_heart_rate(bytes([0x00, bpm])) == bpm

    def test_sixteen_bit_value_is_little_endian(self):
        assert decode_heart_rate(bytes([0x01, 0x48, 0x00])) == 72
        assert decode_heart_rate(bytes([0x01, 0x2C, 0x01])) == 300

    def test_eight_bit_ignores_trailing_bytes(self):
        assert decode_heart_rate(bytes([0x00, 0x50, 0xFF, 0xFF])) == 80

    def test_other_flag_bits_do_not_change_width(self):
        assert decode_heart_rate(bytes([0x16, 65])) == 65

    @pytest.mark.parametrize("payload", [b"", b"\x00", b"\x01", b"\x01\x48"])
    def test_short_buffers_are_malformed(self, payload):
        with pytest.raises(MalformedPayload):
            decode_heart_rate(payload)


class TestMeasurementMetadata:

    def test_plain_measurement_has_no_metadata(self):
        m = decode_measurement(bytes([0x00, 70]))
        assert m.bpm == 70
        assert m.sensor_contact is None
        assert m.energy_expended is None
        assert m.rr_intervals == ()

    def test_contact_reported_only_when_supported(self):
        assert decode_measurement(bytes([0x06, 70])).sensor_contact is True
        assert decode_measurement(bytes([0x04, 70])).sensor_contact is False
        assert decode_measurement(bytes([0x02, 70])).sensor_contact is None

    def test_energy_and_rr_intervals(self):
        # flags: energy + RR, bpm 60, energy 500 kJ, RR 1024 and 512
        payload = bytes([0x18, 60, 0xF4, 0x01, 0x00, 0x04, 0x00, 0x02])
        m = decode_measurement(payload)
        assert m.bpm == 60
        assert m.energy_expended == 500
        assert m.rr_intervals == (1.0, 0.5)

    def test_rr_after_sixteen_bit_value(self):
        m = decode_measurement(bytes([0x11, 0x50, 0x00, 0x00, 0x03]))
        assert m.bpm == 80
        assert m.rr_intervals == (0.75,)

    def test_truncated_optional_fields_are_dropped(self):
        m = decode_measurement(bytes([0x18, 60, 0xF4]))
        assert m.bpm == 60
        assert m.energy_expended is None
        assert m.rr_intervals == ()

    def test_odd_trailing_rr_byte_is_ignored(self):
        m = decode_measurement(bytes([0x10, 60, 0x00, 0x04, 0x01]))
        assert m.rr_intervals == (1.0,)


class TestDeviceInformation:

    @pytest.mark.parametrize("payload, expected", [
        (None, BodyLocation.NOT_AVAILABLE),
        (b"", BodyLocation.NOT_AVAILABLE),
        (b"\x01", BodyLocation.CHEST),
        (b"\x00", BodyLocation.UNDEFINED),
        (b"\x03", BodyLocation.UNDEFINED),
    ])
    def test_body_location(self, payload, expected):
        assert decode_body_location(payload) is expected

    def test_manufacturer_name(self):
        assert decode_manufacturer_name(b"Polar Electro Oy") == "Polar Electro Oy"

    @pytest.mark.parametrize("payload", [None, b"", b"\xff\xfe"])
    def test_manufacturer_falls_back_to_unknown(self, payload):
        assert decode_manufacturer_name(payload) == "Unknown"
