"""
Configuration Tests
===================
Dataclass defaults, named constructors and HEARTSYNC_* environment overrides.
"""

import logging

import pytest

from heartsync.coordinator import ExperienceConfig
from heartsync.log import LOG_FORMAT, configure_logging
from heartsync.output import OutputConfig
from heartsync.sensors.heart_rate import HeartRateConfig
from heartsync.utils.runtime import coerce_float_env, coerce_int_env, coerce_str_env


class TestHeartRateConfig:

    def test_plausible_band_is_exclusive(self):
        config = HeartRateConfig.for_session()
        assert not config.is_plausible(0)
        assert config.is_plausible(1)
        assert config.is_plausible(239)
        assert not config.is_plausible(240)

    def test_cycle_interval(self):
        config = HeartRateConfig(idle_cycle_interval=2.0)
        assert config.cycle_interval(60) == 1.0
        assert config.cycle_interval(120) == 0.5
        assert config.cycle_interval(0) == 2.0


class TestExperienceConfig:

    def test_defaults(self):
        assert ExperienceConfig.for_session().duration == 180.0
        assert ExperienceConfig.for_demo().duration == 30.0

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv('HEARTSYNC_DURATION_S', '90')
        monkeypatch.setenv('HEARTSYNC_TICK_INTERVAL_S', '0.5')
        config = ExperienceConfig.from_env()
        assert config.duration == 90.0
        assert config.tick_interval == 0.5

    def test_invalid_env_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv('HEARTSYNC_DURATION_S', 'three minutes')
        monkeypatch.setenv('HEARTSYNC_TICK_INTERVAL_S', '0')
        with caplog.at_level(logging.WARNING):
            config = ExperienceConfig.from_env()
        assert config.duration == 180.0
        assert config.tick_interval == 0.05
        assert "non-numeric" in caplog.text


class TestOutputConfig:

    def test_defaults(self, monkeypatch):
        for name in ('OSC_HOST', 'OSC_PORT', 'ACTUATOR_SERIAL_PORT', 'ACTUATOR_HOST', 'ACTUATOR_PORT'):
            monkeypatch.delenv('HEARTSYNC_' + name, raising=False)
        config = OutputConfig.from_env()
        assert (config.osc_host, config.osc_port) == ('127.0.0.1', 8000)
        assert config.player_address(3) == '/player/3/bpm'
        assert config.has_actuator is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv('HEARTSYNC_OSC_HOST', '192.168.1.20')
        monkeypatch.setenv('HEARTSYNC_OSC_PORT', '9000')
        monkeypatch.setenv('HEARTSYNC_ACTUATOR_SERIAL_PORT', '/dev/ttyACM0')
        monkeypatch.setenv('HEARTSYNC_ACTUATOR_BAUDRATE', '115200')
        config = OutputConfig.from_env()
        assert config.osc_host == '192.168.1.20'
        assert config.osc_port == 9000
        assert config.actuator_serial_port == '/dev/ttyACM0'
        assert config.actuator_baudrate == 115200
        assert config.has_actuator is True

    def test_udp_actuator_needs_host_and_port(self):
        assert OutputConfig(actuator_host='10.0.0.5').has_actuator is False
        assert OutputConfig(actuator_host='10.0.0.5', actuator_port=4210).has_actuator is True


class TestCoercion:

    @pytest.mark.parametrize("value, expected", [
        (None, (1.0, False)),
        ('', (1.0, False)),
        ('2.5', (2.5, True)),
        ('-4', (0.0, True)),
        ('nan', (1.0, False)),
        ('abc', (1.0, False)),
    ])
    def test_float(self, value, expected):
        assert coerce_float_env(value, 1.0) == expected

    @pytest.mark.parametrize("value, expected", [
        ('8000', (8000, True)),
        ('70000', (65535, True)),
        ('0', (1, True)),
        ('1e999', (10, False)),
        ('port', (10, False)),
    ])
    def test_int(self, value, expected):
        assert coerce_int_env(value, 10, maximum=65535) == expected

    def test_str(self):
        assert coerce_str_env('  host  ', 'x') == ('host', True)
        assert coerce_str_env('   ', 'x') == ('x', False)


def test_configure_logging_adds_file_handler(tmp_path):
    log_file = tmp_path / 'heartsync.log'
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level

    try:
        configure_logging('debug', log_file=str(log_file))
        logging.getLogger('heartsync.test').warning("file handler check")
        added = [h for h in root.handlers if h not in before]
        for handler in added:
            handler.flush()
        assert any(isinstance(h, logging.FileHandler) for h in added)
        assert "file handler check" in log_file.read_text()
        assert LOG_FORMAT.startswith('%(asctime)s')
    finally:
        for handler in root.handlers[:]:
            if handler not in before:
                root.removeHandler(handler)
                handler.close()
        root.setLevel(level)
