"""Tests for node configuration and the retry policy."""

import pytest

from beaconcore.config import Config, RetryPolicy, setup_logging
from beaconcore.exceptions import ConfigError


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()

        assert policy.initial_delay == 1.0
        assert policy.multiplier == 2.0
        assert policy.max_delay == 30.0
        assert policy.max_attempts is None

    def test_backoff_grows_until_cap(self):
        policy = RetryPolicy(jitter=0.0)

        assert [policy.delay_for(attempt) for attempt in range(1, 8)] == [1, 2, 4, 8, 16, 30, 30]

    def test_jitter_stays_within_bounds(self):
        policy = RetryPolicy(initial_delay=10.0, max_delay=10.0, jitter=0.1)

        for _ in range(50):
            assert 9.0 <= policy.delay_for(1) <= 11.0

    def test_should_retry(self):
        assert RetryPolicy().should_retry(1000)

        limited = RetryPolicy(max_attempts=3)
        assert limited.should_retry(2)
        assert not limited.should_retry(3)

    @pytest.mark.parametrize("kwargs", [
        {"initial_delay": -1.0},
        {"multiplier": 0.5},
        {"initial_delay": 5.0, "max_delay": 1.0},
        {"jitter": 1.5},
        {"max_attempts": 0},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ConfigError):
            RetryPolicy(**kwargs)


class TestConfig:
    def test_defaults_are_valid(self):
        config = Config()

        assert config.preset == "mainnet"
        assert config.eth1_max_in_flight == 4
        assert config.graffiti_bytes == b"beaconcore".ljust(32, b"\x00")
        assert config.eth1_jwt_secret == b""

    @pytest.mark.parametrize("kwargs", [
        {"preset": "gnosis"},
        {"eth1_max_in_flight": 0},
        {"duty_load_concurrency": 0},
        {"eth1_request_timeout": 0},
        {"metrics_port": 70000},
        {"graffiti": "x" * 33},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ConfigError):
            Config(**kwargs)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "node.yaml"
        path.write_text(
            "PRESET: minimal\n"
            "eth1_endpoint: http://localhost:8545\n"
            "eth1_max_in_flight: 2\n"
            "retry:\n"
            "  initial_delay: 0.5\n"
            "  max_attempts: 4\n"
        )

        config = Config.from_yaml(path)

        assert config.preset == "minimal"
        assert config.eth1_endpoint == "http://localhost:8545"
        assert config.eth1_max_in_flight == 2
        assert config.retry == RetryPolicy(initial_delay=0.5, max_attempts=4)

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert Config.from_yaml(path) == Config()

    def test_yaml_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- preset\n- minimal\n")

        with pytest.raises(ConfigError):
            Config.from_yaml(path)

    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigError, match="Unknown config key"):
            Config.from_dict({"eth2_endpoint": "http://localhost"})

    def test_invalid_retry_mapping(self):
        with pytest.raises(ConfigError, match="Invalid retry policy"):
            Config.from_dict({"retry": {"backoff": 3}})

    def test_jwt_secret_read_from_file(self, tmp_path):
        secret = tmp_path / "jwt.hex"
        secret.write_text("0x" + "ab" * 32 + "\n")

        config = Config(eth1_jwt_secret_path=str(secret))

        assert config.eth1_jwt_secret == b"\xab" * 32


def test_setup_logging_rejects_unknown_level():
    with pytest.raises(ConfigError):
        setup_logging("chatty")
