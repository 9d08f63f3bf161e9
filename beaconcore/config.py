"""Configuration for beaconcore."""

import logging
import random
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from .exceptions import ConfigError


def setup_logging(level: str) -> None:
    """Set up logging configuration."""
    try:
        numeric_level = getattr(logging, level.upper())
    except AttributeError:
        raise ConfigError(f"Unknown log level: {level}") from None
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if numeric_level > logging.DEBUG:
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with jitter for duty loading.

    max_attempts of None retries until the load succeeds.
    """

    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.1
    max_attempts: Optional[int] = None

    def __post_init__(self):
        if self.initial_delay < 0:
            raise ConfigError("initial_delay must be >= 0")
        if self.multiplier < 1.0:
            raise ConfigError("multiplier must be >= 1.0")
        if self.max_delay < self.initial_delay:
            raise ConfigError("max_delay must be >= initial_delay")
        if not 0.0 <= self.jitter <= 1.0:
            raise ConfigError("jitter must be within [0, 1]")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ConfigError("max_attempts must be >= 1 when set")

    def delay_for(self, attempt: int) -> float:
        """Return the sleep before retry number attempt (1-based)."""
        base = min(self.max_delay, self.initial_delay * self.multiplier ** (attempt - 1))
        if self.jitter:
            base *= 1.0 + random.uniform(-self.jitter, self.jitter)
        return max(0.0, base)

    def should_retry(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt < self.max_attempts


@dataclass
class Config:
    """Node configuration."""

    preset: str = "mainnet"
    network_config_path: str = ""
    eth1_endpoint: str = ""
    eth1_jwt_secret_path: str = ""
    eth1_max_in_flight: int = 4
    eth1_request_timeout: float = 10.0
    duty_load_concurrency: int = 2
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    metrics_port: int = 8008
    log_level: str = "INFO"
    graffiti: str = "beaconcore"
    verify_signatures: bool = True

    def __post_init__(self):
        if self.preset not in ("mainnet", "minimal"):
            raise ConfigError(f"Unknown preset: {self.preset}")
        if self.eth1_max_in_flight < 1:
            raise ConfigError("eth1_max_in_flight must be >= 1")
        if self.duty_load_concurrency < 1:
            raise ConfigError("duty_load_concurrency must be >= 1")
        if self.eth1_request_timeout <= 0:
            raise ConfigError("eth1_request_timeout must be > 0")
        if not 0 <= self.metrics_port <= 65535:
            raise ConfigError(f"Invalid metrics port: {self.metrics_port}")
        if len(self.graffiti.encode()) > 32:
            raise ConfigError("graffiti must fit in 32 bytes")

    @property
    def eth1_jwt_secret(self) -> bytes:
        if not self.eth1_jwt_secret_path:
            return b""
        with open(self.eth1_jwt_secret_path, "rb") as f:
            return bytes.fromhex(f.read().decode().strip().replace("0x", ""))

    @property
    def graffiti_bytes(self) -> bytes:
        return self.graffiti.encode().ljust(32, b"\x00")

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load node config from a yaml file.

        Keys are matched case-insensitively against field names; the optional
        `retry` mapping configures the RetryPolicy.
        """
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = key.lower()
            if name not in known:
                raise ConfigError(f"Unknown config key: {key}")
            kwargs[name] = value

        retry = kwargs.get("retry")
        if isinstance(retry, dict):
            try:
                kwargs["retry"] = RetryPolicy(**retry)
            except TypeError as e:
                raise ConfigError(f"Invalid retry policy: {e}") from e

        return cls(**kwargs)
