"""
Collector configuration.

Settings come from a YAML file, a plain mapping handed over by the host,
or CINDERMON_* environment variables (which win over the file).

    endpoint: http://keystone.example.com:5000/v3
    user: admin
    password: secret
    tenant: admin          # admin tenant used for the bulk volume/snapshot listings
    domain_name: Default   # optional
    domain_id: ""          # optional
    timeout: 30            # optional, seconds per HTTP request
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import yaml

from cindermon.errors import ConfigError

REQUIRED_KEYS = ("endpoint", "user", "password", "tenant")
OPTIONAL_KEYS = ("domain_name", "domain_id")

DEFAULT_TIMEOUT = 30.0

ENV_PREFIX = "CINDERMON_"


@dataclass(frozen=True)
class CollectorConfig:
    endpoint: str
    user: str
    password: str
    tenant: str
    domain_name: str = ""
    domain_id: str = ""
    timeout: float = DEFAULT_TIMEOUT

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CollectorConfig":
        missing = [key for key in REQUIRED_KEYS if not data.get(key)]
        if missing:
            raise ConfigError(f"Missing required config keys: {', '.join(missing)}")

        values = {key: str(data[key]) for key in REQUIRED_KEYS}
        for key in OPTIONAL_KEYS:
            # absent or null means "not set", never an error
            values[key] = str(data.get(key) or "")

        raw_timeout = data.get("timeout")
        if raw_timeout is None:
            values["timeout"] = DEFAULT_TIMEOUT
        else:
            try:
                values["timeout"] = float(raw_timeout)
            except (TypeError, ValueError):
                raise ConfigError(f"timeout must be a number, got {raw_timeout!r}") from None
            if values["timeout"] <= 0:
                raise ConfigError("timeout must be positive")

        return cls(**values)

    def __repr__(self) -> str:
        return (
            f"CollectorConfig(endpoint={self.endpoint!r}, user={self.user!r}, "
            f"tenant={self.tenant!r}, domain_name={self.domain_name!r}, "
            f"domain_id={self.domain_id!r}, timeout={self.timeout})"
        )


def _env_overrides(environ: Mapping[str, str]) -> dict:
    overrides = {}
    for key in REQUIRED_KEYS + OPTIONAL_KEYS + ("timeout",):
        value = environ.get(ENV_PREFIX + key.upper())
        if value:
            overrides[key] = value
    return overrides


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> CollectorConfig:
    """Load config from a YAML file (optional) plus environment overrides.

    Raises:
        ConfigError: file missing or unreadable, bad YAML, or missing keys.
    """
    environ = os.environ if environ is None else environ
    data: dict = {}

    if path:
        if not os.path.exists(path):
            raise ConfigError(f"Config file not found: {path}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse config file {path}: {e}") from e

        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ConfigError(f"Config file {path} must contain a mapping")
            data.update(loaded)

    data.update(_env_overrides(environ))
    return CollectorConfig.from_mapping(data)
