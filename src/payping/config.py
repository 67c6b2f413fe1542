"""Client configuration for payping."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from payping._constants import BASE_URL
from payping.exceptions import PaypingConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _default_state_dir() -> Path:
    return Path.home() / ".payping"


@dataclasses.dataclass(frozen=True)
class PaypingConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        Document store API base URL.
    request_timeout : float
        Total timeout in seconds for a single document store request.
    mqtt_enabled : bool
        Open real-time push channels over MQTT.  When disabled the
        snapshot is only refreshed by explicit fetches.
    mqtt_host : str
        Push broker host name.
    mqtt_port : int
        Push broker port.
    mqtt_tls : bool
        Connect to the broker over TLS.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_topic_prefix : str
        Prefix prepended to every collection topic.
    state_dir : Path
        Directory holding client-local files (onboarding flag, backups).
    api_trace_enabled : bool
        Log redacted request and response bodies at DEBUG level.
    """

    base_url: str = BASE_URL
    request_timeout: float = 30.0
    mqtt_enabled: bool = True
    mqtt_host: str = "push.payping.app"
    mqtt_port: int = 8883
    mqtt_tls: bool = True
    mqtt_keepalive: int = 120
    mqtt_topic_prefix: str = "payping"
    state_dir: Path = dataclasses.field(default_factory=_default_state_dir)
    api_trace_enabled: bool = False

    def __post_init__(self) -> None:
        if not self.base_url.startswith(("http://", "https://")):
            raise PaypingConfigError(f"base_url must be an http(s) URL, got {self.base_url!r}")
        if self.request_timeout <= 0:
            raise PaypingConfigError("request_timeout must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> PaypingConfig:
        """Create configuration from ``PAYPING_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "PAYPING_BASE_URL": "base_url",
            "PAYPING_MQTT_HOST": "mqtt_host",
            "PAYPING_MQTT_TOPIC_PREFIX": "mqtt_topic_prefix",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        timeout_env = env.get("PAYPING_REQUEST_TIMEOUT")
        if timeout_env is not None:
            config_kwargs["request_timeout"] = float(timeout_env)

        port_env = env.get("PAYPING_MQTT_PORT")
        if port_env is not None:
            config_kwargs["mqtt_port"] = int(port_env)

        keepalive_env = env.get("PAYPING_MQTT_KEEPALIVE")
        if keepalive_env is not None:
            config_kwargs["mqtt_keepalive"] = int(keepalive_env)

        state_dir_env = env.get("PAYPING_STATE_DIR")
        if state_dir_env is not None:
            config_kwargs["state_dir"] = Path(state_dir_env).expanduser()

        config_kwargs["mqtt_enabled"] = _env_bool(env.get("PAYPING_MQTT_ENABLED"), True)
        config_kwargs["mqtt_tls"] = _env_bool(env.get("PAYPING_MQTT_TLS"), True)
        config_kwargs["api_trace_enabled"] = _env_bool(env.get("PAYPING_API_TRACE_ENABLED"), False)

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
