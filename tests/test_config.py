from __future__ import annotations

from pathlib import Path

import pytest

from payping.config import PaypingConfig
from payping.exceptions import PaypingConfigError


def test_defaults() -> None:
    config = PaypingConfig()
    assert config.base_url == "https://api.payping.app"
    assert config.mqtt_enabled
    assert config.state_dir == Path.home() / ".payping"


def test_from_env_reads_variables(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PAYPING_BASE_URL", "http://localhost:8080")
    monkeypatch.setenv("PAYPING_REQUEST_TIMEOUT", "5")
    monkeypatch.setenv("PAYPING_MQTT_ENABLED", "false")
    monkeypatch.setenv("PAYPING_MQTT_PORT", "1883")
    monkeypatch.setenv("PAYPING_STATE_DIR", str(tmp_path))

    config = PaypingConfig.from_env()

    assert config.base_url == "http://localhost:8080"
    assert config.request_timeout == 5.0
    assert config.mqtt_enabled is False
    assert config.mqtt_port == 1883
    assert config.state_dir == tmp_path


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAYPING_MQTT_TLS", "no")

    config = PaypingConfig.from_env(mqtt_tls=True, mqtt_topic_prefix="test")

    assert config.mqtt_tls is True
    assert config.mqtt_topic_prefix == "test"


def test_unparseable_bool_falls_back_to_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAYPING_API_TRACE_ENABLED", "maybe")
    assert PaypingConfig.from_env().api_trace_enabled is False


@pytest.mark.parametrize("kwargs", [{"base_url": "ftp://example.com"}, {"request_timeout": 0}])
def test_invalid_values_are_rejected(kwargs: dict[str, object]) -> None:
    with pytest.raises(PaypingConfigError):
        PaypingConfig(**kwargs)  # type: ignore[arg-type]
