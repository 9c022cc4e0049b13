"""Tests for configuration models and loading."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from oci_metrics_query.config.models import AppConfig, DataSourceSettings, EnvSettings


def _settings(**overrides):
    base = dict(tenancy_ocid="ocid1.tenancy.oc1..test", default_region="us-ashburn-1")
    base.update(overrides)
    return DataSourceSettings(**base)


def test_defaults():
    s = _settings()
    assert s.environment == "local"
    assert s.max_retries == 1
    assert s.max_dimension_combinations == 20
    assert [(b.threshold_days, b.window) for b in s.auto_breakpoints] == [
        (7, "1m"),
        (30, "5m"),
        (90, "1h"),
    ]


def test_requires_identity():
    with pytest.raises(ValidationError):
        DataSourceSettings(default_region="us-ashburn-1")


def test_rejects_unknown_environment():
    with pytest.raises(ValidationError, match="environment must be one of"):
        _settings(environment="cloud")
    assert _settings(environment="OCI Instance").environment == "OCI Instance"


def test_rejects_non_positive_cap():
    with pytest.raises(ValidationError):
        _settings(max_dimension_combinations=0)


def test_breakpoints_must_ascend():
    with pytest.raises(ValidationError, match="strictly ascending"):
        _settings(
            auto_breakpoints=[
                {"threshold_days": 30, "window": "5m", "resolution": "5m"},
                {"threshold_days": 7, "window": "1m", "resolution": "1m"},
            ]
        )
    with pytest.raises(ValidationError, match="must not be empty"):
        _settings(auto_breakpoints=[])


def test_load_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "datasources": {
                    "prod": {
                        "tenancy_ocid": "ocid1.tenancy.oc1..prod",
                        "default_region": "eu-frankfurt-1",
                        "environment": "OCI Instance",
                        "datasource_id": 3,
                        "endpoint": "http://grafana:3000",
                        "auto_breakpoints": [
                            {"threshold_days": 1, "window": "1m", "resolution": "1m"},
                            {"threshold_days": 14, "window": "1h", "resolution": "1h"},
                        ],
                    }
                }
            }
        ),
        encoding="utf-8",
    )

    cfg = AppConfig.load(path)

    prod = cfg.datasources["prod"]
    assert prod.default_region == "eu-frankfurt-1"
    assert prod.datasource_id == 3
    assert len(prod.auto_breakpoints) == 2


def test_env_settings(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OCI_METRICS_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("OCI_METRICS_CONFIG_PATH", "/etc/oci-metrics/config.json")

    env = EnvSettings()

    assert env.log_level == "DEBUG"
    assert env.config_path == "/etc/oci-metrics/config.json"


def test_env_settings_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("OCI_METRICS_LOG_LEVEL", raising=False)
    monkeypatch.delenv("OCI_METRICS_CONFIG_PATH", raising=False)

    env = EnvSettings()

    assert env.log_level == "INFO"
    assert env.config_path is None
