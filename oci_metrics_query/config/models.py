"""Config models and loader.

This module defines Pydantic models for file- and environment-based
configuration. JSON parsing prefers `orjson` when available and falls back to
the standard library's `json` module.
"""

from __future__ import annotations

import json as _json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

try:
    import orjson as _orjson_mod  # type: ignore[assignment]
except ImportError:  # pragma: no cover - optional dependency
    _orjson_mod = None  # type: ignore[assignment]
    _loads_orjson: Optional[Callable[[bytes], Any]] = None
else:

    def _loads_orjson(buf: bytes) -> Any:
        loader = getattr(_orjson_mod, "loads")  # type: ignore[assignment]
        return loader(buf)


from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.constants import DEFAULT_MAX_DIMENSION_COMBINATIONS, ENVIRONMENTS
from ..domain.models import AutoBreakpoint
from ..domain.utils.window import DEFAULT_BREAKPOINT_TABLE


class DataSourceSettings(BaseModel):
    """Configuration for one OCI metrics data source instance.

    Attributes
    ----------
    tenancy_ocid: str
        Tenancy identifier sent with every backend request.
    default_region: str
        Region used when a query does not name one.
    environment: str
        Authentication environment tag ("local" or "OCI Instance").
    resolution: Optional[str]
        Default sampling resolution for targets that do not set one.
    datasource_id: Optional[int]
        Host-assigned data source identifier forwarded to the backend.
    endpoint: str
        Base URL of the host serving ``/api/ds/query``.
    max_dimension_combinations: int
        Upper bound on queries produced from one multi-value target.
    auto_breakpoints: List[AutoBreakpoint]
        Time-range table for ``auto`` window/resolution, ascending.
    """

    tenancy_ocid: str = Field(..., description="Tenancy OCID")
    default_region: str = Field(..., description="Default region")
    environment: str = Field("local", description="Authentication environment")
    resolution: Optional[str] = Field(None, description="Default resolution")
    datasource_id: Optional[int] = Field(None, description="Host data source id")
    endpoint: str = Field("http://localhost:3000", description="Host base URL")
    api_key: Optional[str] = Field(None, description="Bearer token for the host")
    timeout_seconds: int = Field(30, ge=1)
    max_retries: int = Field(1, ge=0, description="Number of retry attempts")
    backoff_initial_ms: int = Field(
        200, ge=0, description="Initial backoff in milliseconds"
    )
    backoff_multiplier: float = Field(
        2.0, ge=1.0, description="Backoff multiplier per attempt"
    )
    max_dimension_combinations: int = Field(
        DEFAULT_MAX_DIMENSION_COMBINATIONS,
        ge=1,
        description="Cap on queries generated from multi-value dimensions",
    )
    auto_breakpoints: List[AutoBreakpoint] = Field(
        default_factory=lambda: list(DEFAULT_BREAKPOINT_TABLE)
    )

    @field_validator("environment")
    @classmethod
    def _known_environment(cls, value: str) -> str:
        if value not in ENVIRONMENTS:
            raise ValueError(
                f"environment must be one of {', '.join(ENVIRONMENTS)}"
            )
        return value

    @field_validator("auto_breakpoints")
    @classmethod
    def _ascending(cls, value: List[AutoBreakpoint]) -> List[AutoBreakpoint]:
        if not value:
            raise ValueError("auto_breakpoints must not be empty")
        thresholds = [row.threshold_days for row in value]
        if any(b <= a for a, b in zip(thresholds, thresholds[1:])):
            raise ValueError("auto_breakpoints thresholds must be strictly ascending")
        return value


class AppConfig(BaseModel):
    """Top-level application configuration.

    Attributes
    ----------
    datasources: Dict[str, DataSourceSettings]
        Mapping from logical data source name to its settings.
    """

    datasources: Dict[str, DataSourceSettings] = Field(default_factory=dict)

    @staticmethod
    def load(path: Path) -> "AppConfig":
        """Load application config from a JSON file."""
        raw = path.read_bytes()
        if _loads_orjson is not None:
            data = _loads_orjson(raw)
        else:
            data = _json.loads(raw.decode("utf-8"))
        return AppConfig.model_validate(data)


class EnvSettings(BaseSettings):
    """Environment-driven settings and .env support.

    Attributes
    ----------
    log_level: str
        Logging level name (e.g., "DEBUG", "INFO"). Defaults to "INFO".
    config_path: Optional[str]
        Path to the JSON configuration file used when ``--config`` is omitted.
    """

    model_config = SettingsConfigDict(env_file=".env", env_prefix="OCI_METRICS_")

    log_level: str = Field("INFO")
    config_path: Optional[str] = None
