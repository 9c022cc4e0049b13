"""Canonical query model consumed by the resolvers.

These Pydantic models represent the editor-authored query targets, the
dashboard time range, metadata option entries and template variables. The
models accept the host's camelCase field names (``refId``) so that panel JSON
can be validated directly.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import (
    AUTO,
    DEFAULT_AGGREGATION,
    DEFAULT_OPERATOR,
    DEFAULT_TARGET_TYPE,
    SelectPlaceholder,
)
from .utils.timestamps import parse_timestamp, to_epoch_millis, whole_days_between


class Dimension(BaseModel):
    """Single dimension filter clause, e.g. ``resourceId = "ocid1..."``."""

    key: str = ""
    operator: str = DEFAULT_OPERATOR
    value: str = ""


class QueryTarget(BaseModel):
    """One logical query as authored in the query editor.

    Attributes
    ----------
    compartment, region, namespace, resourcegroup, metric: str
        Scoping fields; may hold editor placeholders or template variables.
    dimensions: List[Dimension]
        Ordered dimension filters. A value wrapped in braces (``{a,b}``) is
        multi-valued and expanded into several concrete queries.
    window, resolution: str
        Sampling interval and resolution, or ``auto``.
    target: str
        Free-form query text. When non-blank it replaces the query
        synthesized from metric, dimensions and aggregation.
    ref_id: str
        Result identifier, unique within a batch.
    hide: bool
        Exclude the target from execution.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    compartment: str = SelectPlaceholder.COMPARTMENT.value
    region: str = SelectPlaceholder.REGION.value
    namespace: str = SelectPlaceholder.NAMESPACE.value
    resourcegroup: str = SelectPlaceholder.RESOURCEGROUP.value
    metric: str = SelectPlaceholder.METRIC.value
    dimensions: List[Dimension] = Field(default_factory=list)
    window: str = AUTO
    resolution: str = AUTO
    aggregation: str = DEFAULT_AGGREGATION
    target: str = ""
    ref_id: str = Field("A", alias="refId")
    hide: bool = False
    type: str = DEFAULT_TARGET_TYPE

    @field_validator("dimensions", mode="before")
    @classmethod
    def _none_dimensions(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def is_free_form(self) -> bool:
        """True when the free-form ``target`` text overrides query synthesis."""
        return bool(self.target and self.target.strip())


class TimeRange(BaseModel):
    """Dashboard time range; only its span in whole days drives resolution."""

    model_config = ConfigDict(populate_by_name=True)

    from_: datetime = Field(..., alias="from")
    to: datetime

    @field_validator("from_", "to", mode="before")
    @classmethod
    def _parse(cls, value: Any) -> Any:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"invalid timestamp: {value!r}")
        return parsed

    @model_validator(mode="after")
    def _ordered(self) -> "TimeRange":
        if self.to < self.from_:
            raise ValueError("time range end precedes its start")
        return self

    @property
    def days(self) -> int:
        """Span of the range in whole days, truncated toward zero."""
        return whole_days_between(self.from_, self.to)

    def to_wire(self) -> dict:
        """Return ``from``/``to`` as epoch-millisecond strings."""
        return {
            "from": str(to_epoch_millis(self.from_)),
            "to": str(to_epoch_millis(self.to)),
        }

    @classmethod
    def last(cls, hours: int = 6) -> "TimeRange":
        """Relative range ending now, used for metadata and health requests."""
        now = datetime.now(tz=timezone.utc)
        return cls.model_validate({"from": now - timedelta(hours=hours), "to": now})


class AutoBreakpoint(BaseModel):
    """Row of the auto window/resolution table."""

    threshold_days: float = Field(..., ge=0)
    window: str
    resolution: str


class WindowResolution(BaseModel):
    """Concrete (window, resolution) pair."""

    window: Optional[str] = None
    resolution: Optional[str] = None


class MetadataEntry(BaseModel):
    """Option entry: display label and backend identifier."""

    text: str
    value: str


class TemplateVariable(BaseModel):
    """Dashboard template variable as known to the variable registry.

    ``current`` holds the selected value; a list means several values are
    selected on a multi-value variable.
    """

    name: str
    type: str = "query"
    query: Optional[str] = None
    current: Union[str, List[str]] = ""


class HealthStatus(BaseModel):
    """Outcome of a data source health check."""

    status: str
    message: str
    title: str
