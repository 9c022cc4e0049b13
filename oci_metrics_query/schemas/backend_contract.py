"""
Backend Contract Schemas

Code-first schema definitions using Pydantic for the single request/response
exchange with the metrics backend:
1. Request targets, one per query or metadata lookup
2. Field-columnar results returned for every query kind
3. Flattened series/table output handed back to the dashboard host

Field names follow the backend's camelCase wire names through aliases.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..domain.models import TimeRange


class QueryType(str, Enum):
    """Backend behaviors selectable per target"""

    TEST = "test"
    SEARCH = "search"
    REGIONS = "regions"
    COMPARTMENTS = "compartments"
    NAMESPACES = "namespaces"
    RESOURCEGROUPS = "resourcegroups"
    DIMENSIONS = "dimensions"
    QUERY = "query"


class LoadingState(str, Enum):
    """Overall response state"""

    DONE = "Done"
    ERROR = "Error"


# Request


class BackendTarget(BaseModel):
    """One request target; optional fields are omitted from the wire body."""

    model_config = ConfigDict(populate_by_name=True)

    query_type: QueryType = Field(..., alias="queryType")
    tenancy_ocid: Optional[str] = Field(None, alias="tenancyOCID")
    environment: Optional[str] = None
    datasource_id: Optional[Union[int, str]] = Field(None, alias="datasourceId")
    region: Optional[str] = None
    compartment: Optional[str] = None
    namespace: Optional[str] = None
    resourcegroup: Optional[str] = None
    metric: Optional[str] = None
    query: Optional[str] = None
    resolution: Optional[str] = None
    ref_id: Optional[str] = Field(None, alias="refId")
    hide: Optional[bool] = None
    type: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with wire aliases, dropping unset values."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ResolvedRequest(BackendTarget):
    """Fully resolved time-series query ready for the backend"""

    query_type: QueryType = Field(QueryType.QUERY, alias="queryType")
    region: str
    compartment: str
    namespace: str
    resourcegroup: str
    query: str
    ref_id: str = Field(..., alias="refId")


class BackendRequest(BaseModel):
    """Request body: a time range and a batch of targets"""

    range: TimeRange = Field(default_factory=TimeRange.last)
    targets: List[BackendTarget]

    def to_wire(self) -> Dict[str, Any]:
        """Build the ``/api/ds/query`` body."""
        body: Dict[str, Any] = dict(self.range.to_wire())
        body["queries"] = [t.to_wire() for t in self.targets]
        return body


# Response


class DataField(BaseModel):
    """One column of a data frame"""

    name: str = ""
    type: Optional[str] = None
    values: List[Any] = Field(default_factory=list)


class DataFrame(BaseModel):
    """Field-columnar result frame"""

    name: Optional[str] = None
    fields: List[DataField] = Field(default_factory=list)

    @property
    def is_time_series(self) -> bool:
        """True when the first column holds timestamps."""
        return bool(self.fields) and self.fields[0].type == "time"

    @classmethod
    def from_wire(cls, frame: Dict[str, Any]) -> "DataFrame":
        """Parse a ``{"schema": {...}, "data": {"values": [...]}}`` frame."""
        schema = frame.get("schema") or {}
        columns = (frame.get("data") or {}).get("values") or []
        fields = []
        for i, field_schema in enumerate(schema.get("fields") or []):
            fields.append(
                DataField(
                    name=field_schema.get("name", ""),
                    type=field_schema.get("type"),
                    values=columns[i] if i < len(columns) else [],
                )
            )
        return cls(name=schema.get("name"), fields=fields)


class QueryResult(BaseModel):
    """Result for one request target"""

    model_config = ConfigDict(populate_by_name=True)

    ref_id: str = Field("", alias="refId")
    frames: List[DataFrame] = Field(default_factory=list)
    error: Optional[str] = None


class BackendResponse(BaseModel):
    """Per-target results in request order"""

    results: List[QueryResult] = Field(default_factory=list)

    @property
    def state(self) -> LoadingState:
        """Error when any target failed, otherwise Done."""
        if any(r.error for r in self.results):
            return LoadingState.ERROR
        return LoadingState.DONE

    def first_frame(self) -> Optional[DataFrame]:
        """Return the first frame of the first result, if any."""
        for result in self.results:
            if result.frames:
                return result.frames[0]
        return None

    @classmethod
    def from_wire(cls, payload: Dict[str, Any]) -> "BackendResponse":
        """Parse the ``{"results": {refId: {"frames": [...]}}}`` body."""
        results = []
        for ref_id, body in (payload.get("results") or {}).items():
            body = body or {}
            results.append(
                QueryResult(
                    ref_id=ref_id,
                    frames=[DataFrame.from_wire(f) for f in body.get("frames") or []],
                    error=body.get("error"),
                )
            )
        return cls(results=results)


# Flattened output


class Series(BaseModel):
    """Named time series with ``[value, timestamp]`` datapoints"""

    target: str
    datapoints: List[List[Any]]


class TableColumn(BaseModel):
    """Table column header"""

    text: str
    type: Optional[str] = None


class Table(BaseModel):
    """Typed table result"""

    model_config = ConfigDict(populate_by_name=True)

    type: str = "table"
    ref_id: str = Field("", alias="refId")
    columns: List[TableColumn] = Field(default_factory=list)
    rows: List[List[Any]] = Field(default_factory=list)


class QueryResponse(BaseModel):
    """Flattened response returned to the dashboard host"""

    data: List[Union[Series, Table]] = Field(default_factory=list)
