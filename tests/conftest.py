"""Pytest configuration for test suite.

Ensures the project root is on ``sys.path`` so imports like
``import oci_metrics_query`` resolve regardless of the working directory, and
provides an in-memory backend that records every request it receives.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union


def _ensure_project_root_on_syspath() -> None:
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        # Prepend to prefer local sources over site-packages
        sys.path.insert(0, project_root_str)


_ensure_project_root_on_syspath()

import pytest  # noqa: E402

from oci_metrics_query.adapters import reset_adapters  # noqa: E402
from oci_metrics_query.config.models import DataSourceSettings  # noqa: E402
from oci_metrics_query.schemas.backend_contract import (  # noqa: E402
    BackendRequest,
    BackendResponse,
    DataField,
    DataFrame,
    QueryResult,
)


def names_response(
    names: Sequence[str], ids: Optional[Sequence[str]] = None
) -> BackendResponse:
    """Build a metadata response with names in column 0 and ids in column 1."""
    fields = [DataField(name="name", type="string", values=list(names))]
    if ids is not None:
        fields.append(DataField(name="ocid", type="string", values=list(ids)))
    return BackendResponse(
        results=[QueryResult(ref_id="A", frames=[DataFrame(fields=fields)])]
    )


class FakeBackend:
    """Backend adapter double answering by query type (and metric)."""

    def __init__(self) -> None:
        self.requests: List[BackendRequest] = []
        self._responses: Dict[Union[str, Tuple[str, str]], Any] = {}

    def respond(
        self,
        query_type: str,
        names: Optional[Sequence[str]] = None,
        *,
        ids: Optional[Sequence[str]] = None,
        metric: Optional[str] = None,
        error: Optional[Exception] = None,
        response: Optional[BackendResponse] = None,
    ) -> None:
        key: Union[str, Tuple[str, str]] = (
            (query_type, metric) if metric is not None else query_type
        )
        if error is not None:
            self._responses[key] = error
        elif response is not None:
            self._responses[key] = response
        else:
            self._responses[key] = names_response(names or [], ids)

    def calls(self, query_type: str) -> List[BackendRequest]:
        """Requests whose first target has ``query_type``."""
        return [r for r in self.requests if r.targets[0].query_type.value == query_type]

    async def query(self, req: BackendRequest) -> BackendResponse:
        self.requests.append(req)
        target = req.targets[0]
        kind = target.query_type.value
        value = self._responses.get((kind, target.metric or ""), self._responses.get(kind))
        if value is None:
            return BackendResponse()
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def settings() -> DataSourceSettings:
    return DataSourceSettings(
        tenancy_ocid="ocid1.tenancy.oc1..test",
        default_region="us-ashburn-1",
        environment="local",
        resolution="1m",
        datasource_id=7,
    )


@pytest.fixture
def backend() -> FakeBackend:
    fake = FakeBackend()
    fake.respond(
        "compartments",
        ["root", "prod"],
        ids=["ocid1.tenancy.oc1..test", "ocid1.compartment.oc1..prod"],
    )
    fake.respond("regions", ["us-ashburn-1", "us-phoenix-1"])
    return fake


@pytest.fixture(autouse=True)
def reset_adapter_registry():
    """Reset adapter registry before each test to avoid cross-test contamination."""
    reset_adapters()
    yield
    reset_adapters()
