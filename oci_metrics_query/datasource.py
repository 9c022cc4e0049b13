"""OCI metrics data source facade.

Wires the backend adapter, variable resolution, metadata cache and query
builder together and exposes the operations a dashboard host calls: running
panel queries, the health check and option lookups for editors and template
variables.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

from .adapters import BackendAdapter
from .adapters.grafana import GrafanaBackendAdapter
from .config.models import DataSourceSettings
from .domain.builder import QueryBuilder
from .domain.errors import BackendError
from .domain.metadata import MetadataCache, MetadataService, build_target
from .domain.models import HealthStatus, MetadataEntry, QueryTarget, TimeRange
from .domain.template_query import TemplateQueryDispatcher
from .domain.variables import ScopedVars, VariableRegistry, VariableResolver
from .schemas.backend_contract import (
    BackendRequest,
    BackendResponse,
    DataFrame,
    LoadingState,
    QueryResponse,
    QueryType,
    Series,
    Table,
    TableColumn,
)

logger = logging.getLogger(__name__)


def flatten_frames(response: BackendResponse) -> QueryResponse:
    """Convert backend frames into series and tables for the host.

    A frame whose first column is a time column yields one series per value
    column; any other frame becomes a table tagged with its ``refId``.
    """
    data: List[Union[Series, Table]] = []
    for result in response.results:
        for frame in result.frames:
            if frame.is_time_series:
                data.extend(_frame_series(frame))
            else:
                data.append(
                    Table(
                        ref_id=result.ref_id,
                        columns=[TableColumn(text=f.name, type=f.type) for f in frame.fields],
                        rows=[list(row) for row in zip(*(f.values for f in frame.fields))],
                    )
                )
    return QueryResponse(data=data)


def _frame_series(frame: DataFrame) -> List[Series]:
    times = frame.fields[0].values
    value_fields = frame.fields[1:]
    series = []
    for field in value_fields:
        name = field.name
        if len(value_fields) == 1 and frame.name:
            name = frame.name
        series.append(
            Series(
                target=name,
                datapoints=[[v, t] for t, v in zip(times, field.values)],
            )
        )
    return series


class OCIMetricsDataSource:
    """One configured OCI metrics data source.

    Parameters
    ----------
    settings: DataSourceSettings
        Tenancy, region, environment and resolution defaults.
    adapter: Optional[BackendAdapter]
        Backend transport; an HTTP adapter for ``settings.endpoint`` is
        created when omitted.
    variables: Optional[VariableRegistry]
        Dashboard template variables.
    """

    def __init__(
        self,
        settings: DataSourceSettings,
        adapter: Optional[BackendAdapter] = None,
        variables: Optional[VariableRegistry] = None,
    ) -> None:
        self.settings = settings
        self.adapter: BackendAdapter = adapter or GrafanaBackendAdapter(
            settings.endpoint,
            settings.api_key,
            settings.timeout_seconds,
            max_retries=settings.max_retries,
            backoff_initial_ms=settings.backoff_initial_ms,
            backoff_multiplier=settings.backoff_multiplier,
        )
        self.resolver = VariableResolver(variables)
        self.cache = MetadataCache(self.adapter, settings)
        self.metadata = MetadataService(self.adapter, self.cache, self.resolver, settings)
        self.dispatcher = TemplateQueryDispatcher(self.metadata, self.resolver)
        self.builder = QueryBuilder(self.resolver, self.cache, settings)

    async def query(
        self,
        targets: Sequence[QueryTarget],
        time_range: TimeRange,
        scoped_vars: Optional[ScopedVars] = None,
    ) -> QueryResponse:
        """Run panel queries; no backend call is made when nothing is complete."""
        requests = await self.builder.build(targets, time_range, scoped_vars)
        if not requests:
            return QueryResponse()
        response = await self.adapter.query(
            BackendRequest(range=time_range, targets=list(requests))
        )
        return flatten_frames(response)

    async def test_datasource(self) -> HealthStatus:
        """Check that the backend answers for the configured tenancy."""
        request = BackendRequest(
            targets=[
                build_target(
                    self.settings, QueryType.TEST, region=self.settings.default_region
                )
            ]
        )
        try:
            response = await self.adapter.query(request)
            if response.state != LoadingState.DONE:
                raise BackendError("health check returned an error state")
        except Exception as exc:
            logger.warning("datasource.health.failed", extra={"error": str(exc)})
            return HealthStatus(
                status="error", message="Data source is not working", title="Failure"
            )
        return HealthStatus(
            status="success", message="Data source is working", title="Success"
        )

    async def metric_find_query(
        self, target: Union[str, QueryTarget]
    ) -> List[MetadataEntry]:
        """Return options for a template variable query or an editor target.

        A string is a template variable query; a target lists the metric
        names available for its compartment, namespace and resource group.
        """
        if isinstance(target, str):
            return await self.dispatcher.dispatch(target)
        return await self.metadata.search_metrics(target)

    def get_variables(self, regex: Optional[str] = None, include_custom: bool = False) -> List[str]:
        """List ``$``-prefixed variable names, see :class:`VariableRegistry`."""
        return self.resolver.registry.get_variables(regex, include_custom)

    async def aclose(self) -> None:
        """Release the backend transport if it holds resources."""
        close = getattr(self.adapter, "aclose", None)
        if close is not None:
            await close()
