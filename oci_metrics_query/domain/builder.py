"""Resolve a batch of query targets into backend requests."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..config.models import DataSourceSettings
from ..schemas.backend_contract import ResolvedRequest
from .constants import AUTO, DEFAULT_RESOURCE_GROUP, DEFAULT_TARGET_TYPE, SelectPlaceholder
from .expansion import DimensionExpander
from .metadata import MetadataCache
from .models import QueryTarget, TimeRange
from .utils.window import resolve_auto_window_resolution
from .variables import ScopedVars, VariableResolver

logger = logging.getLogger(__name__)


class QueryBuilder:
    """Turn editor targets into fully resolved ``query`` requests.

    Incomplete targets are dropped silently, multi-value dimensions are
    expanded, and every remaining field is resolved: variables substituted,
    the compartment mapped to its OCID, ``auto`` window/resolution chosen
    from the time range and the query text synthesized.

    Parameters
    ----------
    resolver: VariableResolver
        Template variable resolution.
    cache: MetadataCache
        Compartment name to OCID mapping.
    settings: DataSourceSettings
        Identity fields, default region/resolution, expansion cap and the
        auto breakpoint table.
    """

    def __init__(
        self,
        resolver: VariableResolver,
        cache: MetadataCache,
        settings: DataSourceSettings,
    ) -> None:
        self._resolver = resolver
        self._cache = cache
        self._settings = settings
        self._expander = DimensionExpander(
            resolver, max_combinations=settings.max_dimension_combinations
        )

    def _resolve(self, value: Optional[str], scoped_vars: Optional[ScopedVars]) -> str:
        return self._resolver.resolve(value, scoped_vars) or ""

    def is_complete(self, target: QueryTarget, scoped_vars: Optional[ScopedVars] = None) -> bool:
        """True if the target has enough selected fields to be executed."""
        if target.hide:
            return False
        compartment = self._resolve(target.compartment, scoped_vars)
        if not compartment or compartment == SelectPlaceholder.COMPARTMENT:
            return False
        namespace = self._resolve(target.namespace, scoped_vars)
        if not namespace or namespace == SelectPlaceholder.NAMESPACE:
            return False
        if not self._resolve(target.resourcegroup, scoped_vars):
            return False
        metric = self._resolve(target.metric, scoped_vars)
        has_metric = bool(metric) and metric != SelectPlaceholder.METRIC
        return has_metric or bool(self._resolve(target.target, scoped_vars).strip())

    @staticmethod
    def normalize(target: QueryTarget) -> QueryTarget:
        """Drop unset dimensions and default the resource group; returns a copy."""
        dimensions = [
            dim.model_copy()
            for dim in target.dimensions
            if dim.key
            and dim.key != SelectPlaceholder.DIMENSION_KEY
            and dim.value
            and dim.value != SelectPlaceholder.DIMENSION_VALUE
        ]
        resourcegroup = target.resourcegroup
        if resourcegroup == SelectPlaceholder.RESOURCEGROUP:
            resourcegroup = DEFAULT_RESOURCE_GROUP
        return target.model_copy(
            update={"dimensions": dimensions, "resourcegroup": resourcegroup}
        )

    async def build(
        self,
        targets: Sequence[QueryTarget],
        time_range: TimeRange,
        scoped_vars: Optional[ScopedVars] = None,
    ) -> List[ResolvedRequest]:
        """Resolve ``targets`` for ``time_range``; incomplete ones are skipped."""
        complete = []
        for target in targets:
            if self.is_complete(target, scoped_vars):
                complete.append(self.normalize(target))
            else:
                logger.debug("builder.target.dropped", extra={"ref_id": target.ref_id})

        expanded = self._expander.expand(complete, scoped_vars)
        days = time_range.days
        requests = [await self._resolve_target(t, days, scoped_vars) for t in expanded]
        logger.debug(
            "builder.batch.built",
            extra={"targets": len(targets), "requests": len(requests), "days": days},
        )
        return requests

    def _render_query(self, target: QueryTarget, window: str, scoped_vars: Optional[ScopedVars]) -> str:
        metric = self._resolve(target.metric, scoped_vars)
        clauses: List[str] = []
        for dim in target.dimensions:
            key = self._resolve(dim.key, scoped_vars)
            value = self._resolve(dim.value, scoped_vars)
            clause = f'{key} {dim.operator} "{value}"'
            if clause not in clauses:
                clauses.append(clause)
        dimension = "{" + ",".join(clauses) + "}" if clauses else ""
        return f"{metric}[{window}]{dimension}.{target.aggregation}"

    async def _resolve_target(
        self, target: QueryTarget, days: int, scoped_vars: Optional[ScopedVars]
    ) -> ResolvedRequest:
        table = self._settings.auto_breakpoints

        region = ""
        if target.region != SelectPlaceholder.REGION:
            region = self._resolve(target.region, scoped_vars)

        compartment = await self._cache.compartment_id_of(
            self._resolve(target.compartment, scoped_vars)
        )

        window = ""
        if target.window != SelectPlaceholder.WINDOW:
            window = self._resolve(target.window, scoped_vars)
        resolution = self._resolve(target.resolution, scoped_vars) or self._settings.resolution
        resolved = resolve_auto_window_resolution(window, resolution, days, table)

        query = self._resolve(target.target, scoped_vars)
        if query.strip():
            auto_window = resolve_auto_window_resolution(AUTO, "", days, table).window
            query = query.replace(f"[{AUTO}]", f"[{auto_window}]", 1)
        else:
            query = self._render_query(target, resolved.window or "", scoped_vars)

        return ResolvedRequest(
            tenancy_ocid=self._settings.tenancy_ocid,
            environment=self._settings.environment,
            datasource_id=self._settings.datasource_id,
            ref_id=target.ref_id,
            hide=target.hide,
            type=target.type or DEFAULT_TARGET_TYPE,
            region=region or self._settings.default_region,
            compartment=compartment,
            namespace=self._resolve(target.namespace, scoped_vars),
            resourcegroup=self._resolve(target.resourcegroup, scoped_vars),
            resolution=resolved.resolution,
            query=query,
        )
