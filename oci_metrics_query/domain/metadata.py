"""Metadata lookups and the reference-data cache.

:class:`MetadataCache` keeps the slowly-changing region and compartment lists
for the lifetime of a data source instance. :class:`MetadataService` performs
the remaining lookups (namespaces, resource groups, metric names and
dimensions) that depend on the current selection and are never cached.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ..adapters import BackendAdapter
from ..config.models import DataSourceSettings
from ..schemas.backend_contract import (
    BackendRequest,
    BackendResponse,
    BackendTarget,
    QueryType,
)
from ..utils.cache import Cache
from ..utils.partial_results import gather_sequential
from .constants import DEFAULT_RESOURCE_GROUP, SelectPlaceholder
from .models import MetadataEntry, QueryTarget
from .variables import VariableResolver

logger = logging.getLogger(__name__)

_NAME_ONLY_KINDS = (
    QueryType.REGIONS,
    QueryType.NAMESPACES,
    QueryType.RESOURCEGROUPS,
    QueryType.SEARCH,
    QueryType.DIMENSIONS,
)


def build_target(
    settings: DataSourceSettings, query_type: QueryType, **fields: Any
) -> BackendTarget:
    """Create a backend target carrying the data source's identity fields."""
    return BackendTarget(
        query_type=query_type,
        tenancy_ocid=settings.tenancy_ocid,
        environment=settings.environment,
        datasource_id=settings.datasource_id,
        **fields,
    )


def map_to_text_value(
    response: Optional[BackendResponse], kind: QueryType
) -> List[MetadataEntry]:
    """Convert a field-columnar metadata response to option entries.

    Column 0 holds display names. For compartments column 1 holds the
    identifiers; every other kind uses the name as the value too.

    Raises
    ------
    ValueError
        If ``kind`` is not a metadata lookup kind.
    """
    if kind != QueryType.COMPARTMENTS and kind not in _NAME_ONLY_KINDS:
        raise ValueError(f"not a metadata lookup kind: {kind}")
    if response is None:
        return []
    frame = response.first_frame()
    if frame is None or not frame.fields:
        return []
    names = [str(n) for n in frame.fields[0].values]
    if kind == QueryType.COMPARTMENTS:
        ids = frame.fields[1].values if len(frame.fields) > 1 else []
        return [
            MetadataEntry(text=name, value=str(ids[i]) if i < len(ids) else name)
            for i, name in enumerate(names)
        ]
    return [MetadataEntry(text=name, value=name) for name in names]


def split_dimension_entries(entries: List[MetadataEntry]) -> Dict[str, List[str]]:
    """Group raw ``key=value`` dimension entries by key, in first-seen order."""
    grouped: Dict[str, List[str]] = {}
    for entry in entries:
        key, sep, value = entry.value.partition("=")
        values = grouped.setdefault(key or entry.value, [])
        if sep:
            values.append(value)
    return grouped


class MetadataCache:
    """Lazily populated cache of regions and compartments.

    Population is single-flight per kind: concurrent first accesses wait on a
    per-kind lock and reuse the list fetched by whichever call ran first. A
    failed fetch leaves the entry empty so the next access retries.

    Parameters
    ----------
    adapter: BackendAdapter
        Backend used to populate the cache.
    settings: DataSourceSettings
        Identity fields and default region for the metadata requests.
    """

    def __init__(self, adapter: BackendAdapter, settings: DataSourceSettings) -> None:
        self._adapter = adapter
        self._settings = settings
        self._store: Cache[QueryType, List[MetadataEntry]] = Cache(maxsize=8)
        self._locks: Dict[QueryType, asyncio.Lock] = {}

    async def get_regions(self) -> List[MetadataEntry]:
        """Return the subscribed regions."""
        return await self._get(QueryType.REGIONS)

    async def get_compartments(self) -> List[MetadataEntry]:
        """Return compartments as ``{text: name, value: ocid}`` entries."""
        # compartments are tenancy-wide, any region answers
        return await self._get(
            QueryType.COMPARTMENTS, region=self._settings.default_region
        )

    async def compartment_id_of(self, name_or_id: str) -> str:
        """Map a compartment name to its identifier.

        Input matching neither a cached name nor a cached identifier is
        returned unchanged, since callers may already hold a raw OCID.
        """
        for entry in await self.get_compartments():
            if entry.text == name_or_id or entry.value == name_or_id:
                return entry.value
        return name_or_id

    async def _get(self, kind: QueryType, **fields: Any) -> List[MetadataEntry]:
        if kind in self._store:
            logger.debug("metadata.cache.hit", extra={"kind": kind.value})
            return list(self._store.get(kind) or [])
        lock = self._locks.setdefault(kind, asyncio.Lock())
        async with lock:
            if kind in self._store:
                return list(self._store.get(kind) or [])
            logger.debug("metadata.cache.miss", extra={"kind": kind.value})
            response = await self._adapter.query(
                BackendRequest(targets=[build_target(self._settings, kind, **fields)])
            )
            entries = map_to_text_value(response, kind)
            if entries:
                self._store.set(kind, entries)
            logger.info(
                "metadata.cache.populated",
                extra={"kind": kind.value, "entries": len(entries)},
            )
            return list(entries)


class MetadataService:
    """Selection-dependent metadata lookups.

    Fields of the given :class:`QueryTarget` follow the same rules as query
    building: placeholders count as unset, variables are resolved, an empty
    region falls back to the default region and compartment names are mapped
    to identifiers through the cache.
    """

    def __init__(
        self,
        adapter: BackendAdapter,
        cache: MetadataCache,
        resolver: VariableResolver,
        settings: DataSourceSettings,
    ) -> None:
        self._adapter = adapter
        self.cache = cache
        self.resolver = resolver
        self._settings = settings

    def _field(self, value: Optional[str], placeholder: SelectPlaceholder) -> str:
        if value == placeholder:
            return ""
        return self.resolver.resolve(value) or ""

    def _region(self, target: QueryTarget) -> str:
        return self._field(target.region, SelectPlaceholder.REGION) or self._settings.default_region

    def _resource_group(self, target: QueryTarget) -> str:
        if target.resourcegroup == SelectPlaceholder.RESOURCEGROUP:
            return DEFAULT_RESOURCE_GROUP
        return self.resolver.resolve(target.resourcegroup) or ""

    async def _lookup(self, kind: QueryType, **fields: Any) -> List[MetadataEntry]:
        response = await self._adapter.query(
            BackendRequest(targets=[build_target(self._settings, kind, **fields)])
        )
        return map_to_text_value(response, kind)

    async def get_namespaces(self, target: QueryTarget) -> List[MetadataEntry]:
        """List metric namespaces in a compartment."""
        compartment = self._field(target.compartment, SelectPlaceholder.COMPARTMENT)
        if not compartment:
            return []
        return await self._lookup(
            QueryType.NAMESPACES,
            region=self._region(target),
            compartment=await self.cache.compartment_id_of(compartment),
        )

    async def get_resource_groups(self, target: QueryTarget) -> List[MetadataEntry]:
        """List resource groups of a namespace."""
        compartment = self._field(target.compartment, SelectPlaceholder.COMPARTMENT)
        if not compartment:
            return []
        return await self._lookup(
            QueryType.RESOURCEGROUPS,
            region=self._region(target),
            compartment=await self.cache.compartment_id_of(compartment),
            namespace=self._field(target.namespace, SelectPlaceholder.NAMESPACE),
        )

    async def search_metrics(self, target: QueryTarget) -> List[MetadataEntry]:
        """List metric names of a namespace and resource group."""
        compartment = self._field(target.compartment, SelectPlaceholder.COMPARTMENT)
        namespace = self._field(target.namespace, SelectPlaceholder.NAMESPACE)
        if not compartment or not namespace:
            return []
        return await self._lookup(
            QueryType.SEARCH,
            region=self._region(target),
            compartment=await self.cache.compartment_id_of(compartment),
            namespace=namespace,
            resourcegroup=self._resource_group(target),
        )

    async def get_dimensions(self, target: QueryTarget) -> List[MetadataEntry]:
        """Return raw ``key=value`` dimension entries for the target's metrics.

        A metric of the form ``{m1,m2}`` names several metrics; only entries
        present for every metric are kept. Metrics are looked up one at a
        time and a failed lookup counts as a metric without dimensions.
        """
        compartment = self._field(target.compartment, SelectPlaceholder.COMPARTMENT)
        namespace = self._field(target.namespace, SelectPlaceholder.NAMESPACE)
        metric = self._field(target.metric, SelectPlaceholder.METRIC)
        if metric.startswith("{") and metric.endswith("}"):
            metrics = metric[1:-1].split(",")
        else:
            metrics = [metric]
        metrics = [m for m in dict.fromkeys(metrics) if m]
        if not compartment or not namespace or not metrics:
            return []

        fields = dict(
            region=self._region(target),
            compartment=await self.cache.compartment_id_of(compartment),
            namespace=namespace,
            resourcegroup=self._resource_group(target),
        )

        def _fetch(name: str):
            return lambda: self._lookup(QueryType.DIMENSIONS, metric=name, **fields)

        outcome = await gather_sequential(
            {m: _fetch(m) for m in metrics}, operation_type="dimensions"
        )
        if outcome.has_failures:
            logger.warning(
                "metadata.dimensions.partial",
                extra={
                    "failed_metrics": outcome.failed_identifiers,
                    "metrics": len(metrics),
                },
            )

        result: Optional[List[MetadataEntry]] = None
        for m in metrics:
            entries = outcome.successes.get(m, [])
            if result is None:
                result = list(entries)
                continue
            present = {e.value for e in entries}
            result = [e for e in result if e.value in present]
        deduped: Dict[str, MetadataEntry] = {}
        for entry in result or []:
            deduped.setdefault(entry.value, entry)
        return list(deduped.values())

    async def get_dimension_keys(self, target: QueryTarget) -> List[MetadataEntry]:
        """List dimension key names for the target's metrics."""
        grouped = split_dimension_entries(await self.get_dimensions(target))
        return [MetadataEntry(text=key, value=key) for key in grouped]

    async def get_dimension_values(
        self, target: QueryTarget, dimension_key: str
    ) -> List[MetadataEntry]:
        """List values of one dimension key for the target's metrics."""
        grouped = split_dimension_entries(await self.get_dimensions(target))
        key = self.resolver.resolve(dimension_key) or ""
        return [MetadataEntry(text=v, value=v) for v in grouped.get(key, [])]
