"""Template variable query language.

Dashboard variables can be populated from metadata lookups by writing one of
the following function calls as the variable query::

    regions()
    compartments()
    namespaces(region, compartment)
    resourcegroups(region, compartment, namespace)
    metrics(region, compartment, namespace, resourcegroup)
    dimension_keys(region, compartment, namespace, metric, resourcegroup)
    dimension_values(region, compartment, namespace, metric, key, resourcegroup)

Each argument is a quoted literal or a ``$variable`` reference. Parsing
produces one typed query object per function; dispatch resolves the arguments
and runs the matching lookup.
"""

from __future__ import annotations

import logging
import re
from dataclasses import astuple, dataclass
from typing import Awaitable, Callable, Dict, List, Pattern, Tuple, Type, Union

from .errors import MetadataLookupError, ParseError
from .metadata import MetadataService
from .models import MetadataEntry, QueryTarget
from .variables import VariableResolver

logger = logging.getLogger(__name__)

_ARG = r"""("[^"]+"|'[^']+'|\$\{\w+\}|\$\w+)"""


def _call_pattern(name: str, arity: int) -> Pattern[str]:
    args = r"\s*,\s*".join([_ARG] * arity)
    return re.compile(rf"^\s*{name}\(\s*{args}\s*\)\s*$")


@dataclass(frozen=True)
class RegionsQuery:
    lookup = "regions"


@dataclass(frozen=True)
class CompartmentsQuery:
    lookup = "compartments"


@dataclass(frozen=True)
class NamespacesQuery:
    lookup = "namespaces"
    region: str
    compartment: str


@dataclass(frozen=True)
class ResourceGroupsQuery:
    lookup = "resourcegroups"
    region: str
    compartment: str
    namespace: str


@dataclass(frozen=True)
class MetricsQuery:
    lookup = "metrics"
    region: str
    compartment: str
    namespace: str
    resourcegroup: str


@dataclass(frozen=True)
class DimensionKeysQuery:
    lookup = "dimensions"
    region: str
    compartment: str
    namespace: str
    metric: str
    resourcegroup: str


@dataclass(frozen=True)
class DimensionValuesQuery:
    lookup = "dimension options"
    region: str
    compartment: str
    namespace: str
    metric: str
    dimension_key: str
    resourcegroup: str


TemplateQuery = Union[
    RegionsQuery,
    CompartmentsQuery,
    NamespacesQuery,
    ResourceGroupsQuery,
    MetricsQuery,
    DimensionKeysQuery,
    DimensionValuesQuery,
]

# Function names are distinct and each pattern is anchored on its name and
# closing parenthesis, so at most one pattern matches any string.
PATTERNS: Tuple[Tuple[Pattern[str], Type[TemplateQuery]], ...] = (
    (_call_pattern("regions", 0), RegionsQuery),
    (_call_pattern("compartments", 0), CompartmentsQuery),
    (_call_pattern("namespaces", 2), NamespacesQuery),
    (_call_pattern("resourcegroups", 3), ResourceGroupsQuery),
    (_call_pattern("metrics", 4), MetricsQuery),
    (_call_pattern("dimension_keys", 5), DimensionKeysQuery),
    (_call_pattern("dimension_values", 6), DimensionValuesQuery),
)


def parse_template_query(query: str) -> TemplateQuery:
    """Parse a variable query into its typed form, arguments left raw.

    Raises
    ------
    ParseError
        If no function pattern matches.
    """
    for pattern, query_cls in PATTERNS:
        match = pattern.match(query or "")
        if match:
            return query_cls(*match.groups())
    raise ParseError(query)


class TemplateQueryDispatcher:
    """Run template variable queries against the metadata lookups.

    Parameters
    ----------
    metadata: MetadataService
        Lookups for selection-dependent metadata; its cache serves regions
        and compartments.
    resolver: VariableResolver
        Resolves ``$variable`` arguments.
    """

    def __init__(self, metadata: MetadataService, resolver: VariableResolver) -> None:
        self._metadata = metadata
        self._resolver = resolver
        self._handlers: Dict[
            type, Callable[..., Awaitable[List[MetadataEntry]]]
        ] = {
            RegionsQuery: self._regions,
            CompartmentsQuery: self._compartments,
            NamespacesQuery: self._namespaces,
            ResourceGroupsQuery: self._resource_groups,
            MetricsQuery: self._metrics,
            DimensionKeysQuery: self._dimension_keys,
            DimensionValuesQuery: self._dimension_values,
        }

    def _arg(self, raw: str) -> str:
        return self._resolver.resolve(self._resolver.remove_quotes(raw)) or ""

    async def dispatch(self, query: str) -> List[MetadataEntry]:
        """Parse ``query`` and return the option list it describes.

        Raises
        ------
        ParseError
            If the string is not a recognized function call.
        MetadataLookupError
            If the backend lookup fails.
        """
        parsed = parse_template_query(query)
        args = [self._arg(a) for a in astuple(parsed)]
        logger.debug(
            "template.dispatch", extra={"lookup": parsed.lookup, "args": args}
        )
        try:
            return await self._handlers[type(parsed)](*args)
        except Exception as exc:
            raise MetadataLookupError(parsed.lookup, exc) from exc

    async def _regions(self) -> List[MetadataEntry]:
        return await self._metadata.cache.get_regions()

    async def _compartments(self) -> List[MetadataEntry]:
        # variable values are compartment names; OCIDs are resolved at query time
        compartments = await self._metadata.cache.get_compartments()
        return [MetadataEntry(text=c.text, value=c.text) for c in compartments]

    async def _namespaces(self, region: str, compartment: str) -> List[MetadataEntry]:
        return await self._metadata.get_namespaces(
            QueryTarget(region=region, compartment=compartment)
        )

    async def _resource_groups(
        self, region: str, compartment: str, namespace: str
    ) -> List[MetadataEntry]:
        return await self._metadata.get_resource_groups(
            QueryTarget(region=region, compartment=compartment, namespace=namespace)
        )

    async def _metrics(
        self, region: str, compartment: str, namespace: str, resourcegroup: str
    ) -> List[MetadataEntry]:
        return await self._metadata.search_metrics(
            QueryTarget(
                region=region,
                compartment=compartment,
                namespace=namespace,
                resourcegroup=resourcegroup,
            )
        )

    async def _dimension_keys(
        self,
        region: str,
        compartment: str,
        namespace: str,
        metric: str,
        resourcegroup: str,
    ) -> List[MetadataEntry]:
        return await self._metadata.get_dimension_keys(
            QueryTarget(
                region=region,
                compartment=compartment,
                namespace=namespace,
                metric=metric,
                resourcegroup=resourcegroup,
            )
        )

    async def _dimension_values(
        self,
        region: str,
        compartment: str,
        namespace: str,
        metric: str,
        dimension_key: str,
        resourcegroup: str,
    ) -> List[MetadataEntry]:
        return await self._metadata.get_dimension_values(
            QueryTarget(
                region=region,
                compartment=compartment,
                namespace=namespace,
                metric=metric,
                resourcegroup=resourcegroup,
            ),
            dimension_key,
        )
