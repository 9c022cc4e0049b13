"""
Tests for resolving query targets into backend requests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from oci_metrics_query.domain.builder import QueryBuilder
from oci_metrics_query.domain.constants import DEFAULT_RESOURCE_GROUP
from oci_metrics_query.domain.metadata import MetadataCache
from oci_metrics_query.domain.models import (
    Dimension,
    QueryTarget,
    TemplateVariable,
    TimeRange,
)
from oci_metrics_query.domain.variables import VariableRegistry, VariableResolver

START = datetime(2025, 10, 1, tzinfo=timezone.utc)


def _range(days: float) -> TimeRange:
    return TimeRange.model_validate({"from": START, "to": START + timedelta(days=days)})


def _target(**fields) -> QueryTarget:
    base = dict(
        ref_id="A",
        region="us-phoenix-1",
        compartment="prod",
        namespace="oci_computeagent",
        resourcegroup="select resource group",
        metric="CpuUtilization",
        aggregation="mean()",
    )
    base.update(fields)
    return QueryTarget(**base)


@pytest.fixture
def registry():
    return VariableRegistry(
        [
            TemplateVariable(name="region", current="eu-frankfurt-1"),
            TemplateVariable(name="compartment", current="prod"),
            TemplateVariable(name="hosts", current=["h1", "h2", "h3"]),
        ]
    )


@pytest.fixture
def builder(backend, settings, registry):
    return QueryBuilder(
        VariableResolver(registry), MetadataCache(backend, settings), settings
    )


@pytest.mark.asyncio
async def test_complete_target_resolved(builder):
    [req] = await builder.build([_target()], _range(1))

    assert req.ref_id == "A"
    assert req.region == "us-phoenix-1"
    assert req.compartment == "ocid1.compartment.oc1..prod"
    assert req.namespace == "oci_computeagent"
    assert req.resourcegroup == DEFAULT_RESOURCE_GROUP
    assert req.resolution == "1m"
    assert req.query == "CpuUtilization[1m].mean()"
    assert req.type == "timeserie"
    wire = req.to_wire()
    assert wire["queryType"] == "query"
    assert wire["tenancyOCID"] == "ocid1.tenancy.oc1..test"
    assert wire["datasourceId"] == 7
    assert wire["refId"] == "A"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "fields",
    [
        {"hide": True},
        {"compartment": ""},
        {"compartment": "select compartment"},
        {"namespace": ""},
        {"namespace": "select namespace"},
        {"resourcegroup": ""},
        {"metric": "select metric"},
        {"metric": ""},
    ],
)
async def test_incomplete_targets_dropped(builder, backend, fields):
    assert await builder.build([_target(**fields)], _range(1)) == []


@pytest.mark.asyncio
async def test_free_form_target_without_metric_kept(builder):
    target = _target(metric="select metric", target="CpuUtilization[auto].max()")

    [req] = await builder.build([target], _range(10))

    assert req.query == "CpuUtilization[5m].max()"


@pytest.mark.asyncio
async def test_free_form_auto_uses_range(builder):
    target = _target(target="CpuUtilization[auto]{a = \"b\"}.rate()")

    [req] = await builder.build([target], _range(45))

    assert req.query == 'CpuUtilization[1h]{a = "b"}.rate()'


@pytest.mark.asyncio
async def test_auto_window_and_resolution(builder):
    [short] = await builder.build([_target()], _range(3))
    [medium] = await builder.build([_target()], _range(20))
    [long] = await builder.build([_target()], _range(120))

    assert (short.query, short.resolution) == ("CpuUtilization[1m].mean()", "1m")
    assert (medium.query, medium.resolution) == ("CpuUtilization[5m].mean()", "5m")
    assert (long.query, long.resolution) == ("CpuUtilization[1h].mean()", "1h")


@pytest.mark.asyncio
async def test_explicit_window_preserved(builder):
    [req] = await builder.build([_target(window="5m", resolution="auto")], _range(100))

    assert req.query == "CpuUtilization[5m].mean()"
    assert req.resolution == "1h"


@pytest.mark.asyncio
async def test_default_resolution_from_settings(builder):
    [req] = await builder.build([_target(window="1h", resolution="")], _range(1))
    assert req.resolution == "1m"


@pytest.mark.asyncio
async def test_region_placeholder_and_variable(builder):
    [placeholder] = await builder.build([_target(region="select region")], _range(1))
    [variable] = await builder.build([_target(region="$region")], _range(1))
    [empty] = await builder.build([_target(region="")], _range(1))

    assert placeholder.region == "us-ashburn-1"
    assert variable.region == "eu-frankfurt-1"
    assert empty.region == "us-ashburn-1"


@pytest.mark.asyncio
async def test_compartment_variable_mapped_to_ocid(builder):
    [req] = await builder.build([_target(compartment="$compartment")], _range(1))
    assert req.compartment == "ocid1.compartment.oc1..prod"


@pytest.mark.asyncio
async def test_unknown_compartment_passed_through(builder):
    [req] = await builder.build(
        [_target(compartment="ocid1.compartment.oc1..other")], _range(1)
    )
    assert req.compartment == "ocid1.compartment.oc1..other"


@pytest.mark.asyncio
async def test_dimension_clauses_rendered_and_deduplicated(builder):
    target = _target(
        dimensions=[
            Dimension(key="resourceId", operator="=", value="ocid1.instance.a"),
            Dimension(key="resourceId", operator="=", value="ocid1.instance.a"),
            Dimension(key="shape", operator="!=", value="E4"),
            Dimension(key="select dimension", value="x"),
            Dimension(key="faultDomain", value="select value"),
            Dimension(key="", value="y"),
        ]
    )

    [req] = await builder.build([target], _range(1))

    assert req.query == (
        'CpuUtilization[1m]{resourceId = "ocid1.instance.a",shape != "E4"}.mean()'
    )


@pytest.mark.asyncio
async def test_multi_value_variable_expands_requests(builder):
    target = _target(dimensions=[Dimension(key="resourceDisplayName", value="$hosts")])

    requests = await builder.build([target], _range(1))

    assert [r.ref_id for r in requests] == ["A", "A1", "A2"]
    assert [r.query for r in requests] == [
        f'CpuUtilization[1m]{{resourceDisplayName = "{h}"}}.mean()'
        for h in ("h1", "h2", "h3")
    ]


@pytest.mark.asyncio
async def test_scoped_vars_used(builder):
    [req] = await builder.build(
        [_target(namespace="$ns")], _range(1), scoped_vars={"ns": "oci_lbaas"}
    )
    assert req.namespace == "oci_lbaas"


@pytest.mark.asyncio
async def test_caller_targets_not_mutated(builder):
    target = _target(dimensions=[Dimension(key="select dimension", value="x")])

    await builder.build([target], _range(1))

    assert target.resourcegroup == "select resource group"
    assert len(target.dimensions) == 1


@pytest.mark.asyncio
async def test_compartments_fetched_once_per_batch(builder, backend):
    await builder.build([_target(ref_id="A"), _target(ref_id="B")], _range(1))
    assert len(backend.calls("compartments")) == 1


@pytest.mark.asyncio
async def test_only_first_auto_window_replaced(builder):
    target = _target(
        target="CpuUtilization[auto].mean() / MemoryUtilization[auto].mean()"
    )

    [req] = await builder.build([target], _range(1))

    assert req.query == "CpuUtilization[1m].mean() / MemoryUtilization[auto].mean()"
