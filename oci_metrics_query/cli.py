"""Command-line interface for resolving and running OCI metrics queries.

The CLI loads the JSON data source configuration, registers one backend
adapter per configured data source and runs a single operation: the health
check, a template variable query, or a batch of panel query targets.

Usage
-----
    python -m oci_metrics_query.cli --config config.json --health
    python -m oci_metrics_query.cli --config config.json --template 'regions()'
    python -m oci_metrics_query.cli --config config.json \
        --query targets.json --from 2025-10-01T00:00:00Z --to 2025-10-08T00:00:00Z
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from .adapters import get_adapter, log_adapter_status, register_adapter
from .adapters.grafana import GrafanaBackendAdapter
from .config.models import AppConfig, EnvSettings
from .datasource import OCIMetricsDataSource
from .domain.models import QueryTarget, TemplateVariable, TimeRange
from .domain.variables import VariableRegistry
from .observability import setup_logging


def _init_from_config(config_path: Path) -> AppConfig:
    """Load config and register an HTTP adapter per data source."""
    cfg = AppConfig.load(config_path)
    for name, ds in cfg.datasources.items():
        register_adapter(
            name,
            GrafanaBackendAdapter(
                ds.endpoint,
                ds.api_key,
                ds.timeout_seconds,
                max_retries=ds.max_retries,
                backoff_initial_ms=ds.backoff_initial_ms,
                backoff_multiplier=ds.backoff_multiplier,
            ),
        )
    log_adapter_status()
    return cfg


def _load_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _load_variables(path: Optional[str]) -> VariableRegistry:
    if not path:
        return VariableRegistry()
    return VariableRegistry(TemplateVariable.model_validate(v) for v in _load_json(path))


async def _run(args: argparse.Namespace, config_path: Path) -> Any:
    """Execute the requested operation and return a JSON-serializable result."""
    cfg = _init_from_config(config_path)
    name = args.datasource or next(iter(cfg.datasources), None)
    if name is None or name not in cfg.datasources:
        raise SystemExit(f"unknown data source: {name!r}")
    ds = OCIMetricsDataSource(
        cfg.datasources[name],
        adapter=get_adapter(name),
        variables=_load_variables(args.variables),
    )
    try:
        if args.health:
            return (await ds.test_datasource()).model_dump()
        if args.template:
            entries = await ds.metric_find_query(args.template)
            return [e.model_dump() for e in entries]
        raw_targets: List[Any] = _load_json(args.query)
        targets = [QueryTarget.model_validate(t) for t in raw_targets]
        time_range = TimeRange.model_validate({"from": args.from_, "to": args.to})
        if args.dry_run:
            requests = await ds.builder.build(targets, time_range)
            return [r.to_wire() for r in requests]
        response = await ds.query(targets, time_range)
        return response.model_dump(by_alias=True)
    finally:
        await ds.aclose()


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entrypoint."""
    env = EnvSettings()
    parser = argparse.ArgumentParser(description="OCI metrics query resolver")
    parser.add_argument("--config", default=env.config_path, help="Path to JSON config")
    parser.add_argument("--datasource", help="Data source name (default: first)")
    parser.add_argument("--variables", help="JSON file with template variables")
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--health", action="store_true", help="Run the health check")
    mode.add_argument("--template", help="Template variable query, e.g. 'regions()'")
    mode.add_argument("--query", help="JSON file with a list of query targets")
    parser.add_argument("--from", dest="from_", help="Range start (ISO8601 or epoch)")
    parser.add_argument("--to", help="Range end (ISO8601 or epoch)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print resolved requests instead of executing them",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging level (overrides environment)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (once sets DEBUG)",
    )
    args = parser.parse_args(argv)

    env_level = env.log_level.upper()
    setup_logging(args.log_level or ("DEBUG" if args.verbose > 0 else env_level))

    if not args.config:
        parser.error("--config is required (or set OCI_METRICS_CONFIG_PATH)")
    if args.query and not (args.from_ and args.to):
        parser.error("--query requires --from and --to")

    result = asyncio.run(_run(args, Path(args.config)))
    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


if __name__ == "__main__":
    main()
