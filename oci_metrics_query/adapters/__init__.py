"""Backend adapter interface and registry."""

from __future__ import annotations

import logging
from typing import Dict, Protocol

from ..schemas.backend_contract import BackendRequest, BackendResponse


class BackendAdapter(Protocol):
    """Protocol for metrics backend adapters.

    Implementations send one batch of targets to the backend and return its
    per-target results. Metadata lookups and time-series queries share this
    single request/response call.
    """

    async def query(self, req: BackendRequest) -> BackendResponse:
        """Execute a batch of targets and return per-target results."""
        raise NotImplementedError


_adapters: Dict[str, BackendAdapter] = {}


def register_adapter(datasource_id: str, adapter: BackendAdapter) -> None:
    """Register an adapter instance under a logical data source name."""
    _adapters[datasource_id] = adapter


def get_adapter(datasource_id: str) -> BackendAdapter:
    """Retrieve a registered adapter by data source name."""
    return _adapters[datasource_id]


def get_available_datasource_ids() -> list[str]:
    """Get list of registered data source names."""
    return list(_adapters.keys())


def log_adapter_status() -> None:
    """Log which backend connections are configured."""
    logger = logging.getLogger(__name__)

    if not _adapters:
        logger.warning(
            "No metrics backends configured. Add a data source to the JSON "
            "config (see 'datasources') or set OCI_METRICS_CONFIG_PATH."
        )
    else:
        logger.info(
            "Metrics backend connections configured: %s",
            ", ".join(
                f"'{name}' ({type(adapter).__name__})"
                for name, adapter in _adapters.items()
            ),
        )


def reset_adapters() -> None:
    """Test-only helper to clear registered adapters."""
    _adapters.clear()
