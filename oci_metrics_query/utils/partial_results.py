"""
Partial results handling for lookups where individual calls may fail.

Provides utilities for collecting successful results while tracking failures,
so that one failing backend call degrades a combined result instead of
aborting it.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, TypeVar

import httpx

from ..domain.errors import BackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FailureInfo:
    """
    Information about a failed operation.

    Attributes
    ----------
    identifier : str
        Identifier for the failed operation (e.g., a metric name)
    error : str
        Error message
    error_type : str
        Type of error (e.g., "http_error", "timeout", "parse_error")
    retryable : bool
        Whether the operation might succeed if retried
    """

    identifier: str
    error: str
    error_type: str
    retryable: bool = False


@dataclass
class PartialResult:
    """
    Result container for operations that may partially fail.

    Attributes
    ----------
    successes : Dict[str, Any]
        Successfully retrieved values keyed by operation identifier
    failures : List[FailureInfo]
        Information about failed operations
    """

    successes: Dict[str, Any] = field(default_factory=dict)
    failures: List[FailureInfo] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Calculate success rate (0.0-1.0)."""
        total = len(self.successes) + len(self.failures)
        if total == 0:
            return 0.0
        return len(self.successes) / total

    @property
    def has_failures(self) -> bool:
        """Check if any operations failed."""
        return len(self.failures) > 0

    @property
    def failed_identifiers(self) -> List[str]:
        """Identifiers of failed operations in execution order."""
        return [f.identifier for f in self.failures]


async def gather_sequential(
    operations: Dict[str, Callable[[], Awaitable[T]]],
    operation_type: str = "operation",
) -> PartialResult:
    """
    Run async operations one after another and collect partial results.

    Each operation is started only after the previous one finished, which
    bounds the load placed on the backend to a single in-flight call.

    Parameters
    ----------
    operations : Dict[str, Callable[[], Awaitable[T]]]
        Mapping from identifier to a zero-argument coroutine factory
    operation_type : str
        Human-readable type of operation (for logging)

    Returns
    -------
    PartialResult
        Container with successes and failures

    Examples
    --------
    >>> result = await gather_sequential(
    ...     {"CpuUtilization": lambda: fetch("CpuUtilization")}, "dimensions"
    ... )
    """
    results = PartialResult()

    for identifier, factory in operations.items():
        try:
            results.successes[identifier] = await factory()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error_type = _classify_error(exc)
            retryable = _is_retryable(error_type)
            results.failures.append(
                FailureInfo(
                    identifier=identifier,
                    error=str(exc),
                    error_type=error_type,
                    retryable=retryable,
                )
            )
            logger.warning(
                f"partial_results.{operation_type}.failed",
                extra={
                    "identifier": identifier,
                    "error_type": error_type,
                    "retryable": retryable,
                    "error": str(exc),
                },
            )

    logger.debug(
        f"partial_results.{operation_type}.complete",
        extra={
            "total": len(operations),
            "successes": len(results.successes),
            "failures": len(results.failures),
            "success_rate": results.success_rate,
        },
    )
    return results


_STATUS_ERROR_TYPES = {429: "rate_limit", 401: "auth_error", 403: "auth_error", 404: "not_found"}

_RETRYABLE_ERROR_TYPES = frozenset({"timeout", "connection_error", "server_error", "rate_limit"})


def _classify_error(exc: Exception) -> str:
    """Map a lookup failure to a short error type used in failure logs."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status >= 500:
            return "server_error"
        return _STATUS_ERROR_TYPES.get(status, "http_error")
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return "timeout"
    if isinstance(exc, httpx.ConnectError):
        return "connection_error"
    if isinstance(exc, BackendError):
        return "malformed_response"
    if isinstance(exc, ValueError):
        return "parse_error"
    if isinstance(exc, KeyError):
        return "missing_field"
    return "unknown_error"


def _is_retryable(error_type: str) -> bool:
    """Transport-level failures may succeed on a later attempt."""
    return error_type in _RETRYABLE_ERROR_TYPES
