"""HTTP adapter for the metrics backend behind the host's query API.

This adapter posts request batches to ``/api/ds/query`` and parses the
field-columnar frames the backend returns. It encapsulates transport concerns
(base URL, headers, timeouts, retries) and exposes a typed interface that
returns validated Pydantic models.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from ..domain.errors import BackendError
from ..schemas.backend_contract import BackendRequest, BackendResponse

logger = logging.getLogger(__name__)

QUERY_PATH = "/api/ds/query"
_RETRYABLE_STATUS = (429, 502, 503, 504)


class GrafanaBackendAdapter:
    """Adapter for the metrics backend query endpoint.

    Parameters
    ----------
    endpoint: str
        Base URL of the host API (e.g., "http://localhost:3000").
    api_key: Optional[str]
        Optional bearer token for authenticating requests.
    timeout: int
        Request timeout in seconds for all HTTP operations.
    max_retries: int
        Extra attempts after the first one for transient failures.

    Attributes
    ----------
    _client: httpx.AsyncClient
        Shared async client configured with base URL, timeout, and headers.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout: int = 30,
        *,
        max_retries: int = 1,
        backoff_initial_ms: int = 200,
        backoff_multiplier: float = 2.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=endpoint, timeout=timeout, headers=self._headers(api_key)
        )
        self._max_retries = max(0, int(max_retries))
        self._backoff_initial_ms = max(0, int(backoff_initial_ms))
        self._backoff_multiplier = max(1.0, float(backoff_multiplier))
        self._timeout_seconds = timeout
        logger.info(
            "backend.adapter.init",
            extra={"endpoint": endpoint, "timeout_seconds": timeout},
        )

    def inject_http_client_for_testing(self, client: Any) -> None:
        """Replace underlying HTTP client (testing only).

        This allows unit tests to provide a mock compatible with ``post()``.
        """
        self._client = client

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def query(self, req: BackendRequest) -> BackendResponse:
        """Send a request batch and parse the per-target results.

        Raises
        ------
        httpx.HTTPError
            On transport errors or non-2xx responses after retries.
        BackendError
            If the response body is not a JSON object.
        """
        payload = req.to_wire()
        data = await self._post_json(QUERY_PATH, payload)
        if not isinstance(data, dict):
            raise BackendError(
                f"unexpected response body type: {type(data).__name__}"
            )
        return BackendResponse.from_wire(data)

    def _delay(self, attempt: int) -> float:
        return (self._backoff_initial_ms / 1000.0) * (
            self._backoff_multiplier**attempt
        )

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        """POST JSON to an endpoint and return parsed JSON with error handling.

        Connect errors, read timeouts and 429/502/503/504 responses are
        retried up to ``max_retries`` times with exponential backoff; other
        status errors propagate immediately.
        """
        logger.debug(
            "backend.http.post",
            extra={
                "path": path,
                "query_types": [q.get("queryType") for q in payload.get("queries", [])],
            },
        )
        attempt = 0
        last_exc: Optional[Exception] = None
        while attempt <= self._max_retries:
            try:
                resp = await self._client.post(path, json=payload)
                resp.raise_for_status()
                break
            except httpx.TimeoutException as exc:
                last_exc = exc
                logger.warning(
                    "backend.http.timeout",
                    extra={
                        "path": path,
                        "attempt": attempt + 1,
                        "max_retries": self._max_retries,
                        "timeout_seconds": self._timeout_seconds,
                    },
                )
            except httpx.ConnectError as exc:
                last_exc = exc
                logger.warning(
                    "backend.http.connect_error",
                    extra={"path": path, "attempt": attempt + 1, "error": str(exc)},
                )
            except httpx.HTTPStatusError as exc:
                last_exc = exc
                status = exc.response.status_code
                if status not in _RETRYABLE_STATUS or attempt >= self._max_retries:
                    body_preview = exc.response.text or ""
                    if len(body_preview) > 500:
                        body_preview = body_preview[:500] + "..."
                    logger.error(
                        "backend.http.status_error",
                        extra={
                            "path": path,
                            "status": status,
                            "body_preview": body_preview,
                        },
                    )
                    raise
            if attempt < self._max_retries:
                await asyncio.sleep(self._delay(attempt))
            attempt += 1
        else:
            if last_exc is not None:
                raise last_exc
            raise RuntimeError(
                "GrafanaBackendAdapter request failed after retries without exception"
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise BackendError(f"response body is not valid JSON: {exc}") from exc
        logger.debug(
            "backend.http.response",
            extra={"path": path, "status_code": resp.status_code},
        )
        return data

    @staticmethod
    def _headers(api_key: Optional[str]) -> dict:
        """Build default headers."""
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers
