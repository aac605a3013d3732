"""
HTTP client for the Congress.gov v3 API.

Attaches the API key and response format to every request, records each
request with the rate limit monitor, and turns error responses into
CongressApiError so the error classifier sees a uniform shape.

Responsibility: Request/response plumbing for Congress.gov
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import CongressApiConfig
from ..exceptions import CongressApiError
from ..utils.rate_limit_monitor import RateLimitMonitor

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Best-effort extraction of the upstream error message."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or error)
        if error:
            return str(error)
        if body.get("message"):
            return str(body["message"])
    return response.reason_phrase


class CongressApiClient:
    """
    Thin async client over httpx.

    Example:
        client = CongressApiClient(settings.congress_api, monitor)
        data = await client.get("/bill/118/hr", params={"limit": 20})
        detail = await client.get_detail("/bill/118/hr/1")  # None on 404
        await client.close()
    """

    def __init__(
        self,
        config: CongressApiConfig,
        monitor: RateLimitMonitor,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            config: API settings (key, base URL, format, timeout)
            monitor: Process-wide rate limit monitor
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.config = config
        self.monitor = monitor
        self.client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.request_timeout,
            headers={
                "User-Agent": config.user_agent,
                "Accept": "application/json",
            },
            follow_redirects=True,
            transport=transport,
        )

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        GET a JSON document.

        Raises:
            CongressApiError: for any non-2xx response or a missing API key
            httpx.TransportError: for network-level failures
        """
        if not self.config.key:
            raise CongressApiError(
                401,
                "Unauthorized: CONGRESS_API_KEY is not configured",
                url=path,
            )

        query: Dict[str, Any] = {
            "api_key": self.config.key,
            "format": self.config.format,
        }
        if params:
            query.update({k: v for k, v in params.items() if v is not None})

        logger.debug(f"GET {path} {params or {}}")
        response = await self.client.get(path, params=query)
        self.monitor.record_request(response.headers)

        if response.status_code == 429:
            retry_after = _retry_after(response)
            self.monitor.mark_rate_limit_hit(retry_after)
            raise CongressApiError(
                429,
                "Rate limit exceeded",
                detail=_error_message(response),
                url=path,
                retry_after=retry_after,
            )

        if response.status_code >= 400:
            raise CongressApiError(
                response.status_code,
                _error_message(response),
                url=path,
            )

        return response.json()

    async def get_detail(self, path: str) -> Optional[Dict[str, Any]]:
        """GET a single resource; a 404 means "not found" and returns None."""
        try:
            return await self.get(path)
        except CongressApiError as e:
            if e.status_code == 404:
                logger.info(f"Not found: {path}")
                return None
            raise

    async def close(self) -> None:
        await self.client.aclose()


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
