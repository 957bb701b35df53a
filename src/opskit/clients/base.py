from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from opskit.errors import UpstreamError

logger = logging.getLogger(__name__)

# Upstream bodies can be whole HTML error pages; keep log lines readable.
_MAX_BODY_CHARS = 2000


# PUBLIC_INTERFACE
def raise_for_upstream(response: httpx.Response, service: str) -> None:
    """Raise UpstreamError (status + body) for any non-2xx response."""
    if response.is_success:
        return
    body = response.text[:_MAX_BODY_CHARS]
    request = response.request
    raise UpstreamError(
        f"{service} API returned {response.status_code} for {request.method} {request.url.path}",
        status_code=response.status_code,
        method=request.method,
        url=str(request.url),
        body=body,
    )


class BaseApiClient:
    """
    Thin async JSON client shared by the Mackerel and GitHub clients.

    - One httpx.AsyncClient per instance; use as an async context manager.
    - `transport` lets tests swap in httpx.MockTransport.
    - No retries: the first non-2xx answer becomes an UpstreamError.
    """

    service_name = "remote"

    def __init__(
        self,
        base_url: str,
        headers: Dict[str, str],
        timeout_sec: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout_sec,
            transport=transport,
        )

    async def __aenter__(self) -> "BaseApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> httpx.Response:
        # Drop unset params so optional cursors are not sent as "None".
        clean_params = {k: v for k, v in (params or {}).items() if v is not None} or None
        response = await self._client.request(method, url, params=clean_params, json=json)
        logger.debug("%s %s -> %s", method, response.request.url, response.status_code)
        raise_for_upstream(response, self.service_name)
        return response

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._request("GET", url, params=params)
        return response.json()
