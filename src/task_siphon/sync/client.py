"""HTTP client for the remote context service."""

from typing import Any, Self
from urllib.parse import quote

import httpx

from task_siphon.exceptions import UpstreamError
from task_siphon.logging import get_logger

logger = get_logger("client")

DEFAULT_TIMEOUT = 30.0
ERROR_BODY_LIMIT = 400


class ContextClient:
    """Fetches full session contexts by id.

    Use as an async context manager so the underlying connection pool is
    closed when the batch is done.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def context_url(self, context_id: str) -> str:
        return f"{self._base_url}/contexts/{quote(context_id, safe='')}"

    async def fetch_context(self, context_id: str) -> dict[str, Any]:
        """GET one context document.

        Raises:
            UpstreamError: On a non-2xx response, a transport failure, or a
                body that is not a JSON object
        """
        url = self.context_url(context_id)
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Request failed {url}: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"HTTP {response.status_code} {url}: {response.text[:ERROR_BODY_LIMIT]}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(f"Invalid JSON from {url}: {e}", status_code=response.status_code) from e

        if not isinstance(payload, dict):
            raise UpstreamError(f"Unexpected payload from {url}", status_code=response.status_code)

        data = payload.get("data")
        logger.debug("Fetched context: id=%s messages=%d", context_id, len(data) if isinstance(data, list) else 0)
        return payload

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.aclose()
