"""Cached JSON fetches from idempotent upstream endpoints.

Read paths that pull the same upstream document repeatedly (dashboard data
exports, spreadsheet tabs) go through ``UpstreamFetcher.fetch_json`` so that
repeated reads within the TTL are served from the response cache.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from guard.core.errors import UpstreamAppError
from guard.utils.response_cache import ResponseCache

logger = logging.getLogger(__name__)


class UpstreamFetcher:
    """Fetch JSON documents over HTTP, memoized in a ResponseCache."""

    def __init__(self, client: httpx.AsyncClient, cache: ResponseCache) -> None:
        self._client = client
        self._cache = cache

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def _get_json(self, url: str, headers: dict[str, str] | None) -> Any:
        response = await self._client.get(url, headers=headers)
        if response.status_code >= 400:
            logger.warning(
                "upstream.error",
                extra={"url": url, "status_code": response.status_code},
            )
            raise UpstreamAppError(
                code="upstream_http_error",
                message=f"HTTP error! status: {response.status_code}",
                details={"http_status": response.status_code, "url": url},
            )
        return response.json()

    async def fetch_json(
        self,
        url: str,
        *,
        cache_key: str | None = None,
        ttl: float | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Return the JSON body of ``url``, from cache when fresh.

        Args:
            url: Upstream URL; also the default cache key.
            cache_key: Explicit cache key overriding the URL.
            ttl: Freshness required by this read, in seconds.
            headers: Extra request headers.

        Raises:
            UpstreamAppError: If the upstream answers with status >= 400.
            httpx.HTTPError: On transport failures; propagated unchanged.
        """

        return await self._cache.fetch_with_cache_async(
            url,
            lambda: self._get_json(url, headers),
            cache_key=cache_key,
            ttl=ttl,
        )
