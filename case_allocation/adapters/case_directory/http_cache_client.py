"""Case-sourcing service client — implements CacheEvictionPort over HTTP, after commit."""

from __future__ import annotations

import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from case_allocation.adapters.persistence.database import after_commit
from case_allocation.application.ports.case_directory import CacheEvictionPort
from case_allocation.config import settings

logger = logging.getLogger(__name__)

_QUEUED_KEY = "cache_eviction_queued"


class HttpCacheEvictionClient(CacheEvictionPort):
    """POSTs to the case directory's cache-eviction endpoint.

    With no base URL configured the signal is skipped; the directory's own
    TTL then refreshes the unallocated-cases cache.
    """

    def __init__(
        self,
        base_url: str | None = None,
        path: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = (base_url if base_url is not None else settings.case_directory_url).rstrip("/")
        self._path = path or settings.case_cache_evict_path
        self._timeout = timeout if timeout is not None else settings.case_directory_timeout
        self._transport = transport

    async def evict_unallocated_cases(self) -> None:
        if not self._base_url:
            logger.debug("CASE_DIRECTORY_URL not set, skipping cache eviction")
            return

        async with httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            response = await client.post(self._path)
            response.raise_for_status()
        logger.debug("Cache eviction accepted by %s%s", self._base_url, self._path)


class CommitBoundCacheEviction(CacheEvictionPort):
    """Holds the eviction signal until the request transaction commits.

    Repeated signals on one session collapse into a single call.
    """

    def __init__(self, session: AsyncSession, client: CacheEvictionPort):
        self._session = session
        self._client = client

    async def evict_unallocated_cases(self) -> None:
        if self._session.info.get(_QUEUED_KEY):
            return
        self._session.info[_QUEUED_KEY] = True
        after_commit(self._session, self._evict)

    async def _evict(self) -> None:
        try:
            await self._client.evict_unallocated_cases()
        except Exception as e:
            # TTL on the directory side refreshes the cache eventually
            logger.warning("Failed to evict unallocated-cases cache after commit: %s", e)
            return
        logger.info("Evicted unallocated-cases cache in the case directory")
