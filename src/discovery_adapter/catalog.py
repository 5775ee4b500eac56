"""Discovery directory loader with a time-to-live cache."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import List, Optional, Tuple

import httpx
from pydantic import ValidationError

from .errors import CatalogFetchError
from .models import DirectoryList, ServiceDescriptor


logger = logging.getLogger(__name__)


class CatalogCache:
    """Caches the discovery directory for ``cache_seconds``.

    Reads inside the TTL window never touch the network. A refresh happens
    under a lock and re-checks freshness once the lock is held, so callers
    that queued behind the first refresh reuse its result. A failed refresh
    raises; the previous snapshot is never served past its TTL.
    """

    def __init__(
        self,
        list_url: str,
        cache_seconds: float = 3600,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.list_url = list_url
        self.cache_seconds = cache_seconds
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._services: Optional[Tuple[ServiceDescriptor, ...]] = None
        self._fetched_at: float = 0.0
        self._lock = asyncio.Lock()

    async def list_services(self) -> List[ServiceDescriptor]:
        return list(await self._snapshot())

    async def list_preferred_services(self) -> List[ServiceDescriptor]:
        return [service for service in await self._snapshot() if service.preferred]

    async def get_service(self, service_id: str) -> Optional[ServiceDescriptor]:
        for service in await self._snapshot():
            if service.id == service_id:
                return service
        return None

    def clear(self) -> None:
        self._services = None
        self._fetched_at = 0.0

    def _fresh(self) -> Optional[Tuple[ServiceDescriptor, ...]]:
        services = self._services
        if services is not None and time.monotonic() - self._fetched_at < self.cache_seconds:
            return services
        return None

    async def _snapshot(self) -> Tuple[ServiceDescriptor, ...]:
        services = self._fresh()
        if services is not None:
            return services

        async with self._lock:
            services = self._fresh()
            if services is not None:
                return services

            services = await self._fetch()
            self._services = services
            self._fetched_at = time.monotonic()
            logger.info("Loaded discovery directory: %s services", len(services))
            return services

    async def _fetch(self) -> Tuple[ServiceDescriptor, ...]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport, follow_redirects=True
            ) as client:
                response = await client.get(self.list_url)
        except httpx.HTTPError as exc:
            raise CatalogFetchError(f"discovery list request failed: {exc}") from exc

        if response.status_code != 200:
            raise CatalogFetchError(
                f"discovery list request failed with status {response.status_code}: {response.text}"
            )

        try:
            directory = DirectoryList.model_validate_json(response.content)
        except ValidationError as exc:
            raise CatalogFetchError(f"failed to decode discovery list: {exc}") from exc

        seen: set[str] = set()
        services: List[ServiceDescriptor] = []
        for item in directory.items:
            if item.id in seen:
                logger.warning("Duplicate service id in discovery list: %s", item.id)
                continue
            seen.add(item.id)
            services.append(ServiceDescriptor.from_item(item))

        services.sort(key=lambda service: service.title)
        return tuple(services)
