"""Per-service specification loader."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx
from pydantic import ValidationError

from .catalog import CatalogCache
from .errors import CatalogFetchError, MethodNotFoundError, SpecFetchError
from .models import ApiSpecification, MethodDescriptor


logger = logging.getLogger(__name__)


class SpecCache:
    """Keeps one decoded specification per service id for the process lifetime.

    Two concurrent misses for the same id may both fetch; whichever stores
    first is kept and returned to both.
    """

    def __init__(
        self,
        catalog: CatalogCache,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.catalog = catalog
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._cache: Dict[str, ApiSpecification] = {}

    async def get_specification(self, service_id: str) -> ApiSpecification:
        cached = self._cache.get(service_id)
        if cached is not None:
            return cached

        discovery_url = await self._discovery_url(service_id)
        spec = await self._fetch(service_id, discovery_url)
        return self._cache.setdefault(service_id, spec)

    async def list_methods(self, service_id: str) -> List[MethodDescriptor]:
        spec = await self.get_specification(service_id)
        return sorted(spec.all_methods(), key=lambda method: method.full_name)

    async def get_method(self, service_id: str, full_name: str) -> MethodDescriptor:
        spec = await self.get_specification(service_id)
        method = spec.find_method(full_name)
        if method is None:
            raise MethodNotFoundError(service_id, full_name)
        return method

    def clear(self) -> None:
        self._cache = {}

    async def _discovery_url(self, service_id: str) -> str:
        try:
            service = await self.catalog.get_service(service_id)
        except CatalogFetchError as exc:
            raise SpecFetchError(f"failed to get discovery URL for {service_id}: {exc}") from exc
        if service is None:
            raise SpecFetchError(f"service {service_id} not found in discovery list")
        if not service.discovery_url:
            raise SpecFetchError(f"service {service_id} has no discovery URL")
        return service.discovery_url

    async def _fetch(self, service_id: str, url: str) -> ApiSpecification:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport, follow_redirects=True
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise SpecFetchError(f"failed to fetch API spec for {service_id}: {exc}") from exc

        if response.status_code != 200:
            raise SpecFetchError(
                f"API spec request for {service_id} failed with status "
                f"{response.status_code}: {response.text}"
            )

        try:
            spec = ApiSpecification.model_validate_json(response.content)
        except ValidationError as exc:
            raise SpecFetchError(f"failed to decode API spec for {service_id}: {exc}") from exc

        logger.info(
            "Loaded API spec: service=%s schemas=%s", service_id, len(spec.schemas)
        )
        return spec
