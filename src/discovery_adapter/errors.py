"""Error taxonomy for the Discovery Adapter."""

from __future__ import annotations

from typing import Any, Dict, Optional


class DiscoveryAdapterError(Exception):
    """Base class for every error raised by the adapter."""

    status_code: Optional[int] = None


class CatalogFetchError(DiscoveryAdapterError):
    pass


class SpecFetchError(DiscoveryAdapterError):
    pass


class MethodNotFoundError(DiscoveryAdapterError):
    def __init__(self, service_id: str, method_name: str) -> None:
        super().__init__(f"method {method_name} not found in {service_id}")
        self.service_id = service_id
        self.method_name = method_name


class SchemaConversionError(DiscoveryAdapterError):
    """Reserved: schema conversion degrades to placeholders instead of raising."""


class SelectionError(DiscoveryAdapterError):
    pass


class TransportError(DiscoveryAdapterError):
    pass


class ApiStatusError(DiscoveryAdapterError):
    def __init__(
        self,
        status_code: int,
        body: Any,
        headers: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(f"API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}
