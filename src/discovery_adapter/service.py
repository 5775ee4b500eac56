"""Component logic: selection handling and method execution."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import httpx

from .catalog import CatalogCache
from .config import Settings
from .errors import DiscoveryAdapterError, SelectionError
from .executor import ApiResponse, MethodExecutor
from .logging import redact_payload
from .messages import (
    ComponentSettings,
    ErrorMessage,
    ExecuteRequest,
    ExecuteResponse,
    Token,
)
from .selection import SelectionState
from .spec_cache import SpecCache

logger = logging.getLogger(__name__)


class DiscoveryService:
    """
    One configurable API-call component.

    - Settings events change the selected service/method and rebuild the
      request/response schemas.
    - Request events execute the selected method with a caller token.
    - With the error port enabled, failures become ``ErrorMessage`` payloads;
      otherwise they are raised to the caller.
    """

    def __init__(
        self,
        settings: Settings,
        catalog: CatalogCache,
        specs: SpecCache,
        executor: MethodExecutor,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.specs = specs
        self.executor = executor
        self.selection = SelectionState(catalog, specs, schema_max_depth=settings.schema_max_depth)
        self.enable_error_port = False
        self._lock = asyncio.Lock()
        self.semaphore = asyncio.Semaphore(settings.adapter_max_concurrency)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> DiscoveryService:
        catalog = CatalogCache(
            settings.discovery_list_url,
            cache_seconds=settings.discovery_cache_seconds,
            timeout_seconds=settings.discovery_timeout_seconds,
            transport=transport,
        )
        specs = SpecCache(
            catalog,
            timeout_seconds=settings.discovery_timeout_seconds,
            transport=transport,
        )
        executor = MethodExecutor(
            timeout_seconds=settings.execute_timeout_seconds,
            transport=transport,
        )
        return cls(settings, catalog, specs, executor)

    async def handle_settings(self, message: ComponentSettings) -> Dict[str, Any]:
        async with self._lock:
            await self.selection.on_selection_changed(message.service, message.method)
            self.enable_error_port = message.enable_error_port
            return self.describe_settings()

    async def handle_request(
        self, message: ExecuteRequest
    ) -> Union[ExecuteResponse, ErrorMessage]:
        async with self._lock:
            service_id = self.selection.service.value
            method_name = self.selection.method.value
            enable_error_port = self.enable_error_port

        if not service_id or not method_name:
            return self._fail(
                message,
                SelectionError("service and method must be selected in settings"),
                enable_error_port,
            )

        async with self.semaphore:
            try:
                result = await self.execute(
                    service_id, method_name, message.token.access_token, message.parameters
                )
            except DiscoveryAdapterError as exc:
                return self._fail(message, exc, enable_error_port)

        return ExecuteResponse(
            context=message.context,
            status_code=result.status_code,
            headers=result.headers,
            body=self._wrap_body(result.body),
        )

    async def execute(
        self,
        service_id: str,
        method_name: str,
        token: str,
        parameters: Mapping[str, Any],
    ) -> ApiResponse:
        logger.info(
            "Executing service=%s method=%s parameters=%s",
            service_id,
            method_name,
            redact_payload(dict(parameters)),
        )
        spec = await self.specs.get_specification(service_id)
        method = await self.specs.get_method(service_id, method_name)
        return await self.executor.execute(spec, method, token, parameters)

    def describe_settings(self) -> Dict[str, Any]:
        state = self.selection.snapshot()
        state["enableErrorPort"] = self.enable_error_port
        return state

    def ports(self) -> List[Dict[str, Any]]:
        """Describe the payload schema of each port for the current selection."""
        selection = self.selection
        ports: List[Dict[str, Any]] = [
            {
                "name": "settings",
                "label": "Settings",
                "schema": {
                    "type": "object",
                    "properties": {
                        "service": selection.service.to_json_schema(),
                        "method": selection.method.to_json_schema(),
                        "enableErrorPort": {"type": "boolean"},
                    },
                },
                "configuration": {
                    "service": selection.service.to_json(),
                    "method": selection.method.to_json(),
                    "enableErrorPort": self.enable_error_port,
                },
            },
            {
                "name": "request",
                "label": "Request",
                "schema": {
                    "type": "object",
                    "properties": {
                        "context": {},
                        "token": Token.model_json_schema(),
                        "parameters": selection.request_schema.schema,
                    },
                    "required": ["token"],
                },
                "configuration": {"parameters": selection.request_schema.sample},
            },
            {
                "name": "response",
                "label": "Response",
                "source": True,
                "schema": {
                    "type": "object",
                    "properties": {
                        "context": {},
                        "statusCode": {"type": "integer"},
                        "headers": {"type": "object"},
                        "body": selection.response_schema.schema,
                    },
                },
                "configuration": {"body": selection.response_schema.sample},
            },
        ]
        if self.enable_error_port:
            ports.append(
                {
                    "name": "error",
                    "label": "Error",
                    "source": True,
                    "schema": ErrorMessage.model_json_schema(),
                    "configuration": {},
                }
            )
        return ports

    def _fail(
        self,
        message: ExecuteRequest,
        exc: DiscoveryAdapterError,
        enable_error_port: bool,
    ) -> ErrorMessage:
        logger.error("Method execution failed: %s", exc)
        if not enable_error_port:
            raise exc
        return ErrorMessage(context=message.context, error=str(exc), code=exc.status_code)

    def _wrap_body(self, body: Any) -> Dict[str, Any]:
        if isinstance(body, dict):
            return body
        return {"data": body}

