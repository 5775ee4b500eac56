"""Service/method selection and the option lists derived from it."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from .catalog import CatalogCache
from .errors import DiscoveryAdapterError
from .schema import DEFAULT_MAX_DEPTH, SchemaBundle, SchemaConverter, empty_schema
from .spec_cache import SpecCache


logger = logging.getLogger(__name__)

LABEL_DESCRIPTION_LIMIT = 80


@dataclass
class Choice:
    """A selected value plus the options it may take.

    Only ``value`` is persisted; options and labels are recomputed and kept
    beside it for rendering.
    """

    value: str = ""
    options: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)

    def to_json(self) -> str:
        return self.value

    def to_json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": "string", "default": self.value, "shared": True}
        if self.options:
            schema["enum"] = list(self.options)
            if self.labels:
                schema["enumTitles"] = list(self.labels)
        return schema


def method_label(full_name: str, description: str) -> str:
    if not description:
        return full_name
    if len(description) > LABEL_DESCRIPTION_LIMIT:
        description = description[: LABEL_DESCRIPTION_LIMIT - 3] + "..."
    return f"{full_name} - {description}"


class SelectionState:
    """Tracks the chosen service and method for one component instance.

    Not safe for concurrent mutation; the owner serializes calls.
    """

    def __init__(
        self,
        catalog: CatalogCache,
        specs: SpecCache,
        schema_max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.catalog = catalog
        self.specs = specs
        self.schema_max_depth = schema_max_depth
        self.service = Choice()
        self.method = Choice()
        self.request_schema: SchemaBundle = empty_schema()
        self.response_schema: SchemaBundle = empty_schema()

    async def on_selection_changed(self, service_id: str, method_name: str) -> SelectionState:
        if not self.service.options:
            await self._discover_services()

        previous = self.service.value
        service_changed = previous != service_id
        logger.info(
            "Selection changed: service=%s->%s method=%s",
            previous or "-",
            service_id or "-",
            method_name or "-",
        )

        self.service.value = service_id

        if service_id:
            if service_changed or not self.method.options:
                self.method.options = []
                self.method.labels = []
                await self._discover_methods(service_id)
        else:
            self.method.options = []
            self.method.labels = []

        if service_changed and previous:
            self.method.value = ""
            self.request_schema = empty_schema()
            self.response_schema = empty_schema()
        else:
            self.method.value = method_name

        if service_id and self.method.value:
            await self._build_schemas(service_id, self.method.value)

        return self

    def snapshot(self) -> Dict[str, Any]:
        return {
            "service": {
                "value": self.service.value,
                "options": list(self.service.options),
                "labels": list(self.service.labels),
            },
            "method": {
                "value": self.method.value,
                "options": list(self.method.options),
                "labels": list(self.method.labels),
            },
            "requestSchema": self.request_schema.schema,
            "requestSample": self.request_schema.sample,
            "responseSchema": self.response_schema.schema,
            "responseSample": self.response_schema.sample,
        }

    async def _discover_services(self) -> None:
        try:
            services = await self.catalog.list_preferred_services()
        except DiscoveryAdapterError as exc:
            logger.warning("Failed to discover services: %s", exc)
            return
        self.service.options = [service.id for service in services]
        self.service.labels = [service.title for service in services]

    async def _discover_methods(self, service_id: str) -> None:
        try:
            methods = await self.specs.list_methods(service_id)
        except DiscoveryAdapterError as exc:
            logger.warning("Failed to discover methods for %s: %s", service_id, exc)
            return
        logger.info("Discovered %s methods for %s", len(methods), service_id)
        self.method.options = [method.full_name for method in methods]
        self.method.labels = [method_label(m.full_name, m.description) for m in methods]

    async def _build_schemas(self, service_id: str, method_name: str) -> None:
        try:
            spec = await self.specs.get_specification(service_id)
            method = await self.specs.get_method(service_id, method_name)
        except DiscoveryAdapterError as exc:
            logger.warning("Failed to build schemas for %s %s: %s", service_id, method_name, exc)
            return

        converter = SchemaConverter(spec, max_depth=self.schema_max_depth)
        self.request_schema = converter.build_request_schema(method)
        self.response_schema = converter.build_response_schema(method)
        logger.info(
            "Built schemas: method=%s request=%s response=%s",
            method_name,
            self.request_schema.property_names(),
            self.response_schema.property_names(),
        )
