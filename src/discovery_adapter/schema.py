"""Conversion of discovery schema graphs into bounded JSON schemas."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from .models import ApiSpecification, MethodDescriptor, ParameterSpec, SchemaNode


logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10

_SCALAR_TYPES = {"string", "integer", "number", "boolean"}
_PARAMETER_TYPES = _SCALAR_TYPES | {"array"}


@dataclass
class SchemaBundle:
    """A JSON schema plus a sample payload keyed by its top-level properties."""

    schema: Dict[str, Any]
    sample: Dict[str, Any] = field(default_factory=dict)

    def property_names(self) -> List[str]:
        return list((self.schema.get("properties") or {}).keys())


def opaque_object() -> Dict[str, Any]:
    return {"type": "object"}


class SchemaConverter:
    """Translates one specification's schemas into acyclic JSON schemas.

    Each pass (one request or response build, or one top-level conversion) keeps a
    set of the named schemas it has already expanded. A second reference to a
    name within the same pass, or any node deeper than ``max_depth``, becomes
    an opaque object, so output size is bounded by the schema table itself.
    """

    def __init__(self, spec: ApiSpecification, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.spec = spec
        self.max_depth = max_depth

    def convert(self, node: SchemaNode) -> Dict[str, Any]:
        return self.to_generic_schema(node, 0)

    def to_generic_schema(
        self, node: SchemaNode, depth: int, visited: Optional[Set[str]] = None
    ) -> Dict[str, Any]:
        """Convert ``node`` found at ``depth``. ``visited`` is shared by one pass only."""
        if visited is None:
            visited = set()
        if depth > self.max_depth:
            return opaque_object()

        kind = node.kind
        if kind == "ref":
            return self._resolve_ref(node.ref, depth, visited)

        schema: Dict[str, Any] = {}
        if kind == "object":
            schema["type"] = "object"
            if node.properties:
                schema["properties"] = {
                    name: self.to_generic_schema(prop, depth + 1, visited)
                    for name, prop in node.properties.items()
                }
            if node.additional_properties is not None:
                schema["additionalProperties"] = self.to_generic_schema(
                    node.additional_properties, depth + 1, visited
                )
        elif kind == "array":
            schema["type"] = "array"
            if node.items is not None:
                schema["items"] = self.to_generic_schema(node.items, depth + 1, visited)
        elif kind in _SCALAR_TYPES:
            schema["type"] = kind
        # "any", absent and unknown types stay open.

        _annotate(schema, node.description, node.default, node.enum, node.enum_descriptions,
                  node.format, node.pattern)
        if node.read_only:
            schema["readOnly"] = True
        return schema

    def parameter_to_schema(self, param: ParameterSpec) -> Dict[str, Any]:
        param_type = param.type if param.type in _PARAMETER_TYPES else "string"
        value: Dict[str, Any] = {"type": param_type}
        if param_type == "array" and param.items is not None:
            value["items"] = self.parameter_to_schema(param.items)
        _annotate(value, "", param.default, param.enum, param.enum_descriptions,
                  param.format, param.pattern)

        # Repeated scalars are sent as one query key per element.
        if param.repeated and param_type != "array":
            schema: Dict[str, Any] = {"type": "array", "items": value}
        else:
            schema = value
        if param.description:
            schema["description"] = param.description
        return schema

    def build_request_schema(self, method: MethodDescriptor) -> SchemaBundle:
        properties: Dict[str, Any] = {}
        required: List[str] = []
        sample: Dict[str, Any] = {}

        for name, param in method.parameters.items():
            properties[name] = self.parameter_to_schema(param)
            sample[name] = None
            if param.required:
                required.append(name)

        if method.request_ref:
            body = self.spec.find_schema(method.request_ref)
            if body is None:
                logger.warning(
                    "Request schema not found: method=%s ref=%s",
                    method.full_name,
                    method.request_ref,
                )
            else:
                visited = {method.request_ref}
                for name, prop in body.properties.items():
                    if name in properties:
                        logger.debug(
                            "Body property shadowed by parameter: method=%s name=%s",
                            method.full_name,
                            name,
                        )
                        continue
                    properties[name] = self.to_generic_schema(prop, 1, visited)
                    sample[name] = None

        schema: Dict[str, Any] = {"type": "object"}
        if properties:
            schema["properties"] = properties
        if required:
            schema["required"] = required
        return SchemaBundle(schema=schema, sample=sample)

    def build_response_schema(self, method: MethodDescriptor) -> SchemaBundle:
        if not method.response_ref:
            return SchemaBundle(
                schema={
                    "type": "object",
                    "description": "No response schema defined for this method",
                },
                sample={"_info": "No response schema defined"},
            )

        response = self.spec.find_schema(method.response_ref)
        if response is None:
            return SchemaBundle(
                schema={
                    "type": "object",
                    "description": f"Response schema not found: {method.response_ref}",
                },
                sample={"_error": f"Schema not found: {method.response_ref}"},
            )

        schema: Dict[str, Any] = {"type": "object"}
        if response.description:
            schema["description"] = response.description

        visited = {method.response_ref}
        properties = {
            name: self.to_generic_schema(prop, 1, visited)
            for name, prop in response.properties.items()
        }
        if properties:
            schema["properties"] = properties
        return SchemaBundle(schema=schema, sample={name: None for name in properties})

    def _resolve_ref(self, ref: str, depth: int, visited: Set[str]) -> Dict[str, Any]:
        if ref in visited:
            return opaque_object()
        visited.add(ref)

        target = self.spec.find_schema(ref)
        if target is None:
            logger.debug("Unresolved schema reference: %s", ref)
            return opaque_object()
        return self.to_generic_schema(target, depth + 1, visited)


def _annotate(
    schema: Dict[str, Any],
    description: str,
    default: Any,
    enum: List[Any],
    enum_descriptions: List[str],
    fmt: str,
    pattern: str,
) -> None:
    if description:
        schema["description"] = description
    if default is not None and default != "":
        schema["default"] = default
    if enum:
        schema["enum"] = list(enum)
        if enum_descriptions:
            schema["enumDescriptions"] = list(enum_descriptions)
    if fmt:
        schema["format"] = fmt
    if pattern:
        schema["pattern"] = pattern


def empty_schema(description: Optional[str] = None) -> SchemaBundle:
    schema: Dict[str, Any] = {"type": "object"}
    if description:
        schema["description"] = description
    return SchemaBundle(schema=schema)
