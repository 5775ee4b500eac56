"""Models for discovery documents and the descriptors derived from them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


_DOCUMENT_CONFIG = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class DirectoryItem(BaseModel):
    model_config = _DOCUMENT_CONFIG

    id: str
    name: str = ""
    version: str = ""
    title: str = ""
    description: str = ""
    discovery_rest_url: str = Field(default="", alias="discoveryRestUrl")
    documentation_link: str = Field(default="", alias="documentationLink")
    preferred: bool = False


class DirectoryList(BaseModel):
    model_config = _DOCUMENT_CONFIG

    kind: str = ""
    discovery_version: str = Field(default="", alias="discoveryVersion")
    items: List[DirectoryItem] = Field(default_factory=list)


class SchemaNode(BaseModel):
    """A node of a specification's schema graph.

    Nodes may point at named schemas through ``ref``; those can in turn point
    back at the node, so the graph must never be walked without a guard.
    """

    model_config = _DOCUMENT_CONFIG

    id: str = ""
    type: str = ""
    ref: str = Field(default="", alias="$ref")
    description: str = ""
    default: Any = None
    format: str = ""
    pattern: str = ""
    enum: List[Any] = Field(default_factory=list)
    enum_descriptions: List[str] = Field(default_factory=list, alias="enumDescriptions")
    properties: Dict[str, SchemaNode] = Field(default_factory=dict)
    additional_properties: Optional[SchemaNode] = Field(default=None, alias="additionalProperties")
    items: Optional[SchemaNode] = None
    read_only: bool = Field(default=False, alias="readOnly")

    @property
    def kind(self) -> str:
        if self.ref:
            return "ref"
        return self.type


class ParameterSpec(BaseModel):
    model_config = _DOCUMENT_CONFIG

    type: str = ""
    description: str = ""
    location: str = ""
    required: bool = False
    repeated: bool = False
    default: Any = None
    minimum: Any = None
    maximum: Any = None
    enum: List[Any] = Field(default_factory=list)
    enum_descriptions: List[str] = Field(default_factory=list, alias="enumDescriptions")
    format: str = ""
    pattern: str = ""
    items: Optional[ParameterSpec] = None


class SchemaRef(BaseModel):
    model_config = _DOCUMENT_CONFIG

    ref: str = Field(default="", alias="$ref")
    parameter_name: str = Field(default="", alias="parameterName")


class Method(BaseModel):
    model_config = _DOCUMENT_CONFIG

    id: str = ""
    path: str = ""
    flat_path: str = Field(default="", alias="flatPath")
    http_method: str = Field(default="GET", alias="httpMethod")
    description: str = ""
    parameters: Dict[str, ParameterSpec] = Field(default_factory=dict)
    parameter_order: List[str] = Field(default_factory=list, alias="parameterOrder")
    request: Optional[SchemaRef] = None
    response: Optional[SchemaRef] = None
    scopes: List[str] = Field(default_factory=list)


class Resource(BaseModel):
    model_config = _DOCUMENT_CONFIG

    methods: Dict[str, Method] = Field(default_factory=dict)
    resources: Dict[str, Resource] = Field(default_factory=dict)


@dataclass(frozen=True)
class ServiceDescriptor:
    id: str
    name: str
    version: str
    title: str
    description: str
    discovery_url: str
    preferred: bool
    documentation_link: str = ""

    @classmethod
    def from_item(cls, item: DirectoryItem) -> ServiceDescriptor:
        return cls(
            id=item.id,
            name=item.name,
            version=item.version,
            title=item.title,
            description=item.description,
            discovery_url=item.discovery_rest_url,
            preferred=item.preferred,
            documentation_link=item.documentation_link,
        )


@dataclass(frozen=True)
class MethodDescriptor:
    full_name: str
    resource: str
    http_method: str
    path: str
    flat_path: str
    description: str
    parameters: Dict[str, ParameterSpec]
    request_ref: Optional[str] = None
    response_ref: Optional[str] = None

    @classmethod
    def from_method(cls, full_name: str, resource: str, method: Method) -> MethodDescriptor:
        return cls(
            full_name=full_name,
            resource=resource,
            http_method=(method.http_method or "GET").upper(),
            path=method.path,
            flat_path=method.flat_path,
            description=method.description,
            parameters=dict(method.parameters),
            request_ref=method.request.ref if method.request and method.request.ref else None,
            response_ref=method.response.ref if method.response and method.response.ref else None,
        )

    @property
    def path_template(self) -> str:
        # ``path`` names its placeholders after declared parameters; ``flatPath``
        # may expand a ``{+name}`` into segments that have no parameter entry.
        return self.path or self.flat_path


class ApiSpecification(BaseModel):
    model_config = _DOCUMENT_CONFIG

    kind: str = ""
    id: str = ""
    name: str = ""
    version: str = ""
    title: str = ""
    description: str = ""
    root_url: str = Field(default="", alias="rootUrl")
    service_path: str = Field(default="", alias="servicePath")
    base_url: str = Field(default="", alias="baseUrl")
    base_path: str = Field(default="", alias="basePath")
    parameters: Dict[str, ParameterSpec] = Field(default_factory=dict)
    schemas: Dict[str, SchemaNode] = Field(default_factory=dict)
    resources: Dict[str, Resource] = Field(default_factory=dict)
    methods: Dict[str, Method] = Field(default_factory=dict)

    def resolved_base_url(self) -> str:
        if self.base_url:
            return self.base_url
        if self.service_path:
            return self.root_url + self.service_path
        return self.root_url + self.base_path.lstrip("/")

    def all_methods(self) -> List[MethodDescriptor]:
        methods = [
            MethodDescriptor.from_method(name, "", method)
            for name, method in self.methods.items()
        ]
        for name, resource in self.resources.items():
            methods.extend(_flatten_resource(name, resource))
        return methods

    def find_method(self, full_name: str) -> Optional[MethodDescriptor]:
        for method in self.all_methods():
            if method.full_name == full_name:
                return method
        return None

    def find_schema(self, name: str) -> Optional[SchemaNode]:
        return self.schemas.get(name)


def _flatten_resource(prefix: str, resource: Resource) -> List[MethodDescriptor]:
    methods = [
        MethodDescriptor.from_method(f"{prefix}.{name}", prefix, method)
        for name, method in resource.methods.items()
    ]
    for name, child in resource.resources.items():
        methods.extend(_flatten_resource(f"{prefix}.{name}", child))
    return methods
