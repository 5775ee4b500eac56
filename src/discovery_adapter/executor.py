"""Execution layer for calls against a discovered API method."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

import httpx

from .errors import ApiStatusError, TransportError
from .logging import redact_payload
from .models import ApiSpecification, MethodDescriptor, ParameterSpec

logger = logging.getLogger(__name__)


BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
_PLACEHOLDER = re.compile(r"\{(\+?)([^{}]+)\}")


@dataclass
class ApiResponse:
    status_code: int
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Any = None


@dataclass
class PreparedCall:
    method: str
    url: str
    query: List[Tuple[str, str]]
    body: Optional[Dict[str, Any]]


def encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def substitute_path(template: str, values: Mapping[str, Any]) -> str:
    """Fill ``{name}`` (percent-encoded) and ``{+name}`` (raw) placeholders.

    Placeholders without a value are left in place.
    """

    def fill(match: re.Match[str]) -> str:
        reserved, name = match.group(1), match.group(2)
        if name not in values:
            return match.group(0)
        text = encode_value(values[name])
        return text if reserved else quote(text, safe="")

    return _PLACEHOLDER.sub(fill, template)


def join_url(base_url: str, path: str) -> str:
    if not base_url:
        return path
    if not path:
        return base_url
    return base_url.rstrip("/") + "/" + path.lstrip("/")


class MethodExecutor:
    def __init__(
        self,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def prepare(
        self,
        spec: ApiSpecification,
        method: MethodDescriptor,
        values: Mapping[str, Any],
    ) -> PreparedCall:
        """Partition ``values`` into path, query and body parts and build the URL.

        Keys declared with location ``path`` or ``query`` (on the method, or as
        API-wide parameters) go where they are declared. Everything else is a
        body field for POST/PUT/PATCH and a query parameter for other verbs.
        """
        http_method = method.http_method.upper()
        declared = self._declared_parameters(spec, method)

        path_values: Dict[str, Any] = {}
        query: List[Tuple[str, str]] = []
        body: Dict[str, Any] = {}

        for name, value in values.items():
            if value is None:
                continue
            param = declared.get(name)
            location = param.location if param else ""
            if location == "path":
                path_values[name] = value
            elif location == "query":
                query.extend(self._query_items(name, value, param))
            elif http_method in BODY_METHODS:
                body[name] = value
            else:
                query.extend(self._query_items(name, value, param))

        template = method.path_template
        missing = [
            match.group(2)
            for match in _PLACEHOLDER.finditer(template)
            if match.group(2) not in path_values
        ]
        if missing:
            logger.warning(
                "Unfilled path placeholders: method=%s names=%s", method.full_name, missing
            )
        path = substitute_path(template, path_values)

        return PreparedCall(
            method=http_method,
            url=join_url(spec.resolved_base_url(), path),
            query=query,
            body=body or None,
        )

    async def execute(
        self,
        spec: ApiSpecification,
        method: MethodDescriptor,
        token: str,
        values: Mapping[str, Any],
        timeout: Optional[float] = None,
    ) -> ApiResponse:
        """Issue the call. ``timeout`` narrows the default bound for this call only."""
        call = self.prepare(spec, method, values)
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        content = json.dumps(call.body) if call.body is not None else None

        logger.info(
            "Calling method=%s %s %s params=%s",
            method.full_name,
            call.method,
            call.url,
            redact_payload(dict(values)),
        )

        try:
            async with httpx.AsyncClient(
                timeout=timeout if timeout is not None else self.timeout_seconds,
                transport=self.transport,
                follow_redirects=True,
            ) as client:
                response = await client.request(
                    call.method,
                    call.url,
                    headers=headers,
                    params=call.query or None,
                    content=content,
                )
        except httpx.HTTPError as exc:
            raise TransportError(f"request failed: {exc}") from exc

        body = self._decode_body(response)
        response_headers = self._flatten_headers(response.headers)

        if not response.is_success:
            logger.warning(
                "API returned status %s for method=%s", response.status_code, method.full_name
            )
            raise ApiStatusError(response.status_code, body, response_headers)

        return ApiResponse(
            status_code=response.status_code,
            headers=response_headers,
            body=body,
        )

    def _declared_parameters(
        self, spec: ApiSpecification, method: MethodDescriptor
    ) -> Dict[str, ParameterSpec]:
        return {**spec.parameters, **method.parameters}

    def _query_items(
        self, name: str, value: Any, param: Optional[ParameterSpec]
    ) -> List[Tuple[str, str]]:
        if isinstance(value, (list, tuple)) and (param is None or param.repeated):
            return [(name, encode_value(item)) for item in value]
        if isinstance(value, (dict, list, tuple)):
            return [(name, json.dumps(value))]
        return [(name, encode_value(value))]

    def _decode_body(self, response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _flatten_headers(self, headers: httpx.Headers) -> Dict[str, Any]:
        flattened: Dict[str, Any] = {}
        for key in headers.keys():
            values = headers.get_list(key)
            flattened[key] = values[0] if len(values) == 1 else values
        return flattened
