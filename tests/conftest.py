"""Shared fixtures: a small discovery directory, a Sheets-like spec and a fake network."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from discovery_adapter.catalog import CatalogCache
from discovery_adapter.config import Settings
from discovery_adapter.models import ApiSpecification
from discovery_adapter.spec_cache import SpecCache


DIRECTORY_URL = "https://discovery.test/discovery/v1/apis"
SHEETS_V4_URL = "https://discovery.test/discovery/v1/apis/sheets/v4/rest"
SHEETS_V3_URL = "https://discovery.test/discovery/v1/apis/sheets/v3/rest"
DRIVE_V3_URL = "https://discovery.test/discovery/v1/apis/drive/v3/rest"
SHEETS_BASE = "https://sheets.test/"


DIRECTORY: Dict[str, Any] = {
    "kind": "discovery#directoryList",
    "discoveryVersion": "v1",
    "items": [
        {
            "kind": "discovery#directoryItem",
            "id": "sheets:v4",
            "name": "sheets",
            "version": "v4",
            "title": "Google Sheets API",
            "description": "Reads and writes Google Sheets.",
            "discoveryRestUrl": SHEETS_V4_URL,
            "preferred": True,
        },
        {
            "kind": "discovery#directoryItem",
            "id": "sheets:v3",
            "name": "sheets",
            "version": "v3",
            "title": "Google Sheets API (legacy)",
            "discoveryRestUrl": SHEETS_V3_URL,
            "preferred": False,
        },
        {
            "kind": "discovery#directoryItem",
            "id": "drive:v3",
            "name": "drive",
            "version": "v3",
            "title": "Drive API",
            "discoveryRestUrl": DRIVE_V3_URL,
            "preferred": True,
        },
    ],
}


def _path_param(description: str = "") -> Dict[str, Any]:
    return {"type": "string", "location": "path", "required": True, "description": description}


SHEETS_SPEC: Dict[str, Any] = {
    "kind": "discovery#restDescription",
    "id": "sheets:v4",
    "name": "sheets",
    "version": "v4",
    "title": "Google Sheets API",
    "rootUrl": SHEETS_BASE,
    "servicePath": "",
    "baseUrl": SHEETS_BASE,
    "parameters": {
        "fields": {"type": "string", "location": "query"},
        "prettyPrint": {"type": "boolean", "location": "query", "default": "true"},
    },
    "schemas": {
        "Spreadsheet": {
            "id": "Spreadsheet",
            "type": "object",
            "description": "Resource that represents a spreadsheet.",
            "properties": {
                "spreadsheetId": {"type": "string", "readOnly": True},
                "properties": {"$ref": "SpreadsheetProperties"},
                "sheets": {"type": "array", "items": {"$ref": "Sheet"}},
            },
        },
        "Sheet": {
            "id": "Sheet",
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "spreadsheet": {"$ref": "Spreadsheet"},
                "children": {"type": "array", "items": {"$ref": "Sheet"}},
            },
        },
        "SpreadsheetProperties": {
            "id": "SpreadsheetProperties",
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "The title of the spreadsheet."},
                "locale": {"type": "string"},
            },
        },
        "ValueRange": {
            "id": "ValueRange",
            "type": "object",
            "properties": {
                "range": {"type": "string"},
                "majorDimension": {
                    "type": "string",
                    "enum": ["DIMENSION_UNSPECIFIED", "ROWS", "COLUMNS"],
                    "enumDescriptions": ["Default", "Rows", "Columns"],
                },
                "values": {
                    "type": "array",
                    "items": {"type": "array", "items": {"type": "any"}},
                },
            },
        },
        "UpdateValuesResponse": {
            "id": "UpdateValuesResponse",
            "type": "object",
            "properties": {
                "updatedRange": {"type": "string"},
                "updatedCells": {"type": "integer", "format": "int32"},
            },
        },
    },
    "resources": {
        "spreadsheets": {
            "methods": {
                "get": {
                    "id": "sheets.spreadsheets.get",
                    "path": "v4/spreadsheets/{spreadsheetId}",
                    "flatPath": "v4/spreadsheets/{spreadsheetId}",
                    "httpMethod": "GET",
                    "description": "Returns the spreadsheet at the given ID.",
                    "parameters": {
                        "spreadsheetId": _path_param("The spreadsheet to request."),
                        "ranges": {"type": "string", "location": "query", "repeated": True},
                        "includeGridData": {"type": "boolean", "location": "query"},
                    },
                    "parameterOrder": ["spreadsheetId"],
                    "response": {"$ref": "Spreadsheet"},
                },
                "create": {
                    "id": "sheets.spreadsheets.create",
                    "path": "v4/spreadsheets",
                    "httpMethod": "POST",
                    "description": "Creates a spreadsheet, returning the newly created spreadsheet.",
                    "request": {"$ref": "Spreadsheet"},
                    "response": {"$ref": "Spreadsheet"},
                },
            },
            "resources": {
                "values": {
                    "methods": {
                        "get": {
                            "id": "sheets.spreadsheets.values.get",
                            "path": "v4/spreadsheets/{spreadsheetId}/values/{range}",
                            "httpMethod": "GET",
                            "parameters": {
                                "spreadsheetId": _path_param(),
                                "range": _path_param("The A1 notation of the values to retrieve."),
                                "majorDimension": {
                                    "type": "string",
                                    "location": "query",
                                    "enum": ["DIMENSION_UNSPECIFIED", "ROWS", "COLUMNS"],
                                },
                            },
                            "response": {"$ref": "ValueRange"},
                        },
                        "update": {
                            "id": "sheets.spreadsheets.values.update",
                            "path": "v4/spreadsheets/{spreadsheetId}/values/{range}",
                            "httpMethod": "PUT",
                            "parameters": {
                                "spreadsheetId": _path_param(),
                                "range": _path_param(),
                                "valueInputOption": {"type": "string", "location": "query"},
                            },
                            "request": {"$ref": "ValueRange"},
                            "response": {"$ref": "UpdateValuesResponse"},
                        },
                        "clear": {
                            "id": "sheets.spreadsheets.values.clear",
                            "path": "v4/spreadsheets/{spreadsheetId}/values/{range}:clear",
                            "httpMethod": "POST",
                            "parameters": {
                                "spreadsheetId": _path_param(),
                                "range": _path_param(),
                            },
                        },
                    }
                }
            },
        },
        "operations": {
            "methods": {
                "get": {
                    "id": "sheets.operations.get",
                    "path": "v4/{+name}",
                    "flatPath": "v4/operations/{operationsId}",
                    "httpMethod": "GET",
                    "parameters": {
                        "name": {
                            "type": "string",
                            "location": "path",
                            "required": True,
                            "pattern": "^operations/.*$",
                        }
                    },
                    "response": {"$ref": "Missing"},
                }
            }
        },
    },
}


def _bare_url(request: httpx.Request) -> str:
    return str(request.url).split("?", 1)[0]


class Router:
    """Routes fake requests by method and URL (query ignored) and records them."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        url: str,
        status: int = 200,
        json_body: Any = None,
        text: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        handler: Optional[Callable[[httpx.Request], httpx.Response]] = None,
    ) -> None:
        if handler is None:
            def handler(request: httpx.Request) -> httpx.Response:
                if text is not None:
                    return httpx.Response(status, text=text, headers=headers)
                if json_body is None:
                    return httpx.Response(status, headers=headers)
                return httpx.Response(status, json=json_body, headers=headers)

        self.routes[(method.upper(), url)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = _bare_url(request)
        handler = self.routes.get((request.method, url))
        if handler is None:
            return httpx.Response(404, json={"error": f"no route for {request.method} {url}"})
        return handler(request)

    def count(self, url: str) -> int:
        return sum(1 for request in self.requests if _bare_url(request) == url)

    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last().content)


@pytest.fixture
def router() -> Router:
    router = Router()
    router.add("GET", DIRECTORY_URL, json_body=DIRECTORY)
    router.add("GET", SHEETS_V4_URL, json_body=SHEETS_SPEC)
    return router


@pytest.fixture
def transport(router: Router) -> httpx.MockTransport:
    return httpx.MockTransport(router.handle)


@pytest.fixture
def settings() -> Settings:
    return Settings(discovery_list_url=DIRECTORY_URL, adapter_max_concurrency=4)


@pytest.fixture
def catalog(transport: httpx.MockTransport) -> CatalogCache:
    return CatalogCache(DIRECTORY_URL, transport=transport)


@pytest.fixture
def specs(catalog: CatalogCache, transport: httpx.MockTransport) -> SpecCache:
    return SpecCache(catalog, transport=transport)


@pytest.fixture
def sheets_spec() -> ApiSpecification:
    return ApiSpecification.model_validate(SHEETS_SPEC)
