"""MCP server setup for the Discovery Adapter."""

import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from fastmcp import FastMCP
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from .auth import BearerAuthMiddleware, JwksVerifier
from .config import Settings
from .messages import ComponentSettings, ExecuteRequest, Token
from .service import DiscoveryService

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[Any]]

# Transport name -> keyword arguments for ``FastMCP.http_app``; anything else runs on stdio.
HTTP_TRANSPORTS: Dict[str, Dict[str, Any]] = {
    "http": {"transport": "http", "stateless_http": True, "json_response": True},
    "streamable-http": {
        "transport": "streamable-http", "stateless_http": True, "json_response": True
    },
    "streamablehttp": {
        "transport": "streamable-http", "stateless_http": True, "json_response": True
    },
    "sse": {"transport": "sse"},
}


async def build_server(
    settings: Settings, service: Optional[DiscoveryService] = None
) -> tuple[FastMCP, object | None]:
    service = service or DiscoveryService.from_settings(settings)

    mcp = FastMCP(settings.service_name, instructions=_instructions())
    for name, handler in build_tools(service).items():
        mcp.tool(name=name)(handler)
        logger.info("Registered tool: %s", name)

    app = _get_http_app(mcp, settings)
    if app:
        _attach_auth(app, settings)
        _attach_cors(app)
        _attach_healthcheck(app)
    return mcp, app


def build_tools(service: DiscoveryService) -> Dict[str, ToolHandler]:
    async def list_services(preferred_only: bool = True) -> List[Dict[str, Any]]:
        """List services from the discovery directory, sorted by title."""
        if preferred_only:
            services = await service.catalog.list_preferred_services()
        else:
            services = await service.catalog.list_services()
        return [
            {
                "id": svc.id,
                "title": svc.title,
                "version": svc.version,
                "description": svc.description,
                "preferred": svc.preferred,
            }
            for svc in services
        ]

    async def configure(
        service_id: str = "", method: str = "", enable_error_port: bool = False
    ) -> Dict[str, Any]:
        """Select a service and method; returns options and the derived schemas."""
        message = ComponentSettings(
            service=service_id, method=method, enable_error_port=enable_error_port
        )
        return await service.handle_settings(message)

    async def call(
        token: str,
        parameters: Optional[Dict[str, Any]] = None,
        context: Any = None,
    ) -> Dict[str, Any]:
        """Execute the selected method with an OAuth2 access token."""
        message = ExecuteRequest(
            context=context,
            token=Token(access_token=token),
            parameters=parameters or {},
        )
        result = await service.handle_request(message)
        return result.model_dump(by_alias=True)

    async def describe_ports() -> List[Dict[str, Any]]:
        """Return the payload schema of every port for the current selection."""
        return service.ports()

    return {
        "list_services": list_services,
        "configure": configure,
        "call": call,
        "describe_ports": describe_ports,
    }


def _attach_auth(app, settings: Settings) -> None:  # type: ignore[no-untyped-def]
    verifier: Optional[JwksVerifier] = None
    if settings.adapter_jwks_url:
        verifier = JwksVerifier(
            jwks_url=settings.adapter_jwks_url,
            issuer=settings.adapter_jwt_issuer,
            audience=settings.adapter_jwt_audience,
        )
    if not settings.adapter_auth_token and not verifier:
        logger.warning("No inbound auth configured; accepting anonymous requests")
    app.add_middleware(
        BearerAuthMiddleware,
        service_token=settings.adapter_auth_token,
        verifier=verifier,
    )


def _attach_healthcheck(app) -> None:  # type: ignore[no-untyped-def]
    async def healthcheck(_request):  # type: ignore[no-untyped-def]
        return JSONResponse({"status": "ok"})

    app.add_route("/health", healthcheck, methods=["GET"])


def _instructions() -> str:
    return (
        "Discovery Adapter. Pick a service and method from the API discovery "
        "directory with `configure`, inspect the generated schemas, then run "
        "the method with `call`."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    options = HTTP_TRANSPORTS.get(settings.adapter_transport.lower())
    if options is None:
        return None
    return mcp.http_app(**options)


def _attach_cors(app) -> None:  # type: ignore[no-untyped-def]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
