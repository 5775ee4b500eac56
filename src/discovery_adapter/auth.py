"""Inbound authentication for the HTTP transports."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
import jwt
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response


logger = logging.getLogger(__name__)


@dataclass
class AuthContext:
    type: str
    subject: Optional[str] = None
    claims: Optional[Dict[str, Any]] = None


class JwksVerifier:
    """Verifies RS256 JWTs against a JWKS endpoint, caching the key set."""

    def __init__(
        self,
        jwks_url: str,
        issuer: Optional[str],
        audience: Optional[str],
        cache_seconds: int = 3600,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.jwks_url = jwks_url
        self.issuer = issuer
        self.audience = audience
        self.cache_seconds = cache_seconds
        self.transport = transport
        self._jwks: Optional[Dict[str, Any]] = None
        self._jwks_fetched_at: float = 0.0

    async def verify(self, token: str) -> AuthContext:
        jwks = await self._get_jwks()
        header = jwt.get_unverified_header(token)
        key = self._find_key(jwks, header.get("kid"))
        if not key:
            raise jwt.InvalidKeyError("No matching JWK")

        claims = jwt.decode(
            token,
            key=jwt.algorithms.RSAAlgorithm.from_jwk(key),
            algorithms=["RS256"],
            audience=self.audience,
            issuer=self.issuer,
            options={"verify_aud": self.audience is not None},
        )
        return AuthContext(type="jwt", subject=str(claims.get("sub")), claims=claims)

    async def _get_jwks(self) -> Dict[str, Any]:
        if self._jwks and time.monotonic() - self._jwks_fetched_at < self.cache_seconds:
            return self._jwks

        async with httpx.AsyncClient(timeout=10, transport=self.transport) as client:
            response = await client.get(self.jwks_url)
            response.raise_for_status()

        try:
            jwks = response.json()
        except ValueError as exc:
            raise jwt.PyJWKClientError(f"failed to decode JWKS: {exc}") from exc
        if not isinstance(jwks, dict):
            raise jwt.PyJWKClientError("JWKS document is not an object")

        self._jwks = jwks
        self._jwks_fetched_at = time.monotonic()
        return jwks

    def _find_key(self, jwks: Dict[str, Any], kid: Optional[str]) -> Optional[str]:
        for key in jwks.get("keys", []):
            if not kid or key.get("kid") == kid:
                return json.dumps(key)
        return None


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Accepts the static service token or a verified JWT; open when neither is set."""

    def __init__(
        self,
        app: Any,
        service_token: Optional[str] = None,
        verifier: Optional[JwksVerifier] = None,
    ) -> None:
        super().__init__(app)
        self.service_token = service_token
        self.verifier = verifier

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        if request.method == "OPTIONS" or request.url.path.endswith("/health"):
            return await call_next(request)

        if not self.service_token and not self.verifier:
            request.state.auth = AuthContext(type="anonymous")
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        token = auth_header.replace("Bearer", "", 1).strip()

        if self.service_token and token == self.service_token:
            request.state.auth = AuthContext(type="service")
            return await call_next(request)

        if self.verifier and token:
            try:
                request.state.auth = await self.verifier.verify(token)
            except (jwt.PyJWTError, httpx.HTTPError) as exc:
                logger.warning("JWT validation failed: %s", exc)
            else:
                return await call_next(request)

        return JSONResponse({"error": "Unauthorized"}, status_code=401)
