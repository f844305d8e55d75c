# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

import firebase_admin
import httpx
from firebase_admin import auth as firebase_auth
from firebase_admin import exceptions as firebase_exceptions
from jose import JWTError, jwt
from jose.backends.rsa_backend import RSAKey

from .config import MIN_JWKS_CACHE_TTL

ALGORITHMS = ["RS256"]
BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class CallerIdentity:
    id: str
    email: Optional[str]


class InvalidCredentialError(Exception):
    """Raised when a bearer credential cannot be verified."""


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> CallerIdentity:
        ...


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the credential following ``Bearer `` in an Authorization header, if any."""
    if not authorization:
        return None
    _, separator, token = authorization.partition(BEARER_PREFIX)
    if not separator:
        return None
    token = token.strip()
    return token or None


class FirebaseIdentityVerifier:
    """Verifies Firebase ID tokens issued to the web client."""

    def __init__(self, app: firebase_admin.App, *, check_revoked: bool = False) -> None:
        self._app = app
        self._check_revoked = check_revoked

    def verify(self, token: str) -> CallerIdentity:
        try:
            decoded = firebase_auth.verify_id_token(token, app=self._app, check_revoked=self._check_revoked)
        except (ValueError, firebase_exceptions.FirebaseError) as exc:
            raise InvalidCredentialError(str(exc)) from exc

        uid = decoded.get("uid")
        if not uid:
            raise InvalidCredentialError("Token payload is missing uid.")
        return CallerIdentity(id=uid, email=decoded.get("email"))


class Auth0IdentityVerifier:
    """Verifies RS256 access tokens against an Auth0 tenant's published JWKS."""

    def __init__(
        self,
        domain: str,
        audience: str,
        issuer: Optional[str] = None,
        *,
        cache_ttl: int = 3600,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._domain = domain
        self._audience = audience
        self._issuer = issuer or f"https://{domain}/"
        self._cache_ttl = max(cache_ttl, MIN_JWKS_CACHE_TTL)
        self._http = http_client
        self._jwks: Optional[Dict[str, Any]] = None
        self._jwks_expires_at = 0.0
        self._lock = threading.Lock()

    @property
    def jwks_url(self) -> str:
        return f"https://{self._domain}/.well-known/jwks.json"

    def _fetch_jwks(self) -> Dict[str, Any]:
        try:
            if self._http is not None:
                response = self._http.get(self.jwks_url, timeout=10.0)
            else:
                response = httpx.get(self.jwks_url, timeout=10.0)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise InvalidCredentialError(f"Unable to fetch Auth0 public keys: {exc}") from exc
        return response.json()

    def _get_jwks(self, force_refresh: bool = False) -> Dict[str, Any]:
        now = time.monotonic()
        if force_refresh or self._jwks is None or now >= self._jwks_expires_at:
            with self._lock:
                now = time.monotonic()
                if force_refresh or self._jwks is None or now >= self._jwks_expires_at:
                    self._jwks = self._fetch_jwks()
                    self._jwks_expires_at = now + self._cache_ttl
        return self._jwks

    @staticmethod
    def _find_jwk(jwks: Dict[str, Any], kid: Optional[str]) -> Optional[Dict[str, Any]]:
        return next((key for key in jwks.get("keys", []) if key.get("kid") == kid), None)

    def _decode(self, token: str) -> Dict[str, Any]:
        try:
            unverified_header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise InvalidCredentialError(f"Invalid token header: {exc}") from exc

        kid = unverified_header.get("kid")
        jwk_key = self._find_jwk(self._get_jwks(), kid)
        if jwk_key is None:
            # Keys may have rotated since the last fetch.
            jwk_key = self._find_jwk(self._get_jwks(force_refresh=True), kid)
        if jwk_key is None:
            raise InvalidCredentialError(f"No signing key matches kid {kid!r}.")
        public_key = RSAKey(jwk_key, ALGORITHMS[0])

        try:
            return jwt.decode(
                token,
                public_key,
                algorithms=ALGORITHMS,
                audience=self._audience,
                issuer=self._issuer,
            )
        except JWTError as exc:
            raise InvalidCredentialError(f"Invalid or expired token: {exc}") from exc

    def verify(self, token: str) -> CallerIdentity:
        payload = self._decode(token)
        sub = payload.get("sub")
        if not sub:
            raise InvalidCredentialError("Token payload is missing subject.")
        return CallerIdentity(id=sub, email=payload.get("email"))
