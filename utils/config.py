# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

DEFAULT_PORT = 8080
DEFAULT_ALLOWED_ORIGIN = "https://ai-agent-demo-9fe52.web.app"
DEFAULT_ACCOUNTS_COLLECTION = "businesses"
DEFAULT_JWKS_CACHE_TTL = 3600
MIN_JWKS_CACHE_TTL = 60

IDENTITY_PROVIDERS = ("firebase", "auth0")
ACCOUNT_STORES = ("firestore", "sql")

REQUIRED_VARIABLES = (
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "STRIPE_PRICE_ID",
    "SUCCESS_URL",
    "CANCEL_URL",
)


class ConfigurationError(RuntimeError):
    """Raised when the process cannot start with the configuration it was given."""


@dataclass(frozen=True)
class Settings:
    stripe_secret_key: str
    stripe_webhook_secret: str
    stripe_price_id: str
    success_url: str
    cancel_url: str
    identity_provider: str = "firebase"
    account_store: str = "firestore"
    firebase_service_account: Optional[Dict[str, Any]] = None
    auth0_domain: Optional[str] = None
    auth0_audience: Optional[str] = None
    auth0_issuer: Optional[str] = None
    jwks_cache_ttl: int = DEFAULT_JWKS_CACHE_TTL
    database_url: Optional[str] = None
    accounts_collection: str = DEFAULT_ACCOUNTS_COLLECTION
    allowed_origin: str = DEFAULT_ALLOWED_ORIGIN
    port: int = DEFAULT_PORT
    log_level: str = "INFO"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_port(raw: Optional[str]) -> int:
    if not raw:
        return DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"PORT must be an integer, got {raw!r}") from exc
    if not 0 < port < 65536:
        raise ConfigurationError(f"PORT out of range: {port}")
    return port


def _parse_jwks_cache_ttl(raw: Optional[str]) -> int:
    if not raw:
        return DEFAULT_JWKS_CACHE_TTL
    try:
        parsed = int(raw)
    except ValueError:
        return DEFAULT_JWKS_CACHE_TTL
    return max(parsed, MIN_JWKS_CACHE_TTL)


def parse_service_account(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode the service-account JSON blob. Returns None when it is not set."""
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"FIREBASE_SERVICE_ACCOUNT_KEY is not valid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT_KEY must be a JSON object.")
    return parsed


def _choice(env: Mapping[str, str], name: str, options: tuple, default: str) -> str:
    value = (_clean(env.get(name)) or default).lower()
    if value not in options:
        raise ConfigurationError(f"{name} must be one of {', '.join(options)}; got {value!r}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from the environment, loading a local .env first when reading os.environ."""
    if env is None:
        load_dotenv()
        env = os.environ

    missing: List[str] = [name for name in REQUIRED_VARIABLES if not _clean(env.get(name))]

    identity_provider = _choice(env, "IDENTITY_PROVIDER", IDENTITY_PROVIDERS, "firebase")
    account_store = _choice(env, "ACCOUNT_STORE", ACCOUNT_STORES, "firestore")

    service_account = parse_service_account(_clean(env.get("FIREBASE_SERVICE_ACCOUNT_KEY")))
    if service_account is None and (identity_provider == "firebase" or account_store == "firestore"):
        missing.append("FIREBASE_SERVICE_ACCOUNT_KEY")

    auth0_domain = _clean(env.get("AUTH0_DOMAIN"))
    auth0_audience = _clean(env.get("AUTH0_AUDIENCE"))
    auth0_issuer = _clean(env.get("AUTH0_ISSUER")) or (f"https://{auth0_domain}/" if auth0_domain else None)
    if identity_provider == "auth0":
        if not auth0_domain:
            missing.append("AUTH0_DOMAIN")
        if not auth0_audience:
            missing.append("AUTH0_AUDIENCE")

    if missing:
        raise ConfigurationError(f"Missing required configuration values: {', '.join(missing)}")

    return Settings(
        stripe_secret_key=_clean(env.get("STRIPE_SECRET_KEY")),
        stripe_webhook_secret=_clean(env.get("STRIPE_WEBHOOK_SECRET")),
        stripe_price_id=_clean(env.get("STRIPE_PRICE_ID")),
        success_url=_clean(env.get("SUCCESS_URL")),
        cancel_url=_clean(env.get("CANCEL_URL")),
        identity_provider=identity_provider,
        account_store=account_store,
        firebase_service_account=service_account,
        auth0_domain=auth0_domain,
        auth0_audience=auth0_audience,
        auth0_issuer=auth0_issuer,
        jwks_cache_ttl=_parse_jwks_cache_ttl(_clean(env.get("AUTH0_JWKS_CACHE_TTL"))),
        database_url=_clean(env.get("DATABASE_URL")),
        accounts_collection=_clean(env.get("ACCOUNTS_COLLECTION")) or DEFAULT_ACCOUNTS_COLLECTION,
        allowed_origin=_clean(env.get("CORS_ALLOWED_ORIGIN")) or DEFAULT_ALLOWED_ORIGIN,
        port=_parse_port(_clean(env.get("PORT"))),
        log_level=(_clean(env.get("LOG_LEVEL")) or "INFO").upper(),
    )
