# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

import uvicorn
from fastapi import APIRouter, BackgroundTasks, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from database.session import create_db_engine
from database.store import AccountStore, FirestoreAccountStore, SqlAccountStore
from svc.billing import activate_account, activation_target
from utils.auth import (
    Auth0IdentityVerifier,
    CallerIdentity,
    FirebaseIdentityVerifier,
    IdentityVerifier,
    InvalidCredentialError,
    extract_bearer_token,
)
from utils.config import Settings, load_settings
from utils.firebase import initialize_firebase
from utils.logger import setup_logger
from utils.payments import (
    PaymentGateway,
    PaymentGatewayError,
    StripeGateway,
    WebhookVerificationError,
    stripe_get,
)

logger = setup_logger()

HEALTH_MESSAGE = "Homebase AI backend is running."
ALLOWED_METHODS = "GET,POST,OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization"


class CheckoutSessionResponse(BaseModel):
    url: str


@dataclass(frozen=True)
class Services:
    settings: Settings
    identity_verifier: IdentityVerifier
    payment_gateway: PaymentGateway
    account_store: AccountStore


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_caller_identity(
    authorization: Optional[str] = Header(default=None),
    services: Services = Depends(get_services),
) -> CallerIdentity:
    token = extract_bearer_token(authorization)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")

    try:
        return services.identity_verifier.verify(token)
    except InvalidCredentialError as exc:
        logger.error("Auth error while verifying bearer token: %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc


router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def health_check() -> str:
    return HEALTH_MESSAGE


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
def create_checkout_session(
    caller: CallerIdentity = Depends(get_caller_identity),
    services: Services = Depends(get_services),
) -> CheckoutSessionResponse:
    if not caller.email:
        logger.warning("Caller %s has no email address; creating checkout without customer_email.", caller.id)

    try:
        session = services.payment_gateway.create_subscription_checkout(caller_id=caller.id, email=caller.email)
    except PaymentGatewayError as exc:
        logger.error("Stripe checkout session creation failed for caller %s: %s", caller.id, exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized") from exc

    logger.info("Created Stripe checkout session %s for caller %s", session.id, caller.id)
    return CheckoutSessionResponse(url=session.url)


@router.post("/webhook", response_class=PlainTextResponse)
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
) -> PlainTextResponse:
    # Signatures are computed over the exact bytes Stripe sent.
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    try:
        event = services.payment_gateway.construct_event(payload, signature)
    except WebhookVerificationError as exc:
        logger.warning("Webhook signature error: %s", exc)
        return PlainTextResponse(f"Webhook Error: {exc}", status_code=status.HTTP_400_BAD_REQUEST)

    logger.info("Received Stripe webhook event: %s", stripe_get(event, "type"))

    account_id = activation_target(event)
    if account_id is not None:
        background_tasks.add_task(activate_account, services.account_store, account_id)

    return PlainTextResponse("OK", status_code=status.HTTP_200_OK)


def _cors_headers(origin: Optional[str], allowed_origin: str) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Allow-Credentials": "true",
        "Vary": "Origin",
    }
    if origin and origin == allowed_origin:
        headers["Access-Control-Allow-Origin"] = origin
    return headers


def _build_services(
    settings: Settings,
    *,
    identity_verifier: Optional[IdentityVerifier] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    account_store: Optional[AccountStore] = None,
) -> Services:
    firebase_app = None
    needs_firebase = (identity_verifier is None and settings.identity_provider == "firebase") or (
        account_store is None and settings.account_store == "firestore"
    )
    if needs_firebase:
        firebase_app = initialize_firebase(settings.firebase_service_account)

    if identity_verifier is None:
        if settings.identity_provider == "auth0":
            identity_verifier = Auth0IdentityVerifier(
                settings.auth0_domain,
                settings.auth0_audience,
                settings.auth0_issuer,
                cache_ttl=settings.jwks_cache_ttl,
            )
        else:
            identity_verifier = FirebaseIdentityVerifier(firebase_app)

    if payment_gateway is None:
        payment_gateway = StripeGateway(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            price_id=settings.stripe_price_id,
            success_url=settings.success_url,
            cancel_url=settings.cancel_url,
        )

    if account_store is None:
        if settings.account_store == "sql":
            account_store = SqlAccountStore(create_db_engine(settings.database_url))
        else:
            account_store = FirestoreAccountStore.from_app(firebase_app, settings.accounts_collection)

    return Services(
        settings=settings,
        identity_verifier=identity_verifier,
        payment_gateway=payment_gateway,
        account_store=account_store,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    identity_verifier: Optional[IdentityVerifier] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    account_store: Optional[AccountStore] = None,
) -> FastAPI:
    """Build the application. Collaborators not passed in are constructed from settings."""
    if settings is None:
        settings = load_settings()
    setup_logger(settings.log_level)

    app = FastAPI(title="homebase-billing", version="0.1.0")
    app.state.services = _build_services(
        settings,
        identity_verifier=identity_verifier,
        payment_gateway=payment_gateway,
        account_store=account_store,
    )
    allowed_origin = settings.allowed_origin

    @app.middleware("http")
    async def cors_policy(request: Request, call_next):
        headers = _cors_headers(request.headers.get("origin"), allowed_origin)
        if request.method == "OPTIONS":
            return Response(status_code=status.HTTP_200_OK, headers=headers)
        response = await call_next(request)
        response.headers.update(headers)
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

    app.include_router(router)
    return app


if __name__ == "__main__":
    app_settings = load_settings()
    uvicorn.run(create_app(app_settings), host="0.0.0.0", port=app_settings.port)
