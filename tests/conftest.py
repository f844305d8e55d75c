import hashlib
import hmac
import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from database.store import AccountStoreError  # noqa: E402
from main import create_app  # noqa: E402
from utils.auth import CallerIdentity, InvalidCredentialError  # noqa: E402
from utils.config import Settings  # noqa: E402
from utils.payments import CheckoutSession, PaymentGatewayError, WebhookVerificationError  # noqa: E402

ALLOWED_ORIGIN = "https://ai-agent-demo-9fe52.web.app"
WEBHOOK_SECRET = "whsec_test_secret"
VALID_SIGNATURE = "t=1,v1=valid"


class FakeIdentityVerifier:
    def __init__(self, identities: Optional[Dict[str, CallerIdentity]] = None) -> None:
        self.identities = identities or {}
        self.tokens: List[str] = []

    def verify(self, token: str) -> CallerIdentity:
        self.tokens.append(token)
        try:
            return self.identities[token]
        except KeyError:
            raise InvalidCredentialError("Firebase ID token has expired.") from None


class FakePaymentGateway:
    def __init__(self) -> None:
        self.checkout_calls: List[Dict[str, Any]] = []
        self.fail_checkout = False

    def create_subscription_checkout(self, *, caller_id: str, email: Optional[str]) -> CheckoutSession:
        self.checkout_calls.append({"caller_id": caller_id, "email": email})
        if self.fail_checkout:
            raise PaymentGatewayError("card_declined")
        return CheckoutSession(id="cs_test_123", url=f"https://checkout.stripe.com/c/pay/cs_test_123#{caller_id}")

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if signature != VALID_SIGNATURE:
            raise WebhookVerificationError("No signatures found matching the expected signature for payload")
        return json.loads(payload)


class FakeAccountStore:
    def __init__(self) -> None:
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.writes: List[tuple] = []
        self.fail_writes = False

    def merge(self, account_id: str, fields: Mapping[str, Any]) -> None:
        self.writes.append((account_id, dict(fields)))
        if self.fail_writes:
            raise AccountStoreError(f"Firestore write failed for {account_id}: deadline exceeded")
        self.documents.setdefault(account_id, {}).update(fields)

    def get(self, account_id: str) -> Optional[Dict[str, Any]]:
        document = self.documents.get(account_id)
        return dict(document) if document is not None else None


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def checkout_completed_event(uid: Optional[str] = "user-123", event_type: str = "checkout.session.completed") -> Dict[str, Any]:
    metadata = {"uid": uid} if uid is not None else {}
    return {
        "id": "evt_test_1",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_123",
                "object": "checkout.session",
                "mode": "subscription",
                "metadata": metadata,
            }
        },
    }


@pytest.fixture
def settings() -> Settings:
    return Settings(
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        stripe_price_id="price_123",
        success_url="https://ai-agent-demo-9fe52.web.app/success",
        cancel_url="https://ai-agent-demo-9fe52.web.app/cancel",
        allowed_origin=ALLOWED_ORIGIN,
    )


@pytest.fixture
def identity_verifier() -> FakeIdentityVerifier:
    return FakeIdentityVerifier(
        {"good-token": CallerIdentity(id="user-123", email="owner@example.com")}
    )


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def account_store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture
def client(settings, identity_verifier, payment_gateway, account_store) -> TestClient:
    app = create_app(
        settings,
        identity_verifier=identity_verifier,
        payment_gateway=payment_gateway,
        account_store=account_store,
    )
    return TestClient(app)
