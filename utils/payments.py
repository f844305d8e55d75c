# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Union

import stripe

CHECKOUT_COMPLETED_EVENT = "checkout.session.completed"
METADATA_CALLER_KEY = "uid"


class PaymentGatewayError(Exception):
    """Raised when the payment processor rejects or fails a request."""


class WebhookVerificationError(Exception):
    """Raised when a webhook payload fails authenticity checks."""


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


class PaymentGateway(Protocol):
    def create_subscription_checkout(self, *, caller_id: str, email: Optional[str]) -> CheckoutSession:
        ...

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Any:
        ...


class StripeGateway:
    """Stripe client bound to one API key, one subscription price and one webhook secret."""

    def __init__(
        self,
        *,
        api_key: str,
        webhook_secret: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
    ) -> None:
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._price_id = price_id
        self._success_url = success_url
        self._cancel_url = cancel_url

    def checkout_params(self, *, caller_id: str, email: Optional[str]) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [{"price": self._price_id, "quantity": 1}],
            "metadata": {METADATA_CALLER_KEY: caller_id},
            "success_url": self._success_url,
            "cancel_url": self._cancel_url,
        }
        # Only add customer_email if we have one
        if email:
            params["customer_email"] = email
        return params

    def create_subscription_checkout(self, *, caller_id: str, email: Optional[str]) -> CheckoutSession:
        params = self.checkout_params(caller_id=caller_id, email=email)
        try:
            session = stripe.checkout.Session.create(api_key=self._api_key, **params)
        except stripe.StripeError as exc:
            raise PaymentGatewayError(str(exc)) from exc

        url = stripe_get(session, "url")
        if not url:
            raise PaymentGatewayError(f"Checkout session {stripe_get(session, 'id')} has no URL.")
        return CheckoutSession(id=stripe_get(session, "id") or "", url=url)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> stripe.Event:
        if not signature:
            raise WebhookVerificationError("Missing stripe-signature header")
        try:
            return stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise WebhookVerificationError(str(exc)) from exc
        except (AttributeError, TypeError) as exc:
            # Signed, valid JSON, but not an event object.
            raise WebhookVerificationError("Malformed event payload") from exc


def stripe_to_dict(obj: Any) -> Dict[str, Any]:
    """Convert Stripe objects to plain dicts for safer access."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return dict(obj)

    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        result = to_dict()
        if isinstance(result, dict):
            return result
    return {}


def stripe_get(obj: Any, key: str) -> Any:
    """Fetch a key from Stripe objects, dicts, or plain attrs."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    try:
        return obj[key]
    except (KeyError, TypeError):
        pass
    return getattr(obj, key, None)


def event_session(event: Union[stripe.Event, Dict[str, Any]]) -> Any:
    return stripe_get(stripe_get(event, "data"), "object")


def caller_id_from_session(session_obj: Any) -> Optional[str]:
    """Caller id placed in checkout metadata when the session was created."""
    metadata = stripe_to_dict(stripe_get(session_obj, "metadata"))
    caller_id = metadata.get(METADATA_CALLER_KEY)
    if not caller_id or not isinstance(caller_id, str):
        return None
    return caller_id
