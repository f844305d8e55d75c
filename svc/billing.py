# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from typing import Any, Optional

from database.store import AccountStore
from utils.logger import get_logger
from utils.payments import CHECKOUT_COMPLETED_EVENT, caller_id_from_session, event_session, stripe_get

logger = get_logger()

ACTIVATION_FIELDS = {"isActive": True}


def activation_target(event: Any) -> Optional[str]:
    """Return the caller id a verified event asks to activate, or None when it asks for nothing.

    Only completed checkout sessions activate an account. A completed session
    without a caller id in its metadata is logged and ignored.
    """
    event_type = stripe_get(event, "type")
    if event_type != CHECKOUT_COMPLETED_EVENT:
        logger.info("Ignoring Stripe event %s of type %s", stripe_get(event, "id"), event_type)
        return None

    session_obj = event_session(event)
    caller_id = caller_id_from_session(session_obj)
    if caller_id is None:
        logger.error(
            "Checkout session %s completed without a caller id in metadata; nothing to activate.",
            stripe_get(session_obj, "id"),
        )
        return None
    return caller_id


def activate_account(store: AccountStore, account_id: str) -> None:
    """Merge isActive=true into the caller's account record. Outcome only reaches the logs."""
    try:
        store.merge(account_id, ACTIVATION_FIELDS)
    except Exception:
        logger.exception("Failed to activate account %s", account_id)
    else:
        logger.info("Activated account %s", account_id)
