# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from typing import Any, Dict

import firebase_admin
from firebase_admin import credentials

from .config import ConfigurationError

FIREBASE_APP_NAME = "homebase"


def initialize_firebase(service_account: Dict[str, Any]) -> firebase_admin.App:
    """Return the service's Firebase app, initialising it from the service-account dict on first use."""
    try:
        return firebase_admin.get_app(FIREBASE_APP_NAME)
    except ValueError:
        pass

    try:
        credential = credentials.Certificate(service_account)
    except (ValueError, KeyError) as exc:
        raise ConfigurationError(f"Invalid Firebase service account: {exc}") from exc
    return firebase_admin.initialize_app(credential, name=FIREBASE_APP_NAME)
