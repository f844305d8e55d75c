# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol

import firebase_admin
from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .crud import get_account, merge_account
from .session import Base, create_session_factory


class AccountStoreError(Exception):
    """Raised when an account record cannot be read or written."""


class AccountStore(Protocol):
    def merge(self, account_id: str, fields: Mapping[str, Any]) -> None:
        ...

    def get(self, account_id: str) -> Optional[Dict[str, Any]]:
        ...


class FirestoreAccountStore:
    """One Firestore document per caller id; writes are merge sets."""

    def __init__(self, client: Any, collection: str = "businesses") -> None:
        self._client = client
        self._collection = collection

    @classmethod
    def from_app(cls, app: firebase_admin.App, collection: str = "businesses") -> "FirestoreAccountStore":
        return cls(firestore.client(app), collection)

    def _document(self, account_id: str):
        return self._client.collection(self._collection).document(account_id)

    def merge(self, account_id: str, fields: Mapping[str, Any]) -> None:
        try:
            self._document(account_id).set(dict(fields), merge=True)
        except google_exceptions.GoogleAPIError as exc:
            raise AccountStoreError(f"Firestore write failed for {account_id}: {exc}") from exc

    def get(self, account_id: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = self._document(account_id).get()
        except google_exceptions.GoogleAPIError as exc:
            raise AccountStoreError(f"Firestore read failed for {account_id}: {exc}") from exc
        if not snapshot.exists:
            return None
        return snapshot.to_dict()


class SqlAccountStore:
    """Account records in the ``business_accounts`` table."""

    def __init__(self, engine: Engine, *, create_schema: bool = True) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        if create_schema:
            Base.metadata.create_all(bind=engine)

    def merge(self, account_id: str, fields: Mapping[str, Any]) -> None:
        db = self._session_factory()
        try:
            try:
                merge_account(db, account_id, fields)
            except IntegrityError:
                # A concurrent first write created the row; apply on top of it.
                db.rollback()
                merge_account(db, account_id, fields)
        except SQLAlchemyError as exc:
            db.rollback()
            raise AccountStoreError(f"Database write failed for {account_id}: {exc}") from exc
        finally:
            db.close()

    def get(self, account_id: str) -> Optional[Dict[str, Any]]:
        db = self._session_factory()
        try:
            account = get_account(db, account_id)
            return account.to_document() if account is not None else None
        except SQLAlchemyError as exc:
            raise AccountStoreError(f"Database read failed for {account_id}: {exc}") from exc
        finally:
            db.close()
