# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import BusinessAccount

# Document field name -> column name
COLUMN_FIELDS = {"isActive": "is_active"}


def get_account(db: Session, account_id: str) -> Optional[BusinessAccount]:
    return db.execute(select(BusinessAccount).where(BusinessAccount.account_id == account_id)).scalar_one_or_none()


def apply_fields(account: BusinessAccount, fields: Mapping[str, Any]) -> None:
    attributes: Dict[str, Any] = dict(account.attributes or {})
    for key, value in fields.items():
        column = COLUMN_FIELDS.get(key)
        if column is not None:
            setattr(account, column, value)
        else:
            attributes[key] = value
    # Reassign so the JSON column is flagged dirty.
    account.attributes = attributes


def merge_account(db: Session, account_id: str, fields: Mapping[str, Any]) -> BusinessAccount:
    account = get_account(db, account_id)
    if account is None:
        account = BusinessAccount(account_id=account_id, is_active=False, attributes={})
        db.add(account)
    apply_fields(account, fields)
    db.commit()
    db.refresh(account)
    return account
