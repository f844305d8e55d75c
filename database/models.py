# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import JSON, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from .session import Base


class BusinessAccount(Base):
    __tablename__ = "business_accounts"

    account_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Document fields without a dedicated column.
    attributes: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def to_document(self) -> Dict[str, Any]:
        document = dict(self.attributes or {})
        document["isActive"] = self.is_active
        return document
