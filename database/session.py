# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from typing import Any, Dict, Optional, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

DEFAULT_DATABASE_URL = "sqlite:///./homebase_accounts.db"

Base = declarative_base()


def _resolve_database_url(raw_url: str | None) -> Tuple[URL, Dict[str, Any]]:
    """Normalize DATABASE_URL for SQLAlchemy.

    Plain postgres URLs are upgraded to the psycopg driver with sslmode=require
    unless the URL already names an sslmode.
    """
    if not raw_url:
        return make_url(DEFAULT_DATABASE_URL), {"check_same_thread": False}

    url = make_url(raw_url)

    if url.drivername.startswith("sqlite"):
        return url, {"check_same_thread": False}

    if url.drivername in {"postgres", "postgresql"}:
        url = url.set(drivername="postgresql+psycopg")

    query = dict(url.query)
    if "sslmode" not in query and url.drivername.startswith("postgresql"):
        query["sslmode"] = "require"
        url = url.set(query=query)

    return url, {}


def create_db_engine(raw_url: Optional[str] = None) -> Engine:
    url, connect_args = _resolve_database_url(raw_url)
    return create_engine(url, future=True, pool_pre_ping=True, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True)
