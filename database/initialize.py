# Copyright © 2025 Phaethon Order LLC. All rights reserved. Provided solely for evaluation. See LICENSE.

from __future__ import annotations

import argparse
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

# The models import registers the tables with SQLAlchemy's metadata.
from database import models  # noqa: F401
from database.session import Base, create_db_engine


logger = logging.getLogger(__name__)


def init_database(engine: Engine, *, drop_existing: bool = False) -> None:
    """Create the account store schema on the given engine."""
    try:
        if drop_existing:
            logger.warning("Dropping existing tables before re-creating schema.")
            Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as exc:
        logger.exception("Failed to initialise database schema: %s", exc)
        raise
    else:
        logger.info("Database schema initialised successfully.")


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Initialise the SQL account store schema for the Homebase billing service."
    )
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating the schema.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL; defaults to DATABASE_URL or a local SQLite file.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    args = _parse_args(argv)
    engine = create_db_engine(args.database_url or os.getenv("DATABASE_URL"))
    init_database(engine, drop_existing=args.drop_existing)


if __name__ == "__main__":
    main()
