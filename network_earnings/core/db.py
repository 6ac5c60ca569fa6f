from typing import Annotated
import logging
from fastapi import Depends
from sqlalchemy import inspect
from sqlmodel import Session, create_engine, SQLModel
from .config import settings

# Import every model so its table is registered on SQLModel.metadata
from network_earnings.models import (
    AuthUser, AuthSessionRecord, Campaign, Lead, Earning, Payout,
    PayoutMethod, Dispute, Activity
)

logger = logging.getLogger(__name__)

# Tables some deployments do not have; endpoints backed by them degrade instead of failing
OPTIONAL_TABLES = (Dispute.__tablename__, Activity.__tablename__)

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG, connect_args=connect_args)


def create_all_tables(bind=None):
    """Create the application tables, skipping optional ones when disabled."""
    bind = bind or engine
    if settings.CREATE_OPTIONAL_TABLES:
        SQLModel.metadata.create_all(bind)
        return
    tables = [
        table for name, table in SQLModel.metadata.tables.items()
        if name not in OPTIONAL_TABLES
    ]
    SQLModel.metadata.create_all(bind, tables=tables)
    logger.info("Skipped optional tables: %s", ", ".join(OPTIONAL_TABLES))


def table_exists(session: Session, table_name: str) -> bool:
    return inspect(session.connection()).has_table(table_name)


def get_session():
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_session)]
