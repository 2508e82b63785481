"""Database infrastructure - engine, ORM models, and repositories."""

from trade_escrow.infrastructure.database.engine import (
    close_db,
    create_engine_from_url,
    create_tables,
    get_engine,
    get_session_factory,
    init_db,
    make_session_factory,
    shares_single_connection,
)
from trade_escrow.infrastructure.database.orm_models import (
    Base,
    Deal,
    DealEvent,
    UInt256,
)
from trade_escrow.infrastructure.database.repositories import (
    DealEventRepository,
    DealRepository,
)

__all__ = [
    "Base",
    "Deal",
    "DealEvent",
    "UInt256",
    "DealRepository",
    "DealEventRepository",
    "close_db",
    "create_engine_from_url",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "init_db",
    "make_session_factory",
    "shares_single_connection",
]
