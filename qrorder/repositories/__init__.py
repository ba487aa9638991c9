"""
Repository Factory

Returns in-memory or SQL repositories based on the configured storage backend.

Usage:
    from qrorder.repositories import build_repositories

    repositories = build_repositories(settings)
    await repositories.start()
    ...
    await repositories.close()
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from qrorder.core.config import Settings, StorageBackend
from qrorder.database import build_engine, build_session_maker, init_db
from qrorder.repositories.base import OrderRepository, TableRepository
from qrorder.repositories.memory import InMemoryOrderRepository, InMemoryTableRepository
from qrorder.repositories.sql import SqlOrderRepository, SqlTableRepository

logger = logging.getLogger(__name__)


@dataclass
class Repositories:
    orders: OrderRepository
    tables: TableRepository
    engine: Optional[AsyncEngine] = None

    async def start(self) -> None:
        if self.engine is not None:
            await init_db(self.engine)

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()


def build_repositories(settings: Settings) -> Repositories:
    """Build the repositories selected by settings.resolved_storage_backend."""
    backend = settings.resolved_storage_backend

    if backend == StorageBackend.MEMORY:
        logger.info("Storage: Using in-memory repositories")
        return Repositories(orders=InMemoryOrderRepository(), tables=InMemoryTableRepository())

    logger.info("Storage: Using SQL repositories")
    engine = build_engine(settings.database_url, echo=settings.db_echo)
    session_maker = build_session_maker(engine)
    return Repositories(
        orders=SqlOrderRepository(session_maker),
        tables=SqlTableRepository(session_maker),
        engine=engine,
    )


__all__ = [
    "build_repositories",
    "Repositories",
    "OrderRepository",
    "TableRepository",
    "InMemoryOrderRepository",
    "InMemoryTableRepository",
    "SqlOrderRepository",
    "SqlTableRepository",
]
