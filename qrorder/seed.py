"""
Demo Data

Creates numbered demo tables (``table-1`` ... ``table-N``) so the ordering
flow can be tried right after startup. Runs only when SEED_DEMO_TABLES > 0
and the table store is empty.
"""

import logging
import uuid

from qrorder.domain import Table
from qrorder.repositories.base import TableRepository

logger = logging.getLogger(__name__)


async def seed_demo_tables(tables: TableRepository, count: int) -> int:
    """
    Create ``count`` demo tables if none exist yet.

    Returns:
        Number of tables created
    """
    if count <= 0:
        return 0

    existing = await tables.count()
    if existing:
        logger.info(f"Skipping demo tables: {existing} table(s) already exist")
        return 0

    for number in range(1, count + 1):
        await tables.add(Table(id=uuid.uuid4().hex, number=number, qr_slug=f"table-{number}"))

    logger.info(f"Seeded {count} demo table(s)")
    return count
