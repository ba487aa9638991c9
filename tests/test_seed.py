from qrorder.domain import Table
from qrorder.seed import seed_demo_tables


async def test_seeds_numbered_tables(table_repo):
    assert await seed_demo_tables(table_repo, 3) == 3

    assert await table_repo.count() == 3
    assert (await table_repo.get_by_slug("table-3")).number == 3


async def test_seeding_skips_populated_store(table_repo):
    await table_repo.add(Table(id="t1", number=1, qr_slug="patio"))

    assert await seed_demo_tables(table_repo, 5) == 0
    assert await table_repo.count() == 1


async def test_zero_disables_seeding(table_repo):
    assert await seed_demo_tables(table_repo, 0) == 0
    assert await table_repo.count() == 0
