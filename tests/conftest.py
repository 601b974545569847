import os

# Settings are read at import time; tests never talk to Postgres.
os.environ.setdefault("POSTGRES_USER", "zap")
os.environ.setdefault("POSTGRES_PASSWORD", "zap")
os.environ.setdefault("POSTGRES_SERVER", "localhost")
os.environ.setdefault("POSTGRES_PORT", "5432")
os.environ.setdefault("POSTGRES_DB", "zap_indexer_test")

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402

from zap_indexer.app.infrastructure.adapters.ledger.ledger_writer import SqlAlchemyLedgerWriter  # noqa: E402
from zap_indexer.app.infrastructure.adapters.rewards.claim_reconciler import (  # noqa: E402
    SqlAlchemyClaimReconciler,
)
from zap_indexer.app.infrastructure.db.models.all_models import metadata  # noqa: E402

EXCHANGE = "0x" + "ba" * 20
ROUTER = "0x" + "0a" * 20
DISTRIBUTOR = "0x" + "d1" * 20
POOL_A = "0x" + "aa" * 20
POOL_B = "0x" + "bb" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
DEV = "0x" + "de" * 20


def ts(seconds: int) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


@pytest.fixture()
def ADDRESSES():
    return {
        "exchange": EXCHANGE,
        "router": ROUTER,
        "distributor": DISTRIBUTOR,
        "pool_a": POOL_A,
        "pool_b": POOL_B,
        "alice": ALICE,
        "bob": BOB,
        "dev": DEV,
    }


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def ledger(engine) -> SqlAlchemyLedgerWriter:
    return SqlAlchemyLedgerWriter(engine, claim_reconciler=SqlAlchemyClaimReconciler())
