"""키-값 저장소 테스트 — MemoryStore + SqlKeyValueStore(in-memory SQLite)"""

import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.errors import TransientStoreError
from src.db.models import Base, KeyValueModel
from src.db.store import (
    LISTINGS_KEY,
    MemoryStore,
    SqlKeyValueStore,
    earnings_key,
    inventory_key,
)


@pytest.fixture()
def engine():
    """Create an in-memory SQLite engine."""
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    return eng


@pytest.fixture()
def sql_store(engine) -> SqlKeyValueStore:
    return SqlKeyValueStore(sessionmaker(bind=engine, autocommit=False, autoflush=False))


class TestKeys:
    def test_key_layout(self):
        assert inventory_key(7) == "inventory:7"
        assert earnings_key(7) == "earnings:7"
        assert LISTINGS_KEY == "market:listings"


class TestMemoryStore:
    def test_missing_key(self):
        assert asyncio.run(MemoryStore().get("nope")) is None

    def test_returns_copy(self):
        store = MemoryStore()
        value = {"currency": 1, "items": []}

        async def scenario():
            await store.set("k", value)
            value["currency"] = 999
            return await store.get("k")

        assert asyncio.run(scenario()) == {"currency": 1, "items": []}

    def test_unserializable_value(self):
        with pytest.raises(TransientStoreError):
            asyncio.run(MemoryStore().set("k", object()))


class TestSqlKeyValueStore:
    def test_set_get(self, sql_store):
        snapshot = {
            "currency": 50,
            "items": [{"name": "Ruby", "item_id": "gem001", "stack_count": 2}],
        }

        async def scenario():
            await sql_store.set(inventory_key(1), snapshot)
            return await sql_store.get(inventory_key(1))

        assert asyncio.run(scenario()) == snapshot

    def test_overwrite(self, sql_store, engine):
        async def scenario():
            await sql_store.set(earnings_key(1), 10)
            await sql_store.set(earnings_key(1), 0)
            return await sql_store.get(earnings_key(1))

        assert asyncio.run(scenario()) == 0
        with sessionmaker(bind=engine)() as session:
            assert session.query(KeyValueModel).count() == 1

    def test_missing_key(self, sql_store):
        assert asyncio.run(sql_store.get("nope")) is None

    def test_ping(self, sql_store):
        assert sql_store.ping() is True

    def test_missing_table_is_transient(self):
        eng = create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        store = SqlKeyValueStore(sessionmaker(bind=eng))
        with pytest.raises(TransientStoreError):
            asyncio.run(store.get("k"))
        with pytest.raises(TransientStoreError):
            asyncio.run(store.set("k", 1))
        assert store.ping() is False
