"""Integration test fixtures: a real task store on SQLite or PostgreSQL.

Each test gets a fresh SQLite file under tmp_path. Set CRONQ_TEST_DATABASE_URL
(e.g. in .env.test) to run the same tests against PostgreSQL instead; the
tables are then truncated between tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import delete

from cronq.core.engine.runner import Engine
from cronq.core.handlers import HandlerContext, build_default_registry
from cronq.core.models.app import EngineConfig
from cronq.core.models.store import StoreConfig
from cronq.core.models.task_pg import Base
from cronq.core.registry.handlers import HandlerRegistry
from cronq.core.store.sqlalchemy_store import SqlTaskStore
from tests.helpers.fakes import FrozenClock, RecordingNotifier

TEST_DATABASE_URL_ENV = 'CRONQ_TEST_DATABASE_URL'


@pytest.fixture
def db_url(tmp_path: Path) -> str:
    """Database connection URL."""
    return os.environ.get(TEST_DATABASE_URL_ENV) or f'sqlite+aiosqlite:///{tmp_path}/cronq.db'


@pytest.fixture
def store_config(db_url: str) -> StoreConfig:
    return StoreConfig(database_url=db_url)


@pytest.fixture
def engine_config(store_config: StoreConfig) -> EngineConfig:
    return EngineConfig(store=store_config)


@pytest_asyncio.fixture
async def store(store_config: StoreConfig) -> AsyncGenerator[SqlTaskStore, None]:
    """SqlTaskStore with schema initialized and all tables empty."""
    task_store = SqlTaskStore(store_config)
    await task_store.ensure_schema()
    async with task_store.session_factory() as session:
        for table in reversed(Base.metadata.sorted_tables):
            await session.execute(delete(table))
        await session.commit()
    yield task_store
    await task_store.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def ctx(store: SqlTaskStore, notifier: RecordingNotifier, clock: FrozenClock) -> HandlerContext:
    return HandlerContext(
        store=store,
        session_factory=store.session_factory,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def registry(ctx: HandlerContext) -> HandlerRegistry:
    return build_default_registry(ctx)


@pytest.fixture
def engine(
    store: SqlTaskStore,
    registry: HandlerRegistry,
    engine_config: EngineConfig,
    clock: FrozenClock,
) -> Engine:
    return Engine(store, registry, engine_config, clock=clock)

