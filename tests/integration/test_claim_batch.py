"""Integration tests for claiming: order, eligibility and exclusivity."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from cronq.core.models.store import StoreConfig
from cronq.core.store.sqlalchemy_store import SqlTaskStore
from cronq.core.types.status import TaskStatus
from tests.helpers.fakes import T0
from tests.helpers.store import enqueue, fetch

pytestmark = [pytest.mark.integration]


@pytest.mark.asyncio(loop_scope='function')
class TestClaimOrder:
    """Priority first, then scheduled_for."""

    async def test_priority_then_scheduled_for(self, store: SqlTaskStore) -> None:
        late_urgent = await enqueue(
            store, 'analysis', 'late-urgent', priority=1, scheduled_for=T0 - timedelta(minutes=1)
        )
        early_normal = await enqueue(
            store, 'analysis', 'early-normal', priority=5, scheduled_for=T0 - timedelta(hours=2)
        )
        early_urgent = await enqueue(
            store, 'analysis', 'early-urgent', priority=1, scheduled_for=T0 - timedelta(hours=1)
        )

        claimed = await store.claim_batch(10, T0)

        assert [t.id for t in claimed] == [early_urgent.id, late_urgent.id, early_normal.id]

    async def test_limit_respected(self, store: SqlTaskStore) -> None:
        for i in range(5):
            await enqueue(store, 'notification', f'n{i}')

        claimed = await store.claim_batch(2, T0)

        assert len(claimed) == 2
        stats = await store.queue_stats()
        assert stats['processing'] == 2
        assert stats['queued'] == 3


@pytest.mark.asyncio(loop_scope='function')
class TestEligibility:
    async def test_future_tasks_not_claimed(self, store: SqlTaskStore) -> None:
        due = await enqueue(store, 'analysis', 'due')
        await enqueue(store, 'analysis', 'later', scheduled_for=T0 + timedelta(seconds=1))

        claimed = await store.claim_batch(10, T0)

        assert [t.id for t in claimed] == [due.id]

    async def test_scheduled_exactly_now_is_due(self, store: SqlTaskStore) -> None:
        task = await enqueue(store, 'analysis', scheduled_for=T0)
        assert [t.id for t in await store.claim_batch(1, T0)] == [task.id]

    async def test_cancelled_tasks_not_claimed(self, store: SqlTaskStore) -> None:
        task = await enqueue(store, 'analysis')
        assert await store.cancel(task.id, T0) is True

        assert await store.claim_batch(10, T0) == []
        assert (await fetch(store, task.id)).status == TaskStatus.CANCELLED

    async def test_empty_queue(self, store: SqlTaskStore) -> None:
        assert await store.claim_batch(10, T0) == []


@pytest.mark.asyncio(loop_scope='function')
class TestTimeZones:
    """Eligibility compares instants, whatever offset the caller used."""

    async def test_offset_schedule_stored_as_utc(self, store: SqlTaskStore) -> None:
        plus_two = timezone(timedelta(hours=2))
        due_at = (T0 - timedelta(minutes=5)).astimezone(plus_two)
        task = await enqueue(store, 'analysis', scheduled_for=due_at)

        stored = await fetch(store, task.id)
        assert stored.scheduled_for == T0 - timedelta(minutes=5)
        assert stored.scheduled_for.utcoffset() == timedelta(0)
        assert [t.id for t in await store.claim_batch(10, T0)] == [task.id]

    async def test_offset_schedule_not_claimed_early(self, store: SqlTaskStore) -> None:
        minus_five = timezone(timedelta(hours=-5))
        await enqueue(
            store, 'analysis', scheduled_for=(T0 + timedelta(minutes=5)).astimezone(minus_five)
        )
        assert await store.claim_batch(10, T0) == []

    async def test_claim_time_with_offset(self, store: SqlTaskStore) -> None:
        task = await enqueue(store, 'analysis', scheduled_for=T0)
        now_in_tokyo = T0.astimezone(timezone(timedelta(hours=9)))

        claimed = await store.claim_batch(10, now_in_tokyo)

        assert [t.id for t in claimed] == [task.id]
        assert claimed[0].started_at == T0


@pytest.mark.asyncio(loop_scope='function')
class TestClaimEffects:
    async def test_claim_marks_processing(self, store: SqlTaskStore) -> None:
        task = await enqueue(store, 'maintenance', parameters={'action': 'cleanup_old_tasks'})
        now = T0 + timedelta(seconds=30)

        [claimed] = await store.claim_batch(1, now)

        assert claimed.id == task.id
        assert claimed.status == TaskStatus.PROCESSING
        assert claimed.attempts == 1
        assert claimed.started_at == now
        assert claimed.parameters == {'action': 'cleanup_old_tasks'}
        assert await fetch(store, task.id) == claimed


@pytest.mark.asyncio(loop_scope='function')
class TestClaimExclusivity:
    """No task is ever claimed by two runs."""

    async def test_sequential_claims_disjoint(self, store: SqlTaskStore) -> None:
        for i in range(4):
            await enqueue(store, 'notification', f'n{i}')

        first = await store.claim_batch(3, T0)
        second = await store.claim_batch(3, T0)

        assert len(first) == 3
        assert len(second) == 1
        assert not {t.id for t in first} & {t.id for t in second}

    async def test_overlapping_runs(self, store: SqlTaskStore, store_config: StoreConfig) -> None:
        """Two stores (two processes) claim concurrently from the same table."""
        ids = {(await enqueue(store, 'notification', f'n{i}')).id for i in range(6)}

        async with SqlTaskStore(store_config) as other:
            a, b = await asyncio.gather(
                store.claim_batch(6, T0),
                other.claim_batch(6, T0),
            )

        claimed = [t.id for t in a] + [t.id for t in b]
        assert len(claimed) == len(set(claimed))
        assert set(claimed) == ids
        for task_id in ids:
            assert (await fetch(store, task_id)).attempts == 1

    async def test_candidate_taken_by_other_run_is_dropped(
        self, store: SqlTaskStore, store_config: StoreConfig
    ) -> None:
        """A stale candidate list cannot re-claim a task that is already PROCESSING."""
        taken = await enqueue(store, 'analysis', 'taken', priority=1)
        free = await enqueue(store, 'analysis', 'free', priority=2)
        await store.claim_batch(1, T0)

        class StaleCandidates(SqlTaskStore):
            async def _select_candidate_ids(
                self, session: Any, limit: int, now: datetime
            ) -> list[str]:
                return [taken.id, free.id]

        async with StaleCandidates(store_config) as racing:
            claimed = await racing.claim_batch(2, T0)

        assert [t.id for t in claimed] == [free.id]
        assert (await fetch(store, taken.id)).attempts == 1
