# cronq/core/app.py
from typing import Any, Optional
from cronq.core.engine.runner import Engine
from cronq.core.errors import CronqError, StoreUnavailableError
from cronq.core.handlers import HandlerContext, LoggingNotifier, Notifier, build_default_registry
from cronq.core.logging import get_logger
from cronq.core.models.app import EngineConfig
from cronq.core.models.tasks import RunSummary
from cronq.core.registry.handlers import HandlerRegistry
from cronq.core.store.sqlalchemy_store import SqlTaskStore
from cronq.core.utils.clock import Clock, utc_now


class Cronq:
    """
    Process-level wiring: config -> store -> handlers -> engine.

    The entry point (CLI, cron route, test) creates one Cronq, uses it, and
    closes it; nothing below this object holds global state.
    """

    def __init__(
        self,
        config: EngineConfig,
        *,
        store: Optional[SqlTaskStore] = None,
        notifier: Optional[Notifier] = None,
        clock: Clock = utc_now,
    ):
        self.config = config
        self.logger = get_logger('app')
        self.clock = clock
        self.notifier: Notifier = notifier or LoggingNotifier()
        self._store = store
        self._owns_store = store is None
        self._registry: Optional[HandlerRegistry] = None
        self._engine: Optional[Engine] = None

    async def __aenter__(self) -> 'Cronq':
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def get_store(self) -> SqlTaskStore:
        """Get the task store, creating it from config on first use."""
        if self._store is None:
            self._store = SqlTaskStore(self.config.store)
        return self._store

    @property
    def registry(self) -> HandlerRegistry:
        if self._registry is None:
            store = self.get_store()
            ctx = HandlerContext(
                store=store,
                session_factory=store.session_factory,
                notifier=self.notifier,
                clock=self.clock,
            )
            self._registry = build_default_registry(ctx)
        return self._registry

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = Engine(
                self.get_store(), self.registry, self.config, clock=self.clock
            )
        return self._engine

    async def run_batch(self, limit: Optional[int] = None) -> RunSummary:
        return await self.engine.run_batch(limit)

    async def check(self, *, live: bool = False) -> list[CronqError]:
        """
        Validate wiring without running tasks.

        Returns the errors found (empty when everything is fine). With
        live=True the store is also pinged.
        """
        errors: list[CronqError] = []
        try:
            self.registry.validate_complete()
        except CronqError as exc:
            errors.append(exc)

        if live:
            try:
                await self.get_store().ping()
            except StoreUnavailableError as exc:
                errors.append(exc)
        return errors

    async def close(self) -> None:
        if self._store is not None and self._owns_store:
            await self._store.close()
            self._store = None
