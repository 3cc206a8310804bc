# cronq/core/engine/__init__.py
"""
Batch engine.

Main components:
- Engine: run_batch() entry point and run summary
- Claimer: claims due tasks
- Dispatcher: routes tasks to handlers
- RetryManager: decides completed / requeued / failed

Example usage:
    from cronq.core.engine import Engine

    engine = Engine(store, registry, config)
    summary = await engine.run_batch(10)
"""

from cronq.core.engine.claimer import Claimer
from cronq.core.engine.dispatcher import Dispatcher
from cronq.core.engine.retry import RetryManager
from cronq.core.engine.runner import (
    BUDGET_EXHAUSTED_MESSAGE,
    STALE_RECLAIMED_MESSAGE,
    Engine,
)

__all__ = [
    'BUDGET_EXHAUSTED_MESSAGE',
    'STALE_RECLAIMED_MESSAGE',
    'Claimer',
    'Dispatcher',
    'Engine',
    'RetryManager',
]
