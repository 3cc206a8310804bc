from cronq.core.store.protocols import TaskStore
from cronq.core.store.sqlalchemy_store import SqlTaskStore

__all__ = [
    'TaskStore',
    'SqlTaskStore',
]
