# cronq/core/handlers/__init__.py
"""
Handlers for the six task types.

Example usage:
    from cronq.core.handlers import HandlerContext, build_default_registry

    ctx = HandlerContext(store, store.session_factory, LoggingNotifier())
    registry = build_default_registry(ctx)
"""

from cronq.core.handlers.base import HandlerContext, Notifier, TaskHandler
from cronq.core.handlers.analysis import AnalysisHandler
from cronq.core.handlers.content import ContentGenerationHandler
from cronq.core.handlers.investigation import InvestigationHandler
from cronq.core.handlers.knowledge import KnowledgeCreationHandler
from cronq.core.handlers.maintenance import MaintenanceHandler
from cronq.core.handlers.notification import LoggingNotifier, NotificationHandler
from cronq.core.registry.handlers import HandlerRegistry

DEFAULT_HANDLERS: tuple[type[TaskHandler], ...] = (
    ContentGenerationHandler,
    KnowledgeCreationHandler,
    InvestigationHandler,
    NotificationHandler,
    MaintenanceHandler,
    AnalysisHandler,
)


def build_default_registry(ctx: HandlerContext) -> HandlerRegistry:
    """Registry with one handler per TaskType, checked for completeness."""
    registry = HandlerRegistry()
    for handler_cls in DEFAULT_HANDLERS:
        registry.register(handler_cls(ctx))
    registry.validate_complete()
    return registry


__all__ = [
    'AnalysisHandler',
    'ContentGenerationHandler',
    'DEFAULT_HANDLERS',
    'HandlerContext',
    'InvestigationHandler',
    'KnowledgeCreationHandler',
    'LoggingNotifier',
    'MaintenanceHandler',
    'NotificationHandler',
    'Notifier',
    'TaskHandler',
    'build_default_registry',
]
