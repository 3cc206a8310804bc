"""cronq - a cron-triggered background task engine"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.app import Cronq
from .core.engine import Engine, Claimer, Dispatcher, RetryManager
from .core.handlers import (
    HandlerContext,
    LoggingNotifier,
    Notifier,
    TaskHandler,
    build_default_registry,
)
from .core.models.app import EngineConfig
from .core.models.store import StoreConfig
from .core.models.retry import RetryPolicy
from .core.models.tasks import (
    NewTask,
    Outcome,
    Resolution,
    RunSummary,
    TaskRecord,
    TaskRunResult,
)
from .core.registry.handlers import (
    DuplicateHandlerError,
    HandlerRegistry,
    NotRegistered,
)
from .core.store import SqlTaskStore, TaskStore
from .core.types.status import TaskStatus, TaskType, TASK_TERMINAL_STATES
from .core.errors import (
    CronqError,
    ConfigurationError,
    ErrorCode,
    MultipleValidationErrors,
    RegistryError,
    StoreUnavailableError,
    ValidationReport,
)

__all__ = [
    # Core
    'Cronq',
    'Engine',
    'EngineConfig',
    'StoreConfig',
    'RetryPolicy',
    # Engine parts
    'Claimer',
    'Dispatcher',
    'RetryManager',
    # Handlers
    'HandlerContext',
    'HandlerRegistry',
    'LoggingNotifier',
    'Notifier',
    'TaskHandler',
    'build_default_registry',
    'DuplicateHandlerError',
    'NotRegistered',
    # Tasks
    'NewTask',
    'Outcome',
    'Resolution',
    'RunSummary',
    'TaskRecord',
    'TaskRunResult',
    'TaskStatus',
    'TaskType',
    'TASK_TERMINAL_STATES',
    # Store
    'SqlTaskStore',
    'TaskStore',
    # Errors
    'CronqError',
    'ConfigurationError',
    'ErrorCode',
    'MultipleValidationErrors',
    'RegistryError',
    'StoreUnavailableError',
    'ValidationReport',
]
