# cronq/core/registry/handlers.py
from __future__ import annotations
from typing import TYPE_CHECKING, Dict, Iterator, MutableMapping, Optional
from cronq.core.errors import ConfigurationError, RegistryError, ErrorCode
from cronq.core.types.status import TaskType

if TYPE_CHECKING:
    from cronq.core.handlers.base import TaskHandler


class NotRegistered(RegistryError, KeyError):
    """Raised when a task type has no handler in the registry.

    Inherits from KeyError so MutableMapping.__contains__ works correctly
    (it catches KeyError to implement the ``in`` operator).
    """

    def __init__(self, task_type: TaskType) -> None:
        RegistryError.__init__(
            self,
            message=f"no handler registered for task type '{task_type.value}'",
            code=ErrorCode.HANDLER_NOT_REGISTERED,
            notes=[f"requested task type: '{task_type.value}'"],
            help_text='register a handler for every TaskType before starting the engine',
        )
        self.task_type = task_type


class DuplicateHandlerError(RegistryError):
    """Raised when a task type is registered more than once."""

    def __init__(self, task_type: TaskType, context: str = '') -> None:
        super().__init__(
            message=f"duplicate handler for task type '{task_type.value}'",
            code=ErrorCode.HANDLER_DUPLICATE,
            notes=[context] if context else [],
            help_text='each task type maps to exactly one handler',
        )
        self.task_type = task_type


class HandlerRegistry(MutableMapping[TaskType, 'TaskHandler']):
    """Closed registry mapping TaskType -> handler object.

    Built once at startup. validate_complete() turns a missing handler into a
    startup error instead of a per-task runtime failure.
    """

    def __init__(self) -> None:
        self._data: Dict[TaskType, TaskHandler] = {}

    def __getitem__(self, key: TaskType) -> TaskHandler:
        try:
            return self._data[key]
        except KeyError:
            raise NotRegistered(key)

    def __setitem__(self, key: TaskType, value: TaskHandler) -> None:
        """Discourage direct assignment; enforce uniqueness like register()."""
        if key in self._data:
            raise DuplicateHandlerError(key, 'detected via direct assignment')
        self._data[key] = value

    def __delitem__(self, key: TaskType) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[TaskType]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    # --- convenience ---
    def register(
        self, handler: TaskHandler, *, task_type: Optional[TaskType] = None
    ) -> TaskHandler:
        """Insert `handler` under `task_type` (default: handler.task_type).

        Raises:
            RegistryError: If the handler has no task type or no handle() coroutine.
            DuplicateHandlerError: If the task type already has a handler.
        """
        key = task_type or getattr(handler, 'task_type', None)
        if not isinstance(key, TaskType):
            raise RegistryError(
                message='handler has no task type',
                code=ErrorCode.HANDLER_INVALID,
                notes=[f'handler: {type(handler).__name__}'],
                help_text='set a TaskType class attribute or pass task_type=...',
            )
        if not callable(getattr(handler, 'handle', None)):
            raise RegistryError(
                message=f"handler for '{key.value}' has no handle() method",
                code=ErrorCode.HANDLER_INVALID,
                notes=[f'handler: {type(handler).__name__}'],
                help_text='handlers implement: async def handle(self, parameters) -> Outcome',
            )
        if key in self._data:
            raise DuplicateHandlerError(
                key,
                f'already registered: {type(self._data[key]).__name__}',
            )
        self._data[key] = handler
        return handler

    def missing(self) -> list[TaskType]:
        return [t for t in TaskType if t not in self._data]

    def validate_complete(self) -> None:
        """Raise ConfigurationError unless every TaskType has a handler."""
        missing = self.missing()
        if not missing:
            return
        registered = ', '.join(t.value for t in self._data) or '(none)'
        raise ConfigurationError(
            message=(
                'no handler registered for task type'
                f"{'s' if len(missing) > 1 else ''} "
                + ', '.join(f"'{t.value}'" for t in missing)
            ),
            code=ErrorCode.HANDLER_NOT_REGISTERED,
            notes=[f'registered types: {registered}'],
            help_text='register a handler for every TaskType before starting the engine',
        )
