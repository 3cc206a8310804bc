"""Compiler-style error display for cronq configuration, registry and store errors."""

from __future__ import annotations

import inspect
import os
import sys
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Absolute path to the cronq package directory.
# Used by _find_caller_frame to skip library frames when locating the caller.
_CRONQ_PKG_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class ErrorCode(str, Enum):
    """Error codes for engine errors.

    Organized by category:
    - E200-E299: Config/store errors
    - E300-E399: Registry errors
    - E400-E499: Runtime store errors
    """

    # Config/store (E200-E299)
    STORE_INVALID_URL = 'E200'
    CONFIG_INVALID_LIMIT = 'E201'
    CONFIG_INVALID_BUDGET = 'E202'
    CONFIG_INVALID_RETRY_POLICY = 'E203'
    CONFIG_INVALID_STALE_THRESHOLD = 'E204'
    CLI_INVALID_ARGS = 'E205'

    # Registry (E300-E399)
    HANDLER_NOT_REGISTERED = 'E300'
    HANDLER_DUPLICATE = 'E301'
    HANDLER_INVALID = 'E302'

    # Runtime store (E400-E499)
    STORE_UNAVAILABLE = 'E400'


class _Colors:
    """ANSI escape codes for terminal colors."""

    RESET = '\033[0m'
    BOLD = '\033[1m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    DIM = '\033[2m'


class _NoColors:
    """No-op color codes for non-TTY output."""

    RESET = ''
    BOLD = ''
    RED = ''
    BLUE = ''
    CYAN = ''
    GREEN = ''
    DIM = ''


def _env_flag(name: str) -> bool:
    return os.environ.get(name, '').lower() in ('1', 'true', 'yes')


def _should_use_colors() -> bool:
    """Determine if colors should be used in output."""
    if _env_flag('CRONQ_FORCE_COLOR'):
        return True

    # https://no-color.org/
    if os.environ.get('NO_COLOR') is not None:
        return False

    return hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()


@dataclass
class SourceLocation:
    """Where user code called into cronq."""

    file: str
    line: int

    @classmethod
    def from_frame(cls, frame: Any) -> SourceLocation:
        return cls(file=frame.f_code.co_filename, line=frame.f_lineno)

    def format_short(self) -> str:
        return f'{self.file}:{self.line}'


@dataclass
class CronqError(Exception):
    """Base exception for cronq errors.

    Carries an error code, the caller's source location, notes and help text,
    and renders them as:

        error[E300]: no handler registered for task type 'analysis'
          --> app/main.py:42
           = note: registered types: maintenance
           = help:
                register a handler for every TaskType before starting the engine
    """

    message: str
    code: ErrorCode | None = None
    location: SourceLocation | None = None
    notes: list[str] = field(default_factory=lambda: [])
    help_text: str | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

        if self.location is None:
            caller = _find_caller_frame()
            if caller is not None:
                self.location = SourceLocation.from_frame(caller)

    def with_note(self, note: str) -> CronqError:
        """Add a note to the error (fluent API)."""
        self.notes.append(note)
        return self

    def with_help(self, help_text: str) -> CronqError:
        """Set help text (fluent API)."""
        self.help_text = help_text
        return self

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        if use_colors is None:
            use_colors = _should_use_colors()

        c = _Colors if use_colors else _NoColors
        lines: list[str] = ['']

        code_part = f'[{self.code.value}]' if self.code else ''
        lines.append(f'{c.BOLD}{c.RED}error{code_part}:{c.RESET} {self.message}')

        if self.location:
            lines.append(
                f'  {c.BLUE}-->{c.RESET} {c.CYAN}{self.location.format_short()}{c.RESET}'
            )

        for note in self.notes:
            note_lines = note.split('\n')
            lines.append(
                f'   {c.BLUE}={c.RESET} {c.BOLD}{c.BLUE}note{c.RESET}: {note_lines[0]}'
            )
            for note_line in note_lines[1:]:
                lines.append(f'          {note_line}')

        if self.help_text:
            lines.append('')
            lines.append(f'   {c.BLUE}={c.RESET} {c.BOLD}{c.GREEN}help{c.RESET}:')
            for help_line in self.help_text.split('\n'):
                lines.append(f'        {help_line}')

        return '\n'.join(lines)

    def __str__(self) -> str:
        """Plain text (no ANSI colors), safe for logs and stored error messages."""
        return self.format_rust_style(use_colors=False)


_original_excepthook = sys.excepthook


def _cronq_excepthook(
    exc_type: type[BaseException],
    exc_value: BaseException,
    exc_tb: Any,
) -> None:
    """Print CronqError in compiler style; defer everything else."""
    if _env_flag('CRONQ_PLAIN_ERRORS') or not isinstance(exc_value, CronqError):
        _original_excepthook(exc_type, exc_value, exc_tb)
        return

    print(exc_value.format_rust_style(), file=sys.stderr)
    if _env_flag('CRONQ_VERBOSE'):
        print(file=sys.stderr)
        traceback.print_exception(exc_type, exc_value, exc_tb, file=sys.stderr)


def install_error_handler() -> None:
    """Install the custom exception hook for compiler-style error display."""
    sys.excepthook = _cronq_excepthook


def uninstall_error_handler() -> None:
    """Restore the original exception hook."""
    sys.excepthook = _original_excepthook


# =============================================================================
# Specific Error Classes
# =============================================================================


@dataclass
class ConfigurationError(CronqError):
    """Raised when engine/store configuration is invalid."""

    pass


@dataclass
class RegistryError(CronqError):
    """Raised when a handler registry operation fails."""

    pass


@dataclass
class StoreUnavailableError(CronqError):
    """Raised when the task store cannot be reached.

    `retryable` is True for transient connection failures.
    """

    retryable: bool = True


def store_unavailable(operation: str, exc: BaseException) -> StoreUnavailableError:
    """Wrap a driver exception raised during a store operation."""
    from cronq.core.utils.db import is_retryable_connection_error

    return StoreUnavailableError(
        message=f'task store unavailable during {operation}',
        code=ErrorCode.STORE_UNAVAILABLE,
        notes=[f'{type(exc).__name__}: {exc}'],
        help_text='check the database URL and that the database is reachable',
        retryable=is_retryable_connection_error(exc),
    )


# =============================================================================
# Phase-Gated Error Collection
# =============================================================================


class ValidationReport:
    """Collects multiple CronqError instances within a validation phase."""

    def __init__(self, phase_name: str) -> None:
        self.phase_name: str = phase_name
        self.errors: list[CronqError] = []

    def add(self, error: CronqError) -> None:
        self.errors.append(error)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        """Format all collected errors, then append an aborting summary."""
        if use_colors is None:
            use_colors = _should_use_colors()

        c = _Colors if use_colors else _NoColors
        parts = [error.format_rust_style(use_colors=use_colors) for error in self.errors]
        parts.append(
            f'\n{c.BOLD}{c.RED}error{c.RESET}: aborting due to {len(self.errors)} previous errors'
        )
        return '\n'.join(parts)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


@dataclass
class MultipleValidationErrors(CronqError):
    """Wraps a ValidationReport containing 2+ errors."""

    report: ValidationReport = field(default_factory=lambda: ValidationReport(''))

    def __post_init__(self) -> None:
        if not self.message:
            self.message = f'aborting due to {len(self.report.errors)} previous errors'
        # Location is per-error in the report
        super(CronqError, self).__init__(self.message)

    def format_rust_style(self, use_colors: bool | None = None) -> str:
        return self.report.format_rust_style(use_colors=use_colors)

    def __str__(self) -> str:
        return self.format_rust_style(use_colors=False)


def raise_collected(report: ValidationReport) -> None:
    """Raise collected errors.

    - 0 errors: no-op
    - 1 error: raises the original error
    - 2+ errors: raises MultipleValidationErrors wrapping the report
    """
    count = len(report.errors)
    if count == 0:
        return
    if count == 1:
        raise report.errors[0]
    raise MultipleValidationErrors(
        message=f'aborting due to {count} previous errors',
        report=report,
    )


def _find_caller_frame() -> Any | None:
    """Find the first frame outside of cronq internals and installed packages."""
    frame = inspect.currentframe()

    while frame is not None:
        filename = frame.f_code.co_filename

        if filename.startswith('<'):
            frame = frame.f_back
            continue

        if not filename.startswith(_CRONQ_PKG_DIR) and '/site-packages/' not in filename:
            return frame

        frame = frame.f_back

    return None
