"""Unit tests for cronq.core.utils.db error classification helpers."""

from __future__ import annotations

import sqlite3

import pytest

from psycopg import InterfaceError, OperationalError
from sqlalchemy.exc import DBAPIError, OperationalError as SAOperationalError

from cronq.core.errors import ErrorCode, StoreUnavailableError, store_unavailable
from cronq.core.utils.db import is_dbapi_disconnect, is_retryable_connection_error


def _make_dbapi_error(
    *,
    connection_invalidated: bool = False,
    is_disconnect: bool = False,
) -> DBAPIError:
    exc = DBAPIError(
        statement='SELECT 1',
        params=None,
        orig=Exception('test'),
        connection_invalidated=connection_invalidated,
    )
    if is_disconnect:
        exc.is_disconnect = is_disconnect  # type: ignore[reportAttributeAccessIssue]
    return exc


@pytest.mark.unit
class TestIsDBAPIDisconnect:
    """Tests for is_dbapi_disconnect."""

    def test_connection_invalidated_true(self) -> None:
        exc = _make_dbapi_error(connection_invalidated=True)
        assert is_dbapi_disconnect(exc) is True

    def test_is_disconnect_true(self) -> None:
        exc = _make_dbapi_error(is_disconnect=True)
        assert is_dbapi_disconnect(exc) is True

    def test_neither_flag_set(self) -> None:
        exc = _make_dbapi_error()
        assert is_dbapi_disconnect(exc) is False


@pytest.mark.unit
class TestIsRetryableConnectionError:
    """Tests for is_retryable_connection_error."""

    def test_psycopg_operational_error(self) -> None:
        assert is_retryable_connection_error(OperationalError('connection refused')) is True

    def test_psycopg_interface_error(self) -> None:
        assert is_retryable_connection_error(InterfaceError('broken pipe')) is True

    def test_sqlalchemy_operational_error(self) -> None:
        exc = SAOperationalError('lost connection', {}, Exception('orig'))
        assert is_retryable_connection_error(exc) is True

    def test_sqlite_locked_database(self) -> None:
        exc = sqlite3.OperationalError('database is locked')
        assert is_retryable_connection_error(exc) is True

    def test_connection_refused_is_os_error(self) -> None:
        assert is_retryable_connection_error(ConnectionRefusedError()) is True

    def test_dbapi_error_with_disconnect(self) -> None:
        exc = _make_dbapi_error(connection_invalidated=True)
        assert is_retryable_connection_error(exc) is True

    def test_dbapi_error_without_disconnect(self) -> None:
        exc = _make_dbapi_error()
        assert is_retryable_connection_error(exc) is False

    def test_unrelated_exception_not_retryable(self) -> None:
        assert is_retryable_connection_error(ValueError('bad value')) is False

    def test_base_exception_not_retryable(self) -> None:
        assert is_retryable_connection_error(KeyboardInterrupt()) is False


@pytest.mark.unit
class TestStoreUnavailable:
    """store_unavailable wraps driver errors with context."""

    def test_wraps_operation_and_cause(self) -> None:
        err = store_unavailable('claim', OperationalError('connection refused'))
        assert isinstance(err, StoreUnavailableError)
        assert err.code == ErrorCode.STORE_UNAVAILABLE
        assert 'claim' in err.message
        assert err.notes == ['OperationalError: connection refused']
        assert err.retryable is True

    def test_non_transient_cause_not_retryable(self) -> None:
        err = store_unavailable('resolve', _make_dbapi_error())
        assert err.retryable is False
