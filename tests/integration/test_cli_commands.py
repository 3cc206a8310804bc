"""End-to-end CLI tests against a throwaway SQLite database.

`main` drives its own event loop, so these tests are synchronous.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from cronq.core.cli import DATABASE_URL_ENV, EXIT_ERROR, EXIT_OK, EXIT_STORE_UNAVAILABLE, main
from cronq.core.errors import store_unavailable
from cronq.core.store.sqlalchemy_store import SqlTaskStore

pytestmark = [pytest.mark.integration]


@pytest.fixture
def cli_url(tmp_path: Path) -> str:
    return f'sqlite+aiosqlite:///{tmp_path}/cli.db'


def run_cli(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, Any]:
    """Invoke the CLI; return the exit code and the last stdout line parsed as JSON."""
    capsys.readouterr()
    with pytest.raises(SystemExit) as exc_info:
        main(list(argv))
    out = capsys.readouterr().out.strip().splitlines()
    payload: Any = None
    if out:
        try:
            payload = json.loads(out[-1])
        except json.JSONDecodeError:
            payload = out[-1]
    return int(exc_info.value.code), payload


class TestProducerCommands:
    def test_init_db(self, capsys: pytest.CaptureFixture[str], cli_url: str) -> None:
        code, payload = run_cli(capsys, 'init-db', '--database-url', cli_url)
        assert code == EXIT_OK
        assert payload == {'initialized': True}

    def test_enqueue_then_list_and_stats(
        self, capsys: pytest.CaptureFixture[str], cli_url: str
    ) -> None:
        code, record = run_cli(
            capsys,
            'enqueue', 'maintenance', 'purge',
            '--params', '{"action": "cleanup_old_tasks"}',
            '--priority', '2',
            '--database-url', cli_url,
        )
        assert code == EXIT_OK
        assert record['status'] == 'queued'
        assert record['priority'] == 2
        assert record['parameters'] == {'action': 'cleanup_old_tasks'}

        code, listed = run_cli(capsys, 'list', '--database-url', cli_url)
        assert code == EXIT_OK
        assert [r['id'] for r in listed] == [record['id']]

        code, stats = run_cli(capsys, 'stats', '--database-url', cli_url)
        assert code == EXIT_OK
        assert stats['queued'] == 1
        assert set(stats) == {'queued', 'processing', 'completed', 'failed', 'cancelled'}

    def test_url_from_environment(
        self,
        capsys: pytest.CaptureFixture[str],
        monkeypatch: pytest.MonkeyPatch,
        cli_url: str,
    ) -> None:
        monkeypatch.setenv(DATABASE_URL_ENV, cli_url)
        code, stats = run_cli(capsys, 'stats')
        assert code == EXIT_OK
        assert stats['queued'] == 0

    def test_cancel(self, capsys: pytest.CaptureFixture[str], cli_url: str) -> None:
        _, record = run_cli(
            capsys, 'enqueue', 'analysis', 'weekly', '--database-url', cli_url
        )

        code, payload = run_cli(capsys, 'cancel', record['id'], '--database-url', cli_url)
        assert code == EXIT_OK
        assert payload == {'id': record['id'], 'cancelled': True}

        code, payload = run_cli(capsys, 'cancel', record['id'], '--database-url', cli_url)
        assert code == EXIT_ERROR
        assert payload['cancelled'] is False


class TestRunCommand:
    def test_run_processes_due_tasks(
        self, capsys: pytest.CaptureFixture[str], cli_url: str
    ) -> None:
        _, ok = run_cli(
            capsys,
            'enqueue', 'maintenance', 'purge',
            '--params', '{"action": "cleanup_old_tasks"}',
            '--database-url', cli_url,
        )
        _, bad = run_cli(
            capsys,
            'enqueue', 'maintenance', 'bogus',
            '--params', '{"action": "defragment"}',
            '--max-attempts', '1',
            '--database-url', cli_url,
        )
        _, later = run_cli(
            capsys,
            'enqueue', 'analysis', 'not yet',
            '--delay-seconds', '3600',
            '--database-url', cli_url,
        )

        code, summary = run_cli(
            capsys, 'run', '--loglevel', 'ERROR', '--database-url', cli_url
        )
        assert code == EXIT_OK
        assert summary['processed'] == 2
        assert summary['succeeded'] == 1
        assert summary['failed'] == 1
        assert {r['id']: r['success'] for r in summary['results']} == {
            ok['id']: True,
            bad['id']: False,
        }

        _, listed = run_cli(capsys, 'list', '--status', 'failed', '--database-url', cli_url)
        assert [r['id'] for r in listed] == [bad['id']]
        assert 'defragment' in listed[0]['error_message']

        _, queued = run_cli(capsys, 'list', '--status', 'queued', '--database-url', cli_url)
        assert [r['id'] for r in queued] == [later['id']]

    def test_run_on_empty_queue(self, capsys: pytest.CaptureFixture[str], cli_url: str) -> None:
        code, summary = run_cli(
            capsys, 'run', '--loglevel', 'ERROR', '--database-url', cli_url
        )
        assert code == EXIT_OK
        assert summary == {
            'processed': 0, 'succeeded': 0, 'failed': 0, 'results': [], 'reclaimed': 0,
        }

    def test_unreachable_store_exit_code(
        self, capsys: pytest.CaptureFixture[str], tmp_path: Path
    ) -> None:
        url = f'sqlite+aiosqlite:///{tmp_path}/no-such-dir/cli.db'
        code, _ = run_cli(capsys, 'run', '--loglevel', 'CRITICAL', '--database-url', url)
        assert code == EXIT_STORE_UNAVAILABLE

    def test_non_transient_store_error_exit_code(
        self,
        capsys: pytest.CaptureFixture[str],
        monkeypatch: pytest.MonkeyPatch,
        cli_url: str,
    ) -> None:
        async def broken_stats(self: SqlTaskStore) -> dict[str, int]:
            raise store_unavailable('stats', ValueError('column does not exist'))

        monkeypatch.setattr(SqlTaskStore, 'queue_stats', broken_stats)
        capsys.readouterr()
        with pytest.raises(SystemExit) as exc_info:
            main(['stats', '--database-url', cli_url])

        assert exc_info.value.code == EXIT_ERROR
        assert 'E400' in capsys.readouterr().err


class TestCheckCommand:
    def test_check_ok(self, capsys: pytest.CaptureFixture[str], cli_url: str) -> None:
        code, _ = run_cli(capsys, 'check', '--database-url', cli_url)
        assert code == EXIT_OK

    def test_check_live(self, capsys: pytest.CaptureFixture[str], cli_url: str) -> None:
        code, _ = run_cli(capsys, 'check', '--live', '--database-url', cli_url)
        assert code == EXIT_OK

    def test_check_live_unreachable(
        self, capsys: pytest.CaptureFixture[str], tmp_path: Path
    ) -> None:
        url = f'sqlite+aiosqlite:///{tmp_path}/no-such-dir/cli.db'
        capsys.readouterr()
        with pytest.raises(SystemExit) as exc_info:
            main(['check', '--live', '--loglevel', 'CRITICAL', '--database-url', url])
        assert exc_info.value.code == EXIT_ERROR
        assert 'E400' in capsys.readouterr().err
