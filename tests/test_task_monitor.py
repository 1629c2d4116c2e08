"""Tests for task polling and the keypress watcher."""
import io
import sys
import threading

import pytest

from pmv_cli.core.task_monitor import TaskMonitor, watch_for_keypress
from pmv_cli.exceptions import PollLimitError, StatusError
from pmv_cli.models.vault import TaskStage
from pmv_cli.utils.vault_uri import SessionURI


def _task(task_id, stage, progress=0.0):
    return {
        "id": task_id,
        "media_id": 3,
        "type": 0,
        "running": True,
        "stage": stage,
        "stage_progress": progress,
    }


class TestTaskMonitor:
    """Test suite for TaskMonitor."""

    async def test_task_completes_while_watched(
        self, api_client, session_uri, fake_vault
    ):
        fake_vault.task_sequences[7] = [
            _task(7, "ENCODE", 25.0),
            _task(7, "ENCRYPT", 80.0),
        ]
        seen = []

        found = await TaskMonitor(api_client).wait_for_task(session_uri, 7, seen.append)

        assert found is True
        assert [task.stage for task in seen] == [TaskStage.ENCODE, TaskStage.ENCRYPT]
        assert seen[0].status_string() == "Stage 4/7: Encode (25.00%)"
        assert fake_vault.requests.count(("GET", "/api/tasks/7")) == 3

    async def test_unknown_task(self, api_client, session_uri):
        assert await TaskMonitor(api_client).wait_for_task(session_uri, 8) is False

    async def test_errors_propagate(self, api_client, vault_server):
        uri = SessionURI(base_url=vault_server.make_url("/"), session="expired")

        with pytest.raises(StatusError):
            await TaskMonitor(api_client).wait_for_task(uri, 7)

    async def test_poll_limit(self, api_client, session_uri, fake_vault):
        fake_vault.task_sequences[7] = [_task(7, "ENCODE")] * 5

        with pytest.raises(PollLimitError):
            await TaskMonitor(api_client, max_polls=2).wait_for_task(session_uri, 7)


class TestWatchForKeypress:
    """Test suite for watch_for_keypress."""

    def test_callback_on_input(self, monkeypatch):
        monkeypatch.setattr(sys, "stdin", io.StringIO("\n"))
        pressed = threading.Event()

        thread = watch_for_keypress(pressed.set)
        thread.join(timeout=5)

        assert thread.daemon
        assert pressed.is_set()

    def test_no_callback_on_end_of_input(self, monkeypatch):
        monkeypatch.setattr(sys, "stdin", io.StringIO(""))
        pressed = threading.Event()

        thread = watch_for_keypress(pressed.set)
        thread.join(timeout=5)

        assert not pressed.is_set()
