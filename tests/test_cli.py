"""Тесты командной строки."""

import json

import pytest
from typer.testing import CliRunner

from conftest import wire
from dart_taskmaster_sync.cli import app
from dart_taskmaster_sync.services.inbound import sign

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path, tasks_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"dart:\n  api_key: k\n  webhook_secret: s3cret\ntaskmaster:\n  tasks_path: {tasks_path}\nsync:\n  log_level: warning\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("DART_API_KEY", "DART_API_URL", "DART_WEBHOOK_SECRET", "TASKS_PATH", "POLL_INTERVAL", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def _tasks(tasks_path):
    return json.loads(tasks_path.read_text(encoding="utf-8"))["tasks"]


class TestProcessCommand:
    """dart-taskmaster-sync process"""

    def test_applies_envelope(self, tmp_path, config_path, tasks_path):
        message = tmp_path / "message.json"
        message.write_text(json.dumps(wire(title="Demo")), encoding="utf-8")

        result = runner.invoke(app, ["process", str(message), "-c", str(config_path)])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["action"] == "created"
        assert _tasks(tasks_path)[0]["title"] == "Demo"

    def test_invalid_envelope_exit_code(self, tmp_path, config_path):
        message = tmp_path / "message.json"
        message.write_text(json.dumps({"source": "ServiceA"}), encoding="utf-8")

        result = runner.invoke(app, ["process", str(message), "-c", str(config_path)])

        assert result.exit_code == 2


class TestWebhookCommand:
    """dart-taskmaster-sync webhook"""

    BODY = json.dumps({"event": "task.created", "data": {"id": "abc", "title": "Hook", "status": "Doing"}}).encode()

    def test_signed_webhook(self, tmp_path, config_path, tasks_path):
        body = tmp_path / "body.json"
        body.write_bytes(self.BODY)

        result = runner.invoke(
            app, ["webhook", str(body), "-s", sign(self.BODY, "s3cret"), "-c", str(config_path)]
        )

        assert result.exit_code == 0, result.output
        assert _tasks(tasks_path)[0]["status"] == "in-progress"

    def test_bad_signature(self, tmp_path, config_path, tasks_path):
        body = tmp_path / "body.json"
        body.write_bytes(self.BODY)

        result = runner.invoke(app, ["webhook", str(body), "-s", "deadbeef", "-c", str(config_path)])

        assert result.exit_code == 3
        assert _tasks(tasks_path) == []


class TestPollOnceCommand:
    """dart-taskmaster-sync poll-once"""

    def test_without_changes(self, tmp_path, config_path, tasks_path):
        baseline = tmp_path / "baseline.json"
        baseline.write_text(tasks_path.read_text(encoding="utf-8"), encoding="utf-8")

        result = runner.invoke(app, ["poll-once", "-b", str(baseline), "-c", str(config_path)])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == []

    def test_without_baseline_nothing_is_sent(self, config_path, tasks_path):
        tasks_path.write_text(json.dumps({"tasks": [{"id": 1, "title": "local", "status": "pending"}]}), encoding="utf-8")

        result = runner.invoke(app, ["poll-once", "-c", str(config_path)])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == []

