"""Общие фикстуры тестов синхронизации."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from dart_taskmaster_sync.clients import TaskMasterStore
from dart_taskmaster_sync.services import ChangeDetector, SyncEngine

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeDartClient:
    """Dart API в памяти, записывает все вызовы."""

    def __init__(self) -> None:
        self.calls: List[Tuple[Any, ...]] = []
        self._counter = 0
        self.fail_with: Optional[Exception] = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def create(self, task_data: Dict[str, Any]) -> str:
        self._check()
        self._counter += 1
        remote_id = f"D{self._counter}"
        self.calls.append(("create", task_data))
        return remote_id

    def update(self, remote_id: str, partial: Dict[str, Any]) -> None:
        self._check()
        self.calls.append(("update", remote_id, partial))

    def complete(self, remote_id: str, done_status: str = "Done") -> None:
        self._check()
        self.calls.append(("complete", remote_id, done_status))

    def delete(self, remote_id: str) -> None:
        self._check()
        self.calls.append(("delete", remote_id))


def wire(
    update_type: str = "create",
    *,
    source: str = "ServiceA",
    task_id: str = "X1",
    timestamp: datetime = T0,
    **payload: Any,
) -> Dict[str, Any]:
    payload.setdefault("status", "To-do")
    return {
        "source": source,
        "task_id": task_id,
        "update_type": update_type,
        "timestamp": timestamp.isoformat(),
        "payload": payload,
    }


@pytest.fixture
def tasks_path(tmp_path: Path) -> Path:
    path = tmp_path / "tasks" / "tasks.json"
    path.parent.mkdir()
    path.write_text(json.dumps({"tasks": []}), encoding="utf-8")
    return path


@pytest.fixture
def store(tasks_path: Path) -> TaskMasterStore:
    return TaskMasterStore(tasks_path)


@pytest.fixture
def dart() -> FakeDartClient:
    return FakeDartClient()


@pytest.fixture
def detector() -> ChangeDetector:
    return ChangeDetector()


@pytest.fixture
def engine(store, dart, detector) -> SyncEngine:
    return SyncEngine(store, dart, detector=detector)
