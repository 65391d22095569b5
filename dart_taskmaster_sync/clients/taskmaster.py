"""Чтение и запись локального файла задач TaskMaster."""
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List

LOGGER = logging.getLogger(__name__)

HIGH_WATER_KEY = "lastTaskId"


class StoreIoError(RuntimeError):
    """Ошибка чтения или записи tasks.json."""

    def __init__(self, message: str, *, missing: bool = False) -> None:
        super().__init__(message)
        self.missing = missing


class TaskMasterStore:
    """Хранилище задач TaskMaster: документ целиком читается и записывается."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def read(self) -> Dict[str, Any]:
        """Читает снимок коллекции задач.

        Raises:
            StoreIoError: если файл отсутствует, недоступен или содержит некорректный JSON.
        """
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise StoreIoError(f"Файл задач {self._path} не найден", missing=True) from exc
        except OSError as exc:
            raise StoreIoError(f"Не удалось прочитать {self._path}: {exc}") from exc
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StoreIoError(f"Файл {self._path} содержит некорректный JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise StoreIoError(f"Файл {self._path} должен содержать JSON-объект")
        document.setdefault("tasks", [])
        return document

    def write(self, document: Dict[str, Any]) -> None:
        """Атомарно заменяет файл задач новым документом."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=".tasks-", suffix=".json", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, ensure_ascii=False)
                handle.write("\n")
            os.replace(tmp_name, self._path)
        except OSError as exc:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreIoError(f"Не удалось записать {self._path}: {exc}") from exc
        LOGGER.debug("Файл задач %s сохранён (%s задач)", self._path, len(document.get("tasks", [])))


def tasks_of(document: Dict[str, Any]) -> List[Dict[str, Any]]:
    return document.setdefault("tasks", [])


def allocate_task_id(document: Dict[str, Any]) -> int:
    """Выдаёт следующий числовой идентификатор, не повторяя удалённые.

    Максимальный выданный идентификатор запоминается в ``meta.lastTaskId``.
    """
    meta = document.setdefault("meta", {})
    known = [int(task["id"]) for task in tasks_of(document) if str(task.get("id", "")).isdigit()]
    high_water = max([int(meta.get(HIGH_WATER_KEY) or 0), *known], default=0)
    next_id = high_water + 1
    meta[HIGH_WATER_KEY] = next_id
    return next_id


__all__ = ["TaskMasterStore", "StoreIoError", "tasks_of", "allocate_task_id"]
