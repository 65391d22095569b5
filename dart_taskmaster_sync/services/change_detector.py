"""Обнаружение изменений в локальной коллекции задач TaskMaster."""
from __future__ import annotations

import copy
import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from dart_taskmaster_sync.models import ChangeEvent, UpdateType
from dart_taskmaster_sync.services.status_mapper import LOCAL_DONE

LOGGER = logging.getLogger(__name__)

TaskRecord = Dict[str, Any]
Snapshot = Union[Mapping[str, Any], Sequence[TaskRecord]]


def _tasks(snapshot: Optional[Snapshot]) -> List[TaskRecord]:
    if snapshot is None:
        return []
    if isinstance(snapshot, Mapping):
        return list(snapshot.get("tasks") or [])
    return list(snapshot)


def _index(tasks: Iterable[TaskRecord]) -> "OrderedDict[str, TaskRecord]":
    return OrderedDict((str(task["id"]), task) for task in tasks)


class ChangeDetector:
    """Сравнивает последовательные снимки tasks.json и выдаёт события изменений.

    Экземпляр хранит последний известный снимок (базу сравнения), поэтому
    создаётся один раз на процесс и передаётся всем участникам явно.
    """

    def __init__(self, *, done_status: str = LOCAL_DONE) -> None:
        self._done_status = done_status
        self._baseline: Optional["OrderedDict[str, TaskRecord]"] = None

    @property
    def has_baseline(self) -> bool:
        return self._baseline is not None

    def diff(self, previous: Optional[Snapshot], current: Optional[Snapshot]) -> List[ChangeEvent]:
        """Возвращает изменения между двумя снимками.

        Порядок: создания и изменения в порядке текущего снимка, затем удаления
        в порядке предыдущего. Переход в финальный статус классифицируется как
        ``complete``, даже если одновременно изменились другие поля.
        """
        before = _index(_tasks(previous))
        after = _index(_tasks(current))
        events: List[ChangeEvent] = []

        for key, task in after.items():
            old_task = before.get(key)
            if old_task is None:
                events.append(ChangeEvent(UpdateType.CREATE, task))
            elif old_task != task:
                completed = old_task.get("status") != task.get("status") and task.get("status") == self._done_status
                change_type = UpdateType.COMPLETE if completed else UpdateType.UPDATE
                events.append(ChangeEvent(change_type, task, previous_task=old_task))

        for key, old_task in before.items():
            if key not in after:
                events.append(ChangeEvent(UpdateType.DELETE, old_task))
        return events

    def observe(self, snapshot: Snapshot) -> List[ChangeEvent]:
        """Сравнивает снимок с базой и делает его новой базой.

        Первый вызов только запоминает снимок и не порождает событий.
        """
        tasks = copy.deepcopy(_tasks(snapshot))
        if self._baseline is None:
            self._baseline = _index(tasks)
            LOGGER.debug("Начальный снимок задач загружен (%s задач)", len(tasks))
            return []
        events = self.diff(list(self._baseline.values()), tasks)
        self._baseline = _index(tasks)
        return events

    def absorb(self, task_id: Any, task: Optional[TaskRecord]) -> None:
        """Учитывает в базе запись, которую синхронизатор записал сам.

        Без этого следующий опрос принял бы собственную запись за локальное
        изменение и отправил её обратно в Dart.
        """
        if self._baseline is None:
            return
        key = str(task_id)
        if task is None:
            self._baseline.pop(key, None)
        else:
            self._baseline[key] = copy.deepcopy(task)

    def reset(self) -> None:
        self._baseline = None


__all__ = ["ChangeDetector", "Snapshot"]
