"""Применение сообщения об изменении к целевой системе."""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from dart_taskmaster_sync.clients.taskmaster import allocate_task_id, tasks_of
from dart_taskmaster_sync.models import (
    REMOTE_ID_KEY,
    Envelope,
    LocalTask,
    Payload,
    SyncResult,
    UnsupportedUpdateType,
    UpdateType,
)
from dart_taskmaster_sync.services.status_mapper import StatusMapper

LOGGER = logging.getLogger(__name__)

DEFAULT_PRIORITY = "medium"

# поле Payload → ключ записи TaskMaster
_LOCAL_FIELDS = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "due_date": "dueDate",
    "assignee": "assignee",
}

# поле Payload → ключ тела запроса Dart
_REMOTE_FIELDS = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "due_date": "dueDate",
    "assignee": "assignee",
}


class LocalStore(Protocol):
    def read(self) -> Dict[str, Any]: ...

    def write(self, document: Dict[str, Any]) -> None: ...


class RemoteApi(Protocol):
    def create(self, task_data: Dict[str, Any]) -> str: ...

    def update(self, remote_id: str, partial: Dict[str, Any]) -> None: ...

    def complete(self, remote_id: str, done_status: str = ...) -> None: ...

    def delete(self, remote_id: str) -> None: ...


# region local store (Dart → TaskMaster)
def apply_to_local_store(
    envelope: Envelope, store: LocalStore, mapper: Optional[StatusMapper] = None
) -> SyncResult:
    """Применяет сообщение из Dart к файлу задач TaskMaster.

    Изменение сохраняется на диск до возврата из функции.
    """
    mapper = mapper or StatusMapper()
    handler = _LOCAL_HANDLERS.get(envelope.update_type)
    if handler is None:
        raise UnsupportedUpdateType(f"Неподдерживаемый тип изменения: {envelope.update_type}")
    document = store.read()
    return handler(envelope, document, store, mapper)


def _find_by_remote_id(tasks: List[Dict[str, Any]], remote_id: str) -> Optional[int]:
    for index, task in enumerate(tasks):
        metadata = task.get("metadata") or {}
        if metadata.get(REMOTE_ID_KEY) is not None and str(metadata[REMOTE_ID_KEY]) == remote_id:
            return index
    return None


def _create_local(envelope: Envelope, document: Dict[str, Any], store: LocalStore, mapper: StatusMapper) -> SyncResult:
    tasks = tasks_of(document)
    if _find_by_remote_id(tasks, envelope.task_id) is not None:
        # задача уже связана (например, создана нами же в Dart): повторно не создаём
        LOGGER.info("Задача Dart %s уже есть в TaskMaster, создание заменено обновлением", envelope.task_id)
        return _update_local(envelope, document, store, mapper)

    payload = envelope.payload
    task = LocalTask(
        id=allocate_task_id(document),
        title=payload.title or f"Task from Dart: {envelope.task_id}",
        description=payload.description or "",
        status=mapper.to_local(payload.status),
        priority=payload.priority or DEFAULT_PRIORITY,
        due_date=payload.due_date,
        assignee=payload.assignee,
        metadata={**payload.metadata, REMOTE_ID_KEY: envelope.task_id},
    )
    record = task.to_record()
    tasks.append(record)
    store.write(document)
    LOGGER.info("Создана задача TaskMaster %s для задачи Dart %s", task.id, envelope.task_id)
    return SyncResult(success=True, action="created", local_id=task.id, remote_id=envelope.task_id, record=record)


def _update_local(envelope: Envelope, document: Dict[str, Any], store: LocalStore, mapper: StatusMapper) -> SyncResult:
    tasks = tasks_of(document)
    index = _find_by_remote_id(tasks, envelope.task_id)
    if index is None:
        LOGGER.warning("Задача Dart %s не найдена в TaskMaster, будет создана", envelope.task_id)
        return _create_local(envelope, document, store, mapper)

    task = tasks[index]
    payload = envelope.payload
    task["status"] = mapper.to_local(payload.status)
    for attr, key in _LOCAL_FIELDS.items():
        value = getattr(payload, attr)
        if value is not None:
            task[key] = value
    task["metadata"] = {
        **(task.get("metadata") or {}),
        **payload.metadata,
        "lastUpdated": envelope.timestamp.isoformat(),
    }
    store.write(document)
    LOGGER.info("Обновлена задача TaskMaster %s", task["id"])
    return SyncResult(success=True, action="updated", local_id=task["id"], remote_id=envelope.task_id, record=task)


def _complete_local(envelope: Envelope, document: Dict[str, Any], store: LocalStore, mapper: StatusMapper) -> SyncResult:
    tasks = tasks_of(document)
    index = _find_by_remote_id(tasks, envelope.task_id)
    if index is None:
        LOGGER.warning("Задача Dart %s не найдена в TaskMaster, завершение пропущено", envelope.task_id)
        return SyncResult.noop()

    task = tasks[index]
    moment = envelope.timestamp.isoformat()
    task["status"] = mapper.local_done
    task["metadata"] = {
        **(task.get("metadata") or {}),
        **envelope.payload.metadata,
        "completedAt": moment,
        "lastUpdated": moment,
    }
    store.write(document)
    LOGGER.info("Завершена задача TaskMaster %s", task["id"])
    return SyncResult(success=True, action="completed", local_id=task["id"], remote_id=envelope.task_id, record=task)


def _delete_local(envelope: Envelope, document: Dict[str, Any], store: LocalStore, mapper: StatusMapper) -> SyncResult:
    tasks = tasks_of(document)
    index = _find_by_remote_id(tasks, envelope.task_id)
    if index is None:
        LOGGER.warning("Задача Dart %s не найдена в TaskMaster, удаление пропущено", envelope.task_id)
        return SyncResult.noop()

    task = tasks.pop(index)
    store.write(document)
    LOGGER.info("Удалена задача TaskMaster %s (Dart %s)", task["id"], envelope.task_id)
    return SyncResult(success=True, action="deleted", local_id=task["id"], remote_id=envelope.task_id)


_LOCAL_HANDLERS: Dict[UpdateType, Callable[..., SyncResult]] = {
    UpdateType.CREATE: _create_local,
    UpdateType.UPDATE: _update_local,
    UpdateType.COMPLETE: _complete_local,
    UpdateType.DELETE: _delete_local,
}

# endregion


# region remote service (TaskMaster → Dart)
def apply_to_remote_service(
    envelope: Envelope, client: RemoteApi, mapper: Optional[StatusMapper] = None
) -> SyncResult:
    """Применяет локальное изменение к Dart через API.

    Задача Dart определяется по ``payload.metadata.remoteId``. Обновление без
    него превращается в создание; завершение и удаление без него пропускаются.
    """
    mapper = mapper or StatusMapper()
    handler = _REMOTE_HANDLERS.get(envelope.update_type)
    if handler is None:
        raise UnsupportedUpdateType(f"Неподдерживаемый тип изменения: {envelope.update_type}")
    return handler(envelope, client, mapper)


def _remote_task_data(payload: Payload, mapper: StatusMapper) -> Dict[str, Any]:
    data: Dict[str, Any] = {"status": mapper.to_remote(payload.status)}
    for attr, key in _REMOTE_FIELDS.items():
        value = getattr(payload, attr)
        if value is not None:
            data[key] = value
    return data


def _local_id(envelope: Envelope) -> Optional[int]:
    return int(envelope.task_id) if envelope.task_id.isdigit() else None


def _create_remote(envelope: Envelope, client: RemoteApi, mapper: StatusMapper) -> SyncResult:
    data = _remote_task_data(envelope.payload, mapper)
    data.setdefault("title", f"Task from TaskMaster: {envelope.task_id}")
    remote_id = client.create(data)
    LOGGER.info("Создана задача Dart %s для задачи TaskMaster %s", remote_id, envelope.task_id)
    return SyncResult(success=True, action="created", local_id=_local_id(envelope), remote_id=remote_id)


def _update_remote(envelope: Envelope, client: RemoteApi, mapper: StatusMapper) -> SyncResult:
    remote_id = envelope.payload.remote_id
    if remote_id is None:
        LOGGER.warning("У задачи TaskMaster %s нет идентификатора Dart, будет создана", envelope.task_id)
        return _create_remote(envelope, client, mapper)
    client.update(remote_id, _remote_task_data(envelope.payload, mapper))
    LOGGER.info("Обновлена задача Dart %s", remote_id)
    return SyncResult(success=True, action="updated", local_id=_local_id(envelope), remote_id=remote_id)


def _complete_remote(envelope: Envelope, client: RemoteApi, mapper: StatusMapper) -> SyncResult:
    remote_id = envelope.payload.remote_id
    if remote_id is None:
        LOGGER.warning("У задачи TaskMaster %s нет идентификатора Dart, завершение пропущено", envelope.task_id)
        return SyncResult.noop()
    client.complete(remote_id, mapper.remote_done)
    LOGGER.info("Завершена задача Dart %s", remote_id)
    return SyncResult(success=True, action="completed", local_id=_local_id(envelope), remote_id=remote_id)


def _delete_remote(envelope: Envelope, client: RemoteApi, mapper: StatusMapper) -> SyncResult:
    remote_id = envelope.payload.remote_id
    if remote_id is None:
        LOGGER.warning("У задачи TaskMaster %s нет идентификатора Dart, удаление пропущено", envelope.task_id)
        return SyncResult.noop()
    client.delete(remote_id)
    LOGGER.info("Удалена задача Dart %s", remote_id)
    return SyncResult(success=True, action="deleted", local_id=_local_id(envelope), remote_id=remote_id)


_REMOTE_HANDLERS: Dict[UpdateType, Callable[..., SyncResult]] = {
    UpdateType.CREATE: _create_remote,
    UpdateType.UPDATE: _update_remote,
    UpdateType.COMPLETE: _complete_remote,
    UpdateType.DELETE: _delete_remote,
}

# endregion


__all__ = ["apply_to_local_store", "apply_to_remote_service", "LocalStore", "RemoteApi"]
