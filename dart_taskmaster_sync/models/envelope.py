"""Каноническое сообщение об изменении задачи и его валидация."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from dateutil import parser


class InvalidEnvelope(ValueError):
    """Сообщение не прошло валидацию и не может быть обработано."""


class DuplicateEnvelope(RuntimeError):
    """Сообщение с таким отпечатком уже обрабатывалось."""


class UnsupportedUpdateType(RuntimeError):
    """Тип изменения не поддерживается редьюсером."""


class Source(str, Enum):
    """Система-источник изменения.

    ServiceA — удалённый сервис Dart, ServiceB — локальная коллекция TaskMaster.
    """

    SERVICE_A = "ServiceA"
    SERVICE_B = "ServiceB"


class UpdateType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    COMPLETE = "complete"
    DELETE = "delete"


REMOTE_ID_KEY = "remoteId"

_PAYLOAD_WIRE_FIELDS = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "due_date": "due_date",
    "assignee": "assignee",
}


@dataclass(frozen=True, slots=True)
class Payload:
    """Данные задачи внутри сообщения. Обязателен только статус."""

    status: str
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    due_date: Optional[str] = None
    assignee: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata or {})))

    @property
    def remote_id(self) -> Optional[str]:
        value = self.metadata.get(REMOTE_ID_KEY)
        return str(value) if value not in (None, "") else None

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> "Payload":
        metadata = raw.get("metadata") or {}
        if not isinstance(metadata, Mapping):
            raise InvalidEnvelope("payload.metadata должен быть объектом")
        return cls(
            status=str(raw["status"]),
            title=raw.get("title"),
            description=raw.get("description"),
            priority=raw.get("priority"),
            due_date=raw.get("due_date") or raw.get("dueDate"),
            assignee=raw.get("assignee"),
            metadata=metadata,
        )

    def to_wire(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"status": self.status}
        for attr, key in _PAYLOAD_WIRE_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data


@dataclass(frozen=True, slots=True)
class Envelope:
    """Неизменяемое сообщение об изменении задачи в одной из систем."""

    source: Source
    task_id: str
    update_type: UpdateType
    timestamp: datetime
    payload: Payload

    @property
    def fingerprint(self) -> str:
        """Ключ идемпотентности: источник, идентификатор и момент изменения."""
        return f"{self.source.value}-{self.task_id}-{self.timestamp.isoformat()}"

    @classmethod
    def from_wire(cls, raw: Mapping[str, Any]) -> "Envelope":
        """Разбирает JSON-представление сообщения.

        Raises:
            InvalidEnvelope: если сообщение не соответствует схеме.
        """
        if not validate(raw):
            raise InvalidEnvelope(f"Некорректный формат сообщения: {_describe(raw)}")
        timestamp = raw["timestamp"]
        if not isinstance(timestamp, datetime):
            try:
                timestamp = parser.isoparse(str(timestamp))
            except ValueError as exc:
                raise InvalidEnvelope(f"Некорректная метка времени {timestamp!r}") from exc
        return cls(
            source=Source(raw["source"]),
            task_id=raw["task_id"],
            update_type=UpdateType(raw["update_type"]),
            timestamp=timestamp,
            payload=Payload.from_wire(raw["payload"]),
        )

    def to_wire(self) -> Dict[str, Any]:
        return {
            "source": self.source.value,
            "task_id": self.task_id,
            "update_type": self.update_type.value,
            "timestamp": self.timestamp.isoformat(),
            "payload": self.payload.to_wire(),
        }


def validate(candidate: Any) -> bool:
    """Проверяет сообщение без побочных эффектов.

    Принимает как готовый ``Envelope``, так и словарь в формате JSON-схемы.
    """
    if isinstance(candidate, Envelope):
        return (
            isinstance(candidate.source, Source)
            and isinstance(candidate.task_id, str)
            and bool(candidate.task_id)
            and isinstance(candidate.update_type, UpdateType)
            and candidate.timestamp is not None
            and candidate.payload is not None
            and bool(candidate.payload.status)
        )
    if not isinstance(candidate, Mapping):
        return False
    if candidate.get("source") not in {item.value for item in Source}:
        return False
    task_id = candidate.get("task_id")
    if not isinstance(task_id, str) or not task_id:
        return False
    if candidate.get("update_type") not in {item.value for item in UpdateType}:
        return False
    if not candidate.get("timestamp"):
        return False
    payload = candidate.get("payload")
    if not isinstance(payload, Mapping) or not payload.get("status"):
        return False
    return True


def _describe(raw: Any) -> str:
    if not isinstance(raw, Mapping):
        return type(raw).__name__
    return f"source={raw.get('source')!r}, task_id={raw.get('task_id')!r}, update_type={raw.get('update_type')!r}"


__all__ = [
    "Envelope",
    "Payload",
    "Source",
    "UpdateType",
    "InvalidEnvelope",
    "DuplicateEnvelope",
    "UnsupportedUpdateType",
    "REMOTE_ID_KEY",
    "validate",
]
