"""Определения доменных сущностей."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dart_taskmaster_sync.models.envelope import (
    REMOTE_ID_KEY,
    Envelope,
    Payload,
    Source,
    UpdateType,
)


@dataclass(slots=True)
class LocalTask:
    """Задача TaskMaster в том виде, в котором она хранится в tasks.json."""

    id: int
    title: str
    description: str = ""
    status: str = "pending"
    priority: str = "medium"
    dependencies: List[int] = field(default_factory=list)
    details: str = ""
    test_strategy: str = ""
    subtasks: List[Dict[str, Any]] = field(default_factory=list)
    due_date: Optional[str] = None
    assignee: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "dependencies": list(self.dependencies),
            "details": self.details,
            "testStrategy": self.test_strategy,
            "subtasks": list(self.subtasks),
            "metadata": dict(self.metadata),
        }
        if self.due_date is not None:
            record["dueDate"] = self.due_date
        if self.assignee is not None:
            record["assignee"] = self.assignee
        return record


@dataclass(slots=True)
class ChangeEvent:
    """Изменение, обнаруженное при сравнении двух снимков tasks.json."""

    type: UpdateType
    task: Dict[str, Any]
    previous_task: Optional[Dict[str, Any]] = None

    @property
    def task_id(self) -> str:
        return str(self.task["id"])

    def to_envelope(self, timestamp: Optional[datetime] = None) -> Envelope:
        """Упаковывает изменение в сообщение с источником ServiceB."""
        metadata = dict(self.task.get("metadata") or {})
        metadata["taskMasterId"] = self.task["id"]
        payload = Payload(
            status=self.task.get("status") or "pending",
            title=self.task.get("title"),
            description=self.task.get("description"),
            priority=self.task.get("priority"),
            due_date=self.task.get("dueDate"),
            assignee=self.task.get("assignee"),
            metadata=metadata,
        )
        return Envelope(
            source=Source.SERVICE_B,
            task_id=self.task_id,
            update_type=self.type,
            timestamp=timestamp or datetime.now(timezone.utc),
            payload=payload,
        )

    @property
    def remote_id(self) -> Optional[str]:
        value = (self.task.get("metadata") or {}).get(REMOTE_ID_KEY)
        return str(value) if value else None


@dataclass(slots=True)
class SyncResult:
    """Нормализованный результат обработки одного сообщения."""

    success: bool
    skipped: bool = False
    error: Optional[str] = None
    status_code: Optional[int] = None
    action: Optional[str] = None
    local_id: Optional[int] = None
    remote_id: Optional[str] = None
    record: Optional[Dict[str, Any]] = field(default=None, repr=False)

    @classmethod
    def noop(cls) -> "SyncResult":
        return cls(success=True, action="noop")

    @classmethod
    def duplicate(cls) -> "SyncResult":
        return cls(success=True, skipped=True)

    @classmethod
    def failure(cls, error: Exception) -> "SyncResult":
        return cls(success=False, error=str(error), status_code=getattr(error, "status_code", None))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.skipped:
            data["skipped"] = True
        for key in ("error", "status_code", "action", "local_id", "remote_id"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


__all__ = ["LocalTask", "ChangeEvent", "SyncResult"]
