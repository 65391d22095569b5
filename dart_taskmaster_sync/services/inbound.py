"""Преобразование входящих вебхуков Dart и вызовов инструментов в сообщения."""
from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from dateutil import parser

from dart_taskmaster_sync.config import AppConfig
from dart_taskmaster_sync.models import (
    REMOTE_ID_KEY,
    Envelope,
    InvalidEnvelope,
    Payload,
    Source,
    UpdateType,
)
from dart_taskmaster_sync.services.status_mapper import REMOTE_DEFAULT, REMOTE_DONE

LOGGER = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Dart-Signature"
SIGNATURE_PREFIX = "sha256="

WEBHOOK_EVENTS: Dict[str, UpdateType] = {
    "task.created": UpdateType.CREATE,
    "task.updated": UpdateType.UPDATE,
    "task.completed": UpdateType.COMPLETE,
    "task.deleted": UpdateType.DELETE,
}

TOOL_SOURCES: Dict[str, Source] = {
    "sync_dart_to_taskmaster": Source.SERVICE_A,
    "sync_taskmaster_to_dart": Source.SERVICE_B,
}


# region signatures
def sign(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str], *, allow_unsigned: bool = False) -> bool:
    """Проверяет HMAC-SHA256 подпись тела вебхука.

    Без настроенного секрета вебхук принимается только при явном
    ``allow_unsigned``. Подпись передаётся шестнадцатеричной строкой,
    допускается префикс ``sha256=``.
    """
    if not secret:
        if allow_unsigned:
            LOGGER.warning("Секрет вебхуков не задан, подпись не проверяется")
            return True
        LOGGER.warning("Секрет вебхуков не задан, вебхук отклонён")
        return False
    if not signature:
        LOGGER.warning("В запросе вебхука нет подписи")
        return False
    if signature.startswith(SIGNATURE_PREFIX):
        signature = signature[len(SIGNATURE_PREFIX):]
    expected = sign(body, secret).encode("ascii")
    return hmac.compare_digest(expected, signature.strip().lower().encode("utf-8"))


# endregion


# region webhooks
def _event_moment(task: Mapping[str, Any], *keys: str) -> Optional[datetime]:
    for key in keys:
        value = task.get(key)
        if value:
            try:
                return parser.isoparse(str(value))
            except ValueError:
                LOGGER.debug("Не удалось разобрать %s=%r", key, value)
    return None


def envelope_from_webhook(event: Mapping[str, Any], *, received_at: Optional[datetime] = None) -> Optional[Envelope]:
    """Строит сообщение из вебхука Dart.

    Возвращает None для неподдерживаемых типов событий. Меткой времени служит
    момент изменения задачи в Dart, чтобы повторная доставка того же вебхука
    распознавалась кэшем идемпотентности.

    Raises:
        InvalidEnvelope: если тип события не указан или в событии нет задачи.
    """
    event_type = event.get("event") or event.get("type")
    if not event_type:
        raise InvalidEnvelope("В вебхуке не указан тип события")
    update_type = WEBHOOK_EVENTS.get(event_type)
    if update_type is None:
        LOGGER.debug("Игнорируется неподдерживаемый тип события: %s", event_type)
        return None

    task = event.get("data") or event.get("task")
    if not isinstance(task, Mapping) or not task.get("id"):
        raise InvalidEnvelope("В вебхуке нет данных задачи")
    task_id = str(task["id"])
    received_at = received_at or datetime.now(timezone.utc)

    metadata: Dict[str, Any] = {REMOTE_ID_KEY: task_id}
    if update_type is UpdateType.COMPLETE:
        timestamp = _event_moment(task, "completed_at", "updated_at") or received_at
        metadata["dartCompletedAt"] = task.get("completed_at") or timestamp.isoformat()
        payload = Payload(status=REMOTE_DONE, metadata=metadata)
    elif update_type is UpdateType.DELETE:
        timestamp = _event_moment(task, "deleted_at", "updated_at") or received_at
        payload = Payload(status=task.get("status") or REMOTE_DEFAULT, metadata=metadata)
    else:
        timestamp = _event_moment(task, "updated_at", "created_at") or received_at
        if task.get("url"):
            metadata["dartUrl"] = task["url"]
        if update_type is UpdateType.CREATE and task.get("created_at"):
            metadata["dartCreatedAt"] = task["created_at"]
        if task.get("updated_at"):
            metadata["dartUpdatedAt"] = task["updated_at"]
        payload = Payload(
            status=task.get("status") or REMOTE_DEFAULT,
            title=task.get("title"),
            description=task.get("description"),
            priority=task.get("priority"),
            due_date=task.get("due_date") or task.get("dueAt"),
            assignee=task.get("assignee"),
            metadata=metadata,
        )
    return Envelope(
        source=Source.SERVICE_A,
        task_id=task_id,
        update_type=update_type,
        timestamp=timestamp,
        payload=payload,
    )


# endregion


# region tool calls
def envelope_from_tool_call(source: Source, params: Mapping[str, Any], *, received_at: Optional[datetime] = None) -> Envelope:
    raw = {
        "source": source.value,
        "task_id": params.get("task_id"),
        "update_type": params.get("update_type"),
        "timestamp": (received_at or datetime.now(timezone.utc)).isoformat(),
        "payload": params.get("payload"),
    }
    return Envelope.from_wire(raw)


def handle_tool_call(
    process: Callable[[Envelope], Any],
    name: str,
    params: Mapping[str, Any],
    config: Optional[AppConfig] = None,
) -> Dict[str, Any]:
    """Выполняет инструмент интеграции и возвращает ответ для диспетчера.

    ``process`` — обычно ``SyncEngine.process``.
    """
    if name == "get_config":
        return {"success": True, "config": (config or AppConfig()).masked()}
    source = TOOL_SOURCES.get(name)
    if source is None:
        return {"success": False, "error": f"Неизвестный инструмент: {name}"}
    try:
        envelope = envelope_from_tool_call(source, params)
    except InvalidEnvelope as exc:
        LOGGER.warning("Инструмент %s: %s", name, exc)
        return {"success": False, "error": str(exc)}
    result = process(envelope)
    return {"success": result.success, "result": result.to_dict()}


# endregion


__all__ = [
    "envelope_from_webhook",
    "envelope_from_tool_call",
    "handle_tool_call",
    "verify_signature",
    "sign",
    "SIGNATURE_HEADER",
]
