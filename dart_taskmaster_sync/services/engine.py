"""Оркестратор двусторонней синхронизации Dart ↔ TaskMaster."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

from dart_taskmaster_sync.clients.dart import RemoteApiError
from dart_taskmaster_sync.clients.taskmaster import StoreIoError, tasks_of
from dart_taskmaster_sync.models import (
    REMOTE_ID_KEY,
    DuplicateEnvelope,
    Envelope,
    InvalidEnvelope,
    Source,
    SyncResult,
    UnsupportedUpdateType,
    UpdateType,
    validate,
)
from dart_taskmaster_sync.services.change_detector import ChangeDetector
from dart_taskmaster_sync.services.idempotency import IdempotencyCache
from dart_taskmaster_sync.services.reducers import (
    LocalStore,
    RemoteApi,
    apply_to_local_store,
    apply_to_remote_service,
)
from dart_taskmaster_sync.services.status_mapper import StatusMapper

LOGGER = logging.getLogger(__name__)

_DIRECTIONS = {
    Source.SERVICE_A: "Dart → TaskMaster",
    Source.SERVICE_B: "TaskMaster → Dart",
}


class SyncEngine:
    """Единая точка входа для сообщений из обоих направлений.

    Порядок обработки: валидация, проверка идемпотентности, выбор редьюсера.
    Сообщения обрабатываются строго по одному; блокировок нет, поэтому два
    процесса с одним tasks.json запускать нельзя.
    """

    def __init__(
        self,
        store: LocalStore,
        client: RemoteApi,
        *,
        mapper: Optional[StatusMapper] = None,
        cache: Optional[IdempotencyCache] = None,
        detector: Optional[ChangeDetector] = None,
        dry_run: bool = False,
    ) -> None:
        self._store = store
        self._client = client
        self._mapper = mapper or StatusMapper()
        self._cache = cache if cache is not None else IdempotencyCache()
        self._detector = detector
        self._dry_run = dry_run

    @property
    def cache(self) -> IdempotencyCache:
        return self._cache

    @property
    def detector(self) -> Optional[ChangeDetector]:
        return self._detector

    # region public API
    def process(self, envelope: Union[Envelope, Mapping[str, Any]]) -> SyncResult:
        """Обрабатывает одно сообщение и возвращает нормализованный результат.

        Raises:
            InvalidEnvelope: сообщение некорректно; состояние не изменяется.
            UnsupportedUpdateType: тип изменения не поддерживается.
        """
        envelope = self._coerce(envelope)
        try:
            self._claim(envelope)
        except DuplicateEnvelope:
            LOGGER.debug("Сообщение уже обработано, пропуск: %s", envelope.fingerprint)
            return SyncResult.duplicate()

        LOGGER.info(
            "Обработка %s: %s задачи %s",
            _DIRECTIONS[envelope.source],
            envelope.update_type.value,
            envelope.task_id,
        )
        if self._dry_run:
            LOGGER.info("[DRY-RUN] %s", envelope.to_wire())
            return SyncResult(success=True, action="dry-run")

        try:
            result = self._dispatch(envelope)
        except UnsupportedUpdateType:
            self._cache.forget(envelope)
            raise
        except (StoreIoError, RemoteApiError) as exc:
            # повторная доставка того же события должна снова дойти до редьюсера
            self._cache.forget(envelope)
            LOGGER.error("Ошибка синхронизации задачи %s: %s", envelope.task_id, exc)
            return SyncResult.failure(exc)
        except Exception as exc:
            self._cache.forget(envelope)
            LOGGER.exception("Непредвиденная ошибка синхронизации задачи %s", envelope.task_id)
            return SyncResult.failure(exc)
        return self._after_apply(envelope, result)

    # endregion

    # region helpers
    @staticmethod
    def _coerce(candidate: Union[Envelope, Mapping[str, Any]]) -> Envelope:
        if isinstance(candidate, Envelope):
            if not validate(candidate):
                raise InvalidEnvelope(f"Некорректное сообщение для задачи {candidate.task_id!r}")
            return candidate
        return Envelope.from_wire(candidate)

    def _claim(self, envelope: Envelope) -> None:
        if self._cache.seen(envelope):
            raise DuplicateEnvelope(envelope.fingerprint)

    def _dispatch(self, envelope: Envelope) -> SyncResult:
        if envelope.source is Source.SERVICE_A:
            return apply_to_local_store(envelope, self._store, self._mapper)
        return apply_to_remote_service(envelope, self._client, self._mapper)

    def _after_apply(self, envelope: Envelope, result: SyncResult) -> SyncResult:
        if not result.success or result.action == "noop":
            return result
        if envelope.source is Source.SERVICE_A:
            if self._detector is not None and result.local_id is not None:
                self._detector.absorb(result.local_id, result.record)
            return result
        if envelope.update_type is not UpdateType.DELETE and result.local_id is not None and result.remote_id:
            if result.remote_id != envelope.payload.remote_id:
                return self._link_remote_id(result)
        return result

    def _link_remote_id(self, result: SyncResult) -> SyncResult:
        """Записывает идентификатор новой задачи Dart в metadata локальной задачи."""
        try:
            document = self._store.read()
            task = next((item for item in tasks_of(document) if str(item.get("id")) == str(result.local_id)), None)
            if task is None:
                LOGGER.warning("Задача TaskMaster %s исчезла до сохранения связи с Dart", result.local_id)
                return result
            task["metadata"] = {**(task.get("metadata") or {}), REMOTE_ID_KEY: result.remote_id}
            self._store.write(document)
        except StoreIoError as exc:
            # задача в Dart уже создана, поэтому сообщение остаётся помеченным как обработанное
            LOGGER.error("Не удалось сохранить связь %s → %s: %s", result.local_id, result.remote_id, exc)
            return SyncResult(
                success=False,
                error=str(exc),
                action=result.action,
                local_id=result.local_id,
                remote_id=result.remote_id,
            )
        if self._detector is not None:
            self._detector.absorb(result.local_id, task)
        LOGGER.info("Задача TaskMaster %s связана с задачей Dart %s", result.local_id, result.remote_id)
        return result

    # endregion


__all__ = ["SyncEngine"]
