"""Опрос файла задач TaskMaster и отправка изменений в Dart."""
from __future__ import annotations

import logging
import threading
from typing import List, Optional

from dart_taskmaster_sync.clients.taskmaster import StoreIoError, TaskMasterStore
from dart_taskmaster_sync.models import InvalidEnvelope, SyncResult
from dart_taskmaster_sync.services.change_detector import ChangeDetector
from dart_taskmaster_sync.services.engine import SyncEngine

LOGGER = logging.getLogger(__name__)


class TaskMasterListener:
    """Периодически сравнивает tasks.json с прошлым снимком."""

    def __init__(
        self,
        store: TaskMasterStore,
        engine: SyncEngine,
        *,
        detector: Optional[ChangeDetector] = None,
        interval_s: float = 5.0,
    ) -> None:
        detector = detector or engine.detector
        if detector is None:
            raise ValueError("Для опроса нужен ChangeDetector, общий с SyncEngine")
        self._store = store
        self._engine = engine
        self._detector = detector
        self._interval_s = interval_s

    def poll_once(self) -> List[SyncResult]:
        """Один цикл опроса. Ошибка чтения файла пропускает цикл."""
        try:
            snapshot = self._store.read()
        except StoreIoError as exc:
            if exc.missing:
                LOGGER.debug("Файл задач %s пока не создан", self._store.path)
            else:
                LOGGER.warning("Цикл опроса пропущен: %s", exc)
            return []

        events = self._detector.observe(snapshot)
        if not events:
            return []
        LOGGER.info("Обнаружено изменений в TaskMaster: %s", len(events))

        results: List[SyncResult] = []
        for event in events:
            try:
                result = self._engine.process(event.to_envelope())
            except InvalidEnvelope as exc:
                LOGGER.error("Изменение %s задачи %s пропущено: %s", event.type.value, event.task_id, exc)
                continue
            if not result.success:
                LOGGER.error("Изменение %s задачи %s не применено: %s", event.type.value, event.task_id, result.error)
            results.append(result)
        return results

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Опрашивает файл с заданным интервалом до установки ``stop_event``."""
        stop_event = stop_event or threading.Event()
        LOGGER.info("Запуск опроса %s каждые %s с", self._store.path, self._interval_s)
        if not self._store.exists():
            LOGGER.warning("Файл задач %s не найден, ожидание его создания", self._store.path)
        while not stop_event.is_set():
            self.poll_once()
            stop_event.wait(self._interval_s)
        LOGGER.info("Опрос TaskMaster остановлен")


__all__ = ["TaskMasterListener"]
