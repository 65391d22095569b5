"""Сервисный слой приложения."""

from .change_detector import ChangeDetector
from .engine import SyncEngine
from .idempotency import IdempotencyCache
from .listener import TaskMasterListener
from .reducers import apply_to_local_store, apply_to_remote_service
from .status_mapper import StatusMapper

__all__ = [
    "SyncEngine",
    "ChangeDetector",
    "IdempotencyCache",
    "StatusMapper",
    "TaskMasterListener",
    "apply_to_local_store",
    "apply_to_remote_service",
]
