"""Доменные модели синхронизации."""

from .entities import ChangeEvent, LocalTask, SyncResult
from .envelope import (
    REMOTE_ID_KEY,
    DuplicateEnvelope,
    Envelope,
    InvalidEnvelope,
    Payload,
    Source,
    UnsupportedUpdateType,
    UpdateType,
    validate,
)

__all__ = [
    "Envelope",
    "Payload",
    "Source",
    "UpdateType",
    "ChangeEvent",
    "LocalTask",
    "SyncResult",
    "InvalidEnvelope",
    "DuplicateEnvelope",
    "UnsupportedUpdateType",
    "REMOTE_ID_KEY",
    "validate",
]
