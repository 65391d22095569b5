"""Соответствие статусов Dart и TaskMaster."""
from __future__ import annotations

from typing import Dict, Optional

from dart_taskmaster_sync.config import DEFAULT_TO_LOCAL, DEFAULT_TO_REMOTE, SyncOptions

LOCAL_DEFAULT = "pending"
REMOTE_DEFAULT = "To-do"
LOCAL_DONE = "done"
REMOTE_DONE = "Done"


class StatusMapper:
    """Табличное преобразование статусов.

    Преобразование намеренно не биективно: неизвестный статус сводится к
    уровню «не начата», поэтому ``to_remote(to_local(x))`` не обязан вернуть ``x``.
    """

    def __init__(
        self,
        *,
        to_local: Optional[Dict[str, str]] = None,
        to_remote: Optional[Dict[str, str]] = None,
    ) -> None:
        self._to_local = dict(to_local or DEFAULT_TO_LOCAL)
        self._to_remote = dict(to_remote or DEFAULT_TO_REMOTE)

    @classmethod
    def from_options(cls, options: SyncOptions) -> "StatusMapper":
        return cls(to_local=options.status_to_local, to_remote=options.status_to_remote)

    def to_local(self, remote_status: Optional[str]) -> str:
        return self._to_local.get(remote_status or "", LOCAL_DEFAULT)

    def to_remote(self, local_status: Optional[str]) -> str:
        return self._to_remote.get(local_status or "", REMOTE_DEFAULT)

    @property
    def local_done(self) -> str:
        return self._to_local.get(REMOTE_DONE, LOCAL_DONE)

    @property
    def remote_done(self) -> str:
        return self._to_remote.get(LOCAL_DONE, REMOTE_DONE)


__all__ = ["StatusMapper", "LOCAL_DEFAULT", "REMOTE_DEFAULT", "LOCAL_DONE", "REMOTE_DONE"]
