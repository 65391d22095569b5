"""Кэш уже обработанных сообщений для защиты от повторов и петель."""
from __future__ import annotations

from collections import OrderedDict

from dart_taskmaster_sync.models import Envelope

CACHE_CAPACITY = 1000


class IdempotencyCache:
    """Ограниченное упорядоченное множество отпечатков сообщений.

    При переполнении вытесняется самый ранний вставленный отпечаток (FIFO по
    порядку вставки, а не по метке времени). Это эвристика против петель, а не
    гарантия: после 1000 более новых событий повтор старого будет обработан заново.
    """

    def __init__(self, capacity: int = CACHE_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("Ёмкость кэша должна быть положительной")
        self._capacity = capacity
        self._entries: "OrderedDict[str, None]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    @property
    def capacity(self) -> int:
        return self._capacity

    def seen(self, envelope: Envelope) -> bool:
        """Возвращает True для повторного сообщения, иначе запоминает его."""
        fingerprint = envelope.fingerprint
        if fingerprint in self._entries:
            return True
        if len(self._entries) >= self._capacity:
            self._entries.popitem(last=False)
        self._entries[fingerprint] = None
        return False

    def forget(self, envelope: Envelope) -> None:
        self._entries.pop(envelope.fingerprint, None)


__all__ = ["IdempotencyCache", "CACHE_CAPACITY"]
