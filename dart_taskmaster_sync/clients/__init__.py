"""Клиенты внешних систем: Dart API и файл задач TaskMaster."""

from .dart import DartClient, RemoteApiError
from .taskmaster import StoreIoError, TaskMasterStore

__all__ = ["DartClient", "RemoteApiError", "TaskMasterStore", "StoreIoError"]
