"""Двусторонняя синхронизация задач Dart и TaskMaster."""

__version__ = "0.1.0"
