"""Загрузка и валидация конфигурации приложения."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

DEFAULT_TO_LOCAL: Dict[str, str] = {
    "To-do": "pending",
    "Doing": "in-progress",
    "Done": "done",
}

DEFAULT_TO_REMOTE: Dict[str, str] = {
    "pending": "To-do",
    "in-progress": "Doing",
    "done": "Done",
}

# Переменные окружения исходного развёртывания: (секция, поле)
ENV_OVERRIDES: Dict[str, tuple[str, str]] = {
    "DART_API_KEY": ("dart", "api_key"),
    "DART_API_URL": ("dart", "base_url"),
    "DART_WEBHOOK_SECRET": ("dart", "webhook_secret"),
    "TASKS_PATH": ("taskmaster", "tasks_path"),
    "POLL_INTERVAL": ("taskmaster", "poll_interval_ms"),
    "LOG_LEVEL": ("sync", "log_level"),
}


class DartCredentials(BaseModel):
    """Настройки подключения к Dart."""

    base_url: str = Field("https://api.itsdart.com/api", description="Базовый URL API Dart")
    api_key: str = Field("", description="API-токен Dart, передаётся как Bearer")
    timeout_s: float = Field(5.0, gt=0, description="Таймаут одного HTTP-запроса")
    max_retries: int = Field(
        1,
        ge=0,
        description="Число повторов для идемпотентных запросов (PATCH/DELETE/GET); POST не повторяется",
    )
    retry_backoff_s: float = Field(0.5, ge=0, description="Базовая задержка между повторами")
    webhook_secret: Optional[str] = Field(None, description="Секрет для проверки подписи вебхуков")
    allow_unsigned_webhooks: bool = Field(
        False,
        description="Принимать вебхуки без подписи, если секрет не задан (только для разработки)",
    )


class TaskMasterOptions(BaseModel):
    """Настройки локального хранилища TaskMaster."""

    tasks_path: Path = Field(Path("tasks/tasks.json"), description="Путь к файлу tasks.json")
    poll_interval_ms: int = Field(5000, gt=0, description="Интервал опроса файла задач")

    @field_validator("tasks_path", mode="before")
    @classmethod
    def _ensure_path(cls, value: Path | str) -> Path:
        return Path(value)

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000


class SyncOptions(BaseModel):
    """Параметры синхронизации."""

    status_to_local: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_TO_LOCAL))
    status_to_remote: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_TO_REMOTE))
    dry_run: bool = Field(False, description="Если True, изменения только логируются")
    log_level: str = Field("info", description="Уровень логирования по умолчанию")


class AppConfig(BaseModel):
    """Корневая конфигурация приложения."""

    dart: DartCredentials = Field(default_factory=DartCredentials)
    taskmaster: TaskMasterOptions = Field(default_factory=TaskMasterOptions)
    sync: SyncOptions = Field(default_factory=SyncOptions)

    @classmethod
    def load(cls, path: Path | str | None = None, env: Optional[Mapping[str, str]] = None) -> "AppConfig":
        """Загружает конфигурацию из YAML-файла и переменных окружения.

        Файл необязателен: без него используются значения по умолчанию.
        Переменные окружения имеют приоритет над файлом.
        """
        raw: Dict[str, Any] = {}
        if path is not None:
            path = Path(path)
            if path.exists():
                raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        env = os.environ if env is None else env
        for name, (section, key) in ENV_OVERRIDES.items():
            value = env.get(name)
            if value:
                raw.setdefault(section, {})[key] = value
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise ValueError(f"Конфигурация {path or '<env>'} некорректна: {exc}") from exc

    def masked(self) -> Dict[str, Any]:
        """Возвращает конфигурацию без секретов, пригодную для вывода."""
        data = self.model_dump(mode="json")
        for key in ("api_key", "webhook_secret"):
            if data["dart"].get(key):
                data["dart"][key] = "***"
        return data


__all__ = ["AppConfig", "DartCredentials", "TaskMasterOptions", "SyncOptions"]
