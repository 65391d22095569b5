"""HTTP-клиент для Dart API."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from dart_taskmaster_sync.config import DartCredentials

LOGGER = logging.getLogger(__name__)

USER_AGENT = "dart-taskmaster-sync/0.1"
RETRY_STATUSES = (429, 500, 502, 503, 504)
# POST не повторяем: повтор после таймаута может создать дубликат задачи
RETRY_METHODS = frozenset({"GET", "PATCH", "DELETE"})


class RemoteApiError(RuntimeError):
    """Ошибка Dart API с кодом ответа."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DartClient:
    """Минимальный клиент Dart API."""

    def __init__(self, config: DartCredentials, session: Optional[requests.Session] = None) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "User-Agent": USER_AGENT,
                "Accept": "application/json",
                "Authorization": f"Bearer {config.api_key}",
            }
        )
        if config.max_retries:
            retry = Retry(
                total=config.max_retries,
                backoff_factor=config.retry_backoff_s,
                status_forcelist=RETRY_STATUSES,
                allowed_methods=RETRY_METHODS,
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            self._session.mount("https://", adapter)
            self._session.mount("http://", adapter)

    @property
    def base_url(self) -> str:
        return self._config.base_url.rstrip("/")

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        try:
            response = self._session.request(method, url, timeout=self._config.timeout_s, **kwargs)
        except requests.RequestException as exc:
            raise RemoteApiError(f"Dart API недоступен при запросе {method} {url}: {exc}") from exc
        if response.status_code >= 400:
            raise RemoteApiError(
                f"Ошибка Dart API {response.status_code} при запросе {method} {url}: {response.text}",
                status_code=response.status_code,
            )
        return response

    def create(self, task_data: Dict[str, Any]) -> str:
        """Создаёт задачу и возвращает её идентификатор в Dart."""
        response = self._request("POST", "/tasks", json=task_data)
        try:
            payload = response.json() or {}
        except ValueError as exc:
            raise RemoteApiError(f"Dart API вернул не JSON при создании задачи: {exc}", response.status_code) from exc
        if not isinstance(payload, dict):
            raise RemoteApiError("Dart API вернул неожиданный ответ при создании задачи", response.status_code)
        item = payload.get("item") if isinstance(payload.get("item"), dict) else payload
        remote_id = item.get("id") or item.get("duid")
        if not remote_id:
            raise RemoteApiError("Dart API не вернул идентификатор созданной задачи", response.status_code)
        LOGGER.debug("Dart: создана задача %s", remote_id)
        return str(remote_id)

    def update(self, remote_id: str, partial: Dict[str, Any]) -> None:
        self._request("PATCH", f"/tasks/{remote_id}", json=partial)

    def complete(self, remote_id: str, done_status: str = "Done") -> None:
        self.update(remote_id, {"status": done_status})

    def delete(self, remote_id: str) -> None:
        self._request("DELETE", f"/tasks/{remote_id}")

    def ping(self) -> None:
        """Проверяет доступность API и корректность токена."""
        self._request("GET", "/tasks", params={"limit": 1})


__all__ = ["DartClient", "RemoteApiError"]
