"""CLI-интерфейс для запуска синхронизации."""
from __future__ import annotations

import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from dart_taskmaster_sync.clients import DartClient, RemoteApiError, StoreIoError, TaskMasterStore
from dart_taskmaster_sync.config import AppConfig
from dart_taskmaster_sync.models import InvalidEnvelope, SyncResult
from dart_taskmaster_sync.services import ChangeDetector, StatusMapper, SyncEngine, TaskMasterListener
from dart_taskmaster_sync.services.inbound import envelope_from_webhook, verify_signature

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

app = typer.Typer(help="Двусторонняя синхронизация задач Dart ↔ TaskMaster")


def configure_logging(verbosity: int, default_level: str = "warning") -> None:
    level = getattr(logging, default_level.upper(), logging.WARNING)
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_engine(config: AppConfig) -> tuple[SyncEngine, TaskMasterListener]:
    """Собирает движок и опрос с общим состоянием на весь процесс."""
    store = TaskMasterStore(config.taskmaster.tasks_path)
    mapper = StatusMapper.from_options(config.sync)
    detector = ChangeDetector(done_status=mapper.local_done)
    engine = SyncEngine(
        store,
        DartClient(config.dart),
        mapper=mapper,
        detector=detector,
        dry_run=config.sync.dry_run,
    )
    listener = TaskMasterListener(store, engine, interval_s=config.taskmaster.poll_interval_s)
    return engine, listener


def _load(config_path: Path, verbosity: int) -> AppConfig:
    config = AppConfig.load(config_path)
    configure_logging(verbosity, config.sync.log_level)
    return config


def _read_json(path: Path) -> Any:
    text = sys.stdin.read() if str(path) == "-" else path.read_text(encoding="utf-8")
    return json.loads(text)


def _echo(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _echo_results(results: List[SyncResult]) -> None:
    _echo([item.to_dict() for item in results])


@app.command("run")
def run(
    config_path: Path = typer.Option(Path("config.yaml"), "--config", "-c", help="Путь к YAML конфигурации"),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True, help="Уровень логирования"),
) -> None:
    """Опрашивает tasks.json и отправляет изменения в Dart до остановки."""
    config = _load(config_path, verbosity)
    _, listener = build_engine(config)
    stop_event = threading.Event()

    def _stop(signum: int, _frame: Optional[object]) -> None:
        logging.getLogger(__name__).info("Получен сигнал %s, остановка", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)
    listener.run(stop_event)


@app.command("poll-once")
def poll_once(
    baseline: Optional[Path] = typer.Option(
        None,
        "--baseline",
        "-b",
        help="Прошлая копия tasks.json для сравнения; без неё изменения не отправляются",
    ),
    config_path: Path = typer.Option(Path("config.yaml"), "--config", "-c"),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True),
) -> None:
    """Один цикл опроса относительно сохранённого снимка.

    Без --baseline изменения не отправляются: текущий tasks.json становится
    исходным снимком.
    """
    config = _load(config_path, verbosity)
    engine, listener = build_engine(config)
    if baseline is not None:
        engine.detector.observe(_read_json(baseline))
    else:
        logging.getLogger(__name__).info("Снимок --baseline не задан, изменения не будут отправлены")
    _echo_results(listener.poll_once())


@app.command("process")
def process(
    envelope_path: Path = typer.Argument(..., help="JSON-файл сообщения ('-' для stdin)"),
    config_path: Path = typer.Option(Path("config.yaml"), "--config", "-c"),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True),
) -> None:
    """Обрабатывает сообщение в канонической JSON-схеме."""
    config = _load(config_path, verbosity)
    engine, _ = build_engine(config)
    try:
        result = engine.process(_read_json(envelope_path))
    except InvalidEnvelope as exc:
        _echo({"success": False, "error": str(exc)})
        raise typer.Exit(code=2) from exc
    _echo(result.to_dict())
    if not result.success:
        raise typer.Exit(code=1)


@app.command("webhook")
def webhook(
    body_path: Path = typer.Argument(..., help="Тело вебхука Dart ('-' для stdin)"),
    signature: Optional[str] = typer.Option(None, "--signature", "-s", help="Значение заголовка X-Dart-Signature"),
    config_path: Path = typer.Option(Path("config.yaml"), "--config", "-c"),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True),
) -> None:
    """Проверяет подпись вебхука Dart и применяет его к TaskMaster."""
    config = _load(config_path, verbosity)
    body = sys.stdin.buffer.read() if str(body_path) == "-" else body_path.read_bytes()
    if not verify_signature(
        body,
        signature,
        config.dart.webhook_secret,
        allow_unsigned=config.dart.allow_unsigned_webhooks,
    ):
        _echo({"success": False, "error": "Invalid signature"})
        raise typer.Exit(code=3)
    engine, _ = build_engine(config)
    try:
        envelope = envelope_from_webhook(json.loads(body))
        if envelope is None:
            _echo({"success": True, "ignored": True})
            return
        result = engine.process(envelope)
    except InvalidEnvelope as exc:
        _echo({"success": False, "error": str(exc)})
        raise typer.Exit(code=2) from exc
    _echo(result.to_dict())
    if not result.success:
        raise typer.Exit(code=1)


@app.command("verify")
def verify(
    config_path: Path = typer.Option(Path("config.yaml"), "--config", "-c"),
    verbosity: int = typer.Option(0, "--verbose", "-v", count=True),
) -> None:
    """Проверяет конфигурацию, файл задач и соединение с Dart API."""
    config = _load(config_path, verbosity)
    report: Dict[str, Any] = {"config": config.masked()}
    failed = False
    try:
        document = TaskMasterStore(config.taskmaster.tasks_path).read()
        report["tasks"] = len(document["tasks"])
    except StoreIoError as exc:
        report["tasks_error"] = str(exc)
        failed = True
    try:
        DartClient(config.dart).ping()
        report["dart"] = "ok"
    except RemoteApiError as exc:
        report["dart_error"] = str(exc)
        failed = True
    _echo(report)
    if failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
