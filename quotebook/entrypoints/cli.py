from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable

from quotebook.bootstrap.container import AppContainer, build_container
from quotebook.bootstrap.exception_handler import instalar_hooks_de_excepcion, manejar_excepcion_global
from quotebook.bootstrap.logging import configure_logging
from quotebook.bootstrap.settings import resolve_log_dir
from quotebook.core.errors import AppError, ConflictIndexError, ValidationError
from quotebook.core.metrics import metrics_registry
from quotebook.domain.models import ConflictChoice, SheetsConfig
from quotebook.infrastructure.notification_sinks import ConsoleNotificationSink

logger = logging.getLogger("quotebook.cli")

EXIT_OK = 0
EXIT_BUSINESS_ERROR = 1
EXIT_UNEXPECTED = 2

_KEEP_CHOICES = {"local": ConflictChoice.KEEP_LOCAL, "remote": ConflictChoice.KEEP_REMOTE}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quotebook", description="Colección de citas sincronizada con Google Sheets")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Añade una cita local")
    add.add_argument("text")
    add.add_argument("category")

    importer = sub.add_parser("import", help="Importa citas desde un fichero JSON")
    importer.add_argument("path", type=Path)

    exporter = sub.add_parser("export", help="Exporta las citas a JSON")
    exporter.add_argument("path", type=Path, nargs="?")

    random_cmd = sub.add_parser("random", help="Muestra una cita aleatoria")
    random_cmd.add_argument("--category", default=None)

    sub.add_parser("last", help="Muestra la última cita aleatoria")

    sub.add_parser("categories", help="Lista las categorías")

    filter_cmd = sub.add_parser("filter", help="Guarda la categoría seleccionada")
    filter_cmd.add_argument("category")

    sub.add_parser("sync", help="Ejecuta un ciclo de sincronización")

    watch = sub.add_parser("watch", help="Sincroniza periódicamente hasta Ctrl+C")
    watch.add_argument("--interval", type=float, default=None)

    conflicts = sub.add_parser("conflicts", help="Gestiona conflictos pendientes")
    conflicts_sub = conflicts.add_subparsers(dest="conflicts_command", required=True)
    conflicts_sub.add_parser("list", help="Lista conflictos pendientes")
    resolve = conflicts_sub.add_parser("resolve", help="Resuelve un conflicto por índice")
    resolve.add_argument("index", type=int)
    resolve.add_argument("--keep", choices=sorted(_KEEP_CHOICES), required=True)

    config = sub.add_parser("config", help="Configura la hoja remota")
    config.add_argument("--spreadsheet-id", required=True)
    config.add_argument("--credentials", required=True)
    config.add_argument("--worksheet", default="quotes")
    config.add_argument("--interval", type=float, default=30.0)
    return parser


def _write(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, indent=2) + "\n")


def _cmd_add(container: AppContainer, args: argparse.Namespace) -> int:
    record = container.quotes.add_quote(args.text, args.category)
    _write(record.to_dict())
    return EXIT_OK


def _cmd_import(container: AppContainer, args: argparse.Namespace) -> int:
    try:
        raw = args.path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(f"No se pudo leer {args.path}: {exc}") from exc
    accepted = container.quotes.import_json(raw)
    _write({"accepted": accepted})
    return EXIT_OK


def _cmd_export(container: AppContainer, args: argparse.Namespace) -> int:
    content = container.quotes.export_json()
    if args.path is None:
        sys.stdout.write(content + "\n")
    else:
        args.path.write_text(content, encoding="utf-8")
        _write({"exported": len(container.store), "path": str(args.path)})
    return EXIT_OK


def _cmd_random(container: AppContainer, args: argparse.Namespace) -> int:
    record = container.quotes.random_quote(args.category)
    if record is None:
        _write({"message": "No hay citas en esta categoría."})
        return EXIT_OK
    _write({"text": record.text, "category": record.category, "id": record.id})
    return EXIT_OK


def _cmd_last(container: AppContainer, args: argparse.Namespace) -> int:
    record = container.quotes.last_quote()
    if record is None:
        _write({"message": "Todavía no se ha mostrado ninguna cita."})
        return EXIT_OK
    _write({"text": record.text, "category": record.category, "id": record.id})
    return EXIT_OK


def _cmd_categories(container: AppContainer, args: argparse.Namespace) -> int:
    _write({"selected": container.quotes.selected_category(), "categories": container.quotes.list_categories()})
    return EXIT_OK


def _cmd_filter(container: AppContainer, args: argparse.Namespace) -> int:
    _write({"selected": container.quotes.select_category(args.category)})
    return EXIT_OK


def _cmd_sync(container: AppContainer, args: argparse.Namespace) -> int:
    report = container.orchestrator.run_cycle()
    if report is None:
        _write({"status": "SKIPPED"})
        return EXIT_OK
    _write(report.to_dict())
    return EXIT_OK if report.succeeded else EXIT_BUSINESS_ERROR


def _cmd_watch(container: AppContainer, args: argparse.Namespace) -> int:
    scheduler = container.build_scheduler(args.interval)
    container.orchestrator.run_cycle()
    scheduler.start()
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        logger.info("Sincronización periódica interrumpida por el usuario")
    finally:
        scheduler.stop()
        logger.info("Métricas de sincronización", extra={"extra": metrics_registry.snapshot()})
    return EXIT_OK


def _cmd_conflicts(container: AppContainer, args: argparse.Namespace) -> int:
    if args.conflicts_command == "list":
        _write(
            [
                {"index": index, **entry.to_dict()}
                for index, entry in enumerate(container.ledger.pending())
            ]
        )
        return EXIT_OK
    entry = container.ledger.resolve(args.index, _KEEP_CHOICES[args.keep])
    _write({"resolved": entry.id, "keep": args.keep, "pending": container.ledger.count()})
    return EXIT_OK


def _cmd_config(container: AppContainer, args: argparse.Namespace) -> int:
    current = container.config_store.load()
    saved = container.config_store.save(
        SheetsConfig(
            spreadsheet_id=args.spreadsheet_id.strip(),
            credentials_path=args.credentials.strip(),
            device_id=current.device_id if current else "",
            worksheet_name=args.worksheet.strip(),
            sync_interval_seconds=args.interval,
        )
    )
    _write(
        {
            "spreadsheet_id": saved.spreadsheet_id,
            "worksheet": saved.worksheet_name,
            "sync_interval_seconds": saved.sync_interval_seconds,
        }
    )
    return EXIT_OK


_COMMANDS: dict[str, Callable[[AppContainer, argparse.Namespace], int]] = {
    "add": _cmd_add,
    "import": _cmd_import,
    "export": _cmd_export,
    "random": _cmd_random,
    "last": _cmd_last,
    "categories": _cmd_categories,
    "filter": _cmd_filter,
    "sync": _cmd_sync,
    "watch": _cmd_watch,
    "conflicts": _cmd_conflicts,
    "config": _cmd_config,
}


def main(argv: list[str] | None = None, *, container_factory: Callable[..., AppContainer] = build_container) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(resolve_log_dir())
    instalar_hooks_de_excepcion()

    container = container_factory(notifier=ConsoleNotificationSink())
    try:
        return _COMMANDS[args.command](container, args)
    except (ValidationError, ConflictIndexError) as exc:
        logger.warning("Operación rechazada: %s", exc)
        sys.stderr.write(f"{exc}\n")
        return EXIT_BUSINESS_ERROR
    except AppError as exc:
        logger.error("Operación fallida: %s", exc)
        sys.stderr.write(f"{exc}\n")
        return EXIT_BUSINESS_ERROR
    finally:
        container.close()


def run(argv: list[str] | None = None, **kwargs: Any) -> int:
    """Punto de entrada de consola: los fallos no previstos salen con código 2 e id de incidente."""
    try:
        return main(argv, **kwargs)
    except Exception as exc:  # noqa: BLE001
        incident_id = manejar_excepcion_global(type(exc), exc, exc.__traceback__)
        sys.stderr.write(f"Error inesperado. ID de incidente: {incident_id}\n")
        return EXIT_UNEXPECTED
