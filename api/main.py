"""
CLI: sincronizacion de feeds del report server -> base de datos.

Uso recomendado:
  - Ejecutar como job (cron / task scheduler / manual).
  - Cada tipo de registro corre como una tarea independiente; tipos distintos
    corren en paralelo, el mismo tipo nunca dos veces a la vez.

Ejecucion:
  python main.py                      # sync de todos los tipos
  python main.py --kind PROJECTS
  python main.py --recover-only       # solo recuperacion de corridas interrumpidas
  python main.py --cancel 42
  python main.py --status
  python main.py --history --limit 20
  python main.py --changes 42
  python main.py --clear-history

Codigo de salida: 0 si todas las corridas solicitadas terminaron COMPLETED.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, List

from dotenv import load_dotenv
from loguru import logger

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_API_ROOT = Path(__file__).resolve().parent
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_API_ROOT.parent / ".env", override=False)

from feedsync.application.use_cases.sync_orchestrator import SyncOrchestrator
from feedsync.core.events import shutdown_handler, startup_handler
from feedsync.infrastructure.database.session import AsyncSessionLocal
from feedsync.infrastructure.external.report_feeds.feed_client import build_feed_client_from_settings
from feedsync.shared.constants.sync_constants import RecordKind, SYNC_ALL, SyncStatus, TriggerSource
from feedsync.shared.exceptions.base import AppException


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sync de feeds del report server")
    parser.add_argument(
        "--kind",
        default=SYNC_ALL,
        choices=[SYNC_ALL] + [k.value for k in RecordKind],
        help="Tipo de registro a sincronizar (por defecto ALL).",
    )
    parser.add_argument(
        "--trigger",
        default=TriggerSource.MANUAL.value,
        choices=[t.value for t in TriggerSource],
        help="Origen de la solicitud (se guarda en la corrida).",
    )
    parser.add_argument("--recover-only", action="store_true", help="Solo ejecuta la recuperacion de arranque.")
    parser.add_argument("--cancel", type=int, metavar="RUN_ID", help="Cancela una corrida en vuelo.")
    parser.add_argument("--status", action="store_true", help="Muestra el estado por tipo.")
    parser.add_argument("--history", action="store_true", help="Lista las ultimas corridas.")
    parser.add_argument("--limit", type=int, default=50, help="Cantidad de corridas para --history.")
    parser.add_argument("--changes", type=int, metavar="RUN_ID", help="Muestra los cambios de una corrida.")
    parser.add_argument("--clear-history", action="store_true", help="Borra el historial de corridas y cambios.")
    return parser


def _report(error: AppException) -> int:
    logger.error(f"{error.error_code}: {error.message}")
    _print_json(error.to_dict())
    return 1


def _is_sync_request(args: argparse.Namespace) -> bool:
    """Solo el sync necesita el cliente de feeds; las consultas van directo a la base."""
    return not (
        args.recover_only
        or args.cancel is not None
        or args.status
        or args.history
        or args.changes is not None
        or args.clear_history
    )


async def _run(args: argparse.Namespace) -> int:
    client = None
    if _is_sync_request(args):
        try:
            client = build_feed_client_from_settings()
        except AppException as e:
            return _report(e)

    orchestrator = SyncOrchestrator(AsyncSessionLocal, client)
    startup = startup_handler(orchestrator)
    shutdown = shutdown_handler(orchestrator, client)

    await startup()
    try:
        if args.recover_only:
            return 0

        if args.cancel is not None:
            run = await orchestrator.cancel_sync(args.cancel)
            _print_json(run.model_dump(mode="json"))
            return 0

        if args.status:
            status = await orchestrator.get_status()
            _print_json(status.model_dump(mode="json"))
            return 0

        if args.history:
            runs = await orchestrator.get_history(limit=args.limit)
            _print_json([r.model_dump(mode="json") for r in runs])
            return 0

        if args.changes is not None:
            changes = await orchestrator.get_changes(args.changes)
            _print_json([c.model_dump(mode="json") for c in changes])
            return 0

        if args.clear_history:
            result = await orchestrator.clear_history()
            _print_json(result.model_dump(mode="json"))
            return 0

        orchestrator.add_listener(
            lambda event: logger.info(f"[{event.kind}] {event.event}: {event.message or event.status}")
        )
        run_ids: List[int] = await orchestrator.request_sync(args.kind, triggered_by=args.trigger)
        results = await orchestrator.wait(run_ids)
        for run in results:
            logger.info(
                f"Corrida {run.id} {run.kind}: {run.status} "
                f"(procesados={run.records_processed}, creados={run.records_created}, "
                f"actualizados={run.records_updated}, sin_cambios={run.records_unchanged})"
            )
            if run.error_message:
                logger.error(f"Corrida {run.id}: {run.error_message}")

        all_completed = all(r.status == SyncStatus.COMPLETED.value for r in results)
        return 0 if results and all_completed else 1

    except AppException as e:
        return _report(e)
    finally:
        await shutdown()


def main() -> int:
    args = _build_parser().parse_args()
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
