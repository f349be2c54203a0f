"""
CLI: importa definiciones de feeds desde un documento de servicio (.atomsvc).

Cada <collection href=...> del documento se registra como un feed; el tipo se
detecta desde la URL y el titulo. Si la URL ya existe, se actualizan nombre
y tipo.

Ejecucion:
  python scripts/import_feeds.py reportes.atomsvc
  python scripts/import_feeds.py reportes.atomsvc --dry-run
  python scripts/import_feeds.py --link 3 7        # feed PROJECTS 3 -> detalle 7
  python scripts/import_feeds.py --unlink 3
  python scripts/import_feeds.py --test 3          # prueba de conectividad
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raiz `feedsync/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_API_ROOT.parent / ".env", override=False)

from feedsync.application.services.sync_settings import load_sync_settings
from feedsync.application.use_cases.feed_sync_use_cases import FeedSyncUseCases
from feedsync.infrastructure.database.session import AsyncSessionLocal, close_db, get_db, init_db
from feedsync.infrastructure.external.report_feeds.feed_client import build_feed_client_from_settings
from feedsync.infrastructure.external.report_feeds.service_document import parse_service_document
from feedsync.infrastructure.repositories.feed_repository import FeedRepository
from feedsync.shared.exceptions.base import AppException
from feedsync.shared.exceptions.domain import FeedNotFound


async def import_service_document(path: Path, dry_run: bool = False) -> int:
    definitions = parse_service_document(path.read_bytes())
    logger.info(f"{len(definitions)} feeds encontrados en {path.name}")

    if dry_run:
        for definition in definitions:
            logger.info(f"[dry-run] {definition.kind.value}: {definition.name}")
        return len(definitions)

    created = 0
    async for db in get_db():
        repo = FeedRepository(db)
        for definition in definitions:
            _, is_new = await repo.upsert_definition(definition.name, definition.kind, definition.feed_url)
            created += int(is_new)
    logger.success(f"Feeds importados: {created} nuevos, {len(definitions) - created} actualizados")
    return len(definitions)


async def link_feeds(summary_id: int, detail_id: Optional[int]) -> None:
    async for db in get_db():
        repo = FeedRepository(db)
        if detail_id is None:
            if await repo.unlink_detail_feed(summary_id) is None:
                raise FeedNotFound(summary_id)
            logger.success(f"Feed {summary_id} desenlazado")
        else:
            await repo.link_detail_feed(summary_id, detail_id)
            logger.success(f"Feed {summary_id} enlazado al detalle {detail_id}")


async def test_feed_connectivity(feed_id: int) -> bool:
    async with AsyncSessionLocal() as db:
        feed = await FeedRepository(db).get_by_id(feed_id)
        sync_settings = await load_sync_settings(db)
    if feed is None:
        raise FeedNotFound(feed_id)

    client = build_feed_client_from_settings()
    try:
        result = await FeedSyncUseCases(AsyncSessionLocal, client).test_feed(feed.feed_url, sync_settings)
    finally:
        client.close()
    print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))
    return result.success


def _report(error: AppException) -> int:
    logger.error(f"{error.error_code}: {error.message}")
    print(json.dumps(error.to_dict(), indent=2, ensure_ascii=False, default=str))
    return 1


async def _main(args: argparse.Namespace) -> int:
    is_import = not args.link and args.unlink is None and args.test is None
    if is_import and args.dry_run:
        # Solo lee el documento: no hace falta la base
        try:
            await import_service_document(Path(args.path), dry_run=True)
        except AppException as e:
            return _report(e)
        return 0

    await init_db()
    try:
        if args.link:
            await link_feeds(args.link[0], args.link[1])
        elif args.unlink is not None:
            await link_feeds(args.unlink, None)
        elif args.test is not None:
            return 0 if await test_feed_connectivity(args.test) else 1
        else:
            await import_service_document(Path(args.path), dry_run=args.dry_run)
        return 0
    except AppException as e:
        return _report(e)
    finally:
        await close_db()


def main() -> int:
    parser = argparse.ArgumentParser(description="Importa feeds desde un documento .atomsvc")
    parser.add_argument("path", nargs="?", help="Ruta al documento de servicio (.atomsvc)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Solo muestra los feeds detectados (no escribe en la base).",
    )
    parser.add_argument(
        "--link",
        nargs=2,
        type=int,
        metavar=("SUMMARY_ID", "DETAIL_ID"),
        help="Enlaza un feed PROJECTS con su feed PROJECT_DETAIL.",
    )
    parser.add_argument("--unlink", type=int, metavar="SUMMARY_ID", help="Quita el feed de detalle enlazado.")
    parser.add_argument("--test", type=int, metavar="FEED_ID", help="Prueba la conectividad de un feed.")
    args = parser.parse_args()

    if not (args.path or args.link or args.unlink is not None or args.test is not None):
        parser.error("Indica la ruta del documento o una de --link/--unlink/--test")

    return asyncio.run(_main(args))


if __name__ == "__main__":
    raise SystemExit(main())
