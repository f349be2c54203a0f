"""
Casos de uso del pipeline de un feed: URL -> fetch -> parse -> map -> (detalle) -> upsert.
"""
import asyncio
from typing import Any, Callable, List, Optional

from loguru import logger
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedsync.application.dto.sync_dto import FeedTestResultDTO
from feedsync.application.services.change_detector import RecordUpsertEngine, UpsertOutcome
from feedsync.application.services.detail_enricher import DetailEnricher, apply_detail
from feedsync.application.services.field_mapper import map_entry
from feedsync.application.services.sync_settings import SyncSettings
from feedsync.infrastructure.external.report_feeds.entry_parser import parse_entries
from feedsync.infrastructure.external.report_feeds.types import Entry, SyncCounts
from feedsync.infrastructure.external.report_feeds.url_templater import (
    apply_dynamic_dates,
    clean_template,
    inject_location_filter,
)
from feedsync.infrastructure.repositories.feed_repository import FeedRepository
from feedsync.shared.constants.sync_constants import RecordKind
from feedsync.shared.exceptions.sync import MappingError, SyncError


class FeedSyncUseCases:
    """
    Ejecuta el pipeline completo para un feed dentro de una corrida.

    Cada registro se persiste en su propia transaccion: si la corrida falla
    a mitad de camino, lo ya escrito queda escrito (re-ejecutar es idempotente
    por external_id).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        client: Any,
        *,
        enricher: Optional[DetailEnricher] = None,
        upsert_engine: Optional[RecordUpsertEngine] = None,
        parse: Callable[[bytes], List[Entry]] = parse_entries,
    ):
        self._session_factory = session_factory
        self._client = client
        self._parse = parse
        self._enricher = enricher or DetailEnricher(client, parse=parse)
        self._upsert_engine = upsert_engine or RecordUpsertEngine()

    def build_feed_url(self, feed_url: str, sync_settings: SyncSettings) -> str:
        """Limpia la plantilla y aplica fechas dinamicas y filtro de ubicacion."""
        cleaned = clean_template(feed_url, sync_settings.preserve_multi_value)
        if cleaned.removed:
            logger.info(f"Parametros removidos de la plantilla: {sorted(cleaned.removed)}")
        url = apply_dynamic_dates(cleaned.url, sync_settings.lookback_days)
        if sync_settings.locations:
            logger.info(f"Aplicando filtro de ubicacion: {', '.join(sync_settings.locations)}")
            url = inject_location_filter(url, sync_settings.locations)
        return url

    async def resolve_detail_template(self, db: AsyncSession, feed: Any, kind: RecordKind, sync_settings: SyncSettings) -> Optional[str]:
        """
        Retorna la plantilla de detalle (con fechas aplicadas) si corresponde
        sync adaptativo: configuracion habilitada, feed de proyectos enlazado
        y feed de detalle activo.
        """
        if RecordKind(kind) != RecordKind.PROJECTS:
            return None
        if not sync_settings.adaptive_sync_enabled:
            logger.info(f"Sync adaptativo deshabilitado (feed {feed.id})")
            return None

        detail_feed = await FeedRepository(db).get_detail_feed(feed)
        if detail_feed is None:
            logger.info(f"Feed {feed.id} sin feed de detalle enlazado")
            return None
        if not detail_feed.is_active:
            logger.info(f"Feed de detalle {detail_feed.id} enlazado pero inactivo")
            return None

        logger.info(f"Sync adaptativo: detalles desde '{detail_feed.name}'")
        return apply_dynamic_dates(detail_feed.feed_url, sync_settings.lookback_days)

    async def fetch_entries(self, url: str) -> List[Entry]:
        data = await asyncio.to_thread(self._client.fetch, url)
        return self._parse(data)

    async def sync_feed(self, feed: Any, kind: RecordKind, run_id: int, sync_settings: SyncSettings) -> SyncCounts:
        """
        Sincroniza un feed completo.

        Errores de fetch/parse se propagan (fatales para la corrida);
        los errores de una entrada se registran y se omite esa entrada.
        """
        kind = RecordKind(kind)
        log = logger.bind(run_id=run_id, kind=kind.value, feed_id=feed.id)

        async with self._session_factory() as db:
            detail_template = await self.resolve_detail_template(db, feed, kind, sync_settings)

        url = self.build_feed_url(feed.feed_url, sync_settings)
        entries = await self.fetch_entries(url)
        log.info(f"Feed '{feed.name}': {len(entries)} entradas")

        counts = SyncCounts(feeds=[feed.id])
        for index, entry in enumerate(entries):
            counts.total += 1
            try:
                row = map_entry(kind, entry)
                if detail_template:
                    detail = await self._enricher.fetch_detail(detail_template, row["external_id"])
                    if detail is not None:
                        row = apply_detail(row, detail)

                async with self._session_factory() as db:
                    outcome = await self._upsert_engine.upsert(db, kind, run_id, row)
                    await db.commit()
            except MappingError as e:
                counts.failed += 1
                log.error(f"Entrada {index} omitida (mapeo): {e.message}")
                continue
            except DBAPIError:
                # La base caida no es un problema de la entrada: falla la corrida
                raise
            except Exception as e:
                counts.failed += 1
                log.error(f"Entrada {index} omitida: {type(e).__name__}: {e}")
                continue

            if outcome == UpsertOutcome.CREATED:
                counts.created += 1
            elif outcome == UpsertOutcome.UPDATED:
                counts.updated += 1
            else:
                counts.unchanged += 1

        log.info(
            f"Feed '{feed.name}' procesado: total={counts.total} creados={counts.created} "
            f"actualizados={counts.updated} sin_cambios={counts.unchanged} omitidos={counts.failed}"
        )
        return counts

    async def test_feed(self, feed_url: str, sync_settings: SyncSettings) -> FeedTestResultDTO:
        """
        Prueba la conectividad de un feed: descarga la URL con fechas dinamicas
        y retorna la cantidad de registros y los campos de muestra.
        """
        url = apply_dynamic_dates(feed_url, sync_settings.lookback_days)
        try:
            entries = await self.fetch_entries(url)
        except SyncError as e:
            logger.warning(f"Prueba de feed fallida: {e.message}")
            return FeedTestResultDTO(success=False, error=e.message)

        sample_fields = list(entries[0].keys()) if entries else []
        return FeedTestResultDTO(success=True, record_count=len(entries), sample_fields=sample_fields)
