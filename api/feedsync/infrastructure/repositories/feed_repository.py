"""
Repositorio de feeds configurados.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feedsync.infrastructure.database.models import FeedModel
from feedsync.shared.constants.sync_constants import FeedKind
from feedsync.shared.exceptions.domain import FeedLinkError


class FeedRepository:
    """Repositorio para gestionar feeds en la base de datos."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_kind(self, kind: str, active_only: bool = True) -> List[FeedModel]:
        """
        Obtiene los feeds de un tipo, en orden de alta.
        """
        query = select(FeedModel).where(FeedModel.kind == str(getattr(kind, "value", kind)))
        if active_only:
            query = query.where(FeedModel.is_active == True)  # noqa: E712
        result = await self.db.execute(query.order_by(FeedModel.id))
        return list(result.scalars().all())

    async def get_by_id(self, feed_id: int) -> Optional[FeedModel]:
        return await self.db.get(FeedModel, feed_id)

    async def get_by_url(self, feed_url: str) -> Optional[FeedModel]:
        result = await self.db.execute(select(FeedModel).where(FeedModel.feed_url == feed_url))
        return result.scalars().first()

    async def get_all(self) -> List[FeedModel]:
        result = await self.db.execute(select(FeedModel).order_by(FeedModel.id))
        return list(result.scalars().all())

    async def get_detail_feed(self, summary_feed: FeedModel) -> Optional[FeedModel]:
        """
        Retorna el feed PROJECT_DETAIL enlazado a un feed PROJECTS, si existe.
        """
        if summary_feed.detail_feed_id is None:
            return None
        return await self.db.get(FeedModel, summary_feed.detail_feed_id)

    async def upsert_definition(self, name: str, kind: str, feed_url: str) -> Tuple[FeedModel, bool]:
        """
        Crea o actualiza un feed identificado por su URL.

        Returns:
            (feed, created)
        """
        kind_value = str(getattr(kind, "value", kind))
        existing = await self.get_by_url(feed_url)
        if existing:
            existing.name = name
            existing.kind = kind_value
            await self.db.flush()
            return existing, False

        feed = FeedModel(name=name, kind=kind_value, feed_url=feed_url, is_active=True)
        self.db.add(feed)
        await self.db.flush()
        logger.info(f"Feed '{name}' registrado como {kind_value} (id={feed.id})")
        return feed, True

    async def link_detail_feed(self, summary_feed_id: int, detail_feed_id: int) -> FeedModel:
        """
        Enlaza un feed PROJECTS con su feed PROJECT_DETAIL (sync adaptativo).

        Raises:
            FeedLinkError: Si algun feed no existe o los tipos no corresponden
        """
        summary = await self.get_by_id(summary_feed_id)
        detail = await self.get_by_id(detail_feed_id)
        if summary is None or detail is None:
            raise FeedLinkError("Feed not found", summary_feed_id, detail_feed_id)
        if summary.kind != FeedKind.PROJECTS.value:
            raise FeedLinkError(
                f"Summary feed must be of kind {FeedKind.PROJECTS.value}, got {summary.kind}",
                summary_feed_id,
                detail_feed_id,
            )
        if detail.kind != FeedKind.PROJECT_DETAIL.value:
            raise FeedLinkError(
                f"Detail feed must be of kind {FeedKind.PROJECT_DETAIL.value}, got {detail.kind}",
                summary_feed_id,
                detail_feed_id,
            )

        summary.detail_feed_id = detail.id
        await self.db.flush()
        logger.info(f"Feed {summary.id} enlazado al feed de detalle {detail.id}")
        return summary

    async def unlink_detail_feed(self, summary_feed_id: int) -> Optional[FeedModel]:
        summary = await self.get_by_id(summary_feed_id)
        if summary is None:
            return None
        summary.detail_feed_id = None
        await self.db.flush()
        return summary

    async def set_active(self, feed_id: int, is_active: bool) -> Optional[FeedModel]:
        feed = await self.get_by_id(feed_id)
        if feed is None:
            return None
        feed.is_active = is_active
        await self.db.flush()
        return feed

    async def touch_last_sync(self, feed_id: int, when: datetime) -> None:
        """Marca el ultimo sync exitoso de un feed."""
        feed = await self.get_by_id(feed_id)
        if feed is not None:
            feed.last_sync = when
            await self.db.flush()
