"""
Modelos de base de datos (ORM).
"""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    text,
)
from sqlalchemy.sql import func

from feedsync.infrastructure.database.session import Base


# Predicado del indice parcial que garantiza una sola corrida en vuelo por tipo
_IN_FLIGHT_PREDICATE = text("status IN ('PENDING', 'RUNNING')")


class FeedModel(Base):
    """
    Fuente configurada: URL plantilla del report server y su tipo.

    detail_feed_id enlaza un feed PROJECTS con su feed PROJECT_DETAIL
    (sync adaptativo).
    """

    __tablename__ = "feeds"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    kind = Column(String(50), nullable=False, index=True)
    feed_url = Column(Text, nullable=False)
    detail_feed_id = Column(Integer, ForeignKey("feeds.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_sync = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Feed(id={self.id}, name={self.name}, kind={self.kind})>"


class ProjectModel(Base):
    """Proyecto canonico (feed PROJECTS, opcionalmente enriquecido con detalle)."""

    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(255), nullable=False, unique=True, index=True)
    client_name = Column(Text, nullable=True)
    project_name = Column(Text, nullable=True)
    budget = Column(Float, nullable=True)
    spent = Column(Float, nullable=True)
    hours_estimate = Column(Float, nullable=True)
    hours_actual = Column(Float, nullable=True)
    hours_remaining = Column(Float, nullable=True)
    status = Column(String(255), default="Unknown", index=True)
    is_active = Column(Boolean, default=True, index=True)
    notes = Column(Text, nullable=True)
    raw_data = Column(Text, nullable=True)  # Entrada original serializada (JSON)
    detail_raw_data = Column(Text, nullable=True)  # Campos de detalle fusionados (JSON)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Project(id={self.id}, external_id={self.external_id}, status={self.status})>"


class OpportunityModel(Base):
    """Oportunidad de venta canonica."""

    __tablename__ = "opportunities"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(255), nullable=False, unique=True, index=True)
    opportunity_name = Column(Text, nullable=True)
    company_name = Column(String(255), nullable=True, index=True)
    sales_rep = Column(String(255), nullable=True, index=True)
    stage = Column(String(255), nullable=True, index=True)
    expected_revenue = Column(Float, nullable=True)
    close_date = Column(String(50), nullable=True)
    probability = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    raw_data = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Opportunity(id={self.id}, external_id={self.external_id}, stage={self.stage})>"


class ServiceTicketModel(Base):
    """Ticket de servicio canonico."""

    __tablename__ = "service_tickets"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String(255), nullable=False, unique=True, index=True)
    summary = Column(Text, nullable=True)
    status = Column(String(255), nullable=True, index=True)
    priority = Column(String(255), nullable=True, index=True)
    assigned_to = Column(String(255), nullable=True, index=True)
    company_name = Column(String(255), nullable=True, index=True)
    board_name = Column(String(255), nullable=True, index=True)
    created_date = Column(String(50), nullable=True)
    last_updated = Column(String(50), nullable=True)
    due_date = Column(String(50), nullable=True)
    hours_estimate = Column(Float, nullable=True)
    hours_actual = Column(Float, nullable=True)
    hours_remaining = Column(Float, nullable=True)
    budget = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    raw_data = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<ServiceTicket(id={self.id}, external_id={self.external_id}, status={self.status})>"


class SyncRunModel(Base):
    """
    Corrida de sync para un tipo de registro.

    Estados posibles:
    - PENDING: solicitada, aun no inicia
    - RUNNING: en ejecucion
    - COMPLETED / FAILED: terminales, no se vuelven a modificar
    """

    __tablename__ = "sync_runs"
    __table_args__ = (
        Index(
            "uq_sync_runs_in_flight_kind",
            "kind",
            unique=True,
            postgresql_where=_IN_FLIGHT_PREDICATE,
            sqlite_where=_IN_FLIGHT_PREDICATE,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(50), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    triggered_by = Column(String(50), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    records_processed = Column(Integer, nullable=False, default=0)
    records_created = Column(Integer, nullable=False, default=0)
    records_updated = Column(Integer, nullable=False, default=0)
    records_unchanged = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<SyncRun(id={self.id}, kind={self.kind}, status={self.status})>"


class SyncChangeModel(Base):
    """Cambio a nivel de campo (o marca de creacion) registrado por una corrida."""

    __tablename__ = "sync_changes"

    id = Column(Integer, primary_key=True, index=True)
    sync_run_id = Column(
        Integer,
        ForeignKey("sync_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False)
    external_id = Column(String(255), nullable=True)
    change_type = Column(String(20), nullable=False)
    field_name = Column(String(100), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<SyncChange(run={self.sync_run_id}, entity={self.entity_type}:{self.entity_id}, type={self.change_type})>"


class SystemSettingsModel(Base):
    """Configuraciones del sistema editables en caliente (clave/valor JSON)."""

    __tablename__ = "system_settings"

    key = Column(String(255), primary_key=True, index=True)
    value = Column(JSON, nullable=False)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
