"""
Modello SQLAlchemy per l'audit log
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Traccia le modifiche amministrative ai dati (es. riparazione numerazione fatture).
"""

from __future__ import annotations

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


ACTION_INVOICE_RENUMBER = "INVOICE_RENUMBER"
ACTION_INVOICE_MERGE = "INVOICE_MERGE"
ACTION_INVOICE_DELETE_DUPLICATE = "INVOICE_DELETE_DUPLICATE"


class AuditLog(Base, UUIDMixin, TimestampMixin):
    """
    Voce di audit.

    Attributes:
        actor: Chi ha eseguito l'operazione (utente o processo)
        action_type: Tipo di azione (es. INVOICE_RENUMBER)
        entity_type: Tipo di entità modificata (es. "invoice")
        entity_id: Identificativo dell'entità
        previous_value: Valore precedente (testuale)
        current_value: Valore attuale (testuale)
    """

    __tablename__ = "audit_logs"

    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    previous_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    current_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditLog(action={self.action_type}, entity={self.entity_type}:{self.entity_id})>"
