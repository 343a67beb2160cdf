"""
Modello SQLAlchemy per l'anagrafica clienti
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.invoice import Invoice


class Customer(Base, UUIDMixin, TimestampMixin):
    """
    Cliente del distributore.

    Un cliente può avere molte fatture ma non ne governa il ciclo di vita:
    la cancellazione di un cliente con fatture è bloccata dal vincolo
    ON DELETE RESTRICT.

    Attributes:
        id: UUID primary key
        name: Ragione sociale o nome del cliente
        phone: Telefono (opzionale)
        email: Email (opzionale, unica se presente)
    """

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Ragione sociale o nome del cliente",
    )

    phone: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        doc="Telefono",
    )

    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        doc="Email di contatto",
    )

    invoices: Mapped[List["Invoice"]] = relationship(
        "Invoice",
        back_populates="customer",
        lazy="noload",
        doc="Fatture intestate al cliente",
    )

    __table_args__ = (
        Index("ix_customers_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name={self.name})>"
