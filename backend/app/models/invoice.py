"""
Modelli SQLAlchemy per la Fatturazione
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Contiene:
- Invoice: Fattura di vendita
- InvoiceItem: Righe della fattura (articoli venduti)
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, List

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.customer import Customer


CENTS = Decimal("0.01")

# Stati fattura (valori persistiti)
STATUS_DRAFT = "DRAFT"
STATUS_OPEN = "OPEN"
STATUS_PARTIAL = "PARTIAL"
STATUS_PAID = "PAID"
STATUS_CANCELLED = "CANCELLED"


def quantize_amount(value: Decimal) -> Decimal:
    """Arrotonda un importo a 2 decimali (half-up)."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def settle(total_amount: Decimal, paid_amount: Decimal, current_status: str) -> tuple[Decimal, str]:
    """
    Ricalcola saldo e stato di una fattura dato l'importo già incassato.

    Returns:
        tuple: (balance, status)
    """
    total_amount = quantize_amount(total_amount)
    paid_amount = quantize_amount(paid_amount)
    balance = max(total_amount - paid_amount, Decimal("0.00"))

    if current_status == STATUS_CANCELLED:
        return balance, current_status
    if total_amount > 0 and balance == 0:
        return balance, STATUS_PAID
    if paid_amount > 0:
        return balance, STATUS_PARTIAL
    if current_status in (STATUS_PAID, STATUS_PARTIAL):
        return balance, STATUS_OPEN
    return balance, current_status


class Invoice(Base, UUIDMixin, TimestampMixin):
    """
    Modello per le fatture di vendita.

    Il numero fattura è l'identificativo di business: unico a livello di
    database (vincolo UNIQUE), assegnato atomicamente all'inserimento
    dall'allocatore e mai riassegnato se non da una riparazione
    amministrativa registrata nell'audit log.

    Attributes:
        id: UUID primary key, immutabile
        invoice_number: Numero fattura (es. "1042")
        customer_id: UUID del cliente
        invoice_date: Data emissione
        due_date: Data scadenza (opzionale)
        tax_amount: Imposte
        discount_amount: Sconto
        total_amount: Totale (righe + imposte - sconto)
        balance: Residuo da incassare
        status: DRAFT, OPEN, PARTIAL, PAID, CANCELLED
        notes: Note
        created_at: Data/ora creazione record (immutabile)
        updated_at: Data/ora ultimo aggiornamento

    Relationships:
        customer: Cliente intestatario
        items: Righe della fattura (cancellate con la fattura)
    """

    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        doc="Numero fattura (vincolo unique)",
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        doc="UUID del cliente intestatario",
    )

    invoice_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        default=date.today,
        doc="Data emissione fattura",
    )

    due_date: Mapped[date | None] = mapped_column(
        Date,
        nullable=True,
        doc="Data scadenza pagamento",
    )

    # ------------------------------------------------------------
    # Colonne Importi
    # ------------------------------------------------------------
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Imposte",
    )

    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Sconto",
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        doc="Totale fattura",
    )

    balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        doc="Residuo da incassare",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=STATUS_OPEN,
        doc="Stato: DRAFT, OPEN, PARTIAL, PAID, CANCELLED",
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        doc="Note",
    )

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    customer: Mapped["Customer"] = relationship(
        "Customer",
        back_populates="invoices",
        lazy="selectin",
        doc="Cliente intestatario",
    )

    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceItem.position",
        doc="Righe della fattura",
    )

    @property
    def paid_amount(self) -> Decimal:
        """Importo già incassato."""
        return self.total_amount - self.balance

    __table_args__ = (
        Index("ix_invoices_customer_id", "customer_id"),
        Index("ix_invoices_invoice_date", "invoice_date"),
        CheckConstraint("total_amount >= 0", name="ck_invoices_total_positive"),
        CheckConstraint("balance >= 0", name="ck_invoices_balance_positive"),
    )

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.invoice_number}, total={self.total_amount})>"


class InvoiceItem(Base, UUIDMixin, TimestampMixin):
    """
    Riga della fattura.

    Appartiene esclusivamente alla fattura padre (ON DELETE CASCADE).

    Attributes:
        invoice_id: UUID della fattura padre
        position: Posizione della riga nella fattura
        description: Descrizione articolo
        sku: Codice articolo (opzionale)
        quantity: Quantità
        unit_price: Prezzo unitario
        line_total: quantity * unit_price
    """

    __tablename__ = "invoice_items"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="UUID della fattura padre",
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        doc="Posizione della riga nella fattura",
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        doc="Descrizione articolo",
    )

    sku: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        doc="Codice articolo",
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        doc="Quantità",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        doc="Prezzo unitario",
    )

    line_total: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        doc="Totale riga",
    )

    invoice: Mapped["Invoice"] = relationship(
        "Invoice",
        back_populates="items",
        doc="Fattura padre",
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_invoice_items_unit_price_positive"),
    )

    def __repr__(self) -> str:
        return f"<InvoiceItem(id={self.id}, invoice_id={self.invoice_id}, line_total={self.line_total})>"
