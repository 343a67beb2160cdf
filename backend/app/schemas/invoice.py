"""
Schemas Pydantic per la Fatturazione
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Contiene:
- Enum: InvoiceStatus
- Schemas per InvoiceItem
- Schemas per Invoice
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    model_validator,
)


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class InvoiceStatus(str, Enum):
    """Stati persistiti della fattura."""
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


# -------------------------------------------------------------------
# Schemas per InvoiceItem
# -------------------------------------------------------------------

class InvoiceItemBase(BaseModel):
    """Schema base per le righe della fattura."""

    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Descrizione articolo",
    )
    sku: Optional[str] = Field(
        None,
        max_length=100,
        description="Codice articolo",
    )
    quantity: Decimal = Field(
        ...,
        gt=0,
        description="Quantità",
    )
    unit_price: Decimal = Field(
        ...,
        ge=0,
        description="Prezzo unitario",
        serialization_alias="unitPrice",
    )

    model_config = ConfigDict(from_attributes=True)


class InvoiceItemCreate(InvoiceItemBase):
    """Schema per la creazione di una riga fattura."""
    pass


class InvoiceItemRead(InvoiceItemBase):
    """Schema per la lettura di una riga fattura."""

    id: uuid.UUID = Field(..., description="UUID della riga")
    invoice_id: uuid.UUID = Field(
        ...,
        description="UUID della fattura",
        serialization_alias="invoiceId",
    )
    position: int = Field(..., description="Posizione della riga")
    line_total: Decimal = Field(
        ...,
        description="Totale riga",
        serialization_alias="lineTotal",
    )


# -------------------------------------------------------------------
# Schemas per Invoice
# -------------------------------------------------------------------

class InvoiceCreate(BaseModel):
    """
    Schema per la registrazione di una vendita.

    Il numero fattura NON è accettato in input: viene assegnato
    dall'allocatore al momento dell'inserimento.
    """

    customer_id: uuid.UUID = Field(..., description="UUID del cliente")
    invoice_date: Optional[date] = Field(
        None,
        description="Data emissione (default: oggi)",
    )
    due_date: Optional[date] = Field(None, description="Data scadenza")
    tax_amount: Decimal = Field(
        default=Decimal("0.00"),
        ge=0,
        description="Imposte",
    )
    discount_amount: Decimal = Field(
        default=Decimal("0.00"),
        ge=0,
        description="Sconto",
    )
    status: InvoiceStatus = Field(
        default=InvoiceStatus.OPEN,
        description="Stato iniziale (DRAFT oppure OPEN)",
    )
    notes: Optional[str] = Field(None, description="Note")
    items: list[InvoiceItemCreate] = Field(
        ...,
        min_length=1,
        description="Righe della fattura",
    )

    @model_validator(mode="after")
    def validate_initial_status(self) -> "InvoiceCreate":
        """Una nuova fattura può nascere solo in bozza o aperta."""
        if self.status not in (InvoiceStatus.DRAFT, InvoiceStatus.OPEN):
            raise ValueError("Lo stato iniziale deve essere DRAFT oppure OPEN")
        if self.due_date and self.invoice_date and self.due_date < self.invoice_date:
            raise ValueError("La data di scadenza non può precedere la data fattura")
        return self


class InvoiceRead(BaseModel):
    """Schema per la lettura di una fattura."""

    id: uuid.UUID = Field(..., description="UUID della fattura")
    invoice_number: str = Field(
        ...,
        description="Numero fattura",
        serialization_alias="invoiceNumber",
    )
    customer_id: uuid.UUID = Field(
        ...,
        description="UUID del cliente",
        serialization_alias="customerId",
    )
    invoice_date: date = Field(..., serialization_alias="invoiceDate")
    due_date: Optional[date] = Field(None, serialization_alias="dueDate")
    tax_amount: Decimal = Field(..., serialization_alias="taxAmount")
    discount_amount: Decimal = Field(..., serialization_alias="discountAmount")
    total_amount: Decimal = Field(..., serialization_alias="totalAmount")
    balance: Decimal
    status: InvoiceStatus
    notes: Optional[str] = None
    created_at: datetime = Field(..., serialization_alias="createdAt")
    items: list[InvoiceItemRead] = Field(default_factory=list)

    @computed_field(alias="paidAmount")
    @property
    def paid_amount(self) -> Decimal:
        """Importo già incassato."""
        return self.total_amount - self.balance

    model_config = ConfigDict(from_attributes=True)


class InvoiceList(BaseModel):
    """Lista paginata di fatture."""

    items: list[InvoiceRead]
    total: int
    page: int
    per_page: int = Field(..., serialization_alias="perPage")
    total_pages: int = Field(..., serialization_alias="totalPages")
