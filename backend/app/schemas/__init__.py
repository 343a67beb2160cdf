"""
Schemas Pydantic per il progetto Paper Trade CRM

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione delle risposte API.
"""

from app.schemas.customer import CustomerCreate, CustomerList, CustomerRead
from app.schemas.invoice import (
    InvoiceCreate,
    InvoiceItemCreate,
    InvoiceItemRead,
    InvoiceList,
    InvoiceRead,
    InvoiceStatus,
)
from app.schemas.invoice_number import (
    ChangeAction,
    InvoiceNumberChange,
    NextInvoiceNumber,
    RepairReport,
    SkippedGroup,
)

__all__ = [
    "CustomerCreate",
    "CustomerList",
    "CustomerRead",
    "InvoiceCreate",
    "InvoiceItemCreate",
    "InvoiceItemRead",
    "InvoiceList",
    "InvoiceRead",
    "InvoiceStatus",
    "ChangeAction",
    "InvoiceNumberChange",
    "NextInvoiceNumber",
    "RepairReport",
    "SkippedGroup",
]
