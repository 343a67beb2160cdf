"""
Modelli Database SQLAlchemy
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Import centralizzato di tutti i modelli per Alembic e usage generico.

Modelli:
- Customer: Anagrafica clienti
- Invoice: Fatture di vendita
- InvoiceItem: Righe fattura
- AuditLog: Registro delle modifiche amministrative
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from app.models.customer import Customer
from app.models.invoice import Invoice, InvoiceItem
from app.models.audit_log import AuditLog

__all__ = [
    "Base",
    "Customer",
    "Invoice",
    "InvoiceItem",
    "AuditLog",
]
