"""
Router FastAPI per la manutenzione della numerazione fatture
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Endpoint amministrativi: anteprima del prossimo numero e riparazione
dei numeri duplicati storici. La riparazione va lanciata in finestra
di manutenzione.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.invoice_number import NextInvoiceNumber, RepairReport
from app.services.invoice_number_service import InvoiceNumberAllocator

# Logger per questo modulo
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/invoice-numbers",
    tags=["Manutenzione Numerazione"],
)


def get_allocator() -> InvoiceNumberAllocator:
    """Dependency per ottenere l'allocatore dei numeri fattura."""
    return InvoiceNumberAllocator()


@router.get(
    "/next",
    name="numerazione_prossimo",
    summary="Prossimo numero fattura",
    description="Mostra il numero che verrebbe tentato per primo. Non riserva nulla.",
    response_model=NextInvoiceNumber,
    status_code=status.HTTP_200_OK,
)
async def preview_next_number(
    db: AsyncSession = Depends(get_db),
    allocator: InvoiceNumberAllocator = Depends(get_allocator),
) -> NextInvoiceNumber:
    return await allocator.preview_next(db)


@router.post(
    "/repair",
    name="numerazione_ripara",
    summary="Ripara numeri duplicati",
    description=(
        "Fonde i duplicati dello stesso cliente, rinumera quelli di clienti "
        "diversi e normalizza i suffissi residui."
    ),
    response_model=RepairReport,
    status_code=status.HTTP_200_OK,
)
async def repair_invoice_numbers(
    dry_run: bool = Query(True, description="Se True calcola il report senza salvare"),
    actor: Optional[str] = Query(None, max_length=100, description="Autore registrato nell'audit log"),
    db: AsyncSession = Depends(get_db),
    allocator: InvoiceNumberAllocator = Depends(get_allocator),
) -> RepairReport:
    """
    Esegue la riparazione della numerazione.

    Di default è un dry-run: per applicare le modifiche passare dry_run=false.
    """
    logger.info("Richiesta riparazione numerazione (dry_run=%s, actor=%s)", dry_run, actor)
    return await allocator.repair_duplicates(db, dry_run=dry_run, actor=actor)
