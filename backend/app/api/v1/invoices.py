"""
Router FastAPI per la Fatturazione
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Definisce gli endpoint API per la registrazione delle vendite
e la consultazione delle fatture.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.invoice import InvoiceCreate, InvoiceList, InvoiceRead, InvoiceStatus
from app.services.invoice_service import InvoiceService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanza del service
invoice_service = InvoiceService()

# Router con prefix e tag
router = APIRouter(
    prefix="/invoices",
    tags=["Fatturazione"],
)


@router.get(
    "/",
    name="fatture_lista",
    summary="Lista fatture",
    description="Recupera la lista paginata delle fatture con filtri per cliente e stato.",
    response_model=InvoiceList,
    status_code=status.HTTP_200_OK,
)
async def get_invoices(
    customer_id: Optional[uuid.UUID] = Query(None, description="Filtro per cliente"),
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status", description="Filtro per stato"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(10, ge=1, le=100, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceList:
    return await invoice_service.get_all(
        db=db,
        customer_id=customer_id,
        status_filter=status_filter,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/number/{invoice_number}",
    name="fattura_per_numero",
    summary="Fattura per numero",
    description="Recupera una fattura cercandola per numero.",
    response_model=InvoiceRead,
    status_code=status.HTTP_200_OK,
)
async def get_invoice_by_number(
    invoice_number: str = Path(..., description="Numero fattura (es. 1042)"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    return await invoice_service.get_by_invoice_number(db=db, invoice_number=invoice_number)


@router.get(
    "/{invoice_id}",
    name="fattura_dettaglio",
    summary="Dettaglio fattura",
    response_model=InvoiceRead,
    status_code=status.HTTP_200_OK,
)
async def get_invoice(
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    return await invoice_service.get_by_id(db=db, invoice_id=invoice_id)


@router.post(
    "/",
    name="crea_fattura",
    summary="Registra vendita",
    description="Crea una fattura assegnando automaticamente il numero.",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    data: InvoiceCreate,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    """
    Registra una vendita.

    Il numero fattura è assegnato dal server. Se la numerazione non
    riesce dopo i tentativi previsti la risposta è 503 e la richiesta
    può essere ripetuta.
    """
    return await invoice_service.create(db=db, data=data)


@router.delete(
    "/{invoice_id}",
    name="elimina_fattura",
    summary="Elimina fattura",
    description="Elimina una fattura se non ha incassi registrati.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_invoice(
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await invoice_service.delete(db=db, invoice_id=invoice_id)
