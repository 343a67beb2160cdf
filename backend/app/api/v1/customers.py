"""
Router FastAPI per l'anagrafica clienti
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.customer import CustomerCreate, CustomerList, CustomerRead
from app.services.customer_service import CustomerService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Router con prefix e tag
router = APIRouter(
    prefix="/customers",
    tags=["Clienti"],
)


def get_customer_service() -> CustomerService:
    """Dependency per ottenere un'istanza del CustomerService."""
    return CustomerService()


@router.get(
    "/",
    name="clienti_lista",
    summary="Lista clienti",
    description="Recupera la lista paginata dei clienti con eventuale filtro di ricerca.",
    response_model=CustomerList,
    status_code=status.HTTP_200_OK,
)
async def get_customers(
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(10, ge=1, le=100, description="Elementi per pagina"),
    search: Optional[str] = Query(None, description="Termine di ricerca"),
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> CustomerList:
    customers, total = await service.get_all(db=db, page=page, per_page=per_page, search=search)
    return CustomerList(
        items=[CustomerRead.model_validate(c) for c in customers],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=(total + per_page - 1) // per_page if total > 0 else 1,
    )


@router.get(
    "/{customer_id}",
    name="cliente_dettaglio",
    summary="Dettaglio cliente",
    response_model=CustomerRead,
    status_code=status.HTTP_200_OK,
)
async def get_customer(
    customer_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> CustomerRead:
    """
    Recupera i dettagli di un cliente.

    Raises:
        NotFoundError: Se il cliente non esiste
    """
    customer = await service.get_by_id(db=db, customer_id=customer_id)
    return CustomerRead.model_validate(customer)


@router.post(
    "/",
    name="cliente_crea",
    summary="Crea cliente",
    response_model=CustomerRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_customer(
    customer_data: CustomerCreate,
    db: AsyncSession = Depends(get_db),
    service: CustomerService = Depends(get_customer_service),
) -> CustomerRead:
    """
    Crea un nuovo cliente.

    Raises:
        DuplicateError: Se l'email è già registrata
    """
    customer = await service.create(db=db, customer_data=customer_data)
    return CustomerRead.model_validate(customer)
