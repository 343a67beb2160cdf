"""
Service Layer per l'anagrafica clienti
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Definisce la logica di business per la gestione dei clienti
intestatari delle fatture.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, DuplicateError, NotFoundError
from app.models import Customer
from app.schemas.customer import CustomerCreate

# Logger per questo modulo
logger = logging.getLogger(__name__)


class CustomerService:
    """
    Service per la gestione dei clienti.

    Implementa:
    - Validazione Proattiva: controllo email duplicata prima del create
    - Lista paginata con ricerca
    """

    async def get_all(
        self,
        db: AsyncSession,
        page: int = 1,
        per_page: int = 10,
        search: Optional[str] = None,
    ) -> tuple[list[Customer], int]:
        """
        Recupera la lista paginata dei clienti.

        Args:
            db: Sessione database
            page: Numero pagina (default 1)
            per_page: Elementi per pagina (default 10)
            search: Termine di ricerca su nome, telefono ed email

        Returns:
            Tuple di (lista clienti, totale count)
        """
        conditions = []
        if search:
            search_term = f"%{search}%"
            conditions.append(or_(
                Customer.name.ilike(search_term),
                Customer.phone.ilike(search_term),
                Customer.email.ilike(search_term),
            ))

        query = select(Customer).order_by(Customer.name.asc())
        if conditions:
            query = query.where(*conditions)
        query = query.offset((page - 1) * per_page).limit(per_page)
        result = await db.execute(query)
        customers = list(result.scalars().all())

        count_query = select(func.count()).select_from(Customer)
        if conditions:
            count_query = count_query.where(*conditions)
        total = (await db.execute(count_query)).scalar() or 0

        logger.info("Recuperati %s clienti su %s totali (pagina %s)", len(customers), total, page)
        return customers, total

    async def get_by_id(
        self,
        db: AsyncSession,
        customer_id: uuid.UUID,
    ) -> Customer:
        """
        Recupera un cliente tramite ID.

        Raises:
            NotFoundError: Se il cliente non esiste
        """
        result = await db.execute(select(Customer).where(Customer.id == customer_id))
        customer = result.scalar_one_or_none()

        if customer is None:
            logger.warning("Cliente non trovato: %s", customer_id)
            raise NotFoundError(f"Cliente con ID {customer_id} non trovato")

        return customer

    async def create(
        self,
        db: AsyncSession,
        customer_data: CustomerCreate,
    ) -> Customer:
        """
        Crea un nuovo cliente.

        Args:
            db: Sessione database
            customer_data: Dati del cliente da creare

        Returns:
            Oggetto Customer appena creato

        Raises:
            DuplicateError: Se l'email è già in uso
            ConflictError: Se il database genera un errore imprevisto
        """
        if customer_data.email:
            existing = await db.scalar(
                select(Customer.id).where(func.lower(Customer.email) == customer_data.email.lower())
            )
            if existing:
                logger.warning(
                    "Tentativo di creare cliente con email duplicata: %s (esistente: %s)",
                    customer_data.email, existing,
                )
                raise DuplicateError(f"Email '{customer_data.email}' già registrata per un altro cliente")

        customer = Customer(**customer_data.model_dump())

        try:
            db.add(customer)
            await db.commit()
        except IntegrityError as e:
            logger.error("Errore IntegrityError creazione cliente: %s - %s", e.__class__.__name__, e.orig)
            await db.rollback()
            if "email" in str(e.orig).lower():
                raise DuplicateError("Email già registrata per un altro cliente")
            raise ConflictError("Errore durante la creazione del cliente")
        except SQLAlchemyError as e:
            logger.error("Errore SQLAlchemy creazione cliente: %s - %s", e.__class__.__name__, e)
            await db.rollback()
            raise ConflictError("Errore del database durante la creazione del cliente")

        logger.info("Creato nuovo cliente: %s - %s", customer.id, customer.name)
        return customer
