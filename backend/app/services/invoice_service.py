"""
Service Layer per la Fatturazione
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Definisce la logica di business per la registrazione delle vendite:
creazione fattura con numero assegnato dall'allocatore, consultazione
ed eliminazione.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    NotFoundError,
)
from app.models import Customer, Invoice, InvoiceItem
from app.models.invoice import quantize_amount
from app.schemas.invoice import InvoiceCreate, InvoiceList, InvoiceStatus
from app.services.invoice_number_service import InvoiceNumberAllocator

# Logger per questo modulo
logger = logging.getLogger(__name__)


class InvoiceService:
    """
    Service per la gestione delle operazioni sulle fatture.

    Fornisce metodi asincroni per interagire con il database
    in modo centralizzato, senza dipendenze da FastAPI.

    Implementa:
    - Registrazione vendita con numerazione atomica
    - Calcolo totali riga e fattura
    - Consultazione per ID, per numero e lista paginata
    - Eliminazione delle fatture senza incassi
    """

    def __init__(self, allocator: Optional[InvoiceNumberAllocator] = None) -> None:
        self.allocator = allocator or InvoiceNumberAllocator()

    async def create(
        self,
        db: AsyncSession,
        data: InvoiceCreate,
    ) -> Invoice:
        """
        Registra una vendita creando la fattura.

        Steps:
        1. Verifica che il cliente esista
        2. Costruisce le righe con totale riga (quantità x prezzo)
        3. Calcola il totale (righe + imposte - sconto)
        4. Assegna numero e inserisce tramite l'allocatore
        5. Commit e ricarica con relazioni

        Args:
            db: Sessione database
            data: Dati della vendita

        Returns:
            Invoice: La fattura creata

        Raises:
            NotFoundError: Cliente non trovato
            BusinessValidationError: Totale negativo
            AllocationExhausted: Numerazione non riuscita dopo i tentativi previsti
            ConflictError: Violazione di integrità al commit
        """
        customer = await db.get(Customer, data.customer_id)
        if customer is None:
            raise NotFoundError(f"Cliente {data.customer_id} non trovato")

        items = []
        items_total = Decimal("0.00")
        for position, item_data in enumerate(data.items, start=1):
            line_total = quantize_amount(item_data.quantity * item_data.unit_price)
            items_total += line_total
            items.append(InvoiceItem(
                position=position,
                description=item_data.description,
                sku=item_data.sku,
                quantity=item_data.quantity,
                unit_price=item_data.unit_price,
                line_total=line_total,
            ))

        tax_amount = quantize_amount(data.tax_amount)
        discount_amount = quantize_amount(data.discount_amount)
        total_amount = quantize_amount(items_total + tax_amount - discount_amount)
        if total_amount < 0:
            raise BusinessValidationError(
                f"Lo sconto ({discount_amount}) supera il totale della fattura"
            )

        invoice = Invoice(
            customer_id=customer.id,
            invoice_date=data.invoice_date or date.today(),
            due_date=data.due_date,
            tax_amount=tax_amount,
            discount_amount=discount_amount,
            total_amount=total_amount,
            balance=total_amount,
            status=data.status.value,
            notes=data.notes,
        )
        for item in items:
            invoice.items.append(item)

        invoice_number = await self.allocator.allocate(db, invoice)

        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            logger.error(f"Errore di integrità durante creazione fattura: {e}")
            raise ConflictError("Errore durante la creazione della fattura")

        logger.info(
            "Creata fattura %s per cliente %s (totale %s)",
            invoice_number, data.customer_id, total_amount,
        )
        return await self.get_by_id(db, invoice.id)

    async def get_all(
        self,
        db: AsyncSession,
        customer_id: Optional[uuid.UUID] = None,
        status_filter: Optional[InvoiceStatus] = None,
        page: int = 1,
        per_page: int = 10,
    ) -> InvoiceList:
        """
        Recupera la lista paginata delle fatture con filtri.

        Args:
            db: Sessione database
            customer_id: Filtro per cliente
            status_filter: Filtro per stato
            page: Numero pagina
            per_page: Elementi per pagina

        Returns:
            InvoiceList: Lista paginata delle fatture
        """
        conditions = []
        if customer_id:
            conditions.append(Invoice.customer_id == customer_id)
        if status_filter:
            conditions.append(Invoice.status == status_filter.value)

        count_stmt = select(func.count(Invoice.id))
        if conditions:
            count_stmt = count_stmt.where(and_(*conditions))
        total = (await db.execute(count_stmt)).scalar() or 0

        stmt = select(Invoice).options(selectinload(Invoice.items))
        if conditions:
            stmt = stmt.where(and_(*conditions))
        stmt = (
            stmt.order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await db.execute(stmt)
        invoices = result.scalars().all()

        total_pages = (total + per_page - 1) // per_page if total > 0 else 1

        return InvoiceList(
            items=list(invoices),
            total=total,
            page=page,
            per_page=per_page,
            total_pages=total_pages,
        )

    async def get_by_id(
        self,
        db: AsyncSession,
        invoice_id: uuid.UUID,
    ) -> Invoice:
        """
        Recupera una fattura per ID con le righe caricate.

        Raises:
            NotFoundError: Fattura non trovata
        """
        stmt = (
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .options(selectinload(Invoice.items))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        invoice = result.scalar_one_or_none()

        if not invoice:
            raise NotFoundError(f"Fattura {invoice_id} non trovata")

        return invoice

    async def get_by_invoice_number(
        self,
        db: AsyncSession,
        invoice_number: str,
    ) -> Invoice:
        """
        Recupera una fattura per numero.

        Raises:
            NotFoundError: Fattura non trovata
        """
        stmt = (
            select(Invoice)
            .where(Invoice.invoice_number == invoice_number.strip())
            .options(selectinload(Invoice.items))
        )
        result = await db.execute(stmt)
        invoice = result.scalar_one_or_none()

        if not invoice:
            raise NotFoundError(f"Fattura {invoice_number} non trovata")

        return invoice

    async def delete(
        self,
        db: AsyncSession,
        invoice_id: uuid.UUID,
    ) -> None:
        """
        Elimina una fattura.

        Solo se non risultano incassi (saldo uguale al totale).
        Il numero liberato non viene riassegnato finché esiste un numero
        più alto.

        Raises:
            NotFoundError: Fattura non trovata
            BusinessValidationError: La fattura ha incassi registrati
        """
        invoice = await self.get_by_id(db, invoice_id)

        if invoice.balance != invoice.total_amount:
            raise BusinessValidationError(
                "Impossibile eliminare una fattura con incassi registrati"
            )

        # cascade elimina anche le righe
        await db.delete(invoice)
        await db.commit()
        logger.info("Eliminata fattura %s", invoice.invoice_number)
