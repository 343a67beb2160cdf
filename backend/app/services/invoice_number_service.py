"""
Service Layer per la Numerazione Fatture
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Assegna i numeri fattura in modo univoco anche con creazioni concorrenti
e ripara la numerazione storica (duplicati e suffissi "-N").

La correttezza dipende unicamente dal vincolo UNIQUE su
invoices.invoice_number: il ciclo di retry di allocate() serve solo a
risolvere i conflitti di inserimento, non a garantire l'unicità.
"""

import logging
import re
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import Numeric, cast, delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import (
    AllocationConflict,
    AllocationExhausted,
    InvalidNumericBase,
    RepairGroupFailure,
)
from app.models import AuditLog, Invoice, InvoiceItem
from app.models.audit_log import (
    ACTION_INVOICE_DELETE_DUPLICATE,
    ACTION_INVOICE_MERGE,
    ACTION_INVOICE_RENUMBER,
)
from app.models.invoice import quantize_amount, settle
from app.models.mixins import utcnow
from app.schemas.invoice_number import (
    ChangeAction,
    InvoiceNumberChange,
    NextInvoiceNumber,
    RepairReport,
    SkippedGroup,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Numero base seguito da suffisso progressivo, es. "1042-2"
SUFFIX_PATTERN = re.compile(r"^(?P<base>\d+)-(?P<suffix>\d+)$")
NON_DIGITS = re.compile(r"\D")


# -------------------------------------------------------------------
# Helper numerazione
# -------------------------------------------------------------------

def normalize_base_number(invoice_number: str) -> str:
    """
    Restituisce il numero base togliendo l'eventuale suffisso "-N".

    Solo i numeri puramente numerici perdono il suffisso: "1042-2" -> "1042",
    mentre "INV-20250901-003" o "LEGACY-A" restano invariati.
    """
    value = invoice_number.strip()
    match = SUFFIX_PATTERN.match(value)
    return match.group("base") if match else value


def has_suffix(invoice_number: str) -> bool:
    """True se il numero ha un suffisso "-N" su base numerica."""
    return SUFFIX_PATTERN.match(invoice_number.strip()) is not None


def suffix_value(invoice_number: str) -> int:
    """Valore del suffisso "-N", 0 se assente."""
    match = SUFFIX_PATTERN.match(invoice_number.strip())
    return int(match.group("suffix")) if match else 0


def parse_numeric_base(invoice_number: str) -> int:
    """
    Estrae il valore numerico della base di un numero fattura.

    I caratteri non numerici vengono scartati (es. "INV1042" -> 1042).

    Raises:
        InvalidNumericBase: se non resta alcuna cifra (es. "LEGACY-A")
    """
    digits = NON_DIGITS.sub("", normalize_base_number(invoice_number))
    if not digits:
        raise InvalidNumericBase(invoice_number)
    return int(digits)


def max_numeric_base_of(invoice_numbers: Iterable[str]) -> Optional[int]:
    """Massimo valore numerico tra i numeri indicati, ignorando quelli non interpretabili."""
    best: Optional[int] = None
    for number in invoice_numbers:
        try:
            value = parse_numeric_base(number)
        except InvalidNumericBase:
            logger.debug("Numero fattura non numerico ignorato: %r", number)
            continue
        if best is None or value > best:
            best = value
    return best


def _is_number_conflict(exc: IntegrityError) -> bool:
    """True se la violazione riguarda il vincolo unique su invoice_number."""
    return "invoice_number" in str(exc.orig)


# -------------------------------------------------------------------
# Piano di riparazione
# -------------------------------------------------------------------

MERGE = "merge"
RENUMBER = "renumber"
NORMALIZE = "normalize"


@dataclass(frozen=True)
class InvoiceSnapshot:
    """Stato di una fattura letto all'inizio della riparazione."""

    id: uuid.UUID
    invoice_number: str
    customer_id: uuid.UUID
    created_at: datetime
    total_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    balance: Decimal
    status: str

    @property
    def base_number(self) -> str:
        return normalize_base_number(self.invoice_number)

    @property
    def has_suffix(self) -> bool:
        return has_suffix(self.invoice_number)

    @property
    def paid_amount(self) -> Decimal:
        return self.total_amount - self.balance


@dataclass
class GroupPlan:
    """Intervento previsto su un gruppo di fatture con lo stesso numero base."""

    base_number: str
    kind: str
    canonical: InvoiceSnapshot
    others: list[InvoiceSnapshot] = field(default_factory=list)
    renumbering: list[tuple[InvoiceSnapshot, str]] = field(default_factory=list)
    canonical_target: Optional[str] = None

    @property
    def members(self) -> list[InvoiceSnapshot]:
        return [self.canonical, *self.others]

    def changes(self) -> list[InvoiceNumberChange]:
        """Modifiche che il piano produce, nell'ordine di applicazione."""
        final_number = self.canonical_target or self.canonical.invoice_number
        result: list[InvoiceNumberChange] = []
        if self.kind == MERGE:
            for dup in self.others:
                result.append(InvoiceNumberChange(
                    invoice_id=dup.id,
                    action=ChangeAction.MERGED,
                    old_number=dup.invoice_number,
                    new_number=final_number,
                    merged_into=self.canonical.id,
                ))
        for snap, new_number in self.renumbering:
            result.append(InvoiceNumberChange(
                invoice_id=snap.id,
                action=ChangeAction.RENUMBERED,
                old_number=snap.invoice_number,
                new_number=new_number,
            ))
        if self.canonical_target:
            result.append(InvoiceNumberChange(
                invoice_id=self.canonical.id,
                action=ChangeAction.NORMALIZED,
                old_number=self.canonical.invoice_number,
                new_number=self.canonical_target,
            ))
        return result


def _canonical_order(snapshot: InvoiceSnapshot) -> tuple:
    # Prima il numero senza suffisso, poi il più vecchio
    return (
        snapshot.has_suffix,
        snapshot.created_at,
        suffix_value(snapshot.invoice_number),
        str(snapshot.id),
    )


def _group_order(base_number: str) -> tuple:
    if base_number.isdigit():
        return (0, int(base_number), base_number)
    return (1, 0, base_number)


def plan_repair(snapshots: Iterable[InvoiceSnapshot], next_number: int) -> list[GroupPlan]:
    """
    Calcola gli interventi necessari senza toccare il database.

    - Gruppi con più fatture dello stesso cliente: fusione nella canonica.
    - Gruppi con clienti diversi: la canonica resta, le altre ricevono
      numeri nuovi crescenti a partire da next_number.
    - Canonica (o fattura singola) con suffisso: torna al numero base,
      che è libero per costruzione.

    Args:
        snapshots: Fatture lette all'inizio della riparazione
        next_number: Primo numero libero (massimo storico + 1)

    Returns:
        list[GroupPlan]: Piani ordinati per numero base
    """
    groups: dict[str, list[InvoiceSnapshot]] = defaultdict(list)
    for snapshot in snapshots:
        groups[snapshot.base_number].append(snapshot)

    plans: list[GroupPlan] = []
    for base_number in sorted(groups, key=_group_order):
        members = sorted(groups[base_number], key=_canonical_order)
        canonical, others = members[0], members[1:]
        target = base_number if canonical.has_suffix else None

        if not others:
            if target:
                plans.append(GroupPlan(base_number, NORMALIZE, canonical, canonical_target=target))
            continue

        if len({m.customer_id for m in members}) == 1:
            plans.append(GroupPlan(base_number, MERGE, canonical, others, canonical_target=target))
            continue

        renumbering = []
        for snapshot in others:
            renumbering.append((snapshot, str(next_number)))
            next_number += 1
        plans.append(
            GroupPlan(base_number, RENUMBER, canonical, others, renumbering, canonical_target=target)
        )

    return plans


# -------------------------------------------------------------------
# Allocatore
# -------------------------------------------------------------------

class InvoiceNumberAllocator:
    """
    Allocazione e riparazione dei numeri fattura.

    Implementa:
    - allocate(): assegna il numero e inserisce la fattura in un'unica
      operazione atomica (SAVEPOINT + vincolo unique), con retry limitato
    - preview_next(): anteprima diagnostica del prossimo numero
    - repair_duplicates(): fusione/rinumerazione idempotente dei duplicati storici
    """

    def __init__(
        self,
        start: Optional[int] = None,
        max_attempts: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> None:
        self.start = start if start is not None else settings.invoice_number_start
        self.max_attempts = max_attempts if max_attempts is not None else settings.invoice_number_max_attempts
        self.actor = actor or settings.invoice_repair_actor

    # ------------------------------------------------------------
    # Lettura massimo
    # ------------------------------------------------------------

    async def max_numeric_base(self, db: AsyncSession) -> Optional[int]:
        """
        Massimo valore numerico tra i numeri fattura esistenti.

        Su PostgreSQL è un unico aggregato SQL; sugli altri database
        i numeri vengono letti e interpretati in Python.
        I valori senza cifre sono ignorati.
        """
        if db.get_bind().dialect.name == "postgresql":
            base = func.regexp_replace(
                func.btrim(Invoice.invoice_number), r"^(\d+)-\d+$", r"\1"
            )
            digits = func.regexp_replace(base, r"\D", "", "g")
            stmt = select(func.max(cast(func.nullif(digits, ""), Numeric(40, 0))))
            value = await db.scalar(stmt)
            return int(value) if value is not None else None

        result = await db.execute(select(Invoice.invoice_number))
        return max_numeric_base_of(result.scalars())

    async def _first_candidate(self, db: AsyncSession) -> tuple[int, Optional[int]]:
        current_max = await self.max_numeric_base(db)
        if current_max is None:
            return self.start, None
        return current_max + 1, current_max

    # ------------------------------------------------------------
    # Allocazione
    # ------------------------------------------------------------

    async def allocate(self, db: AsyncSession, invoice: Invoice) -> str:
        """
        Assegna il numero alla fattura e la inserisce.

        Logica:
        1. Legge il massimo numerico in uso e propone massimo + 1
           (oppure il numero iniziale se non esistono numeri numerici)
        2. Inserisce la fattura dentro un SAVEPOINT
        3. Se il vincolo unique scatta, ritenta con il candidato successivo
        4. Dopo max_attempts conflitti solleva AllocationExhausted

        Il commit della transazione esterna resta al chiamante.

        Args:
            db: Sessione database
            invoice: Fattura da inserire (senza numero)

        Returns:
            str: Numero assegnato

        Raises:
            AllocationExhausted: tutti i tentativi sono andati in conflitto
        """
        candidate_value, _ = await self._first_candidate(db)
        last_candidate: Optional[str] = None

        for attempt in range(1, self.max_attempts + 1):
            last_candidate = str(candidate_value)
            try:
                await self._insert_with_number(db, invoice, last_candidate)
            except AllocationConflict as conflict:
                logger.warning(
                    "Numero fattura %s già in uso (tentativo %s/%s)",
                    conflict.candidate, attempt, self.max_attempts,
                )
                fresh_max = await self.max_numeric_base(db)
                fresh_candidate = fresh_max + 1 if fresh_max is not None else self.start
                candidate_value = max(candidate_value + 1, fresh_candidate)
                continue

            logger.info(f"Assegnato numero fattura {last_candidate} (tentativo {attempt})")
            return last_candidate

        logger.error(
            "Numerazione fatture esaurita dopo %s tentativi (ultimo candidato %s)",
            self.max_attempts, last_candidate,
        )
        raise AllocationExhausted(self.max_attempts, last_candidate)

    async def _insert_with_number(self, db: AsyncSession, invoice: Invoice, candidate: str) -> None:
        """
        Inserisce la fattura con il numero candidato dentro un SAVEPOINT.

        In caso di violazione del vincolo unique il SAVEPOINT viene annullato
        e la transazione esterna resta utilizzabile.

        Raises:
            AllocationConflict: il numero è già occupato
            IntegrityError: violazione di un altro vincolo
        """
        invoice.invoice_number = candidate
        try:
            async with db.begin_nested():
                db.add(invoice)
                await db.flush()
        except IntegrityError as exc:
            if not _is_number_conflict(exc):
                raise
            raise AllocationConflict(candidate) from exc

    async def preview_next(self, db: AsyncSession) -> NextInvoiceNumber:
        """
        Anteprima del primo candidato che allocate() proverebbe.

        Solo diagnostica: non riserva alcun numero.
        """
        candidate_value, current_max = await self._first_candidate(db)
        candidate = str(candidate_value)
        existing = await db.scalar(
            select(Invoice.id).where(Invoice.invoice_number == candidate)
        )
        return NextInvoiceNumber(
            candidate=candidate,
            available=existing is None,
            max_numeric_base=current_max,
        )

    # ------------------------------------------------------------
    # Riparazione
    # ------------------------------------------------------------

    async def _load_snapshots(self, db: AsyncSession) -> list[InvoiceSnapshot]:
        stmt = select(
            Invoice.id,
            Invoice.invoice_number,
            Invoice.customer_id,
            Invoice.created_at,
            Invoice.total_amount,
            Invoice.tax_amount,
            Invoice.discount_amount,
            Invoice.balance,
            Invoice.status,
        ).order_by(Invoice.created_at, Invoice.id)
        result = await db.execute(stmt)
        return [InvoiceSnapshot(*row) for row in result.all()]

    async def repair_duplicates(
        self,
        db: AsyncSession,
        dry_run: bool = False,
        actor: Optional[str] = None,
    ) -> RepairReport:
        """
        Ripara la numerazione storica.

        Steps:
        1. Legge tutte le fatture e il massimo numerico storico
        2. Raggruppa per numero base (senza suffisso "-N")
        3. Stesso cliente: fonde le righe nella fattura canonica,
           elimina i duplicati vuoti, ricalcola totale/saldo/stato
        4. Clienti diversi: rinumera tutte tranne la canonica con
           numeri crescenti oltre il massimo storico
        5. Riporta al numero base le canoniche ancora con suffisso

        Ogni gruppo è applicato in una transazione propria: un errore
        annulla solo quel gruppo, che finisce tra gli skipped.
        Da eseguire in finestra di manutenzione (senza creazioni concorrenti).

        Args:
            db: Sessione database
            dry_run: Se True calcola il report senza salvare nulla
            actor: Autore registrato nell'audit log

        Returns:
            RepairReport: Conteggi e modifiche
        """
        actor = actor or self.actor
        snapshots = await self._load_snapshots(db)
        historical_max = max_numeric_base_of(s.invoice_number for s in snapshots)
        next_number = historical_max + 1 if historical_max is not None else self.start

        plans = plan_repair(snapshots, next_number)
        report = RepairReport(dry_run=dry_run, scanned=len(snapshots))

        logger.info(
            "Riparazione numerazione: %s fatture, %s gruppi da sistemare, massimo storico %s%s",
            len(snapshots), len(plans), historical_max, " (dry-run)" if dry_run else "",
        )

        if dry_run:
            await db.rollback()

        for plan in plans:
            changes = plan.changes()
            if not dry_run:
                try:
                    await self._apply_group(db, plan, actor)
                    await db.commit()
                except (SQLAlchemyError, RepairGroupFailure) as exc:
                    await db.rollback()
                    logger.error(
                        f"Gruppo {plan.base_number} saltato: {exc}",
                        exc_info=True,
                    )
                    report.skipped.append(SkippedGroup(
                        base_number=plan.base_number,
                        invoice_numbers=[m.invoice_number for m in plan.members],
                        reason=str(exc),
                    ))
                    continue

            for change in changes:
                if change.action == ChangeAction.MERGED:
                    report.merged += 1
                elif change.action == ChangeAction.RENUMBERED:
                    report.renumbered += 1
                else:
                    report.normalized += 1
            if plan.kind == RENUMBER and not plan.canonical_target:
                report.untouched += 1
            report.changes.extend(changes)

        logger.info(
            "Riparazione completata: fuse=%s rinumerate=%s normalizzate=%s saltati=%s",
            report.merged, report.renumbered, report.normalized, len(report.skipped),
        )
        return report

    async def _apply_group(self, db: AsyncSession, plan: GroupPlan, actor: str) -> None:
        if plan.kind == MERGE:
            await self._merge(db, plan, actor)
        for snapshot, new_number in plan.renumbering:
            await self._rename(db, plan.base_number, snapshot, new_number, actor)
        if plan.canonical_target:
            await self._rename(db, plan.base_number, plan.canonical, plan.canonical_target, actor)

    async def _rename(
        self,
        db: AsyncSession,
        base_number: str,
        snapshot: InvoiceSnapshot,
        new_number: str,
        actor: str,
    ) -> None:
        # La condizione sul vecchio numero rileva scritture concorrenti
        result = await db.execute(
            update(Invoice)
            .where(Invoice.id == snapshot.id, Invoice.invoice_number == snapshot.invoice_number)
            .values(invoice_number=new_number, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise RepairGroupFailure(
                base_number,
                f"fattura {snapshot.invoice_number} modificata o eliminata durante la riparazione",
            )
        db.add(AuditLog(
            actor=actor,
            action_type=ACTION_INVOICE_RENUMBER,
            entity_type="invoice",
            entity_id=str(snapshot.id),
            previous_value=snapshot.invoice_number,
            current_value=new_number,
        ))
        logger.info(f"Fattura {snapshot.id}: {snapshot.invoice_number} -> {new_number}")

    async def _merge(self, db: AsyncSession, plan: GroupPlan, actor: str) -> None:
        canonical = plan.canonical

        for dup in plan.others:
            offset = await db.scalar(
                select(func.coalesce(func.max(InvoiceItem.position), 0))
                .where(InvoiceItem.invoice_id == canonical.id)
            )
            await db.execute(
                update(InvoiceItem)
                .where(InvoiceItem.invoice_id == dup.id)
                .values(invoice_id=canonical.id, position=InvoiceItem.position + offset)
                .execution_options(synchronize_session=False)
            )
            remaining = await db.scalar(
                select(func.count(InvoiceItem.id)).where(InvoiceItem.invoice_id == dup.id)
            )
            if remaining:
                raise RepairGroupFailure(
                    plan.base_number,
                    f"la fattura {dup.invoice_number} ha ancora {remaining} righe",
                )

            result = await db.execute(
                delete(Invoice)
                .where(Invoice.id == dup.id, Invoice.invoice_number == dup.invoice_number)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise RepairGroupFailure(
                    plan.base_number,
                    f"fattura {dup.invoice_number} modificata o eliminata durante la riparazione",
                )
            db.add(AuditLog(
                actor=actor,
                action_type=ACTION_INVOICE_DELETE_DUPLICATE,
                entity_type="invoice",
                entity_id=str(dup.id),
                previous_value=dup.invoice_number,
                current_value=f"fusa in {canonical.id}",
            ))

        line_totals = await db.scalars(
            select(InvoiceItem.line_total).where(InvoiceItem.invoice_id == canonical.id)
        )
        items_total = sum((Decimal(v) for v in line_totals), Decimal("0"))
        # Tasse e sconti delle fatture fuse restano nel totale, come in creazione
        tax_amount = quantize_amount(sum((m.tax_amount for m in plan.members), Decimal("0")))
        discount_amount = quantize_amount(sum((m.discount_amount for m in plan.members), Decimal("0")))
        total_amount = max(quantize_amount(items_total + tax_amount - discount_amount), Decimal("0.00"))
        paid_amount = sum((m.paid_amount for m in plan.members), Decimal("0"))
        balance, status = settle(total_amount, paid_amount, canonical.status)

        result = await db.execute(
            update(Invoice)
            .where(Invoice.id == canonical.id, Invoice.invoice_number == canonical.invoice_number)
            .values(
                total_amount=total_amount,
                tax_amount=tax_amount,
                discount_amount=discount_amount,
                balance=balance,
                status=status,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise RepairGroupFailure(
                plan.base_number,
                f"fattura canonica {canonical.invoice_number} modificata durante la riparazione",
            )
        db.add(AuditLog(
            actor=actor,
            action_type=ACTION_INVOICE_MERGE,
            entity_type="invoice",
            entity_id=str(canonical.id),
            previous_value=(
                f"{canonical.invoice_number} totale={canonical.total_amount} "
                f"duplicati={','.join(d.invoice_number for d in plan.others)}"
            ),
            current_value=f"totale={total_amount} saldo={balance} stato={status}",
        ))
        logger.info(
            "Fuse %s fatture in %s (totale %s)",
            len(plan.others), canonical.invoice_number, total_amount,
        )
