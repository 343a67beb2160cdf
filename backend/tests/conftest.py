"""
Pytest configuration and fixtures.

I test girano su un database SQLite temporaneo (aiosqlite) con SAVEPOINT
abilitati, così il vincolo unique su invoice_number e i rollback parziali
dell'allocatore si comportano come su PostgreSQL.
"""

import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.database import get_db
from app.main import app
from app.models import Base, Customer, Invoice, InvoiceItem
from app.models.invoice import STATUS_OPEN, quantize_amount, settle


# Istante di riferimento per created_at deterministici
T0 = datetime(2024, 3, 1, 9, 0, 0)


# ============================================================
# Fixtures per Database
# ============================================================


@pytest.fixture
def anyio_backend():
    return "asyncio"


async def build_sqlite_engine(path, begin_statement: str = "BEGIN"):
    """
    Engine SQLite su file con schema creato.

    begin_statement "BEGIN IMMEDIATE" serializza le transazioni in scrittura
    invece di farle fallire con "database is locked".
    """
    db_engine = create_async_engine(
        f"sqlite+aiosqlite:///{path}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(db_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # BEGIN gestito da SQLAlchemy, necessario per i SAVEPOINT
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(db_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql(begin_statement)

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return db_engine


@pytest.fixture
async def engine(tmp_path):
    """Engine SQLite su file temporaneo con schema creato."""
    db_engine = await build_sqlite_engine(tmp_path / "test.db")

    yield db_engine

    await db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Session factory configurata come AsyncSessionLocal."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def immediate_session_factory(tmp_path):
    """
    Session factory su un database dedicato con BEGIN IMMEDIATE.

    Per i test con più sessioni che scrivono in parallelo.
    """
    db_engine = await build_sqlite_engine(tmp_path / "concurrent.db", "BEGIN IMMEDIATE")

    yield async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    await db_engine.dispose()


@pytest.fixture
async def db(session_factory):
    """Sessione database per un singolo test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    """Client HTTP sull'app FastAPI con get_db sul database di test."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================
# Helper per dati di test
# ============================================================


async def create_customer(db: AsyncSession, name: str = "Cartiera Rossi") -> Customer:
    """Inserisce un cliente e restituisce l'istanza salvata."""
    customer = Customer(name=name)
    db.add(customer)
    await db.commit()
    return customer


async def create_legacy_invoice(
    db: AsyncSession,
    customer: Customer,
    invoice_number: str,
    lines: Optional[list[tuple[str, str]]] = None,
    minutes: int = 0,
    paid: str = "0",
    status: str = STATUS_OPEN,
) -> Invoice:
    """
    Inserisce una fattura con numero esplicito, come i dati storici.

    Args:
        lines: Coppie (quantità, prezzo unitario), default una riga da 10.00
        minutes: Offset di created_at rispetto a T0
        paid: Importo già incassato
    """
    lines = lines or [("1", "10.00")]
    invoice = Invoice(
        invoice_number=invoice_number,
        customer_id=customer.id,
        tax_amount=Decimal("0.00"),
        discount_amount=Decimal("0.00"),
        created_at=T0 + timedelta(minutes=minutes),
    )
    total = Decimal("0.00")
    for position, (quantity, unit_price) in enumerate(lines, start=1):
        line_total = quantize_amount(Decimal(quantity) * Decimal(unit_price))
        total += line_total
        invoice.items.append(InvoiceItem(
            position=position,
            description=f"Risma A4 lotto {position}",
            quantity=Decimal(quantity),
            unit_price=Decimal(unit_price),
            line_total=line_total,
        ))
    invoice.total_amount = total
    invoice.balance, invoice.status = settle(total, Decimal(paid), status)

    db.add(invoice)
    await db.commit()
    return invoice


def new_invoice(customer_id: uuid.UUID, amount: str = "10.00") -> Invoice:
    """Fattura non ancora numerata, pronta per l'allocatore."""
    invoice = Invoice(
        customer_id=customer_id,
        total_amount=Decimal(amount),
        balance=Decimal(amount),
    )
    invoice.items.append(InvoiceItem(
        position=1,
        description="Carta kraft",
        quantity=Decimal("1"),
        unit_price=Decimal(amount),
        line_total=Decimal(amount),
    ))
    return invoice


async def all_invoice_numbers(session_factory) -> list[str]:
    """Numeri fattura presenti, letti con una sessione nuova."""
    async with session_factory() as session:
        result = await session.execute(select(Invoice.invoice_number).order_by(Invoice.invoice_number))
        return list(result.scalars().all())
