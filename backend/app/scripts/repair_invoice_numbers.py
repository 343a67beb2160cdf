"""
Riparazione della numerazione fatture da riga di comando.

Da eseguire in finestra di manutenzione, senza creazioni di fatture
in corso:

    repair-invoice-numbers --dry-run
    repair-invoice-numbers --actor mario.rossi

Exit code 1 se almeno un gruppo è stato saltato.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.database import AsyncSessionLocal, close_db
from app.schemas.invoice_number import RepairReport
from app.services.invoice_number_service import InvoiceNumberAllocator

logger = logging.getLogger(__name__)


async def run(
    dry_run: bool,
    actor: Optional[str] = None,
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> RepairReport:
    """Esegue la riparazione in una sessione dedicata."""
    allocator = InvoiceNumberAllocator()
    async with session_factory() as session:
        return await allocator.repair_duplicates(session, dry_run=dry_run, actor=actor)


async def _run_and_close(args: argparse.Namespace) -> RepairReport:
    try:
        return await run(args.dry_run, args.actor)
    finally:
        await close_db()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repair-invoice-numbers",
        description="Fonde o rinumera le fatture con numero duplicato e rimuove i suffissi -N",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Mostra le modifiche senza salvarle",
    )
    parser.add_argument(
        "--actor",
        default=None,
        help=f"Autore registrato nell'audit log (default: {settings.invoice_repair_actor})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log dettagliato",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    report = asyncio.run(_run_and_close(args))

    for line in report.summary_lines():
        print(line)

    if report.skipped:
        logger.error("%s gruppi non riparati, verificare manualmente", len(report.skipped))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
