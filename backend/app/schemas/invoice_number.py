"""
Schemas Pydantic per la manutenzione della numerazione fatture
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Contiene:
- NextInvoiceNumber: anteprima del prossimo numero
- InvoiceNumberChange: singola modifica (rinumerazione, fusione, normalizzazione)
- SkippedGroup: gruppo non riparato
- RepairReport: esito della riparazione
"""

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


class ChangeAction(str, Enum):
    """Tipo di intervento su una fattura."""
    MERGED = "merged"
    RENUMBERED = "renumbered"
    NORMALIZED = "normalized"


class NextInvoiceNumber(BaseModel):
    """Anteprima del primo candidato che allocate() proverebbe."""

    candidate: str
    available: bool
    max_numeric_base: Optional[int] = Field(None, serialization_alias="maxNumericBase")


class InvoiceNumberChange(BaseModel):
    """Modifica applicata (o prevista in dry-run) a una fattura."""

    invoice_id: uuid.UUID = Field(..., serialization_alias="invoiceId")
    action: ChangeAction
    old_number: str = Field(..., serialization_alias="oldNumber")
    new_number: Optional[str] = Field(None, serialization_alias="newNumber")
    merged_into: Optional[uuid.UUID] = Field(None, serialization_alias="mergedInto")


class SkippedGroup(BaseModel):
    """Gruppo di numeri duplicati non riparato, da rivedere manualmente."""

    base_number: str = Field(..., serialization_alias="baseNumber")
    invoice_numbers: list[str] = Field(default_factory=list, serialization_alias="invoiceNumbers")
    reason: str


class RepairReport(BaseModel):
    """Riepilogo di repair_duplicates()."""

    dry_run: bool = Field(False, serialization_alias="dryRun")
    scanned: int = 0
    merged: int = 0
    renumbered: int = 0
    normalized: int = 0
    untouched: int = 0
    skipped: list[SkippedGroup] = Field(default_factory=list)
    changes: list[InvoiceNumberChange] = Field(default_factory=list)

    @computed_field(alias="isEmpty")
    @property
    def is_empty(self) -> bool:
        """True se non c'era nulla da riparare."""
        return not (self.merged or self.renumbered or self.normalized or self.skipped)

    def summary_lines(self) -> list[str]:
        """Righe leggibili per console e log."""
        header = "Riparazione numerazione fatture"
        if self.dry_run:
            header += " (dry-run, nessuna modifica salvata)"
        lines = [
            header,
            f"  Fatture analizzate: {self.scanned}",
            f"  Fuse:               {self.merged}",
            f"  Rinumerate:         {self.renumbered}",
            f"  Normalizzate:       {self.normalized}",
            f"  Invariate:          {self.untouched}",
            f"  Gruppi saltati:     {len(self.skipped)}",
        ]
        for change in self.changes:
            if change.action == ChangeAction.MERGED:
                lines.append(f"    {change.old_number} fusa in {change.new_number}")
            else:
                lines.append(f"    {change.old_number} -> {change.new_number} ({change.action.value})")
        for group in self.skipped:
            lines.append(f"    SALTATO {group.base_number}: {group.reason}")
        return lines
