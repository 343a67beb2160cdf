"""
Eccezioni Custom per l'applicazione.
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori.

Tassonomia numerazione fatture:
- AllocationConflict: numero già occupato all'inserimento, ritentato internamente
- AllocationExhausted: tentativi esauriti, la richiesta di creazione fallisce
- RepairGroupFailure: errore confinato a un singolo gruppo durante la riparazione
- InvalidNumericBase: numero storico non interpretabile, ignorato nel calcolo del massimo
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "DuplicateError",
    "BusinessValidationError",
    "ConflictError",
    "AllocationConflict",
    "AllocationExhausted",
    "RepairGroupFailure",
    "InvalidNumericBase",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Tutte le eccezioni custom ereditano da questa classe base.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.detail = detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(detail)


class NotFoundError(AppException):
    """Eccezione sollevata quando una risorsa non viene trovata."""

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        detail: str = "Risorsa non trovata",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class DuplicateError(AppException):
    """
    Eccezione sollevata quando si tenta di creare una risorsa duplicata.

    Utilizzata per violazioni di vincoli unique (es. email cliente già esistente).
    """

    status_code: int = 409
    error_code: str = "DUPLICATE_RESOURCE"

    def __init__(
        self,
        detail: str = "Risorsa già esistente",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Esempi di utilizzo:
        - "La fattura deve contenere almeno una riga"
        - "Impossibile eliminare una fattura con incassi registrati"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Validazione dati fallita",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


class ConflictError(AppException):
    """
    Eccezione sollevata per conflitti di stato.

    Utilizzata quando un'operazione non può essere eseguita
    a causa dello stato corrente della risorsa.
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"

    def __init__(
        self,
        detail: str = "Conflitto di stato",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


# ------------------------------------------------------------
# Numerazione Fatture
# ------------------------------------------------------------

class AllocationConflict(ConflictError):
    """
    Il numero candidato è già stato inserito da un'altra richiesta.

    Transitoria: l'allocatore la cattura e ritenta con il candidato successivo.
    """

    error_code: str = "INVOICE_NUMBER_CONFLICT"

    def __init__(self, candidate: str) -> None:
        self.candidate = candidate
        super().__init__(
            f"Numero fattura {candidate} già in uso",
            extra={"candidate": candidate},
        )


class AllocationExhausted(AppException):
    """
    Tutti i tentativi di allocazione sono falliti per conflitto.

    Fatale per la richiesta di creazione corrente; non viene ritentata
    automaticamente dall'allocatore.
    """

    status_code: int = 503
    error_code: str = "INVOICE_NUMBER_EXHAUSTED"

    def __init__(self, attempts: int, last_candidate: Optional[str]) -> None:
        self.attempts = attempts
        self.last_candidate = last_candidate
        super().__init__(
            f"Impossibile assegnare un numero fattura dopo {attempts} tentativi",
            extra={"attempts": attempts, "last_candidate": last_candidate},
        )


class RepairGroupFailure(AppException):
    """Errore durante la riparazione di un singolo gruppo di numeri duplicati."""

    error_code: str = "INVOICE_REPAIR_GROUP_FAILURE"

    def __init__(self, base_number: str, reason: str) -> None:
        self.base_number = base_number
        self.reason = reason
        super().__init__(
            f"Riparazione gruppo {base_number} fallita: {reason}",
            extra={"base_number": base_number},
        )


class InvalidNumericBase(BusinessValidationError):
    """
    Un numero fattura storico non contiene cifre utilizzabili (es. "LEGACY-A").

    Non viene mai propagata al chiamante di allocate(): il valore
    viene semplicemente ignorato nel calcolo del massimo.
    """

    error_code: str = "INVALID_NUMERIC_BASE"

    def __init__(self, invoice_number: str) -> None:
        self.invoice_number = invoice_number
        super().__init__(
            f"Il numero fattura '{invoice_number}' non ha una base numerica",
            extra={"invoice_number": invoice_number},
        )
