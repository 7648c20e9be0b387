"""
Gerarchia di errori del modulo fatturazione.

Il "non trovato" non è un'eccezione: le letture singole restituiscono None
(vedi app.services.store.fetch_one).
"""
from enum import Enum
from typing import List, Optional, Sequence

from app.services.store import StoreError

__all__ = [
    "FatturazioneError",
    "InvoiceValidationError",
    "InvalidStatusTransition",
    "InvoicePipelineError",
    "PipelineStep",
    "SerializationError",
    "StoreError",
]


class FatturazioneError(Exception):
    """Base per gli errori applicativi della fatturazione"""


class InvoiceValidationError(FatturazioneError):
    """Totali incoerenti o campi obbligatori mancanti; mai corretti in automatico."""

    def __init__(self, messages: Sequence[str]):
        self.messages: List[str] = list(messages)
        super().__init__("; ".join(self.messages) or "Fattura non valida")


class InvalidStatusTransition(InvoiceValidationError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__([f"Transizione di stato non consentita: {current} -> {target}"])


class PipelineStep(str, Enum):
    """Passi della sequenza di persistenza testata/righe"""

    INSERT_HEADER = "insert_header"
    INSERT_ITEMS = "insert_items"
    UPDATE_HEADER = "update_header"
    DELETE_OLD_ITEMS = "delete_old_items"
    INSERT_NEW_ITEMS = "insert_new_items"
    DELETE_ITEMS = "delete_items"
    DELETE_HEADER = "delete_header"

    @property
    def retry_hint(self) -> Optional[str]:
        """Operazione da ripetere per completare lo stato parziale, se esiste."""
        return _RETRY_HINTS.get(self)


_RETRY_HINTS = {
    PipelineStep.INSERT_ITEMS: "insert_items",
    PipelineStep.DELETE_OLD_ITEMS: "replace_items",
    PipelineStep.INSERT_NEW_ITEMS: "insert_items",
    PipelineStep.DELETE_HEADER: "delete",
}


class InvoicePipelineError(FatturazioneError):
    """
    Fallimento di un passo della sequenza di persistenza.

    I passi precedenti restano applicati: nessun rollback. Lo stato
    intermedio dipende da `step`:
      - update_header: nulla è cambiato (scrittura singola atomica)
      - delete_old_items: testata aggiornata, righe vecchie ancora presenti
      - insert_new_items / insert_items: testata salvata, righe nuove mancanti
      - delete_header: righe già rimosse, testata ancora presente
    """

    def __init__(self, step: PipelineStep, invoice_id: Optional[str], cause: Exception):
        self.step = step
        self.invoice_id = invoice_id
        self.cause = cause
        super().__init__(f"Passo '{step.value}' fallito per la fattura {invoice_id}: {cause}")


class SerializationError(FatturazioneError):
    """Campo obbligatorio mancante per l'esportazione FatturaPA"""
