"""Schemi condivisi del modulo fatturazione"""
from typing import Literal

from pydantic import BaseModel, Field

DeleteKind = Literal["soft", "hard"]


class DeleteResult(BaseModel):
    """Esito di una cancellazione a due fasi: quale ramo è stato eseguito."""
    entity_id: str
    kind: DeleteKind = Field(..., description="soft = disattivato, hard = riga rimossa")
    dependents: int = Field(0, description="Numero di riferimenti trovati prima della cancellazione")

    @property
    def is_soft(self) -> bool:
        return self.kind == "soft"
