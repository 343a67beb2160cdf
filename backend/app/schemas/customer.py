"""
Schemas Pydantic per l'anagrafica clienti
Progetto: Paper Trade CRM (Gestionale Distribuzione Carta)
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class CustomerBase(BaseModel):
    """Campi comuni del cliente."""

    name: str = Field(..., min_length=1, max_length=255, description="Ragione sociale o nome")
    phone: Optional[str] = Field(None, max_length=50, description="Telefono")
    email: Optional[EmailStr] = Field(None, description="Email di contatto")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Rimuove gli spazi superflui dal nome."""
        v = v.strip()
        if not v:
            raise ValueError("Il nome del cliente non può essere vuoto")
        return v

    model_config = ConfigDict(from_attributes=True)


class CustomerCreate(CustomerBase):
    """Schema per la creazione di un cliente."""
    pass


class CustomerRead(CustomerBase):
    """Schema per la lettura di un cliente."""

    id: uuid.UUID
    created_at: datetime = Field(..., serialization_alias="createdAt")


class CustomerList(BaseModel):
    """Lista paginata di clienti."""

    items: list[CustomerRead]
    total: int
    page: int
    per_page: int = Field(..., serialization_alias="perPage")
    total_pages: int = Field(..., serialization_alias="totalPages")
