"""Domain models for the agency registry."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class RegistrationState(str, Enum):
    """Tax registration states reported by the external registry."""

    ACTIVE = "ATIVO"
    INACTIVE = "INATIVO"
    SUSPENDED = "SUSPENSO"
    UNFIT = "INAPTO"
    CLOSED = "BAIXADO"


@dataclass
class Agency:
    """A branch record held by the agency store."""

    name: Optional[str] = None
    legal_name: Optional[str] = None
    tax_id: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class RegistrationStatus:
    """Registration details returned by the external registry for a tax ID."""

    name: Optional[str]
    legal_name: Optional[str]
    tax_id: str
    status: RegistrationState

    @property
    def is_active(self) -> bool:
        return self.status is RegistrationState.ACTIVE


__all__ = ["Agency", "RegistrationState", "RegistrationStatus"]
