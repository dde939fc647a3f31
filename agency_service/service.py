"""Business rules for creating and maintaining agencies."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from .models import Agency
from .registration import StatusProvider
from .store import AgencyStore

logger = logging.getLogger("agencies.service")

_MUTABLE_FIELDS = ("name", "legal_name", "tax_id")


class AgencyValidationError(ValueError):
    """Raised when an agency fails the registration status check."""

    def __init__(self, tax_id: str) -> None:
        super().__init__(f"agency with tax ID {tax_id} is not active")
        self.tax_id = tax_id


def merge_changes(agency: Agency, changes: Dict[str, object]) -> Agency:
    """Return a copy of ``agency`` with every non-``None`` change applied."""

    updates = {
        key: value
        for key, value in changes.items()
        if key in _MUTABLE_FIELDS and value is not None
    }
    return replace(agency, **updates)


class AgencyService:
    """Coordinate registration checks and storage of agencies."""

    def __init__(self, store: AgencyStore, provider: StatusProvider) -> None:
        self._store = store
        self._provider = provider

    def list_all(self) -> List[Agency]:
        return list(self._store.list_all())

    def find_by_id(self, agency_id: int) -> Optional[Agency]:
        return self._store.find_by_id(agency_id)

    def create(self, agency: Agency) -> Agency:
        """Store a new agency after checking its tax registration.

        Agencies without a tax ID skip the check.  Raises
        :class:`AgencyValidationError` when the registry has no record for the
        tax ID or reports it as anything other than active; transport failures
        surface as :class:`~agency_service.registration.RegistrationProviderError`.
        """

        tax_id = agency.tax_id
        if tax_id is not None and tax_id.strip():
            self._ensure_active(tax_id)

        created = self._store.insert(agency)
        logger.info("Created agency %s", created.id)
        return created

    def update(self, agency_id: int, changes: Dict[str, object]) -> Optional[Agency]:
        updated = self._store.apply(agency_id, lambda existing: merge_changes(existing, changes))
        if updated is not None:
            logger.info("Updated agency %s", agency_id)
        return updated

    def delete(self, agency_id: int) -> bool:
        deleted = self._store.delete_by_id(agency_id)
        if deleted:
            logger.info("Deleted agency %s", agency_id)
        return deleted

    def _ensure_active(self, tax_id: str) -> None:
        status = self._provider.lookup(tax_id)
        if status is None or not status.is_active:
            logger.warning(
                "Rejected agency with tax ID %s (status: %s)",
                tax_id,
                status.status.value if status is not None else "not found",
            )
            raise AgencyValidationError(tax_id)


__all__ = ["AgencyService", "AgencyValidationError", "merge_changes"]
