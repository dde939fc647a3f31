"""In-memory storage for agency records."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Protocol

from .models import Agency


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgencyStore(Protocol):
    """Storage operations required by :class:`~agency_service.service.AgencyService`."""

    def list_all(self) -> List[Agency]:
        ...

    def find_by_id(self, agency_id: int) -> Optional[Agency]:
        ...

    def insert(self, agency: Agency) -> Agency:
        ...

    def update(self, agency: Agency) -> Optional[Agency]:
        ...

    def apply(self, agency_id: int, change: Callable[[Agency], Agency]) -> Optional[Agency]:
        ...

    def delete_by_id(self, agency_id: int) -> bool:
        ...


class InMemoryAgencyStore:
    """Thread-safe, insertion-ordered collection of agencies.

    Records are copied on the way in and on the way out so callers can never
    mutate stored state behind the store's lock.  Identifiers start at 1 and
    are never reused, even after a record is deleted.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._records: Dict[int, Agency] = {}
        self._next_id = 1
        self._clock = clock
        self._lock = threading.Lock()

    def list_all(self) -> List[Agency]:
        with self._lock:
            return [replace(record) for record in self._records.values()]

    def find_by_id(self, agency_id: int) -> Optional[Agency]:
        with self._lock:
            record = self._records.get(agency_id)
            return replace(record) if record is not None else None

    def insert(self, agency: Agency) -> Agency:
        with self._lock:
            now = self._clock()
            record = replace(agency, id=self._next_id, created_at=now, updated_at=now)
            self._next_id += 1
            self._records[record.id] = record
            return replace(record)

    def update(self, agency: Agency) -> Optional[Agency]:
        if agency.id is None:
            raise ValueError("Cannot update an agency without an id")

        with self._lock:
            existing = self._records.get(agency.id)
            if existing is None:
                return None
            return self._write_locked(existing, agency)

    def apply(self, agency_id: int, change: Callable[[Agency], Agency]) -> Optional[Agency]:
        """Read, change and write one record without releasing the lock.

        ``change`` receives a copy of the stored record and returns the new
        version.  Returns ``None`` when the id is unknown.
        """

        with self._lock:
            existing = self._records.get(agency_id)
            if existing is None:
                return None
            changed = change(replace(existing))
            return self._write_locked(existing, replace(changed, id=agency_id))

    def _write_locked(self, existing: Agency, agency: Agency) -> Agency:
        now = self._clock()
        # updated_at must move forward even if the clock has not ticked.
        if existing.updated_at is not None and now <= existing.updated_at:
            now = existing.updated_at + timedelta(microseconds=1)
        record = replace(agency, created_at=existing.created_at, updated_at=now)
        self._records[record.id] = record
        return replace(record)

    def delete_by_id(self, agency_id: int) -> bool:
        with self._lock:
            return self._records.pop(agency_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = ["AgencyStore", "InMemoryAgencyStore"]
