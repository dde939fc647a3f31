from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from agency_service.models import Agency
from agency_service.store import InMemoryAgencyStore


FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def store() -> InMemoryAgencyStore:
    return InMemoryAgencyStore()


def test_insert_assigns_sequential_ids_from_one(store: InMemoryAgencyStore) -> None:
    created = [store.insert(Agency(name=f"Branch {index}")) for index in range(5)]

    assert [agency.id for agency in created] == [1, 2, 3, 4, 5]


def test_insert_sets_matching_timestamps() -> None:
    store = InMemoryAgencyStore(clock=lambda: FIXED_NOW)

    created = store.insert(Agency(name="Centro"))

    assert created.created_at == FIXED_NOW
    assert created.updated_at == created.created_at


def test_insert_ignores_caller_supplied_id(store: InMemoryAgencyStore) -> None:
    created = store.insert(Agency(name="Centro", id=99))

    assert created.id == 1
    assert store.find_by_id(99) is None


def test_ids_are_not_reused_after_delete(store: InMemoryAgencyStore) -> None:
    first = store.insert(Agency(name="First"))
    assert store.delete_by_id(first.id)

    second = store.insert(Agency(name="Second"))

    assert second.id == 2


def test_list_all_preserves_insertion_order(store: InMemoryAgencyStore) -> None:
    for name in ("Norte", "Sul", "Leste"):
        store.insert(Agency(name=name))

    assert [agency.name for agency in store.list_all()] == ["Norte", "Sul", "Leste"]


def test_list_all_returns_a_snapshot(store: InMemoryAgencyStore) -> None:
    store.insert(Agency(name="Norte"))

    snapshot = store.list_all()
    snapshot.append(Agency(name="Intruder"))
    snapshot[0].name = "Changed"

    assert len(store) == 1
    assert store.list_all()[0].name == "Norte"


def test_find_by_id_returns_a_copy(store: InMemoryAgencyStore) -> None:
    created = store.insert(Agency(name="Norte"))

    found = store.find_by_id(created.id)
    assert found is not None
    found.name = "Changed"

    assert store.find_by_id(created.id).name == "Norte"


def test_find_by_id_unknown_returns_none(store: InMemoryAgencyStore) -> None:
    assert store.find_by_id(42) is None


def test_update_refreshes_updated_at_and_keeps_created_at() -> None:
    ticks = iter([FIXED_NOW, FIXED_NOW + timedelta(seconds=5)])
    store = InMemoryAgencyStore(clock=lambda: next(ticks))
    created = store.insert(Agency(name="Norte", tax_id="11111111111111"))

    created.name = "Norte II"
    created.created_at = FIXED_NOW - timedelta(days=1)
    updated = store.update(created)

    assert updated is not None
    assert updated.name == "Norte II"
    assert updated.created_at == FIXED_NOW
    assert updated.updated_at == FIXED_NOW + timedelta(seconds=5)


def test_update_moves_forward_when_clock_has_not_ticked() -> None:
    store = InMemoryAgencyStore(clock=lambda: FIXED_NOW)
    created = store.insert(Agency(name="Norte"))

    updated = store.update(created)

    assert updated is not None
    assert updated.updated_at > updated.created_at


def test_update_unknown_id_returns_none(store: InMemoryAgencyStore) -> None:
    assert store.update(Agency(id=7, name="Ghost")) is None
    assert len(store) == 0


def test_update_requires_an_id(store: InMemoryAgencyStore) -> None:
    with pytest.raises(ValueError):
        store.update(Agency(name="No id"))


def test_delete_by_id_reports_whether_a_record_was_removed(store: InMemoryAgencyStore) -> None:
    created = store.insert(Agency(name="Norte"))

    assert store.delete_by_id(created.id) is True
    assert store.delete_by_id(created.id) is False
    assert store.find_by_id(created.id) is None


def test_concurrent_inserts_produce_unique_ids(store: InMemoryAgencyStore) -> None:
    def worker() -> None:
        for _ in range(50):
            store.insert(Agency(name="Concurrent"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    ids = [agency.id for agency in store.list_all()]
    assert len(ids) == 400
    assert sorted(ids) == list(range(1, 401))


def test_apply_changes_the_record_under_one_lock(store: InMemoryAgencyStore) -> None:
    created = store.insert(Agency(name="old", legal_name="old LTDA"))
    second_started = threading.Event()
    results = []

    def second_writer() -> None:
        second_started.set()
        results.append(
            store.apply(created.id, lambda agency: replace(agency, legal_name="new LTDA"))
        )

    def first_change(agency: Agency) -> Agency:
        thread = threading.Thread(target=second_writer)
        thread.start()
        second_started.wait(timeout=1)
        # The second writer must wait until this change has been written.
        thread.join(timeout=0.2)
        assert thread.is_alive()
        results.append(thread)
        return replace(agency, name="new")

    first = store.apply(created.id, first_change)
    results[0].join(timeout=5)

    assert first is not None
    assert first.name == "new"
    final = store.find_by_id(created.id)
    assert (final.name, final.legal_name) == ("new", "new LTDA")


def test_apply_keeps_id_and_created_at(store: InMemoryAgencyStore) -> None:
    created = store.insert(Agency(name="Norte"))

    updated = store.apply(created.id, lambda agency: replace(agency, id=50, name="Sul"))

    assert updated is not None
    assert updated.id == created.id
    assert updated.created_at == created.created_at
    assert store.find_by_id(50) is None


def test_apply_unknown_id_returns_none(store: InMemoryAgencyStore) -> None:
    calls = []

    assert store.apply(3, lambda agency: calls.append(agency) or agency) is None
    assert calls == []
