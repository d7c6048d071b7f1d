import re
import threading

import pytest

from glz.app import create_app, db
from glz.models import ReferenceCounter
from glz.services.errors import AllocationFailure
from glz.services import references
from glz.services.references import (
    allocate_reference_number,
    format_reference_number,
    next_sequence,
)


def test_format_pads_to_four_digits():
    assert format_reference_number(2024, "B2", 7) == "GLZ-2024-B2-0007"


def test_format_widens_past_9999():
    assert format_reference_number(2024, "A1", 12345) == "GLZ-2024-A1-12345"


def test_sequential_allocations_have_no_gaps(app):
    refs = [allocate_reference_number("B2", year=2024) for _ in range(5)]
    db.session.commit()
    assert refs == [f"GLZ-2024-B2-{n:04d}" for n in range(1, 6)]
    counter = ReferenceCounter.query.filter_by(year=2024, level="B2").one()
    assert counter.count == 5


def test_pairs_are_independent(app):
    assert next_sequence("A1", 2024) == 1
    assert next_sequence("A1", 2024) == 2
    assert next_sequence("A2", 2024) == 1
    assert next_sequence("A1", 2025) == 1
    db.session.commit()
    assert ReferenceCounter.query.count() == 3


def test_current_year_is_used(app):
    ref = allocate_reference_number("C1")
    assert re.fullmatch(r"GLZ-\d{4}-C1-0001", ref)


def test_unknown_level_rejected(app):
    with pytest.raises(ValueError):
        allocate_reference_number("D1")
    assert ReferenceCounter.query.count() == 0


def test_store_failure_becomes_allocation_failure(app, monkeypatch):
    def broken(*args, **kwargs):
        from sqlalchemy.exc import OperationalError

        raise OperationalError("UPDATE reference_counters", {}, Exception("locked"))

    monkeypatch.setattr(references, "_increment_with_upsert", broken)
    with pytest.raises(AllocationFailure):
        allocate_reference_number("B1", year=2024)


def test_generic_path_counts_without_gaps(app, monkeypatch):
    monkeypatch.setattr(references, "_UPSERT_INSERTS", {})
    refs = [allocate_reference_number("A2", year=2024) for _ in range(4)]
    db.session.commit()
    assert refs == [f"GLZ-2024-A2-{n:04d}" for n in range(1, 5)]
    assert next_sequence("B2", 2024) == 1
    db.session.commit()
    rows = {(c.level, c.count) for c in ReferenceCounter.query.filter_by(year=2024)}
    assert rows == {("A2", 4), ("B2", 1)}


@pytest.mark.slow
def test_concurrent_allocations_never_collide(tmp_path):
    url = f"sqlite:///{tmp_path / 'references.db'}"
    app = create_app(
        {
            "SQLALCHEMY_DATABASE_URI": url,
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30}},
        }
    )
    with app.app_context():
        db.create_all()

    results = []
    errors = []
    lock = threading.Lock()

    def worker():
        for _ in range(5):
            with app.app_context():
                try:
                    ref = allocate_reference_number("B1", year=2024)
                    db.session.commit()
                except Exception as exc:  # pragma: no cover - reported below
                    with lock:
                        errors.append(exc)
                    continue
                with lock:
                    results.append(ref)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(results) == 40
    assert len(set(results)) == 40
    assert sorted(results) == [f"GLZ-2024-B1-{n:04d}" for n in range(1, 41)]
    with app.app_context():
        db.engine.dispose()
