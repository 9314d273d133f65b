from __future__ import annotations

import pytest

from order_recon.models.duplicate import DuplicateKind
from order_recon.models.row_data import RawRow
from order_recon.services.duplicate_check import (
    DuplicateConflict,
    check_duplicates,
    duplicate_row,
    find_in_batch_collisions,
    find_store_collisions,
)
from order_recon.services.sanitizer import require_valid, validate_batch


def _validated(*identities, **extra):
    rows = [
        RawRow(row_number=i, values={"ORDERNUMBER": o, "MATERIAL_NUMBER": m, "BATCHNUMBER": "B1", **extra})
        for i, (o, m) in enumerate(identities, start=1)
    ]
    return require_valid(validate_batch(rows))


def test_store_collision_flagged(make_store):
    store = make_store(rows=[{"ORDERNUMBER": "A1", "MATERIAL_NUMBER": "M1", "BATCHNUMBER": "B7"}])
    report = find_store_collisions(_validated(("A1", "M1"), ("A2", "M1")), store)
    assert report.kind == DuplicateKind.STORE_COLLISION
    assert len(report) == 1
    group = report.groups[0]
    assert group.identity == ("A1", "M1")
    assert group.row_numbers == (1,)


def test_collision_ignores_other_attributes(make_store):
    store = make_store(rows=[{"ORDERNUMBER": "A1", "MATERIAL_NUMBER": "M1", "BATCHNUMBER": "OTHER", "STATUS": "x"}])
    report = find_store_collisions(_validated(("A1", "M1")), store)
    assert report


def test_rows_without_material_are_exempt(make_store):
    store = make_store(rows=[{"ORDERNUMBER": "A1", "MATERIAL_NUMBER": None}])
    report = find_store_collisions(_validated(("A1", None)), store)
    assert not report
    assert not [c for c in store.calls if c[0] == "point_lookup"]


def test_one_lookup_per_row_with_timeout(make_store):
    store = make_store()
    find_store_collisions(_validated(("A1", "M1"), ("A2", "M2"), ("A3", "M3")), store, timeout=2.5)
    lookups = [c[1] for c in store.calls if c[0] == "point_lookup"]
    assert lookups == [("A1", "M1", 2.5), ("A2", "M2", 2.5), ("A3", "M3", 2.5)]


def test_report_row_shape_identity_first_then_upload_columns():
    rows = _validated(("A1", "M1"), CLUB_NAME="Club")
    row = duplicate_row(rows[0])
    assert list(row) == ["ORDERNUMBER", "MATERIAL_NUMBER", "BATCHNUMBER", "CLUB_NAME"]
    assert row["CLUB_NAME"] == "Club"


def test_report_row_raw_value_overwrites_resolved_value():
    rows = require_valid(
        validate_batch([RawRow(row_number=1, values={"ORDERNUMBER": " A1 ", "MATERIAL_NUMBER": "M1"})])
    )
    assert duplicate_row(rows[0])["ORDERNUMBER"] == " A1 "


def test_collision_group_keeps_looked_up_key_beside_raw_cell(make_store):
    store = make_store(rows=[{"ORDERNUMBER": "A1", "MATERIAL_NUMBER": "M1"}])
    rows = require_valid(
        validate_batch([RawRow(row_number=1, values={"ORDERNUMBER": " A1 ", "MATERIAL_NUMBER": "M1"})])
    )
    group = find_store_collisions(rows, store).groups[0]
    assert group.order_number == "A1"
    assert group.rows[0]["ORDERNUMBER"] == " A1 "


def test_in_batch_repeats_not_checked_by_default(make_store):
    check_duplicates(_validated(("A1", "M1"), ("A1", "M1")), make_store())


def test_in_batch_repeats_flagged_when_enabled(make_store):
    rows = _validated(("A1", "M1"), ("A2", "M2"), ("A1", "M1"))
    with pytest.raises(DuplicateConflict) as exc:
        check_duplicates(rows, make_store(), check_in_batch=True)
    conflict = exc.value
    assert not conflict.store_report
    assert conflict.in_batch_report.groups[0].row_numbers == (1, 3)
    assert str(conflict) == "Found 2 duplicate entries."


def test_find_in_batch_collisions_skips_partial_identity():
    assert not find_in_batch_collisions(_validated(("A1", None), ("A1", None)))


def test_check_duplicates_raises_with_every_flagged_row(make_store):
    store = make_store(
        rows=[
            {"ORDERNUMBER": "A1", "MATERIAL_NUMBER": "M1"},
            {"ORDERNUMBER": "A3", "MATERIAL_NUMBER": "M3"},
        ]
    )
    with pytest.raises(DuplicateConflict) as exc:
        check_duplicates(_validated(("A1", "M1"), ("A2", "M2"), ("A3", "M3")), store)
    assert [g.order_number for g in exc.value.store_report.groups] == ["A1", "A3"]
    assert exc.value.in_batch_report is None
    assert str(exc.value) == "Found 2 duplicate entries."


def test_check_duplicates_clean_batch_returns_none(make_store):
    assert check_duplicates(_validated(("A1", "M1")), make_store()) is None
