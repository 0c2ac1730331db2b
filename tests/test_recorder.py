"""Tests for edit notification parsing and the edit recorder."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from sheetaudit.models import ActionType, CellSample
from sheetaudit.notifications import EditNotification, RangeRef
from sheetaudit.recorder import describe_content, record_edit

USER = "alice@example.com"
TS = "2024-05-01 12:30:45"


def edit(a1: str, old_value: str | None = None, **range_extra: int) -> EditNotification:
    payload: dict[str, object] = {
        "source": "doc-1",
        "user": USER,
        "range": {"sheet": "Sheet1", "a1": a1, **range_extra},
    }
    if old_value is not None:
        payload["oldValue"] = old_value
    return EditNotification.model_validate(payload)


class TestRangeRef:
    def test_dimensions_derived_from_a1(self) -> None:
        rng = RangeRef(sheet="Sheet1", a1="B2:D5")
        assert (rng.num_rows, rng.num_columns) == (4, 3)
        assert not rng.is_single_cell

    def test_explicit_dimensions_win(self) -> None:
        rng = RangeRef.model_validate(
            {"sheet": "Sheet1", "a1": "B2", "numRows": 1, "numColumns": 1}
        )
        assert rng.is_single_cell

    def test_invalid_a1_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RangeRef(sheet="Sheet1", a1="not a range")

    def test_camel_case_old_value(self) -> None:
        notification = edit("A1", old_value="before")
        assert notification.old_value == "before"


class TestDescribeContent:
    def test_value(self) -> None:
        assert describe_content(CellSample(value="hello")) == "hello"

    def test_formula_prefixed(self) -> None:
        sample = CellSample(value="=A1+1", formula="=A1+1")
        assert describe_content(sample) == "Formula: =A1+1"

    def test_empty_is_cleared(self) -> None:
        assert describe_content(CellSample(value="")) == "(cleared)"
        assert describe_content(CellSample(value=None)) == "(cleared)"

    def test_numbers_rendered_like_the_sheet(self) -> None:
        assert describe_content(CellSample(value=3.0)) == "3"
        assert describe_content(CellSample(value=True)) == "TRUE"


class TestSingleCellEdit:
    def test_value_edit(self) -> None:
        entry = record_edit(edit("B2", old_value="5"), CellSample(value=10), USER, TS)

        assert entry.action_type is ActionType.EDIT
        assert entry.user == USER
        assert entry.timestamp == TS
        assert entry.details == (
            f"{USER} edited B2 on 'Sheet1' from '5' to '10' at {TS}"
        )

    def test_unknown_old_value_is_blank(self) -> None:
        entry = record_edit(edit("B2"), CellSample(value="new"), USER, TS)
        assert "from '(blank)' to 'new'" in entry.details

    def test_cleared_cell(self) -> None:
        entry = record_edit(edit("B2", old_value="x"), CellSample(value=""), USER, TS)
        assert "from 'x' to '(cleared)'" in entry.details

    def test_formula_edit(self) -> None:
        sample = CellSample(value="=SUM(A1:A3)", formula="=SUM(A1:A3)")
        entry = record_edit(edit("A4"), sample, USER, TS)
        assert entry.action_type is ActionType.EDIT
        assert "to 'Formula: =SUM(A1:A3)'" in entry.details


class TestBulkEdit:
    def test_multi_row_range_is_bulk(self) -> None:
        entry = record_edit(edit("A1:A3"), CellSample(value="x"), USER, TS)
        assert entry.action_type is ActionType.BULK_EDIT

    def test_multi_column_range_is_bulk(self) -> None:
        entry = record_edit(edit("A1:C1"), CellSample(value="x"), USER, TS)
        assert entry.action_type is ActionType.BULK_EDIT

    def test_values_message(self) -> None:
        entry = record_edit(edit("B2:D5"), CellSample(value="pasted"), USER, TS)
        assert entry.details == (
            f"{USER} updated range B2:D5 on 'Sheet1' with values "
            f"(first cell: 'pasted') at {TS}"
        )

    def test_formulas_message(self) -> None:
        sample = CellSample(value="=B1*2", formula="=B1*2")
        entry = record_edit(edit("C1:C10"), sample, USER, TS)
        assert "with formulas (first cell: 'Formula: =B1*2')" in entry.details

    def test_cleared_range(self) -> None:
        entry = record_edit(edit("A1:Z100", old_value="ignored"), CellSample(), USER, TS)
        assert "with values (first cell: '(cleared)')" in entry.details
        assert "ignored" not in entry.details

    def test_reported_dimensions_override_a1(self) -> None:
        notification = edit("A1", numRows=2, numColumns=1)
        entry = record_edit(notification, CellSample(value=1), USER, TS)
        assert entry.action_type is ActionType.BULK_EDIT
