"""Tests for structure diffing."""

from __future__ import annotations

from sheetaudit.differ import (
    added_sheets,
    describe_change,
    diff_structure,
    removed_sheets,
)
from sheetaudit.models import ActionType, SheetDimensions, StructureSnapshot
from sheetaudit.notifications import ChangeNotification

USER = "alice@example.com"
TS = "2024-05-01 12:30:45"


def dims(rows: int, cols: int) -> SheetDimensions:
    return SheetDimensions(rows=rows, cols=cols)


def change(tag: str | None, **extra: object) -> ChangeNotification:
    payload: dict[str, object] = {"source": "doc-1", "user": USER, **extra}
    if tag is not None:
        payload["changeType"] = tag
    return ChangeNotification.model_validate(payload)


def describe(
    previous: StructureSnapshot, current: StructureSnapshot, notification: ChangeNotification
):
    return describe_change(previous, current, notification, USER, TS)


class TestRowChanges:
    def test_row_count_increase_is_insert(self) -> None:
        entry = describe(
            {"A": dims(10, 5)},
            {"A": dims(11, 5)},
            change("INSERT_ROW", activeSheet="A", activeRow=4),
        )
        assert entry is not None
        assert entry.action_type is ActionType.INSERT_ROW
        assert entry.details == (
            f"{USER} inserted row(s) (approx. at index 4) in 'A' at {TS}"
        )

    def test_row_count_decrease_is_remove(self) -> None:
        entry = describe(
            {"A": dims(10, 5)},
            {"A": dims(8, 5)},
            change("REMOVE_ROW", activeSheet="A", activeRow=2),
        )
        assert entry is not None
        assert entry.action_type is ActionType.REMOVE_ROW
        assert entry.details.startswith(f"{USER} deleted row(s) (approx. at index 2)")

    def test_unchanged_rows_suppressed(self) -> None:
        entry = describe(
            {"A": dims(10, 5)},
            {"A": dims(10, 5)},
            change("INSERT_ROW", activeSheet="A", activeRow=1),
        )
        assert entry is None

    def test_delta_decides_over_tag(self) -> None:
        entry = describe(
            {"A": dims(10, 5)},
            {"A": dims(9, 5)},
            change("INSERT_ROW", activeSheet="A"),
        )
        assert entry is not None
        assert entry.action_type is ActionType.REMOVE_ROW

    def test_only_active_sheet_compared(self) -> None:
        entry = describe(
            {"A": dims(10, 5), "B": dims(10, 5)},
            {"A": dims(10, 5), "B": dims(20, 5)},
            change("INSERT_ROW", activeSheet="A"),
        )
        assert entry is None

    def test_missing_prior_snapshot_reads_as_insert(self) -> None:
        entry = describe(
            {},
            {"A": dims(1000, 26)},
            change("REMOVE_ROW", activeSheet="A", activeRow=1),
        )
        assert entry is not None
        assert entry.action_type is ActionType.INSERT_ROW

    def test_unknown_index(self) -> None:
        entry = describe(
            {"A": dims(10, 5)},
            {"A": dims(11, 5)},
            change("INSERT_ROW", activeSheet="A"),
        )
        assert entry is not None
        assert "(approx. index unknown)" in entry.details

    def test_no_active_sheet_suppressed(self) -> None:
        entry = describe({"A": dims(10, 5)}, {"A": dims(11, 5)}, change("INSERT_ROW"))
        assert entry is None


class TestColumnChanges:
    def test_column_insert(self) -> None:
        entry = describe(
            {"A": dims(10, 5)},
            {"A": dims(10, 7)},
            change("INSERT_COLUMN", activeSheet="A", activeColumn=3),
        )
        assert entry is not None
        assert entry.action_type is ActionType.INSERT_COLUMN
        assert entry.details == (
            f"{USER} inserted column(s) (approx. at index 3) in 'A' at {TS}"
        )

    def test_column_remove(self) -> None:
        entry = describe(
            {"A": dims(10, 5)},
            {"A": dims(10, 4)},
            change("REMOVE_COLUMN", activeSheet="A", activeColumn=2),
        )
        assert entry is not None
        assert entry.action_type is ActionType.REMOVE_COLUMN

    def test_row_change_ignored_for_column_tag(self) -> None:
        entry = describe(
            {"A": dims(10, 5)},
            {"A": dims(12, 5)},
            change("INSERT_COLUMN", activeSheet="A"),
        )
        assert entry is None


class TestSheetChanges:
    def test_sheet_added(self) -> None:
        entry = describe(
            {"A": dims(10, 5)},
            {"A": dims(10, 5), "B": dims(5, 5)},
            change("INSERT_GRID"),
        )
        assert entry is not None
        assert entry.action_type is ActionType.INSERT_GRID
        assert entry.details == f"{USER} added a new sheet 'B' at {TS}"

    def test_sheet_added_first_match(self) -> None:
        entry = describe(
            {"A": dims(1, 1)},
            {"A": dims(1, 1), "C": dims(1, 1), "B": dims(1, 1)},
            change("INSERT_GRID"),
        )
        assert entry is not None
        assert "'C'" in entry.details

    def test_sheet_added_unnamed(self) -> None:
        entry = describe({"A": dims(1, 1)}, {"A": dims(1, 1)}, change("INSERT_GRID"))
        assert entry is not None
        assert entry.details == f"{USER} added a new sheet at {TS}"

    def test_sheet_removed(self) -> None:
        entry = describe(
            {"A": dims(10, 5), "B": dims(5, 5)},
            {"A": dims(10, 5)},
            change("REMOVE_GRID"),
        )
        assert entry is not None
        assert entry.action_type is ActionType.REMOVE_GRID
        assert entry.details == f"{USER} deleted sheet 'B' at {TS}"

    def test_sheet_renamed(self) -> None:
        entry = describe({"A": dims(10, 5)}, {"C": dims(10, 5)}, change("RENAME_SHEET"))
        assert entry is not None
        assert entry.action_type is ActionType.RENAME_SHEET
        assert entry.details == f"{USER} renamed sheet 'A' to 'C' at {TS}"

    def test_rename_without_pair(self) -> None:
        entry = describe({"A": dims(10, 5)}, {"A": dims(10, 5)}, change("RENAME_SHEET"))
        assert entry is not None
        assert entry.details == f"{USER} renamed a sheet at {TS}"

    def test_set_helpers(self) -> None:
        old = {"A": dims(1, 1), "B": dims(1, 1)}
        new = {"B": dims(1, 1), "C": dims(1, 1)}
        assert added_sheets(old, new) == ["C"]
        assert removed_sheets(old, new) == ["A"]


class TestOtherChanges:
    def test_other_tag(self) -> None:
        entry = describe({"A": dims(1, 1)}, {"A": dims(1, 1)}, change("FORMAT"))
        assert entry is not None
        assert entry.action_type is ActionType.UNKNOWN_CHANGE
        assert entry.details == f"{USER} performed a 'FORMAT' action at {TS}"

    def test_missing_tag(self) -> None:
        entry = describe({}, {}, change(None))
        assert entry is not None
        assert entry.action_type is ActionType.UNKNOWN_CHANGE
        assert "'UNKNOWN_CHANGE'" in entry.details


class TestDiffStructure:
    def test_new_baseline_is_current(self) -> None:
        current = {"A": dims(11, 5)}
        result = diff_structure(
            {"A": dims(10, 5)}, current, change("INSERT_ROW", activeSheet="A"), USER, TS
        )
        assert result.snapshot == current
        assert result.entry is not None

    def test_baseline_advances_when_suppressed(self) -> None:
        current = {"A": dims(10, 5)}
        result = diff_structure(
            {"A": dims(10, 5)}, current, change("INSERT_ROW", activeSheet="A"), USER, TS
        )
        assert result.entry is None
        assert result.snapshot == current
