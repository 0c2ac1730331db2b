"""Notification payloads delivered by the bound forwarder script.

Field aliases match the JSON the forwarder posts, which mirrors the
Apps Script trigger event objects.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from sheetaudit.utils import cell_to_a1, range_dimensions, top_left_cell


class _Notification(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source: str = Field(..., description="ID of the originating spreadsheet")
    user: str | None = Field(None, description="Email of the acting user")


class RangeRef(BaseModel):
    """The range an edit touched."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sheet: str
    a1: str
    num_rows: int | None = Field(None, alias="numRows", ge=1)
    num_columns: int | None = Field(None, alias="numColumns", ge=1)
    # 1-based position of the first cell, as reported by getRow/getColumn
    row: int | None = Field(None, ge=1)
    column: int | None = Field(None, ge=1)

    @model_validator(mode="after")
    def fill_dimensions(self) -> RangeRef:
        """Derive missing dimensions from the A1 notation."""
        if self.num_rows is None or self.num_columns is None:
            rows, cols = range_dimensions(self.a1)
            if self.num_rows is None:
                self.num_rows = rows
            if self.num_columns is None:
                self.num_columns = cols
        return self

    @property
    def is_single_cell(self) -> bool:
        return self.num_rows == 1 and self.num_columns == 1

    @property
    def top_left(self) -> str:
        """First cell of the range in A1 notation."""
        if self.row is not None and self.column is not None:
            return cell_to_a1(self.row - 1, self.column - 1)
        return top_left_cell(self.a1)


class EditNotification(_Notification):
    """A cell or range was edited."""

    range: RangeRef
    old_value: str | None = Field(None, alias="oldValue")


class ChangeNotification(_Notification):
    """The spreadsheet structure changed (or another change event fired)."""

    change_type: str | None = Field(None, alias="changeType")
    active_sheet: str | None = Field(None, alias="activeSheet")
    active_row: int | None = Field(None, alias="activeRow")
    active_column: int | None = Field(None, alias="activeColumn")

    @property
    def tag(self) -> str:
        return self.change_type or "UNKNOWN_CHANGE"


class OpenNotification(_Notification):
    """The spreadsheet was opened."""
