"""
Google Sheets Models - Spreadsheet, range and push result types.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

DEFAULT_SHEET_NAME = "Sheet1"
DEFAULT_DOCUMENT_NAME = "IntegratePDF Data"
SPREADSHEET_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}"


class GoogleSheetsConfig(BaseModel):
    """Decrypted connection settings for one Google Sheets destination."""

    access_token: str
    refresh_token: str | None = None
    spreadsheet_id: str | None = None
    sheet_name: str = DEFAULT_SHEET_NAME
    create_headers: bool = True


class Sheet(BaseModel):
    """One tab of a spreadsheet."""

    id: int
    title: str
    index: int = 0
    row_count: int = 1000
    column_count: int = 26

    model_config = {"frozen": True}


class Spreadsheet(BaseModel):
    """Spreadsheet metadata (no grid data)."""

    id: str
    name: str
    url: str
    sheets: list[Sheet] = Field(default_factory=list)

    model_config = {"frozen": True}

    def find_sheet(self, title: str | None) -> Sheet | None:
        """Sheet by title, else the first sheet."""
        for sheet in self.sheets:
            if sheet.title == title:
                return sheet
        return self.sheets[0] if self.sheets else None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Spreadsheet:
        """Build from a spreadsheets.get / spreadsheets.create response."""
        spreadsheet_id = data["spreadsheetId"]
        sheets = []
        for item in data.get("sheets") or []:
            props = item.get("properties") or {}
            grid = props.get("gridProperties") or {}
            sheets.append(
                Sheet(
                    id=props.get("sheetId", 0),
                    title=props.get("title", ""),
                    index=props.get("index", 0),
                    row_count=grid.get("rowCount") or 1000,
                    column_count=grid.get("columnCount") or 26,
                )
            )

        return cls(
            id=spreadsheet_id,
            name=(data.get("properties") or {}).get("title", ""),
            url=data.get("spreadsheetUrl") or SPREADSHEET_URL.format(spreadsheet_id=spreadsheet_id),
            sheets=sheets,
        )


class SheetRange(BaseModel):
    """Values of an A1 range."""

    range: str
    major_dimension: str = "ROWS"
    values: list[list[str]] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> SheetRange:
        return cls(
            range=data.get("range", ""),
            major_dimension=data.get("majorDimension") or "ROWS",
            values=data.get("values") or [],
        )


class AppendResult(BaseModel):
    """Outcome of a values.append call."""

    spreadsheet_id: str
    table_range: str | None = None
    updated_range: str | None = None
    updated_rows: int = 0
    updated_cells: int = 0

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> AppendResult:
        updates = data.get("updates") or {}
        return cls(
            spreadsheet_id=data.get("spreadsheetId", ""),
            table_range=data.get("tableRange"),
            updated_range=updates.get("updatedRange"),
            updated_rows=updates.get("updatedRows", 0),
            updated_cells=updates.get("updatedCells", 0),
        )


class SheetsPushResult(BaseModel):
    """Result of pushing one document's fields as a row."""

    spreadsheet_id: str
    spreadsheet_url: str
    sheet_name: str
    updated_range: str | None = None
    updated_rows: int = 0
    created: bool = False

    @property
    def external_id(self) -> str:
        return f"{self.spreadsheet_id}:{self.sheet_name}"
