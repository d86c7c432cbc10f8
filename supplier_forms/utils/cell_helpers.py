"""Utility functions for Excel cell operations."""
import datetime
from typing import Any

from openpyxl.cell.cell import Cell, MergedCell
from openpyxl.utils.cell import coordinate_from_string, column_index_from_string
from openpyxl.utils.exceptions import CellCoordinatesException
from openpyxl.worksheet.worksheet import Worksheet


def normalize_address(address: str) -> str:
    """Return a canonical ``B2`` style address.

    Absolute markers and surrounding whitespace are dropped; a range such as
    ``B2:D2`` is reduced to its first cell. Raises ``ValueError`` for
    anything that is not a cell reference.
    """
    if not isinstance(address, str):
        raise ValueError(f"Cell address must be a string, got {type(address).__name__}")
    text = address.strip().replace("$", "").upper()
    if ":" in text:
        text = text.split(":", 1)[0]
    try:
        column, row = coordinate_from_string(text)
    except CellCoordinatesException as e:
        raise ValueError(f"Invalid cell address {address!r}: {e}") from e
    return f"{column}{row}"


def split_address(address: str) -> tuple:
    """Return ``(row, column)`` indexes of a canonical address."""
    try:
        column, row = coordinate_from_string(address)
    except CellCoordinatesException as e:
        raise ValueError(f"Invalid cell address {address!r}: {e}") from e
    return row, column_index_from_string(column)


def is_within_used_range(address: str, ws: Worksheet) -> bool:
    """Check if an address lies inside the worksheet's used range."""
    try:
        row, column = split_address(normalize_address(address))
    except ValueError:
        return False
    return 1 <= row <= ws.max_row and 1 <= column <= ws.max_column


def is_cell_empty(cell: Cell) -> bool:
    """Check if a cell is empty or contains only whitespace."""
    if isinstance(cell, MergedCell):
        return True
    value = cell.value
    return value is None or (isinstance(value, str) and value.strip() == "")


def get_writable_cell(target_coord: str, ws: Worksheet) -> Cell:
    """Get the actual writable cell for a target coordinate.

    Addresses inside a merged range resolve to the range's top-left anchor.
    Raises ``ValueError`` for malformed or out-of-range addresses.
    """
    address = normalize_address(target_coord)
    if not is_within_used_range(address, ws):
        raise ValueError(f"Cell {address} is outside the used range {ws.dimensions}")
    cell = ws[address]
    if isinstance(cell, MergedCell):
        for merged_range in ws.merged_cells.ranges:
            if address in merged_range:
                return ws.cell(row=merged_range.min_row, column=merged_range.min_col)
    return cell


def display_text(value: Any) -> str:
    """Render a stored cell value the way a spreadsheet would show it."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime.datetime):
        if value.time() == datetime.time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return str(value)
