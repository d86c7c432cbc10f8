"""Helpers for moving workbooks between bytes and openpyxl objects."""
from io import BytesIO

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from supplier_forms.domain.exceptions import NoWorksheetError, SpreadsheetReadError

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def load_workbook_bytes(content: bytes, data_only: bool = False) -> Workbook:
    """Open an .xlsx payload, raising ``SpreadsheetReadError`` if unreadable."""
    if not content:
        raise SpreadsheetReadError("The uploaded file appears to be empty.")
    try:
        return load_workbook(BytesIO(content), data_only=data_only)
    except Exception as e:
        raise SpreadsheetReadError(f"Could not read the workbook: {e}") from e


def first_worksheet(workbook: Workbook) -> Worksheet:
    """Return the first worksheet, ignoring chart sheets."""
    if not workbook.worksheets:
        raise NoWorksheetError("No worksheet found in the Excel file.")
    return workbook.worksheets[0]


def save_workbook_bytes(workbook: Workbook) -> bytes:
    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


def validate_excel_filename(filename: str) -> None:
    """Only OOXML workbooks are accepted for filling."""
    if not filename or not filename.lower().endswith(".xlsx"):
        raise SpreadsheetReadError("Invalid file type. Please upload an .xlsx file.")
