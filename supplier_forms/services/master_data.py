"""Master data profile: merging, persistence, import and export."""
import logging
import re
from typing import Dict, Mapping, Optional

from openpyxl import Workbook
from openpyxl.styles import Font

from supplier_forms.domain.exceptions import MasterDataImportError, PersistenceError
from supplier_forms.domain.models import MergeOutcome
from supplier_forms.storage.master_data_store import MasterDataStore
from supplier_forms.utils.cell_helpers import display_text
from supplier_forms.utils.workbook_io import first_worksheet, load_workbook_bytes, save_workbook_bytes

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"\r?\n")
EXPORT_HEADER = ("Field", "Value")


class MasterDataUpdater:
    """Merges newly supplied values into a user's saved master data."""

    def __init__(self, store: MasterDataStore):
        self.store = store

    def load(self, user_id: str) -> Dict[str, str]:
        """Return the saved mapping, treating "never saved" as empty."""
        return self.store.get(user_id) or {}

    def merge_and_persist(
        self,
        user_id: str,
        existing: Mapping[str, str],
        newly_provided: Mapping[str, str],
    ) -> MergeOutcome:
        """Merge ``newly_provided`` over ``existing`` and save the result.

        New values win on key collisions; nothing is removed. If saving
        fails the merged mapping is still returned, with a warning.
        """
        merged = dict(existing)
        merged.update(newly_provided)

        try:
            self.store.put(user_id, merged)
        except PersistenceError as e:
            logger.warning("Could not save master data for user %s (%s): %s", user_id, e.reason, e)
            return MergeOutcome(data=merged, warning=e.user_message)
        return MergeOutcome(data=merged)


def clean_master_data(data: Mapping[str, str]) -> Dict[str, str]:
    """Trim keys and drop entries whose key is blank."""
    cleaned: Dict[str, str] = {}
    for key, value in data.items():
        key = str(key).strip()
        if key:
            cleaned[key] = "" if value is None else str(value)
    return cleaned


def parse_master_data_csv(text: str) -> Dict[str, str]:
    """Parse ``key,value`` lines.

    Lines are split on every comma: the first column is the key and the
    remaining columns are joined back with commas as the value. Quoted
    fields are not understood.
    """
    data: Dict[str, str] = {}
    for row in _LINE_BREAK.split(text.lstrip("\ufeff")):
        columns = row.split(",")
        if len(columns) < 2:
            continue
        key = columns[0].strip()
        if key:
            data[key] = ",".join(columns[1:]).strip()
    if not data:
        raise MasterDataImportError(
            "Could not parse any data. Ensure the CSV has at least two columns: key, value."
        )
    return data


def parse_master_data_xlsx(content: bytes) -> Dict[str, str]:
    """Read keys from column A and values from column B of the first sheet."""
    worksheet = first_worksheet(load_workbook_bytes(content, data_only=True))
    data: Dict[str, str] = {}
    for row in worksheet.iter_rows(max_col=2, values_only=True):
        key = display_text(row[0] if row else None).strip()
        value = display_text(row[1] if len(row) > 1 else None).strip()
        if not key or (key, value) == EXPORT_HEADER:
            continue
        data[key] = value
    if not data:
        raise MasterDataImportError(
            "Could not parse any data. Ensure the first column has keys and the second has values."
        )
    return data


def parse_master_data_file(filename: Optional[str], content: bytes) -> Dict[str, str]:
    """Dispatch on file extension (.csv or .xlsx)."""
    name = (filename or "").lower()
    if name.endswith(".csv"):
        return parse_master_data_csv(content.decode("utf-8", errors="replace"))
    if name.endswith(".xlsx"):
        return parse_master_data_xlsx(content)
    raise MasterDataImportError("Please upload a .csv or .xlsx file.")


def build_master_data_workbook(data: Mapping[str, str]) -> bytes:
    """Export a mapping as a two-column Field/Value workbook."""
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Master Data"
    worksheet.append(list(EXPORT_HEADER))
    for cell in worksheet[1]:
        cell.font = Font(bold=True)
    for key, value in data.items():
        worksheet.append([key, value])
    worksheet.column_dimensions["A"].width = 32
    worksheet.column_dimensions["B"].width = 48
    return save_workbook_bytes(workbook)
