"""Flattens the first worksheet of a workbook into cell/text pairs."""
import json
import logging
from typing import List

from openpyxl.cell.cell import MergedCell

from supplier_forms.domain.models import SheetCell
from supplier_forms.utils.cell_helpers import display_text
from supplier_forms.utils.workbook_io import first_worksheet, load_workbook_bytes

logger = logging.getLogger(__name__)


class SheetIndexer:
    """Service for listing every cell of a worksheet's used range."""

    def index(self, sheet_bytes: bytes) -> List[SheetCell]:
        """Return the first worksheet's cells in row-major order.

        Empty cells are included with ``""`` text. Formulas are reported by
        their cached result, and the covered part of a merged range is left
        out because only its anchor holds a value.
        """
        workbook = load_workbook_bytes(sheet_bytes, data_only=True)
        worksheet = first_worksheet(workbook)

        cells: List[SheetCell] = []
        for row in worksheet.iter_rows():
            for cell in row:
                if isinstance(cell, MergedCell):
                    continue
                cells.append(SheetCell(address=cell.coordinate, text=display_text(cell.value)))

        logger.debug("Indexed %d cells from worksheet %r", len(cells), worksheet.title)
        return cells


def cells_to_payload(cells: List[SheetCell]) -> str:
    """Serialize indexed cells for inclusion in a prompt."""
    return json.dumps(
        [{"cell": cell.address, "value": cell.text} for cell in cells],
        ensure_ascii=False,
    )
