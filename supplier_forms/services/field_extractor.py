"""Detects fillable fields in a supplier form."""
import logging
from typing import List, Optional, Tuple

from supplier_forms.domain.exceptions import EmptyExtractionError, InferenceError
from supplier_forms.domain.models import FieldCandidate, SheetCell
from supplier_forms.prompts import EXTRACT_FIELDS_PROMPT
from supplier_forms.services.inference import InferenceClient, InferenceStatus
from supplier_forms.services.schemas import FieldExtractionResponse
from supplier_forms.services.sheet_indexer import SheetIndexer, cells_to_payload
from supplier_forms.utils.cell_helpers import normalize_address, split_address

logger = logging.getLogger(__name__)

NO_FIELDS_MESSAGE = (
    "The AI could not identify any field labels in the supplier form. Please ensure the form "
    "is not blank and has clear labels for the fields you want to fill."
)


def _used_bounds(cells: List[SheetCell]) -> Tuple[int, int]:
    max_row = max_col = 0
    for cell in cells:
        row, column = split_address(cell.address)
        max_row = max(max_row, row)
        max_col = max(max_col, column)
    return max_row, max_col


class FieldExtractor:
    """Service for turning a flattened sheet into field candidates."""

    def __init__(self, inference: InferenceClient, indexer: Optional[SheetIndexer] = None):
        self.inference = inference
        self.indexer = indexer or SheetIndexer()

    def extract(self, sheet_bytes: bytes) -> List[FieldCandidate]:
        """Detect form fields in an .xlsx payload."""
        return self.extract_from_cells(self.indexer.index(sheet_bytes))

    def extract_from_cells(self, cells: List[SheetCell]) -> List[FieldCandidate]:
        """Detect form fields from already indexed cells.

        Candidates are returned in the model's order and are not
        de-duplicated. Addresses that are malformed or outside the used
        range are dropped.
        """
        if not cells:
            raise EmptyExtractionError(
                "The first sheet of the Excel file appears to have no content to analyze."
            )

        result = self.inference.generate(
            EXTRACT_FIELDS_PROMPT,
            {"cells": cells_to_payload(cells)},
            FieldExtractionResponse,
            expected_items=len(cells),
        )
        if result.status is InferenceStatus.FAILED:
            raise InferenceError(result.detail)
        if not result.ok:
            logger.warning("Field extraction produced no usable result: %s", result.detail)
            raise EmptyExtractionError(NO_FIELDS_MESSAGE)

        max_row, max_col = _used_bounds(cells)
        candidates: List[FieldCandidate] = []
        for item in result.data.items:
            label = item.field_name.strip().rstrip(":").strip()
            try:
                address = normalize_address(item.cell_location)
                row, column = split_address(address)
            except ValueError:
                logger.warning("Ignoring field %r with malformed cell %r", label, item.cell_location)
                continue
            if row > max_row or column > max_col:
                logger.warning("Ignoring field %r outside the used range: %s", label, address)
                continue
            if not label:
                continue
            candidates.append(FieldCandidate(label=label, target_cell=address))

        if not candidates:
            raise EmptyExtractionError(NO_FIELDS_MESSAGE)

        logger.info("Detected %d form fields", len(candidates))
        return candidates
