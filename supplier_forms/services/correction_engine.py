"""Applies free-text corrections to an already filled form."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from supplier_forms.domain.models import CorrectionDirective, FillResult
from supplier_forms.prompts import CORRECT_FORM_PROMPT
from supplier_forms.services.form_filler import FormFiller
from supplier_forms.services.inference import InferenceClient
from supplier_forms.services.schemas import CorrectionResponse
from supplier_forms.services.sheet_indexer import SheetIndexer, cells_to_payload

logger = logging.getLogger(__name__)


@dataclass
class CorrectionResult:
    """Directives derived from feedback and the workbook they produced."""
    directives: List[CorrectionDirective]
    fill: FillResult
    warnings: List[str] = field(default_factory=list)

    @property
    def content(self) -> bytes:
        return self.fill.content

    @property
    def changed(self) -> bool:
        return bool(self.fill.written)


class CorrectionEngine:
    """Service for turning user feedback into cell overwrites.

    Each call is independent: it looks only at the sheet it is given and
    the new feedback text.
    """

    def __init__(
        self,
        inference: InferenceClient,
        indexer: Optional[SheetIndexer] = None,
        filler: Optional[FormFiller] = None,
    ):
        self.inference = inference
        self.indexer = indexer or SheetIndexer()
        self.filler = filler or FormFiller()

    def correct(self, sheet_bytes: bytes, feedback_text: str) -> List[CorrectionDirective]:
        """Ask for the overwrites described by ``feedback_text``.

        An unclear request, a failed call and an invalid answer all come
        back as an empty list.
        """
        if not feedback_text or not feedback_text.strip():
            return []

        cells = self.indexer.index(sheet_bytes)
        result = self.inference.generate(
            CORRECT_FORM_PROMPT,
            {"feedback": feedback_text.strip(), "cells": cells_to_payload(cells)},
            CorrectionResponse,
        )
        if not result.ok:
            logger.warning("No corrections derived from feedback: %s", result.detail)
            return []

        return [
            CorrectionDirective(target_cell=item.target_cell.strip(), value=item.value)
            for item in result.data.items
        ]

    def apply(self, sheet_bytes: bytes, feedback_text: str) -> CorrectionResult:
        """Derive corrections and write them into the workbook."""
        directives = self.correct(sheet_bytes, feedback_text)
        warnings = []
        if not directives and feedback_text and feedback_text.strip():
            warnings.append("No changes could be determined from your correction request.")
        fill = self.filler.write_cells(sheet_bytes, directives)
        warnings.extend(fill.errors)
        logger.info("Applied %d of %d corrections", fill.filled_count, len(directives))
        return CorrectionResult(directives=directives, fill=fill, warnings=warnings)
