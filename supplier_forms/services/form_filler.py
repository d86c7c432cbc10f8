"""Service for filling Excel forms with data."""
import logging
from copy import copy
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from openpyxl.styles import Font

from supplier_forms.config import config
from supplier_forms.domain.models import (
    CorrectionDirective,
    FieldCandidate,
    FillDirective,
    FillResult,
    PendingField,
)
from supplier_forms.utils.cell_helpers import display_text, get_writable_cell, is_cell_empty
from supplier_forms.utils.workbook_io import (
    first_worksheet,
    load_workbook_bytes,
    save_workbook_bytes,
)

logger = logging.getLogger(__name__)

Directive = Union[FillDirective, CorrectionDirective]


def _resolved(values: Mapping[str, str], label: str) -> Optional[str]:
    value = values.get(label)
    if value is None or not str(value).strip():
        return None
    return str(value)


class FormFiller:
    """Service for filling Excel forms with data.

    Every written cell gets a highlight font so filled values stand out
    from the original form. Target cells are overwritten without being
    checked first; overwrites of non-blank content are reported in
    ``FillResult.overwritten``.
    """

    def __init__(self, highlight_color: Optional[str] = None):
        self.highlight_color = highlight_color or config.app.highlight_color

    def fill(
        self,
        sheet_bytes: bytes,
        candidates: Sequence[FieldCandidate],
        values: Mapping[str, str],
    ) -> FillResult:
        """Write the value of every candidate whose label resolved to non-blank text."""
        directives = []
        for candidate in candidates:
            value = _resolved(values, candidate.label)
            if value is None:
                continue
            directives.append(
                FillDirective(target_cell=candidate.target_cell, value=value, label_guessed=candidate.label)
            )
        return self.write_cells(sheet_bytes, directives)

    def write_cells(self, sheet_bytes: bytes, directives: Iterable[Directive]) -> FillResult:
        """Apply directives to the first worksheet and return the new workbook.

        A directive whose address is malformed or outside the used range is
        logged and skipped; the rest of the batch is still applied.
        """
        directives = list(directives)
        if not directives:
            return FillResult(content=sheet_bytes)

        workbook = load_workbook_bytes(sheet_bytes)
        worksheet = first_worksheet(workbook)

        written: List[Directive] = []
        overwritten: List[str] = []
        errors: List[str] = []

        for directive in directives:
            try:
                cell = get_writable_cell(directive.target_cell, worksheet)
            except ValueError as e:
                logger.warning("Could not write to cell %r: %s", directive.target_cell, e)
                errors.append(f"Could not write to cell '{directive.target_cell}': {e}")
                continue

            if not is_cell_empty(cell) and display_text(cell.value) != directive.value:
                logger.warning(
                    "Overwriting non-empty cell %s (%r -> %r)",
                    cell.coordinate, display_text(cell.value), directive.value,
                )
                overwritten.append(cell.coordinate)

            cell.value = directive.value if directive.value != "" else None
            cell.font = self._highlight(cell.font)
            written.append(directive)

        logger.info("Wrote %d cells, skipped %d", len(written), len(errors))
        return FillResult(
            content=save_workbook_bytes(workbook),
            written=written,
            overwritten=overwritten,
            errors=errors,
        )

    def _highlight(self, font: Font) -> Font:
        highlighted = copy(font)
        highlighted.bold = True
        highlighted.color = self.highlight_color
        return highlighted

    @staticmethod
    def list_missing(
        candidates: Sequence[FieldCandidate], values: Mapping[str, str]
    ) -> List[PendingField]:
        """Return one pending field per candidate whose value is unresolved.

        Candidates sharing a target cell are all kept.
        """
        return [
            PendingField(label_guessed=candidate.label, target_cell=candidate.target_cell)
            for candidate in candidates
            if _resolved(values, candidate.label) is None
        ]
