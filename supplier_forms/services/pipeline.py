"""Orchestrates the fill, completion and correction steps of a session."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from supplier_forms.domain.exceptions import PersistenceError
from supplier_forms.domain.models import CorrectionDirective, FillDirective, PendingField
from supplier_forms.services.correction_engine import CorrectionEngine
from supplier_forms.services.data_matcher import DataMatcher
from supplier_forms.services.field_extractor import FieldExtractor
from supplier_forms.services.form_filler import FormFiller
from supplier_forms.services.inference import InferenceClient, OpenAIInferenceClient
from supplier_forms.services.master_data import MasterDataUpdater
from supplier_forms.services.session import FillSession
from supplier_forms.services.sheet_indexer import SheetIndexer
from supplier_forms.storage.master_data_store import MasterDataStore, create_store
from supplier_forms.utils.cell_helpers import normalize_address
from supplier_forms.utils.workbook_io import validate_excel_filename

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_AWAITING_INPUT = "awaiting-input"
STATUS_ERROR = "error"


def dedupe_pending(pending: Sequence[PendingField]) -> List[PendingField]:
    """Keep the first pending field for each target cell."""
    seen = set()
    unique = []
    for item in pending:
        if item.target_cell in seen:
            continue
        seen.add(item.target_cell)
        unique.append(item)
    return unique


@dataclass
class FillOutcome:
    """State of a session after a fill step."""
    status: str
    message: str
    session: FillSession
    filled: List[FillDirective] = field(default_factory=list)
    corrections: List[CorrectionDirective] = field(default_factory=list)
    pending: List[PendingField] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    master_data: Optional[Dict[str, str]] = None

    @property
    def content(self) -> bytes:
        return self.session.workbook_bytes()

    @property
    def download_name(self) -> str:
        return f"filled-{self.session.filename}"


class FillPipeline:
    """Runs SheetIndexer -> FieldExtractor -> DataMatcher -> FormFiller.

    No state is kept between calls; every continuation receives the
    ``FillSession`` returned by the previous step.
    """

    def __init__(
        self,
        inference: InferenceClient,
        updater: Optional[MasterDataUpdater] = None,
        filler: Optional[FormFiller] = None,
        indexer: Optional[SheetIndexer] = None,
    ):
        self.indexer = indexer or SheetIndexer()
        self.filler = filler or FormFiller()
        self.extractor = FieldExtractor(inference, self.indexer)
        self.matcher = DataMatcher(inference)
        self.corrector = CorrectionEngine(inference, self.indexer, self.filler)
        self.updater = updater

    @classmethod
    def from_config(cls, store: Optional[MasterDataStore] = None) -> "FillPipeline":
        return cls(OpenAIInferenceClient(), MasterDataUpdater(store or create_store()))

    def start(self, sheet_bytes: bytes, filename: str, master_data: Mapping[str, str]) -> FillOutcome:
        """First pass: detect fields, match master data and fill what resolved."""
        validate_excel_filename(filename)
        cells = self.indexer.index(sheet_bytes)
        candidates = self.extractor.extract_from_cells(cells)
        matches = self.matcher.match([c.label for c in candidates], dict(master_data))
        fill = self.filler.fill(sheet_bytes, candidates, matches)

        session = FillSession.create(
            filename=filename,
            content=fill.content,
            candidates=candidates,
            matches=matches,
            filled_cells=self._written_cells(fill.written),
        )
        return self._outcome(session, filled=fill.written, warnings=fill.errors)

    def complete(self, session: FillSession, supplied: Mapping[str, str]) -> FillOutcome:
        """Second pass: write user-supplied values for still-pending fields only."""
        session, filled, warnings = self._fill_supplied(session, supplied)
        return self._outcome(session, filled=filled, warnings=warnings)

    def correct(self, session: FillSession, feedback: str) -> FillOutcome:
        """Apply a free-text correction to the current sheet."""
        session, corrections, warnings, _ = self._apply_feedback(session, feedback)
        return self._outcome(session, corrections=corrections, warnings=warnings)

    def apply(
        self,
        user_id: str,
        session: FillSession,
        supplied: Mapping[str, str],
        feedback: str = "",
    ) -> FillOutcome:
        """Fill pending fields, apply corrections and back-fill master data."""
        session, filled, warnings = self._fill_supplied(session, supplied)
        session, corrections, correction_warnings, revealed = self._apply_feedback(session, feedback)
        warnings.extend(correction_warnings)

        newly_provided = {d.label_guessed: d.value for d in filled if d.label_guessed}
        newly_provided.update(revealed)

        master_data = None
        if self.updater is not None and newly_provided:
            try:
                existing = self.updater.load(user_id)
            except PersistenceError as e:
                logger.warning("Could not load master data for user %s: %s", user_id, e)
                warnings.append(e.user_message)
            else:
                merged = self.updater.merge_and_persist(user_id, existing, newly_provided)
                master_data = merged.data
                if merged.warning:
                    warnings.append(merged.warning)

        outcome = self._outcome(session, filled=filled, corrections=corrections, warnings=warnings)
        outcome.master_data = master_data
        if not filled and not corrections:
            outcome.message = "No changes were made. Your filled file is ready."
        return outcome

    def pending_fields(self, session: FillSession) -> List[PendingField]:
        """Pending fields as shown to the user: one per unfilled target cell."""
        filled = set(session.filled_cells)
        missing = FormFiller.list_missing(session.field_candidates(), session.matches)
        return [p for p in dedupe_pending(missing) if p.target_cell not in filled]

    def _fill_supplied(self, session: FillSession, supplied: Mapping[str, str]):
        pending_labels = {p.label_guessed for p in self.pending_fields(session)}
        values = {
            label: str(value).strip()
            for label, value in supplied.items()
            if label in pending_labels and value is not None and str(value).strip()
        }
        if not values:
            return session, [], []

        filled_cells = set(session.filled_cells)
        candidates = [
            c for c in session.field_candidates()
            if c.label in values and c.target_cell not in filled_cells
        ]
        fill = self.filler.fill(session.workbook_bytes(), candidates, values)

        matches = dict(session.matches)
        matches.update({d.label_guessed: d.value for d in fill.written})
        session = session.advance(fill.content, matches, self._written_cells(fill.written))
        return session, list(fill.written), list(fill.errors)

    def _apply_feedback(self, session: FillSession, feedback: str):
        if not feedback or not feedback.strip():
            return session, [], [], {}

        pending_by_cell = {p.target_cell: p.label_guessed for p in self.pending_fields(session)}
        result = self.corrector.apply(session.workbook_bytes(), feedback)

        revealed: Dict[str, str] = {}
        for directive in result.fill.written:
            cell = normalize_address(directive.target_cell)
            if cell in pending_by_cell and directive.value.strip():
                revealed[pending_by_cell[cell]] = directive.value.strip()

        # Only the corrected cells leave pending state; other cells sharing
        # a revealed label stay pending until they are written.
        applied = [d for d in result.fill.written if d.value.strip()]
        session = session.advance(result.content, filled_cells=self._written_cells(applied))
        return session, list(result.fill.written), list(result.warnings), revealed

    def _outcome(self, session: FillSession, filled=(), corrections=(), warnings=()) -> FillOutcome:
        pending = self.pending_fields(session)
        if pending:
            status = STATUS_AWAITING_INPUT
            message = (
                f"{len(pending)} field(s) could not be filled from your master data. "
                "Please provide the missing values."
            )
        else:
            status = STATUS_SUCCESS
            message = "Your form has been filled and is ready for download."
        return FillOutcome(
            status=status,
            message=message,
            session=session,
            filled=list(filled),
            corrections=list(corrections),
            pending=pending,
            warnings=list(warnings),
        )

    @staticmethod
    def _written_cells(directives) -> List[str]:
        cells = []
        for directive in directives:
            try:
                cells.append(normalize_address(directive.target_cell))
            except ValueError:
                continue
        return cells
