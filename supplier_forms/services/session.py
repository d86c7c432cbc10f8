"""Fill session state carried by the client between requests."""
import base64
import zlib
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from supplier_forms.domain.exceptions import SessionStateError
from supplier_forms.domain.models import FieldCandidate

RESTART_MESSAGE = "Could not find the previous file data. Please start over."


class SessionCandidate(BaseModel):
    label: str
    target_cell: str


class FillSession(BaseModel):
    """Everything needed to continue a fill on any worker.

    ``workbook`` is the base64 encoded current state of the filled sheet;
    ``matches`` maps each label to its value, ``""`` while unresolved.
    """
    version: int = 1
    filename: str
    workbook: str
    candidates: List[SessionCandidate]
    matches: Dict[str, str]
    filled_cells: List[str] = Field(default_factory=list)

    @classmethod
    def create(
        cls,
        filename: str,
        content: bytes,
        candidates: Iterable[FieldCandidate],
        matches: Dict[str, str],
        filled_cells: Iterable[str] = (),
    ) -> "FillSession":
        return cls(
            filename=filename,
            workbook=base64.b64encode(content).decode("ascii"),
            candidates=[SessionCandidate(label=c.label, target_cell=c.target_cell) for c in candidates],
            matches=dict(matches),
            filled_cells=sorted(set(filled_cells)),
        )

    def workbook_bytes(self) -> bytes:
        try:
            return base64.b64decode(self.workbook, validate=True)
        except ValueError as e:
            raise SessionStateError(RESTART_MESSAGE) from e

    def field_candidates(self) -> List[FieldCandidate]:
        return [FieldCandidate(label=c.label, target_cell=c.target_cell) for c in self.candidates]

    def advance(
        self,
        content: bytes,
        matches: Optional[Dict[str, str]] = None,
        filled_cells: Iterable[str] = (),
    ) -> "FillSession":
        """Return a copy holding the new workbook state."""
        return self.model_copy(update={
            "workbook": base64.b64encode(content).decode("ascii"),
            "matches": dict(matches if matches is not None else self.matches),
            "filled_cells": sorted(set(self.filled_cells) | set(filled_cells)),
        })

    def to_token(self) -> str:
        compressed = zlib.compress(self.model_dump_json().encode("utf-8"))
        return base64.urlsafe_b64encode(compressed).decode("ascii")

    @classmethod
    def from_token(cls, token: Optional[str]) -> "FillSession":
        """Decode a token, raising ``SessionStateError`` if it is missing or corrupt."""
        if not token or not token.strip():
            raise SessionStateError(RESTART_MESSAGE)
        try:
            payload = zlib.decompress(base64.urlsafe_b64decode(token.strip().encode("ascii")))
            return cls.model_validate_json(payload)
        except (ValueError, zlib.error) as e:
            raise SessionStateError(RESTART_MESSAGE) from e
