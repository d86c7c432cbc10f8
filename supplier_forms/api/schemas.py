"""Request and response models for the HTTP API."""
import base64
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from supplier_forms.services.pipeline import FillOutcome
from supplier_forms.utils.workbook_io import XLSX_MEDIA_TYPE


class FilledCell(BaseModel):
    cell: str
    value: str
    label_guessed: Optional[str] = None


class PendingFieldOut(BaseModel):
    label_guessed: str
    target_cell: str


class CorrectionOut(BaseModel):
    target_cell: str
    value: str


class FillResponse(BaseModel):
    status: str
    message: str
    session: str
    file_name: str
    mime_type: str = XLSX_MEDIA_TYPE
    file_data: str
    preview: List[FilledCell] = Field(default_factory=list)
    corrections: List[CorrectionOut] = Field(default_factory=list)
    missing_fields: List[PendingFieldOut] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    updated_master_data: Optional[Dict[str, str]] = None

    @classmethod
    def from_outcome(cls, outcome: FillOutcome) -> "FillResponse":
        return cls(
            status=outcome.status,
            message=outcome.message,
            session=outcome.session.to_token(),
            file_name=outcome.download_name,
            file_data=base64.b64encode(outcome.content).decode("ascii"),
            preview=[
                FilledCell(cell=d.target_cell, value=d.value, label_guessed=d.label_guessed)
                for d in outcome.filled
            ],
            corrections=[CorrectionOut(target_cell=d.target_cell, value=d.value) for d in outcome.corrections],
            missing_fields=[
                PendingFieldOut(label_guessed=p.label_guessed, target_cell=p.target_cell)
                for p in outcome.pending
            ],
            warnings=outcome.warnings,
            updated_master_data=outcome.master_data,
        )


class SessionRequest(BaseModel):
    session: str = ""


class CompleteRequest(SessionRequest):
    values: Dict[str, str] = Field(default_factory=dict)


class CorrectRequest(SessionRequest):
    feedback: str


class ApplyRequest(SessionRequest):
    values: Dict[str, str] = Field(default_factory=dict)
    feedback: str = ""


class MasterDataPayload(BaseModel):
    master_data: Dict[str, str]


class ProfileResponse(BaseModel):
    user_id: str
    master_data: Dict[str, str]
    warning: Optional[str] = None


class ErrorResponse(BaseModel):
    status: str = "error"
    message: str
