from __future__ import annotations

import json
from io import BytesIO
from typing import Dict, Iterable, List, Optional

import pytest
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Border, Side

from supplier_forms.config import config
from supplier_forms.services.inference import InferenceClient

_BOX = Border(bottom=Side(style="thin"))


class FakeInferenceClient(InferenceClient):
    """Returns scripted raw answers in order; an exception in the script is raised."""

    def __init__(self, responses: Optional[Iterable] = None, schema_attempts: int = 1) -> None:
        self.responses = list(responses or [])
        self.prompts: List[str] = []
        self.expected_items: List[int] = []
        self.schema_attempts = schema_attempts

    def complete(
        self, prompt: str, json_mode: bool = True, attempt: int = 0, expected_items: int = 0
    ) -> str:
        self.prompts.append(prompt)
        self.expected_items.append(expected_items)
        if not self.responses:
            return ""
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if not isinstance(response, str):
            response = json.dumps(response)
        return response


def build_workbook(cells: Dict[str, object], merged: Iterable[str] = ()) -> bytes:
    """Create an .xlsx payload; ``""`` values become blank bordered cells."""
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Supplier Form"
    for address, value in cells.items():
        cell = worksheet[address]
        if value == "":
            cell.border = _BOX
        else:
            cell.value = value
    for cell_range in merged:
        worksheet.merge_cells(cell_range)
    output = BytesIO()
    workbook.save(output)
    return output.getvalue()


def read_values(content: bytes) -> Dict[str, object]:
    worksheet = load_workbook(BytesIO(content)).worksheets[0]
    return {
        cell.coordinate: cell.value
        for row in worksheet.iter_rows()
        for cell in row
        if cell.value is not None
    }


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    for key in ("MASTER_DATA_STORE", "MASTER_DATA_DIR", "HIGHLIGHT_COLOR", "USER_ID_HEADER"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    config.reset()
    yield
    config.reset()


@pytest.fixture()
def fake_inference():
    return FakeInferenceClient


@pytest.fixture()
def workbook_factory():
    return build_workbook


@pytest.fixture()
def cell_values():
    return read_values


@pytest.fixture()
def vendor_form() -> bytes:
    return build_workbook({"A1": "Vendor Name:", "B1": "", "A2": "GST:", "B2": ""})


@pytest.fixture()
def vendor_fields_answer() -> dict:
    return {
        "items": [
            {"fieldName": "Vendor Name", "cellLocation": "B1"},
            {"fieldName": "GST", "cellLocation": "B2"},
        ]
    }
