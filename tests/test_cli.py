from __future__ import annotations

import json
from pathlib import Path

import pytest

from supplier_forms.cli import main as cli


@pytest.fixture()
def scripted_input(monkeypatch: pytest.MonkeyPatch):
    def _script(*answers: str) -> None:
        replies = iter(answers)
        monkeypatch.setattr("builtins.input", lambda prompt="": next(replies))

    return _script


def test_load_master_data_accepts_json_and_csv(tmp_path: Path) -> None:
    json_file = tmp_path / "profile.json"
    json_file.write_text(json.dumps({"Company Name": "Acme", "Zip": 94043}), encoding="utf-8")
    csv_file = tmp_path / "profile.csv"
    csv_file.write_text("Company Name,Acme\n", encoding="utf-8")

    assert cli.load_master_data(json_file) == {"Company Name": "Acme", "Zip": "94043"}
    assert cli.load_master_data(csv_file) == {"Company Name": "Acme"}


def test_load_master_data_rejects_json_lists(tmp_path: Path) -> None:
    json_file = tmp_path / "profile.json"
    json_file.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ValueError):
        cli.load_master_data(json_file)


def test_main_prompts_for_missing_values_and_saves(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    scripted_input,
    fake_inference,
    vendor_form: bytes,
    vendor_fields_answer: dict,
    cell_values,
) -> None:
    form = tmp_path / "vendor.xlsx"
    form.write_bytes(vendor_form)
    profile = tmp_path / "profile.json"
    profile.write_text(json.dumps({"Company Name": "Acme"}), encoding="utf-8")
    output = tmp_path / "out.xlsx"

    client = fake_inference([
        vendor_fields_answer,
        [{"formField": "Vendor Name", "sheetValue": "Acme"}],
        [{"targetCell": "B1", "value": "Acme Ltd"}],
    ])
    monkeypatch.setattr(cli, "OpenAIInferenceClient", lambda: client)
    scripted_input("27AAAAA0000A1Z5", "Vendor name is Acme Ltd", "")

    cli.main(str(form), str(profile), str(output))

    assert cell_values(output.read_bytes()) == {
        "A1": "Vendor Name:",
        "B1": "Acme Ltd",
        "A2": "GST:",
        "B2": "27AAAAA0000A1Z5",
    }


def test_main_exits_when_form_is_missing(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(str(tmp_path / "missing.xlsx"), str(tmp_path / "profile.json"))

    assert excinfo.value.code == 1
