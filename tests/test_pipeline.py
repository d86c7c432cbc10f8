from __future__ import annotations

import pytest

from supplier_forms.domain.exceptions import EmptyExtractionError, PersistenceError, SpreadsheetReadError
from supplier_forms.domain.models import PendingField
from supplier_forms.services.master_data import MasterDataUpdater
from supplier_forms.services.pipeline import (
    STATUS_AWAITING_INPUT,
    STATUS_SUCCESS,
    FillPipeline,
    dedupe_pending,
)
from supplier_forms.storage.master_data_store import InMemoryMasterDataStore, MasterDataStore

MASTER_DATA = {"Company Name": "Acme", "GST Number": "27AAAAA0000A1Z5"}


class _ReadOnlyStore(MasterDataStore):
    def get(self, user_id):
        return {"Company Name": "Acme"}

    def put(self, user_id, data):
        raise PersistenceError(PersistenceError.PERMISSION, "read-only")


@pytest.fixture()
def store() -> InMemoryMasterDataStore:
    return InMemoryMasterDataStore()


def _pipeline(fake_inference, responses, store=None) -> FillPipeline:
    client = fake_inference(responses)
    updater = MasterDataUpdater(store) if store is not None else None
    return FillPipeline(client, updater)


def test_start_fills_every_matched_field(fake_inference, vendor_form, vendor_fields_answer, cell_values) -> None:
    pipeline = _pipeline(fake_inference, [
        vendor_fields_answer,
        [{"formField": "Vendor Name", "sheetValue": "Acme"}, {"formField": "GST", "sheetValue": "27AAAAA0000A1Z5"}],
    ])

    outcome = pipeline.start(vendor_form, "vendor.xlsx", MASTER_DATA)

    assert outcome.status == STATUS_SUCCESS
    assert outcome.pending == []
    assert [d.target_cell for d in outcome.filled] == ["B1", "B2"]
    assert cell_values(outcome.content)["B1"] == "Acme"
    assert cell_values(outcome.content)["B2"] == "27AAAAA0000A1Z5"
    assert outcome.download_name == "filled-vendor.xlsx"


def test_empty_master_data_leaves_everything_pending(fake_inference, vendor_form, vendor_fields_answer) -> None:
    pipeline = _pipeline(fake_inference, [vendor_fields_answer])

    outcome = pipeline.start(vendor_form, "vendor.xlsx", {})

    assert outcome.status == STATUS_AWAITING_INPUT
    assert outcome.pending == [PendingField("Vendor Name", "B1"), PendingField("GST", "B2")]
    assert outcome.filled == []
    assert outcome.content == vendor_form


def test_complete_fills_only_supplied_pending_fields(
    fake_inference, vendor_form, vendor_fields_answer, cell_values
) -> None:
    pipeline = _pipeline(fake_inference, [vendor_fields_answer])
    first = pipeline.start(vendor_form, "vendor.xlsx", {})

    second = pipeline.complete(first.session, {"Vendor Name": "Acme", "GST": "  "})

    values = cell_values(second.content)
    assert values["B1"] == "Acme"
    assert "B2" not in values
    assert second.pending == [PendingField("GST", "B2")]
    assert second.status == STATUS_AWAITING_INPUT


def test_complete_ignores_fields_that_were_already_filled(
    fake_inference, vendor_form, vendor_fields_answer, cell_values
) -> None:
    pipeline = _pipeline(fake_inference, [
        vendor_fields_answer,
        [{"formField": "Vendor Name", "sheetValue": "Acme"}],
    ])
    first = pipeline.start(vendor_form, "vendor.xlsx", MASTER_DATA)

    second = pipeline.complete(first.session, {"Vendor Name": "Other Corp", "GST": "27AAAAA0000A1Z5"})

    values = cell_values(second.content)
    assert values["B1"] == "Acme"
    assert values["B2"] == "27AAAAA0000A1Z5"
    assert [d.label_guessed for d in second.filled] == ["GST"]
    assert second.status == STATUS_SUCCESS


def test_duplicate_target_cells_are_asked_for_once(fake_inference, vendor_form, cell_values) -> None:
    pipeline = _pipeline(fake_inference, [[
        {"fieldName": "Vendor Name", "cellLocation": "B1"},
        {"fieldName": "Supplier", "cellLocation": "B1"},
    ]])
    first = pipeline.start(vendor_form, "vendor.xlsx", {})

    assert first.pending == [PendingField("Vendor Name", "B1")]

    second = pipeline.complete(first.session, {"Vendor Name": "Acme"})

    assert second.pending == []
    assert second.status == STATUS_SUCCESS
    assert cell_values(second.content)["B1"] == "Acme"


def test_start_rejects_non_excel_names(fake_inference, vendor_form) -> None:
    with pytest.raises(SpreadsheetReadError):
        _pipeline(fake_inference, []).start(vendor_form, "vendor.csv", {})


def test_start_propagates_empty_extraction(fake_inference, vendor_form) -> None:
    with pytest.raises(EmptyExtractionError):
        _pipeline(fake_inference, [{"items": []}]).start(vendor_form, "vendor.xlsx", MASTER_DATA)


def test_correct_rewrites_the_current_sheet(fake_inference, vendor_form, vendor_fields_answer, cell_values) -> None:
    pipeline = _pipeline(fake_inference, [
        vendor_fields_answer,
        [{"formField": "Vendor Name", "sheetValue": "Acme"}, {"formField": "GST", "sheetValue": "27AAAAA0000A1Z5"}],
        [{"targetCell": "B1", "value": "New Corp"}],
    ])
    first = pipeline.start(vendor_form, "vendor.xlsx", MASTER_DATA)

    outcome = pipeline.correct(first.session, "Change B1 to 'New Corp'")

    assert cell_values(outcome.content)["B1"] == "New Corp"
    assert [c.target_cell for c in outcome.corrections] == ["B1"]
    assert outcome.status == STATUS_SUCCESS


def test_apply_back_fills_master_data(fake_inference, vendor_form, vendor_fields_answer, store) -> None:
    store.put("u1", {"Company Name": "Acme"})
    pipeline = _pipeline(fake_inference, [
        vendor_fields_answer,
        [{"formField": "Vendor Name", "sheetValue": "Acme"}],
    ], store=store)
    first = pipeline.start(vendor_form, "vendor.xlsx", store.get("u1"))

    outcome = pipeline.apply("u1", first.session, {"GST": "27AAAAA0000A1Z5"})

    assert outcome.status == STATUS_SUCCESS
    assert outcome.master_data == {"Company Name": "Acme", "GST": "27AAAAA0000A1Z5"}
    assert store.get("u1") == {"Company Name": "Acme", "GST": "27AAAAA0000A1Z5"}
    assert outcome.warnings == []


def test_apply_learns_values_revealed_by_corrections(
    fake_inference, vendor_form, vendor_fields_answer, store, cell_values
) -> None:
    pipeline = _pipeline(fake_inference, [
        vendor_fields_answer,
        [{"targetCell": "B2", "value": "27AAAAA0000A1Z5"}],
    ], store=store)
    first = pipeline.start(vendor_form, "vendor.xlsx", {})

    outcome = pipeline.apply("u1", first.session, {"Vendor Name": "Acme"}, "GST is 27AAAAA0000A1Z5")

    assert cell_values(outcome.content)["B2"] == "27AAAAA0000A1Z5"
    assert outcome.pending == []
    assert store.get("u1") == {"Vendor Name": "Acme", "GST": "27AAAAA0000A1Z5"}


def test_apply_still_returns_file_when_saving_fails(fake_inference, vendor_form, vendor_fields_answer) -> None:
    pipeline = _pipeline(fake_inference, [vendor_fields_answer], store=_ReadOnlyStore())
    first = pipeline.start(vendor_form, "vendor.xlsx", {})

    outcome = pipeline.apply("u1", first.session, {"Vendor Name": "Acme", "GST": "27AAAAA0000A1Z5"})

    assert outcome.status == STATUS_SUCCESS
    assert outcome.master_data == {
        "Company Name": "Acme",
        "Vendor Name": "Acme",
        "GST": "27AAAAA0000A1Z5",
    }
    assert outcome.warnings == [PersistenceError(PersistenceError.PERMISSION).user_message]


def test_apply_without_changes_reports_nothing_to_do(fake_inference, vendor_form, vendor_fields_answer, store) -> None:
    pipeline = _pipeline(fake_inference, [vendor_fields_answer], store=store)
    first = pipeline.start(vendor_form, "vendor.xlsx", {})

    outcome = pipeline.apply("u1", first.session, {})

    assert outcome.message == "No changes were made. Your filled file is ready."
    assert outcome.master_data is None
    assert store.get("u1") is None


def test_dedupe_pending_keeps_first_label_per_cell() -> None:
    pending = [PendingField("A", "B1"), PendingField("B", "B1"), PendingField("C", "B2")]

    assert dedupe_pending(pending) == [PendingField("A", "B1"), PendingField("C", "B2")]


def test_correction_resolves_only_the_cell_it_wrote(fake_inference, workbook_factory, cell_values, store) -> None:
    form = workbook_factory({"A1": "Phone:", "B1": "", "A2": "Phone:", "B2": ""})
    pipeline = _pipeline(fake_inference, [
        [{"fieldName": "Phone", "cellLocation": "B1"}, {"fieldName": "Phone", "cellLocation": "B2"}],
        [{"targetCell": "B1", "value": "555"}],
        [{"targetCell": "B1", "value": "555-0100"}],
    ], store=store)
    first = pipeline.start(form, "phones.xlsx", {})

    corrected = pipeline.correct(first.session, "Phone in B1 is 555")

    assert corrected.status == STATUS_AWAITING_INPUT
    assert corrected.pending == [PendingField("Phone", "B2")]
    assert "B2" not in cell_values(corrected.content)

    completed = pipeline.complete(corrected.session, {"Phone": "555-0199"})

    assert completed.pending == []
    assert cell_values(completed.content)["B1"] == "555"
    assert cell_values(completed.content)["B2"] == "555-0199"

    applied = pipeline.apply("u1", first.session, {}, "Phone in B1 is 555-0100")

    assert applied.pending == [PendingField("Phone", "B2")]
    assert store.get("u1") == {"Phone": "555-0100"}
