"""API route handlers."""
import logging
from io import BytesIO

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from supplier_forms.api.dependencies import (
    get_current_user_id,
    get_master_data_updater,
    get_pipeline,
    get_store,
    read_excel_upload,
    read_upload,
)
from supplier_forms.api.schemas import (
    ApplyRequest,
    CompleteRequest,
    CorrectRequest,
    FillResponse,
    MasterDataPayload,
    ProfileResponse,
    SessionRequest,
)
from supplier_forms.domain.exceptions import PersistenceError
from supplier_forms.services.master_data import (
    MasterDataUpdater,
    build_master_data_workbook,
    clean_master_data,
    parse_master_data_file,
)
from supplier_forms.services.pipeline import FillPipeline
from supplier_forms.services.session import FillSession
from supplier_forms.storage.master_data_store import MasterDataStore
from supplier_forms.utils.workbook_io import XLSX_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter()


def _xlsx_response(content: bytes, filename: str) -> StreamingResponse:
    return StreamingResponse(
        BytesIO(content),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Supplier Form Filler API",
        "description": (
            "Upload a supplier form, fill it from your saved master data, "
            "supply anything that could not be matched and correct the result in plain language"
        ),
        "main_endpoint": {
            "url": "/process",
            "method": "POST",
            "description": "Upload Excel file → Detect fields → Match master data → Return filled file",
        },
        "other_endpoints": {
            "/complete": "POST - Fill pending fields with user-supplied values",
            "/correct": "POST - Apply a free-text correction to the filled form",
            "/apply": "POST - Fill pending fields, apply corrections and update master data",
            "/download": "POST - Download the workbook held by a session",
            "/profile": "GET/PUT - Read or replace your master data",
            "/profile/import": "POST - Merge a .csv or .xlsx key/value file into your master data",
            "/profile/export": "GET - Download your master data as .xlsx",
        },
    }


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.post("/process", response_model=FillResponse)
async def process_form(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    pipeline: FillPipeline = Depends(get_pipeline),
    updater: MasterDataUpdater = Depends(get_master_data_updater),
):
    """
    Main endpoint - Upload Excel → Detect fields → Match master data → Fill.
    """
    contents = await read_excel_upload(file)

    warnings = []
    try:
        master_data = await run_in_threadpool(updater.load, user_id)
    except PersistenceError as e:
        logger.warning("Could not load master data for user %s: %s", user_id, e)
        master_data = {}
        warnings.append(e.user_message)

    outcome = await run_in_threadpool(pipeline.start, contents, file.filename, master_data)
    outcome.warnings = warnings + outcome.warnings
    return FillResponse.from_outcome(outcome)


@router.post("/complete", response_model=FillResponse)
def complete_form(
    payload: CompleteRequest,
    user_id: str = Depends(get_current_user_id),
    pipeline: FillPipeline = Depends(get_pipeline),
):
    """Second fill pass with values for the fields that were pending."""
    session = FillSession.from_token(payload.session)
    return FillResponse.from_outcome(pipeline.complete(session, payload.values))


@router.post("/correct", response_model=FillResponse)
def correct_form(
    payload: CorrectRequest,
    user_id: str = Depends(get_current_user_id),
    pipeline: FillPipeline = Depends(get_pipeline),
):
    """Apply a plain-language correction to the filled form."""
    session = FillSession.from_token(payload.session)
    return FillResponse.from_outcome(pipeline.correct(session, payload.feedback))


@router.post("/apply", response_model=FillResponse)
def apply_changes(
    payload: ApplyRequest,
    user_id: str = Depends(get_current_user_id),
    pipeline: FillPipeline = Depends(get_pipeline),
):
    """
    Fill pending fields, apply corrections and save new values to master data.
    """
    session = FillSession.from_token(payload.session)
    outcome = pipeline.apply(user_id, session, payload.values, payload.feedback)
    return FillResponse.from_outcome(outcome)


@router.post("/download")
def download_form(payload: SessionRequest, user_id: str = Depends(get_current_user_id)):
    """Stream the workbook carried by a session."""
    session = FillSession.from_token(payload.session)
    return _xlsx_response(session.workbook_bytes(), f"filled-{session.filename}")


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    user_id: str = Depends(get_current_user_id),
    store: MasterDataStore = Depends(get_store),
):
    return ProfileResponse(user_id=user_id, master_data=store.get(user_id) or {})


@router.put("/profile", response_model=ProfileResponse)
def save_profile(
    payload: MasterDataPayload,
    user_id: str = Depends(get_current_user_id),
    store: MasterDataStore = Depends(get_store),
):
    """Replace the saved master data; blank keys are dropped."""
    data = clean_master_data(payload.master_data)
    store.put(user_id, data)
    return ProfileResponse(user_id=user_id, master_data=data)


@router.delete("/profile/{key}", response_model=ProfileResponse)
def delete_profile_entry(
    key: str,
    user_id: str = Depends(get_current_user_id),
    store: MasterDataStore = Depends(get_store),
):
    data = store.get(user_id) or {}
    if key not in data:
        raise HTTPException(status_code=404, detail=f"'{key}' is not in your master data")
    del data[key]
    store.put(user_id, data)
    return ProfileResponse(user_id=user_id, master_data=data)


@router.post("/profile/import", response_model=ProfileResponse)
async def import_profile(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
    updater: MasterDataUpdater = Depends(get_master_data_updater),
):
    """Merge a two-column key/value file into the saved master data."""
    content = await read_upload(file)
    imported = await run_in_threadpool(parse_master_data_file, file.filename, content)
    existing = await run_in_threadpool(updater.load, user_id)
    outcome = await run_in_threadpool(updater.merge_and_persist, user_id, existing, imported)
    return ProfileResponse(user_id=user_id, master_data=outcome.data, warning=outcome.warning)


@router.get("/profile/export")
def export_profile(
    user_id: str = Depends(get_current_user_id),
    store: MasterDataStore = Depends(get_store),
):
    data = store.get(user_id) or {}
    return _xlsx_response(build_master_data_workbook(data), "master-data.xlsx")
