"""API dependencies for dependency injection."""
from typing import Optional

from fastapi import HTTPException, Request, UploadFile

from supplier_forms.config import config
from supplier_forms.services.master_data import MasterDataUpdater
from supplier_forms.services.pipeline import FillPipeline
from supplier_forms.storage.master_data_store import MasterDataStore
from supplier_forms.utils.workbook_io import validate_excel_filename


async def read_upload(file: UploadFile) -> bytes:
    """Read an uploaded file, enforcing the configured size limit."""
    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="The uploaded file appears to be empty.")
    if len(contents) > config.app.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File is larger than the {config.app.max_upload_mb} MB limit.",
        )
    return contents


async def read_excel_upload(file: UploadFile) -> bytes:
    """Validate that the upload is an .xlsx workbook and read it."""
    validate_excel_filename(file.filename)
    return await read_upload(file)


def get_current_user_id(request: Request) -> str:
    """Identity of the signed-in user, as forwarded by the identity provider."""
    user_id: Optional[str] = request.headers.get(config.app.user_id_header)
    if not user_id or not user_id.strip():
        raise HTTPException(status_code=401, detail="Please sign in to continue.")
    return user_id.strip()


def get_store(request: Request) -> MasterDataStore:
    return request.app.state.store


def get_master_data_updater(request: Request) -> MasterDataUpdater:
    return MasterDataUpdater(request.app.state.store)


def get_pipeline(request: Request) -> FillPipeline:
    """Create the fill pipeline on first use so a missing API key only breaks fill routes."""
    state = request.app.state
    if state.pipeline is None:
        state.pipeline = FillPipeline.from_config(store=state.store)
    return state.pipeline
