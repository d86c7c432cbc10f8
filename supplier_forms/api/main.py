"""FastAPI application entry point."""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from supplier_forms.api.routes import router
from supplier_forms.api.schemas import ErrorResponse
from supplier_forms.domain.exceptions import (
    ConfigurationError,
    EmptyExtractionError,
    FormFillerError,
    InferenceError,
    MasterDataImportError,
    PersistenceError,
    SessionStateError,
    SpreadsheetReadError,
)
from supplier_forms.logging_config import setup_logging
from supplier_forms.services.pipeline import FillPipeline
from supplier_forms.storage.master_data_store import MasterDataStore, create_store

logger = logging.getLogger(__name__)

_STATUS_CODES = (
    (SpreadsheetReadError, 400),
    (SessionStateError, 400),
    (MasterDataImportError, 400),
    (EmptyExtractionError, 422),
    (InferenceError, 502),
    (PersistenceError, 503),
    (ConfigurationError, 500),
)


async def handle_form_filler_error(request: Request, exc: FormFillerError) -> JSONResponse:
    status_code = next((code for kind, code in _STATUS_CODES if isinstance(exc, kind)), 500)
    message = exc.user_message if isinstance(exc, PersistenceError) else str(exc)
    if status_code >= 500:
        logger.error("Request to %s failed: %s", request.url.path, exc, exc_info=exc)
    else:
        logger.info("Request to %s rejected: %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content=ErrorResponse(message=message).model_dump())


def create_app(
    store: Optional[MasterDataStore] = None,
    pipeline: Optional[FillPipeline] = None,
) -> FastAPI:
    setup_logging()

    app = FastAPI(
        title="Supplier Form Filler API",
        description="Fill spreadsheet vendor forms from saved master data using AI field matching",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.store = store or create_store()
    app.state.pipeline = pipeline
    app.add_exception_handler(FormFillerError, handle_form_filler_error)
    app.include_router(router)
    return app


app = create_app()


def run():
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
