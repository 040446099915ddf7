"""FastAPI app exposing code CRUD, CSV upload and semantic search endpoints.

Services raise typed errors from `codes.errors`; the exception handlers below
are the only place they are mapped to HTTP status codes.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from dotenv import load_dotenv
from fastapi import (
    APIRouter,
    Depends,
    FastAPI,
    File,
    Path,
    Query,
    Request,
    Response,
    UploadFile,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.dependencies import (
    get_code_service,
    get_container,
    get_ingestion_pipeline,
    get_search_service,
    get_vector_store,
)
from api.schemas import (
    CodePageResponse,
    CodeResponse,
    CreateCodeRequest,
    HealthResponse,
    SearchResultResponse,
    UpdateCodeRequest,
    UploadResponse,
)
from codes.errors import (
    CodeSearchError,
    DuplicateCode,
    EmbeddingError,
    MalformedInput,
    NotFound,
    StoreUnitFailure,
    ValidationFailed,
)
from codes.records import MAX_CODE_LENGTH, MAX_RECORD_ID
from codes.service import CodeService
from database.vector_store import VectorStore
from embeddings.search import SemanticSearchService
from ingestion.csv_pipeline import CsvIngestionPipeline

# Load environment for local dev from .env and .env.local.
# Prefer .env.local values when both exist.
_ = load_dotenv(dotenv_path=".env")
_ = load_dotenv(dotenv_path=".env.local", override=True)

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler()  # Output to console/terminal
    ],
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    yield
    if get_container.cache_info().currsize:
        get_container().close()
        get_container.cache_clear()


app = FastAPI(
    title="Code Semantic Search API",
    description="CRUD and semantic search over code/description pairs",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


# -----------------------------
# Error mapping
# -----------------------------


def _error_body(status: int, error: str, message: str, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status,
        "error": error,
        "message": message,
    }
    body.update(extra)
    return body


_STATUS_BY_ERROR: list[tuple[type[CodeSearchError], int, str]] = [
    (NotFound, 404, "Not Found"),
    (DuplicateCode, 409, "Conflict"),
    (ValidationFailed, 400, "Validation Failed"),
    (MalformedInput, 400, "Bad Request"),
    (EmbeddingError, 503, "Service Unavailable"),
    (StoreUnitFailure, 500, "Internal Server Error"),
]


@app.exception_handler(CodeSearchError)
async def handle_service_error(_: Request, exc: CodeSearchError) -> JSONResponse:
    status, error = 500, "Internal Server Error"
    for error_type, mapped_status, mapped_error in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status, error = mapped_status, mapped_error
            break

    extra: dict[str, Any] = {}
    message = str(exc)
    if isinstance(exc, EmbeddingError):
        logger.error(f"Embedding service error: {exc}")
        message = "Unable to generate embeddings. Please try again later."
    elif isinstance(exc, StoreUnitFailure):
        logger.error(f"Persistence error: {exc}")
        message = "An unexpected error occurred"
    elif isinstance(exc, MalformedInput) and exc.partial is not None:
        extra["successful"] = exc.partial.successful
        extra["failed"] = exc.partial.failed
    else:
        logger.warning(f"{error}: {exc}")

    return JSONResponse(status_code=status, content=_error_body(status, error, message, **extra))


@app.exception_handler(RequestValidationError)
async def handle_request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.setdefault(field or "request", err.get("msg", "Invalid value"))
    return JSONResponse(
        status_code=400,
        content=_error_body(400, "Validation Failed", "Invalid request", errors=errors),
    )


# -----------------------------
# Codes API
# -----------------------------

router = APIRouter(prefix="/api/v1/codes", tags=["codes"])


@router.post("/upload", response_model=CodeResponse, status_code=201)
def create_code(
    payload: CreateCodeRequest,
    svc: CodeService = Depends(get_code_service),
) -> CodeResponse:
    record = svc.create(payload.code, payload.description)
    return CodeResponse.from_record(record)


@router.post("/upload-csv", response_model=UploadResponse, status_code=201)
async def upload_csv(
    file: UploadFile = File(...),
    pipeline: CsvIngestionPipeline = Depends(get_ingestion_pipeline),
) -> UploadResponse:
    """Ingest a `code,description` CSV file (first line is a header)."""
    logger.info(f"POST /upload-csv filename={file.filename!r}")
    result = await pipeline.ingest(file.filename, file.file)
    return UploadResponse.from_result(result)


@router.get("", response_model=CodePageResponse)
def list_codes(
    page: int = 0,
    size: int = 20,
    svc: CodeService = Depends(get_code_service),
) -> CodePageResponse:
    return CodePageResponse.from_page(svc.list_page(page=page, size=size))


@router.get("/search", response_model=list[SearchResultResponse])
def search_codes(
    query: str = Query(...),
    limit: int | None = None,
    svc: SemanticSearchService = Depends(get_search_service),
) -> list[SearchResultResponse]:
    results = svc.search(query, limit)
    return [SearchResultResponse.from_result(r) for r in results]


@router.get("/code/{code}", response_model=CodeResponse)
def get_code_by_code(
    code: str = Path(max_length=MAX_CODE_LENGTH),
    svc: CodeService = Depends(get_code_service),
) -> CodeResponse:
    return CodeResponse.from_record(svc.get_by_code(code))


@router.get("/{record_id}", response_model=CodeResponse)
def get_code_by_id(
    record_id: int = Path(ge=1, le=MAX_RECORD_ID),
    svc: CodeService = Depends(get_code_service),
) -> CodeResponse:
    return CodeResponse.from_record(svc.get_by_id(record_id))


@router.put("/{record_id}", response_model=CodeResponse)
def update_code(
    payload: UpdateCodeRequest,
    record_id: int = Path(ge=1, le=MAX_RECORD_ID),
    svc: CodeService = Depends(get_code_service),
) -> CodeResponse:
    record = svc.update(record_id, payload.code, payload.description)
    return CodeResponse.from_record(record)


@router.delete("/{record_id}", status_code=204)
def delete_code(
    record_id: int = Path(ge=1, le=MAX_RECORD_ID),
    svc: CodeService = Depends(get_code_service),
) -> Response:
    svc.delete(record_id)
    return Response(status_code=204)


app.include_router(router)


@app.get("/health", response_model=HealthResponse)
def health(store: VectorStore = Depends(get_vector_store)) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        total_codes=store.count(),
        vector_extension=store.db_manager.vector_extension_version(),
    )


@app.get("/schema")
def get_openapi_schema():
    """Get OpenAPI schema for client type generation."""
    return app.openapi()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
