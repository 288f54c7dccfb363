import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from pipeline.decision import ResponseFormatter
from pipeline.exceptions import PhotoUnavailableError, StorageError
from pipeline.run_pipeline import VerificationPipeline, aws_client
from pipeline.schemas import REQUIRED_MESSAGES, VerificationRequest
from pipeline.storage import S3Storage


def configure_logging() -> None:
    os.makedirs(settings.LOG_DIR, exist_ok=True)

    file_handler = RotatingFileHandler(
        os.path.join(settings.LOG_DIR, "app.log"),
        maxBytes=10485760,  # 10MB
        backupCount=5
    )
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    file_handler.setFormatter(formatter)
    console_handler.setFormatter(formatter)

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        handlers=[file_handler, console_handler]
    )


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Collaborator clients are built once and shared by all requests
    app.state.pipeline = VerificationPipeline.from_settings()
    app.state.storage = S3Storage(aws_client("s3"))
    logger.info(
        f"Verification service started: ocr={settings.OCR_PROVIDER} "
        f"face={settings.FACE_PROVIDER}"
    )
    yield


app = FastAPI(
    title="Identity Verification Service",
    description="Checks identity documents against a claimed identity using OCR and face comparison",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_pipeline(request: Request) -> VerificationPipeline:
    return request.app.state.pipeline


def get_storage(request: Request) -> S3Storage:
    return request.app.state.storage


def validation_message(exc: RequestValidationError) -> str:
    """First validation problem as a human readable sentence"""
    errors = exc.errors()
    if not errors:
        return "Invalid request"

    error = errors[0]
    field = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
    message = str(error.get("msg", "Invalid value"))

    if error.get("type") == "missing":
        return REQUIRED_MESSAGES.get(field, f"{field} is required")
    if message.startswith("Value error, "):
        return message[len("Value error, "):]
    return f"{field}: {message}" if field else message


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    message = validation_message(exc)
    logger.warning(f"Request validation failed: {message}")
    return JSONResponse(
        status_code=400,
        content=ResponseFormatter.validation_error(message)
    )


# ------------------------
# Identity Verification API
# ------------------------
@app.post("/verify-identity")
async def verify_identity(
    body: VerificationRequest,
    pipeline: VerificationPipeline = Depends(get_pipeline)
):
    """
    Verify an identity document against the claimed name, DOB and card number,
    and match the face on it against the supplied photo.
    """
    logger.info(
        f"Received verify-identity request: type={body.type.value} "
        f"identity_urls={len(body.identity_urls)}"
    )

    try:
        result = await pipeline.verify(body)
    except PhotoUnavailableError as e:
        return JSONResponse(
            status_code=400,
            content=ResponseFormatter.photo_unavailable(str(e))
        )
    except Exception as e:
        logger.error(f"Error in verify-identity: {str(e)}")
        return JSONResponse(
            status_code=500,
            content=ResponseFormatter.internal_error()
        )

    if not result.is_document_type_matched:
        logger.warning(f"Document type validation failed: {result.message}")
        return JSONResponse(
            status_code=400,
            content=ResponseFormatter.document_type_error(result)
        )

    # A false verdict is still a successful verification run
    logger.info(f"Verification completed: verified={result.is_verification}")
    return ResponseFormatter.success(result)


# ------------------------
# Document Storage API
# ------------------------
def storage_error(e: StorageError) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "message": str(e)}
    )


def bucket_missing() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=ResponseFormatter.validation_error("AWS_S3_BUCKET is not configured")
    )


@app.post("/documents")
async def upload_document(
    file: UploadFile = File(...),
    folder: Optional[str] = Form("documents"),
    is_public: bool = Form(False),
    storage: S3Storage = Depends(get_storage)
):
    """Upload an identity document or photo to S3 and return its URL"""
    if not storage.bucket:
        return bucket_missing()

    data = await file.read()
    if not data:
        return JSONResponse(
            status_code=400,
            content=ResponseFormatter.validation_error("file is empty")
        )
    if len(data) > settings.MAX_UPLOAD_SIZE:
        return JSONResponse(
            status_code=400,
            content=ResponseFormatter.validation_error(
                f"file exceeds the maximum size of {settings.MAX_UPLOAD_SIZE} bytes"
            )
        )

    try:
        return await asyncio.to_thread(
            storage.upload,
            data,
            file.filename or "upload",
            folder,
            file.content_type or "application/octet-stream",
            is_public,
        )
    except StorageError as e:
        return storage_error(e)


@app.delete("/documents/{key:path}")
async def delete_document(key: str, storage: S3Storage = Depends(get_storage)):
    if not storage.bucket:
        return bucket_missing()

    try:
        return await asyncio.to_thread(storage.delete, key)
    except StorageError as e:
        return storage_error(e)


@app.get("/documents/presigned-url")
async def get_presigned_url(
    key: str = Query(..., min_length=1),
    expires_in: int = Query(settings.PRESIGNED_URL_EXPIRY, gt=0),
    storage: S3Storage = Depends(get_storage)
):
    if not storage.bucket:
        return bucket_missing()

    try:
        url = await asyncio.to_thread(storage.presigned_url, key, expires_in)
    except StorageError as e:
        return storage_error(e)

    return {"key": key, "url": url, "expiresIn": expires_in}


# ------------------------
# Health Check
# ------------------------
@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


# ------------------------
# Local Dev Entry
# ------------------------
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
