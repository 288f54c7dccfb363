import os
import tempfile
from typing import Dict, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Service
    SERVICE_NAME: str = "identity-verification"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # AWS Configuration
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_S3_BUCKET: Optional[str] = None

    # Local directory where fetched documents live for one request
    STAGING_DIR: str = os.path.join(tempfile.gettempdir(), "identity-verification")

    # Collaborator backends
    OCR_PROVIDER: str = "textract"  # textract | openai
    FACE_PROVIDER: str = "rekognition"  # rekognition | openai

    # OpenAI Configuration (only used by the openai backends)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4.1-mini"
    FACE_MODEL: str = "gpt-4.1-mini"

    # Timeouts (seconds) for every external call
    HTTP_TIMEOUT: float = 30
    AWS_CONNECT_TIMEOUT: float = 10
    AWS_READ_TIMEOUT: float = 60
    OPENAI_TIMEOUT: float = 60

    # Storage
    PRESIGNED_URL_EXPIRY: int = 3600
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB

    class Config:
        env_file = ".env"


settings = Settings()


def has_aws_credentials() -> bool:
    return bool(settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY)


def aws_client_kwargs() -> Dict[str, str]:
    """
    Keyword arguments for boto3 clients.
    Credentials are only passed when both are set, otherwise boto3 falls back
    to its default provider chain.
    """
    kwargs = {"region_name": settings.AWS_REGION}
    if has_aws_credentials():
        kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
    return kwargs


# Minimum similarity (0-100) for two faces to count as the same person
FACE_SIMILARITY_THRESHOLD = 80

# Phrase that must appear in the extracted text for each document type
DOCUMENT_SIGNATURES = {
    "aadhaar": "unique identification authority",
    "passport": "republic of india",
}

# Aadhaar number: 12 digits once whitespace is stripped
AADHAAR_REGEX = r"^\d{12}$"

# Indian passport number: 8-9 alphanumerics once whitespace is stripped
PASSPORT_REGEX = r"^[A-Z0-9]{8,9}$"

# Date of birth as supplied by callers
DOB_REGEX = r"^\d{2}/\d{2}/\d{4}$"
