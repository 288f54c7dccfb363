import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from config import DOB_REGEX


class DocumentType(str, Enum):
    AADHAAR = "aadhaar"
    PASSPORT = "passport"
    OTHER = "other"

    @classmethod
    def from_request(cls, value: Any) -> Optional["DocumentType"]:
        """Exact canonical spellings and legacy aliases only, as sent by clients"""
        if not isinstance(value, str):
            return None
        raw = DOCUMENT_TYPE_ALIASES.get(value, value)
        try:
            return cls(raw)
        except ValueError:
            return None

    @classmethod
    def normalize(cls, value: Any) -> Optional["DocumentType"]:
        """Map a raw type (including legacy spellings) to its canonical value"""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        raw = value.strip().lower()
        raw = DOCUMENT_TYPE_ALIASES.get(raw, raw)
        try:
            return cls(raw)
        except ValueError:
            return None

    @property
    def requires_personal_details(self) -> bool:
        return self in (DocumentType.AADHAAR, DocumentType.PASSPORT)


# Legacy spellings accepted at the input boundary
DOCUMENT_TYPE_ALIASES = {
    "aadhar": "aadhaar",
}

_dob_pattern = re.compile(DOB_REGEX)

# Shown when a required field is absent or unusable
REQUIRED_MESSAGES = {
    "name": "name is required and must be a non-empty string",
    "photoUrl": "photoUrl is required and must be a non-empty string",
    "identityUrls": "identityUrls is required and must be a non-empty array",
    "type": "type is required and must be one of: "
            + ", ".join(t.value for t in DocumentType),
}


class VerificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    dob: Optional[str] = None
    identity_card_number: Optional[str] = Field(None, alias="identityCardNumber")
    photo_url: str = Field(..., alias="photoUrl")
    identity_urls: List[str] = Field(..., alias="identityUrls")
    type: DocumentType

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError(REQUIRED_MESSAGES["name"])
        return v

    @field_validator("photo_url")
    @classmethod
    def check_photo_url(cls, v: str) -> str:
        if not v.strip():
            raise ValueError(REQUIRED_MESSAGES["photoUrl"])
        return v

    @field_validator("identity_urls", mode="before")
    @classmethod
    def check_identity_urls(cls, v: Any) -> Any:
        if not isinstance(v, list) or not v:
            raise ValueError(REQUIRED_MESSAGES["identityUrls"])
        if not all(isinstance(url, str) and url.strip() for url in v):
            raise ValueError("identityUrls must contain only non-empty strings")
        return v

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> DocumentType:
        doc_type = DocumentType.from_request(v)
        if doc_type is None:
            raise ValueError(REQUIRED_MESSAGES["type"])
        return doc_type

    @model_validator(mode="after")
    def check_personal_details(self) -> "VerificationRequest":
        if self.type.requires_personal_details:
            if not self.dob:
                raise ValueError("dob is required for aadhaar and passport types")
            if not self.identity_card_number:
                raise ValueError(
                    "identityCardNumber is required for aadhaar and passport types"
                )

        if self.dob and not _dob_pattern.fullmatch(self.dob):
            raise ValueError("dob must be in DD/MM/YYYY format")

        if self.identity_card_number is not None and not self.identity_card_number.strip():
            raise ValueError("identityCardNumber must be a non-empty string")

        return self


@dataclass(frozen=True)
class FaceMatchResult:
    is_face_matched: bool
    confidence: float = 0.0

    @classmethod
    def no_match(cls) -> "FaceMatchResult":
        return cls(is_face_matched=False, confidence=0.0)


@dataclass
class VerificationResult:
    """
    Outcome of one pipeline run.

    A run rejected by the document-type gate only carries
    ``is_document_type_matched`` and ``message``; the other fields stay None.
    The DOB / identity card fields are None when they do not apply to the
    document type.
    """

    is_document_type_matched: bool
    message: str
    is_name_matched: Optional[bool] = None
    is_dob_matched: Optional[bool] = None
    is_identity_card_number_matched: Optional[bool] = None
    is_identity_card_number_format_valid: Optional[bool] = None
    is_face_matched: Optional[bool] = None
    confidence: Optional[float] = None
    is_verification: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """Camel-cased fields, omitting the ones that were never set"""
        fields = {
            "isDocumentTypeMatched": self.is_document_type_matched,
            "isNameMatched": self.is_name_matched,
            "isDOBMatched": self.is_dob_matched,
            "isIdentityCardNumberMatched": self.is_identity_card_number_matched,
            "isIdentityCardNumberFormatValid": self.is_identity_card_number_format_valid,
            "isFaceMatched": self.is_face_matched,
            "confidence": self.confidence,
            "isVerification": self.is_verification,
            "message": self.message,
        }
        return {k: v for k, v in fields.items() if v is not None}
