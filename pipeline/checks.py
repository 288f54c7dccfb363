import logging
import re
from typing import List, Optional, Union

from config import AADHAAR_REGEX, PASSPORT_REGEX, DOCUMENT_SIGNATURES
from .schemas import DocumentType

logger = logging.getLogger(__name__)


class DocumentChecks:
    """
    Matches the caller's claims against the extracted corpus.

    Every check expects the corpus to be lowercase already.
    """

    def __init__(self):
        self.aadhaar_regex = re.compile(AADHAAR_REGEX)
        self.passport_regex = re.compile(PASSPORT_REGEX)
        self.whitespace = re.compile(r"\s+")

    def strip_whitespace(self, text: str) -> str:
        return self.whitespace.sub("", text)

    def validate_document_type(self, corpus: str,
                               doc_type: Union[DocumentType, str]) -> bool:
        """Check the corpus carries the signature phrase of the claimed type"""
        canonical = DocumentType.normalize(doc_type)

        if canonical is None:
            logger.warning(f"Unknown document type: {doc_type}")
            return False

        if canonical == DocumentType.OTHER:
            logger.info('Document type is "other", skipping validation')
            return True

        is_matched = DOCUMENT_SIGNATURES[canonical.value] in corpus
        logger.info(f"Document type validation: type={canonical.value} matched={is_matched}")
        return is_matched

    def match_name(self, corpus: str, name: str) -> bool:
        is_matched = name.lower() in corpus
        logger.info(f"Name matching result: {is_matched}")
        return is_matched

    def dob_variants(self, dob: str) -> List[str]:
        """All spellings of a DD/MM/YYYY date worth looking for"""
        day, month, year = dob.split("/")
        return [
            f"{day}/{month}/{year}",
            f"{day}-{month}-{year}",
            f"{year}-{month}-{day}",
            f"{year}/{month}/{day}",
            f"{day}{month}{year}",
            f"{year}{month}{day}",
        ]

    def match_dob(self, corpus: str, dob: Optional[str]) -> bool:
        if not dob:
            logger.warning("DOB is required for aadhaar/passport but not provided")
            return False

        try:
            variants = self.dob_variants(dob.strip())
        except ValueError:
            logger.warning(f"DOB is not in DD/MM/YYYY format: {dob}")
            return False

        is_matched = any(v in corpus for v in variants)
        logger.info(f"DOB matching result: {is_matched}")
        return is_matched

    def validate_id_format(self, number: str, doc_type: Union[DocumentType, str]) -> bool:
        """Aadhaar: 12 digits. Passport: 8-9 alphanumerics. Others: anything."""
        canonical = DocumentType.normalize(doc_type)
        cleaned = self.strip_whitespace(number)

        if canonical == DocumentType.AADHAAR:
            return bool(self.aadhaar_regex.fullmatch(cleaned))
        if canonical == DocumentType.PASSPORT:
            return bool(self.passport_regex.fullmatch(cleaned.upper()))
        return True

    def match_identity_card_number(self, corpus: str, number: str) -> bool:
        """Look for the number with and without whitespace"""
        raw = number.lower()
        stripped = self.strip_whitespace(raw)

        is_matched = stripped in self.strip_whitespace(corpus) or raw in corpus
        logger.info(f"Identity card number matching result: {is_matched}")
        return is_matched
