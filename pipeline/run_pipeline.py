import asyncio
import logging
from typing import List, Optional, Union

import boto3
from botocore.config import Config as BotoConfig

from config import settings, aws_client_kwargs
from .checks import DocumentChecks
from .decision import DecisionEngine
from .exceptions import PhotoUnavailableError
from .extractor import TextExtractor, TextractExtractor, VisionTextExtractor
from .face_match import FaceComparator, RekognitionFaceComparator, VisionFaceComparator
from .fetcher import Fetcher, FetchRouter, HttpFetcher, S3Fetcher, StagingArea
from .schemas import DocumentType, VerificationRequest, VerificationResult

logger = logging.getLogger(__name__)


def aws_client(service: str):
    """boto3 client for one AWS service, with the configured timeouts"""
    return boto3.client(
        service,
        config=BotoConfig(
            connect_timeout=settings.AWS_CONNECT_TIMEOUT,
            read_timeout=settings.AWS_READ_TIMEOUT,
        ),
        **aws_client_kwargs()
    )


def build_text_extractor(provider: str) -> TextExtractor:
    if provider == "textract":
        return TextractExtractor(aws_client("textract"))
    if provider == "openai":
        return VisionTextExtractor()
    raise ValueError(f"Unknown OCR provider: {provider}")


def build_face_comparator(provider: str) -> FaceComparator:
    if provider == "rekognition":
        return RekognitionFaceComparator(aws_client("rekognition"))
    if provider == "openai":
        return VisionFaceComparator()
    raise ValueError(f"Unknown face provider: {provider}")


class VerificationPipeline:
    """
    Fetch -> extract text -> document type gate -> field matching
    -> face verification -> verdict.

    Collaborators are built once and shared by every request; the pipeline
    itself keeps no per-request state.
    """

    def __init__(self,
                 fetcher: Fetcher,
                 extractor: TextExtractor,
                 face_comparator: FaceComparator,
                 checks: Optional[DocumentChecks] = None,
                 decision_engine: Optional[DecisionEngine] = None):
        self.fetcher = fetcher
        self.extractor = extractor
        self.face_comparator = face_comparator
        self.checks = checks or DocumentChecks()
        self.decision_engine = decision_engine or DecisionEngine()

    @classmethod
    def from_settings(cls) -> "VerificationPipeline":
        fetcher = FetchRouter(
            http=HttpFetcher(settings.STAGING_DIR),
            s3=S3Fetcher(aws_client("s3"), settings.STAGING_DIR),
        )
        return cls(
            fetcher=fetcher,
            extractor=build_text_extractor(settings.OCR_PROVIDER),
            face_comparator=build_face_comparator(settings.FACE_PROVIDER),
        )

    async def verify(self, request: VerificationRequest) -> VerificationResult:
        doc_type = request.type
        logger.info(
            f"Starting identity verification: type={getattr(doc_type, 'value', doc_type)} "
            f"identity_urls={len(request.identity_urls)}"
        )

        try:
            async with StagingArea(self.fetcher) as staging:
                return await self._run(staging, request)
        except PhotoUnavailableError:
            raise
        except Exception:
            logger.exception("Error in identity verification")
            raise

    async def _run(self, staging: StagingArea,
                   request: VerificationRequest) -> VerificationResult:
        doc_type = DocumentType.normalize(request.type)

        # Step 1: Fetch photo and identity documents concurrently
        logger.info("Phase 1: Downloading documents")
        photo, identity_handles = await asyncio.gather(
            staging.fetch(request.photo_url),
            staging.fetch_many(request.identity_urls),
            return_exceptions=True,
        )
        # both branches have finished here, so the staging area owns every file
        if isinstance(identity_handles, BaseException):
            raise identity_handles
        if isinstance(photo, BaseException):
            logger.warning(f"Photo could not be downloaded: {str(photo)}")
            raise PhotoUnavailableError(request.photo_url, str(photo)) from photo

        # Step 2: Extract text from identity documents only
        logger.info("Phase 2: Text extraction")
        corpus = await self.extractor.extract_text(identity_handles)

        # Step 3: Document type gate
        logger.info("Phase 3: Document type validation")
        if not self.checks.validate_document_type(corpus, request.type):
            message = self.decision_engine.document_type_message(request.type)
            logger.warning(f"Document type validation failed: {message}")
            return VerificationResult(is_document_type_matched=False, message=message)

        # Step 4: Personal details
        logger.info("Phase 4: Personal info matching")
        is_name_matched = self.checks.match_name(corpus, request.name)
        is_dob_matched = None
        is_id_matched = None
        is_id_format_valid = None

        if doc_type.requires_personal_details:
            is_id_format_valid, is_id_matched = self._check_identity_card_number(
                corpus, request.identity_card_number, doc_type
            )
            is_dob_matched = self.checks.match_dob(corpus, request.dob)

        # Step 5: Face verification
        logger.info("Phase 5: Face verification")
        face = await self.face_comparator.compare_against_set(photo, identity_handles)

        # Step 6: Verdict
        is_verification = self.decision_engine.determine_verification_status(
            doc_type,
            is_document_type_matched=True,
            is_name_matched=is_name_matched,
            is_face_matched=face.is_face_matched,
            is_dob_matched=is_dob_matched,
            is_identity_card_number_matched=is_id_matched,
        )
        message = self.decision_engine.build_message(
            doc_type,
            is_name_matched=is_name_matched,
            is_face_matched=face.is_face_matched,
            is_dob_matched=is_dob_matched,
            is_identity_card_number_matched=is_id_matched,
        )

        logger.info(
            f"Identity verification completed: verified={is_verification} "
            f"name={is_name_matched} dob={is_dob_matched} "
            f"id={is_id_matched} face={face.is_face_matched}"
        )

        return VerificationResult(
            is_document_type_matched=True,
            is_name_matched=is_name_matched,
            is_dob_matched=is_dob_matched,
            is_identity_card_number_matched=is_id_matched,
            is_identity_card_number_format_valid=is_id_format_valid,
            is_face_matched=face.is_face_matched,
            confidence=face.confidence,
            is_verification=is_verification,
            message=message,
        )

    def _check_identity_card_number(self, corpus: str, number: Optional[str],
                                    doc_type: DocumentType):
        """(format valid, matched) for the caller's card number"""
        if not number:
            logger.warning("Identity card number is required but not provided")
            return False, False

        if not self.checks.validate_id_format(number, doc_type):
            logger.warning(f"Identity card number format is invalid for {doc_type.value}")
            return False, False

        return True, self.checks.match_identity_card_number(corpus, number)


async def verify_identity(name: str,
                          photo_url: str,
                          identity_urls: Union[str, List[str]],
                          type: str,
                          dob: Optional[str] = None,
                          identity_card_number: Optional[str] = None,
                          pipeline: Optional[VerificationPipeline] = None) -> dict:
    """
    Library entry point: validate the options, run the pipeline and return
    the result as a camel-cased dict.
    """
    if isinstance(identity_urls, str):
        identity_urls = [identity_urls]

    request = VerificationRequest(
        name=name,
        dob=dob,
        identity_card_number=identity_card_number,
        photo_url=photo_url,
        identity_urls=identity_urls,
        type=type,
    )

    pipeline = pipeline or VerificationPipeline.from_settings()
    result = await pipeline.verify(request)
    return result.to_dict()
