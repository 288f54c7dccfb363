from typing import Any, Dict, Optional

from .schemas import DocumentType, VerificationResult

COMPLETE_MESSAGE = "Verification complete"


class DecisionEngine:
    """
    Aggregates the individual checks into the final verdict
    """

    def determine_verification_status(self,
                                      doc_type: DocumentType,
                                      is_document_type_matched: bool,
                                      is_name_matched: bool,
                                      is_face_matched: bool,
                                      is_dob_matched: Optional[bool] = None,
                                      is_identity_card_number_matched: Optional[bool] = None) -> bool:
        """
        Document type, name and face must always match.
        Aadhaar and passport additionally need DOB and card number to be
        positively matched; None does not count as a pass for them.
        """
        if not (is_document_type_matched and is_name_matched and is_face_matched):
            return False

        if doc_type.requires_personal_details:
            return is_dob_matched is True and is_identity_card_number_matched is True

        return True

    def build_message(self,
                      doc_type: DocumentType,
                      is_name_matched: bool,
                      is_face_matched: bool,
                      is_dob_matched: Optional[bool] = None,
                      is_identity_card_number_matched: Optional[bool] = None) -> str:
        """List whatever did not match; informational only"""
        issues = []

        if not is_name_matched:
            issues.append("name")

        if doc_type.requires_personal_details:
            if is_dob_matched is False:
                issues.append("DOB")
            if is_identity_card_number_matched is False:
                issues.append("identity card number")

        if not is_face_matched:
            issues.append("face")

        if not issues:
            return COMPLETE_MESSAGE

        return f"{', '.join(issues)} did not match, but verification continued"

    def document_type_message(self, doc_type: Any) -> str:
        canonical = DocumentType.normalize(doc_type)
        if canonical is None or canonical == DocumentType.OTHER:
            return "unknown document type"
        return f"{canonical.value} not found"


class ResponseFormatter:
    """
    Maps pipeline results onto the JSON bodies of the HTTP contract
    """

    @staticmethod
    def success(result: VerificationResult) -> Dict[str, Any]:
        body = {
            "isDocumentTypeMatched": bool(result.is_document_type_matched),
            "isNameMatched": bool(result.is_name_matched),
        }

        # only present for document types they apply to
        if result.is_dob_matched is not None:
            body["isDOBMatched"] = result.is_dob_matched
        if result.is_identity_card_number_matched is not None:
            body["isIdentityCardNumberMatched"] = result.is_identity_card_number_matched
        if result.is_identity_card_number_format_valid is not None:
            body["isIdentityCardNumberFormatValid"] = result.is_identity_card_number_format_valid

        body.update({
            "isFaceMatched": bool(result.is_face_matched),
            "confidence": result.confidence or 0,
            "isVerification": bool(result.is_verification),
            "message": result.message or COMPLETE_MESSAGE,
        })
        return body

    @staticmethod
    def document_type_error(result: VerificationResult) -> Dict[str, Any]:
        return result.to_dict()

    @staticmethod
    def validation_error(message: str) -> Dict[str, Any]:
        return {
            "error": "Validation Error",
            "message": message
        }

    @staticmethod
    def photo_unavailable(message: str) -> Dict[str, Any]:
        return {
            "error": "Photo Unavailable",
            "message": message
        }

    @staticmethod
    def internal_error() -> Dict[str, Any]:
        return {
            "error": "Internal Server Error",
            "message": "An error occurred during verification"
        }
