"""
Identity Verification Pipeline

This package contains the pipeline that checks a submitted identity document
against a claimed identity:
- Fetching documents from HTTP or S3 URLs
- Text extraction (AWS Textract or OpenAI Vision)
- Document type, name, DOB and card number matching
- Face comparison (AWS Rekognition or OpenAI Vision)
- Final verdict and response formatting
"""

from .run_pipeline import VerificationPipeline, verify_identity

__version__ = "1.0.0"

__all__ = ["VerificationPipeline", "verify_identity"]
