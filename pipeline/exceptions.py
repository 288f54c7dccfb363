class VerificationError(Exception):
    """Base class for errors raised by the verification pipeline"""


class InvalidS3UrlError(VerificationError, ValueError):
    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Failed to parse S3 URL {url!r}: {reason}")


class FetchError(VerificationError):
    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"Failed to download file from {url}: {reason}")


class PhotoUnavailableError(VerificationError):
    """The reference photo could not be fetched, so no face can be compared"""

    def __init__(self, url: str, reason: str):
        self.url = url
        super().__init__(f"photoUrl could not be fetched: {reason}")


class StorageError(VerificationError):
    pass
