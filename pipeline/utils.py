import logging
import os
from dataclasses import dataclass
from typing import Iterable, List, Tuple, TypeVar, Union
from urllib.parse import unquote, urlparse

from .exceptions import InvalidS3UrlError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Skipped:
    """Placeholder for one item of a batch that failed and was left out"""

    item: str
    reason: str


def drop_skipped(results: Iterable[Union[T, Skipped]]) -> List[T]:
    """Keep only the successful results of a batch, in order"""
    return [r for r in results if not isinstance(r, Skipped)]


def is_s3_url(url: str) -> bool:
    """Check if URL points at S3 rather than a plain HTTP server"""
    return "s3.amazonaws.com" in url or ".s3." in url


def parse_s3_url(url: str) -> Tuple[str, str]:
    """
    Extract (bucket, key) from an S3 URL.

    Supported layouts:
        https://bucket.s3.region.amazonaws.com/key   (virtual-hosted)
        https://bucket.s3.amazonaws.com/key          (virtual-hosted)
        https://s3.region.amazonaws.com/bucket/key   (path)
        https://s3.amazonaws.com/bucket/key          (path)
    """
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidS3UrlError(url, str(e)) from e

    host = (parsed.hostname or "").lower()
    parts = [unquote(p) for p in parsed.path.split("/") if p]

    if host.startswith("s3.") or host.startswith("s3-"):
        if not parts:
            raise InvalidS3UrlError(url, "missing bucket in path")
        bucket, key = parts[0], "/".join(parts[1:])
    elif ".s3." in host or ".s3-" in host:
        bucket, key = host.split(".s3", 1)[0], "/".join(parts)
    else:
        raise InvalidS3UrlError(url, "Invalid S3 URL format")

    if not bucket:
        raise InvalidS3UrlError(url, "missing bucket")
    if not key:
        raise InvalidS3UrlError(url, "missing object key")

    return bucket, key


def get_file_extension(filename: str) -> str:
    """Get file extension from filename"""
    return os.path.splitext(filename)[1].lower()


def url_extension(url: str, default: str = ".jpg") -> str:
    """Extension of the last path segment of a URL, ignoring the query string"""
    ext = get_file_extension(urlparse(url).path)
    return ext or default


def cleanup_temp_file(file_path: str) -> bool:
    """Remove a temporary file; failures are logged, never raised"""
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
            logger.debug(f"File deleted: {file_path}")
        return True
    except OSError as e:
        logger.warning(f"Error deleting file {file_path}: {str(e)}")
        return False
