import asyncio
import logging
import os
import uuid
from dataclasses import dataclass
from typing import List, Optional, Union

import requests

from config import settings
from .exceptions import FetchError
from .file_converter import normalize_to_jpeg
from .utils import Skipped, cleanup_temp_file, drop_skipped, is_s3_url, parse_s3_url, url_extension

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalHandle:
    """A fetched document staged on local disk"""

    url: str
    path: str


class Fetcher:
    """
    Downloads remote documents into the staging directory.

    Subclasses implement ``download`` for one transport; everything else
    (naming, normalization, batching, release) is shared.
    """

    def __init__(self, staging_dir: Optional[str] = None):
        self.staging_dir = staging_dir or settings.STAGING_DIR
        os.makedirs(self.staging_dir, exist_ok=True)

    def download(self, url: str, dest_path: str) -> int:
        """Write the resource at ``url`` to ``dest_path``, returning its size"""
        raise NotImplementedError

    def _target_path(self, url: str) -> str:
        # uuid names keep concurrent requests apart in the shared directory
        return os.path.join(self.staging_dir, f"{uuid.uuid4().hex}{url_extension(url)}")

    def fetch_file(self, url: str) -> LocalHandle:
        """Blocking fetch of one URL"""
        path = self._target_path(url)
        logger.info(f"Downloading file: {url}")

        try:
            size = self.download(url, path)
            final_path = normalize_to_jpeg(path)
        except Exception as e:
            cleanup_temp_file(path)
            logger.error(f"Error downloading {url}: {str(e)}")
            raise FetchError(url, str(e)) from e

        if final_path != path:
            cleanup_temp_file(path)

        logger.info(f"File downloaded: {url} -> {final_path} ({size} bytes)")
        return LocalHandle(url=url, path=final_path)

    async def fetch(self, url: str) -> LocalHandle:
        return await asyncio.to_thread(self.fetch_file, url)

    async def _fetch_or_skip(self, url: str) -> Union[LocalHandle, Skipped]:
        try:
            return await self.fetch(url)
        except FetchError as e:
            logger.warning(f"Failed to download one file, skipping: {url} ({str(e)})")
            return Skipped(item=url, reason=str(e))

    async def fetch_many(self, urls: List[str]) -> List[LocalHandle]:
        """Fetch all URLs concurrently; failed ones are left out of the result"""
        logger.info(f"Downloading {len(urls)} files")
        results = await asyncio.gather(*(self._fetch_or_skip(url) for url in urls))
        handles = drop_skipped(results)
        logger.info(f"Download completed: requested={len(urls)} successful={len(handles)}")
        return handles

    async def release(self, handle: LocalHandle) -> None:
        try:
            await asyncio.to_thread(cleanup_temp_file, handle.path)
        except Exception as e:
            logger.warning(f"Error releasing {handle.path}: {str(e)}")

    async def release_many(self, handles: List[LocalHandle]) -> None:
        logger.info(f"Cleaning up {len(handles)} temporary files")
        await asyncio.gather(*(self.release(h) for h in handles))
        logger.info("File cleanup completed")


class HttpFetcher(Fetcher):
    """Plain HTTP(S) GET"""

    def __init__(self, staging_dir: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        super().__init__(staging_dir)
        self.session = session or requests.Session()
        self.timeout = timeout or settings.HTTP_TIMEOUT

    def download(self, url: str, dest_path: str) -> int:
        response = self.session.get(url, timeout=self.timeout)
        response.raise_for_status()

        with open(dest_path, "wb") as f:
            f.write(response.content)

        return len(response.content)


class S3Fetcher(Fetcher):
    """Reads objects by bucket/key parsed from the URL"""

    def __init__(self, client, staging_dir: Optional[str] = None):
        super().__init__(staging_dir)
        self.client = client

    def download(self, url: str, dest_path: str) -> int:
        bucket, key = parse_s3_url(url)
        response = self.client.get_object(Bucket=bucket, Key=key)
        body = response["Body"].read()

        with open(dest_path, "wb") as f:
            f.write(body)

        return len(body)


class FetchRouter(Fetcher):
    """Sends S3 URLs to the S3 fetcher and everything else over HTTP"""

    def __init__(self, http: HttpFetcher, s3: S3Fetcher,
                 staging_dir: Optional[str] = None):
        super().__init__(staging_dir or http.staging_dir)
        self.http = http
        self.s3 = s3

    def fetcher_for(self, url: str) -> Fetcher:
        return self.s3 if is_s3_url(url) else self.http

    def download(self, url: str, dest_path: str) -> int:
        return self.fetcher_for(url).download(url, dest_path)


class StagingArea:
    """
    Request-scoped owner of fetched files.

    Every handle fetched through the area is released when the ``async with``
    block exits, whichever way it exits.
    """

    def __init__(self, fetcher: Fetcher):
        self.fetcher = fetcher
        self.handles: List[LocalHandle] = []

    async def fetch(self, url: str) -> LocalHandle:
        handle = await self.fetcher.fetch(url)
        self.handles.append(handle)
        return handle

    async def fetch_many(self, urls: List[str]) -> List[LocalHandle]:
        handles = await self.fetcher.fetch_many(urls)
        self.handles.extend(handles)
        return handles

    async def __aenter__(self) -> "StagingArea":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        handles, self.handles = self.handles, []
        if handles:
            try:
                await self.fetcher.release_many(handles)
            except Exception as e:
                logger.warning(f"Error during file cleanup: {str(e)}")
        return False
