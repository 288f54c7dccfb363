import asyncio
import io
import os

import pytest
import requests

from pipeline.exceptions import FetchError
from pipeline.fetcher import FetchRouter, HttpFetcher, LocalHandle, S3Fetcher, StagingArea


class FakeResponse:
    def __init__(self, content=b"", status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        return self.responses[url]


class FakeS3Client:
    def __init__(self, objects):
        self.objects = objects
        self.calls = []

    def get_object(self, Bucket, Key):
        self.calls.append((Bucket, Key))
        return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}


def read(path):
    with open(path, "rb") as f:
        return f.read()


def test_http_fetch_writes_unique_file(staging_dir):
    session = FakeSession({
        "https://cdn.example.com/front.jpg": FakeResponse(b"front-bytes"),
    })
    fetcher = HttpFetcher(staging_dir, session=session, timeout=5)

    first = asyncio.run(fetcher.fetch("https://cdn.example.com/front.jpg"))
    second = asyncio.run(fetcher.fetch("https://cdn.example.com/front.jpg"))

    assert first.path != second.path
    assert read(first.path) == b"front-bytes"
    assert os.path.dirname(first.path) == staging_dir
    assert first.path.endswith(".jpg")
    assert session.calls[0] == ("https://cdn.example.com/front.jpg", 5)


def test_http_fetch_error_leaves_no_file(staging_dir):
    session = FakeSession({"https://cdn.example.com/gone.jpg": FakeResponse(status_code=404)})
    fetcher = HttpFetcher(staging_dir, session=session)

    with pytest.raises(FetchError) as exc:
        asyncio.run(fetcher.fetch("https://cdn.example.com/gone.jpg"))

    assert "404" in str(exc.value)
    assert os.listdir(staging_dir) == []


def test_failed_pdf_conversion_leaves_no_pages(staging_dir, monkeypatch):
    class Page:
        def __init__(self, broken):
            self.broken = broken

        def convert(self, mode):
            return self

        def save(self, path, fmt, quality=None):
            with open(path, "wb") as f:
                f.write(b"page")
            if self.broken:
                raise OSError("disk full")

    monkeypatch.setattr(
        "pipeline.file_converter.convert_from_path",
        lambda path, dpi: [Page(False), Page(True)],
    )
    session = FakeSession({"https://cdn.example.com/scan.pdf": FakeResponse(b"%PDF-1.4")})
    fetcher = HttpFetcher(staging_dir, session=session)

    with pytest.raises(FetchError):
        asyncio.run(fetcher.fetch("https://cdn.example.com/scan.pdf"))

    assert os.listdir(staging_dir) == []


def test_s3_fetch_reads_bucket_and_key(staging_dir):
    client = FakeS3Client({("kyc-docs", "users/42/front.png"): b"png-bytes"})
    fetcher = S3Fetcher(client, staging_dir)

    handle = asyncio.run(
        fetcher.fetch("https://kyc-docs.s3.ap-south-1.amazonaws.com/users/42/front.png")
    )

    assert client.calls == [("kyc-docs", "users/42/front.png")]
    assert read(handle.path) == b"png-bytes"
    assert handle.path.endswith(".png")


def test_s3_fetch_with_bad_url_is_a_fetch_error(staging_dir):
    fetcher = S3Fetcher(FakeS3Client({}), staging_dir)

    with pytest.raises(FetchError) as exc:
        asyncio.run(fetcher.fetch("https://kyc-docs.s3.amazonaws.com/"))

    assert "missing object key" in str(exc.value)


def test_router_uses_one_transport_per_url(staging_dir):
    session = FakeSession({"https://cdn.example.com/photo.jpg": FakeResponse(b"http")})
    client = FakeS3Client({("kyc-docs", "front.jpg"): b"s3"})
    router = FetchRouter(
        http=HttpFetcher(staging_dir, session=session),
        s3=S3Fetcher(client, staging_dir),
    )

    photo = asyncio.run(router.fetch("https://cdn.example.com/photo.jpg"))
    front = asyncio.run(router.fetch("https://s3.amazonaws.com/kyc-docs/front.jpg"))

    assert read(photo.path) == b"http"
    assert read(front.path) == b"s3"
    assert len(session.calls) == 1
    assert client.calls == [("kyc-docs", "front.jpg")]


def test_fetch_many_drops_failures(fetcher, store):
    store.add("https://cdn.example.com/front.jpg")
    store.add("https://cdn.example.com/back.jpg", fetch_error=True)
    store.add("https://cdn.example.com/extra.jpg")

    handles = asyncio.run(fetcher.fetch_many([
        "https://cdn.example.com/front.jpg",
        "https://cdn.example.com/back.jpg",
        "https://cdn.example.com/extra.jpg",
    ]))

    assert [h.url for h in handles] == [
        "https://cdn.example.com/front.jpg",
        "https://cdn.example.com/extra.jpg",
    ]


def test_release_many_never_raises(fetcher, store, staging_dir):
    store.add("https://cdn.example.com/front.jpg")
    handle = asyncio.run(fetcher.fetch("https://cdn.example.com/front.jpg"))
    missing = LocalHandle(url="x", path=os.path.join(staging_dir, "missing.jpg"))

    asyncio.run(fetcher.release_many([handle, missing]))

    assert os.listdir(staging_dir) == []


def test_staging_area_releases_on_error(fetcher, store, staging_dir):
    store.add("https://cdn.example.com/photo.jpg")
    store.add("https://cdn.example.com/front.jpg")

    async def run():
        async with StagingArea(fetcher) as staging:
            await staging.fetch("https://cdn.example.com/photo.jpg")
            await staging.fetch_many(["https://cdn.example.com/front.jpg"])
            assert len(os.listdir(staging_dir)) == 2
            raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        asyncio.run(run())

    assert os.listdir(staging_dir) == []


def test_staging_area_swallows_cleanup_failures(fetcher, store, staging_dir):
    store.add("https://cdn.example.com/photo.jpg")

    async def broken_release_many(handles):
        raise OSError("disk gone")

    fetcher.release_many = broken_release_many

    async def run():
        async with StagingArea(fetcher) as staging:
            await staging.fetch("https://cdn.example.com/photo.jpg")
            return "done"

    assert asyncio.run(run()) == "done"
