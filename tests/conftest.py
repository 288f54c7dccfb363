from dataclasses import dataclass
from typing import Dict, List

import pytest

from pipeline.extractor import TextExtractor
from pipeline.face_match import FaceComparator
from pipeline.fetcher import Fetcher
from pipeline.run_pipeline import VerificationPipeline
from pipeline.schemas import FaceMatchResult


@dataclass
class Doc:
    """What the fake collaborators report for one URL"""

    text: str = ""
    faces: int = 1
    similarity: float = 0.0
    fetch_error: bool = False
    ocr_error: bool = False
    face_error: bool = False


class DocumentStore:
    def __init__(self):
        self.docs: Dict[str, Doc] = {}

    def add(self, url: str, **kwargs) -> str:
        self.docs[url] = Doc(**kwargs)
        return url

    def lookup(self, path: str) -> Doc:
        # fake fetches write the source URL as the file content
        with open(path, "rb") as f:
            return self.docs[f.read().decode()]


class FakeFetcher(Fetcher):
    def __init__(self, store: DocumentStore, staging_dir: str):
        super().__init__(staging_dir)
        self.store = store
        self.fetched: List[str] = []

    def download(self, url: str, dest_path: str) -> int:
        doc = self.store.docs.get(url)
        if doc is None or doc.fetch_error:
            raise IOError(f"404 for {url}")
        with open(dest_path, "wb") as f:
            f.write(url.encode())
        self.fetched.append(url)
        return len(url)


class FakeExtractor(TextExtractor):
    def __init__(self, store: DocumentStore):
        self.store = store

    def extract_text_from_file(self, path: str) -> str:
        doc = self.store.lookup(path)
        if doc.ocr_error:
            raise RuntimeError("textract unavailable")
        return doc.text


class FakeFaceComparator(FaceComparator):
    def __init__(self, store: DocumentStore):
        self.store = store
        self.detected: List[str] = []
        self.compared: List[str] = []

    def _url(self, path: str) -> str:
        with open(path, "rb") as f:
            return f.read().decode()

    def detect_faces(self, image_path: str) -> int:
        self.detected.append(self._url(image_path))
        doc = self.store.lookup(image_path)
        if doc.face_error:
            raise RuntimeError("rekognition throttled")
        return doc.faces

    def compare_faces(self, source_path: str, target_path: str) -> FaceMatchResult:
        self.compared.append(self._url(target_path))
        doc = self.store.lookup(target_path)
        if doc.similarity >= self.threshold:
            return FaceMatchResult(is_face_matched=True, confidence=doc.similarity)
        return FaceMatchResult.no_match()


@pytest.fixture
def store():
    return DocumentStore()


@pytest.fixture
def staging_dir(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return str(path)


@pytest.fixture
def fetcher(store, staging_dir):
    return FakeFetcher(store, staging_dir)


@pytest.fixture
def face_comparator(store):
    return FakeFaceComparator(store)


@pytest.fixture
def pipeline(store, fetcher, face_comparator):
    return VerificationPipeline(
        fetcher=fetcher,
        extractor=FakeExtractor(store),
        face_comparator=face_comparator,
    )

