import asyncio
import base64
import json
import logging
import re
from typing import List

from openai import OpenAI

from config import settings, FACE_SIMILARITY_THRESHOLD
from .fetcher import LocalHandle
from .schemas import FaceMatchResult

logger = logging.getLogger(__name__)


def encode_image(image_path: str) -> str:
    with open(image_path, "rb") as f:
        return f"data:image/jpeg;base64,{base64.b64encode(f.read()).decode()}"


def read_image(image_path: str) -> bytes:
    with open(image_path, "rb") as f:
        return f.read()


def safe_json_parse(text: str):
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        raise ValueError("No JSON found in model output")
    return json.loads(match.group())


def _to_bool(val):
    if isinstance(val, bool):
        return val
    if val is None:
        return None
    if isinstance(val, (int, float)):
        return bool(val)
    s = str(val).strip().lower()
    if s in ("true", "yes", "y", "1"):
        return True
    if s in ("false", "no", "n", "0"):
        return False
    return None


def _to_similarity(val) -> float:
    """Model confidence (0-1, or a percentage) as a 0-100 similarity"""
    if val is None:
        return 0.0
    try:
        v = float(str(val).strip().replace('%', ''))
    except ValueError:
        return 0.0
    if v <= 1:
        v = v * 100.0
    return round(max(0.0, min(100.0, v)), 2)


class FaceComparator:
    """
    Matches a reference photo against identity document images.
    Backends implement ``detect_faces`` and ``compare_faces``.
    """

    threshold = FACE_SIMILARITY_THRESHOLD

    def detect_faces(self, image_path: str) -> int:
        """Number of faces found in the image"""
        raise NotImplementedError

    def compare_faces(self, source_path: str, target_path: str) -> FaceMatchResult:
        raise NotImplementedError

    async def compare_one(self, source: LocalHandle, target: LocalHandle) -> FaceMatchResult:
        logger.info(f"Comparing faces: {source.path} vs {target.path}")
        result = await asyncio.to_thread(self.compare_faces, source.path, target.path)
        logger.info(
            f"Face comparison completed: matched={result.is_face_matched} "
            f"confidence={result.confidence}"
        )
        return result

    async def compare_against_set(self, source: LocalHandle,
                                  candidates: List[LocalHandle]) -> FaceMatchResult:
        """First candidate whose face matches the source wins"""
        logger.info(f"Comparing faces with {len(candidates)} identity documents")

        for candidate in candidates:
            try:
                face_count = await asyncio.to_thread(self.detect_faces, candidate.path)
                if face_count == 0:
                    logger.info(f"No face detected in {candidate.path}")
                    continue

                result = await self.compare_one(source, candidate)
                if result.is_face_matched:
                    logger.info(
                        f"Face match found in {candidate.path} "
                        f"(confidence={result.confidence})"
                    )
                    return result
            except Exception as e:
                logger.warning(
                    f"Error processing {candidate.path} for face comparison: {str(e)}"
                )

        logger.warning("No face match found in any identity document")
        return FaceMatchResult.no_match()


class RekognitionFaceComparator(FaceComparator):
    """AWS Rekognition DetectFaces / CompareFaces"""

    def __init__(self, client):
        self.client = client

    def detect_faces(self, image_path: str) -> int:
        response = self.client.detect_faces(Image={"Bytes": read_image(image_path)})
        return len(response.get("FaceDetails") or [])

    def compare_faces(self, source_path: str, target_path: str) -> FaceMatchResult:
        response = self.client.compare_faces(
            SourceImage={"Bytes": read_image(source_path)},
            TargetImage={"Bytes": read_image(target_path)},
            SimilarityThreshold=self.threshold,
        )

        matches = [
            m for m in response.get("FaceMatches") or []
            if m.get("Similarity", 0) >= self.threshold
        ]
        if not matches:
            return FaceMatchResult.no_match()
        return FaceMatchResult(is_face_matched=True, confidence=matches[0]["Similarity"])


class VisionFaceComparator(FaceComparator):
    """Face similarity judged by an OpenAI vision model"""

    detect_prompt = """
You are a face detection assistant.

Count the human faces (including printed portrait photos) visible in this image.

Return STRICT JSON ONLY.

Format:
{
  "face_count": 0
}
"""

    compare_prompt = """
You are an identity verification assistant.

You will be given two images:
1. A photo of a person
2. A government-issued identity document

Task:
Determine whether the photo and the portrait on the document show the SAME PERSON.

Consider:
- Facial structure
- Eyes, nose, mouth
- Face shape
- Relative age
- Hairline (ignore hairstyle differences)
- Ignore lighting, image quality, or background differences

Return STRICT JSON ONLY.

Format:
{
  "same_person": true/false,
  "confidence": 0.0-1.0
}
"""

    def __init__(self, client: OpenAI = None, model: str = None):
        self.client = client or OpenAI(
            api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT
        )
        self.model = model or settings.FACE_MODEL

    def _ask(self, prompt: str, *image_paths: str) -> dict:
        content = [{"type": "text", "text": prompt}]
        content.extend(
            {"type": "image_url", "image_url": {"url": encode_image(p)}}
            for p in image_paths
        )

        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": content}],
            max_tokens=300,
            temperature=0
        )

        parsed = safe_json_parse(response.choices[0].message.content or "")
        if not isinstance(parsed, dict):
            raise ValueError("Model output is not a JSON object")
        return parsed

    def detect_faces(self, image_path: str) -> int:
        parsed = self._ask(self.detect_prompt, image_path)
        return int(parsed.get("face_count") or 0)

    def compare_faces(self, source_path: str, target_path: str) -> FaceMatchResult:
        parsed = self._ask(self.compare_prompt, source_path, target_path)

        same_person = _to_bool(parsed.get("same_person"))
        similarity = _to_similarity(parsed.get("confidence"))

        if same_person and similarity >= self.threshold:
            return FaceMatchResult(is_face_matched=True, confidence=similarity)
        return FaceMatchResult.no_match()
