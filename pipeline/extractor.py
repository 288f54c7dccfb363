import asyncio
import base64
import json
import logging
import re
from typing import Any, Dict, List, Union

from openai import OpenAI

from config import settings
from .fetcher import LocalHandle
from .utils import Skipped

logger = logging.getLogger(__name__)


class TextExtractor:
    """
    Turns identity document images into one lowercase corpus.
    Backends implement ``extract_text_from_file``.
    """

    def extract_text_from_file(self, path: str) -> str:
        raise NotImplementedError

    async def _extract_or_skip(self, handle: LocalHandle) -> Union[str, Skipped]:
        try:
            text = await asyncio.to_thread(self.extract_text_from_file, handle.path)
        except Exception as e:
            logger.warning(f"Failed to extract text from {handle.path}: {str(e)}")
            return Skipped(item=handle.path, reason=str(e))
        logger.info(f"Text extraction completed: {handle.path} ({len(text)} chars)")
        return text

    async def extract_text(self, handles: List[LocalHandle]) -> str:
        """Space-joined lowercase text of all handles, in order"""
        logger.info(f"Starting text extraction from {len(handles)} files")

        texts = []
        for handle in handles:
            result = await self._extract_or_skip(handle)
            # a failed file still holds its slot in the corpus
            texts.append("" if isinstance(result, Skipped) else result)

        corpus = " ".join(texts).lower()
        logger.info(f"Text extraction from all files completed ({len(corpus)} chars)")
        return corpus


class TextractExtractor(TextExtractor):
    """AWS Textract, keeping LINE blocks"""

    def __init__(self, client):
        self.client = client

    def extract_text_from_file(self, path: str) -> str:
        with open(path, "rb") as f:
            image_bytes = f.read()

        response = self.client.detect_document_text(Document={"Bytes": image_bytes})

        lines = [
            block["Text"]
            for block in response.get("Blocks", [])
            if block.get("BlockType") == "LINE" and block.get("Text")
        ]
        return " ".join(lines).lower()


class VisionTextExtractor(TextExtractor):
    """
    Transcribes document images with an OpenAI vision model
    """

    prompt = """
You are a document transcription system.

Transcribe EVERY line of printed text visible in this identity document,
top to bottom, exactly as written. Include headers, labels, names, dates and
numbers. DO NOT translate, summarize or correct anything.

Return STRICT JSON only.

Expected format:
{
  "lines": ["string", "string"]
}
"""

    def __init__(self, client: OpenAI = None, model: str = None):
        self.client = client or OpenAI(
            api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT
        )
        self.model = model or settings.OPENAI_MODEL

    def encode_image(self, image_path: str) -> str:
        """Encode image as base64 data URL"""
        with open(image_path, "rb") as f:
            b64 = base64.b64encode(f.read()).decode("utf-8")
        return f"data:image/jpeg;base64,{b64}"

    def safe_json_parse(self, text: str) -> Dict[str, Any]:
        """Safely parse JSON from LLM response"""
        match = re.search(r"\{.*\}", text, re.DOTALL)
        if not match:
            raise ValueError("No JSON found in model output")
        return json.loads(match.group())

    def extract_text_from_file(self, path: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": self.prompt},
                        {
                            "type": "image_url",
                            "image_url": {"url": self.encode_image(path)}
                        }
                    ]
                }
            ],
            max_tokens=1500,
            temperature=0
        )

        parsed = self.safe_json_parse(response.choices[0].message.content or "")
        lines = parsed.get("lines") or []
        return " ".join(str(line) for line in lines if line).lower()
