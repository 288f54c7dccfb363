import os
import uuid
from typing import List

from PIL import Image
import pillow_heif
from pdf2image import convert_from_path

from .utils import cleanup_temp_file

pillow_heif.register_heif_opener()

# Formats the OCR and face backends accept as-is
PASSTHROUGH_EXTS = {".jpg", ".jpeg", ".png"}
CONVERTIBLE_IMAGE_EXTS = {".heic", ".heif", ".webp", ".bmp", ".tif", ".tiff", ".gif"}
PDF_EXT = ".pdf"


def needs_conversion(path: str) -> bool:
    """Unknown extensions are handed to the collaborators untouched"""
    ext = os.path.splitext(path)[1].lower()
    return ext in CONVERTIBLE_IMAGE_EXTS or ext == PDF_EXT


def convert_to_images(input_path: str, output_dir: str) -> List[str]:
    """
    Converts input file (image / HEIC / PDF) into JPEG images.
    Returns list of image paths.
    """
    ext = os.path.splitext(input_path)[1].lower()
    os.makedirs(output_dir, exist_ok=True)

    # -------- Case 1: Image or HEIC --------
    if ext in PASSTHROUGH_EXTS or ext in CONVERTIBLE_IMAGE_EXTS:
        out_path = os.path.join(output_dir, f"{uuid.uuid4().hex}.jpg")
        try:
            with Image.open(input_path) as img:
                img.convert("RGB").save(out_path, "JPEG", quality=95)
        except Exception:
            cleanup_temp_file(out_path)
            raise
        return [out_path]

    # -------- Case 2: PDF --------
    if ext == PDF_EXT:
        output_paths = []
        pages = convert_from_path(input_path, dpi=300)
        for i, page in enumerate(pages):
            out_path = os.path.join(
                output_dir, f"{uuid.uuid4().hex}_page{i+1}.jpg"
            )
            output_paths.append(out_path)
            try:
                page.convert("RGB").save(out_path, "JPEG", quality=95)
            except Exception:
                # drop pages already written
                for written in output_paths:
                    cleanup_temp_file(written)
                raise
        return output_paths

    raise ValueError(f"Unsupported file type: {ext}")


def normalize_to_jpeg(input_path: str) -> str:
    """
    Returns a path the collaborators can read: the input itself when it is
    already JPEG/PNG, otherwise a JPEG written next to it.
    Only the first page of a PDF is kept; any other pages are removed.
    """
    if not needs_conversion(input_path):
        return input_path

    images = convert_to_images(input_path, os.path.dirname(input_path) or ".")
    if not images:
        raise ValueError(f"No images produced for {input_path}")

    for extra in images[1:]:
        os.remove(extra)

    return images[0]
