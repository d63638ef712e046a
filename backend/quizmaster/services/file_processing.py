"""
Upload expansion - PDF pages, ZIP archives and plain images become batch items.
"""

import io
import os
import zipfile
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import fitz

from quizmaster.config import logger

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif", ".tif", ".tiff")
PDF_RENDER_ZOOM = 1.5


@dataclass(frozen=True)
class SheetUpload:
    """One batch item. A set error means the item fails without recognition."""
    file_name: str
    content: bytes = b""
    error: Optional[str] = None


def pdf_to_images(pdf_bytes: bytes) -> List[bytes]:
    """Render every PDF page to JPEG bytes"""
    images = []
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        for page in doc:
            pix = page.get_pixmap(matrix=fitz.Matrix(PDF_RENDER_ZOOM, PDF_RENDER_ZOOM))
            images.append(pix.tobytes("jpeg"))
    finally:
        doc.close()
    logger.info(f"Converted PDF with {len(images)} pages to images")
    return images


def extract_zip_files(zip_bytes: bytes) -> List[Tuple[str, bytes]]:
    """
    Extract sheet files from a ZIP archive.
    Returns list of (filename, file_bytes) tuples.
    """
    results = []
    with zipfile.ZipFile(io.BytesIO(zip_bytes)) as zf:
        for name in sorted(zf.namelist()):
            base = os.path.basename(name)
            # Skip directories and hidden files
            if name.endswith("/") or name.startswith("__MACOSX") or base.startswith("."):
                continue
            ext = os.path.splitext(name)[1].lower()
            if ext == ".pdf" or ext in IMAGE_EXTENSIONS:
                results.append((base, zf.read(name)))
    return results


def _is_pdf(filename: str, content: bytes) -> bool:
    ext = os.path.splitext(filename)[1].lower()
    return ext == ".pdf" or (not ext and content[:5] == b"%PDF-")


def _expand_one(filename: str, content: bytes, max_bytes: int) -> List[SheetUpload]:
    if len(content) > max_bytes:
        size_mb = len(content) / (1024 * 1024)
        limit_mb = max_bytes / (1024 * 1024)
        return [SheetUpload(filename, error=f"File too large ({size_mb:.1f}MB). Maximum size is {limit_mb:.0f}MB.")]

    if _is_pdf(filename, content):
        try:
            pages = pdf_to_images(content)
        except Exception as e:
            logger.error(f"Failed to render PDF {filename}: {e}")
            return [SheetUpload(filename, error="Failed to extract images from PDF")]
        if not pages:
            return [SheetUpload(filename, error="Failed to extract images from PDF")]
        if len(pages) == 1:
            return [SheetUpload(filename, pages[0])]
        return [SheetUpload(f"{filename}#p{i + 1}", page) for i, page in enumerate(pages)]

    return [SheetUpload(filename, content)]


def expand_uploads(files: Iterable[Tuple[str, bytes]], max_bytes: int) -> List[SheetUpload]:
    """Flatten uploaded files into ordered batch items"""
    uploads = []
    for filename, content in files:
        if os.path.splitext(filename)[1].lower() == ".zip":
            try:
                members = extract_zip_files(content)
            except zipfile.BadZipFile as e:
                logger.error(f"Error extracting ZIP {filename}: {e}")
                uploads.append(SheetUpload(filename, error="Could not open ZIP archive"))
                continue
            for member_name, member_bytes in members:
                uploads.extend(_expand_one(member_name, member_bytes, max_bytes))
            continue
        uploads.extend(_expand_one(filename, content, max_bytes))
    return uploads
