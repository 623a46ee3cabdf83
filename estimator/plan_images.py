"""
Plan Image Loading
Fetches plan pages (URLs, image files, PDFs) as bytes ready for a vision call.

Large images cost tokens and time, so anything above the byte cap is
skipped rather than sent. Skips are reported as None entries so the
caller can count them.
"""

import base64
import io
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from version import APP_NAME, __version__

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 8_000_000
DEFAULT_PDF_DPI = 150
FETCH_TIMEOUT = 60

SUPPORTED_MEDIA_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
DEFAULT_MEDIA_TYPE = "image/png"

_PIL_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


@dataclass
class PlanImage:
    """One plan page, encoded for a vision request."""
    data: bytes
    media_type: str
    reference: str
    page_number: Optional[int] = None

    @property
    def base64_data(self) -> str:
        return base64.standard_b64encode(self.data).decode("utf-8")

    @property
    def label(self) -> str:
        if self.page_number is not None:
            return f"{Path(self.reference).name} p.{self.page_number}"
        return self.reference


def detect_media_type(data: bytes, declared: Optional[str] = None) -> str:
    """
    Work out the media type of image bytes.

    Pillow identifies the format from the data; the declared
    Content-Type is the fallback. Anything unsupported becomes image/png.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            detected = _PIL_FORMATS.get(img.format or "")
            if detected:
                return detected
    except (UnidentifiedImageError, OSError):
        pass

    declared = (declared or "").split(";")[0].strip().lower()
    if declared == "image/jpg":
        declared = "image/jpeg"
    if declared in SUPPORTED_MEDIA_TYPES:
        return declared
    return DEFAULT_MEDIA_TYPE


def fetch_image_bytes(url: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Optional[Tuple[bytes, str]]:
    """
    Download an image, refusing anything over max_bytes.

    Returns:
        (data, content_type) or None when the fetch fails or is too large
    """
    request = urllib.request.Request(
        url,
        headers={"User-Agent": f"{APP_NAME}/{__version__}"}
    )
    try:
        with urllib.request.urlopen(request, timeout=FETCH_TIMEOUT) as response:
            declared_size = int(response.headers.get("Content-Length") or 0)
            if declared_size > max_bytes:
                logger.warning(f"Skipping image ({declared_size:,} bytes > {max_bytes:,}): {url}")
                return None

            # Read one byte past the cap to detect oversized bodies without Content-Length
            data = response.read(max_bytes + 1)
            content_type = response.headers.get("Content-Type", "")
    except (urllib.error.URLError, TimeoutError, ValueError) as e:
        logger.warning(f"Could not fetch image {url}: {e}")
        return None

    if len(data) > max_bytes:
        logger.warning(f"Skipping image (over {max_bytes:,} bytes): {url}")
        return None
    if not data:
        logger.warning(f"Empty image body: {url}")
        return None
    return data, content_type


def render_pdf_pages(pdf_path: Path, dpi: int = DEFAULT_PDF_DPI) -> List[bytes]:
    """Render every PDF page to PNG bytes."""
    pages = []
    doc = fitz.open(str(pdf_path))
    try:
        matrix = fitz.Matrix(dpi / 72, dpi / 72)
        for page in doc:
            pix = page.get_pixmap(matrix=matrix)
            pages.append(pix.tobytes("png"))
    finally:
        doc.close()
    return pages


def load_plan_images(
    reference: str,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
    dpi: int = DEFAULT_PDF_DPI
) -> List[Optional[PlanImage]]:
    """
    Load every page behind a plan reference.

    Args:
        reference: http(s) URL, image path or PDF path
        max_bytes: Per-image byte cap
        dpi: Render resolution for PDF pages

    Returns:
        One entry per page; None marks a page that was skipped
    """
    if reference.startswith(("http://", "https://")):
        fetched = fetch_image_bytes(reference, max_bytes)
        if fetched is None:
            return [None]
        data, content_type = fetched
        return [PlanImage(data, detect_media_type(data, content_type), reference)]

    path = Path(reference)
    if not path.is_file():
        logger.warning(f"Plan file not found: {reference}")
        return [None]

    if path.suffix.lower() == ".pdf":
        try:
            rendered = render_pdf_pages(path, dpi)
        except (RuntimeError, ValueError) as e:
            logger.warning(f"Could not render PDF {path.name}: {e}")
            return [None]

        images: List[Optional[PlanImage]] = []
        for page_number, data in enumerate(rendered, start=1):
            if len(data) > max_bytes:
                logger.warning(f"Skipping {path.name} page {page_number} ({len(data):,} bytes)")
                images.append(None)
            else:
                images.append(PlanImage(data, "image/png", str(path), page_number))
        logger.info(f"Rendered {len(rendered)} page(s) from {path.name} at {dpi} DPI")
        return images

    size = path.stat().st_size
    if size > max_bytes:
        logger.warning(f"Skipping image ({size:,} bytes > {max_bytes:,}): {path.name}")
        return [None]
    data = path.read_bytes()
    return [PlanImage(data, detect_media_type(data), str(path))]
