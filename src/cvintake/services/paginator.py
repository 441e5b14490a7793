"""
Document paginator: tall snapshot image → fixed-size PDF pages.

Given an image of natural size W x H and a target page of page_width x
page_height (points), the scale ratio is r = W / page_width.

  - H / r <= page_height  → one page, height H / r
  - otherwise             → bands of page_height * r source pixels, top to
                            bottom, the last one shorter; each band becomes
                            one page of height band / r

Band edges are rounded on cumulative offsets, so consecutive bands share an
edge exactly: no gap, no overlap, and the band heights sum to H.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)


@dataclass
class PageSlice:
    image: Image.Image      # band at native resolution
    width: float            # rendered width on the page (points)
    height: float           # rendered height on the page (points)
    source_top: int         # first source row of this band
    source_height: int      # number of source rows


def paginate(image: Image.Image, page_width: float, page_height: float) -> list[PageSlice]:
    """Slice `image` into page-sized bands, in top-to-bottom order."""
    img_w, img_h = image.size
    if img_w <= 0 or img_h <= 0:
        raise ValueError(f"Cannot paginate an empty image ({img_w}x{img_h})")
    if page_width <= 0 or page_height <= 0:
        raise ValueError("Page dimensions must be positive")

    ratio = img_w / page_width
    rendered_height = img_h / ratio

    if rendered_height <= page_height:
        return [PageSlice(image=image, width=page_width, height=rendered_height, source_top=0, source_height=img_h)]

    per_page_px = page_height * ratio
    pages: list[PageSlice] = []
    remaining = img_h
    index = 0
    top = 0

    while remaining > 0:
        bottom = min(img_h, round((index + 1) * per_page_px))
        bottom = max(bottom, top + 1)       # always consume at least one row
        band_h = bottom - top
        band = image.crop((0, top, img_w, bottom))
        pages.append(PageSlice(
            image=band,
            width=page_width,
            height=band_h / ratio,
            source_top=top,
            source_height=band_h,
        ))
        remaining -= band_h
        top = bottom
        index += 1

    logger.debug("Paginated %dx%d image into %d pages", img_w, img_h, len(pages))
    return pages


def write_pdf(
    pages: Sequence[PageSlice],
    output: Path,
    page_size: tuple[float, float] = A4,
    *,
    jpeg_quality: int = 95,
) -> Path:
    """
    Write one PDF page per slice, each band drawn at the top-left corner.

    Returns:
        The output path.
    """
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    _, page_h = page_size

    pdf = canvas.Canvas(str(output), pagesize=page_size)
    for page in pages:
        buf = io.BytesIO()
        page.image.convert("RGB").save(buf, format="JPEG", quality=jpeg_quality)
        buf.seek(0)
        # reportlab's origin is bottom-left
        pdf.drawImage(ImageReader(buf), 0, page_h - page.height, width=page.width, height=page.height)
        pdf.showPage()
    pdf.save()
    return output


def paginate_to_pdf(
    image: Image.Image,
    output: Path,
    page_size: tuple[float, float] = A4,
    *,
    jpeg_quality: int = 95,
) -> Path:
    page_w, page_h = page_size
    return write_pdf(paginate(image, page_w, page_h), output, page_size, jpeg_quality=jpeg_quality)
