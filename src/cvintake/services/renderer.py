"""
Render a submission into a single tall image (the printable form layout).

The layout is a fixed-width column: title, submission date, one labelled
block per field, then the list of uploaded CVs. Everything is drawn at
`scale` times the logical size so the PDF stays sharp.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from cvintake.config import get_settings
from cvintake.errors import PreviewGenerationFailure
from cvintake.models.submission import LANGUAGE_LABELS, PreferredLanguage, Submission

logger = logging.getLogger(__name__)

_PADDING = 24
_LINE_GAP = 6
_BLOCK_GAP = 10
_TEXT = (17, 17, 17)
_MUTED = (102, 102, 102)

_FIELDS = [
    ("First Name", "first_name"),
    ("Last Name", "last_name"),
    ("Date of Birth", "date_of_birth"),
    ("Phone", "phone"),
    ("Address", "address"),
    ("LinkedIn", "linkedin"),
    ("Preferred Language", "preferred_language"),
]


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _font(size: int) -> ImageFont.ImageFont:
    return ImageFont.load_default(size=size)


def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> list[str]:
    """Greedy wrap on spaces; words longer than a line (URLs) are split by character."""
    if not text:
        return [""]
    lines: list[str] = []
    current = ""
    for word in text.split(" "):
        candidate = f"{current} {word}" if current else word
        if draw.textlength(candidate, font=font) <= max_width:
            current = candidate
            continue
        if current:
            lines.append(current)
        current = ""
        for ch in word:
            if draw.textlength(current + ch, font=font) > max_width and current:
                lines.append(current)
                current = ch
            else:
                current += ch
    lines.append(current)
    return lines


def _display_value(submission: Submission, attr: str) -> str:
    value = getattr(submission, attr, "") or ""
    if attr == "preferred_language" and value:
        try:
            return LANGUAGE_LABELS[PreferredLanguage(value)]
        except ValueError:
            return value
    return str(value)


def render_submission(
    submission: Submission,
    *,
    width: Optional[int] = None,
    scale: Optional[int] = None,
) -> Image.Image:
    """
    Draw `submission` onto a white RGB canvas.

    Raises:
        PreviewGenerationFailure: If the image cannot be produced.
    """
    settings = get_settings()
    width = width or settings.render_width
    scale = scale or settings.render_scale

    try:
        return _render(submission, width * scale, scale)
    except (OSError, ValueError, MemoryError) as e:
        logger.error("Preview generation failed for %s: %s", submission.id, e)
        raise PreviewGenerationFailure("Failed to generate preview") from e


def _render(submission: Submission, px_width: int, scale: int) -> Image.Image:
    title_font = _font(26 * scale)
    label_font = _font(15 * scale)
    body_font = _font(14 * scale)
    pad = _PADDING * scale
    usable = px_width - 2 * pad

    # (text, font, colour, centred, gap after)
    ops: list[tuple[str, object, tuple, bool, int]] = []
    ops.append(("Personal Information Form", title_font, _TEXT, True, _LINE_GAP * scale))
    ops.append((f"Submitted: {format_date(submission.submitted_at)}", body_font, _MUTED, True, 16 * scale))

    measure = ImageDraw.Draw(Image.new("RGB", (1, 1)))
    for label, attr in _FIELDS:
        ops.append((label, label_font, _TEXT, False, _LINE_GAP * scale))
        for line in _wrap(measure, _display_value(submission, attr), body_font, usable):
            ops.append((line, body_font, _TEXT, False, 2 * scale))
        ops.append(("", body_font, _TEXT, False, _BLOCK_GAP * scale))

    ops.append(("Uploaded CVs", label_font, _TEXT, False, _LINE_GAP * scale))
    if submission.cv_urls:
        for i, url in enumerate(submission.cv_urls, start=1):
            for line in _wrap(measure, f"{i}. {url}", body_font, usable):
                ops.append((line, body_font, _TEXT, False, 2 * scale))
    else:
        ops.append(("No CVs uploaded", body_font, _MUTED, False, 2 * scale))

    def line_height(font) -> int:
        left, top, right, bottom = font.getbbox("Ag")
        return bottom - top

    total_h = pad * 2 + sum(line_height(font) + gap for _, font, _, _, gap in ops)
    image = Image.new("RGB", (px_width, total_h), "white")
    draw = ImageDraw.Draw(image)

    y = pad
    for text, font, colour, centred, gap in ops:
        if text:
            x = pad
            if centred:
                x = max(pad, (px_width - draw.textlength(text, font=font)) / 2)
            draw.text((x, y), text, font=font, fill=colour)
        y += line_height(font) + gap

    return image
