import pytest
from PIL import Image
from pypdf import PdfReader

from cvintake.services.paginator import paginate, paginate_to_pdf, write_pdf


def _striped(width, height):
    """Each row's red channel encodes its index, so bands can be traced back."""
    img = Image.new("RGB", (width, height))
    for y in range(height):
        for x in range(width):
            img.putpixel((x, y), (y % 256, 0, 0))
    return img


def test_short_image_fits_on_one_page():
    img = Image.new("RGB", (200, 300), "white")
    pages = paginate(img, page_width=100, page_height=200)

    assert len(pages) == 1
    assert pages[0].width == 100
    assert pages[0].height == pytest.approx(150)
    assert pages[0].image is img


def test_exact_capacity_is_still_one_page():
    img = Image.new("RGB", (100, 200), "white")
    assert len(paginate(img, 100, 200)) == 1


def test_two_and_a_half_pages_become_three():
    ratio = 2.0
    capacity_px = int(200 * ratio)
    img = Image.new("RGB", (200, int(capacity_px * 2.5)), "white")

    pages = paginate(img, page_width=100, page_height=200)

    assert len(pages) == 3
    assert [p.height for p in pages] == pytest.approx([200, 200, 100])
    assert sum(p.height * ratio for p in pages) == pytest.approx(img.height)


def test_bands_cover_the_source_without_gap_or_overlap():
    img = _striped(7, 50)
    # ratio 7/3 makes the per-page pixel count fractional
    pages = paginate(img, page_width=3, page_height=5)

    tops = [p.source_top for p in pages]
    assert tops[0] == 0
    for prev, nxt in zip(pages, pages[1:]):
        assert nxt.source_top == prev.source_top + prev.source_height
    assert sum(p.source_height for p in pages) == 50

    for page in pages:
        assert page.image.size == (7, page.source_height)
        assert page.image.getpixel((0, 0))[0] == page.source_top % 256


def test_page_heights_are_proportional_to_bands():
    img = Image.new("RGB", (300, 1000), "white")
    pages = paginate(img, page_width=150, page_height=200)
    for page in pages:
        assert page.height == pytest.approx(page.source_height / 2)
        assert page.height <= 200 + 1e-9


@pytest.mark.parametrize("size", [(0, 10), (10, 0)])
def test_empty_image_is_rejected(size):
    with pytest.raises(ValueError):
        paginate(Image.new("RGB", size), 100, 100)


def test_write_pdf_emits_one_page_per_band(tmp_path):
    img = Image.new("RGB", (1190, 1684 * 2 + 300), "white")
    out = paginate_to_pdf(img, tmp_path / "doc.pdf")

    reader = PdfReader(str(out))
    assert len(reader.pages) == 3


def test_write_pdf_single_page(tmp_path):
    img = Image.new("RGBA", (400, 200), (255, 255, 255, 0))
    pages = paginate(img, 595.27, 841.89)
    out = write_pdf(pages, tmp_path / "nested" / "one.pdf")

    assert out.exists()
    assert len(PdfReader(str(out)).pages) == 1
