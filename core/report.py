"""
Report compositing: header, annotated image grid and legend strip on
fixed-size PDF pages.

All layout arithmetic is in PDF points with the origin at the bottom left
of the page, so "moving down" decrements Y.
"""

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from PIL import Image
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from core.legend import LegendEntry, hex_to_rgb
from core.models import Submission

logger = logging.getLogger(__name__)

REPORT_TITLE = "Oral Health Screening Report"
SECTION_HEADING = "SCREENING REPORT:"

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"


@dataclass
class PageGeometry:
    """Page size and fixed layout constants, in points."""
    width: float = letter[0]
    height: float = letter[1]
    margin: float = 50.0
    bottom_margin: float = 50.0
    gutter: float = 20.0
    cap_per_row: int = 3
    max_image_height: float = 180.0
    # Gap between the section heading and the top of the first image row
    image_top_gap: float = 40.0
    # Gap between the lowest image row and the legend strip
    legend_gap: float = 40.0
    title_size: float = 24.0
    heading_size: float = 16.0
    detail_size: float = 12.0
    detail_pitch: float = 20.0
    swatch_size: float = 12.0
    legend_text_offset: float = 20.0
    legend_text_size: float = 10.0
    legend_pitch: float = 120.0
    legend_row_height: float = 20.0
    legend_right_inset: float = 100.0

    @property
    def legend_right_limit(self) -> float:
        return self.width - self.legend_right_inset


@dataclass
class GridSlot:
    """Box reserved for one image; (x, y) is the bottom-left corner."""
    index: int
    page: int
    row: int
    x: float
    y: float
    width: float
    height: float


@dataclass
class LegendSlot:
    entry: LegendEntry
    page: int
    x: float
    y: float


@dataclass
class RenderedReport:
    pdf_bytes: bytes
    page_count: int
    placed_images: int
    warnings: list[str] = field(default_factory=list)


# ==================== Layout ====================

def compute_image_width(n: int, geometry: PageGeometry) -> float:
    """
    Width of each grid cell for `n` images.

    The gutter count follows the total number of images rather than the
    images per row, so rows after a wrap keep the first row's width.

    Raises:
        ValueError: If `n` images leave no positive width on the page
    """
    if n <= 0:
        return 0.0
    available = geometry.width - 2 * geometry.margin - (n - 1) * geometry.gutter
    if available <= 0:
        raise ValueError(f"{n} images do not fit across a {geometry.width:g}pt page")
    return available / min(n, geometry.cap_per_row)


def scale_to_fit(src_width: float, src_height: float,
                 max_width: float, max_height: float) -> tuple[float, float]:
    """Scale (src_width, src_height) by min(max_w/src_w, max_h/src_h)."""
    if src_width <= 0 or src_height <= 0:
        raise ValueError(f"Invalid image size {src_width}x{src_height}")
    factor = min(max_width / src_width, max_height / src_height)
    return src_width * factor, src_height * factor


def layout_image_grid(n: int, first_row_y: float, geometry: PageGeometry,
                      start_page: int = 0) -> list[GridSlot]:
    """
    Place `n` image cells left to right, wrapping after cap_per_row.

    Args:
        n: Number of images
        first_row_y: Baseline (bottom) of the first row
        geometry: Page geometry
        start_page: Page index the grid starts on

    Returns:
        One GridSlot per image, in input order. A row that would fall below
        the bottom margin moves to the top of a new page.
    """
    image_width = compute_image_width(n, geometry)
    row_pitch = geometry.max_image_height + geometry.gutter
    top_row_y = geometry.height - geometry.margin - geometry.max_image_height

    slots = []
    page = start_page
    row_y = first_row_y
    for i in range(n):
        col = i % geometry.cap_per_row
        row = i // geometry.cap_per_row
        if col == 0 and i > 0:
            row_y -= row_pitch
        if col == 0 and row_y < geometry.bottom_margin:
            page += 1
            row_y = top_row_y
        slots.append(GridSlot(
            index=i,
            page=page,
            row=row,
            x=geometry.margin + col * (image_width + geometry.gutter),
            y=row_y,
            width=image_width,
            height=geometry.max_image_height,
        ))
    return slots


def layout_legend(entries: list[LegendEntry], start_y: float, geometry: PageGeometry,
                  start_page: int = 0) -> list[LegendSlot]:
    """
    Place legend entries on a wrapping strip.

    Each entry takes a swatch at the cursor with its label to the right; the
    cursor then advances by legend_pitch and wraps to the next row once it
    passes the right limit.
    """
    slots = []
    page = start_page
    x = geometry.margin
    y = start_y
    for entry in entries:
        if y < geometry.bottom_margin:
            page += 1
            y = geometry.height - geometry.margin - geometry.swatch_size
        slots.append(LegendSlot(entry=entry, page=page, x=x, y=y))
        x += geometry.legend_pitch
        if x > geometry.legend_right_limit:
            x = geometry.margin
            y -= geometry.legend_row_height
    return slots


def format_report_date(submission: Submission) -> str:
    created = submission.created_at
    if created is None:
        return "unknown"
    return f"{created.month}/{created.day}/{created.year}"


# ==================== Rendering ====================

def _decode_image(data: bytes) -> Image.Image:
    """Decode image bytes and flatten any transparency onto white."""
    img = Image.open(io.BytesIO(data))
    img.load()
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.getchannel("A"))
        return background
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


class ReportCompositor:
    """
    Renders a submission into PDF bytes.

    Overlay images are fetched through the `fetch` callable passed to
    `render`. Fetches run in a thread pool; placement always follows the
    annotation order.
    """

    def __init__(self, geometry: Optional[PageGeometry] = None, fetch_workers: int = 4):
        self.geometry = geometry or PageGeometry()
        self.fetch_workers = max(1, fetch_workers)

    def _load_overlays(self, refs: list[str], fetch: Callable[[str], bytes],
                       warnings: list[str]) -> list[Optional[Image.Image]]:
        def load(ref: str) -> Image.Image:
            return _decode_image(fetch(ref))

        with ThreadPoolExecutor(max_workers=self.fetch_workers) as pool:
            futures = [pool.submit(load, ref) for ref in refs]

        images = []
        for ref, future in zip(refs, futures):
            try:
                images.append(future.result())
            except Exception as e:
                logger.warning(f"Skipping overlay {ref}: {e}")
                warnings.append(f"Overlay image {ref} could not be loaded: {e}")
                images.append(None)
        return images

    def _valid_legend(self, submission: Submission, warnings: list[str]) -> list[tuple[LegendEntry, tuple]]:
        valid = []
        for entry in submission.legend:
            try:
                valid.append((entry, hex_to_rgb(entry.color)))
            except ValueError as e:
                logger.warning(f"Skipping legend entry {entry.text!r}: {e}")
                warnings.append(f"Legend entry {entry.text!r} has invalid color {entry.color!r}")
        return valid

    def _draw_header(self, pdf: canvas.Canvas, submission: Submission) -> float:
        """Draw title, patient details and section heading; return the heading Y."""
        g = self.geometry
        y = g.height - g.margin

        pdf.setFont(FONT_BOLD, g.title_size)
        pdf.drawString(g.margin, y, REPORT_TITLE)
        y -= 40

        details = [
            f"Name: {submission.name}",
            f"Email: {submission.email}",
            f"Date: {format_report_date(submission)}",
        ]
        if submission.note:
            details.append(f"Note: {submission.note}")

        pdf.setFont(FONT_REGULAR, g.detail_size)
        for line in details:
            pdf.drawString(g.margin, y, line)
            y -= g.detail_pitch
        y -= 20

        pdf.setFont(FONT_BOLD, g.heading_size)
        pdf.drawString(g.margin, y, SECTION_HEADING)
        return y

    def render(self, submission: Submission, fetch: Callable[[str], bytes]) -> RenderedReport:
        """
        Compose the report for a submission.

        Args:
            submission: Aggregate with annotations and legend
            fetch: Returns the bytes of a stored overlay by reference

        Returns:
            RenderedReport with PDF bytes and warnings for skipped content
        """
        g = self.geometry
        warnings: list[str] = []
        annotations = list(submission.annotations)

        overlays = self._load_overlays([a.overlay_ref for a in annotations], fetch, warnings)
        legend = self._valid_legend(submission, warnings)

        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=(g.width, g.height))
        pdf.setTitle(f"{REPORT_TITLE} - {submission.name}")
        page = 0

        def goto_page(target: int) -> None:
            nonlocal page
            while page < target:
                pdf.showPage()
                page += 1

        heading_y = self._draw_header(pdf, submission)

        first_row_y = heading_y - g.image_top_gap - g.max_image_height
        slots = layout_image_grid(len(annotations), first_row_y, g)
        placed = 0
        for slot, image in zip(slots, overlays):
            if image is None:
                continue
            goto_page(slot.page)
            width, height = scale_to_fit(image.width, image.height, slot.width, slot.height)
            pdf.drawImage(ImageReader(image), slot.x, slot.y, width=width, height=height)
            placed += 1

        if slots:
            last = slots[-1]
            legend_page, legend_y = last.page, last.y - g.legend_gap
        else:
            legend_page, legend_y = 0, first_row_y - g.legend_gap

        legend_slots = layout_legend([entry for entry, _ in legend], legend_y, g, legend_page)
        for slot, (_, (r, gr, b)) in zip(legend_slots, legend):
            goto_page(slot.page)
            pdf.setFillColorRGB(r, gr, b)
            pdf.rect(slot.x, slot.y, g.swatch_size, g.swatch_size, stroke=0, fill=1)
            pdf.setFillColorRGB(0, 0, 0)
            pdf.setFont(FONT_REGULAR, g.legend_text_size)
            pdf.drawString(slot.x + g.legend_text_offset, slot.y + 1, slot.entry.text)

        pdf.showPage()
        pdf.save()

        logger.info(
            f"Rendered report for submission {submission.id}: "
            f"{placed}/{len(annotations)} image(s), {len(legend)} legend entries, "
            f"{page + 1} page(s)"
        )
        return RenderedReport(
            pdf_bytes=buffer.getvalue(),
            page_count=page + 1,
            placed_images=placed,
            warnings=warnings,
        )
