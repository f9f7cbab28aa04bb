from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple
import io
import logging

import fitz  # PyMuPDF
from PIL import Image, ImageOps

from ocr2pdf.models.domain import ImageInput, ImageTextPair, OcrOutcome
from ocr2pdf.services.error_classifier import PdfErrorKind, PdfGenerationError, to_pdf_error

logger = logging.getLogger(__name__)

MM_TO_PT = 72 / 25.4

FONT_NAME = "helv"
EMBEDDED_FONT_NAME = "ocrfont"
LINE_SPACING = 1.2
TRUNCATION_MARKER = "[...]"
SUMMARY_FONT_SIZE = 10.0
MIN_SUMMARY_FONT_SIZE = 4.0

PLACEHOLDER_FILL = (240 / 255, 240 / 255, 240 / 255)
PLACEHOLDER_TEXT_COLOR = (100 / 255, 100 / 255, 100 / 255)
DIVIDER_COLOR = (200 / 255, 200 / 255, 200 / 255)
DIVIDER_WIDTH = 0.2 * MM_TO_PT
TEXT_COLOR = (0, 0, 0)
ERROR_TEXT_COLOR = (200 / 255, 0, 0)

NO_TEXT_FALLBACK = "No text could be extracted from this image."
IMAGE_FAILED_PLACEHOLDER = "[ Image could not be displayed ]"
NO_IMAGE_PLACEHOLDER = "[ No image data available ]"

Color = Tuple[float, float, float]


@dataclass(frozen=True)
class PageLayout:
    """Fixed page geometry in points: image left, divider, text right"""
    width: float
    height: float
    margin: float

    @property
    def usable_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def usable_height(self) -> float:
        return self.height - 2 * self.margin

    @property
    def image_rect(self) -> fitz.Rect:
        return fitz.Rect(
            self.margin,
            self.margin,
            self.margin + 0.45 * self.usable_width,
            self.margin + 0.8 * self.usable_height
        )

    @property
    def divider_x(self) -> float:
        return self.margin + 0.45 * self.usable_width + 0.025 * self.usable_width

    @property
    def text_x(self) -> float:
        return self.margin + 0.45 * self.usable_width + 0.05 * self.usable_width

    @property
    def text_width(self) -> float:
        return 0.5 * self.usable_width

    @property
    def bottom(self) -> float:
        return self.height - self.margin


def wrap_text(text: str, max_width: float, fontsize: float, font: Optional[fitz.Font] = None) -> List[str]:
    """
    Wrap text to a width using the font's glyph metrics

    Explicit newlines are kept. Words wider than the line are broken
    character by character. Without a font the built-in Helvetica is measured.
    """
    def width_of(value: str) -> float:
        if font is not None:
            return font.text_length(value, fontsize=fontsize)
        return fitz.get_text_length(value, fontname=FONT_NAME, fontsize=fontsize)

    lines: List[str] = []
    for paragraph in text.replace("\r\n", "\n").replace("\t", "    ").split("\n"):
        current = ""
        for word in paragraph.split(" "):
            candidate = f"{current} {word}" if current else word
            if width_of(candidate) <= max_width:
                current = candidate
                continue

            if current:
                lines.append(current)
                current = ""

            # Break an over-long word
            while word and width_of(word) > max_width:
                cut = max(len(word) - 1, 1)
                while cut > 1 and width_of(word[:cut]) > max_width:
                    cut -= 1
                lines.append(word[:cut])
                word = word[cut:]
            current = word
        lines.append(current)
    return lines


class PdfBuilder:
    """
    Thin wrapper over a PyMuPDF document; starts with one blank page

    With a font_file (TTF/OTF) all text uses that font, embedded in the
    document. Otherwise the built-in Helvetica is used, which only covers
    Latin-1 characters.
    """

    def __init__(self, paper: str = "a4", font_file: Optional[str] = None):
        self.font = fitz.Font(fontfile=font_file) if font_file else None
        self.fontname = EMBEDDED_FONT_NAME if self.font is not None else FONT_NAME
        self.document = fitz.open()
        self.width, self.height = fitz.paper_size(paper)
        self.page = self._new_page()

    @property
    def page_count(self) -> int:
        return self.document.page_count

    def _new_page(self) -> fitz.Page:
        page = self.document.new_page(width=self.width, height=self.height)
        if self.font is not None:
            page.insert_font(fontname=self.fontname, fontbuffer=self.font.buffer)
        return page

    def add_page(self) -> None:
        self.page = self._new_page()

    def wrap(self, text: str, max_width: float, fontsize: float) -> List[str]:
        return wrap_text(text, max_width, fontsize, self.font)

    def draw_text(self, x: float, y: float, text: str, fontsize: float, color: Color = TEXT_COLOR) -> None:
        """Draw one line of text with its baseline at y"""
        self.page.insert_text(fitz.Point(x, y), text, fontsize=fontsize, fontname=self.fontname, color=color)

    def draw_lines(
        self,
        x: float,
        y: float,
        lines: Sequence[str],
        fontsize: float,
        bottom: float,
        color: Color = TEXT_COLOR
    ) -> float:
        """
        Draw lines downwards from baseline y, stopping at bottom

        Returns:
            Baseline y for the next line
        """
        step = fontsize * LINE_SPACING
        for index, line in enumerate(lines):
            if y + step > bottom and index < len(lines) - 1:
                self.draw_text(x, y, TRUNCATION_MARKER, fontsize, color)
                logger.warning(f"Text truncated: {len(lines) - index} lines did not fit on the page")
                return y + step
            self.draw_text(x, y, line, fontsize, color)
            y += step
        return y

    def fill_rect(self, rect: fitz.Rect, fill: Color) -> None:
        self.page.draw_rect(rect, color=None, fill=fill, width=0)

    def draw_line(self, start: Tuple[float, float], end: Tuple[float, float], color: Color, width: float) -> None:
        self.page.draw_line(fitz.Point(*start), fitz.Point(*end), color=color, width=width)

    def embed_image(self, rect: fitz.Rect, image_bytes: bytes) -> None:
        """Insert an image fitted into rect, keeping its aspect ratio"""
        self.page.insert_image(rect, stream=image_bytes, keep_proportion=True)

    def to_bytes(self) -> bytes:
        return self.document.tobytes(garbage=3, deflate=True)

    def close(self) -> None:
        self.document.close()


def normalize_image(image_bytes: bytes) -> bytes:
    """
    Decode any Pillow-readable image and re-encode it as PNG

    EXIF orientation is applied and transparency is flattened onto white.

    Raises:
        PIL.UnidentifiedImageError, OSError: If the bytes cannot be decoded
    """
    with Image.open(io.BytesIO(image_bytes)) as img:
        img.load()
        img = ImageOps.exif_transpose(img)

        if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel("A"))
            img = background
        elif img.mode not in ("RGB", "L"):
            img = img.convert("RGB")

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()


def pairs_from_outcomes(outcomes: Sequence[OcrOutcome], images: Sequence[ImageInput]) -> List[ImageTextPair]:
    """
    Join successful OCR outcomes back to their image bytes by file name

    Failed outcomes are dropped. An outcome whose image cannot be found gets
    no image bytes. With duplicate names the first image wins.
    """
    content_by_name = {}
    for image in images:
        content_by_name.setdefault(image.name, image.content)

    return [
        ImageTextPair(
            file_name=outcome.file_name,
            extracted_text=outcome.extracted_text,
            image_bytes=content_by_name.get(outcome.file_name)
        )
        for outcome in outcomes
        if outcome.success
    ]

class PdfPageCompositor:
    """Renders one image/text page"""

    def __init__(
        self,
        margin_mm: float = 20.0,
        title_font_size: float = 14.0,
        body_font_size: float = 10.0,
        logger: Optional[logging.Logger] = None
    ):
        self.margin = margin_mm * MM_TO_PT
        self.title_font_size = title_font_size
        self.body_font_size = body_font_size
        self.logger = logger or logging.getLogger(__name__)

    def layout_for(self, builder: PdfBuilder) -> PageLayout:
        return PageLayout(width=builder.width, height=builder.height, margin=self.margin)

    def render_page(self, builder: PdfBuilder, pair: ImageTextPair, is_first_page: bool) -> Optional[Exception]:
        """
        Draw one page for an image/text pair

        Args:
            builder: Document being built, mutated in place
            pair: File name, text and optional image bytes
            is_first_page: False adds a page break before drawing

        Returns:
            The image embedding failure that was replaced by a placeholder,
            or None when the image was embedded or never provided
        """
        if not is_first_page:
            builder.add_page()

        layout = self.layout_for(builder)
        embed_error = self._draw_image(builder, layout, pair)

        builder.draw_line(
            (layout.divider_x, layout.margin),
            (layout.divider_x, layout.bottom),
            color=DIVIDER_COLOR,
            width=DIVIDER_WIDTH
        )

        title_lines = builder.wrap(pair.file_name, layout.text_width, self.title_font_size)
        y = builder.draw_lines(
            layout.text_x,
            layout.margin + self.title_font_size,
            title_lines,
            self.title_font_size,
            layout.bottom
        )

        body = pair.extracted_text if pair.extracted_text else NO_TEXT_FALLBACK
        body_lines = builder.wrap(body, layout.text_width, self.body_font_size)
        builder.draw_lines(
            layout.text_x,
            y + self.body_font_size * 0.5,
            body_lines,
            self.body_font_size,
            layout.bottom
        )

        self.logger.debug(f"Completed page {builder.page_count} for {pair.file_name}")
        return embed_error

    def _draw_image(self, builder: PdfBuilder, layout: PageLayout, pair: ImageTextPair) -> Optional[Exception]:
        if not pair.image_bytes:
            self.logger.warning(f"No image data for file: {pair.file_name}")
            self._draw_placeholder(builder, layout, NO_IMAGE_PLACEHOLDER)
            return None

        try:
            builder.embed_image(layout.image_rect, normalize_image(pair.image_bytes))
            self.logger.debug(f"Successfully added image for {pair.file_name}")
            return None
        except Exception as e:
            self.logger.warning(f"Could not add image to PDF for {pair.file_name}: {e}")
            self._draw_placeholder(builder, layout, IMAGE_FAILED_PLACEHOLDER)
            return e

    def _draw_placeholder(self, builder: PdfBuilder, layout: PageLayout, caption: str) -> None:
        region = layout.image_rect
        builder.fill_rect(region, PLACEHOLDER_FILL)
        builder.draw_text(
            region.x0 + 5 * MM_TO_PT,
            region.y0 + 30 * MM_TO_PT,
            caption,
            self.body_font_size,
            PLACEHOLDER_TEXT_COLOR
        )


class PdfBatchAssembler:
    """Builds the multi-page document from image/text pairs"""

    def __init__(
        self,
        compositor: Optional[PdfPageCompositor] = None,
        font_file: Optional[str] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.compositor = compositor or PdfPageCompositor()
        self.font_file = font_file
        self.logger = logger or logging.getLogger(__name__)

    def build(self, pairs: Sequence[ImageTextPair]) -> bytes:
        """
        Render one page per pair plus an error summary page when needed

        Args:
            pairs: Successful OCR results in page order

        Returns:
            Serialized PDF bytes

        Raises:
            PdfGenerationError: For empty input or document-level failures
        """
        if not pairs:
            self.logger.error("No images provided for PDF generation")
            raise PdfGenerationError(
                "No images provided for PDF generation",
                PdfErrorKind.PDF_GENERATION_ERROR
            )

        self.logger.info(f"Creating multi-page PDF with {len(pairs)} pages")
        builder: Optional[PdfBuilder] = None

        try:
            builder = PdfBuilder(font_file=self.font_file)
            image_errors: List[str] = []

            for index, pair in enumerate(pairs):
                embed_error = self.compositor.render_page(builder, pair, is_first_page=(index == 0))
                if embed_error is not None:
                    image_errors.append(f"Failed to add image {pair.file_name}: {embed_error}")

            if image_errors:
                self._add_summary_page(builder, len(pairs), image_errors)

            pdf_bytes = builder.to_bytes()
            self.logger.info(
                f"PDF generation completed: {builder.page_count} pages, "
                f"{len(image_errors)} image errors, {len(pdf_bytes)} bytes"
            )
            return pdf_bytes

        except Exception as e:
            pdf_error = to_pdf_error(e)
            self.logger.error(
                f"Error generating multi-page PDF ({pdf_error.kind.value}): {e}",
                exc_info=True
            )
            raise pdf_error from e

        finally:
            if builder is not None:
                builder.close()

    def _add_summary_page(self, builder: PdfBuilder, total: int, image_errors: List[str]) -> None:
        self.logger.info(f"Adding error summary page to PDF ({len(image_errors)} errors)")
        layout = self.compositor.layout_for(builder)
        margin = layout.margin

        builder.add_page()
        builder.draw_text(margin, margin + 16, "PDF Generation Report", 16)

        y = builder.draw_lines(
            margin,
            margin + 40,
            [
                f"Total images: {total}",
                f"Successfully processed {total - len(image_errors)} out of {total} images.",
                f"Images with errors: {len(image_errors)}",
            ],
            12,
            layout.bottom
        )
        builder.draw_text(margin, y + 12, "The following errors occurred:", 12, ERROR_TEXT_COLOR)

        top = y + 36
        lines, fontsize = fit_error_lines(builder, image_errors, layout.usable_width, layout.bottom - top)
        if fontsize < SUMMARY_FONT_SIZE:
            self.logger.debug(f"Summary error list scaled to {fontsize:.1f} pt to fit the page")
        builder.draw_lines(margin, top, lines, fontsize, layout.bottom, ERROR_TEXT_COLOR)


def fit_error_lines(
    builder: PdfBuilder,
    messages: Sequence[str],
    width: float,
    height: float
) -> Tuple[List[str], float]:
    """
    Number and wrap error messages so that all of them fit in width x height

    The font shrinks from SUMMARY_FONT_SIZE until the wrapped lines fit. Past
    MIN_SUMMARY_FONT_SIZE each message gets a single unwrapped line and the
    font is scaled to whatever size fits that line count.

    Returns:
        The lines to draw and the font size to draw them with
    """
    numbered = [f"{number}. {message}" for number, message in enumerate(messages, start=1)]

    fontsize = SUMMARY_FONT_SIZE
    while fontsize >= MIN_SUMMARY_FONT_SIZE:
        lines = [line for message in numbered for line in builder.wrap(message, width, fontsize)]
        if len(lines) * fontsize * LINE_SPACING <= height:
            return lines, fontsize
        fontsize *= 0.9

    return numbered, height / (len(numbered) * LINE_SPACING)
