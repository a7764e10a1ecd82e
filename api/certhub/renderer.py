# Certificate rendering: stamps recipient text and a QR code onto the
# template PDF using reportlab for the overlay and pypdf for the merge.

import logging
import os
from datetime import date
from io import BytesIO
from typing import Callable, List, Optional, Tuple, Union

from pydantic import ValidationError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont, TTFError
from reportlab.pdfgen import canvas

from .qr import qr_png
from .schemas import CertificateRequest, RenderedCertificate

logger = logging.getLogger(__name__)

MONTHS = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

REQUIRED_FIELDS = (
    "recipient_name",
    "course_name",
    "company_name",
    "start_date",
    "end_date",
    "certificate_id",
)

REGULAR_FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"
NAME_SIZE = 24
BODY_SIZE = 14

# vertical offsets from the page's vertical center, as fractions of page height
NAME_RISE = 0.084
COMPLETION_RISE = 0.017
DATES_RISE = -0.034

# average glyph advance as a fraction of the font size
HEURISTIC_CHAR_WIDTH = 0.5

QR_SIZE = 80
QR_MARGIN = 20


class RenderError(Exception):
    pass


class InvalidInput(RenderError):
    def __init__(self, message: str, missing: Optional[List[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class TemplateUnavailable(RenderError):
    pass


class RenderingFailed(RenderError):
    pass


def format_long_date(value: Union[date, str]) -> str:
    """``2025-01-15`` -> ``15 January 2025``."""
    if isinstance(value, str):
        value = date.fromisoformat(value)
    return f"{value.day} {MONTHS[value.month - 1]} {value.year}"


def estimate_text_width(text: str, size: float) -> float:
    return len(text) * size * HEURISTIC_CHAR_WIDTH


def measure_text_width(text: str, font_name: str, size: float) -> float:
    try:
        return pdfmetrics.stringWidth(text, font_name, size)
    except KeyError:
        # font unknown to reportlab; fall back to the character-count estimate
        return estimate_text_width(text, size)


def centered_x(
    text: str,
    font_name: str,
    size: float,
    page_width: float,
    measure: Callable[[str, str, float], float] = measure_text_width,
) -> float:
    return page_width / 2 - measure(text, font_name, size) / 2


def completion_line(course_name: str, company_name: str) -> str:
    return f"has successfully completed a {course_name} Internship at {company_name},"


def dates_line(start: date, end: date) -> str:
    return f"held from {format_long_date(start)} to {format_long_date(end)}."


def layout_certificate(
    width: float,
    height: float,
    request: CertificateRequest,
    fonts: Tuple[str, str] = (REGULAR_FONT, BOLD_FONT),
    measure: Callable[[str, str, float], float] = measure_text_width,
) -> List[dict]:
    """Draw operations for one certificate on a ``width`` x ``height`` page.

    Text lines are centered horizontally around the page midpoint and placed
    relative to the vertical center; the QR block sits in the top-right corner.
    """
    regular, bold = fonts
    mid_y = height / 2
    lines = [
        (request.recipient_name, bold, NAME_SIZE, mid_y + NAME_RISE * height),
        (completion_line(request.course_name, request.company_name), regular, BODY_SIZE,
         mid_y + COMPLETION_RISE * height),
        (dates_line(request.start_date, request.end_date), regular, BODY_SIZE,
         mid_y + DATES_RISE * height),
    ]
    ops = []
    for text, font, size, y in lines:
        ops.append({
            "type": "text",
            "text": text,
            "font": font,
            "size": size,
            "x": centered_x(text, font, size, width, measure),
            "y": y,
        })
    ops.append({
        "type": "qr",
        "data": request.certificate_id,
        "x": width - QR_SIZE - QR_MARGIN,
        "y": height - QR_SIZE - QR_MARGIN,
        "w": QR_SIZE,
        "h": QR_SIZE,
    })
    return ops


def _overlay_page(width, height, draw_ops):
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=(width, height))
    for op in draw_ops:
        t = op.get("type")
        if t == "text":
            c.setFont(op["font"], op["size"])
            c.setFillColorRGB(0, 0, 0)
            c.drawString(op["x"], op["y"], op["text"])
        elif t == "qr":
            png = ImageReader(BytesIO(qr_png(op["data"])))
            c.drawImage(png, op["x"], op["y"], width=op["w"], height=op["h"])
    c.showPage()
    c.save()
    return buf.getvalue()


def check_builtin_glyphs(draw_ops) -> None:
    """Standard Type 1 fonts only carry WinAnsi (cp1252) glyphs."""
    for op in draw_ops:
        if op.get("type") != "text" or op["font"] not in (REGULAR_FONT, BOLD_FONT):
            continue
        for ch in op["text"]:
            try:
                ch.encode("cp1252")
            except UnicodeEncodeError as exc:
                raise RenderingFailed(
                    f"Character {ch!r} (U+{ord(ch):04X}) has no glyph in {op['font']}; "
                    "set CERTIFICATE_FONT_PATH to a TrueType font that covers it"
                ) from exc


def _register_ttf(path: str) -> str:
    name = "CertHub-" + os.path.splitext(os.path.basename(path))[0]
    if name not in pdfmetrics.getRegisteredFontNames():
        pdfmetrics.registerFont(TTFont(name, path))
    return name


def _validated(request) -> CertificateRequest:
    if not isinstance(request, CertificateRequest):
        try:
            request = CertificateRequest.model_validate(request)
        except ValidationError as exc:
            raise InvalidInput(f"Malformed certificate request: {exc}") from exc
    missing = []
    for field in REQUIRED_FIELDS:
        value = getattr(request, field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}", missing)
    return request


class CertificateRenderer:
    """Turns a ``CertificateRequest`` into single-page certificate PDF bytes.

    Holds nothing between calls except the template path and font settings,
    so one instance may serve concurrent requests.
    """

    def __init__(
        self,
        template_path: str,
        font_path: Optional[str] = None,
        bold_font_path: Optional[str] = None,
    ):
        self.template_path = template_path
        self.font_path = font_path
        self.bold_font_path = bold_font_path

    def _load_template(self) -> PdfReader:
        try:
            with open(self.template_path, "rb") as fh:
                reader = PdfReader(BytesIO(fh.read()))
            if len(reader.pages) == 0:
                raise TemplateUnavailable(f"Template {self.template_path} has no pages")
        except (OSError, PyPdfError) as exc:
            raise TemplateUnavailable(f"Cannot load template {self.template_path}: {exc}") from exc
        return reader

    def _fonts(self) -> Tuple[str, str]:
        if not self.font_path:
            return REGULAR_FONT, BOLD_FONT
        try:
            regular = _register_ttf(self.font_path)
            bold = _register_ttf(self.bold_font_path or self.font_path)
        except (OSError, TTFError) as exc:
            raise RenderingFailed(f"Font embedding failed: {exc}") from exc
        return regular, bold

    def render(self, request) -> bytes:
        request = _validated(request)
        reader = self._load_template()
        fonts = self._fonts()
        try:
            writer = PdfWriter()
            writer.add_page(reader.pages[0])
            page = writer.pages[0]
            width = float(page.mediabox.width)
            height = float(page.mediabox.height)
            logger.debug("template page %sx%s", width, height)

            ops = layout_certificate(width, height, request, fonts)
            check_builtin_glyphs(ops)
            overlay_reader = PdfReader(BytesIO(_overlay_page(width, height, ops)))
            page.merge_page(overlay_reader.pages[0])
            writer.add_metadata({
                "/Title": f"Internship Certificate - {request.recipient_name}",
                "/Subject": request.certificate_id,
            })

            out = BytesIO()
            writer.write(out)
        except RenderError:
            raise
        except Exception as exc:
            raise RenderingFailed(f"Certificate generation failed: {exc}") from exc
        pdf_bytes = out.getvalue()
        logger.info(
            "rendered certificate %s for %s (%d bytes)",
            request.certificate_id, request.recipient_name, len(pdf_bytes),
        )
        return pdf_bytes

    def render_document(self, request) -> RenderedCertificate:
        request = _validated(request)
        return RenderedCertificate(
            content=self.render(request),
            recipient_name=request.recipient_name,
            certificate_id=request.certificate_id,
        )
