# lays out solved questions into a paginated study guide pdf
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import base64
import logging
import re

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from . import config
from .errors import DocumentAssemblyError
from .models import AcademicContext, QuestionItem

logger = logging.getLogger(__name__)

PAGE_W, PAGE_H = A4
MARGIN = 20 * mm
TOP = PAGE_H - MARGIN
# nothing but the footer is drawn below this line
BOTTOM = 25 * mm
FOOTER_Y = 12 * mm
CONTENT_W = PAGE_W - 2 * MARGIN

# the standard fonts only cover WinAnsi, so symbols such as π, Δ, √ or → need a unicode ttf
STANDARD_FONTS = ("Helvetica", "Helvetica-Bold")
UNICODE_FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/Library/Fonts/DejaVuSans.ttf",
    "C:/Windows/Fonts/DejaVuSans.ttf",
)
TITLE_SIZE = 22
QUESTION_SIZE = 12
BODY_SIZE = 10.5
LEADING_FACTOR = 1.4

BOX_PADDING = 4 * mm
DIAGRAM_W = 120 * mm
DIAGRAM_H = DIAGRAM_W * 3 / 4
BANNER_H = 9 * mm
BULLET_INDENT = 5 * mm

BOX_FILL = colors.HexColor("#EEF2FF")
BOX_STROKE = colors.HexColor("#4F46E5")
HEADER_COLOR = colors.HexColor("#1E1B4B")
DOC_BANNER = colors.HexColor("#2563EB")
VIDEO_BANNER = colors.HexColor("#DC2626")
MUTED = colors.HexColor("#64748B")

STEP_MARKER = re.compile(r'^(step\s*\d+\b|\d+\s*[.)]\s|\(?[a-z]\)\s|part\s+[a-z0-9]+\b)', re.IGNORECASE)
MARKER_PHRASES = ("final answer", "solution", "explanation", "key concept", "formula", "conclusion")
BULLET_PREFIXES = ("- ", "* ", "• ")


# decide how an answer line should be rendered
def classify_line(line: str) -> str:
    """Return 'header', 'bullet' or 'body' for one line of answer text"""
    stripped = line.strip()
    if stripped.startswith(BULLET_PREFIXES):
        return "bullet"
    if stripped.startswith("#"):
        return "header"
    plain = stripped.replace("**", "")
    lowered = plain.lower()
    if plain.endswith(":") or STEP_MARKER.match(plain):
        return "header"
    if any(phrase in lowered for phrase in MARKER_PHRASES) and len(plain) <= 80:
        return "header"
    return "body"


def clean_markdown(line: str) -> str:
    line = line.strip()
    line = re.sub(r'^#+\s*', '', line)
    line = line.replace("**", "").replace("__", "")
    line = re.sub(r'`([^`]*)`', r'\1', line)
    return line


def decode_data_url(data_url: str) -> Tuple[str, bytes]:
    """Split a data:<mime>;base64,<data> URI into mime type and bytes"""
    header, _, payload = data_url.partition(",")
    if not header.startswith("data:") or not payload:
        raise ValueError("not a data URL")
    mime = header[5:].split(";")[0] or "application/octet-stream"
    return mime, base64.b64decode(payload)


# ttf path -> registered (body, bold) font names
_registered_fonts: Dict[str, Tuple[str, str]] = {}


def _bold_face(path: Path) -> Optional[Path]:
    for name in (f"{path.stem}-Bold{path.suffix}", f"{path.stem}Bd{path.suffix}"):
        candidate = path.with_name(name)
        if candidate.is_file():
            return candidate
    return None


def register_fonts(font_path: Optional[str] = None) -> Tuple[str, str]:
    """Register a unicode ttf and its bold face with reportlab.

    Tries font_path, or the usual DejaVuSans locations when it is not given,
    and returns the (body, bold) font names to draw with. Falls back to
    Helvetica when no usable font is found.
    """
    candidates = [font_path] if font_path else UNICODE_FONT_CANDIDATES
    for candidate in candidates:
        path = Path(candidate)
        if not path.is_file():
            continue
        key = str(path.resolve())
        if key in _registered_fonts:
            return _registered_fonts[key]

        body = f"AceExam-{path.stem}"
        bold = f"{body}-Bold"
        bold_path = _bold_face(path)
        try:
            pdfmetrics.registerFont(TTFont(body, str(path)))
            if bold_path is not None:
                pdfmetrics.registerFont(TTFont(bold, str(bold_path)))
        except (TTFError, OSError) as e:
            logger.warning(f"Could not register font {path}: {str(e)}")
            continue
        if bold_path is None:
            bold = body

        _registered_fonts[key] = (body, bold)
        logger.debug(f"Using font {path}")
        return body, bold

    if font_path:
        logger.warning(f"Font {font_path} not usable, falling back to Helvetica")
    return STANDARD_FONTS


class StudyGuideBuilder:
    """Draws the study guide with a running vertical cursor on a reportlab canvas.

    Every block checks its height against the bottom threshold first; when it
    would overflow, the current page gets its footer and drawing continues at
    the top of a fresh page.
    """

    def __init__(self, title: Optional[str] = None, font_path: Optional[str] = None):
        self.title = title or f"{config.PRODUCT_NAME} Study Guide"
        self.body_font, self.bold_font = register_fonts(font_path or config.FONT_PATH)
        self.c = None
        self.y = TOP
        self.page_number = 1

    # build the whole document and return the pdf bytes
    def build(self, questions: List[QuestionItem], context: Optional[AcademicContext] = None) -> bytes:
        buffer = BytesIO()
        try:
            self.c = canvas.Canvas(buffer, pagesize=A4)
            self.c.setTitle(self.title)
            self.c.setAuthor(config.PRODUCT_NAME)
            self.y = TOP
            self.page_number = 1

            self._draw_title(context, len(questions))
            for item in questions:
                self._draw_question(item)

            self._draw_footer()
            self.c.save()
        except Exception as e:
            logger.error(f"PDF assembly failed: {str(e)}", exc_info=True)
            raise DocumentAssemblyError(f"Failed to assemble the study guide PDF: {str(e)}") from e

        data = buffer.getvalue()
        logger.info(f"Assembled study guide: {self.page_number} page(s), {len(data)} bytes")
        return data

    # ------------------------------------------------------------------ layout

    def _ensure_space(self, height: float):
        if self.y - height < BOTTOM:
            self._new_page()

    def _new_page(self):
        self._draw_footer()
        self.c.showPage()
        self.page_number += 1
        self.y = TOP

    def _draw_footer(self):
        self.c.saveState()
        self.c.setFont(self.body_font, 8)
        self.c.setFillColor(MUTED)
        self.c.drawString(MARGIN, FOOTER_Y, f"Generated by {config.PRODUCT_NAME}")
        self.c.drawRightString(PAGE_W - MARGIN, FOOTER_Y, f"Page {self.page_number}")
        self.c.restoreState()

    def _draw_lines(self, lines: List[str], font: str, size: float, x: float, color=colors.black):
        leading = size * LEADING_FACTOR
        for line in lines:
            self._ensure_space(leading)
            self.c.setFont(font, size)
            self.c.setFillColor(color)
            self.c.drawString(x, self.y - leading * 0.75, line)
            self.y -= leading

    def _draw_title(self, context: Optional[AcademicContext], count: int):
        self._draw_lines([self.title], self.bold_font, TITLE_SIZE, MARGIN, HEADER_COLOR)
        if context is not None:
            subtitle = f"{context.subject}  |  {context.field} / {context.sub_field}"
            self._draw_lines(simpleSplit(subtitle, self.body_font, 11, CONTENT_W), self.body_font, 11, MARGIN, MUTED)
        self._draw_lines([f"{count} question(s) solved"], self.body_font, 9, MARGIN, MUTED)
        self.y -= 6 * mm

    # boxed question text, split across pages when it is longer than one
    def _draw_question_box(self, item: QuestionItem):
        leading = QUESTION_SIZE * LEADING_FACTOR
        lines = simpleSplit(f"Q{item.number}: {item.question}", self.bold_font, QUESTION_SIZE, CONTENT_W - 2 * BOX_PADDING)
        while lines:
            fits = int((self.y - BOTTOM - 2 * BOX_PADDING) // leading)
            if fits < 1:
                self._new_page()
                continue
            chunk, lines = lines[:fits], lines[fits:]
            height = len(chunk) * leading + 2 * BOX_PADDING

            self.c.saveState()
            self.c.setFillColor(BOX_FILL)
            self.c.setStrokeColor(BOX_STROKE)
            self.c.setLineWidth(1)
            self.c.roundRect(MARGIN, self.y - height, CONTENT_W, height, 2 * mm, stroke=1, fill=1)
            self.c.restoreState()

            text_y = self.y - BOX_PADDING
            self.c.setFont(self.bold_font, QUESTION_SIZE)
            self.c.setFillColor(HEADER_COLOR)
            for line in chunk:
                self.c.drawString(MARGIN + BOX_PADDING, text_y - leading * 0.75, line)
                text_y -= leading
            self.y -= height
        self.y -= 4 * mm

    def _draw_diagram(self, item: QuestionItem):
        try:
            _, image_bytes = decode_data_url(item.diagram_data_url)
            image = ImageReader(BytesIO(image_bytes))
            self._ensure_space(DIAGRAM_H + 4 * mm)
            x = MARGIN + (CONTENT_W - DIAGRAM_W) / 2
            self.c.drawImage(image, x, self.y - DIAGRAM_H, width=DIAGRAM_W, height=DIAGRAM_H, mask="auto")
            self.y -= DIAGRAM_H + 4 * mm
        except Exception as e:
            logger.warning(f"Skipping diagram for question {item.number}: {str(e)}")

    def _draw_answer(self, answer: str):
        self._draw_lines(["Solution"], self.bold_font, 11, MARGIN, BOX_STROKE)
        for raw in answer.splitlines():
            if not raw.strip():
                self.y -= BODY_SIZE * 0.5
                continue
            kind = classify_line(raw)
            text = clean_markdown(raw)
            if kind == "bullet":
                text = text[2:].strip() if text[:2] in BULLET_PREFIXES else text.lstrip("•").strip()
                lines = simpleSplit(text, self.body_font, BODY_SIZE, CONTENT_W - BULLET_INDENT)
                if not lines:
                    continue
                self._draw_lines([f"• {lines[0]}"], self.body_font, BODY_SIZE, MARGIN + BULLET_INDENT / 2)
                self._draw_lines(lines[1:], self.body_font, BODY_SIZE, MARGIN + BULLET_INDENT)
            elif kind == "header":
                self.y -= 1 * mm
                self._draw_lines(simpleSplit(text, self.bold_font, BODY_SIZE, CONTENT_W), self.bold_font, BODY_SIZE, MARGIN, HEADER_COLOR)
            else:
                self._draw_lines(simpleSplit(text, self.body_font, BODY_SIZE, CONTENT_W), self.body_font, BODY_SIZE, MARGIN)
        self.y -= 3 * mm

    # clickable banner whose link rectangle is exactly the banner
    def _draw_banner(self, label: str, url: str, fill):
        self._ensure_space(BANNER_H + 2 * mm)
        bottom = self.y - BANNER_H
        self.c.saveState()
        self.c.setFillColor(fill)
        self.c.rect(MARGIN, bottom, CONTENT_W, BANNER_H, stroke=0, fill=1)
        self.c.setFillColor(colors.white)
        self.c.setFont(self.bold_font, 9)
        self.c.drawString(MARGIN + 3 * mm, bottom + 3.3 * mm, label)
        label_w = self.c.stringWidth(label, self.bold_font, 9) + 6 * mm
        self.c.setFont(self.body_font, 8)
        shown = simpleSplit(url, self.body_font, 8, CONTENT_W - label_w - 6 * mm)
        if shown:
            suffix = "..." if len(shown) > 1 else ""
            self.c.drawString(MARGIN + 3 * mm + label_w, bottom + 3.3 * mm, shown[0] + suffix)
        self.c.restoreState()
        self.c.linkURL(url, (MARGIN, bottom, MARGIN + CONTENT_W, bottom + BANNER_H), relative=0, thickness=0)
        self.y = bottom - 2 * mm

    def _draw_question(self, item: QuestionItem):
        self._draw_question_box(item)
        if item.diagram_data_url:
            self._draw_diagram(item)
        if item.answer:
            self._draw_answer(item.answer)
        if item.reference_doc_url:
            self._draw_banner("READ: Reference Article", item.reference_doc_url, DOC_BANNER)
        if item.reference_video_url:
            self._draw_banner("WATCH: Video Tutorial", item.reference_video_url, VIDEO_BANNER)

        # thin separator closes the block
        self._ensure_space(8 * mm)
        self.c.saveState()
        self.c.setStrokeColor(colors.lightgrey)
        self.c.setLineWidth(0.5)
        self.c.line(MARGIN, self.y - 3 * mm, PAGE_W - MARGIN, self.y - 3 * mm)
        self.c.restoreState()
        self.y -= 8 * mm
