"""
Export a finished project to Word (python-docx) or PowerPoint (python-pptx).

``export_project`` only reads the project. It returns the encoded bytes in an
``ExportArtifact`` once the encoder has finished, so a failure never leaves a
partial file for the client to download.
"""
from __future__ import annotations

import dataclasses
import io
import logging

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml import OxmlElement
from docx.oxml.ns import qn as docx_qn
from docx.shared import Pt
from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_SHAPE
from pptx.enum.text import PP_ALIGN
from pptx.oxml.ns import qn as pptx_qn
from pptx.util import Inches, Pt as PptPt

from docugen.config import settings
from docugen.exceptions import ExportError
from docugen.models.schemas import DocType, Project
from docugen.utils.helpers import non_blank_lines, slugify_title, strip_bullet

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PPTX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

# 16:9 deck, 10in x 5.625in
SLIDE_WIDTH = Inches(10)
SLIDE_HEIGHT = Inches(5.625)
BAND_HEIGHT = Inches(0.75)
BAND_COLOR = RGBColor(0x00, 0x52, 0xCC)
TEXT_COLOR = RGBColor(0x36, 0x36, 0x36)
SUBTLE_COLOR = RGBColor(0x80, 0x80, 0x80)
WHITE = RGBColor(0xFF, 0xFF, 0xFF)
BLANK_LAYOUT = 6

BODY_SHAPE_NAME = "Section Body"
HEADING_SHAPE_NAME = "Section Heading"


@dataclasses.dataclass(frozen=True)
class ExportArtifact:
    filename: str
    content: bytes
    media_type: str


def export_project(project: Project) -> ExportArtifact:
    """Encode *project* according to its type. Raises ExportError on any encoder failure."""
    slug = slugify_title(project.title)
    try:
        if project.type == DocType.DOCX:
            artifact = ExportArtifact(f"{slug}.docx", build_docx(project), DOCX_MEDIA_TYPE)
        else:
            artifact = ExportArtifact(f"{slug}.pptx", build_pptx(project), PPTX_MEDIA_TYPE)
    except Exception as exc:
        logger.error("Export of project %s failed: %s", project.id, exc, exc_info=True)
        raise ExportError(f"Export failed: {exc}") from exc

    logger.info(
        "Exported project %s as %s (%d bytes)",
        project.id,
        artifact.filename,
        len(artifact.content),
    )
    return artifact


# ---------------------------------------------------------------------------
# Word
# ---------------------------------------------------------------------------

def _add_bottom_border(paragraph) -> None:
    """Single rule under a heading paragraph."""
    p_pr = paragraph._p.get_or_add_pPr()
    borders = OxmlElement("w:pBdr")
    bottom = OxmlElement("w:bottom")
    bottom.set(docx_qn("w:val"), "single")
    bottom.set(docx_qn("w:sz"), "6")
    bottom.set(docx_qn("w:space"), "1")
    bottom.set(docx_qn("w:color"), "auto")
    borders.append(bottom)
    p_pr.append(borders)


def build_docx(project: Project) -> bytes:
    doc = Document()

    title = doc.add_heading(project.title, level=0)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER
    title.paragraph_format.space_after = Pt(15)

    subtitle = doc.add_heading(f"Topic: {project.main_topic}", level=2)
    subtitle.alignment = WD_ALIGN_PARAGRAPH.CENTER
    subtitle.paragraph_format.space_after = Pt(25)

    for section in project.sections:
        heading = doc.add_heading(section.title, level=1)
        # border first: w:pBdr must precede w:spacing inside w:pPr
        _add_bottom_border(heading)
        heading.paragraph_format.space_before = Pt(20)
        heading.paragraph_format.space_after = Pt(10)

        for line in non_blank_lines(section.content):
            p = doc.add_paragraph()
            run = p.add_run(line)
            run.font.size = Pt(12)
            p.paragraph_format.space_after = Pt(6)

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# PowerPoint
# ---------------------------------------------------------------------------

def _apply_master(slide) -> None:
    """Fixed master decoration: colored top band plus the watermark text."""
    band = slide.shapes.add_shape(MSO_SHAPE.RECTANGLE, 0, 0, SLIDE_WIDTH, BAND_HEIGHT)
    band.name = "Master Band"
    band.fill.solid()
    band.fill.fore_color.rgb = BAND_COLOR
    band.line.fill.background()

    box = slide.shapes.add_textbox(Inches(0.5), Inches(0.2), int(SLIDE_WIDTH * 0.9), Inches(0.4))
    box.name = "Master Watermark"
    p = box.text_frame.paragraphs[0]
    p.text = settings.EXPORT_WATERMARK
    p.alignment = PP_ALIGN.RIGHT
    _style_runs(p, 14, WHITE)


def _style_runs(paragraph, size, color, bold=False) -> None:
    for run in paragraph.runs:
        run.font.size = PptPt(size)
        run.font.bold = bold
        run.font.color.rgb = color


def _add_text(slide, text, left, top, width, height, size, color, bold=False, align=None):
    box = slide.shapes.add_textbox(left, top, width, height)
    tf = box.text_frame
    tf.word_wrap = True
    p = tf.paragraphs[0]
    p.text = text
    _style_runs(p, size, color, bold=bold)
    if align is not None:
        p.alignment = align
    return box


def _enable_bullet(paragraph, char: str = "•") -> None:
    """Turn on a format-supplied bullet glyph for a text-box paragraph."""
    p_pr = paragraph._p.get_or_add_pPr()
    indent = int(PptPt(18))
    p_pr.set("marL", str(indent))
    p_pr.set("indent", str(-indent))
    for tag in ("a:buNone", "a:buAutoNum", "a:buChar"):
        for existing in p_pr.findall(pptx_qn(tag)):
            p_pr.remove(existing)
    bu_char = p_pr.makeelement(pptx_qn("a:buChar"), {"char": char})
    p_pr.insert_element_before(bu_char, "a:tabLst", "a:defRPr", "a:extLst")


def build_pptx(project: Project) -> bytes:
    prs = Presentation()
    prs.slide_width = SLIDE_WIDTH
    prs.slide_height = SLIDE_HEIGHT
    layout = prs.slide_layouts[BLANK_LAYOUT]
    content_width = int(SLIDE_WIDTH * 0.8)

    title_slide = prs.slides.add_slide(layout)
    _apply_master(title_slide)
    _add_text(title_slide, project.title, Inches(1), Inches(2), content_width, Inches(1),
              36, TEXT_COLOR, bold=True, align=PP_ALIGN.CENTER)
    _add_text(title_slide, project.main_topic, Inches(1), Inches(3.2), content_width, Inches(1),
              18, SUBTLE_COLOR, align=PP_ALIGN.CENTER)

    for section in project.sections:
        slide = prs.slides.add_slide(layout)
        _apply_master(slide)

        heading = _add_text(slide, section.title, Inches(0.5), Inches(0.2),
                            int(SLIDE_WIDTH * 0.85), Inches(0.5), 24, WHITE, bold=True)
        heading.name = HEADING_SHAPE_NAME

        body = slide.shapes.add_textbox(Inches(0.5), Inches(1.0),
                                        int(SLIDE_WIDTH * 0.9), int(SLIDE_HEIGHT * 0.75))
        body.name = BODY_SHAPE_NAME
        tf = body.text_frame
        tf.word_wrap = True

        bullets = [strip_bullet(line) for line in non_blank_lines(section.content)]
        for i, bullet in enumerate(bullets):
            p = tf.paragraphs[0] if i == 0 else tf.add_paragraph()
            p.text = bullet
            _style_runs(p, 18, TEXT_COLOR)
            p.space_before = PptPt(10)
            _enable_bullet(p)

    buffer = io.BytesIO()
    prs.save(buffer)
    return buffer.getvalue()
