"""
Serialises a DocumentModel to .docx bytes with python-docx.
"""
from __future__ import annotations

import io
import logging
from typing import Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt, RGBColor

from app.services.rich_text import Alignment, DocumentModel, TextRun
from app.services.style_normalizer import StyleDefaults

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_ALIGNMENTS = {
    Alignment.LEFT: WD_ALIGN_PARAGRAPH.LEFT,
    Alignment.CENTER: WD_ALIGN_PARAGRAPH.CENTER,
    Alignment.RIGHT: WD_ALIGN_PARAGRAPH.RIGHT,
    Alignment.JUSTIFY: WD_ALIGN_PARAGRAPH.JUSTIFY,
}

TITLE_SPACE_AFTER = Pt(20)


def _add_run(paragraph, run: TextRun) -> None:
    if run.is_break:
        paragraph.add_run().add_break()
        return
    text = f" {run.text}" if run.spaced else run.text
    docx_run = paragraph.add_run(text)
    docx_run.bold = run.bold
    docx_run.italic = run.italic
    docx_run.underline = run.underline
    docx_run.font.name = run.font_family
    docx_run.font.size = Pt(run.font_size_half_points / 2)
    docx_run.font.color.rgb = RGBColor.from_string(run.color_hex6)


def render_document(model: DocumentModel, defaults: Optional[StyleDefaults] = None) -> bytes:
    """
    Build a Word document: a centred title heading followed by the body paragraphs.

    Args:
        model: Compiled article
        defaults: Typography applied to the Normal style

    Returns:
        The .docx file as bytes
    """
    defaults = defaults or StyleDefaults.from_settings()
    doc = Document()

    # --- Styles ---
    normal = doc.styles["Normal"]
    normal.font.name = defaults.font_family
    normal.font.size = Pt(defaults.font_size_half_points / 2)

    title = doc.add_heading(model.title, level=1)
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER
    title.paragraph_format.space_after = TITLE_SPACE_AFTER

    for para in model.paragraphs:
        if para.heading_level:
            docx_paragraph = doc.add_heading(level=para.heading_level)
        else:
            docx_paragraph = doc.add_paragraph()
        docx_paragraph.alignment = _ALIGNMENTS.get(para.alignment, WD_ALIGN_PARAGRAPH.LEFT)
        docx_paragraph.paragraph_format.line_spacing = para.line_spacing
        for run in para.runs:
            _add_run(docx_paragraph, run)

    buffer = io.BytesIO()
    doc.save(buffer)
    payload = buffer.getvalue()
    logger.debug("Rendered %r: %d paragraphs, %d bytes", model.title, len(model.paragraphs), len(payload))
    return payload
