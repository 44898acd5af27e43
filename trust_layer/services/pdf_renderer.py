"""
PDF rendering for AI analysis text.

Turns the generated analysis into a paginated A4 report on local disk:
title block, body paragraphs, bullet lists, and a generation timestamp.
"""
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple, Union
from fpdf import FPDF
from trust_layer.models.artifacts import GeneratedArtifact

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "AI_Analysis_"
BULLET_GLYPH = "\u00b7"

# Page geometry (mm)
MARGIN = 18
BULLET_INDENT = 7
LINE_HEIGHT = 6

FONT_FAMILY = "Helvetica"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_\-]")
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_LIST_MARKER = re.compile(r"^(-|\*|\d+\.)\s+")

Block = Tuple[str, Union[str, List[str]]]


class PDFRendererError(Exception):
    """Raised when a PDF cannot be produced."""
    pass


class MissingKeyError(PDFRendererError):
    """Raised when an issue key is required for the filename but none was given."""
    pass


class PDFWriteError(PDFRendererError):
    """Raised when the PDF file cannot be written to disk."""
    pass


def sanitize_key(key: str) -> str:
    """Reduce a key to a filesystem-safe token ([A-Za-z0-9_-] only)."""
    return _UNSAFE_KEY_CHARS.sub("_", str(key))


def build_filename(key: str) -> str:
    return f"{FILENAME_PREFIX}{sanitize_key(key)}.pdf"


def split_blocks(content: str) -> List[Block]:
    """
    Split analysis text into renderable blocks.

    Paragraphs are separated by blank lines. A paragraph whose first line
    starts with a list marker ("-", "*", or "1.") becomes a ("bullets", lines)
    block with the markers stripped from every line; anything else becomes a
    ("paragraph", text) block.
    """
    blocks: List[Block] = []
    for raw in _PARAGRAPH_BREAK.split(str(content).replace("\r\n", "\n")):
        paragraph = raw.strip()
        if not paragraph:
            continue
        if _LIST_MARKER.match(paragraph):
            items = [
                _LIST_MARKER.sub("", line.strip())
                for line in paragraph.split("\n")
                if line.strip()
            ]
            blocks.append(("bullets", items))
        else:
            blocks.append(("paragraph", paragraph))
    return blocks


_ASCII_PUNCTUATION = str.maketrans({
    "\u2018": "'", "\u2019": "'", "\u201c": "\"", "\u201d": "\"",
    "\u2013": "-", "\u2014": "-", "\u2022": BULLET_GLYPH, "\u2026": "...", "\u00a0": " ",
})


def _core_font_text(text: str) -> str:
    # Core fonts only cover latin-1; anything else is replaced with "?"
    return text.translate(_ASCII_PUNCTUATION).encode("latin-1", "replace").decode("latin-1")


class AnalysisReportPDF(FPDF):
    """A4 report with a page-number footer."""

    def footer(self):
        self.set_y(-12)
        self.set_font(FONT_FAMILY, "", 8)
        self.set_text_color(140, 140, 140)
        self.cell(0, 8, f"Page {self.page_no()}/{{nb}}", align="C")

    def title_block(self, issue_key: Optional[str]):
        self.set_font(FONT_FAMILY, "BU", 20)
        self.set_text_color(44, 62, 80)
        self.cell(0, 12, "AI Analysis Report", align="C", new_x="LMARGIN", new_y="NEXT")
        self.ln(4)
        if issue_key:
            self.set_font(FONT_FAMILY, "", 12)
            self.set_text_color(85, 85, 85)
            self.cell(0, 8, _core_font_text(f"Jira Issue: {issue_key}"), align="C", new_x="LMARGIN", new_y="NEXT")
            self.ln(4)

    def body_paragraph(self, text: str):
        self.set_font(FONT_FAMILY, "", 12)
        self.set_text_color(0, 0, 0)
        self.multi_cell(0, LINE_HEIGHT, _core_font_text(text), align="J", new_x="LMARGIN", new_y="NEXT")
        self.ln(LINE_HEIGHT / 2)

    def bullet_list(self, items: List[str]):
        self.set_font(FONT_FAMILY, "", 12)
        self.set_text_color(0, 0, 0)
        for item in items:
            self.set_x(self.l_margin + BULLET_INDENT)
            self.multi_cell(
                0,
                LINE_HEIGHT,
                _core_font_text(f"{BULLET_GLYPH} {item}"),
                align="L",
                new_x="LMARGIN",
                new_y="NEXT"
            )
        self.ln(LINE_HEIGHT / 2)

    def generated_at(self, timestamp: str):
        self.ln(LINE_HEIGHT)
        self.set_font(FONT_FAMILY, "", 10)
        self.set_text_color(85, 85, 85)
        self.cell(0, 8, f"Generated at: {timestamp}", align="R", new_x="LMARGIN", new_y="NEXT")


class PDFRenderer:
    """Renders analysis text into `AI_Analysis_<key>.pdf` files."""

    def __init__(self, output_dir: str, require_issue_key: bool = False):
        """
        Initialize renderer.

        Args:
            output_dir: Directory the PDFs are written to (created on demand)
            require_issue_key: When True, rendering without a key raises
                               MissingKeyError instead of using a timestamp
        """
        self.output_dir = Path(output_dir)
        self.require_issue_key = require_issue_key

    def render(
        self,
        content: str,
        issue_key: Optional[str] = None,
        output_dir: Optional[str] = None
    ) -> GeneratedArtifact:
        """
        Render content to a PDF and return the written artifact.

        Args:
            content: Analysis text (blank lines separate paragraphs)
            issue_key: Identifier used in the filename and title block
            output_dir: Optional override of the configured output directory

        Returns:
            GeneratedArtifact describing the file on disk

        Raises:
            MissingKeyError: If no key is given and the renderer is strict
            PDFWriteError: If the directory or file cannot be written
        """
        if not issue_key:
            if self.require_issue_key:
                raise MissingKeyError("PDF rendering requires an issue key")
            file_key = datetime.now().strftime("%Y%m%d%H%M%S%f")
        else:
            file_key = issue_key

        target_dir = Path(output_dir) if output_dir else self.output_dir
        filename = build_filename(file_key)
        file_path = target_dir / filename

        pdf = AnalysisReportPDF(orientation="P", unit="mm", format="A4")
        pdf.set_margins(MARGIN, MARGIN, MARGIN)
        pdf.set_auto_page_break(auto=True, margin=MARGIN)
        pdf.add_page()

        pdf.title_block(issue_key)
        for kind, body in split_blocks(content):
            if kind == "bullets":
                pdf.bullet_list(body)
            else:
                pdf.body_paragraph(body)
        pdf.generated_at(datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            pdf.output(str(file_path))
        except OSError as e:
            logger.error("PDF write failed for %s: %s", file_path, e)
            raise PDFWriteError(f"Failed to write PDF {file_path}: {e}") from e

        logger.info("PDF written: %s", file_path)
        return GeneratedArtifact(
            file_path=str(file_path),
            filename=filename,
            content_text=content
        )
