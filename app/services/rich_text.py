"""
Rich-text compiler: article HTML -> document model.

Walks a BeautifulSoup tree restricted to a small formatting allowlist and
emits paragraphs of styled text runs. Formatting is inherited down the tree
through an immutable ResolvedStyle; a child's inline declarations override
its parent's, nothing else cascades.

compile() never raises. Empty input yields a single "No content" paragraph;
an internal failure yields a single red error paragraph.
"""
from __future__ import annotations

import dataclasses
import enum
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import (
    CData,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)

from app.services.style_normalizer import (
    StyleDefaults,
    normalize_color,
    normalize_font_size,
    normalize_line_height,
)
from app.utils.helpers import collapse_whitespace

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "No content"
ERROR_TEXT = "[Formatting error: content could not be rendered]"
ERROR_COLOR = "FF0000"

BLOCK_TAGS = frozenset({"p", "div", "h1", "h2", "h3"})
INLINE_TAGS = frozenset({"span", "b", "strong", "i", "em", "u", "font", "br", "a", "ul", "ol", "li"})
DROPPED_TAGS = ("script", "style", "head", "title", "template", "noscript")
HEADING_LEVELS = {"h1": 1, "h2": 2, "h3": 3}

# <font size="1..7"> in px
FONT_TAG_SIZES = {"1": 10, "2": 13, "3": 16, "4": 18, "5": 24, "6": 32, "7": 48}

_IGNORED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction, CData)


class Alignment(str, enum.Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"


# ---------------------------------------------------------------------------
# Document model
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class TextRun:
    """Smallest styled unit of text."""

    text: str
    font_family: str = "Calibri"
    font_size_half_points: int = 22
    color_hex6: str = "000000"
    bold: bool = False
    italic: bool = False
    underline: bool = False
    # True when the source had whitespace between this run and the previous one
    spaced: bool = False
    is_break: bool = False

    @classmethod
    def line_break(cls) -> "TextRun":
        return cls(text="\n", is_break=True)


@dataclasses.dataclass(frozen=True)
class Paragraph:
    """Runs sharing block-level formatting."""

    runs: Tuple[TextRun, ...]
    alignment: Alignment = Alignment.LEFT
    heading_level: Optional[int] = None
    line_spacing: float = 1.5

    @property
    def text(self) -> str:
        parts = []
        for run in self.runs:
            if run.spaced and parts:
                parts.append(" ")
            parts.append(run.text)
        return "".join(parts)


@dataclasses.dataclass(frozen=True)
class DocumentModel:
    """Format-independent article document: a title plus body paragraphs."""

    title: str
    paragraphs: Tuple[Paragraph, ...]


@dataclasses.dataclass(frozen=True)
class ResolvedStyle:
    """Effective formatting of a node after merging its ancestors' styles."""

    font_family: str
    font_size_half_points: int
    color_hex6: str
    bold: bool = False
    italic: bool = False
    underline: bool = False

    def merge(self, **overrides: Any) -> "ResolvedStyle":
        return dataclasses.replace(self, **overrides) if overrides else self

    def to_run(self, text: str, spaced: bool = False) -> TextRun:
        return TextRun(
            text=text,
            font_family=self.font_family,
            font_size_half_points=self.font_size_half_points,
            color_hex6=self.color_hex6,
            bold=self.bold,
            italic=self.italic,
            underline=self.underline,
            spaced=spaced,
        )


# ---------------------------------------------------------------------------
# Inline style parsing
# ---------------------------------------------------------------------------

def parse_inline_style(style: Any) -> Dict[str, str]:
    """Split ``"color: red; font-weight:bold"`` into a lowercase property dict."""
    if isinstance(style, list):
        style = " ".join(style)
    if not isinstance(style, str):
        return {}
    declarations: Dict[str, str] = {}
    for chunk in style.split(";"):
        prop, sep, value = chunk.partition(":")
        if not sep:
            continue
        prop = prop.strip().lower()
        value = value.strip()
        if prop and value:
            declarations[prop] = value
    return declarations


def _first_font_family(value: str) -> str:
    first = value.split(",")[0]
    return first.replace('"', "").replace("'", "").strip()


def _weight_is_bold(weight: str) -> Optional[bool]:
    weight = weight.strip().lower()
    if weight in ("bold", "bolder"):
        return True
    if weight in ("normal", "lighter"):
        return False
    if weight.isdigit():
        return int(weight) >= 600
    return None


def _read_alignment(tag: Tag) -> Alignment:
    value = parse_inline_style(tag.get("style")).get("text-align", "")
    value = value.lower()
    if value.startswith("center"):
        return Alignment.CENTER
    if value.startswith("right"):
        return Alignment.RIGHT
    if value.startswith("justify"):
        return Alignment.JUSTIFY
    align_attr = tag.get("align")
    if isinstance(align_attr, str) and align_attr.lower() in {a.value for a in Alignment}:
        return Alignment(align_attr.lower())
    return Alignment.LEFT


def _style_from_mapping(styles: Mapping[str, Any], defaults: StyleDefaults) -> ResolvedStyle:
    def pick(*keys: str) -> Any:
        for key in keys:
            if styles.get(key) not in (None, ""):
                return styles[key]
        return None

    family = pick("fontFamily", "font-family", "font_family")
    family = _first_font_family(family) if isinstance(family, str) else ""
    return ResolvedStyle(
        font_family=family or defaults.font_family,
        font_size_half_points=normalize_font_size(
            pick("fontSize", "font-size", "font_size"), defaults.font_size_half_points
        ),
        color_hex6=normalize_color(pick("color")) if pick("color") is not None else defaults.color,
    )


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------

class RichTextCompiler:
    """Compiles the bounded article HTML subset into Paragraphs."""

    def __init__(self, defaults: Optional[StyleDefaults] = None) -> None:
        self.defaults = defaults or StyleDefaults.from_settings()

    def compile(self, html: Any, base_styles: Optional[Mapping[str, Any]] = None) -> List[Paragraph]:
        """
        Compile *html* into at least one Paragraph.

        Args:
            html: Article body; non-strings are coerced, None is empty
            base_styles: StyleMap with fontFamily / fontSize / color / lineHeight

        Returns:
            Non-empty list of Paragraphs
        """
        styles = base_styles if isinstance(base_styles, Mapping) else {}
        try:
            base = _style_from_mapping(styles, self.defaults)
            line_spacing = normalize_line_height(
                styles.get("lineHeight", styles.get("line-height")),
                self.defaults.line_height,
            )
            paragraphs = self._compile(
                "" if html is None else str(html), base, line_spacing
            )
        except Exception:
            logger.exception("Rich-text compilation failed; emitting error paragraph")
            return [self._error_paragraph()]

        if not paragraphs:
            return [
                Paragraph(
                    runs=(base.to_run(PLACEHOLDER_TEXT),),
                    line_spacing=line_spacing,
                )
            ]
        return paragraphs

    def build_document(
        self,
        title: str,
        html: Any,
        base_styles: Optional[Mapping[str, Any]] = None,
    ) -> DocumentModel:
        """Compile an article body and pair it with its title."""
        return DocumentModel(
            title=collapse_whitespace(title or "").strip(),
            paragraphs=tuple(self.compile(html, base_styles)),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _compile(self, html: str, base: ResolvedStyle, line_spacing: float) -> List[Paragraph]:
        soup = BeautifulSoup(html, "html.parser")
        for dropped in soup.find_all(DROPPED_TAGS):
            dropped.decompose()

        paragraphs: List[Paragraph] = []
        for node in list(soup.contents):
            if isinstance(node, NavigableString):
                if isinstance(node, _IGNORED_STRINGS):
                    continue
                text = collapse_whitespace(str(node)).strip()
                if text:
                    paragraphs.append(
                        Paragraph(runs=(base.to_run(text),), line_spacing=line_spacing)
                    )
                continue
            if not isinstance(node, Tag):
                continue

            runs = _join_runs(self._walk(node, base))
            if not any(not run.is_break for run in runs):
                continue
            paragraphs.append(
                Paragraph(
                    runs=runs,
                    alignment=_read_alignment(node) if node.name in BLOCK_TAGS else Alignment.LEFT,
                    heading_level=HEADING_LEVELS.get(node.name),
                    line_spacing=line_spacing,
                )
            )
        return paragraphs

    def _walk(self, node: Any, parent: ResolvedStyle) -> Iterator[Tuple[Optional[TextRun], bool, bool]]:
        """
        Yield (run, leading_whitespace, trailing_whitespace) for every terminal
        text node; whitespace-only nodes yield a None run.
        """
        if isinstance(node, NavigableString):
            if isinstance(node, _IGNORED_STRINGS):
                return
            raw = str(node)
            text = collapse_whitespace(raw).strip()
            if text:
                yield parent.to_run(text), raw[:1].isspace(), raw[-1:].isspace()
            elif raw:
                yield None, True, True
            return
        if not isinstance(node, Tag):
            return
        if node.name == "br":
            yield TextRun.line_break(), False, False
            return

        style = self._resolve(node, parent)
        # Block and list-item edges separate words like whitespace does
        boundary = node.name in BLOCK_TAGS or node.name == "li"
        if boundary:
            yield None, True, True
        for child in node.children:
            yield from self._walk(child, style)
        if boundary:
            yield None, True, True

    def _resolve(self, tag: Tag, parent: ResolvedStyle) -> ResolvedStyle:
        """Merge *tag*'s own formatting onto *parent*; unknown tags inherit unchanged."""
        if tag.name not in BLOCK_TAGS and tag.name not in INLINE_TAGS:
            return parent

        decl = parse_inline_style(tag.get("style"))
        overrides: Dict[str, Any] = {}

        if tag.name == "font":
            if tag.get("color"):
                overrides["color_hex6"] = normalize_color(tag.get("color"))
            face = tag.get("face")
            if isinstance(face, str) and _first_font_family(face):
                overrides["font_family"] = _first_font_family(face)
            size = tag.get("size")
            if isinstance(size, str) and size.strip() in FONT_TAG_SIZES:
                overrides["font_size_half_points"] = normalize_font_size(FONT_TAG_SIZES[size.strip()])

        if "color" in decl:
            overrides["color_hex6"] = normalize_color(decl["color"])
        if "font-family" in decl and _first_font_family(decl["font-family"]):
            overrides["font_family"] = _first_font_family(decl["font-family"])
        if "font-size" in decl:
            overrides["font_size_half_points"] = normalize_font_size(
                decl["font-size"], parent.font_size_half_points
            )

        if tag.name in ("b", "strong"):
            overrides["bold"] = True
        elif "font-weight" in decl:
            bold = _weight_is_bold(decl["font-weight"])
            if bold is not None:
                overrides["bold"] = bold

        if tag.name in ("i", "em"):
            overrides["italic"] = True
        elif "font-style" in decl:
            overrides["italic"] = decl["font-style"].lower() in ("italic", "oblique")

        if tag.name == "u":
            overrides["underline"] = True
        elif "text-decoration" in decl or "text-decoration-line" in decl:
            decoration = decl.get("text-decoration", decl.get("text-decoration-line", "")).lower()
            overrides["underline"] = "underline" in decoration

        return parent.merge(**overrides)

    def _error_paragraph(self) -> Paragraph:
        return Paragraph(
            runs=(
                TextRun(
                    text=ERROR_TEXT,
                    font_family=self.defaults.font_family,
                    font_size_half_points=self.defaults.font_size_half_points,
                    color_hex6=ERROR_COLOR,
                    italic=True,
                ),
            ),
            line_spacing=self.defaults.line_height,
        )


def _join_runs(walked: Iterator[Tuple[Optional[TextRun], bool, bool]]) -> Tuple[TextRun, ...]:
    """Mark runs that were separated from their predecessor by whitespace."""
    runs: List[TextRun] = []
    pending_space = False
    for run, leading, trailing in walked:
        if run is None:
            pending_space = True
            continue
        if run.is_break:
            runs.append(run)
            pending_space = False
            continue
        spaced = bool(runs) and not runs[-1].is_break and (leading or pending_space)
        runs.append(dataclasses.replace(run, spaced=True) if spaced else run)
        pending_space = trailing
    return tuple(runs)
