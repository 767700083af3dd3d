"""
Layout compiler: positioned element descriptors -> standalone HTML + CSS.

Pipeline (compile)
------------------
1. Reject anything that is not a list of elements (LayoutInputError).
2. For every element, in submission order:
   - derive a stable identifier ``el-<type>-<id or index>``;
   - emit one absolutely positioned CSS rule from its position and StyleMap;
   - dispatch on ElementKind to a Jinja2 template and render the fragment;
   - compile nested ``children`` recursively into the parent's fragment,
     their CSS rules emitted as independent top-level rules.
3. Wrap the fragments in a single canvas container and prepend the static
   base stylesheet to the generated rules.

Templates run with autoescape on, so user content never reaches the page
unescaped. One broken element falls back to the generic container and never
aborts the batch.
"""
from __future__ import annotations

import dataclasses
import enum
import io
import logging
import re
import zipfile
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import quote, urljoin

from jinja2 import DictLoader, Environment, select_autoescape
from markupsafe import Markup

from app.config import settings
from app.services.style_normalizer import css_value, to_kebab_case
from app.utils.helpers import format_number, parse_number

logger = logging.getLogger(__name__)


class LayoutInputError(ValueError):
    """The submitted elements payload cannot be compiled at all."""


class ElementKind(str, enum.Enum):
    TEXT = "text"
    HEADER = "header"
    IMAGE = "image"
    BUTTON = "button"
    FORM = "form"
    NAVBAR = "navbar"
    FOOTER = "footer"
    LIST = "list"
    GRID = "grid"
    CARD = "card"
    MAP = "map"
    SECTION = "section"
    GENERIC = "container"

    @classmethod
    def parse(cls, value: Any) -> "ElementKind":
        """Resolve a client type string; anything unrecognised is GENERIC."""
        if not isinstance(value, str):
            return cls.GENERIC
        key = value.strip().lower()
        try:
            return cls(key)
        except ValueError:
            return _KIND_ALIASES.get(key, cls.GENERIC)


_KIND_ALIASES = {
    "heading": ElementKind.HEADER,
    "title": ElementKind.HEADER,
    "paragraph": ElementKind.TEXT,
    "img": ElementKind.IMAGE,
    "nav": ElementKind.NAVBAR,
    "navigation": ElementKind.NAVBAR,
    "contact-form": ElementKind.FORM,
    "gallery": ElementKind.GRID,
    "div": ElementKind.GENERIC,
}

# Placeholder item counts used when no items[] are supplied
PLACEHOLDER_COUNTS = {
    ElementKind.LIST: 3,
    ElementKind.GRID: 4,
    ElementKind.CARD: 1,
}

DEFAULT_TEXT = {
    ElementKind.HEADER: "Heading",
    ElementKind.BUTTON: "Button",
}
DEFAULT_BUTTON_TEXT = "Submit"
FORM_FIELD_TYPES = frozenset({
    "text", "email", "password", "number", "tel", "url", "date", "time",
    "datetime-local", "search", "color", "checkbox", "radio", "textarea", "select",
})
SAFE_URL_SCHEMES = ("http://", "https://", "mailto:", "tel:", "//", "/", "#", "?", "./", "../")
ABSOLUTE_IMAGE_PREFIXES = ("http://", "https://", "data:image/", "//", "blob:")

_IDENT_UNSAFE_RE = re.compile(r"[^a-z0-9_-]+")

IMAGE_FAILED_SVG = (
    "<svg xmlns='http://www.w3.org/2000/svg' width='320' height='180' viewBox='0 0 320 180'>"
    "<rect width='100%' height='100%' fill='#f1f3f5'/>"
    "<text x='50%' y='50%' fill='#868e96' font-family='sans-serif' font-size='16' "
    "text-anchor='middle' dominant-baseline='middle'>Image failed to load</text></svg>"
)
IMAGE_FAILED_SRC = "data:image/svg+xml;charset=utf-8," + quote(IMAGE_FAILED_SVG, safe="")
IMAGE_ONERROR = (
    "this.onerror=null;"
    f"this.src='{IMAGE_FAILED_SRC}';"
    "this.classList.add('pw-image-failed');"
)

STYLESHEET_LINK = '<link rel="stylesheet" href="styles.css">'

BASE_STYLESHEET_TEMPLATE = """\
*, *::before, *::after {{ box-sizing: border-box; margin: 0; padding: 0; }}
html, body {{ width: 100%; min-height: 100%; }}
body {{ font-family: Arial, Helvetica, sans-serif; color: #222; background: #ffffff; }}
img {{ max-width: 100%; display: block; }}
.canvas {{ position: relative; width: {width}px; height: {height}px; margin: 0 auto; overflow: hidden; }}
.pw-element {{ position: absolute; }}
.pw-image img {{ width: 100%; height: 100%; object-fit: cover; }}
.pw-image-placeholder {{ display: flex; align-items: center; justify-content: center; width: 100%; height: 100%; min-height: 80px; background: #f1f3f5; color: #868e96; }}
.pw-button {{ display: inline-block; padding: 10px 20px; border: none; border-radius: 4px; background: #228be6; color: #fff; cursor: pointer; text-decoration: none; font: inherit; }}
.pw-form {{ display: flex; flex-direction: column; gap: 12px; width: 100%; }}
.pw-form-field {{ display: flex; flex-direction: column; gap: 4px; }}
.pw-form-field input, .pw-form-field textarea, .pw-form-field select {{ padding: 8px 10px; border: 1px solid #ced4da; border-radius: 4px; font: inherit; }}
.pw-form-choice {{ display: flex; align-items: center; gap: 6px; }}
.pw-form-submit {{ align-self: flex-start; padding: 10px 20px; border: none; border-radius: 4px; background: #228be6; color: #fff; cursor: pointer; }}
.pw-navbar {{ display: flex; align-items: center; justify-content: space-between; width: 100%; height: 100%; padding: 0 24px; }}
.pw-navbar-brand {{ font-weight: bold; font-size: 20px; }}
.pw-navbar-brand img {{ height: 40px; width: auto; }}
.pw-navbar-links {{ display: flex; gap: 20px; list-style: none; }}
.pw-navbar-links a, .pw-footer a {{ color: inherit; text-decoration: none; }}
.pw-footer {{ display: grid; grid-auto-flow: column; grid-auto-columns: 1fr; gap: 24px; width: 100%; padding: 24px; }}
.pw-footer-column ul {{ list-style: none; margin-top: 8px; }}
.pw-footer-note {{ grid-column: 1 / -1; font-size: 12px; opacity: 0.8; }}
.pw-list {{ padding-left: 20px; }}
.pw-grid {{ display: grid; gap: 16px; width: 100%; height: 100%; }}
.pw-grid-item {{ padding: 16px; background: #f8f9fa; border-radius: 4px; }}
.pw-card {{ padding: 16px; border: 1px solid #dee2e6; border-radius: 8px; background: #fff; }}
.pw-card img {{ margin-bottom: 12px; }}
.pw-map {{ width: 100%; height: 100%; min-height: 200px; border: 0; }}
.pw-section, .pw-container {{ position: relative; width: 100%; height: 100%; }}
"""

# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_TEMPLATES = {
    "element.html.j2": (
        '<div id="{{ el.ident }}" class="pw-element pw-{{ el.kind.value }} {{ el.ident }}"'
        ' data-element-id="{{ el.element_id }}">'
        "{% block body %}{% endblock %}{{ children }}</div>"
    ),
    "text.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}<p>{{ text }}</p>{% endblock %}'
    ),
    "header.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        "<h{{ level }}>{{ text }}</h{{ level }}>{% endblock %}"
    ),
    "button.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '{% if href %}<a class="pw-button" href="{{ href }}">{{ text }}</a>'
        '{% else %}<button type="button" class="pw-button">{{ text }}</button>{% endif %}'
        "{% endblock %}"
    ),
    "image.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '{% if src %}<img src="{{ src }}" alt="{{ alt }}" loading="lazy" onerror="{{ onerror }}">'
        '{% else %}<div class="pw-image-placeholder">{{ placeholder }}</div>{% endif %}'
        "{% endblock %}"
    ),
    "form.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '<form class="pw-form"{% if action %} action="{{ action }}" method="{{ method }}"'
        '{% else %} onsubmit="return false;"{% endif %}>'
        "{% for f in fields %}"
        '<div class="pw-form-field">'
        '{% if f.label %}<label for="{{ f.id }}">{{ f.label }}{% if f.required %} *{% endif %}</label>{% endif %}'
        '{% if f.type == "textarea" %}'
        '<textarea id="{{ f.id }}" name="{{ f.name }}" placeholder="{{ f.placeholder }}"'
        "{% if f.required %} required{% endif %}></textarea>"
        '{% elif f.type == "select" %}'
        '<select id="{{ f.id }}" name="{{ f.name }}"{% if f.required %} required{% endif %}>'
        '{% if f.placeholder %}<option value="" disabled selected>{{ f.placeholder }}</option>{% endif %}'
        '{% for o in f.options %}<option value="{{ o.value }}">{{ o.label }}</option>{% endfor %}'
        "</select>"
        '{% elif f.type in ("checkbox", "radio") and f.options %}'
        "{% for o in f.options %}"
        '<label class="pw-form-choice"><input type="{{ f.type }}" name="{{ f.name }}" value="{{ o.value }}"'
        '{% if f.required and f.type == "radio" %} required{% endif %}> {{ o.label }}</label>'
        "{% endfor %}"
        "{% else %}"
        '<input id="{{ f.id }}" type="{{ f.type }}" name="{{ f.name }}" placeholder="{{ f.placeholder }}"'
        "{% if f.required %} required{% endif %}>"
        "{% endif %}"
        "</div>"
        "{% endfor %}"
        '<button type="submit" class="pw-form-submit">{{ button_text }}</button>'
        "</form>{% endblock %}"
    ),
    "navbar.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '<nav class="pw-navbar"><div class="pw-navbar-brand">'
        '{% if logo %}<img src="{{ logo }}" alt="{{ brand }}" onerror="{{ onerror }}">{% else %}{{ brand }}{% endif %}'
        '</div><ul class="pw-navbar-links">'
        '{% for item in items %}<li><a href="{{ item.href }}">{{ item.label }}</a></li>{% endfor %}'
        "</ul></nav>{% endblock %}"
    ),
    "footer.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '<footer class="pw-footer">'
        "{% for column in columns %}"
        '<div class="pw-footer-column"><h4>{{ column.title }}</h4><ul>'
        '{% for link in column.links %}<li><a href="{{ link.href }}">{{ link.label }}</a></li>{% endfor %}'
        "</ul></div>"
        "{% endfor %}"
        '{% if note %}<p class="pw-footer-note">{{ note }}</p>{% endif %}'
        "</footer>{% endblock %}"
    ),
    "list.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '<{{ tag }} class="pw-list">{% for item in items %}<li>{{ item }}</li>{% endfor %}</{{ tag }}>'
        "{% endblock %}"
    ),
    "grid.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '<div class="pw-grid" style="grid-template-columns: repeat({{ columns }}, 1fr);">'
        "{% for item in items %}"
        '<div class="pw-grid-item">'
        '{% if item.image %}<img src="{{ item.image }}" alt="{{ item.title }}" onerror="{{ onerror }}">{% endif %}'
        "{% if item.title %}<h4>{{ item.title }}</h4>{% endif %}"
        "{% if item.text %}<p>{{ item.text }}</p>{% endif %}"
        "</div>"
        "{% endfor %}</div>{% endblock %}"
    ),
    "card.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        "{% for item in items %}"
        '<article class="pw-card">'
        '{% if item.image %}<img src="{{ item.image }}" alt="{{ item.title }}" onerror="{{ onerror }}">{% endif %}'
        "{% if item.title %}<h3>{{ item.title }}</h3>{% endif %}"
        "{% if item.text %}<p>{{ item.text }}</p>{% endif %}"
        '{% if item.href %}<a class="pw-button" href="{{ item.href }}">{{ item.link_text }}</a>{% endif %}'
        "</article>"
        "{% endfor %}{% endblock %}"
    ),
    "map.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '{% if address %}<iframe class="pw-map" title="{{ address }}" loading="lazy"'
        ' src="https://maps.google.com/maps?q={{ address|urlencode }}&amp;output=embed"></iframe>'
        '{% else %}<div class="pw-map pw-image-placeholder">Map</div>{% endif %}'
        "{% endblock %}"
    ),
    "section.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '<section class="pw-section">{% if text %}{{ text }}{% endif %}</section>{% endblock %}'
    ),
    "container.html.j2": (
        '{% extends "element.html.j2" %}{% block body %}'
        '<div class="pw-container">{% if text %}{{ text }}{% endif %}</div>{% endblock %}'
    ),
    "page.html.j2": (
        "<!DOCTYPE html>\n"
        '<html lang="en">\n<head>\n<meta charset="UTF-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        "<title>{{ title }}</title>\n"
        "{% if css is not none %}<style>\n{{ css }}</style>{% else %}{{ stylesheet_link }}{% endif %}\n"
        "</head>\n<body>\n{{ body }}\n</body>\n</html>\n"
    ),
}

_environment = Environment(
    loader=DictLoader(_TEMPLATES),
    autoescape=select_autoescape(["html", "xml", "j2"], default_for_string=True),
)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class LayoutElement:
    """One element after defaulting: identity, kind, geometry and raw payload."""

    ident: str
    element_id: str
    kind: ElementKind
    x: float
    y: float
    styles: Mapping[str, Any]
    data: Mapping[str, Any]

    @property
    def text(self) -> str:
        for key in ("customText", "content", "text"):
            value = self.data.get(key)
            if isinstance(value, (str, int, float)) and not isinstance(value, bool):
                text = str(value)
                if text.strip():
                    return text
        return ""


@dataclasses.dataclass(frozen=True)
class CompiledLayout:
    """Compiler output: the canvas markup and the full stylesheet."""

    html: str
    css: str
    rule_count: int


@dataclasses.dataclass
class _CompileState:
    base_url: str
    rules: List[str] = dataclasses.field(default_factory=list)
    seen: Dict[str, int] = dataclasses.field(default_factory=dict)


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------

def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _as_text(value: Any, default: str = "") -> str:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, (str, int, float)):
        return str(value)
    return default


def _ident_part(value: Any) -> str:
    return _IDENT_UNSAFE_RE.sub("-", _as_text(value).strip().lower()).strip("-")


def safe_href(value: Any, default: str = "#") -> str:
    """Keep relative and http(s)/mailto/tel links; anything else (javascript:, data:) becomes *default*."""
    href = _as_text(value).strip()
    if not href:
        return default
    lowered = href.lower()
    if lowered.startswith(SAFE_URL_SCHEMES) or ":" not in lowered.split("/")[0]:
        return href
    return default


def resolve_image_url(url: Any, base_url: str) -> Optional[str]:
    """Return an absolute image URL, joining relative paths onto *base_url*."""
    src = _as_text(url).strip()
    if not src:
        return None
    if src.lower().startswith(ABSOLUTE_IMAGE_PREFIXES):
        return src
    if ":" in src.split("/")[0]:
        # Unknown scheme such as javascript:
        return None
    if base_url:
        return urljoin(base_url if base_url.endswith("/") else f"{base_url}/", src)
    return src


def _link(item: Any) -> Dict[str, str]:
    if isinstance(item, Mapping):
        label = _as_text(item.get("label") or item.get("text") or item.get("name") or item.get("title"))
        href = item.get("href") or item.get("url") or item.get("link")
        return {"label": label or "Link", "href": safe_href(href)}
    return {"label": _as_text(item, "Link"), "href": "#"}


def _option(option: Any) -> Dict[str, str]:
    if isinstance(option, Mapping):
        label = _as_text(option.get("label") or option.get("text") or option.get("value"))
        value = _as_text(option.get("value"), label)
        return {"label": label, "value": value}
    text = _as_text(option)
    return {"label": text, "value": text}


# ---------------------------------------------------------------------------
# Renderers (ElementKind -> template context)
# ---------------------------------------------------------------------------

def _text_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    return {"text": el.text or DEFAULT_TEXT.get(el.kind, "")}


def _header_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    level = parse_number(el.data.get("level"))
    level = int(level) if level is not None and 1 <= level <= 6 else 1
    return {"text": el.text or DEFAULT_TEXT[ElementKind.HEADER], "level": level}


def _button_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    href = el.data.get("href") or el.data.get("link") or el.data.get("url")
    return {
        "text": el.text or DEFAULT_TEXT[ElementKind.BUTTON],
        "href": safe_href(href) if href else None,
    }


def _image_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    url = el.data.get("imageUrl") or el.data.get("src")
    return {
        "src": resolve_image_url(url, state.base_url),
        "alt": _as_text(el.data.get("alt")) or el.text or "Image",
        "placeholder": "No image selected",
    }


def _form_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    fields = []
    for index, raw in enumerate(_as_list(el.data.get("fields"))):
        field = _as_mapping(raw)
        field_type = _as_text(field.get("type"), "text").strip().lower()
        if field_type not in FORM_FIELD_TYPES:
            field_type = "text"
        label = _as_text(field.get("label"))
        name = _ident_part(field.get("name") or label) or f"field-{index + 1}"
        fields.append({
            "id": f"{el.ident}-{name}",
            "name": name,
            "label": label,
            "type": field_type,
            "placeholder": _as_text(field.get("placeholder")),
            "required": bool(field.get("required")),
            "options": [_option(o) for o in _as_list(field.get("options"))],
        })
    action = el.data.get("action")
    method = _as_text(el.data.get("method"), "post").lower()
    return {
        "fields": fields,
        "button_text": _as_text(el.data.get("buttonText") or el.data.get("submitText")) or DEFAULT_BUTTON_TEXT,
        "action": safe_href(action, default="") if action else "",
        "method": method if method in ("get", "post") else "post",
    }


def _navbar_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    logo = el.data.get("logoUrl") or el.data.get("logo")
    return {
        "brand": _as_text(el.data.get("brand") or el.data.get("brandName")) or el.text or "Brand",
        "logo": resolve_image_url(logo, state.base_url) if logo else None,
        "items": [_link(item) for item in _as_list(el.data.get("items") or el.data.get("links"))],
    }


def _footer_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    columns = []
    for raw in _as_list(el.data.get("columns")):
        column = _as_mapping(raw)
        columns.append({
            "title": _as_text(column.get("title") or column.get("heading")),
            "links": [_link(link) for link in _as_list(column.get("links"))],
        })
    return {
        "columns": columns,
        "note": _as_text(el.data.get("copyright")) or el.text,
    }


def _list_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    raw_items = _as_list(el.data.get("items"))
    if raw_items:
        items = [
            _as_text(i.get("text") or i.get("label")) if isinstance(i, Mapping) else _as_text(i)
            for i in raw_items
        ]
    else:
        items = [f"List item {n}" for n in range(1, PLACEHOLDER_COUNTS[ElementKind.LIST] + 1)]
    return {"items": items, "tag": "ol" if el.data.get("ordered") else "ul"}


def _content_item(raw: Any, fallback_title: str, fallback_text: str, base_url: str) -> Dict[str, Any]:
    item = _as_mapping(raw)
    if not item:
        return {"title": _as_text(raw) or fallback_title, "text": fallback_text, "image": None, "href": None}
    href = item.get("href") or item.get("link") or item.get("url")
    return {
        "title": _as_text(item.get("title") or item.get("label")),
        "text": _as_text(
            item.get("content") or item.get("text") or item.get("customText") or item.get("description")
        ),
        "image": resolve_image_url(item.get("imageUrl") or item.get("image"), base_url),
        "href": safe_href(href) if href else None,
        "link_text": _as_text(item.get("linkText"), "Learn more"),
    }


def _grid_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    raw_items = _as_list(el.data.get("items"))
    if raw_items:
        items = [_content_item(i, "", "", state.base_url) for i in raw_items]
    else:
        items = [
            _content_item(None, f"Item {n}", "", state.base_url)
            for n in range(1, PLACEHOLDER_COUNTS[ElementKind.GRID] + 1)
        ]
    columns = parse_number(el.data.get("columns"))
    if columns is None or columns < 1:
        columns = min(len(items), 4)
    return {"items": items, "columns": int(columns)}


def _card_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    raw_items = _as_list(el.data.get("items"))
    if raw_items:
        items = [_content_item(i, "", "", state.base_url) for i in raw_items]
    elif el.data.get("title") or el.text or el.data.get("imageUrl"):
        items = [_content_item(el.data, "", "", state.base_url)]
    else:
        items = [
            _content_item(None, "Card title", "Card content", state.base_url)
            for _ in range(PLACEHOLDER_COUNTS[ElementKind.CARD])
        ]
    return {"items": items}


def _map_context(el: LayoutElement, state: _CompileState) -> Dict[str, Any]:
    return {"address": _as_text(el.data.get("address") or el.data.get("location")) or el.text}


_RENDERERS: Dict[ElementKind, Tuple[str, Callable[[LayoutElement, _CompileState], Dict[str, Any]]]] = {
    ElementKind.TEXT: ("text.html.j2", _text_context),
    ElementKind.HEADER: ("header.html.j2", _header_context),
    ElementKind.IMAGE: ("image.html.j2", _image_context),
    ElementKind.BUTTON: ("button.html.j2", _button_context),
    ElementKind.FORM: ("form.html.j2", _form_context),
    ElementKind.NAVBAR: ("navbar.html.j2", _navbar_context),
    ElementKind.FOOTER: ("footer.html.j2", _footer_context),
    ElementKind.LIST: ("list.html.j2", _list_context),
    ElementKind.GRID: ("grid.html.j2", _grid_context),
    ElementKind.CARD: ("card.html.j2", _card_context),
    ElementKind.MAP: ("map.html.j2", _map_context),
    ElementKind.SECTION: ("section.html.j2", _text_context),
    ElementKind.GENERIC: ("container.html.j2", _text_context),
}


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------

class LayoutCompiler:
    """Turns an element array into canvas HTML and a stylesheet."""

    def __init__(self, canvas_width: Optional[int] = None, canvas_height: Optional[int] = None) -> None:
        self.canvas_width = canvas_width or settings.CANVAS_WIDTH
        self.canvas_height = canvas_height or settings.CANVAS_HEIGHT
        self.base_stylesheet = BASE_STYLESHEET_TEMPLATE.format(
            width=self.canvas_width, height=self.canvas_height
        )

    def compile(self, elements: Any, base_url: str = "") -> CompiledLayout:
        """
        Compile *elements* in order.

        Raises:
            LayoutInputError: *elements* is not a list.
        """
        if not isinstance(elements, list):
            raise LayoutInputError("Elements array is required")

        state = _CompileState(base_url=base_url or "")
        fragments = [
            self._compile_element(raw, str(index), state)
            for index, raw in enumerate(elements)
        ]
        html = _environment.from_string(
            '<div class="canvas" id="canvas">{{ body }}</div>'
        ).render(body=Markup("\n").join(fragments))
        css = self.base_stylesheet + "\n" + "\n".join(state.rules) + ("\n" if state.rules else "")

        logger.info(
            "Compiled layout: %d elements, %d CSS rules", len(elements), len(state.rules)
        )
        return CompiledLayout(html=html, css=css, rule_count=len(state.rules))

    # ------------------------------------------------------------------
    # Per element
    # ------------------------------------------------------------------

    def _compile_element(self, raw: Any, path: str, state: _CompileState) -> Markup:
        data = _as_mapping(raw)
        el = self._describe(data, path, state)
        state.rules.append(self._css_rule(el))

        children = [
            self._compile_element(child, f"{path}-{index}", state)
            for index, child in enumerate(_as_list(data.get("children")))
        ]
        children_html = Markup("").join(children)

        template_name, build_context = _RENDERERS[el.kind]
        try:
            context = build_context(el, state)
            return Markup(
                _environment.get_template(template_name).render(
                    el=el, children=children_html, onerror=IMAGE_ONERROR, **context
                )
            )
        except Exception:
            logger.warning(
                "Renderer for %s failed on element %s; using generic container",
                el.kind.value,
                el.element_id,
                exc_info=True,
            )
            fallback = dataclasses.replace(el, kind=ElementKind.GENERIC)
            return Markup(
                _environment.get_template("container.html.j2").render(
                    el=fallback, children=children_html, text=el.text
                )
            )

    def _describe(self, data: Mapping[str, Any], path: str, state: _CompileState) -> LayoutElement:
        type_name = data.get("type") or data.get("label")
        kind = ElementKind.parse(type_name)
        element_id = _as_text(data.get("id")).strip() or path

        ident = f"el-{_ident_part(type_name) or kind.value}-{_ident_part(element_id) or path}"
        if ident in state.seen:
            state.seen[ident] += 1
            ident = f"{ident}-{state.seen[ident]}"
        else:
            state.seen[ident] = 0

        position = _as_mapping(data.get("position"))
        return LayoutElement(
            ident=ident,
            element_id=element_id,
            kind=kind,
            x=parse_number(position.get("x")) or 0.0,
            y=parse_number(position.get("y")) or 0.0,
            styles=_as_mapping(data.get("styles") or data.get("style")),
            data=data,
        )

    def _css_rule(self, el: LayoutElement) -> str:
        declarations: Dict[str, str] = {
            "position": "absolute",
            "left": f"{format_number(el.x)}px",
            "top": f"{format_number(el.y)}px",
        }
        size = _as_mapping(el.data.get("size"))
        for dimension in ("width", "height"):
            value = css_value(dimension, size.get(dimension))
            if value is not None:
                declarations[dimension] = value

        for key, raw_value in el.styles.items():
            prop = to_kebab_case(key)
            if not prop or prop in ("position", "left", "top"):
                continue
            value = css_value(prop, raw_value)
            if value is not None:
                declarations[prop] = value

        body = " ".join(f"{prop}: {value};" for prop, value in declarations.items())
        return f"#{el.ident} {{ {body} }}"


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------

def _style_block(css: str) -> Markup:
    # Only a closing tag can end a <style> element early
    return Markup(css.replace("</", "<\\/"))


def join_stylesheet(css: str, custom_css: str = "") -> str:
    """Append user-supplied CSS after the generated rules."""
    custom = (custom_css or "").strip()
    return f"{css}\n/* custom */\n{custom}\n" if custom else css


def render_page(body_html: str, title: str, css: Optional[str] = None) -> str:
    """
    Wrap canvas markup in a complete HTML document.

    With *css* the stylesheet is inlined; without it the page links
    ``styles.css`` (the zip export layout).
    """
    return _environment.get_template("page.html.j2").render(
        title=title,
        body=Markup(body_html),
        css=_style_block(css) if css is not None else None,
        stylesheet_link=Markup(STYLESHEET_LINK),
    )


def inline_stylesheet(page_html: str, css: str) -> str:
    """Turn a page that links styles.css into a single self-contained file."""
    if STYLESHEET_LINK not in page_html:
        return page_html
    return page_html.replace(STYLESHEET_LINK, f"<style>\n{_style_block(css)}</style>", 1)


def build_zip(files: Sequence[Tuple[str, str]]) -> bytes:
    """Pack (name, text) pairs into an in-memory zip archive."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        for name, text in files:
            archive.writestr(name, text)
    payload = buffer.getvalue()
    logger.info("Archive wrote %d bytes", len(payload))
    return payload
