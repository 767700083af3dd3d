"""Tests for the element array -> HTML + CSS compiler and its packaging helpers."""
import io
import re
import zipfile

import pytest

from app.services import layout_compiler
from app.services.layout_compiler import (
    IMAGE_ONERROR,
    STYLESHEET_LINK,
    ElementKind,
    LayoutCompiler,
    LayoutInputError,
    build_zip,
    inline_stylesheet,
    join_stylesheet,
    render_page,
    resolve_image_url,
    safe_href,
)

RULE_RE = re.compile(r"^#el-[^ ]+ \{ .* \}$", re.MULTILINE)


@pytest.fixture
def compiler():
    return LayoutCompiler(canvas_width=1440, canvas_height=900)


def _rules(css):
    return RULE_RE.findall(css)


# ---------------------------------------------------------------------------
# Core contract
# ---------------------------------------------------------------------------

def test_header_example(compiler):
    result = compiler.compile([
        {"id": 1, "type": "header", "position": {"x": 10, "y": 20},
         "styles": {"color": "#ff0000"}, "customText": "Hi"},
    ])
    assert "<h1>Hi</h1>" in result.html
    assert 'data-element-id="1"' in result.html
    assert "#el-header-1 { position: absolute; left: 10px; top: 20px; color: #ff0000; }" in result.css
    assert result.rule_count == 1


def test_one_rule_and_anchor_per_element(compiler):
    elements = [
        {"id": n, "type": kind, "position": {"x": n * 10, "y": n * 5}}
        for n, kind in enumerate(["text", "image", "button", "form", "navbar", "footer",
                                  "list", "grid", "card", "map", "section", "mystery"])
    ]
    result = compiler.compile(elements)
    assert len(_rules(result.css)) == len(elements)
    assert result.html.count("data-element-id=") == len(elements)


def test_empty_list_compiles(compiler):
    result = compiler.compile([])
    assert result.rule_count == 0
    assert 'class="canvas"' in result.html
    assert ".canvas" in result.css
    assert "width: 1440px; height: 900px;" in result.css


@pytest.mark.parametrize("payload", [None, {"elements": []}, "[]", 3])
def test_non_list_is_rejected(compiler, payload):
    with pytest.raises(LayoutInputError):
        compiler.compile(payload)


def test_unknown_type_uses_generic_container(compiler):
    result = compiler.compile([{"id": "x", "type": "hologram", "customText": "beam"}])
    assert "pw-container" in result.html
    assert "beam" in result.html
    assert result.rule_count == 1


def test_missing_fields_are_defaulted(compiler):
    result = compiler.compile([{}, "not-an-element"])
    assert result.rule_count == 2
    assert "left: 0px; top: 0px;" in result.css
    assert "el-container-0" in result.css
    assert "el-container-1" in result.css


def test_duplicate_ids_get_distinct_identifiers(compiler):
    result = compiler.compile([{"id": 7, "type": "text"}, {"id": 7, "type": "text"}])
    assert "#el-text-7 {" in result.css
    assert "#el-text-7-1 {" in result.css


def test_order_is_preserved(compiler):
    result = compiler.compile([
        {"id": "b", "type": "text", "customText": "second?"},
        {"id": "a", "type": "text", "customText": "first?"},
    ])
    assert result.html.index("second?") < result.html.index("first?")
    assert result.css.index("#el-text-b") < result.css.index("#el-text-a")


# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------

def test_styles_are_kebab_cased_with_units(compiler):
    result = compiler.compile([{
        "id": 1, "type": "text",
        "styles": {"backgroundColor": "#eee", "fontSize": 18, "zIndex": 5, "opacity": 0.5},
    }])
    rule = _rules(result.css)[0]
    assert "background-color: #eee;" in rule
    assert "font-size: 18px;" in rule
    assert "z-index: 5;" in rule
    assert "opacity: 0.5;" in rule


def test_size_becomes_width_and_height(compiler):
    result = compiler.compile([{"id": 1, "type": "image", "size": {"width": 320, "height": "50%"}}])
    rule = _rules(result.css)[0]
    assert "width: 320px;" in rule
    assert "height: 50%;" in rule


def test_styles_cannot_move_or_break_rule(compiler):
    result = compiler.compile([{
        "id": 1, "type": "text", "position": {"x": 5, "y": 6},
        "styles": {"left": 999, "color": "red} body {display:none"},
    }])
    rule = _rules(result.css)[0]
    assert "left: 5px;" in rule
    assert "999" not in rule
    assert rule.count("{") == 1 and rule.count("}") == 1


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------

def test_text_is_escaped(compiler):
    result = compiler.compile([{"id": 1, "type": "text", "customText": "<script>alert(1)</script>"}])
    assert "<script>" not in result.html
    assert "&lt;script&gt;" in result.html


def test_attribute_values_are_escaped(compiler):
    result = compiler.compile([{"id": 1, "type": "image", "imageUrl": 'http://x/a.png" onload="evil()'}])
    assert 'onload="evil()"' not in result.html
    assert "&#34;" in result.html


def test_javascript_links_are_neutralised():
    assert safe_href("javascript:alert(1)") == "#"
    assert safe_href("https://example.com") == "https://example.com"
    assert safe_href("/about") == "/about"
    assert safe_href("contact.html") == "contact.html"
    assert safe_href(None) == "#"


# ---------------------------------------------------------------------------
# Element kinds
# ---------------------------------------------------------------------------

def test_image_relative_url_resolved_against_base(compiler):
    result = compiler.compile(
        [{"id": 1, "type": "image", "imageUrl": "images/photo.png"}],
        base_url="http://localhost:8000",
    )
    assert 'src="http://localhost:8000/images/photo.png"' in result.html


def test_image_failure_fallback_is_attached(compiler):
    result = compiler.compile([{"id": 1, "type": "image", "imageUrl": "https://cdn.example.com/a.png"}])
    assert 'src="https://cdn.example.com/a.png"' in result.html
    assert "onerror=" in result.html
    assert "pw-image-failed" in result.html
    assert "Image%20failed%20to%20load" in IMAGE_ONERROR


def test_image_without_url_shows_placeholder(compiler):
    result = compiler.compile([{"id": 1, "type": "image"}])
    assert "pw-image-placeholder" in result.html
    assert "<img" not in result.html


@pytest.mark.parametrize(
    "url,base,expected",
    [
        ("https://a.com/x.png", "http://b", "https://a.com/x.png"),
        ("data:image/png;base64,AAA", "http://b", "data:image/png;base64,AAA"),
        ("/images/x.png", "http://b:8000", "http://b:8000/images/x.png"),
        ("x.png", "", "x.png"),
        ("javascript:alert(1)", "http://b", None),
        ("", "http://b", None),
    ],
)
def test_resolve_image_url(url, base, expected):
    assert resolve_image_url(url, base) == expected


def test_form_fields(compiler):
    result = compiler.compile([{
        "id": "f", "type": "form",
        "fields": [
            {"label": "Email", "type": "email", "required": True, "placeholder": "you@example.com"},
            {"label": "Message", "type": "textarea"},
            {"label": "Topic", "type": "select", "options": ["Sales", {"label": "Help", "value": "help"}]},
            {"label": "Weird", "type": "exotic"},
        ],
    }])
    html = result.html
    assert '<input id="el-form-f-email" type="email" name="email" placeholder="you@example.com" required>' in html
    assert "<textarea" in html
    assert '<option value="Sales">Sales</option>' in html
    assert '<option value="help">Help</option>' in html
    assert 'type="text" name="weird"' in html
    assert ">Submit</button>" in html


def test_form_custom_button_text(compiler):
    result = compiler.compile([{"id": 1, "type": "form", "buttonText": "Send"}])
    assert ">Send</button>" in result.html


def test_navbar_links(compiler):
    result = compiler.compile([{
        "id": 1, "type": "navbar", "brand": "Acme",
        "items": [{"label": "Home", "href": "/"}, {"label": "Bad", "href": "javascript:x"}, "Plain"],
    }])
    html = result.html
    assert "Acme" in html
    assert '<a href="/">Home</a>' in html
    assert '<a href="#">Bad</a>' in html
    assert '<a href="#">Plain</a>' in html


def test_footer_columns(compiler):
    result = compiler.compile([{
        "id": 1, "type": "footer",
        "columns": [{"title": "Company", "links": [{"label": "About", "href": "/about"}]}],
        "copyright": "(c) Acme",
    }])
    html = result.html
    assert "<h4>Company</h4>" in html
    assert '<a href="/about">About</a>' in html
    assert "(c) Acme" in html


def test_placeholder_counts(compiler):
    result = compiler.compile([
        {"id": "l", "type": "list"},
        {"id": "g", "type": "grid"},
        {"id": "c", "type": "card"},
    ])
    assert result.html.count("<li>") == 3
    assert result.html.count('class="pw-grid-item"') == 4
    assert result.html.count('class="pw-card"') == 1


def test_list_items_and_ordering(compiler):
    result = compiler.compile([{"id": 1, "type": "list", "ordered": True, "items": ["a", {"text": "b"}]}])
    assert '<ol class="pw-list"><li>a</li><li>b</li></ol>' in result.html


def test_grid_columns(compiler):
    result = compiler.compile([{"id": 1, "type": "grid", "columns": 2,
                                "items": [{"title": "One"}, {"title": "Two"}, {"title": "Three"}]}])
    assert "repeat(2, 1fr)" in result.html
    assert "<h4>Three</h4>" in result.html


def test_children_are_nested_with_own_rules(compiler):
    result = compiler.compile([{
        "id": "p", "type": "section", "position": {"x": 0, "y": 0},
        "children": [{"id": "c", "type": "text", "position": {"x": 4, "y": 8}, "customText": "inner"}],
    }])
    assert result.rule_count == 2
    assert "#el-text-c { position: absolute; left: 4px; top: 8px; }" in result.css
    parent_start = result.html.index('id="el-section-p"')
    child_start = result.html.index('id="el-text-c"')
    assert parent_start < child_start


def test_renderer_failure_falls_back(compiler, monkeypatch):
    def boom(el, state):
        raise RuntimeError("renderer broke")

    monkeypatch.setitem(layout_compiler._RENDERERS, ElementKind.TEXT, ("text.html.j2", boom))
    result = compiler.compile([{"id": 1, "type": "text", "customText": "survives"}, {"id": 2, "type": "header"}])
    assert 'class="pw-element pw-container el-text-1"' in result.html
    assert "survives" in result.html
    assert "<h1>Heading</h1>" in result.html


def test_element_kind_aliases():
    assert ElementKind.parse("Heading") == ElementKind.HEADER
    assert ElementKind.parse("img") == ElementKind.IMAGE
    assert ElementKind.parse(None) == ElementKind.GENERIC
    assert ElementKind.parse("unknown") == ElementKind.GENERIC


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------

def test_render_page_links_stylesheet(compiler):
    result = compiler.compile([{"id": 1, "type": "text"}])
    page = render_page(result.html, title="Home <1>")
    assert page.startswith("<!DOCTYPE html>")
    assert STYLESHEET_LINK in page
    assert "<title>Home &lt;1&gt;</title>" in page
    assert result.html in page


def test_render_page_inline_css():
    page = render_page("<div></div>", title="t", css="body { color: red; }</style><script>")
    assert "<style>" in page
    assert "</style><script>" not in page
    assert STYLESHEET_LINK not in page


def test_inline_stylesheet_replaces_link():
    page = render_page("<div></div>", title="t")
    inlined = inline_stylesheet(page, "p { margin: 0; }")
    assert STYLESHEET_LINK not in inlined
    assert "p { margin: 0; }" in inlined


def test_join_stylesheet():
    assert join_stylesheet("a {}", "") == "a {}"
    joined = join_stylesheet("a {}", "  .x { color: red; }  ")
    assert joined.startswith("a {}")
    assert joined.rstrip().endswith(".x { color: red; }")


def test_build_zip_contents():
    payload = build_zip([("index.html", "<html></html>"), ("styles.css", "body {}")])
    with zipfile.ZipFile(io.BytesIO(payload)) as archive:
        assert sorted(archive.namelist()) == ["index.html", "styles.css"]
        assert archive.read("styles.css").decode() == "body {}"


def test_comment_in_style_does_not_swallow_later_rules(compiler):
    result = compiler.compile([
        {"id": 1, "type": "text", "styles": {"fontFamily": "Arial /* fancy"}},
        {"id": 2, "type": "text", "position": {"x": 50, "y": 60}, "styles": {"color": "red"}},
    ])
    assert "/*" not in result.css
    assert "#el-text-2 { position: absolute; left: 50px; top: 60px; color: red; }" in result.css
    assert len(_rules(result.css)) == 2


def test_empty_custom_text_falls_back_to_content(compiler):
    result = compiler.compile([
        {"id": 1, "type": "header", "customText": "", "content": "From content"},
        {"id": 2, "type": "button", "customText": "   ", "text": "Go"},
    ])
    assert "<h1>From content</h1>" in result.html
    assert ">Go</button>" in result.html
