"""
Markdown to HTML rendering for final answers.

Model output is untrusted, so every rendered document (and every document
accepted for sharing) goes through an allowlist sanitizer.
"""
import markdown
import nh3

MARKDOWN_EXTENSIONS = ["extra", "sane_lists"]

ALLOWED_TAGS = {
    # Markdown core + extra
    "p", "br", "hr", "h1", "h2", "h3", "h4", "h5", "h6",
    "strong", "em", "b", "i", "code", "pre", "blockquote",
    "ul", "ol", "li", "a", "dl", "dt", "dd", "abbr", "sup", "div",
    "table", "thead", "tbody", "tr", "th", "td",
    # media blocks
    "figure", "figcaption", "img", "small",
}

ALLOWED_ATTRIBUTES = {
    "a": {"href", "title"},
    "abbr": {"title"},
    "img": {"src", "alt", "loading", "class", "title"},
    "figure": {"class"},
    "div": {"class"},
    "ol": {"start"},
    "th": {"align"},
    "td": {"align"},
}

ALLOWED_URL_SCHEMES = {"http", "https", "mailto"}


def sanitize_html(html: str) -> str:
    """Strip every tag, attribute and URL scheme outside the allowlist."""
    return nh3.clean(
        html or "",
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        url_schemes=ALLOWED_URL_SCHEMES,
    )


def render_markdown(text: str) -> str:
    """Render model markdown (with embedded media blocks) to sanitized HTML."""
    return sanitize_html(markdown.markdown(text or "", extensions=MARKDOWN_EXTENSIONS))
