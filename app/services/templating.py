from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup, escape

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def nl2br(value) -> Markup:
    return Markup("<br>\n").join(escape(line) for line in str(value or "").splitlines())


# .html templates are autoescaped, .txt templates are rendered as-is
templates = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)
templates.filters["nl2br"] = nl2br
