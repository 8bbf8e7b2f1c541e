from __future__ import annotations

from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from prom2grafana import __version__

TEMPLATES_DIR = Path(__file__).with_name("templates")

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
    enable_async=False,
)


def render_index_html() -> str:
    """Render the single-page UI that posts to /convert."""
    return _env.get_template("index.html").render(version=__version__)
