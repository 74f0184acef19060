"""Pure rendering functions: structured data -> text.

All renderers follow the same pattern:
  - Input: controller snapshot or dataclass
  - Output: str
  - No side effects, no I/O, no Prefect decorators

Public API:
  - summary: DisplaySummary, build_summary, render_summary_text
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import jinja2

# Shared Jinja2 environment for all renderers. Text templates, so no escaping.
_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
_jinja_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=jinja2.select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


def render_template(template_name: str, **kwargs: Any) -> str:
    """Render a Jinja2 template by name."""
    return _jinja_env.get_template(template_name).render(**kwargs)
