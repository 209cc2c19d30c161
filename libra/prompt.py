"""Prompt rendering using Jinja2 templates.

Templates live in ``libra/templates``:

- ``recommend.md.j2``: reading history plus available books, asking for titles.
- ``chat_summary.md.j2``: a summary request for one catalog book.
- ``chat_general.md.j2``: a general question with a sample of the catalog.
"""

import os
from typing import Any

import jinja2

_TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "templates")
_ENV = jinja2.Environment(
    loader=jinja2.FileSystemLoader(_TEMPLATE_DIR),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render(template_name: str, **kwargs: Any) -> str:
    """Render one of the templates above with the given keyword arguments."""
    return _ENV.get_template(template_name).render(**kwargs)
