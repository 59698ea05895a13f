from __future__ import annotations

import re
from typing import Mapping, Tuple

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(text: str, payload: Mapping) -> str:
    """
    Replace ``{{name}}`` placeholders with values from ``payload``.

    Unknown names render as an empty string. Dotted names such as
    ``{{order.number}}`` are not placeholders and are left untouched.
    """
    payload = payload or {}

    def replace(match):
        value = payload.get(match.group(1))
        return "" if value is None else str(value)

    return PLACEHOLDER.sub(replace, text or "")


def render_email_template(template, payload: Mapping) -> Tuple[str, str, str]:
    """Subject, text body and HTML body of ``template`` rendered with ``payload``."""
    return (
        render_template(template.subject_template, payload),
        render_template(template.body_template, payload),
        render_template(template.html_template, payload),
    )
