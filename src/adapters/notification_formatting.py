"""Shared notification formatting helpers.

Keeping template rendering here prevents drift between adapters and keeps
messages consistent regardless of delivery channel. Templates use
``str.format`` syntax, e.g. ``"{creator.name} is live: {space.title} {url}"``.
"""

from __future__ import annotations

import html
import string
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from core.errors import RenderError
from core.models import Creator, NotificationStatus, Space

MODES = ("html", "markdown", "plain")


def escape_md(value: str) -> str:
    for ch in r"*[`_":
        value = value.replace(ch, f"\\{ch}")
    return value


def _escape(value: str, mode: str) -> str:
    if mode == "html":
        return html.escape(value)
    if mode == "markdown":
        return escape_md(value)
    return value


class _EscapingFormatter(string.Formatter):
    """Formatter that escapes every substituted value for the target mode.

    Literal template text is left as written so operators can use markup in
    the template itself.
    """

    def __init__(self, mode: str) -> None:
        super().__init__()
        self._mode = mode

    def get_field(self, field_name: str, args: Sequence[Any], kwargs: Mapping[str, Any]) -> Any:
        for part in field_name.replace("[", ".").split("."):
            if part.startswith("_"):
                raise RenderError(f"access to private field {field_name!r} is not allowed")
        return super().get_field(field_name, args, kwargs)

    def format_field(self, value: Any, format_spec: str) -> str:
        if value is None:
            return ""
        return _escape(super().format_field(value, format_spec), self._mode)


@dataclass(frozen=True)
class TemplateContext:
    """Values exposed to message and command templates."""

    space: Space
    creator: Creator
    status: NotificationStatus

    @property
    def url(self) -> str:
        return self.space.url

    def as_kwargs(self) -> dict[str, Any]:
        return {
            "space": self.space,
            "creator": self.creator,
            "user": self.creator,
            "url": self.url,
            "status": self.status.name.lower(),
        }


def render_template(template: str, context: TemplateContext, mode: str) -> str:
    """Render one template for the requested mode.

    Raises RenderError for malformed templates or unknown fields.
    """

    if mode not in MODES:
        raise ValueError(f"Unsupported notification format: {mode}")
    try:
        return _EscapingFormatter(mode).vformat(template, (), context.as_kwargs())
    except RenderError:
        raise
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
        raise RenderError(f"cannot render template {template!r}: {type(exc).__name__}: {exc}") from exc
