"""Template renderer for tracker comments and patch summaries.

Renders with Jinja2 templates shipped in this package. Output is
deterministic: the same input always produces the same text.
"""

import logging
from datetime import UTC, date, datetime
from typing import Any

from jinja2 import Environment, PackageLoader, TemplateNotFound, select_autoescape

from ci_housekeeping.models.patch import PatchSetSummary

logger = logging.getLogger(__name__)


def format_datetime(dt: datetime | str | None) -> str:
    """Format datetime for display.

    Args:
        dt: Datetime object or ISO string

    Returns:
        Formatted date string
    """
    if dt is None:
        return "N/A"

    if isinstance(dt, str):
        try:
            dt = datetime.fromisoformat(dt)
        except ValueError:
            return dt

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_date(value: date | str | None) -> str:
    """Format a date as "19 October 2026"."""
    if value is None:
        return "N/A"
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value)
        except ValueError:
            return value
    return f"{value.day} {value.strftime('%B %Y')}"


class TemplateRenderer:
    """Renders package templates.

    Usage:
        renderer = TemplateRenderer()
        comment = renderer.render("held_comment.txt.j2", release_date=release)
    """

    def __init__(self) -> None:
        self._env = Environment(
            loader=PackageLoader("ci_housekeeping", "templates"),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._env.filters["format_datetime"] = format_datetime
        self._env.filters["format_date"] = format_date

    def render(self, template_name: str, **context: Any) -> str:
        """Render a template.

        Args:
            template_name: Template file name
            **context: Template variables

        Returns:
            Rendered text

        Raises:
            ValueError: If the template does not exist
        """
        try:
            template = self._env.get_template(template_name)
        except TemplateNotFound as e:
            raise ValueError(f"Template not found: {template_name}") from e

        return template.render(**context)

    def render_comment(self, template_name: str, **context: Any) -> str:
        """Render a tracker comment, without surrounding whitespace."""
        return self.render(template_name, **context).strip()

    def render_patch_summary(self, summary: PatchSetSummary) -> str:
        """Render a patch set summary as Markdown."""
        rendered = self.render("patch_summary.md.j2", summary=summary)
        logger.debug("Rendered patch summary (%d characters)", len(rendered))
        return rendered
