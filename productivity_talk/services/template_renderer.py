"""Email template rendering utilities."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from productivity_talk.db.models import Reminder, Video

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=select_autoescape(disabled_extensions=("txt",)),
    trim_blocks=True,
    lstrip_blocks=True,
)


@dataclass(slots=True)
class RenderedEmail:
    """Represents a rendered email template."""

    subject: str
    body: str


def render_reminder_email(*, reminder: Reminder, video: Video | None = None) -> RenderedEmail:
    """Render the reminder email, linking the source video when there is one."""

    template = _env.get_template("reminder_email.txt.jinja")
    subject = f"Video Reminder: {video.title}" if video is not None else "Video Reminder"
    body = template.render(reminder=reminder, video=video)
    return RenderedEmail(subject=subject, body=body)
