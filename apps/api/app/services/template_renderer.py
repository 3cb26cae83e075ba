"""Delivery template parsing and HTML rendering.

A template is a (format, style) pair. Preference rows store it in the
legacy ``"{format}-style-{style}"`` form; :func:`parse_template` turns that
into a :class:`DeliveryTemplate` once, at the edge. Rendering is a pure
function of the template, the tone copy, the artifacts and the date.
"""

import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import Environment, FileSystemLoader

if TYPE_CHECKING:
    from app.schemas.content import ContentArtifact, ToneCopy

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"
_jinja_env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)), autoescape=True)

TEMPLATE_SEPARATOR = "-style-"

FORMATS = ("bullet-points", "numbered-list", "tips-format")
STYLES = ("x-style", "linkedin-style", "newsletter-style", "thought-leadership")

DEFAULT_FORMAT = FORMATS[0]
DEFAULT_STYLE = STYLES[0]


@dataclass(frozen=True)
class StyleLayout:
    """Structural knobs for one style."""

    max_points: int
    point_char_limit: int | None = None
    show_intro: bool = False
    greeting: str | None = None
    key_takeaway: bool = False
    hashtags: bool = False


STYLE_LAYOUTS: dict[str, StyleLayout] = {
    "x-style": StyleLayout(max_points=3, point_char_limit=280),
    "linkedin-style": StyleLayout(max_points=5, show_intro=True, hashtags=True),
    "newsletter-style": StyleLayout(max_points=6, show_intro=True, greeting="Hi there,"),
    "thought-leadership": StyleLayout(max_points=4, show_intro=True, key_takeaway=True),
}

# Markdown list markers the model tends to emit
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")
_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


@dataclass(frozen=True)
class DeliveryTemplate:
    """A validated (format, style) pair."""

    format: str = DEFAULT_FORMAT
    style: str = DEFAULT_STYLE

    def __post_init__(self) -> None:
        if self.format not in FORMATS:
            raise ValueError(f"Unknown template format {self.format!r}")
        if self.style not in STYLES:
            raise ValueError(f"Unknown template style {self.style!r}")

    @property
    def legacy(self) -> str:
        """The stored ``"{format}-style-{style}"`` form."""
        return f"{self.format}{TEMPLATE_SEPARATOR}{self.style}"

    @property
    def list_tag(self) -> str:
        return "ol" if self.format == "numbered-list" else "ul"


def parse_template(value: str | None) -> DeliveryTemplate:
    """Split a legacy template string on the first ``-style-``.

    A missing format defaults to ``bullet-points``; a missing style to
    ``x-style``. Unknown values raise ``ValueError``.
    """
    if not value:
        return DeliveryTemplate()
    format_part, _, style_part = value.strip().partition(TEMPLATE_SEPARATOR)
    return DeliveryTemplate(
        format=format_part or DEFAULT_FORMAT,
        style=style_part or DEFAULT_STYLE,
    )


def split_points(body: str) -> list[str]:
    """Break generated text into list points.

    Each non-blank line becomes a point with any list marker removed. A
    single-paragraph body is split into sentences instead.
    """
    lines = [_LIST_MARKER.sub("", line).strip() for line in body.splitlines()]
    points = [line for line in lines if line]
    if len(points) == 1:
        points = [s.strip() for s in _SENTENCE_END.split(points[0]) if s.strip()]
    return points


def _shorten(text: str, limit: int | None) -> str:
    if limit is None or len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def _hashtag(industry: str) -> str:
    words = re.findall(r"[A-Za-z0-9]+", industry)
    return "#" + "".join(w.capitalize() for w in words) if words else ""


def build_sections(
    template: DeliveryTemplate,
    artifacts: "list[ContentArtifact]",
) -> list[dict[str, object]]:
    """Lay out each artifact as one option section for the given style."""
    layout = STYLE_LAYOUTS[template.style]
    sections = []
    for index, artifact in enumerate(artifacts, start=1):
        points = [
            _shorten(point, layout.point_char_limit)
            for point in split_points(artifact.body)[: layout.max_points]
        ]
        takeaway = points[0] if layout.key_takeaway and points else None
        if takeaway is not None:
            points = points[1:]
        sections.append(
            {
                "number": index,
                "title": artifact.title,
                "points": points,
                "takeaway": takeaway,
            }
        )
    return sections


def render_delivery(
    template: DeliveryTemplate,
    tone_copy: "ToneCopy",
    artifacts: "list[ContentArtifact]",
    today: date,
    industry: str = "",
) -> str:
    """Render the delivery email as a full HTML document."""
    layout = STYLE_LAYOUTS[template.style]
    html_template = _jinja_env.get_template("content_delivery.html")
    return html_template.render(
        heading=tone_copy.heading,
        intro=tone_copy.intro if layout.show_intro else None,
        greeting=layout.greeting,
        bullet_lead=tone_copy.bullet_lead,
        closing=tone_copy.closing,
        date_label=today.strftime("%A, %B %d, %Y"),
        list_tag=template.list_tag,
        tips=template.format == "tips-format",
        sections=build_sections(template, artifacts),
        hashtag=_hashtag(industry) if layout.hashtags else None,
        industry=industry,
    )
