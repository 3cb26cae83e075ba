"""AI-powered industry content generation."""

import logging
import re

from langchain_openai import ChatOpenAI

from app.core.config import settings
from app.core.exceptions import GenerationError
from app.schemas.content import ContentArtifact, ContentIdea, ContentIdeas, ToneCopy

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100
SNIPPET_LENGTH = 300
ALTERNATIVES_PER_DELIVERY = 3

# Tone-driven copy shared by previews and scheduled deliveries.
TONE_COPY: dict[str, dict[str, str]] = {
    "professional": {
        "description": (
            "Formal, authoritative, and polished. Ideal for business communications "
            "and establishing credibility."
        ),
        "heading": "Your Daily {industry} Briefing",
        "intro": "Here are today's key developments and insights from the {industry} sector.",
        "bullet_lead": "Key points:",
        "closing": "Choose the option that best fits your audience and share it today.",
    },
    "conversational": {
        "description": (
            "Friendly, approachable, and easy to understand. Great for building rapport "
            "and everyday communication."
        ),
        "heading": "What's New in {industry} Today",
        "intro": "Grab a coffee. Here's what's worth talking about in {industry} right now.",
        "bullet_lead": "Here's the gist:",
        "closing": "Pick your favourite and start the conversation!",
    },
    "enthusiastic": {
        "description": (
            "Energetic, positive, and exciting. Perfect for motivational content "
            "and announcements."
        ),
        "heading": "Exciting {industry} Ideas For You!",
        "intro": "Big things are happening in {industry}, and you've got fresh content ready to go!",
        "bullet_lead": "Why it matters:",
        "closing": "Post it, share it, and watch the engagement roll in!",
    },
    "humorous": {
        "description": (
            "Light-hearted, witty, and entertaining. Excellent for engaging content "
            "that doesn't take itself too seriously."
        ),
        "heading": "{industry}: The Lighter Side",
        "intro": "Serious insights, delivered without the serious face.",
        "bullet_lead": "The short version (no jargon, we promise):",
        "closing": "Share one before your coffee gets cold.",
    },
}

CUSTOM_TONE_COPY: dict[str, str] = {
    "description": "Define your own unique tone of voice for your content.",
    "heading": "Your {industry} Content",
    "intro": "Fresh {industry} content written in a {tone} voice.",
    "bullet_lead": "Highlights:",
    "closing": "Choose the option that sounds most like you.",
}

SYSTEM_PROMPT = (
    "You are an expert content creator specializing in the {industry} industry. "
    "Create content in a {tone} tone."
)

POST_PROMPT = (
    "Generate a concise, engaging post about an important insight or trend in the "
    "{industry} industry. The content should be in a {tone} tone and suitable for "
    "professional social media."
)

IDEAS_SYSTEM_PROMPT = (
    "You are a content strategy expert. For each section (topics, hooks, tips), generate "
    "exactly 3 items. Each item should have a clear heading and a description of how to "
    "use that heading effectively."
)

IDEAS_PROMPT = (
    "Generate 9 content items for the {industry} industry, organized as follows:\n\n"
    "3 DAILY TOPICS: Generate 3 topic headings with descriptions showing how to use each "
    "topic effectively.\n"
    'Example format:\nTitle: "Share a personal milestone"\n'
    'Description: "Celebrate and invite others to join in your success"\n\n'
    "3 DAILY HOOKS: Generate 3 hook headings with descriptions showing how to use each "
    "hook effectively.\n\n"
    "3 DAILY TIPS: Generate 3 tip headings with descriptions showing how to use each "
    "tip effectively.\n\n"
    "Put each Title and its Description on one line separated by 'Description:'. "
    "Make sure each section has exactly 3 items."
)

DEFAULT_IDEA_DESCRIPTION = "How to effectively use this in your content"

_IDEAS_SECTION = re.compile(r"3 DAILY (?:TOPICS|HOOKS|TIPS):", re.IGNORECASE)
_IDEA_SPLIT = re.compile(r"Description:|→")


def tone_copy(tone: str, industry: str) -> ToneCopy:
    """Look up the wording for a tone; custom tones get a neutral profile."""
    key = tone.strip().lower()
    copy = TONE_COPY.get(key, CUSTOM_TONE_COPY)
    return ToneCopy(
        tone=tone,
        **{field: text.format(industry=industry, tone=tone) for field, text in copy.items()},
    )


def extract_artifact(text: str, industry: str) -> ContentArtifact:
    """Split a model response into title, body and snippet.

    The first non-blank line is the title when it is under the length
    threshold; otherwise a synthetic title is used and the whole response
    becomes the body. Markdown header and bold markers are stripped from
    the title.
    """
    lines = [line for line in text.split("\n") if line.strip()]
    title = lines[0].strip() if lines else ""
    body = "\n".join(lines[1:])

    if not title or len(title) > TITLE_MAX_LENGTH:
        title = f"{industry} Industry Insight"
        body = text

    title = re.sub(r"^#+\s+", "", title)
    title = re.sub(r"^\*\*|\*\*$", "", title).strip()

    snippet = text[:SNIPPET_LENGTH] + ("..." if len(text) > SNIPPET_LENGTH else "")
    return ContentArtifact(title=title, body=body, snippet=snippet)


def parse_ideas(text: str) -> ContentIdeas:
    """Parse a topics/hooks/tips response into structured ideas."""
    sections = _IDEAS_SECTION.split(text)[1:]
    parsed: list[list[ContentIdea]] = []
    for section in sections:
        items = []
        for line in section.strip().split("\n"):
            if not line.strip():
                continue
            parts = [p.strip() for p in _IDEA_SPLIT.split(line, maxsplit=1)]
            title = re.sub(r"^(?:[-*]|\d+[.)])?\s*Title:\s*", "", parts[0]).strip().strip('"')
            description = parts[1].strip('"') if len(parts) > 1 and parts[1] else ""
            if not title:
                # "Description:" on its own line belongs to the previous title
                if description and items:
                    items[-1] = ContentIdea(title=items[-1].title, description=description)
                continue
            items.append(
                ContentIdea(title=title, description=description or DEFAULT_IDEA_DESCRIPTION)
            )
        parsed.append(items[:3])

    while len(parsed) < 3:
        parsed.append([])
    return ContentIdeas(topics=parsed[0], hooks=parsed[1], tips=parsed[2])


class ContentService:
    """Generates industry content through the chat-completion provider."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model or settings.openai_model

    def _llm(self, temperature: float | None = None) -> ChatOpenAI:
        kwargs: dict[str, object] = {"model": self.model, "api_key": settings.openai_api_key}
        if temperature is not None:
            kwargs["temperature"] = temperature
        return ChatOpenAI(**kwargs)

    async def _complete(self, messages: list[tuple[str, str]], temperature: float | None) -> str:
        try:
            response = await self._llm(temperature).ainvoke(messages)
        except Exception as exc:
            raise GenerationError(f"Generation provider error: {exc}") from exc

        content = response.content
        if not isinstance(content, str):
            raise GenerationError("Generation provider returned a malformed payload")
        text = content.strip()
        if not text:
            raise GenerationError("No content generated")
        return text

    async def generate(self, industry: str, tone: str, temperature: float) -> ContentArtifact:
        """Generate one post for an industry in the requested tone.

        Raises:
            GenerationError: On any provider failure or empty response.
        """
        if not industry:
            raise GenerationError("Industry is required")

        logger.info(
            "Generating content: industry=%s tone=%s temperature=%.2f",
            industry,
            tone,
            temperature,
        )
        text = await self._complete(
            [
                ("system", SYSTEM_PROMPT.format(industry=industry, tone=tone)),
                ("human", POST_PROMPT.format(industry=industry, tone=tone)),
            ],
            temperature,
        )
        return extract_artifact(text, industry)

    async def generate_batch(
        self,
        industry: str,
        tone: str,
        temperature: float,
        count: int = ALTERNATIVES_PER_DELIVERY,
    ) -> list[ContentArtifact]:
        """Generate ``count`` independent posts sequentially.

        The first failure propagates; partial batches are never returned.
        """
        artifacts = []
        for _ in range(count):
            artifacts.append(await self.generate(industry, tone, temperature))
        return artifacts

    async def generate_ideas(self, industry: str) -> ContentIdeas:
        """Generate three topics, hooks and tips for an industry."""
        text = await self._complete(
            [
                ("system", IDEAS_SYSTEM_PROMPT),
                ("human", IDEAS_PROMPT.format(industry=industry)),
            ],
            None,
        )
        return parse_ideas(text)
