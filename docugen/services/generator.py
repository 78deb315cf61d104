"""
Outline / content generation via the Gemini ``generateContent`` REST endpoint.

All prompts are module-level constants so they can be tuned without touching
logic code. Results are tagged with a ``ContentSource`` so callers can tell a
real generation from a substituted fallback: a failed or empty call never
raises, the authoring flow just receives safe default text. Only a missing API
key raises (``GenerationError``), before any network call.

Public API
----------
GeminiContentService.generate_outline(topic, doc_type)                 -> OutlineResult
GeminiContentService.generate_section_content(topic, title, doc_type)  -> GenerationResult
GeminiContentService.refine_content(current_content, instruction)      -> GenerationResult
"""
from __future__ import annotations

import dataclasses
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from docugen.config import settings
from docugen.exceptions import GenerationError
from docugen.models.schemas import ContentSource, DocType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class GenerationResult:
    content: str
    source: ContentSource

    @property
    def is_generated(self) -> bool:
        return self.source is ContentSource.GENERATED


@dataclasses.dataclass(frozen=True)
class OutlineResult:
    titles: List[str]
    source: ContentSource


# ---------------------------------------------------------------------------
# Fallbacks
# ---------------------------------------------------------------------------

FALLBACK_OUTLINES: Dict[DocType, List[str]] = {
    DocType.DOCX: [
        "Executive Summary",
        "Problem Statement",
        "Solution Overview",
        "Market Analysis",
        "Conclusion",
    ],
    DocType.PPTX: [
        "Title Slide",
        "Agenda",
        "Market Overview",
        "Strategic Plan",
        "Next Steps",
    ],
}

# (min, max) titles accepted from the model; longer lists are cut, shorter ones replaced
OUTLINE_SIZE: Dict[DocType, Tuple[int, int]] = {
    DocType.DOCX: (5, 7),
    DocType.PPTX: (5, 8),
}

EMPTY_CONTENT_MESSAGE = "Content generation failed. Please try again."
CONTENT_ERROR_MESSAGE = "Error generating content. Please check your API key and try again."


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

_OUTLINE_SYSTEM_DOCX = (
    "You are an expert document architect. Create a structured outline for a "
    "professional business document. Return only a JSON array of section titles."
)
_OUTLINE_SYSTEM_PPTX = (
    "You are an expert presentation designer. Create a list of slide titles for "
    "a professional presentation. Return only a JSON array of slide titles."
)

_OUTLINE_PROMPT = 'Create a {size} for the topic: "{topic}".'

_SECTION_PROMPT = """\
Topic: {topic}
Current Section: {section_title}

Task: Write detailed content for this section of a {medium}.

Style Guide:
{style_guide}\
"""

_PPTX_STYLE_GUIDE = (
    "Write 4-6 concise, high-impact bullet points for a presentation slide. "
    "Do not use markdown headers. Each point should be a separate line."
)
_DOCX_STYLE_GUIDE = (
    "Use comprehensive paragraphs and professional formatting. "
    "Do not include the section title."
)

_REFINE_PROMPT = """\
Original Content:
{current_content}

User Instruction: {instruction}

Rewrite the content above following the user instruction. \
Maintain professional tone unless specified otherwise.\
"""

_STRING_ARRAY_SCHEMA = {"type": "ARRAY", "items": {"type": "STRING"}}


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class GeminiContentService:
    """Prompt construction and result tagging around one hosted Gemini model."""

    OUTLINE_PROMPT = _OUTLINE_PROMPT
    SECTION_PROMPT = _SECTION_PROMPT
    REFINE_PROMPT = _REFINE_PROMPT

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.timeout = httpx.Timeout(float(settings.GEMINI_TIMEOUT), connect=10.0)
        self._transport = transport

    # ------------------------------------------------------------------
    # Public generation methods
    # ------------------------------------------------------------------

    async def generate_outline(self, topic: str, doc_type: DocType) -> OutlineResult:
        """
        Ask for 5-7 section titles (documents) or 5-8 slide titles (decks).

        Any failure, malformed JSON or a list shorter than the minimum yields
        the fixed outline for *doc_type* so the new-project wizard never
        dead-ends. A longer list is cut to the maximum.
        """
        self._require_api_key()

        is_doc = doc_type == DocType.DOCX
        prompt = self.OUTLINE_PROMPT.format(
            size="5-7 section outline" if is_doc else "5-8 slide deck outline",
            topic=topic,
        )
        fallback = OutlineResult(list(FALLBACK_OUTLINES[doc_type]), ContentSource.FALLBACK)

        try:
            text = await self._generate(
                prompt,
                system_instruction=_OUTLINE_SYSTEM_DOCX if is_doc else _OUTLINE_SYSTEM_PPTX,
                generation_config={
                    "responseMimeType": "application/json",
                    "responseSchema": _STRING_ARRAY_SCHEMA,
                },
            )
        except Exception as exc:
            logger.error("generate_outline: Gemini call failed — %s", exc)
            return fallback

        titles = self._parse_titles(text)
        low, high = OUTLINE_SIZE[doc_type]
        if len(titles) < low:
            logger.warning(
                "generate_outline: %d titles (need %d-%d), using fallback", len(titles), low, high
            )
            return fallback
        titles = titles[:high]

        logger.info("generate_outline: %d titles for %s", len(titles), doc_type.value)
        return OutlineResult(titles, ContentSource.GENERATED)

    async def generate_section_content(
        self,
        topic: str,
        section_title: str,
        doc_type: DocType,
    ) -> GenerationResult:
        """Body text for one section: bullet lines for slides, prose for documents."""
        self._require_api_key()

        is_doc = doc_type == DocType.DOCX
        prompt = self.SECTION_PROMPT.format(
            topic=topic,
            section_title=section_title,
            medium="business document" if is_doc else "presentation slide",
            style_guide=_DOCX_STYLE_GUIDE if is_doc else _PPTX_STYLE_GUIDE,
        )

        try:
            text = await self._generate(prompt)
        except Exception as exc:
            logger.error("generate_section_content: Gemini call failed — %s", exc)
            return GenerationResult(CONTENT_ERROR_MESSAGE, ContentSource.ERROR_MESSAGE)

        if not text:
            return GenerationResult(EMPTY_CONTENT_MESSAGE, ContentSource.FALLBACK)
        return GenerationResult(text, ContentSource.GENERATED)

    async def refine_content(self, current_content: str, instruction: str) -> GenerationResult:
        """Rewrite *current_content* per *instruction*; unchanged input on any failure."""
        self._require_api_key()

        prompt = self.REFINE_PROMPT.format(
            current_content=current_content,
            instruction=instruction,
        )

        try:
            text = await self._generate(prompt)
        except Exception as exc:
            logger.error("refine_content: Gemini call failed — %s", exc)
            return GenerationResult(current_content, ContentSource.FALLBACK)

        if not text:
            return GenerationResult(current_content, ContentSource.FALLBACK)
        return GenerationResult(text, ContentSource.GENERATED)

    # ------------------------------------------------------------------
    # Core caller
    # ------------------------------------------------------------------

    def _require_api_key(self) -> None:
        if not self.api_key:
            logger.error("GEMINI_API_KEY is missing. Set it in your .env file.")
            raise GenerationError("API Key is missing")

    async def _generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        POST to ``models/{model}:generateContent`` and return the joined text
        parts of the first candidate ("" when the model produced none).

        Raises on transport errors and non-200 responses.
        """
        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if generation_config:
            body["generationConfig"] = generation_config

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(
                f"{self.base_url}/v1beta/models/{self.model}:generateContent",
                headers={"x-goog-api-key": self.api_key},
                json=body,
            )

        if resp.status_code != 200:
            raise RuntimeError(f"Gemini returned HTTP {resp.status_code}: {resp.text[:300]}")

        candidates = resp.json().get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict)).strip()

    @staticmethod
    def _parse_titles(text: str) -> List[str]:
        """Decode the JSON array of titles; [] when it is not a list of strings."""
        if not text:
            return []
        try:
            parsed = json.loads(text)
        except ValueError:
            return []
        if not isinstance(parsed, list):
            return []
        titles = [str(t).strip() for t in parsed if isinstance(t, (str, int, float))]
        return [t for t in titles if t]
