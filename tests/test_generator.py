"""Tests for GeminiContentService with a mocked generateContent endpoint."""
import json
from typing import List

import httpx
import pytest

from docugen.exceptions import GenerationError
from docugen.models.schemas import ContentSource, DocType
from docugen.services.generator import (
    CONTENT_ERROR_MESSAGE,
    EMPTY_CONTENT_MESSAGE,
    FALLBACK_OUTLINES,
    GeminiContentService,
)

from tests.conftest import gemini_reply


def _service(handler, api_key: str = "test-gemini-key") -> GeminiContentService:
    return GeminiContentService(
        api_key=api_key,
        model="gemini-test",
        base_url="https://gemini.test",
        transport=httpx.MockTransport(handler),
    )


def _replying(text: str, seen: List[httpx.Request] = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(200, json=gemini_reply(text))
    return handler


def _failing(request: httpx.Request) -> httpx.Response:
    return httpx.Response(500, json={"error": {"message": "backend overloaded"}})


# ---------------------------------------------------------------------------
# Outline
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_outline_parses_json_titles():
    seen = []
    service = _service(_replying('["Intro", " Market ", "Plan", "Budget", "Summary"]', seen))

    result = await service.generate_outline("Coffee shops", DocType.DOCX)

    assert result.source == ContentSource.GENERATED
    assert result.titles == ["Intro", "Market", "Plan", "Budget", "Summary"]

    (request,) = seen
    assert request.url.path == "/v1beta/models/gemini-test:generateContent"
    assert request.headers["x-goog-api-key"] == "test-gemini-key"
    body = json.loads(request.content)
    assert "Coffee shops" in body["contents"][0]["parts"][0]["text"]
    assert body["generationConfig"]["responseMimeType"] == "application/json"


@pytest.mark.asyncio
async def test_outline_failure_falls_back_to_document_outline():
    result = await _service(_failing).generate_outline("Coffee shops", DocType.DOCX)

    assert result.source == ContentSource.FALLBACK
    assert result.titles == [
        "Executive Summary",
        "Problem Statement",
        "Solution Overview",
        "Market Analysis",
        "Conclusion",
    ]


@pytest.mark.asyncio
async def test_outline_invalid_json_falls_back_to_deck_outline():
    result = await _service(_replying("Here are some slides!")).generate_outline(
        "Coffee shops", DocType.PPTX
    )
    assert result.source == ContentSource.FALLBACK
    assert result.titles == FALLBACK_OUTLINES[DocType.PPTX]


@pytest.mark.asyncio
async def test_outline_empty_array_falls_back():
    result = await _service(_replying("[]")).generate_outline("Coffee shops", DocType.DOCX)
    assert result.source == ContentSource.FALLBACK


@pytest.mark.asyncio
async def test_outline_shorter_than_minimum_falls_back():
    result = await _service(_replying('["Intro", "Plan"]')).generate_outline(
        "Coffee shops", DocType.DOCX
    )
    assert result.source == ContentSource.FALLBACK
    assert result.titles == FALLBACK_OUTLINES[DocType.DOCX]


@pytest.mark.asyncio
async def test_outline_longer_than_maximum_is_cut():
    titles = [f"Part {n}" for n in range(1, 16)]
    reply = json.dumps(titles)

    document = await _service(_replying(reply)).generate_outline("Coffee shops", DocType.DOCX)
    deck = await _service(_replying(reply)).generate_outline("Coffee shops", DocType.PPTX)

    assert document.source == ContentSource.GENERATED
    assert document.titles == titles[:7]
    assert deck.titles == titles[:8]


@pytest.mark.asyncio
async def test_fallback_outline_is_a_copy():
    result = await _service(_failing).generate_outline("x", DocType.DOCX)
    result.titles.append("Appendix")
    assert "Appendix" not in FALLBACK_OUTLINES[DocType.DOCX]


@pytest.mark.asyncio
async def test_missing_api_key_raises_before_any_call():
    seen = []
    service = _service(_replying("[]", seen), api_key="")

    with pytest.raises(GenerationError):
        await service.generate_outline("Coffee shops", DocType.DOCX)
    with pytest.raises(GenerationError):
        await service.generate_section_content("Coffee shops", "Intro", DocType.DOCX)
    with pytest.raises(GenerationError):
        await service.refine_content("Draft text", "Shorter")
    assert seen == []


# ---------------------------------------------------------------------------
# Section content
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_section_content_uses_slide_style_for_decks():
    seen = []
    service = _service(_replying("  - Point A\n- Point B  ", seen))

    result = await service.generate_section_content("Coffee shops", "Agenda", DocType.PPTX)

    assert result.source == ContentSource.GENERATED
    assert result.is_generated
    assert result.content == "- Point A\n- Point B"
    prompt = json.loads(seen[0].content)["contents"][0]["parts"][0]["text"]
    assert "Current Section: Agenda" in prompt
    assert "bullet points" in prompt


@pytest.mark.asyncio
async def test_section_content_uses_prose_style_for_documents():
    seen = []
    service = _service(_replying("Paragraph.", seen))

    await service.generate_section_content("Coffee shops", "Intro", DocType.DOCX)

    prompt = json.loads(seen[0].content)["contents"][0]["parts"][0]["text"]
    assert "comprehensive paragraphs" in prompt


@pytest.mark.asyncio
async def test_section_content_failure_returns_error_message():
    result = await _service(_failing).generate_section_content("x", "Intro", DocType.DOCX)
    assert result.content == CONTENT_ERROR_MESSAGE
    assert result.source == ContentSource.ERROR_MESSAGE
    assert not result.is_generated


@pytest.mark.asyncio
async def test_section_content_empty_reply_returns_fallback_message():
    def no_candidates(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": []})

    result = await _service(no_candidates).generate_section_content("x", "Intro", DocType.DOCX)
    assert result.content == EMPTY_CONTENT_MESSAGE
    assert result.source == ContentSource.FALLBACK


# ---------------------------------------------------------------------------
# Refinement
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_refine_returns_rewritten_text():
    seen = []
    service = _service(_replying("Short text", seen))

    result = await service.refine_content("Draft text", "Make it shorter")

    assert result.content == "Short text"
    assert result.source == ContentSource.GENERATED
    prompt = json.loads(seen[0].content)["contents"][0]["parts"][0]["text"]
    assert "Draft text" in prompt
    assert "User Instruction: Make it shorter" in prompt


@pytest.mark.asyncio
async def test_refine_failure_returns_original_content():
    result = await _service(_failing).refine_content("Draft text", "Make it shorter")
    assert result.content == "Draft text"
    assert result.source == ContentSource.FALLBACK


@pytest.mark.asyncio
async def test_refine_empty_reply_returns_original_content():
    result = await _service(_replying("   ")).refine_content("Draft text", "Make it shorter")
    assert result.content == "Draft text"
    assert result.source == ContentSource.FALLBACK


@pytest.mark.asyncio
async def test_refine_with_empty_instruction_and_failing_backend_keeps_text():
    result = await _service(_failing).refine_content("Draft text", "")
    assert result.content == "Draft text"
    assert result.source == ContentSource.FALLBACK
