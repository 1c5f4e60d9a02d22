"""Two-stage decode: provider envelope -> embedded text -> AnalysisResult.

Stage A only looks at the provider wrapper and raises MalformedEnvelope for
anything it cannot use. Stage B decodes the application JSON the model wrote
and raises MalformedPayload when it is not a JSON object. Absent or null
``items`` is a legitimate "nothing detected" answer, not an error.
"""
import json
import logging
from typing import Any, Callable, Optional

from materials_lens.constants import (
    BODY_EXCERPT_LENGTH,
    PROVIDER_CLAUDE,
    PROVIDER_GEMINI,
    PROVIDER_OPENAI,
)
from materials_lens.errors import MalformedEnvelope, MalformedPayload
from materials_lens.models import AnalysisResult, AnalysisSummary, ItemAnalysis, TokenUsage

logger = logging.getLogger(__name__)

CODE_FENCE = "```"


def excerpt(body: str, limit: int = BODY_EXCERPT_LENGTH) -> str:
    match len(body) > limit:
        case True:
            return body[:limit] + "..."
        case False:
            return body


def _envelope_error(reason: str, body: str) -> MalformedEnvelope:
    return MalformedEnvelope(f"{reason}. Response: {excerpt(body)}")


def _decode_envelope(body: str) -> dict[str, Any]:
    try:
        envelope = json.loads(body)
    except (json.JSONDecodeError, TypeError) as exc:
        raise _envelope_error(f"API response is not valid JSON ({exc})", str(body)) from exc
    match envelope:
        case dict() as d if d:
            return d
        case _:
            raise _envelope_error("API response envelope is empty", body)


def _non_empty_text(part: Any) -> Optional[str]:
    match part:
        case {"text": str() as text} if text.strip():
            return text
        case _:
            return None


# ── Stage A: per-provider envelopes ───────────────────────────────────────────


def _gemini_text(envelope: dict[str, Any], body: str) -> str:
    match envelope.get("candidates"):
        case [first, *_]:
            pass
        case _:
            raise _envelope_error("API response has no candidates", body)
    match first:
        case {"content": dict() as content} if content:
            pass
        case _:
            raise _envelope_error("API response candidate has no content", body)
    match content.get("parts"):
        case [part, *_]:
            pass
        case _:
            raise _envelope_error("API response candidate has no parts", body)
    match _non_empty_text(part):
        case None:
            raise _envelope_error("API response part has no text content", body)
        case text:
            return text


def _openai_text(envelope: dict[str, Any], body: str) -> str:
    match envelope.get("output"):
        case [_, *_] as outputs:
            pass
        case _:
            raise _envelope_error("API response has no outputs", body)
    contents = [
        output["content"]
        for output in outputs
        if isinstance(output, dict) and isinstance(output.get("content"), list)
    ]
    match contents:
        case []:
            raise _envelope_error("API response output has no content", body)
        case _:
            pass
    parts = [
        part
        for content in contents
        for part in content
        if isinstance(part, dict) and part.get("type") == "output_text"
    ]
    match parts:
        case []:
            raise _envelope_error("API response output has no output_text parts", body)
        case [part, *_]:
            pass
    match _non_empty_text(part):
        case None:
            raise _envelope_error("API response part has no text content", body)
        case text:
            return text


def _claude_text(envelope: dict[str, Any], body: str) -> str:
    match envelope.get("content"):
        case [_, *_] as blocks:
            pass
        case _:
            raise _envelope_error("API response has no content", body)
    parts = [b for b in blocks if isinstance(b, dict) and b.get("type") == "text"]
    match parts:
        case []:
            raise _envelope_error("API response content has no text parts", body)
        case [part, *_]:
            pass
    match _non_empty_text(part):
        case None:
            raise _envelope_error("API response part has no text content", body)
        case text:
            return text


_EXTRACTORS: dict[str, Callable[[dict[str, Any], str], str]] = {
    PROVIDER_GEMINI: _gemini_text,
    PROVIDER_OPENAI: _openai_text,
    PROVIDER_CLAUDE: _claude_text,
}


def extract_text(body: str, provider: str = PROVIDER_GEMINI) -> str:
    """Stage A: pull the model's text out of the provider envelope."""
    extractor = _EXTRACTORS.get(provider)
    match extractor:
        case None:
            raise ValueError(f"Unknown provider: {provider}")
        case _:
            return extractor(_decode_envelope(body), body)


# ── Stage B: application payload ──────────────────────────────────────────────


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    match stripped.startswith(CODE_FENCE) and stripped.endswith(CODE_FENCE):
        case True:
            inner = stripped[len(CODE_FENCE):-len(CODE_FENCE)]
            # drop an optional language tag such as ```json
            first_newline = inner.find("\n")
            return inner[first_newline + 1:] if first_newline >= 0 else inner
        case False:
            return stripped


def parse_result(text: str) -> AnalysisResult:
    """Stage B: decode the embedded JSON into an AnalysisResult."""
    try:
        raw = json.loads(_strip_code_fence(text))
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedPayload(
            f"Failed to parse inner JSON into AnalysisResult ({exc}). Text: {excerpt(str(text))}"
        ) from exc

    match raw:
        case None:
            raise MalformedPayload("Failed to parse inner JSON into AnalysisResult - result is null")
        case dict():
            pass
        case _:
            raise MalformedPayload(
                f"Inner JSON is not an object ({type(raw).__name__}). Text: {excerpt(text)}"
            )

    match raw.get("items"):
        case None:
            logger.warning("Result parsed but items array is null; treating as nothing detected")
            raw_items = []
        case list() as listed:
            raw_items = listed
        case other:
            raise MalformedPayload(
                f"Inner JSON 'items' is not an array ({type(other).__name__}). Text: {excerpt(text)}"
            )

    skipped = sum(1 for item in raw_items if not isinstance(item, dict))
    match skipped:
        case 0:
            pass
        case n:
            logger.warning("Skipped %d non-object item(s) in result", n)

    match raw.get("summary"):
        case dict() as summary:
            parsed_summary = AnalysisSummary.from_dict(summary)
        case _:
            parsed_summary = None

    return AnalysisResult(
        items=tuple(ItemAnalysis.from_dict(item) for item in raw_items if isinstance(item, dict)),
        summary=parsed_summary,
    )


def parse_response(body: str, provider: str = PROVIDER_GEMINI) -> AnalysisResult:
    return parse_result(extract_text(body, provider))


# ── usage metadata ────────────────────────────────────────────────────────────


def _count(raw: Any) -> Optional[int]:
    return raw if isinstance(raw, int) and not isinstance(raw, bool) else None


def extract_usage(body: str, provider: str = PROVIDER_GEMINI) -> Optional[TokenUsage]:
    """Token counts from the envelope, or None when the provider sent none."""
    try:
        envelope = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return None
    match (provider, envelope):
        case (_, {"usageMetadata": dict() as usage}) if provider == PROVIDER_GEMINI:
            return TokenUsage(
                prompt_tokens=_count(usage.get("promptTokenCount")),
                response_tokens=_count(usage.get("candidatesTokenCount")),
                total_tokens=_count(usage.get("totalTokenCount")),
            )
        case (_, {"usage": dict() as usage}) if provider == PROVIDER_OPENAI:
            return TokenUsage(
                prompt_tokens=_count(usage.get("input_tokens")),
                response_tokens=_count(usage.get("output_tokens")),
                total_tokens=_count(usage.get("total_tokens")),
            )
        case (_, {"usage": dict() as usage}) if provider == PROVIDER_CLAUDE:
            prompt = _count(usage.get("input_tokens"))
            response = _count(usage.get("output_tokens"))
            total = prompt + response if prompt is not None and response is not None else None
            return TokenUsage(prompt_tokens=prompt, response_tokens=response, total_tokens=total)
        case _:
            return None
