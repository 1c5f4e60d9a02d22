"""Compose analysis requests and encode them for each provider's wire format."""
import base64
import json
from typing import Any, Iterable, Optional

from materials_lens.constants import (
    CLAUDE_MAX_TOKENS,
    CLAUDE_PROBE_MAX_TOKENS,
    CLAUDE_SCHEMA_INSTRUCTION,
    IMAGE_MIME_TYPE,
    JSON_MIME_TYPE,
    KNOWN_MATERIALS_NOTE,
    MSG_MODEL_MISSING,
    MSG_PROMPT_MISSING,
    OPENAI_SCHEMA_NAME,
    OPENAI_TEMPERATURE,
    PROBE_PROMPT,
    USER_CONTEXT_PREFIX,
)
from materials_lens.errors import ConfigurationError
from materials_lens.models import AnalysisRequest

# Gemini's OpenAPI-subset dialect: upper-case type names.
RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "summary": {
            "type": "OBJECT",
            "properties": {
                "total_estimated_animals": {"type": "NUMBER"},
                "item_count": {"type": "INTEGER"},
            },
        },
        "items": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "material": {"type": "STRING"},
                    "species": {"type": "STRING"},
                    "animal_count": {"type": "NUMBER"},
                    "confidence": {"type": "STRING"},
                    "production_summary": {"type": "STRING"},
                },
                "required": ["name", "confidence"],
            },
        },
    },
}


def json_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Convert the Gemini schema dialect to standard JSON Schema (lower-case types)."""
    def convert(node: Any) -> Any:
        match node:
            case dict():
                return {
                    key: (value.lower() if key == "type" and isinstance(value, str) else convert(value))
                    for key, value in node.items()
                }
            case list():
                return list(map(convert, node))
            case _:
                return node

    return convert(schema)


def compose_prompt(
    base_prompt: str,
    user_context: Optional[str] = None,
    cached_material_names: Iterable[str] = (),
) -> str:
    prompt = base_prompt
    match (user_context or "").strip():
        case "":
            pass
        case _:
            prompt += USER_CONTEXT_PREFIX + user_context
    names = [n for n in cached_material_names if n]
    match names:
        case []:
            pass
        case _:
            prompt += KNOWN_MATERIALS_NOTE % ", ".join(names)
    return prompt


def build_request(
    image_bytes: bytes,
    base_prompt: str,
    model_id: Optional[str],
    user_context: Optional[str] = None,
    cached_material_names: Iterable[str] = (),
) -> AnalysisRequest:
    match (base_prompt or "").strip():
        case "":
            raise ConfigurationError(MSG_PROMPT_MISSING)
        case _:
            pass
    match (model_id or "").strip():
        case "":
            raise ConfigurationError(MSG_MODEL_MISSING)
        case _:
            pass
    return AnalysisRequest(
        image_bytes=bytes(image_bytes),
        prompt_text=compose_prompt(base_prompt, user_context, cached_material_names),
        model_id=model_id.strip(),
        response_schema=RESPONSE_SCHEMA,
        mime_type=IMAGE_MIME_TYPE,
    )


def encode_image(request: AnalysisRequest) -> str:
    return base64.standard_b64encode(request.image_bytes).decode()


# ── provider payloads ─────────────────────────────────────────────────────────


def gemini_payload(request: AnalysisRequest) -> dict[str, Any]:
    return {
        "contents": [
            {
                "parts": [
                    {"text": request.prompt_text},
                    {"inline_data": {"mime_type": request.mime_type, "data": encode_image(request)}},
                ]
            }
        ],
        "generationConfig": {
            "response_mime_type": JSON_MIME_TYPE,
            "response_schema": request.response_schema,
        },
    }


def openai_payload(request: AnalysisRequest) -> dict[str, Any]:
    return {
        "model": request.model_id,
        "temperature": OPENAI_TEMPERATURE,
        "input": [
            {
                "role": "user",
                "content": [
                    {"type": "input_text", "text": request.prompt_text},
                    {
                        "type": "input_image",
                        "image_url": f"data:{request.mime_type};base64,{encode_image(request)}",
                    },
                ],
            }
        ],
        "text": {
            "format": {
                "type": "json_schema",
                "name": OPENAI_SCHEMA_NAME,
                "schema": json_schema(request.response_schema),
                "strict": False,
            }
        },
    }


def claude_payload(request: AnalysisRequest) -> dict[str, Any]:
    instruction = CLAUDE_SCHEMA_INSTRUCTION % json.dumps(json_schema(request.response_schema))
    return {
        "model": request.model_id,
        "max_tokens": CLAUDE_MAX_TOKENS,
        "messages": [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": request.mime_type,
                            "data": encode_image(request),
                        },
                    },
                    {"type": "text", "text": request.prompt_text + instruction},
                ],
            }
        ],
    }


def gemini_probe_payload() -> dict[str, Any]:
    return {"contents": [{"parts": [{"text": PROBE_PROMPT}]}]}


def openai_probe_payload(model_id: str) -> dict[str, Any]:
    return {"model": model_id, "input": PROBE_PROMPT}


def claude_probe_payload(model_id: str) -> dict[str, Any]:
    return {
        "model": model_id,
        "max_tokens": CLAUDE_PROBE_MAX_TOKENS,
        "messages": [{"role": "user", "content": PROBE_PROMPT}],
    }
