"""OpenAITransport — Responses API through the OpenAI SDK, bearer credential."""
import time
from typing import Any, Optional

from openai import APIConnectionError, APIStatusError, AsyncOpenAI

from materials_lens.constants import DEFAULT_REQUEST_TIMEOUT, PROVIDER_OPENAI
from materials_lens.models import AnalysisRequest, RawResponse
from materials_lens.request_builder import openai_payload, openai_probe_payload
from materials_lens.transport.client import Transport


class OpenAITransport(Transport):
    provider = PROVIDER_OPENAI

    def __init__(self, api_key: Optional[str], timeout: float = DEFAULT_REQUEST_TIMEOUT) -> None:
        self._api_key = api_key
        self._timeout = timeout

    @property
    def api_key(self) -> str | None:
        return self._api_key

    async def send(self, request: AnalysisRequest) -> RawResponse:
        return await self._create(openai_payload(request))

    async def probe(self, model_id: str) -> RawResponse:
        return await self._create(openai_probe_payload(model_id))

    async def _create(self, payload: dict[str, Any]) -> RawResponse:
        client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout, max_retries=0)
        started = time.monotonic()
        try:
            raw = await client.responses.with_raw_response.create(**payload)
        except APIStatusError as exc:
            return RawResponse(
                status_code=exc.status_code,
                body=exc.response.text,
                error=exc.message,
                elapsed=time.monotonic() - started,
            )
        except APIConnectionError as exc:
            return RawResponse(
                status_code=None,
                error=str(exc),
                elapsed=time.monotonic() - started,
            )
        return RawResponse(
            status_code=raw.http_response.status_code,
            body=raw.http_response.text,
            elapsed=time.monotonic() - started,
        )
