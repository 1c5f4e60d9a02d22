"""GeminiTransport — generateContent over plain HTTPS with the key in the query string."""
import logging
import time
from typing import Any, Optional

import httpx

from materials_lens.constants import (
    DEFAULT_REQUEST_TIMEOUT,
    GEMINI_API_VERSION,
    GEMINI_BASE_URL,
    GEMINI_ENDPOINT,
    PROVIDER_GEMINI,
)
from materials_lens.models import AnalysisRequest, RawResponse
from materials_lens.request_builder import gemini_payload, gemini_probe_payload
from materials_lens.transport.client import Transport

logger = logging.getLogger(__name__)


class GeminiTransport(Transport):
    provider = PROVIDER_GEMINI

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        base_url: str = GEMINI_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_key = api_key
        self._timeout = timeout
        self._base_url = base_url.rstrip("/")
        self._client = client

    @property
    def api_key(self) -> str | None:
        return self._api_key

    def endpoint(self, model_id: str) -> str:
        return GEMINI_ENDPOINT.format(
            base=self._base_url, version=GEMINI_API_VERSION, model=model_id
        )

    async def send(self, request: AnalysisRequest) -> RawResponse:
        return await self._post(request.model_id, gemini_payload(request))

    async def probe(self, model_id: str) -> RawResponse:
        return await self._post(model_id, gemini_probe_payload())

    async def _post(self, model_id: str, payload: dict[str, Any]) -> RawResponse:
        started = time.monotonic()
        try:
            match self._client:
                case None:
                    async with httpx.AsyncClient(timeout=self._timeout) as client:
                        response = await self._request(client, model_id, payload)
                case client:
                    response = await self._request(client, model_id, payload)
        except httpx.HTTPError as exc:
            logger.debug("Gemini request failed: %r", exc)
            return RawResponse(
                status_code=None,
                error=str(exc) or type(exc).__name__,
                elapsed=time.monotonic() - started,
            )

        elapsed = time.monotonic() - started
        match response.is_success:
            case True:
                return RawResponse(status_code=response.status_code, body=response.text, elapsed=elapsed)
            case False:
                return RawResponse(
                    status_code=response.status_code,
                    body=response.text,
                    error=f"HTTP/1.1 {response.status_code} {response.reason_phrase}",
                    elapsed=elapsed,
                )

    async def _request(
        self, client: httpx.AsyncClient, model_id: str, payload: dict[str, Any]
    ) -> httpx.Response:
        return await client.post(
            self.endpoint(model_id),
            params={"key": self._api_key or ""},
            json=payload,
        )
