"""Analyzer — runs one image through validate → build → send → parse → reconcile.

Each call owns its own AnalysisRun; the material cache is the only state
shared between concurrent calls. Exactly one of on_success / on_error is
invoked per call. There is at most one network attempt and no retry.
"""
import asyncio
import dataclasses
import inspect
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from materials_lens.cache import MaterialCache
from materials_lens.classifier import ErrorKind, classify, status_hint
from materials_lens.config import Config
from materials_lens.constants import (
    API_KEY_MIN_LENGTH,
    API_KEY_PLACEHOLDER,
    DEFAULT_PROMPT,
    MSG_ANALYSIS_COMPLETE,
    MSG_ANALYSIS_START,
    MSG_API_ERROR,
    MSG_IMAGE_EMPTY,
    MSG_KEY_MISSING,
    MSG_KEY_OK,
    MSG_KEY_SHORT,
    MSG_MODEL_MISSING,
    MSG_NETWORK_ERROR,
    MSG_PARSE_ERROR,
    MSG_PROBE_OK,
    MSG_REQUEST_FAILED,
    MSG_REQUEST_OK,
    MSG_TICKER_SENDING,
    MSG_TOKEN_USAGE,
    MSG_USAGE_LIMIT,
    PROVIDER_LABELS,
)
from materials_lens.errors import (
    AnalysisError,
    ConfigurationError,
    EmptyImageError,
    MalformedPayload,
    TransportError,
)
from materials_lens.models import AnalysisRequest, AnalysisResult, RawResponse
from materials_lens.parser import excerpt, extract_usage, parse_response
from materials_lens.reconciler import reconcile
from materials_lens.request_builder import build_request
from materials_lens.ticker import OnStatus, StatusTicker
from materials_lens.transport.client import Transport

logger = logging.getLogger(__name__)


class AnalysisState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    BUILDING = "building"
    SENDING = "sending"
    AWAITING_RESPONSE = "awaiting_response"
    PARSING = "parsing"
    RECONCILING = "reconciling"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class AnalysisFailure:
    kind: ErrorKind
    message: str
    detail: str

    @property
    def preserve_input(self) -> bool:
        """Quota errors keep the captured image and user context; fatal ones discard them."""
        return self.kind is ErrorKind.TRANSIENT


@dataclass
class AnalysisRun:
    state: AnalysisState = AnalysisState.IDLE
    history: list[AnalysisState] = field(default_factory=lambda: [AnalysisState.IDLE])
    result: Optional[AnalysisResult] = None
    failure: Optional[AnalysisFailure] = None
    cache_modified: bool = False

    def advance(self, state: AnalysisState) -> None:
        logger.debug("Analysis state: %s -> %s", self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def fail(self, failure: AnalysisFailure) -> None:
        self.failure = failure
        self.advance(AnalysisState.ERROR)


@dataclass(frozen=True)
class AnalyzerSettings:
    model_id: str
    base_prompt: str = DEFAULT_PROMPT
    log_raw_response: bool = False

    @classmethod
    def from_config(cls, config: Config) -> "AnalyzerSettings":
        return cls(
            model_id=config.model_id,
            base_prompt=config.base_prompt,
            log_raw_response=config.log_raw_response,
        )


OnSuccess = Callable[[AnalysisResult], Any]
OnError = Callable[[AnalysisFailure], Any]


def transport_error(raw: RawResponse) -> TransportError:
    match raw.status_code:
        case None:
            message = MSG_NETWORK_ERROR % (raw.error or "request failed")
        case code:
            message = MSG_API_ERROR % (raw.error, code, excerpt(raw.body))
            match status_hint(code):
                case None:
                    pass
                case hint:
                    message += "\n\n" + hint
    return TransportError(message, status_code=raw.status_code, body=raw.body)


def to_failure(exc: Exception) -> AnalysisFailure:
    match exc:
        case TransportError():
            kind = classify(f"{exc} {exc.body}", exc.status_code)
        case _:
            kind = ErrorKind.FATAL
    match kind:
        case ErrorKind.TRANSIENT:
            return AnalysisFailure(kind=kind, message=MSG_USAGE_LIMIT, detail=str(exc))
        case _:
            return AnalysisFailure(kind=kind, message=str(exc), detail=str(exc))


async def _deliver(callback: Callable[[Any], Any], value: Any) -> None:
    outcome = callback(value)
    if inspect.isawaitable(outcome):
        await outcome


class Analyzer:
    """Image analysis entry point. Transport and cache are injected, never global."""

    def __init__(
        self,
        transport: Transport,
        cache: MaterialCache,
        settings: AnalyzerSettings,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._settings = settings

    @property
    def provider_label(self) -> str:
        return PROVIDER_LABELS.get(self._transport.provider, self._transport.provider)

    # ── validation ────────────────────────────────────────────────────────────

    def validate_credentials(self) -> None:
        match self._transport.api_key:
            case str() as key if key.strip() and key != API_KEY_PLACEHOLDER:
                pass
            case _:
                raise ConfigurationError(MSG_KEY_MISSING % self.provider_label)
        match len(key) < API_KEY_MIN_LENGTH:
            case True:
                logger.warning(MSG_KEY_SHORT, len(key))
            case False:
                logger.debug(MSG_KEY_OK, len(key))
        match (self._settings.model_id or "").strip():
            case "":
                raise ConfigurationError(MSG_MODEL_MISSING)
            case _:
                pass

    def _validate(self, image_bytes: bytes) -> None:
        self.validate_credentials()
        match image_bytes:
            case bytes() | bytearray() | memoryview() if len(image_bytes) > 0:
                pass
            case _:
                raise EmptyImageError(MSG_IMAGE_EMPTY)

    # ── pipeline steps ────────────────────────────────────────────────────────

    async def _send(
        self, request: AnalysisRequest, run: AnalysisRun, on_status: Optional[OnStatus]
    ) -> RawResponse:
        match on_status:
            case None:
                ticker = None
            case callback:
                ticker = StatusTicker(callback, MSG_TICKER_SENDING % self.provider_label)
                await ticker.start()
        run.advance(AnalysisState.AWAITING_RESPONSE)
        started = time.monotonic()
        try:
            raw = await self._transport.send(request)
        finally:
            match ticker:
                case None:
                    pass
                case t:
                    await t.stop()
        elapsed = time.monotonic() - started

        match raw.ok:
            case True:
                logger.info(MSG_REQUEST_OK, elapsed)
            case False:
                logger.warning(MSG_REQUEST_FAILED, elapsed)
                raise transport_error(raw)
        return raw

    def _parse(self, raw: RawResponse) -> AnalysisResult:
        match self._settings.log_raw_response:
            case True:
                logger.info("Full API response:\n%s", raw.body)
            case False:
                logger.debug("Response preview: %s", excerpt(raw.body))

        match extract_usage(raw.body, self._transport.provider):
            case None:
                pass
            case usage:
                logger.info(
                    MSG_TOKEN_USAGE,
                    usage.prompt_tokens,
                    usage.response_tokens,
                    usage.total_tokens,
                )

        try:
            return parse_response(raw.body, self._transport.provider)
        except MalformedPayload as exc:
            raise MalformedPayload(
                MSG_PARSE_ERROR % exc + "\n\nResponse text: " + excerpt(raw.body)
            ) from exc
        except AnalysisError as exc:
            raise type(exc)(MSG_PARSE_ERROR % exc) from exc

    # ── public API ────────────────────────────────────────────────────────────

    async def analyze(
        self,
        image_bytes: bytes,
        on_success: OnSuccess,
        on_error: OnError,
        user_context: Optional[str] = None,
        prompt_override: Optional[str] = None,
        on_status: Optional[OnStatus] = None,
    ) -> AnalysisRun:
        run = AnalysisRun()
        try:
            run.advance(AnalysisState.VALIDATING)
            self._validate(image_bytes)
            logger.info(
                MSG_ANALYSIS_START,
                self._settings.model_id,
                len(image_bytes),
                len(image_bytes) / 1024,
            )

            run.advance(AnalysisState.BUILDING)
            request = build_request(
                image_bytes,
                self._base_prompt(prompt_override),
                self._settings.model_id,
                user_context=user_context,
                cached_material_names=self._cache.material_names(),
            )

            run.advance(AnalysisState.SENDING)
            raw = await self._send(request, run, on_status)

            run.advance(AnalysisState.PARSING)
            result = self._parse(raw)

            run.advance(AnalysisState.RECONCILING)
            items, run.cache_modified = reconcile(result.items, self._cache)
            run.result = dataclasses.replace(result, items=tuple(items))
            run.advance(AnalysisState.DONE)
        except AnalysisError as exc:
            run.fail(to_failure(exc))
        except Exception as exc:
            logger.exception("Unexpected error during analysis")
            run.fail(AnalysisFailure(kind=ErrorKind.FATAL, message=f"Error: {exc}", detail=repr(exc)))

        match (run.result, run.failure):
            case (AnalysisResult() as result, None):
                logger.info(
                    MSG_ANALYSIS_COMPLETE,
                    result.total_items,
                    result.total_estimated_animal_count,
                )
                await _deliver(on_success, result)
            case (_, AnalysisFailure(kind=ErrorKind.TRANSIENT) as failure):
                logger.warning("API usage limit exceeded: %s", failure.detail)
                await _deliver(on_error, failure)
            case (_, failure):
                logger.error("Analysis failed: %s", failure.detail)
                await _deliver(on_error, failure)
        return run

    def start(
        self,
        image_bytes: bytes,
        on_success: OnSuccess,
        on_error: OnError,
        user_context: Optional[str] = None,
        prompt_override: Optional[str] = None,
        on_status: Optional[OnStatus] = None,
    ) -> "asyncio.Task[AnalysisRun]":
        """Schedule analyze() and return the task as a cancellable handle."""
        return asyncio.create_task(
            self.analyze(
                image_bytes,
                on_success,
                on_error,
                user_context=user_context,
                prompt_override=prompt_override,
                on_status=on_status,
            )
        )

    async def check_key(self) -> Optional[AnalysisFailure]:
        """Probe the provider with a tiny text request. None means the key works."""
        try:
            self.validate_credentials()
            raw = await self._transport.probe(self._settings.model_id)
            match raw.ok:
                case True:
                    logger.info(MSG_PROBE_OK)
                    return None
                case False:
                    raise transport_error(raw)
        except AnalysisError as exc:
            return to_failure(exc)
