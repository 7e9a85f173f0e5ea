"""Shared machinery for HTTP-backed providers.

Subclasses supply the transpiler, the request (URL, headers, auth) and a
stream decoder; everything else is common:

- resolving per-request settings against the configured defaults,
- racing every network wait against the request's cancellation token,
- classifying HTTP failures into :class:`ProviderError`,
- recording usage exactly once per call and resolving the stream's
  completion channel,
- tracing each call as an OpenTelemetry span.
"""

import logging
from abc import ABC, abstractmethod
from asyncio import Future
from collections.abc import AsyncGenerator
from typing import Any, Protocol

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from llmbridge.core.interface.config import DEFAULT_MODELS, ApiSettings, ProviderConfig
from llmbridge.core.interface.events import StreamEvent
from llmbridge.core.interface.models import Message, ModelResponse, ToolDefinition, Usage
from llmbridge.core.interface.transpiler import Transpiler
from llmbridge.core.streaming.stream import CompletionCallback, ProviderStream, StreamCompletion
from llmbridge.core.usage import UsageTracker
from llmbridge.providers.cancellation import (
    CancellationSource,
    CancellationToken,
    RequestRegistry,
)
from llmbridge.providers.errors import ProviderError, classify_http_error
from llmbridge.utils.telemetry import (
    ATTR_ERROR_KIND,
    ATTR_HTTP_STATUS,
    ATTR_MODEL,
    ATTR_PROVIDER,
    ATTR_STOP_REASON,
    ATTR_STREAMING,
    ATTR_TOOL_COUNT,
    get_tracer,
    record_usage,
)

logger = logging.getLogger(__name__)

_tracer = get_tracer(__name__)


class StreamDecoder(Protocol):
    """Turns transport lines into canonical stream events."""

    @property
    def usage(self) -> Usage | None: ...

    def feed_line(self, line: str) -> list[StreamEvent]: ...

    def finish(self) -> list[StreamEvent]: ...


class HTTPProvider(ABC):
    """Base class for providers that talk to a vendor over HTTP.

    Usage::

        async with AnthropicProvider(config) as provider:
            response = await provider.send_message("Be brief.", [Message.user("Hi")])

            async for event in provider.send_message_streaming(None, history):
                ...
    """

    name: str = ""
    vendor: str = ""
    transpiler: Transpiler

    def __init__(
        self,
        config: ProviderConfig,
        *,
        usage_tracker: UsageTracker | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        # a config without explicit defaults gets the vendor's default model
        if "defaults" not in config.model_fields_set and self.vendor in DEFAULT_MODELS:
            config = config.model_copy(
                update={"defaults": ApiSettings(model=DEFAULT_MODELS[self.vendor])}
            )
        self.config = config
        self.usage_tracker = usage_tracker or UsageTracker(self.vendor)
        self._client = client
        self._owns_client = client is None
        self._requests = RequestRegistry()
        self._last_completion: StreamCompletion | None = None

    async def __aenter__(self) -> "HTTPProvider":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.config.timeout))
        return self._client

    # -- public API ------------------------------------------------------------

    async def send_message(
        self,
        system_prompt: str | None,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        settings: ApiSettings | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ModelResponse:
        """Send a conversation and wait for the complete response.

        Raises:
            ProviderError: on a missing API key, a non-2xx status or a
                malformed response body.
            RequestCancelledError: if the request was cancelled.
        """
        resolved = self._resolve_settings(settings)
        api_key = self._require_api_key()
        body = self.transpiler.to_provider(system_prompt, messages, tools, resolved, stream=False)
        request = self._build_request(resolved, body, api_key, streaming=False)

        source = self._begin_request(cancel_token)
        with _tracer.start_as_current_span("llmbridge.send_message") as span:
            self._annotate(span, resolved, tools, streaming=False)
            try:
                response = await source.token.race(self._http().send(request))
                if not response.is_success:
                    raise classify_http_error(response.status_code, response.text, self.name)
                result = self._decode_response(response)
            except ProviderError as exc:
                _annotate_error(span, exc)
                raise
            finally:
                self._end_request(source)

            if result.usage is not None:
                self.usage_tracker.record(result.usage)
                record_usage(span, result.usage.input_tokens, result.usage.output_tokens)
            if result.stop_reason:
                span.set_attribute(ATTR_STOP_REASON, result.stop_reason)
            return result

    def send_message_streaming(
        self,
        system_prompt: str | None,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        settings: ApiSettings | None = None,
        cancel_token: CancellationToken | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> ProviderStream:
        """Start a streaming call; iterating the result drives the network reads.

        The request is only sent once iteration begins. A missing API key is
        reported immediately.
        """
        resolved = self._resolve_settings(settings)
        api_key = self._require_api_key()
        body = self.transpiler.to_provider(system_prompt, messages, tools, resolved, stream=True)
        request = self._build_request(resolved, body, api_key, streaming=True)

        completion = StreamCompletion(on_complete)
        self._last_completion = completion
        events = self._stream_events(request, resolved, tools, cancel_token, completion)
        return ProviderStream(events, completion)

    def cancel_current_request(self) -> None:
        """Cancel the in-flight request, if any."""
        self._requests.cancel_current()

    @property
    def last_stream_completion(self) -> "Future[Usage | None] | None":
        """Completion future of the most recent streaming call."""
        if self._last_completion is None:
            return None
        return self._last_completion.future

    def stream_completed(self) -> "Future[Usage | None]":
        future = self.last_stream_completion
        if future is None:
            msg = "No streaming call has been started"
            raise RuntimeError(msg)
        return future

    # -- subclass hooks --------------------------------------------------------

    @abstractmethod
    def _build_request(
        self,
        settings: ApiSettings,
        body: dict[str, Any],
        api_key: str,
        *,
        streaming: bool,
    ) -> httpx.Request:
        """Build the vendor HTTP request for *body*."""

    @abstractmethod
    def _new_stream_decoder(self, settings: ApiSettings) -> StreamDecoder:
        """Return a fresh decoder for one streaming call."""

    # -- internals -------------------------------------------------------------

    async def _stream_events(
        self,
        request: httpx.Request,
        settings: ApiSettings,
        tools: list[ToolDefinition] | None,
        cancel_token: CancellationToken | None,
        completion: StreamCompletion,
    ) -> AsyncGenerator[StreamEvent, None]:
        source = self._begin_request(cancel_token)
        decoder = self._new_stream_decoder(settings)
        response: httpx.Response | None = None

        span = _tracer.start_span("llmbridge.send_message_streaming")
        self._annotate(span, settings, tools, streaming=True)
        try:
            response = await source.token.race(self._http().send(request, stream=True))
            if not response.is_success:
                raw = await response.aread()
                raise classify_http_error(
                    response.status_code, raw.decode("utf-8", errors="replace"), self.name
                )

            lines = response.aiter_lines()
            while True:
                source.token.raise_if_cancelled()
                line = await source.token.race(anext(lines, None))
                if line is None:
                    break
                for event in decoder.feed_line(line):
                    yield event

            for event in decoder.finish():
                yield event
        except ProviderError as exc:
            _annotate_error(span, exc)
            raise
        finally:
            if response is not None:
                await response.aclose()
            self._end_request(source)

            usage = decoder.usage
            if usage is not None:
                self.usage_tracker.record(usage)
                record_usage(span, usage.input_tokens, usage.output_tokens)
            completion.complete(usage)
            span.end()

    def _resolve_settings(self, settings: ApiSettings | None) -> ApiSettings:
        return settings if settings is not None else self.config.defaults

    def _require_api_key(self) -> str:
        if not self.config.api_key:
            raise ProviderError.missing_api_key(self.name)
        return self.config.api_key

    def _begin_request(self, cancel_token: CancellationToken | None) -> CancellationSource:
        source = CancellationSource.linked(cancel_token)
        self._requests.register(source)
        return source

    def _end_request(self, source: CancellationSource) -> None:
        self._requests.unregister(source)
        source.close()

    def _decode_response(self, response: httpx.Response) -> ModelResponse:
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError.malformed_response(str(exc)) from exc
        if not isinstance(payload, dict):
            raise ProviderError.malformed_response("expected a JSON object")
        try:
            return self.transpiler.from_provider(payload)
        except ValidationError as exc:
            raise ProviderError.malformed_response(str(exc)) from exc

    def _annotate(
        self,
        span: trace.Span,
        settings: ApiSettings,
        tools: list[ToolDefinition] | None,
        *,
        streaming: bool,
    ) -> None:
        span.set_attribute(ATTR_PROVIDER, self.vendor)
        span.set_attribute(ATTR_MODEL, settings.model)
        span.set_attribute(ATTR_STREAMING, streaming)
        span.set_attribute(ATTR_TOOL_COUNT, len(tools or []))


def _annotate_error(span: trace.Span, error: ProviderError) -> None:
    span.set_attribute(ATTR_ERROR_KIND, error.kind.value)
    if error.status_code is not None:
        span.set_attribute(ATTR_HTTP_STATUS, error.status_code)
