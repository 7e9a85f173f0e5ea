"""Provider protocol — what the conversational core needs from a backend."""

from __future__ import annotations

from asyncio import Future
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from llmbridge.core.interface.config import ApiSettings
from llmbridge.core.interface.models import Message, ModelResponse, ToolDefinition, Usage

if TYPE_CHECKING:
    from llmbridge.core.streaming.stream import CompletionCallback, ProviderStream
    from llmbridge.providers.cancellation import CancellationToken


@runtime_checkable
class AIProvider(Protocol):
    """Interface shared by every model backend.

    Implementations translate the canonical conversation into their vendor's
    request schema and report results, stream events, usage and errors in
    canonical form.
    """

    name: str

    async def send_message(
        self,
        system_prompt: str | None,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        settings: ApiSettings | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> ModelResponse:
        """Send the conversation and return the complete response."""
        ...

    def send_message_streaming(
        self,
        system_prompt: str | None,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        settings: ApiSettings | None = None,
        cancel_token: CancellationToken | None = None,
        on_complete: CompletionCallback | None = None,
    ) -> ProviderStream:
        """Send the conversation and return a lazy stream of canonical events."""
        ...

    def cancel_current_request(self) -> None:
        """Cancel the in-flight request; a no-op when idle."""
        ...

    def stream_completed(self) -> Future[Usage | None]:
        """Completion future of the most recent streaming call."""
        ...

    async def aclose(self) -> None: ...
