"""Session-wide token accounting.

A :class:`UsageTracker` is constructed explicitly and handed to each
provider, so tests and separate sessions can use isolated instances.
Counters only grow until :meth:`UsageTracker.reset` is called.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from decimal import Decimal

from llmbridge.core.interface.models import Usage

logger = logging.getLogger(__name__)

_MILLION = Decimal(1_000_000)

# (input, output) USD per million tokens, by vendor class
PRICING: dict[str, tuple[Decimal, Decimal]] = {
    "anthropic": (Decimal("3.00"), Decimal("15.00")),
    "gemini": (Decimal("1.25"), Decimal("10.00")),
}

UsageListener = Callable[["UsageTracker"], None]


class UsageTracker:
    """Thread-safe running total of input/output tokens with a cost estimate."""

    def __init__(
        self,
        vendor: str = "anthropic",
        *,
        input_price: Decimal | None = None,
        output_price: Decimal | None = None,
    ) -> None:
        default_in, default_out = PRICING.get(vendor, PRICING["anthropic"])
        self.vendor = vendor
        self.input_price = input_price if input_price is not None else default_in
        self.output_price = output_price if output_price is not None else default_out
        self._lock = threading.Lock()
        self._input_tokens = 0
        self._output_tokens = 0
        self._listeners: list[UsageListener] = []

    @property
    def input_tokens(self) -> int:
        with self._lock:
            return self._input_tokens

    @property
    def output_tokens(self) -> int:
        with self._lock:
            return self._output_tokens

    @property
    def total_tokens(self) -> int:
        with self._lock:
            return self._input_tokens + self._output_tokens

    @property
    def estimated_cost(self) -> Decimal:
        usage = self.snapshot()
        return (
            Decimal(usage.input_tokens) / _MILLION * self.input_price
            + Decimal(usage.output_tokens) / _MILLION * self.output_price
        )

    @property
    def formatted_cost(self) -> str:
        return f"${self.estimated_cost:.4f}"

    def snapshot(self) -> Usage:
        """Return both counters read under one lock."""
        with self._lock:
            return Usage(input_tokens=self._input_tokens, output_tokens=self._output_tokens)

    def record(self, usage: Usage) -> None:
        """Add one completed call's usage."""
        with self._lock:
            self._input_tokens += usage.input_tokens
            self._output_tokens += usage.output_tokens
        logger.debug(
            "Recorded usage: +%d in / +%d out", usage.input_tokens, usage.output_tokens
        )
        self._notify()

    def reset(self) -> None:
        """Zero the counters, e.g. when a new session starts."""
        with self._lock:
            self._input_tokens = 0
            self._output_tokens = 0
        self._notify()

    def add_listener(self, listener: UsageListener) -> None:
        """Call *listener* after every record or reset."""
        self._listeners.append(listener)

    def remove_listener(self, listener: UsageListener) -> None:
        self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
