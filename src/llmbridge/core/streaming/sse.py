"""Server-sent events framing.

Groups raw transport lines into ``(event, data)`` frames:

- a blank line terminates the pending event;
- ``event: <type>`` sets the pending event's type;
- ``data: <payload>`` (or ``data:<payload>``) appends to the pending payload,
  with multiple data lines joined by ``\\n``;
- comment lines (``:``), ``id:`` and ``retry:`` are ignored.

An event that has a payload but no type is still dispatched with
``event=None``.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SSEFrame:
    event: str | None
    data: str


def strip_field(line: str, name: str) -> str | None:
    """Return the value of ``name:`` in *line*, or ``None`` if the field differs.

    A single space after the colon is optional and removed.
    """
    prefix = name + ":"
    if not line.startswith(prefix):
        return None
    value = line[len(prefix):]
    return value[1:] if value.startswith(" ") else value


@dataclass
class SSEFrameReader:
    """Line-fed state machine producing :class:`SSEFrame` objects."""

    _event: str | None = None
    _data: list[str] = field(default_factory=list)

    def feed(self, line: str) -> SSEFrame | None:
        """Consume one line; return a frame when the line completes one."""
        line = line.rstrip("\r\n")

        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        event = strip_field(line, "event")
        if event is not None:
            self._event = event
            return None

        data = strip_field(line, "data")
        if data is not None:
            self._data.append(data)
        return None

    def flush(self) -> SSEFrame | None:
        """Dispatch whatever is pending at end of stream."""
        return self._dispatch()

    def _dispatch(self) -> SSEFrame | None:
        frame: SSEFrame | None = None
        if self._data:
            frame = SSEFrame(event=self._event, data="\n".join(self._data))
        self._event = None
        self._data = []
        return frame
