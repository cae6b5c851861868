# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Request/response correlation over one interleaved text channel.

The spawned server's ``stdout`` and ``stderr`` are merged, so the inbound side
is a single unframed stream mixing diagnostic log lines with JSON-RPC frames.
:class:`StreamMultiplexer` lets many callers await responses concurrently over
that stream:

* each :meth:`StreamMultiplexer.send` writes one complete line under a lock
  and parks on its own :class:`PendingRequest`;
* :meth:`StreamMultiplexer.pump` reads chunks, decodes them incrementally,
  splits complete lines and classifies each one;
* a frame whose ``id`` matches an in-flight request settles it, frames carrying
  ``method`` (echoed requests and notifications) never do, and anything that
  does not look like a frame is kept as a diagnostic line.

A pending entry is settled exactly once, by whichever party removes it from the
in-flight map: the pump (response, malformed frame), the timeout path of the
waiting caller, or :meth:`StreamMultiplexer.fail_all`.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
import codecs
from dataclasses import dataclass, field
import json
import re
import secrets
import time
from types import MappingProxyType
from typing import Any, Protocol

import anyio
from mcp import types
from mcp.shared.exceptions import McpError

from ..config import DEFAULT_LOG_HISTORY, DEFAULT_REQUEST_TIMEOUT
from ..errors import MalformedFrameError, RequestTimeoutError, StreamClosedError
from ..utils import get_logger


LogSink = Callable[[str], None]

_FRAME_ID = re.compile(r"\"id\"\s*:\s*(\"(?:[^\"\\]|\\.)*\"|-?\d+)")


class ChunkReceiver(Protocol):
    """Inbound half of the channel (``anyio.abc.ByteReceiveStream`` compatible)."""

    async def receive(self) -> bytes | str: ...


class ChunkSender(Protocol):
    """Outbound half of the channel (``anyio.abc.ByteSendStream`` compatible)."""

    async def send(self, item: bytes) -> None: ...


@dataclass(slots=True)
class PendingRequest:
    """An outstanding request awaiting exactly one outcome."""

    request_id: str
    method: str
    sent_at: float = field(default_factory=time.monotonic)
    result: Any = None
    error: BaseException | None = None
    settled: bool = False
    _event: anyio.Event = field(default_factory=anyio.Event, repr=False)

    def resolve(self, result: Any) -> None:
        if self.settled:
            return
        self.settled = True
        self.result = result
        self._event.set()

    def reject(self, error: BaseException) -> None:
        if self.settled:
            return
        self.settled = True
        self.error = error
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


def _error_data(payload: Any) -> types.ErrorData:
    if isinstance(payload, Mapping):
        code = payload.get("code")
        message = payload.get("message")
        return types.ErrorData(
            code=code if isinstance(code, int) else types.INTERNAL_ERROR,
            message=str(message) if message is not None else "Unknown error",
            data=payload.get("data"),
        )
    return types.ErrorData(code=types.INTERNAL_ERROR, message=str(payload))


def salvage_frame_id(line: str) -> str | None:
    """Pull the ``id`` out of a frame-like line that is not valid JSON."""
    match = _FRAME_ID.search(line)
    if match is None:
        return None
    raw = match.group(1)
    if raw.startswith('"'):
        try:
            return json.loads(raw)
        except ValueError:
            return raw[1:-1]
    return raw


def is_frame_like(line: str) -> bool:
    return line.startswith("{") and '"jsonrpc"' in line


class StreamMultiplexer:
    """Correlate concurrent JSON-RPC requests over one duplex text channel.

    Args:
        sender: Writable side; receives one UTF-8 encoded line per request.
        receiver: Readable side; may deliver arbitrary chunk boundaries.
        request_timeout: Default seconds a :meth:`send` waits for its response.
        log_history: Diagnostic lines retained in :attr:`recent_logs`.
        log_sink: Called with every diagnostic line.
    """

    def __init__(
        self,
        sender: ChunkSender,
        receiver: ChunkReceiver,
        *,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        log_history: int = DEFAULT_LOG_HISTORY,
        log_sink: LogSink | None = None,
    ) -> None:
        self._sender = sender
        self._receiver = receiver
        self._request_timeout = request_timeout
        self._log_sink = log_sink
        self._in_flight: dict[str, PendingRequest] = {}
        self._write_lock = anyio.Lock()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._partial: list[str] = []
        self._closed = False
        self._close_reason: str | None = None
        self.recent_logs: deque[str] = deque(maxlen=log_history)
        self._logger = get_logger("mcpbridge.client.multiplexer")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> Mapping[str, PendingRequest]:
        return MappingProxyType(self._in_flight)

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def _new_request_id(self) -> str:
        while True:
            request_id = f"{time.monotonic_ns() // 1_000_000}-{secrets.token_hex(4)}"
            if request_id not in self._in_flight:
                return request_id

    async def _write_line(self, payload: dict[str, Any]) -> None:
        line = json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "\n"
        async with self._write_lock:
            await self._sender.send(line.encode("utf-8"))

    async def send(self, method: str, params: Mapping[str, Any] | None = None, *, timeout: float | None = None) -> Any:
        """Send a request and wait for its ``result``.

        Raises:
            mcp.shared.exceptions.McpError: the server answered with an error.
            RequestTimeoutError: no response within the timeout.
            StreamClosedError: the channel closed before a response arrived.
            MalformedFrameError: the response addressed to this request was not
                valid JSON.
        """
        if self._closed:
            raise StreamClosedError(
                f"Cannot send '{method}': {self._close_reason or 'channel closed'}", method=method
            )

        request_id = self._new_request_id()
        pending = PendingRequest(request_id=request_id, method=method)
        self._in_flight[request_id] = pending

        payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            payload["params"] = dict(params)

        try:
            await self._write_line(payload)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError, OSError) as exc:
            if self._in_flight.pop(request_id, None) is pending:
                pending.reject(StreamClosedError(f"Failed to write '{method}': {exc}", method=method, request_id=request_id))
            return self._raise_outcome(pending)

        wait_for = self._request_timeout if timeout is None else timeout
        try:
            with anyio.move_on_after(wait_for):
                await pending.wait()
        finally:
            # Timed out or cancelled by the caller's own scope.
            if self._in_flight.get(request_id) is pending:
                del self._in_flight[request_id]
                pending.reject(
                    RequestTimeoutError(
                        f"Request '{method}' timed out after {wait_for:g}s",
                        method=method,
                        request_id=request_id,
                    )
                )
        return self._raise_outcome(pending)

    @staticmethod
    def _raise_outcome(pending: PendingRequest) -> Any:
        if pending.error is not None:
            raise pending.error
        return pending.result

    async def notify(self, method: str, params: Mapping[str, Any] | None = None) -> None:
        """Write a notification; nothing is awaited in return."""
        if self._closed:
            raise StreamClosedError(f"Cannot notify '{method}': channel closed", method=method)
        payload: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            payload["params"] = dict(params)
        try:
            await self._write_line(payload)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError, OSError) as exc:
            raise StreamClosedError(f"Failed to write '{method}': {exc}", method=method) from exc

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def feed(self, chunk: bytes | str) -> None:
        """Accept one chunk of inbound data and dispatch every completed line."""
        text = self._decoder.decode(chunk) if isinstance(chunk, (bytes, bytearray)) else chunk
        if not text:
            return
        if "\n" not in text:
            self._partial.append(text)
            return
        head, *lines, tail = text.split("\n")
        self._partial.append(head)
        completed = "".join(self._partial)
        self._partial = [tail] if tail else []
        self._handle_line(completed)
        for line in lines:
            self._handle_line(line)

    def _flush(self) -> None:
        remainder = "".join(self._partial) + self._decoder.decode(b"", final=True)
        self._partial = []
        if remainder:
            self._handle_line(remainder)

    def _handle_line(self, raw: str) -> None:
        line = raw.strip()
        if not line:
            return
        if not is_frame_like(line):
            self._record_log(line)
            return

        try:
            frame = json.loads(line)
        except ValueError as exc:
            self._handle_malformed(line, exc)
            return

        if not isinstance(frame, dict):
            self._record_log(line)
            return
        if "method" in frame:
            self._logger.debug("Discarding inbound %s frame", frame.get("method"))
            return

        frame_id = frame.get("id")
        pending = self._in_flight.pop(str(frame_id), None) if frame_id is not None else None
        if pending is None:
            self._logger.warning("Dropping response for unknown request id %r", frame_id)
            return

        error = frame.get("error")
        if error is not None:
            pending.reject(McpError(_error_data(error)))
        else:
            pending.resolve(frame.get("result"))

    def _handle_malformed(self, line: str, exc: ValueError) -> None:
        request_id = salvage_frame_id(line)
        pending = self._in_flight.pop(request_id, None) if request_id is not None else None
        if pending is None:
            self._record_log(line)
            return
        self._logger.warning("Malformed response for request %s (%s): %s", request_id, pending.method, exc)
        pending.reject(
            MalformedFrameError(
                f"Malformed response to '{pending.method}': {exc}",
                method=pending.method,
                request_id=request_id,
            )
        )

    def _record_log(self, line: str) -> None:
        self.recent_logs.append(line)
        if self._log_sink is not None:
            self._log_sink(line)
        else:
            self._logger.debug("[server] %s", line)

    async def pump(self) -> None:
        """Read the inbound channel until it ends, then fail whatever is pending."""
        reason = "Server output stream ended"
        try:
            while True:
                try:
                    chunk = await self._receiver.receive()
                except anyio.EndOfStream:
                    break
                self.feed(chunk)
            self._flush()
        except (anyio.ClosedResourceError, anyio.BrokenResourceError, OSError) as exc:
            reason = f"Server output stream failed: {exc}"
            self._logger.warning(reason)
        finally:
            self.fail_all(reason)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def fail_all(self, reason: str) -> None:
        """Reject every pending request and refuse further sends."""
        if not self._closed:
            self._closed = True
            self._close_reason = reason
        pending = list(self._in_flight.values())
        self._in_flight.clear()
        for entry in pending:
            entry.reject(
                StreamClosedError(
                    f"{reason} before '{entry.method}' completed",
                    method=entry.method,
                    request_id=entry.request_id,
                )
            )
        if pending:
            self._logger.info("Rejected %d pending request(s): %s", len(pending), reason)

    async def aclose(self) -> None:
        self.fail_all("Multiplexer closed")
        aclose = getattr(self._sender, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except (anyio.ClosedResourceError, anyio.BrokenResourceError, OSError):
                self._logger.debug("Outbound channel already closed")


__all__ = [
    "ChunkReceiver",
    "ChunkSender",
    "LogSink",
    "PendingRequest",
    "StreamMultiplexer",
    "is_frame_like",
    "salvage_frame_id",
]
