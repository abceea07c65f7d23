"""Accumulation of a response body into one contiguous, readable buffer."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

STATUS_LINE_PREFIXES = (b"HTTP/1.0 ", b"HTTP/1.1 ")

# "HTTP/1.x NNN " precedes the reason phrase.
_REASON_OFFSET = 13


class ResponseAccumulator:
    """
    Collects body chunks during a transfer and serves them back afterwards.

    During the transfer, :meth:`write_chunk` is the engine's body sink and
    :meth:`write_header` its header sink. Once the transfer is done, the
    buffer is frozen and :meth:`read` drains it front to back.

    Example:
        acc = ResponseAccumulator()
        acc.write_chunk(b"Port 2121\\n")
        acc.freeze()
        acc.read(4)  # b"Port"
    """

    def __init__(self) -> None:
        self._buffer = bytearray()
        self._cursor = 0
        self._frozen = False
        self.reason: Optional[str] = None

    def write_chunk(self, chunk: bytes) -> int:
        """
        Append one received chunk.

        Returns:
            Number of bytes consumed (0 for an empty chunk)

        Raises:
            RuntimeError: If the buffer was already frozen
        """
        if self._frozen:
            raise RuntimeError("response buffer is frozen")

        size = len(chunk)
        if size == 0:
            return 0

        self._buffer += chunk
        return size

    def write_header(self, line: bytes) -> int:
        """
        Inspect one received header line.

        Only HTTP/1.0 and HTTP/1.1 status lines are of interest; their reason
        phrase is kept for diagnostics. Every other line is ignored.

        Returns:
            Length of ``line``, i.e. the line is always consumed
        """
        size = len(line)
        if line.startswith(STATUS_LINE_PREFIXES):
            if line.endswith(b"\r\n"):
                line = line[:-2]
            self.reason = line[_REASON_OFFSET:].decode("latin-1")

        return size

    def freeze(self) -> None:
        """Mark the body complete; no more chunks are accepted."""
        self._frozen = True

    def discard(self) -> None:
        """Drop all buffered data, e.g. after a failed transfer."""
        self._buffer = bytearray()
        self._cursor = 0
        self._frozen = True

    def read(self, size: int) -> bytes:
        """
        Consume up to ``size`` bytes from the front of the buffer.

        Returns:
            The bytes read; empty once the buffer is exhausted
        """
        if size <= 0 or self._cursor >= len(self._buffer):
            return b""

        end = min(self._cursor + size, len(self._buffer))
        data = bytes(self._buffer[self._cursor : end])
        self._cursor = end
        return data

    @property
    def size(self) -> int:
        """Total number of bytes received."""
        return len(self._buffer)

    @property
    def remaining(self) -> int:
        """Number of bytes not yet read."""
        return len(self._buffer) - self._cursor

    @property
    def frozen(self) -> bool:
        return self._frozen

    def getvalue(self) -> bytes:
        """Return the whole body, regardless of the read cursor."""
        return bytes(self._buffer)
