"""Server-sent event frame decoding.

A frame is ``data: <json>`` followed by one of ``\\n\\n``, ``\\r\\r`` or
``\\r\\n\\r\\n``. The payload is a single line. Frames may be split across
any number of transport reads, so the decoder buffers text until a whole
frame is available.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from typing import Any

from ..constants import FRAME_PREFIX, FRAME_TERMINATORS
from ..errors import FrameParseError, TruncatedFrameError
from ..logger import logger


def _find_line_break(text: str, start: int) -> int:
    """Index of the first ``\\r`` or ``\\n`` at or after ``start``, -1 if none."""
    positions = [pos for pos in (text.find("\n", start), text.find("\r", start)) if pos != -1]
    return min(positions) if positions else -1


class FrameDecoder:
    """Incremental frame decoder over a text buffer.

    ``feed`` appends transport text; ``frames`` yields every JSON value that
    is complete in the buffer, consuming each frame as it is yielded;
    ``close`` checks that nothing but whitespace is left once the transport
    has ended.

    Text that does not start with ``data: ``, or whose line break is not one
    of the accepted terminators, never forms a frame. It stays in the buffer
    and is reported by ``close``.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self.frames_decoded = 0

    @property
    def buffer(self) -> str:
        return self._buffer

    def feed(self, text: str) -> None:
        self._buffer += text

    def frames(self) -> Iterator[Any]:
        while True:
            match = self._match_frame()
            if match is None:
                return
            payload, consumed = match
            try:
                value = json.loads(payload)
            except json.JSONDecodeError as e:
                logger.warning(f"Malformed stream frame after {self.frames_decoded} frames: {payload!r}")
                raise FrameParseError(payload) from e
            self._buffer = self._buffer[consumed:]
            self.frames_decoded += 1
            yield value

    def close(self) -> None:
        if self._buffer.strip():
            logger.warning(
                f"Stream ended with unterminated text after {self.frames_decoded} frames: {self._buffer!r}"
            )
            raise TruncatedFrameError(self._buffer)
        logger.debug(f"Stream closed cleanly after {self.frames_decoded} frames")

    def _match_frame(self) -> tuple[str, int] | None:
        """Return ``(payload, consumed_length)`` for the frame at the buffer head.

        ``None`` means no complete frame yet: the prefix is missing, the
        payload line has not ended, or the terminator is still partial.
        """
        buffer = self._buffer
        if not buffer.startswith(FRAME_PREFIX):
            return None

        start = len(FRAME_PREFIX)
        end = _find_line_break(buffer, start)
        if end == -1:
            return None

        for terminator in FRAME_TERMINATORS:
            if buffer.startswith(terminator, end):
                return buffer[start:end], end + len(terminator)
        return None


def iter_frames(source: Iterable[str]) -> Iterator[Any]:
    """Decode a synchronous stream of text reads into JSON values."""
    decoder = FrameDecoder()
    for text in source:
        decoder.feed(text)
        yield from decoder.frames()
    decoder.close()


async def aiter_frames(source: AsyncIterable[str]) -> AsyncIterator[Any]:
    """Decode an asynchronous stream of text reads into JSON values."""
    decoder = FrameDecoder()
    async for text in source:
        decoder.feed(text)
        for value in decoder.frames():
            yield value
    decoder.close()
