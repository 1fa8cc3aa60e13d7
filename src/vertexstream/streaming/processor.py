"""Entry points that turn a response body into results for the caller.

``process_stream`` wires the pipeline for a streaming body::

    text reads -> frames -> fill defaults -> tee -+-> live stream (caller)
                                                  +-> aggregator -> response

``process_unary`` applies the same default-filling to a single JSON body.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable, Iterable, Iterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ..content import GenerateContentResponse, GenerateContentResult
from ..errors import FrameParseError, GenerativeAIError, StreamInterruptedError
from ..logger import logger
from .aggregator import aaggregate_stream, aggregate_responses
from .frame_decoder import aiter_frames, iter_frames
from .normalize import fill_candidate_defaults
from .tee import AsyncTee, Tee


@dataclass
class StreamGenerateContentResult:
    """Result of a streaming call.

    Attributes:
        stream: live chunks, in arrival order; can be iterated once.
        response: task resolving to the merged response once the body has
            been fully read. Raises the decode error if the stream failed.
    """

    stream: AsyncIterator[GenerateContentResponse]
    response: asyncio.Task


class SyncStreamGenerateContentResult:
    """Synchronous counterpart of :class:`StreamGenerateContentResult`.

    ``response`` drains the internal branch on first access; the outcome,
    value or error, is kept for later accesses.

    Nothing is read until one of them is used, so a result that is dropped
    unread still holds the transport. Call ``close`` (or use the result as a
    context manager) to release it.
    """

    def __init__(self, tee: Tee[GenerateContentResponse]) -> None:
        self._tee = tee
        self.stream, self._aggregate_branch = tee.branches
        self._response: GenerateContentResponse | None = None
        self._error: BaseException | None = None
        self._resolved = False

    @property
    def response(self) -> GenerateContentResponse:
        if not self._resolved:
            self._resolved = True
            try:
                self._response = aggregate_responses(self._aggregate_branch)
            except Exception as e:
                self._error = e
        if self._error is not None:
            raise self._error
        return self._response

    def close(self) -> None:
        """Stop both branches and release the transport.

        A ``response`` that was not resolved yet raises
        :class:`StreamInterruptedError` afterwards.
        """
        if not self._resolved:
            self._resolved = True
            self._error = StreamInterruptedError()
        self._tee.close()

    def __enter__(self) -> SyncStreamGenerateContentResult:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _to_chunk(value: Any) -> GenerateContentResponse:
    if not isinstance(value, dict):
        # Valid JSON, but not a response object
        raise FrameParseError(json.dumps(value))
    try:
        return GenerateContentResponse.model_validate(fill_candidate_defaults(value))
    except ValidationError as e:
        raise FrameParseError(json.dumps(value)) from e


def _copy_chunk(chunk: GenerateContentResponse) -> GenerateContentResponse:
    return chunk.model_copy(deep=True)


async def _achunks(
    source: AsyncIterable[str],
    on_close: Callable[[], Awaitable[None]] | None,
) -> AsyncIterator[GenerateContentResponse]:
    try:
        async with aclosing(aiter_frames(source)) as frames:
            async for value in frames:
                yield _to_chunk(value)
    finally:
        if on_close is not None:
            await on_close()


class _SyncChunkSource:
    """Chunk iterator over text reads that runs ``on_close`` exactly once.

    Unlike a generator, ``close`` releases the transport even when nothing
    was ever read.
    """

    def __init__(self, source: Iterable[str], on_close: Callable[[], None] | None) -> None:
        self._frames = iter_frames(source)
        self._on_close = on_close
        self._closed = False

    def __iter__(self) -> Iterator[GenerateContentResponse]:
        return self

    def __next__(self) -> GenerateContentResponse:
        try:
            return _to_chunk(next(self._frames))
        except Exception:
            # end of body or a decode error; either way the pass is over
            self.close()
            raise

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._frames.close()
        if self._on_close is not None:
            self._on_close()


def _log_aggregation_outcome(task: asyncio.Task) -> None:
    # Retrieving the exception here keeps asyncio from reporting it as
    # unhandled when the caller only reads the live stream.
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Stream aggregation failed: {error!r}")


def process_stream(
    source: AsyncIterable[str],
    on_close: Callable[[], Awaitable[None]] | None = None,
) -> StreamGenerateContentResult:
    """Process a streaming response body.

    Must be called from a running event loop: aggregation starts right away
    as a task, so the merged response is produced even if the caller never
    reads the live stream.

    Args:
        source: text reads of the response body, e.g. ``response.aiter_text()``.
        on_close: awaited once when the decode pass ends, whether it finished,
            failed or was abandoned.
    """
    loop = asyncio.get_running_loop()
    tee = AsyncTee(_achunks(source, on_close), n=2, copy=_copy_chunk)
    live, internal = tee.branches

    response = loop.create_task(aaggregate_stream(internal))
    response.add_done_callback(_log_aggregation_outcome)
    return StreamGenerateContentResult(stream=live, response=response)


def process_stream_sync(
    source: Iterable[str],
    on_close: Callable[[], None] | None = None,
) -> SyncStreamGenerateContentResult:
    """Synchronous form of :func:`process_stream`; nothing is read until a branch is pulled."""
    tee = Tee(_SyncChunkSource(source, on_close), n=2, copy=_copy_chunk)
    return SyncStreamGenerateContentResult(tee)


def process_unary(body: dict[str, Any] | None) -> GenerateContentResult:
    """Normalize a unary generateContent body."""
    if body is None:
        return GenerateContentResult(response=GenerateContentResponse(candidates=[]))
    try:
        response = GenerateContentResponse.model_validate(fill_candidate_defaults(body))
    except ValidationError as e:
        raise GenerativeAIError(f"invalid generateContent response: {json.dumps(body)}") from e
    return GenerateContentResult(response=response)
