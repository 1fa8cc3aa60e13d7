"""Streaming response decoding and aggregation."""

from __future__ import annotations

from .aggregator import ResponseAggregator, aaggregate_stream, aggregate_responses
from .frame_decoder import FrameDecoder, aiter_frames, iter_frames
from .normalize import fill_candidate_defaults
from .processor import (
    StreamGenerateContentResult,
    SyncStreamGenerateContentResult,
    process_stream,
    process_stream_sync,
    process_unary,
)
from .tee import AsyncTee, Tee

__all__ = [
    "AsyncTee",
    "FrameDecoder",
    "ResponseAggregator",
    "StreamGenerateContentResult",
    "SyncStreamGenerateContentResult",
    "Tee",
    "aaggregate_stream",
    "aggregate_responses",
    "aiter_frames",
    "fill_candidate_defaults",
    "iter_frames",
    "process_stream",
    "process_stream_sync",
    "process_unary",
]
