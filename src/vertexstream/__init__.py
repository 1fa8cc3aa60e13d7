"""Streaming client for generateContent style generative-model APIs."""

from __future__ import annotations

from .client import GenerativeModelClient, ModelConfig, SyncGenerativeModelClient
from .content import (
    AggregatedResponse,
    Candidate,
    CitationMetadata,
    Content,
    FunctionCall,
    FunctionCallPart,
    GenerateContentResponse,
    GenerateContentResult,
    GroundingMetadata,
    Part,
    ResponseChunk,
    TextPart,
)
from .errors import (
    ClientError,
    EmptyStreamError,
    FrameParseError,
    GenerativeAIError,
    StreamInterruptedError,
    StreamProcessingError,
    TruncatedFrameError,
)
from .logger import get_logger, set_logger
from .streaming import (
    StreamGenerateContentResult,
    SyncStreamGenerateContentResult,
    aggregate_responses,
    process_stream,
    process_stream_sync,
    process_unary,
)

__all__ = [
    "AggregatedResponse",
    "Candidate",
    "CitationMetadata",
    "ClientError",
    "Content",
    "EmptyStreamError",
    "FrameParseError",
    "FunctionCall",
    "FunctionCallPart",
    "GenerateContentResponse",
    "GenerateContentResult",
    "GenerativeAIError",
    "GenerativeModelClient",
    "GroundingMetadata",
    "ModelConfig",
    "Part",
    "ResponseChunk",
    "StreamGenerateContentResult",
    "StreamInterruptedError",
    "StreamProcessingError",
    "SyncGenerativeModelClient",
    "SyncStreamGenerateContentResult",
    "TextPart",
    "TruncatedFrameError",
    "aggregate_responses",
    "get_logger",
    "process_stream",
    "process_stream_sync",
    "process_unary",
    "set_logger",
]
