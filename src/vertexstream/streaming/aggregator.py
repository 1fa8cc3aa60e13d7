"""Fold a sequence of streamed chunks into one response.

Merge rules, per candidate index, in arrival order (candidates come out
sorted by index):

- text parts are concatenated into a single text part
- a function-call part replaces that text part (last call wins)
- citations and the grounding list fields are concatenated
- ``searchEntryPoint``, ``finishReason``, ``finishMessage`` and
  ``safetyRatings`` are replaced by the latest chunk that carries them

``promptFeedback`` and ``usageMetadata`` describe the whole exchange and are
taken from the last chunk that carries them, not merged.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from dataclasses import dataclass, field
from typing import Any

from ..constants import MODEL_ROLE
from ..content import (
    Candidate,
    CitationMetadata,
    Content,
    FunctionCall,
    FunctionCallPart,
    GenerateContentResponse,
    GroundingMetadata,
    TextPart,
)
from ..errors import EmptyStreamError
from ..logger import logger

_GROUNDING_LIST_FIELDS = (
    "web_search_queries",
    "retrieval_queries",
    "grounding_attributions",
    "grounding_chunks",
    "grounding_supports",
)


@dataclass
class _CandidateSlot:
    """Mutable merge state for one candidate index."""

    index: int
    role: str
    text: str = ""
    function_call: FunctionCall | None = None
    finish_reason: str | None = None
    finish_message: str | None = None
    safety_ratings: list[dict[str, Any]] | None = None
    citations: list[dict[str, Any]] | None = None
    grounding: dict[str, list[Any]] | None = None
    search_entry_point: dict[str, Any] | None = None

    def merge(self, candidate: Candidate) -> None:
        if candidate.citation_metadata is not None:
            if self.citations is None:
                self.citations = []
            self.citations.extend(candidate.citation_metadata.citations or [])

        if candidate.grounding_metadata is not None:
            self._merge_grounding(candidate.grounding_metadata)

        if candidate.finish_reason is not None:
            self.finish_reason = candidate.finish_reason
        if candidate.finish_message is not None:
            self.finish_message = candidate.finish_message
        if candidate.safety_ratings is not None:
            self.safety_ratings = candidate.safety_ratings

        if candidate.content is not None and candidate.content.parts:
            for part in candidate.content.parts:
                if isinstance(part, TextPart):
                    # Once a function call is set the candidate is no longer prose
                    if part.text and self.function_call is None:
                        self.text += part.text
                elif isinstance(part, FunctionCallPart):
                    self.function_call = part.function_call

    def _merge_grounding(self, metadata: GroundingMetadata) -> None:
        if self.grounding is None:
            self.grounding = {name: [] for name in _GROUNDING_LIST_FIELDS}
        for name in _GROUNDING_LIST_FIELDS:
            values = getattr(metadata, name)
            if values:
                self.grounding[name].extend(values)
        if metadata.search_entry_point is not None:
            self.search_entry_point = metadata.search_entry_point

    def build(self) -> Candidate:
        if self.function_call is not None:
            part = FunctionCallPart(function_call=self.function_call)
        else:
            part = TextPart(text=self.text)

        fields: dict[str, Any] = {
            "index": self.index,
            "content": Content(role=self.role, parts=[part]),
        }
        if self.finish_reason is not None:
            fields["finish_reason"] = self.finish_reason
        if self.finish_message is not None:
            fields["finish_message"] = self.finish_message
        if self.safety_ratings is not None:
            fields["safety_ratings"] = self.safety_ratings
        if self.citations is not None:
            fields["citation_metadata"] = CitationMetadata(citations=self.citations)
        if self.grounding is not None:
            fields["grounding_metadata"] = GroundingMetadata(
                **self.grounding, search_entry_point=self.search_entry_point
            )
        return Candidate(**fields)


class ResponseAggregator:
    """Incremental aggregator; feed chunks with ``add`` then call ``result``."""

    def __init__(self) -> None:
        self._slots: dict[int, _CandidateSlot] = {}
        self._prompt_feedback: dict[str, Any] | None = None
        self._usage_metadata: dict[str, Any] | None = None
        self.chunk_count = 0

    def add(self, chunk: GenerateContentResponse) -> None:
        self.chunk_count += 1

        if chunk.prompt_feedback is not None:
            self._prompt_feedback = chunk.prompt_feedback
        if chunk.usage_metadata is not None:
            self._usage_metadata = chunk.usage_metadata

        for position, candidate in enumerate(chunk.candidates or []):
            index = candidate.index if candidate.index is not None else position
            slot = self._slots.get(index)
            if slot is None:
                role = MODEL_ROLE
                if candidate.content is not None and candidate.content.role:
                    role = candidate.content.role
                slot = self._slots[index] = _CandidateSlot(index=index, role=role)
            slot.merge(candidate)

    def result(self) -> GenerateContentResponse:
        """Build the merged response.

        Raises:
            EmptyStreamError: no chunk was ever added.
        """
        if self.chunk_count == 0:
            raise EmptyStreamError()

        fields: dict[str, Any] = {}
        if self._slots:
            fields["candidates"] = [self._slots[index].build() for index in sorted(self._slots)]
        if self._prompt_feedback is not None:
            fields["prompt_feedback"] = self._prompt_feedback
        if self._usage_metadata is not None:
            fields["usage_metadata"] = self._usage_metadata

        logger.debug(
            f"Aggregated {self.chunk_count} chunks into {len(self._slots)} candidates"
        )
        return GenerateContentResponse(**fields)


def aggregate_responses(chunks: Iterable[GenerateContentResponse]) -> GenerateContentResponse:
    """Aggregate a sequence of chunks, draining it if it is a stream.

    Any error raised while iterating propagates as is and the partial state
    is dropped.
    """
    aggregator = ResponseAggregator()
    for chunk in chunks:
        aggregator.add(chunk)
    return aggregator.result()


async def aaggregate_stream(chunks: AsyncIterable[GenerateContentResponse]) -> GenerateContentResponse:
    """Drain an async chunk stream and aggregate it.

    Any error raised by the stream propagates as is and the partial state is
    dropped.
    """
    aggregator = ResponseAggregator()
    async for chunk in chunks:
        aggregator.add(chunk)
    return aggregator.result()
