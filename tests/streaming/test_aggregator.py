"""Tests for chunk aggregation."""

import pytest

from vertexstream.content import FunctionCallPart, GenerateContentResponse, TextPart
from vertexstream.errors import EmptyStreamError
from vertexstream.streaming.aggregator import ResponseAggregator, aaggregate_stream, aggregate_responses


def _chunks(*raw):
    return [GenerateContentResponse.model_validate(item) for item in raw]


def _text_candidate(text, index=None, **extra):
    candidate = {"content": {"role": "model", "parts": [{"text": text}]}, **extra}
    if index is not None:
        candidate["index"] = index
    return candidate


def _grounding(label):
    return {
        "webSearchQueries": [f"query {label}"],
        "groundingAttributions": [{"web": {"uri": f"url {label}"}, "confidenceScore": 0.85}],
        "groundingChunks": [{"web": {"uri": f"url {label}", "title": f"title {label}"}}],
        "groundingSupports": [{"segment": {"startIndex": 0, "endIndex": 421, "text": f"support {label}"}}],
    }


class TestAggregateResponses:
    """Test the merge rules."""

    def test_end_to_end_example(self):
        """Two text chunks and trailing usage merge into one candidate."""
        chunks = _chunks(
            {"candidates": [{"content": {"parts": [{"text": "Hi"}]}}]},
            {"candidates": [{"content": {"parts": [{"text": " there"}]}}], "usageMetadata": {"total": 5}},
        )

        result = aggregate_responses(chunks)

        assert result.to_dict() == {
            "candidates": [
                {"index": 0, "content": {"role": "model", "parts": [{"text": "Hi there"}]}},
            ],
            "usageMetadata": {"total": 5},
        }

    def test_text_concatenated_in_arrival_order(self):
        """Text for one index is the concatenation of every chunk's text."""
        pieces = ["The ", "quick ", "", "brown ", "fox"]
        chunks = _chunks(*({"candidates": [_text_candidate(p, index=0)]} for p in pieces))

        result = aggregate_responses(chunks)

        assert len(result.candidates) == 1
        assert result.candidates[0].content.parts == [TextPart(text="The quick brown fox")]

    def test_multiple_candidates_stay_separate(self):
        """Candidates are merged per index."""
        chunks = _chunks(
            {"candidates": [_text_candidate("chunk1Candidate1"), _text_candidate("chunk1Candidate2")]},
            {"candidates": [_text_candidate("chunk2Candidate1"), _text_candidate("chunk2Candidate2")]},
        )

        result = aggregate_responses(chunks)

        assert [c.index for c in result.candidates] == [0, 1]
        assert result.candidates[0].text == "chunk1Candidate1chunk2Candidate1"
        assert result.candidates[1].text == "chunk1Candidate2chunk2Candidate2"

    def test_explicit_index_is_used_for_slot(self):
        """A candidate that states its index merges into that slot."""
        chunks = _chunks(
            {"candidates": [_text_candidate("a", index=1)]},
            {"candidates": [_text_candidate("b", index=1)]},
        )

        result = aggregate_responses(chunks)

        assert len(result.candidates) == 1
        assert result.candidates[0].index == 1
        assert result.candidates[0].text == "ab"

    def test_candidates_sorted_by_index(self):
        """Candidates come out in index order whatever order they first appear in."""
        chunks = _chunks(
            {"candidates": [_text_candidate("second", index=1)]},
            {"candidates": [_text_candidate("first", index=0), _text_candidate("!", index=1)]},
        )

        result = aggregate_responses(chunks)

        assert [c.index for c in result.candidates] == [0, 1]
        assert [c.text for c in result.candidates] == ["first", "second!"]

    def test_role_defaults_to_model(self):
        """Without any role on the wire the merged role is the model role."""
        chunks = _chunks({"candidates": [{"content": {"parts": [{"text": "x"}]}}]})

        result = aggregate_responses(chunks)

        assert result.candidates[0].content.role == "model"

    def test_function_call_replaces_text(self):
        """A function call removes text accumulated before it."""
        chunks = _chunks(
            {"candidates": [_text_candidate("Let me check")]},
            {"candidates": [{"content": {"role": "model", "parts": [
                {"functionCall": {"name": "get_weather", "args": {"city": "Paris"}}},
            ]}}]},
            {"candidates": [_text_candidate(" trailing text")]},
        )

        result = aggregate_responses(chunks)

        parts = result.candidates[0].content.parts
        assert len(parts) == 1
        assert isinstance(parts[0], FunctionCallPart)
        assert result.to_dict()["candidates"][0]["content"]["parts"] == [
            {"functionCall": {"name": "get_weather", "args": {"city": "Paris"}}}
        ]

    def test_latest_function_call_wins(self):
        """A later function call overwrites an earlier one."""
        chunks = _chunks(
            {"candidates": [{"content": {"parts": [{"functionCall": {"name": "first", "args": {}}}]}}]},
            {"candidates": [{"content": {"parts": [{"functionCall": {"name": "second", "args": {"x": 1}}}]}}]},
        )

        result = aggregate_responses(chunks)

        assert [call.name for call in result.candidates[0].function_calls] == ["second"]

    def test_citations_concatenated(self):
        """Citation lists grow by every chunk's contribution."""
        chunks = _chunks(
            {"candidates": [_text_candidate("a", citationMetadata={"citations": [{"uri": "1"}, {"uri": "2"}]})]},
            {"candidates": [_text_candidate("b")]},
            {"candidates": [_text_candidate("c", citationMetadata={"citations": [{"uri": "3"}]})]},
        )

        result = aggregate_responses(chunks)

        citations = result.candidates[0].citation_metadata.citations
        assert [c["uri"] for c in citations] == ["1", "2", "3"]

    def test_grounding_lists_concatenated_and_entry_point_replaced(self):
        """Grounding lists are concatenated; searchEntryPoint is last-write-wins."""
        later = _grounding("later")
        later["searchEntryPoint"] = {"renderedContent": "later"}
        chunks = _chunks(
            {"candidates": [_text_candidate("a", groundingMetadata={
                **_grounding("former"), "searchEntryPoint": {"renderedContent": "former"},
            })]},
            {"candidates": [_text_candidate("b")]},
            {"candidates": [{"content": {"role": "model"}, "finishReason": "STOP", "groundingMetadata": later}]},
        )

        result = aggregate_responses(chunks)

        grounding = result.candidates[0].grounding_metadata
        assert grounding.web_search_queries == ["query former", "query later"]
        assert len(grounding.grounding_attributions) == 2
        assert len(grounding.grounding_chunks) == 2
        assert [s["segment"]["text"] for s in grounding.grounding_supports] == [
            "support former", "support later",
        ]
        assert grounding.retrieval_queries == []
        assert grounding.search_entry_point == {"renderedContent": "later"}
        assert result.candidates[0].finish_reason == "STOP"
        assert result.candidates[0].text == "ab"

    def test_scalar_fields_last_write_wins(self):
        """finishReason, finishMessage and safetyRatings keep the latest supplied value."""
        chunks = _chunks(
            {"candidates": [_text_candidate("a", safetyRatings=[{"category": "HATE", "probability": "LOW"}])]},
            {"candidates": [_text_candidate("b", finishReason="MAX_TOKENS", finishMessage="cut",
                                            safetyRatings=[{"category": "HATE", "probability": "NEGLIGIBLE"}])]},
            {"candidates": [_text_candidate("c")]},
        )

        candidate = aggregate_responses(chunks).candidates[0]

        assert candidate.finish_reason == "MAX_TOKENS"
        assert candidate.finish_message == "cut"
        assert candidate.safety_ratings == [{"category": "HATE", "probability": "NEGLIGIBLE"}]

    def test_usage_and_prompt_feedback_overwritten_not_merged(self):
        """The last chunk carrying usage or prompt feedback decides the result."""
        chunks = _chunks(
            {"candidates": [_text_candidate("a")], "usageMetadata": {"promptTokenCount": 6, "extra": 1}},
            {"candidates": [_text_candidate("b")], "promptFeedback": {"blockReason": "OTHER"}},
            {"candidates": [_text_candidate("c")], "usageMetadata": {"totalTokenCount": 97}},
        )

        result = aggregate_responses(chunks)

        assert result.usage_metadata == {"totalTokenCount": 97}
        assert result.prompt_feedback == {"blockReason": "OTHER"}

    def test_chunks_without_anything_give_empty_response(self):
        """Chunks with no candidates and no metadata aggregate to {}."""
        result = aggregate_responses(_chunks({}, {}))

        assert result.to_dict() == {}
        assert result.candidates is None

    def test_metadata_only_stream(self):
        """A blocked prompt yields feedback without a candidate list."""
        result = aggregate_responses(_chunks({"promptFeedback": {"blockReason": "SAFETY"}}))

        assert result.to_dict() == {"promptFeedback": {"blockReason": "SAFETY"}}

    def test_empty_input_raises(self):
        """Zero chunks cannot be aggregated."""
        with pytest.raises(EmptyStreamError):
            aggregate_responses([])


class TestResponseAggregator:
    """Test the incremental interface."""

    def test_result_can_be_taken_midway(self):
        """result() reflects only the chunks added so far."""
        aggregator = ResponseAggregator()
        aggregator.add(GenerateContentResponse.model_validate({"candidates": [_text_candidate("a")]}))
        first = aggregator.result()
        aggregator.add(GenerateContentResponse.model_validate({"candidates": [_text_candidate("b")]}))

        assert first.candidates[0].text == "a"
        assert aggregator.result().candidates[0].text == "ab"
        assert aggregator.chunk_count == 2

    @pytest.mark.asyncio
    async def test_async_stream_error_propagates(self):
        """A stream error aborts aggregation with that same error."""
        error = RuntimeError("read timeout")

        async def failing():
            yield GenerateContentResponse.model_validate({"candidates": [_text_candidate("a")]})
            raise error

        with pytest.raises(RuntimeError) as exc_info:
            await aaggregate_stream(failing())

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_async_empty_stream(self):
        """An async stream with no chunks raises EmptyStreamError."""
        async def empty():
            return
            yield  # pragma: no cover

        with pytest.raises(EmptyStreamError):
            await aaggregate_stream(empty())
