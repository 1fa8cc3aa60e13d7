"""Typed views of the generateContent wire format.

All models accept the camelCase wire names (and the snake_case attribute
names), keep unknown wire fields, and are frozen once validated. Use
``to_dict()`` to get the wire shape back.
"""

from __future__ import annotations

from typing import Annotated, Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Tag
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Base for every wire object."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """Dump to the wire shape, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class FunctionCall(WireModel):
    """A function the model asks the caller to run."""

    name: str
    args: dict[str, Any] = {}


class FunctionResponse(WireModel):
    name: str
    response: dict[str, Any] = {}


class Blob(WireModel):
    mime_type: str
    data: str


class FileData(WireModel):
    mime_type: str
    file_uri: str


class TextPart(WireModel):
    kind: ClassVar[str] = "text"

    text: str = ""


class FunctionCallPart(WireModel):
    kind: ClassVar[str] = "function_call"

    function_call: FunctionCall


class FunctionResponsePart(WireModel):
    kind: ClassVar[str] = "function_response"

    function_response: FunctionResponse


class InlineDataPart(WireModel):
    kind: ClassVar[str] = "inline_data"

    inline_data: Blob


class FileDataPart(WireModel):
    kind: ClassVar[str] = "file_data"

    file_data: FileData


# Checked in order: a wire part carrying a function call is a function-call
# part even if it also has a stray text key.
_PART_PAYLOAD_KEYS = (
    ("function_call", ("functionCall", "function_call")),
    ("function_response", ("functionResponse", "function_response")),
    ("inline_data", ("inlineData", "inline_data")),
    ("file_data", ("fileData", "file_data")),
)


def _part_kind(value: Any) -> str:
    """Pick the Part variant from whichever payload key is present.

    Parts with none of the known payload keys (for example a bare
    ``thoughtSignature``) are read as text parts with empty text.
    """
    if isinstance(value, BaseModel):
        return getattr(value, "kind", "text")
    if isinstance(value, dict):
        for kind, keys in _PART_PAYLOAD_KEYS:
            if any(key in value for key in keys):
                return kind
    return "text"


Part = Annotated[
    Union[
        Annotated[TextPart, Tag("text")],
        Annotated[FunctionCallPart, Tag("function_call")],
        Annotated[FunctionResponsePart, Tag("function_response")],
        Annotated[InlineDataPart, Tag("inline_data")],
        Annotated[FileDataPart, Tag("file_data")],
    ],
    Discriminator(_part_kind),
]


class Content(WireModel):
    """A single turn: a role and its ordered parts."""

    role: str | None = None
    parts: list[Part] | None = None


class CitationMetadata(WireModel):
    citations: list[dict[str, Any]] | None = None


class GroundingMetadata(WireModel):
    """Search grounding attached to a candidate.

    The list fields grow across a stream; ``search_entry_point`` is a single
    value that the latest chunk replaces.
    """

    web_search_queries: list[str] | None = None
    retrieval_queries: list[str] | None = None
    grounding_attributions: list[dict[str, Any]] | None = None
    grounding_chunks: list[dict[str, Any]] | None = None
    grounding_supports: list[dict[str, Any]] | None = None
    search_entry_point: dict[str, Any] | None = None


class Candidate(WireModel):
    """One alternative answer, keyed by ``index``."""

    index: int | None = None
    content: Content | None = None
    finish_reason: str | None = None
    finish_message: str | None = None
    safety_ratings: list[dict[str, Any]] | None = None
    citation_metadata: CitationMetadata | None = None
    grounding_metadata: GroundingMetadata | None = None

    @property
    def function_calls(self) -> list[FunctionCall]:
        """Function calls carried by this candidate's parts, in order."""
        if self.content is None or not self.content.parts:
            return []
        return [
            part.function_call
            for part in self.content.parts
            if isinstance(part, FunctionCallPart)
        ]

    @property
    def text(self) -> str:
        """Concatenated text of this candidate's text parts."""
        if self.content is None or not self.content.parts:
            return ""
        return "".join(part.text for part in self.content.parts if isinstance(part, TextPart))


class GenerateContentResponse(WireModel):
    """One response object: either a streamed chunk or the merged result."""

    candidates: list[Candidate] | None = None
    prompt_feedback: dict[str, Any] | None = None
    usage_metadata: dict[str, Any] | None = None


# A decoded stream frame and the merged result share one shape.
ResponseChunk = GenerateContentResponse
AggregatedResponse = GenerateContentResponse


class GenerateContentResult(BaseModel):
    """Result of a unary generateContent call."""

    response: GenerateContentResponse
