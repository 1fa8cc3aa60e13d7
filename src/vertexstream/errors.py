"""Exception hierarchy for the client and the stream processor."""

from __future__ import annotations


def _construct_error_message(exception_class: str, message: str) -> str:
    return f"[VertexStream.{exception_class}]: {message}"


class GenerativeAIError(Exception):
    """Raised for a failed call: non-4xx HTTP status, transport failure, or a broken stream."""

    def __init__(self, message: str) -> None:
        self.raw_message = message
        super().__init__(_construct_error_message(type(self).__name__, message))


class ClientError(GenerativeAIError):
    """Raised when the backend answers with an HTTP 4xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class StreamProcessingError(GenerativeAIError):
    """Base class for errors raised while decoding or aggregating a response stream."""


class FrameParseError(StreamProcessingError):
    """A complete frame was found but its payload is not valid JSON."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f'Error parsing JSON response from stream chunk: "{text}"')


class TruncatedFrameError(StreamProcessingError):
    """The stream ended with unterminated, non-whitespace text left in the buffer."""

    def __init__(self, text: str) -> None:
        self.text = text
        super().__init__(f'Failed to parse final chunk of stream: "{text}"')


class EmptyStreamError(StreamProcessingError):
    """Aggregation was asked to fold zero chunks."""

    def __init__(self) -> None:
        super().__init__(
            "Error aggregating stream chunks because the stream produced no chunks"
        )


class StreamInterruptedError(StreamProcessingError):
    """The shared read of the stream was cancelled before the stream ended."""

    def __init__(self) -> None:
        super().__init__("Stream read was cancelled before the stream ended")
