"""Wire-level constants shared by the client and the stream processor."""

GENERATE_CONTENT_METHOD = "generateContent"
STREAMING_GENERATE_CONTENT_METHOD = "streamGenerateContent"

USER_ROLE = "user"
MODEL_ROLE = "model"
FUNCTION_ROLE = "function"

API_BASE_PATH = "aiplatform.googleapis.com"
DEFAULT_API_VERSION = "v1"

CLIENT_LIBRARY_VERSION = "0.1.0"
USER_AGENT = f"vertexstream/{CLIENT_LIBRARY_VERSION} python-httpx"

# Frame syntax of the server-sent event stream
FRAME_PREFIX = "data: "
# Order matters: alternatives are tried first to last at the end of a payload
FRAME_TERMINATORS = ("\n\n", "\r\r", "\r\n\r\n")
