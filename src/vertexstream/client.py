"""HTTP clients for the generateContent endpoints.

The request body is passed through as built by the caller. The clients only
resolve the endpoint, reject non-2xx responses, and hand the body to the
stream processor (or to the unary normalization step).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

import httpx
from opentelemetry import trace
from prometheus_client import Counter, Histogram
from pydantic import BaseModel

from .constants import (
    API_BASE_PATH,
    DEFAULT_API_VERSION,
    GENERATE_CONTENT_METHOD,
    STREAMING_GENERATE_CONTENT_METHOD,
    USER_AGENT,
)
from .content import GenerateContentResult
from .errors import ClientError, GenerativeAIError
from .logger import logger
from .streaming.processor import (
    StreamGenerateContentResult,
    SyncStreamGenerateContentResult,
    process_stream,
    process_stream_sync,
    process_unary,
)

_SENSITIVE_HEADERS = {"authorization", "x-api-key", "x-goog-api-key", "api-key"}


class ModelConfig(BaseModel):
    """Static connection settings for one model endpoint."""

    model: str
    project: str | None = None
    location: str = "us-central1"

    # credentials are taken as given; acquiring them is up to the caller
    api_key: str | None = None
    access_token: str | None = None

    api_url: str | None = None  # defaults to https://{location}-aiplatform.googleapis.com
    api_version: str = DEFAULT_API_VERSION
    timeout: float | None = 600

    def base_url(self) -> str:
        return (self.api_url or f"https://{self.location}-{API_BASE_PATH}").rstrip("/")

    def resource_path(self) -> str:
        """Model resource path below ``locations/{location}``."""
        if "/" in self.model:
            return self.model.strip("/")
        return f"publishers/google/models/{self.model}"


def _status_error(response: httpx.Response) -> GenerativeAIError:
    message = f"got status: {response.status_code} {response.reason_phrase}. {response.text}"
    if 400 <= response.status_code < 500:
        return ClientError(message, status_code=response.status_code)
    return GenerativeAIError(message)


class _BaseGenerativeModelClient:
    """Endpoint resolution, metrics and request logging shared by both clients."""

    _request_counter = Counter(
        "vertexstream_requests_total",
        "generateContent request results",
        labelnames=["method", "result"],
    )
    _latency = Histogram(
        "vertexstream_request_latency_seconds",
        "Time until the response headers arrive",
        labelnames=["method"],
    )

    def __init__(self, cfg: ModelConfig) -> None:
        self.cfg = cfg
        self._tracer = trace.get_tracer(__name__)

    def _build_url(self, method: str) -> str:
        cfg = self.cfg
        if cfg.project:
            location_path = f"projects/{cfg.project}/locations/{cfg.location}"
        else:
            location_path = f"locations/{cfg.location}"
        return f"{cfg.base_url()}/{cfg.api_version}/{location_path}/{cfg.resource_path()}:{method}"

    def _build_params(self, method: str) -> dict[str, str]:
        params: dict[str, str] = {}
        # server-sent events framing for the streaming method
        if method == STREAMING_GENERATE_CONTENT_METHOD:
            params["alt"] = "sse"
        if self.cfg.api_key:
            params["key"] = self.cfg.api_key
        return params

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if self.cfg.access_token:
            headers["Authorization"] = f"Bearer {self.cfg.access_token}"
        return headers

    def _span_attributes(self, method: str) -> dict[str, Any]:
        return {"model": self.cfg.model, "method": method, "location": self.cfg.location}

    @staticmethod
    def _sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
        return {
            k: "[REDACTED]" if k.lower() in _SENSITIVE_HEADERS else v
            for k, v in headers.items()
        }

    @staticmethod
    def _sanitize_url(url: httpx.URL) -> str:
        if "key" in url.params:
            url = url.copy_set_param("key", "[REDACTED]")
        return str(url)

    def _request_log_line(self, request: httpx.Request) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": "http_request",
            "method": request.method,
            "url": self._sanitize_url(request.url),
            "headers": self._sanitize_headers(dict(request.headers)),
            "model": self.cfg.model,
        }
        return json.dumps(log_data, separators=(",", ":"))

    def _response_log_line(self, response: httpx.Response) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": "http_response",
            "status_code": response.status_code,
            "reason_phrase": response.reason_phrase,
            "url": self._sanitize_url(response.request.url),
            "model": self.cfg.model,
        }
        return json.dumps(log_data, separators=(",", ":"))


class GenerativeModelClient(_BaseGenerativeModelClient):
    """Async client over :class:`httpx.AsyncClient`."""

    def __init__(self, cfg: ModelConfig, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(cfg)
        if client is None:
            # JSONL hooks go only on a client this wrapper owns
            client = httpx.AsyncClient(
                http2=True,
                timeout=httpx.Timeout(cfg.timeout),
                event_hooks={
                    "request": [self._log_request_jsonl],
                    "response": [self._log_response_jsonl],
                },
            )
        self._client = client

    async def _log_request_jsonl(self, request: httpx.Request) -> None:
        logger.debug(self._request_log_line(request))

    async def _log_response_jsonl(self, response: httpx.Response) -> None:
        logger.debug(self._response_log_line(response))

    async def _send(self, method: str, body: dict[str, Any], stream: bool) -> httpx.Response:
        request = self._client.build_request(
            "POST",
            self._build_url(method),
            params=self._build_params(method),
            headers=self._build_headers(),
            json=body,
            timeout=self.cfg.timeout,
        )
        with self._latency.labels(method).time():
            try:
                response = await self._client.send(request, stream=stream)
            except httpx.RequestError as e:
                self._request_counter.labels(method, "error").inc()
                logger.error(f"Request to {method} failed: {e!r}")
                raise GenerativeAIError("exception posting request") from e

        if not response.is_success:
            self._request_counter.labels(method, "error").inc()
            if stream:
                await response.aread()
                await response.aclose()
            logger.error(f"{method} returned HTTP {response.status_code}")
            raise _status_error(response)

        self._request_counter.labels(method, "success").inc()
        return response

    async def generate_content(self, request: dict[str, Any]) -> GenerateContentResult:
        """Call generateContent and return the normalized response."""
        method = GENERATE_CONTENT_METHOD
        with self._tracer.start_as_current_span(
            "vertexstream.generate_content", attributes=self._span_attributes(method)
        ):
            response = await self._send(method, request, stream=False)
            return process_unary(response.json())

    async def generate_content_stream(self, request: dict[str, Any]) -> StreamGenerateContentResult:
        """Call streamGenerateContent.

        Returns once the response headers are in; chunks are decoded as the
        caller (or the aggregation task) reads them. The HTTP response is
        closed when the decode pass ends.
        """
        method = STREAMING_GENERATE_CONTENT_METHOD
        with self._tracer.start_as_current_span(
            "vertexstream.generate_content", attributes=self._span_attributes(method)
        ):
            response = await self._send(method, request, stream=True)
            return process_stream(response.aiter_text(), on_close=response.aclose)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> GenerativeModelClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class SyncGenerativeModelClient(_BaseGenerativeModelClient):
    """Synchronous client over :class:`httpx.Client`."""

    def __init__(self, cfg: ModelConfig, client: httpx.Client | None = None) -> None:
        super().__init__(cfg)
        if client is None:
            client = httpx.Client(
                http2=True,
                timeout=httpx.Timeout(cfg.timeout),
                event_hooks={
                    "request": [self._log_request_jsonl],
                    "response": [self._log_response_jsonl],
                },
            )
        self._client = client

    def _log_request_jsonl(self, request: httpx.Request) -> None:
        logger.debug(self._request_log_line(request))

    def _log_response_jsonl(self, response: httpx.Response) -> None:
        logger.debug(self._response_log_line(response))

    def _send(self, method: str, body: dict[str, Any], stream: bool) -> httpx.Response:
        request = self._client.build_request(
            "POST",
            self._build_url(method),
            params=self._build_params(method),
            headers=self._build_headers(),
            json=body,
            timeout=self.cfg.timeout,
        )
        with self._latency.labels(method).time():
            try:
                response = self._client.send(request, stream=stream)
            except httpx.RequestError as e:
                self._request_counter.labels(method, "error").inc()
                logger.error(f"Request to {method} failed: {e!r}")
                raise GenerativeAIError("exception posting request") from e

        if not response.is_success:
            self._request_counter.labels(method, "error").inc()
            if stream:
                response.read()
                response.close()
            logger.error(f"{method} returned HTTP {response.status_code}")
            raise _status_error(response)

        self._request_counter.labels(method, "success").inc()
        return response

    def generate_content(self, request: dict[str, Any]) -> GenerateContentResult:
        """Call generateContent and return the normalized response."""
        method = GENERATE_CONTENT_METHOD
        with self._tracer.start_as_current_span(
            "vertexstream.generate_content", attributes=self._span_attributes(method)
        ):
            response = self._send(method, request, stream=False)
            return process_unary(response.json())

    def generate_content_stream(self, request: dict[str, Any]) -> SyncStreamGenerateContentResult:
        """Call streamGenerateContent; nothing is decoded until the result is read.

        Use the result as a context manager (or call its ``close``) so the
        HTTP response is released even if it is never read.
        """
        method = STREAMING_GENERATE_CONTENT_METHOD
        with self._tracer.start_as_current_span(
            "vertexstream.generate_content", attributes=self._span_attributes(method)
        ):
            response = self._send(method, request, stream=True)
            return process_stream_sync(response.iter_text(), on_close=response.close)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> SyncGenerativeModelClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
