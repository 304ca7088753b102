from __future__ import annotations  # Re-export llm_gateway public API

from .llm_gateway import (
    HttpClient,
    HttpResponse,
    LlmAuthError,
    LlmGatewayError,
    LlmRateLimitError,
    ParseFailure,
    call_json,
    complete,
    extract_json,
    stream,
)

__all__ = [
    "HttpClient",
    "HttpResponse",
    "LlmAuthError",
    "LlmGatewayError",
    "LlmRateLimitError",
    "ParseFailure",
    "call_json",
    "complete",
    "extract_json",
    "stream",
]
