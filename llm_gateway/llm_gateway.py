from __future__ import annotations  # LLM request gateway module

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Dict, Iterable, Iterator, Optional, Protocol, Union

from config import LlmRoute


logger = logging.getLogger(__name__)  # Module logger setup

_sleep: Callable[[float], None] = time.sleep

_BRACKETS = {"object": ("{", "}"), "array": ("[", "]")}
_DONE = object()


class HttpResponse(Protocol):  # Minimal HTTP response protocol
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class StreamResponse(HttpResponse, Protocol):  # Streaming response protocol
    def read(self) -> bytes: ...

    def iter_lines(self) -> Iterable[str]: ...


class HttpClient(Protocol):  # Minimal HTTP client protocol
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> HttpResponse: ...

    def stream(
        self, method: str, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float
    ) -> ContextManager[StreamResponse]: ...


class LlmGatewayError(RuntimeError):  # Base gateway error
    pass


class LlmAuthError(LlmGatewayError):  # Credentials rejected; retrying cannot help
    pass


class LlmRateLimitError(LlmGatewayError):  # Upstream throttled the request
    pass


@dataclass(frozen=True)
class ParseFailure:  # Model text did not contain the requested JSON shape
    reason: str
    raw: str


def complete(
    prompt: str,
    *,
    cfg: LlmRoute,
    temperature: float,
    client: Optional[HttpClient] = None,
) -> str:  # Single non-streaming completion attempt
    url = f"{cfg.base_url}{cfg.endpoint}"
    payload = _payload(prompt, cfg, temperature)
    headers = _headers(cfg)
    owned = client is None
    http_client = client if client is not None else _default_client(cfg.timeout_s)
    try:
        try:
            response = http_client.post(url, json=payload, headers=headers, timeout=cfg.timeout_s)
        except Exception as exc:  # noqa: BLE001
            logger.error("LLM transport failure route=%s: %s", cfg.name, exc)
            raise LlmGatewayError("LLM transport failed") from exc
        _raise_for_status(response.status_code, response.text)
        try:
            data = response.json()
        except Exception as exc:  # noqa: BLE001
            logger.error("Invalid JSON payload from LLM: %s", exc)
            raise LlmGatewayError("LLM payload was not JSON") from exc
        content = _extract_content(data)
        if not content.strip():
            raise LlmGatewayError("LLM returned empty content")
        return content
    finally:
        if owned:
            http_client.close()


def call_json(
    prompt: str,
    *,
    cfg: LlmRoute,
    temperature: float,
    shape: str = "object",
    client: Optional[HttpClient] = None,
) -> Union[Dict[str, Any], list]:
    """Request JSON from the model with bounded retries.

    Rate limits back off exponentially (2s, 4s, ...), auth failures abort at
    once, and everything else (including unparseable output) waits a short
    linear delay before the next attempt.
    """

    attempts = cfg.max_retries + 1
    last_error: Optional[Exception] = None
    logger.info(
        "LLM request start route=%s model=%s attempts=%d preview=%s",
        cfg.name,
        cfg.model,
        attempts,
        _preview(prompt),
    )
    for attempt in range(1, attempts + 1):
        try:
            text = complete(prompt, cfg=cfg, temperature=temperature, client=client)
        except LlmAuthError:
            logger.error("LLM auth failure route=%s; not retrying", cfg.name)
            raise
        except LlmRateLimitError as exc:
            logger.warning("LLM rate limited route=%s attempt=%d/%d", cfg.name, attempt, attempts)
            last_error = exc
            if attempt < attempts:
                _sleep(2 ** attempt)
            continue
        except LlmGatewayError as exc:
            logger.warning("LLM attempt failed route=%s attempt=%d/%d: %s", cfg.name, attempt, attempts, exc)
            last_error = exc
            if attempt < attempts:
                _sleep(1.0 * attempt)
            continue

        parsed = extract_json(text, shape)
        if isinstance(parsed, ParseFailure):
            logger.warning("LLM output parse failed route=%s attempt=%d/%d: %s", cfg.name, attempt, attempts, parsed.reason)
            last_error = LlmGatewayError(f"unparseable output: {parsed.reason}")
            if attempt < attempts:
                _sleep(1.0 * attempt)
            continue
        logger.info("LLM request done route=%s model=%s attempt=%d", cfg.name, cfg.model, attempt)
        return parsed
    raise LlmGatewayError(f"LLM request failed after {attempts} attempts") from last_error


def extract_json(text: str, shape: str = "object") -> Union[Dict[str, Any], list, ParseFailure]:
    """Parse the span from the first opening bracket to the last closing one."""

    if shape not in _BRACKETS:
        raise ValueError(f"Unsupported JSON shape: {shape}")
    opener, closer = _BRACKETS[shape]
    start = text.find(opener)
    end = text.rfind(closer)
    if start == -1 or end < start:
        return ParseFailure(reason=f"no JSON {shape} found", raw=text)
    try:
        value = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        return ParseFailure(reason=str(exc), raw=text)
    expected = dict if shape == "object" else list
    if not isinstance(value, expected):
        return ParseFailure(reason=f"expected JSON {shape}", raw=text)
    return value


def stream(
    prompt: str,
    *,
    cfg: LlmRoute,
    temperature: float,
    client: Optional[HttpClient] = None,
) -> Iterator[str]:
    """Yield text deltas from a server-sent-event completion.

    Closing the generator closes the underlying HTTP response.
    """

    url = f"{cfg.base_url}{cfg.endpoint}"
    payload = _payload(prompt, cfg, temperature)
    payload["stream"] = True
    headers = _headers(cfg)
    owned = client is None
    http_client = client if client is not None else _default_client(cfg.timeout_s)
    logger.info("LLM stream start route=%s model=%s preview=%s", cfg.name, cfg.model, _preview(prompt))
    try:
        with http_client.stream("POST", url, json=payload, headers=headers, timeout=cfg.timeout_s) as response:
            if response.status_code >= 400:
                response.read()
                _raise_for_status(response.status_code, response.text)
            for line in response.iter_lines():
                delta = _parse_sse_line(line)
                if delta is None:
                    continue
                if delta is _DONE:
                    break
                yield delta
    except LlmGatewayError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.error("LLM stream failure route=%s: %s", cfg.name, exc)
        raise LlmGatewayError("LLM stream failed") from exc
    finally:
        if owned:
            http_client.close()
    logger.info("LLM stream done route=%s", cfg.name)


def _parse_sse_line(line: str) -> Any:  # Decode one SSE line into a delta, _DONE, or None
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:") :].strip()
    if data == "[DONE]":
        return _DONE
    try:
        event = json.loads(data)
    except json.JSONDecodeError:
        logger.warning("Skipping malformed stream event: %s", data[:120])
        return None
    if isinstance(event, dict) and event.get("error"):
        message = json.dumps(event["error"])
        _raise_for_status(500, message)
    choices = event.get("choices") if isinstance(event, dict) else None
    if not choices or not isinstance(choices[0], dict):
        return None
    content = (choices[0].get("delta") or {}).get("content")
    if isinstance(content, str) and content:
        return content
    return None


def _payload(prompt: str, cfg: LlmRoute, temperature: float) -> Dict[str, Any]:
    return {
        "model": cfg.model,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": temperature,
        "max_tokens": cfg.max_output_tokens,
    }


def _headers(cfg: LlmRoute) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    return headers


def _default_client(timeout: float) -> Any:  # httpx transport used when no client is injected
    import httpx

    return httpx.Client(timeout=timeout)


def _raise_for_status(status_code: int, text: str) -> None:  # Map upstream failures onto gateway errors
    if status_code < 400:
        return
    lowered = (text or "").lower()
    snippet = (text or "")[:200]
    logger.error("LLM error status: %s", status_code)
    if status_code in (401, 403) or "api key" in lowered:
        raise LlmAuthError(f"LLM rejected credentials ({status_code}): {snippet}")
    if status_code == 429 or "quota" in lowered:
        raise LlmRateLimitError(f"LLM rate limited ({status_code}): {snippet}")
    raise LlmGatewayError(f"LLM returned status {status_code}")


def _preview(prompt: str) -> str:  # Build preview string for logging
    for line in prompt.splitlines():
        text = line.strip()
        if text:
            return text if len(text) <= 120 else text[:117] + "..."
    return ""


def _extract_content(data: Any) -> str:  # Extract message content from LLM response
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if isinstance(content, str):
                return content
        if isinstance(data.get("content"), str):
            return data["content"]
    raise LlmGatewayError("LLM response missing content")
