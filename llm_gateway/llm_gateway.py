from __future__ import annotations  # HTTP gateway for chat-completion LLM routes with schema-validated output

import json
import logging
import os
import threading
from typing import Any, Dict, Optional, Protocol, Sequence, Type, TypeVar

import httpx
from langchain_core.messages import BaseMessage
from langchain_core.runnables import RunnableLambda
from pydantic import BaseModel, ValidationError

from config import LlmRoute


logger = logging.getLogger(__name__)


_MODEL_LOCKS: Dict[str, threading.Lock] = {}
_MODEL_LOCKS_GUARD = threading.Lock()


class HttpClient(Protocol):  # Anything with an httpx-style post()
    def post(self, url: str, *, json: Dict[str, Any], headers: Dict[str, str], timeout: float) -> "HttpResponse": ...


class HttpResponse(Protocol):
    @property
    def status_code(self) -> int: ...

    def json(self) -> Any: ...

    @property
    def text(self) -> str: ...


class LlmGatewayError(RuntimeError):  # Transport, status or output-validation failure
    pass


T = TypeVar("T", bound=BaseModel)


def _lock_for(cfg: LlmRoute) -> threading.Lock:
    key = cfg.name or f"{cfg.base_url}{cfg.endpoint}"
    with _MODEL_LOCKS_GUARD:
        lock = _MODEL_LOCKS.get(key)
        if lock is None:
            lock = threading.Lock()
            _MODEL_LOCKS[key] = lock
    return lock


def chat(
    messages: Sequence[Dict[str, str]],
    schema: Type[T],
    *,
    cfg: LlmRoute,
    client: Optional[HttpClient] = None,
    options: Optional[Dict[str, Any]] = None,
) -> T:
    """Send ``messages`` to the route and parse the reply into ``schema``.

    Replies that fail JSON/schema validation are retried up to
    ``cfg.max_retries`` times with a corrective system hint. Transport and
    HTTP status failures are not retried.
    """

    if cfg.sequential:
        with _lock_for(cfg):
            return _execute(messages, schema, cfg, client, options)
    return _execute(messages, schema, cfg, client, options)


def _execute(
    messages: Sequence[Dict[str, str]],
    schema: Type[T],
    cfg: LlmRoute,
    client: Optional[HttpClient],
    options: Optional[Dict[str, Any]],
) -> T:
    base_messages: list[Dict[str, str]] = []
    if cfg.enforce_json:
        schema_json = json.dumps(schema.model_json_schema(), indent=2)
        base_messages.append(
            {"role": "system", "content": "Reply with a single JSON object matching this schema:\n" + schema_json}
        )
    base_messages.extend(_normalize_messages(messages))
    attempts = cfg.max_retries + 1
    last_error: Optional[Exception] = None
    logger.info(
        "LLM request start route=%s model=%s attempts=%d preview=%s",
        cfg.name,
        cfg.model,
        attempts,
        _preview(base_messages),
    )
    for attempt in range(attempts):
        attempt_messages = list(base_messages)
        if last_error is not None:
            attempt_messages.append({"role": "system", "content": _retry_hint(str(last_error), cfg.enforce_json)})
        data = _post(cfg, _payload(cfg, attempt_messages, options), client)
        content = _extract_content(data)
        try:
            parsed = _validate(schema, content)
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning(
                "LLM output validation failed route=%s attempt=%d/%d: %s",
                cfg.name,
                attempt + 1,
                attempts,
                exc,
            )
            last_error = exc
            continue
        logger.info("LLM request done route=%s model=%s attempt=%d", cfg.name, cfg.model, attempt + 1)
        return parsed
    raise LlmGatewayError("LLM output validation failed") from last_error


def runnable(route: LlmRoute, schema: Type[T], *, client: Optional[HttpClient] = None) -> RunnableLambda:
    """Wrap ``chat`` so it can be piped after a LangChain prompt."""

    def _invoke(payload: Any) -> T:
        return chat(_coerce_messages(payload), schema, cfg=route, client=client)

    return RunnableLambda(_invoke)


def _payload(cfg: LlmRoute, messages: Sequence[Dict[str, str]], options: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"model": cfg.model, "messages": list(messages)}
    if cfg.temperature is not None:
        payload["temperature"] = cfg.temperature
    if cfg.response_format:
        payload["response_format"] = {"type": cfg.response_format}
    if options:
        payload.update(options)
    return payload


def _headers(cfg: LlmRoute) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if cfg.api_key_env:
        api_key = os.getenv(cfg.api_key_env)
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
    headers.update(cfg.extra_headers)
    return headers


def _post(cfg: LlmRoute, payload: Dict[str, Any], client: Optional[HttpClient]) -> Any:
    url = f"{cfg.base_url.rstrip('/')}/{cfg.endpoint.lstrip('/')}"
    try:
        if client is not None:
            response = client.post(url, json=payload, headers=_headers(cfg), timeout=cfg.timeout_s)
            return _decode(response)
        with httpx.Client(timeout=cfg.timeout_s) as http_client:
            return _decode(http_client.post(url, json=payload, headers=_headers(cfg)))
    except LlmGatewayError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.error("LLM transport failure route=%s: %s", cfg.name, exc)
        raise LlmGatewayError("LLM transport failed") from exc


def _decode(response: HttpResponse) -> Any:
    if response.status_code >= 400:
        logger.error("LLM error status=%s body=%s", response.status_code, (response.text or "")[:200])
        raise LlmGatewayError(f"LLM returned status {response.status_code}")
    try:
        return response.json()
    except ValueError as exc:
        logger.error("Invalid JSON payload from LLM: %s", exc)
        raise LlmGatewayError("LLM payload was not JSON") from exc


def _normalize_messages(messages: Sequence[Dict[str, str]]) -> list[Dict[str, str]]:
    normalized: list[Dict[str, str]] = []
    for item in messages:
        if not isinstance(item, dict):
            raise TypeError("Each chat message must be a dict with role/content")
        role = str(item.get("role", "")).strip()
        if not role:
            raise ValueError("Chat message missing role")
        normalized.append({"role": role, "content": str(item.get("content", ""))})
    return normalized


def _preview(messages: Sequence[Dict[str, str]], limit: int = 120) -> str:  # First non-empty line, clipped
    for message in messages:
        text = message.get("content", "").strip()
        if text:
            line = text.splitlines()[0]
            return line if len(line) <= limit else line[: limit - 3] + "..."
    return ""


def _extract_content(data: Any) -> str:  # OpenAI-style choices[0].message.content, or a bare content field
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


def _validate(schema: Type[T], content: str) -> T:
    return schema.model_validate_json(_strip_code_fences(content))


def _strip_code_fences(content: str) -> str:  # Remove common markdown fences from LLM output
    text = content.strip()
    if not text.startswith("```"):
        return text
    lines = text.splitlines()[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines).strip()


def _retry_hint(error_text: Optional[str], enforce_json: bool) -> str:
    base = "The previous reply failed validation."
    if error_text:
        reason = error_text.splitlines()[0].strip()
        if len(reason) > 200:
            reason = reason[:197] + "..."
        base += f" Reason: {reason}."
    if enforce_json:
        return base + " Return a single JSON object that matches the schema."
    return base + " Follow the requested format precisely."


def _coerce_messages(payload: Any) -> Sequence[Dict[str, str]]:  # Convert LangChain payloads into dict messages
    if hasattr(payload, "to_messages"):
        payload = payload.to_messages()
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, BaseMessage):
        return [_message_dict(payload)]
    if isinstance(payload, (list, tuple)):
        if all(isinstance(item, dict) for item in payload):
            return list(payload)
        if all(isinstance(item, BaseMessage) for item in payload):
            return [_message_dict(item) for item in payload]
    raise TypeError("Unsupported message payload for LLM runnable")


def _message_dict(message: BaseMessage) -> Dict[str, str]:  # Map LangChain message types to chat roles
    role = {"human": "user", "ai": "assistant"}.get(message.type, message.type)
    content = message.content
    if not isinstance(content, str):
        content = json.dumps(content)
    return {"role": role, "content": content}
