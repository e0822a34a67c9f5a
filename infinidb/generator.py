"""Generator client.

Wraps a single request/response exchange with a LangChain chat model: the
caller supplies a rendered prompt and a JSON-schema output shape, and gets back
the parsed JSON value. No retries, no timeout; callers own deadlines.
"""

from __future__ import annotations

import json
import logging
import os
import re
import threading
from typing import Any, Dict, Optional, Protocol

from .errors import GeneratorError
from .utils import Configuration

logger = logging.getLogger(__name__)


class Generator(Protocol):
    def generate(self, prompt: str, output_shape: Dict[str, Any]) -> Any: ...


def _content_to_text(content: Any) -> str:
    """Normalize LangChain message content (string or structured parts) to plain text."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for p in content:
            if isinstance(p, str):
                parts.append(p)
            elif isinstance(p, dict) and "text" in p:
                parts.append(str(p.get("text", "")))
            else:
                parts.append(str(getattr(p, "text", getattr(p, "content", p))))
        return "\n".join(parts)
    return _content_to_text(getattr(content, "content", str(content)))


def _strip_thinking(text: str) -> str:
    return re.sub(r"<think>[\s\S]*?</think>", "", str(text), flags=re.IGNORECASE).strip()


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[len("```json") :]
    if text.startswith("```"):
        text = text[len("```") :]
    if text.endswith("```"):
        text = text[: -len("```")]
    return text.strip()


def parse_json_tolerant(text: str) -> Any:
    """Parse model text as JSON; returns the text unchanged if it cannot be parsed."""
    cleaned = _strip_fences(_strip_thinking(text))
    if not cleaned:
        return text
    try:
        return json.loads(cleaned)
    except ValueError:
        pass

    from json_repair import repair_json

    repaired = repair_json(cleaned, return_objects=True)
    # repair_json degrades to "" when nothing JSON-like is found.
    if repaired == "":
        return text
    return repaired


def _usage_from_message(ai_message: Any) -> Dict[str, Optional[int]]:
    usage: Dict[str, Optional[int]] = {"input_tokens": None, "output_tokens": None, "total_tokens": None}
    meta = getattr(ai_message, "response_metadata", None) or {}
    usage_meta = meta.get("token_usage") or getattr(ai_message, "usage_metadata", None) or {}
    if isinstance(usage_meta, dict):
        usage["input_tokens"] = usage_meta.get("input_tokens") or usage_meta.get("prompt_tokens")
        usage["output_tokens"] = usage_meta.get("output_tokens") or usage_meta.get("completion_tokens")
        usage["total_tokens"] = usage_meta.get("total_tokens")
    return usage


class GeneratorClient:
    """Structured-output generation over a LangChain chat model."""

    def __init__(self, config: Optional[Configuration] = None, model: Any = None) -> None:
        self.config = config or Configuration.from_env()
        self._model = model
        self._lock = threading.Lock()
        self.usage: Dict[str, int] = {"calls": 0, "input_tokens": 0, "output_tokens": 0, "total_tokens": 0}

    def _check_credentials(self) -> None:
        # An injected model carries its own credentials.
        if self._model is not None:
            return
        env_var = self.config.required_api_key_env()
        if env_var and not os.getenv(env_var):
            raise GeneratorError(f"{env_var} not set")

    def _get_model(self):
        with self._lock:
            if self._model is None:
                self._model = self.config.create_llm()
            return self._model

    def _record_usage(self, raw: Any) -> None:
        usage = _usage_from_message(raw)
        with self._lock:
            self.usage["calls"] += 1
            for key, value in usage.items():
                if value:
                    self.usage[key] += int(value)

    def generate(self, prompt: str, output_shape: Dict[str, Any]) -> Any:
        self._check_credentials()
        title = output_shape.get("title", "output")
        logger.info("Requesting %s from %s", title, self.config.llm_model)

        try:
            structured = self._get_model().with_structured_output(
                output_shape,
                method="json_schema",
                strict=True,
                include_raw=True,
            )
            result = structured.invoke(prompt)
        except Exception as e:
            raise GeneratorError(f"{title} generation failed: {e}") from e

        if not isinstance(result, dict) or "raw" not in result:
            return result

        raw = result.get("raw")
        self._record_usage(raw)
        parsed = result.get("parsed")
        if parsed is not None:
            return parsed
        if result.get("parsing_error") is not None:
            logger.debug("Structured parse failed for %s: %s", title, result["parsing_error"])
        return parse_json_tolerant(_content_to_text(raw))
