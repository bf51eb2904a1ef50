"""LangChain ChatAnthropic wrapper behind a small inference-client protocol."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

from fontsense.config import Settings, get_settings
from fontsense.llm.errors import InferenceError, InferenceUnavailable, SafetyRejection

logger = logging.getLogger(__name__)

# Server-side web search tool offered to the enrichment stage
WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}

_REFUSAL_REASONS = {"refusal", "safety"}


@dataclass
class InferenceRequest:
    model: str
    system: str
    prompt: str
    op_name: str
    max_tokens: int = 1536
    temperature: float = 0.4
    tools: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class InferenceResponse:
    text: str
    model: str = ""
    finish_reason: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)
    citations: list[str] = field(default_factory=list)


class InferenceClient(Protocol):
    async def generate(self, request: InferenceRequest) -> InferenceResponse: ...


class AnthropicInferenceClient:
    """Calls Claude through langchain-anthropic and maps SDK failures to InferenceError."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    async def generate(self, request: InferenceRequest) -> InferenceResponse:
        settings = self.settings
        if not settings.inference_enabled:
            raise InferenceUnavailable("inference disabled by configuration")
        if not settings.anthropic_api_key:
            raise InferenceUnavailable("LLM not configured, set FONTSENSE_ANTHROPIC_API_KEY")

        import anthropic
        from langchain_anthropic import ChatAnthropic
        from langchain_core.messages import HumanMessage, SystemMessage

        llm = ChatAnthropic(
            model=request.model,
            api_key=settings.anthropic_api_key,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            # Retries are owned by fontsense.pipeline.retry
            max_retries=0,
        )
        runnable = llm.bind_tools(request.tools) if request.tools else llm

        messages = [SystemMessage(content=request.system), HumanMessage(content=request.prompt)]
        try:
            response = await runnable.ainvoke(messages)
        except anthropic.APIStatusError as e:
            raise InferenceError(str(e), status=e.status_code) from e
        except anthropic.APITimeoutError as e:
            raise InferenceError(f"timeout: {e}", status=504) from e
        except anthropic.APIConnectionError as e:
            raise InferenceError(f"connection error: {e}", status=503) from e

        metadata = getattr(response, "response_metadata", {}) or {}
        finish_reason = metadata.get("stop_reason")
        if finish_reason and str(finish_reason).lower() in _REFUSAL_REASONS:
            raise SafetyRejection(finish_reason=str(finish_reason))

        text, citations = _collect_text(response.content)
        usage = dict(getattr(response, "usage_metadata", None) or {})
        if usage:
            logger.info("%s usage: %s", request.op_name, usage)
        return InferenceResponse(
            text=text,
            model=request.model,
            finish_reason=finish_reason,
            usage=usage,
            citations=citations,
        )


def _collect_text(content: Any) -> tuple[str, list[str]]:
    """Join text blocks; tool-use blocks are skipped, citation URLs kept."""
    if isinstance(content, str):
        return content, []
    parts: list[str] = []
    citations: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
            continue
        if block.get("type") != "text":
            continue
        parts.append(block.get("text", ""))
        for cite in block.get("citations") or []:
            url = cite.get("url") if isinstance(cite, dict) else None
            if url and url not in citations:
                citations.append(url)
    return "".join(parts), citations


_FENCE_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\s*\n?```")


def extract_json(text: str) -> Any:
    """Parse JSON from model output, tolerating markdown fences and prose around it.

    Raises ``ValueError`` when nothing parseable is found.
    """
    if not text or not text.strip():
        raise ValueError("empty model output")
    stripped = text.strip()

    candidates = [stripped]
    match = _FENCE_RE.search(stripped)
    if match:
        candidates.append(match.group(1))
    obj = re.search(r"\{[\s\S]*\}", stripped)
    if obj:
        candidates.append(obj.group(0))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise ValueError(f"no JSON found in model output: {stripped[:120]!r}")
