"""Response generator backed by an OpenAI-compatible chat completions API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from openai import OpenAI

from .errors import EMPTY_GENERATION_FALLBACK, GenerationError
from .models import Message

logger = logging.getLogger(__name__)


# -----------------------------
# Types & defaults
# -----------------------------

@dataclass
class GenerationConfig:
    model: str = "gpt-5-mini"
    temperature: float = 1.0
    max_completion_tokens: Optional[int] = None
    # Client-level resilience; None keeps the SDK defaults.
    timeout: Optional[float] = None
    max_retries: Optional[int] = None


class ResponseGenerator(Protocol):
    def generate(self, system_prompt: str, messages: Sequence[Message]) -> str:
        """Return the assistant reply, or raise :class:`GenerationError`."""
        ...


def build_chat_messages(system_prompt: str, messages: Sequence[Message]) -> List[Dict[str, str]]:
    msgs: List[Dict[str, str]] = []
    if system_prompt and system_prompt.strip():
        msgs.append({"role": "system", "content": system_prompt.strip()})
    msgs.extend(m.to_chat() for m in messages)
    return msgs


# -----------------------------
# OpenAI wrapper
# -----------------------------

class OpenAIGenerator:
    """Thin wrapper around :class:`openai.OpenAI` chat completions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        config: Optional[GenerationConfig] = None,
        client: Optional[Any] = None,
    ) -> None:
        """
        Parameters
        ----------
        api_key : str | None
            API key; the SDK falls back to ``OPENAI_API_KEY`` when None.
        base_url : str | None
            For OpenAI-compatible providers.
        config : GenerationConfig | None
            Model and sampling settings.
        client : Any
            Pre-built client exposing ``chat.completions.create`` (tests).
        """
        self.config = config or GenerationConfig()
        if client is None:
            client_kwargs: Dict[str, Any] = {"api_key": api_key, "base_url": base_url}
            if self.config.timeout is not None:
                client_kwargs["timeout"] = float(self.config.timeout)
            if self.config.max_retries is not None:
                client_kwargs["max_retries"] = int(self.config.max_retries)
            client = OpenAI(**client_kwargs)
        self._client = client

    def generate(self, system_prompt: str, messages: Sequence[Message]) -> str:
        create_kwargs: Dict[str, Any] = dict(
            model=self.config.model,
            messages=build_chat_messages(system_prompt, messages),
            temperature=self.config.temperature,
        )
        if self.config.max_completion_tokens:
            create_kwargs["max_completion_tokens"] = int(self.config.max_completion_tokens)

        try:
            response = self._client.chat.completions.create(**create_kwargs)
        except Exception as e:
            logger.exception("Chat completion failed: %s", e)
            raise GenerationError(f"Chat completion failed: {e}") from e

        if not getattr(response, "choices", None):
            raise GenerationError("Chat completion returned no choices")
        text = (response.choices[0].message.content or "").strip()
        return text or EMPTY_GENERATION_FALLBACK


# -----------------------------
# Convenience factory
# -----------------------------

def create_generator(cfg: Dict[str, Any]) -> OpenAIGenerator:
    """Create an OpenAIGenerator from the ``llm`` section of a config dict."""
    llm_cfg = (cfg or {}).get("llm", {}) if isinstance(cfg, dict) else {}
    gen_cfg = GenerationConfig(
        model=str(llm_cfg.get("model", "gpt-5-mini")),
        temperature=float(llm_cfg.get("temperature", 1.0)),
        max_completion_tokens=llm_cfg.get("max_completion_tokens"),
        timeout=llm_cfg.get("timeout"),
        max_retries=llm_cfg.get("max_retries"),
    )
    return OpenAIGenerator(
        api_key=llm_cfg.get("api_key") or None,
        base_url=llm_cfg.get("base_url") or None,
        config=gen_cfg,
    )
