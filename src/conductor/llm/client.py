"""
Provider-agnostic LLM client used by every conductor agent.

Features:
  - One call() for Anthropic, OpenAI and Google
  - Prior conversation turns passed as native chat messages
  - Token tracking per call and per client lifetime
  - Retry with exponential backoff on transient provider errors
  - Prompt size limits via the prompt guard

A call either returns an LLMResponse or raises LLMCallError -- failures are
never disguised as reply text, so agents and the orchestrator can tell a
real answer from a broken provider.

    prompt = AgentPrompt(
        system="You are the primary architect...",
        context="User preferences: ...",
        history=[Turn("user", "Hi"), Turn("assistant", "[claude]: Hello")],
        user_message="Add a login form",
    )
    response = await client.call(prompt, role="claude")

Keep this file under 500 lines.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any

from ..exceptions import LLMCallError
from ..security.prompt_guard import sanitize_for_prompt

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_PROMPT_LENGTH = 200_000
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 30.0

PROVIDER_MODELS = {
    "anthropic": "claude-sonnet-4-20250514",
    "openai": "gpt-4o",
    "google": "gemini-2.0-flash",
}

PROVIDER_KEYS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
}

RETRYABLE_ERRORS = {
    "RateLimitError",
    "APITimeoutError",
    "InternalServerError",
    "ServiceUnavailableError",
    "APIConnectionError",
    "ResourceExhausted",
    "DeadlineExceeded",
    "Timeout",
    "ConnectError",
}


# =============================================================================
# DATA MODELS
# =============================================================================


@dataclass
class Turn:
    """One prior chat turn. role is "user" or "assistant"."""

    role: str
    content: str


@dataclass
class AgentPrompt:
    """
    A prompt split into its stable and per-request parts.

    system: The agent persona (stable per agent).
    context: Preferences, project info, editor snapshot (stable per request).
    history: Prior turns, oldest first.
    user_message: What the agent must answer now.
    """

    system: str = ""
    context: str = ""
    history: list[Turn] = field(default_factory=list)
    user_message: str = ""

    def system_text(self) -> str:
        return "\n\n".join(p for p in (self.system, self.context) if p)

    def to_messages(self) -> list[dict[str, str]]:
        """
        History plus the current message as alternating chat messages.

        Consecutive turns of the same role are merged, and a leading
        assistant turn is dropped, since providers reject both.
        """
        merged: list[dict[str, str]] = []
        for turn in [*self.history, Turn("user", self.user_message)]:
            if not turn.content:
                continue
            if merged and merged[-1]["role"] == turn.role:
                merged[-1]["content"] += "\n\n" + turn.content
            else:
                merged.append({"role": turn.role, "content": turn.content})
        while merged and merged[0]["role"] != "user":
            merged.pop(0)
        return merged

    def to_flat_prompt(self) -> str:
        """Single-string rendering for providers called without chat roles."""
        parts = [self.system_text()]
        for message in self.to_messages():
            parts.append(f"{message['role'].upper()}: {message['content']}")
        return "\n\n".join(p for p in parts if p)


@dataclass
class TokenUsage:
    """Token usage of one call (or the running total of a client)."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        self.total_tokens = self.input_tokens + self.output_tokens

    def add(self, other: "TokenUsage") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.total_tokens += other.total_tokens

    def to_dict(self) -> dict[str, int]:
        return {
            "input": self.input_tokens,
            "output": self.output_tokens,
            "total": self.total_tokens,
        }


@dataclass
class LLMResponse:
    """A successful provider reply."""

    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""
    provider: str = ""
    latency_ms: float = 0.0


# =============================================================================
# LLM CLIENT
# =============================================================================


class LLMClient:
    """
    Thin async wrapper over one provider SDK.

    Usage:
        client = LLMClient(provider="openai", model="gpt-4o")
        response = await client.call(AgentPrompt(user_message="Review this"))
    """

    def __init__(
        self,
        provider: str = "anthropic",
        model: str | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
    ):
        self._provider = provider.lower()
        if self._provider not in PROVIDER_MODELS:
            raise ValueError(f"Unsupported provider: {provider}")
        self._model = model or PROVIDER_MODELS[self._provider]
        self._api_key = api_key or self._load_api_key()
        self._timeout = timeout
        self._max_retries = max_retries
        self._max_prompt_length = max_prompt_length
        self._client: Any = None
        self._total_usage = TokenUsage()

        self._init_client()
        logger.info(
            f"[LLM] Initialized {self._provider} client "
            f"(model={self._model}, timeout={self._timeout}s)"
        )

    def _load_api_key(self) -> str:
        env_var = PROVIDER_KEYS[self._provider]
        key = os.environ.get(env_var, "")
        if not key:
            logger.warning(f"[LLM] {env_var} not set -- {self._provider} calls will fail")
        return key

    def _init_client(self) -> None:
        """Build the provider SDK client."""
        if self._provider == "anthropic":
            import anthropic

            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key, timeout=self._timeout
            )
        elif self._provider == "openai":
            import openai

            self._client = openai.AsyncOpenAI(
                api_key=self._api_key, timeout=self._timeout
            )
        else:
            import google.generativeai as genai

            genai.configure(api_key=self._api_key)
            self._client = genai.GenerativeModel(self._model)

    async def call(
        self,
        prompt: AgentPrompt | str,
        role: str = "assistant",
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """
        Send one request/response exchange, retrying transient failures.

        Args:
            prompt: AgentPrompt, or a bare string used as the user message.
            role: Caller label for logging only (usually the agent id).
            temperature: Sampling temperature.
            max_tokens: Maximum output tokens.

        Raises:
            LLMCallError: The provider failed on every attempt, or returned
                an empty reply.
        """
        if isinstance(prompt, str):
            prompt = AgentPrompt(user_message=prompt)
        prompt = self._sanitize_prompt(prompt)

        start = time.time()
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._call_provider(prompt, temperature, max_tokens)
            except Exception as e:
                last_error = e
                if self._is_retryable(e) and attempt < self._max_retries:
                    delay = min(RETRY_BASE_DELAY * (2**attempt), RETRY_MAX_DELAY)
                    logger.warning(
                        f"[LLM] {self._provider}/{role} retryable error "
                        f"(attempt {attempt + 1}): {type(e).__name__}. "
                        f"Retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                break

            if not response.content.strip():
                raise LLMCallError(
                    f"{self._provider} returned an empty reply", provider=self._provider
                )

            response.latency_ms = (time.time() - start) * 1000
            self._total_usage.add(response.usage)
            logger.debug(
                f"[LLM] {self._provider}/{role}: "
                f"{response.usage.input_tokens}in + {response.usage.output_tokens}out "
                f"({response.latency_ms:.0f}ms)"
            )
            return response

        logger.error(
            f"[LLM] {self._provider}/{role} failed after {attempt + 1} attempt(s): "
            f"{type(last_error).__name__}"
        )
        raise LLMCallError(
            f"{self._provider} call failed: {type(last_error).__name__}: {last_error}",
            provider=self._provider,
            retryable=self._is_retryable(last_error),
        ) from last_error

    def _sanitize_prompt(self, prompt: AgentPrompt) -> AgentPrompt:
        """Cap each part of the prompt and strip null bytes."""
        limit = self._max_prompt_length // 4
        return AgentPrompt(
            system=sanitize_for_prompt(prompt.system, max_length=limit),
            context=sanitize_for_prompt(prompt.context, max_length=limit),
            history=[
                Turn(t.role, sanitize_for_prompt(t.content, max_length=limit))
                for t in prompt.history
            ],
            user_message=sanitize_for_prompt(prompt.user_message, max_length=limit),
        )

    async def _call_provider(
        self, prompt: AgentPrompt, temperature: float, max_tokens: int
    ) -> LLMResponse:
        if self._provider == "anthropic":
            return await self._call_anthropic(prompt, temperature, max_tokens)
        elif self._provider == "openai":
            return await self._call_openai(prompt, temperature, max_tokens)
        return await self._call_google(prompt, temperature, max_tokens)

    async def _call_anthropic(
        self, prompt: AgentPrompt, temperature: float, max_tokens: int
    ) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": prompt.to_messages(),
        }
        system = prompt.system_text()
        if system:
            kwargs["system"] = system

        response = await self._client.messages.create(**kwargs)

        text = "".join(
            getattr(block, "text", "") for block in response.content
        )
        usage = response.usage
        return LLMResponse(
            content=text,
            usage=TokenUsage(
                input_tokens=getattr(usage, "input_tokens", 0) or 0,
                output_tokens=getattr(usage, "output_tokens", 0) or 0,
            ),
            model=self._model,
            provider="anthropic",
        )

    async def _call_openai(
        self, prompt: AgentPrompt, temperature: float, max_tokens: int
    ) -> LLMResponse:
        messages = []
        system = prompt.system_text()
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(prompt.to_messages())

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            usage=TokenUsage(
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
            ),
            model=self._model,
            provider="openai",
        )

    async def _call_google(
        self, prompt: AgentPrompt, temperature: float, max_tokens: int
    ) -> LLMResponse:
        """Gemini's SDK call is synchronous, so it runs in a worker thread."""
        response = await asyncio.to_thread(
            self._client.generate_content,
            prompt.to_flat_prompt(),
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_tokens,
            },
        )

        input_tok = 0
        output_tok = 0
        if hasattr(response, "usage_metadata"):
            input_tok = getattr(response.usage_metadata, "prompt_token_count", 0) or 0
            output_tok = getattr(response.usage_metadata, "candidates_token_count", 0) or 0

        return LLMResponse(
            content=response.text,
            usage=TokenUsage(input_tokens=input_tok, output_tokens=output_tok),
            model=self._model,
            provider="google",
        )

    def _is_retryable(self, error: Exception | None) -> bool:
        return error is not None and type(error).__name__ in RETRYABLE_ERRORS

    @property
    def total_usage(self) -> TokenUsage:
        """Cumulative token usage across all calls in this client's lifetime."""
        return self._total_usage

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def model(self) -> str:
        return self._model


# =============================================================================
# FACTORY
# =============================================================================


def create_client(
    provider: str | None = None,
    model: str | None = None,
    api_key: str | None = None,
    **kwargs,
) -> LLMClient:
    """
    Create an LLM client, auto-detecting the provider when not specified.

    Detection order:
      1. Explicit provider argument
      2. ANTHROPIC_API_KEY set -> anthropic
      3. OPENAI_API_KEY set -> openai
      4. GOOGLE_API_KEY set -> google
      5. Default: anthropic
    """
    if provider is None:
        for name, env_var in PROVIDER_KEYS.items():
            if os.environ.get(env_var):
                provider = name
                break
        else:
            provider = "anthropic"
            logger.warning("[LLM] No API key found. Defaulting to anthropic.")

    return LLMClient(provider=provider, model=model, api_key=api_key, **kwargs)
