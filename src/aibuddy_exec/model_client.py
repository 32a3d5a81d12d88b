"""Model client interface and OpenRouter implementation."""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from aibuddy_exec.constants import DEFAULT_AI_TIMEOUT_S, DEFAULT_MODEL


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class Message:
    """A chat message."""
    role: str  # "user", "assistant"
    content: str


@dataclass
class ChatResult:
    """Result from a chat call."""
    response_text: str
    model: str
    cost: float = 0.0
    usage: Optional[Dict[str, Any]] = None


class ModelClient(ABC):
    """Abstract interface for the AI collaborator."""

    @abstractmethod
    def chat(self, messages: List[Message], system_prompt: str) -> ChatResult:
        """
        Send a conversation and return the assistant reply.

        Args:
            messages: Conversation so far (user/assistant turns)
            system_prompt: Instructions prepended as the system message

        Returns:
            ChatResult with the response text and metadata

        Raises:
            ModelClientError: On API or network errors
        """
        pass

    def abort(self) -> None:
        """Abandon an in-flight ``chat`` from another thread. No-op by default."""
        pass


class ModelClientError(Exception):
    """Error from model client operations."""
    pass


def _debug(message: str) -> None:
    # Debug logging (env-gated)
    if os.environ.get("AIBUDDY_DEBUG"):
        print(f"[DEBUG] {message}")


class OpenRouterClient(ModelClient):
    """OpenRouter API client.

    Uses the OpenRouter chat completions endpoint.
    API docs: https://openrouter.ai/docs
    """

    BASE_URL = "https://openrouter.ai/api/v1/chat/completions"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_AI_TIMEOUT_S,
        max_tokens: Optional[int] = 4000,
    ):
        """
        Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key. If not provided, reads from
                     OPENROUTER_API_KEY environment variable.
            model: Model identifier used for every call
            timeout: Request timeout in seconds
            max_tokens: Maximum output tokens (None for model default)
        """
        self.api_key = api_key or os.environ.get("OPENROUTER_API_KEY")
        if not self.api_key:
            raise ModelClientError(
                "OPENROUTER_API_KEY environment variable is required."
            )
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._active_client: Optional[httpx.Client] = None

    def _make_request(self, payload: dict, headers: dict) -> dict:
        """Make HTTP request to OpenRouter API."""
        with httpx.Client(timeout=self.timeout) as client:
            self._active_client = client
            try:
                response = client.post(
                    self.BASE_URL,
                    headers=headers,
                    json=payload,
                )
                response.raise_for_status()
                return response.json()
            finally:
                self._active_client = None

    def abort(self) -> None:
        """Close the connection of the request in flight, if any."""
        client = self._active_client
        if client is not None:
            _debug("aborting in-flight request")
            client.close()

    def chat(self, messages: List[Message], system_prompt: str) -> ChatResult:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "aibuddy-exec",
        }

        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}]
            + [{"role": m.role, "content": m.content} for m in messages],
            # Ask OpenRouter to report the call's cost in usage
            "usage": {"include": True},
        }
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens

        _debug(f"model={self.model}, messages={len(messages)}, max_tokens={self.max_tokens}")

        try:
            data = self._make_request(payload, headers)
        except httpx.HTTPStatusError as e:
            # Extract error message from response if available
            try:
                error_data = e.response.json()
                error_msg = error_data.get("error", {}).get("message", str(e))
            except Exception:
                error_msg = str(e)
            raise ModelClientError(f"API error: {error_msg}")
        except httpx.TimeoutException:
            raise ModelClientError(
                f"Request timed out after {self.timeout}s. "
                "Try again or use a faster model."
            )
        except httpx.RequestError as e:
            raise ModelClientError(f"Network error: {e}")

        choices = data.get("choices") or []
        if not choices:
            raise ModelClientError("No choices in API response")

        content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            raise ModelClientError("Empty content in API response")

        usage = data.get("usage") or {}
        return ChatResult(
            response_text=content,
            model=data.get("model", self.model),
            cost=float(usage.get("cost") or 0.0),
            usage=usage or None,
        )


class TracedClient(ModelClient):
    """Wraps another client so each call shows up as a LangSmith span.

    Traces are only exported when LangSmith tracing is configured in the
    environment (LANGSMITH_TRACING / LANGSMITH_API_KEY); otherwise this is
    a pass-through.
    """

    def __init__(self, inner: ModelClient, task_id: str = "", phase: str = "fix_analysis"):
        self.inner = inner
        self.task_id = task_id
        self.phase = phase

    def abort(self) -> None:
        self.inner.abort()

    def chat(self, messages: List[Message], system_prompt: str) -> ChatResult:
        from langsmith import traceable

        model = getattr(self.inner, "model", "unknown")

        @traceable(
            name=f"{self.phase}_{str(model).replace('/', '_')}",
            run_type="llm",
            metadata={"phase": self.phase, "model": model, "task_id": self.task_id},
        )
        def _traced_call(messages_input: List[dict], system: str) -> dict:
            msg_objects = [Message(role=m["role"], content=m["content"]) for m in messages_input]
            result = self.inner.chat(msg_objects, system)
            return {
                "response_text": result.response_text,
                "model": result.model,
                "cost": result.cost,
                "usage": result.usage,
            }

        output = _traced_call([{"role": m.role, "content": m.content} for m in messages], system_prompt)
        return ChatResult(
            response_text=output["response_text"],
            model=output["model"],
            cost=output.get("cost", 0.0),
            usage=output.get("usage"),
        )


def get_openrouter_client(model: str = DEFAULT_MODEL) -> OpenRouterClient:
    """Get an OpenRouter client instance."""
    return OpenRouterClient(model=model)
