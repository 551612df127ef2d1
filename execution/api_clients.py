import abc
from typing import Any, Dict, List, Optional, Tuple

import anthropic
import httpx

from extraction.models import ChatMessage, ChatResult, ModelPricing, TokenUsage
from execution.retry_handler import RetryHandler
from utils.logger import setup_logger
import config

logger = setup_logger(__name__)

JSON_OBJECT = {"type": "json_object"}


class LLMError(RuntimeError):
    """Raised when a chat completion cannot be obtained."""
    retryable = False


class LLMRequestError(LLMError):
    """Provider rejected or failed the request."""

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class EmptyCompletion(LLMError):
    """Provider answered 200 with no content; usually transient."""
    retryable = True


class BaseChatClient(abc.ABC):
    """Chat completion + pricing lookup for one LLM provider."""

    def __init__(self, retry_handler: Optional[RetryHandler] = None):
        self.retry_handler = retry_handler or RetryHandler()

    async def chat_complete(
        self,
        model: str,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        response_format: Optional[Dict[str, Any]] = None
    ) -> ChatResult:
        """Run a chat completion, retrying transient failures."""
        result = await self.retry_handler.execute_with_retry(
            self._chat_once, model, messages, temperature, max_tokens, response_format
        )
        logger.info(
            f"LLM call ok: model={model} chars={len(result.content)} "
            f"usage={result.usage.model_dump() if result.usage else 'n/a'}"
        )
        return result

    @abc.abstractmethod
    async def _chat_once(
        self,
        model: str,
        messages: List[ChatMessage],
        temperature: float,
        max_tokens: int,
        response_format: Optional[Dict[str, Any]]
    ) -> ChatResult:
        """Single attempt; raise LLMError subclasses on failure"""
        pass

    @abc.abstractmethod
    async def get_pricing(self, model_id: str) -> Optional[ModelPricing]:
        """Pricing for a model, or None when it cannot be determined"""
        pass

    async def aclose(self) -> None:
        pass


def parse_model_id(model_id: str) -> Optional[Tuple[str, str]]:
    """Split an `author/slug` model id."""
    parts = [p.strip() for p in (model_id or "").strip().split("/")]
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def normalize_openai_usage(usage: Optional[Dict[str, Any]]) -> Optional[TokenUsage]:
    """Usage block -> TokenUsage; None unless all three counts are numeric."""
    if not isinstance(usage, dict):
        return None
    values = [usage.get("prompt_tokens"), usage.get("completion_tokens"), usage.get("total_tokens")]
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
        return None
    return TokenUsage(prompt_tokens=int(values[0]), completion_tokens=int(values[1]), total_tokens=int(values[2]))


class OpenRouterClient(BaseChatClient):
    """OpenRouter (OpenAI-compatible) chat client over httpx."""

    def __init__(
        self,
        api_key: Optional[str] = config.OPENROUTER_API_KEY,
        base_url: str = config.OPENROUTER_BASE_URL,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_handler: Optional[RetryHandler] = None
    ):
        super().__init__(retry_handler)
        if not api_key:
            raise LLMError("Missing required environment variable: OPENROUTER_API_KEY")
        headers = {"Authorization": f"Bearer {api_key}"}
        if config.OPENROUTER_REFERER:
            headers["HTTP-Referer"] = config.OPENROUTER_REFERER
        if config.OPENROUTER_TITLE:
            headers["X-Title"] = config.OPENROUTER_TITLE
        self.http = http_client or httpx.AsyncClient(
            base_url=base_url, headers=headers, timeout=config.LLM_TIMEOUT_SECONDS
        )

    async def _chat_once(self, model, messages, temperature, max_tokens, response_format):
        body: Dict[str, Any] = {
            "model": model,
            "messages": [m.model_dump() for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            body["response_format"] = response_format

        resp = await self.http.post("/chat/completions", json=body)
        if resp.status_code >= 400:
            message = f"OpenRouter API Error: {resp.status_code} {resp.text}".strip()
            if resp.status_code == 401:
                message += " (check OPENROUTER_API_KEY)"
            raise LLMRequestError(message, status_code=resp.status_code)

        data = resp.json()
        choices = data.get("choices") or []
        if not choices:
            raise EmptyCompletion(f"OpenRouter returned no choices for model {model}")
        content = ((choices[0] or {}).get("message") or {}).get("content")
        if not isinstance(content, str) or not content.strip():
            raise EmptyCompletion(f"OpenRouter returned empty content for model {model}")

        return ChatResult(content=content, usage=normalize_openai_usage(data.get("usage")))

    async def get_pricing(self, model_id: str) -> Optional[ModelPricing]:
        parsed = parse_model_id(model_id)
        if not parsed:
            return None
        author, slug = parsed
        try:
            resp = await self.http.get(f"/models/{author}/{slug}/endpoints")
        except httpx.HTTPError as e:
            logger.warning(f"Pricing lookup failed for {model_id}: {e}")
            return None
        if resp.status_code >= 400:
            logger.warning(f"Pricing lookup for {model_id} returned {resp.status_code}")
            return None

        try:
            endpoints = (resp.json().get("data") or {}).get("endpoints") or []
        except ValueError:
            return None
        if not endpoints:
            return None
        pricing = endpoints[0].get("pricing") or {}
        return ModelPricing(
            prompt_usd_per_token=_to_float(pricing.get("prompt")),
            completion_usd_per_token=_to_float(pricing.get("completion")),
            request_usd=_to_float(pricing.get("request")),
            raw=pricing,
        )

    async def aclose(self) -> None:
        await self.http.aclose()


class AnthropicChatClient(BaseChatClient):
    """Anthropic Messages API client."""

    # USD per million tokens (input, output), matched by model id prefix
    PRICE_PER_MTOK = {
        "claude-opus-4": (5.00, 25.00),
        "claude-sonnet-4": (3.00, 15.00),
        "claude-haiku-4": (1.00, 5.00),
        "claude-3-5-haiku": (0.80, 4.00),
    }

    JSON_HINT = "\n\nRespond with a single valid JSON object and nothing else."

    def __init__(
        self,
        api_key: Optional[str] = config.ANTHROPIC_API_KEY,
        client: Optional[anthropic.AsyncAnthropic] = None,
        retry_handler: Optional[RetryHandler] = None
    ):
        super().__init__(retry_handler)
        if client is None and not api_key:
            raise LLMError("Missing required environment variable: ANTHROPIC_API_KEY")
        # Retries are ours, not the SDK's
        self.client = client or anthropic.AsyncAnthropic(
            api_key=api_key, max_retries=0, timeout=config.LLM_TIMEOUT_SECONDS
        )

    async def _chat_once(self, model, messages, temperature, max_tokens, response_format):
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        if response_format and response_format.get("type") == "json_object":
            system += self.JSON_HINT
        turns = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]

        try:
            message = await self.client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=turns,
            )
        except anthropic.APIStatusError as e:
            raise LLMRequestError(f"Anthropic API Error: {e.status_code} {e}", status_code=e.status_code) from e
        except anthropic.APIConnectionError as e:
            raise LLMRequestError(f"Anthropic connection error: {e}", retryable=True) from e

        content = "".join(block.text for block in message.content if getattr(block, "type", "") == "text")
        if not content.strip():
            raise EmptyCompletion(f"Anthropic returned empty content for model {model}")

        usage = None
        if message.usage is not None:
            usage = TokenUsage(
                prompt_tokens=message.usage.input_tokens,
                completion_tokens=message.usage.output_tokens,
                total_tokens=message.usage.input_tokens + message.usage.output_tokens,
            )
        return ChatResult(content=content, usage=usage)

    async def get_pricing(self, model_id: str) -> Optional[ModelPricing]:
        for prefix, (input_rate, output_rate) in self.PRICE_PER_MTOK.items():
            if model_id.startswith(prefix):
                return ModelPricing(
                    prompt_usd_per_token=input_rate / 1_000_000,
                    completion_usd_per_token=output_rate / 1_000_000,
                    request_usd=0.0,
                )
        return None

    async def aclose(self) -> None:
        await self.client.close()


def get_chat_client(provider: str = config.LLM_PROVIDER) -> BaseChatClient:
    """Factory: get chat client by provider name."""
    clients = {
        "openrouter": OpenRouterClient,
        "anthropic": AnthropicChatClient,
    }
    if provider not in clients:
        raise ValueError(f"Unknown LLM provider: {provider}. Options: {list(clients.keys())}")
    return clients[provider]()
