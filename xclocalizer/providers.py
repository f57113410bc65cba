"""Translation provider adapters."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Collection, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from .errors import (
    TranslationProviderConfigurationError,
    TranslationProviderError,
)
from .logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str


@dataclass(frozen=True)
class ProviderInfo:
    """Static description of a supported provider."""

    name: str
    key_prefix: str
    models: tuple
    default_model: str
    needs_endpoint: bool = False
    needs_region: bool = False


PROVIDER_CATALOG: Dict[str, ProviderInfo] = {
    "anthropic": ProviderInfo(
        name="Anthropic (Claude)",
        key_prefix="sk-ant-",
        models=(
            ModelInfo("claude-haiku-4-5-20251001", "Claude Haiku 4.5 ($)"),
            ModelInfo("claude-sonnet-4-5-20250929", "Claude Sonnet 4.5 ($$)"),
            ModelInfo("claude-opus-4-5-20251101", "Claude Opus 4.5 ($$$)"),
        ),
        default_model="claude-sonnet-4-5-20250929",
    ),
    "openai": ProviderInfo(
        name="OpenAI (GPT)",
        key_prefix="sk-",
        models=(
            ModelInfo("gpt-5.1-2025-11-13", "GPT-5.1 ($$$)"),
            ModelInfo("gpt-5-mini-2025-08-07", "GPT-5 Mini ($$)"),
            ModelInfo("gpt-5-nano-2025-08-07", "GPT-5 Nano ($)"),
        ),
        default_model="gpt-5-mini-2025-08-07",
    ),
    "azure_openai": ProviderInfo(
        name="Azure OpenAI",
        key_prefix="",
        models=(
            ModelInfo("gpt-5-nano", "GPT-5 Nano ($)"),
            ModelInfo("gpt-5-mini", "GPT-5 Mini ($$)"),
        ),
        default_model="gpt-5-nano",
        needs_endpoint=True,
    ),
    "google": ProviderInfo(
        name="Google (Gemini)",
        key_prefix="AIza",
        models=(
            ModelInfo("gemini-2.5-flash-lite", "Gemini 2.5 Flash-Lite ($)"),
            ModelInfo("gemini-2.5-flash", "Gemini 2.5 Flash ($$)"),
            ModelInfo("gemini-2.5-pro", "Gemini 2.5 Pro ($$$)"),
        ),
        default_model="gemini-2.5-flash",
    ),
    "github": ProviderInfo(
        name="GitHub Models",
        key_prefix="ghp_",
        models=(
            ModelInfo("gpt-4o-mini", "GPT-4o Mini ($)"),
            ModelInfo("gpt-4o", "GPT-4o ($$)"),
            ModelInfo("gpt-4.1", "GPT-4.1 ($$$)"),
        ),
        default_model="gpt-4o",
    ),
    "bedrock": ProviderInfo(
        name="AWS Bedrock",
        key_prefix="",
        models=(
            ModelInfo("anthropic.claude-3-haiku-20240307-v1:0", "Claude 3 Haiku ($)"),
            ModelInfo("anthropic.claude-3-5-sonnet-20240620-v1:0", "Claude 3.5 Sonnet ($$)"),
            ModelInfo("amazon.nova-pro-v1:0", "Amazon Nova Pro ($$)"),
        ),
        default_model="anthropic.claude-3-5-sonnet-20240620-v1:0",
        needs_region=True,
    ),
}

PROVIDER_ALIASES = {
    "claude": "anthropic",
    "gpt": "openai",
    "default": "anthropic",
    "azure": "azure_openai",
    "azure_open_ai": "azure_openai",
    "azureopenai": "azure_openai",
    "gemini": "google",
    "github_models": "github",
    "aws": "bedrock",
    "aws_bedrock": "bedrock",
    "noop": "echo",
    "mock": "echo",
}

GITHUB_MODELS_ENDPOINT = "https://models.inference.ai.azure.com"
GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models"
BEDROCK_ENDPOINT = "https://bedrock-runtime.{region}.amazonaws.com/model/{model}/converse"
DEFAULT_BEDROCK_REGION = "us-east-1"


def normalise_provider_name(name: str | None) -> str:
    normalized = (name or "anthropic").strip().lower().replace("-", "_")
    return PROVIDER_ALIASES.get(normalized, normalized)


def validate_api_key_format(provider: str, key: str) -> bool:
    """Check that ``key`` carries the prefix the provider issues."""

    info = PROVIDER_CATALOG.get(normalise_provider_name(provider))
    if info is None or not key:
        return False
    return key.startswith(info.key_prefix)


def resolve_model(provider: str, requested: str | None) -> str:
    """Return ``requested`` when the provider knows it, else its default model."""

    info = PROVIDER_CATALOG.get(normalise_provider_name(provider))
    if info is None:
        raise TranslationProviderConfigurationError(f"Unknown translation provider '{provider}'.")
    if not requested:
        return info.default_model
    if any(model.id == requested for model in info.models):
        return requested
    logger.warning(
        'Invalid model "%s" for provider "%s", using default %s.',
        requested,
        provider,
        info.default_model,
    )
    return info.default_model


class TranslationProvider(ABC):
    """Abstract adapter for translation providers."""

    name = "abstract"

    @abstractmethod
    async def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        protected_terms: Collection[str] = (),
    ) -> List[str]:
        """Translate ``texts`` and return one output per input, in order."""


class EchoTranslationProvider(TranslationProvider):
    """A provider that returns the original text (useful for testing)."""

    name = "echo"

    async def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        protected_terms: Collection[str] = (),
    ) -> List[str]:
        return list(texts)


def build_system_prompt(target_language: str, protected_terms: Collection[str] = ()) -> str:
    prompt = (
        "You are a professional translator of mobile app and app store text. "
        f"Translate every provided text into the language identified by '{target_language}'. "
        "Preserve formatting, placeholders such as %@, %d, %1$@ and {name}, numbers, "
        "line breaks and markup. Keep the tone natural and concise for app users. "
        "Respond strictly with an object shaped as "
        '{"translations": [{"id": "...", "translated": "..."}]} containing exactly one '
        "entry for every input id. "
        "Do not add commentary. Do not wrap the JSON in markdown code fences."
    )
    terms = sorted(term for term in protected_terms if term)
    if terms:
        listed = ", ".join(f'"{term}"' for term in terms)
        prompt += (
            f" The following protected terms must appear exactly as written and must "
            f"never be translated or transliterated: {listed}."
        )
    return prompt


def build_user_payload(texts: Sequence[str], target_language: str) -> Dict[str, Any]:
    return {
        "target_language": target_language,
        "texts": [{"id": str(index), "text": text} for index, text in enumerate(texts)],
    }


def strip_code_fence(text: str) -> str:
    """Remove leading/trailing markdown code fences if present."""

    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped

    # Drop opening fence and optional language hint.
    first_newline = stripped.find("\n")
    if first_newline == -1:
        return stripped
    body = stripped[first_newline + 1 :]
    closing_index = body.rfind("```")
    if closing_index != -1:
        body = body[:closing_index]
    return body.strip()


def normalise_translations(payload: Any) -> List[Dict[str, Any]]:
    """Normalise raw payloads into a list of translation dictionaries."""

    if isinstance(payload, str):
        payload = strip_code_fence(payload)
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise TranslationProviderError(
                f"Translation provider returned invalid JSON: {exc}"
            ) from exc

    if isinstance(payload, dict):
        translations = payload.get("translations")
        if isinstance(translations, list):
            return translations

    if isinstance(payload, list):
        return payload

    raise TranslationProviderError(
        "Translation provider response malformed: could not find translations list."
    )


def order_translations(entries: Sequence[Any], expected: int) -> List[str]:
    """Map ``{id, translated}`` entries back onto input positions."""

    mapping: Dict[str, str] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            raise TranslationProviderError(
                "Translation provider response malformed: expected objects."
            )
        entry_id = entry.get("id")
        translated = entry.get("translated")
        if isinstance(entry_id, int) and not isinstance(entry_id, bool):
            entry_id = str(entry_id)
        if not isinstance(entry_id, str) or not isinstance(translated, str):
            raise TranslationProviderError(
                "Translation provider response malformed: missing fields."
            )
        if entry_id in mapping:
            raise TranslationProviderError(
                f"Translation provider response duplicated id '{entry_id}'."
            )
        mapping[entry_id] = translated

    expected_ids = [str(index) for index in range(expected)]
    unknown = sorted(set(mapping) - set(expected_ids))
    if unknown:
        raise TranslationProviderError(
            "Translation provider response contained unknown ids: " + ", ".join(unknown)
        )
    missing = [entry_id for entry_id in expected_ids if entry_id not in mapping]
    if missing:
        raise TranslationProviderError(
            "Translation provider response missing ids: " + ", ".join(missing)
        )
    return [mapping[entry_id] for entry_id in expected_ids]


class JSONPromptProvider(TranslationProvider):
    """Shared request/response handling for chat-style LLM providers."""

    def __init__(self, *, model: str, debug: bool = False) -> None:
        self.model = model
        self.debug = debug

    async def translate_batch(
        self,
        texts: Sequence[str],
        target_language: str,
        protected_terms: Collection[str] = (),
    ) -> List[str]:
        if not texts:
            return []

        system_prompt = build_system_prompt(target_language, protected_terms)
        user_message = json.dumps(
            build_user_payload(texts, target_language), ensure_ascii=False
        )
        self._log_debug("provider.request.system_prompt", system_prompt)
        self._log_debug("provider.request.payload", user_message)

        raw = await self._complete(system_prompt=system_prompt, user_message=user_message)
        self._log_debug("provider.response.raw", raw)

        translations = order_translations(normalise_translations(raw), len(texts))
        self._log_debug("provider.response.translations", translations)
        return translations

    @abstractmethod
    async def _complete(self, *, system_prompt: str, user_message: str) -> str:
        """Send one request and return the model's text output."""

    def _log_debug(self, label: str, payload: Any) -> None:
        """Emit structured debug information when enabled."""

        if not self.debug:
            return
        if isinstance(payload, (dict, list)):
            message = json.dumps(payload, ensure_ascii=False, indent=2)
        else:
            message = str(payload)
        logger.debug("[%s] %s:\n%s", self.name, label, message)


class OpenAITranslationProvider(JSONPromptProvider):
    """Translation provider that uses OpenAI chat completions."""

    name = "openai"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        client: Any = None,
        debug: bool = False,
    ) -> None:
        super().__init__(model=resolve_model(self.name, model), debug=debug)
        self._client = client if client is not None else self._build_client(api_key)

    def _build_client(self, api_key: str | None) -> Any:
        if not api_key:
            raise TranslationProviderConfigurationError(
                "OpenAI configuration missing. Set OPENAI_API_KEY or choose a "
                "different provider."
            )
        try:
            from openai import AsyncOpenAI
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc
        return AsyncOpenAI(api_key=api_key)

    async def _complete(self, *, system_prompt: str, user_message: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
            )
        except Exception as exc:
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc
        return self._extract_content(response)

    def _extract_content(self, response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        for choice in choices:
            message = getattr(choice, "message", None)
            if message is None:
                continue
            content = getattr(message, "content", None)
            if isinstance(content, list):
                parts: List[str] = []
                for part in content:
                    text_value = getattr(part, "text", None)
                    if text_value is None and isinstance(part, dict):
                        text_value = part.get("text")
                    if text_value:
                        parts.append(str(text_value))
                if parts:
                    return "\n".join(parts)
            elif content:
                return str(content)
        raise TranslationProviderError("Translation provider response empty or unrecognised.")


class AzureOpenAITranslationProvider(OpenAITranslationProvider):
    """Chat completions against an Azure OpenAI deployment."""

    name = "azure_openai"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        endpoint: str | None = None,
        api_version: str | None = None,
        deployment: str | None = None,
        client: Any = None,
        debug: bool = False,
    ) -> None:
        self._endpoint = endpoint
        self._api_version = api_version
        JSONPromptProvider.__init__(
            self,
            model=deployment or PROVIDER_CATALOG[self.name].default_model,
            debug=debug,
        )
        self._client = client if client is not None else self._build_client(api_key)

    def _build_client(self, api_key: str | None) -> Any:
        missing = [
            name
            for name, value in {
                "AZURE_OPENAI_API_KEY": api_key,
                "AZURE_OPENAI_ENDPOINT": self._endpoint,
                "AZURE_OPENAI_API_VERSION": self._api_version,
            }.items()
            if not value
        ]
        if missing:
            raise TranslationProviderConfigurationError(
                "Azure OpenAI configuration incomplete. Please set: "
                + ", ".join(missing)
                + "."
            )
        try:
            from openai import AsyncAzureOpenAI
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc
        return AsyncAzureOpenAI(
            api_key=api_key,
            api_version=self._api_version,
            azure_endpoint=self._endpoint,
        )


class GitHubModelsTranslationProvider(OpenAITranslationProvider):
    """Chat completions through the OpenAI-compatible GitHub Models endpoint."""

    name = "github"

    def _build_client(self, api_key: str | None) -> Any:
        if not api_key:
            raise TranslationProviderConfigurationError(
                "GitHub Models configuration missing. Set GITHUB_TOKEN."
            )
        try:
            from openai import AsyncOpenAI
        except ImportError as exc:  # pragma: no cover - import guard
            raise TranslationProviderConfigurationError(
                "OpenAI Python SDK not installed. Install with `pip install openai`."
            ) from exc
        return AsyncOpenAI(api_key=api_key, base_url=GITHUB_MODELS_ENDPOINT)


class AnthropicTranslationProvider(JSONPromptProvider):
    """Translation provider that uses the Anthropic Messages API."""

    name = "anthropic"
    MAX_TOKENS = 8192

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        client: Any = None,
        debug: bool = False,
    ) -> None:
        super().__init__(model=resolve_model(self.name, model), debug=debug)
        if client is None:
            if not api_key:
                raise TranslationProviderConfigurationError(
                    "Anthropic configuration missing. Set ANTHROPIC_API_KEY or choose a "
                    "different provider."
                )
            try:
                from anthropic import AsyncAnthropic
            except ImportError as exc:  # pragma: no cover - import guard
                raise TranslationProviderConfigurationError(
                    "Anthropic Python SDK not installed. Install with `pip install anthropic`."
                ) from exc
            client = AsyncAnthropic(api_key=api_key)
        self._client = client

    async def _complete(self, *, system_prompt: str, user_message: str) -> str:
        try:
            message = await self._client.messages.create(
                model=self.model,
                max_tokens=self.MAX_TOKENS,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
            )
        except Exception as exc:
            raise TranslationProviderError(
                f"Translation service temporarily unavailable: {exc}"
            ) from exc

        parts = [
            getattr(block, "text", "")
            for block in getattr(message, "content", None) or []
            if getattr(block, "type", "text") == "text"
        ]
        content = "".join(part for part in parts if part)
        if not content:
            raise TranslationProviderError("Translation provider response empty or unrecognised.")
        return content


def get_httpx_timeout(timeout: float | None) -> httpx.Timeout:
    read = float(timeout) if timeout else 120.0
    return httpx.Timeout(connect=10.0, write=60.0, read=read, pool=10.0)


class GeminiTranslationProvider(JSONPromptProvider):
    """Translation provider that calls the Gemini ``generateContent`` REST API."""

    name = "google"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        debug: bool = False,
    ) -> None:
        super().__init__(model=resolve_model(self.name, model), debug=debug)
        if not api_key:
            raise TranslationProviderConfigurationError(
                "Google configuration missing. Set GOOGLE_API_KEY or choose a "
                "different provider."
            )
        self._api_key = api_key
        self._timeout = get_httpx_timeout(timeout)
        self._transport = transport

    async def _complete(self, *, system_prompt: str, user_message: str) -> str:
        url = f"{GEMINI_ENDPOINT}/{self.model}:generateContent"
        body = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_message}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }
        headers = {"x-goog-api-key": self._api_key}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=headers)
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as exc:
            raise TranslationProviderError(
                f"Gemini API error ({exc.response.status_code}): {_error_text(exc.response)}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise TranslationProviderError("Gemini API request timeout") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise TranslationProviderError(f"Gemini API call failed: {exc}") from exc

        for candidate in result.get("candidates") or []:
            parts = (candidate.get("content") or {}).get("parts") or []
            text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
            if text:
                return text
        raise TranslationProviderError(f"Unexpected Gemini API response format: {result}")


class BedrockTranslationProvider(JSONPromptProvider):
    """Translation provider that calls the Bedrock Runtime ``converse`` API.

    Authenticates with a Bedrock API key sent as a bearer token.
    """

    name = "bedrock"
    MAX_TOKENS = 4096

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        region: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        debug: bool = False,
    ) -> None:
        super().__init__(model=resolve_model(self.name, model), debug=debug)
        if not api_key:
            raise TranslationProviderConfigurationError(
                "Bedrock configuration missing. Set AWS_BEARER_TOKEN_BEDROCK or choose a "
                "different provider."
            )
        self._api_key = api_key
        self.region = region or DEFAULT_BEDROCK_REGION
        self._timeout = get_httpx_timeout(timeout)
        self._transport = transport

    async def _complete(self, *, system_prompt: str, user_message: str) -> str:
        url = BEDROCK_ENDPOINT.format(region=self.region, model=quote(self.model, safe=""))
        body = {
            "system": [{"text": system_prompt}],
            "messages": [{"role": "user", "content": [{"text": user_message}]}],
            "inferenceConfig": {"maxTokens": self.MAX_TOKENS},
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(url, json=body, headers=headers)
                response.raise_for_status()
                result = response.json()
        except httpx.HTTPStatusError as exc:
            raise TranslationProviderError(
                f"Bedrock API error ({exc.response.status_code}): {_error_text(exc.response)}"
            ) from exc
        except httpx.TimeoutException as exc:
            raise TranslationProviderError("Bedrock API request timeout") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise TranslationProviderError(f"Bedrock API call failed: {exc}") from exc

        output = result.get("output") if isinstance(result, dict) else None
        parts = ((output or {}).get("message") or {}).get("content") or []
        text = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not text:
            raise TranslationProviderError(f"Unexpected Bedrock API response format: {result}")
        return text


def _error_text(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(payload, dict) and "error" in payload:
        detail = payload["error"]
        if isinstance(detail, dict):
            return str(detail.get("message", detail))
        return str(detail)
    # Bedrock reports failures as {"message": ...}.
    if isinstance(payload, dict) and "message" in payload:
        return str(payload["message"])
    return response.text[:500]


def build_provider(
    name: str | None,
    *,
    api_key: str | None = None,
    model: str | None = None,
    azure_endpoint: str | None = None,
    azure_api_version: str | None = None,
    azure_deployment: str | None = None,
    region: str | None = None,
    debug: bool = False,
) -> TranslationProvider:
    """Factory to create providers by name from explicit settings."""

    normalized = normalise_provider_name(name)
    if normalized == "echo":
        return EchoTranslationProvider()
    if normalized == "openai":
        return OpenAITranslationProvider(api_key=api_key, model=model, debug=debug)
    if normalized == "anthropic":
        return AnthropicTranslationProvider(api_key=api_key, model=model, debug=debug)
    if normalized == "google":
        return GeminiTranslationProvider(api_key=api_key, model=model, debug=debug)
    if normalized == "github":
        return GitHubModelsTranslationProvider(api_key=api_key, model=model, debug=debug)
    if normalized == "bedrock":
        return BedrockTranslationProvider(
            api_key=api_key, model=model, region=region, debug=debug
        )
    if normalized == "azure_openai":
        return AzureOpenAITranslationProvider(
            api_key=api_key,
            endpoint=azure_endpoint,
            api_version=azure_api_version,
            deployment=azure_deployment or model,
            debug=debug,
        )
    raise TranslationProviderConfigurationError(
        f"Unknown translation provider '{name}'."
    )
