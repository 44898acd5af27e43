"""
Generative-text provider clients (OpenAI and Gemini).

Each provider sends a single user prompt with a fixed low temperature and an
output-token ceiling, then decodes the response through a typed model. A body
that does not have the provider's envelope is rejected; an envelope without
text yields FALLBACK_NOTICE.
"""
import logging
from typing import Any, Dict, Optional
import requests
from openai import OpenAI, APIError
from pydantic import ValidationError
from trust_layer.config import Settings, SUPPORTED_PROVIDERS
from trust_layer.models.provider import GeminiResponse, OpenAIChatResponse

logger = logging.getLogger(__name__)

FALLBACK_NOTICE = "No analysis text was returned by the AI provider."
MAX_LOGGED_BODY_CHARS = 500


class LLMClientError(Exception):
    """Raised when LLM API call or response parsing fails."""
    pass


class LLMRequestError(LLMClientError):
    """Raised when the provider answers with a non-success status or is unreachable."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class MalformedResponseError(LLMClientError):
    """Raised when the provider response does not match the expected shape."""
    pass


def _text_or_fallback(text: str, provider: str) -> str:
    if not text:
        logger.warning("%s returned no text; using fallback notice", provider)
        return FALLBACK_NOTICE
    return text


class OpenAIProvider:
    """Chat-completions client built on the OpenAI SDK."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
        timeout: float = 120.0
    ):
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.client = OpenAI(api_key=api_key, timeout=timeout)

    def generate(self, prompt: str) -> str:
        """
        Send the prompt and return the generated text.

        Raises:
            LLMRequestError: If the API call fails
            MalformedResponseError: If the response has no choices
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
                max_tokens=self.max_output_tokens,
                user="trust-layer"
            )
        except APIError as e:
            status = getattr(e, "status_code", None)
            logger.error("OpenAI API error (status=%s): %s", status, e)
            raise LLMRequestError(f"OpenAI API error: {str(e)}", status=status)

        try:
            decoded = OpenAIChatResponse.model_validate(response.model_dump())
        except ValidationError as e:
            raise MalformedResponseError(f"Unexpected OpenAI response shape: {str(e)}")

        return _text_or_fallback(decoded.text(), "OpenAI")


class GeminiProvider:
    """Client for the Gemini `generateContent` REST endpoint."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        temperature: float = 0.2,
        max_output_tokens: int = 2048,
        timeout: float = 120.0,
        api_base: str = "https://generativelanguage.googleapis.com/v1beta"
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    def generate(self, prompt: str) -> str:
        """
        Send the prompt and return the generated text.

        Raises:
            LLMRequestError: On transport errors or non-success HTTP statuses
            MalformedResponseError: If the body is not JSON or has no candidates
        """
        url = f"{self.api_base}/models/{self.model}:generateContent"
        try:
            response = requests.post(
                url,
                headers={"x-goog-api-key": self.api_key, "Content-Type": "application/json"},
                json=self._payload(prompt),
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error("Gemini request failed: %s", e)
            raise LLMRequestError(f"Gemini request failed: {str(e)}")

        if not response.ok:
            logger.error("Gemini API error: HTTP %s %s", response.status_code, response.text[:MAX_LOGGED_BODY_CHARS])
            raise LLMRequestError(f"Gemini API returned HTTP {response.status_code}", status=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Gemini response is not JSON: {str(e)}")

        try:
            decoded = GeminiResponse.model_validate(body)
        except ValidationError as e:
            raise MalformedResponseError(f"Unexpected Gemini response shape: {str(e)}")

        return _text_or_fallback(decoded.text(), "Gemini")


def build_llm_client(settings: Settings):
    """
    Create the provider client selected by AI_PROVIDER.

    Returns None when the provider's credential is not configured; the request
    handler reports that as a server misconfiguration.

    Raises:
        LLMClientError: If AI_PROVIDER names an unsupported provider
    """
    provider = settings.ai_provider.strip().lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise LLMClientError(
            f"Unsupported AI_PROVIDER '{settings.ai_provider}'. Expected one of: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    if not settings.provider_api_key:
        logger.warning("%s API key not configured; /analyze will report misconfiguration", provider)
        return None

    if provider == "gemini":
        return GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            temperature=settings.ai_temperature,
            max_output_tokens=settings.ai_max_output_tokens,
            timeout=settings.ai_request_timeout,
            api_base=settings.gemini_api_base
        )
    return OpenAIProvider(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        temperature=settings.ai_temperature,
        max_output_tokens=settings.ai_max_output_tokens,
        timeout=settings.ai_request_timeout
    )
