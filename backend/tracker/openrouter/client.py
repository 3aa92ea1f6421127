"""OpenRouter chat-completions client used to generate checklists."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from tracker.models import ProjectConfig
from tracker.openrouter.prompts import build_prompts

logger = logging.getLogger(__name__)

# =============================================================================
# OpenRouter API Configuration
# =============================================================================
# Docs: https://openrouter.ai/docs/api-reference/chat-completion
#
# API Key: Required. Set OPENROUTER_API_KEY or pass api_key to the client.
# The endpoint is OpenAI-compatible: POST {base_url}/chat/completions.
# =============================================================================

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class ChecklistGenerationError(Exception):
    """The remote model could not produce a checklist.

    Carries the HTTP status to report and the ``error``/``details`` pair
    returned to the caller.
    """

    def __init__(self, status_code: int, error: str, details: str | None = None):
        super().__init__(error if details is None else f"{error} ({details})")
        self.status_code = status_code
        self.error = error
        self.details = details


def extract_content(data: Any) -> str:
    """Pull the completion text out of a chat-completions response body.

    Falls back to the legacy ``text`` field. A body without ``choices`` is
    returned as raw JSON; choices without content give an empty string.
    """
    if isinstance(data, dict) and isinstance(data.get("choices"), list):
        choices = data["choices"]
        if not choices or not isinstance(choices[0], dict):
            return ""
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        return str(content or choices[0].get("text") or "")
    return json.dumps(data)


def _error_details(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
        if body.get("message"):
            return str(body["message"])
    return json.dumps(body)[:500]


class OpenRouterClient:
    """Client for OpenRouter chat completions.

    One request per checklist; the full response is collected before it is
    returned (no streaming).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the OpenRouter client.

        Args:
            api_key: OpenRouter API key. If not provided, reads from app
                settings (OPENROUTER_API_KEY environment variable or .env).
            model: Model identifier. Defaults to settings.openrouter_model.
            base_url: API base URL. Defaults to settings.openrouter_base_url.
            timeout: HTTP request timeout in seconds.
            transport: Optional httpx transport (used by tests).

        Raises:
            ValueError: If no API key is provided or found in settings.
        """
        # Import here to avoid circular imports
        from app.config import settings

        self.api_key = api_key or settings.openrouter_api_key
        if not self.api_key:
            raise ValueError(
                "OpenRouter API key required. Set OPENROUTER_API_KEY environment "
                "variable or pass api_key parameter."
            )
        self.model = model or settings.openrouter_model
        self.base_url = (
            base_url or settings.openrouter_base_url or OPENROUTER_BASE_URL
        ).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.openrouter_timeout
        self.transport = transport
        self.max_retries = 3
        self.retry_delay = 2.0  # seconds

    async def _request_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make HTTP request with retry logic for 5xx and transport errors.

        Raises:
            httpx.HTTPStatusError: On 4xx, or after all retries are exhausted.
            httpx.RequestError: After all retries are exhausted.
        """
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as e:
                if e.response.status_code >= 500:
                    last_error = e
                    if attempt < self.max_retries - 1:
                        delay = self.retry_delay * (2**attempt)  # Exponential backoff
                        logger.warning(
                            f"Server error {e.response.status_code}, "
                            f"retrying in {delay}s (attempt {attempt + 1}/{self.max_retries})"
                        )
                        await asyncio.sleep(delay)
                        continue
                raise
            except httpx.RequestError as e:
                last_error = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(
                        f"Request error: {e}, "
                        f"retrying in {delay}s (attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise

        # Should not reach here, but just in case
        if last_error:
            raise last_error
        raise RuntimeError("Unexpected error in retry logic")

    async def complete(
        self,
        research_plan: str,
        project_stage: str | None = None,
        config: ProjectConfig | None = None,
    ) -> str:
        """Request a checklist and return the raw completion text.

        Raises:
            ChecklistGenerationError: On HTTP/transport failure or when the
                model returns an empty completion.
        """
        config = config or ProjectConfig()
        system, user = build_prompts(research_plan, project_stage, config)
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "top_p": config.top_p,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        logger.info(f"Requesting checklist from {self.model}")
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self.transport
        ) as client:
            try:
                response = await self._request_with_retry(
                    client,
                    "POST",
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
            except httpx.HTTPStatusError as e:
                details = _error_details(e.response)
                logger.error(f"OpenRouter error {e.response.status_code}: {details}")
                raise ChecklistGenerationError(
                    e.response.status_code,
                    "Unable to generate checklist right now.",
                    details,
                ) from e
            except httpx.RequestError as e:
                logger.error(f"OpenRouter request failed: {e}")
                raise ChecklistGenerationError(
                    502, "Unable to generate checklist right now.", str(e)
                ) from e

        try:
            data = response.json()
        except ValueError:
            data = response.text

        content = extract_content(data) if not isinstance(data, str) else data
        content = content.strip()
        if not content:
            raise ChecklistGenerationError(
                502, "LLM returned an empty response. Please retry."
            )
        return content


__all__ = [
    "OPENROUTER_BASE_URL",
    "ChecklistGenerationError",
    "OpenRouterClient",
    "extract_content",
]
