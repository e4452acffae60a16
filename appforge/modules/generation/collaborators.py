"""
AI Collaborators
Send a prompt to a text-generation provider and split the reply into a
GenerationResult (prose, code blob, mermaid diagram, inferred config).

Providers:
- AnthropicCollaborator: anthropic SDK (AsyncAnthropic.messages.create)
- GeminiCollaborator:    Gemini REST generateContent endpoint over httpx
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from anthropic import AsyncAnthropic

from appforge.core.config import settings
from appforge.core.logging_config import logger
from appforge.modules.extraction.response_splitter import ResponseSplitter, response_splitter
from appforge.schemas.project import ProjectConfiguration
from appforge.schemas.session import GenerationResult


SYSTEM_PROMPT = """You generate complete web application projects.

Start with a JSON object describing the project:
{"type": "frontend" | "backend" | "fullstack", "language": "javascript" | "typescript",
 "frontend": {"framework": "react" | "nextjs", "styling": "tailwind" | "css", "features": []},
 "backend": {"framework": "express", "database": "mongodb" | "postgres" | "supabase" | "none"},
 "name": "kebab-case-name", "description": "one sentence"}

Then explain the project briefly, and give every file in its own fenced code
block whose first line is a comment with the file path, e.g. // src/App.tsx"""


class AICollaborator(ABC):
    """Base class: providers implement complete(), generate() does the rest"""

    provider = "base"

    def __init__(self, splitter: Optional[ResponseSplitter] = None):
        self.splitter = splitter or response_splitter

    @abstractmethod
    async def complete(self, prompt: str) -> str:
        """Return the raw reply text for a prompt"""

    async def generate(self, prompt: str) -> GenerationResult:
        """Never raises: provider errors come back on GenerationResult.error"""
        logger.info(f"[{self.provider}] Generating project, prompt_len={len(prompt)}")
        try:
            full_text = await self.complete(prompt)
        except Exception as e:
            logger.error(f"[{self.provider}] Generation failed: {type(e).__name__}: {e}")
            return GenerationResult(
                text="",
                error=str(e) or type(e).__name__,
                config=ProjectConfiguration(name="error-project"),
            )

        result = self.splitter.split(full_text)
        logger.info(
            f"[{self.provider}] Received {len(full_text)} chars, "
            f"config={result.config.type if result.config else None}"
        )
        return result


class AnthropicCollaborator(AICollaborator):

    provider = "Anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncAnthropic] = None,
        splitter: Optional[ResponseSplitter] = None,
    ):
        super().__init__(splitter)
        self.model = model or settings.ANTHROPIC_MODEL
        self.client = client or AsyncAnthropic(
            api_key=api_key or settings.ANTHROPIC_API_KEY,
            timeout=settings.AI_REQUEST_TIMEOUT,
        )

    async def complete(self, prompt: str) -> str:
        response = await self.client.messages.create(
            model=self.model,
            max_tokens=settings.AI_MAX_TOKENS,
            system=SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        logger.debug(f"[{self.provider}] id={response.id}, stop={response.stop_reason}")
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()


class GeminiCollaborator(AICollaborator):

    provider = "Gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        splitter: Optional[ResponseSplitter] = None,
    ):
        super().__init__(splitter)
        self.api_key = api_key or settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self._http_client = http_client

    def _request_body(self, prompt: str) -> Dict[str, Any]:
        return {
            "systemInstruction": {"parts": [{"text": SYSTEM_PROMPT}]},
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": 0.7,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": settings.AI_MAX_TOKENS,
            },
        }

    async def complete(self, prompt: str) -> str:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        params = {"key": self.api_key or ""}

        if self._http_client is not None:
            response = await self._http_client.post(url, params=params, json=self._request_body(prompt))
        else:
            async with httpx.AsyncClient(timeout=settings.AI_REQUEST_TIMEOUT) as client:
                response = await client.post(url, params=params, json=self._request_body(prompt))

        data = response.json()
        if response.status_code >= 400:
            message = (data.get("error") or {}).get("message") if isinstance(data, dict) else None
            raise RuntimeError(message or f"Failed to generate content (HTTP {response.status_code})")

        try:
            return data["candidates"][0]["content"]["parts"][0]["text"].strip()
        except (KeyError, IndexError, TypeError):
            logger.warning(f"[{self.provider}] Response carried no text candidate")
            return ""


def get_collaborator(provider: str = "anthropic") -> AICollaborator:
    provider = provider.lower()
    if provider == "gemini":
        return GeminiCollaborator()
    if provider in ("anthropic", "claude"):
        return AnthropicCollaborator()
    raise ValueError(f"Unknown AI provider: {provider}")
