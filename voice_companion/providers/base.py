"""
Base class for providers backed by the generative-language HTTP endpoint.
"""

import asyncio
from abc import ABC
from typing import Any, Dict, List, Optional, Type

import aiohttp

from ..utils.error_handling import ServiceFailure
from ..utils.logging_config import get_logger


DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_TIMEOUT = 30.0


def extract_candidate_text(data: Any) -> Optional[str]:
    """
    Return `candidates[0].content.parts[0].text`, or None if any level is missing.
    """
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None
    return text if isinstance(text, str) else None


class GenerativeServiceProvider(ABC):
    """
    Shared request plumbing for the transcription and response providers.

    Provides:
    - Lazy aiohttp session with a total-request timeout
    - One POST per call to `/v1beta/models/{model}:generateContent`
    - Conversion of every failure into the subclass's `failure_type`

    Configuration options:
    - api_key: API key (required)
    - model: Model name (default: "gemini-2.0-flash")
    - base_url: Service base URL
    - timeout: Seconds before a request is abandoned (default: 30)
    - generation_config: Optional dict sent as `generationConfig`
    """

    failure_type: Type[ServiceFailure] = ServiceFailure

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.api_key = config.get('api_key')
        if not self.api_key:
            raise ValueError("Generative service API key is required")

        self.model = config.get('model') or DEFAULT_MODEL
        self.base_url = (config.get('base_url') or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = float(config.get('timeout', DEFAULT_TIMEOUT))
        self.generation_config: Optional[Dict[str, Any]] = config.get('generation_config')

        self._session: Optional[aiohttp.ClientSession] = None

        # Subclass must set this
        self._component_name = "generative"
        self.logger = get_logger(self._component_name)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1beta/models/{self.model}:generateContent"

    async def initialize(self) -> bool:
        """Create the HTTP session."""
        try:
            await self._get_session()
            self.logger.info(f"✅ {self._component_name} client ready ({self.model})")
            return True
        except Exception as e:
            self.logger.error(f"Failed to initialize {self._component_name} client: {e}")
            return False

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    def _build_body(self, parts: List[Dict[str, Any]]) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "contents": [
                {"role": "user", "parts": parts}
            ]
        }
        if self.generation_config:
            body["generationConfig"] = self.generation_config
        return body

    async def _generate_text(self, parts: List[Dict[str, Any]]) -> str:
        """
        POST one generateContent request and return the first candidate's text.

        Raises:
            failure_type: On non-200 status, network error, undecodable body,
                missing text field, or empty text
        """
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key,
        }
        session = await self._get_session()

        try:
            async with session.post(self.endpoint, json=self._build_body(parts), headers=headers) as resp:
                if resp.status != 200:
                    detail = await resp.text()
                    raise self.failure_type(
                        f"{self._component_name} service returned HTTP {resp.status}",
                        cause=detail[:500],
                        status=resp.status
                    )
                data = await resp.json(content_type=None)
        except self.failure_type:
            raise
        except asyncio.TimeoutError as e:
            raise self.failure_type(
                f"{self._component_name} request timed out after {self.timeout:.0f}s", cause=e
            ) from e
        except (aiohttp.ClientError, ValueError) as e:
            raise self.failure_type(f"{self._component_name} request failed", cause=e) from e

        text = extract_candidate_text(data)
        if text is None:
            raise self.failure_type(f"{self._component_name} response had no text", cause=data)
        text = text.strip()
        if not text:
            raise self.failure_type(f"{self._component_name} response text was empty", cause=data)
        return text

    async def cleanup(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
