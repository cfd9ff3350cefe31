"""
Generation API Client Module

Provides a synchronous HTTP client for text completion against a local
OpenAI-compatible inference server (e.g. llama.cpp server).
"""

import logging
from typing import Any, Dict, Optional

import requests

from ..errors import GenerationError, ModelLoadError
from ..providers import GenerationOptions, GenerationProvider

logger = logging.getLogger(__name__)


class GenerationClient(GenerationProvider):
    """
    Client for ``/v1/completions``.

    Requests are sent once per generate() call unless a transport error
    occurs, in which case up to ``max_retries`` attempts are made.
    """

    name = "http-generation"

    def __init__(
        self,
        api_url: str,
        model_name: str,
        api_key: Optional[str] = None,
        max_retries: int = 3,
        timeout: int = 60,
        health_url: Optional[str] = None
    ):
        """
        Initialize generation client.

        Args:
            api_url: Completions endpoint URL
            model_name: Model name or path sent with each request
            api_key: Optional API key for authentication
            max_retries: Maximum number of attempts per request
            timeout: Request timeout in seconds
            health_url: Optional URL polled by load()
        """
        self.api_url = api_url
        self.model_name = model_name
        self.api_key = api_key
        self.max_retries = max_retries
        self.timeout = timeout
        self.health_url = health_url

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def load(self) -> None:
        """Check the health endpoint, when one is configured."""
        if not self.health_url:
            return
        try:
            response = requests.get(self.health_url, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ModelLoadError(
                f"Generation server at {self.health_url} is unavailable: {e}",
                original_error=e
            ) from e

    def generate(self, prompt: str, options: GenerationOptions) -> str:
        """
        Complete a prompt.

        Args:
            prompt: Full prompt text
            options: Sampling parameters

        Returns:
            Generated text
        """
        payload: Dict[str, Any] = {
            "model": self.model_name,
            "prompt": prompt,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "top_p": options.top_p,
            "top_k": options.top_k
        }
        if options.stop:
            payload["stop"] = list(options.stop)

        for attempt in range(self.max_retries):
            try:
                response = requests.post(
                    self.api_url,
                    json=payload,
                    headers=self._headers(),
                    timeout=self.timeout
                )
                response.raise_for_status()
                data = response.json()
            except (requests.RequestException, ValueError) as e:
                if attempt == self.max_retries - 1:
                    raise GenerationError(str(e), original_error=e) from e
                logger.warning(
                    "Retry %d/%d after error: %s", attempt + 1, self.max_retries, e,
                    extra={"api_url": self.api_url}
                )
                continue

            try:
                return data["choices"][0]["text"]
            except (KeyError, IndexError, TypeError) as e:
                raise GenerationError(f"Malformed completion response: {e}", original_error=e) from e

        raise GenerationError("max_retries must be at least 1")

    def get_info(self) -> Dict[str, Any]:
        """Get client information."""
        return {
            "api_url": self.api_url,
            "model_name": self.model_name,
            "health_url": self.health_url,
            "has_api_key": self.api_key is not None
        }
