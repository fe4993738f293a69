from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import vertexai
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from vertexai.generative_models import GenerationConfig, GenerativeModel

from .config import Settings
from .errors import ConfigurationError, ResponseFormatError, TransientGenerationError

logger = logging.getLogger(__name__)

MISSING_PROJECT_MESSAGE = (
    "PROJECT_ID is not set. Set it to the Google Cloud project that has Vertex AI "
    "enabled and make sure application default credentials are available "
    "(gcloud auth application-default login)."
)


class GenerationClient(Protocol):
    async def generate_json(self, system_instruction: str, prompt: str) -> Any:
        ...


def parse_json_response(text: str) -> Any:
    """Parse a model response, tolerating a surrounding markdown code fence."""
    response = (text or "").strip()
    if response.startswith("```json"):
        response = response[7:]
    if response.startswith("```"):
        response = response[3:]
    if response.endswith("```"):
        response = response[:-3]

    try:
        return json.loads(response.strip())
    except json.JSONDecodeError as exc:
        logger.error(
            "Failed to parse JSON response",
            extra={"response_preview": response[:200]},
        )
        raise ResponseFormatError(f"Invalid JSON response: {exc}") from exc


class VertexAIAdapter:
    """Adapter for Vertex AI Gemini models.

    Each call builds a model with its own system instruction and sends the
    context prompt through a fresh, empty chat session.
    """

    def __init__(
        self,
        *,
        project_id: str | None,
        location: str = "us-central1",
        model_name: str = "gemini-2.5-pro",
        response_mime_type: str = "application/json",
        temperature: float | None = None,
        timeout: float | None = 120.0,
    ) -> None:
        """Initialize Vertex AI adapter.

        Args:
            project_id: GCP project ID
            location: Vertex AI location
            model_name: Model name (e.g., "gemini-2.5-pro")
            response_mime_type: MIME type requested from the model
            temperature: Optional sampling temperature
            timeout: Per-request timeout in seconds, ``None`` to disable

        Raises:
            ConfigurationError: If no project is configured or credentials
                cannot be resolved.
        """
        if not project_id:
            raise ConfigurationError(MISSING_PROJECT_MESSAGE)

        self.project_id = project_id
        self.location = location
        self.model_name = model_name
        self.response_mime_type = response_mime_type
        self.temperature = temperature
        self.timeout = timeout

        try:
            vertexai.init(project=project_id, location=location)
        except auth_exceptions.DefaultCredentialsError as exc:
            raise ConfigurationError(f"Vertex AI credentials not found: {exc}") from exc

    @classmethod
    def from_settings(cls, settings: Settings) -> "VertexAIAdapter":
        return cls(
            project_id=settings.project_id,
            location=settings.location,
            model_name=settings.model_name,
            timeout=settings.request_timeout,
        )

    def create_model(self, system_instruction: str) -> GenerativeModel:
        generation_config = GenerationConfig(
            response_mime_type=self.response_mime_type,
            temperature=self.temperature,
        )
        return GenerativeModel(
            self.model_name,
            system_instruction=system_instruction,
            generation_config=generation_config,
        )

    async def generate_text(self, system_instruction: str, prompt: str) -> str:
        model = self.create_model(system_instruction)
        chat = model.start_chat(history=[])

        try:
            if self.timeout:
                response = await asyncio.wait_for(chat.send_message_async(prompt), timeout=self.timeout)
            else:
                response = await chat.send_message_async(prompt)
            generated_text = response.text
        except auth_exceptions.DefaultCredentialsError as exc:
            raise ConfigurationError(f"Vertex AI credentials not found: {exc}") from exc
        except (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied) as exc:
            raise ConfigurationError(f"Vertex AI rejected the credentials: {exc}") from exc
        except google_exceptions.GoogleAPIError as exc:
            raise TransientGenerationError(f"Vertex AI request failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise TransientGenerationError(
                f"Vertex AI request timed out after {self.timeout}s"
            ) from exc
        except ValueError as exc:
            # response.text raises ValueError when the candidate was blocked or empty
            raise ResponseFormatError(f"Empty or blocked response: {exc}") from exc

        logger.info(
            "Generated content with Vertex AI",
            extra={
                "model": self.model_name,
                "input_length": len(prompt),
                "output_length": len(generated_text),
            },
        )
        return generated_text

    async def generate_json(self, system_instruction: str, prompt: str) -> Any:
        text = await self.generate_text(system_instruction, prompt)
        return parse_json_response(text)


__all__ = ["GenerationClient", "VertexAIAdapter", "parse_json_response"]
