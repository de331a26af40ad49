"""OpenAI Responses API client for meal photo analysis."""

import json
import logging
from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from macrolog.services.vision import (
    InvalidApiKeyError,
    MalformedAnalysisError,
    RateLimitedError,
    VisionAnalysisError,
    VisionClient,
    VisionUnavailableError,
)

logger = logging.getLogger(__name__)

_HTTP_SERVER_ERROR = 500


@dataclass
class OpenAIVisionClient(VisionClient):
    """Vision client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAIVisionClient":
        """Create an OpenAI vision client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
        api_key: str | None = None,
    ) -> dict[str, object]:
        """Call OpenAI Responses API with structured outputs."""
        request_payload: dict[str, object] = {
            "model": model,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_text", "text": prompt},
                        {"type": "input_image", "image_url": image_data_url},
                    ],
                }
            ],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "meal_analysis",
                    "strict": True,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        client = self.client.with_options(api_key=api_key) if api_key else self.client
        try:
            response = await client.responses.create(**request_payload)
        except openai.APIStatusError as exc:
            raise _map_status_error(exc) from exc
        except openai.APIConnectionError as exc:
            raise VisionUnavailableError(str(exc)) from exc

        output_text = response.output_text
        if not output_text:
            raise MalformedAnalysisError("OpenAI returned an empty response")
        try:
            return json.loads(_strip_code_fences(output_text))
        except json.JSONDecodeError as exc:
            logger.warning("OpenAI returned invalid JSON", extra={"model": model})
            raise MalformedAnalysisError(str(exc)) from exc

    async def validate_api_key(self, api_key: str) -> bool:
        """Return True when a models listing succeeds with the key."""
        try:
            await self.client.with_options(api_key=api_key).models.list()
        except openai.AuthenticationError:
            return False
        except openai.OpenAIError:
            logger.exception("Failed to validate OpenAI API key")
            return False
        return True


def _map_status_error(exc: openai.APIStatusError) -> VisionAnalysisError:
    if isinstance(exc, openai.AuthenticationError):
        return InvalidApiKeyError(str(exc))
    if isinstance(exc, openai.RateLimitError):
        return RateLimitedError(str(exc))
    if exc.status_code >= _HTTP_SERVER_ERROR:
        return VisionUnavailableError(str(exc))
    return VisionAnalysisError(str(exc))


def _strip_code_fences(text: str) -> str:
    """Remove markdown code fences some models wrap around JSON."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.removeprefix("```json").removeprefix("```")
        cleaned = cleaned.removesuffix("```")
    return cleaned.strip()
