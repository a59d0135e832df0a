"""OpenAI Responses API client for nutrition estimation."""

import json
from dataclasses import dataclass

import httpx
from openai import AsyncOpenAI

from calorie_tracker.services.estimator import EstimatorClient


@dataclass
class OpenAIEstimatorClient(EstimatorClient):
    """Estimator client backed by OpenAI Responses API."""

    client: AsyncOpenAI

    @classmethod
    def create(
        cls, api_key: str, timeout_seconds: float = 30.0
    ) -> "OpenAIEstimatorClient":
        """Create an OpenAI client with a managed httpx session."""
        http_client = httpx.AsyncClient(timeout=timeout_seconds)
        return cls(
            client=AsyncOpenAI(api_key=api_key, http_client=http_client, max_retries=0)
        )

    async def estimate(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        prompt: str,
        schema: dict[str, object],
        image_data_url: str | None = None,
    ) -> object:
        """Call OpenAI Responses API with structured outputs."""
        content: list[dict[str, str]] = [{"type": "input_text", "text": prompt}]
        if image_data_url:
            content.append({"type": "input_image", "image_url": image_data_url})
        request_payload: dict[str, object] = {
            "model": model,
            "input": [{"role": "user", "content": content}],
            "text": {
                "format": {
                    "type": "json_schema",
                    "name": "nutrition_estimate",
                    "strict": True,
                    "schema": schema,
                }
            },
            "store": store,
        }
        if reasoning_effort:
            request_payload["reasoning"] = {"effort": reasoning_effort}

        response = await self.client.responses.create(**request_payload)
        output_text = response.output_text
        if not output_text:
            raise RuntimeError("OpenAI returned an empty response")
        return json.loads(output_text)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
