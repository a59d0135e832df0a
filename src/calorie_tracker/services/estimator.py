"""Nutrition estimation from text or images using LLMs."""

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from calorie_tracker.domain.errors import EstimationFailure, InvalidImage
from calorie_tracker.domain.foods import EstimatorCandidate

_DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>image/[\w.+-]+)(?:;[\w.+-]+=[\w.+-]+)*;base64,(?P<data>.+)$",
    re.IGNORECASE | re.DOTALL,
)

_NULLABLE_STRING = {"anyOf": [{"type": "string"}, {"type": "null"}]}

ESTIMATE_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": (
                            "A generic, searchable name for the food item "
                            '(e.g. "Chicken Breast", not "Grilled Chicken '
                            'Breast with herbs").'
                        ),
                    },
                    "calories": {
                        "type": "number",
                        "description": "Calories per serving size.",
                    },
                    "protein": {
                        "type": "number",
                        "description": "Grams of protein per serving size.",
                    },
                    "carbs": {
                        "type": "number",
                        "description": "Grams of carbohydrates per serving size.",
                    },
                    "fat": {
                        "type": "number",
                        "description": "Grams of fat per serving size.",
                    },
                    "servingSize": {
                        "type": "number",
                        "description": "The size of a single serving.",
                    },
                    "servingUnit": {
                        "type": "string",
                        "description": 'Unit of the serving ("g", "ml", "slice").',
                    },
                    "quantity": {
                        "type": "number",
                        "description": (
                            "Number of servings mentioned or visible, "
                            "1 if not specified."
                        ),
                    },
                    "searchTerm": _NULLABLE_STRING,
                    "unit": _NULLABLE_STRING,
                },
                "required": [
                    "name",
                    "calories",
                    "protein",
                    "carbs",
                    "fat",
                    "servingSize",
                    "servingUnit",
                    "quantity",
                    "searchTerm",
                    "unit",
                ],
                "additionalProperties": False,
            },
        }
    },
    "required": ["items"],
    "additionalProperties": False,
}

TEXT_PROMPT = (
    "You are a nutrition assistant. The text below is either a food search "
    'query or a spoken sentence (e.g. "apple", "2 slices of pizza", "I had '
    'eggs and toast"). For each food item you identify, provide its full '
    "nutritional information (calories, protein, carbs, fat) for a standard "
    "serving size, and the quantity of servings mentioned. Default quantity "
    "to 1 when it is not specified.\n\nText: \"{text}\""
)

IMAGE_PROMPT = (
    "You are a nutrition assistant. Identify the food items in this image. "
    "For each item, provide its full nutritional information (calories, "
    "protein, carbs, fat) for a standard serving size, and an estimated "
    "quantity of servings for what is visible. If you cannot identify any "
    "food, return an empty list."
)

_CANDIDATES = TypeAdapter(list[EstimatorCandidate])

_logger = logging.getLogger(__name__)


class EstimatorClient(Protocol):
    """Interface for LLM structured nutrition estimation."""

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
        """Return decoded structured output for the prompt."""


@dataclass
class NutritionEstimator:
    """Service that builds estimation prompts and validates results."""

    client: EstimatorClient
    model: str
    reasoning_effort: str | None
    store: bool
    debug: bool = False

    async def estimate_from_text(self, query: str) -> list[EstimatorCandidate]:
        """Estimate nutrition for every food mentioned in free text."""
        prompt = TEXT_PROMPT.format(text=query.replace('"', "'"))
        return await self._estimate(prompt, image_data_url=None, action="text")

    async def estimate_from_image(
        self, image_bytes: bytes, mime_type: str | None = None
    ) -> list[EstimatorCandidate]:
        """Estimate nutrition for every food visible in an image."""
        data_url = _to_data_url(image_bytes, mime_type)
        return await self._estimate(
            IMAGE_PROMPT, image_data_url=data_url, action="image"
        )

    async def _estimate(
        self, prompt: str, *, image_data_url: str | None, action: str
    ) -> list[EstimatorCandidate]:
        try:
            raw = await self.client.estimate(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                prompt=prompt,
                schema=ESTIMATE_SCHEMA,
                image_data_url=image_data_url,
            )
        except Exception as exc:
            raise EstimationFailure(f"Nutrition estimate ({action}) failed") from exc
        candidates = validate_candidates(raw)
        if self.debug:
            _logger.info(
                "Nutrition estimate %s: candidates=%s", action, len(candidates)
            )
        return candidates


def validate_candidates(raw: object) -> list[EstimatorCandidate]:
    """Return candidates only when every element is complete, else nothing."""
    items = raw.get("items") if isinstance(raw, dict) else raw
    if not isinstance(items, list):
        _logger.warning("Estimator response is not a list: %r", type(items).__name__)
        return []
    try:
        return _CANDIDATES.validate_python(items)
    except ValidationError as exc:
        _logger.warning(
            "Estimator response did not match schema (%s errors)", exc.error_count()
        )
        return []


def parse_data_url(data_url: str) -> tuple[str, bytes]:
    """Split an image data URL into its MIME type and decoded bytes."""
    match = _DATA_URL_PATTERN.match(data_url.strip())
    if match is None:
        raise InvalidImage("Invalid image format")
    try:
        image_bytes = base64.b64decode(match["data"], validate=True)
    except binascii.Error as exc:
        raise InvalidImage("Image payload is not valid base64") from exc
    if not image_bytes:
        raise InvalidImage("Image payload is empty")
    return match["mime"].lower(), image_bytes


def _to_data_url(image_bytes: bytes, mime_type: str | None = None) -> str:
    """Convert bytes to a base64 data URL for image input."""
    resolved_mime = mime_type or _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{resolved_mime};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
