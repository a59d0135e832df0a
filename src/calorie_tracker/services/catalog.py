"""Food catalog built on top of the nutrition estimator."""

import asyncio
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from calorie_tracker.domain.foods import EstimatorCandidate, Food
from calorie_tracker.services.estimator import NutritionEstimator

DEMO_BARCODE = "123456789"
MIN_SEARCH_LENGTH = 2

FALLBACK_FOODS: tuple[Food, ...] = (
    Food("1", "Chicken Breast", 165, 31, 0, 3.6, 100, "g"),
    Food("2", "Apple", 52, 0.3, 14, 0.2, 100, "g"),
    Food("3", "Pasta (Cooked)", 131, 5, 25, 1.1, 100, "g"),
    Food("4", "Brown Rice (Cooked)", 112, 2.3, 23.5, 0.8, 100, "g"),
    Food("5", "Salmon", 208, 20, 0, 13, 100, "g"),
    Food("6", "Whole Wheat Bread", 247, 13, 41, 3.4, 100, "g"),
    Food("7", "Peanut Butter", 588, 25, 20, 50, 100, "g"),
    Food("8", "Pizza Slice", 285, 12, 36, 10, 107, "slice"),
    Food("9", "Coca-Cola", 139, 0, 37, 0, 355, "can"),
    Food("10", "Banana", 89, 1.1, 23, 0.3, 100, "g"),
    Food("11", "Protein Bar", 200, 20, 22, 6, 50, "bar"),
)

# Simulated scanner only knows the demo code.
BARCODE_TABLE: dict[str, str] = {DEMO_BARCODE: "11"}

_logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class FoodCatalog:
    """Turns estimator output and the barcode table into ``Food`` records."""

    estimator: NutritionEstimator
    barcode_latency_seconds: float = 0.5
    clock: Callable[[], datetime] = field(default=_utc_now)

    def to_food(self, candidate: EstimatorCandidate) -> Food:
        """Build a per-serving ``Food`` with a freshly generated id."""
        return Food(
            id=_synthetic_id(candidate.name, self.clock()),
            name=candidate.name,
            calories=candidate.calories,
            protein=candidate.protein,
            carbs=candidate.carbs,
            fat=candidate.fat,
            serving_size=candidate.serving_size,
            serving_unit=candidate.serving_unit,
        )

    async def search(self, text: str) -> list[Food]:
        """Search foods by free text, preserving estimator order."""
        query = text.strip()
        if len(query) < MIN_SEARCH_LENGTH:
            return []
        candidates = await self.estimator.estimate_from_text(query)
        return [self.to_food(candidate) for candidate in candidates]

    async def lookup_by_barcode(self, code: str) -> Food | None:
        """Look up a barcode in the fallback table after a simulated delay."""
        _logger.info("Looking up barcode %s", code)
        await asyncio.sleep(self.barcode_latency_seconds)
        food_id = BARCODE_TABLE.get(code)
        if food_id is None:
            return None
        return next((food for food in FALLBACK_FOODS if food.id == food_id), None)


def _synthetic_id(name: str, moment: datetime) -> str:
    """Slugify the name and suffix it with the creation instant in ms."""
    slug = re.sub(r"\s+", "-", name.strip().lower())
    return f"{slug}-{int(moment.timestamp() * 1000)}"
