"""Food domain models."""

from dataclasses import dataclass
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class Food:
    """A food with nutrition for one serving of ``serving_size`` ``serving_unit``."""

    id: str
    name: str
    calories: float
    protein: float
    carbs: float
    fat: float
    serving_size: float
    serving_unit: str


# Model output must carry real finite numbers; no bool or string coercion.
FiniteNumber = Annotated[float, Field(strict=True, allow_inf_nan=False)]


class EstimatorCandidate(BaseModel):
    """Unconfirmed food guess returned by the nutrition estimator."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    name: str
    calories: FiniteNumber
    protein: FiniteNumber
    carbs: FiniteNumber
    fat: FiniteNumber
    serving_size: FiniteNumber = Field(alias="servingSize")
    serving_unit: str = Field(alias="servingUnit")
    quantity: FiniteNumber
    search_term: str | None = Field(default=None, alias="searchTerm")
    unit: str | None = None
