"""Request bodies for the HTTP API."""

from pydantic import BaseModel, Field, StrictFloat

from calorie_tracker.domain.acquisition import AcquisitionMode
from calorie_tracker.domain.log import MealType
from calorie_tracker.services.catalog import DEMO_BARCODE


class ModeRequest(BaseModel):
    """Switch the acquisition mode."""

    mode: AcquisitionMode


class SearchRequest(BaseModel):
    """Current contents of the search box."""

    text: str


class ScanRequest(BaseModel):
    """Simulated barcode scan."""

    code: str = DEMO_BARCODE


class VoiceResultRequest(BaseModel):
    """Final transcript from the client's speech recognizer."""

    transcript: str


class VoiceErrorRequest(BaseModel):
    """Error reported by the client's speech recognizer."""

    reason: str


class PhotoRequest(BaseModel):
    """Uploaded photo as a data URL."""

    data_url: str


class SelectRequest(BaseModel):
    """Pick one displayed candidate."""

    index: int = Field(ge=0)


class SelectionUpdate(BaseModel):
    """Adjust quantity and/or meal of the selected food."""

    quantity: float | str | None = None
    meal: MealType | None = None


class GoalsRequest(BaseModel):
    """Goals form input, validated by the goals service."""

    calories: StrictFloat | str | None = None
    protein: StrictFloat | str | None = None
    carbs: StrictFloat | str | None = None
    fat: StrictFloat | str | None = None
