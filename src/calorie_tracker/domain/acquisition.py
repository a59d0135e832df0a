"""States of the food entry acquisition flow."""

from dataclasses import dataclass
from enum import StrEnum

from calorie_tracker.domain.foods import EstimatorCandidate, Food
from calorie_tracker.domain.log import MealType


class AcquisitionMode(StrEnum):
    """Input modes for finding a food."""

    SEARCH = "search"
    SCAN = "scan"
    VOICE = "voice"
    PHOTO = "photo"


class ErrorKind(StrEnum):
    """Categories of acquisition failures shown to the operator."""

    ESTIMATION_FAILURE = "estimation_failure"
    NO_MATCH = "no_match"
    BARCODE_NOT_FOUND = "barcode_not_found"
    DICTATION_UNAVAILABLE = "dictation_unavailable"
    DICTATION_ERROR = "dictation_error"
    INVALID_IMAGE = "invalid_image"


@dataclass(frozen=True)
class Idle:
    """Waiting for input in a mode."""

    mode: AcquisitionMode


@dataclass(frozen=True)
class Loading:
    """A request is outstanding for a mode."""

    mode: AcquisitionMode


@dataclass(frozen=True)
class ResultReady:
    """Candidates are displayed for the operator to pick from."""

    mode: AcquisitionMode
    candidates: tuple[Food | EstimatorCandidate, ...]


@dataclass(frozen=True)
class Error:
    """A recoverable failure with a user-facing message."""

    mode: AcquisitionMode
    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class FoodSelected:
    """A food is chosen and awaits quantity, meal and confirmation."""

    mode: AcquisitionMode
    food: Food
    quantity: float
    meal: MealType


AcquisitionState = Idle | Loading | ResultReady | Error | FoodSelected
