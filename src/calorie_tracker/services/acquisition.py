"""State machine for acquiring a food entry from search, scan, voice or photo."""

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

from calorie_tracker.domain.acquisition import (
    AcquisitionMode,
    AcquisitionState,
    Error,
    ErrorKind,
    FoodSelected,
    Idle,
    Loading,
    ResultReady,
)
from calorie_tracker.domain.errors import (
    BarcodeNotFound,
    CalorieTrackerError,
    DictationUnavailable,
    EstimationFailure,
    InvalidImage,
    InvalidTransition,
    NoMatchFound,
)
from calorie_tracker.domain.foods import EstimatorCandidate
from calorie_tracker.domain.log import LogEntryDraft, MealType, default_meal_for
from calorie_tracker.services.catalog import (
    DEMO_BARCODE,
    MIN_SEARCH_LENGTH,
    FoodCatalog,
)
from calorie_tracker.services.dictation import DictationSession
from calorie_tracker.services.estimator import NutritionEstimator, parse_data_url

MIN_QUANTITY = 0.1

_FAILURE_MESSAGES: dict[AcquisitionMode, str] = {
    AcquisitionMode.SEARCH: "Failed to search for food.",
    AcquisitionMode.SCAN: "Failed to scan barcode.",
    AcquisitionMode.VOICE: "Failed to process voice input.",
    AcquisitionMode.PHOTO: "Failed to process image.",
}
_NO_MATCH_MESSAGES: dict[AcquisitionMode, str] = {
    AcquisitionMode.VOICE: "Couldn't identify food from your speech. Please try again.",
    AcquisitionMode.PHOTO: (
        "Couldn't identify food from your image. Please try another one."
    ),
}

_logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def clamp_quantity(value: object) -> float:
    """Coerce operator input to a serving count of at least ``MIN_QUANTITY``."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return MIN_QUANTITY
    if not math.isfinite(number):
        return MIN_QUANTITY
    return max(MIN_QUANTITY, number)


@dataclass
class EntryAcquisitionController:
    """Drives one acquisition view from input to a log-ready entry.

    Every request is tagged with the token current when it was issued. Mode
    switches, cancels and newer requests bump the token, so a late completion
    whose token no longer matches is dropped instead of applied.
    """

    estimator: NutritionEstimator
    catalog: FoodCatalog
    dictation: DictationSession
    scan_delay_seconds: float = 1.5
    clock: Callable[[], datetime] = field(default=_local_now)

    state: AcquisitionState = field(init=False)
    default_meal: MealType = field(init=False)
    search_text: str = field(init=False, default="")
    transcript: str = field(init=False, default="")
    image_preview: str | None = field(init=False, default=None)
    listening: bool = field(init=False, default=False)
    _token: int = field(init=False, default=0)
    _dictation_active: bool = field(init=False, default=False)
    _last_log_id: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.default_meal = default_meal_for(self.clock())
        self.state = Idle(AcquisitionMode.SEARCH)

    @property
    def mode(self) -> AcquisitionMode:
        """Return the active input mode."""
        return self.state.mode

    def open(self) -> AcquisitionState:
        """Start a fresh acquisition view in search mode."""
        self.default_meal = default_meal_for(self.clock())
        return self.set_mode(AcquisitionMode.SEARCH)

    def set_mode(self, mode: AcquisitionMode) -> AcquisitionState:
        """Switch mode, dropping in-flight requests and transient state."""
        self.stop_listening()
        self._bump_token()
        self.search_text = ""
        self.transcript = ""
        self.image_preview = None
        self.state = Idle(mode)
        return self.state

    async def search(self, text: str) -> AcquisitionState:
        """Search foods as the operator types."""
        self._require_input("search", AcquisitionMode.SEARCH)
        self.search_text = text
        token = self._bump_token()
        if len(text.strip()) < MIN_SEARCH_LENGTH:
            self.state = Idle(AcquisitionMode.SEARCH)
            return self.state
        self.state = Loading(AcquisitionMode.SEARCH)
        try:
            foods = await self.catalog.search(text)
        except CalorieTrackerError as exc:
            return self._apply(token, self._failure(AcquisitionMode.SEARCH, exc))
        return self._apply(token, ResultReady(AcquisitionMode.SEARCH, tuple(foods)))

    async def scan(self, code: str = DEMO_BARCODE) -> AcquisitionState:
        """Simulate a barcode scan and select the matching food."""
        self._require_input("scan", AcquisitionMode.SCAN)
        token = self._bump_token()
        self.state = Loading(AcquisitionMode.SCAN)
        await asyncio.sleep(self.scan_delay_seconds)
        if token != self._token:
            return self.state
        try:
            food = await self.catalog.lookup_by_barcode(code)
            if food is None:
                raise BarcodeNotFound(code)
        except CalorieTrackerError as exc:
            return self._apply(token, self._failure(AcquisitionMode.SCAN, exc))
        return self._apply(
            token,
            FoodSelected(
                mode=AcquisitionMode.SCAN,
                food=food,
                quantity=1.0,
                meal=self.default_meal,
            ),
        )

    def start_listening(self) -> AcquisitionState:
        """Start a dictation session for one utterance."""
        self._require_input("start listening", AcquisitionMode.VOICE)
        if self._dictation_active:
            return self.state
        token = self._bump_token()
        if not self.dictation.is_available():
            self.state = self._failure(
                AcquisitionMode.VOICE,
                DictationUnavailable("Speech recognition is not available"),
            )
            return self.state
        # Displayed results and errors stay until the next utterance arrives.
        if isinstance(self.state, Loading):
            self.state = Idle(AcquisitionMode.VOICE)
        self._dictation_active = True
        self.dictation.start(_DictationBinding(self, token))
        return self.state

    def stop_listening(self) -> AcquisitionState:
        """Stop the dictation session, if one is running."""
        if self._dictation_active:
            self._dictation_active = False
            self.dictation.stop()
        self.listening = False
        return self.state

    def toggle_listening(self) -> AcquisitionState:
        """Start or stop dictation."""
        if self._dictation_active:
            return self.stop_listening()
        return self.start_listening()

    async def handle_transcript(self, transcript: str) -> AcquisitionState:
        """Estimate foods mentioned in a completed utterance."""
        self._require_input("handle transcript", AcquisitionMode.VOICE)
        self.transcript = transcript
        token = self._bump_token()
        self.state = Loading(AcquisitionMode.VOICE)
        try:
            if not transcript.strip():
                raise NoMatchFound("Empty transcript")
            candidates = await self.estimator.estimate_from_text(transcript)
            if not candidates:
                raise NoMatchFound(transcript)
        except CalorieTrackerError as exc:
            return self._apply(token, self._failure(AcquisitionMode.VOICE, exc))
        return self._apply(token, ResultReady(AcquisitionMode.VOICE, tuple(candidates)))

    async def upload_photo(self, data_url: str) -> AcquisitionState:
        """Estimate foods visible in an uploaded image data URL."""
        self._require_input("upload photo", AcquisitionMode.PHOTO)
        token = self._bump_token()
        try:
            mime_type, image_bytes = parse_data_url(data_url)
        except InvalidImage as exc:
            self.image_preview = None
            self.state = self._failure(AcquisitionMode.PHOTO, exc)
            return self.state
        self.image_preview = data_url
        self.state = Loading(AcquisitionMode.PHOTO)
        try:
            candidates = await self.estimator.estimate_from_image(
                image_bytes, mime_type
            )
            if not candidates:
                raise NoMatchFound("No food in image")
        except CalorieTrackerError as exc:
            return self._apply(token, self._failure(AcquisitionMode.PHOTO, exc))
        return self._apply(token, ResultReady(AcquisitionMode.PHOTO, tuple(candidates)))

    def select(self, index: int) -> FoodSelected:
        """Pick one displayed candidate and freeze it as the selected food."""
        state = self.state
        if not isinstance(state, ResultReady):
            raise InvalidTransition("select", state)
        if not 0 <= index < len(state.candidates):
            raise IndexError(f"No candidate at position {index}")
        candidate = state.candidates[index]
        self.stop_listening()
        if isinstance(candidate, EstimatorCandidate):
            food = self.catalog.to_food(candidate)
            quantity = clamp_quantity(candidate.quantity)
        else:
            food = candidate
            quantity = 1.0
        self._bump_token()
        self.search_text = ""
        selected = FoodSelected(
            mode=state.mode, food=food, quantity=quantity, meal=self.default_meal
        )
        self.state = selected
        return selected

    def set_quantity(self, value: object) -> FoodSelected:
        """Adjust the serving count, clamping bad input to the minimum."""
        selected = self._require_selected("set quantity")
        self.state = replace(selected, quantity=clamp_quantity(value))
        return self.state

    def set_meal(self, meal: MealType | str) -> FoodSelected:
        """File the selected food under another meal."""
        selected = self._require_selected("set meal")
        self.state = replace(selected, meal=MealType(meal))
        return self.state

    def confirm(self) -> LogEntryDraft:
        """Scale the selected food by quantity and return a log-ready entry."""
        selected = self._require_selected("confirm")
        draft = LogEntryDraft.from_food(
            selected.food,
            log_id=self._next_log_id(),
            meal=selected.meal,
            quantity=selected.quantity,
        )
        _logger.info(
            "Confirmed %s x%s for %s", draft.name, draft.quantity, draft.meal.value
        )
        self.set_mode(selected.mode)
        return draft

    def cancel(self) -> AcquisitionState:
        """Return to idle in the current mode without side effects."""
        mode = self.mode
        self.stop_listening()
        self._bump_token()
        self.state = Idle(mode)
        return self.state

    def dictation_started(self, token: int) -> None:
        """Mark the session issued under ``token`` as listening."""
        if token == self._token:
            self.listening = True

    def dictation_ended(self, token: int) -> bool:
        """Clear listening flags if ``token`` is still current."""
        if token != self._token:
            return False
        self.listening = False
        self._dictation_active = False
        return True

    def dictation_failed(self, token: int, reason: str) -> None:
        """Show a recognizer error for the session issued under ``token``."""
        if not self.dictation_ended(token):
            return
        _logger.warning("Speech recognition error: %s", reason)
        self.state = Error(
            AcquisitionMode.VOICE,
            ErrorKind.DICTATION_ERROR,
            f"Speech recognition error: {reason}",
        )

    async def dictation_result(self, token: int, transcript: str) -> None:
        """Estimate a transcript from the session issued under ``token``."""
        if not self.dictation_ended(token):
            _logger.debug("Dropping transcript from an abandoned dictation session")
            return
        await self.handle_transcript(transcript)

    def _require_input(self, operation: str, mode: AcquisitionMode) -> None:
        if self.mode != mode or isinstance(self.state, FoodSelected):
            raise InvalidTransition(operation, self.state)

    def _require_selected(self, operation: str) -> FoodSelected:
        if not isinstance(self.state, FoodSelected):
            raise InvalidTransition(operation, self.state)
        return self.state

    def _bump_token(self) -> int:
        self._token += 1
        return self._token

    def _apply(self, token: int, state: AcquisitionState) -> AcquisitionState:
        if token != self._token:
            _logger.debug("Dropping stale %s result", type(state).__name__)
            return self.state
        self.state = state
        return state

    def _failure(self, mode: AcquisitionMode, exc: CalorieTrackerError) -> Error:
        if isinstance(exc, EstimationFailure):
            _logger.warning("Nutrition estimate failed in %s mode", mode, exc_info=exc)
            return Error(mode, ErrorKind.ESTIMATION_FAILURE, _FAILURE_MESSAGES[mode])
        if isinstance(exc, NoMatchFound):
            message = _NO_MATCH_MESSAGES.get(mode, "No matching food found.")
            return Error(mode, ErrorKind.NO_MATCH, message)
        if isinstance(exc, BarcodeNotFound):
            return Error(
                mode,
                ErrorKind.BARCODE_NOT_FOUND,
                "Barcode not found. Try searching manually.",
            )
        if isinstance(exc, DictationUnavailable):
            return Error(
                mode,
                ErrorKind.DICTATION_UNAVAILABLE,
                "Speech recognition is not supported on this device.",
            )
        if isinstance(exc, InvalidImage):
            return Error(
                mode,
                ErrorKind.INVALID_IMAGE,
                "Invalid image format. Please upload a different photo.",
            )
        _logger.warning("Acquisition failed in %s mode: %s", mode, exc)
        return Error(mode, ErrorKind.ESTIMATION_FAILURE, _FAILURE_MESSAGES[mode])

    def _next_log_id(self) -> int:
        log_id = int(self.clock().timestamp() * 1000)
        if log_id <= self._last_log_id:
            log_id = self._last_log_id + 1
        self._last_log_id = log_id
        return log_id


@dataclass
class _DictationBinding:
    """Dictation listener tied to the request token that started it."""

    controller: EntryAcquisitionController
    token: int

    def on_start(self) -> None:
        self.controller.dictation_started(self.token)

    def on_end(self) -> None:
        self.controller.dictation_ended(self.token)

    def on_error(self, reason: str) -> None:
        self.controller.dictation_failed(self.token, reason)

    async def on_result(self, transcript: str) -> None:
        await self.controller.dictation_result(self.token, transcript)
