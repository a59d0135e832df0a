"""Tests for the entry acquisition controller."""

import asyncio
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime

import pytest

from calorie_tracker.domain.acquisition import (
    AcquisitionMode,
    Error,
    ErrorKind,
    FoodSelected,
    Idle,
    Loading,
    ResultReady,
)
from calorie_tracker.domain.errors import InvalidTransition
from calorie_tracker.domain.foods import Food
from calorie_tracker.domain.log import MealType
from calorie_tracker.services.acquisition import clamp_quantity
from calorie_tracker.services.estimator import EstimatorClient
from tests.conftest import (
    CHICKEN_BREAST,
    PIZZA_SLICES,
    FakeDictationSession,
    FakeEstimatorClient,
    FixedClock,
    build_controller,
)

PNG_DATA_URL = "data:image/png;base64,iVBORw0KGgo="


@dataclass
class GatedEstimatorClient(EstimatorClient):
    """Estimator client that waits for a release before answering."""

    payload: object
    release: asyncio.Event = field(default_factory=asyncio.Event)

    async def estimate(self, **kwargs: object) -> object:
        await self.release.wait()
        return self.payload


def test_search_select_and_confirm_scales_by_quantity() -> None:
    controller = build_controller()

    state = asyncio.run(controller.search("chicken"))
    assert isinstance(state, ResultReady)
    assert isinstance(state.candidates[0], Food)

    selected = controller.select(0)
    assert selected.quantity == 1.0
    assert selected.meal == MealType.LUNCH
    assert controller.search_text == ""

    controller.set_quantity(2)
    draft = controller.confirm()

    assert draft.name == "Chicken Breast"
    assert draft.calories == 330
    assert draft.protein == 62
    assert draft.carbs == 0
    assert draft.fat == 7.2
    assert draft.quantity == 2
    assert draft.meal == MealType.LUNCH
    assert controller.state == Idle(AcquisitionMode.SEARCH)


def test_search_with_short_text_stays_idle() -> None:
    client = FakeEstimatorClient()
    controller = build_controller(client)

    state = asyncio.run(controller.search("c"))

    assert state == Idle(AcquisitionMode.SEARCH)
    assert controller.search_text == "c"
    assert client.calls == []


def test_search_failure_shows_error() -> None:
    controller = build_controller(FakeEstimatorClient(error=RuntimeError("down")))

    state = asyncio.run(controller.search("chicken"))

    assert state == Error(
        AcquisitionMode.SEARCH,
        ErrorKind.ESTIMATION_FAILURE,
        "Failed to search for food.",
    )


def test_late_search_result_is_dropped_after_mode_switch() -> None:
    async def scenario():
        client = GatedEstimatorClient(payload={"items": [CHICKEN_BREAST]})
        controller = build_controller(client)
        pending = asyncio.create_task(controller.search("chicken"))
        await asyncio.sleep(0)
        assert isinstance(controller.state, Loading)

        controller.set_mode(AcquisitionMode.SCAN)
        client.release.set()
        await pending
        return controller

    controller = asyncio.run(scenario())

    assert controller.state == Idle(AcquisitionMode.SCAN)


def test_newer_search_wins_over_older_one() -> None:
    async def scenario():
        slow = GatedEstimatorClient(payload={"items": [PIZZA_SLICES]})
        controller = build_controller(slow)
        first = asyncio.create_task(controller.search("pizza"))
        await asyncio.sleep(0)

        controller.estimator.client = FakeEstimatorClient()
        await controller.search("chicken")
        slow.release.set()
        await first
        return controller

    controller = asyncio.run(scenario())

    assert isinstance(controller.state, ResultReady)
    assert controller.state.candidates[0].name == "Chicken Breast"


async def _fill_voice(controller) -> None:
    controller.set_mode(AcquisitionMode.VOICE)
    await controller.handle_transcript("x")


async def _fill_photo(controller) -> None:
    controller.set_mode(AcquisitionMode.PHOTO)
    await controller.upload_photo(PNG_DATA_URL)


async def _fill_search(controller) -> None:
    await controller.search("chicken")


async def _fill_search_error(controller) -> None:
    controller.estimator.client = FakeEstimatorClient(error=RuntimeError("down"))
    await controller.search("chicken")


@pytest.mark.parametrize(
    ("fill", "filled_state", "new_mode"),
    [
        (_fill_voice, ResultReady, AcquisitionMode.SEARCH),
        (_fill_photo, ResultReady, AcquisitionMode.VOICE),
        (_fill_search, ResultReady, AcquisitionMode.PHOTO),
        (_fill_search_error, Error, AcquisitionMode.SCAN),
    ],
)
def test_mode_switch_clears_transient_fields(fill, filled_state, new_mode) -> None:
    controller = build_controller()
    asyncio.run(fill(controller))
    assert isinstance(controller.state, filled_state)
    assert (
        controller.search_text or controller.transcript or controller.image_preview
    )

    state = controller.set_mode(new_mode)

    assert state == Idle(new_mode)
    assert controller.search_text == ""
    assert controller.transcript == ""
    assert controller.image_preview is None
    assert controller.listening is False


def test_search_is_rejected_in_other_modes() -> None:
    controller = build_controller()
    controller.set_mode(AcquisitionMode.SCAN)

    with pytest.raises(InvalidTransition):
        asyncio.run(controller.search("chicken"))


def test_scan_selects_demo_product() -> None:
    controller = build_controller()
    controller.set_mode(AcquisitionMode.SCAN)

    state = asyncio.run(controller.scan())

    assert isinstance(state, FoodSelected)
    assert state.food.name == "Protein Bar"
    assert state.quantity == 1.0
    assert state.mode == AcquisitionMode.SCAN


def test_scan_unknown_barcode_shows_error() -> None:
    controller = build_controller()
    controller.set_mode(AcquisitionMode.SCAN)

    state = asyncio.run(controller.scan("000"))

    assert state == Error(
        AcquisitionMode.SCAN,
        ErrorKind.BARCODE_NOT_FOUND,
        "Barcode not found. Try searching manually.",
    )


def test_voice_transcript_produces_candidates() -> None:
    dictation = FakeDictationSession()
    controller = build_controller(
        FakeEstimatorClient(payload={"items": [PIZZA_SLICES]}), dictation
    )
    controller.set_mode(AcquisitionMode.VOICE)

    controller.start_listening()
    assert controller.listening is True

    asyncio.run(dictation.last_listener.on_result("two slices of pizza"))

    assert controller.listening is False
    assert controller.transcript == "two slices of pizza"
    assert isinstance(controller.state, ResultReady)

    selected = controller.select(0)
    assert selected.quantity == 2
    assert selected.food.name == "Pizza Slice"
    assert controller.confirm().calories == 570


def test_voice_without_recognized_food_shows_no_match() -> None:
    dictation = FakeDictationSession()
    controller = build_controller(FakeEstimatorClient(payload={"items": []}), dictation)
    controller.set_mode(AcquisitionMode.VOICE)
    controller.start_listening()

    asyncio.run(dictation.last_listener.on_result("hello there"))

    assert controller.state == Error(
        AcquisitionMode.VOICE,
        ErrorKind.NO_MATCH,
        "Couldn't identify food from your speech. Please try again.",
    )


def test_voice_empty_transcript_skips_estimator() -> None:
    client = FakeEstimatorClient()
    controller = build_controller(client)
    controller.set_mode(AcquisitionMode.VOICE)

    state = asyncio.run(controller.handle_transcript("   "))

    assert isinstance(state, Error)
    assert state.kind == ErrorKind.NO_MATCH
    assert client.calls == []


def test_dictation_unavailable_shows_error() -> None:
    dictation = FakeDictationSession(available=False)
    controller = build_controller(dictation=dictation)
    controller.set_mode(AcquisitionMode.VOICE)

    state = controller.start_listening()

    assert state == Error(
        AcquisitionMode.VOICE,
        ErrorKind.DICTATION_UNAVAILABLE,
        "Speech recognition is not supported on this device.",
    )
    assert dictation.started == 0
    assert controller.listening is False


def test_dictation_error_shows_reason() -> None:
    dictation = FakeDictationSession()
    controller = build_controller(dictation=dictation)
    controller.set_mode(AcquisitionMode.VOICE)
    controller.start_listening()

    dictation.last_listener.on_error("no-speech")

    assert controller.state == Error(
        AcquisitionMode.VOICE,
        ErrorKind.DICTATION_ERROR,
        "Speech recognition error: no-speech",
    )
    assert controller.listening is False


def test_transcript_after_mode_switch_is_ignored() -> None:
    dictation = FakeDictationSession()
    client = FakeEstimatorClient()
    controller = build_controller(client, dictation)
    controller.set_mode(AcquisitionMode.VOICE)
    controller.start_listening()
    listener = dictation.last_listener

    controller.set_mode(AcquisitionMode.SEARCH)
    asyncio.run(listener.on_result("an apple"))

    assert dictation.stopped == 1
    assert controller.state == Idle(AcquisitionMode.SEARCH)
    assert client.calls == []


def test_toggle_listening_starts_and_stops() -> None:
    dictation = FakeDictationSession()
    controller = build_controller(dictation=dictation)
    controller.set_mode(AcquisitionMode.VOICE)

    controller.toggle_listening()
    assert controller.listening is True

    controller.toggle_listening()
    assert controller.listening is False
    assert dictation.started == 1
    assert dictation.stopped == 1


def test_photo_upload_produces_candidates() -> None:
    client = FakeEstimatorClient()
    controller = build_controller(client)
    controller.set_mode(AcquisitionMode.PHOTO)

    state = asyncio.run(controller.upload_photo(PNG_DATA_URL))

    assert isinstance(state, ResultReady)
    assert controller.image_preview == PNG_DATA_URL
    assert client.calls[0]["image_data_url"].startswith("data:image/png;base64,")


def test_photo_upload_rejects_invalid_image() -> None:
    client = FakeEstimatorClient()
    controller = build_controller(client)
    controller.set_mode(AcquisitionMode.PHOTO)

    state = asyncio.run(controller.upload_photo("data:text/plain;base64,ZmFrZQ=="))

    assert state == Error(
        AcquisitionMode.PHOTO,
        ErrorKind.INVALID_IMAGE,
        "Invalid image format. Please upload a different photo.",
    )
    assert controller.image_preview is None
    assert client.calls == []


def test_photo_without_food_shows_no_match() -> None:
    controller = build_controller(FakeEstimatorClient(payload={"items": []}))
    controller.set_mode(AcquisitionMode.PHOTO)

    state = asyncio.run(controller.upload_photo(PNG_DATA_URL))

    assert isinstance(state, Error)
    assert state.kind == ErrorKind.NO_MATCH
    assert state.message.startswith("Couldn't identify food from your image")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (2, 2.0),
        ("1.5", 1.5),
        (0, 0.1),
        (-3, 0.1),
        ("", 0.1),
        ("abc", 0.1),
        (None, 0.1),
        (math.nan, 0.1),
        (math.inf, 0.1),
    ],
)
def test_clamp_quantity(raw: object, expected: float) -> None:
    assert clamp_quantity(raw) == expected


def test_select_clamps_estimated_quantity() -> None:
    zero_quantity = {**CHICKEN_BREAST, "quantity": 0}
    controller = build_controller(
        FakeEstimatorClient(payload={"items": [zero_quantity]})
    )
    controller.set_mode(AcquisitionMode.VOICE)
    asyncio.run(controller.handle_transcript("chicken"))

    selected = controller.select(0)

    assert selected.quantity == 0.1


def test_select_out_of_range_raises() -> None:
    controller = build_controller()
    asyncio.run(controller.search("chicken"))

    with pytest.raises(IndexError):
        controller.select(5)


def test_set_meal_overrides_default() -> None:
    controller = build_controller()
    asyncio.run(controller.search("chicken"))
    controller.select(0)

    controller.set_meal("Dinner")

    assert controller.confirm().meal == MealType.DINNER


def test_default_meal_follows_clock() -> None:
    clock = FixedClock(datetime(2026, 10, 19, 7, 0, tzinfo=UTC))
    controller = build_controller(clock=clock)
    assert controller.default_meal == MealType.BREAKFAST

    clock.now = datetime(2026, 10, 19, 21, 0, tzinfo=UTC)
    controller.open()

    assert controller.default_meal == MealType.SNACKS


def test_confirm_requires_selection() -> None:
    controller = build_controller()

    with pytest.raises(InvalidTransition):
        controller.confirm()


def test_cancel_discards_selection() -> None:
    controller = build_controller()
    controller.set_mode(AcquisitionMode.SCAN)
    asyncio.run(controller.scan())

    state = controller.cancel()

    assert state == Idle(AcquisitionMode.SCAN)
    with pytest.raises(InvalidTransition):
        controller.confirm()


def test_log_ids_strictly_increase() -> None:
    controller = build_controller()
    controller.set_mode(AcquisitionMode.SCAN)

    asyncio.run(controller.scan())
    first = controller.confirm()
    asyncio.run(controller.scan())
    second = controller.confirm()

    assert first.log_id == 1792413000000
    assert second.log_id == first.log_id + 1


def test_listening_again_keeps_results_until_next_utterance() -> None:
    dictation = FakeDictationSession()
    client = FakeEstimatorClient()
    controller = build_controller(client, dictation)
    controller.set_mode(AcquisitionMode.VOICE)
    shown = asyncio.run(controller.handle_transcript("chicken"))

    state = controller.start_listening()

    assert state == shown
    assert controller.listening is True

    client.payload = {"items": [PIZZA_SLICES]}
    asyncio.run(dictation.last_listener.on_result("pizza"))

    assert controller.state.candidates[0].name == "Pizza Slice"
    assert controller.listening is False


def test_select_while_listening_stops_dictation() -> None:
    dictation = FakeDictationSession()
    controller = build_controller(dictation=dictation)
    controller.set_mode(AcquisitionMode.VOICE)
    asyncio.run(controller.handle_transcript("chicken"))
    controller.start_listening()

    controller.select(0)

    assert dictation.stopped == 1
    assert controller.listening is False
    assert isinstance(controller.state, FoodSelected)


def test_error_from_abandoned_dictation_is_ignored() -> None:
    dictation = FakeDictationSession()
    controller = build_controller(dictation=dictation)
    controller.set_mode(AcquisitionMode.VOICE)
    controller.start_listening()
    listener = dictation.last_listener

    controller.cancel()
    listener.on_error("aborted")

    assert controller.state == Idle(AcquisitionMode.VOICE)
    assert controller.listening is False
