"""Error taxonomy for food logging."""


class CalorieTrackerError(Exception):
    """Base class for recoverable application errors."""


class EstimationFailure(CalorieTrackerError):
    """The nutrition estimator could not be reached or returned garbage."""


class NoMatchFound(CalorieTrackerError):
    """The estimator answered but recognized no food."""


class BarcodeNotFound(CalorieTrackerError):
    """A scanned barcode has no catalog entry."""

    def __init__(self, code: str) -> None:
        super().__init__(f"No food for barcode {code}")
        self.code = code


class DictationUnavailable(CalorieTrackerError):
    """Speech recognition is not supported on this platform."""


class InvalidImage(CalorieTrackerError):
    """An uploaded image could not be decoded."""


class InvalidGoals(CalorieTrackerError, ValueError):
    """Goal values failed validation."""


class InvalidTransition(CalorieTrackerError):
    """An acquisition operation was called from the wrong state."""

    def __init__(self, operation: str, state: object) -> None:
        super().__init__(f"Cannot {operation} from {type(state).__name__}")
        self.operation = operation
        self.state = state
