"""Voice dictation capability interfaces."""

from typing import Protocol


class DictationListener(Protocol):
    """Callbacks delivered by a single-shot dictation session."""

    def on_start(self) -> None:
        """Called when the recognizer starts listening."""

    def on_end(self) -> None:
        """Called when the recognizer stops listening."""

    def on_error(self, reason: str) -> None:
        """Called when recognition fails."""

    async def on_result(self, transcript: str) -> None:
        """Called with the final transcript of one utterance."""


class DictationSession(Protocol):
    """Interface for a platform speech recognizer."""

    def is_available(self) -> bool:
        """Return True when speech recognition is supported."""

    def start(self, listener: DictationListener) -> None:
        """Begin listening for one utterance."""

    def stop(self) -> None:
        """Stop listening, if active."""
