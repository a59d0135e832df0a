"""Dictation session fed by a browser's speech recognizer over HTTP."""

import logging
from dataclasses import dataclass, field

from calorie_tracker.services.dictation import DictationListener, DictationSession

_logger = logging.getLogger(__name__)


class NoActiveDictation(RuntimeError):  # noqa: N818
    """A recognition event arrived while no session was listening."""


@dataclass
class BrowserDictationSession(DictationSession):
    """Relays recognition events posted by the client to the listener.

    The browser runs the recognizer; the API forwards its final transcript
    or error through ``deliver_result`` and ``deliver_error``.
    """

    enabled: bool = True
    _listener: DictationListener | None = field(default=None, init=False)

    @property
    def active(self) -> bool:
        """Return True while a listener is attached."""
        return self._listener is not None

    def is_available(self) -> bool:
        """Return True when dictation is enabled in settings."""
        return self.enabled

    def start(self, listener: DictationListener) -> None:
        """Attach a listener and report that listening began."""
        self._listener = listener
        listener.on_start()

    def stop(self) -> None:
        """Detach the listener and report that listening ended."""
        listener = self._listener
        self._listener = None
        if listener is not None:
            listener.on_end()

    async def deliver_result(self, transcript: str) -> None:
        """Forward a final transcript; the session ends afterward."""
        listener = self._take_listener()
        await listener.on_result(transcript)

    def deliver_error(self, reason: str) -> None:
        """Forward a recognizer error; the session ends afterward."""
        listener = self._take_listener()
        listener.on_error(reason)

    def _take_listener(self) -> DictationListener:
        listener = self._listener
        if listener is None:
            raise NoActiveDictation("No dictation session is listening")
        self._listener = None
        _logger.debug("Dictation session finished")
        return listener
