"""Voice Input Adapter.

Wraps one single-utterance, final-results-only speech session supplied by
the host environment. The session reports back through a ``SpeechListener``;
the adapter turns those events into at most one transcript callback per
``start()`` and always finishes back in ``VoiceState.IDLE``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum
from typing import Protocol

from .errors import SpeechError, SpeechErrorKind
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

# Error codes as reported by Web Speech style recognisers.
_ERROR_KINDS: dict[str, SpeechErrorKind] = {
    "no-speech": SpeechErrorKind.NO_SPEECH,
    "not-allowed": SpeechErrorKind.PERMISSION_DENIED,
    "service-not-allowed": SpeechErrorKind.PERMISSION_DENIED,
    "network": SpeechErrorKind.NETWORK,
}


class VoiceState(Enum):
    IDLE = "idle"
    LISTENING = "listening"


class SpeechListener(Protocol):
    def on_transcript(self, transcript: str) -> None: ...

    def on_error(self, code: str) -> None: ...

    def on_end(self) -> None: ...


class SpeechSession(Protocol):
    language: str

    def start(self, listener: SpeechListener) -> None: ...

    def stop(self) -> None: ...


def classify_error(code: str) -> SpeechErrorKind:
    return _ERROR_KINDS.get(code, SpeechErrorKind.UNKNOWN)


class VoiceSearch:
    def __init__(
        self,
        session: SpeechSession | None,
        on_transcript: Callable[[str], None],
        on_error: Callable[[SpeechError], None] | None = None,
        language: str = "en-US",
    ):
        self._session = session
        self._on_transcript = on_transcript
        self._on_error = on_error
        self.state = VoiceState.IDLE
        self._delivered = False
        if session is not None:
            session.language = language

    @property
    def supported(self) -> bool:
        return self._session is not None

    @property
    def listening(self) -> bool:
        return self.state is VoiceState.LISTENING

    def start(self) -> Result[None, SpeechError]:
        if self._session is None:
            return Err(SpeechError(SpeechErrorKind.UNSUPPORTED))
        if self.listening:
            return Err(SpeechError(SpeechErrorKind.ALREADY_LISTENING))

        self.state = VoiceState.LISTENING
        self._delivered = False
        try:
            self._session.start(self)
        except Exception as e:
            logger.warning("Speech session failed to start: %s", e)
            self.state = VoiceState.IDLE
            return Err(SpeechError(SpeechErrorKind.UNKNOWN, str(e)))
        return Ok(None)

    def stop(self) -> None:
        if self._session is None or not self.listening:
            return
        self.state = VoiceState.IDLE
        self._session.stop()

    # SpeechListener

    def on_transcript(self, transcript: str) -> None:
        if not self.listening or self._delivered:
            return
        self._delivered = True
        self.stop()
        self._on_transcript(transcript)

    def on_error(self, code: str) -> None:
        if not self.listening:
            return
        kind = classify_error(code)
        logger.info("Speech recognition error: %s (%s)", code, kind.value)
        self.stop()
        if self._on_error is not None:
            self._on_error(SpeechError(kind, code))

    def on_end(self) -> None:
        self.state = VoiceState.IDLE
