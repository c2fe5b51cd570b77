"""Voice capture contracts and the per-session state machine."""

import logging
from typing import Callable, Optional, Protocol, Union

from schemas.voice import (
    CaptureError,
    TranscriptEvent,
    VoiceStartOptions,
    VoiceState,
    VoiceTranscriptState,
)

logger = logging.getLogger(__name__)

CaptureEvent = Union[TranscriptEvent, CaptureError]


# --------- Protocols ---------
class CaptureBackend(Protocol):
    """
    Speech capture backend (on-device recognizer or cloud streaming service).
    """
    provider_id: str
    """
    Identifier reported in the transcript state.
    """
    def is_available(self) -> bool: ...
    """
    Whether the backend can capture on this device/runtime.
    """
    async def start(self, language_tag: str, on_event: Callable[[CaptureEvent], None]) -> bool: ...
    """
    Begin capture. Transcript events and errors are delivered through on_event.
    """
    async def stop(self) -> None: ...
    """
    Stop capture; the backend may still deliver a last final event.
    """
    async def cancel(self) -> None: ...
    """
    Abort capture and drop anything pending.
    """


class VoiceSession:
    """
    One capture session over a backend.

    idle -> starting -> listening -> (partial)* -> finalizing -> done | error

    ``cancel()`` returns to idle from listening or finalizing and discards
    buffered text. Events from an earlier generation or with a stale revision
    are dropped.
    """

    # A continuous session keeps listening after a final transcript.
    continuous = True

    def __init__(self, backend: CaptureBackend):
        self.backend = backend
        self.state = VoiceState.IDLE
        self.transcript = VoiceTranscriptState(provider_id=backend.provider_id)
        self._options: Optional[VoiceStartOptions] = None
        self._generation = 0
        self._last_rev = -1

    @property
    def provider_id(self) -> str:
        return self.backend.provider_id

    def is_active(self) -> bool:
        return self.state in (VoiceState.STARTING, VoiceState.LISTENING, VoiceState.FINALIZING)

    async def start(self, options: VoiceStartOptions) -> bool:
        """
        Start capturing.

        Args:
            options: Language and transcript callbacks

        Returns:
            False if capture is unavailable or the backend failed to start;
            callers must then fall back to text input
        """
        if self.is_active():
            logger.warning(f"Voice session already active ({self.state.value})")
            return False

        if not self.backend.is_available():
            logger.warning(f"Capture backend {self.provider_id} unavailable")
            return False

        self._generation += 1
        generation = self._generation
        self._options = options
        self._last_rev = -1
        self.transcript = VoiceTranscriptState(provider_id=self.provider_id)
        self.state = VoiceState.STARTING

        try:
            started = await self.backend.start(
                options.language,
                lambda event: self._on_backend_event(generation, event)
            )
        except Exception as e:
            logger.error(f"Capture backend {self.provider_id} failed to start: {e}")
            self._fail(e)
            return False

        if not started:
            logger.warning(f"Capture backend {self.provider_id} refused to start")
            self.state = VoiceState.ERROR
            return False

        if self.state == VoiceState.STARTING:
            self._enter_listening()
        return self.state in (VoiceState.LISTENING, VoiceState.FINALIZING, VoiceState.DONE)

    async def stop(self):
        """Force finalization; the held partial becomes the final transcript."""
        if self.state != VoiceState.LISTENING:
            return

        self.state = VoiceState.FINALIZING
        try:
            await self.backend.stop()
        except Exception as e:
            logger.error(f"Capture backend {self.provider_id} failed to stop: {e}")
            self._fail(e)
            return

        if self.state == VoiceState.FINALIZING:
            pending = self.transcript.partial_text
            if pending:
                self._handle_final(pending)
            else:
                self._finish()

    async def cancel(self):
        """Abort capture, discarding buffered text; no further callbacks fire."""
        if self.state not in (VoiceState.LISTENING, VoiceState.FINALIZING):
            return

        self._generation += 1
        self.state = VoiceState.IDLE
        self.transcript = VoiceTranscriptState(provider_id=self.provider_id)
        try:
            await self.backend.cancel()
        except Exception as e:
            logger.error(f"Capture backend {self.provider_id} failed to cancel: {e}")
        logger.info(f"Voice session cancelled ({self.provider_id})")

    def _on_backend_event(self, generation: int, event: CaptureEvent):
        if generation != self._generation or not self.is_active():
            logger.debug(f"Dropping stale capture event in state {self.state.value}")
            return

        if isinstance(event, Exception):
            logger.error(f"Capture error from {self.provider_id}: {event}")
            self._fail(event)
            return

        rev = event.get("rev")
        if rev is not None:
            if rev <= self._last_rev:
                logger.debug(f"Dropping out-of-order hypothesis rev={rev}")
                return
            self._last_rev = rev

        if self.state == VoiceState.STARTING:
            self._enter_listening()

        if event["is_final"]:
            self._handle_final(event["text"])
        elif self.state == VoiceState.LISTENING:
            self._handle_partial(event["text"])

    def _enter_listening(self):
        self.state = VoiceState.LISTENING
        self.transcript.session_active = True

    def _handle_partial(self, text: str):
        self.transcript.partial_text = text
        if self._options and self._options.on_partial:
            self._options.on_partial(text)

    def _handle_final(self, text: str):
        self.transcript.final_text = text
        self.transcript.partial_text = ""
        if self._options and self._options.on_final:
            self._options.on_final(text)
        if self.state == VoiceState.FINALIZING or not self.continuous:
            self._finish()

    def _finish(self):
        self.state = VoiceState.DONE
        self.transcript.session_active = False

    def _fail(self, error: Exception):
        self.state = VoiceState.ERROR
        self.transcript = VoiceTranscriptState(provider_id=self.provider_id)
        if self._options and self._options.on_error:
            self._options.on_error(error)
