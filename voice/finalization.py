"""Commit-after-a-pause policy over a voice session."""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

from schemas.voice import VoiceStartOptions

logger = logging.getLogger(__name__)

SubmitCallback = Callable[[str], Union[Awaitable[None], None]]

DEFAULT_GRACE_PERIOD = 1.2


class FinalizeState(str, Enum):
    """awaiting-speech -> grace-period -> submitted | cancelled"""
    AWAITING_SPEECH = "awaiting_speech"
    GRACE_PERIOD = "grace_period"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"


class FinalizationController:
    """
    Decides when a transcript is done enough to submit.

    Recognizers emit premature finals on short pauses, so every partial or
    final (re)arms a single grace timer and only its expiry submits. A manual
    send and the timer share one transition out of the open states, so exactly
    one of them reaches on_submit.
    """

    def __init__(
        self,
        on_submit: SubmitCallback,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        manual_send_only: bool = False
    ):
        """
        Initialize finalization controller.

        Args:
            on_submit: Called once with the transcript to submit
            grace_period: Seconds of silence before auto-submit
            manual_send_only: Hold transcripts for explicit submit only
        """
        self.on_submit = on_submit
        self.grace_period = grace_period
        self.manual_send_only = manual_send_only
        self.state = FinalizeState.AWAITING_SPEECH
        self.transcript = ""
        self._edited = False
        self._timer: Optional[asyncio.Task] = None

    @property
    def is_closed(self) -> bool:
        return self.state in (FinalizeState.SUBMITTED, FinalizeState.CANCELLED)

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start_options(self, language: str, on_error: Optional[Callable[[Exception], None]] = None) -> VoiceStartOptions:
        """Options wiring a voice session's callbacks into this controller."""
        return VoiceStartOptions(
            language=language,
            on_partial=self.handle_partial,
            on_final=self.handle_final,
            on_error=on_error
        )

    def handle_partial(self, text: str):
        """The user is still speaking: hold the hypothesis and restart the grace window."""
        self._hold(text)

    def handle_final(self, text: str):
        """The recognizer declared end of utterance: hold it for the grace window."""
        self._hold(text)

    def edit_transcript(self, text: str):
        """Manual edit; kept verbatim and no longer overwritten by recognition."""
        if self.is_closed:
            return
        self.transcript = text
        self._edited = True

    async def submit(self) -> bool:
        """
        Manual send.

        Returns:
            True if this call submitted, False if already submitted or empty
        """
        self._cancel_timer()
        return await self._commit("manual")

    def cancel(self):
        """Discard the held transcript; nothing will be submitted."""
        self._cancel_timer()
        self.state = FinalizeState.CANCELLED
        self.transcript = ""

    def reset(self):
        """Prepare for a new utterance."""
        self._cancel_timer()
        self.state = FinalizeState.AWAITING_SPEECH
        self.transcript = ""
        self._edited = False

    def _hold(self, text: str):
        if self.is_closed:
            logger.debug(f"Ignoring transcript in state {self.state.value}")
            return
        if not self._edited:
            self.transcript = text
        self._cancel_timer()
        if self.manual_send_only:
            return
        self.state = FinalizeState.GRACE_PERIOD
        self._timer = asyncio.get_running_loop().create_task(self._grace_then_submit())

    async def _grace_then_submit(self):
        try:
            await asyncio.sleep(self.grace_period)
        except asyncio.CancelledError:
            logger.debug("Grace timer cancelled")
            return
        self._timer = None
        await self._commit("timer")

    async def _commit(self, source: str) -> bool:
        if self.is_closed:
            logger.debug(f"Submit from {source} ignored; already {self.state.value}")
            return False

        text = self.transcript.strip()
        if not text:
            logger.debug(f"Submit from {source} ignored; transcript empty")
            self.state = FinalizeState.AWAITING_SPEECH
            return False

        self.state = FinalizeState.SUBMITTED
        logger.info(f"Submitting transcript ({source}): {len(text)} chars")
        try:
            result = self.on_submit(text)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Transcript submission failed: {e}")
        return True

    def _cancel_timer(self):
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
