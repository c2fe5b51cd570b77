"""Voice session variants and provider selection."""

import logging
from typing import Callable, Iterable, Optional, Type

from .base import CaptureBackend, CaptureEvent, VoiceSession

logger = logging.getLogger(__name__)


class ContinuousVoiceSession(VoiceSession):
    """On-device recognition: keeps listening until stopped, many partials."""
    continuous = True


class SingleUseVoiceSession(VoiceSession):
    """Cloud recognition of one utterance; ends at the first final transcript."""
    continuous = False


class NullCaptureBackend:
    """Backend used when no capture is possible; never starts."""
    provider_id = "noop"

    def is_available(self) -> bool:
        return False

    async def start(self, language_tag: str, on_event: Callable[[CaptureEvent], None]) -> bool:
        return False

    async def stop(self) -> None:
        pass

    async def cancel(self) -> None:
        pass


class NoopVoiceSession(VoiceSession):
    """Graceful fallback when no provider is available: start always fails."""

    def __init__(self, backend: Optional[CaptureBackend] = None):
        super().__init__(backend or NullCaptureBackend())


class VoiceProvider:
    """Pairs a capture backend with the session variant that drives it."""

    def __init__(self, backend: CaptureBackend, session_cls: Type[VoiceSession] = ContinuousVoiceSession):
        self.backend = backend
        self.session_cls = session_cls

    @property
    def id(self) -> str:
        return self.backend.provider_id

    def is_available(self) -> bool:
        try:
            return bool(self.backend.is_available())
        except Exception as e:
            logger.error(f"Availability check failed for {self.id}: {e}")
            return False

    def create_session(self) -> VoiceSession:
        return self.session_cls(self.backend)


NOOP_PROVIDER = VoiceProvider(NullCaptureBackend(), NoopVoiceSession)


def select_voice_provider(candidates: Iterable[VoiceProvider]) -> VoiceProvider:
    """
    Pick the first available provider in priority order.

    Args:
        candidates: Providers in preference order

    Returns:
        First available provider, or the noop provider (text-only input)
    """
    for provider in candidates:
        if provider.is_available():
            logger.info(f"Using voice provider: {provider.id}")
            return provider
        logger.warning(f"Voice provider {provider.id} not available")

    logger.warning("No voice provider available; falling back to text input")
    return NOOP_PROVIDER
