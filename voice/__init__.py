"""Voice capture: provider abstraction and finalization policy."""

from .base import CaptureBackend, VoiceSession
from .providers import (
    ContinuousVoiceSession,
    SingleUseVoiceSession,
    NoopVoiceSession,
    NullCaptureBackend,
    VoiceProvider,
    select_voice_provider,
)
from .finalization import FinalizationController, FinalizeState

__all__ = [
    "CaptureBackend",
    "VoiceSession",
    "ContinuousVoiceSession",
    "SingleUseVoiceSession",
    "NoopVoiceSession",
    "NullCaptureBackend",
    "VoiceProvider",
    "select_voice_provider",
    "FinalizationController",
    "FinalizeState",
]
