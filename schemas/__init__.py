"""Pydantic schemas for the Dash assistant."""

from .personality import Personality, VoiceSettings, RoleSpecialization
from .voice import VoiceState, TranscriptEvent, CaptureError, VoiceTranscriptState, VoiceStartOptions
from .gateway import ModelPayload, ModelRequest, ModelReply

__all__ = [
    "Personality",
    "VoiceSettings",
    "RoleSpecialization",
    "VoiceState",
    "TranscriptEvent",
    "CaptureError",
    "VoiceTranscriptState",
    "VoiceStartOptions",
    "ModelPayload",
    "ModelRequest",
    "ModelReply",
]
