"""Text-to-speech collaborator contract."""

from typing import Protocol

from schemas.personality import VoiceSettings


class Speaker(Protocol):
    """
    Speech output. The host must stop playback when the assistant UI closes.
    """
    async def speak(self, text: str, voice_settings: VoiceSettings) -> None: ...
    """
    Speak plain text with the given rate, pitch and language.
    """
    async def stop(self) -> None: ...
    """
    Stop any playback in progress.
    """
