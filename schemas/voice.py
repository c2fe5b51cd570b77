"""Voice capture schemas."""

from enum import Enum
from typing import Callable, Optional, TypedDict
from pydantic import BaseModel, ConfigDict


class VoiceState(str, Enum):
    """Lifecycle of a single capture session."""
    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    FINALIZING = "finalizing"
    DONE = "done"
    ERROR = "error"


class _TranscriptEventBase(TypedDict):
    text: str
    """
    Full-replace hypothesis.
    """
    is_final: bool
    """
    Whether the recognizer declared end of utterance.
    """


class TranscriptEvent(_TranscriptEventBase, total=False):
    rev: int
    """
    Revision number of the hypothesis; older revisions arriving late are dropped.
    """


class CaptureError(Exception):
    """Error reported by a capture backend."""

    def __init__(self, message: str, code: str = "capture_error"):
        super().__init__(message)
        self.code = code


class VoiceTranscriptState(BaseModel):
    """Transcript state for the lifetime of one capture session."""
    partial_text: str = ""
    final_text: str = ""
    provider_id: str = "noop"
    session_active: bool = False


class VoiceStartOptions(BaseModel):
    """Options passed to VoiceSession.start."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    language: str = "en-ZA"
    on_partial: Optional[Callable[[str], None]] = None
    on_final: Optional[Callable[[str], None]] = None
    on_error: Optional[Callable[[Exception], None]] = None
