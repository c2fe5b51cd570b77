"""Text preparation for speech output."""

import re
from typing import List

_EMOJI_PATTERN = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF☀-⛿]"
)


def normalize_text_for_speech(text: str) -> str:
    """Strip markdown, code and emoji so a TTS engine reads plain prose."""
    if not text:
        return ""

    text = re.sub(r"```[\s\S]*?```", "", text)
    text = re.sub(r"`([^`]+)`", r"\1", text)
    text = re.sub(r"\*\*([^*]+)\*\*", r"\1", text)
    text = re.sub(r"\*([^*]+)\*", r"\1", text)
    text = re.sub(r"__([^_]+)__", r"\1", text)
    text = re.sub(r"(?<!\w)_([^_]+)_(?!\w)", r"\1", text)
    text = re.sub(r"^#{1,6}\s+", "", text, flags=re.MULTILINE)
    text = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", text)
    text = _EMOJI_PATTERN.sub("", text)
    return re.sub(r"\s+", " ", text).strip()


def split_into_sentences(text: str) -> List[str]:
    """Split on sentence boundaries for progressive playback."""
    if not text or not text.strip():
        return []
    parts = re.split(r"(?<=[.!?…])\s+", text.strip())
    return [p.strip() for p in parts if p.strip()]


def is_raw_streaming_json(text: str) -> bool:
    """True for stream framing that leaked into reply text and must not be spoken."""
    if not text:
        return False
    return (
        '"content_block_delta"' in text
        or text.startswith("data:")
        or '{"delta":' in text
    )
