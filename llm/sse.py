"""Server-sent-event decoding for streamed model replies.

One grammar serves both transports: the live path feeds raw body chunks as they
arrive, the buffered path feeds the whole body at once. Both go through
SSEDecoder so they yield the same fragments in the same order.

Grammar:
    data: {"type": "content_block_delta", "delta": {"text": "..."}}
    data: [DONE]

Lines without a ``data:`` prefix (``event:``, comments, blanks) are ignored, as
are events of any other type.
"""

import codecs
import json
import logging
from typing import AsyncIterable, AsyncIterator, Iterable, List, Optional, Union

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_MARKER = "[DONE]"


def parse_event_line(line: str) -> Optional[str]:
    """
    Extract the text fragment carried by one SSE line.

    Args:
        line: A single line without its terminator

    Returns:
        Delta text, or None if the line carries no text

    Raises:
        ValueError: If the payload is not valid JSON
    """
    stripped = line.strip()
    if not stripped.startswith(DATA_PREFIX):
        return None
    payload = stripped[len(DATA_PREFIX):].strip()
    if not payload or payload == DONE_MARKER:
        return None

    event = json.loads(payload)
    if not isinstance(event, dict) or event.get("type") != "content_block_delta":
        return None
    delta = event.get("delta")
    if not isinstance(delta, dict):
        return None
    text = delta.get("text")
    return text if isinstance(text, str) else None


def is_done_line(line: str) -> bool:
    stripped = line.strip()
    return stripped.startswith(DATA_PREFIX) and stripped[len(DATA_PREFIX):].strip() == DONE_MARKER


class SSEDecoder:
    """Incremental decoder; buffers partial lines across chunk boundaries."""

    def __init__(self):
        self._buffer = ""
        self._bytes_decoder = codecs.getincrementaldecoder("utf-8")()
        self.done = False
        self.skipped_lines = 0

    def feed(self, chunk: Union[str, bytes]) -> List[str]:
        """
        Feed a chunk of body text.

        Args:
            chunk: Raw text or UTF-8 bytes

        Returns:
            Text fragments completed by this chunk
        """
        if self.done:
            return []
        if isinstance(chunk, bytes):
            chunk = self._bytes_decoder.decode(chunk)

        self._buffer += chunk
        *lines, self._buffer = self._buffer.split("\n")
        return self._consume(lines)

    def flush(self) -> List[str]:
        """Decode whatever remains after the body ended without a newline."""
        if self.done or not self._buffer:
            return []
        remainder, self._buffer = self._buffer, ""
        return self._consume([remainder])

    def _consume(self, lines: List[str]) -> List[str]:
        fragments = []
        for line in lines:
            if is_done_line(line):
                self.done = True
                self._buffer = ""
                break
            try:
                text = parse_event_line(line)
            except ValueError as e:
                self.skipped_lines += 1
                logger.warning(f"Skipping malformed stream event: {e}")
                continue
            if text:
                fragments.append(text)
        return fragments


def iter_sse_fragments(chunks: Iterable[Union[str, bytes]]) -> Iterable[str]:
    """Yield text fragments decoded from a synchronous chunk sequence."""
    decoder = SSEDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.done:
            return
    yield from decoder.flush()


async def aiter_sse_fragments(chunks: AsyncIterable[Union[str, bytes]]) -> AsyncIterator[str]:
    """Yield text fragments decoded from an asynchronous chunk stream."""
    decoder = SSEDecoder()
    async for chunk in chunks:
        for fragment in decoder.feed(chunk):
            yield fragment
        if decoder.done:
            return
    for fragment in decoder.flush():
        yield fragment


def parse_sse_text(body: Union[str, bytes]) -> List[str]:
    """Decode a fully buffered body into its text fragments."""
    return list(iter_sse_fragments([body]))
