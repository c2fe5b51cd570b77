"""AI gateway client: streamed or buffered model replies over HTTP."""

import asyncio
import logging
import threading
from typing import Optional, List, AsyncIterator

import requests

from schemas.gateway import ModelPayload, ModelRequest, ModelReply
from .base_client import BaseLLMClient, ChatMessage, ChunkCallback, LLMResponse, ModelRequestError
from .sse import aiter_sse_fragments, parse_sse_text

logger = logging.getLogger(__name__)

_SENTINEL = object()


class GatewayClient(BaseLLMClient):
    """
    Client for the authenticated AI gateway endpoint.

    Streaming replies use SSE framing. When the runtime cannot hand back an
    incrementally readable body, the whole body is buffered as bytes and
    decoded as UTF-8 by the same SSE grammar, so callers see identical content
    and fragments whatever charset the response headers suggest.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        scope: str = "teacher",
        service_type: str = "dash_conversation",
        timeout: int = 60,
        supports_streaming: bool = True,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize gateway client.

        Args:
            base_url: Gateway URL the request is POSTed to
            api_key: Bearer token for the gateway
            scope: Caller scope (teacher, principal, parent)
            service_type: Gateway service discriminator
            timeout: Request timeout in seconds
            supports_streaming: Whether the runtime can read bodies incrementally
            session: Optional requests session (shared connection pool)
        """
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.scope = scope
        self.service_type = service_type
        self.timeout = timeout
        self.supports_streaming = supports_streaming
        self.session = session or requests.Session()

        if not self.api_key:
            logger.warning("No gateway API key provided")

    def _get_headers(self, stream: bool) -> dict:
        """Build request headers."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
            "User-Agent": "Dash-Assistant-Core/1.0"
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _build_body(self, prompt: str, context: Optional[List[ChatMessage]], stream: bool) -> dict:
        request = ModelRequest(
            scope=self.scope,
            service_type=self.service_type,
            payload=ModelPayload(
                prompt=prompt,
                context=[m.model_dump() for m in context] if context else None
            ),
            stream=stream
        )
        return request.model_dump(exclude_none=True)

    async def send(
        self,
        prompt: str,
        context: Optional[List[ChatMessage]] = None,
        on_chunk: Optional[ChunkCallback] = None
    ) -> LLMResponse:
        """Send one request; stream when a chunk callback is supplied."""
        if on_chunk is None:
            return await self._send_buffered(prompt, context)

        body = self._build_body(prompt, context, stream=True)
        response = await self._post(body, stream=self.supports_streaming)
        try:
            if self.supports_streaming and getattr(response, "raw", None) is not None:
                content, fragments = await self._consume_live(response, on_chunk)
                transport = "stream"
            else:
                logger.info("Incremental body unavailable; parsing buffered stream reply")
                loop = asyncio.get_running_loop()
                raw_body = await loop.run_in_executor(None, lambda: response.content)
                content, fragments = self._consume_buffered(raw_body, on_chunk)
                transport = "buffered"
        finally:
            response.close()

        logger.info(f"Model reply received via {transport}: {fragments} fragments, {len(content)} chars")
        return LLMResponse(
            content=content,
            metadata={"transport": transport, "fragments": fragments, "provider": self.get_provider_name()}
        )

    async def _send_buffered(self, prompt: str, context: Optional[List[ChatMessage]]) -> LLMResponse:
        body = self._build_body(prompt, context, stream=False)
        response = await self._post(body, stream=False)
        try:
            reply = ModelReply.model_validate(response.json())
        except ValueError as e:
            raise ModelRequestError(f"Invalid gateway reply: {e}", response.status_code) from e
        finally:
            response.close()

        if not reply.success:
            raise ModelRequestError(reply.error or "Gateway reported failure", response.status_code)

        return LLMResponse(
            content=reply.content,
            usage=reply.usage,
            metadata={"transport": "json", "provider": self.get_provider_name()}
        )

    async def _post(self, body: dict, stream: bool) -> requests.Response:
        """POST in the default executor; raise ModelRequestError on failure."""
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(
                None,
                lambda: self.session.post(
                    self.base_url,
                    json=body,
                    headers=self._get_headers(stream),
                    timeout=self.timeout,
                    stream=stream
                )
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"Gateway timeout after {self.timeout}s")
            raise ModelRequestError(f"Gateway timeout: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Gateway transport error: {e}")
            raise ModelRequestError(f"Gateway transport error: {e}") from e

        if not 200 <= response.status_code < 300:
            response.close()
            if response.status_code in (401, 403):
                message = f"Gateway authentication failed ({response.status_code})"
            else:
                message = f"Gateway returned HTTP {response.status_code}"
            logger.error(message)
            raise ModelRequestError(message, response.status_code)

        return response

    async def _consume_live(self, response: requests.Response, on_chunk: ChunkCallback):
        body = self._iter_body(response)
        parts = []
        try:
            async for fragment in aiter_sse_fragments(body):
                parts.append(fragment)
                on_chunk(fragment)
        finally:
            await body.aclose()
        return "".join(parts), len(parts)

    def _consume_buffered(self, body: bytes, on_chunk: ChunkCallback):
        parts = parse_sse_text(body)
        for fragment in parts:
            on_chunk(fragment)
        return "".join(parts), len(parts)

    async def _iter_body(self, response: requests.Response) -> AsyncIterator[bytes]:
        """Read the blocking body iterator in a thread and hand chunks to the loop."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        stopped = threading.Event()

        def _pump():
            try:
                for chunk in response.iter_content(chunk_size=None):
                    if stopped.is_set():
                        break
                    if chunk:
                        loop.call_soon_threadsafe(queue.put_nowait, chunk)
            except Exception as exc:
                if not stopped.is_set():
                    loop.call_soon_threadsafe(queue.put_nowait, exc)
            finally:
                loop.call_soon_threadsafe(queue.put_nowait, _SENTINEL)

        pump = loop.run_in_executor(None, _pump)
        try:
            while True:
                item = await queue.get()
                if item is _SENTINEL:
                    return
                if isinstance(item, Exception):
                    logger.error(f"Stream read failed: {item}")
                    raise ModelRequestError(f"Stream read failed: {item}") from item
                yield item
        finally:
            # Closing the response unblocks a pump still waiting on the socket
            stopped.set()
            if not pump.done():
                response.close()
            await pump

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return "gateway"

    def get_model_name(self) -> str:
        """Get the model name (chosen server-side)."""
        return self.service_type
