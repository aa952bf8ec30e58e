import enum
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..streaming.codec import MEDIA_TYPE, EventStreamDecoder

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Dict[str, Any]], Any]
ErrorCallback = Callable[[str], Any]
TokenCallback = Callable[[str], Any]


class StreamState(str, enum.Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"


async def _call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def _error_from_response(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return default
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return default


class ChatStreamClient:
    """Client side of a chat session.

    Sends a message and applies the streamed events through callbacks. Only
    one send runs at a time; a send issued while another is in flight is
    ignored.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:5000",
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.state = StreamState.IDLE
        self._response: Optional[httpx.Response] = None
        self._cancelled = False
        # Held from the start of a send until its cleanup has run
        self._in_flight = False

    @property
    def is_streaming(self) -> bool:
        return self.state is not StreamState.IDLE

    async def send_message(
        self,
        session_id: str,
        content: str,
        provider: str,
        model: str,
        on_message: MessageCallback,
        on_error: ErrorCallback,
        on_token: Optional[TokenCallback] = None,
    ) -> None:
        if self._in_flight:
            return

        self._in_flight = True
        self.state = StreamState.SENDING
        self._cancelled = False
        try:
            async with self.client.stream(
                "POST",
                f"/api/sessions/{session_id}/messages",
                json={"content": content, "provider": provider, "model": model},
            ) as response:
                self._response = response
                if self._cancelled:
                    return
                if response.status_code >= 400:
                    await response.aread()
                    if self._cancelled:
                        return
                    await _call(
                        on_error,
                        _error_from_response(response, f"HTTP {response.status_code}"),
                    )
                    return

                if MEDIA_TYPE not in response.headers.get("content-type", ""):
                    await response.aread()
                    if self._cancelled:
                        return
                    error = _error_from_response(
                        response, "No streaming response received"
                    )
                    await _call(on_error, error)
                    return

                self.state = StreamState.STREAMING
                await self._consume(response, on_message, on_error, on_token)
        except (httpx.HTTPError, httpx.StreamError) as e:
            if not self._cancelled:
                logger.error(f"Error in streaming: {str(e)}")
                await _call(on_error, str(e) or "Failed to send message")
        finally:
            self._response = None
            self.state = StreamState.IDLE
            self._in_flight = False

    async def _consume(
        self,
        response: httpx.Response,
        on_message: MessageCallback,
        on_error: ErrorCallback,
        on_token: Optional[TokenCallback],
    ) -> None:
        decoder = EventStreamDecoder()
        async for chunk in response.aiter_bytes():
            for event in decoder.feed(chunk):
                if self._cancelled:
                    return
                if await self._apply(event, on_message, on_error, on_token):
                    return
        if self._cancelled:
            return
        for event in decoder.close():
            if await self._apply(event, on_message, on_error, on_token):
                return

    async def _apply(
        self,
        event: Dict[str, Any],
        on_message: MessageCallback,
        on_error: ErrorCallback,
        on_token: Optional[TokenCallback],
    ) -> bool:
        """Apply one event; True once a terminal event has been seen"""
        event_type = event.get("type")
        if event_type == "message":
            await _call(on_message, event.get("message"))
        elif event_type == "token":
            await _call(on_token, event.get("content", ""))
        elif event_type == "error":
            await _call(on_error, event.get("error") or "Unknown error occurred")
            return True
        elif event_type == "done":
            return True
        else:
            logger.debug(f"Ignoring unknown event type: {event_type}")
        return False

    async def cancel(self) -> None:
        """Drop the connection without waiting for a terminal event.

        Messages already applied stay applied. A cancel issued before the
        response headers arrive closes the response as soon as it opens.
        A new send is accepted once the cancelled one has unwound.
        """
        self._cancelled = True
        response = self._response
        self.state = StreamState.IDLE
        if response is not None:
            await response.aclose()

    # Plain JSON endpoints

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self.client.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    async def get_providers(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/providers")

    async def get_user(self) -> Dict[str, Any]:
        return await self._request("GET", "/api/user")

    async def list_sessions(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/api/sessions")

    async def get_session(self, session_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/api/sessions/{session_id}")

    async def create_session(
        self, provider: str, model: str, title: str = "New Chat"
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/api/sessions",
            json={"title": title, "provider": provider, "model": model},
        )

    async def update_session(self, session_id: str, **fields: Any) -> Dict[str, Any]:
        return await self._request("PATCH", f"/api/sessions/{session_id}", json=fields)

    async def delete_session(self, session_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/api/sessions/{session_id}")

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
