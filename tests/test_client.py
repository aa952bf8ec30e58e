"""Tests for the client streaming session"""

import asyncio
import unittest

import httpx

from polychat.client.streaming import ChatStreamClient, StreamState
from polychat.database import init_models
from polychat.main import create_app
from polychat.providers.registry import ProviderRegistry
from polychat.streaming.codec import done_event, error_event, message_event, token_event

from .helpers import FakeProvider, make_settings

USER = {"id": "m1", "role": "user", "content": "Hi"}
ASSISTANT = {"id": "m2", "role": "assistant", "content": "Hello"}


def sse_response(*chunks, status_code=200):
    async def body():
        for chunk in chunks:
            yield chunk.encode() if isinstance(chunk, str) else chunk

    return httpx.Response(
        status_code, headers={"content-type": "text/event-stream"}, content=body()
    )


class Recorder:
    def __init__(self):
        self.messages = []
        self.errors = []
        self.tokens = []

    def on_message(self, message):
        self.messages.append(message)

    def on_error(self, error):
        self.errors.append(error)

    def on_token(self, token):
        self.tokens.append(token)


class ChatStreamClientTest(unittest.IsolatedAsyncioTestCase):
    def make_client(self, handler):
        self.requests = []

        def recording_handler(request):
            self.requests.append(request)
            return handler(request)

        http = httpx.AsyncClient(
            transport=httpx.MockTransport(recording_handler), base_url="http://test"
        )
        self.addAsyncCleanup(http.aclose)
        return ChatStreamClient(client=http)

    async def send(self, client, recorder, **kwargs):
        await client.send_message(
            "s1",
            "Hi",
            "openai",
            "gpt-4",
            on_message=kwargs.get("on_message", recorder.on_message),
            on_error=recorder.on_error,
            on_token=recorder.on_token,
        )

    async def test_applies_events_from_split_reads(self):
        stream = message_event(USER) + token_event("Hel") + token_event("lo")
        stream += message_event(ASSISTANT) + done_event()
        client = self.make_client(lambda r: sse_response(stream[:17], stream[17:60], stream[60:]))
        recorder = Recorder()

        await self.send(client, recorder)

        self.assertEqual(recorder.messages, [USER, ASSISTANT])
        self.assertEqual(recorder.tokens, ["Hel", "lo"])
        self.assertEqual(recorder.errors, [])
        self.assertEqual(client.state, StreamState.IDLE)

        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.path, "/api/sessions/s1/messages")

    async def test_error_event_surfaces_and_ends_stream(self):
        client = self.make_client(
            lambda r: sse_response(message_event(USER), error_event("quota exceeded"), done_event())
        )
        recorder = Recorder()

        await self.send(client, recorder)

        self.assertEqual(recorder.messages, [USER])
        self.assertEqual(recorder.errors, ["quota exceeded"])
        self.assertFalse(client.is_streaming)

    async def test_http_error_body_surfaces(self):
        client = self.make_client(
            lambda r: httpx.Response(400, json={"error": "Provider openai not available"})
        )
        recorder = Recorder()

        await self.send(client, recorder)

        self.assertEqual(recorder.errors, ["Provider openai not available"])
        self.assertEqual(client.state, StreamState.IDLE)

    async def test_non_stream_response_is_an_error(self):
        client = self.make_client(lambda r: httpx.Response(200, json={"ok": True}))
        recorder = Recorder()

        await self.send(client, recorder)

        self.assertEqual(recorder.errors, ["No streaming response received"])

    async def test_connection_failure_surfaces(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = self.make_client(refuse)
        recorder = Recorder()

        with self.assertLogs("polychat.client.streaming", level="ERROR"):
            await self.send(client, recorder)

        self.assertEqual(recorder.errors, ["connection refused"])
        self.assertEqual(client.state, StreamState.IDLE)

    async def test_send_while_streaming_is_ignored(self):
        client = self.make_client(
            lambda r: sse_response(message_event(USER), message_event(ASSISTANT), done_event())
        )
        recorder = Recorder()

        async def on_message(message):
            recorder.on_message(message)
            self.assertEqual(client.state, StreamState.STREAMING)
            await client.send_message("s1", "again", "openai", "gpt-4", recorder.on_message, recorder.on_error)

        await self.send(client, recorder, on_message=on_message)

        self.assertEqual(len(self.requests), 1)
        self.assertEqual(recorder.messages, [USER, ASSISTANT])

    async def test_cancel_returns_to_idle_and_keeps_applied_messages(self):
        client = self.make_client(
            lambda r: sse_response(
                message_event(USER), token_event("partial"), message_event(ASSISTANT), done_event()
            )
        )
        recorder = Recorder()

        async def on_message(message):
            recorder.on_message(message)
            await client.cancel()
            self.assertEqual(client.state, StreamState.IDLE)

        await self.send(client, recorder, on_message=on_message)

        self.assertEqual(recorder.messages, [USER])
        self.assertEqual(recorder.tokens, [])
        self.assertEqual(recorder.errors, [])
        self.assertEqual(client.state, StreamState.IDLE)

    async def test_cancel_before_headers_applies_nothing(self):
        release = asyncio.Event()

        async def held_response(request):
            await release.wait()
            return sse_response(message_event(USER), message_event(ASSISTANT), done_event())

        client = self.make_client(held_response)
        recorder = Recorder()

        pending = asyncio.create_task(self.send(client, recorder))
        while not self.requests:
            await asyncio.sleep(0)
        self.assertEqual(client.state, StreamState.SENDING)

        await client.cancel()
        self.assertEqual(client.state, StreamState.IDLE)

        # The cancelled send still owns the client until it unwinds
        await self.send(client, recorder)
        self.assertEqual(len(self.requests), 1)

        release.set()
        await pending

        self.assertEqual(recorder.messages, [])
        self.assertEqual(recorder.errors, [])
        self.assertEqual(client.state, StreamState.IDLE)

        await self.send(client, recorder)
        self.assertEqual(len(self.requests), 2)
        self.assertEqual(recorder.messages, [USER, ASSISTANT])

    async def test_cancel_when_idle_is_harmless(self):
        client = self.make_client(lambda r: sse_response(done_event()))
        await client.cancel()
        self.assertEqual(client.state, StreamState.IDLE)


class ChatStreamClientAppTest(unittest.IsolatedAsyncioTestCase):
    """Client against the real application over an in-process transport"""

    async def asyncSetUp(self):
        self.app = create_app(make_settings(), registry=ProviderRegistry({"fake": FakeProvider()}))
        await init_models(self.app.state.engine)
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=self.app), base_url="http://test")
        self.client = ChatStreamClient(client=http)

    async def asyncTearDown(self):
        await self.client.client.aclose()
        await self.app.state.chat_service.drain()
        await self.app.state.engine.dispose()

    async def test_full_conversation(self):
        providers = await self.client.get_providers()
        session = await self.client.create_session("fake", "fake-small")
        recorder = Recorder()

        await self.client.send_message(
            session["id"],
            "Tell me something",
            "fake",
            "fake-small",
            on_message=recorder.on_message,
            on_error=recorder.on_error,
            on_token=recorder.on_token,
        )

        self.assertIn("fake", providers)
        self.assertEqual(recorder.errors, [])
        self.assertEqual([m["role"] for m in recorder.messages], ["user", "assistant"])
        self.assertEqual("".join(recorder.tokens), "Hello, world")

        stored = await self.client.get_session(session["id"])
        self.assertEqual([m["id"] for m in stored["messages"]], [m["id"] for m in recorder.messages])
        self.assertEqual(stored["title"], "Tell me something")

        updated = await self.client.update_session(session["id"], title="Renamed")
        self.assertEqual(updated["title"], "Renamed")
        self.assertEqual([s["id"] for s in await self.client.list_sessions()], [session["id"]])
        self.assertEqual((await self.client.get_user())["username"], "demo_user")
        self.assertEqual(await self.client.delete_session(session["id"]), {"success": True})
        self.assertEqual(await self.client.list_sessions(), [])


if __name__ == "__main__":
    unittest.main()
