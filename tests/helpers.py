"""Shared fixtures for the test suite"""

import asyncio
import unittest
from typing import List, Optional, Sequence

from polychat.core.config import Settings
from polychat.database import create_engine_from_url, create_session_factory, init_models
from polychat.providers.base import StreamChunk, estimate_tokens

TEST_DATABASE_URL = "sqlite+aiosqlite://"


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": TEST_DATABASE_URL,
        "OPENAI_API_KEY": None,
        "GEMINI_API_KEY": None,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeProvider:
    """Scripted provider adapter.

    ``fail_at`` is the index of the token at which the stream fails; 0
    fails before any output.
    """

    def __init__(
        self,
        name: str = "fake",
        tokens: Sequence[str] = ("Hello", ", ", "world"),
        fail_at: Optional[int] = None,
        error: str = "upstream exploded",
        tokens_used: Optional[int] = None,
        models: Sequence[str] = ("fake-small", "fake-large"),
        gate: Optional[asyncio.Event] = None,
    ):
        self.name = name
        self.display_name = name.title()
        self.models: List[str] = list(models)
        self.tokens = list(tokens)
        self.fail_at = fail_at
        self.error = error
        self.tokens_used = tokens_used
        self.gate = gate
        self.calls = []

    def is_available(self) -> bool:
        return True

    async def stream_completion(self, history, model):
        self.calls.append(([dict(m) for m in history], model))
        if self.gate is not None:
            await self.gate.wait()
        text = ""
        for index, token in enumerate(self.tokens):
            if self.fail_at == index:
                yield StreamChunk.failed(self.error)
                return
            text += token
            yield StreamChunk.token(token)
        if self.fail_at is not None and self.fail_at >= len(self.tokens):
            yield StreamChunk.failed(self.error)
            return
        yield StreamChunk.done(self.tokens_used or estimate_tokens(text))


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    """Fresh in-memory database per test"""

    async def asyncSetUp(self):
        self.engine = create_engine_from_url(TEST_DATABASE_URL)
        await init_models(self.engine)
        self.session_factory = create_session_factory(self.engine)
        self.db = self.session_factory()

    async def asyncTearDown(self):
        await self.db.close()
        await self.engine.dispose()
