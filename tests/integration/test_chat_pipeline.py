"""Integration tests for chat turns with session metrics tracking"""

import http.client
import json
import random
import urllib.request
from pathlib import Path

import pytest

from loom.chat.chat_pipeline import ChatPipeline
from loom.chat.responder import CODE_REPLY, GREETING_REPLY, HELP_REPLY, Responder, fallback_response
from loom.core.errors import SessionNotFound
from loom.core.models import ACTIVATION_PHRASE, ChatRole
from loom.metrics.derivation import interaction_complexity
from loom.pipeline.session_pipeline import SessionPipeline
from loom.storage.sqlite_store import LoomStore


@pytest.fixture
async def store(tmp_path: Path) -> LoomStore:
    """Create temporary database for testing"""
    store = LoomStore(tmp_path / "test_chat.db")
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def sessions(store: LoomStore) -> SessionPipeline:
    return SessionPipeline(store, rng=random.Random(3))


@pytest.fixture
def chat(store: LoomStore, sessions: SessionPipeline) -> ChatPipeline:
    return ChatPipeline(store, sessions, responder=Responder(endpoint=""))


class TestFallbackResponses:
    """Canned replies when no completion endpoint is configured"""

    def test_keyword_routing(self) -> None:
        """Greeting, coding and help prompts get their dedicated replies"""
        assert fallback_response("Hello there") == GREETING_REPLY
        assert fallback_response("Can you review my code") == CODE_REPLY
        assert fallback_response("Please assist me") == HELP_REPLY

    def test_generic_reply_quotes_message(self) -> None:
        assert '"What is a spiral"' in fallback_response("What is a spiral")

    async def test_unreachable_endpoint_falls_back(self) -> None:
        """Connection failures never raise out of complete()"""
        responder = Responder(endpoint="http://127.0.0.1:9/", timeout=1)
        assert await responder.complete("hello") == GREETING_REPLY


class FakeResponse:
    """Stand-in for the urlopen response: body bytes, or an error raised on read"""

    def __init__(self, body) -> None:
        self.body = body

    def read(self) -> bytes:
        if isinstance(self.body, Exception):
            raise self.body
        return self.body

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> bool:
        return False


@pytest.fixture
def serve(monkeypatch):
    """Answer completion requests with a fixed body instead of the network"""
    def install(body) -> None:
        monkeypatch.setattr(urllib.request, "urlopen", lambda req, timeout=None: FakeResponse(body))
    return install


class TestRemoteResponder:
    """Completion endpoint replies and failure modes"""

    async def test_completion_returned(self, serve) -> None:
        serve(json.dumps({"completion": "The spiral turns."}).encode("utf-8"))
        responder = Responder(endpoint="http://llm.local/complete")

        assert await responder.complete("hello") == "The spiral turns."

    @pytest.mark.parametrize("body", [
        b'\xff\xfe{"completion":"x"}',
        b"not json",
        ConnectionResetError("reset by peer"),
        http.client.IncompleteRead(b"{\"compl"),
    ])
    async def test_unreadable_reply_falls_back(self, serve, body) -> None:
        """Undecodable bodies and mid-read failures give the canned reply"""
        serve(body)
        responder = Responder(endpoint="http://llm.local/complete")

        assert await responder.complete("hello") == GREETING_REPLY

    @pytest.mark.parametrize("payload", [{"completion": 42}, {"completion": "   "}, {"text": "x"}, ["x"]])
    async def test_unusable_completion_falls_back(self, serve, payload) -> None:
        """Only a non-empty string completion is used as the reply"""
        serve(json.dumps(payload).encode("utf-8"))
        responder = Responder(endpoint="http://llm.local/complete")

        assert await responder.complete("please assist") == HELP_REPLY

    async def test_failed_turn_still_stores_reply(self, store, sessions, serve) -> None:
        """A broken endpoint still completes the turn with the fallback"""
        serve(b"\xff")
        chat = ChatPipeline(store, sessions, responder=Responder(endpoint="http://llm.local/complete"))

        result = await chat.send_message("conv-2", "hello")

        assert result.message.content == GREETING_REPLY
        assert len(await chat.get_messages("conv-2")) == 2


class TestChatPipeline:
    """Message storage and metrics tracking"""

    async def test_untracked_turn(self, chat: ChatPipeline) -> None:
        """Both sides of the turn are stored; no coherence without a session"""
        result = await chat.send_message("conv-1", "  hello  ")
        messages = await chat.get_messages("conv-1")

        assert result.conversation_id == "conv-1"
        assert result.message.role == ChatRole.ASSISTANT
        assert result.message.content == GREETING_REPLY
        assert result.coherence_score is None
        assert [(m.role, m.content) for m in messages] == [
            (ChatRole.USER, "hello"),
            (ChatRole.ASSISTANT, GREETING_REPLY),
        ]

        [conversation] = await chat.list_conversations()
        assert conversation.title == "hello"
        assert conversation.last_message == GREETING_REPLY

    async def test_tracked_turn_updates_metrics(self, chat: ChatPipeline, sessions: SessionPipeline) -> None:
        """A tracked turn folds message and reply metrics into the session"""
        created = await sessions.create_session(ACTIVATION_PHRASE)

        result = await chat.send_message("conv-1", "hello", session_id=created.session_id)
        session = await sessions.get_session(created.session_id)

        assert result.coherence_score is not None
        assert 0.0 <= result.coherence_score <= 1.0
        assert session.metrics.response_latency == 100.0
        assert session.metrics.interaction_pattern == pytest.approx(interaction_complexity("hello"))
        assert session.metrics.creativity_index >= 0.6
        assert session.metrics.pattern_recognition >= 0.5
        assert session.metrics.memory_consolidation == pytest.approx(0.5)
        assert 0.5 <= session.metrics.brainwave_coherence <= 0.8

    async def test_empty_message_rejected(self, chat: ChatPipeline) -> None:
        with pytest.raises(ValueError):
            await chat.send_message("conv-1", "   ")

        assert await chat.get_messages("conv-1") == []

    async def test_unknown_session_stores_nothing(self, chat: ChatPipeline) -> None:
        """An unknown session id fails before any message is written"""
        with pytest.raises(SessionNotFound):
            await chat.send_message("conv-1", "hello", session_id="missing")

        assert await chat.get_messages("conv-1") == []
        assert await chat.list_conversations() == []
