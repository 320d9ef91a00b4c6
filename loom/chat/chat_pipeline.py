"""Chat pipeline: conversation history with per-turn metrics tracking"""

import random
import time
from typing import List, Optional

from loguru import logger

from loom.core.errors import SessionNotFound
from loom.core.models import ChatMessage, ChatRole, ChatTurnResult, Conversation, MetricsContext
from loom.chat.responder import Responder
from loom.metrics.derivation import derive_metrics, merge_turn_metrics
from loom.pipeline.session_pipeline import SessionPipeline
from loom.storage.sqlite_store import LoomStore


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChatPipeline:
    """
    Sends messages and records both sides of each turn.

    When a session id is given, the user's message and the assistant's reply
    are each scored and merged into that session's metrics:
    - "message_sent" right after the user speaks (duration 0)
    - "conversation_turn" after the reply, with the turn's elapsed time
    """

    def __init__(
        self,
        store: LoomStore,
        sessions: SessionPipeline,
        responder: Optional[Responder] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.sessions = sessions
        self.responder = responder or Responder()
        self.rng = rng or sessions.rng
        logger.info("ChatPipeline initialized")

    async def list_conversations(self) -> List[Conversation]:
        return await self.store.list_conversations()

    async def get_messages(self, conversation_id: str) -> List[ChatMessage]:
        return await self.store.get_messages(conversation_id)

    async def send_message(
        self,
        conversation_id: str,
        content: str,
        session_id: Optional[str] = None,
    ) -> ChatTurnResult:
        """
        Store a user message, obtain a reply and store it.

        Args:
            conversation_id: Conversation to append to (created on first message)
            content: User's message text
            session_id: Session whose metrics should track this turn

        Returns:
            The assistant message and, when tracked, the turn's coherence score

        Raises:
            ValueError: empty message
            SessionNotFound: session_id given but unknown
        """
        text = content.strip()
        if not text:
            raise ValueError("Message must not be empty")
        if session_id and await self.sessions.get_session(session_id) is None:
            raise SessionNotFound(session_id)

        started = _now_ms()
        await self.store.append_message(
            conversation_id, ChatMessage(role=ChatRole.USER, content=text, timestamp=started),
        )

        if session_id:
            await self.sessions.update_metrics(
                session_id,
                derive_metrics(text, self.rng),
                MetricsContext(action="message_sent", duration=0, user_input=text),
            )

        reply_text = await self.responder.complete(text)
        reply = ChatMessage(role=ChatRole.ASSISTANT, content=reply_text, timestamp=_now_ms())
        await self.store.append_message(conversation_id, reply)

        coherence = None
        if session_id:
            elapsed = reply.timestamp - started
            result = await self.sessions.update_metrics(
                session_id,
                merge_turn_metrics(derive_metrics(reply_text, self.rng), elapsed, self.rng),
                MetricsContext(action="conversation_turn", duration=elapsed, user_input=text),
            )
            coherence = result.coherence_score

        logger.info(f"Chat turn stored in {conversation_id} (tracked={bool(session_id)})")
        return ChatTurnResult(conversation_id=conversation_id, message=reply, coherence_score=coherence)
