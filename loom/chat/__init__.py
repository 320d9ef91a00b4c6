"""Chat layer: conversations, replies and per-turn metrics"""

from loom.chat.chat_pipeline import ChatPipeline
from loom.chat.responder import Responder, fallback_response
