"""Assistant replies: remote completion endpoint with canned fallbacks"""

import asyncio
import http.client
import json
import urllib.request
from typing import Optional

from loguru import logger

from loom.core.config import settings

GREETING_REPLY = (
    "Hello! I'm Claude, an AI assistant created by Anthropic. I'm here to help you with a wide "
    "variety of tasks, from answering questions and providing explanations to helping with "
    "analysis, writing, math, coding, and creative projects. What would you like to explore "
    "together today?"
)

CODE_REPLY = (
    "I'd be happy to help you with coding! I can assist with:\n\n"
    "• Writing code in various programming languages\n"
    "• Debugging and troubleshooting\n"
    "• Code review and optimization\n"
    "• Explaining programming concepts\n"
    "• Architecture and design patterns\n\n"
    "What specific programming challenge are you working on?"
)

HELP_REPLY = (
    "I'm here to help! I can assist you with:\n\n"
    "• Answering questions on a wide range of topics\n"
    "• Writing and editing\n"
    "• Analysis and research\n"
    "• Math and calculations\n"
    "• Creative projects\n"
    "• Problem-solving\n"
    "• Learning new concepts\n\n"
    "What would you like help with today?"
)


def fallback_response(message: str) -> str:
    """Canned reply used when no completion endpoint answers"""
    lowered = message.lower()

    if "hello" in lowered or "hi" in lowered:
        return GREETING_REPLY
    if "code" in lowered or "programming" in lowered:
        return CODE_REPLY
    if "help" in lowered or "assist" in lowered:
        return HELP_REPLY

    return (
        f'I understand you\'re asking about: "{message}"\n\n'
        "I'm currently experiencing some connectivity issues with my main AI service, but I'm "
        "still here to help! This is a fallback response while I work to restore full "
        "functionality.\n\nPlease try your question again in a moment, or feel free to ask "
        "something else. I apologize for any inconvenience!"
    )


class Responder:
    """
    Produces assistant replies.

    POSTs {"messages": [system, user]} to the configured endpoint and reads
    "completion" from the JSON body. Any transport or decode failure falls
    back to a canned reply, as does a missing or non-string completion.
    """

    def __init__(self, endpoint: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.endpoint = settings.LLM_ENDPOINT if endpoint is None else endpoint
        self.timeout = timeout or settings.LLM_TIMEOUT
        mode = "remote" if self.endpoint else "fallback only"
        logger.info(f"Responder initialized ({mode})")

    async def complete(self, message: str) -> str:
        if not self.endpoint:
            return fallback_response(message)

        try:
            completion = await asyncio.to_thread(self._post, message)
        except (OSError, http.client.HTTPException, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Completion request failed, using fallback: {e}")
            return fallback_response(message)

        if not completion.strip():
            return fallback_response(message)
        return completion

    def _post(self, message: str) -> str:
        body = json.dumps({
            "messages": [
                {"role": "system", "content": settings.SYSTEM_PROMPT},
                {"role": "user", "content": message},
            ]
        }).encode("utf-8")
        req = urllib.request.Request(
            self.endpoint,
            data=body,
            headers={"Content-Type": "application/json", "User-Agent": "Loom/0.1"},
            method="POST",
        )
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            data = json.loads(resp.read().decode("utf-8"))
        completion = data.get("completion") if isinstance(data, dict) else None
        return completion if isinstance(completion, str) else ""
