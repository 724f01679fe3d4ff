from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from .errors import BadRequestError, InternalError
from .llm import ReplyGenerator
from .prompts import SYSTEM_PROMPT, build_prompt
from .schemas import Turn
from .store import HistoryRepository

logger = logging.getLogger(__name__)


class ChatState(str, Enum):
    VALIDATING = "validating"
    LOADING_HISTORY = "loading_history"
    AWAITING_INFERENCE = "awaiting_inference"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class ChatOrchestrator:
    """Turns one (session id, message) pair into one reply with conversation continuity.

    History is read, extended and written back without any lock, so two
    concurrent requests for the same session race and the later write wins.
    Nothing is written unless the model produced a reply.
    """

    def __init__(
        self,
        repository: HistoryRepository,
        generator: ReplyGenerator,
        system_instruction: str = SYSTEM_PROMPT,
        prompt_window: Optional[int] = None,
    ) -> None:
        self.repository = repository
        self.generator = generator
        self.system_instruction = system_instruction
        self.prompt_window = prompt_window

    def handle_chat(self, session_id: Optional[str], message: Optional[str]) -> str:
        state = ChatState.VALIDATING
        text = (message or "").strip()
        if not session_id or not text:
            logger.info("Rejected chat request: missing sessionId or message")
            raise BadRequestError()

        sid = session_id[:16]
        try:
            state = self._advance(sid, ChatState.LOADING_HISTORY)
            history: List[Turn] = self.repository.load(session_id)
            history.append(Turn(role="user", content=text))

            state = self._advance(sid, ChatState.AWAITING_INFERENCE)
            prompt = build_prompt(history, window=self.prompt_window)
            logger.info(
                "Chat session=%s history_turns=%d prompt_chars=%d backend=%s",
                sid, len(history), len(prompt), self.generator.name,
            )
            reply = self.generator.generate(self.system_instruction, prompt)

            state = self._advance(sid, ChatState.PERSISTING)
            history.append(Turn(role="assistant", content=reply))
            self.repository.save(session_id, history)
        except Exception as e:
            logger.exception("Chat failed for session=%s in state=%s", sid, state.value)
            self._advance(sid, ChatState.FAILED)
            raise InternalError() from e

        self._advance(sid, ChatState.DONE)
        return reply

    def get_history(self, session_id: Optional[str]) -> List[Turn]:
        if not session_id:
            raise BadRequestError()
        try:
            return self.repository.load(session_id)
        except Exception as e:
            logger.exception("History lookup failed for session=%s", session_id[:16])
            raise InternalError() from e

    @staticmethod
    def _advance(sid: str, state: ChatState) -> ChatState:
        logger.debug("session=%s -> %s", sid, state.value)
        return state
