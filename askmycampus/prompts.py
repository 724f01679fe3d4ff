from __future__ import annotations

from typing import Optional, Sequence

from .schemas import Turn

SYSTEM_PROMPT = (
    "You are AskMyCampus, a helpful campus assistant for the University of Calgary. "
    "Be direct, friendly, and concise. "
    "Answer like a student peer, not a corporate chatbot. "
    "Make sure you give relevant University of Calgary information only"
)


def build_prompt(history: Sequence[Turn], window: Optional[int] = None) -> str:
    """Render turns oldest first as ``role: content`` lines with a trailing newline.

    ``window`` keeps only the last N turns; ``None`` replays everything.
    """
    turns = list(history)
    if window:
        turns = turns[-window:]
    return "\n".join(f"{t.role}: {t.content}" for t in turns) + "\n"
