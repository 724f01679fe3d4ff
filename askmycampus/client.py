"""Session client for the chat relay.

Keeps one session id per device in a small JSON file and a local transcript
that is only a view: the server-held history is authoritative and can be
pulled back with ``ChatClient.reload_transcript``.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .logging_config import setup_logging
from .schemas import ChatResponse, HistoryResponse, Turn

logger = logging.getLogger(__name__)

SESSION_KEY = "sessionId"
DEFAULT_STATE_PATH = Path.home() / ".askmycampus" / "session.json"
DEFAULT_API_URL = "http://localhost:8000"
ERROR_REPLY = "Sorry, there was an error processing your message."


def state_path() -> Path:
    override = os.getenv("ASKMYCAMPUS_CLIENT_STATE")
    return Path(override).expanduser() if override else DEFAULT_STATE_PATH


def _read_state(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable client state %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _write_state(path: Path, data: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


def ensure_session_id(path: Optional[Path] = None) -> str:
    """Return the persisted session id, minting and saving a UUID4 if none exists."""
    path = path or state_path()
    state = _read_state(path)
    existing = state.get(SESSION_KEY)
    if isinstance(existing, str) and existing:
        return existing
    new_id = str(uuid.uuid4())
    state[SESSION_KEY] = new_id
    _write_state(path, state)
    logger.info("Created new session id %s", new_id[:8])
    return new_id


def clear_session_id(path: Optional[Path] = None) -> None:
    path = path or state_path()
    state = _read_state(path)
    if state.pop(SESSION_KEY, None) is not None:
        _write_state(path, state)


class ChatClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        session_id: Optional[str] = None,
        state_file: Optional[Path] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 60.0,
    ) -> None:
        self.base_url = (base_url or os.getenv("ASKMYCAMPUS_API_URL", DEFAULT_API_URL)).rstrip("/")
        self.state_file = state_file
        self._session_id = session_id
        self._http = http or httpx.Client(base_url=self.base_url, timeout=timeout)
        self.transcript: List[Turn] = []
        self.is_loading = False

    @property
    def session_id(self) -> str:
        if self._session_id is None:
            self._session_id = ensure_session_id(self.state_file)
        return self._session_id

    def send_message(self, text: str) -> Optional[Turn]:
        """Send one message and append the reply (or the apology turn) to the transcript.

        Returns the appended assistant turn, or ``None`` when nothing was sent
        because the text was blank or a request is already in flight.
        """
        message = (text or "").strip()
        if not message or self.is_loading:
            return None

        self.transcript.append(Turn(role="user", content=message))
        self.is_loading = True
        try:
            resp = self._http.post("/api/chat", json={"sessionId": self.session_id, "message": message})
            resp.raise_for_status()
            reply = ChatResponse.model_validate(resp.json()).reply
            turn = Turn(role="assistant", content=reply)
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error calling chat API: %s", e)
            turn = Turn(role="assistant", content=ERROR_REPLY)
        finally:
            self.is_loading = False

        self.transcript.append(turn)
        return turn

    def reload_transcript(self) -> bool:
        """Rebuild the transcript from the server-held history. Returns False on failure."""
        try:
            resp = self._http.get("/api/history", params={"sessionId": self.session_id})
            resp.raise_for_status()
            history = HistoryResponse.model_validate(resp.json()).history
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Error loading history: %s", e)
            return False
        self.transcript = list(history)
        return True

    def reset_transcript(self) -> None:
        self.transcript = []

    def new_session(self) -> str:
        clear_session_id(self.state_file)
        self._session_id = None
        self.reset_transcript()
        return self.session_id

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ChatClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Chat with AskMyCampus from the terminal.")
    parser.add_argument("--url", default=None, help="relay base URL (default: $ASKMYCAMPUS_API_URL)")
    parser.add_argument("--state", type=Path, default=None, help="file holding the session id")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    with ChatClient(base_url=args.url, state_file=args.state) as client:
        print(f"session {client.session_id}  (/new, /history, /quit)")
        while True:
            try:
                line = input("you> ")
            except (EOFError, KeyboardInterrupt):
                print()
                break
            cmd = line.strip()
            if cmd == "/quit":
                break
            if cmd == "/new":
                print(f"session {client.new_session()}")
                continue
            if cmd == "/history":
                if client.reload_transcript():
                    for t in client.transcript:
                        print(f"{t.role}> {t.content}")
                else:
                    print(ERROR_REPLY)
                continue
            turn = client.send_message(line)
            if turn is not None:
                print(f"assistant> {turn.content}")


if __name__ == "__main__":
    main()
