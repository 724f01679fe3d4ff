import json
import re

import httpx
import pytest

from askmycampus.client import ERROR_REPLY, ChatClient, clear_session_id, ensure_session_id

UUID4 = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$")


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "client" / "session.json"


def make_client(handler, state_file, session_id=None):
    http = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://relay.test")
    return ChatClient(base_url="http://relay.test", session_id=session_id, state_file=state_file, http=http)


def test_ensure_session_id_is_idempotent(state_file):
    first = ensure_session_id(state_file)
    second = ensure_session_id(state_file)

    assert first == second
    assert UUID4.match(first)
    assert json.loads(state_file.read_text()) == {"sessionId": first}


def test_clear_session_id_mints_new_one(state_file):
    first = ensure_session_id(state_file)
    clear_session_id(state_file)
    assert ensure_session_id(state_file) != first


def test_env_override_for_state_file(monkeypatch, state_file):
    monkeypatch.setenv("ASKMYCAMPUS_CLIENT_STATE", str(state_file))
    sid = ensure_session_id()
    assert json.loads(state_file.read_text())["sessionId"] == sid


def test_send_message_success(state_file):
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"reply": "Library opens at 8."})

    client = make_client(handler, state_file)
    turn = client.send_message("  When does the library open? ")

    assert turn.content == "Library opens at 8."
    assert seen == [{"sessionId": ensure_session_id(state_file), "message": "When does the library open?"}]
    assert [(t.role, t.content) for t in client.transcript] == [
        ("user", "When does the library open?"),
        ("assistant", "Library opens at 8."),
    ]
    assert client.is_loading is False


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "Internal server error"}),
        httpx.Response(400, json={"error": "Missing required fields: sessionId and message"}),
        httpx.Response(200, content=b"<html>oops</html>"),
        httpx.Response(200, json={"answer": "wrong key"}),
    ],
)
def test_send_message_failure_appends_apology(state_file, response):
    client = make_client(lambda request: response, state_file, session_id="s1")

    turn = client.send_message("hi")

    assert turn.role == "assistant"
    assert turn.content == ERROR_REPLY
    assert len(client.transcript) == 2
    assert client.is_loading is False


def test_send_message_network_error(state_file):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = make_client(handler, state_file, session_id="s1")

    assert client.send_message("hi").content == ERROR_REPLY
    assert client.is_loading is False


def test_blank_or_in_flight_messages_are_not_sent(state_file):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"reply": "x"})

    client = make_client(handler, state_file, session_id="s1")
    assert client.send_message("   ") is None

    client.is_loading = True
    assert client.send_message("hi") is None

    assert calls == []
    assert client.transcript == []


def test_reload_transcript_from_server(state_file):
    def handler(request):
        assert request.url.params["sessionId"] == "s1"
        return httpx.Response(200, json={
            "sessionId": "s1",
            "history": [
                {"role": "user", "content": "hi"},
                {"role": "assistant", "content": "hey"},
            ],
        })

    client = make_client(handler, state_file, session_id="s1")
    client.reset_transcript()

    assert client.reload_transcript() is True
    assert [t.content for t in client.transcript] == ["hi", "hey"]


def test_reload_transcript_failure_keeps_view(state_file):
    client = make_client(lambda request: httpx.Response(500), state_file, session_id="s1")
    client.transcript = []

    assert client.reload_transcript() is False
    assert client.transcript == []


def test_new_session_rotates_id(state_file):
    client = make_client(lambda request: httpx.Response(200, json={"reply": "x"}), state_file)
    old = client.session_id
    client.send_message("hi")

    new = client.new_session()

    assert new != old
    assert client.transcript == []
    assert ensure_session_id(state_file) == new
