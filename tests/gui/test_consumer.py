import json

import httpx
import pytest
from fastapi.testclient import TestClient

from relaychat.gui.consumer import ChatSettings, StreamConsumer
from relaychat.gui.transcript import Message, TranscriptError, TranscriptState
from relaychat.relay.app import create_app


def _relay_client(handler):
    return httpx.Client(
        transport=httpx.MockTransport(handler), base_url="http://relay.test"
    )


def _plain_stream(*fragments, status=200):
    def handler(request):
        return httpx.Response(
            status,
            headers={"content-type": "text/plain; charset=utf-8"},
            content=iter(
                f.encode("utf-8") if isinstance(f, str) else f for f in fragments
            ),
        )

    return handler


def _watch_draft(transcript):
    seen = []

    def record(state):
        if state.active_id is not None:
            seen.append(state.get(state.active_id).content)

    transcript.subscribe(record)
    return seen


def test_send_streams_fragments_into_draft():
    transcript = TranscriptState()
    seen = _watch_draft(transcript)
    consumer = StreamConsumer(
        transcript,
        ChatSettings(api_key="sk-test"),
        _relay_client(_plain_stream("He", "llo")),
    )

    final = consumer.send("  Hi  ")

    assert final.role == "assistant"
    assert final.content == "Hello"
    assert not transcript.is_streaming
    assert all("Hello".startswith(content) for content in seen)
    assert seen[-1] == "Hello"
    assert [(m.role, m.content) for m in transcript.messages] == [
        ("user", "Hi"),
        ("assistant", "Hello"),
    ]


def test_system_prompt_is_sent_but_never_stored():
    captured = []

    def handler(request):
        captured.append(json.loads(request.content))
        return _plain_stream("ok")(request)

    transcript = TranscriptState(
        [Message(role="user", content="earlier"), Message(role="assistant", content="reply")]
    )
    settings = ChatSettings(system_prompt="Be terse.", api_key="sk-test", model="m1")
    StreamConsumer(transcript, settings, _relay_client(handler)).send("next")

    body = captured[0]
    assert body["messages"] == [
        {"role": "system", "content": "Be terse."},
        {"role": "user", "content": "earlier"},
        {"role": "assistant", "content": "reply"},
        {"role": "user", "content": "next"},
    ]
    assert body["model"] == "m1"
    assert body["apiKey"] == "sk-test"
    assert body["baseUrl"] == "/api/openai"
    assert all(m.role != "system" for m in transcript.messages)


def test_build_request_omits_unset_credentials():
    consumer = StreamConsumer(
        TranscriptState(),
        ChatSettings(api_key="", base_url=""),
        _relay_client(_plain_stream()),
    )
    body = consumer.build_request(Message(role="user", content="Hi"))
    assert "apiKey" not in body
    assert "baseUrl" not in body
    assert body["temperature"] == 0.7


def test_can_send():
    transcript = TranscriptState()
    with_key = StreamConsumer(
        transcript, ChatSettings(api_key="sk"), _relay_client(_plain_stream())
    )
    assert with_key.can_send("hello")
    assert not with_key.can_send("   ")

    relay_default = StreamConsumer(
        transcript, ChatSettings(api_key=""), _relay_client(_plain_stream())
    )
    assert relay_default.can_send("hello")

    external = StreamConsumer(
        transcript,
        ChatSettings(api_key="", base_url="http://localhost:1234/v1"),
        _relay_client(_plain_stream()),
    )
    assert not external.can_send("hello")

    draft = Message(role="assistant", content="")
    transcript.append(draft, draft_id=draft.id)
    assert not with_key.can_send("hello")


def test_send_while_streaming_raises():
    transcript = TranscriptState()
    draft = Message(role="assistant", content="")
    transcript.append(draft, draft_id=draft.id)
    consumer = StreamConsumer(
        transcript, ChatSettings(api_key="sk"), _relay_client(_plain_stream("x"))
    )
    with pytest.raises(TranscriptError):
        consumer.send("Hi")
    assert len(transcript.messages) == 1


def test_error_status_is_localised_to_draft():
    transcript = TranscriptState()
    consumer = StreamConsumer(
        transcript,
        ChatSettings(api_key="sk"),
        _relay_client(_plain_stream("Upstream error: 401 bad key", status=500)),
    )

    final = consumer.send("Hi")

    assert final.content == "Error: HTTP 500 Upstream error: 401 bad key"
    assert not transcript.is_streaming
    assert transcript.messages[0].content == "Hi"


def test_transport_failure_is_localised_to_draft():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    transcript = TranscriptState()
    final = StreamConsumer(
        transcript, ChatSettings(api_key="sk"), _relay_client(handler)
    ).send("Hi")

    assert final.content.startswith("Error:")
    assert "connection refused" in final.content
    assert not transcript.is_streaming


def test_invalid_utf8_is_replaced_not_fatal():
    transcript = TranscriptState()
    final = StreamConsumer(
        transcript,
        ChatSettings(api_key="sk"),
        _relay_client(_plain_stream(b"ok \xff", "!")),
    ).send("Hi")
    assert final.content == "ok �!"


def test_split_multibyte_fragment_is_reassembled():
    raw = "café".encode("utf-8")
    transcript = TranscriptState()
    final = StreamConsumer(
        transcript,
        ChatSettings(api_key="sk"),
        _relay_client(_plain_stream(raw[:4], raw[4:])),
    ).send("Hi")
    assert final.content == "café"


def test_end_to_end_through_relay(relay_config, sse_body, mock_upstream):
    def upstream(request):
        return httpx.Response(
            200,
            content=sse_body(
                'data: {"choices":[{"delta":{"content":"He"}}]}\n\n',
                'data: {"choices":[{"delta":{"content":"llo"}}]}\n\n',
                "data: [DONE]\n\n",
            ),
        )

    relay = TestClient(create_app(relay_config, mock_upstream(upstream)))
    transcript = TranscriptState()
    final = StreamConsumer(transcript, ChatSettings(api_key="sk-test"), relay).send(
        "Hi"
    )

    assert final.content == "Hello"
    assert [m.role for m in transcript.messages] == ["user", "assistant"]


def test_end_to_end_missing_credential(relay_config, mock_upstream):
    relay = TestClient(
        create_app(relay_config, mock_upstream(lambda request: httpx.Response(200)))
    )
    final = StreamConsumer(TranscriptState(), ChatSettings(api_key=""), relay).send(
        "Hi"
    )
    assert final.content == "Error: HTTP 400 Missing API key"


def test_unexpected_failure_is_localised_to_draft():
    def handler(request):
        raise RuntimeError("boom")

    transcript = TranscriptState()
    final = StreamConsumer(
        transcript, ChatSettings(api_key="sk"), _relay_client(handler)
    ).send("hi")

    assert final.content == "Error: boom"
    assert [m.content for m in transcript.messages] == ["hi", "Error: boom"]
    assert not transcript.is_streaming
