import pytest

from relaychat.relay.sse import DONE, EventInterpreter, FrameDecoder, UpstreamEvent


def _decode_all(chunks, **kwargs):
    decoder = FrameDecoder(**kwargs)
    lines = []
    for chunk in chunks:
        lines.extend(decoder.feed(chunk))
    lines.extend(decoder.finish())
    return lines


def test_decoder_yields_complete_lines_and_drops_partial_tail():
    lines = _decode_all([b"first\nsec", b"ond\r\nthi", b"rd\npartial"])
    assert lines == ["first", "second", "third"]


def test_decoder_keeps_carry_over_between_chunks():
    decoder = FrameDecoder()
    assert decoder.feed(b"data: abc") == []
    assert decoder.pending == "data: abc"
    assert decoder.feed(b"def\n") == ["data: abcdef"]
    assert decoder.pending == ""


def test_decoder_handles_crlf_split_across_chunks():
    assert _decode_all([b"one\r", b"\ntwo\n"]) == ["one", "two"]


def test_decoder_preserves_blank_lines():
    assert _decode_all([b"data: x\n\ndata: y\n\n"]) == ["data: x", "", "data: y", ""]


@pytest.mark.parametrize("split_at", range(1, 12))
def test_decoder_resumes_multibyte_characters(split_at):
    raw = "héllo €😀\nnext\n".encode("utf-8")
    whole = _decode_all([raw])
    split = _decode_all([raw[:split_at], raw[split_at:]])
    assert split == whole == ["héllo €😀", "next"]


def test_decoder_byte_at_a_time_matches_single_chunk():
    raw = 'data: {"choices":[{"delta":{"content":"日本語"}}]}\n\n'.encode("utf-8")
    bytewise = _decode_all([raw[i : i + 1] for i in range(len(raw))])
    assert bytewise == _decode_all([raw])


def test_decoder_empty_final_chunk_is_harmless():
    decoder = FrameDecoder()
    assert decoder.feed(b"a\n") == ["a"]
    assert decoder.feed(b"") == []
    assert decoder.finish() == []


def test_decoder_can_keep_partial_tail():
    assert _decode_all([b"a\nb"], keep_partial_tail=True) == ["a", "b"]


def test_decoder_rejects_feed_after_finish():
    decoder = FrameDecoder()
    decoder.finish()
    with pytest.raises(RuntimeError):
        decoder.feed(b"late\n")


def test_decoder_replaces_invalid_bytes():
    assert _decode_all([b"bad \xff byte\n"]) == ["bad � byte"]


@pytest.mark.parametrize(
    "line",
    ["", ": keep-alive", "event: message", "id: 7", 'datum: {"x": 1}', "retry: 10"],
)
def test_interpreter_ignores_non_data_lines(line):
    assert EventInterpreter().interpret(line) is None


def test_interpreter_extracts_delta():
    event = EventInterpreter().interpret('data: {"choices":[{"delta":{"content":"hi"}}]}')
    assert event == UpstreamEvent(delta="hi")


def test_interpreter_accepts_data_without_space_and_padding():
    event = EventInterpreter().interpret('  data:{"choices":[{"delta":{"content":"x"}}]}  ')
    assert event.delta == "x"


def test_interpreter_detects_done():
    assert EventInterpreter().interpret("data: [DONE]") is DONE
    assert EventInterpreter().interpret("data:[DONE]  ").done


@pytest.mark.parametrize(
    "payload",
    [
        '{"choices":[{"delta":{}}]}',
        '{"choices":[{"delta":{"content":""}}]}',
        '{"choices":[{"delta":{"content":null}}]}',
        '{"choices":[{"delta":{"role":"assistant"}}]}',
        '{"choices":[]}',
        '{"usage":{"total_tokens":3}}',
        '{"choices":[{"delta":{"content":["not","text"]}}]}',
        "[1, 2]",
    ],
)
def test_interpreter_skips_events_without_text(payload):
    interpreter = EventInterpreter()
    assert interpreter.interpret(f"data: {payload}") is None
    assert interpreter.malformed_count == 0


def test_interpreter_drops_malformed_json_and_reports_it():
    seen = []
    interpreter = EventInterpreter(on_malformed=lambda data, exc: seen.append(data))
    assert interpreter.interpret("data: not-json") is None
    assert interpreter.malformed_count == 1
    assert seen == ["not-json"]
    # Still usable afterwards
    assert interpreter.interpret('data: {"choices":[{"delta":{"content":"ok"}}]}').delta == "ok"
