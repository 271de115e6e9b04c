from __future__ import annotations

from typing import AsyncIterable, AsyncIterator

from .sse import EventInterpreter, FrameDecoder


async def relay_text_stream(
    chunks: AsyncIterable[bytes],
    *,
    decoder: FrameDecoder | None = None,
    interpreter: EventInterpreter | None = None,
) -> AsyncIterator[bytes]:
    """Rewrite an upstream SSE body into bare UTF-8 text fragments.

    Each delta is yielded as soon as its line completes. The generator returns
    on ``[DONE]`` without reading further upstream bytes; exhaustion without
    the sentinel is a clean end as well.
    """
    decoder = decoder or FrameDecoder()
    interpreter = interpreter or EventInterpreter()

    async for chunk in chunks:
        for line in decoder.feed(chunk):
            event = interpreter.interpret(line)
            if event is None:
                continue
            if event.done:
                return
            yield event.delta.encode("utf-8")

    for line in decoder.finish():
        event = interpreter.interpret(line)
        if event is None:
            continue
        if event.done:
            return
        yield event.delta.encode("utf-8")
