"""relaychat GUI - streaming chat page."""

import sys
from pathlib import Path

import httpx
import streamlit as st

# Add project root to path
project_root = Path(__file__).parent.parent.parent.parent
sys.path.insert(0, str(project_root / "src"))

from relaychat.gui.config import (  # noqa: E402
    MODEL_CHOICES,
    RELAY_TIMEOUT_SECONDS,
    RELAY_URL,
)
from relaychat.gui.consumer import StreamConsumer  # noqa: E402
from relaychat.gui.state import (  # noqa: E402
    current_settings,
    get_transcript,
    init_session_state,
    persist_settings,
)
from relaychat.gui.transcript import TranscriptState  # noqa: E402
from relaychat.logging_utils import configure_logging  # noqa: E402


def render_sidebar(transcript: TranscriptState):
    """Model, sampling, credential and endpoint controls."""
    with st.sidebar:
        st.title("💬 relaychat")

        models = list(MODEL_CHOICES)
        if st.session_state.get("model") not in models:
            models.append(st.session_state["model"])
        st.selectbox("Model", models, key="model", on_change=persist_settings)
        st.slider(
            "Temperature",
            min_value=0.0,
            max_value=1.0,
            step=0.1,
            key="temperature",
            on_change=persist_settings,
        )
        st.text_area("System prompt", key="system_prompt", on_change=persist_settings)

        st.markdown("---")
        st.text_input(
            "API Key",
            key="api_key",
            type="password",
            placeholder="optional if using built-in proxy",
            on_change=persist_settings,
        )
        st.text_input(
            "Base URL",
            key="base_url",
            placeholder="/api/openai or https://api.openai.com/v1",
            on_change=persist_settings,
        )
        st.caption(f"🔌 Relay: {RELAY_URL}")

        st.markdown("---")
        if st.button(
            "🗑️ Clear", use_container_width=True, disabled=transcript.is_streaming
        ):
            transcript.clear()
            st.rerun()


def render_transcript(transcript: TranscriptState):
    if not transcript.messages:
        st.info("Start chatting by typing below.")
    for message in transcript.messages:
        with st.chat_message(message.role):
            st.markdown(message.content)


def stream_turn(transcript: TranscriptState, prompt: str):
    """Send one turn and paint the draft as fragments arrive."""
    consumer_settings = current_settings()
    with httpx.Client(base_url=RELAY_URL, timeout=RELAY_TIMEOUT_SECONDS) as client:
        consumer = StreamConsumer(transcript, consumer_settings, client)
        if not consumer.can_send(prompt):
            st.warning("Set an API key or use a relay base URL (/api/...).")
            return

        with st.chat_message("user"):
            st.markdown(prompt.strip())
        with st.chat_message("assistant"):
            placeholder = st.empty()

        def paint(state: TranscriptState):
            if state.active_id is None:
                return
            draft = state.get(state.active_id)
            if draft is not None:
                placeholder.markdown(draft.content or "▌")

        unsubscribe = transcript.subscribe(paint)
        try:
            consumer.send(prompt)
        finally:
            unsubscribe()


def main():
    """Main application entry point."""

    st.set_page_config(page_title="relaychat", page_icon="💬", layout="centered")
    if "log_path" not in st.session_state:
        st.session_state["log_path"] = configure_logging("gui")
    init_session_state()
    transcript = get_transcript()

    render_sidebar(transcript)
    render_transcript(transcript)

    prompt = st.chat_input("Send a message...", disabled=transcript.is_streaming)
    if prompt:
        stream_turn(transcript, prompt)
        st.rerun()


if __name__ == "__main__":
    main()
