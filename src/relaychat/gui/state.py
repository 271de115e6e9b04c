"""Session state management utilities."""

import streamlit as st

from relaychat.gui.config import (
    DEFAULT_BASE_URL,
    DEFAULT_MODEL,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_TEMPERATURE,
    GUI_STATE_FILE,
    KEY_API_KEY,
    KEY_BASE_URL,
    KEY_MESSAGES,
    KEY_MODEL,
    KEY_SYSTEM_PROMPT,
    KEY_TEMPERATURE,
)
from relaychat.gui.consumer import ChatSettings
from relaychat.gui.storage import JsonFileStore, bind_transcript
from relaychat.gui.transcript import TranscriptState

# Session key -> (store key, default)
_SETTINGS = {
    "system_prompt": (KEY_SYSTEM_PROMPT, DEFAULT_SYSTEM_PROMPT),
    "api_key": (KEY_API_KEY, ""),
    "model": (KEY_MODEL, DEFAULT_MODEL),
    "temperature": (KEY_TEMPERATURE, DEFAULT_TEMPERATURE),
    "base_url": (KEY_BASE_URL, DEFAULT_BASE_URL),
}


def init_session_state():
    """Initialize session state from the local store on first run."""

    if "store" not in st.session_state:
        st.session_state["store"] = JsonFileStore(GUI_STATE_FILE)
    store = st.session_state["store"]

    if "transcript" not in st.session_state:
        transcript = TranscriptState.from_records(store.get(KEY_MESSAGES, []))
        bind_transcript(store, transcript, KEY_MESSAGES)
        st.session_state["transcript"] = transcript

    for session_key, (store_key, default) in _SETTINGS.items():
        if session_key not in st.session_state:
            st.session_state[session_key] = store.get(store_key, default)

    # The slider rejects non-float values restored from disk.
    try:
        st.session_state["temperature"] = float(st.session_state["temperature"])
    except (TypeError, ValueError):
        st.session_state["temperature"] = DEFAULT_TEMPERATURE


def persist_settings():
    """Write the current settings widgets back to the store."""
    store = st.session_state["store"]
    for session_key, (store_key, _default) in _SETTINGS.items():
        store.set(store_key, st.session_state.get(session_key))


def current_settings() -> ChatSettings:
    """Build chat settings from the session."""
    return ChatSettings(
        system_prompt=st.session_state.get("system_prompt") or DEFAULT_SYSTEM_PROMPT,
        api_key=st.session_state.get("api_key") or "",
        model=st.session_state.get("model") or DEFAULT_MODEL,
        temperature=st.session_state["temperature"],
        base_url=st.session_state.get("base_url") or "",
    )


def get_transcript() -> TranscriptState:
    return st.session_state["transcript"]
