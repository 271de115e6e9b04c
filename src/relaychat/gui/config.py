"""GUI configuration and constants."""

import os
from pathlib import Path

# Paths
GUI_ROOT = Path(__file__).parent
PROJECT_ROOT = GUI_ROOT.parent.parent.parent
STATE_DIR = Path(
    os.environ.get("RELAYCHAT_STATE_DIR", str(PROJECT_ROOT / "outputs"))
).expanduser()
GUI_STATE_FILE = STATE_DIR / "chat_state.json"

# Relay the GUI talks to; the chat endpoint lives under the mount prefix.
RELAY_URL = os.environ.get("RELAYCHAT_RELAY_URL", "http://127.0.0.1:8100")
RELAY_CHAT_PATH = "/api/chat"
RELAY_PREFIX = "/api"
RELAY_TIMEOUT_SECONDS = 300

# Persisted settings keys
KEY_MESSAGES = "relaychat.messages"
KEY_SYSTEM_PROMPT = "relaychat.systemPrompt"
KEY_API_KEY = "relaychat.apiKey"
KEY_MODEL = "relaychat.model"
KEY_TEMPERATURE = "relaychat.temperature"
KEY_BASE_URL = "relaychat.baseUrl"

# Defaults
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_BASE_URL = "/api/openai"
MODEL_CHOICES = ["gpt-4o-mini", "gpt-4o", "gpt-4.1-mini", "o3-mini"]
