"""Streamlit chat client for the relay.

The transcript and the stream consumer are plain Python and do not import
Streamlit; only ``app`` and ``state`` do.
"""

import subprocess
import sys
from pathlib import Path


def launch(extra_args=None) -> int:  # pragma: no cover
    """Run ``streamlit run`` on the chat page."""
    app_path = Path(__file__).with_name("app.py")
    command = [sys.executable, "-m", "streamlit", "run", str(app_path)]
    command.extend(extra_args if extra_args is not None else sys.argv[1:])
    return subprocess.call(command)
