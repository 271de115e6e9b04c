"""relaychat: browser chat UI with a credential-hiding streaming relay."""

__version__ = "0.1.0"
