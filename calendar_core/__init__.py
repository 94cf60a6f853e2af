"""Calendar integration core: provider clients, OAuth2 token lifecycle and slot availability."""

__version__ = "0.1.0"
