"""Multi-provider chat session orchestration."""

__version__ = "0.4.0"
