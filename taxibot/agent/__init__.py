"""Agent core module."""

from taxibot.agent.resolver import IntentResolver, Resolution

__all__ = ["IntentResolver", "Resolution"]
