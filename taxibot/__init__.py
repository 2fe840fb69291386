"""taxibot - intent resolution and response caching for the taxi fleet chat assistant."""

__version__ = "0.1.0"
__logo__ = "🚕"

from taxibot.agent.resolver import IntentResolver, Resolution
from taxibot.nl.intents import Intent

__all__ = ["IntentResolver", "Resolution", "Intent", "__version__", "__logo__"]
