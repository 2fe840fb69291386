"""Learned intent examples."""

from taxibot.memory.example_store import ExampleStore, IntentExample

__all__ = ["ExampleStore", "IntentExample"]
