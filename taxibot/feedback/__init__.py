"""Interaction log and user ratings."""

from taxibot.feedback.collector import FeedbackCollector, Interaction

__all__ = ["FeedbackCollector", "Interaction"]
