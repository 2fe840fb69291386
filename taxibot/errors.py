"""Exception hierarchy for the resolution pipeline.

Internal helpers raise these; the public entry points of
:class:`taxibot.agent.resolver.IntentResolver` catch them and turn them into
structured replies, so nothing here ever reaches the chat transport.
"""

from __future__ import annotations


class TaxiBotError(Exception):
    """Base class for all taxibot errors."""


class GenerationError(TaxiBotError):
    """The external text-generation call failed, timed out or returned nothing."""

    def __init__(self, message: str, *, model: str = "") -> None:
        super().__init__(message)
        self.model = model


class UnknownIntentError(TaxiBotError):
    """An intent tag is not part of the closed set or carries no rules."""

    def __init__(self, tag: str) -> None:
        super().__init__(f"unknown or rule-less intent: {tag!r}")
        self.tag = tag


class TeachValidationError(TaxiBotError):
    """A /learn command could not be accepted."""


class MissingFieldsError(TeachValidationError):
    kind = "missing_fields"

    def __init__(self, question: str, answer: str, intent_tag: str) -> None:
        super().__init__("learn command is missing Q:, A: or T:")
        self.question = question
        self.answer = answer
        self.intent_tag = intent_tag


class InvalidIntentError(TeachValidationError):
    kind = "invalid_intent"

    def __init__(self, intent_tag: str) -> None:
        super().__init__(f"invalid intent tag: {intent_tag!r}")
        self.intent_tag = intent_tag
