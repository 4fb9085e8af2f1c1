"""Exceptions raised while assembling a prompt.

Callers catch :class:`PromptError` to handle any assembly failure. The
collaborator's original exception is always chained as ``__cause__``.
"""
from __future__ import annotations


class PromptError(RuntimeError):
    """Base class for prompt assembly failures."""


class TokenizationFailure(PromptError):
    """Raised when the tokenizer fails on a message's text."""


class RenderFailure(PromptError):
    """Raised when the template renderer fails on a turn."""
