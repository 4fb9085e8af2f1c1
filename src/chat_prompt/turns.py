"""Fold a flat message list into rendered System/Prompt/Response turns."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import RenderFailure
from .types import Message, Renderer, Turn

SEPARATOR = "\n\n"


def _merge(current: str, text: str) -> str:
    return current + SEPARATOR + text if current else text


# -----------------------------
# Transition table
# -----------------------------
# For each role: the turn field it fills, and whether the pending turn has to
# be flushed before the message can be added.
_FIELD: Dict[str, str] = {
    "system": "system",
    "user": "prompt",
    "assistant": "response",
}

_MUST_FLUSH: Dict[str, Callable[[Turn], bool]] = {
    "system": lambda t: bool(t.prompt or t.response),
    "user": lambda t: bool(t.response),
    "assistant": lambda t: bool(t.response),
}


class TurnBuilder:
    """Accumulates messages into turns and renders each completed turn.

    Usage:
        builder = TurnBuilder(render)
        for msg in messages:
            builder.add(msg)
        prompt = builder.finish()
    """

    def __init__(self, render: Renderer, tools: Optional[Any] = None) -> None:
        self._render = render
        self._tools = tools
        self._turn = Turn()
        self._parts: List[str] = []

    def add(self, message: Message) -> None:
        if _MUST_FLUSH[message.role](self._turn):
            self.flush()
        name = _FIELD[message.role]
        setattr(self._turn, name, _merge(getattr(self._turn, name), message.content))

    def flush(self) -> None:
        """Render the pending turn, append it to the output and start a new one."""
        try:
            text = self._render(self._turn, self._tools)
        except Exception as e:
            raise RenderFailure(f"failed to render turn: {e}") from e
        self._parts.append(text)
        self._turn = Turn()

    def finish(self) -> str:
        # An empty conversation still gets one (empty) turn so the template
        # decides what an empty prompt looks like.
        if not self._turn.is_empty() or not self._parts:
            self.flush()
        return "".join(self._parts)


def build_prompt(
    messages: Sequence[Message],
    render: Renderer,
    tools: Optional[Any] = None,
) -> str:
    """Render ``messages`` turn by turn and concatenate the results."""
    builder = TurnBuilder(render, tools)
    for msg in messages:
        builder.add(msg)
    return builder.finish()
