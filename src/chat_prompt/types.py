"""Value types shared by the prompt assembly pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional, Sequence, Tuple

ROLES = ("system", "user", "assistant")

# text -> token ids
Tokenizer = Callable[[str], Sequence[int]]


@dataclass(frozen=True)
class Message:
    """A single chat message as supplied by the caller."""

    role: str                          # "system" | "user" | "assistant"
    content: str = ""
    images: Tuple[bytes, ...] = ()

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"unknown message role {self.role!r}, expected one of {ROLES}")
        # Accept any sequence of payloads but store a tuple.
        if not isinstance(self.images, tuple):
            object.__setattr__(self, "images", tuple(self.images))

    def with_content(self, content: str) -> "Message":
        return replace(self, content=content)


@dataclass(frozen=True)
class Image:
    id: int
    data: bytes


@dataclass
class Turn:
    """One rendering unit: at most one system, prompt and response block."""

    system: str = ""
    prompt: str = ""
    response: str = ""

    def is_empty(self) -> bool:
        return not (self.system or self.prompt or self.response)


@dataclass
class PromptResult:
    prompt: str
    images: List[Image] = field(default_factory=list)


# turn, tools -> rendered text
Renderer = Callable[[Turn, Optional[Any]], str]


@dataclass
class ModelInfo:
    """What the assembler needs to know about the target model.

    ``image_tokens`` is the per-image charge used while budgeting. It only
    applies when the model has a vision projector; text-only models never
    pay for images.
    """

    template: Renderer
    image_tokens: int
    projector_paths: List[str] = field(default_factory=list)

    @property
    def image_weight(self) -> int:
        return self.image_tokens if self.projector_paths else 0
