"""Turn a chat history into one prompt string plus its image attachments."""
from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from .evict import evict
from .images import index_images
from .turns import build_prompt
from .types import Message, ModelInfo, PromptResult, Tokenizer

logger = logging.getLogger(__name__)


def assemble(
    tokenizer: Tokenizer,
    model: ModelInfo,
    limit: int,
    messages: Sequence[Message],
    tools: Optional[Any] = None,
) -> PromptResult:
    """Build the prompt for ``messages`` within a ``limit`` token budget.

    Older messages are evicted until the rest fits, surviving images are
    numbered from 0 and referenced as ``[img-K]`` in the text, and the
    messages are rendered turn by turn with ``model.template``. ``tools`` is
    handed to the template untouched.

    Raises
    ------
    TokenizationFailure
        If the tokenizer fails on any message.
    RenderFailure
        If the template fails on any turn.
    """
    survivors = evict(messages, limit, tokenizer, model.image_weight)
    annotated, images = index_images(survivors)

    prompt = build_prompt(annotated, model.template, tools)

    logger.debug(
        "assembled prompt: %d/%d messages, %d images, %d chars",
        len(survivors), len(messages), len(images), len(prompt),
    )
    return PromptResult(prompt=prompt, images=images)
