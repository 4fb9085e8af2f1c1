"""Token-budget eviction over a conversation history."""
from __future__ import annotations

import logging
from typing import List, Sequence

from .errors import TokenizationFailure
from .types import Message, Tokenizer

logger = logging.getLogger(__name__)


def count_tokens(tokenizer: Tokenizer, text: str) -> int:
    """Return the token count of ``text``, wrapping tokenizer errors."""
    try:
        return len(tokenizer(text))
    except Exception as e:
        raise TokenizationFailure(f"failed to tokenize message text: {e}") from e


def message_cost(message: Message, tokenizer: Tokenizer, image_tokens: int) -> int:
    """Estimated cost of a message: its text tokens plus a flat charge per image."""
    return count_tokens(tokenizer, message.content) + image_tokens * len(message.images)


def evict(
    messages: Sequence[Message],
    limit: int,
    tokenizer: Tokenizer,
    image_tokens: int,
) -> List[Message]:
    """Keep the longest recent tail of ``messages`` that fits in ``limit`` tokens.

    Parameters
    ----------
    messages : Sequence[Message]
        Conversation in chronological order.
    limit : int
        Positive token budget.
    tokenizer : Tokenizer
        Callable mapping text to token ids.
    image_tokens : int
        Flat token charge per attached image.

    Returns
    -------
    List[Message]
        Surviving messages in their original order. System messages always
        survive. The most recent non-system message survives even when it
        alone is over budget, so the result is never empty unless the input
        has no non-system messages at all.
    """
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    if image_tokens < 0:
        raise ValueError(f"image_tokens must be >= 0, got {image_tokens}")

    keep = [False] * len(messages)
    total = 0
    accepted = 0
    cut = False

    for i in range(len(messages) - 1, -1, -1):
        msg = messages[i]
        if msg.role == "system":
            keep[i] = True
            total += message_cost(msg, tokenizer, image_tokens)
            continue
        if cut:
            continue

        trial = total + message_cost(msg, tokenizer, image_tokens)
        if trial > limit and accepted > 0:
            # Older non-system messages are dropped; keep walking for system ones.
            cut = True
            continue
        keep[i] = True
        accepted += 1
        total = trial

    survivors = [m for m, k in zip(messages, keep) if k]
    if len(survivors) < len(messages):
        logger.debug(
            "truncated %d of %d messages to fit %d tokens (estimated %d)",
            len(messages) - len(survivors), len(messages), limit, total,
        )
    return survivors
