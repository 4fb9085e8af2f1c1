"""Image placeholder substitution."""
from __future__ import annotations

from typing import List, Sequence, Tuple

from .types import Image, Message

IMAGE_TAG = "[img]"


def placeholder(image_id: int) -> str:
    return f"[img-{image_id}]"


def index_images(messages: Sequence[Message]) -> Tuple[List[Message], List[Image]]:
    """Number every image in ``messages`` and rewrite texts to reference them.

    Ids start at 0 and follow the order images appear in ``messages``, so
    they depend only on what survived eviction. Within a message the first
    bare ``[img]`` tag is replaced by the first image's placeholder; the
    remaining placeholders are joined in ascending order and prepended once,
    separated by a single space from any existing text.

    Input messages are not modified; rewritten copies are returned.
    """
    out: List[Message] = []
    images: List[Image] = []
    for msg in messages:
        text = msg.content
        prefix = ""
        for data in msg.images:
            image_id = len(images)
            images.append(Image(id=image_id, data=data))
            if IMAGE_TAG in text:
                text = text.replace(IMAGE_TAG, placeholder(image_id), 1)
            else:
                prefix += placeholder(image_id)

        if prefix:
            text = f"{prefix} {text}" if text else prefix
        out.append(msg if text == msg.content else msg.with_content(text))
    return out, images
