from __future__ import annotations

from typing import List


def whitespace_tokenize(text: str) -> List[int]:
    """One token per whitespace-delimited word.

    A model-free stand-in for a real vocabulary when exercising the assembler.
    """
    return list(range(len(text.split())))
