"""Format-string turn template used to render System/Prompt/Response triples."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .types import Turn


@dataclass
class TurnTemplate:
    """Render a turn from ``str.format`` patterns.

    Each pattern is emitted only when its field is non-empty and may refer to
    ``{System}``, ``{Prompt}`` and ``{Response}``. ``response_cue`` is emitted
    instead of ``response`` when the turn has a prompt but no response yet,
    i.e. where the model is expected to continue.

    Tools are accepted for interface compatibility but not rendered.
    """

    system: str = "{System}"
    prompt: str = "{Prompt}"
    response: str = "{Response}"
    response_cue: str = ""

    def __call__(self, turn: Turn, tools: Optional[Any] = None) -> str:
        values = {"System": turn.system, "Prompt": turn.prompt, "Response": turn.response}
        out = []
        if turn.system:
            out.append(self.system.format(**values))
        if turn.prompt:
            out.append(self.prompt.format(**values))
        if turn.response:
            out.append(self.response.format(**values))
        elif turn.prompt and self.response_cue:
            out.append(self.response_cue.format(**values))
        return "".join(out)

    @classmethod
    def from_config(cls, section: Optional[Dict[str, Any]]) -> "TurnTemplate":
        """Create a template from the ``template`` config section."""
        section = section or {}
        if not isinstance(section, dict):
            raise RuntimeError(f"Invalid template config, expected dict, got {type(section).__name__}.")
        kwargs = {}
        for key in ("system", "prompt", "response", "response_cue"):
            if section.get(key) is not None:
                kwargs[key] = str(section[key])
        return cls(**kwargs)
