"""Prompt assembly for chat-style local LLMs.

Turns a role-tagged conversation (with optional images) into a single prompt
string that fits a token budget, plus the images it references.

Typical usage
-------------
from chat_prompt import Message, ModelInfo, TurnTemplate, assemble

model = ModelInfo(template=TurnTemplate(), image_tokens=768, projector_paths=["mmproj.gguf"])
result = assemble(tokenizer, model, 4096, [Message("user", "hi")])

or, to serve it over HTTP:

python scripts/run_server.py --host 127.0.0.1 --port 8000
"""

from __future__ import annotations

from .assemble import assemble
from .errors import PromptError, RenderFailure, TokenizationFailure
from .evict import evict
from .images import index_images
from .template import TurnTemplate
from .turns import TurnBuilder, build_prompt
from .types import Image, Message, ModelInfo, PromptResult, Turn

__all__ = [
    "assemble",
    "evict",
    "index_images",
    "build_prompt",
    "TurnBuilder",
    "TurnTemplate",
    "Message",
    "Image",
    "Turn",
    "ModelInfo",
    "PromptResult",
    "PromptError",
    "TokenizationFailure",
    "RenderFailure",
    "create_app",
    "__version__",
    "get_version",
]

# ---------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------
__version__ = "0.1.0"

def get_version() -> str:
    """Return the package version."""
    return __version__

# ---------------------------------------------------------------------
# App factory export
# ---------------------------------------------------------------------
def create_app(*args, **kwargs):
    """Return a configured FastAPI application.

    This forwards to :func:`chat_prompt.server.create_app`. The server module
    is imported on first use so the core works without FastAPI installed.
    """
    from .server import create_app as _create_app

    return _create_app(*args, **kwargs)
