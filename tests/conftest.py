"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import os
import sys
from pathlib import Path
import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from chat_prompt.template import TurnTemplate  # noqa: E402
from chat_prompt.tokenizers import whitespace_tokenize  # noqa: E402
from chat_prompt.types import ModelInfo  # noqa: E402


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the root directory of the project."""
    return Path(__file__).resolve().parent.parent


@pytest.fixture
def tokenize():
    return whitespace_tokenize


@pytest.fixture
def spaced_template() -> TurnTemplate:
    """Prints each non-empty field followed by a single space."""
    return TurnTemplate(system="{System} ", prompt="{Prompt} ", response="{Response} ")


@pytest.fixture
def vision_model(spaced_template: TurnTemplate) -> ModelInfo:
    return ModelInfo(template=spaced_template, image_tokens=768, projector_paths=["vision"])


@pytest.fixture(scope="function")
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    monkeypatch.delenv("CHAT_PROMPT_CONFIG", raising=False)
    for key in list(os.environ):
        if key.startswith("CHAT_PROMPT__"):
            monkeypatch.delenv(key, raising=False)
    yield
