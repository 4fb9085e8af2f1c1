"""Configuration loading utilities for the prompt server.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable CHAT_PROMPT_CONFIG
3. Fallback to "config/default.yaml"

It also supports optional overrides from environment variables with prefix
``CHAT_PROMPT__`` (e.g., CHAT_PROMPT__VISION__IMAGE_TOKENS=576).
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .template import TurnTemplate
from .types import ModelInfo

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    "model": {"model_path": "models/model.gguf", "n_ctx": 4096, "projector_paths": []},
    "vision": {"image_tokens": 768},
    "generation": {},
    "template": {},
    "prompt": {"reserve_tokens": 0},
}


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix CHAT_PROMPT__."""
    prefix = "CHAT_PROMPT__"
    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue
        # e.g., CHAT_PROMPT__MODEL__N_CTX -> cfg["model"]["n_ctx"]
        parts = key[len(prefix):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        leaf = parts[-1]
        # Attempt to parse simple types (bool, int, float)
        if value.lower() in {"true", "false"}:
            sub[leaf] = value.lower() == "true"
        else:
            try:
                if "." in value:
                    sub[leaf] = float(value)
                else:
                    sub[leaf] = int(value)
            except ValueError:
                sub[leaf] = value
    return cfg


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load YAML configuration for the prompt server.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``CHAT_PROMPT_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Parsed configuration dictionary with environment overrides applied.
    """
    if path is None:
        path = os.environ.get("CHAT_PROMPT_CONFIG", "config/default.yaml")

    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("config file not found at %s, using defaults", path_obj)
        return _apply_env_overrides(copy.deepcopy(DEFAULTS))

    with path_obj.open("r", encoding="utf-8") as f:
        try:
            cfg = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuntimeError(f"Failed to parse config file {path_obj}: {e}")

    if not isinstance(cfg, dict):
        raise RuntimeError(f"Invalid config format in {path_obj}, expected dict.")

    return _apply_env_overrides(cfg)


def _projector_paths(model_cfg: Dict[str, Any]) -> List[str]:
    paths = model_cfg.get("projector_paths") or []
    if isinstance(paths, str):
        # Single path, e.g. from an environment override.
        paths = [paths]
    return [str(p) for p in paths]


def model_info_from_config(cfg: Dict[str, Any]) -> ModelInfo:
    """Build the :class:`ModelInfo` the assembler needs from a config dict."""
    model_cfg = cfg.get("model", {}) or {}
    projectors = _projector_paths(model_cfg)

    image_tokens = (cfg.get("vision", {}) or {}).get("image_tokens")
    if image_tokens is None:
        if projectors:
            raise RuntimeError("vision.image_tokens must be set when model.projector_paths is configured.")
        image_tokens = 0

    return ModelInfo(
        template=TurnTemplate.from_config(cfg.get("template")),
        image_tokens=int(image_tokens),
        projector_paths=projectors,
    )


def prompt_limit(cfg: Dict[str, Any], num_ctx: Optional[int] = None) -> int:
    """Token budget for a prompt: context size minus the configured reserve.

    ``num_ctx`` overrides ``model.n_ctx``. Never returns less than 1.
    """
    if num_ctx is None:
        num_ctx = int((cfg.get("model", {}) or {}).get("n_ctx", 4096))
    reserve = int((cfg.get("prompt", {}) or {}).get("reserve_tokens", 0))
    return max(1, num_ctx - reserve)
