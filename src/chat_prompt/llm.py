"""llama.cpp GGUF model used as the server's tokenizer and text generator."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class GenerationConfig:
    """Sampling defaults; per-request values override them field by field."""

    max_new_tokens: int = 256
    temperature: float = 0.7
    top_p: float = 0.95
    top_k: int = 50
    repeat_penalty: float = 1.1
    stop: Optional[List[str]] = None

    @classmethod
    def from_config(cls, section: Optional[Dict[str, Any]]) -> "GenerationConfig":
        """Build from the ``generation`` config section, ignoring unknown keys."""
        section = section or {}
        known = {f.name for f in fields(cls)}
        unknown = set(section) - known
        if unknown:
            logger.warning("ignoring unknown generation settings: %s", sorted(unknown))
        return cls(**{k: v for k, v in section.items() if k in known and v is not None})

    def override(self, **overrides: Any) -> "GenerationConfig":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


class GGUFModel:
    """A loaded GGUF model exposing ``tokenize`` and ``generate``.

    The prompt is assembled outside the model (see :func:`chat_prompt.assemble`),
    so this class only completes raw text. Plain llama.cpp completion cannot
    consume image embeddings, hence ``supports_images`` is False.
    """

    supports_images = False

    def __init__(
        self,
        model_path: str,
        generation: Optional[GenerationConfig] = None,
        **llama_kwargs: Any,
    ) -> None:
        """
        Parameters
        ----------
        model_path : str
            Path to .gguf weights.
        generation : GenerationConfig | None
            Sampling defaults for :meth:`generate`.
        llama_kwargs : Any
            Passed to llama_cpp.Llama. ``n_threads`` defaults to the CPU count,
            ``n_gpu_layers`` to full offload when supported; loading retries
            without mmap if the filesystem refuses it.
        """
        # Imported here so the package works without llama.cpp installed.
        from llama_cpp import Llama, llama_supports_gpu_offload  # type: ignore

        if not llama_kwargs.get("n_threads"):
            llama_kwargs["n_threads"] = os.cpu_count() or 1
        if llama_kwargs.get("n_gpu_layers") is None:
            llama_kwargs["n_gpu_layers"] = -1 if llama_supports_gpu_offload() else 0
        llama_kwargs["use_mmap"] = bool(llama_kwargs.get("use_mmap", True))

        try:
            self._llama = Llama(model_path=model_path, **llama_kwargs)
        except OSError:
            if not llama_kwargs["use_mmap"]:
                raise
            logger.warning("mmap failed for %s, loading without it", model_path)
            llama_kwargs["use_mmap"] = False
            self._llama = Llama(model_path=model_path, **llama_kwargs)

        self.generation = generation or GenerationConfig()

    def tokenize(self, text: str) -> List[int]:
        """Token ids for ``text`` using the model's own vocabulary (no BOS)."""
        return list(self._llama.tokenize(text.encode("utf-8"), add_bos=False, special=True))

    def generate(self, prompt: str, **overrides: Any) -> str:
        """Complete an assembled prompt.

        ``overrides`` are :class:`GenerationConfig` fields; ``None`` values
        fall back to the configured defaults.
        """
        cfg = self.generation.override(**overrides)
        result = self._llama(
            prompt,
            max_tokens=cfg.max_new_tokens,
            temperature=cfg.temperature,
            top_p=cfg.top_p,
            top_k=cfg.top_k,
            repeat_penalty=cfg.repeat_penalty,
            stop=cfg.stop,
        )
        return result["choices"][0]["text"]


def create_from_config(cfg: Dict[str, Any]) -> GGUFModel:
    """Load the model described by the ``model`` and ``generation`` sections."""
    model_cfg = cfg.get("model") or {}
    model_path = model_cfg.get("model_path")
    model_dir = model_cfg.get("model_dir")
    if model_dir and model_path and not os.path.isabs(model_path):
        model_path = os.path.join(model_dir, model_path)

    if not model_path or not os.path.exists(model_path):
        raise FileNotFoundError(f"Model not found at: {model_path!r}")

    llama_kwargs = {
        key: model_cfg[key]
        for key in ("n_ctx", "n_threads", "n_gpu_layers", "use_mmap")
        if model_cfg.get(key) is not None
    }
    llama_kwargs.setdefault("n_ctx", 4096)
    return GGUFModel(
        model_path,
        generation=GenerationConfig.from_config(cfg.get("generation")),
        **llama_kwargs,
    )
