"""FastAPI application assembling prompts for a local LLM."""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .assemble import assemble
from .config import load_config, model_info_from_config, prompt_limit
from .errors import PromptError
from .llm import create_from_config
from .types import Message, PromptResult

logger = logging.getLogger(__name__)


# -----------------------------
# Pydantic request/response
# -----------------------------
class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(default="")
    images: List[str] = Field(default_factory=list, description="Base64-encoded image payloads.")


class PromptRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)
    # Overrides model.n_ctx for this request only.
    num_ctx: Optional[int] = Field(default=None, ge=1)
    tools: Optional[List[Dict[str, Any]]] = None


class ChatRequest(PromptRequest):
    max_new_tokens: Optional[int] = Field(default=None, ge=1, le=4096)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0)
    top_k: Optional[int] = Field(default=None, ge=0)
    repeat_penalty: Optional[float] = Field(default=None, ge=0.0, le=10.0)


class PromptResponse(BaseModel):
    prompt: str
    images: List[int]
    limit: int


class ChatResponse(BaseModel):
    response: str
    images: int


# -----------------------------
# Utilities
# -----------------------------
def _to_messages(items: List[ChatMessage]) -> List[Message]:
    out: List[Message] = []
    for i, m in enumerate(items):
        try:
            images = tuple(base64.b64decode(s, validate=True) for s in m.images)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=400, detail=f"messages[{i}]: invalid base64 image data.")
        out.append(Message(role=m.role, content=m.content, images=images))
    return out


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    model: Optional[Any] = None,
) -> FastAPI:
    """Return the prompt server.

    ``model`` must provide ``tokenize(text)`` and ``generate(prompt, **opts)``;
    when omitted a :class:`GGUFModel` is loaded from the config.
    """
    cfg = load_config(config_path)
    cors_origins = (cfg.get("server") or {}).get("cors_origins", ["*"])

    model = model or create_from_config(cfg)
    model_info = model_info_from_config(cfg)

    app = FastAPI(title="Chat Prompt Server", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _assemble(req: PromptRequest) -> tuple[PromptResult, int]:
        limit = prompt_limit(cfg, req.num_ctx)
        messages = _to_messages(req.messages)
        try:
            result = assemble(model.tokenize, model_info, limit, messages, req.tools)
        except PromptError as e:
            logger.error("prompt assembly failed: %s", e)
            raise HTTPException(status_code=500, detail=str(e))
        return result, limit

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "ok": True,
            "model_loaded": True,
            "vision": bool(model_info.projector_paths),
            "image_tokens": model_info.image_weight,
        }

    @app.get("/config")
    def get_config() -> JSONResponse:
        return JSONResponse(dict(cfg))

    @app.post("/prompt", response_model=PromptResponse)
    def prompt(req: PromptRequest):
        result, limit = _assemble(req)
        return PromptResponse(
            prompt=result.prompt,
            images=[img.id for img in result.images],
            limit=limit,
        )

    @app.post("/chat", response_model=ChatResponse)
    def chat(req: ChatRequest):
        result, limit = _assemble(req)
        # Only images that survived eviction reach the model.
        if result.images and not getattr(model, "supports_images", False):
            raise HTTPException(status_code=400, detail="Model does not accept images.")
        logger.info("chat: %d messages, %d images, limit %d", len(req.messages), len(result.images), limit)

        opts: Dict[str, Any] = dict(
            max_new_tokens=req.max_new_tokens,
            temperature=req.temperature,
            top_p=req.top_p,
            top_k=req.top_k,
            repeat_penalty=req.repeat_penalty,
        )
        if result.images:
            opts["images"] = result.images
        text = model.generate(result.prompt, **opts)
        return ChatResponse(response=text, images=len(result.images))

    return app
