from __future__ import annotations

import base64
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from chat_prompt.server import create_app
from chat_prompt.tokenizers import whitespace_tokenize

CONFIG = """
model:
  n_ctx: 64
  projector_paths: [vision]
vision:
  image_tokens: 768
template:
  system: "{System} "
  prompt: "{Prompt} "
  response: "{Response} "
prompt:
  reserve_tokens: 0
"""


class DummyModel:
    supports_images = False

    def tokenize(self, text: str):
        return whitespace_tokenize(text)

    def generate(self, prompt: str, **opts) -> str:  # pragma: no cover - trivial
        return "ok"


class SpyModel(DummyModel):
    """Spy model that records the last prompt and options it received."""

    supports_images = True

    def __init__(self, reply: str = "ok"):
        self.reply = reply
        self.last_prompt: str | None = None
        self.last_opts: dict = {}

    def generate(self, prompt: str, **opts) -> str:
        self.last_prompt = prompt
        self.last_opts = opts
        return self.reply


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def test_health(config_file: Path):
    client = TestClient(create_app(str(config_file), model=DummyModel()))
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["vision"] is True
    assert r.json()["image_tokens"] == 768


def test_prompt_endpoint_truncates(config_file: Path):
    client = TestClient(create_app(str(config_file), model=DummyModel()))
    msgs = [
        {"role": "user", "content": "a b"},
        {"role": "assistant", "content": "c d"},
        {"role": "user", "content": "e f"},
    ]

    r = client.post("/prompt", json={"messages": msgs})
    assert r.status_code == 200
    assert r.json() == {"prompt": "a b c d e f ", "images": [], "limit": 64}

    r = client.post("/prompt", json={"messages": msgs, "num_ctx": 1})
    assert r.json()["prompt"] == "e f "
    assert r.json()["limit"] == 1


def test_prompt_endpoint_with_images(config_file: Path):
    client = TestClient(create_app(str(config_file), model=DummyModel()))
    msgs = [{"role": "user", "content": "see [img] here", "images": [_b64(b"png")]}]
    r = client.post("/prompt", json={"messages": msgs})
    assert r.status_code == 200
    assert r.json()["prompt"] == "see [img-0] here "
    assert r.json()["images"] == [0]


def test_chat_generates_from_assembled_prompt(config_file: Path):
    spy = SpyModel(reply="hello")
    client = TestClient(create_app(str(config_file), model=spy))
    msgs = [
        {"role": "system", "content": "be nice"},
        {"role": "user", "content": "hi", "images": [_b64(b"jpg")]},
    ]
    r = client.post("/chat", json={"messages": msgs, "temperature": 0.1})
    assert r.status_code == 200
    assert r.json() == {"response": "hello", "images": 1}
    assert spy.last_prompt == "be nice [img-0] hi "
    assert spy.last_opts["temperature"] == 0.1
    assert [img.data for img in spy.last_opts["images"]] == [b"jpg"]


def test_chat_rejects_images_for_text_model(config_file: Path):
    client = TestClient(create_app(str(config_file), model=DummyModel()))
    msgs = [{"role": "user", "content": "hi", "images": [_b64(b"jpg")]}]
    r = client.post("/chat", json={"messages": msgs})
    assert r.status_code == 400


def test_bad_base64_is_rejected(config_file: Path):
    client = TestClient(create_app(str(config_file), model=DummyModel()))
    msgs = [{"role": "user", "content": "hi", "images": ["!!not base64!!"]}]
    r = client.post("/prompt", json={"messages": msgs})
    assert r.status_code == 400


def test_validation_errors(config_file: Path):
    client = TestClient(create_app(str(config_file), model=DummyModel()))
    assert client.post("/prompt", json={"messages": []}).status_code == 422
    assert client.post("/prompt", json={"messages": [{"role": "tool", "content": "x"}]}).status_code == 422


def test_tokenizer_failure_is_server_error(config_file: Path):
    class BrokenTokenizer(DummyModel):
        def tokenize(self, text: str):
            raise RuntimeError("vocab not loaded")

    client = TestClient(create_app(str(config_file), model=BrokenTokenizer()))
    r = client.post("/prompt", json={"messages": [{"role": "user", "content": "hi"}]})
    assert r.status_code == 500
    assert "vocab not loaded" in r.json()["detail"]


def test_chat_allows_text_model_when_images_are_evicted(config_file: Path):
    spy = SpyModel(reply="fine")
    spy.supports_images = False
    client = TestClient(create_app(str(config_file), model=spy))
    msgs = [
        {"role": "user", "content": "old", "images": [_b64(b"jpg")]},
        {"role": "assistant", "content": "ok"},
        {"role": "user", "content": "new"},
    ]
    r = client.post("/chat", json={"messages": msgs})
    assert r.status_code == 200
    assert r.json() == {"response": "fine", "images": 0}
    assert spy.last_prompt == "ok new "
    assert "images" not in spy.last_opts


def test_empty_server_section(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG + "server:\n", encoding="utf-8")
    client = TestClient(create_app(str(path), model=DummyModel()))
    assert client.get("/health").status_code == 200
