"""Tests for the third-party API clients, with the network stubbed out."""

from types import SimpleNamespace

import httpx
from openai import OpenAIError

from app.services.ai_client import AIClient
from app.services.image_host import ImageHostClient


# ============================================================
# IMAGE HOST
# ============================================================

def _image_host(handler) -> ImageHostClient:
    return ImageHostClient("demo-cloud", "key", "secret", transport=httpx.MockTransport(handler))


def test_image_host_ping_ok():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"status": "ok"})

    ok, status, body = _image_host(handler).ping()

    assert (ok, status, body) == (True, 200, {"status": "ok"})
    assert seen["url"] == "https://api.cloudinary.com/v1_1/demo-cloud/ping"
    assert seen["auth"].startswith("Basic ")


def test_image_host_bad_credentials():
    ok, status, body = _image_host(lambda request: httpx.Response(401, text="Invalid credentials")).ping()
    assert ok is False
    assert status == 401
    assert body == "Invalid credentials"


def test_image_host_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    ok, status, body = _image_host(handler).ping()
    assert (ok, status) == (False, 0)
    assert "refused" in body


def test_image_host_without_credentials():
    client = ImageHostClient("", "", "")
    client.cloud_name = client.api_key = client.api_secret = ""
    assert client.configured is False
    assert client.ping() == (False, 0, "Cloudinary credentials not configured")


# ============================================================
# AI CLIENT
# ============================================================

class StubCompletions:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _ai_client(reply=None, error=None, models=()) -> AIClient:
    stub = SimpleNamespace(
        chat=SimpleNamespace(completions=StubCompletions(reply, error)),
        models=SimpleNamespace(list=lambda: [SimpleNamespace(id=m) for m in models]),
    )
    return AIClient(client=stub, model="test-model")


def test_ai_connection_ok():
    client = _ai_client(reply="ok")
    assert client.test_connection() is True
    call = client.client.chat.completions.calls[0]
    assert call["model"] == "test-model"
    assert call["max_tokens"] == 10


def test_ai_connection_uses_requested_model():
    client = _ai_client(reply="OK")
    client.test_connection("other-model")
    assert client.client.chat.completions.calls[0]["model"] == "other-model"


def test_ai_connection_failure():
    assert _ai_client(error=OpenAIError("invalid api key")).test_connection() is False
    assert _ai_client(reply="I cannot help").test_connection() is False


def test_list_models_sorted():
    client = _ai_client(models=["gemini-pro", "deepseek-chat", "deepseek-coder"])
    assert client.list_models() == ["deepseek-chat", "deepseek-coder", "gemini-pro"]

