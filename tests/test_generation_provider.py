"""Replicate 호환 프로바이더 클라이언트 테스트 (httpx.MockTransport)."""

import json

import httpx
import pytest

from core.exceptions import NotConfigured, ProviderError
from processor.provider_response import normalize_output
from service.generation_provider import ReplicateProvider

POLL_URL = "https://api.replicate.com/v1/predictions/p1"


def _provider(handler) -> ReplicateProvider:
    return ReplicateProvider(
        api_token="r8_test",
        model="owner/model",
        poll_interval=0,
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


def test_missing_token_is_not_configured():
    with pytest.raises(NotConfigured):
        ReplicateProvider(api_token="", model="owner/model")


def test_sync_response():
    """Prefer: wait로 바로 끝난 prediction을 그대로 반환한다."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["prefer"] = request.headers["Prefer"]
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "p1", "status": "succeeded", "output": "https://x/a.png"})

    result = _provider(handler).generate("https://src/a.png", "make it anime", correlation_id="job1")

    assert normalize_output(result) == "https://x/a.png"
    assert seen["auth"] == "Bearer r8_test"
    assert seen["prefer"] == "wait"
    assert seen["path"] == "/v1/models/owner/model/predictions"
    assert seen["body"]["input"] == {
        "input_image": "https://src/a.png",
        "prompt": "make it anime",
        "aspect_ratio": "match_input_image",
        "output_format": "png",
    }


def test_polls_until_terminal():
    polls = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(201, json={"id": "p1", "status": "starting", "urls": {"get": POLL_URL}})
        polls.append(request.url)
        status = "processing" if len(polls) < 2 else "succeeded"
        output = ["https://x/a.png"] if status == "succeeded" else None
        return httpx.Response(200, json={"id": "p1", "status": status, "output": output, "urls": {"get": POLL_URL}})

    result = _provider(handler).generate("https://src/a.png", "prompt")
    assert len(polls) == 2
    assert normalize_output(result) == "https://x/a.png"


def test_failed_prediction_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json={"id": "p1", "status": "failed", "error": "NSFW"})

    with pytest.raises(ProviderError):
        _provider(handler).generate("https://src/a.png", "prompt")


def test_http_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"detail": "Unauthenticated"})

    with pytest.raises(ProviderError):
        _provider(handler).generate("https://src/a.png", "prompt")
