"""Shared fixtures: an in-process fake of the remote watermarking API"""

import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from mcp_textwatermark.config import EffectiveConfig

TEST_URL = "https://watermark.test"
TEST_TOKEN = "test-token"

# Invisible separator between visible and hidden text in fake encodings
MARK = "\u2063"


class FakeWatermarkService:
    """Minimal stand-in for the remote API, driven through httpx.MockTransport

    - encode endpoints append MARK + secret to the visible text
    - decode endpoints return whatever follows MARK
    - errors: {path: (status, body)} answers with that status
    - timeouts: paths that raise httpx.ReadTimeout
    - delays: {path: seconds} sleeps before answering
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.errors: dict[str, tuple[int, object]] = {}
        self.timeouts: set[str] = set()
        self.delays: dict[str, float] = {}
        self.completed: list[str] = []

    def payloads(self) -> list[dict[str, object]]:
        return [json.loads(r.content) for r in self.requests]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.delays:
            await asyncio.sleep(self.delays[path])

        if path in self.timeouts:
            raise httpx.ReadTimeout("timed out", request=request)

        if path in self.errors:
            status, body = self.errors[path]
            if isinstance(body, str):
                return httpx.Response(status, text=body)
            return httpx.Response(status, json=body)

        data = json.loads(request.content)
        self.completed.append(path)

        if path == "/api/watermark/encode":
            return httpx.Response(200, json={"encoded": data["text"] + MARK + data["secret"]})
        if path == "/api/watermark/encode-robust":
            watermarked = data["visible_text"] + MARK + data["hidden_text"]
            return httpx.Response(200, json={"watermarked": watermarked})
        if path in ("/api/watermark/decode", "/api/watermark/decode-robust"):
            _, _, hidden = data["text"].partition(MARK)
            return httpx.Response(200, json={"decoded": hidden})
        return httpx.Response(404, json={"detail": "Not found."})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def service() -> FakeWatermarkService:
    return FakeWatermarkService()


@pytest.fixture
def config() -> EffectiveConfig:
    return EffectiveConfig(
        base_url=TEST_URL,
        token=TEST_TOKEN,
        base_url_source="argument",
        token_source="argument",
    )
