"""
Shared test fixtures for the Clipper payments test suite.

`backend` builds a real SupabaseClient on top of httpx.MockTransport so the
stores, rate limiter and issuance workflow exercise the actual request code
without network access. Tests queue responses per (method, path) and inspect
the recorded requests afterwards.
"""

import json
import os
import sys

import httpx
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from services.supabase_client import SupabaseClient

BASE_URL = "https://project.supabase.test"


class FakeBackend:
    def __init__(self):
        self.routes: dict[tuple[str, str], list] = {}
        self.requests: list[httpx.Request] = []

    def queue(self, method: str, path: str, status: int = 200, body=None):
        """
        Queue one response for METHOD path (served in FIFO order). bytes or
        str bodies are sent raw, anything else as JSON.
        """
        self.routes.setdefault((method, path), []).append((status, body))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        queued = self.routes.get(key)
        if not queued:
            return httpx.Response(404, json={"message": f"no fake route for {key}"})
        status, body = queued.pop(0)
        if body is None:
            return httpx.Response(status)
        if isinstance(body, (bytes, str)):
            return httpx.Response(status, content=body)
        return httpx.Response(status, json=body)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def body(request: httpx.Request):
        return json.loads(request.content)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def supabase(backend):
    http = httpx.Client(transport=httpx.MockTransport(backend.handler))
    client = SupabaseClient(BASE_URL, "service-key", storage_bucket="videos", http_client=http)
    yield client
    client.close()
