"""Shared fixtures for the test suite."""

import pytest
import requests

from core_operations import JsonStore
from project_logic import ProjectLogic


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, payload=None, status_code=200, reason="OK", content=None):
        self._payload = payload
        self.status_code = status_code
        self.reason = reason
        if content is None:
            content = b"" if payload is None else b"json"
        self.content = content

    def json(self):
        if self.content == b"not-json":
            raise ValueError("Expecting value")
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} {self.reason}", response=self)


class RecordingPost:
    """Replaces requests.post; answers per URL prefix and records every call."""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []

    def __call__(self, url, params=None, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "json": json, "timeout": timeout})
        for prefix, answer in self.routes.items():
            if url.startswith(prefix):
                if isinstance(answer, Exception):
                    raise answer
                return answer
        return FakeResponse({"ok": True})


@pytest.fixture
def store(tmp_path):
    return JsonStore(str(tmp_path / "data"))


@pytest.fixture
def logic(store):
    return ProjectLogic(store, timeout=5)


@pytest.fixture
def two_instances(logic):
    first = logic.add_instance("Alpha", "https://alpha.example.com", "key-a")
    second = logic.add_instance("Beta", "https://beta.example.com/", "key-b")
    return first, second


@pytest.fixture
def fake_post(monkeypatch):
    recorder = RecordingPost()
    monkeypatch.setattr(requests, "post", recorder)
    return recorder
