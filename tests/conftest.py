from types import SimpleNamespace

import matplotlib

matplotlib.use("Agg")

import pytest

import rates


class FakeGroq:
    """Stand-in for ``groq.Groq`` exposing ``chat.completions.create``."""

    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_groq():
    return FakeGroq


@pytest.fixture(autouse=True)
def offline(monkeypatch):
    """No test talks to the network: unset the key and start with an empty cache."""
    monkeypatch.delenv("GROQ_API_KEY", raising=False)
    rates.clear_cache()
    yield
    rates.clear_cache()
