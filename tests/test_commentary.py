# tests/test_commentary.py
"""
Tests del proveedor de comentarios de mercado.

Nunca se sale a red: se inyecta una sesión falsa con `.post(...)`.
El contrato clave es que `get_market_insight` NUNCA lanza: cualquier fallo
se convierte en un texto legible.
"""

import requests

from smabot.commentary import ERROR_PREFIX, GeminiCommentaryProvider, build_prompt
from smabot.core import Instrument

GEM = Instrument(symbol="GEM", name="Gemini Technologies")


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, params=None, json=None, timeout=None):
        self.calls.append({"url": url, "params": params, "json": json, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return self.response


def ok_payload(*texts):
    return {"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]}


def test_prompt_mentions_instrument_and_sections():
    prompt = build_prompt(GEM)
    assert "Gemini Technologies (GEM)" in prompt
    for section in ("Outlook", "Key Factors", "Potential Risks"):
        assert section in prompt


def test_successful_insight():
    session = FakeSession(FakeResponse(payload=ok_payload("**Outlook**: ", "neutral")))
    provider = GeminiCommentaryProvider(api_key="k", model="m", timeout=3, session=session)

    assert provider.get_market_insight(GEM) == "**Outlook**: neutral"
    call = session.calls[0]
    assert call["url"].endswith("/models/m:generateContent")
    assert call["params"] == {"key": "k"}
    assert call["timeout"] == 3.0
    assert "GEM" in call["json"]["contents"][0]["parts"][0]["text"]


def test_missing_api_key_returns_error_text():
    session = FakeSession(FakeResponse(payload=ok_payload("x")))
    provider = GeminiCommentaryProvider(api_key="", session=session)

    text = provider.get_market_insight(GEM)
    assert text.startswith(ERROR_PREFIX)
    assert "API_KEY" in text
    assert session.calls == [], "Sin API key no debe haber petición"


def test_http_error_returns_error_text():
    session = FakeSession(FakeResponse(status_code=403, text="forbidden"))
    text = GeminiCommentaryProvider(api_key="k", session=session).get_market_insight(GEM)
    assert text == ERROR_PREFIX + "HTTP 403"


def test_network_error_returns_error_text():
    session = FakeSession(exc=requests.ConnectionError("sin red"))
    text = GeminiCommentaryProvider(api_key="k", session=session).get_market_insight(GEM)
    assert text.startswith(ERROR_PREFIX)
    assert "sin red" in text


def test_malformed_payload_returns_error_text():
    for payload in ({}, {"candidates": []}, ok_payload("  "), ValueError("no json")):
        session = FakeSession(FakeResponse(payload=payload))
        text = GeminiCommentaryProvider(api_key="k", session=session).get_market_insight(GEM)
        assert text.startswith(ERROR_PREFIX)
