# src/smabot/commentary.py
"""
Cliente del proveedor externo de comentarios de mercado (Gemini, API REST).

Características:
- `get_market_insight(instrument)` devuelve SIEMPRE un string (markdown):
  el análisis si todo va bien, o un mensaje de error legible si falla
  (sin API key, error de red, HTTP != 200, respuesta mal formada).
- Nunca lanza excepciones ni reintenta: es una anotación best-effort que no
  afecta al estado de trading.

Notas:
- Se usa el endpoint `models/{model}:generateContent` con la API key en query.
- La llamada es bloqueante; el driver la ejecuta en un hilo aparte para no
  retrasar los ticks.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

from . import settings
from .core import Instrument

logger = logging.getLogger(__name__)

ERROR_PREFIX = "Failed to get analysis from Gemini. Reason: "


class CommentaryProvider(Protocol):
    def get_market_insight(self, instrument: Instrument) -> str: ...


def build_prompt(instrument: Instrument) -> str:
    return (
        "Provide a concise, expert-level market analysis for the stock: "
        f"{instrument.name} ({instrument.symbol}).\n"
        "Assume this is for an automated trading dashboard. Structure your response in Markdown.\n\n"
        "Include the following sections:\n"
        "- **Outlook**: A brief summary of the potential short-term outlook (bullish, bearish, "
        "or neutral) based on common technical and market sentiment indicators.\n"
        "- **Key Factors**: 2-3 bullet points on key factors that could influence the stock's price.\n"
        "- **Potential Risks**: 1-2 bullet points on potential risks.\n\n"
        "Keep the language professional and direct. Do not include any investment advice disclaimer."
    )


def _extract_text(payload: dict[str, Any]) -> str:
    """Concatena los `parts[].text` del primer candidato."""
    candidates = payload.get("candidates") or []
    if not candidates:
        raise ValueError("respuesta sin candidates")
    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    if not text.strip():
        raise ValueError("respuesta sin texto")
    return text


class GeminiCommentaryProvider:
    """
    Proveedor de comentarios vía REST.

    Parámetros
    ----------
    api_key  : clave de la API (por defecto settings.GEMINI_API_KEY, env GEMINI_API_KEY/API_KEY).
    model    : modelo (por defecto settings.GEMINI_MODEL).
    timeout  : timeout HTTP en segundos.
    session  : `requests.Session` opcional (inyectable en tests).
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        base_url: str | None = None,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.model = model or settings.GEMINI_MODEL
        self.timeout = float(timeout if timeout is not None else settings.COMMENTARY_TIMEOUT_S)
        self.base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def get_market_insight(self, instrument: Instrument) -> str:
        if not self.api_key:
            logger.warning("Comentario de mercado no disponible: falta GEMINI_API_KEY/API_KEY")
            return ERROR_PREFIX + "API_KEY environment variable is not set."

        body = {"contents": [{"parts": [{"text": build_prompt(instrument)}]}]}
        try:
            logger.info(f"Pidiendo comentario de mercado para {instrument.symbol} ({self.model})...")
            response = self.session.post(
                self.url, params={"key": self.api_key}, json=body, timeout=self.timeout
            )
            if response.status_code != 200:
                logger.error(f"Gemini API error {response.status_code}: {response.text[:200]}")
                return ERROR_PREFIX + f"HTTP {response.status_code}"
            return _extract_text(response.json())
        except requests.RequestException as e:
            logger.error(f"Fallo de red pidiendo comentario: {e}")
            return ERROR_PREFIX + str(e)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error(f"Respuesta de Gemini no válida: {e}")
            return ERROR_PREFIX + f"invalid response ({e})"
