"""
Text-generation collaborator used by the Insight Generator.

Contract: `generate(prompt, max_length)` returns generated text, or None when
the collaborator is unavailable. It is a soft dependency, so callers treat
None, a timeout, and any exception the same way: they fall back to the
deterministic template.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

logger = logging.getLogger(__name__)


class TextGenerationClient(Protocol):
    model: str

    def generate(self, prompt: str, max_length: int) -> Optional[str]:
        ...


class NLPCloudClient:
    """Generation endpoint of NLP Cloud (`POST /v1/{model}/generation`)."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.nlpcloud.io/v1",
        timeout_s: float = 15.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Token {api_key}",
            "Content-Type": "application/json",
        })

    def generate(self, prompt: str, max_length: int) -> Optional[str]:
        url = f"{self.base_url}/{self.model}/generation"
        payload = {
            "text": prompt,
            "max_length": max_length,
            "remove_input": True,
            "num_return_sequences": 1,
            "length_no_input": True,
        }
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout_s)
        except requests.RequestException as exc:
            logger.warning("Text generation request failed (%s): %s", self.model, exc)
            return None

        if resp.status_code >= 400:
            logger.warning(
                "Text generation returned HTTP %s (%s): %s",
                resp.status_code, self.model, resp.text[:200],
            )
            return None

        try:
            data = resp.json()
        except ValueError:
            logger.warning("Text generation returned non-JSON body (%s)", self.model)
            return None

        for key in ("generated_text", "text"):
            text = data.get(key) if isinstance(data, dict) else None
            if isinstance(text, str) and text.strip():
                return text.strip()

        logger.warning("Unexpected text generation response shape (%s)", self.model)
        return None
