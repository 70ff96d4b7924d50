from __future__ import annotations

import json
import logging
import os
import typing as t
import urllib.error
import urllib.parse
import urllib.request

from mentor import config
from mentor.errors import MalformedResponseError, NetworkError

logger = logging.getLogger(__name__)

JsonDict = dict[str, t.Any]


class GeminiClient:
    """One request, one response. Callers decide what a failure means."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        if not self.api_key:
            raise RuntimeError("Missing GEMINI_API_KEY (or GOOGLE_API_KEY).")
        self.model = model or config.GEMINI_MODEL
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else config.GEMINI_TIMEOUT_S

    def build_payload(self, prompt: str, *, temperature: float, max_output_tokens: int) -> JsonDict:
        if not 0.0 <= temperature <= 1.0:
            raise ValueError(f"temperature must be within [0, 1], got {temperature}")
        if not isinstance(max_output_tokens, int) or max_output_tokens <= 0:
            raise ValueError(f"max_output_tokens must be a positive integer, got {max_output_tokens!r}")
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": temperature,
                "maxOutputTokens": max_output_tokens,
            },
        }

    def endpoint_url(self) -> str:
        return f"{self.base_url}/models/{urllib.parse.quote(self.model)}:generateContent?key={urllib.parse.quote(self.api_key)}"

    def generate_text(
        self,
        prompt: str,
        *,
        temperature: float = 0.7,
        max_output_tokens: int = 1000,
    ) -> str:
        payload = self.build_payload(prompt, temperature=temperature, max_output_tokens=max_output_tokens)
        req = urllib.request.Request(
            self.endpoint_url(),
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            try:
                body = e.read().decode("utf-8")
            except OSError:
                body = ""
            logger.warning("Gemini HTTPError %s for model %s", e.code, self.model)
            raise NetworkError(f"Gemini HTTPError {e.code}: {body[:1000]}") from e
        except (urllib.error.URLError, OSError) as e:
            logger.warning("Gemini unreachable: %s", e)
            raise NetworkError(f"Gemini unreachable: {e}") from e

        return self.parse_response_text(raw)

    @staticmethod
    def parse_response_text(raw: str) -> str:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Gemini returned invalid JSON: {raw[:1000]}") from e

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            finish_reason = None
            if isinstance(data, dict) and isinstance(data.get("candidates"), list) and data["candidates"]:
                first = data["candidates"][0]
                if isinstance(first, dict):
                    finish_reason = first.get("finishReason")
            raise MalformedResponseError(f"Gemini returned no text. Finish reason: {finish_reason}") from e

        if not isinstance(text, str):
            raise MalformedResponseError(f"Gemini text field is {type(text).__name__}, not a string")
        return text
