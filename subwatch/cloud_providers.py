import logging
from typing import Optional

import requests

from .errors import ProviderFailure
from .models import ProviderOutput

logger = logging.getLogger(__name__)

def _translation_prompt(text: str, source_lang: Optional[str], target_lang: str) -> str:
    if source_lang:
        header = f"Translate the following subtitle from {source_lang} to {target_lang}."
    else:
        header = f"Detect the language of the following subtitle and translate it to {target_lang}."
    return (
        f"{header}\n"
        "Output only the translated text, with no comments, quotes or explanations.\n\n"
        f"{text}"
    )

class HttpProvider:
    """Common request handling for HTTP translation backends"""

    name = "http"
    confidence = 0.85

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, url: str, **kwargs) -> dict:
        try:
            response = self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ProviderFailure(self.name, f"request error: {e}") from e

        if response.status_code != 200:
            raise ProviderFailure(self.name, f"API Error: {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise ProviderFailure(self.name, "invalid JSON response") from e

class GeminiProvider(HttpProvider):
    """Cloud LLM translation through the Gemini generateContent endpoint"""

    name = "gemini"
    confidence = 0.9
    base_url = "https://generativelanguage.googleapis.com/v1beta/models"

    def __init__(self, api_key: str, model: str = "gemini-2.0-flash", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.model = model

    def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> ProviderOutput:
        if not self.api_key:
            raise ProviderFailure(self.name, "API key missing, set GEMINI_API_KEY")

        payload = {
            "contents": [{"parts": [{"text": _translation_prompt(text, source_lang, target_lang)}]}],
            "generationConfig": {"temperature": 0.0, "maxOutputTokens": 256},
        }
        data = self._post(f"{self.base_url}/{self.model}:generateContent",
                          params={"key": self.api_key}, json=payload)
        try:
            translated = data["candidates"][0]["content"]["parts"][0]["text"].strip()
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(self.name, "unexpected response shape") from e
        if not translated:
            raise ProviderFailure(self.name, "empty translation")

        return ProviderOutput(translated_text=translated, confidence=self.confidence,
                              detected_language=source_lang)

class GoogleTranslateProvider(HttpProvider):
    """Google Cloud Translation (v2 REST API)"""

    name = "google"
    confidence = 0.85
    url = "https://translation.googleapis.com/language/translate/v2"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key

    def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> ProviderOutput:
        if not self.api_key:
            raise ProviderFailure(self.name, "API key missing, set GOOGLE_API_KEY")

        form = {"q": text, "target": target_lang, "format": "text"}
        if source_lang:
            form["source"] = source_lang
        data = self._post(self.url, params={"key": self.api_key}, data=form)
        try:
            translation = data["data"]["translations"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderFailure(self.name, "unexpected response shape") from e

        return ProviderOutput(
            translated_text=translation.get("translatedText", ""),
            confidence=self.confidence,
            detected_language=translation.get("detectedSourceLanguage") or source_lang,
        )

class OllamaProvider(HttpProvider):
    """Local LLM served by Ollama"""

    name = "ollama"
    confidence = 0.75

    def __init__(self, base_url: str = "http://localhost:11434", model: str = "qwen2.5:7b-instruct", **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url
        self.model = model

    def is_available(self) -> bool:
        """Check if the Ollama API answers"""
        try:
            url = self.base_url.rstrip('/') + "/api/tags"
            return self.session.get(url, timeout=5).status_code == 200
        except requests.RequestException:
            return False

    def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> ProviderOutput:
        payload = {
            "model": self.model,
            "prompt": _translation_prompt(text, source_lang, target_lang),
            "stream": False,
        }
        # Ensure base_url doesn't have a trailing slash to avoid double slashes
        data = self._post(self.base_url.rstrip('/') + "/api/generate", json=payload)
        translated = (data.get("response") or "").strip()
        if not translated:
            raise ProviderFailure(self.name, "empty translation")

        return ProviderOutput(translated_text=translated, confidence=self.confidence,
                              detected_language=source_lang)
