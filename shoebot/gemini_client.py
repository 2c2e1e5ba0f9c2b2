from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol, Tuple

import google.generativeai as genai

from .config import Settings
from .errors import LanguageModelError

logger = logging.getLogger("shoebot.llm")

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]


class LanguageModel(Protocol):
    """Black-box text generator used when no rule matches a message."""

    def complete(self, system_prompt: str, history: List[Dict[str, str]], user_message: str) -> str:
        ...


class GeminiClient:
    """Thin wrapper around the Gemini SDK with model caching."""

    def __init__(self, settings: Settings) -> None:
        """Purpose: Configure the Gemini SDK and remember generation limits.
        Inputs/Outputs: Input is Settings; no return value.
        Side Effects / State: Configures the SDK API key.
        Dependencies: Uses google.generativeai and Settings from config.
        Failure Modes: Raises ValueError if the API key or model name is missing.
        If Removed: Unmatched chat messages cannot be answered.
        Testing Notes: Validate missing key raises ValueError.
        """
        # Configure API key; models are built lazily per system prompt.
        if not settings.gemini_api_key:
            raise ValueError("GEMINI_API_KEY is required")
        self._model_name = _normalize_model_name(settings.gemini_model)
        if not self._model_name:
            raise ValueError("Gemini model name is required")
        self._max_output_tokens = settings.max_output_tokens
        genai.configure(api_key=settings.gemini_api_key)
        self._models: Dict[Tuple[str, str], genai.GenerativeModel] = {}

    def _model(self, system_prompt: str) -> genai.GenerativeModel:
        key = (self._model_name, system_prompt)
        if key not in self._models:
            self._models.clear()
            self._models[key] = genai.GenerativeModel(self._model_name, system_instruction=system_prompt or None)
        return self._models[key]

    def complete(
        self,
        system_prompt: str,
        history: List[Dict[str, str]],
        user_message: str,
        temperature: float = 0.4,
    ) -> str:
        """Purpose: Generate the next bot reply from prior turns and the new message.
        Inputs/Outputs: Inputs are the system prompt, prior turns as {"role", "text"}
            dicts (role "user" or "bot"), and the user message; returns reply text.
        Side Effects / State: May build and cache a model instance.
        Dependencies: genai.GenerativeModel.generate_content and build_contents.
        Failure Modes: Any SDK error is raised as LanguageModelError.
        If Removed: The fallback path of the dialogue has no model.
        Testing Notes: Patch GenerativeModel and check the contents start with a user turn.
        """
        # Convert turns to Gemini contents and call the model once.
        contents = build_contents(history, user_message)
        try:
            response = self._model(system_prompt).generate_content(
                contents,
                generation_config={
                    "temperature": temperature,
                    "max_output_tokens": self._max_output_tokens,
                },
                safety_settings=DEFAULT_SAFETY_SETTINGS,
            )
            text: Optional[str] = getattr(response, "text", None)
        except Exception as exc:
            logger.error("model=%s generate_content failed: %s", self._model_name, exc)
            raise LanguageModelError(str(exc)) from exc
        return (text or "").strip()


def build_contents(history: List[Dict[str, str]], user_message: str) -> list:
    """Purpose: Convert stored turns into Gemini chat contents.
    Inputs/Outputs: Input is prior turns and the new message; output is a list of
        {"role": "user"|"model", "parts": [{"text": ...}]} entries.
    Side Effects / State: None.
    Dependencies: None; used by GeminiClient.complete.
    Failure Modes: Turns with unknown roles are skipped.
    If Removed: The model cannot see prior turns.
    Testing Notes: Bot turns map to role "model"; leading model turns are dropped.
    """
    # Gemini requires alternating turns starting with the user.
    contents: list = []
    for turn in history:
        role = {"user": "user", "bot": "model"}.get(turn.get("role", ""))
        if role is None:
            continue
        contents.append({"role": role, "parts": [{"text": turn.get("text", "")}]})
    while contents and contents[0]["role"] != "user":
        contents.pop(0)
    contents.append({"role": "user", "parts": [{"text": user_message}]})
    return contents


def _normalize_model_name(name: Optional[str]) -> str:
    # Strip "models/" prefix and whitespace.
    if not name:
        return ""
    cleaned = name.strip()
    if cleaned.startswith("models/"):
        return cleaned.split("/", 1)[1]
    return cleaned
