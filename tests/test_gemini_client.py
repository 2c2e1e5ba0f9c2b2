from dataclasses import replace
from types import SimpleNamespace

import pytest

from shoebot import gemini_client
from shoebot.errors import LanguageModelError
from shoebot.gemini_client import GeminiClient, _normalize_model_name, build_contents


class FakeGenerativeModel:
    instances = []

    def __init__(self, model_name, system_instruction=None):
        self.model_name = model_name
        self.system_instruction = system_instruction
        self.calls = []
        self.response = SimpleNamespace(text="  Hello there.  ")
        self.error = None
        FakeGenerativeModel.instances.append(self)

    def generate_content(self, contents, generation_config=None, safety_settings=None):
        self.calls.append(
            {"contents": contents, "generation_config": generation_config, "safety_settings": safety_settings}
        )
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def fake_genai(monkeypatch):
    FakeGenerativeModel.instances = []
    configured = {}
    monkeypatch.setattr(gemini_client.genai, "configure", lambda **kwargs: configured.update(kwargs))
    monkeypatch.setattr(gemini_client.genai, "GenerativeModel", FakeGenerativeModel)
    return configured


@pytest.fixture
def gemini_settings(settings):
    return replace(settings, gemini_api_key="test-key", gemini_model="models/gemini-2.5-flash-lite")


def test_missing_api_key_raises(settings):
    with pytest.raises(ValueError, match="GEMINI_API_KEY"):
        GeminiClient(settings)


def test_missing_model_raises(fake_genai, gemini_settings):
    with pytest.raises(ValueError):
        GeminiClient(replace(gemini_settings, gemini_model="  "))


def test_complete_sends_contents_and_limits(fake_genai, gemini_settings):
    client = GeminiClient(gemini_settings)
    reply = client.complete("system", [{"role": "user", "text": "hi"}, {"role": "bot", "text": "hello"}], "shoes?")

    assert reply == "Hello there."
    assert fake_genai == {"api_key": "test-key"}
    model = FakeGenerativeModel.instances[0]
    assert model.model_name == "gemini-2.5-flash-lite"
    assert model.system_instruction == "system"
    call = model.calls[0]
    assert [content["role"] for content in call["contents"]] == ["user", "model", "user"]
    assert call["generation_config"]["max_output_tokens"] == 200
    assert call["safety_settings"] == gemini_client.DEFAULT_SAFETY_SETTINGS


def test_model_is_cached_per_system_prompt(fake_genai, gemini_settings):
    client = GeminiClient(gemini_settings)
    client.complete("system", [], "one")
    client.complete("system", [], "two")
    assert len(FakeGenerativeModel.instances) == 1
    client.complete("other system", [], "three")
    assert len(FakeGenerativeModel.instances) == 2


def test_sdk_errors_become_language_model_errors(fake_genai, gemini_settings):
    client = GeminiClient(gemini_settings)
    client.complete("system", [], "warm up")
    FakeGenerativeModel.instances[0].error = RuntimeError("quota exceeded")
    with pytest.raises(LanguageModelError, match="quota exceeded"):
        client.complete("system", [], "again")


def test_blocked_response_returns_empty_text(fake_genai, gemini_settings):
    client = GeminiClient(gemini_settings)
    client.complete("system", [], "warm up")
    FakeGenerativeModel.instances[0].response = SimpleNamespace(text=None)
    assert client.complete("system", [], "again") == ""


def test_build_contents_drops_leading_bot_turns():
    history = [
        {"role": "bot", "text": "What type of shoes do you need?"},
        {"role": "user", "text": "running"},
        {"role": "bot", "text": "We have Brooks Ghost."},
        {"role": "system", "text": "ignored"},
    ]
    contents = build_contents(history, "add it")
    assert contents == [
        {"role": "user", "parts": [{"text": "running"}]},
        {"role": "model", "parts": [{"text": "We have Brooks Ghost."}]},
        {"role": "user", "parts": [{"text": "add it"}]},
    ]


def test_build_contents_without_history():
    assert build_contents([], "hi") == [{"role": "user", "parts": [{"text": "hi"}]}]


@pytest.mark.parametrize(
    "raw,expected",
    [("models/gemini-pro", "gemini-pro"), (" gemini-pro ", "gemini-pro"), ("", ""), (None, "")],
)
def test_normalize_model_name(raw, expected):
    assert _normalize_model_name(raw) == expected
