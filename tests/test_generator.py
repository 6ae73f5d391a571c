from __future__ import annotations

import sys
import types

import pytest

from promptreel.generator import (
    GeminiGenerator,
    LocalGenerator,
    local_fallback_generate,
    resolve_gemini_api_key,
    strip_code_fences,
)
from promptreel.prompting import build_instruction


def _install_fake_genai(monkeypatch: pytest.MonkeyPatch, captured: dict[str, object], text: str | None) -> None:
    class FakeGenerateContentConfig:
        def __init__(self, **kwargs: object) -> None:
            self.kwargs = kwargs

    class FakeHttpOptions:
        def __init__(self, **kwargs: object) -> None:
            self.kwargs = kwargs

    class FakeModels:
        def generate_content(self, **kwargs: object):
            captured["request"] = kwargs
            return types.SimpleNamespace(text=text)

    class FakeClient:
        def __init__(self, **kwargs: object) -> None:
            captured["client"] = kwargs
            self.models = FakeModels()

    fake_google_genai = types.ModuleType("google.genai")
    fake_google_genai.Client = FakeClient
    fake_google_genai.types = types.SimpleNamespace(
        GenerateContentConfig=FakeGenerateContentConfig,
        HttpOptions=FakeHttpOptions,
    )

    fake_google = types.ModuleType("google")
    fake_google.genai = fake_google_genai

    monkeypatch.setitem(sys.modules, "google", fake_google)
    monkeypatch.setitem(sys.modules, "google.genai", fake_google_genai)
    monkeypatch.setattr("promptreel.generator.resolve_gemini_api_key", lambda: "fake-key")


def test_resolve_gemini_api_key_given_env_and_file_when_resolved_then_env_wins(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
) -> None:
    # Given
    key_file = tmp_path / "Gemini.md"
    key_file.write_text("file-key", encoding="utf-8")
    monkeypatch.setenv("GEMINI_API_KEY", "env-key")

    # When
    value = resolve_gemini_api_key(key_file=key_file)

    # Then
    assert value == "env-key"


def test_resolve_gemini_api_key_given_only_file_when_resolved_then_file_value_is_used(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
) -> None:
    # Given
    key_file = tmp_path / "Gemini.md"
    key_file.write_text("file-key\n", encoding="utf-8")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    # When
    value = resolve_gemini_api_key(key_file=key_file)

    # Then
    assert value == "file-key"


def test_resolve_gemini_api_key_given_no_sources_when_resolved_then_none_is_returned(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path,
) -> None:
    # Given
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    # When
    value = resolve_gemini_api_key(key_file=tmp_path / "missing.md")

    # Then
    assert value is None


def test_strip_code_fences_given_fenced_jsx_when_stripped_then_only_code_remains() -> None:
    # Given
    raw = "```jsx\nexport default function GeneratedVideo() {}\n```\n"

    # When
    stripped = strip_code_fences(raw)

    # Then
    assert stripped == "export default function GeneratedVideo() {}"


def test_strip_code_fences_given_multiple_blocks_when_stripped_then_every_marker_is_removed() -> None:
    # Given
    raw = "```javascript\nconst a = 1;\n```\n\n```\nconst b = 2;\n```"

    # When
    stripped = strip_code_fences(raw)

    # Then
    assert "```" not in stripped
    assert "const a = 1;" in stripped
    assert "const b = 2;" in stripped


def test_strip_code_fences_given_prose_around_block_when_stripped_then_only_block_body_remains() -> None:
    # Given
    raw = "Here is the code:\n```jsx\nfunction GeneratedVideo() {}\n```\nEnjoy your video!"

    # When
    stripped = strip_code_fences(raw)

    # Then
    assert stripped == "function GeneratedVideo() {}"


def test_strip_code_fences_given_unterminated_fence_when_stripped_then_marker_is_removed() -> None:
    # Given
    raw = "```jsx\nfunction GeneratedVideo() {}\n"

    # When
    stripped = strip_code_fences(raw)

    # Then
    assert stripped == "function GeneratedVideo() {}"


def test_gemini_generator_given_mocked_sdk_when_generated_then_instruction_is_sent_once(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # Given
    captured: dict[str, object] = {}
    _install_fake_genai(monkeypatch, captured, text="  mocked-response  ")
    generator = GeminiGenerator(model_name="gemini-test", temperature=0.7)

    # When
    result = generator.generate("instruction body")

    # Then
    assert result == "mocked-response"
    assert captured["client"] == {"api_key": "fake-key"}
    request = captured["request"]
    assert isinstance(request, dict)
    assert request["model"] == "gemini-test"
    assert request["contents"] == "instruction body"
    assert request["config"].kwargs["temperature"] == 0.7


def test_gemini_generator_given_timeout_when_generated_then_http_options_carry_milliseconds(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # Given
    captured: dict[str, object] = {}
    _install_fake_genai(monkeypatch, captured, text="ok")
    generator = GeminiGenerator(model_name="gemini-test", timeout_s=2.5)

    # When
    generator.generate("instruction body")

    # Then
    client_kwargs = captured["client"]
    assert isinstance(client_kwargs, dict)
    assert client_kwargs["http_options"].kwargs == {"timeout": 2500}


def test_gemini_generator_given_empty_reply_when_generated_then_runtime_error_is_raised(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # Given
    _install_fake_genai(monkeypatch, {}, text=None)
    generator = GeminiGenerator(model_name="gemini-test")

    # When / Then
    with pytest.raises(RuntimeError, match="empty response"):
        generator.generate("instruction body")


def test_gemini_generator_given_missing_key_when_generated_then_runtime_error_is_raised(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    # Given
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setattr("promptreel.generator.resolve_gemini_api_key", lambda: None)
    generator = GeminiGenerator(model_name="gemini-test")

    # When / Then
    with pytest.raises(RuntimeError, match="Missing GEMINI_API_KEY"):
        generator.generate("instruction body")


def test_gemini_generator_given_blank_instruction_when_generated_then_value_error_is_raised() -> None:
    # Given
    generator = GeminiGenerator(model_name="gemini-test")

    # When / Then
    with pytest.raises(ValueError, match="non-empty"):
        generator.generate("   ")


def test_local_fallback_generate_given_same_prompt_when_generated_then_output_is_deterministic() -> None:
    # Given
    prompt = 'Say "hello" to the mountains'

    # When
    first = local_fallback_generate(prompt)
    second = local_fallback_generate(prompt)

    # Then
    assert first == second
    assert "export default function GeneratedVideo()" in first
    assert '{"Say \\"hello\\" to the mountains"}' in first
    assert "style={{ backgroundColor: '#0a0a0a'" in first


def test_local_generator_given_instruction_when_generated_then_embedded_prompt_is_animated() -> None:
    # Given
    instruction = build_instruction("a bright sun rising over mountains")

    # When
    reply = LocalGenerator().generate(instruction)

    # Then
    assert '{"a bright sun rising over mountains"}' in reply
