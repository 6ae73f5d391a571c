"""Utilities for calling the model backend and unwrapping its text reply."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Protocol

from promptreel.prompting import ENTRY_SYMBOL, extract_user_prompt

DEFAULT_GEMINI_KEY_FILE = Path(".api_keys/Gemini.md")

FENCE_RE = re.compile(r"```[A-Za-z]*[ \t]*\n?")
FENCED_BLOCK_RE = re.compile(r"```[A-Za-z]*[ \t]*\n(.*?)```", re.DOTALL)


class TextGenerator(Protocol):
    """Generation capability: one blocking call, instruction in, text out."""

    def generate(self, instruction: str) -> str: ...


def resolve_gemini_api_key(key_file: Path = DEFAULT_GEMINI_KEY_FILE) -> str | None:
    """Resolve the Gemini API key from environment or fallback file.

    Resolution order:
    1. ``GEMINI_API_KEY`` environment variable.
    2. ``key_file`` plaintext contents.

    Args:
        key_file: Optional fallback file containing only the API key.

    Returns:
        The non-empty API key when found, otherwise ``None``.
    """
    api_key = (os.getenv("GEMINI_API_KEY") or "").strip()
    if api_key:
        return api_key

    if key_file.exists():
        fallback_key = key_file.read_text(encoding="utf-8").strip()
        if fallback_key:
            return fallback_key

    return None


class GeminiGenerator:
    """Thin adapter around Google GenAI content generation."""

    def __init__(self, model_name: str, temperature: float = 1.0, timeout_s: float | None = None):
        """Create a generator bound to a model name."""
        self.model_name = model_name
        self.temperature = temperature
        self.timeout_s = timeout_s

    def generate(self, instruction: str) -> str:
        """Send one instruction document and return the raw reply text.

        Args:
            instruction: Full instruction document, rules plus user prompt.

        Returns:
            Raw text response from Gemini.

        Raises:
            ValueError: If the instruction is blank.
            RuntimeError: If credentials are missing or response text is empty.
        """
        if not isinstance(instruction, str) or not instruction.strip():
            raise ValueError("Instruction must be a non-empty string.")

        api_key = resolve_gemini_api_key()
        if not api_key:
            raise RuntimeError("Missing GEMINI_API_KEY (set env var or .api_keys/Gemini.md)")

        from google import genai
        from google.genai import types

        client_kwargs: dict[str, object] = {"api_key": api_key}
        if self.timeout_s is not None:
            # HttpOptions.timeout is expressed in milliseconds.
            client_kwargs["http_options"] = types.HttpOptions(timeout=int(self.timeout_s * 1000))

        client = genai.Client(**client_kwargs)
        response = client.models.generate_content(
            model=self.model_name,
            contents=instruction,
            config=types.GenerateContentConfig(
                temperature=self.temperature,
                top_p=0.95,
            ),
        )

        text = (response.text or "").strip()
        if not text:
            raise RuntimeError("Gemini returned an empty response")
        return text


class LocalGenerator:
    """Offline generator: answers every instruction with ``local_fallback_generate``."""

    def generate(self, instruction: str) -> str:
        return local_fallback_generate(extract_user_prompt(instruction))


def strip_code_fences(text: str) -> str:
    """Return the code inside Markdown fences, dropping prose around them.

    With several fenced blocks their bodies are joined. Text without a
    complete block only has stray fence markers removed.
    """
    blocks = FENCED_BLOCK_RE.findall(text)
    if blocks:
        return "\n\n".join(block.strip() for block in blocks if block.strip())
    return FENCE_RE.sub("", text).strip()


def local_fallback_generate(prompt: str) -> str:
    """Produce a component deterministically without external model calls.

    The component shows the prompt as a fading, sliding title, which is enough
    to exercise the build and render stages offline.
    """
    title = json.dumps(prompt.strip())
    return f"""```jsx
export default function {ENTRY_SYMBOL}() {{
  const frame = useCurrentFrame();
  const {{ durationInFrames }} = useVideoConfig();
  const opacity = interpolate(frame, [0, 20, durationInFrames - 20, durationInFrames], [0, 1, 1, 0], {{
    extrapolateLeft: 'clamp',
    extrapolateRight: 'clamp',
  }});
  const y = interpolate(frame, [0, 30], [60, 0], {{
    extrapolateLeft: 'clamp',
    extrapolateRight: 'clamp',
    easing: Easing.out(Easing.cubic),
  }});
  return (
    <AbsoluteFill style={{{{ backgroundColor: '#0a0a0a', justifyContent: 'center', alignItems: 'center' }}}}>
      <div style={{{{ color: 'white', fontSize: '5rem', fontFamily: 'Arial, sans-serif', fontWeight: 700,
        textAlign: 'center', padding: '0 8%', opacity, transform: `translateY(${{y}}px)` }}}}>
        {{{title}}}
      </div>
    </AbsoluteFill>
  );
}}
```"""
