from __future__ import annotations

from enum import Enum

ENTRY_SYMBOL = "GeneratedVideo"
USER_PROMPT_MARKER = "User's script to animate: "
CLOSING_LINE = "Generate the complete component code (NO imports, NO explanations, ONLY code):"

# Bindings the wrapper module imports from ``remotion``; the instruction
# document promises exactly these to the model.
ANIMATION_PRIMITIVES: tuple[str, ...] = (
    "useCurrentFrame",
    "useVideoConfig",
    "interpolate",
    "interpolateColors",
    "spring",
    "Easing",
    "Sequence",
    "AbsoluteFill",
    "Loop",
    "continueRender",
    "delayRender",
    "staticFile",
    "Audio",
    "Img",
    "Video",
)


class Style(str, Enum):
    PROMO = "promo"
    MINIMAL = "minimal"
    KINETIC = "kinetic"


class Theme(str, Enum):
    AUTO = "auto"
    DARK = "dark"
    LIGHT = "light"


STYLE_GUIDANCE: dict[Style, str] = {
    Style.PROMO: (
        "High-energy TV commercial. Each text segment stays on screen 1-3 seconds, "
        "snappy elastic/back easing with overshoot, alternate animation styles between "
        "scenes, and change the background between major sections."
    ),
    Style.MINIMAL: (
        "Calm and typographic. Few elements, generous whitespace, slow fades and gentle "
        "slides, one accent color, no particle or glitch effects."
    ),
    Style.KINETIC: (
        "Kinetic typography. Words move, scale and rotate to a rhythm, the camera feels "
        "like it pans or zooms, and text never overlaps: old text leaves before new text arrives."
    ),
}

THEME_GUIDANCE: dict[Theme, str] = {
    Theme.AUTO: (
        "Pick dark or light from the subject and stay consistent. Tech/cyber: neon on black, "
        "monospace. Luxury: gold on dark, serif. Sports: bold saturated colors. "
        "Corporate: blues and clean transitions."
    ),
    Theme.DARK: "Dark backgrounds (#000, #0a0a0a, #1a1a1a) with white or neon text.",
    Theme.LIGHT: "Light backgrounds (#ffffff, #f5f5f5) with near-black or saturated text.",
}


def build_instruction(
    user_prompt: str,
    *,
    style: Style = Style.PROMO,
    theme: Theme = Theme.AUTO,
    fps: int = 30,
    duration_in_frames: int = 600,
) -> str:
    """Build the single instruction document sent to the model for one request."""
    seconds = duration_in_frames / fps
    primitives = ", ".join(ANIMATION_PRIMITIVES)

    return (
        "You are an expert Remotion developer. Write ONE self-contained React component "
        "that animates the user's script as a video.\n\n"
        "CRITICAL REQUIREMENTS:\n"
        "1. Return ONLY the component code: no markdown fences, no explanations.\n"
        "2. NO import statements. These are already in scope: "
        f"React, {primitives}.\n"
        f"3. The root component MUST be named \"{ENTRY_SYMBOL}\" and be the default export: "
        f"`export default function {ENTRY_SYMBOL}()`.\n"
        "4. Use ONLY inline styles (style={{...}}).\n"
        f"5. The composition is {duration_in_frames} frames at {fps}fps ({seconds:g} seconds); "
        f"the sum of all scene durations must be <= {duration_in_frames} frames.\n"
        "6. Keep all text inside the frame with margins, centered with flexbox.\n"
        "7. Define every constant you reference (e.g. a SCENE_DURATIONS map) before using it.\n\n"
        "JAVASCRIPT RULES:\n"
        "- Always namespace math: Math.random(), Math.sin(), Math.cos(), Math.floor(), "
        "Math.ceil(), Math.round(), Math.abs(), Math.max(), Math.min(), Math.sqrt(), Math.pow().\n"
        "- interpolate() output ranges are numbers, never strings with units: "
        "interpolate(frame, [0, 25], [-200, 0]) then build `translateX(${x}px)`.\n"
        "- Wrap back/elastic easing: easing: Easing.out(Easing.back(1.7)).\n"
        "- Always pass { extrapolateLeft: 'clamp', extrapolateRight: 'clamp' }.\n\n"
        f"STYLE ({style.value}): {STYLE_GUIDANCE[style]}\n"
        f"THEME ({theme.value}): {THEME_GUIDANCE[theme]}\n\n"
        f"{USER_PROMPT_MARKER}{user_prompt}\n\n"
        f"{CLOSING_LINE}"
    )


def extract_user_prompt(instruction: str) -> str:
    """Recover the verbatim user prompt embedded by ``build_instruction``."""
    start = instruction.find(USER_PROMPT_MARKER)
    if start == -1:
        return instruction.strip()
    body = instruction[start + len(USER_PROMPT_MARKER) :]
    end = body.rfind(CLOSING_LINE)
    return (body[:end] if end != -1 else body).strip()
