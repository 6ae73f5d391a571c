"""Deterministic textual repairs for known classes of model mistakes.

The rules are regular-expression rewrites over raw text, not a parse, so they
cannot make invalid code valid; malformed output is only detected when the
module is bundled. Every rule is idempotent, so running the table twice
yields the same text as running it once.
"""

from __future__ import annotations

import re
from collections.abc import Callable

MATH_FUNCTIONS: tuple[str, ...] = (
    "random",
    "sin",
    "cos",
    "tan",
    "floor",
    "ceil",
    "round",
    "abs",
    "max",
    "min",
    "sqrt",
    "pow",
)

# Bare calls only: skip member access (Math.sin, obj.min), identifiers that
# merely end with the name (cosine, $max), and declarations (function min).
MATH_CALL_RE = re.compile(
    r"(?<![\w.$])(?<!function )\b(" + "|".join(MATH_FUNCTIONS) + r")\s*\("
)

EASING_RE = re.compile(r"easing:\s*Easing\.(back|elastic)\(")

DEFAULT_EXPORT_RE = re.compile(r"\bexport\s+default\b")
NAMED_EXPORT_RE = re.compile(r"\bexport\s+(function|const)\b")
DECLARATION_RE = re.compile(r"^(?=(?:async\s+)?function\s+\w+|const\s+\w+\s*=)", re.MULTILINE)

Rule = Callable[[str], str]


def qualify_math_calls(code: str) -> str:
    """Rewrite ``sin(x)`` style calls to ``Math.sin(x)``."""
    return MATH_CALL_RE.sub(lambda match: f"Math.{match.group(1)}(", code)


def wrap_easing_calls(code: str) -> str:
    """Rewrite ``easing: Easing.back(1.7)`` to ``easing: Easing.out(Easing.back(1.7))``.

    The closing parenthesis is inserted after the matching close of the inner
    call. An unbalanced call is left untouched.
    """
    pieces: list[str] = []
    cursor = 0
    for match in EASING_RE.finditer(code):
        close = _find_closing_paren(code, match.end())
        if close is None:
            continue
        pieces.append(code[cursor : match.start()])
        pieces.append(f"easing: Easing.out(Easing.{match.group(1)}(")
        pieces.append(code[match.end() : close + 1])
        pieces.append(")")
        cursor = close + 1
    pieces.append(code[cursor:])
    return "".join(pieces)


def ensure_default_export(code: str) -> str:
    """Insert a default-export marker when the code has none.

    A named ``export function``/``export const`` is promoted first; otherwise
    the marker goes before the first top-level function or const declaration.
    Text with no recognizable declaration is returned unchanged.
    """
    if DEFAULT_EXPORT_RE.search(code):
        return code

    promoted, count = NAMED_EXPORT_RE.subn(r"export default \1", code, count=1)
    if count:
        return promoted

    match = DECLARATION_RE.search(code)
    if not match:
        return code
    return f"{code[: match.start()]}export default {code[match.start():]}"


REPAIR_RULES: tuple[tuple[str, Rule], ...] = (
    ("math-namespace", qualify_math_calls),
    ("easing-wrapper", wrap_easing_calls),
    ("default-export", ensure_default_export),
)


def repair_source(code: str) -> tuple[str, list[str]]:
    """Apply the repair table and return ``(code, names_of_rules_that_changed_it)``."""
    applied: list[str] = []
    for name, rule in REPAIR_RULES:
        updated = rule(code)
        if updated != code:
            applied.append(name)
            code = updated
    return code, applied


def _find_closing_paren(text: str, start: int) -> int | None:
    """Return the index of the ``)`` closing a call whose ``(`` precedes ``start``."""
    depth = 1
    quote: str | None = None
    index = start
    while index < len(text):
        char = text[index]
        if quote:
            if char == "\\":
                index += 2
                continue
            if char == quote:
                quote = None
        elif char in "'\"`":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return index
        index += 1
    return None
