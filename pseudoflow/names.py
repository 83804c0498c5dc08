# pseudoflow/names.py
# Normalization helpers for function names and call arguments.
from __future__ import annotations
import re
from typing import List, Optional

# Lowercase, strip everything that is not a word character.
_NAME_ALLOWED = re.compile(r'[^a-z0-9_]+')

_CALL_KEYWORD_RE = re.compile(r'^\s*(?:call|invoke|execute|function|procedure)\s+([A-Za-z_]\w*)', re.IGNORECASE)
_CALL_PAREN_RE = re.compile(r'\b([A-Za-z_]\w*)\s*\(')

# Words that look like calls when followed by "(" but never name a function.
_NOT_CALLEES = {"if", "while", "for", "return", "print", "output", "input", "and", "or", "not"}


def normalize_name(name: str | None) -> str:
    if not isinstance(name, str):
        return "_"
    s = _NAME_ALLOWED.sub("", name.strip().lower())
    return s or "_"


def names_match(a: str | None, b: str | None) -> bool:
    return normalize_name(a) == normalize_name(b)


def callee_of(content: str) -> Optional[str]:
    """Name of the function a call block invokes ("Call sum(a, b)" -> "sum")."""
    if not isinstance(content, str):
        return None
    m = _CALL_KEYWORD_RE.match(content)
    if m:
        return m.group(1)
    for m in _CALL_PAREN_RE.finditer(content):
        if m.group(1).lower() not in _NOT_CALLEES:
            return m.group(1)
    return None


def split_arguments(text: str) -> List[str]:
    """Comma split that respects (), [] and quotes: "a, f(b, c)" -> ["a", "f(b, c)"]."""
    parts: List[str] = []
    buf: List[str] = []
    depth = 0
    quote: Optional[str] = None
    for ch in text or "":
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(0, depth - 1)
        elif ch == "," and depth == 0:
            parts.append("".join(buf).strip())
            buf = []
            continue
        buf.append(ch)
    tail = "".join(buf).strip()
    if tail or parts:
        parts.append(tail)
    return [p for p in parts if p]


def matching_paren(text: str, open_at: int) -> int:
    """Index of the ')' closing the '(' at `open_at`, or -1 when unbalanced."""
    depth = 0
    for i in range(open_at, len(text)):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1
