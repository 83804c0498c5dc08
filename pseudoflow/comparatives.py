# pseudoflow/comparatives.py
# Turns condition text like "n <= 1" or "score is at least 90" into
# ("n", "<=", 1), and evaluates such triples against a variable map.

from __future__ import annotations
import operator
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

Value = Union[int, float, str, None]
Comparative = Tuple[str, str, Value]  # (left, op, right)

_ID = r"[A-Za-z_][A-Za-z0-9_\.]*"          # identifiers (dotted: node.left)
_NUM = r"(?:-?\d+(?:\.\d+)?)"              # 1, -1, 2.5
_STR = r"(?:'[^']*'|\"[^\"]*\")"
_VAL = rf"(?:{_NUM}|{_STR}|{_ID})"

_NULLS = {"null", "none", "nil"}


def _coerce(val: str) -> Value:
    val = val.strip()
    if re.fullmatch(_NUM, val):
        return int(val) if "." not in val else float(val)
    if (val.startswith("'") and val.endswith("'")) or (val.startswith('"') and val.endswith('"')):
        return val[1:-1]
    if val.lower() in _NULLS:
        return None
    return val


def _clean_tail(text: str) -> str:
    s = text.strip()
    s = re.sub(r"\s*(?:then|do)\s*$", "", s, flags=re.IGNORECASE)
    s = re.sub(r"\s*[\.!\?,;:]+\s*$", "", s)
    return s


# Worded comparisons: "<left> [is|are] <phrase> <right>", tried in order.
_PHRASES: List[Tuple[str, Tuple[str, ...]]] = [
    (">=", ("at least", "no less than")),
    ("<=", ("at most", "no more than")),
    (">", ("greater than", "more than")),
    ("<", ("less than", "fewer than")),
    ("!=", ("not equal to", "is not", "are not")),
    ("==", ("equal to", "equals", "equal")),
]

# Operator spellings, longest first so "<=" never reads as "<".
_SYMBOLS: List[Tuple[str, Tuple[str, ...]]] = [
    (">=", (">=",)),
    ("<=", ("<=",)),
    ("!=", ("!=", "<>")),
    (">", (">",)),
    ("<", ("<",)),
    ("==", ("==", "=")),
]


def _alternation(options: Tuple[str, ...], *, words: bool) -> str:
    parts = [r"\s+".join(map(re.escape, o.split())) if words else re.escape(o) for o in options]
    return "(?:" + "|".join(parts) + ")"


def _build_patterns() -> List[Tuple[re.Pattern, str]]:
    out = []
    for op, phrases in _PHRASES:
        body = rf"^({_ID})\s+(?:is\s+|are\s+)?{_alternation(phrases, words=True)}\s+({_VAL})$"
        out.append((re.compile(body, re.IGNORECASE), op))
    # bare "x is 3" after every worded form has had its chance
    out.append((re.compile(rf"^({_ID})\s+(?:is|are)\s+({_VAL})$", re.IGNORECASE), "=="))
    for op, spellings in _SYMBOLS:
        out.append((re.compile(rf"^({_ID})\s*{_alternation(spellings, words=False)}\s*({_VAL})$"), op))
    return out


_PATTERNS = _build_patterns()


def parse_comparative(text: str) -> Optional[Comparative]:
    """
    Returns (left, op, right) or None if not a comparative we know.
    Ignores a leading 'if/else if/elif/when/while/unless' and trailing 'then'.
    """
    if not text:
        return None
    s = text.strip()
    s = re.sub(r"^(?:else\s*if|elif|if|when|while|unless)\s+", "", s, flags=re.IGNORECASE)
    s = _clean_tail(s)
    # "(n <= 1)" -> "n <= 1"
    while s.startswith("(") and s.endswith(")"):
        s = s[1:-1].strip()

    for pat, op in _PATTERNS:
        m = pat.match(s)
        if m:
            return (m.group(1), op, _coerce(m.group(2)))
    return None

# ---- Evaluation ----

_OPS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _resolve(value: Value, env: Mapping[str, Any]) -> Any:
    if isinstance(value, str) and value in env:
        return env[value]
    return value


def evaluate(comp: Comparative, env: Mapping[str, Any]) -> Optional[bool]:
    """
    True/False when the left side is bound in `env` and the operands compare;
    None when the comparison cannot be decided.
    """
    left, op, right = comp
    if left not in env:
        return None
    fn = _OPS.get(op)
    if fn is None:
        return None
    try:
        return bool(fn(env[left], _resolve(right, env)))
    except TypeError:
        return None
