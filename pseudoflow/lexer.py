# pseudoflow/lexer.py
# Classifies pseudocode lines into typed blocks with nesting.
# Blocks:
#   Block(content, indent_level, block_type, is_closing)
# Parsing never fails: anything unrecognized becomes a "process" block and the
# validator decides whether the program makes sense.

from __future__ import annotations
import re
from typing import List, Tuple

from .model import Block

# ------------------------------ Config ---------------------------------------

TERMINATOR = "::"
TAB_WIDTH = 4

# Ordered table: first match wins, default "process".
# Patterns run against the trimmed, lower-cased content.
KEYWORD_PATTERNS: List[Tuple[str, List[re.Pattern]]] = [
    ("start", [re.compile(r"^start$"), re.compile(r"^begin$"), re.compile(r"^initialize$")]),
    ("end", [re.compile(r"^end$"), re.compile(r"^stop$"), re.compile(r"^exit$")]),
    ("function-def", [re.compile(r"^(?:function|procedure|def)\s+\w+\s*\(")]),
    ("else-if", [re.compile(r"^else\s*if\b"), re.compile(r"^elif\b")]),
    ("condition", [re.compile(r"^if\s+"), re.compile(r"^else$")]),
    ("switch", [re.compile(r"^switch\b"), re.compile(r"^select\b")]),
    ("case", [re.compile(r"^case\b"), re.compile(r"^default\b")]),
    ("loop", [
        re.compile(r"^while\s+"), re.compile(r"^for\s+"), re.compile(r"^do\b"),
        re.compile(r"^repeat\b"), re.compile(r"^loop\b"),
    ]),
    ("input", [
        re.compile(r"^input\s+"), re.compile(r"^read\s+"), re.compile(r"^get\s+"),
        re.compile(r"^scan"), re.compile(r"^enter\b"),
    ]),
    ("output", [
        re.compile(r"^output\s+"), re.compile(r"^print\s+"), re.compile(r"^display\s+"),
        re.compile(r"^show\s+"), re.compile(r"^write"),
    ]),
    ("return", [re.compile(r"^return\b")]),
    ("function", [
        re.compile(r"^function\s+"), re.compile(r"^procedure\s+"),
        re.compile(r"^call\s+"), re.compile(r"^invoke\b"), re.compile(r"^execute\s+"),
    ]),
    ("comment", [re.compile(r"^//"), re.compile(r"^#"), re.compile(r"^comment:")]),
    ("connector", [
        re.compile(r"^goto\s+"), re.compile(r"^jump\s+"),
        re.compile(r"^continue$"), re.compile(r"^break$"),
    ]),
]

# ------------------------------ Patterns -------------------------------------

CLOSING_RE = re.compile(r"^(?:else|end|case|default)\b", re.IGNORECASE)

# Lines that share their opening construct's level instead of nesting under it.
BRANCH_LINE_RE = re.compile(r"^(?:else|case|default)\b", re.IGNORECASE)

LEADING_WS_RE = re.compile(r"^([ \t]*)")

# --------------------------- Helpers -----------------------------------------

def _indent_width(raw: str) -> int:
    m = LEADING_WS_RE.match(raw)
    lead = m.group(1) if m else ""
    return len(lead.replace("\t", " " * TAB_WIDTH))


def strip_terminator(text: str) -> str:
    """Drop the optional trailing '::' structural marker."""
    s = text.strip()
    if s.endswith(TERMINATOR):
        s = s[: -len(TERMINATOR)].rstrip()
    return s


def detect_block_type(line: str) -> str:
    s = (line or "").strip().lower()
    for block_type, patterns in KEYWORD_PATTERNS:
        for pat in patterns:
            if pat.search(s):
                return block_type
    return "process"


def is_closing_line(content: str) -> bool:
    return bool(CLOSING_RE.match((content or "").strip()))

# ------------------------------ Main lexer -----------------------------------

def classify_lines(text: str) -> Tuple[Block, ...]:
    """
    Raw text -> ordered blocks. Blank lines are skipped.

    Nesting uses a stack of (width, level) pairs: a wider line pushes one
    level deeper, a narrower line pops back to the entry it fits. An
    else/case/default line that is indented past its opener (the usual way
    cases sit under a switch) pushes its width at the opener's level, so
    branch lines always share the level of the construct they belong to.
    """
    blocks: List[Block] = []
    stack: List[Tuple[int, int]] = [(0, 0)]

    for raw in (text or "").splitlines():
        if not raw.strip():
            continue

        width = _indent_width(raw)
        content = strip_terminator(raw)
        if not content:
            continue

        while len(stack) > 1 and width < stack[-1][0]:
            stack.pop()
        top_width, top_level = stack[-1]
        if width > top_width:
            branch = bool(BRANCH_LINE_RE.match(content))
            stack.append((width, top_level if branch else top_level + 1))

        blocks.append(Block(
            content=content,
            indent_level=stack[-1][1],
            block_type=detect_block_type(content),
            is_closing=is_closing_line(content),
        ))

    return tuple(blocks)
