# pseudoflow/structure.py
# Locates the extent of if/switch/loop constructs inside a block sequence.
# Shared by the implicit-else synthesizer, the graph builder and the validator
# so all three agree on where a construct ends.
#
# Conditionals: the explicit "End if" scan is canonical (nested ifs tracked with
# a depth counter); indentation is only the fallback for programs without end
# markers.

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from .model import Block

IF_END_RE = re.compile(r"^end\s*(?:if|condition)\b", re.IGNORECASE)
SWITCH_END_RE = re.compile(r"^end\s*(?:switch|select)\b", re.IGNORECASE)


@dataclass(frozen=True)
class ConditionalBounds:
    start: int
    branches: Tuple[int, ...]   # else-if / else / implicit-else lines, in order
    end: Optional[int]          # end marker (or first block after the construct)
    explicit: bool = False      # closed by an "End if" marker

    def next_boundary(self, index: int) -> Optional[int]:
        """First branch line after `index`, else the end."""
        for b in self.branches:
            if b > index:
                return b
        return self.end


@dataclass(frozen=True)
class LoopBounds:
    start: int
    end: Optional[int]      # last body block (carries the loop-back edge)
    close: Optional[int]    # first block after the body


# ---------------------------- predicates -------------------------------------

def is_open_condition(block: Block) -> bool:
    return block.block_type == "condition" and not block.is_closing


def is_else(block: Block) -> bool:
    return block.block_type == "condition" and block.is_closing


def is_branch_line(block: Block) -> bool:
    return block.block_type in ("else-if", "implicit-else") or is_else(block)


def is_if_end_marker(block: Block) -> bool:
    return block.block_type == "process" and bool(IF_END_RE.match(block.content))


def is_switch_end_marker(block: Block) -> bool:
    return block.block_type == "process" and bool(SWITCH_END_RE.match(block.content))

# ---------------------------- scanners ---------------------------------------

def scan_conditional(blocks: Sequence[Block], start: int) -> ConditionalBounds:
    base = blocks[start].indent_level
    n = len(blocks)

    depth = 0
    branches = []
    for j in range(start + 1, n):
        b = blocks[j]
        if b.block_type == "end" or b.indent_level < base:
            break
        if is_open_condition(b):
            depth += 1
            continue
        if is_if_end_marker(b):
            if depth == 0:
                return ConditionalBounds(start, tuple(branches), j, True)
            depth -= 1
            continue
        if depth == 0 and is_branch_line(b):
            branches.append(j)

    # no explicit marker: the construct ends at the first block that comes
    # back to (or above) the condition's level and is not one of its branches
    branches = []
    for j in range(start + 1, n):
        b = blocks[j]
        if b.indent_level < base:
            return ConditionalBounds(start, tuple(branches), j)
        if b.block_type == "end":
            return ConditionalBounds(start, tuple(branches), j)
        if b.indent_level == base:
            if is_branch_line(b):
                branches.append(j)
                continue
            return ConditionalBounds(start, tuple(branches), j)
    return ConditionalBounds(start, tuple(branches), None)


def scan_switch(blocks: Sequence[Block], start: int) -> ConditionalBounds:
    """Switch bounds; `branches` holds the case lines."""
    base = blocks[start].indent_level
    n = len(blocks)

    depth = 0
    cases = []
    for j in range(start + 1, n):
        b = blocks[j]
        if b.block_type == "end" or b.indent_level < base:
            break
        if b.block_type == "switch":
            depth += 1
            continue
        if is_switch_end_marker(b):
            if depth == 0:
                return ConditionalBounds(start, tuple(cases), j, True)
            depth -= 1
            continue
        if depth == 0 and b.block_type == "case":
            cases.append(j)

    cases = []
    case_level: Optional[int] = None
    for j in range(start + 1, n):
        b = blocks[j]
        if b.block_type == "end" or b.indent_level < base:
            return ConditionalBounds(start, tuple(cases), j)
        if b.block_type == "case" and (case_level is None or b.indent_level == case_level):
            case_level = b.indent_level
            cases.append(j)
            continue
        if b.indent_level == base:
            return ConditionalBounds(start, tuple(cases), j)
    return ConditionalBounds(start, tuple(cases), None)


def scan_loop(blocks: Sequence[Block], start: int) -> LoopBounds:
    base = blocks[start].indent_level
    last: Optional[int] = None
    for j in range(start + 1, len(blocks)):
        b = blocks[j]
        if b.indent_level <= base or b.block_type == "end":
            return LoopBounds(start, last, j)
        last = j
    return LoopBounds(start, last, None)
