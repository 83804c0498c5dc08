# pseudoflow/synthesizer.py
# Inserts an "implicit-else" block for every if that has no else/else-if of
# its own, so each decision has two resolvable outcomes before graph building.

from __future__ import annotations
from typing import Dict, List, Sequence, Tuple

from .model import Block
from .structure import is_open_condition, scan_conditional

IMPLICIT_ELSE_LABEL = "No"


def synthesize_implicit_else(blocks: Sequence[Block]) -> Tuple[Block, ...]:
    """
    Returns a new block tuple. The synthetic block sits immediately before the
    if's end marker, at the if's level. Running it twice changes nothing.
    """
    inserts: Dict[int, List[Block]] = {}
    for i, block in enumerate(blocks):
        if not is_open_condition(block):
            continue
        bounds = scan_conditional(blocks, i)
        if bounds.branches:
            continue
        at = bounds.end if bounds.end is not None else len(blocks)
        inserts.setdefault(at, []).append(Block(
            content=IMPLICIT_ELSE_LABEL,
            indent_level=block.indent_level,
            block_type="implicit-else",
            is_closing=True,
        ))

    if not inserts:
        return tuple(blocks)

    out: List[Block] = []
    for i in range(len(blocks) + 1):
        # several ifs can end on the same block: innermost first
        for synthetic in sorted(inserts.get(i, []), key=lambda b: -b.indent_level):
            out.append(synthetic)
        if i < len(blocks):
            out.append(blocks[i])
    return tuple(out)
