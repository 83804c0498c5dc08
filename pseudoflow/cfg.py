# pseudoflow/cfg.py
# Typed blocks -> directed edges (the flowchart topology).
#
# One forward pass with a stack of open contexts (if / switch branches, loops).
# Construct extents come from pseudoflow.structure so the graph agrees with the
# synthesizer and the validator about where each construct ends.
#
# Edge rules per block:
#   condition / else-if  yes -> next block, no -> next branch line (or the end)
#   else / case          default -> next block
#   implicit-else        no -> the conditional's end
#   loop                 default -> next block; last body block gets a loop-back
#   switch               one labelled "case" edge per case line
#   return               in a branch: default -> the branch's end (+ recursive
#                        edge to the first condition when it calls itself)
#   end                  none
#   anything else        default -> next block, or the conditional's end when
#                        it is the last block of its branch
#
# Inside a loop body, a non-return jump past the body (a branch end found by
# indentation) goes back to the loop block instead, typed loop-back when plain.

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .model import Block, Connection, FlowGraph
from .recursion import find_calls
from .structure import (
    ConditionalBounds,
    LoopBounds,
    is_branch_line,
    is_open_condition,
    scan_conditional,
    scan_loop,
    scan_switch,
)

log = logging.getLogger(__name__)


@dataclass
class _Context:
    kind: str                        # "if" | "switch" | "loop"
    start: int
    boundary: Optional[int]          # index at which the context closes
    bounds: Optional[ConditionalBounds] = None
    loop: Optional[LoopBounds] = None

    @property
    def end(self) -> Optional[int]:
        return self.bounds.end if self.bounds is not None else None


class GraphBuilder:
    def __init__(self, blocks: Sequence[Block], function_name: Optional[str] = None):
        self.blocks = tuple(blocks)
        self.function_name = function_name
        self.n = len(self.blocks)
        self.edges: List[Connection] = []
        self.stack: List[_Context] = []
        self.pending: Dict[int, List[Connection]] = {}

        # construct extents, computed once up front
        self.conditionals: Dict[int, ConditionalBounds] = {}
        self.switches: Dict[int, ConditionalBounds] = {}
        self.loops: Dict[int, LoopBounds] = {}
        self.owner: Dict[int, ConditionalBounds] = {}
        for i, b in enumerate(self.blocks):
            if is_open_condition(b):
                bounds = scan_conditional(self.blocks, i)
                self.conditionals[i] = bounds
                for br in bounds.branches:
                    self.owner.setdefault(br, bounds)
            elif b.block_type == "switch":
                bounds = scan_switch(self.blocks, i)
                self.switches[i] = bounds
                for c in bounds.branches:
                    self.owner.setdefault(c, bounds)
            elif b.block_type == "loop":
                self.loops[i] = scan_loop(self.blocks, i)

        self.first_condition: Optional[int] = min(self.conditionals) if self.conditionals else None

    # ---- helpers ----

    def _emit(self, src: int, dst: Optional[int], etype: str = "default", *,
              depth: Optional[int] = None, label: Optional[str] = None, stay_in_loop: bool = True) -> None:
        if dst is None or not (0 <= dst < self.n):
            return
        if stay_in_loop:
            back = self._loop_back_for(src, dst)
            if back is not None:
                dst, loop_depth = back
                if etype == "default":
                    etype, depth = "loop-back", loop_depth
        self.edges.append(Connection(src, dst, etype, depth, label))

    def _loop_back_for(self, src: int, dst: int) -> Optional[Tuple[int, int]]:
        """(loop block, depth) when a jump from `src` would leave the innermost loop body early."""
        loops = [ctx.loop for ctx in self.stack if ctx.kind == "loop" and ctx.loop is not None]
        for depth in range(len(loops) - 1, -1, -1):
            lb = loops[depth]
            if lb.close is None:
                continue
            if dst < lb.close or src == lb.end:
                return None
            return lb.start, depth
        return None

    def _resolve(self, target: Optional[int]) -> Optional[int]:
        """Forward a target that lands on a branch boundary to that construct's end."""
        for ctx in reversed(self.stack):
            if ctx.kind == "loop" or target is None:
                continue
            if ctx.boundary == target and ctx.bounds is not None and target != ctx.end:
                target = ctx.end
        return target

    def _enclosing_branch(self) -> Optional[_Context]:
        for ctx in reversed(self.stack):
            if ctx.kind in ("if", "switch"):
                return ctx
        return None

    def _loop_depth(self) -> int:
        return sum(1 for ctx in self.stack if ctx.kind == "loop")

    def _calls_itself(self, content: str) -> bool:
        return bool(self.function_name) and bool(find_calls(content, self.function_name))

    # ---- per-block rules ----

    def _condition(self, i: int) -> None:
        bounds = self.conditionals[i]
        first = bounds.next_boundary(i)
        end = self._resolve(bounds.end)
        self._emit(i, end if i + 1 == first else i + 1, "yes")
        self._emit(i, end if first == bounds.end else first, "no")
        self.stack.append(_Context("if", i, first, bounds=bounds))

    def _branch(self, i: int, block: Block) -> None:
        bounds = self.owner.get(i)
        if bounds is not None:
            kind = "switch" if bounds.start in self.switches else "if"
            self.stack.append(_Context(kind, i, bounds.next_boundary(i), bounds=bounds))
            end = self._resolve(bounds.end)
        else:
            end = None

        if block.block_type == "implicit-else":
            self._emit(i, end, "no")
        elif block.block_type == "else-if":
            nxt = bounds.next_boundary(i) if bounds is not None else None
            self._emit(i, self._resolve(i + 1), "yes")
            self._emit(i, end if bounds is None or nxt == bounds.end else nxt, "no")
        else:
            self._emit(i, self._resolve(i + 1))

    def _switch(self, i: int) -> None:
        bounds = self.switches[i]
        if bounds.branches:
            for c in bounds.branches:
                self._emit(i, c, "case", label=self.blocks[c].content)
        else:
            self._emit(i, i + 1)
        first = bounds.next_boundary(i)
        self.stack.append(_Context("switch", i, first, bounds=bounds))

    def _loop(self, i: int) -> None:
        bounds = self.loops[i]
        self._emit(i, i + 1)
        if bounds.end is not None:
            self.pending.setdefault(bounds.end, []).append(
                Connection(bounds.end, i, "loop-back", self._loop_depth())
            )
        self.stack.append(_Context("loop", i, bounds.close, loop=bounds))

    def _return(self, i: int, block: Block) -> None:
        ctx = self._enclosing_branch()
        if ctx is None:
            self._emit(i, i + 1, stay_in_loop=False)
            return
        self._emit(i, self._resolve(ctx.end) if ctx.end is not None else self._resolve(i + 1),
                   stay_in_loop=False)
        if self._calls_itself(block.content) and self.first_condition is not None:
            self._emit(i, self.first_condition, "recursive")

    # ---- main pass ----

    def build(self) -> FlowGraph:
        for i, block in enumerate(self.blocks):
            self.stack = [c for c in self.stack if c.boundary is None or c.boundary > i]

            btype = block.block_type
            if btype == "end":
                pass
            elif is_open_condition(block):
                self._condition(i)
            elif is_branch_line(block) or (btype == "case" and i in self.owner):
                self._branch(i, block)
            elif btype == "switch":
                self._switch(i)
            elif btype == "loop":
                self._loop(i)
            elif btype == "return":
                self._return(i, block)
            else:
                self._emit(i, self._resolve(i + 1))

            for back in self.pending.pop(i, []):
                self.edges.append(back)

        log.debug("graph%s: %d blocks, %d edges",
                  f" {self.function_name}" if self.function_name else "", self.n, len(self.edges))
        return FlowGraph(self.blocks, tuple(self.edges))


def build_graph(blocks: Sequence[Block], function_name: Optional[str] = None) -> FlowGraph:
    return GraphBuilder(blocks, function_name).build()
