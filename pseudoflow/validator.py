# pseudoflow/validator.py
# Structural and recursion-soundness checks (never raises unless asked to).
# Goals:
# - Report missing START/END and unclosed constructs as errors.
# - Loop-without-exit and recursion style concerns are warnings, not errors.
# - Messages name the function they come from.

from __future__ import annotations
import re
from typing import List, Optional, Sequence, Tuple

from .model import Block, FunctionDefinition, RecursionMetadata, ValidationResult
from .structure import is_if_end_marker, is_open_condition, scan_loop

# ---- Config ----

LOOP_EXIT_WINDOW = 9
LOOP_EXIT_RE = re.compile(
    r"\bbreak\b|\bcontinue\b|\bincrement\b|\bdecrement\b|\+\+|--|\+=|-=|[+-]\s*1\b",
    re.IGNORECASE,
)
CONVERGING_TRANSFORMS = ("decrement", "increment", "divide", "property-access")


class StructuralError(RuntimeError):
    """Raised by verify_or_raise when structural errors are present."""

    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        super().__init__("Structural validation failed:\n- " + "\n- ".join(self.errors))


# ---------------------------- structural --------------------------------------

def _check_start_end(blocks: Sequence[Block], errs: List[str]) -> None:
    starts = sum(1 for b in blocks if b.block_type == "start")
    ends = sum(1 for b in blocks if b.block_type == "end")
    if starts == 0:
        errs.append("Missing START block")
    elif starts > 1:
        errs.append(f"Multiple START blocks ({starts}); exactly one is required")
    if ends == 0:
        errs.append("Missing END block")
    elif ends > 1:
        errs.append(f"Multiple END blocks ({ends}); exactly one is required")


def _check_conditions(blocks: Sequence[Block], errs: List[str], where: str = "") -> None:
    open_count = 0
    for b in blocks:
        if is_open_condition(b):
            open_count += 1
        elif is_if_end_marker(b):
            open_count -= 1
    if open_count > 0:
        errs.append(f"{where}{open_count} unclosed conditional(s): missing 'End if'")
    elif open_count < 0:
        errs.append(f"{where}{-open_count} 'End if' marker(s) without a matching 'If'")


def _check_loops(blocks: Sequence[Block], warns: List[str], where: str = "") -> None:
    unclosed = 0
    for i, b in enumerate(blocks):
        if b.block_type != "loop":
            continue
        unclosed += 1
        if scan_loop(blocks, i).close is not None:
            unclosed -= 1

        window = blocks[i + 1: i + 1 + LOOP_EXIT_WINDOW]
        texts = [b.content] + [w.content for w in window]
        if not any(LOOP_EXIT_RE.search(t) for t in texts):
            warns.append(f"{where}Loop '{b.content}' (block {i}) may never exit: "
                         f"no break/continue/increment/decrement nearby")
    if unclosed:
        warns.append(f"{where}{unclosed} unclosed loop(s)")


def check_structure(blocks: Sequence[Block], *, require_start_end: bool = True,
                    where: str = "") -> Tuple[List[str], List[str]]:
    errs: List[str] = []
    warns: List[str] = []
    if require_start_end:
        _check_start_end(blocks, errs)
    _check_conditions(blocks, errs, where)
    _check_loops(blocks, warns, where)
    return errs, warns

# ---------------------------- recursion ---------------------------------------

def check_recursion(name: str, meta: Optional[RecursionMetadata]) -> Tuple[List[str], List[str]]:
    errs: List[str] = []
    warns: List[str] = []
    if meta is None or not meta.is_recursive:
        return errs, warns
    where = f"Function '{name}': "

    if not meta.base_cases:
        errs.append(f"{where}recursive function has no base case (infinite recursion)")
    if not meta.call_points:
        errs.append(f"{where}marked recursive but no recursive call was found")

    for k, bc in enumerate(meta.base_cases, 1):
        if not bc.condition:
            warns.append(f"{where}base case {k} has no condition")
        if bc.exit_type == "empty" and not bc.return_value:
            warns.append(f"{where}base case {k} returns no value")

    for k, rc in enumerate(meta.recursive_cases, 1):
        if not rc.transformations:
            warns.append(f"{where}recursive case {k} ('{rc.call_expression}') does not change its "
                         f"parameters; it may never terminate")
        elif not any(t.transformation_type in CONVERGING_TRANSFORMS for t in rc.transformations):
            warns.append(f"{where}recursive case {k} ('{rc.call_expression}') has no parameter "
                         f"moving toward a base case")

    if meta.recursion_type == "tail":
        warns.append(f"{where}tail recursion could be written as a loop")
    elif meta.recursion_type == "mutual":
        warns.append(f"{where}mutual recursion: make sure every partner function has a base case")
    return errs, warns

# ---------------------------- entry points ------------------------------------

def validate(blocks: Sequence[Block], functions: Sequence[FunctionDefinition] = ()) -> ValidationResult:
    """
    Main-flow blocks must have one START and one END; function bodies only
    get the conditional/loop checks plus recursion soundness.
    """
    errs, warns = check_structure(blocks)
    for fn in functions:
        where = f"Function '{fn.name}': "
        fe, fw = check_structure(fn.body, require_start_end=False, where=where)
        re_, rw = check_recursion(fn.name, fn.recursion)
        errs.extend(fe + re_)
        warns.extend(fw + rw)
    return ValidationResult(is_valid=not errs, errors=errs, warnings=warns)


def verify_or_raise(blocks: Sequence[Block], functions: Sequence[FunctionDefinition] = ()) -> ValidationResult:
    res = validate(blocks, functions)
    if res.errors:
        raise StructuralError(res.errors)
    return res
