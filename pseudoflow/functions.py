# pseudoflow/functions.py
# Splits a program into its main flow and its function definitions.
#
#   Function factorial(n)::        <- header (Function | Procedure | Def)
#       If n <= 1::                <- body: every line at least as deep as
#           Return 1::                the first body line
#       ...
#   End function::                 <- optional, consumed with the body
#
# Bodies are captured flat (a header inside a body is just a body line).

from __future__ import annotations
import logging
import re
import textwrap
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .lexer import TAB_WIDTH, classify_lines
from .model import Block, FunctionDefinition
from .recursion import PatternScorer, analyze_recursion, calls_function
from .synthesizer import synthesize_implicit_else

log = logging.getLogger(__name__)

# ---- Patterns ----

HEADER_RE = re.compile(
    r"^\s*(?:function|procedure|def)\s+([A-Za-z_]\w*)\s*\(([^)]*)\)\s*(?:::)?\s*$",
    re.IGNORECASE,
)
FUNCTION_END_RE = re.compile(r"^\s*end\s*(?:function|procedure|def)\b", re.IGNORECASE)

PARAMETER_PREFIX = "Parameter: "


@dataclass(frozen=True)
class ExtractionResult:
    main_flow: str
    functions: Tuple[FunctionDefinition, ...]


@dataclass
class _Captured:
    name: str
    parameters: List[str]
    body_lines: List[str]
    header_line: int


def _width(raw: str) -> int:
    expanded = raw.replace("\t", " " * TAB_WIDTH)
    return len(expanded) - len(expanded.lstrip())


def parse_header(line: str) -> Optional[Tuple[str, List[str]]]:
    """'Function sum(a, b)::' -> ('sum', ['a', 'b'])"""
    m = HEADER_RE.match(line or "")
    if not m:
        return None
    params = [p.strip() for p in m.group(2).split(",") if p.strip()]
    return m.group(1), params


def _capture(lines: Sequence[str]) -> Tuple[List[str], List[_Captured]]:
    main: List[str] = []
    captured: List[_Captured] = []
    i = 0
    while i < len(lines):
        header = parse_header(lines[i])
        if header is None:
            main.append(lines[i])
            i += 1
            continue

        name, params = header
        header_width = _width(lines[i])
        start = i
        i += 1
        body: List[str] = []
        base: Optional[int] = None
        while i < len(lines):
            raw = lines[i]
            if not raw.strip():
                body.append(raw)
                i += 1
                continue
            w = _width(raw)
            if base is None:
                if w <= header_width:
                    break
                base = w
            if w < base:
                break
            body.append(raw)
            i += 1
        if i < len(lines) and FUNCTION_END_RE.match(lines[i]) and _width(lines[i]) <= header_width:
            i += 1

        while body and not body[-1].strip():
            body.pop()
        captured.append(_Captured(name, params, body, start))

    return main, captured


def _call_graph(captured: Sequence[_Captured]) -> Dict[str, Set[str]]:
    graph: Dict[str, Set[str]] = {}
    for fn in captured:
        text = "\n".join(fn.body_lines)
        graph[fn.name] = {
            other.name for other in captured
            if other.name != fn.name and calls_function(text, other.name)
        }
    return graph


def _reaches(graph: Dict[str, Set[str]], src: str, dst: str) -> bool:
    seen: Set[str] = set()
    todo = [src]
    while todo:
        cur = todo.pop()
        if cur == dst:
            return True
        if cur in seen:
            continue
        seen.add(cur)
        todo.extend(graph.get(cur, ()))
    return False


def mutual_partners(graph: Dict[str, Set[str]], name: str) -> List[str]:
    """Functions `name` calls directly that eventually call back into `name`."""
    return sorted(g for g in graph.get(name, ()) if _reaches(graph, g, name))


def build_body(parameters: Sequence[str], body_lines: Sequence[str]) -> Tuple[Block, ...]:
    text = textwrap.dedent("\n".join(body_lines))
    params = tuple(Block(f"{PARAMETER_PREFIX}{p}", 0, "input") for p in parameters)
    return params + synthesize_implicit_else(classify_lines(text))


def extract_functions(text: str, *, scorer: Optional[PatternScorer] = None) -> ExtractionResult:
    """
    Returns the main flow text (every line no function claimed) and the
    function definitions with classified bodies and recursion metadata.
    """
    main, captured = _capture((text or "").splitlines())
    graph = _call_graph(captured)

    functions: List[FunctionDefinition] = []
    for fn in captured:
        raw_body = textwrap.dedent("\n".join(fn.body_lines)).splitlines()
        recursion = analyze_recursion(
            fn.name, fn.parameters, raw_body,
            peers=mutual_partners(graph, fn.name),
            scorer=scorer,
        )
        functions.append(FunctionDefinition(
            name=fn.name,
            parameters=list(fn.parameters),
            body=build_body(fn.parameters, fn.body_lines),
            recursion=recursion,
            source_line=fn.header_line,
        ))
        log.debug("extracted function %s(%s): %d body lines", fn.name, ", ".join(fn.parameters), len(fn.body_lines))

    return ExtractionResult(main_flow="\n".join(main), functions=tuple(functions))
