# pseudoflow/pipeline.py
# Source text -> FlowProgram, in one synchronous batch:
#   extract functions -> classify -> synthesize implicit else -> tag recursive
#   calls -> build graphs (main + each function) -> validate
# Every call rebuilds everything from scratch.

from __future__ import annotations
import logging
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional, Sequence, Set, Tuple, Union

from .cfg import build_graph
from .functions import extract_functions
from .lexer import classify_lines
from .model import Block, FlowProgram, FunctionDefinition
from .names import callee_of, normalize_name
from .recursion import PatternScorer
from .synthesizer import synthesize_implicit_else
from .validator import validate

log = logging.getLogger(__name__)


def tag_recursive_calls(blocks: Sequence[Block], recursive: Set[str]) -> Tuple[Block, ...]:
    """Marks call blocks with whether their callee is a recursive function."""
    out = []
    for b in blocks:
        if b.block_type == "function":
            callee = callee_of(b.content)
            b = replace(b, is_recursive_call=normalize_name(callee) in recursive if callee else False)
        out.append(b)
    return tuple(out)


def recursive_names(functions: Iterable[FunctionDefinition]) -> Set[str]:
    return {normalize_name(fn.name) for fn in functions if fn.recursion and fn.recursion.is_recursive}


def compile_pseudocode(text: str, *, scorer: Optional[PatternScorer] = None) -> FlowProgram:
    extraction = extract_functions(text, scorer=scorer)
    recursive = recursive_names(extraction.functions)

    main_blocks = tag_recursive_calls(
        synthesize_implicit_else(classify_lines(extraction.main_flow)), recursive
    )
    main = build_graph(main_blocks)

    functions = []
    for fn in extraction.functions:
        body = tag_recursive_calls(fn.body, recursive)
        graph = build_graph(body, function_name=fn.name)
        functions.append(replace(fn, body=graph.blocks, edges=graph.edges))

    validation = validate(main.blocks, functions)
    log.debug("compiled: %d main blocks, %d functions, %d errors, %d warnings",
              len(main.blocks), len(functions), len(validation.errors), len(validation.warnings))
    return FlowProgram(source=text, main=main, functions=tuple(functions), validation=validation)


def compile_file(path: Union[str, Path], *, scorer: Optional[PatternScorer] = None) -> FlowProgram:
    return compile_pseudocode(Path(path).read_text(encoding="utf-8"), scorer=scorer)
