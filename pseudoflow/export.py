# pseudoflow/export.py
# Hands the compiled program to outside collaborators:
#   to_document      -> JSON-ready dict (blocks, edges, functions, validation)
#   validate_document-> jsonschema check against schemas/flowgraph.schema.json
#   to_dot           -> Graphviz DOT text for a single graph

from __future__ import annotations
import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator, ValidationError

from .model import FlowGraph, FlowProgram

DOCUMENT_VERSION = "1.0"
SCHEMA_PATH = Path(__file__).resolve().parent / "schemas" / "flowgraph.schema.json"

_SHAPES = {
    "start": "ellipse",
    "end": "ellipse",
    "condition": "diamond",
    "else-if": "diamond",
    "implicit-else": "diamond",
    "switch": "diamond",
    "loop": "hexagon",
    "input": "parallelogram",
    "output": "parallelogram",
    "function": "box",
    "function-def": "box",
    "comment": "note",
    "connector": "circle",
}


def to_document(program: FlowProgram) -> Dict[str, Any]:
    return {
        "version": DOCUMENT_VERSION,
        "blocks": [b.to_dict() for b in program.main.blocks],
        "edges": [e.to_dict() for e in program.main.edges],
        "functions": [fn.to_dict() for fn in program.functions],
        "validation": program.validation.to_dict(),
    }


@lru_cache(maxsize=1)
def load_schema() -> Dict[str, Any]:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def _check_edge_indices(where: str, blocks: List[Any], edges: List[Dict[str, Any]]) -> None:
    n = len(blocks)
    for k, e in enumerate(edges):
        if not (0 <= e["from"] < n and 0 <= e["to"] < n):
            raise ValidationError(f"{where} edge {k} ({e['from']} -> {e['to']}) is outside 0..{n - 1}")


def validate_document(doc: Dict[str, Any]) -> None:
    """Raises jsonschema.ValidationError when `doc` is not a valid document."""
    Draft202012Validator(load_schema()).validate(doc)
    # edge endpoints must index into their own block list
    _check_edge_indices("main", doc["blocks"], doc["edges"])
    for fn in doc["functions"]:
        _check_edge_indices(f"function '{fn['name']}'", fn["blocks"], fn["edges"])


def to_dot(graph: FlowGraph, name: Optional[str] = None) -> str:
    lines = [f"digraph {json.dumps(name or 'flow')} {{", "  node [fontname=\"Helvetica\"];"]
    for i, b in enumerate(graph.blocks):
        shape = _SHAPES.get(b.block_type, "box")
        extra = ", peripheries=2" if b.block_type == "function" else ""
        if b.is_recursive_call:
            extra += ", style=bold"
        lines.append(f"  n{i} [label={json.dumps(b.content)}, shape={shape}{extra}];")
    for e in graph.edges:
        attrs = []
        if e.type in ("yes", "no"):
            attrs.append(f"label={json.dumps(e.type)}")
        elif e.label:
            attrs.append(f"label={json.dumps(e.label)}")
        if e.type == "loop-back":
            attrs.append("style=dashed")
        elif e.type == "recursive":
            attrs.append("style=dotted")
        suffix = f" [{', '.join(attrs)}]" if attrs else ""
        lines.append(f"  n{e.from_index} -> n{e.to_index}{suffix};")
    lines.append("}")
    return "\n".join(lines)
