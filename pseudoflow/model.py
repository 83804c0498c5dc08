# pseudoflow/model.py
# Plain data carried between the pipeline stages.
# Everything here is rebuilt wholesale on every parse; index in the owning
# sequence is a block's only identity.

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# ----------------------------
# Vocabularies
# ----------------------------

BLOCK_TYPES = (
    "start", "end", "process", "condition", "else-if", "switch", "case",
    "loop", "input", "output", "function", "function-def", "return",
    "comment", "connector", "implicit-else",
)

EDGE_TYPES = ("default", "yes", "no", "loop-back", "case", "recursive")

RECURSION_TYPES = ("linear", "tree", "tail", "mutual", "nested", "multiple")

PATTERN_TYPES = (
    "factorial", "fibonacci", "tree-traversal", "binary-search",
    "merge-sort", "quick-sort", "generic",
)

TRANSFORMATION_TYPES = ("decrement", "increment", "divide", "multiply", "property-access", "other")

EXIT_TYPES = ("return", "break", "continue", "empty")

OPERATIONS = ("single", "add", "multiply", "combine", "other")

# ----------------------------
# Blocks and edges
# ----------------------------

@dataclass(frozen=True)
class Block:
    content: str
    indent_level: int
    block_type: str
    is_closing: bool = False
    is_recursive_call: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "content": self.content,
            "indentLevel": self.indent_level,
            "blockType": self.block_type,
            "isClosing": self.is_closing,
        }
        if self.is_recursive_call is not None:
            out["isRecursiveCall"] = self.is_recursive_call
        return out


@dataclass(frozen=True)
class Connection:
    from_index: int
    to_index: int
    type: str = "default"
    depth: Optional[int] = None   # loop nesting, for loop-back offsets
    label: Optional[str] = None   # case labels

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"from": self.from_index, "to": self.to_index, "type": self.type}
        if self.depth is not None:
            out["depth"] = self.depth
        if self.label is not None:
            out["label"] = self.label
        return out


@dataclass(frozen=True)
class FlowGraph:
    blocks: Tuple[Block, ...] = ()
    edges: Tuple[Connection, ...] = ()

    def __len__(self) -> int:
        return len(self.blocks)

    def outgoing(self, index: int) -> List[Connection]:
        return [e for e in self.edges if e.from_index == index]

    def incoming(self, index: int) -> List[Connection]:
        return [e for e in self.edges if e.to_index == index]

    def find(self, block_type: str) -> Optional[int]:
        """Index of the first block of the given type, or None."""
        for i, b in enumerate(self.blocks):
            if b.block_type == block_type:
                return i
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "blocks": [b.to_dict() for b in self.blocks],
            "edges": [e.to_dict() for e in self.edges],
        }

# ----------------------------
# Recursion metadata
# ----------------------------

@dataclass
class ParameterTransformation:
    parameter_name: str
    original_value: str
    transformed_value: str
    transformation_type: str = "other"
    description: Optional[str] = None   # e.g. "n-1", "node.left"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameterName": self.parameter_name,
            "originalValue": self.original_value,
            "transformedValue": self.transformed_value,
            "transformationType": self.transformation_type,
            "description": self.description,
        }


@dataclass
class RecursiveCallPoint:
    line_index: int
    content: str
    parameters: List[str] = field(default_factory=list)
    is_base_case: bool = False
    callee: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lineIndex": self.line_index,
            "content": self.content,
            "parameters": list(self.parameters),
            "isBaseCase": self.is_base_case,
            "callee": self.callee,
        }


@dataclass
class BaseCase:
    condition: str
    return_value: Optional[str] = None
    exit_type: str = "return"
    comparison_operator: Optional[str] = None
    comparison_value: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "condition": self.condition,
            "returnValue": self.return_value,
            "exitType": self.exit_type,
            "comparisonOperator": self.comparison_operator,
            "comparisonValue": self.comparison_value,
        }


@dataclass
class RecursiveCase:
    call_expression: str
    parameters: List[str] = field(default_factory=list)
    transformations: List[ParameterTransformation] = field(default_factory=list)
    operation: str = "single"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "callExpression": self.call_expression,
            "parameters": list(self.parameters),
            "transformations": [t.to_dict() for t in self.transformations],
            "operation": self.operation,
        }


@dataclass
class RecursionPattern:
    type: str = "generic"
    confidence: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "confidence": self.confidence}


@dataclass
class RecursionMetadata:
    is_recursive: bool = False
    recursion_type: str = "linear"
    call_points: List[RecursiveCallPoint] = field(default_factory=list)
    pattern: Optional[RecursionPattern] = None
    base_cases: List[BaseCase] = field(default_factory=list)
    recursive_cases: List[RecursiveCase] = field(default_factory=list)
    max_depth_hint: Optional[int] = None
    depth_calculation: Optional[str] = None   # "n", "log(n)", "2^n"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isRecursive": self.is_recursive,
            "recursionType": self.recursion_type,
            "callPoints": [c.to_dict() for c in self.call_points],
            "pattern": self.pattern.to_dict() if self.pattern else None,
            "baseCases": [b.to_dict() for b in self.base_cases],
            "recursiveCases": [r.to_dict() for r in self.recursive_cases],
            "maxDepthHint": self.max_depth_hint,
            "depthCalculation": self.depth_calculation,
        }

# ----------------------------
# Functions, diagnostics, programs
# ----------------------------

@dataclass
class FunctionDefinition:
    name: str
    parameters: List[str] = field(default_factory=list)
    body: Tuple[Block, ...] = ()
    recursion: Optional[RecursionMetadata] = None
    source_line: int = 0                       # header line in the raw text
    edges: Tuple[Connection, ...] = ()

    @property
    def graph(self) -> FlowGraph:
        return FlowGraph(self.body, self.edges)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "parameters": list(self.parameters),
            "sourceLine": self.source_line,
            "blocks": [b.to_dict() for b in self.body],
            "edges": [e.to_dict() for e in self.edges],
            "recursion": self.recursion.to_dict() if self.recursion else None,
        }


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


@dataclass
class FlowProgram:
    source: str
    main: FlowGraph
    functions: Tuple[FunctionDefinition, ...] = ()
    validation: ValidationResult = field(default_factory=ValidationResult)

    def function(self, name: str) -> Optional[FunctionDefinition]:
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None
