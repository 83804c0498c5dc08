# pseudoflow/__init__.py
# Pseudocode -> flow graph compiler and step-through simulator.

from .engine import EngineFault, EngineOptions, ExecutionEngine, ExecutionState, transition
from .export import to_document, to_dot, validate_document
from .lexer import classify_lines, detect_block_type
from .model import Block, Connection, FlowGraph, FlowProgram, FunctionDefinition, ValidationResult
from .oracle import ComparisonOracle, DecisionOracle, FixedOracle, RandomOracle, ScriptedOracle
from .pipeline import compile_file, compile_pseudocode
from .scheduler import AsyncioScheduler, ManualScheduler, SchedulerError
from .validator import StructuralError, validate, verify_or_raise

__version__ = "0.1.0"
