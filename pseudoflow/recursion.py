# pseudoflow/recursion.py
# Heuristic recursion analysis over a function's raw body lines.
#
#   call points  -> which lines call the function (or its mutual partners)
#   pattern      -> keyword scoring behind the PatternScorer interface
#   cases        -> base / recursive cases per conditional branch
#   type + depth -> mutual | nested | tree | multiple | tail | linear, depth hint
#
# Everything here is string matching; nothing is evaluated.

from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .comparatives import parse_comparative
from .lexer import strip_terminator
from .model import (
    BaseCase,
    ParameterTransformation,
    RecursionMetadata,
    RecursionPattern,
    RecursiveCallPoint,
    RecursiveCase,
)
from .names import matching_paren, names_match, split_arguments
from .structure import IF_END_RE

log = logging.getLogger(__name__)

# ---- Patterns ----

_CALL_PREFIX_RE = re.compile(r"\b(?:call|invoke|execute)\s+$", re.IGNORECASE)
_OPEN_PAREN_RE = re.compile(r"\s*\(")
_COMMENT_RE = re.compile(r"^(?://|#|comment:)", re.IGNORECASE)
_OPENS_COND_RE = re.compile(r"^(?:if|else\s*if|elif)\b", re.IGNORECASE)
_IF_RE = re.compile(r"^if\b", re.IGNORECASE)
_ELIF_RE = re.compile(r"^(?:else\s*if|elif)\b", re.IGNORECASE)
_ELSE_RE = re.compile(r"^else$", re.IGNORECASE)
_RETURN_RE = re.compile(r"^return\b\s*(.*)$", re.IGNORECASE)
_EXIT_RE = re.compile(r"^(break|continue)\b", re.IGNORECASE)
_END_MARKER_RE = re.compile(r"^end\b", re.IGNORECASE)
_COND_HEAD_RE = re.compile(r"^(?:else\s*if|elif|if)\s+", re.IGNORECASE)
_COND_TAIL_RE = re.compile(r"\s+then$", re.IGNORECASE)

_TRANSFORMS: List[Tuple[str, re.Pattern]] = [
    ("decrement", re.compile(r"^([A-Za-z_]\w*)\s*-\s*(\d+)$")),
    ("increment", re.compile(r"^([A-Za-z_]\w*)\s*\+\s*(\d+)$")),
    ("divide", re.compile(r"^([A-Za-z_]\w*)\s*//?\s*(\d+)$")),
    ("multiply", re.compile(r"^([A-Za-z_]\w*)\s*\*\s*(\d+)$")),
    ("property-access", re.compile(r"^([A-Za-z_]\w*)\.(left|right|next|prev|parent|child)\b", re.IGNORECASE)),
]

_TREE_WORDS_RE = re.compile(r"\b(?:node|tree|left|right|child|children|leaf|root)\b", re.IGNORECASE)

_CONVERGING = ("decrement", "increment", "divide", "property-access")

# Vocabulary per pattern; a pattern's score is the fraction of its entries
# found in the lower-cased body.
DEFAULT_VOCABULARY: Dict[str, List[str]] = {
    "factorial": [r"factorial|fact\b", r"\bn\s*\*", r"\bn\s*-\s*1\b", r"\breturn\s+1\b", r"(?:<=|==|=)\s*[01]\b"],
    "fibonacci": [r"fib", r"\bn\s*-\s*1\b", r"\bn\s*-\s*2\b", r"\)\s*\+"],
    "tree-traversal": [r"\bnode\b", r"\bleft\b", r"\bright\b", r"\b(?:null|none|nil)\b", r"tree|visit|travers"],
    "binary-search": [r"binary|search", r"\bmid\b|middle", r"\blow\b", r"\bhigh\b", r"/\s*2"],
    "merge-sort": [r"merge", r"sort", r"\bmid\b|middle", r"/\s*2", r"\bleft\b|\bright\b"],
    "quick-sort": [r"quick|partition", r"sort", r"pivot", r"\blow\b", r"\bhigh\b"],
}

GENERIC_THRESHOLD = 0.3
GENERIC_CONFIDENCE = 0.5
DEPTH_MARGIN = 10
LOG_DEPTH_HINT = 10


# ============================================================================
# Pattern scoring
# ============================================================================

class PatternScorer:
    """Classifies a function body into one of the known recursion patterns."""

    def score(self, body_text: str) -> RecursionPattern:  # pragma: no cover - interface
        raise NotImplementedError


class KeywordPatternScorer(PatternScorer):
    def __init__(self, vocabulary: Optional[Dict[str, List[str]]] = None,
                 threshold: float = GENERIC_THRESHOLD):
        vocab = vocabulary if vocabulary is not None else DEFAULT_VOCABULARY
        self.vocabulary = {k: [re.compile(p) for p in v] for k, v in vocab.items()}
        self.threshold = threshold

    def score(self, body_text: str) -> RecursionPattern:
        text = (body_text or "").lower()
        best_type, best = "generic", 0.0
        for ptype, pats in self.vocabulary.items():
            if not pats:
                continue
            hits = sum(1 for p in pats if p.search(text))
            s = hits / len(pats)
            if s > best:
                best_type, best = ptype, s
        if best <= self.threshold:
            return RecursionPattern("generic", GENERIC_CONFIDENCE)
        return RecursionPattern(best_type, round(best, 3))


# ============================================================================
# Call detection
# ============================================================================

@dataclass(frozen=True)
class CallSite:
    start: int
    end: int
    callee: str
    args: Tuple[str, ...]


def find_calls(line: str, name: str) -> List[CallSite]:
    """
    Calls to `name` in one line: "call name(...)", "name(...)",
    "invoke name" / "execute name". Case-insensitive on the name.
    """
    if not line or not name:
        return []
    out: List[CallSite] = []
    pat = re.compile(r"(?<![\w.])" + re.escape(name) + r"\b", re.IGNORECASE)
    for m in pat.finditer(line):
        start = m.start()
        prefix = _CALL_PREFIX_RE.search(line[:start])
        if prefix:
            start = prefix.start()
        paren = _OPEN_PAREN_RE.match(line, m.end())
        if paren:
            close = matching_paren(line, paren.end() - 1)
            if close < 0:
                continue
            args = split_arguments(line[paren.end():close])
            out.append(CallSite(start, close + 1, name, tuple(args)))
        elif prefix:
            out.append(CallSite(start, m.end(), name, ()))
    return out


def calls_function(text: str, name: str) -> bool:
    return any(find_calls(line, name) for line in (text or "").splitlines())


# ============================================================================
# Transformations / operations
# ============================================================================

def classify_argument(arg: str, position: int, parameters: Sequence[str]) -> ParameterTransformation:
    a = arg.strip()
    for ttype, pat in _TRANSFORMS:
        m = pat.match(a)
        if m:
            pname = m.group(1)
            return ParameterTransformation(pname, pname, a, ttype, a.replace(" ", ""))
    pname = parameters[position] if position < len(parameters) else a
    return ParameterTransformation(pname, pname, a, "other", None)


def infer_operation(expression: str, sites: Sequence[CallSite]) -> str:
    rest = expression
    for s in sorted(sites, key=lambda s: -s.start):
        rest = rest[:s.start] + " " + rest[s.end:]
    if "+" in rest:
        return "add"
    if "*" in rest:
        return "multiply"
    if len(sites) > 1:
        return "combine"
    if re.search(r"[-/%]", rest):
        return "other"
    return "single"


# ============================================================================
# Analyzer
# ============================================================================

@dataclass
class _Line:
    index: int
    indent: int
    text: str


@dataclass
class _Branch:
    indent: int
    condition: str
    lines: List[_Line]


def _condition_text(head: str) -> str:
    if _ELSE_RE.match(head):
        return "else"
    s = _COND_HEAD_RE.sub("", head)
    return _COND_TAIL_RE.sub("", s).strip()


class RecursionAnalyzer:
    def __init__(self, name: str, parameters: Sequence[str], body_lines: Sequence[str], *,
                 peers: Sequence[str] = (), scorer: Optional[PatternScorer] = None):
        self.name = name
        self.parameters = list(parameters)
        self.peers = [p for p in peers if not names_match(p, name)]
        self.scorer = scorer or KeywordPatternScorer()
        self.lines: List[_Line] = []
        for i, raw in enumerate(body_lines):
            text = strip_terminator(raw)
            if text:
                expanded = raw.replace("\t", "    ")
                self.lines.append(_Line(i, len(expanded) - len(expanded.lstrip()), text))
        self.sites: Dict[int, List[CallSite]] = {}

    # ---- call points ----

    def _detect_call_points(self) -> List[RecursiveCallPoint]:
        points: List[RecursiveCallPoint] = []
        for pos, ln in enumerate(self.lines):
            if _COMMENT_RE.match(ln.text):
                continue
            sites: List[CallSite] = []
            for target in [self.name] + self.peers:
                sites.extend(find_calls(ln.text, target))
            if not sites:
                continue
            sites.sort(key=lambda s: s.start)
            self.sites[ln.index] = sites
            window = self.lines[max(0, pos - 3): pos + 1]
            guarded = any(_OPENS_COND_RE.match(w.text) for w in window)
            for s in sites:
                points.append(RecursiveCallPoint(
                    line_index=ln.index,
                    content=ln.text,
                    parameters=list(s.args),
                    is_base_case=guarded,
                    callee=s.callee,
                ))
        return points

    # ---- cases ----

    def _recursive_case(self, ln: _Line) -> RecursiveCase:
        sites = self.sites[ln.index]
        params: List[str] = []
        transforms: List[ParameterTransformation] = []
        for s in sites:
            params.extend(s.args)
            for k, arg in enumerate(s.args):
                transforms.append(classify_argument(arg, k, self.parameters))
        m = _RETURN_RE.match(ln.text)
        expr = ln.text
        if m:
            # re-run on the bare expression so spans line up
            expr = m.group(1)
            shifted = []
            for target in [self.name] + self.peers:
                shifted.extend(find_calls(expr, target))
            sites = shifted or sites
        return RecursiveCase(
            call_expression=expr.strip(),
            parameters=params,
            transformations=transforms,
            operation=infer_operation(expr, sites),
        )

    def _base_case(self, condition: str, ln: _Line) -> BaseCase:
        exit_m = _EXIT_RE.match(ln.text)
        if exit_m:
            exit_type, value = exit_m.group(1).lower(), None
        else:
            value = (_RETURN_RE.match(ln.text).group(1) or "").strip() or None
            exit_type = "return" if value is not None else "empty"
        op = cval = None
        comp = parse_comparative(condition) if condition and condition != "else" else None
        if comp:
            op = comp[1]
            cval = "null" if comp[2] is None else str(comp[2])
        return BaseCase(condition, value, exit_type, op, cval)

    def _close(self, branch: _Branch, base_cases: List[BaseCase], rec_cases: List[RecursiveCase]) -> None:
        for ln in branch.lines:
            if ln.index in self.sites:
                rec_cases.append(self._recursive_case(ln))
                return
        for ln in branch.lines:
            if _RETURN_RE.match(ln.text) or _EXIT_RE.match(ln.text):
                base_cases.append(self._base_case(branch.condition, ln))
                return

    def _extract_cases(self) -> Tuple[List[BaseCase], List[RecursiveCase]]:
        base_cases: List[BaseCase] = []
        rec_cases: List[RecursiveCase] = []
        stack: List[_Branch] = []

        def close_top():
            self._close(stack.pop(), base_cases, rec_cases)

        for ln in self.lines:
            text = ln.text
            if _COMMENT_RE.match(text):
                continue
            while stack and ln.indent < stack[-1].indent:
                close_top()

            if IF_END_RE.match(text):
                if stack:
                    close_top()
                continue
            if _ELIF_RE.match(text) or _ELSE_RE.match(text):
                if stack and stack[-1].indent == ln.indent:
                    close_top()
                stack.append(_Branch(ln.indent, _condition_text(text), []))
                continue
            if _IF_RE.match(text):
                if stack and stack[-1].indent == ln.indent:
                    close_top()
                stack.append(_Branch(ln.indent, _condition_text(text), []))
                continue
            # a statement back at the if's own level ends it
            while stack and ln.indent <= stack[-1].indent:
                close_top()

            if stack:
                stack[-1].lines.append(ln)
            elif ln.index in self.sites:
                rec_cases.append(self._recursive_case(ln))
            elif _RETURN_RE.match(text) or _EXIT_RE.match(text):
                base_cases.append(self._base_case("", ln))

        while stack:
            close_top()
        return base_cases, rec_cases

    # ---- classification ----

    def _is_tail(self, points: List[RecursiveCallPoint]) -> bool:
        if len(points) != 1:
            return False
        executable = [ln for ln in self.lines
                      if not _COMMENT_RE.match(ln.text) and not _END_MARKER_RE.match(ln.text)]
        if not executable or executable[-1].index != points[0].line_index:
            return False
        text = _RETURN_RE.sub(r"\1", executable[-1].text).strip()
        sites = find_calls(text, points[0].callee or self.name)
        return len(sites) == 1 and sites[0].start == 0 and sites[0].end == len(text)

    def _recursion_type(self, points: List[RecursiveCallPoint], rec_cases: List[RecursiveCase]) -> str:
        if any(p.callee and not names_match(p.callee, self.name) for p in points):
            return "mutual"
        for sites in self.sites.values():
            for outer in sites:
                if any(o is not outer and outer.start < o.start < outer.end for o in sites):
                    return "nested"
        if len(points) > 1:
            property_access = any(t.transformation_type == "property-access"
                                  for rc in rec_cases for t in rc.transformations)
            same_line = any(len(s) > 1 for s in self.sites.values())
            body = "\n".join(ln.text for ln in self.lines)
            if property_access or same_line or _TREE_WORDS_RE.search(body):
                return "tree"
            return "multiple"
        if self._is_tail(points):
            return "tail"
        return "linear"

    @staticmethod
    def _depth(pattern: RecursionPattern, base_cases: List[BaseCase]) -> Tuple[Optional[int], Optional[str]]:
        if pattern.type in ("factorial", "fibonacci"):
            calc = "n" if pattern.type == "factorial" else "2^n"
            for bc in base_cases:
                if bc.comparison_value and re.fullmatch(r"-?\d+", bc.comparison_value):
                    return int(bc.comparison_value) + DEPTH_MARGIN, calc
            return None, calc
        if pattern.type in ("tree-traversal", "binary-search"):
            return LOG_DEPTH_HINT, "log(n)"
        return None, None

    def analyze(self) -> RecursionMetadata:
        points = self._detect_call_points()
        if not points:
            return RecursionMetadata(is_recursive=False)

        pattern = self.scorer.score("\n".join(ln.text for ln in self.lines))
        base_cases, rec_cases = self._extract_cases()
        rtype = self._recursion_type(points, rec_cases)
        hint, calc = self._depth(pattern, base_cases)
        log.debug("recursion %s: type=%s pattern=%s points=%d", self.name, rtype, pattern.type, len(points))
        return RecursionMetadata(
            is_recursive=True,
            recursion_type=rtype,
            call_points=points,
            pattern=pattern,
            base_cases=base_cases,
            recursive_cases=rec_cases,
            max_depth_hint=hint,
            depth_calculation=calc,
        )


def analyze_recursion(name: str, parameters: Sequence[str], body_lines: Sequence[str], *,
                      peers: Sequence[str] = (), scorer: Optional[PatternScorer] = None) -> RecursionMetadata:
    return RecursionAnalyzer(name, parameters, body_lines, peers=peers, scorer=scorer).analyze()
