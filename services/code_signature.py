"""
Code Fingerprints and Signatures

- code_hash: SHA256 of the code with comments stripped and whitespace
  collapsed, so formatting-only edits keep the same cache key
- extract_signature: declared names plus crude size/complexity metrics
- calculate_similarity: weighted identifier overlap between signatures

The similarity is a shallow heuristic over identifiers, not a semantic
comparison of the code.
"""
import hashlib
import re
from typing import Dict, Iterable, List

from pydantic import BaseModel, Field

_COMMENT_RE = re.compile(r"/\*.*?\*/|//[^\n]*", re.S)
_WHITESPACE_RE = re.compile(r"\s+")
_FUNCTION_RE = re.compile(r"function\s+(\w+)\s*\(", re.I)
_CLASS_RE = re.compile(r"class\s+(\w+)", re.I)
_VARIABLE_RE = re.compile(r"\$(\w+)", re.I)

MAX_VARIABLES = 20

# Signature component weights (sum to 1.0)
WEIGHTS = {
    "functions": 0.4,
    "classes": 0.3,
    "variables": 0.2,
    "metrics": 0.1,
}


class CodeSignature(BaseModel):
    """Identifiers and metrics used for near-duplicate detection"""

    functions: List[str] = Field(default_factory=list)
    classes: List[str] = Field(default_factory=list)
    variables: List[str] = Field(default_factory=list)
    metrics: Dict[str, int] = Field(default_factory=dict)


def normalize_code(code: str) -> str:
    """Strip /* */ and // comments, collapse whitespace"""
    without_comments = _COMMENT_RE.sub("", code)
    return _WHITESPACE_RE.sub(" ", without_comments).strip()


def code_hash(code: str) -> str:
    """Fingerprint of the normalized code (hex SHA256)"""
    return hashlib.sha256(normalize_code(code).encode()).hexdigest()


def extract_signature(code: str) -> CodeSignature:
    """
    Build the signature of a code string

    Variables are the first MAX_VARIABLES occurrences of $name,
    de-duplicated afterwards, so long files do not dominate the score.

    Args:
        code: Raw source code

    Returns:
        CodeSignature: names and metrics (lines, chars, complexity_estimate)
    """
    first_variables = _VARIABLE_RE.findall(code)[:MAX_VARIABLES]

    return CodeSignature(
        functions=_FUNCTION_RE.findall(code),
        classes=_CLASS_RE.findall(code),
        variables=list(dict.fromkeys(first_variables)),
        metrics={
            "lines": code.count("\n") + 1,
            "chars": len(code),
            # Crude cyclomatic proxy: substring counts, "foreach" counts as "for"
            "complexity_estimate": code.count("if") + code.count("for") + code.count("while"),
        },
    )


def _set_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    """Jaccard index; two empty sets are identical, one empty set shares nothing"""
    set_a, set_b = set(a), set(b)
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def _metrics_similarity(a: Dict[str, int], b: Dict[str, int]) -> float:
    """Mean closeness 1 - |x-y|/max(x,y) over the shared metric names"""
    names = set(a) & set(b)
    if not names:
        return 0.0

    total = 0.0
    for name in names:
        x, y = a[name], b[name]
        if x == 0 and y == 0:
            total += 1.0
        elif x > 0 and y > 0:
            total += 1.0 - abs(x - y) / max(x, y)

    return total / len(names)


def calculate_similarity(first: CodeSignature, second: CodeSignature) -> float:
    """
    Weighted similarity in [0, 1]

    0.4 functions + 0.3 classes + 0.2 variables + 0.1 metrics closeness
    """
    return (
        WEIGHTS["functions"] * _set_similarity(first.functions, second.functions)
        + WEIGHTS["classes"] * _set_similarity(first.classes, second.classes)
        + WEIGHTS["variables"] * _set_similarity(first.variables, second.variables)
        + WEIGHTS["metrics"] * _metrics_similarity(first.metrics, second.metrics)
    )
