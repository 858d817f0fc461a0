"""Annotation stage: HCC flag, per-code score and audit trail.

Pure functions over a certified sequence. None of them can change which
codes are present or their order.
"""

import re

from coding_engine.services.code_types import SequencedCode, strip_decimal

# Secondary diabetes families and diabetes-with-complication codes
HCC_PATTERNS = [
    re.compile(r"^E0[89]"),
    re.compile(r"^E1[013]\.[1-9]"),
]

BASE_SCORE = 0.5
COMPLICATION_SUFFIX_PATTERN = re.compile(r"\.6")
NUMERIC_TAIL_PATTERN = re.compile(r"\d{2,}$")


def is_hcc(code: str) -> bool:
    return any(pattern.match(code) for pattern in HCC_PATTERNS)


def score_code(code: str, hcc: bool, has_warnings: bool) -> float:
    """Bounded additive plausibility score in [0, 1], used for display only."""
    score = BASE_SCORE
    if "." in code:
        score += 0.1
    if NUMERIC_TAIL_PATTERN.search(strip_decimal(code)):
        score += 0.1
    if hcc:
        score += 0.1
    if has_warnings:
        score -= 0.1
    if COMPLICATION_SUFFIX_PATTERN.search(code):
        score += 0.05
    return round(min(1.0, max(0.0, score)), 2)


def annotate_sequence(codes: list[SequencedCode], warnings: list[str]) -> list[SequencedCode]:
    """Flag HCC codes and attach the per-code score."""
    annotated = []
    for item in codes:
        hcc = is_hcc(item.code)
        annotated.append(item.annotate(hcc=hcc, score=score_code(item.code, hcc, bool(warnings))))
    return annotated


def build_audit_trail(codes: list[SequencedCode], warnings: list[str], errors: list[str] | None = None) -> list[str]:
    audit = [f"{item.code}: triggered by {item.triggered_by}" for item in codes]
    audit.extend(f"Warning: {warning}" for warning in warnings)
    audit.extend(f"Error: {error}" for error in errors or [])
    return audit
