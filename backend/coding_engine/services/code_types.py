"""Code records passed between the engine stages.

Resolvers return a ``Resolution``; the aggregator flattens resolutions into
``CandidateCode`` lists; reconciliation and sequencing replace candidates
but never mutate them; the final output is a list of ``SequencedCode``.
"""

import re
from dataclasses import dataclass, field, replace
from enum import Enum

EXTERNAL_CAUSE_PREFIXES = ("V", "W", "X", "Y")

DIABETES_CODE_PATTERN = re.compile(r"^E(08|09|10|11|13)\.")


class SecondaryRole(str, Enum):
    """Guideline role of a code emitted beside a primary resolution."""

    MANIFESTATION = "manifestation"
    ORGANISM = "organism"
    SHOCK = "shock"
    SOURCE = "source"
    OUTCOME = "outcome"
    EXTERNAL_CAUSE = "external_cause"
    PAIN = "pain"
    STAGE = "stage"
    STATUS = "status"
    METASTASIS = "metastasis"
    COMPANION = "companion"
    COEXISTING = "coexisting"  # other documented condition of the same domain


@dataclass(frozen=True)
class CandidateCode:
    """A code proposed by a resolver or a reconciliation step."""

    code: str
    label: str
    triggered_by: str
    rationale: str | None = None
    guideline_rule: str | None = None
    base_score: float = 1.0


@dataclass(frozen=True)
class SecondaryCode:
    """A code attached to a primary resolution with its guideline role."""

    code: str
    label: str
    role: SecondaryRole
    rationale: str | None = None
    guideline_rule: str | None = None
    base_score: float = 0.8

    def to_candidate(self, domain: str) -> CandidateCode:
        return CandidateCode(
            code=self.code,
            label=self.label,
            triggered_by=f"{domain}_{self.role.value}",
            rationale=self.rationale,
            guideline_rule=self.guideline_rule,
            base_score=self.base_score,
        )


@dataclass(frozen=True)
class Resolution:
    """Result of one domain resolver.

    A resolver returns ``None`` when its domain does not apply; otherwise it
    returns exactly one primary code and the secondary codes the guidelines
    require beside it.
    """

    domain: str
    code: str
    label: str
    attributes: dict = field(default_factory=dict)
    secondary_codes: list[SecondaryCode] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    rationale: str | None = None
    guideline_rule: str | None = None
    base_score: float = 1.0
    triggered_by: str | None = None

    @property
    def trigger(self) -> str:
        return self.triggered_by or f"{self.domain}_resolution"

    def primary_candidate(self) -> CandidateCode:
        return CandidateCode(
            code=self.code,
            label=self.label,
            triggered_by=self.trigger,
            rationale=self.rationale,
            guideline_rule=self.guideline_rule,
            base_score=self.base_score,
        )

    def candidates(self) -> list[CandidateCode]:
        """Primary candidate followed by the secondaries in emission order."""
        return [self.primary_candidate()] + [
            secondary.to_candidate(self.domain) for secondary in self.secondary_codes
        ]


@dataclass(frozen=True)
class SequencedCode:
    """A code in the final, certified sequence."""

    code: str
    label: str
    triggered_by: str
    hcc: bool = False
    score: float | None = None

    @classmethod
    def from_candidate(cls, candidate: CandidateCode) -> "SequencedCode":
        return cls(code=candidate.code, label=candidate.label, triggered_by=candidate.triggered_by)

    def annotate(self, hcc: bool, score: float) -> "SequencedCode":
        return replace(self, hcc=hcc, score=score)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "label": self.label,
            "triggered_by": self.triggered_by,
            "hcc": self.hcc,
            "score": self.score,
        }


# ============================================================================
# Code string helpers
# ============================================================================


def strip_decimal(code: str) -> str:
    """Return the code without its decimal point."""
    return code.replace(".", "")


def code_specificity(code: str) -> int:
    """Number of characters in the code once the decimal point is removed."""
    return len(strip_decimal(code))


def is_external_cause(code: str) -> bool:
    return code.startswith(EXTERNAL_CAUSE_PREFIXES)


def is_diabetes_code(code: str) -> bool:
    return bool(DIABETES_CODE_PATTERN.match(code))


def is_descendant(child: str, parent: str) -> bool:
    """True when ``child`` is a strictly more specific code under ``parent``."""
    stripped_child = strip_decimal(child)
    stripped_parent = strip_decimal(parent)
    return len(stripped_child) > len(stripped_parent) and stripped_child.startswith(stripped_parent)
