"""Confidence assessment for an encoded sequence.

Starts from a baseline of 70 and adds or subtracts weighted factors. Each
factor is reported so a coder can see why the score moved. An empty
sequence always scores 0.
"""

import re
from dataclasses import asdict, dataclass, field
from enum import Enum

from coding_engine.services.code_types import SequencedCode, strip_decimal

BASELINE = 70

LATERALITY_WARNING = re.compile(r"laterality", re.IGNORECASE)
SEVENTH_CHARACTER_WARNING = re.compile(r"7th character", re.IGNORECASE)
AMBIGUOUS_NEOPLASM_WARNING = re.compile(r"ambiguous neoplasm", re.IGNORECASE)
LATERALITY_LABEL = re.compile(r"left|right|bilateral", re.IGNORECASE)

DOCUMENTATION_GAP_WEIGHT = 3
DOCUMENTATION_GAP_CAP = 15
AMBIGUOUS_NEOPLASM_PENALTY = 10


class Impact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class ConfidenceFactor:
    factor: str
    impact: Impact
    weight: int
    description: str


@dataclass
class ConfidenceAssessment:
    overall_confidence: int
    factors: list[ConfidenceFactor] = field(default_factory=list)
    explanation: str = ""

    def to_dict(self) -> dict:
        return {
            "overall_confidence": self.overall_confidence,
            "factors": [{**asdict(factor), "impact": factor.impact.value} for factor in self.factors],
            "explanation": self.explanation,
        }


# (threshold, explanation), highest first
EXPLANATION_BANDS: list[tuple[int, str]] = [
    (90, "Excellent confidence. Codes are highly specific with complete documentation and no compliance issues."),
    (75, "Good confidence. Codes are appropriate with minor documentation gaps that could be addressed."),
    (60, "Moderate confidence. Some specificity or compliance issues present. Review warnings for improvement opportunities."),
    (40, "Low confidence. Significant documentation gaps or compliance issues. Clinical review recommended."),
    (0, "Very low confidence. Major issues with code assignment or documentation. Expert review required."),
]


def explain(confidence: int) -> str:
    for threshold, explanation in EXPLANATION_BANDS:
        if confidence >= threshold:
            return explanation
    return EXPLANATION_BANDS[-1][1]


def _specificity_factor(codes: list[SequencedCode]) -> ConfidenceFactor:
    average = sum(len(strip_decimal(item.code)) for item in codes) / len(codes)
    if average >= 7:
        return ConfidenceFactor(
            "High Specificity", Impact.POSITIVE, 15,
            "Codes use full 7-character detail with laterality and encounter type",
        )
    if average >= 5:
        return ConfidenceFactor(
            "Moderate Specificity", Impact.NEUTRAL, 5,
            "Codes include complication/manifestation detail",
        )
    return ConfidenceFactor(
        "Low Specificity", Impact.NEGATIVE, -10,
        "Category-level codes used; more specific codes may be available",
    )


def calculate_confidence(codes: list[SequencedCode], warnings: list[str]) -> ConfidenceAssessment:
    if not codes:
        factors = [
            ConfidenceFactor(
                "No Codes Assigned", Impact.NEGATIVE, -BASELINE,
                "Unable to assign any codes from provided documentation",
            )
        ]
        return ConfidenceAssessment(overall_confidence=0, factors=factors, explanation=explain(0))

    factors = [_specificity_factor(codes)]

    laterality = [w for w in warnings if LATERALITY_WARNING.search(w)]
    if laterality:
        factors.append(
            ConfidenceFactor(
                "Missing Laterality", Impact.NEGATIVE, -5 * len(laterality),
                f"{len(laterality)} code(s) missing required laterality (left/right)",
            )
        )
    elif any(LATERALITY_LABEL.search(item.label) for item in codes):
        factors.append(
            ConfidenceFactor("Laterality Documented", Impact.POSITIVE, 5, "Laterality specified for paired organs")
        )

    seventh = [w for w in warnings if SEVENTH_CHARACTER_WARNING.search(w)]
    if seventh:
        factors.append(
            ConfidenceFactor(
                "Missing 7th Character", Impact.NEGATIVE, -5 * len(seventh),
                f"{len(seventh)} injury or poisoning code(s) missing the encounter 7th character",
            )
        )

    hcc_count = sum(1 for item in codes if item.hcc)
    if hcc_count:
        factors.append(
            ConfidenceFactor(
                "HCC Codes Identified", Impact.POSITIVE, 5,
                f"{hcc_count} HCC code(s) captured for risk adjustment",
            )
        )

    ambiguous = [w for w in warnings if AMBIGUOUS_NEOPLASM_WARNING.search(w)]
    if ambiguous:
        factors.append(
            ConfidenceFactor(
                "Ambiguous Neoplasm", Impact.NEGATIVE, -AMBIGUOUS_NEOPLASM_PENALTY,
                "Primary-with-metastasis versus secondary site is not resolved by the documentation",
            )
        )

    other = [
        w for w in warnings
        if not (
            LATERALITY_WARNING.search(w)
            or SEVENTH_CHARACTER_WARNING.search(w)
            or AMBIGUOUS_NEOPLASM_WARNING.search(w)
        )
    ]
    if other:
        penalty = min(DOCUMENTATION_GAP_WEIGHT * len(other), DOCUMENTATION_GAP_CAP)
        factors.append(
            ConfidenceFactor(
                "Documentation Gaps", Impact.NEGATIVE, -penalty,
                f"{len(other)} warning(s) indicate potential documentation improvement opportunities",
            )
        )

    if len(codes) >= 3:
        factors.append(
            ConfidenceFactor(
                "Comprehensive Coding", Impact.POSITIVE, 5,
                "Multiple codes assigned capturing clinical complexity",
            )
        )

    overall = max(0, min(100, BASELINE + sum(factor.weight for factor in factors)))
    return ConfidenceAssessment(overall_confidence=overall, factors=factors, explanation=explain(overall))
