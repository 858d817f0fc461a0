"""Guideline reconciliation engine.

Applies the official-guideline conflict rules to the aggregated candidate
list. Each step is a pure function ``(candidates, context) -> StepResult``
and the steps run in a fixed order:

1. diabetes override (primary selection, family-internal exclusions)
2. hypertension combination collapse (I13 > I12 > I11 > I10)
3. Excludes1 resolution and Excludes2 advisories
4. hierarchy collapse and non-billable removal
5. neoplasm override (secondary before primary, same-site contradiction)
6. poisoning / adverse effect precedence
7. injury external-cause requirement
8. required companion insertion

A step that raises an error stops the pass; the engine then returns no
codes.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from coding_engine.schemas.findings import Findings
from coding_engine.services.code_metadata import CodeMetadataService
from coding_engine.services.code_types import (
    CandidateCode,
    code_specificity,
    is_descendant,
    is_diabetes_code,
    is_external_cause,
    strip_decimal,
)
from coding_engine.services.companions import insert_required_companions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconciliationContext:
    """Read-only inputs shared by every step."""

    findings: Findings
    metadata: CodeMetadataService

    @property
    def diabetes_context(self) -> bool:
        return self.findings.diabetes is not None


@dataclass
class StepResult:
    candidates: list[CandidateCode]
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class ReconciliationResult:
    candidates: list[CandidateCode]
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    steps: list[str] = field(default_factory=list)


ReconciliationStep = Callable[[list[CandidateCode], ReconciliationContext], StepResult]


def _removal_warning(code: str, reason: str) -> str:
    return f"Removed {code}: {reason}"


# ============================================================================
# Step 1: diabetes override
# ============================================================================

DIABETES_FAMILY_PATTERN = re.compile(r"^(E08|E09|E10|E11|E13)\.")

# Complication suffix priority for primary selection, highest first
DIABETES_PRIMARY_PRIORITY: list[tuple[str, re.Pattern]] = [
    ("hyperosmolarity", re.compile(r"\.0[01]$")),
    ("ketoacidosis", re.compile(r"\.1[01]$")),
    ("hypoglycemia", re.compile(r"\.64[19]$")),
    ("uncontrolled", re.compile(r"\.65$")),
    ("foot ulcer", re.compile(r"\.621$")),
    ("angiopathy", re.compile(r"\.5[12]$")),
    ("charcot", re.compile(r"\.610$")),
    ("retinopathy", re.compile(r"\.3[1-5]\d+$")),
    ("nephropathy", re.compile(r"\.2[129]$")),
    ("neuropathy", re.compile(r"\.4\d$")),
    ("cataract", re.compile(r"\.36$")),
]

RETINOPATHY_PATTERN = re.compile(r"^E(08|09|10|11|13)\.3([1-5])\d+$")
DIABETIC_NEUROPATHY_PATTERN = re.compile(r"^E(08|09|10|11|13)\.(4\d|610)$")
GENERIC_NEUROPATHY_PATTERN = re.compile(r"^(G[56]\d|H47\.|M14\.6)")


def diabetes_family(code: str) -> str | None:
    match = DIABETES_FAMILY_PATTERN.match(code)
    return match.group(1) if match else None


def diabetes_priority(code: str) -> int:
    """Rank of a diabetes code for primary selection (lower wins)."""
    for rank, (_, pattern) in enumerate(DIABETES_PRIMARY_PRIORITY):
        if pattern.search(code):
            return rank
    return len(DIABETES_PRIMARY_PRIORITY)


def _family_exclusions(codes: list[str]) -> dict[str, str]:
    """Codes to drop within one diabetes family, mapped to the reason."""
    removed: dict[str, str] = {}
    suffixes = {code.split(".", 1)[1]: code for code in codes}

    def drop(suffix: str, reason: str) -> None:
        if suffix in suffixes and suffixes[suffix] not in removed:
            removed[suffixes[suffix]] = reason

    if "641" in suffixes:
        drop("649", "hypoglycemia with coma supersedes hypoglycemia without coma")
        drop("10", "hypoglycemic coma supersedes ketoacidosis")
        drop("11", "hypoglycemic coma supersedes ketoacidosis")
    if "11" in suffixes:
        drop("10", "ketoacidosis with coma supersedes ketoacidosis without coma")
    if "01" in suffixes:
        drop("00", "hyperosmolarity with coma supersedes hyperosmolarity without coma")
    if "22" in suffixes:
        drop("21", "diabetic CKD (.22) supersedes diabetic nephropathy (.21)")
    if "52" in suffixes:
        drop("51", "angiopathy with gangrene supersedes angiopathy without gangrene")

    retinopathy = [code for code in codes if RETINOPATHY_PATTERN.match(code)]
    if len(retinopathy) > 1:
        keep = max(retinopathy, key=lambda c: int(RETINOPATHY_PATTERN.match(c).group(2)))
        for code in retinopathy:
            if code != keep:
                removed.setdefault(code, f"retinopathy of higher severity ({keep}) present")

    presymptomatic = [code for code in codes if code.startswith("E10.A")]
    if presymptomatic:
        for code in codes:
            if code not in presymptomatic:
                removed.setdefault(code, "presymptomatic type 1 diabetes excludes other E10 codes")

    remaining = [code for code in codes if code not in removed]
    if len(remaining) > 1:
        drop("9", "'without complications' cannot be coded with a complication code")

    return removed


def diabetes_override(candidates: list[CandidateCode], context: ReconciliationContext) -> StepResult:
    codes = [c.code for c in candidates]
    families: dict[str, list[str]] = {}
    for code in codes:
        family = diabetes_family(code)
        if family:
            families.setdefault(family, []).append(code)

    has_diabetes_code = any(is_diabetes_code(code) for code in codes)
    if not has_diabetes_code:
        return StepResult(candidates)

    warnings: list[str] = []
    removed: dict[str, str] = {}

    for family_codes in families.values():
        removed.update(_family_exclusions(family_codes))

    for code in codes:
        if code == "E15":
            removed[code] = "nondiabetic hypoglycemic coma cannot be coded with diabetes"

    if any(DIABETIC_NEUROPATHY_PATTERN.match(code) for code in codes):
        for code in codes:
            if GENERIC_NEUROPATHY_PATTERN.match(code):
                removed[code] = "diabetic neuropathy/arthropathy combination code already captures it"

    result = [c for c in candidates if c.code not in removed]
    for code, reason in removed.items():
        warnings.append(_removal_warning(code, reason))

    # Primary selection: best-ranked code of each family takes the family's first slot
    for family in families:
        members = [c for c in result if diabetes_family(c.code) == family]
        if not members:
            continue
        primary = min(members, key=lambda c: diabetes_priority(c.code))
        first_index = result.index(members[0])
        result.remove(primary)
        result.insert(first_index, replace(primary, triggered_by="diabetes_resolution"))
        for index, candidate in enumerate(result):
            if candidate is not result[first_index] and diabetes_family(candidate.code) == family:
                if candidate.triggered_by == "diabetes_resolution":
                    result[index] = replace(candidate, triggered_by="diabetes_manifestation")

    return StepResult(result, warnings)


# ============================================================================
# Step 2: hypertension combination collapse
# ============================================================================

HYPERTENSION_RANKS: list[tuple[str, re.Pattern]] = [
    ("I13", re.compile(r"^I13\.")),
    ("I12", re.compile(r"^I12\.")),
    ("I11", re.compile(r"^I11\.")),
    ("I10", re.compile(r"^I10$")),
]


def _hypertension_rank(code: str) -> int | None:
    for rank, (_, pattern) in enumerate(HYPERTENSION_RANKS):
        if pattern.match(code):
            return rank
    return None


def hypertension_collapse(candidates: list[CandidateCode], context: ReconciliationContext) -> StepResult:
    ranks = {c.code: _hypertension_rank(c.code) for c in candidates}
    present = {rank for rank in ranks.values() if rank is not None}
    if len(present) < 2:
        return StepResult(candidates)

    warnings: list[str] = []
    has_i13, has_i12, has_i11 = 0 in present, 1 in present, 2 in present
    if has_i11 and has_i12 and not has_i13:
        warnings.append(
            "Hypertensive heart disease (I11) and hypertensive CKD (I12) both present without "
            "I13 combination code; I12 kept, review for I13.-"
        )

    best = min(present)
    result = []
    for candidate in candidates:
        rank = ranks[candidate.code]
        if rank is not None and rank > best:
            warnings.append(
                _removal_warning(
                    candidate.code,
                    f"hypertension combination code {HYPERTENSION_RANKS[best][0]} supersedes it",
                )
            )
            continue
        result.append(candidate)
    return StepResult(result, warnings)


# ============================================================================
# Step 3: Excludes1 / Excludes2
# ============================================================================


def _listed(code: str, entries: list[str]) -> bool:
    stripped = strip_decimal(code)
    return any(stripped.startswith(strip_decimal(entry.rstrip("-"))) for entry in entries if entry)


def excludes1_conflict(a: str, b: str, metadata: CodeMetadataService) -> bool:
    """True when either code lists the other (by prefix) as Excludes1."""
    return _listed(b, metadata.get_excludes1_codes(a)) or _listed(a, metadata.get_excludes1_codes(b))


def excludes2_related(a: str, b: str, metadata: CodeMetadataService) -> bool:
    return _listed(b, metadata.get_excludes2_codes(a)) or _listed(a, metadata.get_excludes2_codes(b))


def excludes1_winner(
    a: CandidateCode, b: CandidateCode, diabetes_context: bool
) -> tuple[CandidateCode, str]:
    """Pick the surviving candidate of an Excludes1 pair and the deciding rule."""
    spec_a, spec_b = code_specificity(a.code), code_specificity(b.code)
    if spec_a != spec_b:
        return (a if spec_a > spec_b else b), "more specific code"

    if diabetes_context:
        diabetes_a, diabetes_b = is_diabetes_code(a.code), is_diabetes_code(b.code)
        if diabetes_a != diabetes_b:
            return (a if diabetes_a else b), "diabetes combination code in diabetes context"

    if a.base_score != b.base_score:
        return (a if a.base_score > b.base_score else b), "higher score"

    return (a if a.code < b.code else b), "lexicographic order"


def resolve_exclusions(candidates: list[CandidateCode], context: ReconciliationContext) -> StepResult:
    metadata = context.metadata
    removed: set[str] = set()
    warnings: list[str] = []

    for i, first in enumerate(candidates):
        if first.code in removed:
            continue
        for second in candidates[i + 1:]:
            if second.code in removed or first.code in removed:
                continue
            if not excludes1_conflict(first.code, second.code, metadata):
                continue
            winner, reason = excludes1_winner(first, second, context.diabetes_context)
            loser = second if winner is first else first
            removed.add(loser.code)
            warning = (
                f"Excludes1 conflict: {winner.code} and {loser.code} cannot be coded together; "
                f"removed {loser.code} ({reason})"
            )
            logger.warning(warning)
            warnings.append(warning)

    result = [c for c in candidates if c.code not in removed]

    for i, first in enumerate(result):
        for second in result[i + 1:]:
            if excludes2_related(first.code, second.code, metadata):
                warnings.append(
                    f"Excludes2 note: {first.code} and {second.code} are not inherently related; "
                    f"both may be coded when both conditions are documented"
                )

    return StepResult(result, warnings)


# ============================================================================
# Step 4: hierarchy collapse
# ============================================================================


def hierarchy_collapse(candidates: list[CandidateCode], context: ReconciliationContext) -> StepResult:
    warnings: list[str] = []
    result = []
    codes = [c.code for c in candidates]

    for candidate in candidates:
        child = next((code for code in codes if is_descendant(code, candidate.code)), None)
        if child is not None:
            warnings.append(_removal_warning(candidate.code, f"more specific code {child} present"))
            continue
        if context.metadata.is_billable(candidate.code) is False:
            warnings.append(
                _removal_warning(candidate.code, "category header is not billable; a more specific code is required")
            )
            continue
        result.append(candidate)

    return StepResult(result, warnings)


# ============================================================================
# Step 5: neoplasm override
# ============================================================================

METASTASIS_PATTERN = re.compile(r"^C7[7-9]")
PRIMARY_MALIGNANCY_PATTERN = re.compile(r"^C([0-6]\d|7[0-5]|8[1-9]|9[0-6])")

# site -> (primary pattern, metastasis-to-the-same-site pattern)
# Colon and rectum share C78.5; lymphoma is never coded with C77.
SAME_SITE_PATTERNS: dict[str, tuple[re.Pattern, re.Pattern]] = {
    "lung": (re.compile(r"^C34"), re.compile(r"^C78\.0")),
    "liver": (re.compile(r"^C22"), re.compile(r"^C78\.7")),
    "brain": (re.compile(r"^C71"), re.compile(r"^C79\.3[12]")),
    "bone": (re.compile(r"^C4[01]"), re.compile(r"^C79\.5")),
    "breast": (re.compile(r"^C50"), re.compile(r"^C79\.81")),
    "large intestine": (re.compile(r"^C(1[89]|20)"), re.compile(r"^C78\.5")),
    "pancreas": (re.compile(r"^C25"), re.compile(r"^C78\.89")),
    "bladder": (re.compile(r"^C67"), re.compile(r"^C79\.11")),
    "prostate": (re.compile(r"^C61"), re.compile(r"^C79\.82")),
    "lymph node": (re.compile(r"^C8[1-5]"), re.compile(r"^C77")),
}


def is_metastasis(code: str) -> bool:
    return bool(METASTASIS_PATTERN.match(code))


def is_primary_malignancy(code: str) -> bool:
    return bool(PRIMARY_MALIGNANCY_PATTERN.match(code))


def neoplasm_override(candidates: list[CandidateCode], context: ReconciliationContext) -> StepResult:
    codes = [c.code for c in candidates]
    errors = []
    for site, (primary_pattern, metastasis_pattern) in SAME_SITE_PATTERNS.items():
        primary = next((code for code in codes if primary_pattern.match(code)), None)
        metastasis = next((code for code in codes if metastasis_pattern.match(code)), None)
        if primary and metastasis:
            errors.append(
                f"DOCUMENTATION CONFLICT: primary malignancy of {site} ({primary}) and secondary "
                f"malignancy of {site} ({metastasis}) cannot both be reported; query provider"
            )
    if errors:
        return StepResult(candidates, errors=errors)

    secondaries = [c for c in candidates if is_metastasis(c.code)]
    if not secondaries:
        return StepResult(candidates)

    primaries = [c for c in candidates if is_primary_malignancy(c.code)]
    rest = [c for c in candidates if c not in secondaries and c not in primaries]
    return StepResult(secondaries + primaries + rest)


# ============================================================================
# Step 6: poisoning / adverse effect precedence
# ============================================================================

DRUG_CODE_PATTERN = re.compile(r"^T(3[6-9]|4\d|50)\.")
PUMP_COMPLICATION_PATTERN = re.compile(r"^T85\.6")
INSULIN_UNDERDOSE_PATTERN = re.compile(r"^T38\.3X6")


def drug_intent(code: str) -> str | None:
    """Intent character (6th position) of a full-length T36-T50 code."""
    if DRUG_CODE_PATTERN.match(code) and len(code) == 8:
        return code[6]
    return None


def poisoning_precedence(candidates: list[CandidateCode], context: ReconciliationContext) -> StepResult:
    has_pump = any(PUMP_COMPLICATION_PATTERN.match(c.code) for c in candidates)
    if not has_pump and not any(drug_intent(c.code) for c in candidates):
        return StepResult(candidates)

    pump, first, late, external, rest = [], [], [], [], []
    for candidate in candidates:
        intent = drug_intent(candidate.code)
        if PUMP_COMPLICATION_PATTERN.match(candidate.code):
            pump.append(candidate)
        elif intent in ("1", "2", "3", "4"):
            first.append(candidate)
        elif has_pump and INSULIN_UNDERDOSE_PATTERN.match(candidate.code):
            first.append(candidate)
        elif intent in ("5", "6"):
            late.append(candidate)
        elif is_external_cause(candidate.code):
            external.append(candidate)
        else:
            rest.append(candidate)

    return StepResult(pump + first + rest + late + external)


# ============================================================================
# Step 7: injury external cause requirement
# ============================================================================

INJURY_PATTERN = re.compile(r"^(S\d|T(0\d|1\d|2\d|3[0-4]))")


def is_injury(code: str) -> bool:
    return bool(INJURY_PATTERN.match(code))


def injury_external_cause(candidates: list[CandidateCode], context: ReconciliationContext) -> StepResult:
    injuries = [c.code for c in candidates if is_injury(c.code)]
    if not injuries or any(is_external_cause(c.code) for c in candidates):
        return StepResult(candidates)
    return StepResult(
        candidates,
        [
            f"External cause code (V00-Y99) not documented for injury {', '.join(injuries)}; "
            f"add the mechanism of injury per ICD-10-CM Guideline I.C.20"
        ],
    )


# ============================================================================
# Step 8: required companions
# ============================================================================


def required_companions(candidates: list[CandidateCode], context: ReconciliationContext) -> StepResult:
    result, warnings = insert_required_companions(candidates, context.findings, context.metadata)
    return StepResult(result, warnings)


RECONCILIATION_STEPS: list[tuple[str, ReconciliationStep]] = [
    ("diabetes_override", diabetes_override),
    ("hypertension_collapse", hypertension_collapse),
    ("excludes_resolution", resolve_exclusions),
    ("hierarchy_collapse", hierarchy_collapse),
    ("neoplasm_override", neoplasm_override),
    ("poisoning_precedence", poisoning_precedence),
    ("injury_external_cause", injury_external_cause),
    ("required_companions", required_companions),
]


def reconcile(
    candidates: list[CandidateCode],
    findings: Findings,
    metadata: CodeMetadataService,
) -> ReconciliationResult:
    """Run every reconciliation step in order, stopping at the first error."""
    context = ReconciliationContext(findings=findings, metadata=metadata)
    result = ReconciliationResult(candidates=list(candidates))

    for name, step in RECONCILIATION_STEPS:
        outcome = step(result.candidates, context)
        result.candidates = outcome.candidates
        result.steps.append(name)
        for warning in outcome.warnings:
            if warning not in result.warnings:
                result.warnings.append(warning)
        if outcome.errors:
            result.errors.extend(outcome.errors)
            logger.warning(f"Reconciliation stopped at {name}: {outcome.errors}")
            break

    return result
