"""Sequencing engine.

Two independent passes over the reconciled code list:

- rewrite rules, sorted once by priority, each with an ``applies`` predicate
  and a ``rewrite`` reordering function;
- validators, run afterwards on the final order, each returning a list of
  error strings.

Any validator error makes the whole encode fail; callers must not present
a partially sequenced list.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field

from coding_engine.services.code_types import SequencedCode, is_diabetes_code, is_external_cause

logger = logging.getLogger(__name__)

# ============================================================================
# Code classes used by the rules
# ============================================================================

SEPSIS_PATTERN = re.compile(r"^A4[01]\.")
SEVERE_SEPSIS_PATTERN = re.compile(r"^R65\.2")
POSTPROCEDURAL_SEPSIS_PATTERN = re.compile(r"^T81\.44")
ORGAN_DYSFUNCTION_PATTERN = re.compile(r"^(J95\.8|N17|J96|G93\.41)")
INFECTION_SOURCE_PATTERN = re.compile(r"^(J1[2-8]|J69\.0|N39\.0|N10|L03|K65)")
CKD_PATTERN = re.compile(r"^N18\.")
METASTASIS_PATTERN = re.compile(r"^C7[7-9]")
PRIMARY_CANCER_PATTERN = re.compile(r"^C([0-6]\d|7[0-5]|8[1-9]|9[0-6])")
INJURY_PATTERN = re.compile(r"^(S\d|T(0\d|1\d|2\d|3[0-4]))")
POST_TRAUMATIC_PAIN_PATTERN = re.compile(r"^G89\.11")

SHOCK_LABELS = {
    "R65.20": "Severe sepsis",
    "R65.21": "Septic shock",
}


def _matches(pattern: re.Pattern) -> Callable[[SequencedCode], bool]:
    return lambda item: bool(pattern.match(item.code))


def _has(codes: list[SequencedCode], pattern: re.Pattern) -> bool:
    return any(pattern.match(item.code) for item in codes)


def _partition(
    codes: list[SequencedCode], groups: list[Callable[[SequencedCode], bool]]
) -> list[SequencedCode]:
    """Stable partition: each code joins the first group it matches, leftovers last."""
    buckets: list[list[SequencedCode]] = [[] for _ in range(len(groups) + 1)]
    for item in codes:
        for index, predicate in enumerate(groups):
            if predicate(item):
                buckets[index].append(item)
                break
        else:
            buckets[-1].append(item)
    return [item for bucket in buckets for item in bucket]


def _move_after_last(
    codes: list[SequencedCode],
    anchor: Callable[[SequencedCode], bool],
    dependent: Callable[[SequencedCode], bool],
) -> list[SequencedCode]:
    """Move dependents that precede the last anchor to just after it, keeping their order."""
    last_anchor = max((i for i, item in enumerate(codes) if anchor(item)), default=None)
    if last_anchor is None:
        return codes
    early = [item for item in codes[:last_anchor] if dependent(item)]
    if not early:
        return codes
    remaining = [item for item in codes if not any(item is moved for moved in early)]
    insert_at = next(i for i, item in enumerate(remaining) if item is codes[last_anchor]) + 1
    return remaining[:insert_at] + early + remaining[insert_at:]


# ============================================================================
# Rewrite rules
# ============================================================================


def _is_external(item: SequencedCode) -> bool:
    return is_external_cause(item.code)


def _is_diabetes(item: SequencedCode) -> bool:
    return is_diabetes_code(item.code)


def postprocedural_sepsis_applies(codes: list[SequencedCode]) -> bool:
    return _has(codes, POSTPROCEDURAL_SEPSIS_PATTERN)


def postprocedural_sepsis_rewrite(codes: list[SequencedCode]) -> list[SequencedCode]:
    return _partition(
        codes,
        [
            _matches(POSTPROCEDURAL_SEPSIS_PATTERN),
            _matches(SEPSIS_PATTERN),
            _matches(SEVERE_SEPSIS_PATTERN),
            _matches(ORGAN_DYSFUNCTION_PATTERN),
            _matches(INFECTION_SOURCE_PATTERN),
        ],
    )


def sepsis_shock_applies(codes: list[SequencedCode]) -> bool:
    return _has(codes, SEPSIS_PATTERN) and _has(codes, SEVERE_SEPSIS_PATTERN)


def sepsis_shock_rewrite(codes: list[SequencedCode]) -> list[SequencedCode]:
    return _partition(
        codes,
        [
            _matches(POSTPROCEDURAL_SEPSIS_PATTERN),
            _matches(SEPSIS_PATTERN),
            _matches(SEVERE_SEPSIS_PATTERN),
            _matches(ORGAN_DYSFUNCTION_PATTERN),
            _matches(INFECTION_SOURCE_PATTERN),
        ],
    )


def injury_pain_applies(codes: list[SequencedCode]) -> bool:
    return _has(codes, INJURY_PATTERN) and _has(codes, POST_TRAUMATIC_PAIN_PATTERN)


def injury_pain_rewrite(codes: list[SequencedCode]) -> list[SequencedCode]:
    """Pain codes that precede an injury move to just after the last injury; nothing else moves."""
    return _move_after_last(codes, _matches(INJURY_PATTERN), _matches(POST_TRAUMATIC_PAIN_PATTERN))


def etiology_applies(codes: list[SequencedCode]) -> bool:
    diabetes_ckd = _has(codes, CKD_PATTERN) and any(_is_diabetes(item) for item in codes)
    cancer_metastasis = _has(codes, METASTASIS_PATTERN) and _has(codes, PRIMARY_CANCER_PATTERN)
    return diabetes_ckd or cancer_metastasis


def etiology_rewrite(codes: list[SequencedCode]) -> list[SequencedCode]:
    ordered = _move_after_last(codes, _is_diabetes, _matches(CKD_PATTERN))
    return _move_after_last(ordered, _matches(PRIMARY_CANCER_PATTERN), _matches(METASTASIS_PATTERN))


def external_cause_applies(codes: list[SequencedCode]) -> bool:
    return any(_is_external(item) for item in codes)


def external_cause_rewrite(codes: list[SequencedCode]) -> list[SequencedCode]:
    return _partition(codes, [lambda item: not _is_external(item)])


@dataclass(frozen=True)
class SequencingRule:
    """A priority-ordered reordering rule."""

    name: str
    priority: int
    applies: Callable[[list[SequencedCode]], bool]
    rewrite: Callable[[list[SequencedCode]], list[SequencedCode]]
    rationale: str


SEQUENCING_RULES: list[SequencingRule] = sorted(
    [
        SequencingRule(
            name="postprocedural_sepsis",
            priority=1,
            applies=postprocedural_sepsis_applies,
            rewrite=postprocedural_sepsis_rewrite,
            rationale="Post-procedural infection first, then sepsis, severe sepsis, organ dysfunction, source",
        ),
        SequencingRule(
            name="sepsis_with_shock",
            priority=2,
            applies=sepsis_shock_applies,
            rewrite=sepsis_shock_rewrite,
            rationale="Systemic infection before R65.2- and the localized source (Guideline I.C.1.d)",
        ),
        SequencingRule(
            name="injury_with_pain",
            priority=3,
            applies=injury_pain_applies,
            rewrite=injury_pain_rewrite,
            rationale="Injury before acute post-traumatic pain (Guideline I.C.6.b.1)",
        ),
        SequencingRule(
            name="etiology_before_manifestation",
            priority=4,
            applies=etiology_applies,
            rewrite=etiology_rewrite,
            rationale="Underlying condition before its manifestation (Guideline I.A.13)",
        ),
        SequencingRule(
            name="external_cause_last",
            priority=10,
            applies=external_cause_applies,
            rewrite=external_cause_rewrite,
            rationale="External cause codes are never principal (Guideline I.C.20)",
        ),
    ],
    key=lambda rule: rule.priority,
)


# ============================================================================
# Validators
# ============================================================================


def validate_sepsis_before_shock(codes: list[SequencedCode]) -> list[str]:
    errors = []
    first_sepsis = next((i for i, item in enumerate(codes) if SEPSIS_PATTERN.match(item.code)), None)
    for index, item in enumerate(codes):
        label = SHOCK_LABELS.get(item.code)
        if label is None:
            continue
        if first_sepsis is None:
            errors.append(
                f"CODING ERROR: {item.code} ({label}) requires A40-A41 (Sepsis) code per ICD-10-CM guidelines"
            )
        elif index < first_sepsis:
            errors.append(
                f"SEQUENCING ERROR: {item.code} ({label}) must follow A40-A41 (Sepsis) "
                f"per ICD-10-CM Guideline I.C.1.b"
            )
    return errors


def validate_etiology_before_manifestation(codes: list[SequencedCode]) -> list[str]:
    errors = []
    first_diabetes = next((i for i, item in enumerate(codes) if _is_diabetes(item)), None)
    first_primary = next((i for i, item in enumerate(codes) if PRIMARY_CANCER_PATTERN.match(item.code)), None)

    for index, item in enumerate(codes):
        if first_diabetes is not None and CKD_PATTERN.match(item.code) and index < first_diabetes:
            errors.append(
                f"SEQUENCING ERROR: {item.code} (CKD stage) precedes diabetes code "
                f"{codes[first_diabetes].code}; etiology must be sequenced first"
            )
        if first_primary is not None and METASTASIS_PATTERN.match(item.code) and index < first_primary:
            errors.append(
                f"SEQUENCING ERROR: {item.code} (secondary malignancy) precedes primary malignancy "
                f"{codes[first_primary].code}; primary site must be sequenced first"
            )
    return errors


def validate_external_cause_last(codes: list[SequencedCode]) -> list[str]:
    first_external = next((i for i, item in enumerate(codes) if _is_external(item)), None)
    if first_external is None:
        return []
    return [
        f"SEQUENCING ERROR: {item.code} follows external cause code {codes[first_external].code}; "
        f"external cause codes must be sequenced last"
        for item in codes[first_external + 1:]
        if not _is_external(item)
    ]


SEQUENCING_VALIDATORS: list[tuple[str, Callable[[list[SequencedCode]], list[str]]]] = [
    ("sepsis_before_shock", validate_sepsis_before_shock),
    ("etiology_before_manifestation", validate_etiology_before_manifestation),
    ("external_cause_last", validate_external_cause_last),
]


@dataclass
class SequencingResult:
    codes: list[SequencedCode]
    errors: list[str] = field(default_factory=list)
    applied_rules: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def apply_sequencing_rules(
    codes: list[SequencedCode], rules: list[SequencingRule] | None = None
) -> tuple[list[SequencedCode], list[str]]:
    """Run the rewrite rules in priority order; returns the codes and applied rule names."""
    rules = SEQUENCING_RULES if rules is None else rules
    ordered = list(codes)
    applied = []
    if len(ordered) <= 1:
        return ordered, applied

    for rule in rules:
        if not rule.applies(ordered):
            continue
        ordered = rule.rewrite(ordered)
        applied.append(rule.name)
        logger.debug(f"Sequencing rule {rule.name} -> {[item.code for item in ordered]}")
    return ordered, applied


def validate_sequence(codes: list[SequencedCode]) -> list[str]:
    errors = []
    for _, validator in SEQUENCING_VALIDATORS:
        errors.extend(validator(codes))
    return errors


def sequence_codes(codes: list[SequencedCode]) -> SequencingResult:
    """Reorder and certify a code list.

    Lists of zero or one code are returned unchanged; a single shock code
    is still validated.
    """
    ordered, applied = apply_sequencing_rules(codes)
    errors = validate_sequence(ordered)
    if errors:
        logger.warning(f"Sequencing validation failed: {errors}")
    return SequencingResult(codes=ordered, errors=errors, applied_rules=applied)
