"""Required companion codes.

Some codes carry an instructional note ("use additional code", "code
also", "code first") that calls for a second code: diabetic CKD needs its
N18 stage, hypertensive heart disease with heart failure needs its I50
type, and so on. A rule fires for a trigger code only when the metadata
rule text of that code carries such a note and no related code is present
yet. It inserts exactly one companion, or warns when it cannot choose.
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from coding_engine.schemas.base import PoisoningIntent
from coding_engine.schemas.findings import Findings
from coding_engine.services.code_metadata import CodeMetadataService
from coding_engine.services.code_types import CandidateCode
from coding_engine.services.resolvers.cardiovascular import heart_failure_code
from coding_engine.services.resolvers.poisoning import drug_code
from coding_engine.services.resolvers.renal import CKD_STAGE_CODES, DIALYSIS_STATUS

logger = logging.getLogger(__name__)

INSTRUCTION_PHRASES = ("code also", "code first", "use additional code")

COMPANION_TRIGGER = "guideline_companion"
COMPANION_BASE_SCORE = 0.6

CompanionBuilder = Callable[[str, Findings], list[tuple[str, str]]]


@dataclass(frozen=True)
class CompanionRule:
    """One required-companion rule."""

    name: str
    trigger: re.Pattern
    related: re.Pattern
    build: CompanionBuilder
    required: bool
    missing_warning: str

    def applies_to(self, code: str) -> bool:
        return bool(self.trigger.match(code))

    def satisfied_by(self, codes: list[str]) -> bool:
        return any(self.related.match(code) for code in codes)


# ============================================================================
# Candidate builders
# ============================================================================


def _ckd_stage_candidates(trigger: str, findings: Findings) -> list[tuple[str, str]]:
    """One N18 code per distinct CKD stage documented across bundles."""
    stages = []
    for bundle in (findings.renal, findings.diabetes):
        stage = bundle.ckd_stage if bundle is not None else None
        if stage is not None and stage not in stages:
            stages.append(stage)
    return [CKD_STAGE_CODES[stage] for stage in stages]


def _heart_failure_candidates(trigger: str, findings: Findings) -> list[tuple[str, str]]:
    cardiovascular = findings.cardiovascular
    if cardiovascular is None or cardiovascular.heart_failure is None:
        return []
    return [heart_failure_code(cardiovascular, [])]


def _adverse_effect_candidates(trigger: str, findings: Findings) -> list[tuple[str, str]]:
    poisoning = findings.poisoning
    if poisoning is None or poisoning.pump_failure is not None:
        return []
    adverse = poisoning.model_copy(update={"intent": PoisoningIntent.ADVERSE_EFFECT})
    return [drug_code(adverse, [])]


def _dialysis_candidates(trigger: str, findings: Findings) -> list[tuple[str, str]]:
    if findings.renal is not None and findings.renal.on_dialysis:
        return [DIALYSIS_STATUS]
    return []


COMPANION_RULES: list[CompanionRule] = [
    CompanionRule(
        name="diabetes_ckd",
        trigger=re.compile(r"^E(08|09|10|11|13)\.22$"),
        related=re.compile(r"^N18"),
        build=_ckd_stage_candidates,
        required=True,
        missing_warning=(
            "{code} (diabetes with CKD) requires an additional N18.- code for the CKD stage; "
            "N18 stage not documented"
        ),
    ),
    CompanionRule(
        name="hypertensive_ckd",
        trigger=re.compile(r"^I1[23]\."),
        related=re.compile(r"^N18"),
        build=_ckd_stage_candidates,
        required=True,
        missing_warning=(
            "{code} (hypertensive CKD) requires an additional N18.- code for the CKD stage; "
            "N18 stage not documented"
        ),
    ),
    CompanionRule(
        name="hypertensive_heart_failure",
        trigger=re.compile(r"^I(11\.0|13\.0|13\.2)$"),
        related=re.compile(r"^I50"),
        build=_heart_failure_candidates,
        required=True,
        missing_warning=(
            "{code} (hypertensive heart disease with heart failure) requires an additional I50.- code "
            "for the type of heart failure; heart failure type not documented"
        ),
    ),
    CompanionRule(
        name="drug_induced_diabetes",
        trigger=re.compile(r"^E09\."),
        related=re.compile(r"^T(3[6-9]|4\d|50)\."),
        build=_adverse_effect_candidates,
        required=True,
        missing_warning=(
            "{code} (drug-induced diabetes) requires a T36-T50 code identifying the drug; "
            "drug not documented"
        ),
    ),
    CompanionRule(
        name="esrd_dialysis",
        trigger=re.compile(r"^N18\.6$"),
        related=re.compile(r"^Z99\.2"),
        build=_dialysis_candidates,
        required=False,
        missing_warning="{code} (ESRD): add Z99.2 if the patient is dependent on dialysis",
    ),
]


def has_instructional_note(code: str, metadata: CodeMetadataService) -> bool:
    rules_text = " ".join(metadata.get_rules_strings(code)).lower()
    return any(phrase in rules_text for phrase in INSTRUCTION_PHRASES)


def insert_required_companions(
    candidates: list[CandidateCode],
    findings: Findings,
    metadata: CodeMetadataService,
    rules: list[CompanionRule] | None = None,
) -> tuple[list[CandidateCode], list[str]]:
    """Insert the companion required by each triggered rule.

    Returns the new candidate list and the warnings raised.
    """
    rules = COMPANION_RULES if rules is None else rules
    result = list(candidates)
    warnings: list[str] = []

    for rule in rules:
        for trigger in [c for c in result if rule.applies_to(c.code)]:
            codes = [c.code for c in result]
            if rule.satisfied_by(codes):
                break
            if not has_instructional_note(trigger.code, metadata):
                continue

            options = [option for option in rule.build(trigger.code, findings) if option[0] not in codes]

            if not options:
                if rule.required:
                    warning = rule.missing_warning.format(code=trigger.code)
                    if warning not in warnings:
                        warnings.append(warning)
                continue

            if len(options) > 1:
                listed = ", ".join(code for code, _ in options)
                warnings.append(
                    f"Multiple possible companion codes for {trigger.code} ({listed}); "
                    f"not inserted, select one based on documentation"
                )
                continue

            code, label = options[0]
            companion = CandidateCode(
                code=code,
                label=label,
                triggered_by=COMPANION_TRIGGER,
                rationale=f"Required companion of {trigger.code} ({rule.name})",
                base_score=COMPANION_BASE_SCORE,
            )
            result.insert(result.index(trigger) + 1, companion)
            logger.debug(f"Inserted companion {code} after {trigger.code} ({rule.name})")

    return result, warnings
