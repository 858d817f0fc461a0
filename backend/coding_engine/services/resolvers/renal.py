"""Renal resolver: chronic kidney disease, acute kidney injury, dialysis."""

from coding_engine.schemas.base import CKDStage
from coding_engine.schemas.findings import Findings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole

DOMAIN = "renal"

CKD_STAGE_CODES: dict[CKDStage, tuple[str, str]] = {
    CKDStage.STAGE_1: ("N18.1", "Chronic kidney disease, stage 1"),
    CKDStage.STAGE_2: ("N18.2", "Chronic kidney disease, stage 2 (mild)"),
    CKDStage.STAGE_3: ("N18.30", "Chronic kidney disease, stage 3 unspecified"),
    CKDStage.STAGE_3A: ("N18.31", "Chronic kidney disease, stage 3a"),
    CKDStage.STAGE_3B: ("N18.32", "Chronic kidney disease, stage 3b"),
    CKDStage.STAGE_4: ("N18.4", "Chronic kidney disease, stage 4 (severe)"),
    CKDStage.STAGE_5: ("N18.5", "Chronic kidney disease, stage 5"),
    CKDStage.ESRD: ("N18.6", "End stage renal disease"),
    CKDStage.UNSPECIFIED: ("N18.9", "Chronic kidney disease, unspecified"),
}

ADVANCED_CKD_STAGES = frozenset({CKDStage.STAGE_5, CKDStage.ESRD})

AKI = ("N17.9", "Acute kidney failure, unspecified")
DIALYSIS_STATUS = ("Z99.2", "Dependence on renal dialysis")
TRANSPLANT_STATUS = ("Z94.0", "Kidney transplant status")

CKD_STAGE_MISSING_WARNING = (
    "CKD stage not documented; N18.9 (CKD, unspecified) assigned. Query provider for stage"
)


def effective_ckd_stage(findings: Findings) -> CKDStage | None:
    """CKD stage with stage 5 on chronic dialysis promoted to ESRD."""
    stage = findings.ckd_stage()
    on_dialysis = findings.renal is not None and findings.renal.on_dialysis
    if stage == CKDStage.STAGE_5 and on_dialysis:
        return CKDStage.ESRD
    return stage


def ckd_stage_secondary(stage: CKDStage, rationale: str) -> SecondaryCode:
    code, label = CKD_STAGE_CODES[stage]
    return SecondaryCode(
        code=code,
        label=label,
        role=SecondaryRole.STAGE,
        rationale=rationale,
        guideline_rule="I.C.14.a",
    )


def resolve_renal(findings: Findings) -> Resolution | None:
    """Resolve the renal bundle.

    AKI is the primary when documented, with the CKD stage beside it;
    otherwise the CKD stage is the primary. Dialysis or transplant status
    alone is coded as the status code with a warning.
    """
    renal = findings.renal
    if renal is None:
        return None

    stage = effective_ckd_stage(findings) if renal.ckd_stage is not None else None
    warnings: list[str] = []
    secondaries: list[SecondaryCode] = []

    if stage == CKDStage.UNSPECIFIED:
        warnings.append(CKD_STAGE_MISSING_WARNING)

    if renal.aki:
        code, label = AKI
        if stage is not None:
            secondaries.append(ckd_stage_secondary(stage, "CKD stage documented with acute kidney injury"))
    elif stage is not None:
        code, label = CKD_STAGE_CODES[stage]
    elif renal.on_dialysis:
        code, label = DIALYSIS_STATUS
        warnings.append(
            "Dialysis status documented without underlying kidney disease; code the underlying cause"
        )
        return Resolution(
            domain=DOMAIN,
            code=code,
            label=label,
            attributes={"on_dialysis": True},
            warnings=warnings,
            rationale="Dialysis dependence documented",
        )
    elif renal.transplant_status:
        code, label = TRANSPLANT_STATUS
        return Resolution(
            domain=DOMAIN,
            code=code,
            label=label,
            attributes={"transplant_status": True},
            rationale="Kidney transplant status documented",
        )
    else:
        return None

    if renal.on_dialysis:
        secondaries.append(
            SecondaryCode(
                code=DIALYSIS_STATUS[0],
                label=DIALYSIS_STATUS[1],
                role=SecondaryRole.STATUS,
                rationale="Dialysis dependence documented",
            )
        )
    if renal.transplant_status:
        secondaries.append(
            SecondaryCode(
                code=TRANSPLANT_STATUS[0],
                label=TRANSPLANT_STATUS[1],
                role=SecondaryRole.STATUS,
                rationale="Kidney transplant status documented",
            )
        )

    return Resolution(
        domain=DOMAIN,
        code=code,
        label=label,
        attributes={
            "ckd_stage": stage.value if stage else None,
            "aki": renal.aki,
            "on_dialysis": renal.on_dialysis,
            "transplant_status": renal.transplant_status,
        },
        secondary_codes=secondaries,
        warnings=warnings,
        rationale="Kidney disease documented",
        guideline_rule="I.C.14.a",
    )
