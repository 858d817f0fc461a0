"""Cardiovascular resolver.

Hypertension is resolved through the combination hierarchy, compound
conditions first:

    HTN + HF + CKD  -> I13.0 (I13.2 for stage 5 / ESRD)
    HTN + CKD       -> I12.9 (I12.0 for stage 5 / ESRD)
    HTN + HF        -> I11.0
    HTN             -> I10

Acute MI outranks the hypertension combinations as primary. Heart failure
type x acuity, MI type x wall, atrial fibrillation and cardiomyopathy each
map through their own table.
"""

from coding_engine.schemas.base import (
    Acuity,
    AnginaType,
    AtrialFibrillationType,
    CardiomyopathyType,
    CKDStage,
    HeartFailureType,
    MILocation,
    MIType,
)
from coding_engine.schemas.findings import CardiovascularFindings, Findings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole
from coding_engine.services.resolvers.renal import (
    ADVANCED_CKD_STAGES,
    CKD_STAGE_MISSING_WARNING,
    ckd_stage_secondary,
    effective_ckd_stage,
)

DOMAIN = "cardiovascular"

# (heart failure, CKD, advanced CKD) -> hypertension code
HYPERTENSION_CODES: dict[tuple[bool, bool, bool], tuple[str, str]] = {
    (True, True, True): (
        "I13.2",
        "Hypertensive heart and chronic kidney disease with heart failure and with stage 5 "
        "chronic kidney disease, or end stage renal disease",
    ),
    (True, True, False): (
        "I13.0",
        "Hypertensive heart and chronic kidney disease with heart failure and stage 1 through "
        "stage 4 chronic kidney disease, or unspecified chronic kidney disease",
    ),
    (False, True, True): (
        "I12.0",
        "Hypertensive chronic kidney disease with stage 5 chronic kidney disease or end stage renal disease",
    ),
    (False, True, False): (
        "I12.9",
        "Hypertensive chronic kidney disease with stage 1 through stage 4 chronic kidney disease, "
        "or unspecified chronic kidney disease",
    ),
    (True, False, False): ("I11.0", "Hypertensive heart disease with heart failure"),
    (False, False, False): ("I10", "Essential (primary) hypertension"),
}

HEART_FAILURE_CODES: dict[tuple[HeartFailureType, Acuity], tuple[str, str]] = {
    (HeartFailureType.SYSTOLIC, Acuity.ACUTE): ("I50.21", "Acute systolic (congestive) heart failure"),
    (HeartFailureType.SYSTOLIC, Acuity.CHRONIC): ("I50.22", "Chronic systolic (congestive) heart failure"),
    (HeartFailureType.SYSTOLIC, Acuity.ACUTE_ON_CHRONIC): (
        "I50.23", "Acute on chronic systolic (congestive) heart failure",
    ),
    (HeartFailureType.SYSTOLIC, Acuity.UNSPECIFIED): (
        "I50.20", "Unspecified systolic (congestive) heart failure",
    ),
    (HeartFailureType.DIASTOLIC, Acuity.ACUTE): ("I50.31", "Acute diastolic (congestive) heart failure"),
    (HeartFailureType.DIASTOLIC, Acuity.CHRONIC): ("I50.32", "Chronic diastolic (congestive) heart failure"),
    (HeartFailureType.DIASTOLIC, Acuity.ACUTE_ON_CHRONIC): (
        "I50.33", "Acute on chronic diastolic (congestive) heart failure",
    ),
    (HeartFailureType.DIASTOLIC, Acuity.UNSPECIFIED): (
        "I50.30", "Unspecified diastolic (congestive) heart failure",
    ),
    (HeartFailureType.COMBINED, Acuity.ACUTE): (
        "I50.41", "Acute combined systolic (congestive) and diastolic (congestive) heart failure",
    ),
    (HeartFailureType.COMBINED, Acuity.CHRONIC): (
        "I50.42", "Chronic combined systolic (congestive) and diastolic (congestive) heart failure",
    ),
    (HeartFailureType.COMBINED, Acuity.ACUTE_ON_CHRONIC): (
        "I50.43",
        "Acute on chronic combined systolic (congestive) and diastolic (congestive) heart failure",
    ),
    (HeartFailureType.COMBINED, Acuity.UNSPECIFIED): (
        "I50.40", "Unspecified combined systolic (congestive) and diastolic (congestive) heart failure",
    ),
}

HEART_FAILURE_UNSPECIFIED = ("I50.9", "Heart failure, unspecified")

MI_CODES: dict[tuple[MIType, MILocation], tuple[str, str]] = {
    (MIType.STEMI, MILocation.ANTERIOR): (
        "I21.09", "ST elevation (STEMI) myocardial infarction involving other coronary artery of anterior wall",
    ),
    (MIType.STEMI, MILocation.INFERIOR): (
        "I21.19", "ST elevation (STEMI) myocardial infarction involving other coronary artery of inferior wall",
    ),
    (MIType.STEMI, MILocation.OTHER): ("I21.29", "ST elevation (STEMI) myocardial infarction involving other sites"),
    (MIType.STEMI, MILocation.UNSPECIFIED): ("I21.3", "ST elevation (STEMI) myocardial infarction of unspecified site"),
}

NSTEMI = ("I21.4", "Non-ST elevation (NSTEMI) myocardial infarction")
MI_UNSPECIFIED = ("I21.9", "Acute myocardial infarction, unspecified")
OLD_MI = ("I25.2", "Old myocardial infarction")

ANGINA_CODES: dict[AnginaType, tuple[str, str]] = {
    AnginaType.UNSTABLE: ("I20.0", "Unstable angina"),
    AnginaType.STABLE: ("I20.9", "Angina pectoris, unspecified"),
    AnginaType.UNSPECIFIED: ("I20.9", "Angina pectoris, unspecified"),
}

# CAD combined with angina
CAD_ANGINA_CODES: dict[AnginaType, tuple[str, str]] = {
    AnginaType.UNSTABLE: (
        "I25.110", "Atherosclerotic heart disease of native coronary artery with unstable angina pectoris",
    ),
    AnginaType.STABLE: (
        "I25.119", "Atherosclerotic heart disease of native coronary artery with unspecified angina pectoris",
    ),
    AnginaType.UNSPECIFIED: (
        "I25.119", "Atherosclerotic heart disease of native coronary artery with unspecified angina pectoris",
    ),
}

CAD = ("I25.10", "Atherosclerotic heart disease of native coronary artery without angina pectoris")

ATRIAL_FIBRILLATION_CODES: dict[AtrialFibrillationType, tuple[str, str]] = {
    AtrialFibrillationType.PAROXYSMAL: ("I48.0", "Paroxysmal atrial fibrillation"),
    AtrialFibrillationType.PERSISTENT: ("I48.19", "Other persistent atrial fibrillation"),
    AtrialFibrillationType.LONGSTANDING_PERSISTENT: ("I48.11", "Longstanding persistent atrial fibrillation"),
    AtrialFibrillationType.PERMANENT: ("I48.21", "Permanent atrial fibrillation"),
    AtrialFibrillationType.CHRONIC: ("I48.20", "Chronic atrial fibrillation, unspecified"),
    AtrialFibrillationType.UNSPECIFIED: ("I48.91", "Unspecified atrial fibrillation"),
}

CARDIOMYOPATHY_CODES: dict[CardiomyopathyType, tuple[str, str]] = {
    CardiomyopathyType.DILATED: ("I42.0", "Dilated cardiomyopathy"),
    CardiomyopathyType.OBSTRUCTIVE_HYPERTROPHIC: ("I42.1", "Obstructive hypertrophic cardiomyopathy"),
    CardiomyopathyType.HYPERTROPHIC: ("I42.2", "Other hypertrophic cardiomyopathy"),
    CardiomyopathyType.RESTRICTIVE: ("I42.5", "Other restrictive cardiomyopathy"),
    CardiomyopathyType.UNSPECIFIED: ("I42.9", "Cardiomyopathy, unspecified"),
}


def heart_failure_code(cardiovascular: CardiovascularFindings, warnings: list[str]) -> tuple[str, str]:
    heart_failure = cardiovascular.heart_failure
    if heart_failure is None or heart_failure.type == HeartFailureType.UNSPECIFIED:
        warnings.append("Heart failure type not documented; I50.9 assigned. Query for systolic/diastolic")
        return HEART_FAILURE_UNSPECIFIED
    return HEART_FAILURE_CODES[(heart_failure.type, heart_failure.acuity)]


def _mi_code(cardiovascular: CardiovascularFindings) -> tuple[str, str] | None:
    mi = cardiovascular.mi
    if mi is None or mi.old:
        return None
    if mi.type == MIType.STEMI:
        return MI_CODES[(MIType.STEMI, mi.location)]
    if mi.type == MIType.NSTEMI:
        return NSTEMI
    return MI_UNSPECIFIED


def _coexisting(code_label: tuple[str, str], rationale: str) -> SecondaryCode:
    return SecondaryCode(
        code=code_label[0],
        label=code_label[1],
        role=SecondaryRole.COEXISTING,
        rationale=rationale,
        base_score=0.7,
    )


def resolve_cardiovascular(findings: Findings) -> Resolution | None:
    """Resolve the cardiovascular bundle.

    Primary precedence: acute MI, hypertension combination, heart failure,
    ischemic heart disease, atrial fibrillation, cardiomyopathy, old MI.
    """
    cardiovascular = findings.cardiovascular
    if cardiovascular is None:
        return None

    warnings: list[str] = []
    # (code, label) pairs in precedence order; the first becomes the primary
    conditions: list[tuple[tuple[str, str], str]] = []
    companions: list[SecondaryCode] = []

    mi = _mi_code(cardiovascular)
    if mi is not None:
        conditions.append((mi, "Acute myocardial infarction documented"))

    if cardiovascular.hypertension:
        stage = effective_ckd_stage(findings)
        has_hf = cardiovascular.heart_failure is not None
        has_ckd = stage is not None
        advanced = stage in ADVANCED_CKD_STAGES
        hypertension = HYPERTENSION_CODES[(has_hf, has_ckd, advanced)]
        conditions.append((hypertension, "Hypertension with presumed causal relationship"))

        if has_hf:
            hf_code, hf_label = heart_failure_code(cardiovascular, warnings)
            companions.append(
                SecondaryCode(
                    code=hf_code,
                    label=hf_label,
                    role=SecondaryRole.COMPANION,
                    rationale="Use additional code to identify type of heart failure",
                    guideline_rule="I.C.9.a.1",
                )
            )
        if has_ckd:
            if stage == CKDStage.UNSPECIFIED:
                warnings.append(CKD_STAGE_MISSING_WARNING)
            companions.append(
                ckd_stage_secondary(stage, "Use additional code to identify the stage of chronic kidney disease")
            )
    elif cardiovascular.heart_failure is not None:
        conditions.append((heart_failure_code(cardiovascular, warnings), "Heart failure documented"))

    if cardiovascular.cad:
        if cardiovascular.angina is not None:
            conditions.append(
                (CAD_ANGINA_CODES[cardiovascular.angina.type], "Coronary artery disease with angina")
            )
        else:
            conditions.append((CAD, "Coronary artery disease documented"))
    elif cardiovascular.angina is not None:
        conditions.append((ANGINA_CODES[cardiovascular.angina.type], "Angina documented"))

    if cardiovascular.atrial_fibrillation is not None:
        conditions.append(
            (ATRIAL_FIBRILLATION_CODES[cardiovascular.atrial_fibrillation.type], "Atrial fibrillation documented")
        )
    if cardiovascular.cardiomyopathy is not None:
        conditions.append(
            (CARDIOMYOPATHY_CODES[cardiovascular.cardiomyopathy.type], "Cardiomyopathy documented")
        )
    if cardiovascular.mi is not None and cardiovascular.mi.old:
        conditions.append((OLD_MI, "Healed myocardial infarction documented"))

    if not conditions:
        return None

    (primary_code, primary_label), rationale = conditions[0]
    secondaries = [_coexisting(code_label, reason) for code_label, reason in conditions[1:]]

    # Companions of a hypertension combination follow its position
    secondaries.extend(companions)

    return Resolution(
        domain=DOMAIN,
        code=primary_code,
        label=primary_label,
        attributes={
            "hypertension": cardiovascular.hypertension,
            "heart_failure": cardiovascular.heart_failure is not None,
            "acute_mi": mi is not None,
        },
        secondary_codes=secondaries,
        warnings=warnings,
        rationale=rationale,
        guideline_rule="I.C.9.a" if cardiovascular.hypertension and mi is None else None,
    )
