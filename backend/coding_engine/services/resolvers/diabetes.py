"""Diabetes resolver.

Maps the diabetes bundle to a combination code of the documented family
(E08, E09, E10, E11, E13). The highest-priority complication becomes the
primary; every other documented complication rides along as a manifestation
code of the same family. Guideline companions are attached beside it:
- CKD stage (N18.-) for diabetic CKD
- ulcer site and severity (L97.-) for diabetic foot ulcer
- long-term insulin (Z79.4) or oral hypoglycemic (Z79.84) use

All code selection goes through the lookup tables below.
"""

import logging

from coding_engine.schemas.base import (
    CKDStage,
    DiabetesComplication,
    DiabetesType,
    Laterality,
    NeuropathyType,
    PresymptomaticStage,
    RetinopathySeverity,
    UlcerDepth,
    UlcerSite,
)
from coding_engine.schemas.findings import DiabetesFindings, Findings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole
from coding_engine.services.resolvers.renal import (
    CKD_STAGE_MISSING_WARNING,
    ckd_stage_secondary,
    effective_ckd_stage,
)

logger = logging.getLogger(__name__)

DOMAIN = "diabetes"

# ============================================================================
# Lookup tables
# ============================================================================

FAMILY_PREFIXES: dict[DiabetesType, str] = {
    DiabetesType.TYPE1: "E10",
    DiabetesType.TYPE2: "E11",
    DiabetesType.UNDERLYING_CONDITION: "E08",
    DiabetesType.DRUG_INDUCED: "E09",
    DiabetesType.OTHER_SPECIFIED: "E13",
    DiabetesType.UNSPECIFIED: "E11",
}

FAMILY_LABELS: dict[str, str] = {
    "E08": "Diabetes mellitus due to underlying condition",
    "E09": "Drug or chemical induced diabetes mellitus",
    "E10": "Type 1 diabetes mellitus",
    "E11": "Type 2 diabetes mellitus",
    "E13": "Other specified diabetes mellitus",
}

# Highest priority first; the first documented complication is the primary
COMPLICATION_PRIORITY: list[DiabetesComplication] = [
    DiabetesComplication.HYPEROSMOLARITY,
    DiabetesComplication.KETOACIDOSIS,
    DiabetesComplication.HYPOGLYCEMIA,
    DiabetesComplication.HYPERGLYCEMIA,
    DiabetesComplication.FOOT_ULCER,
    DiabetesComplication.GANGRENE,
    DiabetesComplication.ANGIOPATHY,
    DiabetesComplication.CHARCOT,
    DiabetesComplication.RETINOPATHY,
    DiabetesComplication.CKD,
    DiabetesComplication.NEPHROPATHY,
    DiabetesComplication.NEUROPATHY,
    DiabetesComplication.CATARACT,
    DiabetesComplication.ORAL,
    DiabetesComplication.UNSPECIFIED,
]

COMA_SENSITIVE = (
    DiabetesComplication.HYPEROSMOLARITY,
    DiabetesComplication.KETOACIDOSIS,
    DiabetesComplication.HYPOGLYCEMIA,
)

# (complication, coma) -> (suffix, label)
COMA_COMPLICATION_CODES: dict[tuple[DiabetesComplication, bool], tuple[str, str]] = {
    (DiabetesComplication.HYPEROSMOLARITY, False): (
        ".00",
        "with hyperosmolarity without nonketotic hyperglycemic-hyperosmolar coma (NKHHC)",
    ),
    (DiabetesComplication.HYPEROSMOLARITY, True): (".01", "with hyperosmolarity with coma"),
    (DiabetesComplication.KETOACIDOSIS, False): (".10", "with ketoacidosis without coma"),
    (DiabetesComplication.KETOACIDOSIS, True): (".11", "with ketoacidosis with coma"),
    (DiabetesComplication.HYPOGLYCEMIA, False): (".649", "with hypoglycemia without coma"),
    (DiabetesComplication.HYPOGLYCEMIA, True): (".641", "with hypoglycemia with coma"),
}

SIMPLE_COMPLICATION_CODES: dict[DiabetesComplication, tuple[str, str]] = {
    DiabetesComplication.HYPERGLYCEMIA: (".65", "with hyperglycemia"),
    DiabetesComplication.FOOT_ULCER: (".621", "with foot ulcer"),
    DiabetesComplication.ANGIOPATHY: (".51", "with diabetic peripheral angiopathy without gangrene"),
    DiabetesComplication.GANGRENE: (".52", "with diabetic peripheral angiopathy with gangrene"),
    DiabetesComplication.CHARCOT: (".610", "with diabetic neuropathic arthropathy"),
    DiabetesComplication.NEPHROPATHY: (".21", "with diabetic nephropathy"),
    DiabetesComplication.CKD: (".22", "with diabetic chronic kidney disease"),
    DiabetesComplication.CATARACT: (".36", "with diabetic cataract"),
    DiabetesComplication.ORAL: (".638", "with other oral complications"),
    DiabetesComplication.UNSPECIFIED: (".8", "with unspecified complications"),
}

NEUROPATHY_CODES: dict[NeuropathyType, tuple[str, str]] = {
    NeuropathyType.UNSPECIFIED: (".40", "with diabetic neuropathy, unspecified"),
    NeuropathyType.MONONEUROPATHY: (".41", "with diabetic mononeuropathy"),
    NeuropathyType.POLYNEUROPATHY: (".42", "with diabetic polyneuropathy"),
    NeuropathyType.AUTONOMIC: (".43", "with diabetic autonomic (poly)neuropathy"),
    NeuropathyType.AMYOTROPHY: (".44", "with diabetic amyotrophy"),
}

# (severity, macular edema) -> (suffix, label, takes eye character)
RETINOPATHY_CODES: dict[tuple[RetinopathySeverity, bool], tuple[str, str, bool]] = {
    (RetinopathySeverity.UNSPECIFIED, True): (
        ".311", "with unspecified diabetic retinopathy with macular edema", False,
    ),
    (RetinopathySeverity.UNSPECIFIED, False): (
        ".319", "with unspecified diabetic retinopathy without macular edema", False,
    ),
    (RetinopathySeverity.MILD_NPDR, True): (
        ".321", "with mild nonproliferative diabetic retinopathy with macular edema", True,
    ),
    (RetinopathySeverity.MILD_NPDR, False): (
        ".329", "with mild nonproliferative diabetic retinopathy without macular edema", True,
    ),
    (RetinopathySeverity.MODERATE_NPDR, True): (
        ".331", "with moderate nonproliferative diabetic retinopathy with macular edema", True,
    ),
    (RetinopathySeverity.MODERATE_NPDR, False): (
        ".339", "with moderate nonproliferative diabetic retinopathy without macular edema", True,
    ),
    (RetinopathySeverity.SEVERE_NPDR, True): (
        ".341", "with severe nonproliferative diabetic retinopathy with macular edema", True,
    ),
    (RetinopathySeverity.SEVERE_NPDR, False): (
        ".349", "with severe nonproliferative diabetic retinopathy without macular edema", True,
    ),
    (RetinopathySeverity.PDR, True): (
        ".351", "with proliferative diabetic retinopathy with macular edema", True,
    ),
    (RetinopathySeverity.PDR, False): (
        ".359", "with proliferative diabetic retinopathy without macular edema", True,
    ),
    (RetinopathySeverity.TRACTION_DETACHMENT, True): (
        ".352",
        "with proliferative diabetic retinopathy with traction retinal detachment involving the macula",
        True,
    ),
    (RetinopathySeverity.TRACTION_DETACHMENT, False): (
        ".353",
        "with proliferative diabetic retinopathy with traction retinal detachment not involving the macula",
        True,
    ),
    (RetinopathySeverity.COMBINED_DETACHMENT, True): (
        ".354",
        "with proliferative diabetic retinopathy with combined traction retinal detachment "
        "and rhegmatogenous retinal detachment",
        True,
    ),
    (RetinopathySeverity.COMBINED_DETACHMENT, False): (
        ".354",
        "with proliferative diabetic retinopathy with combined traction retinal detachment "
        "and rhegmatogenous retinal detachment",
        True,
    ),
}

EYE_CHARACTERS: dict[Laterality, tuple[str, str]] = {
    Laterality.RIGHT: ("1", "right eye"),
    Laterality.LEFT: ("2", "left eye"),
    Laterality.BILATERAL: ("3", "bilateral"),
    Laterality.UNSPECIFIED: ("9", "unspecified eye"),
}

NO_COMPLICATIONS = (".9", "without complications")

PRESYMPTOMATIC_CODES: dict[PresymptomaticStage, tuple[str, str]] = {
    PresymptomaticStage.STAGE1: ("E10.A1", "Presymptomatic type 1 diabetes mellitus, Stage 1"),
    PresymptomaticStage.STAGE2: ("E10.A2", "Presymptomatic type 1 diabetes mellitus, Stage 2"),
}

NONDIABETIC_HYPOGLYCEMIC_COMA = ("E15", "Nondiabetic hypoglycemic coma")

ULCER_SITES: dict[UlcerSite, tuple[str, str]] = {
    UlcerSite.RIGHT_ANKLE: ("L97.31", "right ankle"),
    UlcerSite.LEFT_ANKLE: ("L97.32", "left ankle"),
    UlcerSite.RIGHT_HEEL: ("L97.41", "right heel and midfoot"),
    UlcerSite.LEFT_HEEL: ("L97.42", "left heel and midfoot"),
    UlcerSite.RIGHT_FOOT: ("L97.51", "other part of right foot"),
    UlcerSite.LEFT_FOOT: ("L97.52", "other part of left foot"),
    UlcerSite.UNSPECIFIED_FOOT: ("L97.50", "other part of unspecified foot"),
}

ULCER_DEPTHS: dict[UlcerDepth, tuple[str, str]] = {
    UlcerDepth.SKIN: ("1", "limited to breakdown of skin"),
    UlcerDepth.FAT: ("2", "with fat layer exposed"),
    UlcerDepth.MUSCLE: ("3", "with necrosis of muscle"),
    UlcerDepth.BONE: ("4", "with necrosis of bone"),
    UlcerDepth.UNSPECIFIED: ("9", "with unspecified severity"),
}

# (site, depth) -> (code, label), e.g. (RIGHT_FOOT, BONE) -> L97.514
ULCER_CODES: dict[tuple[UlcerSite, UlcerDepth], tuple[str, str]] = {
    (site, depth): (
        f"{site_code}{depth_char}",
        f"Non-pressure chronic ulcer of {site_label} {depth_label}",
    )
    for site, (site_code, site_label) in ULCER_SITES.items()
    for depth, (depth_char, depth_label) in ULCER_DEPTHS.items()
}

INSULIN_USE = ("Z79.4", "Long term (current) use of insulin")
ORAL_HYPOGLYCEMIC_USE = ("Z79.84", "Long term (current) use of oral hypoglycemic drugs")

TYPE_DEFAULT_WARNING = (
    "Diabetes type not documented; defaulting to type 2 (E11) per ICD-10-CM guideline I.C.4.a.2"
)


def charcot_warning(prefix: str) -> str:
    return (
        f"Charcot joint in diabetes context: using diabetes-specific code ({prefix}.610), "
        f"NOT M14.6*"
    )


# ============================================================================
# Resolver
# ============================================================================


def _effective_complications(
    diabetes: DiabetesFindings, findings: Findings, prefix: str, warnings: list[str]
) -> list[DiabetesComplication]:
    """Documented complications plus those implied by the detail attributes, in priority order."""
    documented = set(diabetes.complications)

    if diabetes.retinopathy_severity is not None:
        documented.add(DiabetesComplication.RETINOPATHY)
    if diabetes.neuropathy_type is not None:
        documented.add(DiabetesComplication.NEUROPATHY)
    if diabetes.ulcer_site is not None:
        documented.add(DiabetesComplication.FOOT_ULCER)
    # "With" convention: CKD documented anywhere is presumed linked to diabetes
    if findings.ckd_stage() is not None:
        documented.add(DiabetesComplication.CKD)

    if prefix == "E10" and DiabetesComplication.HYPEROSMOLARITY in documented:
        documented.discard(DiabetesComplication.HYPEROSMOLARITY)
        documented.add(DiabetesComplication.HYPERGLYCEMIA)
        warnings.append(
            "Hyperosmolarity is not classified for type 1 diabetes; coded as hyperglycemia (E10.65)"
        )

    if DiabetesComplication.GANGRENE in documented:
        documented.discard(DiabetesComplication.ANGIOPATHY)
    if DiabetesComplication.CKD in documented:
        documented.discard(DiabetesComplication.NEPHROPATHY)
    if len(documented) > 1:
        documented.discard(DiabetesComplication.UNSPECIFIED)

    return [c for c in COMPLICATION_PRIORITY if c in documented]


def _complication_code(
    complication: DiabetesComplication,
    diabetes: DiabetesFindings,
    coma: bool,
    warnings: list[str],
) -> tuple[str, str]:
    """Return (suffix, label) for one complication."""
    if complication in COMA_SENSITIVE:
        return COMA_COMPLICATION_CODES[(complication, coma)]

    if complication == DiabetesComplication.NEUROPATHY:
        neuropathy_type = diabetes.neuropathy_type or NeuropathyType.UNSPECIFIED
        if neuropathy_type == NeuropathyType.UNSPECIFIED:
            warnings.append("Diabetic neuropathy type not documented; unspecified neuropathy code used")
        return NEUROPATHY_CODES[neuropathy_type]

    if complication == DiabetesComplication.RETINOPATHY:
        severity = diabetes.retinopathy_severity or RetinopathySeverity.UNSPECIFIED
        suffix, label, takes_eye = RETINOPATHY_CODES[(severity, diabetes.macular_edema)]
        if not takes_eye:
            return suffix, label
        eye = diabetes.retinopathy_laterality or Laterality.UNSPECIFIED
        if eye == Laterality.UNSPECIFIED:
            warnings.append("Retinopathy laterality (eye) not documented; unspecified eye character used")
        eye_char, eye_label = EYE_CHARACTERS[eye]
        return f"{suffix}{eye_char}", f"{label}, {eye_label}"

    return SIMPLE_COMPLICATION_CODES[complication]


def _ulcer_secondary(diabetes: DiabetesFindings, warnings: list[str]) -> SecondaryCode | None:
    if diabetes.ulcer_site is None:
        warnings.append(
            "Foot ulcer site not documented; add L97.- code identifying ulcer site and severity"
        )
        return None
    if diabetes.ulcer_site == UlcerSite.UNSPECIFIED_FOOT:
        warnings.append("Foot ulcer laterality not documented; unspecified foot code assigned")
    depth = diabetes.ulcer_depth or UlcerDepth.UNSPECIFIED
    if depth == UlcerDepth.UNSPECIFIED:
        warnings.append("Foot ulcer severity (depth) not documented; severity character 9 assigned")

    code, label = ULCER_CODES[(diabetes.ulcer_site, depth)]
    return SecondaryCode(
        code=code,
        label=label,
        role=SecondaryRole.COMPANION,
        rationale="Use additional code to identify site of ulcer",
        guideline_rule="I.C.4.a",
    )


def resolve_diabetes(findings: Findings) -> Resolution | None:
    """Resolve the diabetes bundle to one combination code and its companions."""
    diabetes = findings.diabetes
    if diabetes is None:
        return None

    if diabetes.hypoglycemic_coma_without_diabetes:
        code, label = NONDIABETIC_HYPOGLYCEMIC_COMA
        return Resolution(
            domain=DOMAIN,
            code=code,
            label=label,
            attributes={"hypoglycemic_coma_without_diabetes": True},
            rationale="Hypoglycemic coma documented without diabetes mellitus",
        )

    warnings: list[str] = []
    prefix = FAMILY_PREFIXES[diabetes.diabetes_type]
    family_label = FAMILY_LABELS[prefix]

    if diabetes.diabetes_type == DiabetesType.UNSPECIFIED:
        warnings.append(TYPE_DEFAULT_WARNING)
    if prefix == "E08":
        warnings.append("Code first the underlying condition causing diabetes (E08)")

    if diabetes.presymptomatic_stage is not None:
        code, label = PRESYMPTOMATIC_CODES[diabetes.presymptomatic_stage]
        if diabetes.complications:
            warnings.append(
                "Presymptomatic type 1 diabetes documented with complications; complications not coded"
            )
        return Resolution(
            domain=DOMAIN,
            code=code,
            label=label,
            attributes={"presymptomatic_stage": diabetes.presymptomatic_stage.value},
            warnings=warnings,
            rationale="Presymptomatic type 1 diabetes documented",
            guideline_rule="I.C.4.a",
        )

    complications = _effective_complications(diabetes, findings, prefix, warnings)

    # Coma belongs to the highest-priority coma-sensitive complication
    coma_target = next((c for c in complications if c in COMA_SENSITIVE), None)

    coded: list[tuple[str, str]] = []
    for complication in complications:
        suffix, suffix_label = _complication_code(
            complication, diabetes, diabetes.coma and complication == coma_target, warnings
        )
        coded.append((f"{prefix}{suffix}", f"{family_label} {suffix_label}"))
    if not coded:
        suffix, suffix_label = NO_COMPLICATIONS
        coded.append((f"{prefix}{suffix}", f"{family_label} {suffix_label}"))

    primary_code, primary_label = coded[0]
    secondaries = [
        SecondaryCode(
            code=code,
            label=label,
            role=SecondaryRole.MANIFESTATION,
            rationale="Additional documented diabetic complication",
            guideline_rule="I.C.4.a",
        )
        for code, label in coded[1:]
    ]

    if DiabetesComplication.CHARCOT in complications:
        warnings.append(charcot_warning(prefix))

    if DiabetesComplication.CKD in complications:
        stage = effective_ckd_stage(findings) or CKDStage.UNSPECIFIED
        if stage == CKDStage.UNSPECIFIED:
            warnings.append(CKD_STAGE_MISSING_WARNING)
        secondaries.append(
            ckd_stage_secondary(stage, "Use additional code to identify stage of chronic kidney disease")
        )

    if DiabetesComplication.FOOT_ULCER in complications:
        ulcer = _ulcer_secondary(diabetes, warnings)
        if ulcer is not None:
            secondaries.append(ulcer)

    # Insulin is inherent to type 1 diabetes; E10 carries no Z79.4 note
    if diabetes.insulin_use and prefix != "E10":
        secondaries.append(
            SecondaryCode(
                code=INSULIN_USE[0],
                label=INSULIN_USE[1],
                role=SecondaryRole.STATUS,
                rationale="Long-term insulin use documented",
                guideline_rule="I.C.4.a.3",
            )
        )
    if diabetes.oral_hypoglycemic_use:
        secondaries.append(
            SecondaryCode(
                code=ORAL_HYPOGLYCEMIC_USE[0],
                label=ORAL_HYPOGLYCEMIC_USE[1],
                role=SecondaryRole.STATUS,
                rationale="Long-term oral hypoglycemic use documented",
                guideline_rule="I.C.4.a.3",
            )
        )

    logger.debug(
        f"Diabetes resolved to {primary_code} with {len(secondaries)} secondary code(s)"
    )

    return Resolution(
        domain=DOMAIN,
        code=primary_code,
        label=primary_label,
        attributes={
            "diabetes_type": diabetes.diabetes_type.value,
            "family": prefix,
            "complications": [c.value for c in complications],
        },
        secondary_codes=secondaries,
        warnings=warnings,
        rationale="Diabetes mellitus with documented complication",
        guideline_rule="I.C.4.a",
    )
