"""Obstetrics resolver: pregnancy, complications, weeks of gestation, delivery outcome.

The trimester is taken from the bundle or derived from completed weeks
(<14 first, <28 second, otherwise third) and drives the final character of
the complication codes.
"""

from coding_engine.schemas.base import (
    DeliveryOutcome,
    DiabetesType,
    GestationalDiabetesControl,
    PreeclampsiaSeverity,
)
from coding_engine.schemas.findings import Findings, ObstetricFindings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole

DOMAIN = "obstetrics"

TRIMESTER_LABELS: dict[int | None, tuple[str, str]] = {
    1: ("1", "first trimester"),
    2: ("2", "second trimester"),
    3: ("3", "third trimester"),
    None: ("9", "unspecified trimester"),
}

ROUTINE_SUPERVISION_CODES: dict[int | None, tuple[str, str]] = {
    None: ("Z34.90", "Encounter for supervision of normal pregnancy, unspecified, unspecified trimester"),
    1: ("Z34.91", "Encounter for supervision of normal pregnancy, unspecified, first trimester"),
    2: ("Z34.92", "Encounter for supervision of normal pregnancy, unspecified, second trimester"),
    3: ("Z34.93", "Encounter for supervision of normal pregnancy, unspecified, third trimester"),
}

# Pre-existing diabetes in pregnancy stem per diabetes family
PREEXISTING_DIABETES_STEMS: dict[DiabetesType, tuple[str, str]] = {
    DiabetesType.TYPE1: ("O24.01", "Pre-existing type 1 diabetes mellitus, in pregnancy"),
    DiabetesType.TYPE2: ("O24.11", "Pre-existing type 2 diabetes mellitus, in pregnancy"),
    DiabetesType.UNSPECIFIED: ("O24.11", "Pre-existing type 2 diabetes mellitus, in pregnancy"),
    DiabetesType.UNDERLYING_CONDITION: ("O24.81", "Other pre-existing diabetes mellitus in pregnancy"),
    DiabetesType.DRUG_INDUCED: ("O24.81", "Other pre-existing diabetes mellitus in pregnancy"),
    DiabetesType.OTHER_SPECIFIED: ("O24.81", "Other pre-existing diabetes mellitus in pregnancy"),
}

GESTATIONAL_DIABETES_CODES: dict[GestationalDiabetesControl, tuple[str, str]] = {
    GestationalDiabetesControl.DIET: ("O24.410", "Gestational diabetes mellitus in pregnancy, diet controlled"),
    GestationalDiabetesControl.INSULIN: ("O24.414", "Gestational diabetes mellitus in pregnancy, insulin controlled"),
    GestationalDiabetesControl.ORAL_HYPOGLYCEMIC: (
        "O24.415", "Gestational diabetes mellitus in pregnancy, controlled by oral hypoglycemic drugs",
    ),
    GestationalDiabetesControl.UNSPECIFIED: ("O24.419", "Gestational diabetes mellitus in pregnancy, unspecified control"),
}

PREECLAMPSIA_STEMS: dict[PreeclampsiaSeverity, tuple[str, str]] = {
    PreeclampsiaSeverity.MILD: ("O14.0", "Mild to moderate pre-eclampsia"),
    PreeclampsiaSeverity.SEVERE: ("O14.1", "Severe pre-eclampsia"),
    PreeclampsiaSeverity.HELLP: ("O14.2", "HELLP syndrome"),
    PreeclampsiaSeverity.UNSPECIFIED: ("O14.9", "Unspecified pre-eclampsia"),
}

# Pre-eclampsia has no first-trimester code
PREECLAMPSIA_TRIMESTERS: dict[int | None, tuple[str, str]] = {
    1: ("0", "unspecified trimester"),
    2: ("2", "second trimester"),
    3: ("3", "third trimester"),
    None: ("0", "unspecified trimester"),
}

MATERNAL_HYPERTENSION_STEM = ("O16.", "Unspecified maternal hypertension")
PLACENTA_PREVIA_STEM = ("O44.0", "Complete placenta previa NOS or without hemorrhage")
HYPEREMESIS = ("O21.0", "Mild hyperemesis gravidarum")
THREATENED_ABORTION = ("O20.0", "Threatened abortion")
POSTPARTUM_HEMORRHAGE = ("O72.1", "Other immediate postpartum hemorrhage")
NORMAL_DELIVERY = ("O80", "Encounter for full-term uncomplicated delivery")
OTHER_PREGNANCY_CONDITION = (
    "O99.89", "Other specified diseases and conditions complicating pregnancy, childbirth and the puerperium",
)

WEEKS_UNDER_8 = ("Z3A.01", "Less than 8 weeks gestation of pregnancy")
WEEKS_OVER_42 = ("Z3A.49", "Greater than 42 weeks gestation of pregnancy")
WEEKS_OF_GESTATION_CODES: dict[int, tuple[str, str]] = {
    weeks: (f"Z3A.{weeks:02d}", f"{weeks} weeks gestation of pregnancy") for weeks in range(8, 43)
}

DELIVERY_OUTCOME_CODES: dict[DeliveryOutcome, tuple[str, str]] = {
    DeliveryOutcome.SINGLE_LIVEBORN: ("Z37.0", "Single live birth"),
    DeliveryOutcome.SINGLE_STILLBORN: ("Z37.1", "Single stillbirth"),
    DeliveryOutcome.TWINS_LIVEBORN: ("Z37.2", "Twins, both liveborn"),
}


def trimester_for(obstetric: ObstetricFindings) -> int | None:
    if obstetric.trimester is not None:
        return obstetric.trimester
    if obstetric.weeks is None:
        return None
    if obstetric.weeks < 14:
        return 1
    if obstetric.weeks < 28:
        return 2
    return 3


def weeks_of_gestation_code(weeks: int) -> tuple[str, str]:
    if weeks < 8:
        return WEEKS_UNDER_8
    if weeks > 42:
        return WEEKS_OVER_42
    return WEEKS_OF_GESTATION_CODES[weeks]


def _complications(findings: Findings, obstetric: ObstetricFindings, trimester: int | None) -> list[tuple[tuple[str, str], str]]:
    """Documented complications as ((code, label), rationale), highest precedence first."""
    trimester_char, trimester_label = TRIMESTER_LABELS[trimester]
    complications: list[tuple[tuple[str, str], str]] = []

    if obstetric.preeclampsia is not None:
        stem, stem_label = PREECLAMPSIA_STEMS[obstetric.preeclampsia]
        char, char_label = PREECLAMPSIA_TRIMESTERS[trimester]
        complications.append(((f"{stem}{char}", f"{stem_label}, {char_label}"), "Pre-eclampsia documented"))
    elif obstetric.hypertension:
        stem, stem_label = MATERNAL_HYPERTENSION_STEM
        complications.append(
            ((f"{stem}{trimester_char}", f"{stem_label}, {trimester_label}"), "Hypertension in pregnancy")
        )

    if findings.diabetes is not None:
        stem, stem_label = PREEXISTING_DIABETES_STEMS[findings.diabetes.diabetes_type]
        complications.append(
            ((f"{stem}{trimester_char}", f"{stem_label}, {trimester_label}"), "Pre-existing diabetes in pregnancy")
        )
    elif obstetric.gestational_diabetes is not None:
        complications.append(
            (GESTATIONAL_DIABETES_CODES[obstetric.gestational_diabetes.control], "Gestational diabetes documented")
        )

    if obstetric.placenta_previa:
        stem, stem_label = PLACENTA_PREVIA_STEM
        complications.append(
            ((f"{stem}{trimester_char}", f"{stem_label}, {trimester_label}"), "Placenta previa documented")
        )
    if obstetric.hyperemesis:
        complications.append((HYPEREMESIS, "Hyperemesis gravidarum documented"))
    if obstetric.threatened_abortion:
        complications.append((THREATENED_ABORTION, "Threatened abortion documented"))
    if obstetric.postpartum_hemorrhage:
        complications.append((POSTPARTUM_HEMORRHAGE, "Postpartum hemorrhage documented"))

    return complications


def resolve_obstetrics(findings: Findings) -> Resolution | None:
    obstetric = findings.obstetric
    if obstetric is None or not obstetric.pregnant:
        return None

    warnings: list[str] = []
    trimester = trimester_for(obstetric)
    needs_trimester = (
        obstetric.preeclampsia is not None
        or obstetric.hypertension
        or obstetric.placenta_previa
        or obstetric.routine_supervision
        or findings.diabetes is not None
    )
    if trimester is None and needs_trimester:
        warnings.append("Trimester not documented; unspecified trimester character assigned")

    complications = _complications(findings, obstetric, trimester)

    if complications:
        (code, label), rationale = complications[0]
        extra = complications[1:]
    elif obstetric.delivery is not None and obstetric.delivery.normal:
        (code, label), rationale, extra = NORMAL_DELIVERY, "Uncomplicated full-term delivery", []
    elif obstetric.routine_supervision:
        (code, label), rationale, extra = (
            ROUTINE_SUPERVISION_CODES[trimester], "Routine prenatal supervision", [],
        )
    else:
        (code, label), rationale, extra = OTHER_PREGNANCY_CONDITION, "Pregnancy documented", []

    secondaries = [
        SecondaryCode(
            code=other_code,
            label=other_label,
            role=SecondaryRole.COEXISTING,
            rationale=reason,
            guideline_rule="I.C.15.a",
        )
        for (other_code, other_label), reason in extra
    ]

    if obstetric.weeks is not None:
        weeks_code, weeks_label = weeks_of_gestation_code(obstetric.weeks)
        secondaries.append(
            SecondaryCode(
                code=weeks_code,
                label=weeks_label,
                role=SecondaryRole.STATUS,
                rationale="Use additional code from category Z3A to identify the weeks of gestation",
                guideline_rule="I.C.21.c.3",
            )
        )

    if obstetric.delivery is not None and obstetric.delivery.outcome is not None:
        outcome_code, outcome_label = DELIVERY_OUTCOME_CODES[obstetric.delivery.outcome]
        secondaries.append(
            SecondaryCode(
                code=outcome_code,
                label=outcome_label,
                role=SecondaryRole.OUTCOME,
                rationale="Outcome of delivery",
                guideline_rule="I.C.15.b.5",
            )
        )

    return Resolution(
        domain=DOMAIN,
        code=code,
        label=label,
        attributes={"trimester": trimester, "weeks": obstetric.weeks},
        secondary_codes=secondaries,
        warnings=warnings,
        rationale=rationale,
        guideline_rule="I.C.15.a",
    )
