"""Trauma resolver: injury with 7th character, external cause and pain."""

from coding_engine.schemas.base import (
    EncounterType,
    ExternalCause,
    InjurySite,
    InjuryType,
    Laterality,
    PlaceOfOccurrence,
)
from coding_engine.schemas.findings import Findings, InjuryFindings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole

DOMAIN = "trauma"

SEVENTH_CHARACTERS: dict[EncounterType, tuple[str, str]] = {
    EncounterType.INITIAL: ("A", "initial encounter"),
    EncounterType.SUBSEQUENT: ("D", "subsequent encounter"),
    EncounterType.SEQUELA: ("S", "sequela"),
}

SEVENTH_CHARACTER_MISSING_WARNING = (
    "Encounter type not documented; 7th character 'A' (initial encounter) assigned"
)

# (site, laterality) -> 6-character fracture stem awaiting its 7th character
FRACTURE_CODES: dict[tuple[InjurySite, Laterality], tuple[str, str]] = {
    (InjurySite.FEMUR, Laterality.RIGHT): ("S72.91X", "Unspecified fracture of right femur"),
    (InjurySite.FEMUR, Laterality.LEFT): ("S72.92X", "Unspecified fracture of left femur"),
    (InjurySite.FEMUR, Laterality.UNSPECIFIED): ("S72.90X", "Unspecified fracture of unspecified femur"),
    (InjurySite.HIP, Laterality.RIGHT): ("S72.001", "Fracture of unspecified part of neck of right femur"),
    (InjurySite.HIP, Laterality.LEFT): ("S72.002", "Fracture of unspecified part of neck of left femur"),
    (InjurySite.HIP, Laterality.UNSPECIFIED): (
        "S72.009", "Fracture of unspecified part of neck of unspecified femur",
    ),
    (InjurySite.RADIUS, Laterality.RIGHT): ("S52.501", "Unspecified fracture of the lower end of right radius"),
    (InjurySite.RADIUS, Laterality.LEFT): ("S52.502", "Unspecified fracture of the lower end of left radius"),
    (InjurySite.RADIUS, Laterality.UNSPECIFIED): (
        "S52.509", "Unspecified fracture of the lower end of unspecified radius",
    ),
    (InjurySite.RIB, Laterality.RIGHT): ("S22.31X", "Fracture of one rib, right side"),
    (InjurySite.RIB, Laterality.LEFT): ("S22.32X", "Fracture of one rib, left side"),
    (InjurySite.RIB, Laterality.UNSPECIFIED): ("S22.39X", "Fracture of one rib, unspecified side"),
}

UNSPECIFIED_SITE_INJURY = ("T14.8XX", "Other injury of unspecified body region")
OTHER_INJURY = ("T14.90X", "Injury, unspecified")

EXTERNAL_CAUSE_CODES: dict[ExternalCause, tuple[str, str]] = {
    ExternalCause.FALL: ("W19.XXX", "Unspecified fall"),
    ExternalCause.MOTOR_VEHICLE: ("V89.2XX", "Person injured in unspecified motor-vehicle accident, traffic"),
    ExternalCause.ASSAULT: ("Y04.0XX", "Assault by unarmed brawl or fight"),
    ExternalCause.STRUCK_BY_OBJECT: ("W22.8XX", "Striking against or struck by other objects"),
}

PLACE_OF_OCCURRENCE_CODES: dict[PlaceOfOccurrence, tuple[str, str]] = {
    PlaceOfOccurrence.HOME: ("Y92.009", "Unspecified place in unspecified non-institutional (private) residence as the place of occurrence of the external cause"),
    PlaceOfOccurrence.STREET: ("Y92.410", "Unspecified street and highway as the place of occurrence of the external cause"),
    PlaceOfOccurrence.UNSPECIFIED: ("Y92.9", "Unspecified place or not applicable"),
}

POST_TRAUMATIC_PAIN = ("G89.11", "Acute pain due to trauma")

LATERAL_SITES = (InjurySite.FEMUR, InjurySite.HIP, InjurySite.RADIUS, InjurySite.RIB)


def _injury_stem(injury: InjuryFindings, laterality: Laterality) -> tuple[str, str]:
    if injury.injury_type != InjuryType.FRACTURE:
        return OTHER_INJURY
    if injury.site == InjurySite.UNSPECIFIED:
        return UNSPECIFIED_SITE_INJURY
    return FRACTURE_CODES[(injury.site, laterality)]


def _with_seventh(stem: tuple[str, str], seventh: tuple[str, str]) -> tuple[str, str]:
    return f"{stem[0]}{seventh[0]}", f"{stem[1]}, {seventh[1]}"


def resolve_trauma(findings: Findings) -> Resolution | None:
    injury = findings.injury
    if injury is None:
        return None

    warnings: list[str] = []
    secondaries: list[SecondaryCode] = []

    if injury.encounter is None:
        warnings.append(SEVENTH_CHARACTER_MISSING_WARNING)
    seventh = SEVENTH_CHARACTERS[injury.encounter or EncounterType.INITIAL]

    laterality = injury.laterality or Laterality.UNSPECIFIED
    is_lateral_fracture = injury.injury_type == InjuryType.FRACTURE and injury.site in LATERAL_SITES
    if is_lateral_fracture and laterality == Laterality.UNSPECIFIED:
        warnings.append(
            f"Laterality not documented for {injury.site.value} fracture; unspecified side code assigned"
        )

    primary_laterality = Laterality.RIGHT if laterality == Laterality.BILATERAL else laterality
    code, label = _with_seventh(_injury_stem(injury, primary_laterality), seventh)

    if is_lateral_fracture and laterality == Laterality.BILATERAL:
        left_code, left_label = _with_seventh(_injury_stem(injury, Laterality.LEFT), seventh)
        secondaries.append(
            SecondaryCode(
                code=left_code,
                label=left_label,
                role=SecondaryRole.COEXISTING,
                rationale="Contralateral fracture",
            )
        )

    if injury.acute_pain:
        secondaries.append(
            SecondaryCode(
                code=POST_TRAUMATIC_PAIN[0],
                label=POST_TRAUMATIC_PAIN[1],
                role=SecondaryRole.PAIN,
                rationale="Acute post-traumatic pain documented",
                guideline_rule="I.C.6.b",
            )
        )

    if injury.external_cause is not None:
        cause_code, cause_label = _with_seventh(EXTERNAL_CAUSE_CODES[injury.external_cause], seventh)
        secondaries.append(
            SecondaryCode(
                code=cause_code,
                label=cause_label,
                role=SecondaryRole.EXTERNAL_CAUSE,
                rationale="Mechanism of injury",
                guideline_rule="I.C.20",
            )
        )
    if injury.place_of_occurrence is not None:
        place_code, place_label = PLACE_OF_OCCURRENCE_CODES[injury.place_of_occurrence]
        secondaries.append(
            SecondaryCode(
                code=place_code,
                label=place_label,
                role=SecondaryRole.EXTERNAL_CAUSE,
                rationale="Place of occurrence",
                guideline_rule="I.C.20.b",
            )
        )

    return Resolution(
        domain=DOMAIN,
        code=code,
        label=label,
        attributes={
            "injury_type": injury.injury_type.value,
            "site": injury.site.value,
            "laterality": laterality.value,
            "encounter": (injury.encounter or EncounterType.INITIAL).value,
        },
        secondary_codes=secondaries,
        warnings=warnings,
        rationale="Injury documented",
        guideline_rule="I.C.19.a",
    )
