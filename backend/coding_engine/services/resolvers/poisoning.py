"""Poisoning resolver: poisoning, adverse effect, underdosing, insulin pump failure.

Drug codes come from the agent x intent table; the 6th character carries
the intent (1 accidental, 2 self-harm, 3 assault, 4 undetermined,
5 adverse effect, 6 underdosing) and the 7th the encounter.

Insulin pump failure follows guideline I.C.4.a.5: the mechanical
complication T85.614A first, then the overdose or underdose code, then
the diabetes code.
"""

from coding_engine.schemas.base import EncounterType, PoisoningAgent, PoisoningIntent, PumpDoseEffect
from coding_engine.schemas.findings import Findings, PoisoningFindings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole

DOMAIN = "poisoning"

AGENT_STEMS: dict[PoisoningAgent, tuple[str, str]] = {
    PoisoningAgent.INSULIN: ("T38.3X", "insulin and oral hypoglycemic [antidiabetic] drugs"),
    PoisoningAgent.ORAL_HYPOGLYCEMIC: ("T38.3X", "insulin and oral hypoglycemic [antidiabetic] drugs"),
    PoisoningAgent.CORTICOSTEROID: ("T38.0X", "glucocorticoids and synthetic analogues"),
    PoisoningAgent.ANTICOAGULANT: ("T45.51", "anticoagulants"),
    PoisoningAgent.OPIOID: ("T40.60", "unspecified narcotics"),
    PoisoningAgent.UNSPECIFIED_DRUG: ("T50.90", "unspecified drugs, medicaments and biological substances"),
}

INTENT_CHARACTERS: dict[PoisoningIntent, tuple[str, str]] = {
    PoisoningIntent.ACCIDENTAL: ("1", "Poisoning by {drug}, accidental (unintentional)"),
    PoisoningIntent.SELF_HARM: ("2", "Poisoning by {drug}, intentional self-harm"),
    PoisoningIntent.ASSAULT: ("3", "Poisoning by {drug}, assault"),
    PoisoningIntent.UNDETERMINED: ("4", "Poisoning by {drug}, undetermined"),
    PoisoningIntent.ADVERSE_EFFECT: ("5", "Adverse effect of {drug}"),
    PoisoningIntent.UNDERDOSING: ("6", "Underdosing of {drug}"),
}

# (agent, intent) -> 6-character code awaiting its 7th character, e.g. T50.905
DRUG_CODES: dict[tuple[PoisoningAgent, PoisoningIntent], tuple[str, str]] = {
    (agent, intent): (f"{stem}{intent_char}", template.format(drug=drug))
    for agent, (stem, drug) in AGENT_STEMS.items()
    for intent, (intent_char, template) in INTENT_CHARACTERS.items()
}

ENCOUNTER_CHARACTERS: dict[EncounterType, tuple[str, str]] = {
    EncounterType.INITIAL: ("A", "initial encounter"),
    EncounterType.SUBSEQUENT: ("D", "subsequent encounter"),
    EncounterType.SEQUELA: ("S", "sequela"),
}

PUMP_BREAKDOWN = ("T85.614A", "Breakdown (mechanical) of insulin pump, initial encounter")
PUMP_DOSE_CODES: dict[PumpDoseEffect, tuple[str, str]] = {
    PumpDoseEffect.OVERDOSE: (
        "T38.3X1A",
        "Poisoning by insulin and oral hypoglycemic [antidiabetic] drugs, accidental (unintentional), initial encounter",
    ),
    PumpDoseEffect.UNDERDOSE: (
        "T38.3X6A",
        "Underdosing of insulin and oral hypoglycemic [antidiabetic] drugs, initial encounter",
    ),
}
# Diabetes code assumed for a pump failure without a diabetes finding
ASSUMED_DIABETES_CODES: dict[PumpDoseEffect, tuple[str, str]] = {
    PumpDoseEffect.OVERDOSE: ("E11.649", "Type 2 diabetes mellitus with hypoglycemia without coma"),
    PumpDoseEffect.UNDERDOSE: ("E11.65", "Type 2 diabetes mellitus with hyperglycemia"),
}

INTENT_MISSING_WARNING = (
    "Poisoning intent not documented; coded as accidental per ICD-10-CM guideline I.C.19.e.5.b"
)


def drug_code(poisoning: PoisoningFindings, warnings: list[str]) -> tuple[str, str]:
    agent = poisoning.agent or PoisoningAgent.UNSPECIFIED_DRUG
    intent = poisoning.intent
    if intent is None:
        warnings.append(INTENT_MISSING_WARNING)
        intent = PoisoningIntent.ACCIDENTAL
    if poisoning.encounter is None:
        warnings.append("Encounter type not documented for drug code; 7th character 'A' assigned")
    seventh, seventh_label = ENCOUNTER_CHARACTERS[poisoning.encounter or EncounterType.INITIAL]
    code, label = DRUG_CODES[(agent, intent)]
    return f"{code}{seventh}", f"{label}, {seventh_label}"


def _pump_failure(findings: Findings, poisoning: PoisoningFindings) -> Resolution:
    effect = poisoning.pump_failure
    warnings: list[str] = []
    secondaries: list[SecondaryCode] = []

    if effect == PumpDoseEffect.UNCLEAR:
        warnings.append(
            "Insulin pump failure documented without dose effect (overdose or underdose); "
            "query provider before coding T38.3X-"
        )
    else:
        dose_code, dose_label = PUMP_DOSE_CODES[effect]
        secondaries.append(
            SecondaryCode(
                code=dose_code,
                label=dose_label,
                role=SecondaryRole.COMPANION,
                rationale="Insulin dose effect of the pump failure",
                guideline_rule="I.C.4.a.5",
                base_score=0.9,
            )
        )
        if findings.diabetes is None:
            diabetes_code, diabetes_label = ASSUMED_DIABETES_CODES[effect]
            warnings.append(
                f"Insulin pump failure without a documented diabetes finding; {diabetes_code} assumed"
            )
            secondaries.append(
                SecondaryCode(
                    code=diabetes_code,
                    label=diabetes_label,
                    role=SecondaryRole.MANIFESTATION,
                    rationale="Diabetes control affected by the pump failure",
                    guideline_rule="I.C.4.a.5",
                )
            )

    if poisoning.agent is not None and poisoning.agent not in (
        PoisoningAgent.INSULIN, PoisoningAgent.ORAL_HYPOGLYCEMIC,
    ):
        other_code, other_label = drug_code(poisoning, warnings)
        secondaries.append(
            SecondaryCode(
                code=other_code,
                label=other_label,
                role=SecondaryRole.COEXISTING,
                rationale="Additional drug event documented",
            )
        )

    code, label = PUMP_BREAKDOWN
    return Resolution(
        domain=DOMAIN,
        code=code,
        label=label,
        attributes={"pump_failure": effect.value},
        secondary_codes=secondaries,
        warnings=warnings,
        rationale="Mechanical failure of insulin pump",
        guideline_rule="I.C.4.a.5",
        triggered_by="insulin_pump_failure",
    )


def resolve_poisoning(findings: Findings) -> Resolution | None:
    poisoning = findings.poisoning
    if poisoning is None:
        return None

    if poisoning.pump_failure is not None:
        return _pump_failure(findings, poisoning)

    if poisoning.agent is None and poisoning.intent is None:
        return None

    warnings: list[str] = []
    code, label = drug_code(poisoning, warnings)
    intent = poisoning.intent or PoisoningIntent.ACCIDENTAL

    return Resolution(
        domain=DOMAIN,
        code=code,
        label=label,
        attributes={
            "agent": (poisoning.agent or PoisoningAgent.UNSPECIFIED_DRUG).value,
            "intent": intent.value,
        },
        warnings=warnings,
        rationale="Drug event documented",
        guideline_rule="I.C.19.e",
    )
