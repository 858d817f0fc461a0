"""Psychiatric resolver: depression, anxiety, bipolar, schizophrenia, substance use."""

from coding_engine.schemas.base import (
    DepressionEpisode,
    Remission,
    Severity,
    Substance,
    SubstanceUseLevel,
)
from coding_engine.schemas.findings import Depression, Findings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole

DOMAIN = "psychiatric"

# (episode, severity, psychotic features) -> code
DEPRESSION_CODES: dict[tuple[DepressionEpisode, Severity, bool], tuple[str, str]] = {
    (DepressionEpisode.SINGLE, Severity.MILD, False): ("F32.0", "Major depressive disorder, single episode, mild"),
    (DepressionEpisode.SINGLE, Severity.MODERATE, False): ("F32.1", "Major depressive disorder, single episode, moderate"),
    (DepressionEpisode.SINGLE, Severity.SEVERE, False): (
        "F32.2", "Major depressive disorder, single episode, severe without psychotic features",
    ),
    (DepressionEpisode.SINGLE, Severity.SEVERE, True): (
        "F32.3", "Major depressive disorder, single episode, severe with psychotic features",
    ),
    (DepressionEpisode.SINGLE, Severity.UNSPECIFIED, False): ("F32.9", "Major depressive disorder, single episode, unspecified"),
    (DepressionEpisode.RECURRENT, Severity.MILD, False): ("F33.0", "Major depressive disorder, recurrent, mild"),
    (DepressionEpisode.RECURRENT, Severity.MODERATE, False): ("F33.1", "Major depressive disorder, recurrent, moderate"),
    (DepressionEpisode.RECURRENT, Severity.SEVERE, False): (
        "F33.2", "Major depressive disorder, recurrent severe without psychotic features",
    ),
    (DepressionEpisode.RECURRENT, Severity.SEVERE, True): (
        "F33.3", "Major depressive disorder, recurrent, severe with psychotic symptoms",
    ),
    (DepressionEpisode.RECURRENT, Severity.UNSPECIFIED, False): ("F33.9", "Major depressive disorder, recurrent, unspecified"),
}

DEPRESSION_REMISSION_CODES: dict[tuple[DepressionEpisode, Remission], tuple[str, str]] = {
    (DepressionEpisode.SINGLE, Remission.PARTIAL): (
        "F32.4", "Major depressive disorder, single episode, in partial remission",
    ),
    (DepressionEpisode.SINGLE, Remission.FULL): ("F32.5", "Major depressive disorder, single episode, in full remission"),
    (DepressionEpisode.RECURRENT, Remission.PARTIAL): (
        "F33.41", "Major depressive disorder, recurrent, in partial remission",
    ),
    (DepressionEpisode.RECURRENT, Remission.FULL): ("F33.42", "Major depressive disorder, recurrent, in full remission"),
}

GENERALIZED_ANXIETY = ("F41.1", "Generalized anxiety disorder")
ANXIETY_UNSPECIFIED = ("F41.9", "Anxiety disorder, unspecified")
BIPOLAR = ("F31.9", "Bipolar disorder, unspecified")
SCHIZOPHRENIA = ("F20.9", "Schizophrenia, unspecified")

SUBSTANCE_LABELS: dict[Substance, tuple[str, str]] = {
    Substance.ALCOHOL: ("F10", "Alcohol"),
    Substance.OPIOID: ("F11", "Opioid"),
    Substance.CANNABIS: ("F12", "Cannabis"),
    Substance.COCAINE: ("F14", "Cocaine"),
    Substance.OTHER: ("F19", "Other psychoactive substance"),
}

SUBSTANCE_LEVELS: dict[SubstanceUseLevel, tuple[str, str]] = {
    SubstanceUseLevel.USE: (".90", "use, unspecified, uncomplicated"),
    SubstanceUseLevel.ABUSE: (".10", "abuse, uncomplicated"),
    SubstanceUseLevel.DEPENDENCE: (".20", "dependence, uncomplicated"),
}

# (substance, level) -> code, e.g. (ALCOHOL, DEPENDENCE) -> F10.20
SUBSTANCE_USE_CODES: dict[tuple[Substance, SubstanceUseLevel], tuple[str, str]] = {
    (substance, level): (f"{category}{suffix}", f"{name} {level_label}")
    for substance, (category, name) in SUBSTANCE_LABELS.items()
    for level, (suffix, level_label) in SUBSTANCE_LEVELS.items()
}


def depression_code(depression: Depression, warnings: list[str]) -> tuple[str, str]:
    if depression.remission is not None:
        return DEPRESSION_REMISSION_CODES[(depression.episode, depression.remission)]

    severity = depression.severity
    if depression.psychotic_features and severity != Severity.SEVERE:
        warnings.append("Psychotic features documented with non-severe depression; coded as severe with psychotic features")
        severity = Severity.SEVERE
    if severity == Severity.UNSPECIFIED:
        warnings.append("Depression severity not documented; unspecified major depressive disorder code assigned")
    return DEPRESSION_CODES[(depression.episode, severity, depression.psychotic_features)]


def resolve_psychiatric(findings: Findings) -> Resolution | None:
    """Resolve the psychiatric bundle.

    Precedence: schizophrenia, bipolar disorder, depression, anxiety,
    substance use.
    """
    psychiatric = findings.psychiatric
    if psychiatric is None:
        return None

    warnings: list[str] = []
    conditions: list[tuple[tuple[str, str], str]] = []

    if psychiatric.schizophrenia:
        conditions.append((SCHIZOPHRENIA, "Schizophrenia documented"))
    if psychiatric.bipolar:
        conditions.append((BIPOLAR, "Bipolar disorder documented"))
    # Depressive episodes in bipolar disorder are classified to F31
    if psychiatric.depression is not None and not psychiatric.bipolar:
        conditions.append((depression_code(psychiatric.depression, warnings), "Major depressive disorder documented"))
    if psychiatric.anxiety is not None:
        anxiety = GENERALIZED_ANXIETY if psychiatric.anxiety.generalized else ANXIETY_UNSPECIFIED
        conditions.append((anxiety, "Anxiety disorder documented"))
    if psychiatric.substance_use is not None:
        use = psychiatric.substance_use
        conditions.append((SUBSTANCE_USE_CODES[(use.substance, use.level)], "Substance use disorder documented"))

    if not conditions:
        return None

    (code, label), rationale = conditions[0]
    secondaries = [
        SecondaryCode(
            code=other_code,
            label=other_label,
            role=SecondaryRole.COEXISTING,
            rationale=reason,
            base_score=0.7,
        )
        for (other_code, other_label), reason in conditions[1:]
    ]

    return Resolution(
        domain=DOMAIN,
        code=code,
        label=label,
        attributes={
            "schizophrenia": psychiatric.schizophrenia,
            "bipolar": psychiatric.bipolar,
            "depression": psychiatric.depression is not None,
            "anxiety": psychiatric.anxiety is not None,
            "substance_use": psychiatric.substance_use is not None,
        },
        secondary_codes=secondaries,
        warnings=warnings,
        rationale=rationale,
        guideline_rule="I.C.5",
    )
