"""Respiratory resolver: respiratory failure, COPD, asthma, pneumonia.

Precedence: respiratory failure > COPD > asthma > pneumonia. Documented
conditions behind a respiratory failure are attached as its underlying
cause; the infection behind COPD with lower respiratory infection (J44.0)
is attached as its companion.
"""

from coding_engine.schemas.base import Acuity, AsthmaSeverity, AsthmaStatus, Organism
from coding_engine.schemas.findings import Findings, Pneumonia, RespiratoryFindings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole

DOMAIN = "respiratory"

# (acuity, hypoxia, hypercapnia) -> code; "with hypoxia and hypercapnia" codes both
RESPIRATORY_FAILURE_CODES: dict[tuple[Acuity, str], tuple[str, str]] = {
    (Acuity.ACUTE, "unspecified"): ("J96.00", "Acute respiratory failure, unspecified whether with hypoxia or hypercapnia"),
    (Acuity.ACUTE, "hypoxia"): ("J96.01", "Acute respiratory failure with hypoxia"),
    (Acuity.ACUTE, "hypercapnia"): ("J96.02", "Acute respiratory failure with hypercapnia"),
    (Acuity.CHRONIC, "unspecified"): ("J96.10", "Chronic respiratory failure, unspecified whether with hypoxia or hypercapnia"),
    (Acuity.CHRONIC, "hypoxia"): ("J96.11", "Chronic respiratory failure with hypoxia"),
    (Acuity.CHRONIC, "hypercapnia"): ("J96.12", "Chronic respiratory failure with hypercapnia"),
    (Acuity.ACUTE_ON_CHRONIC, "unspecified"): (
        "J96.20", "Acute and chronic respiratory failure, unspecified whether with hypoxia or hypercapnia",
    ),
    (Acuity.ACUTE_ON_CHRONIC, "hypoxia"): ("J96.21", "Acute and chronic respiratory failure with hypoxia"),
    (Acuity.ACUTE_ON_CHRONIC, "hypercapnia"): ("J96.22", "Acute and chronic respiratory failure with hypercapnia"),
    (Acuity.UNSPECIFIED, "unspecified"): (
        "J96.90", "Respiratory failure, unspecified, unspecified whether with hypoxia or hypercapnia",
    ),
    (Acuity.UNSPECIFIED, "hypoxia"): ("J96.91", "Respiratory failure, unspecified with hypoxia"),
    (Acuity.UNSPECIFIED, "hypercapnia"): ("J96.92", "Respiratory failure, unspecified with hypercapnia"),
}

COPD_WITH_INFECTION = ("J44.0", "Chronic obstructive pulmonary disease with (acute) lower respiratory infection")
COPD_WITH_EXACERBATION = ("J44.1", "Chronic obstructive pulmonary disease with (acute) exacerbation")
COPD_UNSPECIFIED = ("J44.9", "Chronic obstructive pulmonary disease, unspecified")

ASTHMA_CODES: dict[tuple[AsthmaSeverity, AsthmaStatus], tuple[str, str]] = {
    (AsthmaSeverity.MILD_INTERMITTENT, AsthmaStatus.UNCOMPLICATED): ("J45.20", "Mild intermittent asthma, uncomplicated"),
    (AsthmaSeverity.MILD_INTERMITTENT, AsthmaStatus.EXACERBATION): ("J45.21", "Mild intermittent asthma with (acute) exacerbation"),
    (AsthmaSeverity.MILD_INTERMITTENT, AsthmaStatus.STATUS_ASTHMATICUS): ("J45.22", "Mild intermittent asthma with status asthmaticus"),
    (AsthmaSeverity.MILD_PERSISTENT, AsthmaStatus.UNCOMPLICATED): ("J45.30", "Mild persistent asthma, uncomplicated"),
    (AsthmaSeverity.MILD_PERSISTENT, AsthmaStatus.EXACERBATION): ("J45.31", "Mild persistent asthma with (acute) exacerbation"),
    (AsthmaSeverity.MILD_PERSISTENT, AsthmaStatus.STATUS_ASTHMATICUS): ("J45.32", "Mild persistent asthma with status asthmaticus"),
    (AsthmaSeverity.MODERATE_PERSISTENT, AsthmaStatus.UNCOMPLICATED): ("J45.40", "Moderate persistent asthma, uncomplicated"),
    (AsthmaSeverity.MODERATE_PERSISTENT, AsthmaStatus.EXACERBATION): ("J45.41", "Moderate persistent asthma with (acute) exacerbation"),
    (AsthmaSeverity.MODERATE_PERSISTENT, AsthmaStatus.STATUS_ASTHMATICUS): ("J45.42", "Moderate persistent asthma with status asthmaticus"),
    (AsthmaSeverity.SEVERE_PERSISTENT, AsthmaStatus.UNCOMPLICATED): ("J45.50", "Severe persistent asthma, uncomplicated"),
    (AsthmaSeverity.SEVERE_PERSISTENT, AsthmaStatus.EXACERBATION): ("J45.51", "Severe persistent asthma with (acute) exacerbation"),
    (AsthmaSeverity.SEVERE_PERSISTENT, AsthmaStatus.STATUS_ASTHMATICUS): ("J45.52", "Severe persistent asthma with status asthmaticus"),
    (AsthmaSeverity.UNSPECIFIED, AsthmaStatus.UNCOMPLICATED): ("J45.909", "Unspecified asthma, uncomplicated"),
    (AsthmaSeverity.UNSPECIFIED, AsthmaStatus.EXACERBATION): ("J45.901", "Unspecified asthma with (acute) exacerbation"),
    (AsthmaSeverity.UNSPECIFIED, AsthmaStatus.STATUS_ASTHMATICUS): ("J45.902", "Unspecified asthma with status asthmaticus"),
}

PNEUMONIA_CODES: dict[Organism, tuple[str, str]] = {
    Organism.UNSPECIFIED: ("J18.9", "Pneumonia, unspecified organism"),
    Organism.VIRAL: ("J12.9", "Viral pneumonia, unspecified"),
    Organism.BACTERIAL: ("J15.9", "Unspecified bacterial pneumonia"),
    Organism.STREP_PNEUMONIAE: ("J13", "Pneumonia due to Streptococcus pneumoniae"),
    Organism.H_INFLUENZAE: ("J14", "Pneumonia due to Hemophilus influenzae"),
    Organism.KLEBSIELLA: ("J15.0", "Pneumonia due to Klebsiella pneumoniae"),
    Organism.PSEUDOMONAS: ("J15.1", "Pneumonia due to Pseudomonas"),
    Organism.STAPH: ("J15.20", "Pneumonia due to staphylococcus, unspecified"),
    Organism.MSSA: ("J15.211", "Pneumonia due to Methicillin susceptible Staphylococcus aureus"),
    Organism.MRSA: ("J15.212", "Pneumonia due to Methicillin resistant Staphylococcus aureus"),
    Organism.STREP: ("J15.4", "Pneumonia due to other streptococci"),
    Organism.E_COLI: ("J15.5", "Pneumonia due to Escherichia coli"),
    Organism.GRAM_NEGATIVE: ("J15.6", "Pneumonia due to other Gram-negative bacteria"),
    Organism.PROTEUS: ("J15.6", "Pneumonia due to other Gram-negative bacteria"),
    Organism.MYCOPLASMA: ("J15.7", "Pneumonia due to Mycoplasma pneumoniae"),
    Organism.ENTEROCOCCUS: ("J15.8", "Pneumonia due to other specified bacteria"),
}

ASPIRATION_PNEUMONIA = ("J69.0", "Pneumonitis due to inhalation of food and vomit")


def pneumonia_code(pneumonia: Pneumonia) -> tuple[str, str]:
    if pneumonia.aspiration:
        return ASPIRATION_PNEUMONIA
    return PNEUMONIA_CODES[pneumonia.organism]


def _failure_code(respiratory: RespiratoryFindings) -> list[tuple[str, str]]:
    failure = respiratory.failure
    if failure.hypoxia and failure.hypercapnia:
        return [
            RESPIRATORY_FAILURE_CODES[(failure.acuity, "hypoxia")],
            RESPIRATORY_FAILURE_CODES[(failure.acuity, "hypercapnia")],
        ]
    if failure.hypoxia:
        gas = "hypoxia"
    elif failure.hypercapnia:
        gas = "hypercapnia"
    else:
        gas = "unspecified"
    return [RESPIRATORY_FAILURE_CODES[(failure.acuity, gas)]]


def _copd_codes(respiratory: RespiratoryFindings) -> list[tuple[str, str]]:
    copd = respiratory.copd
    codes = []
    if copd.lower_respiratory_infection:
        codes.append(COPD_WITH_INFECTION)
    if copd.exacerbation:
        codes.append(COPD_WITH_EXACERBATION)
    return codes or [COPD_UNSPECIFIED]


def _asthma_code(respiratory: RespiratoryFindings) -> tuple[str, str]:
    asthma = respiratory.asthma
    return ASTHMA_CODES[(asthma.severity, asthma.status)]


def _secondary(code_label: tuple[str, str], role: SecondaryRole, rationale: str) -> SecondaryCode:
    return SecondaryCode(code=code_label[0], label=code_label[1], role=role, rationale=rationale)


def resolve_respiratory(findings: Findings) -> Resolution | None:
    respiratory = findings.respiratory
    if respiratory is None:
        return None

    warnings: list[str] = []
    chain: list[tuple[tuple[str, str], SecondaryRole, str]] = []

    if respiratory.failure is not None:
        if respiratory.failure.acuity == Acuity.UNSPECIFIED:
            warnings.append("Respiratory failure acuity not documented; J96.9- assigned")
        for code_label in _failure_code(respiratory):
            chain.append((code_label, SecondaryRole.MANIFESTATION, "Respiratory failure documented"))

    if respiratory.copd is not None:
        for code_label in _copd_codes(respiratory):
            chain.append((code_label, SecondaryRole.COMPANION, "Underlying chronic obstructive pulmonary disease"))

    if respiratory.asthma is not None:
        if respiratory.asthma.severity == AsthmaSeverity.UNSPECIFIED:
            warnings.append("Asthma severity not documented; unspecified asthma code assigned")
        chain.append((_asthma_code(respiratory), SecondaryRole.COMPANION, "Asthma documented"))

    if respiratory.pneumonia is not None:
        infection_for_copd = respiratory.copd is not None and respiratory.copd.lower_respiratory_infection
        if respiratory.copd is not None and not infection_for_copd and respiratory.failure is None:
            warnings.append(
                "Pneumonia documented with COPD; J44.0 requires the lower respiratory infection to be linked"
            )
        chain.append(
            (
                pneumonia_code(respiratory.pneumonia),
                SecondaryRole.COMPANION,
                "Use additional code to identify the infection" if infection_for_copd else "Pneumonia documented",
            )
        )
    elif respiratory.copd is not None and respiratory.copd.lower_respiratory_infection:
        warnings.append("COPD with lower respiratory infection: code also the infection (organism not documented)")

    if not chain:
        return None

    (primary_code, primary_label), _, rationale = chain[0]
    secondaries = [_secondary(code_label, role, reason) for code_label, role, reason in chain[1:]]

    return Resolution(
        domain=DOMAIN,
        code=primary_code,
        label=primary_label,
        attributes={
            "respiratory_failure": respiratory.failure is not None,
            "copd": respiratory.copd is not None,
            "asthma": respiratory.asthma is not None,
            "pneumonia": respiratory.pneumonia is not None,
        },
        secondary_codes=secondaries,
        warnings=warnings,
        rationale=rationale,
        guideline_rule="I.C.10.b" if respiratory.failure is not None else "I.C.10.a",
    )
