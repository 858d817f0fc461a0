"""Infection resolver: sepsis, septic shock, post-procedural and localized infection.

Sepsis is coded by organism; severe sepsis and septic shock add R65.2-;
the documented site adds its localized infection code as the source.
Post-procedural sepsis puts T81.44XA first with the systemic infection
and organ dysfunction codes beside it. Localized infection without sepsis
is coded by site with a B95-B96 organism code.
"""

from coding_engine.schemas.base import InfectionSite, OrganDysfunction, Organism
from coding_engine.schemas.findings import Findings, InfectionFindings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole
from coding_engine.services.resolvers.respiratory import PNEUMONIA_CODES

DOMAIN = "infection"

SEPSIS_CODES: dict[Organism, tuple[str, str]] = {
    Organism.UNSPECIFIED: ("A41.9", "Sepsis, unspecified organism"),
    Organism.BACTERIAL: ("A41.9", "Sepsis, unspecified organism"),
    Organism.MSSA: ("A41.01", "Sepsis due to Methicillin susceptible Staphylococcus aureus"),
    Organism.MRSA: ("A41.02", "Sepsis due to Methicillin resistant Staphylococcus aureus"),
    Organism.STAPH: ("A41.2", "Sepsis due to unspecified staphylococcus"),
    Organism.STREP: ("A40.9", "Streptococcal sepsis, unspecified"),
    Organism.STREP_PNEUMONIAE: ("A40.3", "Sepsis due to Streptococcus pneumoniae"),
    Organism.H_INFLUENZAE: ("A41.3", "Sepsis due to Hemophilus influenzae"),
    Organism.E_COLI: ("A41.51", "Sepsis due to Escherichia coli [E. coli]"),
    Organism.PSEUDOMONAS: ("A41.52", "Sepsis due to Pseudomonas"),
    Organism.GRAM_NEGATIVE: ("A41.50", "Gram-negative sepsis, unspecified"),
    Organism.KLEBSIELLA: ("A41.59", "Other Gram-negative sepsis"),
    Organism.PROTEUS: ("A41.59", "Other Gram-negative sepsis"),
    Organism.ENTEROCOCCUS: ("A41.81", "Sepsis due to Enterococcus"),
    Organism.MYCOPLASMA: ("A41.89", "Other specified sepsis"),
    Organism.VIRAL: ("A41.89", "Other specified sepsis"),
}

# Localized infection code per site; lung is coded through the pneumonia table
SITE_CODES: dict[InfectionSite, tuple[str, str]] = {
    InfectionSite.URINARY: ("N39.0", "Urinary tract infection, site not specified"),
    InfectionSite.KIDNEY: ("N10", "Acute pyelonephritis"),
    InfectionSite.SKIN: ("L03.90", "Cellulitis, unspecified"),
    InfectionSite.ABDOMINAL: ("K65.9", "Peritonitis, unspecified"),
}

ORGANISM_CODES: dict[Organism, tuple[str, str]] = {
    Organism.E_COLI: ("B96.20", "Unspecified Escherichia coli [E. coli] as the cause of diseases classified elsewhere"),
    Organism.KLEBSIELLA: ("B96.1", "Klebsiella pneumoniae [K. pneumoniae] as the cause of diseases classified elsewhere"),
    Organism.PROTEUS: ("B96.4", "Proteus (mirabilis) (morganii) as the cause of diseases classified elsewhere"),
    Organism.PSEUDOMONAS: ("B96.5", "Pseudomonas (aeruginosa) (mallei) (pseudomallei) as the cause of diseases classified elsewhere"),
    Organism.ENTEROCOCCUS: ("B95.2", "Enterococcus as the cause of diseases classified elsewhere"),
    Organism.MSSA: ("B95.61", "Methicillin susceptible Staphylococcus aureus infection as the cause of diseases classified elsewhere"),
    Organism.MRSA: ("B95.62", "Methicillin resistant Staphylococcus aureus infection as the cause of diseases classified elsewhere"),
    Organism.STAPH: ("B95.8", "Unspecified staphylococcus as the cause of diseases classified elsewhere"),
    Organism.STREP: ("B95.5", "Unspecified streptococcus as the cause of diseases classified elsewhere"),
    Organism.STREP_PNEUMONIAE: ("B95.3", "Streptococcus pneumoniae as the cause of diseases classified elsewhere"),
    Organism.H_INFLUENZAE: ("B96.3", "Hemophilus influenzae [H. influenzae] as the cause of diseases classified elsewhere"),
    Organism.GRAM_NEGATIVE: ("B96.89", "Other specified bacterial agents as the cause of diseases classified elsewhere"),
}

ORGAN_DYSFUNCTION_CODES: dict[OrganDysfunction, tuple[str, str]] = {
    OrganDysfunction.ACUTE_KIDNEY_FAILURE: ("N17.9", "Acute kidney failure, unspecified"),
    OrganDysfunction.ACUTE_RESPIRATORY_FAILURE: (
        "J96.00", "Acute respiratory failure, unspecified whether with hypoxia or hypercapnia",
    ),
    OrganDysfunction.POSTPROCEDURAL_RESPIRATORY_FAILURE: ("J95.821", "Acute postprocedural respiratory failure"),
    OrganDysfunction.ENCEPHALOPATHY: ("G93.41", "Metabolic encephalopathy"),
}

SEVERE_SEPSIS = ("R65.20", "Severe sepsis without septic shock")
SEPTIC_SHOCK = ("R65.21", "Severe sepsis with septic shock")
POSTPROCEDURAL_SEPSIS = ("T81.44XA", "Sepsis following a procedure, initial encounter")
POSTPROCEDURAL_INFECTION = ("T81.40XA", "Infection following a procedure, unspecified, initial encounter")
BACTEREMIA = ("R78.81", "Bacteremia")


def _organism(findings: Findings, infection: InfectionFindings) -> Organism:
    """Organism from the infection bundle, else from a documented pneumonia."""
    if infection.organism is not None:
        return infection.organism
    if infection.site == InfectionSite.LUNG and findings.respiratory and findings.respiratory.pneumonia:
        return findings.respiratory.pneumonia.organism
    return Organism.UNSPECIFIED


def _site_code(site: InfectionSite | None, organism: Organism) -> tuple[str, str] | None:
    if site is None:
        return None
    if site == InfectionSite.LUNG:
        return PNEUMONIA_CODES[organism]
    if site == InfectionSite.BLOOD:
        return BACTEREMIA
    return SITE_CODES.get(site)


def _secondary(code_label: tuple[str, str], role: SecondaryRole, rationale: str, rule: str | None = None) -> SecondaryCode:
    return SecondaryCode(
        code=code_label[0], label=code_label[1], role=role, rationale=rationale, guideline_rule=rule,
    )


def _sepsis_secondaries(infection: InfectionFindings, organism: Organism) -> list[SecondaryCode]:
    """Shock/severity, organ dysfunction and source codes in guideline order."""
    secondaries: list[SecondaryCode] = []
    sepsis = infection.sepsis

    if sepsis.shock:
        secondaries.append(
            _secondary(SEPTIC_SHOCK, SecondaryRole.SHOCK, "Septic shock documented", "I.C.1.d.1.a")
        )
    elif sepsis.severe or infection.organ_dysfunctions:
        secondaries.append(
            _secondary(SEVERE_SEPSIS, SecondaryRole.MANIFESTATION, "Sepsis with acute organ dysfunction", "I.C.1.d.1.a")
        )

    for dysfunction in infection.organ_dysfunctions:
        secondaries.append(
            _secondary(
                ORGAN_DYSFUNCTION_CODES[dysfunction],
                SecondaryRole.MANIFESTATION,
                "Acute organ dysfunction associated with sepsis",
                "I.C.1.d.1.a",
            )
        )

    source = _site_code(infection.site, organism)
    if source is not None and source != BACTEREMIA:
        secondaries.append(
            _secondary(source, SecondaryRole.SOURCE, "Localized infection source of sepsis", "I.C.1.d.4")
        )
    return secondaries


def resolve_infection(findings: Findings) -> Resolution | None:
    infection = findings.infection
    if infection is None:
        return None

    organism = _organism(findings, infection)
    sepsis = infection.sepsis
    warnings: list[str] = []
    attributes = {
        "site": infection.site.value if infection.site else None,
        "organism": organism.value,
        "sepsis": sepsis is not None and sepsis.present,
        "shock": sepsis is not None and sepsis.shock,
        "postprocedural": infection.postprocedural,
    }

    if sepsis is not None and sepsis.present:
        sepsis_code = SEPSIS_CODES[organism]
        secondaries = _sepsis_secondaries(infection, organism)

        if infection.postprocedural:
            secondaries.insert(
                0,
                _secondary(
                    sepsis_code,
                    SecondaryRole.ORGANISM,
                    "Use additional code to identify the infectious agent of the sepsis",
                    "I.C.1.d.5.b",
                ),
            )
            code, label = POSTPROCEDURAL_SEPSIS
            rule = "I.C.1.d.5.b"
        else:
            code, label = sepsis_code
            rule = "I.C.1.d"

        return Resolution(
            domain=DOMAIN,
            code=code,
            label=label,
            attributes=attributes,
            secondary_codes=secondaries,
            warnings=warnings,
            rationale="Systemic infection documented",
            guideline_rule=rule,
        )

    site_code = _site_code(infection.site, organism)

    if infection.postprocedural:
        secondaries = []
        if site_code is not None:
            secondaries.append(_secondary(site_code, SecondaryRole.SOURCE, "Site of post-procedural infection"))
        code, label = POSTPROCEDURAL_INFECTION
        return Resolution(
            domain=DOMAIN,
            code=code,
            label=label,
            attributes=attributes,
            secondary_codes=secondaries,
            rationale="Infection following a procedure",
            guideline_rule="I.C.19.g",
        )

    if site_code is None:
        if infection.bacteremia:
            code, label = BACTEREMIA
            return Resolution(
                domain=DOMAIN,
                code=code,
                label=label,
                attributes=attributes,
                rationale="Bacteremia without documented sepsis",
            )
        return None

    secondaries = []
    # Pneumonia codes already carry the organism
    if infection.site != InfectionSite.LUNG and organism in ORGANISM_CODES:
        secondaries.append(
            _secondary(
                ORGANISM_CODES[organism],
                SecondaryRole.ORGANISM,
                "Use additional code to identify the infectious agent",
                "I.C.1.a",
            )
        )
    elif infection.site != InfectionSite.LUNG and organism == Organism.UNSPECIFIED:
        warnings.append("Infectious organism not documented; query for culture results")

    code, label = site_code
    return Resolution(
        domain=DOMAIN,
        code=code,
        label=label,
        attributes=attributes,
        secondary_codes=secondaries,
        warnings=warnings,
        rationale="Localized infection documented",
    )
