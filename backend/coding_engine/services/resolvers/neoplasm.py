"""Neoplasm resolver: active malignancy, metastasis, history and screening.

"Metastatic X cancer" is genuinely ambiguous: it can mean a primary of X
that has spread, or a secondary malignancy of X from an unknown primary.
When the role is not documented and no metastatic site is named, the
resolver codes primary X with C79.9 and always raises the ambiguity
warning so the confidence engine can penalise it.
"""

from coding_engine.schemas.base import Laterality, NeoplasmRole, NeoplasmSite, NeoplasmStatus, Sex
from coding_engine.schemas.findings import Findings, NeoplasmFindings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole

DOMAIN = "neoplasm"

LATERALITY_MISSING_WARNING = "Laterality (left/right) missing; code is unspecified"

# (sex, laterality) -> breast primary
BREAST_CODES: dict[tuple[Sex, Laterality], tuple[str, str]] = {
    (Sex.FEMALE, Laterality.RIGHT): ("C50.911", "Malignant neoplasm of unspecified site of right female breast"),
    (Sex.FEMALE, Laterality.LEFT): ("C50.912", "Malignant neoplasm of unspecified site of left female breast"),
    (Sex.FEMALE, Laterality.UNSPECIFIED): (
        "C50.919", "Malignant neoplasm of unspecified site of unspecified female breast",
    ),
    (Sex.MALE, Laterality.RIGHT): ("C50.921", "Malignant neoplasm of unspecified site of right male breast"),
    (Sex.MALE, Laterality.LEFT): ("C50.922", "Malignant neoplasm of unspecified site of left male breast"),
    (Sex.MALE, Laterality.UNSPECIFIED): (
        "C50.929", "Malignant neoplasm of unspecified site of unspecified male breast",
    ),
}

LUNG_CODES: dict[Laterality, tuple[str, str]] = {
    Laterality.RIGHT: ("C34.91", "Malignant neoplasm of unspecified part of right bronchus or lung"),
    Laterality.LEFT: ("C34.92", "Malignant neoplasm of unspecified part of left bronchus or lung"),
    Laterality.UNSPECIFIED: ("C34.90", "Malignant neoplasm of unspecified part of unspecified bronchus or lung"),
}

# Primaries without laterality
PRIMARY_CODES: dict[NeoplasmSite, tuple[str, str]] = {
    NeoplasmSite.COLON: ("C18.9", "Malignant neoplasm of colon, unspecified"),
    NeoplasmSite.RECTUM: ("C20", "Malignant neoplasm of rectum"),
    NeoplasmSite.PROSTATE: ("C61", "Malignant neoplasm of prostate"),
    NeoplasmSite.PANCREAS: ("C25.9", "Malignant neoplasm of pancreas, unspecified"),
    NeoplasmSite.BLADDER: ("C67.9", "Malignant neoplasm of bladder, unspecified"),
    NeoplasmSite.LIVER: ("C22.8", "Malignant neoplasm of liver, primary, unspecified as to type"),
    NeoplasmSite.BRAIN: ("C71.9", "Malignant neoplasm of brain, unspecified"),
    NeoplasmSite.BONE: ("C41.9", "Malignant neoplasm of bone and articular cartilage, unspecified"),
    NeoplasmSite.LYMPH_NODE: ("C85.90", "Non-Hodgkin lymphoma, unspecified, unspecified site"),
    NeoplasmSite.UNSPECIFIED: ("C80.1", "Malignant (primary) neoplasm, unspecified"),
}

SECONDARY_CODES: dict[NeoplasmSite, tuple[str, str]] = {
    NeoplasmSite.BRAIN: ("C79.31", "Secondary malignant neoplasm of brain"),
    NeoplasmSite.BONE: ("C79.51", "Secondary malignant neoplasm of bone"),
    NeoplasmSite.LIVER: ("C78.7", "Secondary malignant neoplasm of liver and intrahepatic bile duct"),
    NeoplasmSite.LUNG: ("C78.00", "Secondary malignant neoplasm of unspecified lung"),
    NeoplasmSite.LYMPH_NODE: ("C77.9", "Secondary and unspecified malignant neoplasm of lymph node, unspecified"),
    NeoplasmSite.BREAST: ("C79.81", "Secondary malignant neoplasm of breast"),
    NeoplasmSite.COLON: ("C78.5", "Secondary malignant neoplasm of large intestine and rectum"),
    NeoplasmSite.RECTUM: ("C78.5", "Secondary malignant neoplasm of large intestine and rectum"),
    NeoplasmSite.BLADDER: ("C79.11", "Secondary malignant neoplasm of bladder"),
    NeoplasmSite.PANCREAS: ("C78.89", "Secondary malignant neoplasm of other digestive organs"),
    NeoplasmSite.PROSTATE: ("C79.82", "Secondary malignant neoplasm of genital organs"),
    NeoplasmSite.UNSPECIFIED: ("C79.9", "Secondary malignant neoplasm of unspecified site"),
}

UNKNOWN_PRIMARY = ("C80.1", "Malignant (primary) neoplasm, unspecified")

SCREENING_CODES: dict[NeoplasmSite, tuple[str, str]] = {
    NeoplasmSite.BREAST: ("Z12.31", "Encounter for screening mammogram for malignant neoplasm of breast"),
    NeoplasmSite.COLON: ("Z12.11", "Encounter for screening for malignant neoplasm of colon"),
    NeoplasmSite.RECTUM: ("Z12.12", "Encounter for screening for malignant neoplasm of rectum"),
    NeoplasmSite.PROSTATE: ("Z12.5", "Encounter for screening for malignant neoplasm of prostate"),
    NeoplasmSite.LUNG: ("Z12.2", "Encounter for screening for malignant neoplasm of respiratory organs"),
    NeoplasmSite.BLADDER: ("Z12.6", "Encounter for screening for malignant neoplasm of bladder"),
}
SCREENING_OTHER = ("Z12.89", "Encounter for screening for malignant neoplasm of other sites")
SCREENING_UNSPECIFIED = ("Z12.9", "Encounter for screening for malignant neoplasm, site unspecified")

HISTORY_CODES: dict[NeoplasmSite, tuple[str, str]] = {
    NeoplasmSite.BREAST: ("Z85.3", "Personal history of malignant neoplasm of breast"),
    NeoplasmSite.LUNG: ("Z85.118", "Personal history of other malignant neoplasm of bronchus and lung"),
    NeoplasmSite.COLON: ("Z85.038", "Personal history of other malignant neoplasm of large intestine"),
    NeoplasmSite.RECTUM: ("Z85.048", "Personal history of other malignant neoplasm of rectum, rectosigmoid junction, and anus"),
    NeoplasmSite.PROSTATE: ("Z85.46", "Personal history of malignant neoplasm of prostate"),
    NeoplasmSite.PANCREAS: ("Z85.07", "Personal history of malignant neoplasm of pancreas"),
    NeoplasmSite.BLADDER: ("Z85.51", "Personal history of malignant neoplasm of bladder"),
    NeoplasmSite.LIVER: ("Z85.05", "Personal history of malignant neoplasm of liver"),
    NeoplasmSite.BRAIN: ("Z85.841", "Personal history of malignant neoplasm of brain"),
    NeoplasmSite.BONE: ("Z85.830", "Personal history of malignant neoplasm of bone"),
    NeoplasmSite.LYMPH_NODE: ("Z85.79", "Personal history of other malignant neoplasms of lymphoid, hematopoietic and related tissues"),
    NeoplasmSite.UNSPECIFIED: ("Z85.9", "Personal history of malignant neoplasm, unspecified"),
}

FOLLOW_UP = (
    "Z08",
    "Encounter for follow-up examination after completed treatment for malignant neoplasm",
)

LATERAL_SITES = (NeoplasmSite.BREAST, NeoplasmSite.LUNG)


def ambiguous_neoplasm_warning(site: NeoplasmSite) -> str:
    name = site.value.replace("_", " ")
    return (
        f"Ambiguous neoplasm documentation: 'metastatic {name} cancer' may mean a {name} primary "
        f"that has spread or a secondary malignancy of the {name}; coded as {name} primary with "
        f"C79.9. Query provider for primary and metastatic sites"
    )


def primary_site_code(neoplasm: NeoplasmFindings, sex: Sex | None, warnings: list[str]) -> tuple[str, str]:
    """Primary malignancy code for the documented site."""
    site = neoplasm.site
    laterality = neoplasm.laterality or Laterality.UNSPECIFIED

    if site in LATERAL_SITES and laterality == Laterality.UNSPECIFIED:
        warnings.append(LATERALITY_MISSING_WARNING)
    # Bilateral primaries are coded per side; the right side leads
    if laterality == Laterality.BILATERAL:
        laterality = Laterality.RIGHT

    if site == NeoplasmSite.BREAST:
        if sex is None:
            warnings.append("Patient sex not documented; female breast code assigned")
        return BREAST_CODES[(sex or Sex.FEMALE, laterality)]
    if site == NeoplasmSite.LUNG:
        return LUNG_CODES[laterality]
    return PRIMARY_CODES[site]


def _bilateral_counterpart(neoplasm: NeoplasmFindings, sex: Sex | None) -> tuple[str, str] | None:
    if neoplasm.laterality != Laterality.BILATERAL:
        return None
    if neoplasm.site == NeoplasmSite.BREAST:
        return BREAST_CODES[(sex or Sex.FEMALE, Laterality.LEFT)]
    if neoplasm.site == NeoplasmSite.LUNG:
        return LUNG_CODES[Laterality.LEFT]
    return None


def _metastasis(site: NeoplasmSite, rationale: str) -> SecondaryCode:
    code, label = SECONDARY_CODES[site]
    return SecondaryCode(
        code=code,
        label=label,
        role=SecondaryRole.METASTASIS,
        rationale=rationale,
        guideline_rule="I.C.2.d",
    )


def _status_resolution(neoplasm: NeoplasmFindings) -> Resolution:
    """Screening, history and follow-up encounters."""
    attributes = {"status": neoplasm.status.value, "site": neoplasm.site.value}

    if neoplasm.status == NeoplasmStatus.SCREENING:
        if neoplasm.site == NeoplasmSite.UNSPECIFIED:
            code, label = SCREENING_UNSPECIFIED
        else:
            code, label = SCREENING_CODES.get(neoplasm.site, SCREENING_OTHER)
        return Resolution(
            domain=DOMAIN, code=code, label=label, attributes=attributes,
            rationale="Screening encounter", guideline_rule="I.C.21.c.5",
        )

    history_code, history_label = HISTORY_CODES[neoplasm.site]
    if neoplasm.status == NeoplasmStatus.FOLLOW_UP:
        code, label = FOLLOW_UP
        return Resolution(
            domain=DOMAIN,
            code=code,
            label=label,
            attributes=attributes,
            secondary_codes=[
                SecondaryCode(
                    code=history_code,
                    label=history_label,
                    role=SecondaryRole.STATUS,
                    rationale="Use additional code to identify the personal history of malignancy",
                    guideline_rule="I.C.21.c.4",
                )
            ],
            rationale="Follow-up after completed cancer treatment",
            guideline_rule="I.C.21.c.8",
        )

    return Resolution(
        domain=DOMAIN, code=history_code, label=history_label, attributes=attributes,
        rationale="Malignancy excised or eradicated with no further treatment", guideline_rule="I.C.21.c.4",
    )


def resolve_neoplasm(findings: Findings) -> Resolution | None:
    neoplasm = findings.neoplasm
    if neoplasm is None:
        return None

    if neoplasm.status != NeoplasmStatus.ACTIVE:
        return _status_resolution(neoplasm)

    warnings: list[str] = []
    secondaries: list[SecondaryCode] = []
    attributes = {
        "status": neoplasm.status.value,
        "site": neoplasm.site.value,
        "role": neoplasm.role.value if neoplasm.role else None,
        "metastatic_sites": [site.value for site in neoplasm.metastatic_sites],
    }

    if neoplasm.role == NeoplasmRole.SECONDARY:
        code, label = SECONDARY_CODES[neoplasm.site]
        secondaries.append(
            SecondaryCode(
                code=UNKNOWN_PRIMARY[0],
                label=UNKNOWN_PRIMARY[1],
                role=SecondaryRole.COMPANION,
                rationale="Primary site unknown",
                guideline_rule="I.C.2.e",
            )
        )
        return Resolution(
            domain=DOMAIN,
            code=code,
            label=label,
            attributes=attributes,
            secondary_codes=secondaries,
            warnings=warnings,
            rationale="Secondary malignancy with unknown primary",
            guideline_rule="I.C.2.d",
        )

    code, label = primary_site_code(neoplasm, findings.sex, warnings)

    counterpart = _bilateral_counterpart(neoplasm, findings.sex)
    if counterpart is not None:
        secondaries.append(
            SecondaryCode(
                code=counterpart[0],
                label=counterpart[1],
                role=SecondaryRole.COEXISTING,
                rationale="Contralateral primary malignancy",
            )
        )

    for site in neoplasm.metastatic_sites:
        secondaries.append(_metastasis(site, "Documented site of metastasis"))

    if neoplasm.metastatic and not neoplasm.metastatic_sites:
        secondaries.append(_metastasis(NeoplasmSite.UNSPECIFIED, "Metastatic disease, site not documented"))
        if neoplasm.role is None:
            warnings.append(ambiguous_neoplasm_warning(neoplasm.site))
        attributes["ambiguous"] = neoplasm.role is None

    return Resolution(
        domain=DOMAIN,
        code=code,
        label=label,
        attributes=attributes,
        secondary_codes=secondaries,
        warnings=warnings,
        rationale="Active malignancy documented",
        guideline_rule="I.C.2.a",
    )
