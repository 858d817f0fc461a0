"""Finding bundles consumed by the coding engine.

A finding bundle is the typed attribute set extracted upstream for one
clinical domain. ``Findings`` groups at most one bundle per domain; every
bundle is optional and ``Findings()`` is the empty finding set.

Bundles are immutable and reject unknown fields, so a typo in an upstream
attribute name fails validation instead of being silently ignored.
"""

from pydantic import BaseModel, Field

from coding_engine.schemas.base import (
    Acuity,
    AnginaType,
    AsthmaSeverity,
    AsthmaStatus,
    AtrialFibrillationType,
    CardiomyopathyType,
    CKDStage,
    DeliveryOutcome,
    DepressionEpisode,
    DiabetesComplication,
    DiabetesType,
    EncounterType,
    ExternalCause,
    GestationalDiabetesControl,
    HeartFailureType,
    InfectionSite,
    InjurySite,
    InjuryType,
    Laterality,
    MILocation,
    MIType,
    NeoplasmRole,
    NeoplasmSite,
    NeoplasmStatus,
    NeuropathyType,
    OrganDysfunction,
    Organism,
    PancreatitisCause,
    PlaceOfOccurrence,
    PoisoningAgent,
    PoisoningIntent,
    PreeclampsiaSeverity,
    PresymptomaticStage,
    PumpDoseEffect,
    Remission,
    RetinopathySeverity,
    Severity,
    Sex,
    Substance,
    SubstanceUseLevel,
    UlcerDepth,
    UlcerSite,
)


class FindingModel(BaseModel):
    """Base class for immutable finding models."""

    model_config = {"frozen": True, "extra": "forbid"}


# ============================================================================
# Patient
# ============================================================================


class PatientFindings(FindingModel):
    """Demographics relevant to code selection."""

    sex: Sex | None = Field(None, description="Patient sex")
    age: int | None = Field(None, ge=0, le=130, description="Age in years")


# ============================================================================
# Endocrine / Renal
# ============================================================================


class DiabetesFindings(FindingModel):
    """Diabetes mellitus and its documented complications."""

    diabetes_type: DiabetesType = Field(DiabetesType.UNSPECIFIED, description="Diabetes family")
    complications: tuple[DiabetesComplication, ...] = Field(
        default=(), description="Documented complications"
    )
    coma: bool = Field(False, description="Coma documented with hyperosmolarity/ketoacidosis/hypoglycemia")
    retinopathy_severity: RetinopathySeverity | None = None
    retinopathy_laterality: Laterality | None = Field(None, description="Eye(s) affected by retinopathy")
    macular_edema: bool = Field(False, description="Macular edema (or macular involvement of a detachment)")
    ckd_stage: CKDStage | None = Field(None, description="CKD stage when documented with diabetes")
    ulcer_site: UlcerSite | None = None
    ulcer_depth: UlcerDepth | None = None
    neuropathy_type: NeuropathyType | None = None
    presymptomatic_stage: PresymptomaticStage | None = None
    insulin_use: bool = Field(False, description="Long-term current insulin use")
    oral_hypoglycemic_use: bool = Field(False, description="Long-term oral hypoglycemic use")
    hypoglycemic_coma_without_diabetes: bool = False

    def has(self, complication: DiabetesComplication) -> bool:
        """Check whether a complication is documented."""
        return complication in self.complications


class RenalFindings(FindingModel):
    """Chronic and acute kidney disease."""

    ckd_stage: CKDStage | None = None
    aki: bool = Field(False, description="Acute kidney injury")
    on_dialysis: bool = False
    transplant_status: bool = Field(False, description="Kidney transplant status")


# ============================================================================
# Cardiovascular
# ============================================================================


class HeartFailure(FindingModel):
    type: HeartFailureType = HeartFailureType.UNSPECIFIED
    acuity: Acuity = Acuity.UNSPECIFIED


class MyocardialInfarction(FindingModel):
    type: MIType = MIType.UNSPECIFIED
    location: MILocation = MILocation.UNSPECIFIED
    old: bool = Field(False, description="Healed MI documented as history")


class Angina(FindingModel):
    type: AnginaType = AnginaType.UNSPECIFIED


class AtrialFibrillation(FindingModel):
    type: AtrialFibrillationType = AtrialFibrillationType.UNSPECIFIED


class Cardiomyopathy(FindingModel):
    type: CardiomyopathyType = CardiomyopathyType.UNSPECIFIED


class CardiovascularFindings(FindingModel):
    """Hypertension, heart failure, ischemic heart disease and arrhythmia."""

    hypertension: bool = False
    heart_failure: HeartFailure | None = None
    mi: MyocardialInfarction | None = None
    angina: Angina | None = None
    cad: bool = Field(False, description="Coronary artery disease")
    atrial_fibrillation: AtrialFibrillation | None = None
    cardiomyopathy: Cardiomyopathy | None = None


# ============================================================================
# Infection
# ============================================================================


class Sepsis(FindingModel):
    present: bool = True
    severe: bool = False
    shock: bool = False


class InfectionFindings(FindingModel):
    """Sepsis, bacteremia and localized infections."""

    site: InfectionSite | None = Field(None, description="Localized infection site / sepsis source")
    organism: Organism | None = None
    sepsis: Sepsis | None = None
    postprocedural: bool = Field(False, description="Infection following a procedure")
    organ_dysfunctions: tuple[OrganDysfunction, ...] = ()
    bacteremia: bool = False


# ============================================================================
# Gastro / Respiratory
# ============================================================================


class Cholelithiasis(FindingModel):
    cholecystitis: Acuity | None = Field(None, description="Accompanying cholecystitis, if any")
    obstruction: bool = False


class Pancreatitis(FindingModel):
    acuity: Acuity = Acuity.ACUTE
    cause: PancreatitisCause = PancreatitisCause.UNSPECIFIED


class Gastritis(FindingModel):
    acuity: Acuity = Acuity.UNSPECIFIED
    bleeding: bool = False


class GastroFindings(FindingModel):
    """Biliary, pancreatic and gastric disease."""

    cholelithiasis: Cholelithiasis | None = None
    cholecystitis: Acuity | None = None
    pancreatitis: Pancreatitis | None = None
    gastritis: Gastritis | None = None
    gi_bleed: bool = False


class RespiratoryFailure(FindingModel):
    acuity: Acuity = Acuity.UNSPECIFIED
    hypoxia: bool = False
    hypercapnia: bool = False


class COPD(FindingModel):
    exacerbation: bool = False
    lower_respiratory_infection: bool = False


class Asthma(FindingModel):
    severity: AsthmaSeverity = AsthmaSeverity.UNSPECIFIED
    status: AsthmaStatus = AsthmaStatus.UNCOMPLICATED


class Pneumonia(FindingModel):
    organism: Organism = Organism.UNSPECIFIED
    aspiration: bool = False


class RespiratoryFindings(FindingModel):
    """Respiratory failure, COPD, asthma and pneumonia."""

    failure: RespiratoryFailure | None = None
    copd: COPD | None = None
    asthma: Asthma | None = None
    pneumonia: Pneumonia | None = None


# ============================================================================
# Neoplasm / Injury
# ============================================================================


class NeoplasmFindings(FindingModel):
    """Malignant neoplasm, history of malignancy or cancer screening."""

    status: NeoplasmStatus = NeoplasmStatus.ACTIVE
    site: NeoplasmSite = NeoplasmSite.UNSPECIFIED
    laterality: Laterality | None = None
    role: NeoplasmRole | None = Field(
        None, description="Whether the site is documented as primary or secondary"
    )
    metastatic: bool = Field(False, description="'Metastatic' attached to the site")
    metastatic_sites: tuple[NeoplasmSite, ...] = Field(
        default=(), description="Documented sites of metastasis"
    )


class InjuryFindings(FindingModel):
    """Injury with its external cause."""

    injury_type: InjuryType = InjuryType.UNSPECIFIED
    site: InjurySite = InjurySite.UNSPECIFIED
    laterality: Laterality | None = None
    encounter: EncounterType | None = None
    external_cause: ExternalCause | None = None
    place_of_occurrence: PlaceOfOccurrence | None = None
    acute_pain: bool = Field(False, description="Acute post-traumatic pain")


# ============================================================================
# Obstetrics / Psychiatric / Poisoning
# ============================================================================


class GestationalDiabetes(FindingModel):
    control: GestationalDiabetesControl = GestationalDiabetesControl.UNSPECIFIED


class Delivery(FindingModel):
    normal: bool = False
    outcome: DeliveryOutcome | None = None


class ObstetricFindings(FindingModel):
    """Pregnancy, its complications and delivery."""

    pregnant: bool = True
    trimester: int | None = Field(None, ge=1, le=3)
    weeks: int | None = Field(None, ge=1, le=45, description="Completed weeks of gestation")
    routine_supervision: bool = False
    hypertension: bool = False
    preeclampsia: PreeclampsiaSeverity | None = None
    gestational_diabetes: GestationalDiabetes | None = None
    hyperemesis: bool = False
    placenta_previa: bool = False
    threatened_abortion: bool = False
    postpartum_hemorrhage: bool = False
    delivery: Delivery | None = None


class Depression(FindingModel):
    episode: DepressionEpisode = DepressionEpisode.SINGLE
    severity: Severity = Severity.UNSPECIFIED
    psychotic_features: bool = False
    remission: Remission | None = None


class Anxiety(FindingModel):
    generalized: bool = False


class SubstanceUse(FindingModel):
    substance: Substance
    level: SubstanceUseLevel = SubstanceUseLevel.USE


class PsychiatricFindings(FindingModel):
    """Mood, anxiety, psychotic and substance use disorders."""

    depression: Depression | None = None
    anxiety: Anxiety | None = None
    bipolar: bool = False
    schizophrenia: bool = False
    substance_use: SubstanceUse | None = None


class PoisoningFindings(FindingModel):
    """Poisoning, adverse effect, underdosing and insulin pump failure."""

    agent: PoisoningAgent | None = None
    intent: PoisoningIntent | None = None
    encounter: EncounterType | None = None
    pump_failure: PumpDoseEffect | None = Field(
        None, description="Insulin pump malfunction with its dose effect"
    )


# ============================================================================
# Findings
# ============================================================================


class Findings(FindingModel):
    """All finding bundles for one encode request."""

    patient: PatientFindings | None = None
    diabetes: DiabetesFindings | None = None
    renal: RenalFindings | None = None
    cardiovascular: CardiovascularFindings | None = None
    infection: InfectionFindings | None = None
    gastro: GastroFindings | None = None
    respiratory: RespiratoryFindings | None = None
    neoplasm: NeoplasmFindings | None = None
    injury: InjuryFindings | None = None
    obstetric: ObstetricFindings | None = None
    psychiatric: PsychiatricFindings | None = None
    poisoning: PoisoningFindings | None = None

    def domains(self) -> list[str]:
        """Names of the clinical bundles present, in field order."""
        return [
            name
            for name in type(self).model_fields
            if name != "patient" and getattr(self, name) is not None
        ]

    def is_empty(self) -> bool:
        return not self.domains()

    def ckd_stage(self) -> CKDStage | None:
        """CKD stage from the renal bundle, falling back to the diabetes bundle."""
        if self.renal is not None and self.renal.ckd_stage is not None:
            return self.renal.ckd_stage
        if self.diabetes is not None:
            if self.diabetes.ckd_stage is not None:
                return self.diabetes.ckd_stage
            if self.diabetes.has(DiabetesComplication.CKD):
                return CKDStage.UNSPECIFIED
        return None

    @property
    def sex(self) -> Sex | None:
        return self.patient.sex if self.patient else None
