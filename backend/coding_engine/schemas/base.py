"""Base schemas and enums for the Clinical Coding Rules Engine."""

from enum import Enum


class Laterality(str, Enum):
    """Body side documented for paired organs and limbs."""

    RIGHT = "right"
    LEFT = "left"
    BILATERAL = "bilateral"
    UNSPECIFIED = "unspecified"


class Sex(str, Enum):
    """Patient sex, used where the classification splits by it."""

    FEMALE = "female"
    MALE = "male"


class EncounterType(str, Enum):
    """Encounter type carried by the 7th character of injury codes."""

    INITIAL = "initial"  # A
    SUBSEQUENT = "subsequent"  # D
    SEQUELA = "sequela"  # S


class Acuity(str, Enum):
    """Acuity of a condition."""

    ACUTE = "acute"
    CHRONIC = "chronic"
    ACUTE_ON_CHRONIC = "acute_on_chronic"
    UNSPECIFIED = "unspecified"


# ============================================================================
# Endocrine / Renal
# ============================================================================


class DiabetesType(str, Enum):
    """Diabetes family as documented."""

    TYPE1 = "type1"  # E10
    TYPE2 = "type2"  # E11
    UNDERLYING_CONDITION = "underlying_condition"  # E08
    DRUG_INDUCED = "drug_induced"  # E09
    OTHER_SPECIFIED = "other_specified"  # E13
    UNSPECIFIED = "unspecified"  # E11 by convention


class DiabetesComplication(str, Enum):
    """Complications documented with diabetes."""

    HYPEROSMOLARITY = "hyperosmolarity"
    KETOACIDOSIS = "ketoacidosis"
    HYPOGLYCEMIA = "hypoglycemia"
    HYPERGLYCEMIA = "hyperglycemia"  # "uncontrolled"
    FOOT_ULCER = "foot_ulcer"
    ANGIOPATHY = "angiopathy"
    GANGRENE = "gangrene"
    CHARCOT = "charcot"
    RETINOPATHY = "retinopathy"
    NEPHROPATHY = "nephropathy"
    CKD = "ckd"
    NEUROPATHY = "neuropathy"
    CATARACT = "cataract"
    ORAL = "oral"
    UNSPECIFIED = "unspecified"


class RetinopathySeverity(str, Enum):
    """Diabetic retinopathy severity."""

    MILD_NPDR = "mild_npdr"
    MODERATE_NPDR = "moderate_npdr"
    SEVERE_NPDR = "severe_npdr"
    PDR = "pdr"
    TRACTION_DETACHMENT = "traction_detachment"
    COMBINED_DETACHMENT = "combined_detachment"
    UNSPECIFIED = "unspecified"


class NeuropathyType(str, Enum):
    """Diabetic neuropathy type."""

    MONONEUROPATHY = "mononeuropathy"
    POLYNEUROPATHY = "polyneuropathy"
    AUTONOMIC = "autonomic"
    AMYOTROPHY = "amyotrophy"
    UNSPECIFIED = "unspecified"


class PresymptomaticStage(str, Enum):
    """Presymptomatic type 1 diabetes stage."""

    STAGE1 = "stage1"
    STAGE2 = "stage2"


class UlcerSite(str, Enum):
    """Site of a lower-limb chronic ulcer."""

    RIGHT_ANKLE = "right_ankle"
    LEFT_ANKLE = "left_ankle"
    RIGHT_HEEL = "right_heel"
    LEFT_HEEL = "left_heel"
    RIGHT_FOOT = "right_foot"
    LEFT_FOOT = "left_foot"
    UNSPECIFIED_FOOT = "unspecified_foot"


class UlcerDepth(str, Enum):
    """Deepest tissue reached by an ulcer."""

    SKIN = "skin"
    FAT = "fat"
    MUSCLE = "muscle"
    BONE = "bone"
    UNSPECIFIED = "unspecified"


class CKDStage(str, Enum):
    """Chronic kidney disease stage."""

    STAGE_1 = "1"
    STAGE_2 = "2"
    STAGE_3 = "3"
    STAGE_3A = "3a"
    STAGE_3B = "3b"
    STAGE_4 = "4"
    STAGE_5 = "5"
    ESRD = "esrd"
    UNSPECIFIED = "unspecified"


# ============================================================================
# Cardiovascular
# ============================================================================


class HeartFailureType(str, Enum):
    """Heart failure type."""

    SYSTOLIC = "systolic"
    DIASTOLIC = "diastolic"
    COMBINED = "combined"
    UNSPECIFIED = "unspecified"


class MIType(str, Enum):
    """Myocardial infarction type."""

    STEMI = "stemi"
    NSTEMI = "nstemi"
    UNSPECIFIED = "unspecified"


class MILocation(str, Enum):
    """Wall involved in a STEMI."""

    ANTERIOR = "anterior"
    INFERIOR = "inferior"
    OTHER = "other"
    UNSPECIFIED = "unspecified"


class AnginaType(str, Enum):
    """Angina type."""

    UNSTABLE = "unstable"
    STABLE = "stable"
    UNSPECIFIED = "unspecified"


class AtrialFibrillationType(str, Enum):
    """Atrial fibrillation type."""

    PAROXYSMAL = "paroxysmal"
    PERSISTENT = "persistent"
    LONGSTANDING_PERSISTENT = "longstanding_persistent"
    PERMANENT = "permanent"
    CHRONIC = "chronic"
    UNSPECIFIED = "unspecified"


class CardiomyopathyType(str, Enum):
    """Cardiomyopathy type."""

    DILATED = "dilated"
    OBSTRUCTIVE_HYPERTROPHIC = "obstructive_hypertrophic"
    HYPERTROPHIC = "hypertrophic"
    RESTRICTIVE = "restrictive"
    UNSPECIFIED = "unspecified"


# ============================================================================
# Infection / Respiratory / Gastro
# ============================================================================


class InfectionSite(str, Enum):
    """Site of a localized infection or the source of sepsis."""

    URINARY = "urinary"
    LUNG = "lung"
    KIDNEY = "kidney"
    SKIN = "skin"
    ABDOMINAL = "abdominal"
    BLOOD = "blood"
    OTHER = "other"


class Organism(str, Enum):
    """Causative organism."""

    E_COLI = "e_coli"
    KLEBSIELLA = "klebsiella"
    PROTEUS = "proteus"
    PSEUDOMONAS = "pseudomonas"
    ENTEROCOCCUS = "enterococcus"
    MSSA = "mssa"
    MRSA = "mrsa"
    STAPH = "staph"
    STREP = "strep"
    STREP_PNEUMONIAE = "strep_pneumoniae"
    H_INFLUENZAE = "h_influenzae"
    GRAM_NEGATIVE = "gram_negative"
    MYCOPLASMA = "mycoplasma"
    BACTERIAL = "bacterial"
    VIRAL = "viral"
    UNSPECIFIED = "unspecified"


class OrganDysfunction(str, Enum):
    """Organ dysfunction associated with sepsis."""

    ACUTE_KIDNEY_FAILURE = "acute_kidney_failure"
    ACUTE_RESPIRATORY_FAILURE = "acute_respiratory_failure"
    POSTPROCEDURAL_RESPIRATORY_FAILURE = "postprocedural_respiratory_failure"
    ENCEPHALOPATHY = "encephalopathy"


class PancreatitisCause(str, Enum):
    """Cause of pancreatitis."""

    ALCOHOL = "alcohol"
    BILIARY = "biliary"
    IDIOPATHIC = "idiopathic"
    UNSPECIFIED = "unspecified"


class AsthmaSeverity(str, Enum):
    """Asthma severity class."""

    MILD_INTERMITTENT = "mild_intermittent"
    MILD_PERSISTENT = "mild_persistent"
    MODERATE_PERSISTENT = "moderate_persistent"
    SEVERE_PERSISTENT = "severe_persistent"
    UNSPECIFIED = "unspecified"


class AsthmaStatus(str, Enum):
    """Asthma status."""

    UNCOMPLICATED = "uncomplicated"
    EXACERBATION = "exacerbation"
    STATUS_ASTHMATICUS = "status_asthmaticus"


# ============================================================================
# Neoplasm / Injury
# ============================================================================


class NeoplasmStatus(str, Enum):
    """Reason the neoplasm is documented."""

    ACTIVE = "active"
    HISTORY = "history"
    SCREENING = "screening"
    FOLLOW_UP = "follow_up"


class NeoplasmSite(str, Enum):
    """Anatomic site of a neoplasm."""

    BREAST = "breast"
    LUNG = "lung"
    COLON = "colon"
    RECTUM = "rectum"
    PROSTATE = "prostate"
    PANCREAS = "pancreas"
    BLADDER = "bladder"
    LIVER = "liver"
    BRAIN = "brain"
    BONE = "bone"
    LYMPH_NODE = "lymph_node"
    UNSPECIFIED = "unspecified"


class NeoplasmRole(str, Enum):
    """Whether the documented site is the primary or a secondary site."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class InjuryType(str, Enum):
    """Type of injury."""

    FRACTURE = "fracture"
    LACERATION = "laceration"
    CONTUSION = "contusion"
    UNSPECIFIED = "unspecified"


class InjurySite(str, Enum):
    """Injured body region."""

    FEMUR = "femur"
    HIP = "hip"
    RADIUS = "radius"
    RIB = "rib"
    UNSPECIFIED = "unspecified"


class ExternalCause(str, Enum):
    """Mechanism of injury."""

    FALL = "fall"
    MOTOR_VEHICLE = "motor_vehicle"
    ASSAULT = "assault"
    STRUCK_BY_OBJECT = "struck_by_object"


class PlaceOfOccurrence(str, Enum):
    """Place where the injury happened."""

    HOME = "home"
    STREET = "street"
    UNSPECIFIED = "unspecified"


# ============================================================================
# Obstetrics / Psychiatric / Poisoning
# ============================================================================


class GestationalDiabetesControl(str, Enum):
    """How gestational diabetes is controlled."""

    DIET = "diet"
    INSULIN = "insulin"
    ORAL_HYPOGLYCEMIC = "oral_hypoglycemic"
    UNSPECIFIED = "unspecified"


class PreeclampsiaSeverity(str, Enum):
    """Pre-eclampsia severity."""

    MILD = "mild"
    SEVERE = "severe"
    HELLP = "hellp"
    UNSPECIFIED = "unspecified"


class DeliveryOutcome(str, Enum):
    """Outcome of delivery."""

    SINGLE_LIVEBORN = "single_liveborn"
    SINGLE_STILLBORN = "single_stillborn"
    TWINS_LIVEBORN = "twins_liveborn"


class DepressionEpisode(str, Enum):
    """Single or recurrent depressive episode."""

    SINGLE = "single"
    RECURRENT = "recurrent"


class Severity(str, Enum):
    """Clinical severity grading."""

    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"
    UNSPECIFIED = "unspecified"


class Remission(str, Enum):
    """Remission status."""

    PARTIAL = "partial"
    FULL = "full"


class Substance(str, Enum):
    """Substance involved in a use disorder."""

    ALCOHOL = "alcohol"
    OPIOID = "opioid"
    CANNABIS = "cannabis"
    COCAINE = "cocaine"
    OTHER = "other"


class SubstanceUseLevel(str, Enum):
    """Level of a substance use disorder."""

    USE = "use"
    ABUSE = "abuse"
    DEPENDENCE = "dependence"


class PoisoningAgent(str, Enum):
    """Drug involved in a poisoning, adverse effect or underdosing."""

    INSULIN = "insulin"
    ORAL_HYPOGLYCEMIC = "oral_hypoglycemic"
    ANTICOAGULANT = "anticoagulant"
    CORTICOSTEROID = "corticosteroid"
    OPIOID = "opioid"
    UNSPECIFIED_DRUG = "unspecified_drug"


class PoisoningIntent(str, Enum):
    """Intent of a drug event (6th character of T36-T50)."""

    ACCIDENTAL = "accidental"  # 1
    SELF_HARM = "self_harm"  # 2
    ASSAULT = "assault"  # 3
    UNDETERMINED = "undetermined"  # 4
    ADVERSE_EFFECT = "adverse_effect"  # 5
    UNDERDOSING = "underdosing"  # 6


class PumpDoseEffect(str, Enum):
    """Dose effect of an insulin pump malfunction."""

    OVERDOSE = "overdose"
    UNDERDOSE = "underdose"
    UNCLEAR = "unclear"
