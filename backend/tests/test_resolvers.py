"""Tests for the domain resolvers."""

from coding_engine.schemas.findings import Findings
from coding_engine.services.code_types import SecondaryRole
from coding_engine.services.resolvers import (
    RESOLVERS,
    resolve_cardiovascular,
    resolve_diabetes,
    resolve_gastro,
    resolve_infection,
    resolve_neoplasm,
    resolve_obstetrics,
    resolve_poisoning,
    resolve_psychiatric,
    resolve_renal,
    resolve_respiratory,
    resolve_trauma,
    run_resolvers,
)
from coding_engine.services.resolvers.diabetes import TYPE_DEFAULT_WARNING
from coding_engine.services.resolvers.obstetrics import trimester_for, weeks_of_gestation_code
from coding_engine.services.resolvers.poisoning import INTENT_MISSING_WARNING
from coding_engine.services.resolvers.renal import CKD_STAGE_MISSING_WARNING
from coding_engine.services.resolvers.trauma import SEVENTH_CHARACTER_MISSING_WARNING


def resolve(resolver, payload: dict):
    return resolver(Findings.model_validate(payload))


def codes(resolution) -> list[str]:
    return [c.code for c in resolution.candidates()]


# ============================================================================
# Registry Tests
# ============================================================================


class TestRegistry:
    """Test the resolver registry."""

    def test_registry_order(self):
        """Test resolvers run in the fixed domain order."""
        assert [name for name, _ in RESOLVERS] == [
            "diabetes", "renal", "cardiovascular", "infection", "gastro",
            "respiratory", "neoplasm", "trauma", "obstetrics", "psychiatric", "poisoning",
        ]

    def test_run_resolvers_skips_absent_domains(self):
        """Test only applicable resolvers contribute, in registry order."""
        findings = Findings.model_validate({
            "injury": {"injury_type": "fracture", "site": "femur", "laterality": "left", "encounter": "initial"},
            "diabetes": {"diabetes_type": "type2"},
            "infection": {"site": "urinary", "sepsis": {"present": True}},
        })
        resolutions = run_resolvers(findings)
        assert [r.domain for r in resolutions] == ["diabetes", "infection", "trauma"]

    def test_empty_findings(self):
        """Test the empty finding set yields no resolutions."""
        assert run_resolvers(Findings()) == []

    def test_every_resolver_abstains_on_empty(self):
        """Test each resolver returns None when its bundle is absent."""
        for _, resolver in RESOLVERS:
            assert resolver(Findings()) is None


# ============================================================================
# Diabetes Resolver Tests
# ============================================================================


class TestDiabetesResolver:
    """Test diabetes combination codes and companions."""

    def test_type2_without_complications(self):
        """Test type 2 diabetes with nothing else."""
        resolution = resolve(resolve_diabetes, {"diabetes": {"diabetes_type": "type2"}})
        assert codes(resolution) == ["E11.9"]
        assert resolution.warnings == []

    def test_unspecified_type_defaults_to_type2(self):
        """Test unspecified diabetes defaults to E11 with a warning."""
        resolution = resolve(resolve_diabetes, {"diabetes": {}})
        assert resolution.code == "E11.9"
        assert TYPE_DEFAULT_WARNING in resolution.warnings

    def test_ckd_with_stage(self):
        """Test diabetic CKD carries its N18 stage."""
        resolution = resolve(
            resolve_diabetes,
            {"diabetes": {"diabetes_type": "type2", "complications": ["ckd"], "ckd_stage": "4"}},
        )
        assert codes(resolution) == ["E11.22", "N18.4"]
        assert resolution.secondary_codes[0].role == SecondaryRole.STAGE

    def test_ckd_without_stage_warns(self):
        """Test diabetic CKD without a stage gets N18.9 and a warning."""
        resolution = resolve(
            resolve_diabetes, {"diabetes": {"diabetes_type": "type2", "complications": ["ckd"]}}
        )
        assert codes(resolution) == ["E11.22", "N18.9"]
        assert CKD_STAGE_MISSING_WARNING in resolution.warnings

    def test_ckd_from_renal_bundle(self):
        """Test CKD documented in the renal bundle is presumed linked to diabetes."""
        resolution = resolve(
            resolve_diabetes,
            {"diabetes": {"diabetes_type": "type2"}, "renal": {"ckd_stage": "3a"}},
        )
        assert codes(resolution) == ["E11.22", "N18.31"]

    def test_stage5_on_dialysis_is_esrd(self):
        """Test stage 5 on dialysis is coded as ESRD."""
        resolution = resolve(
            resolve_diabetes,
            {"diabetes": {"diabetes_type": "type1"}, "renal": {"ckd_stage": "5", "on_dialysis": True}},
        )
        assert codes(resolution) == ["E10.22", "N18.6"]

    def test_charcot_uses_diabetes_code(self):
        """Test Charcot joint maps to E11.610 with the arthropathy warning."""
        resolution = resolve(
            resolve_diabetes, {"diabetes": {"diabetes_type": "type2", "complications": ["charcot"]}}
        )
        assert codes(resolution) == ["E11.610"]
        assert any("Charcot" in w and "M14.6" in w for w in resolution.warnings)

    def test_type1_hyperosmolarity_becomes_hyperglycemia(self):
        """Test hyperosmolarity is not classified for type 1 diabetes."""
        resolution = resolve(
            resolve_diabetes, {"diabetes": {"diabetes_type": "type1", "complications": ["hyperosmolarity"]}}
        )
        assert resolution.code == "E10.65"
        assert any("E10.65" in w for w in resolution.warnings)

    def test_coma_goes_to_highest_priority_complication(self):
        """Test coma attaches to ketoacidosis, not to the hypoglycemia beside it."""
        resolution = resolve(
            resolve_diabetes,
            {"diabetes": {"diabetes_type": "type2", "complications": ["hypoglycemia", "ketoacidosis"], "coma": True}},
        )
        assert codes(resolution) == ["E11.11", "E11.649"]

    def test_gangrene_subsumes_angiopathy(self):
        """Test angiopathy with gangrene is one code."""
        resolution = resolve(
            resolve_diabetes,
            {"diabetes": {"diabetes_type": "type2", "complications": ["angiopathy", "gangrene"]}},
        )
        assert codes(resolution) == ["E11.52"]

    def test_retinopathy_with_eye_character(self):
        """Test graded retinopathy takes the eye as 7th character."""
        resolution = resolve(
            resolve_diabetes,
            {
                "diabetes": {
                    "diabetes_type": "type2",
                    "retinopathy_severity": "moderate_npdr",
                    "macular_edema": True,
                    "retinopathy_laterality": "left",
                }
            },
        )
        assert resolution.code == "E11.3312"
        assert resolution.label.endswith("left eye")

    def test_unspecified_retinopathy_has_no_eye(self):
        """Test unspecified retinopathy codes have no eye character."""
        resolution = resolve(
            resolve_diabetes, {"diabetes": {"diabetes_type": "type2", "complications": ["retinopathy"]}}
        )
        assert resolution.code == "E11.319"

    def test_foot_ulcer_with_site(self):
        """Test a foot ulcer carries its L97 site and depth code."""
        resolution = resolve(
            resolve_diabetes,
            {"diabetes": {"diabetes_type": "type2", "ulcer_site": "right_foot", "ulcer_depth": "bone"}},
        )
        assert codes(resolution) == ["E11.621", "L97.514"]

    def test_foot_ulcer_without_site_warns(self):
        """Test a foot ulcer without its site asks for L97."""
        resolution = resolve(
            resolve_diabetes, {"diabetes": {"diabetes_type": "type2", "complications": ["foot_ulcer"]}}
        )
        assert codes(resolution) == ["E11.621"]
        assert any("L97" in w for w in resolution.warnings)

    def test_insulin_use(self):
        """Test long-term insulin use adds Z79.4 except for type 1."""
        type2 = resolve(resolve_diabetes, {"diabetes": {"diabetes_type": "type2", "insulin_use": True}})
        type1 = resolve(resolve_diabetes, {"diabetes": {"diabetes_type": "type1", "insulin_use": True}})
        assert "Z79.4" in codes(type2)
        assert "Z79.4" not in codes(type1)

    def test_multiple_complications_keep_priority(self):
        """Test the primary is the highest-priority complication."""
        resolution = resolve(
            resolve_diabetes,
            {"diabetes": {"diabetes_type": "type2", "complications": ["neuropathy", "hyperglycemia"],
                          "neuropathy_type": "polyneuropathy"}},
        )
        assert codes(resolution) == ["E11.65", "E11.42"]

    def test_presymptomatic_type1(self):
        """Test presymptomatic type 1 diabetes."""
        resolution = resolve(
            resolve_diabetes, {"diabetes": {"diabetes_type": "type1", "presymptomatic_stage": "stage2"}}
        )
        assert codes(resolution) == ["E10.A2"]

    def test_hypoglycemic_coma_without_diabetes(self):
        """Test nondiabetic hypoglycemic coma."""
        resolution = resolve(resolve_diabetes, {"diabetes": {"hypoglycemic_coma_without_diabetes": True}})
        assert codes(resolution) == ["E15"]

    def test_drug_induced_family(self):
        """Test drug-induced diabetes uses E09."""
        resolution = resolve(
            resolve_diabetes,
            {"diabetes": {"diabetes_type": "drug_induced", "complications": ["hyperglycemia"]}},
        )
        assert resolution.code == "E09.65"


# ============================================================================
# Renal Resolver Tests
# ============================================================================


class TestRenalResolver:
    """Test CKD, AKI and dialysis coding."""

    def test_ckd_stage(self):
        """Test CKD stage is the primary."""
        assert codes(resolve(resolve_renal, {"renal": {"ckd_stage": "3b"}})) == ["N18.32"]

    def test_aki_with_ckd(self):
        """Test AKI leads with the CKD stage beside it."""
        assert codes(resolve(resolve_renal, {"renal": {"ckd_stage": "4", "aki": True}})) == ["N17.9", "N18.4"]

    def test_esrd_on_dialysis(self):
        """Test stage 5 on dialysis is ESRD with dialysis status."""
        resolution = resolve(resolve_renal, {"renal": {"ckd_stage": "5", "on_dialysis": True}})
        assert codes(resolution) == ["N18.6", "Z99.2"]

    def test_dialysis_alone(self):
        """Test dialysis without kidney disease warns."""
        resolution = resolve(resolve_renal, {"renal": {"on_dialysis": True}})
        assert codes(resolution) == ["Z99.2"]
        assert resolution.warnings

    def test_unspecified_stage_warns(self):
        """Test unspecified CKD stage."""
        resolution = resolve(resolve_renal, {"renal": {"ckd_stage": "unspecified"}})
        assert codes(resolution) == ["N18.9"]
        assert CKD_STAGE_MISSING_WARNING in resolution.warnings

    def test_nothing_documented(self):
        """Test an empty renal bundle abstains."""
        assert resolve(resolve_renal, {"renal": {}}) is None


# ============================================================================
# Cardiovascular Resolver Tests
# ============================================================================


class TestCardiovascularResolver:
    """Test the hypertension hierarchy and cardiac tables."""

    def test_essential_hypertension(self):
        """Test hypertension alone."""
        assert codes(resolve(resolve_cardiovascular, {"cardiovascular": {"hypertension": True}})) == ["I10"]

    def test_hypertensive_heart_disease_with_heart_failure(self):
        """Test HTN + HF gives I11.0 with the heart failure type."""
        resolution = resolve(
            resolve_cardiovascular,
            {"cardiovascular": {"hypertension": True, "heart_failure": {"type": "systolic", "acuity": "chronic"}}},
        )
        assert codes(resolution) == ["I11.0", "I50.22"]

    def test_hypertensive_ckd(self):
        """Test HTN + CKD gives I12.9 with the stage."""
        resolution = resolve(
            resolve_cardiovascular, {"cardiovascular": {"hypertension": True}, "renal": {"ckd_stage": "4"}}
        )
        assert codes(resolution) == ["I12.9", "N18.4"]

    def test_hypertensive_ckd_stage5(self):
        """Test HTN + stage 5 CKD gives I12.0."""
        resolution = resolve(
            resolve_cardiovascular, {"cardiovascular": {"hypertension": True}, "renal": {"ckd_stage": "5"}}
        )
        assert codes(resolution) == ["I12.0", "N18.5"]

    def test_hypertensive_heart_and_ckd_with_esrd(self):
        """Test HTN + HF + ESRD gives I13.2."""
        resolution = resolve(
            resolve_cardiovascular,
            {
                "cardiovascular": {"hypertension": True, "heart_failure": {"type": "diastolic", "acuity": "acute"}},
                "renal": {"ckd_stage": "esrd"},
            },
        )
        assert codes(resolution) == ["I13.2", "I50.31", "N18.6"]

    def test_heart_failure_type_missing(self):
        """Test unspecified heart failure type warns and assigns I50.9."""
        resolution = resolve(
            resolve_cardiovascular, {"cardiovascular": {"hypertension": True, "heart_failure": {}}}
        )
        assert codes(resolution) == ["I11.0", "I50.9"]
        assert any("Heart failure type" in w for w in resolution.warnings)

    def test_acute_mi_outranks_hypertension(self):
        """Test NSTEMI is the primary with hypertension coexisting."""
        resolution = resolve(
            resolve_cardiovascular, {"cardiovascular": {"hypertension": True, "mi": {"type": "nstemi"}}}
        )
        assert codes(resolution) == ["I21.4", "I10"]
        coexisting = resolution.candidates()[1]
        assert coexisting.triggered_by == "cardiovascular_coexisting"
        assert coexisting.base_score == 0.7

    def test_stemi_wall(self):
        """Test STEMI by wall."""
        resolution = resolve(
            resolve_cardiovascular, {"cardiovascular": {"mi": {"type": "stemi", "location": "inferior"}}}
        )
        assert resolution.code == "I21.19"

    def test_cad_with_unstable_angina(self):
        """Test CAD with angina is a combination code."""
        resolution = resolve(
            resolve_cardiovascular, {"cardiovascular": {"cad": True, "angina": {"type": "unstable"}}}
        )
        assert codes(resolution) == ["I25.110"]

    def test_old_mi_and_atrial_fibrillation(self):
        """Test AF outranks a healed MI."""
        resolution = resolve(
            resolve_cardiovascular,
            {"cardiovascular": {"mi": {"old": True}, "atrial_fibrillation": {"type": "paroxysmal"}}},
        )
        assert codes(resolution) == ["I48.0", "I25.2"]

    def test_nothing_documented(self):
        """Test an empty cardiovascular bundle abstains."""
        assert resolve(resolve_cardiovascular, {"cardiovascular": {}}) is None


# ============================================================================
# Infection Resolver Tests
# ============================================================================


class TestInfectionResolver:
    """Test sepsis and localized infection coding."""

    def test_urosepsis_with_shock(self):
        """Test sepsis with shock from a urinary source."""
        resolution = resolve(
            resolve_infection, {"infection": {"site": "urinary", "sepsis": {"present": True, "shock": True}}}
        )
        assert codes(resolution) == ["A41.9", "R65.21", "N39.0"]

    def test_sepsis_by_organism(self):
        """Test the sepsis code follows the organism."""
        resolution = resolve(
            resolve_infection, {"infection": {"organism": "e_coli", "sepsis": {"severe": True}}}
        )
        assert codes(resolution) == ["A41.51", "R65.20"]

    def test_organ_dysfunction_implies_severe_sepsis(self):
        """Test organ dysfunction adds R65.20 and the dysfunction code."""
        resolution = resolve(
            resolve_infection,
            {"infection": {"sepsis": {}, "organ_dysfunctions": ["acute_kidney_failure"]}},
        )
        assert codes(resolution) == ["A41.9", "R65.20", "N17.9"]

    def test_postprocedural_sepsis(self):
        """Test post-procedural sepsis leads with T81.44XA."""
        resolution = resolve(resolve_infection, {"infection": {"postprocedural": True, "sepsis": {}}})
        assert codes(resolution) == ["T81.44XA", "A41.9"]
        assert resolution.candidates()[1].triggered_by == "infection_organism"

    def test_lung_source_uses_pneumonia_organism(self):
        """Test a lung source borrows the pneumonia organism."""
        resolution = resolve(
            resolve_infection,
            {
                "infection": {"site": "lung", "sepsis": {}},
                "respiratory": {"pneumonia": {"organism": "strep_pneumoniae"}},
            },
        )
        assert codes(resolution) == ["A40.3", "J13"]

    def test_localized_infection_with_organism(self):
        """Test a UTI without sepsis carries the B96 organism code."""
        resolution = resolve(resolve_infection, {"infection": {"site": "urinary", "organism": "e_coli"}})
        assert codes(resolution) == ["N39.0", "B96.20"]

    def test_localized_infection_without_organism_warns(self):
        """Test a UTI without organism warns."""
        resolution = resolve(resolve_infection, {"infection": {"site": "urinary"}})
        assert codes(resolution) == ["N39.0"]
        assert any("organism" in w for w in resolution.warnings)

    def test_bacteremia(self):
        """Test bacteremia without sepsis."""
        assert codes(resolve(resolve_infection, {"infection": {"bacteremia": True}})) == ["R78.81"]

    def test_blood_site_is_not_a_source(self):
        """Test a bloodstream site adds no source code beside sepsis."""
        resolution = resolve(resolve_infection, {"infection": {"site": "blood", "sepsis": {}}})
        assert codes(resolution) == ["A41.9"]

    def test_nothing_documented(self):
        """Test an empty infection bundle abstains."""
        assert resolve(resolve_infection, {"infection": {}}) is None


# ============================================================================
# Gastro Resolver Tests
# ============================================================================


class TestGastroResolver:
    """Test biliary, pancreatic and gastric coding."""

    def test_gallstones_with_acute_cholecystitis(self):
        """Test the calculus combination code."""
        resolution = resolve(
            resolve_gastro, {"gastro": {"cholelithiasis": {"cholecystitis": "acute", "obstruction": True}}}
        )
        assert codes(resolution) == ["K80.01"]

    def test_pancreatitis_outranks_gallstones(self):
        """Test pancreatitis is the primary with gallstones coexisting."""
        resolution = resolve(
            resolve_gastro,
            {"gastro": {"pancreatitis": {"cause": "biliary"}, "cholelithiasis": {}}},
        )
        assert codes(resolution) == ["K85.10", "K80.20"]

    def test_chronic_alcoholic_pancreatitis(self):
        """Test chronic pancreatitis table."""
        resolution = resolve(
            resolve_gastro, {"gastro": {"pancreatitis": {"acuity": "chronic", "cause": "alcohol"}}}
        )
        assert resolution.code == "K86.0"

    def test_pancreatitis_cause_missing(self):
        """Test unspecified pancreatitis etiology warns."""
        resolution = resolve(resolve_gastro, {"gastro": {"pancreatitis": {}}})
        assert resolution.code == "K85.90"
        assert resolution.warnings

    def test_gastritis_absorbs_bleed(self):
        """Test GI bleed with gastritis is coded as gastritis with bleeding."""
        resolution = resolve(
            resolve_gastro, {"gastro": {"gastritis": {"acuity": "acute"}, "gi_bleed": True}}
        )
        assert codes(resolution) == ["K29.01"]

    def test_gi_bleed_alone(self):
        """Test an unsourced GI bleed."""
        resolution = resolve(resolve_gastro, {"gastro": {"gi_bleed": True}})
        assert codes(resolution) == ["K92.2"]
        assert resolution.warnings


# ============================================================================
# Respiratory Resolver Tests
# ============================================================================


class TestRespiratoryResolver:
    """Test respiratory failure, COPD, asthma and pneumonia."""

    def test_acute_failure_with_hypoxia(self):
        """Test acute hypoxic respiratory failure."""
        resolution = resolve(
            resolve_respiratory, {"respiratory": {"failure": {"acuity": "acute", "hypoxia": True}}}
        )
        assert codes(resolution) == ["J96.01"]

    def test_failure_with_hypoxia_and_hypercapnia(self):
        """Test both gases are coded."""
        resolution = resolve(
            resolve_respiratory,
            {"respiratory": {"failure": {"acuity": "acute", "hypoxia": True, "hypercapnia": True}}},
        )
        assert codes(resolution) == ["J96.01", "J96.02"]

    def test_failure_acuity_missing(self):
        """Test unspecified acuity warns."""
        resolution = resolve(resolve_respiratory, {"respiratory": {"failure": {}}})
        assert resolution.code == "J96.90"
        assert resolution.warnings

    def test_copd_with_lower_respiratory_infection(self):
        """Test J44.0 with the pneumonia as companion."""
        resolution = resolve(
            resolve_respiratory,
            {"respiratory": {"copd": {"lower_respiratory_infection": True}, "pneumonia": {}}},
        )
        assert codes(resolution) == ["J44.0", "J18.9"]

    def test_copd_exacerbation(self):
        """Test COPD exacerbation."""
        assert resolve(resolve_respiratory, {"respiratory": {"copd": {"exacerbation": True}}}).code == "J44.1"

    def test_asthma(self):
        """Test asthma severity and status."""
        resolution = resolve(
            resolve_respiratory,
            {"respiratory": {"asthma": {"severity": "mild_persistent", "status": "exacerbation"}}},
        )
        assert resolution.code == "J45.31"

    def test_aspiration_pneumonia(self):
        """Test aspiration pneumonia."""
        assert resolve(resolve_respiratory, {"respiratory": {"pneumonia": {"aspiration": True}}}).code == "J69.0"

    def test_nothing_documented(self):
        """Test an empty respiratory bundle abstains."""
        assert resolve(resolve_respiratory, {"respiratory": {}}) is None


# ============================================================================
# Neoplasm Resolver Tests
# ============================================================================


class TestNeoplasmResolver:
    """Test malignancy, metastasis, history and screening coding."""

    def test_breast_primary(self):
        """Test a lateral breast primary."""
        resolution = resolve(
            resolve_neoplasm,
            {"patient": {"sex": "female"}, "neoplasm": {"site": "breast", "laterality": "left"}},
        )
        assert codes(resolution) == ["C50.912"]
        assert resolution.warnings == []

    def test_breast_without_sex_or_laterality(self):
        """Test defaults for breast primaries warn twice."""
        resolution = resolve(resolve_neoplasm, {"neoplasm": {"site": "breast"}})
        assert resolution.code == "C50.919"
        assert len(resolution.warnings) == 2

    def test_bilateral_breast(self):
        """Test bilateral primaries are coded per side."""
        resolution = resolve(
            resolve_neoplasm,
            {"patient": {"sex": "female"}, "neoplasm": {"site": "breast", "laterality": "bilateral"}},
        )
        assert codes(resolution) == ["C50.911", "C50.912"]

    def test_documented_metastases(self):
        """Test metastatic sites follow the primary."""
        resolution = resolve(
            resolve_neoplasm,
            {"neoplasm": {"site": "lung", "laterality": "right", "metastatic_sites": ["brain", "bone"]}},
        )
        assert codes(resolution) == ["C34.91", "C79.31", "C79.51"]
        assert resolution.secondary_codes[0].role == SecondaryRole.METASTASIS

    def test_ambiguous_metastatic_cancer(self):
        """Test 'metastatic colon cancer' is coded with the ambiguity warning."""
        resolution = resolve(resolve_neoplasm, {"neoplasm": {"site": "colon", "metastatic": True}})
        assert codes(resolution) == ["C18.9", "C79.9"]
        assert any(w.startswith("Ambiguous neoplasm") for w in resolution.warnings)
        assert resolution.attributes["ambiguous"] is True

    def test_metastatic_with_role_is_not_ambiguous(self):
        """Test a documented role removes the ambiguity."""
        resolution = resolve(
            resolve_neoplasm, {"neoplasm": {"site": "colon", "metastatic": True, "role": "primary"}}
        )
        assert resolution.warnings == []

    def test_secondary_with_unknown_primary(self):
        """Test a secondary site pairs with C80.1."""
        resolution = resolve(resolve_neoplasm, {"neoplasm": {"site": "liver", "role": "secondary"}})
        assert codes(resolution) == ["C78.7", "C80.1"]

    def test_liver_primary(self):
        """Test a liver primary."""
        assert resolve(resolve_neoplasm, {"neoplasm": {"site": "liver"}}).code == "C22.8"

    def test_history(self):
        """Test history of malignancy."""
        assert codes(resolve(resolve_neoplasm, {"neoplasm": {"status": "history", "site": "breast"}})) == ["Z85.3"]

    def test_follow_up(self):
        """Test follow-up encounter carries the history code."""
        resolution = resolve(resolve_neoplasm, {"neoplasm": {"status": "follow_up", "site": "colon"}})
        assert codes(resolution) == ["Z08", "Z85.038"]

    def test_screening(self):
        """Test screening codes by site."""
        assert resolve(resolve_neoplasm, {"neoplasm": {"status": "screening", "site": "colon"}}).code == "Z12.11"
        assert resolve(resolve_neoplasm, {"neoplasm": {"status": "screening", "site": "brain"}}).code == "Z12.89"
        assert resolve(resolve_neoplasm, {"neoplasm": {"status": "screening"}}).code == "Z12.9"


# ============================================================================
# Trauma Resolver Tests
# ============================================================================


class TestTraumaResolver:
    """Test injury coding."""

    def test_full_fall_injury(self):
        """Test fracture, pain, external cause and place."""
        resolution = resolve(
            resolve_trauma,
            {
                "injury": {
                    "injury_type": "fracture",
                    "site": "femur",
                    "laterality": "right",
                    "encounter": "initial",
                    "external_cause": "fall",
                    "place_of_occurrence": "home",
                    "acute_pain": True,
                }
            },
        )
        assert codes(resolution) == ["S72.91XA", "G89.11", "W19.XXXA", "Y92.009"]
        assert resolution.warnings == []

    def test_missing_encounter_defaults_initial(self):
        """Test the 7th character defaults to A with a warning."""
        resolution = resolve(
            resolve_trauma, {"injury": {"injury_type": "fracture", "site": "femur", "laterality": "right"}}
        )
        assert resolution.code == "S72.91XA"
        assert SEVENTH_CHARACTER_MISSING_WARNING in resolution.warnings

    def test_missing_laterality(self):
        """Test the unspecified side code with a laterality warning."""
        resolution = resolve(
            resolve_trauma, {"injury": {"injury_type": "fracture", "site": "femur", "encounter": "initial"}}
        )
        assert resolution.code == "S72.90XA"
        assert any("Laterality" in w for w in resolution.warnings)

    def test_subsequent_encounter(self):
        """Test the subsequent encounter character."""
        resolution = resolve(
            resolve_trauma,
            {"injury": {"injury_type": "fracture", "site": "femur", "laterality": "left", "encounter": "subsequent"}},
        )
        assert resolution.code == "S72.92XD"

    def test_bilateral_fracture(self):
        """Test bilateral fractures are coded per side."""
        resolution = resolve(
            resolve_trauma,
            {"injury": {"injury_type": "fracture", "site": "femur", "laterality": "bilateral", "encounter": "initial"}},
        )
        assert codes(resolution) == ["S72.91XA", "S72.92XA"]

    def test_non_fracture_injury(self):
        """Test other injuries use the unspecified injury code."""
        resolution = resolve(resolve_trauma, {"injury": {"injury_type": "laceration", "encounter": "initial"}})
        assert resolution.code == "T14.90XA"


# ============================================================================
# Obstetrics Resolver Tests
# ============================================================================


class TestObstetricsResolver:
    """Test pregnancy coding."""

    def test_trimester_from_weeks(self):
        """Test the trimester boundaries."""
        assert trimester_for(Findings.model_validate({"obstetric": {"weeks": 13}}).obstetric) == 1
        assert trimester_for(Findings.model_validate({"obstetric": {"weeks": 14}}).obstetric) == 2
        assert trimester_for(Findings.model_validate({"obstetric": {"weeks": 27}}).obstetric) == 2
        assert trimester_for(Findings.model_validate({"obstetric": {"weeks": 28}}).obstetric) == 3
        assert trimester_for(Findings.model_validate({"obstetric": {}}).obstetric) is None

    def test_explicit_trimester_wins(self):
        """Test a documented trimester is used as is."""
        obstetric = Findings.model_validate({"obstetric": {"trimester": 3, "weeks": 10}}).obstetric
        assert trimester_for(obstetric) == 3

    def test_weeks_of_gestation_code(self):
        """Test Z3A bounds."""
        assert weeks_of_gestation_code(5)[0] == "Z3A.01"
        assert weeks_of_gestation_code(30)[0] == "Z3A.30"
        assert weeks_of_gestation_code(43)[0] == "Z3A.49"

    def test_severe_preeclampsia(self):
        """Test pre-eclampsia with weeks of gestation."""
        resolution = resolve(resolve_obstetrics, {"obstetric": {"preeclampsia": "severe", "weeks": 30}})
        assert codes(resolution) == ["O14.13", "Z3A.30"]

    def test_preeclampsia_has_no_first_trimester(self):
        """Test first-trimester pre-eclampsia uses the unspecified character."""
        resolution = resolve(resolve_obstetrics, {"obstetric": {"preeclampsia": "mild", "trimester": 1}})
        assert resolution.code == "O14.00"

    def test_gestational_diabetes(self):
        """Test gestational diabetes by control."""
        resolution = resolve(
            resolve_obstetrics, {"obstetric": {"gestational_diabetes": {"control": "insulin"}}}
        )
        assert resolution.code == "O24.414"

    def test_preexisting_diabetes(self):
        """Test pre-existing diabetes in pregnancy uses the diabetes family."""
        resolution = resolve(
            resolve_obstetrics,
            {"obstetric": {"trimester": 2}, "diabetes": {"diabetes_type": "type1"}},
        )
        assert resolution.code == "O24.012"

    def test_normal_delivery(self):
        """Test uncomplicated delivery with outcome and weeks."""
        resolution = resolve(
            resolve_obstetrics,
            {"obstetric": {"weeks": 39, "delivery": {"normal": True, "outcome": "single_liveborn"}}},
        )
        assert codes(resolution) == ["O80", "Z3A.39", "Z37.0"]

    def test_routine_supervision_without_trimester(self):
        """Test routine supervision warns when the trimester is unknown."""
        resolution = resolve(resolve_obstetrics, {"obstetric": {"routine_supervision": True}})
        assert resolution.code == "Z34.90"
        assert resolution.warnings

    def test_hyperemesis(self):
        """Test hyperemesis gravidarum."""
        assert resolve(resolve_obstetrics, {"obstetric": {"hyperemesis": True}}).code == "O21.0"

    def test_not_pregnant(self):
        """Test a non-pregnant bundle abstains."""
        assert resolve(resolve_obstetrics, {"obstetric": {"pregnant": False}}) is None


# ============================================================================
# Psychiatric Resolver Tests
# ============================================================================


class TestPsychiatricResolver:
    """Test mental health coding."""

    def test_single_episode(self):
        """Test single-episode depression."""
        resolution = resolve(resolve_psychiatric, {"psychiatric": {"depression": {"severity": "moderate"}}})
        assert resolution.code == "F32.1"

    def test_recurrent_severe_psychotic(self):
        """Test recurrent severe depression with psychotic features."""
        resolution = resolve(
            resolve_psychiatric,
            {"psychiatric": {"depression": {"episode": "recurrent", "severity": "severe", "psychotic_features": True}}},
        )
        assert resolution.code == "F33.3"

    def test_remission(self):
        """Test remission codes."""
        resolution = resolve(
            resolve_psychiatric, {"psychiatric": {"depression": {"episode": "recurrent", "remission": "full"}}}
        )
        assert resolution.code == "F33.42"

    def test_psychotic_features_imply_severe(self):
        """Test psychotic features with non-severe depression."""
        resolution = resolve(
            resolve_psychiatric,
            {"psychiatric": {"depression": {"severity": "mild", "psychotic_features": True}}},
        )
        assert resolution.code == "F32.3"
        assert resolution.warnings

    def test_unspecified_severity(self):
        """Test unspecified severity warns."""
        resolution = resolve(resolve_psychiatric, {"psychiatric": {"depression": {}}})
        assert resolution.code == "F32.9"
        assert resolution.warnings

    def test_bipolar_absorbs_depression(self):
        """Test depression in bipolar disorder is not coded separately."""
        resolution = resolve(
            resolve_psychiatric, {"psychiatric": {"bipolar": True, "depression": {"severity": "mild"}}}
        )
        assert codes(resolution) == ["F31.9"]

    def test_depression_with_anxiety(self):
        """Test coexisting anxiety."""
        resolution = resolve(
            resolve_psychiatric,
            {"psychiatric": {"depression": {"severity": "mild"}, "anxiety": {"generalized": True}}},
        )
        assert codes(resolution) == ["F32.0", "F41.1"]

    def test_substance_use(self):
        """Test substance use disorder table."""
        resolution = resolve(
            resolve_psychiatric,
            {"psychiatric": {"substance_use": {"substance": "alcohol", "level": "dependence"}}},
        )
        assert resolution.code == "F10.20"


# ============================================================================
# Poisoning Resolver Tests
# ============================================================================


class TestPoisoningResolver:
    """Test drug events and insulin pump failure."""

    def test_accidental_insulin_overdose(self):
        """Test agent and intent characters."""
        resolution = resolve(
            resolve_poisoning,
            {"poisoning": {"agent": "insulin", "intent": "accidental", "encounter": "initial"}},
        )
        assert codes(resolution) == ["T38.3X1A"]
        assert resolution.warnings == []

    def test_adverse_effect_without_agent(self):
        """Test an intent-only adverse effect codes the unspecified drug."""
        resolution = resolve(
            resolve_poisoning, {"poisoning": {"intent": "adverse_effect", "encounter": "initial"}}
        )
        assert resolution.code == "T50.905A"

    def test_intent_missing(self):
        """Test missing intent defaults to accidental with a warning."""
        resolution = resolve(resolve_poisoning, {"poisoning": {"agent": "opioid", "encounter": "initial"}})
        assert resolution.code == "T40.601A"
        assert INTENT_MISSING_WARNING in resolution.warnings

    def test_encounter_missing(self):
        """Test missing encounter defaults to initial with a warning."""
        resolution = resolve(resolve_poisoning, {"poisoning": {"agent": "anticoagulant", "intent": "underdosing"}})
        assert resolution.code == "T45.516A"
        assert len(resolution.warnings) == 1

    def test_pump_overdose_without_diabetes(self):
        """Test pump failure leads, with the dose code and an assumed diabetes code."""
        resolution = resolve(resolve_poisoning, {"poisoning": {"pump_failure": "overdose"}})
        assert codes(resolution) == ["T85.614A", "T38.3X1A", "E11.649"]
        assert resolution.trigger == "insulin_pump_failure"
        assert any("E11.649" in w for w in resolution.warnings)

    def test_pump_underdose_with_diabetes(self):
        """Test no diabetes code is assumed when diabetes is documented."""
        resolution = resolve(
            resolve_poisoning,
            {"poisoning": {"pump_failure": "underdose"}, "diabetes": {"diabetes_type": "type1"}},
        )
        assert codes(resolution) == ["T85.614A", "T38.3X6A"]

    def test_pump_unclear(self):
        """Test an unclear dose effect codes only the breakdown."""
        resolution = resolve(resolve_poisoning, {"poisoning": {"pump_failure": "unclear"}})
        assert codes(resolution) == ["T85.614A"]
        assert resolution.warnings

    def test_nothing_documented(self):
        """Test an empty poisoning bundle abstains."""
        assert resolve(resolve_poisoning, {"poisoning": {}}) is None
