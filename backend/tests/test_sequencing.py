"""Tests for the sequencing engine.

Rewrite rules try to produce guideline order; validators prove it. Both
are exercised here independently and through ``sequence_codes``.
"""

from conftest import sequenced

from coding_engine.services.sequencing import (
    SEQUENCING_RULES,
    SequencingRule,
    apply_sequencing_rules,
    sequence_codes,
    validate_etiology_before_manifestation,
    validate_external_cause_last,
    validate_sepsis_before_shock,
)


def order(result) -> list[str]:
    return [item.code for item in result.codes]


class TestRuleRegistry:
    """Test the rule list itself."""

    def test_rules_sorted_by_priority(self):
        priorities = [rule.priority for rule in SEQUENCING_RULES]
        assert priorities == sorted(priorities)

    def test_rule_names(self):
        assert [rule.name for rule in SEQUENCING_RULES] == [
            "postprocedural_sepsis",
            "sepsis_with_shock",
            "injury_with_pain",
            "etiology_before_manifestation",
            "external_cause_last",
        ]


# ============================================================================
# Rewrite Rule Tests
# ============================================================================


class TestSepsisRules:
    """Test sepsis sequencing."""

    def test_sepsis_before_shock_and_source(self):
        """Test urosepsis with shock: sepsis, shock, then the source."""
        result = sequence_codes(sequenced("N39.0", "R65.21", "A41.9"))
        assert order(result) == ["A41.9", "R65.21", "N39.0"]
        assert result.is_valid
        assert result.applied_rules == ["sepsis_with_shock"]

    def test_organ_dysfunction_after_severe_sepsis(self):
        result = sequence_codes(sequenced("N39.0", "N17.9", "R65.20", "A41.51"))
        assert order(result) == ["A41.51", "R65.20", "N17.9", "N39.0"]

    def test_postprocedural_sepsis_first(self):
        """Test T81.44 leads, followed by sepsis, severity, organ dysfunction and source."""
        result = sequence_codes(sequenced("A41.9", "N39.0", "R65.20", "N17.9", "T81.44XA"))
        assert order(result) == ["T81.44XA", "A41.9", "R65.20", "N17.9", "N39.0"]
        assert result.applied_rules == ["postprocedural_sepsis", "sepsis_with_shock"]
        assert result.is_valid

    def test_unrelated_codes_keep_relative_order(self):
        result = sequence_codes(sequenced("I10", "R65.21", "E11.9", "A41.9"))
        assert order(result) == ["A41.9", "R65.21", "I10", "E11.9"]


class TestInjuryRules:
    """Test injury, pain and external cause ordering."""

    def test_injury_before_pain_before_external_cause(self):
        result = sequence_codes(sequenced("W19.XXXA", "G89.11", "S72.91XA", "Y92.009"))
        assert order(result) == ["S72.91XA", "G89.11", "W19.XXXA", "Y92.009"]
        assert result.applied_rules == ["injury_with_pain", "external_cause_last"]
        assert result.is_valid

    def test_injury_rule_moves_only_pain(self):
        """Test the pain rule leaves sepsis and other codes where they are."""
        injury_rule = next(rule for rule in SEQUENCING_RULES if rule.name == "injury_with_pain")
        ordered, applied = apply_sequencing_rules(
            sequenced("A41.9", "R65.21", "G89.11", "I10", "S72.91XA", "N39.0"), [injury_rule]
        )
        assert [item.code for item in ordered] == ["A41.9", "R65.21", "I10", "S72.91XA", "G89.11", "N39.0"]
        assert applied == ["injury_with_pain"]

    def test_pain_already_after_injury_is_unchanged(self):
        injury_rule = next(rule for rule in SEQUENCING_RULES if rule.name == "injury_with_pain")
        codes = sequenced("I10", "S72.91XA", "G89.11")
        ordered, _ = apply_sequencing_rules(codes, [injury_rule])
        assert [item.code for item in ordered] == ["I10", "S72.91XA", "G89.11"]

    def test_external_cause_moved_last(self):
        result = sequence_codes(sequenced("W19.XXXA", "S72.91XA", "I10"))
        assert order(result) == ["S72.91XA", "I10", "W19.XXXA"]
        assert result.applied_rules == ["external_cause_last"]


class TestEtiologyRules:
    """Test etiology-before-manifestation ordering."""

    def test_ckd_after_diabetes(self):
        result = sequence_codes(sequenced("N18.4", "E11.22"))
        assert order(result) == ["E11.22", "N18.4"]
        assert result.applied_rules == ["etiology_before_manifestation"]

    def test_ckd_moves_after_last_diabetes_code(self):
        result = sequence_codes(sequenced("E11.22", "N18.4", "E11.42"))
        assert order(result) == ["E11.22", "E11.42", "N18.4"]

    def test_metastasis_after_primary(self):
        result = sequence_codes(sequenced("C78.00", "C34.90"))
        assert order(result) == ["C34.90", "C78.00"]
        assert result.is_valid

    def test_metastasis_only_is_left_alone(self):
        result = sequence_codes(sequenced("C78.7", "C80.1"))
        assert order(result) == ["C78.7", "C80.1"]
        assert result.applied_rules == []


class TestShortLists:
    """Test lists of zero or one code."""

    def test_empty(self):
        result = sequence_codes([])
        assert result.codes == []
        assert result.is_valid

    def test_single_code_unchanged(self):
        result = sequence_codes(sequenced("E11.9"))
        assert order(result) == ["E11.9"]
        assert result.applied_rules == []

    def test_single_shock_code_still_validated(self):
        """Test a lone R65.21 fails even though no rule runs."""
        result = sequence_codes(sequenced("R65.21"))
        assert not result.is_valid
        assert result.errors[0].startswith("CODING ERROR: R65.21 (Septic shock)")


class TestCustomRules:
    """Test apply_sequencing_rules with a caller-supplied rule list."""

    def test_custom_rule(self):
        reverse = SequencingRule(
            name="reverse",
            priority=1,
            applies=lambda codes: True,
            rewrite=lambda codes: list(reversed(codes)),
            rationale="test",
        )
        codes, applied = apply_sequencing_rules(sequenced("A", "B", "C"), [reverse])
        assert [item.code for item in codes] == ["C", "B", "A"]
        assert applied == ["reverse"]

    def test_input_not_mutated(self):
        original = sequenced("N18.4", "E11.22")
        sequence_codes(original)
        assert [item.code for item in original] == ["N18.4", "E11.22"]


# ============================================================================
# Validator Tests
# ============================================================================


class TestValidators:
    """Test the validators on orders the rules never produce."""

    def test_shock_before_sepsis(self):
        errors = validate_sepsis_before_shock(sequenced("R65.21", "A41.9"))
        assert len(errors) == 1
        assert errors[0].startswith("SEQUENCING ERROR: R65.21 (Septic shock) must follow A40-A41")

    def test_severe_sepsis_without_sepsis(self):
        errors = validate_sepsis_before_shock(sequenced("R65.20", "N17.9"))
        assert errors == [
            "CODING ERROR: R65.20 (Severe sepsis) requires A40-A41 (Sepsis) code per ICD-10-CM guidelines"
        ]

    def test_valid_sepsis_order(self):
        assert validate_sepsis_before_shock(sequenced("A41.9", "R65.21")) == []

    def test_ckd_before_diabetes(self):
        errors = validate_etiology_before_manifestation(sequenced("N18.4", "E11.22"))
        assert len(errors) == 1
        assert errors[0].startswith("SEQUENCING ERROR: N18.4 (CKD stage) precedes diabetes code E11.22")

    def test_metastasis_before_primary(self):
        errors = validate_etiology_before_manifestation(sequenced("C78.00", "C34.90"))
        assert len(errors) == 1
        assert "primary site must be sequenced first" in errors[0]

    def test_code_after_external_cause(self):
        errors = validate_external_cause_last(sequenced("S72.91XA", "W19.XXXA", "G89.11"))
        assert errors == [
            "SEQUENCING ERROR: G89.11 follows external cause code W19.XXXA; "
            "external cause codes must be sequenced last"
        ]

    def test_external_causes_together_at_end(self):
        assert validate_external_cause_last(sequenced("S72.91XA", "W19.XXXA", "Y92.009")) == []

    def test_failed_validation_keeps_applied_rules(self):
        """Test a failing sequence still reports which rules ran."""
        result = sequence_codes(sequenced("R65.21", "N39.0"))
        assert not result.is_valid
        assert result.applied_rules == []
        assert any(error.startswith("CODING ERROR") for error in result.errors)
