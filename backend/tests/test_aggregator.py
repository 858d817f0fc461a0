"""Tests for the candidate aggregator."""

from coding_engine.services.aggregator import aggregate, collect_warnings
from coding_engine.services.code_types import Resolution, SecondaryCode, SecondaryRole


def stage_secondary(code: str = "N18.4") -> SecondaryCode:
    return SecondaryCode(code=code, label="CKD stage", role=SecondaryRole.STAGE)


class TestAggregate:
    """Test candidate merging and deduplication."""

    def test_keeps_resolver_order(self):
        """Test candidates follow resolution then emission order."""
        resolutions = [
            Resolution(domain="diabetes", code="E11.22", label="DM CKD", secondary_codes=[stage_secondary()]),
            Resolution(domain="cardiovascular", code="I10", label="HTN"),
        ]
        assert [c.code for c in aggregate(resolutions)] == ["E11.22", "N18.4", "I10"]

    def test_triggered_by(self):
        """Test primary and secondary trigger names."""
        resolutions = [
            Resolution(domain="diabetes", code="E11.22", label="DM CKD", secondary_codes=[stage_secondary()]),
        ]
        merged = aggregate(resolutions)
        assert merged[0].triggered_by == "diabetes_resolution"
        assert merged[1].triggered_by == "diabetes_stage"

    def test_higher_score_replaces_in_place(self):
        """Test a later duplicate with a higher score replaces the first, keeping its slot."""
        resolutions = [
            Resolution(domain="diabetes", code="E11.22", label="DM CKD", secondary_codes=[stage_secondary()]),
            Resolution(domain="renal", code="N18.4", label="CKD 4"),
        ]
        merged = aggregate(resolutions)
        assert [c.code for c in merged] == ["E11.22", "N18.4"]
        assert merged[1].triggered_by == "renal_resolution"
        assert merged[1].base_score == 1.0

    def test_tie_keeps_first(self):
        """Test an equal-score duplicate is dropped."""
        resolutions = [
            Resolution(domain="renal", code="N18.4", label="CKD 4", rationale="first"),
            Resolution(domain="cardiovascular", code="N18.4", label="CKD 4", rationale="second"),
        ]
        merged = aggregate(resolutions)
        assert len(merged) == 1
        assert merged[0].rationale == "first"

    def test_lower_score_is_dropped(self):
        """Test a later duplicate with a lower score never replaces."""
        resolutions = [
            Resolution(domain="renal", code="N18.4", label="CKD 4"),
            Resolution(domain="diabetes", code="E11.22", label="DM CKD", secondary_codes=[stage_secondary()]),
        ]
        merged = aggregate(resolutions)
        assert [c.code for c in merged] == ["N18.4", "E11.22"]
        assert merged[0].triggered_by == "renal_resolution"

    def test_custom_trigger(self):
        """Test a resolution can name its own trigger."""
        resolution = Resolution(
            domain="poisoning", code="T85.614A", label="Pump", triggered_by="insulin_pump_failure"
        )
        assert aggregate([resolution])[0].triggered_by == "insulin_pump_failure"

    def test_empty(self):
        """Test no resolutions means no candidates."""
        assert aggregate([]) == []


class TestCollectWarnings:
    """Test warning collection."""

    def test_dedupes_in_order(self):
        """Test warnings keep first occurrence order without repeats."""
        resolutions = [
            Resolution(domain="diabetes", code="E11.22", label="x", warnings=["a", "b"]),
            Resolution(domain="renal", code="N18.9", label="y", warnings=["b", "c"]),
        ]
        assert collect_warnings(resolutions) == ["a", "b", "c"]
