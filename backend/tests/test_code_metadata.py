"""Tests for the ICD-10-CM code metadata service."""

import asyncio
import json
import threading
import time
from pathlib import Path

import pytest

from coding_engine.core.config import settings
from coding_engine.core.exceptions import CodeMetadataUnavailableError
from coding_engine.services.code_metadata import (
    CodeMetadataEntry,
    CodeMetadataService,
    get_code_metadata_service,
    preload_code_metadata,
    reset_code_metadata_service,
)


def write_fixture(path: Path, codes: list[dict], version: str = "test") -> Path:
    path.write_text(json.dumps({"version": version, "codes": codes}), encoding="utf-8")
    return path


# ============================================================================
# Service Initialization Tests
# ============================================================================


class TestServiceInit:
    """Test service initialization and the singleton accessor."""

    def test_service_creation(self):
        """Test service can be created without loading."""
        service = CodeMetadataService()
        assert service is not None
        assert service.is_loaded is False

    def test_singleton_pattern(self):
        """Test singleton pattern works."""
        service1 = get_code_metadata_service()
        service2 = get_code_metadata_service()
        assert service1 is service2
        assert service1.is_loaded

    def test_singleton_reset(self):
        """Test singleton can be reset."""
        service1 = get_code_metadata_service()
        reset_code_metadata_service()
        service2 = get_code_metadata_service()
        assert service1 is not service2

    def test_default_fixture_is_bundled(self):
        """Test the default fixture path points at the packaged JSON file."""
        service = CodeMetadataService()
        assert service.fixture_path.name == "icd10cm_metadata.json"
        assert service.fixture_path.exists()

    def test_preload_returns_stats(self):
        """Test preloading reports the loaded dictionary."""
        stats = preload_code_metadata()
        assert stats["loaded"] is True
        assert stats["entry_count"] > 0
        assert stats["version"] == "icd10cm-2025-subset"

    def test_stats_before_load(self):
        """Test stats of an unloaded service."""
        stats = CodeMetadataService().get_stats()
        assert stats == {"loaded": False, "entry_count": 0, "version": None, "load_time_ms": 0}


# ============================================================================
# Lookup Tests
# ============================================================================


class TestLookups:
    """Test metadata lookups against the bundled fixture."""

    def test_excludes1_merges_ancestors(self, metadata):
        """Test Excludes1 of a code includes the notes of its category."""
        excludes = metadata.get_excludes1_codes("E11.65")
        assert "E11.64-" in excludes
        assert "E10-" in excludes
        # Most specific entry first
        assert excludes.index("E11.64-") < excludes.index("E10-")

    def test_excludes1_of_code_without_own_entry(self, metadata):
        """Test a code without its own Excludes1 list inherits its category notes."""
        assert "E10-" in metadata.get_excludes1_codes("E11.42")

    def test_excludes2(self, metadata):
        """Test Excludes2 lookup."""
        assert "E11.65" in metadata.get_excludes2_codes("E11.9")

    def test_rules_strings(self, metadata):
        """Test rule text merges the code and its category."""
        rules = " ".join(metadata.get_rules_strings("E11.22")).lower()
        assert "stage of chronic kidney disease" in rules
        assert "insulin (z79.4)" in rules

    def test_includes_and_notes(self, metadata):
        """Test includes and notes lookups return lists."""
        assert metadata.get_includes_strings("E11.22") == []
        assert any("7th character" in note for note in metadata.get_notes("S72.91XA"))

    def test_chapter_from_category(self, metadata):
        """Test the chapter is found on the category entry."""
        chapter = metadata.get_chapter_for_code("E11.22")
        assert chapter is not None
        assert chapter.startswith("Chapter 4")

    def test_unknown_code_never_raises(self, metadata):
        """Test unknown codes yield empty results."""
        assert metadata.get_excludes1_codes("Q99.9") == []
        assert metadata.get_excludes2_codes("Q99.9") == []
        assert metadata.get_includes_strings("Q99.9") == []
        assert metadata.get_rules_strings("Q99.9") == []
        assert metadata.get_chapter_for_code("Q99.9") is None
        assert metadata.get_entry("Q99.9") is None
        assert metadata.is_billable("Q99.9") is None

    def test_billable(self, metadata):
        """Test billability of categories and leaf codes."""
        assert metadata.is_billable("E11") is False
        assert metadata.is_billable("E11.9") is True
        assert metadata.is_billable("I10") is True

    def test_entry_lookup_normalizes_code(self, metadata):
        """Test exact lookup is case- and whitespace-insensitive."""
        entry = metadata.get_entry(" e11.9 ")
        assert entry is not None
        assert entry.code == "E11.9"
        assert metadata.get_description("E11.9") == "Type 2 diabetes mellitus without complications"

    def test_lookup_loads_lazily(self, tmp_path):
        """Test a lookup on an unloaded service triggers the load."""
        path = write_fixture(tmp_path / "meta.json", [{"code": "A00", "excludes1": ["B00-"]}])
        service = CodeMetadataService(path)
        assert service.get_excludes1_codes("A00.1") == ["B00-"]
        assert service.is_loaded


class TestEntry:
    """Test the metadata entry record."""

    def test_from_dict_defaults(self):
        """Test missing lists default to empty."""
        entry = CodeMetadataEntry.from_dict({"code": "e11.9"})
        assert entry.code == "E11.9"
        assert entry.excludes1 == []
        assert entry.billable is None

    def test_round_trip_dict(self):
        """Test to_dict exposes every field."""
        entry = CodeMetadataEntry(code="I10", billable=True, excludes1=["O10-"])
        data = entry.to_dict()
        assert data["code"] == "I10"
        assert data["excludes1"] == ["O10-"]
        assert set(data) == {
            "code", "description", "chapter", "billable",
            "excludes1", "excludes2", "includes", "notes", "rules",
        }


# ============================================================================
# Load Failure Tests
# ============================================================================


class TestLoadFailures:
    """Test unrecoverable metadata failures."""

    def test_missing_fixture_raises(self, tmp_path):
        """Test a missing fixture raises CodeMetadataUnavailableError."""
        service = CodeMetadataService(tmp_path / "missing.json")
        with pytest.raises(CodeMetadataUnavailableError) as exc_info:
            service.load()
        assert exc_info.value.path == str(tmp_path / "missing.json")
        assert service.is_loaded is False

    def test_malformed_json_raises(self, tmp_path):
        """Test unparseable JSON raises."""
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CodeMetadataUnavailableError):
            CodeMetadataService(path).load()

    def test_missing_codes_list_raises(self, tmp_path):
        """Test a fixture without a codes list raises."""
        path = tmp_path / "empty.json"
        path.write_text(json.dumps({"version": "x"}), encoding="utf-8")
        with pytest.raises(CodeMetadataUnavailableError):
            CodeMetadataService(path).load()

    def test_entry_without_code_raises(self, tmp_path):
        """Test an entry without its code raises."""
        path = write_fixture(tmp_path / "meta.json", [{"description": "no code"}])
        with pytest.raises(CodeMetadataUnavailableError):
            CodeMetadataService(path).load()

    def test_lookup_propagates_failure(self, tmp_path):
        """Test a lookup on an unloadable dictionary raises instead of guessing."""
        service = CodeMetadataService(tmp_path / "missing.json")
        with pytest.raises(CodeMetadataUnavailableError):
            service.get_excludes1_codes("E11.9")

    def test_singleton_not_published_on_failure(self, tmp_path, monkeypatch):
        """Test a failed load leaves no half-initialized singleton."""
        monkeypatch.setattr(settings, "code_metadata_path", str(tmp_path / "missing.json"))
        with pytest.raises(CodeMetadataUnavailableError):
            get_code_metadata_service()

        write_fixture(tmp_path / "missing.json", [{"code": "I10", "billable": True}])
        service = get_code_metadata_service()
        assert service.is_billable("I10") is True


# ============================================================================
# Concurrency Tests
# ============================================================================


class TestSingleFlightLoading:
    """Test the load-once guards."""

    @pytest.mark.asyncio
    async def test_concurrent_ensure_loaded_shares_one_load(self, tmp_path):
        """Test concurrent awaiters share one in-flight load."""
        path = write_fixture(tmp_path / "meta.json", [{"code": "I10", "billable": True}])
        service = CodeMetadataService(path)
        calls = []
        original_load = service.load

        def slow_load():
            calls.append(1)
            time.sleep(0.05)
            original_load()

        service.load = slow_load

        await asyncio.gather(*(service.ensure_loaded() for _ in range(10)))

        assert len(calls) == 1
        assert service.is_loaded

    @pytest.mark.asyncio
    async def test_ensure_loaded_is_idempotent(self, tmp_path):
        """Test awaiting an already loaded service does nothing."""
        path = write_fixture(tmp_path / "meta.json", [{"code": "I10"}])
        service = CodeMetadataService(path)
        await service.ensure_loaded()
        await service.ensure_loaded()
        assert service.get_stats()["entry_count"] == 1

    @pytest.mark.asyncio
    async def test_failed_load_is_retried(self, tmp_path):
        """Test a failed load is not cached; the next awaiter retries."""
        path = tmp_path / "meta.json"
        service = CodeMetadataService(path)

        with pytest.raises(CodeMetadataUnavailableError):
            await service.ensure_loaded()

        write_fixture(path, [{"code": "I10", "billable": True}])
        await service.ensure_loaded()
        assert service.is_loaded

    def test_threaded_load_parses_once(self, tmp_path, monkeypatch):
        """Test threads racing on load() parse the fixture once."""
        path = write_fixture(tmp_path / "meta.json", [{"code": "I10"}])
        service = CodeMetadataService(path)
        reads = []
        original_read = service._read_fixture

        def counting_read(fixture_path):
            reads.append(1)
            time.sleep(0.02)
            return original_read(fixture_path)

        monkeypatch.setattr(service, "_read_fixture", counting_read)

        threads = [threading.Thread(target=service.load) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(reads) == 1
