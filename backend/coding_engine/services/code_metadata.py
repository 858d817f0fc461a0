"""Code metadata service for ICD-10-CM lookups.

Loads the local ICD-10-CM metadata fixture (Excludes1/Excludes2 lists,
Includes notes, "code first"/"code also" rule text, chapter, billability)
and answers lookups by exact code or by ancestor category.

The dictionary is loaded once and is read-only afterwards. Loading is
guarded twice:
- ``load()`` is synchronous and uses a lock with a double check, so threads
  racing on first use parse the file once
- ``ensure_loaded()`` is the async single-flight guard, so concurrent
  requests awaiting the first load share one in-flight task

This module uses a singleton pattern so the dictionary is shared across the
engine and the API.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import ClassVar

from coding_engine.core.config import settings
from coding_engine.core.exceptions import CodeMetadataUnavailableError
from coding_engine.services.code_types import strip_decimal

logger = logging.getLogger(__name__)

# Singleton instance and lock for thread-safe initialization
_metadata_instance: "CodeMetadataService | None" = None
_metadata_lock = Lock()

# Shortest category length (e.g. "E11")
MIN_CATEGORY_LENGTH = 3


@dataclass
class CodeMetadataEntry:
    """Metadata for a single ICD-10-CM code or category."""

    code: str
    description: str = ""
    chapter: str | None = None
    billable: bool | None = None
    excludes1: list[str] = field(default_factory=list)
    excludes2: list[str] = field(default_factory=list)
    includes: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    rules: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "CodeMetadataEntry":
        return cls(
            code=data["code"].strip().upper(),
            description=data.get("description", ""),
            chapter=data.get("chapter"),
            billable=data.get("billable"),
            excludes1=list(data.get("excludes1", [])),
            excludes2=list(data.get("excludes2", [])),
            includes=list(data.get("includes", [])),
            notes=list(data.get("notes", [])),
            rules=list(data.get("rules", [])),
        )

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "description": self.description,
            "chapter": self.chapter,
            "billable": self.billable,
            "excludes1": self.excludes1,
            "excludes2": self.excludes2,
            "includes": self.includes,
            "notes": self.notes,
            "rules": self.rules,
        }


class CodeMetadataService:
    """Read-only ICD-10-CM metadata dictionary.

    Every list lookup merges the exact entry with the entries of all its
    ancestors (decimal-stripped prefixes), most specific first, so an
    Excludes1 note declared on category E11 applies to E11.65 as well.
    Unknown codes yield ``[]`` or ``None``; nothing raises for a code that is
    simply not in the dictionary.

    Usage:
        metadata = CodeMetadataService()
        metadata.load()
        metadata.get_excludes1_codes("E11.65")
    """

    DEFAULT_FIXTURE_NAME: ClassVar[str] = "icd10cm_metadata.json"

    def __init__(self, fixture_path: str | Path | None = None) -> None:
        """Initialize the metadata service.

        Args:
            fixture_path: Path to the metadata JSON fixture. Defaults to
                settings.code_metadata_path, then the packaged fixture.
        """
        self._fixture_path = fixture_path
        self._entries: dict[str, CodeMetadataEntry] = {}
        self._version: str | None = None
        self._loaded = False
        self._load_time_ms: float = 0.0
        self._load_lock = Lock()
        self._load_task: asyncio.Task | None = None

    def _find_fixtures_dir(self) -> Path:
        """Find the fixtures directory."""
        current = Path(__file__).parent
        while current.parent != current:
            potential_path = current / "fixtures"
            if potential_path.exists():
                return potential_path
            current = current.parent
        return Path("fixtures")

    @property
    def fixture_path(self) -> Path:
        """Get the fixture file path."""
        if self._fixture_path:
            return Path(self._fixture_path)
        if settings.code_metadata_path:
            return Path(settings.code_metadata_path)
        return self._find_fixtures_dir() / self.DEFAULT_FIXTURE_NAME

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    # ========================================================================
    # Loading
    # ========================================================================

    def load(self) -> None:
        """Load the metadata fixture.

        Raises:
            CodeMetadataUnavailableError: If the fixture is missing or malformed.
        """
        if self._loaded:
            return

        with self._load_lock:
            # Double-check locking pattern
            if self._loaded:
                return

            start_time = time.perf_counter()
            path = self.fixture_path
            entries, version = self._read_fixture(path)

            self._entries = entries
            self._version = version
            self._loaded = True
            self._load_time_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            f"Code metadata loaded: {len(self._entries)} entries "
            f"(version {self._version}) in {self._load_time_ms:.2f}ms"
        )

    def _read_fixture(self, path: Path) -> tuple[dict[str, CodeMetadataEntry], str | None]:
        if not path.exists():
            raise CodeMetadataUnavailableError(f"Code metadata fixture not found: {path}", path=str(path))

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CodeMetadataUnavailableError(
                f"Code metadata fixture unreadable: {e}", path=str(path)
            ) from e

        codes = data.get("codes") if isinstance(data, dict) else None
        if not isinstance(codes, list):
            raise CodeMetadataUnavailableError(
                "Code metadata fixture has no 'codes' list", path=str(path)
            )

        entries: dict[str, CodeMetadataEntry] = {}
        for raw in codes:
            try:
                entry = CodeMetadataEntry.from_dict(raw)
            except (KeyError, TypeError, AttributeError) as e:
                raise CodeMetadataUnavailableError(
                    f"Malformed code metadata entry {raw!r}: {e}", path=str(path)
                ) from e
            entries[strip_decimal(entry.code)] = entry

        return entries, data.get("version")

    async def ensure_loaded(self) -> None:
        """Load the dictionary once, sharing the in-flight load between awaiters.

        A failed load is not cached: the task is cleared so the next caller
        retries.
        """
        if self._loaded:
            return

        if self._load_task is None:
            self._load_task = asyncio.create_task(asyncio.to_thread(self.load))
        task = self._load_task

        try:
            await task
        except CodeMetadataUnavailableError:
            if self._load_task is task:
                self._load_task = None
            raise

    # ========================================================================
    # Lookups
    # ========================================================================

    def _matching_entries(self, code: str) -> list[CodeMetadataEntry]:
        """Exact entry and ancestor entries, most specific first."""
        if not self._loaded:
            self.load()

        stripped = strip_decimal(code.strip().upper())
        matches = []
        for length in range(len(stripped), MIN_CATEGORY_LENGTH - 1, -1):
            entry = self._entries.get(stripped[:length])
            if entry is not None:
                matches.append(entry)
        return matches

    def _merged(self, code: str, attribute: str) -> list[str]:
        merged: list[str] = []
        for entry in self._matching_entries(code):
            for value in getattr(entry, attribute):
                if value not in merged:
                    merged.append(value)
        return merged

    def get_excludes1_codes(self, code: str) -> list[str]:
        return self._merged(code, "excludes1")

    def get_excludes2_codes(self, code: str) -> list[str]:
        return self._merged(code, "excludes2")

    def get_includes_strings(self, code: str) -> list[str]:
        return self._merged(code, "includes")

    def get_notes(self, code: str) -> list[str]:
        return self._merged(code, "notes")

    def get_rules_strings(self, code: str) -> list[str]:
        return self._merged(code, "rules")

    def get_chapter_for_code(self, code: str) -> str | None:
        for entry in self._matching_entries(code):
            if entry.chapter:
                return entry.chapter
        return None

    def get_entry(self, code: str) -> CodeMetadataEntry | None:
        """Exact entry for a code, without ancestor merging."""
        if not self._loaded:
            self.load()
        return self._entries.get(strip_decimal(code.strip().upper()))

    def get_description(self, code: str) -> str | None:
        entry = self.get_entry(code)
        return entry.description if entry else None

    def is_billable(self, code: str) -> bool | None:
        """Billability of an exactly known code; None when unknown."""
        entry = self.get_entry(code)
        return entry.billable if entry else None

    def get_stats(self) -> dict:
        """Get metadata statistics for health checks."""
        if not self._loaded:
            return {"loaded": False, "entry_count": 0, "version": None, "load_time_ms": 0}
        return {
            "loaded": True,
            "entry_count": len(self._entries),
            "version": self._version,
            "load_time_ms": round(self._load_time_ms, 2),
        }


def get_code_metadata_service() -> CodeMetadataService:
    """Get the singleton CodeMetadataService instance.

    The instance is only published once its dictionary has loaded, so a
    failed load leaves no half-initialized singleton behind.

    Raises:
        CodeMetadataUnavailableError: If the fixture cannot be loaded.
    """
    global _metadata_instance

    if _metadata_instance is None:
        with _metadata_lock:
            # Double-check locking pattern
            if _metadata_instance is None:
                logger.info("Creating singleton CodeMetadataService instance")
                service = CodeMetadataService()
                service.load()
                _metadata_instance = service

    return _metadata_instance


def preload_code_metadata() -> dict:
    """Preload the metadata dictionary at application startup."""
    return get_code_metadata_service().get_stats()


def reset_code_metadata_service() -> None:
    """Reset the singleton instance (for testing only)."""
    global _metadata_instance
    with _metadata_lock:
        _metadata_instance = None
