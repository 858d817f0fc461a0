"""Pytest configuration and fixtures for backend tests."""

from collections.abc import AsyncGenerator, Iterator

import pytest
from httpx import ASGITransport, AsyncClient

from coding_engine.main import app
from coding_engine.schemas.findings import Findings
from coding_engine.services.code_metadata import (
    CodeMetadataService,
    reset_code_metadata_service,
)
from coding_engine.services.code_types import CandidateCode, SequencedCode
from coding_engine.services.rules_engine import ClinicalCodingEngine, reset_coding_engine


@pytest.fixture(autouse=True)
def reset_singletons() -> Iterator[None]:
    """Give every test fresh metadata and engine singletons."""
    reset_code_metadata_service()
    reset_coding_engine()
    yield
    reset_code_metadata_service()
    reset_coding_engine()


@pytest.fixture(scope="session")
def metadata() -> CodeMetadataService:
    """Loaded metadata service over the bundled fixture.

    Session scoped: the dictionary is read-only once loaded.
    """
    service = CodeMetadataService()
    service.load()
    return service


@pytest.fixture
def engine(metadata: CodeMetadataService) -> ClinicalCodingEngine:
    """Engine bound to the bundled metadata."""
    return ClinicalCodingEngine(metadata)


@pytest.fixture
def encode(engine: ClinicalCodingEngine):
    """Encode a raw finding payload."""

    def _encode(payload: dict):
        return engine.encode(Findings.model_validate(payload))

    return _encode


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client.

    The lifespan is not run by ASGITransport; the API loads the metadata
    lazily on first request.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def candidate(code: str, triggered_by: str = "test_resolution", base_score: float = 1.0, label: str = "") -> CandidateCode:
    """Shorthand for building candidate codes in tests."""
    return CandidateCode(code=code, label=label or code, triggered_by=triggered_by, base_score=base_score)


def sequenced(*codes: str) -> list[SequencedCode]:
    """Shorthand for building a sequence of codes in tests."""
    return [SequencedCode(code=code, label=code, triggered_by="test_resolution") for code in codes]

