"""Tests for the clinical coding API endpoints."""

import pytest
from httpx import AsyncClient

from coding_engine.core.config import settings

ENCODE_URL = "/api/v1/coding/encode"
BATCH_URL = "/api/v1/coding/encode/batch"

UROSEPSIS = {"infection": {"site": "urinary", "sepsis": {"present": True, "shock": True}}}
DIABETES_CKD = {"diabetes": {"diabetes_type": "type2", "complications": ["ckd"], "ckd_stage": "4"}}
LUNG_SAME_SITE = {"neoplasm": {"site": "lung", "laterality": "right", "metastatic_sites": ["lung"]}}


# ============================================================================
# Encode Endpoint Tests
# ============================================================================


class TestEncodeEndpoint:
    """Test POST /coding/encode."""

    @pytest.mark.asyncio
    async def test_encode_urosepsis(self, client: AsyncClient) -> None:
        """Test a sepsis case returns the certified order."""
        response = await client.post(ENCODE_URL, json=UROSEPSIS)
        assert response.status_code == 200
        data = response.json()
        assert [item["code"] for item in data["sequence"]][:3] == ["A41.9", "R65.21", "N39.0"]
        assert data["errors"] == []
        assert data["confidence"]["overall_confidence"] > 0
        assert len(data["rationale"]["rationales"]) == len(data["sequence"])

    @pytest.mark.asyncio
    async def test_encode_echoes_case_id(self, client: AsyncClient) -> None:
        """Test the case id query parameter is returned."""
        response = await client.post(ENCODE_URL, params={"case_id": "case-42"}, json=DIABETES_CKD)
        data = response.json()
        assert data["case_id"] == "case-42"
        assert data["sequence"][0]["code"] == "E11.22"
        assert data["sequence"][0]["hcc"] is True
        assert data["processing_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_encode_empty_findings(self, client: AsyncClient) -> None:
        """Test an empty finding set is a valid request with no codes."""
        response = await client.post(ENCODE_URL, json={})
        assert response.status_code == 200
        data = response.json()
        assert data["sequence"] == []
        assert data["warnings"] == []
        assert data["confidence"]["overall_confidence"] == 0

    @pytest.mark.asyncio
    async def test_encode_errors_return_200_without_codes(self, client: AsyncClient) -> None:
        """Test clinical errors are reported in the body, not as HTTP failures."""
        response = await client.post(ENCODE_URL, json=LUNG_SAME_SITE)
        assert response.status_code == 200
        data = response.json()
        assert data["sequence"] == []
        assert data["errors"][0].startswith("DOCUMENTATION CONFLICT")

    @pytest.mark.asyncio
    async def test_encode_rejects_unknown_field(self, client: AsyncClient) -> None:
        """Test a misspelled attribute fails validation."""
        response = await client.post(ENCODE_URL, json={"diabetes": {"diabetes_typ": "type2"}})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_encode_rejects_unknown_enum_value(self, client: AsyncClient) -> None:
        """Test an unknown enum value fails validation."""
        response = await client.post(ENCODE_URL, json={"renal": {"ckd_stage": "7"}})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_encode_metadata_unavailable(self, client: AsyncClient, tmp_path, monkeypatch) -> None:
        """Test an unloadable metadata dictionary answers 503."""
        monkeypatch.setattr(settings, "code_metadata_path", str(tmp_path / "missing.json"))
        response = await client.post(ENCODE_URL, json=DIABETES_CKD)
        assert response.status_code == 503
        assert "Code metadata unavailable" in response.json()["detail"]


# ============================================================================
# Batch Endpoint Tests
# ============================================================================


class TestBatchEncodeEndpoint:
    """Test POST /coding/encode/batch."""

    @pytest.mark.asyncio
    async def test_batch_preserves_order(self, client: AsyncClient) -> None:
        """Test results come back in request order with counts."""
        body = {
            "cases": [
                {"case_id": "a", "findings": UROSEPSIS},
                {"case_id": "b", "findings": LUNG_SAME_SITE},
                {"case_id": "c", "findings": {}},
            ]
        }
        response = await client.post(BATCH_URL, json=body)
        assert response.status_code == 200
        data = response.json()
        assert [result["case_id"] for result in data["results"]] == ["a", "b", "c"]
        assert data["total_cases"] == 3
        assert data["successful"] == 2
        assert data["failed"] == 1

    @pytest.mark.asyncio
    async def test_batch_requires_cases(self, client: AsyncClient) -> None:
        """Test an empty batch is rejected."""
        response = await client.post(BATCH_URL, json={"cases": []})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_batch_size_limit(self, client: AsyncClient, monkeypatch) -> None:
        """Test batches over the configured limit are rejected with 413."""
        monkeypatch.setattr(settings, "max_batch_size", 1)
        body = {"cases": [{"case_id": "a", "findings": {}}, {"case_id": "b", "findings": {}}]}
        response = await client.post(BATCH_URL, json=body)
        assert response.status_code == 413


# ============================================================================
# Code Metadata Endpoint Tests
# ============================================================================


class TestCodeMetadataEndpoint:
    """Test GET /coding/codes/{code}."""

    @pytest.mark.asyncio
    async def test_known_code(self, client: AsyncClient) -> None:
        """Test a known code returns merged metadata."""
        response = await client.get("/api/v1/coding/codes/E11.65")
        assert response.status_code == 200
        data = response.json()
        assert data["code"] == "E11.65"
        assert data["billable"] is True
        assert "E10-" in data["excludes1"]
        assert data["chapter"].startswith("Chapter 4")

    @pytest.mark.asyncio
    async def test_lookup_is_case_insensitive(self, client: AsyncClient) -> None:
        """Test lowercase codes are normalized."""
        response = await client.get("/api/v1/coding/codes/i10")
        assert response.status_code == 200
        assert response.json()["code"] == "I10"

    @pytest.mark.asyncio
    async def test_unknown_code(self, client: AsyncClient) -> None:
        """Test an unknown code answers 404."""
        response = await client.get("/api/v1/coding/codes/Q99.9")
        assert response.status_code == 404
