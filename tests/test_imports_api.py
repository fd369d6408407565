"""
API tests for the import routes.

Services are swapped for instances wired to the in-memory repository.

Run: pytest tests/test_imports_api.py -v
"""

import json

import pytest
from unittest.mock import patch

from services.asset_service import AssetService
from services.file_type_service import FileTypeService


@pytest.fixture
def api(test_client, fake_client, vocabulary, orchestrator_factory):
    """Test client with every service pointed at the fake repository."""
    file_types = FileTypeService(vocabulary=vocabulary)
    orchestrator = orchestrator_factory()

    with patch("routes.imports.get_file_type_service", return_value=file_types), \
            patch("routes.imports.get_import_orchestrator", return_value=orchestrator), \
            patch("services.manual_entry_service.get_asset_service", return_value=AssetService(client=fake_client)), \
            patch("services.manual_entry_service.get_file_type_service", return_value=file_types):
        yield test_client


class TestHealth:
    """Tests for /health and /"""

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] in ("healthy", "degraded")

    def test_root_lists_endpoints(self, test_client):
        response = test_client.get("/")
        assert response.json()["endpoints"]["run"] == "/api/imports/run"


class TestCsvPreview:
    """Tests for POST /api/imports/csv/preview"""

    def test_preview_suggests_mappings(self, api):
        content = b"MMS ID,File URL,Title\n991234,https://host/a.pdf,Paper\n"

        response = api.post(
            "/api/imports/csv/preview",
            files={"file": ("assets.csv", content, "text/csv")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["row_count"] == 1
        assert [m["mapped_field"] for m in body["mappings"]] == ["mmsId", "remoteUrl", "fileTitle"]
        assert body["errors"] == []

    def test_rejects_non_csv(self, api):
        response = api.post(
            "/api/imports/csv/preview",
            files={"file": ("assets.xlsx", b"x", "application/octet-stream")},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_FILE_TYPE"

    def test_rejects_empty_csv(self, api):
        response = api.post(
            "/api/imports/csv/preview",
            files={"file": ("assets.csv", b"MMS ID,URL\n", "text/csv")},
        )

        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Empty file"


MAPPINGS = json.dumps([
    {"csv_header": "MMS ID", "mapped_field": "mmsId"},
    {"csv_header": "File URL", "mapped_field": "remoteUrl"},
    {"csv_header": "Title", "mapped_field": "fileTitle"},
])


class TestCsvRows:
    """Tests for POST /api/imports/csv/rows"""

    def _post(self, api, content: bytes, mappings: str = MAPPINGS):
        return api.post(
            "/api/imports/csv/rows",
            files={"file": ("assets.csv", content, "text/csv")},
            data={"mappings": mappings},
        )

    def test_builds_rows_from_mapped_columns(self, api):
        content = b"MMS ID,File URL,Title\n991234,https://host/a.pdf,Paper\n995678,https://host/b.pdf,\n"

        response = self._post(api, content)

        body = response.json()
        assert response.status_code == 200
        assert body["row_count"] == 2
        assert body["rows"][0]["asset_id"] == "991234"
        assert body["rows"][0]["remote_url"] == "https://host/a.pdf"
        assert body["rows"][0]["file_title"] == "Paper"
        assert body["rows"][1]["file_title"] is None
        assert body["rows"][1]["status"] == "pending"

    def test_blank_required_values_rejected(self, api):
        content = b"MMS ID,File URL,Title\n991234,https://host/a.pdf,Paper\n,https://host/b.pdf,Other\n"

        response = self._post(api, content)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "REQUIRED_VALUES_MISSING"
        assert response.json()["error"]["details"]["errors"] == ["MMS ID is missing in 1 row(s): 3"]

    def test_duplicate_rows_rejected_with_spreadsheet_rows(self, api):
        content = (
            b"MMS ID,File URL,Title\n"
            b"991234,https://host/a.pdf,One\n"
            b"995678,https://host/b.pdf,Two\n"
            b"991234,https://host/a.pdf,Three\n"
        )

        response = self._post(api, content)

        assert response.status_code == 409
        assert response.json()["error"]["details"] == {"asset_url": "row 2, row 4"}

    def test_incomplete_mapping_rejected(self, api):
        content = b"MMS ID,File URL\n991234,https://host/a.pdf\n"
        mappings = json.dumps([{"csv_header": "MMS ID", "mapped_field": "mmsId"}])

        response = self._post(api, content, mappings)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "MAPPING_INVALID"

    def test_malformed_mappings_rejected(self, api):
        content = b"MMS ID,File URL\n991234,https://host/a.pdf\n"

        response = self._post(api, content, "not json")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_MAPPINGS"


class TestMappingAndFileTypes:
    """Tests for mapping validation and file type routes."""

    def test_mapping_validation(self, api):
        response = api.post("/api/imports/csv/mapping/validate", json={
            "mappings": [{"csv_header": "Title", "mapped_field": "fileTitle"}],
        })

        body = response.json()
        assert body["valid"] is False
        assert len(body["errors"]) == 2

    def test_file_type_reconciliation_with_override(self, api):
        response = api.post("/api/imports/csv/file-types", json={
            "rows": [
                {"asset_id": "991234", "remote_url": "https://host/a.pdf", "file_type": "poster"},
            ],
            "overrides": {"poster": "SUPP"},
        })

        body = response.json()
        assert response.status_code == 200
        assert body["conversions"][0]["matched_id"] == "SUPP"
        assert body["unresolved_values"] == []

    def test_list_file_types_for_asset_type(self, api):
        response = api.get("/api/imports/file-types", params={"asset_type": "dataset.dataset"})

        assert [e["id"] for e in response.json()] == ["ACC", "DATA", "SUPP"]


class TestRun:
    """Tests for POST /api/imports/run"""

    def test_run_converts_types_and_imports(self, api, fake_client):
        fake_client.add_asset("991234")

        response = api.post("/api/imports/run", json={
            "rows": [
                {"asset_id": "991234", "remote_url": "https://host/a.pdf", "file_type": "accepted"},
            ],
        })

        body = response.json()
        assert response.status_code == 200
        assert body["phase"] == "done"
        assert body["rows"][0]["status"] == "success"
        assert fake_client.submissions[0][1][0].type == "ACC"

    def test_duplicate_rows_blocked(self, api, fake_client):
        fake_client.add_asset("991234")
        row = {"asset_id": "991234", "remote_url": "https://host/a.pdf"}

        response = api.post("/api/imports/run", json={"rows": [row, row]})

        assert response.status_code == 409
        assert response.json()["error"]["details"] == {"asset_url": "row 2, row 3"}
        assert fake_client.submissions == []

    def test_unresolved_types_blocked(self, api, fake_client):
        fake_client.add_asset("991234")

        response = api.post("/api/imports/run", json={
            "rows": [{"asset_id": "991234", "remote_url": "https://host/a.pdf", "file_type": "poster"}],
        })

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "FILE_TYPES_UNRESOLVED"
        assert fake_client.submissions == []

    def test_empty_rows_rejected(self, api):
        response = api.post("/api/imports/run", json={"rows": []})
        assert response.status_code == 422


class TestManualValidation:
    """Tests for POST /api/imports/manual/validate"""

    def test_validates_entries(self, api, fake_client):
        fake_client.add_asset("991234")

        response = api.post("/api/imports/manual/validate", json={
            "entries": [
                {"asset_id": "991234", "url": "https://host/a.pdf"},
                {"asset_id": "000000", "url": "https://host/b.pdf"},
            ],
        })

        body = response.json()
        assert body["valid"] is False
        assert body["entries"][0]["asset_id"] == "000000"
        assert body["entries"][0]["state"] == "invalid"
        assert body["entries"][1]["state"] == "valid"
