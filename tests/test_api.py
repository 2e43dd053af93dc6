"""
Test the HTTP contract.

Verifies:
1. POST /api/submit stores a record and refreshes both exports
2. GET /api/submissions lists newest first with pagination
3. GET /api/download is gated (401/403), 404 when empty, and serves CSV/XLSX
4. GET /api/health reports the submission count
5. Errors use the standard envelope with a request id
"""

from __future__ import annotations

import io
import json

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from backend.config import Settings
from backend.core.models import ANSWER_FIELDS, PERSONAL_FIELDS
from backend.services.exports import CSV_BLOB, XLSX_BLOB
from backend.services.record_store import DATA_BLOB
from tests.helpers import FlakyBlobStore, MemoryBlobStore, make_payload


REQUIRED_FIELDS = [("personalInfo", field) for field in PERSONAL_FIELDS] + [
    ("answers", field) for field in ANSWER_FIELDS
]


def _submit(client: TestClient, **overrides: object) -> None:
    response = client.post("/api/submit", json=make_payload(**overrides))
    assert response.status_code == 200, response.text


class TestStartup:
    def test_initializes_store_and_exports(self, client: TestClient, blobs: MemoryBlobStore) -> None:
        assert json.loads(blobs.blobs[DATA_BLOB]) == []
        assert CSV_BLOB in blobs.blobs
        assert XLSX_BLOB in blobs.blobs

    def test_root_info(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "Wingmann Engine"


class TestSubmit:
    def test_first_submission(self, client: TestClient, blobs: MemoryBlobStore) -> None:
        response = client.post("/api/submit", json=make_payload())

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Data saved successfully"}

        stored = json.loads(blobs.blobs[DATA_BLOB])
        assert len(stored) == 1
        assert stored[0]["id"] == 1
        assert stored[0]["city"] == "Pune"
        assert stored[0]["answer1"] == "picnic"
        assert stored[0]["submission_date"] == "2024-05-01T10:00:00Z"

        csv_text = blobs.blobs[CSV_BLOB].decode("utf-8")
        assert csv_text.split("\n")[1].startswith("1,Ana,27,F,Pune,a@x.io,picnic,puns,chill,rude,")

    def test_questionnaire_round_trip(self, client: TestClient, download_key: str) -> None:
        payload = {
            "personalInfo": {
                "name": "Ana",
                "age": "25",
                "gender": "F",
                "city": "Pune",
                "contact": "ana@x.com",
            },
            "answers": {"question1": "A", "question2": "B", "question3": "C", "question4": "D"},
        }

        assert client.post("/api/submit", json=payload).status_code == 200

        listing = client.get("/api/submissions").json()
        record = listing["data"][0]
        assert record["id"] == 1
        assert record["submission_date"] == record["created_at"]

        csv_text = client.get("/api/download", params={"key": download_key}).content.decode("utf-8")
        assert csv_text.split("\n")[1].startswith("1,Ana,25,F,Pune,ana@x.com,A,B,C,D,")

    def test_ids_increase(self, client: TestClient, blobs: MemoryBlobStore) -> None:
        for _ in range(3):
            _submit(client)

        assert [r["id"] for r in json.loads(blobs.blobs[DATA_BLOB])] == [1, 2, 3]

    def test_missing_field(self, client: TestClient, blobs: MemoryBlobStore) -> None:
        answers = dict(make_payload()["answers"], question4="")

        response = client.post("/api/submit", json=make_payload(answers=answers))

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "validation_error"
        assert body["message"] == "All fields are required"
        assert body["details"][0]["field"] == "answers.question4"
        assert "request_id" in body
        assert json.loads(blobs.blobs[DATA_BLOB]) == []

    def test_missing_group(self, client: TestClient) -> None:
        response = client.post("/api/submit", json={"personalInfo": make_payload()["personalInfo"]})

        assert response.status_code == 400
        assert response.json()["message"] == "Missing required data"

    def test_malformed_body_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/api/submit",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    @pytest.mark.parametrize("group,field", REQUIRED_FIELDS)
    @pytest.mark.parametrize("omission", ["absent", "empty"])
    def test_each_required_field(
        self,
        client: TestClient,
        blobs: MemoryBlobStore,
        group: str,
        field: str,
        omission: str,
    ) -> None:
        section = dict(make_payload()[group])
        if omission == "absent":
            del section[field]
        else:
            section[field] = ""

        response = client.post("/api/submit", json=make_payload(**{group: section}))

        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "All fields are required"
        assert [d["field"] for d in body["details"]] == [f"{group}.{field}"]
        assert json.loads(blobs.blobs[DATA_BLOB]) == []

    def test_storage_failure_is_500(self, settings: Settings) -> None:
        from backend.main import create_app

        blobs = FlakyBlobStore()
        app = create_app(settings=settings, blob_store=blobs)

        with TestClient(app, raise_server_exceptions=False) as client:
            blobs.fail_writes.add(DATA_BLOB)
            response = client.post("/api/submit", json=make_payload())

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "storage_error"
        assert body["message"] == "Error saving data"


class TestListSubmissions:
    def test_empty(self, client: TestClient) -> None:
        response = client.get("/api/submissions")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "data": [],
            "pagination": {"page": 1, "limit": 100, "total": 0, "totalPages": 0},
        }

    def test_pagination(self, client: TestClient) -> None:
        for _ in range(3):
            _submit(client)

        body = client.get("/api/submissions", params={"page": "2", "limit": "2"}).json()

        assert body["pagination"] == {"page": 2, "limit": 2, "total": 3, "totalPages": 2}
        assert len(body["data"]) == 1
        assert set(body["data"][0]) >= {"id", "name", "created_at", "submission_date"}

    def test_invalid_params_fall_back(self, client: TestClient) -> None:
        _submit(client)

        body = client.get("/api/submissions", params={"page": "abc", "limit": "0"}).json()

        assert body["pagination"]["page"] == 1
        assert body["pagination"]["limit"] == 100
        assert len(body["data"]) == 1


class TestDownload:
    def test_no_key_is_401(self, client: TestClient) -> None:
        response = client.get("/api/download")

        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "unauthorized"
        assert body["message"] == (
            "Download key required. Use ?key=your-secret-key or set X-Download-Key header."
        )

    def test_wrong_key_is_403(self, client: TestClient) -> None:
        response = client.get("/api/download", params={"key": "nope"})

        assert response.status_code == 403
        assert response.json()["message"] == "Invalid download key."

    def test_empty_store_is_404(self, client: TestClient, download_key: str) -> None:
        response = client.get("/api/download", params={"key": download_key})

        assert response.status_code == 404
        assert response.json()["message"] == "No submissions found"

    def test_csv_download(self, client: TestClient, download_key: str) -> None:
        _submit(client)

        response = client.get("/api/download", params={"key": download_key})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert (
            response.headers["content-disposition"]
            == "attachment; filename=wingmann_all_submissions.csv"
        )
        text = response.content.decode("utf-8")
        assert text.startswith("\ufeffID,Name,Age,")
        assert "\n1,Ana," in text

    def test_header_key_accepted(self, client: TestClient, download_key: str) -> None:
        _submit(client)

        response = client.get("/api/download", headers={"X-Download-Key": download_key})

        assert response.status_code == 200

    def test_unknown_format_is_csv(self, client: TestClient, download_key: str) -> None:
        _submit(client)

        response = client.get("/api/download", params={"key": download_key, "format": "pdf"})

        assert response.headers["content-disposition"].endswith(".csv")

    def test_xlsx_download(self, client: TestClient, download_key: str) -> None:
        _submit(client)

        response = client.get("/api/download", params={"key": download_key, "format": "xlsx"})

        assert response.status_code == 200
        assert response.headers["content-type"] == (
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert (
            response.headers["content-disposition"]
            == "attachment; filename=wingmann_all_submissions.xlsx"
        )
        sheet = load_workbook(io.BytesIO(response.content))["Submissions"]
        assert sheet["B2"].value == "Ana"

    @pytest.mark.parametrize("download_key", [""])
    def test_unset_key_forbids_everything(self, client: TestClient) -> None:
        response = client.get("/api/download", params={"key": "anything"})

        assert response.status_code == 403


class TestHealth:
    def test_health(self, client: TestClient) -> None:
        _submit(client)
        _submit(client)

        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["totalSubmissions"] == 2
        assert body["timestamp"].endswith("Z")
        assert body["exportsStale"] is False

    def test_reports_stale_exports(self, settings: Settings) -> None:
        from backend.main import create_app

        blobs = FlakyBlobStore()
        app = create_app(settings=settings, blob_store=blobs)
        app.state.engine.publisher.min_wait = 0
        app.state.engine.publisher.max_wait = 0

        with TestClient(app, raise_server_exceptions=False) as client:
            blobs.fail_writes.add(XLSX_BLOB)
            _submit(client)
            stale = client.get("/api/health").json()

            blobs.fail_writes.clear()
            _submit(client)
            recovered = client.get("/api/health").json()

        assert stale["exportsStale"] is True
        assert stale["totalSubmissions"] == 1
        assert recovered["exportsStale"] is False

    def test_request_id_echoed(self, client: TestClient) -> None:
        response = client.get("/api/health", headers={"X-Request-ID": "abc123"})

        assert response.headers["X-Request-ID"] == "abc123"
