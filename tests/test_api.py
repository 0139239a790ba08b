import io

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook, load_workbook

from config import settings
from web.api import app, get_orchestrator

from conftest import TEMPLATE_ROWS

AUTH = {"X-User-Id": "user-42"}
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def xlsx(rows) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def client(orchestrator, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_template(client) -> dict:
    response = client.post(
        "/api/excel/uploadHeaderExcel",
        files={"file": ("header.xlsx", xlsx(TEMPLATE_ROWS), XLSX)},
        data={"templateName": "PMS-Header"},
        headers=AUTH,
    )
    assert response.status_code == 201
    return response.json()["data"]


def test_upload_header_excel(client, tmp_path):
    created = create_template(client)

    assert created["template_name"] == "PMS-Header-1700000000000-abc123"
    assert created["employee_id_column"] == 0
    assert list((tmp_path / "uploads").iterdir()) == []


def test_writes_require_a_user(client):
    response = client.post(
        "/api/excel/uploadHeaderExcel",
        files={"file": ("header.xlsx", xlsx(TEMPLATE_ROWS), XLSX)},
    )
    assert response.status_code == 401
    assert client.get("/api/data/summary").status_code == 401


def test_missing_file(client):
    response = client.post("/api/excel/uploadHeaderExcel", headers=AUTH)
    assert response.status_code == 400
    assert response.json()["detail"] == "No file uploaded"


def test_malformed_upload(client):
    response = client.post(
        "/api/excel/uploadHeaderExcel",
        files={"file": ("header.xlsx", b"not a workbook", XLSX)},
        headers=AUTH,
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_template_reads(client):
    created = create_template(client)

    response = client.get("/api/excel/template", params={"templateName": created["template_name"]})
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Template retrieved successfully"
    assert body["data"]["header_row_index"] == 0
    assert body["data"]["file_name"] == "header.xlsx"

    assert client.get(f"/api/excel/template/{created['template_name']}").status_code == 200
    assert client.get(f"/api/excel/template/id/{created['template_id']}", headers=AUTH).status_code == 200
    assert len(client.get("/api/excel/templates").json()["data"]) == 1
    assert client.get(f"/api/data/template/{created['template_id']}/preview", headers=AUTH).status_code == 200


def test_unknown_template_is_404(client):
    response = client.get("/api/excel/template/id/99", headers=AUTH)
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": 'Template "99" not found'}


def test_download_and_delete(client):
    created = create_template(client)
    template_id = created["template_id"]

    response = client.get(f"/api/excel/download/{template_id}", headers=AUTH)
    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"header.xlsx\"; filename*=UTF-8''header.xlsx"
    )
    assert load_workbook(io.BytesIO(response.content)).active["A1"].value == "Employee ID"

    assert client.delete(f"/api/excel/template/{template_id}", headers=AUTH).status_code == 200
    assert client.get("/api/excel/templates").json()["data"] == []
    assert client.delete(f"/api/excel/template/{template_id}", headers=AUTH).status_code == 404


def test_download_non_ascii_file_name(client):
    response = client.post(
        "/api/excel/uploadHeaderExcel",
        files={"file": ("Plantilla – 2024.xlsx", xlsx(TEMPLATE_ROWS), XLSX)},
        headers=AUTH,
    )
    assert response.status_code == 201
    template_id = response.json()["data"]["template_id"]

    response = client.get(f"/api/excel/download/{template_id}", headers=AUTH)
    assert response.status_code == 200
    assert response.headers["content-disposition"] == (
        "attachment; filename=\"Plantilla _ 2024.xlsx\"; "
        "filename*=UTF-8''Plantilla%20%E2%80%93%202024.xlsx"
    )


def test_upload_flow(client):
    created = create_template(client)
    template_id = created["template_id"]
    filled = xlsx([TEMPLATE_ROWS[0], ["E100", "Ann", 200, 20], ["E404", "Who", 1, 1]])

    response = client.post(
        "/api/data/validate",
        files={"file": ("filled.xlsx", filled, XLSX)},
        data={"templateId": str(template_id)},
        headers=AUTH,
    )
    assert response.status_code == 200
    assert response.json()["data"]["is_valid"] is True

    response = client.post(
        "/api/data/upload",
        files={"file": ("filled.xlsx", filled, XLSX)},
        data={"templateId": str(template_id)},
        headers=AUTH,
    )
    assert response.status_code == 201
    result = response.json()["data"]
    assert result["success_count"] == 1
    assert result["error_count"] == 1
    assert result["errors"][0]["error"] == "Employee with ID E404 not found"
    batch_id = result["upload_batch_id"]

    history = client.get("/api/data/history", headers=AUTH).json()["data"]
    assert history[0]["uploaded_by"] == "user-42"

    summary = client.get("/api/data/summary", headers=AUTH).json()["data"]
    assert summary["total_records"] == 1

    rows = client.get("/api/data/employee/E100", headers=AUTH).json()["data"]
    assert rows[0]["calculated_data"] == {"Total": 220}
    assert rows[0]["data"]["Base"] == {"kind": "literal", "value": 200}

    calculations = client.get(f"/api/data/batch/{batch_id}/calculations", headers=AUTH).json()["data"]
    assert calculations["records"][0]["employee"]["employee_id"] == "E100"

    response = client.get(f"/api/data/batch/{batch_id}/export", headers=AUTH)
    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX


def test_upload_requires_template_id(client):
    response = client.post(
        "/api/data/upload",
        files={"file": ("filled.xlsx", xlsx(TEMPLATE_ROWS), XLSX)},
        headers=AUTH,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Template ID is required"


def test_rejected_upload_reports_errors(client):
    response = client.post(
        "/api/excel/uploadHeaderExcel",
        files={"file": ("header.xlsx", xlsx([["Staff", "Score"], ["x", 1]]), XLSX)},
        headers=AUTH,
    )
    template_id = response.json()["data"]["template_id"]

    response = client.post(
        "/api/data/upload",
        files={"file": ("filled.xlsx", xlsx([["Staff", "Score"], ["E100", 1]]), XLSX)},
        data={"templateId": str(template_id)},
        headers=AUTH,
    )
    assert response.status_code == 400
    body = response.json()
    assert body["errors"] == ["Template does not have an Employee ID column mapping"]


def test_unknown_batch_export_is_404(client):
    response = client.get("/api/data/batch/nope/export", headers=AUTH)
    assert response.status_code == 404
    assert response.json()["message"] == "No data found for this batch"
