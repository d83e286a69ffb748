"""Contract tests for the reports API."""

import csv
import io
import json

import pytest


@pytest.fixture
def generated(client):
    response = client.post("/api/reports/generate", json={
        "type": "completed",
        "fromDate": "2024-01-01",
        "toDate": "2024-01-07",
        "format": "json",
    })
    assert response.status_code == 200, response.text
    return response.json()


class TestGenerate:
    """POST /api/reports/generate"""

    def test_generate_returns_metadata_and_download_url(self, generated):
        assert generated["report_info"]["type"] == "completed"
        assert generated["report_info"]["date_range"] == {"from": "2024-01-01", "to": "2024-01-07"}
        assert generated["download_url"] == f"/api/reports/download/{generated['report']['id']}"
        assert generated["report"]["record_count"] == generated["summary"]["total_orders"]

    def test_snake_case_fields(self, client):
        response = client.post("/api/reports/generate", json={
            "report_type": "cancelled", "from_date": "2024-03-01", "to_date": "2024-03-01",
        })

        assert response.status_code == 200
        assert response.json()["report"]["report_format"] == "json"

    def test_uses_active_configuration_vendor(self, client, created_config):
        response = client.post("/api/reports/generate", json={
            "type": "all", "fromDate": "2024-01-01", "toDate": "2024-01-02",
        })

        assert response.json()["report_info"]["vendor"]["code"] == "VENDOR_001"
        assert response.json()["report"]["configuration_id"] == created_config["id"]

    @pytest.mark.parametrize("body, message", [
        ({"type": "completed"}, "Please select date range"),
        ({"type": "completed", "fromDate": "2024-02-01", "toDate": "2024-01-01"},
         "From date cannot be later than to date"),
        ({"type": "completed", "fromDate": "2023-01-01", "toDate": "2024-06-01"},
         "Date range cannot exceed 365 days"),
        ({"type": "refunds", "fromDate": "2024-01-01", "toDate": "2024-01-02"}, "Invalid report type"),
        ({"type": "completed", "fromDate": "2024-01-01", "toDate": "2024-01-02", "format": "xlsx"},
         "Invalid report format"),
    ])
    def test_validation_failures(self, client, body, message):
        response = client.post("/api/reports/generate", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == {"error_code": "VALIDATION_FAILED", "message": message}

    def test_unknown_configuration(self, client):
        response = client.post("/api/reports/generate", json={
            "type": "completed", "fromDate": "2024-01-01", "toDate": "2024-01-02", "configuration_id": 999,
        })

        assert response.status_code == 404


class TestDownload:
    """GET /api/reports/download/{id}"""

    def test_json_download(self, client, generated):
        response = client.get(generated["download_url"])

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert generated["report"]["file_name"] in response.headers["content-disposition"]
        assert len(json.loads(response.text)["records"]) == generated["report"]["record_count"]

    def test_csv_download(self, client):
        report = client.post("/api/reports/generate", json={
            "type": "completed", "fromDate": "2024-01-01", "toDate": "2024-01-01", "format": "csv",
        }).json()

        response = client.get(report["download_url"])

        rows = list(csv.DictReader(io.StringIO(response.text)))
        assert len(rows) == report["report"]["record_count"]
        assert "customer_info" not in rows[0]

    def test_pdf_download_is_text(self, client):
        report = client.post("/api/reports/generate", json={
            "type": "performance", "fromDate": "2024-01-01", "toDate": "2024-01-01", "format": "pdf",
        }).json()

        response = client.get(report["download_url"])

        assert report["report"]["file_name"].endswith(".txt")
        assert response.headers["content-type"].startswith("text/plain")
        assert "Performance Analysis Report" in response.text

    def test_unknown_report(self, client):
        assert client.get("/api/reports/download/999").status_code == 404


class TestHistoryAndTemplates:
    """History and templates"""

    def test_history_is_newest_first(self, client, generated):
        second = client.post("/api/reports/generate", json={
            "type": "errors", "fromDate": "2024-01-01", "toDate": "2024-01-02",
        }).json()

        data = client.get("/api/reports/history").json()

        assert [r["id"] for r in data["reports"]] == [second["report"]["id"], generated["report"]["id"]]
        assert data["total"] == 2

    def test_history_limit(self, client, generated):
        assert client.get("/api/reports/history", params={"limit": 0}).status_code == 422
        assert len(client.get("/api/reports/history", params={"limit": 1}).json()["reports"]) == 1

    def test_templates(self, client):
        templates = client.get("/api/reports/templates").json()["templates"]

        assert {t["type"] for t in templates} == {"completed", "cancelled", "performance", "errors", "all"}
        assert all(t["fields"] for t in templates)


class TestSchedules:
    """Scheduled reports"""

    def test_schedule_list_and_cancel(self, client):
        created = client.post("/api/reports/schedule", json={
            "type": "completed",
            "frequency": "weekly",
            "format": "csv",
            "email_recipients": ["ops@example.com"],
        })

        assert created.status_code == 201
        schedule = created.json()
        assert schedule["email_recipients"] == ["ops@example.com"]
        assert schedule["next_run"]
        assert client.get("/api/reports/scheduled").json()["scheduled_reports"][0]["id"] == schedule["id"]

        cancelled = client.delete(f"/api/reports/scheduled/{schedule['id']}")

        assert cancelled.json() == {"message": "Scheduled report cancelled", "id": schedule["id"]}
        assert client.get("/api/reports/scheduled").json()["scheduled_reports"] == []
        assert client.delete(f"/api/reports/scheduled/{schedule['id']}").status_code == 404

    def test_invalid_frequency(self, client):
        response = client.post("/api/reports/schedule", json={"type": "completed", "frequency": "hourly"})

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "Invalid frequency"
