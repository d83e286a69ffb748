"""Contract tests for the monitoring dashboard API."""

import json


class TestLogs:
    """Log buffer endpoints"""

    def test_startup_entry_is_logged(self, client):
        data = client.get("/api/monitoring/logs").json()

        assert data["total"] >= 1
        assert data["logs"][-1]["message"] == "POS integration sandbox started"

    def test_add_and_filter(self, client):
        created = client.post("/api/monitoring/log", json={"level": "warning", "message": "Slow POS", "module": "pos"})

        assert created.status_code == 201
        data = client.get("/api/monitoring/logs", params={"level": "warning", "module": "pos"}).json()
        assert data["total"] == 1
        assert data["logs"][0]["id"] == created.json()["id"]

    def test_logs_are_newest_first_with_paging(self, client):
        for index in range(3):
            client.post("/api/monitoring/log", json={"message": f"entry {index}", "module": "paging"})

        data = client.get("/api/monitoring/logs", params={"module": "paging", "limit": 2, "offset": 1}).json()

        assert [e["message"] for e in data["logs"]] == ["entry 1", "entry 0"]
        assert data["total"] == 3
        assert data["limit"] == 2
        assert data["offset"] == 1

    def test_invalid_level(self, client):
        assert client.post("/api/monitoring/log", json={"level": "fatal", "message": "x"}).status_code == 400
        assert client.get("/api/monitoring/logs", params={"level": "fatal"}).status_code == 400

    def test_empty_message_is_rejected(self, client):
        assert client.post("/api/monitoring/log", json={"message": ""}).status_code == 422

    def test_clear_leaves_one_entry(self, client):
        response = client.delete("/api/monitoring/logs")

        assert response.json() == {"message": "Logs cleared successfully"}
        assert client.get("/api/monitoring/logs").json()["total"] == 1


class TestExport:
    """GET /api/monitoring/logs/export"""

    def test_json_export(self, client):
        response = client.get("/api/monitoring/logs/export")

        assert response.status_code == 200
        assert 'filename="pos-integration-logs-' in response.headers["content-disposition"]
        payload = json.loads(response.text)
        assert set(payload) == {"export_date", "total_logs", "logs", "metrics", "performance"}

    def test_csv_export(self, client):
        client.post("/api/monitoring/log", json={"message": 'He said "hi"', "module": "csv"})

        response = client.get("/api/monitoring/logs/export", params={"format": "csv"})

        lines = response.text.strip().split("\n")
        assert lines[0] == "Timestamp,Level,Module,Message"
        assert lines[-1].endswith(',info,csv,"He said ""hi"""')

    def test_unknown_format(self, client):
        assert client.get("/api/monitoring/logs/export", params={"format": "xml"}).status_code == 422


class TestMetricsAndMonitoringState:
    """Metrics, start and stop"""

    def test_metrics_track_platform_calls(self, client, logged_in):
        data = client.get("/api/monitoring/metrics").json()

        assert data["authenticated"] is True
        assert data["performance"]["api_calls"] == 1
        assert data["performance"]["successful_calls"] == 1
        assert len(data["metrics"]["response_time"]) == 1
        assert set(data["metrics"]) == {"response_time", "success_rate", "error_rate"}

    def test_start_collects_immediately(self, client, logged_in):
        response = client.post("/api/monitoring/start")

        data = response.json()
        assert data["system_status"] == "operational"
        assert data["uptime"] == "Active"
        assert client.get("/api/monitoring/metrics").json()["is_monitoring"] is True

    def test_start_without_login(self, client):
        assert client.post("/api/monitoring/start").json()["system_status"] == "authentication_required"

    def test_stop(self, client):
        client.post("/api/monitoring/start")

        response = client.post("/api/monitoring/stop")

        assert response.json()["uptime"] == "Inactive"
