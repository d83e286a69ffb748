"""Contract tests for the system information API."""


class TestSystemInfo:
    """GET /api/system/info"""

    def test_sections(self, client):
        data = client.get("/api/system/info").json()

        assert set(data) == {"application", "runtime", "database", "platform", "monitoring", "rate_limit"}
        assert data["application"]["name"] == "POS Integration Sandbox API"
        assert data["application"]["uptime_seconds"] >= 0
        assert data["database"] == {"dialect": "sqlite", "connected": True}

    def test_platform_section(self, client, logged_in):
        platform = client.get("/api/system/info").json()["platform"]

        assert platform["environment"] == "staging"
        assert platform["base_url"] == "https://staging-api.talabat.com/pos"
        assert platform["authenticated"] is True
        assert platform["environments"] == ["staging", "production"]
        assert "AE" in platform["supported_countries"]

    def test_rate_limit_section(self, client):
        assert client.get("/api/system/info").json()["rate_limit"] == {"max_requests": 10000, "window_seconds": 900}
