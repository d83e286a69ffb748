"""Contract tests for the configuration API."""


class TestCreateConfiguration:
    """POST /api/config"""

    def test_create_returns_201_without_password(self, client, config_payload):
        response = client.post("/api/config", json=config_payload)

        assert response.status_code == 201
        data = response.json()
        assert data["id"] > 0
        assert data["integration_code"] == "test-restaurant-ae"
        assert data["region"] == "me"
        assert data["is_active"] is True
        assert "plugin_password" not in data
        assert "plugin_password_hash" not in data

    def test_create_alias_path(self, client, config_payload):
        response = client.post("/api/configurations", json=config_payload)

        assert response.status_code == 201
        assert client.get("/api/configurations").json()[0]["id"] == response.json()["id"]

    def test_duplicate_code_returns_409(self, client, created_config, config_payload):
        response = client.post("/api/config", json=config_payload)

        assert response.status_code == 409
        assert response.json()["detail"]["error_code"] == "DUPLICATE_CONFIGURATION"

    def test_http_base_url_is_rejected(self, client, config_payload):
        response = client.post("/api/config", json={**config_payload, "base_url": "http://pos.example.com"})

        assert response.status_code == 400
        assert response.json()["detail"]["errors"] == ["Base URL must use HTTPS"]


class TestReadConfiguration:
    """GET endpoints"""

    def test_list_and_get(self, client, created_config):
        listed = client.get("/api/configs").json()
        fetched = client.get(f"/api/config/{created_config['id']}").json()

        assert [c["id"] for c in listed] == [created_config["id"]]
        assert fetched == created_config

    def test_active_configuration(self, client, created_config):
        response = client.get("/api/config/active")

        assert response.status_code == 200
        assert response.json()["id"] == created_config["id"]

    def test_no_active_configuration(self, client):
        response = client.get("/api/config/active")

        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "NOT_FOUND"

    def test_regions_reference_data(self, client):
        data = client.get("/api/config/regions").json()

        assert {c["code"] for c in data["countries"]} >= {"AE", "SA", "KW", "EG"}
        assert data["regions"]["me"] == ["63.32.225.161", "18.202.96.85", "52.208.41.152"]
        assert data["environments"]["production"] == "https://api.talabat.com/pos"


class TestUpdateAndDelete:
    """PUT and DELETE /api/config/{id}"""

    def test_partial_update(self, client, created_config):
        response = client.put(f"/api/config/{created_config['id']}", json={"vendor_code": "VENDOR_002"})

        assert response.status_code == 200
        assert response.json()["vendor_code"] == "VENDOR_002"
        assert response.json()["integration_name"] == created_config["integration_name"]

    def test_null_clears_callback_url(self, client, created_config):
        response = client.put(f"/api/config/{created_config['id']}", json={"callback_url": None})

        assert response.status_code == 200
        assert response.json()["callback_url"] is None
        assert response.json()["vendor_code"] == created_config["vendor_code"]

    def test_update_is_revalidated(self, client, created_config):
        response = client.put(f"/api/config/{created_config['id']}", json={"integration_name": "Cafe 42"})

        assert response.status_code == 400
        assert response.json()["detail"]["errors"] == [
            'Integration Name should follow format: "Company Name Country"'
        ]

    def test_update_unknown(self, client):
        assert client.put("/api/config/999", json={"vendor_code": "X"}).status_code == 404

    def test_delete_is_soft(self, client, created_config):
        config_id = created_config["id"]

        response = client.delete(f"/api/config/{config_id}")

        assert response.status_code == 200
        assert response.json() == {"message": "Configuration deleted successfully", "id": config_id}
        assert client.get(f"/api/config/{config_id}").status_code == 404
        assert client.get("/api/configs").json() == []

    def test_delete_unknown(self, client):
        assert client.delete("/api/config/999").status_code == 404


class TestValidateExportImport:
    """Validation, export and import"""

    def test_validate_accepts_camel_case(self, client):
        response = client.post("/api/config/validate", json={
            "integrationName": "Test Restaurant UAE",
            "integrationCode": "test-restaurant-ae",
            "baseUrl": "https://pos.example.com",
            "pluginUsername": "user",
            "pluginPassword": "pw",
        })

        assert response.json() == {"valid": True, "errors": []}

    def test_validate_reports_errors_without_saving(self, client):
        response = client.post("/api/config/validate", json={"integration_code": "Bad_Code"})

        assert response.status_code == 200
        assert response.json()["valid"] is False
        assert client.get("/api/configs").json() == []

    def test_export_then_import(self, client, created_config):
        exported = client.get(f"/api/config/{created_config['id']}/export").json()
        assert "plugin_password" not in exported["configuration"]

        exported["configuration"]["integration_code"] = "copied-restaurant-ae"
        missing_password = client.post("/api/config/import", json=exported)
        imported = client.post("/api/config/import", json={**exported, "plugin_password": "secret-password"})

        assert missing_password.status_code == 400
        assert imported.status_code == 201
        assert imported.json()["integration_code"] == "copied-restaurant-ae"

    def test_import_duplicate_code(self, client, created_config):
        exported = client.get(f"/api/config/{created_config['id']}/export").json()

        response = client.post("/api/config/import", json={**exported, "plugin_password": "pw"})

        assert response.status_code == 409

    def test_export_unknown(self, client):
        assert client.get("/api/config/999/export").status_code == 404
